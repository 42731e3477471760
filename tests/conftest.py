from __future__ import annotations

import base64
import io
from pathlib import Path
from typing import Any, Callable, Mapping

import pytest
from PIL import Image

from imagegen_batch.presets import ModelPreset, get_preset
from imagegen_batch.types import GenerationResult


def make_png(width: int = 4, height: int = 3, color: str = "red") -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", (width, height), color).save(buffer, format="PNG")
    return buffer.getvalue()


class FakeClient:
    """In-memory adapter returning inline base64 images."""

    def __init__(
        self,
        preset: ModelPreset,
        *,
        images_per_call: int = 1,
        fail_when: Callable[[str], bool] = lambda prompt: False,
        execution_time: float = 1.5,
    ) -> None:
        self.preset = preset
        self.images_per_call = images_per_call
        self.fail_when = fail_when
        self.execution_time = execution_time
        self.calls: list[tuple[str, str | None, dict[str, Any]]] = []
        self.closed = False

    def generate(
        self,
        prompt: str,
        reference_image: str | None = None,
        options: Mapping[str, Any] | None = None,
    ) -> GenerationResult:
        self.calls.append((prompt, reference_image, dict(options or {})))
        if self.fail_when(prompt):
            raise RuntimeError(f"provider rejected '{prompt}'")
        payload = base64.b64encode(make_png()).decode("ascii")
        return GenerationResult(
            provider=self.preset.provider,
            model_name=self.preset.display_name,
            prompt=prompt,
            images=[f"data:image/png;base64,{payload}"] * self.images_per_call,
            model_execution_time=self.execution_time,
            metadata={"seed": (options or {}).get("seed")},
        )

    def close(self) -> None:
        self.closed = True

    def __enter__(self) -> "FakeClient":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:  # noqa: ANN001
        self.close()


@pytest.fixture()
def png_bytes() -> bytes:
    return make_png()


@pytest.fixture()
def generate_preset() -> ModelPreset:
    return get_preset("fal", "qwen-image")


@pytest.fixture()
def edit_preset() -> ModelPreset:
    return get_preset("replicate", "flux-1-kontext-dev")


@pytest.fixture()
def edit_inputs(tmp_path: Path) -> tuple[Path, Path]:
    prompts = tmp_path / "edit-prompts.txt"
    prompts.write_text("Make it red\nMake it blue\nAdd snow\n", encoding="utf-8")
    images_dir = tmp_path / "edit-images"
    images_dir.mkdir()
    for name in ("image_05.png", "image_01.jpg", "image_03.webp", "image_02.jpeg", "image_04.PNG"):
        (images_dir / name).write_bytes(make_png())
    (images_dir / "notes.txt").write_text("not an image", encoding="utf-8")
    return prompts, images_dir


@pytest.fixture()
def clean_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    for name in (
        "FAL_KEY",
        "REPLICATE_API_TOKEN",
        "RUNWARE_API_KEY",
        "WAVESPEED_API_KEY",
        "YTR_API_KEY",
        "REACT_APP_YTR_API_KEY",
        "RESULTS_ROOT_DIR",
        "BATCH_ITEM_DELAY",
        "FAL_POLL_INTERVAL",
        "FAL_MAX_POLL_ATTEMPTS",
        "FAL_QUEUE_URL",
    ):
        # setenv first so teardown also removes values loaded from a .env file
        monkeypatch.setenv(name, "")
        monkeypatch.delenv(name)
    monkeypatch.chdir(tmp_path)
