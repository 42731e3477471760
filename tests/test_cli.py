from __future__ import annotations

import json
from pathlib import Path

import pytest

from imagegen_batch import cli
from imagegen_batch.cli import _parse_option, batch_main, generate_main, parse_batch_args
from imagegen_batch.storage import RESULTS_FILENAME

from conftest import FakeClient


@pytest.fixture()
def fake_clients(monkeypatch: pytest.MonkeyPatch) -> list[FakeClient]:
    created: list[FakeClient] = []

    def factory(preset, config, **kwargs):  # noqa: ANN001, ANN003
        client = FakeClient(preset)
        created.append(client)
        return client

    monkeypatch.setattr(cli, "build_client", factory)
    return created


def test_option_values_are_parsed_as_json_when_possible() -> None:
    assert _parse_option("seed=7") == ("seed", 7)
    assert _parse_option("sync_mode=true") == ("sync_mode", True)
    assert _parse_option("image_size=landscape_4_3") == ("image_size", "landscape_4_3")


def test_unknown_provider_is_rejected_by_argparse() -> None:
    with pytest.raises(SystemExit) as excinfo:
        parse_batch_args(["openai", "dall-e"])
    assert excinfo.value.code == 2


def test_missing_credential_exits_with_status_one(clean_env, capsys: pytest.CaptureFixture[str]) -> None:
    with pytest.raises(SystemExit) as excinfo:
        batch_main(["fal", "qwen-image", "--delay", "0"])

    assert excinfo.value.code == 1
    assert "FAL_KEY" in capsys.readouterr().err


def test_unknown_model_exits_with_status_one(clean_env) -> None:
    with pytest.raises(SystemExit) as excinfo:
        batch_main(["fal", "flux-1-dev"])
    assert excinfo.value.code == 1


def test_missing_prompts_file_exits_with_status_one(clean_env, monkeypatch, tmp_path: Path, fake_clients) -> None:
    monkeypatch.setenv("FAL_KEY", "k")

    with pytest.raises(SystemExit) as excinfo:
        batch_main(["fal", "qwen-image", "--prompts", str(tmp_path / "missing.txt")])

    assert excinfo.value.code == 1
    assert fake_clients == []


def test_batch_writes_results_under_provider_and_model(clean_env, monkeypatch, tmp_path: Path, fake_clients) -> None:
    monkeypatch.setenv("FAL_KEY", "k")
    monkeypatch.setenv("RESULTS_ROOT_DIR", str(tmp_path / "results"))
    prompts = tmp_path / "prompts.txt"
    prompts.write_text("a red car\n\na blue car\n", encoding="utf-8")

    batch_main(["fal", "qwen-image", "--prompts", str(prompts), "--delay", "0"])

    results_dir = tmp_path / "results" / "fal" / "qwen-image"
    document = json.loads((results_dir / RESULTS_FILENAME).read_text(encoding="utf-8"))
    assert document["provider"] == "fal"
    assert document["mode"] == "generate"
    assert document["totalItems"] == 2
    assert document["successfulItems"] == 2
    assert (results_dir / "prompt_02_image_1.png").exists()
    assert [call[0] for call in fake_clients[0].calls] == ["a red car", "a blue car"]
    assert fake_clients[0].closed


def test_edit_batch_uses_image_directory(clean_env, monkeypatch, tmp_path: Path, fake_clients, edit_inputs) -> None:
    prompts_file, images_dir = edit_inputs
    monkeypatch.setenv("REPLICATE_API_TOKEN", "r8")
    out = tmp_path / "out"

    batch_main(
        [
            "replicate",
            "flux-1-kontext-dev",
            "--prompts",
            str(prompts_file),
            "--images",
            str(images_dir),
            "--results-dir",
            str(out),
            "--delay",
            "0",
        ]
    )

    document = json.loads((out / RESULTS_FILENAME).read_text(encoding="utf-8"))
    assert document["mode"] == "edit"
    assert document["totalItems"] == 3
    assert (out / "edit_01_image_01_result_1.png").exists()


def test_generate_applies_overrides_and_saves(clean_env, monkeypatch, tmp_path: Path, fake_clients) -> None:
    monkeypatch.setenv("WAVESPEED_API_KEY", "ws")
    out = tmp_path / "single"

    generate_main(["wavespeed", "qwen-image", "A red car", "--option", "seed=7", "--output-dir", str(out)])

    assert fake_clients[0].calls == [("A red car", None, {"seed": 7})]
    assert (out / "image_1.png").exists()


def test_generate_with_missing_reference_file_exits(clean_env, monkeypatch, tmp_path: Path, fake_clients) -> None:
    monkeypatch.setenv("FAL_KEY", "k")

    with pytest.raises(SystemExit) as excinfo:
        generate_main(["fal", "flux-1-kontext-dev", "make it blue", "--image", str(tmp_path / "nope.png")])

    assert excinfo.value.code == 1
