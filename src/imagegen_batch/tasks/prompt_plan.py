from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import List, Sequence

from ..errors import BatchSetupError
from ..images import IMAGE_EXTENSIONS


@dataclass(frozen=True, slots=True)
class BatchEntry:
    """One unit of work: a prompt and, in edit mode, its paired reference image."""

    index: int
    prompt: str
    image_path: Path | None = None

    @property
    def image_name(self) -> str | None:
        return self.image_path.name if self.image_path else None


@dataclass(frozen=True, slots=True)
class BatchPlan:
    """Entries to process plus the raw counts they were derived from."""

    entries: List[BatchEntry]
    prompt_count: int
    image_count: int | None = None

    @property
    def is_truncated(self) -> bool:
        return self.image_count is not None and self.prompt_count != self.image_count

    def __len__(self) -> int:
        return len(self.entries)


def parse_prompts(text: str) -> List[str]:
    """Split on line boundaries, trim each line and drop the blank ones."""
    return [line.strip() for line in text.splitlines() if line.strip()]


def load_prompts(path: str | Path) -> List[str]:
    prompts_path = Path(path)
    try:
        text = prompts_path.read_text(encoding="utf-8")
    except OSError as exc:
        raise BatchSetupError(f"Failed to read prompts file {prompts_path}: {exc}") from exc
    return parse_prompts(text)


def list_reference_images(directory: str | Path) -> List[Path]:
    """Return image files in ``directory`` sorted by name; the order defines pairing."""
    images_dir = Path(directory)
    try:
        candidates = list(images_dir.iterdir())
    except OSError as exc:
        raise BatchSetupError(f"Failed to read reference image directory {images_dir}: {exc}") from exc
    return sorted(
        (path for path in candidates if path.is_file() and path.suffix.lower() in IMAGE_EXTENSIONS),
        key=lambda path: path.name,
    )


def pair_entries(prompts: Sequence[str], images: Sequence[Path] | None = None) -> BatchPlan:
    """
    Build the batch plan.

    With reference images, prompt *i* is paired with image *i* and only
    ``min(len(prompts), len(images))`` pairs are kept.
    """
    if images is None:
        entries = [BatchEntry(index=i, prompt=prompt) for i, prompt in enumerate(prompts, start=1)]
        plan = BatchPlan(entries=entries, prompt_count=len(prompts))
    else:
        entries = [
            BatchEntry(index=i, prompt=prompt, image_path=image)
            for i, (prompt, image) in enumerate(zip(prompts, images), start=1)
        ]
        plan = BatchPlan(entries=entries, prompt_count=len(prompts), image_count=len(images))

    if not plan.entries:
        raise BatchSetupError("No processable entries: the prompts file or image directory is empty")
    return plan


def load_batch_plan(prompts_file: str | Path, images_dir: str | Path | None = None) -> BatchPlan:
    prompts = load_prompts(prompts_file)
    images = list_reference_images(images_dir) if images_dir is not None else None
    return pair_entries(prompts, images)
