from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Literal, Mapping, MutableMapping, Sequence, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

BatchMode = Literal["generate", "edit"]


@dataclass(frozen=True, slots=True)
class RemoteImage:
    """Downloadable image handle returned by queue-style providers."""

    url: str
    content_type: str | None = None
    width: int | None = None
    height: int | None = None

    @property
    def extension(self) -> str | None:
        if not self.content_type or "/" not in self.content_type:
            return None
        return self.content_type.split("/", 1)[1].split(";", 1)[0].strip() or None


# A remote URL, an inline base64 payload (optionally a data URI), a remote
# handle, or raw image bytes.
ImageReference = Union[str, RemoteImage, bytes]


@dataclass(frozen=True, slots=True)
class GenerationRequest:
    """Prompt, optional reference image and the merged provider options."""

    prompt: str
    reference_image: str | None
    options: Mapping[str, Any]


@dataclass(slots=True)
class GenerationResult:
    """Normalized provider output for a single generate/edit call."""

    provider: str
    model_name: str
    prompt: str
    images: Sequence[ImageReference]
    model_execution_time: float
    metadata: Mapping[str, Any] = field(default_factory=dict)
    success: bool = True

    def mutable_metadata(self) -> MutableMapping[str, Any]:
        """Return a mutable copy of the metadata payload."""
        return dict(self.metadata)


class _Record(BaseModel):
    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )


class SavedImage(_Record):
    """File written for one generated image."""

    filename: str
    source_type: Literal["url", "base64", "remote_file", "bytes"]
    size: int = Field(..., ge=0, description="Size of the written file in bytes")
    content_type: str | None = None
    dimensions: str | None = Field(default=None, description="WIDTHxHEIGHT read from the saved file")
    url: str | None = None


class BatchItemOutcome(_Record):
    """Terminal record for one processed prompt (or prompt/image pair)."""

    index: int = Field(..., ge=1, description="1-based position of the source entry")
    prompt: str
    reference_image: str | None = None
    success: bool
    error: str | None = None
    execution_time: float = 0.0
    wall_clock_time: float = 0.0
    images_generated: int = 0
    saved_images: list[SavedImage] = Field(default_factory=list)
    metadata: dict[str, Any] = Field(default_factory=dict)


class BatchSummary(_Record):
    """Aggregate statistics plus every item outcome for a finished run."""

    provider: str
    model: str
    mode: BatchMode
    total_items: int
    successful_items: int
    failed_items: int
    total_images: int
    total_execution_time: float
    average_time_per_item: float
    total_wall_clock_time: float
    nsfw_detections: int = Field(default=0, description="Successful items the provider flagged as NSFW")
    timestamp: str
    results: list[BatchItemOutcome]

    @classmethod
    def from_outcomes(
        cls,
        *,
        provider: str,
        model: str,
        mode: BatchMode,
        outcomes: Sequence[BatchItemOutcome],
        wall_clock_time: float,
        timestamp: datetime | None = None,
    ) -> "BatchSummary":
        successful = [outcome for outcome in outcomes if outcome.success]
        total_execution_time = sum(outcome.execution_time for outcome in successful)
        average = total_execution_time / len(successful) if successful else 0.0
        moment = timestamp or datetime.now(timezone.utc)
        return cls(
            provider=provider,
            model=model,
            mode=mode,
            total_items=len(outcomes),
            successful_items=len(successful),
            failed_items=len(outcomes) - len(successful),
            total_images=sum(outcome.images_generated for outcome in successful),
            total_execution_time=total_execution_time,
            average_time_per_item=average,
            total_wall_clock_time=wall_clock_time,
            nsfw_detections=sum(1 for outcome in successful if outcome.metadata.get("has_nsfw_concepts")),
            timestamp=moment.isoformat(),
            results=list(outcomes),
        )

    @property
    def success_rate(self) -> float:
        if not self.total_items:
            return 0.0
        return self.successful_items / self.total_items * 100

    def saved_files(self) -> list[SavedImage]:
        return [image for outcome in self.results if outcome.success for image in outcome.saved_images]

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True, indent=2)
