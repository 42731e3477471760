from __future__ import annotations

import time
import uuid
from typing import Any, Callable, Dict, List, Sequence

import httpx

from ..config import RunwareConfig
from ..errors import ProviderError
from ..images import describe_data_uri
from ..presets import ModelPreset
from ..types import GenerationRequest, GenerationResult, ImageReference
from .base import HttpImageClient

MAX_REFERENCE_IMAGES = 2


def validate_reference_images(reference_images: Sequence[str]) -> List[Dict[str, Any]]:
    """Check each reference is a supported image data URI and describe it."""
    if len(reference_images) > MAX_REFERENCE_IMAGES:
        raise ProviderError(f"FLUX Kontext [dev] supports maximum {MAX_REFERENCE_IMAGES} reference images")

    described: List[Dict[str, Any]] = []
    for position, image in enumerate(reference_images, start=1):
        if not isinstance(image, str):
            raise ProviderError(f"Reference image {position} must be a string")
        try:
            media_type, image_format, size = describe_data_uri(image)
        except ProviderError as exc:
            raise ProviderError(f"Reference image {position}: {exc}") from exc
        described.append({"media_type": media_type, "format": image_format, "size": size})
    return described


class RunwareClient(HttpImageClient):
    """Client for the synchronous Runware task API."""

    provider_label = "Runware"

    def __init__(
        self,
        config: RunwareConfig,
        preset: ModelPreset,
        *,
        transport: httpx.BaseTransport | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        super().__init__(
            preset,
            base_url=config.api_url,
            headers={"Authorization": f"Bearer {config.api_key}"},
            transport=transport,
            sleep=sleep,
        )

    def _task(self, request: GenerationRequest) -> tuple[Dict[str, Any], List[Dict[str, Any]]]:
        task: Dict[str, Any] = {
            "taskType": "imageInference",
            "taskUUID": str(uuid.uuid4()),
            "positivePrompt": request.prompt,
            "model": self.preset.model,
            **request.options,
        }

        references: List[str] = []
        if request.reference_image:
            references = [request.reference_image]
        described = validate_reference_images(references)

        if references:
            task["referenceImages"] = references
        else:
            task.setdefault("width", 1024)
            task.setdefault("height", 1024)
        return task, described

    def _submit(self, request: GenerationRequest, started: float) -> GenerationResult:
        task, described = self._task(request)
        data = self._json(self._session.post("", json=[task]))

        errors = data.get("errors") or []
        if errors:
            messages = "; ".join(str(error.get("message", error)) for error in errors if error)
            raise ProviderError(f"Runware task failed: {messages}")

        entries = [
            entry
            for entry in data.get("data") or []
            if entry.get("taskUUID", task["taskUUID"]) == task["taskUUID"] and entry.get("imageURL")
        ]
        images: List[ImageReference] = [entry["imageURL"] for entry in entries]
        if not images:
            raise ProviderError("No images generated")

        metadata = {
            "model": self.preset.model,
            "steps": task.get("steps"),
            "CFGScale": task.get("CFGScale"),
            "scheduler": task.get("scheduler"),
            "outputFormat": task.get("outputFormat"),
            "advancedFeatures": task.get("advancedFeatures"),
            "cost": entries[0].get("cost"),
            "referenceImages": {
                "count": len(described),
                "formats": [item["format"] for item in described],
                "totalSize": sum(item["size"] for item in described),
            }
            if described
            else None,
        }
        return GenerationResult(
            provider=self.preset.provider,
            model_name=self.preset.display_name,
            prompt=request.prompt,
            images=images,
            model_execution_time=time.perf_counter() - started,
            metadata=metadata,
        )
