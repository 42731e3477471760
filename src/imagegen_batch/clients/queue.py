from __future__ import annotations

import time
from abc import abstractmethod
from typing import Any, Callable, Dict, List

import httpx

from ..config import FalConfig, QueueProviderConfig, YetterConfig
from ..errors import ProviderError
from ..polling import poll_until
from ..presets import ModelPreset
from ..types import GenerationRequest, GenerationResult, ImageReference, RemoteImage
from .base import HttpImageClient

_DONE = "COMPLETED"
_FAILED = {"FAILED", "ERROR", "CANCELLED", "CANCELED"}


class QueueImageClient(HttpImageClient):
    """
    Client for subscribe-style queue APIs.

    A job is submitted to ``POST /{model}``; the response carries a request id
    plus status and response URLs. The status URL is polled until the job is
    ``COMPLETED`` and the final payload is then read from the response URL.
    """

    def __init__(
        self,
        config: QueueProviderConfig,
        preset: ModelPreset,
        *,
        base_url: str,
        transport: httpx.BaseTransport | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        super().__init__(
            preset,
            base_url=base_url.rstrip("/"),
            headers={"Authorization": f"Key {config.api_key}"},
            transport=transport,
            sleep=sleep,
        )
        self._config = config

    def _payload(self, request: GenerationRequest) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"prompt": request.prompt, **request.options}
        if request.reference_image and self.preset.image_field:
            payload[self.preset.image_field] = request.reference_image
        return payload

    def _request_url(self, request_id: str, suffix: str = "") -> str:
        return f"/{self.preset.model}/requests/{request_id}{suffix}"

    def _wait_for_completion(self, submission: Dict[str, Any]) -> Dict[str, Any]:
        request_id = submission.get("request_id")
        if not request_id:
            raise ProviderError(f"{self.provider_label} submission missing request_id: {list(submission)}")
        status_url = submission.get("status_url") or self._request_url(request_id, "/status")
        response_url = submission.get("response_url") or self._request_url(request_id)

        def check() -> Dict[str, Any]:
            return self._json(self._session.get(status_url))

        status = poll_until(
            check,
            lambda data: str(data.get("status", "")).upper() in _FAILED | {_DONE},
            interval=self._config.poll_interval_seconds,
            max_attempts=self._config.max_poll_attempts,
            description=f"{self.provider_label} request {request_id}",
            sleep=self._sleep,
        )
        state = str(status.get("status", "")).upper()
        if state != _DONE:
            raise ProviderError(
                f"{self.provider_label} request {request_id} ended with status {state}: "
                f"{status.get('error') or status.get('logs')}"
            )
        result = self._json(self._session.get(response_url))
        result.setdefault("request_id", request_id)
        return result

    @abstractmethod
    def _images(self, data: Dict[str, Any]) -> List[ImageReference]:
        """Extract image references from a completed job payload."""

    def _submit(self, request: GenerationRequest, started: float) -> GenerationResult:
        submission = self._json(self._session.post(f"/{self.preset.model}", json=self._payload(request)))
        data = self._wait_for_completion(submission)

        images = self._images(data)
        if not images:
            raise ProviderError("No images generated")

        elapsed = time.perf_counter() - started
        execution_time = data.get("model_execution_time")
        if not isinstance(execution_time, (int, float)):
            execution_time = elapsed

        nsfw = data.get("has_nsfw_concepts")
        metadata = {
            "model": self.preset.model,
            "request_id": data.get("request_id"),
            "seed": data.get("seed"),
            "has_nsfw_concepts": any(nsfw) if isinstance(nsfw, list) else bool(nsfw),
            "num_inference_steps": request.options.get("num_inference_steps"),
            "image_size": request.options.get("image_size"),
            "num_images": request.options.get("num_images"),
        }
        return GenerationResult(
            provider=self.preset.provider,
            model_name=self.preset.display_name,
            prompt=request.prompt,
            images=images,
            model_execution_time=float(execution_time),
            metadata=metadata,
        )


class FalClient(QueueImageClient):
    """Client for the fal.ai queue API; images are returned as URLs."""

    provider_label = "fal.ai"

    def __init__(
        self,
        config: FalConfig,
        preset: ModelPreset,
        *,
        transport: httpx.BaseTransport | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        super().__init__(config, preset, base_url=config.queue_url, transport=transport, sleep=sleep)

    def _images(self, data: Dict[str, Any]) -> List[ImageReference]:
        return [entry["url"] for entry in data.get("images") or [] if isinstance(entry, dict) and entry.get("url")]


class YetterClient(QueueImageClient):
    """Client for the Yetter queue API; images are returned as downloadable handles."""

    provider_label = "Yetter"

    def __init__(
        self,
        config: YetterConfig,
        preset: ModelPreset,
        *,
        transport: httpx.BaseTransport | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        super().__init__(config, preset, base_url=config.api_url, transport=transport, sleep=sleep)

    def _images(self, data: Dict[str, Any]) -> List[ImageReference]:
        images: List[ImageReference] = []
        for entry in data.get("images") or []:
            if isinstance(entry, str):
                images.append(entry)
            elif isinstance(entry, dict) and entry.get("url"):
                images.append(
                    RemoteImage(
                        url=entry["url"],
                        content_type=entry.get("content_type"),
                        width=entry.get("width"),
                        height=entry.get("height"),
                    )
                )
        return images
