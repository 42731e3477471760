from __future__ import annotations

import time
from typing import Any, Callable, Dict, List

import httpx

from ..config import WaveSpeedConfig
from ..errors import ProviderError
from ..polling import poll_until
from ..presets import ModelPreset
from ..types import GenerationRequest, GenerationResult, ImageReference
from .base import HttpImageClient


class WaveSpeedClient(HttpImageClient):
    """Client for the WaveSpeed prediction API."""

    provider_label = "WaveSpeed"

    def __init__(
        self,
        config: WaveSpeedConfig,
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
        self._config = config

    def _payload(self, request: GenerationRequest) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"prompt": request.prompt, **request.options}
        if request.reference_image and self.preset.image_field:
            payload[self.preset.image_field] = request.reference_image
        return payload

    def _poll_result(self, request_id: str) -> Dict[str, Any]:
        def check() -> Dict[str, Any]:
            body = self._json(self._session.get(f"/predictions/{request_id}/result"))
            return body.get("data") or {}

        return poll_until(
            check,
            lambda data: data.get("status") in {"completed", "failed"},
            interval=self._config.poll_interval_seconds,
            max_attempts=self._config.max_poll_attempts,
            description=f"WaveSpeed request {request_id}",
            sleep=self._sleep,
        )

    def _submit(self, request: GenerationRequest, started: float) -> GenerationResult:
        payload = self._payload(request)
        body = self._json(self._session.post(f"/{self.preset.model}", json=payload))
        request_id = (body.get("data") or {}).get("id")
        if not request_id:
            raise ProviderError(f"WaveSpeed response missing request id: {list(body)}")

        data = self._poll_result(request_id)
        if data.get("status") == "failed":
            raise ProviderError(f"Image generation failed: {data.get('error')}")

        images: List[ImageReference] = [output for output in data.get("outputs") or [] if output]
        if not images:
            raise ProviderError("No images generated")

        metadata = {
            "model": self.preset.model,
            "request_id": request_id,
            "num_inference_steps": payload.get("num_inference_steps"),
            "guidance_scale": payload.get("guidance_scale"),
            "seed": payload.get("seed"),
            "output_format": payload.get("output_format"),
            "safety_checker": payload.get("enable_safety_checker"),
        }
        return GenerationResult(
            provider=self.preset.provider,
            model_name=self.preset.display_name,
            prompt=request.prompt,
            images=images,
            model_execution_time=time.perf_counter() - started,
            metadata=metadata,
        )
