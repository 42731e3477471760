from __future__ import annotations

import time
from typing import Any, Callable, Dict, List

import httpx

from ..config import ReplicateConfig
from ..errors import ProviderError
from ..polling import poll_until
from ..presets import ModelPreset
from ..types import GenerationRequest, GenerationResult, ImageReference, RemoteImage
from .base import HttpImageClient

_TERMINAL = {"succeeded", "failed", "canceled"}
# sent on prediction creation only
_CREATE_HEADERS = {"Prefer": "wait"}


class ReplicateClient(HttpImageClient):
    """Client for the Replicate predictions API."""

    provider_label = "Replicate"

    def __init__(
        self,
        config: ReplicateConfig,
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

    def _create_prediction(self, request: GenerationRequest) -> Dict[str, Any]:
        model_input: Dict[str, Any] = {"prompt": request.prompt, **request.options}
        if request.reference_image and self.preset.image_field:
            model_input[self.preset.image_field] = request.reference_image

        # Pinned versions go through /predictions; official models through the model route.
        if self.preset.version:
            return self._json(
                self._session.post(
                    "/predictions",
                    json={"version": self.preset.version, "input": model_input},
                    headers=_CREATE_HEADERS,
                )
            )
        return self._json(
            self._session.post(
                f"/models/{self.preset.model}/predictions",
                json={"input": model_input},
                headers=_CREATE_HEADERS,
            )
        )

    def _wait_for_prediction(self, prediction: Dict[str, Any]) -> Dict[str, Any]:
        if prediction.get("status") in _TERMINAL:
            return prediction

        prediction_id = prediction.get("id")
        if not prediction_id:
            raise ProviderError(f"Replicate response missing prediction id: {list(prediction)}")
        poll_url = (prediction.get("urls") or {}).get("get") or f"/predictions/{prediction_id}"

        return poll_until(
            lambda: self._json(self._session.get(poll_url)),
            lambda data: data.get("status") in _TERMINAL,
            interval=self._config.poll_interval_seconds,
            max_attempts=self._config.max_poll_attempts,
            description=f"Replicate prediction {prediction_id}",
            sleep=self._sleep,
        )

    @staticmethod
    def _images(output: Any, output_format: str | None) -> List[ImageReference]:
        if isinstance(output, str):
            urls = [output]
        elif isinstance(output, list):
            urls = [item for item in output if isinstance(item, str)]
        else:
            urls = []
        content_type = f"image/{output_format}" if output_format else None
        return [RemoteImage(url=url, content_type=content_type) for url in urls]

    def _submit(self, request: GenerationRequest, started: float) -> GenerationResult:
        prediction = self._wait_for_prediction(self._create_prediction(request))
        status = prediction.get("status")
        if status != "succeeded":
            raise ProviderError(f"Replicate prediction {status}: {prediction.get('error')}")

        images = self._images(prediction.get("output"), request.options.get("output_format"))
        if not images:
            raise ProviderError("No images generated")

        predict_time = (prediction.get("metrics") or {}).get("predict_time")
        if not isinstance(predict_time, (int, float)):
            predict_time = time.perf_counter() - started

        model = f"{self.preset.model}:{self.preset.version}" if self.preset.version else self.preset.model
        metadata = {
            "model": model,
            "prediction_id": prediction.get("id"),
            "guidance": request.options.get("guidance"),
            "image_size": request.options.get("image_size"),
            "aspect_ratio": request.options.get("aspect_ratio"),
            "num_inference_steps": request.options.get("num_inference_steps"),
            "speed_mode": request.options.get("speed_mode"),
        }
        return GenerationResult(
            provider=self.preset.provider,
            model_name=self.preset.display_name,
            prompt=request.prompt,
            images=images,
            model_execution_time=float(predict_time),
            metadata=metadata,
        )
