from __future__ import annotations

import time
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, Mapping, Protocol

import httpx

from ..errors import ProviderError
from ..presets import ModelPreset
from ..types import GenerationRequest, GenerationResult


class ImageClient(Protocol):
    """Single-item adapter contract used by the batch runner."""

    preset: ModelPreset

    def generate(
        self,
        prompt: str,
        reference_image: str | None = None,
        options: Mapping[str, Any] | None = None,
    ) -> GenerationResult:
        ...

    def close(self) -> None:
        ...


class HttpImageClient(ABC):
    """Shared session handling for the HTTP-backed provider clients."""

    provider_label = "provider"

    def __init__(
        self,
        preset: ModelPreset,
        *,
        base_url: str,
        headers: Mapping[str, str],
        transport: httpx.BaseTransport | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.preset = preset
        self._sleep = sleep
        self._session = httpx.Client(
            base_url=base_url,
            headers={"Content-Type": "application/json", **headers},
            timeout=httpx.Timeout(120.0),
            transport=transport,
        )

    def close(self) -> None:
        self._session.close()

    def _json(self, response: httpx.Response) -> Dict[str, Any]:
        try:
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise ProviderError(
                f"{self.provider_label} request failed: {exc.response.status_code} - {exc.response.text}"
            ) from exc
        try:
            data = response.json()
        except ValueError as exc:
            raise ProviderError(f"{self.provider_label} returned a non-JSON response") from exc
        if not isinstance(data, dict):
            raise ProviderError(f"{self.provider_label} returned an unexpected payload: {type(data).__name__}")
        return data

    def generate(
        self,
        prompt: str,
        reference_image: str | None = None,
        options: Mapping[str, Any] | None = None,
    ) -> GenerationResult:
        """Merge options over the preset defaults and submit one request."""
        request = self.preset.build_request(prompt, reference_image, options)
        started = time.perf_counter()
        return self._submit(request, started)

    @abstractmethod
    def _submit(self, request: GenerationRequest, started: float) -> GenerationResult:
        """Send one request and normalize the provider response."""

    def __enter__(self) -> "HttpImageClient":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:  # noqa: ANN001
        self.close()
