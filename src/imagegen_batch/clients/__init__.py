"""
Client adapters for the fal.ai, Replicate, Runware, WaveSpeed and Yetter providers.
"""
from __future__ import annotations

from typing import Callable

import httpx

from ..config import ProviderConfig
from ..errors import ConfigurationError
from ..presets import ModelPreset
from .base import HttpImageClient, ImageClient
from .queue import FalClient, YetterClient
from .replicate import ReplicateClient
from .runware import RunwareClient
from .wavespeed import WaveSpeedClient

_CLIENTS: dict[str, Callable[..., HttpImageClient]] = {
    "fal": FalClient,
    "replicate": ReplicateClient,
    "runware": RunwareClient,
    "wavespeed": WaveSpeedClient,
    "yetter": YetterClient,
}


def build_client(
    preset: ModelPreset,
    config: ProviderConfig,
    *,
    transport: httpx.BaseTransport | None = None,
) -> HttpImageClient:
    """Instantiate the adapter for ``preset`` with explicit provider configuration."""
    try:
        factory = _CLIENTS[preset.provider]
    except KeyError as exc:
        raise ConfigurationError(f"No client registered for provider '{preset.provider}'") from exc
    return factory(config, preset, transport=transport)


__all__ = [
    "FalClient",
    "ImageClient",
    "ReplicateClient",
    "RunwareClient",
    "WaveSpeedClient",
    "YetterClient",
    "build_client",
]
