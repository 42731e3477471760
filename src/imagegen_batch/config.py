from __future__ import annotations

import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field, ValidationError

from .errors import ConfigurationError


class QueueProviderConfig(BaseModel):
    """Settings shared by providers that queue jobs and require polling."""

    api_key: str = Field(..., min_length=1, description="Static API credential")
    poll_interval_seconds: float = Field(
        default=1.0,
        ge=0.05,
        le=30.0,
        description="Delay between status polls while a job is queued or running",
    )
    max_poll_attempts: int = Field(
        default=600,
        ge=1,
        le=10_000,
        description="Maximum polling attempts before the job is treated as timed out",
    )


class FalConfig(QueueProviderConfig):
    """Settings required to access the fal.ai queue API."""

    queue_url: str = Field(default="https://queue.fal.run", description="fal.ai queue base URL")


class YetterConfig(QueueProviderConfig):
    """Settings required to access the Yetter queue API."""

    api_url: str = Field(default="https://api.yetter.ai", description="Yetter queue base URL")


class ReplicateConfig(QueueProviderConfig):
    """Settings required to access the Replicate predictions API."""

    api_url: str = Field(default="https://api.replicate.com/v1", description="Replicate API base URL")


class WaveSpeedConfig(QueueProviderConfig):
    """Settings required to access the WaveSpeed prediction API."""

    api_url: str = Field(default="https://api.wavespeed.ai/api/v3", description="WaveSpeed API base URL")
    poll_interval_seconds: float = Field(default=0.1, ge=0.05, le=30.0)


class RunwareConfig(BaseModel):
    """Settings required to access the synchronous Runware task API."""

    api_key: str = Field(..., min_length=1, description="Runware API key")
    api_url: str = Field(default="https://api.runware.ai/v1", description="Runware task endpoint")


ProviderConfig = FalConfig | YetterConfig | ReplicateConfig | WaveSpeedConfig | RunwareConfig


class BatchSettings(BaseModel):
    """Configuration for where and how fast batches run."""

    results_root: Path = Field(default_factory=lambda: Path("results"))
    item_delay_seconds: float = Field(
        default=1.0,
        ge=0.0,
        le=60.0,
        description="Fixed pause after each batch item to bound the request rate",
    )


class AppConfig(BaseModel):
    """Top-level configuration consumed by the CLI entry points."""

    provider: str
    credentials: ProviderConfig
    batch: BatchSettings = Field(default_factory=BatchSettings)


_CREDENTIAL_ENV = {
    "fal": ("FAL_KEY",),
    "replicate": ("REPLICATE_API_TOKEN",),
    "runware": ("RUNWARE_API_KEY",),
    "wavespeed": ("WAVESPEED_API_KEY",),
    "yetter": ("YTR_API_KEY", "REACT_APP_YTR_API_KEY"),
}

_ENV_PREFIX = {
    "fal": "FAL",
    "replicate": "REPLICATE",
    "runware": "RUNWARE",
    "wavespeed": "WAVESPEED",
    "yetter": "YTR",
}

_CONFIG_TYPES: dict[str, type[BaseModel]] = {
    "fal": FalConfig,
    "replicate": ReplicateConfig,
    "runware": RunwareConfig,
    "wavespeed": WaveSpeedConfig,
    "yetter": YetterConfig,
}


def supported_providers() -> list[str]:
    return sorted(_CONFIG_TYPES)


def _float_from_env(name: str) -> Optional[float]:
    value = os.getenv(name)
    if value is None:
        return None
    try:
        return float(value)
    except ValueError as exc:
        raise ConfigurationError(f"Invalid float value for {name}: {value}") from exc


def _int_from_env(name: str) -> Optional[int]:
    value = os.getenv(name)
    if value is None:
        return None
    try:
        return int(value)
    except ValueError as exc:
        raise ConfigurationError(f"Invalid integer value for {name}: {value}") from exc


def credential_env_names(provider: str) -> tuple[str, ...]:
    try:
        return _CREDENTIAL_ENV[provider]
    except KeyError as exc:
        raise ConfigurationError(
            f"Unknown provider '{provider}'. Available: {', '.join(supported_providers())}"
        ) from exc


def _read_credential(provider: str) -> str:
    names = credential_env_names(provider)
    for name in names:
        value = os.getenv(name)
        if value and value.strip():
            return value.strip()
    raise ConfigurationError(f"Please set the {' or '.join(names)} environment variable")


def load_provider_config(provider: str) -> ProviderConfig:
    """Build the configuration object for a single provider from the environment."""
    api_key = _read_credential(provider)
    prefix = _ENV_PREFIX[provider]
    data: dict[str, object] = {"api_key": api_key}

    url_field = "queue_url" if provider == "fal" else "api_url"
    url_env = f"{prefix}_QUEUE_URL" if provider == "fal" else f"{prefix}_API_URL"
    if os.getenv(url_env):
        data[url_field] = os.getenv(url_env)

    if provider != "runware":
        interval = _float_from_env(f"{prefix}_POLL_INTERVAL")
        if interval is not None:
            data["poll_interval_seconds"] = interval
        attempts = _int_from_env(f"{prefix}_MAX_POLL_ATTEMPTS")
        if attempts is not None:
            data["max_poll_attempts"] = attempts

    config_type = _CONFIG_TYPES[provider]
    try:
        return config_type.model_validate(data)
    except ValidationError as exc:
        invalid = {"/".join(str(part) for part in err["loc"]) for err in exc.errors()}
        raise ConfigurationError(
            f"Invalid {provider} configuration values: {', '.join(sorted(invalid))}"
        ) from exc


def load_config(provider: str, dotenv_path: str | Path | None = None) -> AppConfig:
    """
    Load configuration from environment variables (optionally seeded by a .env file).

    Parameters
    ----------
    provider:
        Provider whose credential must be present (fal, replicate, runware, wavespeed, yetter).
    dotenv_path:
        Optional override for the .env file location. Defaults to ``.env`` in the working directory.

    Raises
    ------
    ConfigurationError
        If the provider is unknown or its credential is missing.
    """
    env_path = Path(dotenv_path) if dotenv_path else Path(".env")
    if env_path.exists():
        load_dotenv(env_path)

    credentials = load_provider_config(provider)

    batch_data: dict[str, object] = {
        "results_root": Path(os.getenv("RESULTS_ROOT_DIR", "results")),
    }
    delay = _float_from_env("BATCH_ITEM_DELAY")
    if delay is not None:
        batch_data["item_delay_seconds"] = delay

    try:
        batch = BatchSettings.model_validate(batch_data)
    except ValidationError as exc:
        raise ConfigurationError(f"Invalid batch settings: {exc}") from exc

    return AppConfig(provider=provider, credentials=credentials, batch=batch)
