"""
Provider/model presets: endpoint ids, documented default options and the
fixed options the batch runner applies on top of them.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Mapping

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .errors import ConfigurationError
from .types import BatchMode, GenerationRequest

# fal-style endpoints take a named preset ("square_hd") or {"width": W, "height": H}
ImageSize = str | Dict[str, int]


class ProviderOptions(BaseModel):
    """Base for option models; unknown keys are forwarded to the provider untouched."""

    model_config = ConfigDict(extra="allow")


# --------------------------------------------------------------------------- #
# fal.ai
# --------------------------------------------------------------------------- #
class FalQwenImageOptions(ProviderOptions):
    image_size: ImageSize = Field(default="square_hd", description="Named size preset or {width, height}")
    num_inference_steps: int = Field(default=50, ge=1)
    guidance_scale: float = Field(default=4.0)
    sync_mode: bool = False
    num_images: int = Field(default=1, ge=1)
    enable_safety_checker: bool = False
    output_format: str = "png"
    negative_prompt: str = ""
    acceleration: str = "none"


class FalKontextOptions(ProviderOptions):
    image_size: ImageSize = "square_hd"
    num_inference_steps: int = Field(default=28, ge=1)
    guidance_scale: float = 2.5
    sync_mode: bool = False
    num_images: int = Field(default=1, ge=1)
    enable_safety_checker: bool = False
    output_format: str = "png"
    acceleration: str = "none"
    resolution_mode: str = Field(default="match_input", description="Keep the reference image resolution")


# --------------------------------------------------------------------------- #
# Yetter
# --------------------------------------------------------------------------- #
class YetterFluxDevOptions(ProviderOptions):
    image_size: ImageSize = "square_hd"
    num_inference_steps: int = Field(default=28, ge=1)
    guidance_scale: float = 3.5
    sync_mode: bool = False
    num_images: int = Field(default=1, ge=1)
    enable_safety_checker: bool = False
    acceleration: str = "none"
    streaming: bool = False


class YetterKontextOptions(ProviderOptions):
    num_inference_steps: int = Field(default=28, ge=1)
    guidance_scale: float = 2.5
    sync_mode: bool = False
    num_images: int = Field(default=1, ge=1)
    enable_safety_checker: bool = False
    acceleration: str = "none"
    resolution_mode: str = ""
    streaming: bool = False


class YetterQwenImageOptions(ProviderOptions):
    image_size: ImageSize = "square_hd"
    num_inference_steps: int = Field(default=50, ge=1)
    guidance_scale: float = 4.0
    sync_mode: bool = False
    num_images: int = Field(default=1, ge=1)
    enable_safety_checker: bool = False
    negative_prompt: str = ""
    streaming: bool = False


# --------------------------------------------------------------------------- #
# Replicate
# --------------------------------------------------------------------------- #
class ReplicateFluxDevOptions(ProviderOptions):
    guidance: float = 3.5
    image_size: int = 1024
    aspect_ratio: str = "1:1"
    speed_mode: str = "Blink of an eye 👁️"
    output_format: str = "png"
    output_quality: int = Field(default=100, ge=0, le=100)
    num_inference_steps: int = Field(default=28, ge=1)


class ReplicateKontextOptions(ProviderOptions):
    num_inference_steps: int = Field(default=28, ge=1)
    guidance: float = 2.5
    image_size: int = 1024
    aspect_ratio: str = "match_input_image"
    speed_mode: str = "Real Time"
    output_format: str = "png"
    output_quality: int = Field(default=100, ge=0, le=100)


class ReplicateQwenImageOptions(ProviderOptions):
    negative_prompt: str = ""
    enhance_prompt: bool = False
    image_size: str = "optimize_for_quality"
    aspect_ratio: str = "1:1"
    output_format: str = "png"
    output_quality: int = Field(default=100, ge=0, le=100)
    go_fast: bool = True
    num_inference_steps: int = Field(default=50, ge=1)
    guidance: float = 4.0
    num_outputs: int = Field(default=1, ge=1)
    disable_safety_checker: bool = True


# --------------------------------------------------------------------------- #
# Runware
# --------------------------------------------------------------------------- #
class RunwareKontextOptions(ProviderOptions):
    numberResults: int = Field(default=1, ge=1)
    outputFormat: str = "PNG"
    steps: int = Field(default=28, ge=1)
    CFGScale: float = 2.5
    scheduler: str = "Default"
    includeCost: bool = True
    outputType: list[str] = Field(default_factory=lambda: ["URL"])
    advancedFeatures: Dict[str, Any] = Field(
        default_factory=lambda: {"guidanceEndStepPercentage": 75}
    )


class RunwareQwenImageOptions(ProviderOptions):
    numberResults: int = Field(default=1, ge=1)
    outputFormat: str = "PNG"
    width: int = 1024
    height: int = 1024
    steps: int = Field(default=50, ge=1)
    CFGScale: float = 4.0
    scheduler: str = "UniPCMultistepScheduler"
    includeCost: bool = True
    outputType: list[str] = Field(default_factory=lambda: ["URL"])


# --------------------------------------------------------------------------- #
# WaveSpeed
# --------------------------------------------------------------------------- #
class WaveSpeedKontextOptions(ProviderOptions):
    num_inference_steps: int = Field(default=28, ge=1)
    guidance_scale: float = 2.5
    num_images: int = Field(default=1, ge=1)
    seed: int = Field(default=-1, description="-1 lets the provider pick a random seed")
    output_format: str = "png"
    enable_base64_output: bool = False
    enable_safety_checker: bool = False
    enable_sync_mode: bool = False


class WaveSpeedQwenImageOptions(ProviderOptions):
    size: str = "1024*1024"
    seed: int = -1
    output_format: str = "png"
    enable_sync_mode: bool = False
    enable_base64_output: bool = False


@dataclass(frozen=True, slots=True)
class ModelPreset:
    """A provider/model pair together with its request defaults."""

    provider: str
    key: str
    model: str
    display_name: str
    mode: BatchMode
    options: type[ProviderOptions]
    batch_options: Mapping[str, Any] = field(default_factory=dict)
    image_field: str | None = None
    reference_optional: bool = False
    version: str | None = None
    extension: str = "png"

    @property
    def name(self) -> str:
        return f"{self.provider}/{self.key}"

    @property
    def results_dir(self) -> Path:
        return Path(self.provider) / self.key

    def default_options(self) -> dict[str, Any]:
        return self.options().model_dump()

    def merge_options(self, overrides: Mapping[str, Any] | None = None) -> dict[str, Any]:
        """Shallow-merge caller overrides over the documented defaults."""
        merged = {**self.default_options(), **dict(overrides or {})}
        try:
            return self.options.model_validate(merged).model_dump()
        except ValidationError as exc:
            raise ConfigurationError(f"Invalid options for {self.name}: {exc}") from exc

    def build_request(
        self,
        prompt: str,
        reference_image: str | None = None,
        overrides: Mapping[str, Any] | None = None,
    ) -> GenerationRequest:
        if not prompt or not prompt.strip():
            raise ConfigurationError("A non-empty prompt is required")
        if self.mode == "edit" and not reference_image and not self.reference_optional:
            raise ConfigurationError(f"{self.name} edits an image; a reference image is required")
        return GenerationRequest(
            prompt=prompt,
            reference_image=reference_image,
            options=self.merge_options(overrides),
        )


_SEED = {"seed": 42}

PRESETS: tuple[ModelPreset, ...] = (
    ModelPreset(
        provider="fal",
        key="qwen-image",
        model="fal-ai/qwen-image",
        display_name="fal-qwen-image",
        mode="generate",
        options=FalQwenImageOptions,
        batch_options=_SEED,
    ),
    ModelPreset(
        provider="fal",
        key="flux-1-kontext-dev",
        model="fal-ai/flux-kontext/dev",
        display_name="fal-flux-kontext-dev",
        mode="edit",
        options=FalKontextOptions,
        batch_options=_SEED,
        image_field="image_url",
    ),
    ModelPreset(
        provider="yetter",
        key="flux-1-dev",
        model="ytr-ai/flux/v1.0-dev/t2i",
        display_name="Flux Dev v1.0",
        mode="generate",
        options=YetterFluxDevOptions,
        batch_options=_SEED,
    ),
    ModelPreset(
        provider="yetter",
        key="flux-1-kontext-dev",
        model="ytr-ai/flux/v1.0-dev/i2i/kontext",
        display_name="Flux Kontext v1.0-dev",
        mode="edit",
        options=YetterKontextOptions,
        batch_options={**_SEED, "resolution_mode": "match_input"},
        image_field="image_url",
        extension="webp",
    ),
    ModelPreset(
        provider="yetter",
        key="qwen-image",
        model="ytr-ai/qwen/image/t2i",
        display_name="Qwen Image",
        mode="generate",
        options=YetterQwenImageOptions,
        batch_options=_SEED,
    ),
    ModelPreset(
        provider="replicate",
        key="flux-1-dev",
        model="prunaai/flux.1-dev",
        version="b0306d92aa025bb747dc74162f3c27d6ed83798e08e5f8977adf3d859d0536a3",
        display_name="replicate-flux-1-dev",
        mode="generate",
        options=ReplicateFluxDevOptions,
        batch_options=_SEED,
    ),
    ModelPreset(
        provider="replicate",
        key="flux-1-kontext-dev",
        model="prunaai/flux-kontext-dev",
        version="2f311ad6069d6cb2ec28d46bb0d1da5148a983b56f4f2643d2d775d39d11e44b",
        display_name="replicate-flux-kontext-dev",
        mode="edit",
        options=ReplicateKontextOptions,
        batch_options=_SEED,
        image_field="img_cond_path",
    ),
    ModelPreset(
        provider="replicate",
        key="qwen-image",
        model="qwen/qwen-image",
        display_name="replicate-qwen-image",
        mode="generate",
        options=ReplicateQwenImageOptions,
        batch_options=_SEED,
    ),
    ModelPreset(
        provider="runware",
        key="flux-1-kontext-dev",
        model="runware:106@1",
        display_name="runware-flux-1-kontext-dev",
        mode="edit",
        options=RunwareKontextOptions,
        batch_options=_SEED,
        image_field="referenceImages",
        reference_optional=True,
    ),
    ModelPreset(
        provider="runware",
        key="qwen-image",
        model="runware:108@1",
        display_name="runware-qwen-image",
        mode="generate",
        options=RunwareQwenImageOptions,
        batch_options=_SEED,
    ),
    ModelPreset(
        provider="wavespeed",
        key="flux-1-kontext-dev",
        model="wavespeed-ai/flux-kontext-dev-ultra-fast",
        display_name="wavespeed-flux-kontext-dev-ultra-fast",
        mode="edit",
        options=WaveSpeedKontextOptions,
        batch_options=_SEED,
        image_field="image",
    ),
    ModelPreset(
        provider="wavespeed",
        key="qwen-image",
        model="wavespeed-ai/qwen-image/text-to-image",
        display_name="wavespeed-qwen-image",
        mode="generate",
        options=WaveSpeedQwenImageOptions,
        batch_options=_SEED,
    ),
)


def available_presets() -> list[str]:
    return sorted(preset.name for preset in PRESETS)


def get_preset(provider: str, key: str) -> ModelPreset:
    for preset in PRESETS:
        if preset.provider == provider and preset.key == key:
            return preset
    raise ConfigurationError(
        f"Unknown model '{provider}/{key}'. Available: {', '.join(available_presets())}"
    )
