from __future__ import annotations

from pathlib import Path

import pytest

from imagegen_batch.errors import ConfigurationError
from imagegen_batch.presets import PRESETS, available_presets, get_preset


def test_every_provider_model_pair_is_registered() -> None:
    assert available_presets() == [
        "fal/flux-1-kontext-dev",
        "fal/qwen-image",
        "replicate/flux-1-dev",
        "replicate/flux-1-kontext-dev",
        "replicate/qwen-image",
        "runware/flux-1-kontext-dev",
        "runware/qwen-image",
        "wavespeed/flux-1-kontext-dev",
        "wavespeed/qwen-image",
        "yetter/flux-1-dev",
        "yetter/flux-1-kontext-dev",
        "yetter/qwen-image",
    ]


def test_edit_presets_name_an_image_field() -> None:
    for preset in PRESETS:
        if preset.mode == "edit":
            assert preset.image_field, preset.name


def test_unknown_preset_lists_available_models() -> None:
    with pytest.raises(ConfigurationError, match="Unknown model 'fal/flux-1-dev'. Available: fal/flux-1-kontext-dev"):
        get_preset("fal", "flux-1-dev")


def test_results_dir_is_provider_then_model() -> None:
    assert get_preset("wavespeed", "qwen-image").results_dir == Path("wavespeed") / "qwen-image"


def test_caller_overrides_win_over_defaults() -> None:
    preset = get_preset("fal", "qwen-image")

    merged = preset.merge_options({"num_inference_steps": 20, "seed": 7})

    assert merged["num_inference_steps"] == 20
    assert merged["seed"] == 7
    assert merged["guidance_scale"] == 4.0
    assert merged["image_size"] == "square_hd"


@pytest.mark.parametrize(
    "provider, key",
    [("fal", "qwen-image"), ("fal", "flux-1-kontext-dev"), ("yetter", "flux-1-dev"), ("yetter", "qwen-image")],
)
def test_image_size_accepts_explicit_dimensions(provider: str, key: str) -> None:
    merged = get_preset(provider, key).merge_options({"image_size": {"width": 512, "height": 768}})

    assert merged["image_size"] == {"width": 512, "height": 768}


def test_image_size_named_preset_still_accepted() -> None:
    assert get_preset("fal", "qwen-image").merge_options({"image_size": "landscape_4_3"})["image_size"] == "landscape_4_3"


def test_defaults_are_not_mutated_by_merging() -> None:
    preset = get_preset("runware", "flux-1-kontext-dev")

    preset.merge_options({"advancedFeatures": {"guidanceEndStepPercentage": 10}})

    assert preset.default_options()["advancedFeatures"] == {"guidanceEndStepPercentage": 75}


def test_invalid_option_values_are_configuration_errors() -> None:
    with pytest.raises(ConfigurationError, match="Invalid options for replicate/flux-1-dev"):
        get_preset("replicate", "flux-1-dev").merge_options({"output_quality": 150})


def test_edit_request_requires_reference_image() -> None:
    with pytest.raises(ConfigurationError, match="reference image is required"):
        get_preset("wavespeed", "flux-1-kontext-dev").build_request("make it blue")


def test_runware_kontext_accepts_text_only_requests() -> None:
    request = get_preset("runware", "flux-1-kontext-dev").build_request("a lighthouse")

    assert request.reference_image is None
    assert request.options["steps"] == 28


@pytest.mark.parametrize("prompt", ["", "   "])
def test_blank_prompt_is_rejected(prompt: str) -> None:
    with pytest.raises(ConfigurationError, match="non-empty prompt"):
        get_preset("fal", "qwen-image").build_request(prompt)


def test_yetter_kontext_batch_keeps_input_resolution() -> None:
    preset = get_preset("yetter", "flux-1-kontext-dev")

    assert preset.batch_options == {"seed": 42, "resolution_mode": "match_input"}
    assert preset.extension == "webp"
