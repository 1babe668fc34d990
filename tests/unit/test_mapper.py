"""Tests for artgen.core.mapper — request validation and model resolution."""

from __future__ import annotations

import pytest

from artgen.core.errors import ValidationError
from artgen.core.mapper import build_provider_request, normalize_prompt, resolve_adapter
from artgen.core.model_adapters import GenerationInput, model_registry


class TestPrompt:
    @pytest.mark.parametrize("prompt", [None, "", "   ", "\n\t"])
    def test_blank_prompt_rejected(self, prompt):
        with pytest.raises(ValidationError) as exc_info:
            normalize_prompt(prompt)
        assert exc_info.value.error == "Prompt required"

    def test_prompt_is_trimmed(self):
        assert normalize_prompt("  a red fox  ") == "a red fox"

    @pytest.mark.parametrize("model", model_registry.list_available())
    def test_blank_prompt_rejected_for_every_model(self, test_config, model):
        with pytest.raises(ValidationError):
            build_provider_request(GenerationInput(prompt="  ", model=model), test_config)


class TestModelResolution:
    def test_known_model(self, test_config):
        assert resolve_adapter("flux-schnell", test_config).name == "flux-schnell"

    @pytest.mark.parametrize("model", [None, "", "dall-e-3"])
    def test_unknown_model_falls_back_to_default(self, test_config, model):
        assert resolve_adapter(model, test_config).name == "seedream"

    def test_fallback_uses_configured_default(self, test_config):
        test_config.default_model = "flux-schnell"
        assert resolve_adapter("nope", test_config).name == "flux-schnell"

    def test_strict_mode_rejects_unknown_model(self, test_config):
        test_config.reject_unknown_models = True
        with pytest.raises(ValidationError) as exc_info:
            resolve_adapter("dall-e-3", test_config)
        assert exc_info.value.error == "Unknown model"
        assert "seedream" in exc_info.value.details


class TestBuildProviderRequest:
    def test_maps_request(self, test_config):
        request = build_provider_request(
            GenerationInput(prompt="  a red fox ", model="flux-schnell", aspect_ratio="16:9"),
            test_config,
        )
        assert request.model_id == "flux-schnell"
        assert request.requested_model == "flux-schnell"
        assert request.replicate_model == "black-forest-labs/flux-schnell"
        assert request.payload["prompt"] == "a red fox"
        assert request.payload["aspect_ratio"] == "16:9"

    def test_records_requested_model_on_fallback(self, test_config):
        request = build_provider_request(
            GenerationInput(prompt="a red fox", model="mystery"), test_config
        )
        assert request.requested_model == "mystery"
        assert request.model_id == "seedream"

    def test_blank_aspect_ratio_defaults_to_square(self, test_config):
        request = build_provider_request(
            GenerationInput(prompt="a red fox", model="seedream", aspect_ratio="  "),
            test_config,
        )
        assert request.payload["aspect_ratio"] == "1:1"

    def test_caller_params_not_mutated(self, test_config):
        params = {"seed": 5}
        build_provider_request(
            GenerationInput(prompt="a red fox", model="seedream", params=params), test_config
        )
        assert params == {"seed": 5}
