"""Flux Schnell model adapter.

Flux Schnell is a distilled model tuned for one to four inference steps;
larger step counts are clamped to 4 rather than rejected.
"""

from typing import Any, Literal

from artgen.core.model_adapters import (
    AdapterParams,
    GenerationInput,
    ModelAdapterBase,
    clamp,
    model_registry,
)


class FluxSchnellParams(AdapterParams):
    num_inference_steps: int = 4
    go_fast: bool = True
    megapixels: Literal["1", "0.25"] = "1"
    output_format: Literal["webp", "jpg", "png"] = "webp"
    output_quality: int = 80
    disable_safety_checker: bool = False
    seed: int | None = None


class FluxSchnellAdapter(ModelAdapterBase):
    """Model adapter for ``black-forest-labs/flux-schnell``."""

    name = "flux-schnell"
    label = "Flux Schnell"
    description = "Fastest Flux model, 1-4 inference steps"
    replicate_model = "black-forest-labs/flux-schnell"
    params_schema = FluxSchnellParams

    def build_payload(self, request: GenerationInput) -> dict[str, Any]:
        params = self.parse_params(request.params)

        payload: dict[str, Any] = {
            "prompt": request.prompt,
            "aspect_ratio": request.aspect_ratio,
            "num_inference_steps": clamp(params.num_inference_steps, 1, 4),
            "go_fast": params.go_fast,
            "megapixels": params.megapixels,
            "output_format": params.output_format,
            "output_quality": clamp(params.output_quality, 0, 100),
            "disable_safety_checker": params.disable_safety_checker,
        }

        if params.seed is not None:
            payload["seed"] = params.seed

        return payload


model_registry.register(FluxSchnellAdapter)
