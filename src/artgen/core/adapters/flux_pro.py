"""Flux 1.1 Pro model adapter.

Flux 1.1 Pro Specifics
----------------------
- ``aspect_ratio="custom"`` requires explicit ``width`` and ``height``.  Both
  are rounded half-up to the nearest multiple of 32 and kept inside the
  256-1440 pixel range the model accepts.  For any other aspect ratio the
  dimensions are omitted.
- ``image_prompt`` (Flux Redux) is forwarded as given.  It should be a public
  URL; callers that only have a file may send a base64 data URI.  When no
  ``image_prompt`` is given, the first reference image is used instead.
- ``safety_tolerance`` is clamped to 1-6.
"""

from typing import Any, Literal

from artgen.core.errors import ValidationError
from artgen.core.model_adapters import (
    AdapterParams,
    GenerationInput,
    ModelAdapterBase,
    clamp,
    model_registry,
)


DIMENSION_STEP = 32
MIN_DIMENSION = 256
MAX_DIMENSION = 1440


def round_dimension(value: int) -> int:
    """Round a pixel dimension to the nearest multiple of 32 (halves round up).

    The result is clamped to the 256-1440 range accepted by Flux 1.1 Pro.

    >>> round_dimension(1000)
    992
    >>> round_dimension(1024)
    1024
    """
    rounded = ((value + DIMENSION_STEP // 2) // DIMENSION_STEP) * DIMENSION_STEP
    return clamp(rounded, MIN_DIMENSION, MAX_DIMENSION)


class FluxProParams(AdapterParams):
    output_format: Literal["webp", "jpg", "png"] = "webp"
    output_quality: int = 80
    safety_tolerance: int = 2
    prompt_upsampling: bool = False
    width: int | None = None
    height: int | None = None
    image_prompt: str | None = None
    seed: int | None = None


class FluxProAdapter(ModelAdapterBase):
    """Model adapter for ``black-forest-labs/flux-1.1-pro``."""

    name = "flux-1.1-pro"
    label = "Flux 1.1 Pro"
    description = "Premium Flux model with custom dimensions and image prompts"
    replicate_model = "black-forest-labs/flux-1.1-pro"
    params_schema = FluxProParams

    def build_payload(self, request: GenerationInput) -> dict[str, Any]:
        params = self.parse_params(request.params)

        payload: dict[str, Any] = {
            "prompt": request.prompt,
            "aspect_ratio": request.aspect_ratio,
            "output_format": params.output_format,
            "output_quality": clamp(params.output_quality, 0, 100),
            "safety_tolerance": clamp(params.safety_tolerance, 1, 6),
            "prompt_upsampling": params.prompt_upsampling,
        }

        if request.aspect_ratio == "custom":
            if params.width is None or params.height is None:
                raise ValidationError(
                    "width and height are required when aspect_ratio is 'custom'",
                    error="Invalid model parameters",
                )
            payload["width"] = round_dimension(params.width)
            payload["height"] = round_dimension(params.height)

        image_prompt = params.image_prompt
        if not image_prompt and request.reference_images:
            image_prompt = request.reference_images[0]
        if image_prompt and image_prompt.strip():
            payload["image_prompt"] = image_prompt.strip()

        if params.seed is not None:
            payload["seed"] = params.seed

        return payload


model_registry.register(FluxProAdapter)
