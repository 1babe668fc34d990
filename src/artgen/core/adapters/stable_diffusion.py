"""Stable Diffusion (zedge) model adapter.

This deployment takes explicit pixel dimensions instead of an aspect ratio
and can strip the background of its output.  Background-removal options are
only sent when ``remove_background`` is on, and ``padding`` only when the
trimmed background is requested as well.  A seed of ``-1`` asks the provider
to pick a random seed.
"""

from typing import Any

from artgen.core.model_adapters import (
    AdapterParams,
    GenerationInput,
    ModelAdapterBase,
    clamp,
    model_registry,
)

RANDOM_SEED = -1


class StableDiffusionParams(AdapterParams):
    width: int = 1024
    height: int = 1024
    num_outputs: int = 1
    disable_nsfw_checker: bool = False
    remove_background: bool = False
    threshold: int = 80
    stray_removal: float = 0.01
    trim_background: bool = False
    padding: int = 0
    seed: int | None = None


class StableDiffusionAdapter(ModelAdapterBase):
    """Model adapter for ``zedge/stable-diffusion``."""

    name = "stable-diffusion"
    label = "Stable Diffusion"
    description = "Stable Diffusion with explicit dimensions and background removal"
    replicate_model = "zedge/stable-diffusion"
    params_schema = StableDiffusionParams

    def build_payload(self, request: GenerationInput) -> dict[str, Any]:
        params = self.parse_params(request.params)

        payload: dict[str, Any] = {
            "prompt": request.prompt,
            "width": params.width,
            "height": params.height,
            "num_outputs": clamp(params.num_outputs, 1, 4),
            "disable_nsfw_checker": params.disable_nsfw_checker,
            "remove_background": params.remove_background,
            "seed": params.seed if params.seed is not None else RANDOM_SEED,
        }

        if params.remove_background:
            payload["threshold"] = params.threshold
            payload["stray_removal"] = params.stray_removal
            payload["trim_background"] = params.trim_background
            if params.trim_background:
                payload["padding"] = params.padding

        return payload


model_registry.register(StableDiffusionAdapter)
