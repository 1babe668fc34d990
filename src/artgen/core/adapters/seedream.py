"""SeedreamS-3 model adapter.

Seedream is the default model.  It always receives a seed: when the caller
does not supply one, a random seed in ``[0, 1_000_000)`` is drawn so the
value can be echoed back and the image reproduced later.

Seedream is also the only model with a legacy fallback: older Replicate
deployments reject the ``regular``/``big`` sizes with a "not found" error, so
the dispatcher may retry once with ``size="small"``.
"""

import random
from typing import Any, Literal

from pydantic import Field

from artgen.core.model_adapters import (
    AdapterParams,
    FallbackPolicy,
    GenerationInput,
    ModelAdapterBase,
    model_registry,
)


SEED_UPPER_BOUND = 1_000_000


class SeedreamParams(AdapterParams):
    size: Literal["small", "regular", "big"] = "regular"
    guidance_scale: float = Field(default=3.5, ge=1.0, le=10.0)
    seed: int | None = None


def _narrow_to_small(payload: dict[str, Any]) -> dict[str, Any]:
    narrowed = dict(payload)
    narrowed["size"] = "small"
    return narrowed


class SeedreamAdapter(ModelAdapterBase):
    """Model adapter for ``bytedance/seedream-3``."""

    name = "seedream"
    label = "SeedreamS-3"
    description = "High quality text-to-image with size and guidance controls"
    replicate_model = "bytedance/seedream-3"
    params_schema = SeedreamParams
    fallback = FallbackPolicy(narrow=_narrow_to_small)

    def build_payload(self, request: GenerationInput) -> dict[str, Any]:
        params = self.parse_params(request.params)

        seed = params.seed
        if seed is None:
            seed = random.randrange(0, SEED_UPPER_BOUND)

        return {
            "prompt": request.prompt,
            "aspect_ratio": request.aspect_ratio,
            "size": params.size,
            "guidance_scale": params.guidance_scale,
            "seed": seed,
        }


model_registry.register(SeedreamAdapter)
