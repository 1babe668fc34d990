"""Model adapters for the image models available on Replicate.

Importing this package registers every adapter with
:data:`artgen.core.model_adapters.model_registry`.  Registration order is the
order models are offered to the UI; the first one is the default.
"""

from artgen.core.adapters.seedream import SeedreamAdapter
from artgen.core.adapters.flux_schnell import FluxSchnellAdapter
from artgen.core.adapters.flux_pro import FluxProAdapter
from artgen.core.adapters.stable_diffusion import StableDiffusionAdapter
from artgen.core.adapters.openai_image import OpenAIImageAdapter

__all__ = [
    "SeedreamAdapter",
    "FluxSchnellAdapter",
    "FluxProAdapter",
    "StableDiffusionAdapter",
    "OpenAIImageAdapter",
]
