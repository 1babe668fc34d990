"""Artgen - Multi-model AI art generation backend."""

__version__ = "1.0.0"

from artgen.core.config import ArtgenConfig, config
from artgen.core.model_adapters import ModelAdapterBase, model_registry

# Import adapters to ensure they're registered
from artgen.core.adapters import (  # noqa: F401
    FluxProAdapter,
    FluxSchnellAdapter,
    OpenAIImageAdapter,
    SeedreamAdapter,
    StableDiffusionAdapter,
)

__all__ = [
    "ModelAdapterBase",
    "model_registry",
    "ArtgenConfig",
    "config",
]
