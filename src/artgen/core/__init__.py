"""Core functionality for Artgen.

Architecture Overview
---------------------
1. **Configuration Layer** (config.py):
   - Environment-based configuration using Pydantic Settings
   - Storage directories created on initialization

2. **Model Adapter Layer** (model_adapters.py, adapters/):
   - One adapter per Replicate model, registered in ``model_registry``
   - Strict per-model parameter schemas, defaults and clamping

3. **Request Pipeline** (mapper.py, dispatcher.py):
   - ``build_provider_request`` maps a generic request onto a payload
   - ``GenerationDispatcher`` calls Replicate and normalizes the output

4. **Image Services** (storage.py, dpi.py, remote.py):
   - Category-scoped image storage with traversal protection
   - 300 DPI JPEG re-encoding for downloads
   - Bounded-timeout image fetching

Usage Example
-------------
    from artgen.core import GenerationDispatcher, GenerationInput, build_provider_request, config

    request = build_provider_request(
        GenerationInput(prompt="a red fox", model="seedream"), config
    )
    outcome = GenerationDispatcher(config).dispatch(request)
    print(outcome.image_url)
"""

# Import adapters to ensure they're registered
# This must happen after model_registry is imported
from artgen.core.model_adapters import GenerationInput, ModelAdapterBase, model_registry
from artgen.core.adapters import SeedreamAdapter  # noqa: F401
from artgen.core.config import ArtgenConfig, config
from artgen.core.dispatcher import GenerationDispatcher
from artgen.core.mapper import ProviderRequest, build_provider_request

__all__ = [
    "ArtgenConfig",
    "config",
    "GenerationDispatcher",
    "GenerationInput",
    "ModelAdapterBase",
    "model_registry",
    "ProviderRequest",
    "build_provider_request",
]
