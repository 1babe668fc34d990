"""Base classes and registry for model adapters.

Each image model Artgen can drive through Replicate has its own adapter that
turns a generic :class:`GenerationInput` into the provider-specific input
payload for that model.  Adapters encapsulate:

- the Replicate model identifier
- a strict pydantic schema for the model-specific parameters
- per-model defaults, clamping and derived fields
- an optional one-shot fallback policy for legacy models

Usage Example
-------------
Resolving an adapter and building a payload:

    >>> from artgen.core.model_adapters import GenerationInput, model_registry
    >>> from artgen.core.config import config
    >>>
    >>> print(model_registry.list_available())
    ['seedream', 'flux-schnell', 'flux-1.1-pro', 'stable-diffusion', 'openai-image-1.5']
    >>>
    >>> adapter = model_registry.instantiate("flux-schnell", config)
    >>> payload = adapter.build_payload(
    ...     GenerationInput(prompt="a red fox", model="flux-schnell", aspect_ratio="16:9")
    ... )
    >>> payload["num_inference_steps"]
    4

See Also
--------
- artgen.core.mapper: Resolves the adapter for a request
- artgen.core.dispatcher: Sends the payload to Replicate
"""

import logging
from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from pydantic import BaseModel, ConfigDict
from pydantic import ValidationError as PydanticValidationError

from .config import ArtgenConfig
from .errors import ValidationError

logger = logging.getLogger(__name__)


@dataclass
class GenerationInput:
    """Generic, provider-independent generation request.

    Attributes:
        prompt: Trimmed, non-empty text prompt.
        model: Requested model id (may be unknown; the mapper resolves it).
        aspect_ratio: Aspect ratio token such as ``"16:9"`` or ``"custom"``.
        params: Model-specific options exactly as the caller sent them.
        reference_images: Ordered URLs or base64 data URIs.
    """

    prompt: str
    model: str
    aspect_ratio: str = "1:1"
    params: dict[str, Any] = field(default_factory=dict)
    reference_images: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class FallbackPolicy:
    """Bounded retry attached to models that may be missing on the provider.

    When the provider answers "not found", the dispatcher retries at most
    ``max_attempts`` times with the payload returned by ``narrow``.

    Attributes:
        narrow: Function returning the degraded payload for the retry.
        max_attempts: Upper bound on retries (always 1 in practice).
    """

    narrow: Callable[[dict[str, Any]], dict[str, Any]]
    max_attempts: int = 1


class AdapterParams(BaseModel):
    """Base schema for model-specific parameters.

    Unknown fields are rejected so typos in request bodies surface as a 400
    instead of being silently dropped.
    """

    model_config = ConfigDict(extra="forbid")


def clamp(value: int | float, low: int | float, high: int | float) -> int | float:
    """Clamp ``value`` into the inclusive range ``[low, high]``."""
    return max(low, min(high, value))


class ModelAdapterBase(ABC):
    """Abstract base class for all model adapters.

    Subclasses declare their identity as class attributes and implement
    :meth:`build_payload`.

    Attributes
    ----------
    name : str
        Model id used by API callers (e.g. "flux-schnell")
    label : str
        Human-readable model name
    description : str
        Brief description of the model's capabilities
    replicate_model : str
        Replicate ``owner/name`` identifier the payload is sent to
    params_schema : type[AdapterParams]
        Strict schema for the model-specific parameters
    fallback : FallbackPolicy | None
        Optional retry policy used when the model is not found
    config : ArtgenConfig
        Configuration object
    """

    name: str = "base"
    label: str = "Base Model Adapter"
    description: str = "Base class for model adapters"
    replicate_model: str = ""
    params_schema: type[AdapterParams] = AdapterParams
    fallback: FallbackPolicy | None = None

    def __init__(self, config: ArtgenConfig) -> None:
        """Initialize the model adapter.

        Args:
            config: Configuration object
        """
        self.config = config

    def parse_params(self, params: dict[str, Any]) -> AdapterParams:
        """Validate model-specific parameters against :attr:`params_schema`.

        Args:
            params: Raw parameters from the request body

        Returns
        -------
        AdapterParams
            Validated parameters with schema defaults applied

        Raises
        ------
        ValidationError
            If a field is unknown or has the wrong type
        """
        try:
            return self.params_schema.model_validate(params)
        except PydanticValidationError as e:
            problems = "; ".join(
                f"{'.'.join(str(part) for part in err['loc']) or 'params'}: {err['msg']}"
                for err in e.errors()
            )
            raise ValidationError(
                f"Invalid parameters for {self.name}: {problems}",
                error="Invalid model parameters",
            ) from e

    @abstractmethod
    def build_payload(self, request: GenerationInput) -> dict[str, Any]:
        """Build the Replicate input payload for a request.

        Args:
            request: Generic generation request with a validated prompt

        Returns
        -------
        dict[str, Any]
            Provider-ready payload

        Raises
        ------
        ValidationError
            If the model-specific parameters are invalid
        """
        pass


class ModelRegistry:
    """Registry for managing available model adapters.

    Adapter modules register their class at import time; the registry keeps
    registration order so listings follow the order models are offered in
    the UI.

    Usage
    -----
        >>> from artgen.core.model_adapters import model_registry
        >>> model_registry.register(MyCustomAdapter)
        >>> adapter = model_registry.instantiate("my-model", config)
    """

    def __init__(self) -> None:
        """Initialize the model registry."""
        self._adapters: dict[str, type[ModelAdapterBase]] = {}

    def register(self, adapter_class: type[ModelAdapterBase]) -> None:
        """Register a model adapter class.

        Args:
            adapter_class: Model adapter class to register
        """
        adapter_name = adapter_class.name

        if adapter_name in self._adapters:
            logger.warning(f"Model adapter '{adapter_name}' is already registered, overwriting")

        self._adapters[adapter_name] = adapter_class
        logger.debug(f"Registered model adapter: {adapter_name}")

    def instantiate(self, adapter_name: str, config: ArtgenConfig) -> ModelAdapterBase:
        """Create an instance of a registered model adapter.

        Args:
            adapter_name: Name of the adapter to instantiate
            config: Configuration object

        Returns
        -------
        ModelAdapterBase
            New instance of the specified adapter

        Raises
        ------
        KeyError
            If adapter_name is not registered
        """
        if adapter_name not in self._adapters:
            available = ", ".join(self.list_available())
            raise KeyError(
                f"Model adapter '{adapter_name}' not found. Available adapters: {available}"
            )

        return self._adapters[adapter_name](config=config)

    def is_registered(self, adapter_name: str) -> bool:
        return adapter_name in self._adapters

    def get_adapter_class(self, adapter_name: str) -> type[ModelAdapterBase] | None:
        """Get the adapter class for a given name, or None if not found."""
        return self._adapters.get(adapter_name)

    def list_available(self) -> list[str]:
        """List all registered adapter names in registration order."""
        return list(self._adapters.keys())

    def get_adapter_info(self, adapter_name: str) -> dict[str, Any] | None:
        """Get information about a registered adapter.

        Args:
            adapter_name: Name of the adapter

        Returns
        -------
        dict[str, Any] | None
            Adapter metadata or None if not found
        """
        adapter_class = self._adapters.get(adapter_name)
        if adapter_class is None:
            return None

        return {
            "id": adapter_class.name,
            "label": adapter_class.label,
            "description": adapter_class.description,
            "replicate_model": adapter_class.replicate_model,
            "has_fallback": adapter_class.fallback is not None,
        }


# Global model registry instance
model_registry = ModelRegistry()
