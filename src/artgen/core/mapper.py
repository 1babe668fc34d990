"""Translate generic generation requests into provider requests.

This is the single entry point between the HTTP layer and the model
adapters.  It validates the prompt, resolves the requested model id through
the registry (falling back to the configured default for unknown ids unless
``reject_unknown_models`` is set) and asks the adapter for its payload.

Nothing here performs IO: the result is a :class:`ProviderRequest` that the
dispatcher can send as-is.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from artgen.core.config import ArtgenConfig
from artgen.core.errors import ValidationError
from artgen.core.model_adapters import GenerationInput, ModelAdapterBase, model_registry

logger = logging.getLogger(__name__)


@dataclass
class ProviderRequest:
    """A fully mapped request, ready for the dispatcher.

    Attributes:
        adapter: The adapter that built the payload.
        model_id: Resolved model id (after any fallback).
        requested_model: Model id exactly as the caller sent it.
        replicate_model: Replicate ``owner/name`` identifier.
        payload: Provider-ready input parameters.
    """

    adapter: ModelAdapterBase
    model_id: str
    requested_model: str
    replicate_model: str
    payload: dict[str, Any]


def normalize_prompt(prompt: str | None) -> str:
    """Return the trimmed prompt or raise if nothing is left.

    Raises:
        ValidationError: If the prompt is missing, empty or whitespace-only.
    """
    if prompt is None or not prompt.strip():
        raise ValidationError(
            "A non-empty prompt is required",
            error="Prompt required",
        )
    return prompt.strip()


def resolve_adapter(model_id: str | None, config: ArtgenConfig) -> ModelAdapterBase:
    """Instantiate the adapter for ``model_id``.

    Unknown or missing ids fall back to ``config.default_model`` unless
    ``config.reject_unknown_models`` is set.

    Raises:
        ValidationError: If the id is unknown and fallback is disabled.
    """
    if model_id and model_registry.is_registered(model_id):
        return model_registry.instantiate(model_id, config)

    if config.reject_unknown_models:
        available = ", ".join(model_registry.list_available())
        raise ValidationError(
            f"Unknown model '{model_id}'. Available models: {available}",
            error="Unknown model",
        )

    logger.warning(f"Unknown model '{model_id}', falling back to '{config.default_model}'")
    return model_registry.instantiate(config.default_model, config)


def build_provider_request(request: GenerationInput, config: ArtgenConfig) -> ProviderRequest:
    """Validate a generic request and map it onto its model's payload.

    Args:
        request: Generic generation request.
        config: Application configuration.

    Returns:
        The mapped :class:`ProviderRequest`.

    Raises:
        ValidationError: For an empty prompt, an unknown model (when strict)
            or invalid model-specific parameters.
    """
    prompt = normalize_prompt(request.prompt)
    adapter = resolve_adapter(request.model, config)

    normalized = GenerationInput(
        prompt=prompt,
        model=adapter.name,
        aspect_ratio=(request.aspect_ratio or "1:1").strip() or "1:1",
        params=dict(request.params),
        reference_images=list(request.reference_images),
    )
    payload = adapter.build_payload(normalized)

    return ProviderRequest(
        adapter=adapter,
        model_id=adapter.name,
        requested_model=request.model,
        replicate_model=adapter.replicate_model,
        payload=payload,
    )
