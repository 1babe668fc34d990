"""Dispatch mapped requests to Replicate and normalize the answer.

Responsibilities
----------------
1. Build the Replicate client from the configured token (lazily, so the app
   starts without one and only generation fails).
2. Run the model with the mapped payload and wait for a single response.
3. Reduce the response to one image URL, whatever shape it arrives in.
4. Classify failures into the provider error taxonomy.
5. Apply the adapter's fallback policy, if any, on a "not found" answer.

Output Shapes
-------------
Replicate models disagree about what ``run`` returns:

- a bare URL string
- a list of URLs (the first one is used)
- ``{"output": url | [urls]}``
- ``{"output_paths": url | [urls]}`` (``zedge/stable-diffusion``)
- ``FileOutput`` objects exposing ``.url`` (replicate >= 1.0), alone or in a list
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

import httpx
import replicate

from artgen.core.config import ArtgenConfig
from artgen.core.errors import (
    ArtgenError,
    ProviderAuthError,
    ProviderConfigurationError,
    ProviderError,
    ProviderNotFoundError,
    ProviderPaymentError,
    ProviderRateLimitError,
)
from artgen.core.mapper import ProviderRequest

logger = logging.getLogger(__name__)


@dataclass
class DispatchOutcome:
    """Normalized result of a provider call.

    Attributes:
        image_url: URL of the first generated image.
        payload: Payload that produced it (the narrowed one after a fallback).
        fallback_used: Whether the fallback policy produced the result.
    """

    image_url: str
    payload: dict[str, Any]
    fallback_used: bool = False


def _as_url(value: Any) -> str | None:
    if isinstance(value, str):
        return value
    url = getattr(value, "url", None)
    if isinstance(url, str):
        return url
    return None


def extract_image_url(output: Any) -> str:
    """Reduce a Replicate ``run`` result to a single image URL.

    Raises:
        ProviderError: If the shape is not recognised or holds no URL.
    """
    candidate = output
    if isinstance(output, dict):
        if output.get("output"):
            candidate = output["output"]
        elif output.get("output_paths"):
            candidate = output["output_paths"]
        else:
            raise ProviderError("Unexpected output format from Replicate")

    if isinstance(candidate, (list, tuple)):
        if not candidate:
            raise ProviderError("No image URL received from Replicate")
        candidate = candidate[0]

    url = _as_url(candidate)
    if url is None:
        raise ProviderError("Unexpected output format from Replicate")
    if not url.strip():
        raise ProviderError("No image URL received from Replicate")
    return url


def classify_provider_error(exc: Exception, model_label: str = "The requested model") -> ProviderError:
    """Map an exception raised by the Replicate client onto the taxonomy.

    The message is checked first, in priority order: authentication,
    not found, rate limit, insufficient credits.  When the message says
    nothing useful, an HTTP ``status`` attribute on the exception is used.

    Args:
        exc: The exception raised by the client.
        model_label: Human-readable model name used in the not-found message.

    Returns:
        A :class:`ProviderError` subclass instance (not raised).
    """
    message = str(exc).lower()

    if "auth" in message or "token" in message:
        category = 401
    elif "not found" in message:
        category = 404
    elif "rate limit" in message:
        category = 429
    elif "insufficient credits" in message:
        category = 402
    else:
        category = getattr(exc, "status", None)

    if category == 401:
        return ProviderAuthError("Invalid or missing Replicate API token")
    if category == 404:
        return ProviderNotFoundError(f"{model_label} is not available")
    if category == 429:
        return ProviderRateLimitError("Too many requests. Please wait and try again.")
    if category == 402:
        return ProviderPaymentError("Not enough Replicate credits to generate image")
    return ProviderError(str(exc) or exc.__class__.__name__)


class GenerationDispatcher:
    """Send :class:`ProviderRequest` objects to Replicate.

    Args:
        config: Application configuration (token, timeout, fallback switch).
        client: Optional object with a ``run(model, input=...)`` method.
            Defaults to a :class:`replicate.Client` built on first use.
    """

    def __init__(self, config: ArtgenConfig, client: Any | None = None) -> None:
        self.config = config
        self._client = client

    @property
    def client(self) -> Any:
        """The Replicate client, created on first access.

        Raises:
            ProviderConfigurationError: If no Replicate token is configured.
        """
        if self._client is None:
            if not self.config.replicate_api_token:
                raise ProviderConfigurationError(
                    "Please set REPLICATE_API_TOKEN environment variable"
                )
            self._client = replicate.Client(
                api_token=self.config.replicate_api_token,
                timeout=httpx.Timeout(self.config.request_timeout),
            )
        return self._client

    def _run(self, request: ProviderRequest, payload: dict[str, Any]) -> str:
        client = self.client
        logger.info(f"Calling {request.replicate_model} for model '{request.model_id}'")

        try:
            output = client.run(request.replicate_model, input=payload)
        except ArtgenError:
            raise
        except Exception as e:
            error = classify_provider_error(e, request.adapter.label)
            logger.error(f"Replicate call to {request.replicate_model} failed: {e}")
            raise error from e

        return extract_image_url(output)

    def dispatch(self, request: ProviderRequest) -> DispatchOutcome:
        """Run the provider call for ``request``.

        On :class:`ProviderNotFoundError`, an adapter with a fallback policy
        is retried with its narrowed payload, at most ``max_attempts`` times,
        when ``enable_legacy_fallback`` is on.

        Returns:
            The normalized :class:`DispatchOutcome`.

        Raises:
            ProviderError: Classified provider failure.
        """
        try:
            image_url = self._run(request, request.payload)
            return DispatchOutcome(image_url=image_url, payload=request.payload)
        except ProviderNotFoundError as e:
            policy = request.adapter.fallback
            if policy is None or not self.config.enable_legacy_fallback:
                raise
            last_error: ProviderNotFoundError = e

        payload = request.payload
        for attempt in range(1, policy.max_attempts + 1):
            payload = policy.narrow(payload)
            logger.warning(
                f"{request.replicate_model} not found, fallback attempt "
                f"{attempt}/{policy.max_attempts} with narrowed parameters"
            )
            try:
                image_url = self._run(request, payload)
            except ProviderNotFoundError as retry_error:
                last_error = retry_error
                continue
            return DispatchOutcome(image_url=image_url, payload=payload, fallback_used=True)

        raise last_error
