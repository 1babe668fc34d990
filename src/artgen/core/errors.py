"""Error taxonomy for the Artgen backend.

Every failure a request can hit is an :class:`ArtgenError` subclass carrying
the HTTP status code and the user-facing ``error``/``details`` pair that the
API layer serialises as ``{error, details, timestamp, success: false}``.

============================  ======  =====================================
Exception                     Status  Raised when
============================  ======  =====================================
ValidationError               400     Bad or missing input, no provider call
AccessDeniedError             403     A storage path escapes its category
ImageNotFoundError            404     A stored image does not exist
ProviderAuthError             401     Replicate rejected the credentials
ProviderPaymentError          402     The Replicate account has no credits
ProviderNotFoundError         404     The requested model is unavailable
ProviderRateLimitError        429     Replicate throttled the request
ProviderError                 500     Any other provider failure
ProviderConfigurationError    500     No Replicate token is configured
ImageFetchError               500     Downloading a source image failed
PersistenceError              500     Writing or removing a file failed
ImageProcessingError          500     Decoding or re-encoding failed
============================  ======  =====================================
"""

from __future__ import annotations


class ArtgenError(Exception):
    """Base class for all errors surfaced to API callers.

    Attributes:
        status_code: HTTP status code for the JSON error response.
        error: Short, stable, user-facing summary.
        details: Longer human-readable explanation.
    """

    status_code: int = 500
    error: str = "Internal server error"

    def __init__(self, details: str | None = None, *, error: str | None = None) -> None:
        self.details = details or self.error
        if error is not None:
            self.error = error
        super().__init__(self.details)


class ValidationError(ArtgenError):
    """User-friendly validation error.

    Raised when request input fails validation.  No external call has been
    made when this is raised.
    """

    status_code = 400
    error = "Invalid request"


class AccessDeniedError(ArtgenError):
    status_code = 403
    error = "Access denied"


class ImageNotFoundError(ArtgenError):
    status_code = 404
    error = "Image not found"


class ProviderError(ArtgenError):
    """Generic failure reported by the image provider."""

    status_code = 500
    error = "Image generation failed"


class ProviderAuthError(ProviderError):
    status_code = 401
    error = "Authentication failed"


class ProviderPaymentError(ProviderError):
    status_code = 402
    error = "Insufficient credits"


class ProviderNotFoundError(ProviderError):
    status_code = 404
    error = "Model not found"


class ProviderRateLimitError(ProviderError):
    status_code = 429
    error = "Rate limit exceeded"


class ProviderConfigurationError(ProviderError):
    error = "Replicate API token not configured"


class ImageFetchError(ArtgenError):
    """Downloading a remote image failed (network error, timeout, bad status)."""

    status_code = 500
    error = "Failed to fetch image"


class PersistenceError(ArtgenError):
    status_code = 500
    error = "Failed to store image"


class ImageProcessingError(ArtgenError):
    """The image could not be decoded or re-encoded."""

    status_code = 500
    error = "Image processing failed"
