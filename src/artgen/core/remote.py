"""Fetching remote images over HTTP.

Both the persistence service and the DPI download path need the raw bytes of
an image that lives at a provider URL.  Fetching goes through ``httpx`` with a
bounded timeout; every transport or status failure becomes an
:class:`~artgen.core.errors.ImageFetchError`.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

import httpx

from artgen.core.errors import ImageFetchError, ValidationError

logger = logging.getLogger(__name__)


@dataclass
class FetchedImage:
    """Bytes and content type of a downloaded image."""

    content: bytes
    content_type: str | None
    url: str


def fetch_image(url: str, timeout: float = 30.0, client: httpx.Client | None = None) -> FetchedImage:
    """Download ``url`` and return its body.

    Args:
        url: Absolute ``http``/``https`` URL.
        timeout: Timeout in seconds for connect and read.
        client: Optional pre-configured client (used by tests).

    Returns:
        The downloaded image.

    Raises:
        ValidationError: If ``url`` is not an http(s) URL.
        ImageFetchError: On timeouts, connection errors or non-2xx responses.
    """
    if not url or not url.startswith(("http://", "https://")):
        raise ValidationError(f"Not an http(s) URL: {url!r}", error="Invalid image URL")

    try:
        if client is not None:
            response = client.get(url, timeout=timeout, follow_redirects=True)
        else:
            with httpx.Client(timeout=timeout, follow_redirects=True) as owned:
                response = owned.get(url)
        response.raise_for_status()
    except httpx.TimeoutException as e:
        raise ImageFetchError(f"Timed out after {timeout:g}s fetching {url}") from e
    except httpx.HTTPStatusError as e:
        raise ImageFetchError(
            f"Fetching {url} returned HTTP {e.response.status_code}"
        ) from e
    except httpx.HTTPError as e:
        raise ImageFetchError(f"Failed to fetch {url}: {e}") from e

    logger.debug(f"Fetched {len(response.content)} bytes from {url}")
    return FetchedImage(
        content=response.content,
        content_type=response.headers.get("content-type"),
        url=url,
    )
