"""Artgen — FastAPI Application.

This module is the single entry point for the web application.  It defines
the FastAPI ``app`` instance (built by :func:`create_app`), all REST API
routes, and the ``main()`` CLI function that launches the uvicorn server.

Architecture
------------
The application is a stateless proxy in front of Replicate:

- **Configuration** comes from environment variables through
  :class:`~artgen.core.config.ArtgenConfig`, read once at start.
- **Image generation** maps the request with
  :func:`~artgen.core.mapper.build_provider_request` and sends it with
  :class:`~artgen.core.dispatcher.GenerationDispatcher`.
- **Persistence** keeps a best-effort local copy of every generated image
  via :class:`~artgen.core.storage.ImageStore`; a failed copy never fails
  the generation.
- **Stored images** are served read-only by ``StaticFiles`` under the
  public URL prefix (``/uploads`` by default).
- Blocking work (provider calls, downloads, Pillow, disk IO) runs in the
  Starlette threadpool.

Every failure is converted to ``{error, details, timestamp, success: false}``
with a stable status code; see :mod:`artgen.core.errors`.

Endpoints
---------
========  ==================================  ==================================
Method    Path                                Purpose
========  ==================================  ==================================
POST      ``/api/generate``                   Generate one image
POST      ``/api/download-with-dpi``          Download an image as 300 DPI JPEG
GET       ``/api/images``                     List stored images
POST      ``/api/images/upload``              Store a base64 image
DELETE    ``/api/images/{category}/{name}``   Delete a stored image
GET       ``/api/storage/stats``              Per-category counts and sizes
GET       ``/api/models``                     Available models
GET       ``/api/health``                     Liveness probe with feature flags
========  ==================================  ==================================

Usage
-----
CLI (installed entry point)::

    artgen

Direct invocation::

    python -m artgen.api.main
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from fastapi.staticfiles import StaticFiles
from starlette.concurrency import run_in_threadpool
from starlette.exceptions import HTTPException as StarletteHTTPException

from artgen import __version__
from artgen.api.models import DownloadRequest, GenerateRequest, UploadRequest
from artgen.core.config import ArtgenConfig, config
from artgen.core.dispatcher import GenerationDispatcher
from artgen.core.dpi import DEFAULT_DPI, safe_download_name, stamp_dpi
from artgen.core.errors import (
    ArtgenError,
    ImageFetchError,
    PersistenceError,
    ValidationError,
)
from artgen.core.mapper import build_provider_request
from artgen.core.model_adapters import model_registry
from artgen.core.remote import fetch_image
from artgen.core.storage import ImageStore

logger = logging.getLogger(__name__)

REDACTED = "***"
SECRET_PAYLOAD_KEYS = ("openai_api_key",)


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


def error_response(status_code: int, error: str, details: str | None = None) -> JSONResponse:
    """Build the JSON error body shared by every endpoint."""
    return JSONResponse(
        status_code=status_code,
        content={
            "error": error,
            "details": details or error,
            "timestamp": _timestamp(),
            "success": False,
        },
    )


def redact_payload(payload: dict) -> dict:
    """Return a copy of ``payload`` that is safe to echo back to the browser."""
    return {key: (REDACTED if key in SECRET_PAYLOAD_KEYS else value) for key, value in payload.items()}


# ---------------------------------------------------------------------------
# Application lifecycle.
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Manage application startup and shutdown lifecycle.

    On startup the storage location and provider configuration are logged.
    Nothing needs tearing down on shutdown.

    Args:
        app: The FastAPI application instance.

    Yields:
        Control back to the application for the duration of its lifetime.
    """
    settings: ArtgenConfig = app.state.config

    logger.info(f"Artgen {__version__} starting, uploads at {settings.uploads_dir.resolve()}")
    logger.info(
        f"Replicate API: {'configured' if settings.replicate_api_token else 'missing'}; "
        f"models: {', '.join(model_registry.list_available())}"
    )

    yield


# ---------------------------------------------------------------------------
# Dependencies.
# ---------------------------------------------------------------------------


def get_settings(request: Request) -> ArtgenConfig:
    return request.app.state.config


def get_store(request: Request) -> ImageStore:
    return request.app.state.store


def get_dispatcher(request: Request) -> GenerationDispatcher:
    return request.app.state.dispatcher


# ---------------------------------------------------------------------------
# Exception handlers.
# ---------------------------------------------------------------------------


async def handle_artgen_error(request: Request, exc: ArtgenError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.error}: {exc.details}")
    else:
        logger.info(f"{request.method} {request.url.path} rejected: {exc.error}: {exc.details}")
    return error_response(exc.status_code, exc.error, exc.details)


async def handle_request_validation_error(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    problems = "; ".join(
        f"{'.'.join(str(part) for part in err['loc'] if part != 'body') or 'body'}: {err['msg']}"
        for err in exc.errors()
    )
    return error_response(400, "Invalid request", problems)


async def handle_http_exception(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return error_response(exc.status_code, str(exc.detail))


async def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    return error_response(500, "Internal server error", str(exc))


# ---------------------------------------------------------------------------
# Routes.
# ---------------------------------------------------------------------------

router = APIRouter()


def _persist_generated(store: ImageStore, image_url: str) -> str | None:
    """Save a copy of a generated image, returning its public URL or ``None``.

    Failures are logged and swallowed: the remote URL is still usable.
    """
    try:
        stored = store.save_from_url(image_url, "generated")
    except (ImageFetchError, PersistenceError, ValidationError) as e:
        logger.warning(f"Could not persist generated image {image_url}: {e}")
        return None
    return stored.url


@router.post("/api/generate")
async def generate_image(
    req: GenerateRequest,
    settings: ArtgenConfig = Depends(get_settings),
    store: ImageStore = Depends(get_store),
    dispatcher: GenerationDispatcher = Depends(get_dispatcher),
) -> dict:
    """Generate a single image with the selected model.

    This endpoint:

    1. Validates the prompt and maps the request onto the model's payload
       (no provider call happens if this fails).
    2. Calls Replicate and extracts the image URL.
    3. Saves a local copy under ``generated/`` (best effort).

    Args:
        req: Validated :class:`GenerateRequest` payload.

    Returns:
        The generation result: ``imageUrl``, ``localUrl``, ``prompt``,
        ``model``, ``modelName``, ``replicateModel``, ``parameters``,
        ``fallbackUsed``, ``timestamp`` and ``success``.

    Raises:
        ValidationError: 400 for a blank prompt or invalid model parameters.
        ProviderError: 401/402/404/429/500 depending on the provider failure.
    """
    provider_request = build_provider_request(req.to_generation_input(), settings)
    logger.info(
        f"Generating with {provider_request.adapter.label} "
        f"for prompt: {provider_request.payload['prompt']!r}"
    )

    outcome = await run_in_threadpool(dispatcher.dispatch, provider_request)
    logger.info(f"Image URL received: {outcome.image_url}")

    local_url = None
    if settings.persist_generated:
        local_url = await run_in_threadpool(_persist_generated, store, outcome.image_url)

    return {
        "imageUrl": outcome.image_url,
        "localUrl": local_url,
        "prompt": provider_request.payload["prompt"],
        "model": provider_request.model_id,
        "modelName": provider_request.adapter.label,
        "replicateModel": provider_request.replicate_model,
        "parameters": redact_payload(outcome.payload),
        "fallbackUsed": outcome.fallback_used,
        "timestamp": _timestamp(),
        "success": True,
    }


@router.post("/api/download-with-dpi")
async def download_with_dpi(
    req: DownloadRequest,
    settings: ArtgenConfig = Depends(get_settings),
    store: ImageStore = Depends(get_store),
) -> Response:
    """Return an image re-encoded as a 300 DPI JPEG attachment.

    Stored images (URLs under the public prefix) are read from disk; any
    other URL is downloaded with the configured timeout.

    Args:
        req: Validated :class:`DownloadRequest` payload.

    Returns:
        ``image/jpeg`` response with ``Content-Disposition: attachment``,
        ``X-DPI-Processing: true`` and ``X-DPI-Value: 300`` headers.

    Raises:
        ValidationError: 400 if ``imageUrl`` is missing.
        ImageFetchError: 500 if the source image cannot be downloaded.
        ImageProcessingError: 500 if the image cannot be decoded.
    """
    if not req.image_url or not req.image_url.strip():
        raise ValidationError("imageUrl is required", error="Image URL required")

    image_url = req.image_url.strip()
    local_path = store.resolve_public_url(image_url)
    if local_path is not None:
        try:
            data = await run_in_threadpool(local_path.read_bytes)
        except OSError as e:
            raise PersistenceError(f"Could not read {local_path.name}: {e}") from e
    else:
        fetched = await run_in_threadpool(fetch_image, image_url, settings.request_timeout)
        data = fetched.content

    processed = await run_in_threadpool(stamp_dpi, data)
    download_name = safe_download_name(req.filename)
    logger.info(f"Image processed and sent with {DEFAULT_DPI} DPI: {download_name}")

    return Response(
        content=processed,
        media_type="image/jpeg",
        headers={
            "Content-Disposition": f'attachment; filename="{download_name}"',
            "X-DPI-Processing": "true",
            "X-DPI-Value": str(DEFAULT_DPI),
        },
    )


@router.get("/api/images")
async def list_images(
    category: str | None = None,
    store: ImageStore = Depends(get_store),
) -> dict:
    """List stored images, newest first.

    Args:
        category: Optional category filter (``generated``, ``customer`` or
            ``base``).  All categories are listed when omitted.

    Returns:
        Dictionary with ``success``, ``images`` and ``count``.
    """
    images = await run_in_threadpool(store.list_images, category or None)
    return {
        "success": True,
        "images": [image.to_dict() for image in images],
        "count": len(images),
    }


@router.post("/api/images/upload")
async def upload_image(req: UploadRequest, store: ImageStore = Depends(get_store)) -> dict:
    """Store a base64-encoded image in a category.

    Args:
        req: Validated :class:`UploadRequest` payload.

    Returns:
        The stored image metadata plus ``success``.

    Raises:
        ValidationError: 400 for an unknown category or invalid base64.
        PersistenceError: 500 if the file cannot be written.
    """
    stored = await run_in_threadpool(store.save_base64, req.image, req.category, req.filename)
    return {"success": True, **stored.to_dict()}


@router.delete("/api/images/{category}/{filename:path}")
async def delete_image(category: str, filename: str, store: ImageStore = Depends(get_store)) -> dict:
    """Delete a stored image.

    Args:
        category: Storage category.
        filename: File name inside the category directory.

    Returns:
        Dictionary with ``success``, ``category`` and ``deleted``.

    Raises:
        AccessDeniedError: 403 if the path escapes the category directory.
        ImageNotFoundError: 404 if the file does not exist.
    """
    await run_in_threadpool(store.delete, category, filename)
    return {"success": True, "category": category, "deleted": filename}


@router.get("/api/storage/stats")
async def storage_stats(store: ImageStore = Depends(get_store)) -> dict:
    """Return image counts and byte totals per category.

    Returns:
        Dictionary with ``success``, ``categories`` (category → ``count`` and
        ``totalBytes``), ``totalImages`` and ``totalBytes``.
    """
    stats = await run_in_threadpool(store.stats)
    return {"success": True, **stats}


@router.get("/api/models")
async def list_models(settings: ArtgenConfig = Depends(get_settings)) -> dict:
    """Return the available models in UI order and the default model id."""
    return {
        "models": [model_registry.get_adapter_info(name) for name in model_registry.list_available()],
        "default": settings.default_model,
    }


@router.get("/api/health")
async def health(settings: ArtgenConfig = Depends(get_settings)) -> dict:
    """Liveness probe with feature flags."""
    return {
        "status": "healthy",
        "timestamp": _timestamp(),
        "version": __version__,
        "features": {
            "models": model_registry.list_available(),
            "dpiProcessing": True,
            "storage": True,
            "replicateConfigured": bool(settings.replicate_api_token),
            "openaiConfigured": bool(settings.openai_api_key),
        },
    }


# ---------------------------------------------------------------------------
# Application factory.
# ---------------------------------------------------------------------------


def create_app(
    settings: ArtgenConfig | None = None,
    dispatcher: GenerationDispatcher | None = None,
) -> FastAPI:
    """Build a configured FastAPI application.

    Args:
        settings: Configuration to use.  Defaults to the global ``config``.
        dispatcher: Provider dispatcher.  Defaults to one backed by a real
            Replicate client.

    Returns:
        The application, with ``config``, ``store`` and ``dispatcher`` on
        ``app.state``.
    """
    settings = settings or config

    app = FastAPI(
        title="Artgen",
        description="Multi-model AI art generation with 300 DPI downloads.",
        version=__version__,
        lifespan=lifespan,
    )

    app.state.config = settings
    app.state.store = ImageStore(
        settings.uploads_dir,
        public_prefix=settings.public_url_prefix,
        timeout=settings.request_timeout,
    )
    app.state.store.ensure_directories()
    app.state.dispatcher = dispatcher or GenerationDispatcher(settings)

    # The browser UI may be served from another origin during development.
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(ArtgenError, handle_artgen_error)
    app.add_exception_handler(RequestValidationError, handle_request_validation_error)
    app.add_exception_handler(StarletteHTTPException, handle_http_exception)
    app.add_exception_handler(Exception, handle_unexpected_error)

    app.include_router(router)

    # Stored images are served read-only at the public prefix.
    app.mount(
        app.state.store.public_prefix,
        StaticFiles(directory=str(settings.uploads_dir)),
        name="uploads",
    )

    return app


app = create_app()


# ---------------------------------------------------------------------------
# CLI entry point.
# ---------------------------------------------------------------------------


def main() -> None:
    """Launch the uvicorn ASGI server.

    Reads host, port and log level from :data:`~artgen.core.config.config`
    (``ARTGEN_SERVER_HOST``, ``PORT`` and ``ARTGEN_LOG_LEVEL``).  Defaults to
    ``0.0.0.0:3000``.

    This function is registered as the ``artgen`` console script in
    ``pyproject.toml``.
    """
    import uvicorn

    logging.basicConfig(
        level=config.log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    uvicorn.run(
        "artgen.api.main:app",
        host=config.server_host,
        port=config.server_port,
        reload=False,
    )


if __name__ == "__main__":
    main()
