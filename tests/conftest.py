"""Shared pytest fixtures for Artgen tests."""

import io
import shutil
import tempfile
from pathlib import Path
from typing import Callable, Generator
from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient
from PIL import Image

from artgen.api.main import create_app
from artgen.core.config import ArtgenConfig
from artgen.core.dispatcher import GenerationDispatcher
from artgen.core.remote import FetchedImage

REMOTE_IMAGE_URL = "https://replicate.delivery/pbxt/abc123/output.webp"


def make_image_bytes(mode: str = "RGB", fmt: str = "PNG", size: tuple[int, int] = (32, 24)) -> bytes:
    """Encode a small solid-color image in memory."""
    color = {"RGB": (200, 40, 40), "RGBA": (200, 40, 40, 128), "L": 128, "LA": (128, 64)}.get(mode, 0)
    image = Image.new(mode, size, color)
    buffer = io.BytesIO()
    image.save(buffer, format=fmt)
    return buffer.getvalue()


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for test files.

    Yields:
        Path to temporary directory

    Cleanup:
        Directory is removed after test completes
    """
    temp_path = Path(tempfile.mkdtemp())
    try:
        yield temp_path
    finally:
        shutil.rmtree(temp_path, ignore_errors=True)


@pytest.fixture
def test_config(temp_dir: Path, monkeypatch) -> ArtgenConfig:
    """Create a test configuration with a temporary uploads directory.

    Provider variables are removed from the environment and every field that
    tests depend on is set explicitly.
    """
    for name in ("REPLICATE_API_TOKEN", "OPENAI_API_KEY", "PORT", "UPLOADS_DIR"):
        monkeypatch.delenv(name, raising=False)
        monkeypatch.delenv(f"ARTGEN_{name}", raising=False)

    return ArtgenConfig(
        _env_file=None,
        replicate_api_token="r8_test_token",
        openai_api_key=None,
        uploads_dir=temp_dir / "uploads",
        public_url_prefix="/uploads",
        request_timeout=5.0,
        default_model="seedream",
        reject_unknown_models=False,
        enable_legacy_fallback=True,
        persist_generated=True,
    )


@pytest.fixture
def image_bytes() -> Callable[..., bytes]:
    """Factory fixture returning encoded image bytes."""
    return make_image_bytes


@pytest.fixture
def mock_replicate() -> MagicMock:
    """Mock Replicate client whose ``run`` returns a single image URL."""
    client = MagicMock()
    client.run.return_value = [REMOTE_IMAGE_URL]
    return client


@pytest.fixture
def fake_fetch(monkeypatch) -> MagicMock:
    """Replace remote image fetching with an in-memory PNG.

    Patches both the storage module and the API module, which import
    ``fetch_image`` by name.
    """
    fetch = MagicMock(
        side_effect=lambda url, timeout=30.0, client=None: FetchedImage(
            content=make_image_bytes(), content_type="image/png", url=url
        )
    )
    monkeypatch.setattr("artgen.core.storage.fetch_image", fetch)
    monkeypatch.setattr("artgen.api.main.fetch_image", fetch)
    return fetch


@pytest.fixture
def test_app(test_config: ArtgenConfig, mock_replicate: MagicMock):
    """FastAPI application wired to the test config and mocked Replicate."""
    dispatcher = GenerationDispatcher(test_config, client=mock_replicate)
    return create_app(test_config, dispatcher=dispatcher)


@pytest.fixture
def test_client(test_app, fake_fetch) -> Generator[TestClient, None, None]:
    """TestClient with mocked Replicate and mocked image downloads."""
    with TestClient(test_app) as client:
        yield client
