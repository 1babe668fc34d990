"""Tests for artgen.core.storage — category-scoped image storage.

Tests cover:
- Base64 decoding with and without a data URI prefix.
- Extension derivation from data URIs, content types and URLs.
- Saving remote images (fetch mocked).
- Path traversal rejection on delete.
- Listing order and storage statistics.
- Mapping public URLs back to files.
"""

from __future__ import annotations

import base64
import os
import time

import pytest

from artgen.core.errors import (
    AccessDeniedError,
    ImageFetchError,
    ImageNotFoundError,
    ValidationError,
)
from artgen.core.remote import FetchedImage
from artgen.core.storage import (
    ImageStore,
    decode_base64_image,
    extension_from_content_type,
    extension_from_url,
    generate_filename,
    sanitize_filename,
)

PNG_B64 = base64.b64encode(b"\x89PNG fake image body").decode()


@pytest.fixture
def store(temp_dir):
    image_store = ImageStore(temp_dir / "uploads", public_prefix="/uploads", timeout=5.0)
    image_store.ensure_directories()
    return image_store


class TestHelpers:
    def test_decode_plain_base64_defaults_to_png(self):
        content, extension = decode_base64_image(PNG_B64)
        assert content == b"\x89PNG fake image body"
        assert extension == "png"

    def test_decode_data_uri(self):
        content, extension = decode_base64_image(f"data:image/jpeg;base64,{PNG_B64}")
        assert content == b"\x89PNG fake image body"
        assert extension == "jpg"

    @pytest.mark.parametrize("data", ["", "   ", "not base64!!", "data:image/png;base64,"])
    def test_decode_invalid(self, data):
        with pytest.raises(ValidationError):
            decode_base64_image(data)

    @pytest.mark.parametrize(
        "content_type,expected",
        [
            ("image/png", "png"),
            ("image/jpeg; charset=binary", "jpg"),
            ("image/svg+xml", "svg"),
            ("text/html", None),
            (None, None),
        ],
    )
    def test_extension_from_content_type(self, content_type, expected):
        assert extension_from_content_type(content_type) == expected

    @pytest.mark.parametrize(
        "url,expected",
        [
            ("https://replicate.delivery/x/out.webp", "webp"),
            ("https://replicate.delivery/x/out.JPEG?sig=1", "jpg"),
            ("https://replicate.delivery/x/out", None),
            ("https://replicate.delivery/x/out.exe", None),
        ],
    )
    def test_extension_from_url(self, url, expected):
        assert extension_from_url(url) == expected

    def test_sanitize_filename(self):
        assert sanitize_filename("../../etc/passwd") == "passwd"
        assert sanitize_filename("..\\secret.png") == "secret.png"
        assert sanitize_filename("my photo (1).png") == "my-photo--1-.png"
        assert sanitize_filename(".hidden") == "hidden"
        assert len(sanitize_filename("a" * 300)) == 100

    def test_generate_filename_is_unique(self):
        names = {generate_filename("png") for _ in range(50)}
        assert len(names) == 50
        assert all(name.endswith(".png") for name in names)


class TestSave:
    def test_save_base64(self, store):
        stored = store.save_base64(f"data:image/png;base64,{PNG_B64}", "customer")
        assert stored.category == "customer"
        assert stored.filename.endswith(".png")
        assert stored.url == f"/uploads/customer/{stored.filename}"
        assert stored.size == len(b"\x89PNG fake image body")
        assert (store.root / "customer" / stored.filename).read_bytes() == b"\x89PNG fake image body"

    def test_save_with_filename(self, store):
        stored = store.save_base64(PNG_B64, "base", filename="../style ref")
        assert stored.filename == "style-ref.png"
        assert (store.root / "base" / "style-ref.png").is_file()

    def test_existing_name_is_not_overwritten(self, store):
        first = store.save_base64(base64.b64encode(b"first").decode(), "base", filename="ref.png")
        second = store.save_base64(base64.b64encode(b"second").decode(), "base", filename="ref.png")

        assert first.filename == "ref.png"
        assert second.filename != "ref.png"
        assert second.filename.startswith("ref-")
        assert second.filename.endswith(".png")
        assert (store.root / "base" / "ref.png").read_bytes() == b"first"
        assert (store.root / "base" / second.filename).read_bytes() == b"second"

    def test_unknown_category(self, store):
        with pytest.raises(ValidationError) as exc_info:
            store.save_base64(PNG_B64, "secrets")
        assert exc_info.value.error == "Invalid category"

    def test_save_from_url(self, store, monkeypatch):
        monkeypatch.setattr(
            "artgen.core.storage.fetch_image",
            lambda url, timeout=30.0: FetchedImage(b"jpeg-bytes", "image/jpeg", url),
        )
        stored = store.save_from_url("https://replicate.delivery/out", "generated")
        assert stored.filename.endswith(".jpg")
        assert (store.root / "generated" / stored.filename).read_bytes() == b"jpeg-bytes"

    def test_save_from_url_extension_fallbacks(self, store, monkeypatch):
        monkeypatch.setattr(
            "artgen.core.storage.fetch_image",
            lambda url, timeout=30.0: FetchedImage(b"bytes", "application/octet-stream", url),
        )
        assert store.save_from_url("https://x.test/a.png", "generated").filename.endswith(".png")
        assert store.save_from_url("https://x.test/a", "generated").filename.endswith(".webp")

    def test_save_from_url_propagates_fetch_errors(self, store, monkeypatch):
        def failing_fetch(url, timeout=30.0):
            raise ImageFetchError("boom")

        monkeypatch.setattr("artgen.core.storage.fetch_image", failing_fetch)
        with pytest.raises(ImageFetchError):
            store.save_from_url("https://x.test/a.png", "generated")
        assert list((store.root / "generated").iterdir()) == []


class TestDelete:
    def test_delete(self, store):
        stored = store.save_base64(PNG_B64, "customer")
        store.delete("customer", stored.filename)
        assert not (store.root / "customer" / stored.filename).exists()

    def test_delete_missing(self, store):
        with pytest.raises(ImageNotFoundError):
            store.delete("customer", "nope.png")

    @pytest.mark.parametrize(
        "filename",
        ["../../etc/passwd", "../customer/victim.png", "/etc/passwd", "..", "."],
    )
    def test_traversal_denied_and_files_untouched(self, store, filename):
        victim = store.save_base64(PNG_B64, "customer", filename="victim.png")

        with pytest.raises(AccessDeniedError) as exc_info:
            store.delete("base", filename)

        assert exc_info.value.status_code == 403
        assert (store.root / "customer" / victim.filename).is_file()

    def test_delete_unknown_category(self, store):
        with pytest.raises(ValidationError):
            store.delete("secrets", "a.png")


class TestListing:
    def test_newest_first(self, store):
        older = store.save_base64(PNG_B64, "customer", filename="older.png")
        newer = store.save_base64(PNG_B64, "base", filename="newer.png")
        past = time.time() - 3600
        os.utime(store.root / "customer" / older.filename, (past, past))

        images = store.list_images()
        assert [image.filename for image in images] == ["newer.png", "older.png"]

    def test_filter_and_hidden_files(self, store):
        store.save_base64(PNG_B64, "customer", filename="one.png")
        store.save_base64(PNG_B64, "base", filename="two.png")
        (store.root / "customer" / ".DS_Store").write_bytes(b"x")

        images = store.list_images("customer")
        assert [image.filename for image in images] == ["one.png"]
        assert images[0].to_dict()["url"] == "/uploads/customer/one.png"

    def test_to_dict_keys(self, store):
        stored = store.save_base64(PNG_B64, "customer")
        assert set(stored.to_dict()) == {
            "filename",
            "category",
            "url",
            "size",
            "createdAt",
            "modifiedAt",
        }

    def test_stats(self, store):
        store.save_base64(PNG_B64, "customer")
        store.save_base64(PNG_B64, "customer")
        store.save_base64(PNG_B64, "base")
        size = len(b"\x89PNG fake image body")

        stats = store.stats()
        assert stats["categories"]["customer"] == {"count": 2, "totalBytes": 2 * size}
        assert stats["categories"]["base"] == {"count": 1, "totalBytes": size}
        assert stats["categories"]["generated"] == {"count": 0, "totalBytes": 0}
        assert stats["totalImages"] == 3
        assert stats["totalBytes"] == 3 * size


class TestResolvePublicUrl:
    def test_relative_and_absolute(self, store):
        stored = store.save_base64(PNG_B64, "base", filename="ref.png")
        expected = (store.root / "base" / "ref.png").resolve()
        assert store.resolve_public_url(stored.url) == expected
        assert store.resolve_public_url("http://localhost:3000/uploads/base/ref.png") == expected

    @pytest.mark.parametrize(
        "url",
        [
            "https://replicate.delivery/out.png",
            "/uploads/base/missing.png",
            "/uploads/secrets/ref.png",
            "/uploads/base/",
            "/uploads/base/../../../etc/passwd",
        ],
    )
    def test_not_stored(self, store, url):
        store.save_base64(PNG_B64, "base", filename="ref.png")
        assert store.resolve_public_url(url) is None
