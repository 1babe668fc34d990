"""Tests for artgen.core.remote — fetching images with httpx."""

from __future__ import annotations

import httpx
import pytest

from artgen.core.errors import ImageFetchError, ValidationError
from artgen.core.remote import fetch_image


def client_for(handler) -> httpx.Client:
    return httpx.Client(transport=httpx.MockTransport(handler))


class TestFetchImage:
    def test_success(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, content=b"png-bytes", headers={"content-type": "image/png"})

        with client_for(handler) as client:
            fetched = fetch_image("https://replicate.delivery/a.png", client=client)

        assert fetched.content == b"png-bytes"
        assert fetched.content_type == "image/png"
        assert fetched.url == "https://replicate.delivery/a.png"

    def test_follows_redirects(self):
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path == "/old.png":
                return httpx.Response(302, headers={"location": "https://cdn.test/new.png"})
            return httpx.Response(200, content=b"moved")

        with client_for(handler) as client:
            assert fetch_image("https://cdn.test/old.png", client=client).content == b"moved"

    @pytest.mark.parametrize("status", [403, 404, 500])
    def test_error_status(self, status):
        with client_for(lambda request: httpx.Response(status)) as client:
            with pytest.raises(ImageFetchError) as exc_info:
                fetch_image("https://replicate.delivery/a.png", client=client)
        assert str(status) in exc_info.value.details

    def test_timeout(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("slow", request=request)

        with client_for(handler) as client:
            with pytest.raises(ImageFetchError) as exc_info:
                fetch_image("https://replicate.delivery/a.png", timeout=2.0, client=client)
        assert "Timed out after 2s" in exc_info.value.details

    def test_connection_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        with client_for(handler) as client:
            with pytest.raises(ImageFetchError):
                fetch_image("https://replicate.delivery/a.png", client=client)

    @pytest.mark.parametrize("url", ["", "ftp://host/a.png", "/uploads/base/a.png", "file:///etc/passwd"])
    def test_rejects_non_http_urls(self, url):
        with pytest.raises(ValidationError):
            fetch_image(url)
