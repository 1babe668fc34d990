"""File-backed image storage for generated and uploaded images.

Images live in one directory per category under the uploads root::

    <uploads>/generated/<filename>   copies of provider outputs
    <uploads>/customer/<filename>    customer uploads
    <uploads>/base/<filename>        style reference images

and are served read-only under ``<public_url_prefix>/<category>/<filename>``.

The store is intentionally simple:

- there is no metadata file; size and timestamps come from the file system
- generated filenames are unique (``<epoch-millis>-<8 hex>.<ext>``) and
  files are created exclusively; a caller-supplied name that is already
  taken is stored as ``<stem>-<8 hex>.<ext>`` instead, so no locking is
  needed
- files are never modified in place, only created and deleted
- listings are reverse-chronological (newest first)

Deletion resolves the requested path and checks that it is still inside the
category directory before touching anything, so names such as
``../../etc/passwd`` are rejected.
"""

from __future__ import annotations

import base64
import binascii
import logging
import os
import re
import time
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path, PurePosixPath
from urllib.parse import unquote, urlparse

from artgen.core.config import STORAGE_CATEGORIES
from artgen.core.errors import (
    AccessDeniedError,
    ImageNotFoundError,
    PersistenceError,
    ValidationError,
)
from artgen.core.remote import fetch_image

logger = logging.getLogger(__name__)

DATA_URI_PATTERN = re.compile(r"^data:image/([a-zA-Z0-9.+-]+);base64,", re.IGNORECASE)
KNOWN_EXTENSIONS = {"png", "jpg", "jpeg", "webp", "gif", "bmp", "tiff", "svg", "avif"}
_UNSAFE_FILENAME_CHARS = re.compile(r"[^A-Za-z0-9._-]")


def normalize_extension(subtype: str) -> str:
    """Map an image MIME subtype to a file extension (``jpeg`` becomes ``jpg``)."""
    subtype = subtype.lower().strip()
    if subtype in ("jpeg", "pjpeg"):
        return "jpg"
    if subtype == "svg+xml":
        return "svg"
    return subtype


def extension_from_content_type(content_type: str | None) -> str | None:
    """Extract the extension from an ``image/*`` content type, if any."""
    if not content_type:
        return None
    mime = content_type.split(";", 1)[0].strip().lower()
    if not mime.startswith("image/"):
        return None
    return normalize_extension(mime.split("/", 1)[1]) or None


def extension_from_url(url: str) -> str | None:
    """Extract a known image extension from the path of ``url``, if any."""
    suffix = PurePosixPath(urlparse(url).path).suffix.lstrip(".").lower()
    if suffix in KNOWN_EXTENSIONS:
        return normalize_extension(suffix)
    return None


def sanitize_filename(filename: str) -> str:
    """Reduce a caller-supplied filename to a safe single path component.

    Directory parts are dropped, unsafe characters become ``-`` and leading
    dots are removed so the result can never be hidden or relative.
    """
    name = filename.replace("\\", "/").rsplit("/", 1)[-1]
    name = _UNSAFE_FILENAME_CHARS.sub("-", name).lstrip(".")
    return name[:100]


def generate_filename(extension: str) -> str:
    """Create a collision-resistant filename: timestamp plus random suffix."""
    return f"{int(time.time() * 1000)}-{uuid.uuid4().hex[:8]}.{extension}"


def decode_base64_image(data: str) -> tuple[bytes, str]:
    """Decode a base64 image, with or without a ``data:image/...`` prefix.

    Returns:
        Tuple of ``(bytes, extension)``.  The extension comes from the data
        URI type, or ``png`` when there is no prefix.

    Raises:
        ValidationError: If the payload is empty or not valid base64.
    """
    if not data or not data.strip():
        raise ValidationError("Image data is required", error="Image required")

    data = data.strip()
    extension = "png"
    match = DATA_URI_PATTERN.match(data)
    if match:
        extension = normalize_extension(match.group(1))
        data = data[match.end():]

    try:
        content = base64.b64decode(data, validate=True)
    except (binascii.Error, ValueError) as e:
        raise ValidationError(f"Invalid base64 image data: {e}", error="Invalid image data") from e

    if not content:
        raise ValidationError("Decoded image is empty", error="Invalid image data")
    return content, extension


@dataclass
class StoredImage:
    """Metadata for one stored image file.

    Attributes:
        filename: File name inside the category directory.
        category: Storage category (generated, customer or base).
        url: Public URL path of the file.
        size: File size in bytes.
        created_at: Creation (or metadata change) time, UTC.
        modified_at: Last modification time, UTC.
    """

    filename: str
    category: str
    url: str
    size: int
    created_at: datetime
    modified_at: datetime

    def to_dict(self) -> dict:
        return {
            "filename": self.filename,
            "category": self.category,
            "url": self.url,
            "size": self.size,
            "createdAt": self.created_at.isoformat(),
            "modifiedAt": self.modified_at.isoformat(),
        }


class ImageStore:
    """Category-scoped image storage rooted at ``root``.

    Args:
        root: Uploads root directory.
        public_prefix: URL prefix the root is served under.
        timeout: Timeout in seconds for remote fetches.
    """

    def __init__(self, root: Path, public_prefix: str = "/uploads", timeout: float = 30.0) -> None:
        self.root = Path(root)
        self.public_prefix = "/" + public_prefix.strip("/")
        self.timeout = timeout

    def ensure_directories(self) -> None:
        """Create the root and every category directory if missing."""
        for category in STORAGE_CATEGORIES:
            (self.root / category).mkdir(parents=True, exist_ok=True)

    def category_dir(self, category: str) -> Path:
        """Return the directory for ``category``.

        Raises:
            ValidationError: If ``category`` is not a known category.
        """
        if category not in STORAGE_CATEGORIES:
            raise ValidationError(
                f"Unknown category '{category}'. Expected one of: {', '.join(STORAGE_CATEGORIES)}",
                error="Invalid category",
            )
        return self.root / category

    def public_url(self, category: str, filename: str) -> str:
        return f"{self.public_prefix}/{category}/{filename}"

    def _resolve_inside(self, category: str, filename: str) -> Path:
        base = self.category_dir(category).resolve()
        target = (base / filename).resolve()
        if not str(target).startswith(str(base) + os.sep):
            logger.warning(f"Path traversal attempt detected: {category}/{filename}")
            raise AccessDeniedError("Invalid path: outside of the category directory")
        return target

    def _describe(self, category: str, path: Path) -> StoredImage:
        stat = path.stat()
        return StoredImage(
            filename=path.name,
            category=category,
            url=self.public_url(category, path.name),
            size=stat.st_size,
            created_at=datetime.fromtimestamp(stat.st_ctime, tz=timezone.utc),
            modified_at=datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc),
        )

    def _write(self, content: bytes, category: str, filename: str | None, extension: str) -> StoredImage:
        if filename:
            name = sanitize_filename(filename)
            if not name:
                raise ValidationError(f"Invalid filename: {filename!r}", error="Invalid filename")
            if "." not in name:
                name = f"{name}.{extension}"
        else:
            name = generate_filename(extension)

        path = self._resolve_inside(category, name)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            try:
                handle = path.open("xb")
            except FileExistsError:
                stem, dot, suffix = name.rpartition(".")
                unique = f"{stem}-{uuid.uuid4().hex[:8]}{dot}{suffix}"
                logger.info(f"{category}/{name} already exists, storing as {unique}")
                path = self._resolve_inside(category, unique)
                handle = path.open("xb")
            with handle:
                handle.write(content)
        except OSError as e:
            raise PersistenceError(f"Could not write {category}/{path.name}: {e}") from e

        logger.info(f"Stored {len(content)} bytes as {category}/{path.name}")
        return self._describe(category, path)

    def save_base64(self, data: str, category: str, filename: str | None = None) -> StoredImage:
        """Decode a base64 image (optionally a data URI) and store it.

        Raises:
            ValidationError: For an unknown category or invalid base64.
            PersistenceError: If the file cannot be written.
        """
        self.category_dir(category)
        content, extension = decode_base64_image(data)
        return self._write(content, category, filename, extension)

    def save_from_url(self, url: str, category: str, filename: str | None = None) -> StoredImage:
        """Download ``url`` and store the body.

        The extension comes from the response content type, then from the URL
        suffix, defaulting to ``webp``.

        Raises:
            ImageFetchError: If the download fails.
            PersistenceError: If the file cannot be written.
        """
        self.category_dir(category)
        fetched = fetch_image(url, timeout=self.timeout)
        extension = (
            extension_from_content_type(fetched.content_type)
            or extension_from_url(url)
            or "webp"
        )
        return self._write(fetched.content, category, filename, extension)

    def delete(self, category: str, filename: str) -> None:
        """Remove ``filename`` from ``category``.

        Raises:
            ValidationError: For an unknown category.
            AccessDeniedError: If the resolved path leaves the category directory.
            ImageNotFoundError: If there is no such file.
            PersistenceError: If the file cannot be removed.
        """
        path = self._resolve_inside(category, filename)
        if not path.is_file():
            raise ImageNotFoundError(f"No image named '{filename}' in '{category}'")

        try:
            path.unlink()
        except FileNotFoundError as e:
            raise ImageNotFoundError(f"No image named '{filename}' in '{category}'") from e
        except OSError as e:
            raise PersistenceError(f"Could not delete {category}/{filename}: {e}") from e

        logger.info(f"Deleted {category}/{filename}")

    def list_images(self, category: str | None = None) -> list[StoredImage]:
        """List stored images for one category, or all of them, newest first."""
        categories = [category] if category else list(STORAGE_CATEGORIES)

        images: list[StoredImage] = []
        for name in categories:
            directory = self.category_dir(name)
            if not directory.is_dir():
                continue
            for path in directory.iterdir():
                if path.is_file() and not path.name.startswith("."):
                    images.append(self._describe(name, path))

        images.sort(key=lambda image: image.modified_at, reverse=True)
        return images

    def stats(self) -> dict:
        """Return image counts and byte totals per category and overall."""
        categories: dict[str, dict[str, int]] = {}
        for category in STORAGE_CATEGORIES:
            images = self.list_images(category)
            categories[category] = {
                "count": len(images),
                "totalBytes": sum(image.size for image in images),
            }

        return {
            "categories": categories,
            "totalImages": sum(entry["count"] for entry in categories.values()),
            "totalBytes": sum(entry["totalBytes"] for entry in categories.values()),
        }

    def resolve_public_url(self, url: str) -> Path | None:
        """Map a public URL of a stored image back to its file.

        Accepts both relative (``/uploads/base/x.png``) and absolute URLs.

        Returns:
            The file path, or ``None`` if the URL is not under the public
            prefix or does not name an existing stored image.
        """
        path = unquote(urlparse(url).path)
        prefix = self.public_prefix + "/"
        if not path.startswith(prefix):
            return None

        category, _, filename = path[len(prefix):].partition("/")
        if category not in STORAGE_CATEGORIES or not filename:
            return None

        try:
            resolved = self._resolve_inside(category, filename)
        except AccessDeniedError:
            return None
        return resolved if resolved.is_file() else None
