"""Re-encode images as 300 DPI JPEGs for print downloads.

Print shops read the resolution tag of a file, not its pixel count, so every
downloaded image is decoded and written again as a JPEG whose JFIF header
carries 300 pixels per inch in both directions.  Pixel content is unchanged
apart from color mode normalization:

- images with an alpha channel are composited over opaque white
- every other mode is converted to plain RGB
"""

from __future__ import annotations

import io
import logging
import re

from PIL import Image, UnidentifiedImageError

from artgen.core.errors import ImageProcessingError

logger = logging.getLogger(__name__)

DEFAULT_DPI = 300
JPEG_QUALITY = 95
DEFAULT_DOWNLOAD_NAME = "artwork.jpg"

_ALPHA_MODES = ("RGBA", "LA", "PA", "RGBa", "La")


def _flatten(image: Image.Image) -> Image.Image:
    if image.mode == "P" and "transparency" in image.info:
        image = image.convert("RGBA")

    if image.mode in _ALPHA_MODES:
        rgba = image.convert("RGBA")
        background = Image.new("RGB", rgba.size, (255, 255, 255))
        background.paste(rgba, mask=rgba.split()[-1])
        return background

    if image.mode != "RGB":
        return image.convert("RGB")
    return image


def stamp_dpi(data: bytes, dpi: int = DEFAULT_DPI, quality: int = JPEG_QUALITY) -> bytes:
    """Decode ``data`` and re-encode it as a JPEG tagged with ``dpi``.

    Args:
        data: Encoded image in any format Pillow can read.
        dpi: Horizontal and vertical resolution to embed.
        quality: JPEG quality (1-95).

    Returns:
        The encoded JPEG bytes.

    Raises:
        ImageProcessingError: If the image cannot be decoded or encoded.
    """
    try:
        with Image.open(io.BytesIO(data)) as source:
            source.load()
            image = _flatten(source)

            output = io.BytesIO()
            image.save(output, format="JPEG", quality=quality, optimize=True, dpi=(dpi, dpi))
    except (UnidentifiedImageError, OSError, ValueError, Image.DecompressionBombError) as e:
        raise ImageProcessingError(str(e) or "Could not decode image") from e

    result = output.getvalue()
    logger.debug(f"Re-encoded {len(data)} bytes to {len(result)} byte JPEG at {dpi} DPI")
    return result


def safe_download_name(name: str | None) -> str:
    """Sanitize a caller-supplied download filename for ``Content-Disposition``.

    Lowercases, replaces anything outside ``[a-z0-9.-]`` with ``-``, collapses
    repeated dashes and truncates to 50 characters.  A missing name becomes
    ``artwork.jpg``; a name with nothing left becomes ``file``.
    """
    if not name:
        return DEFAULT_DOWNLOAD_NAME

    cleaned = re.sub(r"[^a-z0-9.-]", "-", name.lower())
    cleaned = re.sub(r"-+", "-", cleaned)
    return cleaned[:50] or "file"
