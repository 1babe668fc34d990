"""OpenAI Image 1.5 model adapter.

``openai/gpt-image-1.5`` on Replicate only supports three aspect ratios.
Any requested ratio is folded onto that set by orientation:

==================  ========
Requested           Sent
==================  ========
wider than tall     ``3:2``
taller than wide    ``2:3``
square / unknown    ``1:1``
==================  ========

Reference images are sent as ``input_images`` (at most five), each as a
base64 data URI.  The OpenAI key is optional: a key supplied with the request
wins, then the configured ``OPENAI_API_KEY``; without either, Replicate uses
its own proxy credential.
"""

import logging
import math
from typing import Any, Literal

from artgen.core.model_adapters import (
    AdapterParams,
    GenerationInput,
    ModelAdapterBase,
    clamp,
    model_registry,
)

logger = logging.getLogger(__name__)

MAX_INPUT_IMAGES = 5
MAX_NUMBER_OF_IMAGES = 10
SUPPORTED_ASPECT_RATIOS = ("1:1", "3:2", "2:3")


def map_aspect_ratio(aspect_ratio: str | None) -> str:
    """Fold an arbitrary aspect ratio token onto ``1:1``, ``3:2`` or ``2:3``.

    Args:
        aspect_ratio: Token of the form ``"W:H"``; anything else is unknown.

    Returns:
        One of the supported ratios.  Never raises.
    """
    if not aspect_ratio:
        return "1:1"

    token = aspect_ratio.strip()
    if token in SUPPORTED_ASPECT_RATIOS:
        return token

    width_text, sep, height_text = token.partition(":")
    if not sep:
        return "1:1"

    try:
        width = float(width_text)
        height = float(height_text)
    except ValueError:
        return "1:1"

    if not (math.isfinite(width) and math.isfinite(height)) or width <= 0 or height <= 0:
        return "1:1"
    if width > height:
        return "3:2"
    if height > width:
        return "2:3"
    return "1:1"


def to_data_uri(image: str) -> str:
    """Return ``image`` as a data URI, wrapping bare base64 as PNG."""
    image = image.strip()
    if image.startswith("data:") or image.startswith(("http://", "https://")):
        return image
    return f"data:image/png;base64,{image}"


class OpenAIImageParams(AdapterParams):
    quality: Literal["auto", "low", "medium", "high"] = "auto"
    background: Literal["auto", "transparent", "opaque"] = "auto"
    moderation: Literal["auto", "low"] = "auto"
    output_format: Literal["webp", "png", "jpeg"] = "webp"
    output_compression: int = 90
    number_of_images: int = 1
    input_fidelity: Literal["low", "high"] | None = None
    input_images: list[str] | None = None
    user_id: str | None = None
    openai_api_key: str | None = None


class OpenAIImageAdapter(ModelAdapterBase):
    """Model adapter for ``openai/gpt-image-1.5``."""

    name = "openai-image-1.5"
    label = "OpenAI Image 1.5"
    description = "GPT Image 1.5 with reference image support"
    replicate_model = "openai/gpt-image-1.5"
    params_schema = OpenAIImageParams

    def build_payload(self, request: GenerationInput) -> dict[str, Any]:
        params = self.parse_params(request.params)

        payload: dict[str, Any] = {
            "prompt": request.prompt,
            "aspect_ratio": map_aspect_ratio(request.aspect_ratio),
            "quality": params.quality,
            "background": params.background,
            "moderation": params.moderation,
            "output_format": params.output_format,
            "output_compression": clamp(params.output_compression, 0, 100),
            "number_of_images": clamp(params.number_of_images, 1, MAX_NUMBER_OF_IMAGES),
        }

        api_key = (params.openai_api_key or "").strip() or self.config.openai_api_key
        if api_key:
            payload["openai_api_key"] = api_key

        if params.input_fidelity:
            payload["input_fidelity"] = params.input_fidelity

        if params.user_id and params.user_id.strip():
            payload["user_id"] = params.user_id.strip()

        images = params.input_images if params.input_images else request.reference_images
        images = [image for image in images if image and image.strip()]
        if images:
            if len(images) > MAX_INPUT_IMAGES:
                logger.info(
                    f"Dropping {len(images) - MAX_INPUT_IMAGES} reference image(s) "
                    f"beyond the limit of {MAX_INPUT_IMAGES}"
                )
            payload["input_images"] = [to_data_uri(image) for image in images[:MAX_INPUT_IMAGES]]

        return payload


model_registry.register(OpenAIImageAdapter)
