"""Pydantic request models for the Artgen API.

These models define the JSON schema for every API endpoint.  FastAPI uses
them for request validation and OpenAPI documentation.

Models
------
GenerateRequest
    Payload for ``POST /api/generate``.  Common fields are declared; the
    model-specific options (``size``, ``num_inference_steps``, ...) arrive as
    extra fields, exactly as the browser form sends them, and are validated
    afterwards by the selected model adapter's strict schema.
DownloadRequest
    Payload for ``POST /api/download-with-dpi``.
UploadRequest
    Payload for ``POST /api/images/upload``.
"""

from __future__ import annotations

from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from artgen.core.model_adapters import GenerationInput


class GenerateRequest(BaseModel):
    """Request body for the ``POST /api/generate`` endpoint.

    Attributes:
        prompt: Text prompt.  Validated (trimmed, non-empty) by the mapper so
            the rule holds for every model.
        model: Model id (``seedream``, ``flux-schnell``, ``flux-1.1-pro``,
            ``stable-diffusion`` or ``openai-image-1.5``).  Also accepted as
            ``model_id`` or ``modelId``.
        aspect_ratio: Aspect ratio token, e.g. ``"16:9"`` or ``"custom"``.
        params: Optional nested model-specific parameters.  Merged over the
            flat extra fields.
        reference_images: Ordered reference image URLs or data URIs.
    """

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    prompt: str | None = Field(
        default=None,
        description="Text prompt (required, must not be blank).",
    )
    model: str | None = Field(
        default=None,
        validation_alias=AliasChoices("model", "model_id", "modelId"),
        description="Model identifier, e.g. 'seedream'.",
    )
    aspect_ratio: str = Field(
        default="1:1",
        validation_alias=AliasChoices("aspect_ratio", "aspectRatio"),
        description="Aspect ratio token (e.g. '16:9', 'custom').",
    )
    params: dict[str, Any] | None = Field(
        default=None,
        validation_alias=AliasChoices("params", "modelSpecificParams", "model_params"),
        description="Model-specific parameters (alternative to flat fields).",
    )
    reference_images: list[str] | None = Field(
        default=None,
        validation_alias=AliasChoices("reference_images", "referenceImages"),
        description="Reference image URLs or base64 data URIs.",
    )

    def model_params(self) -> dict[str, Any]:
        """Return the model-specific parameters, flat extras first."""
        merged: dict[str, Any] = dict(self.model_extra or {})
        merged.update(self.params or {})
        return merged

    def to_generation_input(self) -> GenerationInput:
        return GenerationInput(
            prompt=self.prompt or "",
            model=self.model or "",
            aspect_ratio=self.aspect_ratio,
            params=self.model_params(),
            reference_images=list(self.reference_images or []),
        )


class DownloadRequest(BaseModel):
    """Request body for ``POST /api/download-with-dpi``.

    Attributes:
        image_url: URL of the image to convert (``imageUrl`` in JSON).  May be
            a provider URL or a public URL of a stored image.
        filename: Desired download filename; sanitized before use.
    """

    model_config = ConfigDict(populate_by_name=True)

    image_url: str | None = Field(
        default=None,
        validation_alias=AliasChoices("imageUrl", "image_url"),
        description="URL of the image to re-encode at 300 DPI.",
    )
    filename: str | None = Field(
        default=None,
        description="Download filename (sanitized).",
    )


class UploadRequest(BaseModel):
    """Request body for ``POST /api/images/upload``.

    Attributes:
        image: Base64 image data, with or without a ``data:image/...`` prefix.
        category: Target category (``generated``, ``customer`` or ``base``).
        filename: Optional filename; generated when omitted.
    """

    image: str = Field(
        ...,
        description="Base64 image data or data URI.",
    )
    category: str = Field(
        default="customer",
        description="Storage category: generated, customer or base.",
    )
    filename: str | None = Field(
        default=None,
        description="Optional filename (sanitized).",
    )
