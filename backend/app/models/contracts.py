"""Wire and pipeline contract models.

The JSON shapes here are what the mobile client parses, so renames are
breaking changes. `GenerationResult` serializes its tool as `designTool`.
"""

from __future__ import annotations

from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field

# === Identity ===


class CallerIdentity(BaseModel):
    """Authenticated caller as reported by the identity provider."""

    model_config = ConfigDict(frozen=True)

    user_id: str = Field(min_length=1)
    email: str | None = None


# === Model response parts ===


class TextPart(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["text"] = "text"
    value: str


class ImagePart(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["image"] = "image"
    data: bytes = Field(repr=False)
    mime_type: str = "image/png"


ModelResponsePart = Annotated[TextPart | ImagePart, Field(discriminator="kind")]


# === Generation ===


class GenerationRequest(BaseModel):
    """One validated inbound request. Lives only for the duration of the call."""

    model_config = ConfigDict(frozen=True)

    image_data: bytes = Field(repr=False)
    image_mime_type: str = "image/jpeg"
    tool: str = Field(min_length=1)
    custom_prompt: str | None = None


class GenerationResult(BaseModel):
    """Descriptor of a stored, generated design image."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    url: str = Field(min_length=1)
    path: str = Field(min_length=1)
    tool: str = Field(alias="designTool")
    duration_ms: int = Field(ge=0)
    width: int = Field(gt=0)
    height: int = Field(gt=0)


# === Errors ===


class ErrorResponse(BaseModel):
    error: str
    message: str
    retryable: bool
    detail: str | None = None
