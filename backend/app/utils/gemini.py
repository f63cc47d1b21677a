"""Gemini adapter for single-shot image edits.

Sends one user turn (instruction text + inline source image) and converts
the candidate's parts into TextPart / ImagePart values. `scan_parts` folds
the ordered parts into either the first image or the collected text.
"""

from __future__ import annotations

import asyncio
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from functools import reduce

import structlog
from google import genai
from google.genai import types

from app.config import settings
from app.models.contracts import ImagePart, ModelResponsePart, TextPart

logger = structlog.get_logger()

IMAGE_CONFIG = types.GenerateContentConfig(
    response_modalities=["IMAGE", "TEXT"],
)

DEFAULT_IMAGE_MIME_TYPE = "image/png"


@dataclass(frozen=True)
class ExtractedImage:
    data: bytes
    mime_type: str


@dataclass(frozen=True)
class Diagnostic:
    texts: tuple[str, ...] = ()

    @property
    def text(self) -> str:
        return "\n".join(self.texts).strip()


ScanResult = ExtractedImage | Diagnostic


def get_client() -> genai.Client:
    """Create a Gemini client using the configured API key."""
    return genai.Client(api_key=settings.google_ai_api_key)


def response_parts(response: types.GenerateContentResponse) -> list[ModelResponsePart]:
    """Convert the first candidate of a response into ordered parts.

    Parts that carry neither text nor inline data (thought signatures,
    empty parts) are dropped.
    """
    if not response.candidates:
        return []
    content = response.candidates[0].content
    if content is None or content.parts is None:
        return []
    parts: list[ModelResponsePart] = []
    for part in content.parts:
        inline = part.inline_data
        if inline is not None and inline.data:
            parts.append(
                ImagePart(data=inline.data, mime_type=inline.mime_type or DEFAULT_IMAGE_MIME_TYPE)
            )
        elif part.text:
            parts.append(TextPart(value=part.text))
    return parts


def _fold_part(acc: ScanResult, part: ModelResponsePart) -> ScanResult:
    if isinstance(acc, ExtractedImage):
        return acc
    if isinstance(part, ImagePart):
        return ExtractedImage(data=part.data, mime_type=part.mime_type)
    return Diagnostic(texts=(*acc.texts, part.value))


def scan_parts(parts: Iterable[ModelResponsePart]) -> ScanResult:
    """Return the first image part, or every text part seen if there is none."""
    return reduce(_fold_part, parts, Diagnostic())


def _build_contents(prompt: str, image_data: bytes, mime_type: str) -> list[types.Content]:
    return [
        types.Content(
            role="user",
            parts=[
                types.Part(text=prompt),
                types.Part.from_bytes(data=image_data, mime_type=mime_type),
            ],
        )
    ]


async def generate_image_edit(
    prompt: str,
    image_data: bytes,
    mime_type: str,
    client: genai.Client | None = None,
) -> Sequence[ModelResponsePart]:
    """Run one Gemini call with a text instruction and an inline image.

    The SDK call is synchronous; it runs in a worker thread under
    `gemini_timeout_seconds`. Raises TimeoutError or genai APIError.
    """
    if client is None:
        client = get_client()

    logger.info(
        "gemini_generate_start",
        model=settings.gemini_model,
        prompt_chars=len(prompt),
        image_bytes=len(image_data),
        mime_type=mime_type,
    )
    async with asyncio.timeout(settings.gemini_timeout_seconds):
        response = await asyncio.to_thread(
            client.models.generate_content,
            model=settings.gemini_model,
            contents=_build_contents(prompt, image_data, mime_type),
            config=IMAGE_CONFIG,
        )

    parts = response_parts(response)
    logger.info(
        "gemini_generate_done",
        parts=len(parts),
        image_parts=sum(1 for p in parts if isinstance(p, ImagePart)),
    )
    return parts
