"""generate_design: one photo + one design tool -> one stored design image.

Steps, strictly sequential:
    resolve prompt -> Gemini call -> pick first image part ->
    create-only upload to R2 -> public URL -> GenerationResult

Callers must have authenticated the request and validated its fields
before calling in. Nothing here is retried; the first failure ends the call.
"""

from __future__ import annotations

import asyncio
import io
import time
import uuid

import structlog
from google.genai import errors as genai_errors
from PIL import Image

from app.config import settings
from app.models.contracts import CallerIdentity, GenerationRequest, GenerationResult
from app.pipeline.errors import StorageError, UpstreamGenerationError
from app.pipeline.prompts import resolve_prompt
from app.utils import r2
from app.utils.gemini import ExtractedImage, generate_image_edit, scan_parts

logger = structlog.get_logger()

NO_IMAGE_ERROR = "No image generated by AI"
NO_IMAGE_FALLBACK_MESSAGE = "The AI did not return an image. Please try again."


def extension_for(mime_type: str) -> str:
    """File extension from a mime type: image/webp -> webp, default png."""
    _, _, subtype = mime_type.partition("/")
    subtype = subtype.split(";", 1)[0].strip().lower()
    return subtype or "png"


def build_storage_key(user_id: str, tool: str, mime_type: str, now_ms: int | None = None) -> str:
    """Caller-scoped, collision-resistant key for a generated image."""
    if now_ms is None:
        now_ms = int(time.time() * 1000)
    return f"{user_id}/{now_ms}-{tool}-{uuid.uuid4()}.{extension_for(mime_type)}"


def _verify_image(data: bytes) -> None:
    """Raise UpstreamGenerationError if the returned bytes are not a decodable image."""
    try:
        with Image.open(io.BytesIO(data)) as img:
            img.verify()
    except Exception as exc:
        logger.error("gemini_image_decode_failed", image_bytes=len(data))
        raise UpstreamGenerationError(
            NO_IMAGE_ERROR, detail="Generated image data is corrupt"
        ) from exc


async def _call_model(prompt: str, request: GenerationRequest) -> ExtractedImage:
    try:
        parts = await generate_image_edit(prompt, request.image_data, request.image_mime_type)
    except TimeoutError as exc:
        logger.error("gemini_timeout", tool=request.tool)
        raise UpstreamGenerationError(
            "Image generation timed out", detail="Timed out waiting for the model"
        ) from exc
    except genai_errors.APIError as exc:
        logger.error("gemini_api_error", tool=request.tool, code=exc.code, error=str(exc))
        raise UpstreamGenerationError("Image generation failed", detail=str(exc)) from exc

    scanned = scan_parts(parts)
    if isinstance(scanned, ExtractedImage):
        return scanned

    text = scanned.text
    logger.warning("gemini_no_image_response", tool=request.tool, gemini_text=text[:300])
    # Model text goes into `message` so the client can show it as-is
    raise UpstreamGenerationError(text or NO_IMAGE_FALLBACK_MESSAGE, detail=NO_IMAGE_ERROR)


async def _store(key: str, image: ExtractedImage) -> str:
    try:
        await asyncio.to_thread(r2.upload_object, key, image.data, image.mime_type)
    except r2.ObjectExistsError as exc:
        raise StorageError("Failed to upload generated image", detail=str(exc)) from exc
    except Exception as exc:
        logger.exception("design_upload_failed", key=key)
        raise StorageError("Failed to upload generated image", detail=str(exc)) from exc

    try:
        return await asyncio.to_thread(r2.public_url, key)
    except Exception as exc:
        logger.exception("design_url_failed", key=key)
        raise StorageError("Failed to resolve generated image URL", detail=str(exc)) from exc


async def generate_design(request: GenerationRequest, caller: CallerIdentity) -> GenerationResult:
    """Generate, store and describe one redesigned image for an authenticated caller."""
    started = time.perf_counter()
    prompt = resolve_prompt(request.tool, request.custom_prompt)

    logger.info(
        "design_generation_start",
        user_id=caller.user_id,
        tool=request.tool,
        custom_prompt=bool(request.custom_prompt),
        prompt_chars=len(prompt),
    )

    image = await _call_model(prompt, request)
    _verify_image(image.data)

    key = build_storage_key(caller.user_id, request.tool, image.mime_type)
    url = await _store(key, image)

    result = GenerationResult(
        url=url,
        path=key,
        tool=request.tool,
        duration_ms=max(0, round((time.perf_counter() - started) * 1000)),
        # Gemini does not report output dimensions; these are its nominal resolution
        width=settings.generated_image_width,
        height=settings.generated_image_height,
    )
    logger.info(
        "design_generation_done",
        user_id=caller.user_id,
        tool=request.tool,
        path=key,
        duration_ms=result.duration_ms,
    )
    return result
