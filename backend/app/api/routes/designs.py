"""Design generation endpoint.

POST multipart/form-data with `image`, `designTool` and optional
`customPrompt`, authenticated by `Authorization: Bearer <token>`.
Checks run in a fixed order: credential, content type, declared body
size, image, tool. Unauthenticated requests are answered 401 before the
body is looked at and never reach Gemini or R2.
"""

from __future__ import annotations

import structlog
from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from starlette.datastructures import FormData, UploadFile

from app.config import settings
from app.models.contracts import CallerIdentity, ErrorResponse, GenerationRequest, GenerationResult
from app.pipeline.errors import (
    GenerationError,
    MalformedRequestError,
    PayloadTooLargeError,
    UnauthenticatedError,
)
from app.pipeline.generate import generate_design
from app.utils.auth import extract_bearer_token, verify_token

logger = structlog.get_logger()

router = APIRouter(tags=["designs"])

DEFAULT_UPLOAD_MIME_TYPE = "image/jpeg"
# Room for boundaries, part headers and the text fields next to the image
MULTIPART_OVERHEAD_BYTES = 64 * 1024


def _error(exc: GenerationError) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status,
        content=exc.to_response().model_dump(exclude_none=True),
    )


async def _authenticate(request: Request) -> CallerIdentity:
    token = extract_bearer_token(request.headers.get("authorization"))
    if token is None:
        raise UnauthenticatedError("Unauthorized", detail="Missing bearer token")
    caller = await verify_token(token)
    if caller is None:
        raise UnauthenticatedError("Unauthorized", detail="Invalid or expired token")
    return caller


def _check_declared_size(request: Request) -> None:
    """Reject bodies whose Content-Length already exceeds the cap, before buffering."""
    declared = request.headers.get("content-length")
    if declared is None:
        return
    try:
        length = int(declared)
    except ValueError as exc:
        raise MalformedRequestError("Invalid Content-Length header") from exc
    if length > settings.max_upload_bytes + MULTIPART_OVERHEAD_BYTES:
        mb = settings.max_upload_bytes // (1024 * 1024)
        raise PayloadTooLargeError(f"Image exceeds {mb} MB limit")


async def _read_upload(file: UploadFile) -> bytes:
    """Stream-read the upload, stopping as soon as it passes the size cap."""
    chunks: list[bytes] = []
    total = 0
    while chunk := await file.read(65_536):
        total += len(chunk)
        if total > settings.max_upload_bytes:
            mb = settings.max_upload_bytes // (1024 * 1024)
            raise PayloadTooLargeError(f"Image exceeds {mb} MB limit")
        chunks.append(chunk)
    return b"".join(chunks)


async def _parse_form(request: Request) -> FormData:
    try:
        return await request.form()
    except Exception as exc:
        raise MalformedRequestError("Invalid multipart body", detail=str(exc)) from exc


async def _build_generation_request(form: FormData) -> GenerationRequest:
    image = form.get("image")
    if not isinstance(image, UploadFile):
        raise MalformedRequestError("Image file is required")

    tool = form.get("designTool")
    if not isinstance(tool, str) or not tool:
        raise MalformedRequestError("Design tool selection is required")

    custom_prompt = form.get("customPrompt")
    if not isinstance(custom_prompt, str) or not custom_prompt.strip():
        custom_prompt = None

    image_data = await _read_upload(image)
    if not image_data:
        raise MalformedRequestError("Image file is required", detail="Uploaded image is empty")

    return GenerationRequest(
        image_data=image_data,
        image_mime_type=image.content_type or DEFAULT_UPLOAD_MIME_TYPE,
        tool=tool,
        custom_prompt=custom_prompt,
    )


@router.post(
    "/generate-interior-design",
    response_model=GenerationResult,
    response_model_by_alias=True,
    responses={
        400: {"model": ErrorResponse},
        401: {"model": ErrorResponse},
        413: {"model": ErrorResponse},
        500: {"model": ErrorResponse},
        502: {"model": ErrorResponse},
    },
)
async def generate_interior_design(request: Request):
    """Authenticate, generate one redesigned image, store it, describe it."""
    try:
        caller = await _authenticate(request)

        content_type = request.headers.get("content-type", "")
        if "multipart/form-data" not in content_type.lower():
            raise MalformedRequestError("Expected multipart/form-data")
        _check_declared_size(request)

        form = await _parse_form(request)
        try:
            generation_request = await _build_generation_request(form)
        finally:
            await form.close()

        result = await generate_design(generation_request, caller)
    except GenerationError as exc:
        logger.info(
            "design_request_failed",
            status=exc.status,
            code=exc.code,
            message=exc.message[:200],
        )
        return _error(exc)
    except Exception:
        logger.exception("design_request_internal_error")
        return JSONResponse(
            status_code=500,
            content=ErrorResponse(
                error="internal_error",
                message="Internal server error",
                retryable=True,
            ).model_dump(exclude_none=True),
        )

    return JSONResponse(status_code=200, content=result.model_dump(by_alias=True))
