"""Tests for generate_design: prompt -> Gemini -> R2 -> GenerationResult.

Gemini and R2 are patched at the module boundary; no API keys needed.
"""

import re
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from google.genai import errors as genai_errors

from app.config import settings
from app.models.contracts import GenerationRequest, ImagePart, TextPart
from app.pipeline.errors import StorageError, UpstreamGenerationError
from app.pipeline.generate import (
    NO_IMAGE_FALLBACK_MESSAGE,
    build_storage_key,
    extension_for,
    generate_design,
)
from app.pipeline.prompts import DESIGN_PROMPTS
from app.utils import r2


@pytest.fixture
def mock_gemini():
    with patch("app.pipeline.generate.generate_image_edit", new_callable=AsyncMock) as mocked:
        yield mocked


@pytest.fixture
def mock_storage():
    with (
        patch.object(r2, "upload_object") as upload,
        patch.object(r2, "public_url") as public_url,
    ):
        upload.side_effect = lambda key, data, content_type: key
        public_url.side_effect = lambda key: f"https://cdn.example.com/{key}"
        yield MagicMock(upload=upload, public_url=public_url)


def _request(tool: str = "lighting", custom_prompt: str | None = None) -> GenerationRequest:
    return GenerationRequest(
        image_data=b"source-jpeg",
        image_mime_type="image/jpeg",
        tool=tool,
        custom_prompt=custom_prompt,
    )


class TestStorageKey:
    def test_layout(self):
        key = build_storage_key("user-1", "furniture", "image/png", now_ms=1700000000123)
        assert re.fullmatch(r"user-1/1700000000123-furniture-[0-9a-f-]{36}\.png", key)

    def test_keys_are_unique(self):
        keys = {build_storage_key("u", "lighting", "image/png", now_ms=1) for _ in range(50)}
        assert len(keys) == 50

    @pytest.mark.parametrize(
        ("mime", "ext"),
        [("image/png", "png"), ("image/jpeg", "jpeg"), ("image/webp", "webp"), ("", "png")],
    )
    def test_extension_from_mime(self, mime, ext):
        assert extension_for(mime) == ext


class TestGenerateDesign:
    @pytest.mark.asyncio
    async def test_success_builds_result(self, caller, png_bytes, mock_gemini, mock_storage):
        mock_gemini.return_value = [
            TextPart(value="Here you go"),
            ImagePart(data=png_bytes, mime_type="image/png"),
        ]

        result = await generate_design(_request("lighting"), caller)

        assert result.path.startswith(f"{caller.user_id}/")
        assert "-lighting-" in result.path
        assert result.path.endswith(".png")
        assert result.url == f"https://cdn.example.com/{result.path}"
        assert result.tool == "lighting"
        assert result.duration_ms >= 0
        assert (result.width, result.height) == (
            settings.generated_image_width,
            settings.generated_image_height,
        )
        mock_storage.upload.assert_called_once_with(result.path, png_bytes, "image/png")

    @pytest.mark.asyncio
    async def test_sends_tool_prompt_and_source_image(
        self, caller, png_bytes, mock_gemini, mock_storage
    ):
        mock_gemini.return_value = [ImagePart(data=png_bytes)]

        await generate_design(_request("flooring"), caller)

        mock_gemini.assert_awaited_once_with(DESIGN_PROMPTS["flooring"], b"source-jpeg", "image/jpeg")

    @pytest.mark.asyncio
    async def test_custom_prompt_overrides_tool(self, caller, png_bytes, mock_gemini, mock_storage):
        mock_gemini.return_value = [ImagePart(data=png_bytes)]

        result = await generate_design(_request("furniture", "Add a reading nook"), caller)

        assert mock_gemini.call_args.args[0] == "Add a reading nook"
        assert "-furniture-" in result.path

    @pytest.mark.asyncio
    async def test_unknown_tool_uses_default_prompt(
        self, caller, png_bytes, mock_gemini, mock_storage
    ):
        mock_gemini.return_value = [ImagePart(data=png_bytes)]

        result = await generate_design(_request("skylights"), caller)

        assert mock_gemini.call_args.args[0] == DESIGN_PROMPTS["wall-color"]
        assert result.tool == "skylights"

    @pytest.mark.asyncio
    async def test_text_only_response_is_upstream_failure(self, caller, mock_gemini, mock_storage):
        mock_gemini.return_value = [TextPart(value="blocked"), TextPart(value="by safety filter")]

        with pytest.raises(UpstreamGenerationError) as exc_info:
            await generate_design(_request("furniture"), caller)

        assert exc_info.value.status == 502
        assert exc_info.value.message == "blocked\nby safety filter"
        mock_storage.upload.assert_not_called()

    @pytest.mark.asyncio
    async def test_empty_response_uses_fallback_message(self, caller, mock_gemini, mock_storage):
        mock_gemini.return_value = []

        with pytest.raises(UpstreamGenerationError) as exc_info:
            await generate_design(_request(), caller)

        assert exc_info.value.message == NO_IMAGE_FALLBACK_MESSAGE

    @pytest.mark.asyncio
    async def test_corrupt_image_is_upstream_failure(self, caller, mock_gemini, mock_storage):
        mock_gemini.return_value = [ImagePart(data=b"not an image")]

        with pytest.raises(UpstreamGenerationError):
            await generate_design(_request(), caller)

        mock_storage.upload.assert_not_called()

    @pytest.mark.asyncio
    async def test_model_timeout_is_upstream_failure(self, caller, mock_gemini, mock_storage):
        mock_gemini.side_effect = TimeoutError()

        with pytest.raises(UpstreamGenerationError, match="timed out"):
            await generate_design(_request(), caller)

    @pytest.mark.asyncio
    async def test_model_api_error_is_upstream_failure(self, caller, mock_gemini, mock_storage):
        mock_gemini.side_effect = genai_errors.APIError(
            503, {"error": {"message": "overloaded", "status": "UNAVAILABLE"}}
        )

        with pytest.raises(UpstreamGenerationError):
            await generate_design(_request(), caller)

    @pytest.mark.asyncio
    async def test_key_collision_is_storage_failure(
        self, caller, png_bytes, mock_gemini, mock_storage
    ):
        mock_gemini.return_value = [ImagePart(data=png_bytes)]
        mock_storage.upload.side_effect = r2.ObjectExistsError("user-123/dup.png")

        with pytest.raises(StorageError) as exc_info:
            await generate_design(_request(), caller)

        assert exc_info.value.status == 500
        mock_storage.public_url.assert_not_called()

    @pytest.mark.asyncio
    async def test_upload_error_is_storage_failure(
        self, caller, png_bytes, mock_gemini, mock_storage
    ):
        mock_gemini.return_value = [ImagePart(data=png_bytes)]
        mock_storage.upload.side_effect = RuntimeError("bucket gone")

        with pytest.raises(StorageError, match="Failed to upload generated image"):
            await generate_design(_request(), caller)

    @pytest.mark.asyncio
    async def test_url_failure_is_storage_failure(
        self, caller, png_bytes, mock_gemini, mock_storage
    ):
        mock_gemini.return_value = [ImagePart(data=png_bytes)]
        mock_storage.public_url.side_effect = RuntimeError("presign failed")

        with pytest.raises(StorageError, match="URL"):
            await generate_design(_request(), caller)
