"""Client-side controller for one design generation at a time.

State machine:
    Idle -> Loading -> Succeeded | Failed
Succeeded and Failed go back to Idle only through reset(). abort() cancels
the in-flight request without touching state, so an aborted call leaves
the controller in Loading until the caller resets it.

One controller drives one request at a time. Starting a second generate()
while the first is loading is not supported; callers disable their trigger.
"""

from __future__ import annotations

import asyncio
import mimetypes
from pathlib import Path
from urllib.parse import unquote, urlparse

import httpx
import structlog
from pydantic import ValidationError

from app.client.state import IDLE, LOADING, ClientState, Failed, Loading, Succeeded
from app.config import settings
from app.models.contracts import GenerationResult

logger = structlog.get_logger()

IMAGE_REQUIRED = "Image is required"
TOOL_REQUIRED = "Design tool selection is required"
INVALID_RESPONSE = "Invalid response from server"
GENERIC_FAILURE = "Failed to generate design"
UNKNOWN_ERROR = "Unknown error occurred"

DEFAULT_IMAGE_NAME = "image.jpg"


class RequestFailed(Exception):
    """A generation attempt failed with a message suitable for display."""


class _CancelToken:
    """Handle for the in-flight request task; remembers whether abort() fired."""

    def __init__(self, task: asyncio.Future) -> None:
        self._task = task
        self.requested = False

    def cancel(self) -> None:
        self.requested = True
        self._task.cancel()


async def load_image_bytes(image_ref: str, client: httpx.AsyncClient) -> bytes:
    """Read an image reference (path, file:// URL or http(s) URL) into bytes."""
    if image_ref.startswith(("http://", "https://")):
        response = await client.get(image_ref)
        response.raise_for_status()
        return response.content
    if image_ref.startswith("file://"):
        path = Path(unquote(urlparse(image_ref).path))
    else:
        path = Path(image_ref)
    return await asyncio.to_thread(path.read_bytes)


def _error_message(response: httpx.Response) -> str:
    """Pick the most useful message out of an error response body."""
    try:
        body = response.json()
    except ValueError:
        return GENERIC_FAILURE
    if not isinstance(body, dict):
        return GENERIC_FAILURE
    for field in ("message", "error"):
        value = body.get(field)
        if isinstance(value, str) and value:
            return value
    return GENERIC_FAILURE


def _failure_message(exc: Exception) -> str:
    if isinstance(exc, RequestFailed):
        return str(exc)
    if isinstance(exc, httpx.HTTPStatusError):
        return _error_message(exc.response)
    return str(exc) or UNKNOWN_ERROR


class DesignRequestController:
    """Owns the request state and the cancellation handle for one caller."""

    def __init__(
        self,
        access_token: str,
        endpoint_url: str | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._access_token = access_token
        self._endpoint_url = endpoint_url or settings.generation_endpoint_url
        self._http_client = http_client
        self._state: ClientState = IDLE
        self._inflight: _CancelToken | None = None

    # --- read-only projection ---

    @property
    def state(self) -> ClientState:
        return self._state

    @property
    def loading(self) -> bool:
        return isinstance(self._state, Loading)

    @property
    def error(self) -> str | None:
        return self._state.message if isinstance(self._state, Failed) else None

    @property
    def data(self) -> GenerationResult | None:
        return self._state.result if isinstance(self._state, Succeeded) else None

    # --- commands ---

    def reset(self) -> None:
        """Return to Idle, dropping any previous result or error."""
        self._state = IDLE

    def abort(self) -> None:
        """Cancel the in-flight request, if there is one."""
        if self._inflight is not None:
            self._inflight.cancel()
            self._inflight = None

    async def generate(
        self,
        image_ref: str,
        tool: str,
        custom_prompt: str | None = None,
        *,
        image_name: str | None = None,
        image_type: str | None = None,
    ) -> GenerationResult | None:
        """Submit one generation. Never raises; returns None on failure or abort."""
        if not image_ref:
            self._state = Failed(IMAGE_REQUIRED)
            return None
        if not tool:
            self._state = Failed(TOOL_REQUIRED)
            return None

        self._state = LOADING
        task = asyncio.ensure_future(
            self._submit(image_ref, tool, custom_prompt, image_name, image_type)
        )
        token = _CancelToken(task)
        self._inflight = token

        try:
            result = await task
        except asyncio.CancelledError:
            if token.requested:
                logger.info("design_request_aborted", tool=tool)
                return None
            raise
        except Exception as exc:
            message = _failure_message(exc)
            logger.warning("design_request_failed", tool=tool, error=message)
            self._state = Failed(message)
            return None
        finally:
            if self._inflight is token:
                self._inflight = None

        logger.info("design_request_succeeded", tool=tool, path=result.path)
        self._state = Succeeded(result)
        return result

    async def _submit(
        self,
        image_ref: str,
        tool: str,
        custom_prompt: str | None,
        image_name: str | None,
        image_type: str | None,
    ) -> GenerationResult:
        if self._http_client is not None:
            return await self._post(
                self._http_client, image_ref, tool, custom_prompt, image_name, image_type
            )
        async with httpx.AsyncClient(timeout=settings.client_timeout_seconds) as client:
            return await self._post(client, image_ref, tool, custom_prompt, image_name, image_type)

    async def _post(
        self,
        client: httpx.AsyncClient,
        image_ref: str,
        tool: str,
        custom_prompt: str | None,
        image_name: str | None,
        image_type: str | None,
    ) -> GenerationResult:
        image_data = await load_image_bytes(image_ref, client)
        name = image_name or DEFAULT_IMAGE_NAME
        mime_type = image_type or mimetypes.guess_type(name)[0] or "image/jpeg"

        form = {"designTool": tool}
        if custom_prompt:
            form["customPrompt"] = custom_prompt

        logger.info("design_request_start", tool=tool, image_bytes=len(image_data))
        response = await client.post(
            self._endpoint_url,
            files={"image": (name, image_data, mime_type)},
            data=form,
            headers={"Authorization": f"Bearer {self._access_token}"},
        )
        response.raise_for_status()

        try:
            return GenerationResult.model_validate(response.json())
        except (ValueError, ValidationError) as exc:
            raise RequestFailed(INVALID_RESPONSE) from exc
