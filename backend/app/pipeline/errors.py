"""Failure taxonomy for the generation endpoint.

Each error knows its HTTP status and machine-readable code; the route
turns it into an ErrorResponse body.
"""

from __future__ import annotations

from app.models.contracts import ErrorResponse


class GenerationError(Exception):
    status: int = 500
    code: str = "internal_error"
    retryable: bool = False

    def __init__(self, message: str, *, detail: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.detail = detail

    def to_response(self) -> ErrorResponse:
        return ErrorResponse(
            error=self.code,
            message=self.message,
            retryable=self.retryable,
            detail=self.detail,
        )


class MalformedRequestError(GenerationError):
    status = 400
    code = "malformed_request"


class PayloadTooLargeError(GenerationError):
    status = 413
    code = "file_too_large"


class UnauthenticatedError(GenerationError):
    status = 401
    code = "unauthenticated"


class UpstreamGenerationError(GenerationError):
    status = 502
    code = "upstream_generation_failure"
    retryable = True


class StorageError(GenerationError):
    status = 500
    code = "storage_failure"
    retryable = True
