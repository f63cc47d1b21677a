"""Cloudflare R2 client wrapper (S3-compatible object storage).

Generated designs are stored under caller-scoped keys:
    {user_id}/{epoch_ms}-{tool}-{uuid}.{ext}

Writes are create-only: `upload_object` sends `If-None-Match: *`, so an
existing key is never overwritten and a collision surfaces as
ObjectExistsError.
"""

from __future__ import annotations

from typing import Any

import boto3
import structlog
from botocore.config import Config
from botocore.exceptions import ClientError

from app.config import settings

logger = structlog.get_logger()

_PRECONDITION_CODES = {"PreconditionFailed", "412", "ConditionalRequestConflict", "409"}


class ObjectExistsError(Exception):
    """Raised when a create-only write targets a key that already exists."""

    def __init__(self, key: str) -> None:
        super().__init__(f"Object already exists: {key}")
        self.key = key


def _build_client() -> Any:
    """Create an S3 client pointed at Cloudflare R2."""
    return boto3.client(
        "s3",
        endpoint_url=f"https://{settings.r2_account_id}.r2.cloudflarestorage.com",
        aws_access_key_id=settings.r2_access_key_id,
        aws_secret_access_key=settings.r2_secret_access_key,
        config=Config(signature_version="s3v4"),
        region_name="auto",
    )


_client: Any = None


def _get_client() -> Any:
    """Lazy-init singleton client."""
    global _client  # noqa: PLW0603
    if _client is None:
        _client = _build_client()
    return _client


def reset_client() -> None:
    """Reset the singleton client (for testing)."""
    global _client  # noqa: PLW0603
    _client = None


def is_configured() -> bool:
    """True when every credential needed to reach the bucket is set."""
    return bool(
        settings.r2_account_id
        and settings.r2_access_key_id
        and settings.r2_secret_access_key
        and settings.r2_bucket_name
    )


def upload_object(key: str, data: bytes, content_type: str = "image/png") -> str:
    """Create an object in R2 without overwriting. Returns the storage key."""
    client = _get_client()
    try:
        client.put_object(
            Bucket=settings.r2_bucket_name,
            Key=key,
            Body=data,
            ContentType=content_type,
            IfNoneMatch="*",
        )
    except ClientError as e:
        code = e.response.get("Error", {}).get("Code", "Unknown")
        if code in _PRECONDITION_CODES:
            logger.error("r2_key_collision", key=key)
            raise ObjectExistsError(key) from e
        logger.error("r2_upload_failed", key=key, error_code=code)
        raise
    logger.info("r2_upload", key=key, size=len(data), content_type=content_type)
    return key


def generate_presigned_url(key: str) -> str:
    """Generate a pre-signed GET URL for downloading an object.

    URL expires after `settings.presigned_url_expiry_seconds` (default 1 hour).
    """
    client = _get_client()
    try:
        url: str = client.generate_presigned_url(
            "get_object",
            Params={"Bucket": settings.r2_bucket_name, "Key": key},
            ExpiresIn=settings.presigned_url_expiry_seconds,
        )
    except ClientError as e:
        logger.error("r2_presign_failed", key=key, error=str(e))
        raise
    return url


def public_url(key: str) -> str:
    """Return a retrievable URL for a stored key.

    Uses the bucket's public domain when one is configured, otherwise
    falls back to a pre-signed URL.
    """
    if settings.r2_public_base_url:
        return f"{settings.r2_public_base_url.rstrip('/')}/{key}"
    return generate_presigned_url(key)


def head_bucket() -> None:
    """Raise if the configured bucket is unreachable."""
    client = _get_client()
    client.head_bucket(Bucket=settings.r2_bucket_name)
