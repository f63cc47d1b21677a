"""Bearer-token verification against the identity provider.

The provider exposes a user-info endpoint (`GET {auth_base_url}/user`)
that answers 200 with the user record for a valid access token and 401/403
otherwise. Any failure to obtain a user record is treated as a rejection.
"""

from __future__ import annotations

import httpx
import structlog
from pydantic import ValidationError

from app.config import settings
from app.models.contracts import CallerIdentity

logger = structlog.get_logger()

_BEARER_PREFIX = "bearer "


def extract_bearer_token(authorization: str | None) -> str | None:
    """Pull the token out of an `Authorization: Bearer <token>` header value."""
    if not authorization:
        return None
    if not authorization.lower().startswith(_BEARER_PREFIX):
        return None
    token = authorization[len(_BEARER_PREFIX) :].strip()
    return token or None


def _user_info_url() -> str:
    return f"{settings.auth_base_url.rstrip('/')}/user"


async def verify_token(
    token: str,
    client: httpx.AsyncClient | None = None,
) -> CallerIdentity | None:
    """Return the caller identity for a token, or None if it is rejected."""
    if not settings.auth_base_url:
        logger.error("auth_not_configured")
        return None

    headers = {"Authorization": f"Bearer {token}"}
    if settings.auth_api_key:
        headers["apikey"] = settings.auth_api_key

    try:
        if client is None:
            async with httpx.AsyncClient(timeout=settings.auth_timeout_seconds) as owned:
                response = await owned.get(_user_info_url(), headers=headers)
        else:
            response = await client.get(_user_info_url(), headers=headers)
    except httpx.RequestError as exc:
        logger.warning("auth_request_failed", error_type=type(exc).__name__)
        return None

    if response.status_code != 200:
        logger.info("auth_rejected", status_code=response.status_code)
        return None

    try:
        body = response.json()
        return CallerIdentity(user_id=body.get("id", ""), email=body.get("email"))
    except (ValueError, AttributeError, ValidationError) as exc:
        logger.warning("auth_user_payload_invalid", error=str(exc))
        return None
