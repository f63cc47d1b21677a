"""Health check endpoint with collaborator probes.

Each probe has a short timeout. A collaborator reporting "disconnected"
does not change the overall status ("ok"): the endpoint always returns 200
so load balancers keep routing.
"""

from __future__ import annotations

import asyncio

import httpx
import structlog
from fastapi import APIRouter

from app.config import settings
from app.utils import r2

logger = structlog.get_logger()

router = APIRouter(tags=["health"])

_CHECK_TIMEOUT = 3.0  # seconds per probe
APP_VERSION = "0.1.0"


async def _check_r2() -> str:
    """Check R2 bucket accessibility via head_bucket."""
    if not r2.is_configured():
        return "not_configured"
    try:
        await asyncio.wait_for(asyncio.to_thread(r2.head_bucket), timeout=_CHECK_TIMEOUT)
        return "connected"
    except Exception as exc:
        logger.debug("health_r2_failed", error=str(exc))
        return "disconnected"


async def _check_auth() -> str:
    """Ping the identity provider's health endpoint."""
    if not settings.auth_base_url:
        return "not_configured"
    headers = {"apikey": settings.auth_api_key} if settings.auth_api_key else {}
    try:
        async with httpx.AsyncClient(timeout=_CHECK_TIMEOUT) as client:
            response = await client.get(
                f"{settings.auth_base_url.rstrip('/')}/health", headers=headers
            )
        return "connected" if response.status_code < 500 else "disconnected"
    except Exception as exc:
        logger.debug("health_auth_failed", error=str(exc))
        return "disconnected"


@router.get("/health")
async def health_check() -> dict:
    """Confirm the API process is alive and report collaborator reachability."""
    r2_status, auth_status = await asyncio.gather(_check_r2(), _check_auth())

    return {
        "status": "ok",
        "version": APP_VERSION,
        "environment": settings.environment,
        "gemini": "configured" if settings.google_ai_api_key else "not_configured",
        "r2": r2_status,
        "auth": auth_status,
    }
