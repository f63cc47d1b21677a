"""Shared fixtures: ASGI test client, PNG bytes, collaborator fakes."""

from __future__ import annotations

import io

import httpx
import pytest
from PIL import Image

from app.main import app
from app.models.contracts import CallerIdentity


def make_png(width: int = 8, height: int = 8, color: str = "red") -> bytes:
    img = Image.new("RGB", (width, height), color)
    buf = io.BytesIO()
    img.save(buf, format="PNG")
    return buf.getvalue()


@pytest.fixture
def png_bytes() -> bytes:
    return make_png()


@pytest.fixture
def caller() -> CallerIdentity:
    return CallerIdentity(user_id="user-123", email="owner@example.com")


@pytest.fixture
async def client():
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
