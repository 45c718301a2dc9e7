"""Tests for the liveness endpoint."""

from __future__ import annotations

import pytest
from aiohttp.test_utils import TestClient, TestServer

from tldrbot.health import create_app


@pytest.mark.asyncio
@pytest.mark.parametrize("path", ["/", "/health"])
async def test_health_paths(path):
    async with TestClient(TestServer(create_app())) as client:
        resp = await client.get(path)
        assert resp.status == 200
        assert await resp.json() == {"status": "healthy", "service": "tldrbot"}


@pytest.mark.asyncio
async def test_unknown_path_is_404():
    async with TestClient(TestServer(create_app())) as client:
        resp = await client.get("/metrics")
        assert resp.status == 404
