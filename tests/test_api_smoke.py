from __future__ import annotations

import pytest
from httpx import ASGITransport, AsyncClient

from phantom import bootstrap
from server.main import app


@pytest.mark.asyncio
async def test_health_endpoint():
    await bootstrap.bootstrap(force=True)
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        resp = await ac.get("/health")
        assert resp.status_code == 200
        data = resp.json()
        assert data["status"] == "ok"
        assert set(data["dialects"]) == {"launch", "status", "output"}
        assert data["dialects"]["launch"] is None


@pytest.mark.asyncio
async def test_metrics_endpoint_exposes_phantom_counters():
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        resp = await ac.get("/metrics")
        assert resp.status_code == 200
        assert "phantom_jobs_total" in resp.text


@pytest.mark.asyncio
async def test_security_headers_and_request_id_passthrough():
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        resp = await ac.get("/", headers={"X-Request-ID": "abc-123"})
        assert resp.headers["X-Request-ID"] == "abc-123"
        assert resp.headers["X-Frame-Options"] == "DENY"
        assert resp.headers["X-Content-Type-Options"] == "nosniff"
