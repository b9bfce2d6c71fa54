"""Smoke tests for health and app wiring."""

from httpx import AsyncClient


async def test_health_returns_ok(client: AsyncClient) -> None:
    """GET /api/v1/health returns 200 and status ok without a tenant header."""
    response = await client.get("/api/v1/health")
    assert response.status_code == 200
    data = response.json()
    assert data.get("status") == "ok"
    assert "ai_enabled" in data
    assert "database_configured" in data


async def test_request_id_is_echoed(client: AsyncClient) -> None:
    """A safe X-Request-ID is returned unchanged on the response."""
    response = await client.get("/api/v1/health", headers={"X-Request-ID": "req-123"})
    assert response.headers.get("X-Request-ID") == "req-123"


async def test_unsafe_request_id_is_replaced(client: AsyncClient) -> None:
    """A request id with unsafe characters is replaced by a generated one."""
    response = await client.get("/api/v1/health", headers={"X-Request-ID": "bad id; drop"})
    returned = response.headers.get("X-Request-ID")
    assert returned
    assert returned != "bad id; drop"
