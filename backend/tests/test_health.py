"""Tests for health and root endpoints."""

import pytest

pytestmark = pytest.mark.asyncio


async def test_health_check(async_client):
    response = await async_client.get("/health")
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["status"] == "healthy"
    assert data["database"] == "connected"


async def test_health_reports_database_outage(async_client, monkeypatch):
    async def unreachable() -> bool:
        return False

    monkeypatch.setattr("restodesk.api.health.check_db_connection", unreachable)
    response = await async_client.get("/health")
    assert response.status_code == 503
    assert response.json()["success"] is False


async def test_root(async_client):
    response = await async_client.get("/")
    assert response.status_code == 200
    assert response.json()["data"]["name"] == "Restodesk"


async def test_unknown_route_uses_envelope(async_client):
    response = await async_client.get("/does-not-exist")
    assert response.status_code == 404
    assert response.json()["success"] is False
