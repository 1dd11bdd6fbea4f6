"""
Health check endpoint tests.
"""

import pytest
from httpx import AsyncClient, ASGITransport
from cti_server.main import app


@pytest.fixture
async def client():
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


@pytest.mark.asyncio
async def test_health_check(client: AsyncClient):
    """Health endpoint should return status ok."""
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


@pytest.mark.asyncio
async def test_ready_check(client: AsyncClient):
    """Ready endpoint should return status ready."""
    response = await client.get("/ready")
    assert response.status_code == 200
    assert response.json() == {"status": "ready"}


@pytest.mark.asyncio
async def test_server_time(client: AsyncClient):
    response = await client.get("/server-time")
    assert response.status_code == 200
    assert "T" in response.json()["currentTime"]


@pytest.mark.asyncio
async def test_api_root_requires_credential(client: AsyncClient):
    response = await client.get("/api/v1/")
    assert response.status_code == 401
    assert response.json()["error"] == "MissingCredential"
