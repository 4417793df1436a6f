import pytest
from httpx import ASGITransport, AsyncClient

from voxbridge.main import app


@pytest.mark.asyncio
async def test_health_endpoint() -> None:
    transport = ASGITransport(app=app)

    async with AsyncClient(transport=transport, base_url="http://testserver") as client:
        response = await client.get("/api/health")
        head = await client.head("/api/health")

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "healthy"
    assert {"timestamp", "users", "queue", "rooms", "uptime", "metrics"} <= body.keys()
    assert body["metrics"]["totalConnections"] >= 0
    assert head.status_code == 200


@pytest.mark.asyncio
async def test_stats_and_root() -> None:
    transport = ASGITransport(app=app)

    async with AsyncClient(transport=transport, base_url="http://testserver") as client:
        stats = await client.get("/api/stats")
        root = await client.get("/")

    assert stats.status_code == 200
    assert {"online", "inQueue", "activeRooms", "uptime", "metrics"} <= stats.json().keys()
    assert root.json()["status"] == "ok"
    assert root.json()["online"] >= 0


@pytest.mark.asyncio
async def test_turn_credentials_fall_back_to_stun() -> None:
    transport = ASGITransport(app=app)

    async with AsyncClient(transport=transport, base_url="http://testserver") as client:
        response = await client.get("/api/rtc/turn-credentials")

    assert response.status_code == 200
    servers = response.json()
    assert servers
    assert all(url.startswith(("stun:", "turn:", "turns:")) for server in servers for url in server["urls"])
