from unittest.mock import AsyncMock, patch

import httpx
import pytest

from tierscan.main import app
from tierscan.modules.scheduling.domain.tiers import Tier

ADMIN_HEADERS = {"X-Admin-Key": "test-admin-key-at-least-32-characters-long"}


@pytest.fixture
async def client(orchestrator):
    app.state.scheduler = orchestrator
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.state.scheduler = None


@pytest.mark.asyncio
async def test_status_requires_admin_key(client):
    response = await client.get("/api/v1/scheduler/status", headers={"X-Admin-Key": "wrong"})
    assert response.status_code == 403
    assert response.json()["code"] == "HTTP_ERROR"


@pytest.mark.asyncio
async def test_status_unconfigured_admin_key_returns_503(client):
    with patch("tierscan.modules.scheduling.api.v1.scheduler.get_settings") as mock_settings:
        mock_settings.return_value.ADMIN_API_KEY = None
        response = await client.get("/api/v1/scheduler/status", headers=ADMIN_HEADERS)
    assert response.status_code == 503


@pytest.mark.asyncio
async def test_status_returns_snapshot(client):
    response = await client.get("/api/v1/scheduler/status", headers=ADMIN_HEADERS)

    assert response.status_code == 200
    body = response.json()
    assert body["active_jobs"] == 0
    assert "tier_hot_scan" in body["schedule"]
    assert "run_allowed_today" in body


@pytest.mark.asyncio
async def test_manual_scan_launches_job(client, backend):
    response = await client.post(
        "/api/v1/scheduler/scan", json={"tier": "1"}, headers=ADMIN_HEADERS
    )

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "launched"
    assert body["tier"] == "hot"
    assert body["mode"] == "standard"
    assert body["count"] == 50
    assert body["estimated_cost"] == 13.0
    assert body["estimated_minutes"] == 75.0
    assert len(backend.launches) == 1


@pytest.mark.asyncio
async def test_manual_scan_with_mode_override(client):
    response = await client.post(
        "/api/v1/scheduler/scan",
        json={"tier": "dormant", "mode": "TURBO"},
        headers=ADMIN_HEADERS,
    )
    assert response.json()["mode"] == "turbo"


@pytest.mark.asyncio
async def test_manual_scan_full_hot_label(client, backend):
    response = await client.post(
        "/api/v1/scheduler/scan", json={"tier": "1full"}, headers=ADMIN_HEADERS
    )

    assert response.status_code == 200
    body = response.json()
    assert body["tier"] == "hot"
    assert body["mode"] == "full"
    assert body["estimated_cost"] == 61.5
    assert body["estimated_minutes"] == 250.0
    assert backend.launches[0][0] == list(range(1, 51))


@pytest.mark.asyncio
async def test_full_hot_label_keeps_explicit_mode(client):
    response = await client.post(
        "/api/v1/scheduler/scan",
        json={"tier": "1FULL", "mode": "fast"},
        headers=ADMIN_HEADERS,
    )
    assert response.json()["mode"] == "fast"


@pytest.mark.asyncio
async def test_manual_scan_rejects_unknown_tier(client):
    response = await client.post(
        "/api/v1/scheduler/scan", json={"tier": "tepid"}, headers=ADMIN_HEADERS
    )
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_manual_scan_launch_failure_maps_to_502(client, backend):
    backend.enrich_by_ids = AsyncMock(side_effect=RuntimeError("queue full"))

    response = await client.post(
        "/api/v1/scheduler/scan", json={"tier": "hot"}, headers=ADMIN_HEADERS
    )

    assert response.status_code == 502
    assert response.json()["code"] == "scan_launch_failed"


@pytest.mark.asyncio
async def test_chain_then_monitor(client, orchestrator, backend):
    launched = await client.post(
        "/api/v1/scheduler/scan", json={"tier": "hot"}, headers=ADMIN_HEADERS
    )
    job_id = launched.json()["job_id"]

    chained = await client.post(
        "/api/v1/scheduler/chain",
        json={"after_job_id": job_id, "tier": "active"},
        headers=ADMIN_HEADERS,
    )
    assert chained.json() == {"status": "chained", "queue_length": 1}

    backend.finish(job_id)
    monitored = await client.post("/api/v1/scheduler/monitor", headers=ADMIN_HEADERS)

    body = monitored.json()
    assert body["finished"] == 1
    assert body["active_jobs"] == 1
    (details,) = body["active_job_details"].values()
    assert details["tier"] == Tier.ACTIVE.value
    assert details["mode"] == "standard"


@pytest.mark.asyncio
async def test_health_includes_scheduler_summary(client):
    response = await client.get("/health")

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "healthy"
    assert body["scheduler"]["running"] is False
    assert "X-Request-ID" in response.headers


@pytest.mark.asyncio
async def test_request_id_is_echoed_and_clipped(client):
    echoed = await client.get("/health", headers={"X-Request-ID": "trace-abc"})
    assert echoed.headers["X-Request-ID"] == "trace-abc"

    clipped = await client.get("/health", headers={"X-Request-ID": "x" * 200})
    assert clipped.headers["X-Request-ID"] == "x" * 64
