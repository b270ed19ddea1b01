"""Tests for schedbot.api."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest
from httpx import ASGITransport, AsyncClient

from schedbot.api.app import create_app
from schedbot.core.config import Config
from schedbot.core.cron.ticker import ScheduleTicker
from schedbot.core.cron.types import ExecutionStatus, ProcessResult, TickSummary
from tests.conftest import AI_AGENT, NOW

AUTH = {"Authorization": "Bearer s3cret"}


@pytest.fixture
def app(seeded):
    """Create test app with tmp database; lifespan is not run by ASGITransport."""
    application = create_app()
    ticker = MagicMock(spec=ScheduleTicker)
    ticker.running = False
    ticker.tick = AsyncMock(
        return_value=TickSummary(
            schedules=ProcessResult(processed=2, errors=1),
            approved=ProcessResult(processed=1),
        )
    )
    application.state.config = Config(auth={"cron_secret": "s3cret"})
    application.state.store = seeded
    application.state.ticker = ticker
    return application


@pytest.fixture
async def client(app):
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
        yield c


@pytest.mark.asyncio
async def test_health(client):
    resp = await client.get("/health")
    assert resp.status_code == 200
    assert resp.json()["status"] == "ok"


@pytest.mark.asyncio
async def test_check_schedules(client, app):
    resp = await client.get("/cron/check-schedules", headers=AUTH)
    assert resp.status_code == 200
    data = resp.json()
    assert data["success"] is True
    assert data["schedules"] == {"processed": 2, "errors": 1}
    assert data["approvals"] == {"processed": 1, "errors": 0}
    assert data["timestamp"]
    app.state.ticker.tick.assert_awaited_once()


@pytest.mark.asyncio
@pytest.mark.parametrize("headers", [{}, {"Authorization": "Bearer wrong"}])
async def test_check_schedules_unauthorized(client, app, headers):
    resp = await client.get("/cron/check-schedules", headers=headers)
    assert resp.status_code == 401
    app.state.ticker.tick.assert_not_called()


@pytest.mark.asyncio
async def test_unset_secret_rejects(client, app):
    app.state.config = Config(auth={"cron_secret": ""})
    resp = await client.get("/cron/check-schedules", headers={"Authorization": "Bearer "})
    assert resp.status_code == 401


@pytest.mark.asyncio
async def test_approve_execution(client, seeded):
    ex = seeded.create_execution("s1", AI_AGENT, NOW, ExecutionStatus.PENDING_APPROVAL)

    resp = await client.post(
        f"/executions/{ex.id}/approve", json={"approved_by": "boss"}, headers=AUTH
    )
    assert resp.status_code == 200
    assert resp.json()["approved_by"] == "boss"

    again = await client.post(
        f"/executions/{ex.id}/approve", json={"approved_by": "boss"}, headers=AUTH
    )
    assert again.status_code == 409


@pytest.mark.asyncio
async def test_approve_unknown(client):
    resp = await client.post("/executions/nope/approve", json={"approved_by": "boss"}, headers=AUTH)
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_list_executions(client, seeded):
    seeded.create_execution("s1", AI_AGENT, NOW, ExecutionStatus.PENDING_APPROVAL)
    seeded.create_execution("s1", AI_AGENT, NOW, ExecutionStatus.RUNNING)

    resp = await client.get("/executions", params={"status": "pending_approval"}, headers=AUTH)
    assert resp.status_code == 200
    assert [e["status"] for e in resp.json()] == ["pending_approval"]


@pytest.mark.asyncio
async def test_list_schedules(client):
    resp = await client.get("/schedules", headers=AUTH)
    assert resp.status_code == 200
    assert [s["id"] for s in resp.json()] == ["s1"]


@pytest.mark.asyncio
async def test_dlq_list_and_resolve(client, seeded):
    ex = seeded.create_execution("s1", AI_AGENT, NOW, ExecutionStatus.RUNNING)
    dlq_id = seeded.move_to_dlq(ex.id, "boom", error_type="unknown")

    resp = await client.get("/dlq", headers=AUTH)
    assert resp.status_code == 200
    assert [i["id"] for i in resp.json()["items"]] == [dlq_id]

    resolved = await client.post(
        f"/dlq/{dlq_id}/resolve", json={"action": "dismissed", "reviewed_by": "ops"}, headers=AUTH
    )
    assert resolved.status_code == 200
    assert resolved.json()["status"] == "resolved"

    twice = await client.post(f"/dlq/{dlq_id}/resolve", json={"action": "dismissed"}, headers=AUTH)
    assert twice.status_code == 409

    missing = await client.post("/dlq/nope/resolve", json={"action": "dismissed"}, headers=AUTH)
    assert missing.status_code == 404
