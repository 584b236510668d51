"""Tests for the FastAPI server endpoints."""

import struct
from datetime import datetime, timedelta

import pytest
from asgi_lifespan import LifespanManager
from fastapi.testclient import TestClient
from httpx import ASGITransport, AsyncClient

from biometric_monitor.api.server import app

STRESSED = {"heart_rate": 130, "hrv": 8.0, "gsr": 600.0, "temperature": 33.0, "gsr_variability": 0.6}


@pytest.fixture
async def client():
    """Async test client with lifespan (startup / shutdown) fully executed."""
    async with LifespanManager(app) as manager:
        transport = ASGITransport(app=manager.app)
        async with AsyncClient(transport=transport, base_url="http://test") as c:
            yield c


async def _flush(client: AsyncClient) -> None:
    # Session commands go through the same queue, so a no-op start/stop
    # pair returns only after everything published before it was applied.
    await client.post("/session/stop", json={})


@pytest.mark.asyncio
async def test_health(client: AsyncClient):
    resp = await client.get("/health")
    assert resp.status_code == 200
    assert resp.json()["status"] == "ok"


@pytest.mark.asyncio
async def test_system_info(client: AsyncClient):
    info = (await client.get("/system/info")).json()
    assert info["pipeline"]["running"] is True
    assert info["tick_driver"] == {"enabled": False, "running": False, "interval_seconds": 1.0}


@pytest.mark.asyncio
async def test_initial_state(client: AsyncClient):
    state = (await client.get("/state")).json()
    assert state["arousal"] == "Initializing..."
    assert state["cognitive_score"] == 75.0
    assert state["session_active"] is False


@pytest.mark.asyncio
async def test_ingest_reading_updates_state(client: AsyncClient):
    resp = await client.post("/ingest/reading", json=STRESSED)
    assert resp.status_code == 201
    assert resp.json()["queued"] is True
    await _flush(client)

    state = (await client.get("/state")).json()
    assert state["arousal"] == "Stressed"
    assert state["cognitive_score"] == 65.0
    assert state["reading"]["heart_rate"] == 130


@pytest.mark.asyncio
async def test_invalid_reading_channels_are_zeroed(client: AsyncClient):
    await client.post("/ingest/reading", json={"heart_rate": 400, "gsr": 500.0, "spo2": 40})
    await _flush(client)
    reading = (await client.get("/state")).json()["reading"]
    assert reading["heart_rate"] == 0
    assert reading["spo2"] == 0
    assert reading["gsr"] == 500.0


@pytest.mark.asyncio
async def test_ingest_sample(client: AsyncClient):
    resp = await client.post("/ingest/sample", json={"channel": "heart_rate", "value": 72})
    assert resp.status_code == 201
    assert resp.json() == {"queued": True}

    resp = await client.post("/ingest/sample", json={"channel": "heart_rate", "value": 300})
    assert resp.json() == {"queued": False}

    resp = await client.post("/ingest/sample", json={"channel": "pulse", "value": 72})
    assert resp.status_code == 422


@pytest.mark.asyncio
async def test_ingest_raw_payload(client: AsyncClient):
    payload = struct.pack("<f", 36.4).hex()
    resp = await client.post("/ingest/raw", json={"channel": "temperature", "payload_hex": payload})
    assert resp.status_code == 201
    body = resp.json()
    assert body["queued"] is True
    assert body["value"] == pytest.approx(36.4, abs=1e-4)

    resp = await client.post("/ingest/raw", json={"channel": "temperature", "payload_hex": "zz"})
    assert resp.status_code == 422

    resp = await client.post("/ingest/raw", json={"channel": "heart_rate", "payload_hex": "4800"})
    assert resp.json() == {"queued": False}


@pytest.mark.asyncio
async def test_waveform_endpoint(client: AsyncClient):
    await client.post("/ingest/sample", json={"channel": "gsr", "value": 512})
    await _flush(client)

    resp = await client.get("/waveforms/gsr")
    assert resp.status_code == 200
    body = resp.json()
    assert [p["value"] for p in body["points"]] == [512.0]
    assert body["normalized"] == [0.5]
    assert body["stats"]["count"] == 1

    assert (await client.get("/waveforms/spo2")).status_code == 404


@pytest.mark.asyncio
async def test_session_lifecycle_and_trends(client: AsyncClient):
    start = datetime.now() - timedelta(minutes=10)
    resp = await client.post("/session/start", json={"timestamp": start.isoformat()})
    assert resp.json()["started"] is True
    assert (await client.post("/session/start", json={})).json()["started"] is False

    await client.post("/ingest/reading", json={**STRESSED, "timestamp": start.isoformat()})

    resp = await client.post("/session/stop", json={"timestamp": (start + timedelta(minutes=10)).isoformat()})
    body = resp.json()
    assert body["stopped"] is True
    assert body["session"]["start_time"] == start.isoformat()

    sessions = (await client.get("/sessions", params={"days": 1})).json()
    assert len(sessions) == 1
    assert sessions[0]["duration_minutes"] == 10

    insights = (await client.get("/trends/insights", params={"days": 1})).json()
    assert insights["total_minutes"] == 10
    assert "stress_level" in insights

    daily = (await client.get("/trends/daily", params={"days": 2})).json()
    assert sum(d["total_sessions"] for d in daily) == 1


@pytest.mark.asyncio
async def test_recent_events_newest_first(client: AsyncClient):
    await client.post("/session/start", json={})
    await client.post("/ingest/reading", json=STRESSED)
    await _flush(client)

    recent = (await client.get("/events/recent", params={"limit": 3})).json()
    assert [m["kind"] for m in recent] == ["session_ended", "notification", "arousal_changed"]


@pytest.mark.asyncio
async def test_stop_without_session(client: AsyncClient):
    body = (await client.post("/session/stop")).json()
    assert body == {"stopped": False, "session": None}


@pytest.mark.asyncio
async def test_trigger_endpoints_empty(client: AsyncClient):
    assert (await client.get("/triggers")).json() == []
    analysis = (await client.get("/triggers/analysis")).json()
    assert analysis["total_triggers"] == 0
    assert analysis["overall_risk"] == "Low Risk"
    assert (await client.get("/triggers/strategies")).json() == []


@pytest.mark.asyncio
async def test_activity_endpoints_empty(client: AsyncClient):
    assert (await client.get("/activity/current")).json() == {"activity": None}
    assert (await client.get("/activity/history")).json() == []
    assert (await client.get("/activity/transitions")).json() == []
    stats = (await client.get("/activity/stats")).json()
    assert stats["dominant_activity"] == "unknown"
    assert stats["total_minutes"] == 0


@pytest.mark.asyncio
async def test_query_validation(client: AsyncClient):
    assert (await client.get("/sessions", params={"days": 0})).status_code == 422
    assert (await client.get("/triggers", params={"limit": 1000})).status_code == 422


@pytest.mark.asyncio
async def test_stored_triggers_restored_on_startup():
    from biometric_monitor.models import TriggerSeverity, TriggerType
    from biometric_monitor.storage.database import close_db, init_db
    from biometric_monitor.storage.repository import TriggerRepository
    from biometric_monitor.triggers.models import StressTrigger

    await init_db()
    await TriggerRepository().save(
        StressTrigger(
            type=TriggerType.WORKLOAD,
            severity=TriggerSeverity.SEVERE,
            timestamp=datetime(2024, 5, 6, 14, 0),
            description="stored",
            intensity=0.6,
        ),
    )
    await close_db()

    async with LifespanManager(app) as manager:
        transport = ASGITransport(app=manager.app)
        async with AsyncClient(transport=transport, base_url="http://test") as c:
            triggers = (await c.get("/triggers")).json()
            assert [t["type"] for t in triggers] == ["workload"]
            assert triggers[0]["time_of_day"] == "Afternoon"


def test_websocket_snapshot_then_events():
    with TestClient(app) as tc:
        with tc.websocket_connect("/ws/events") as ws:
            first = ws.receive_json()
            assert first["kind"] == "snapshot"
            assert first["data"]["arousal"] == "Initializing..."

            tc.post("/ingest/reading", json=STRESSED)
            event = ws.receive_json()
            assert event["kind"] == "arousal_changed"
            assert event["data"]["current"] == "Stressed"
