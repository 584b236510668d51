"""FastAPI application — REST endpoints, WebSocket stream, and background services.

This module wires together all infrastructure:
- CORS + request logging middleware
- Storage (sessions, triggers, activity history)
- The engine pipeline (single owner of live state) and its consumers
- Realtime tick driver
- Throttled notifications
- Real-time WebSocket broadcasting
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from datetime import datetime, timedelta

import structlog
from fastapi import FastAPI, HTTPException, Query, WebSocket, WebSocketDisconnect

from biometric_monitor import __version__
from biometric_monitor.activity.recognizer import activity_insights, generate_stats
from biometric_monitor.analysis.stress import analyze_patterns, generate_daily_summaries
from biometric_monitor.api.middleware import setup_middleware
from biometric_monitor.api.schemas import RawPayloadRequest, ReadingRequest, SampleRequest, SessionRequest
from biometric_monitor.api.websocket import ws_manager
from biometric_monitor.collectors.decoder import sanitize_reading, to_sample
from biometric_monitor.config import get_settings
from biometric_monitor.engine.core import MonitorEngine
from biometric_monitor.engine.driver import RealtimeTickDriver
from biometric_monitor.engine.state import EngineEvent, EventKind
from biometric_monitor.models import ACTIVITY_META, ACTIVITY_RECOMMENDATIONS, Channel, Notification, Reading
from biometric_monitor.notifications.handlers import create_dispatcher
from biometric_monitor.storage.database import close_db, init_db
from biometric_monitor.storage.repository import ActivityRepository, SessionRepository, TriggerRepository
from biometric_monitor.streaming.pipeline import Command, CommandKind, EnginePipeline
from biometric_monitor.triggers.analysis import mitigation_strategies

logger = structlog.get_logger(__name__)

# ── Shared state (initialised in lifespan) ────────────────────

_engine: MonitorEngine | None = None
_pipeline: EnginePipeline | None = None
_pipeline_task: asyncio.Task | None = None
_tick_driver: RealtimeTickDriver | None = None


def _require_pipeline() -> EnginePipeline:
    if _pipeline is None:
        raise HTTPException(503, "Pipeline not ready.")
    return _pipeline


def _require_engine() -> MonitorEngine:
    if _engine is None:
        raise HTTPException(503, "Engine not ready.")
    return _engine


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup / shutdown lifecycle hooks."""
    global _engine, _pipeline, _pipeline_task, _tick_driver

    settings = get_settings()

    # 1. Database
    await init_db()
    session_repo = SessionRepository()
    trigger_repo = TriggerRepository()
    activity_repo = ActivityRepository()

    # 2. Engine, seeded from stored history
    _engine = MonitorEngine.from_settings(settings)
    _engine.restore(
        triggers=await trigger_repo.latest(settings.trigger_log_capacity),
        detections=await activity_repo.latest_detections(settings.activity_history_capacity),
        transitions=await activity_repo.latest_transitions(settings.activity_history_capacity),
    )

    # 3. Notifications
    dispatcher = create_dispatcher(settings)

    # 4. Pipeline consumers
    async def _persist(event: EngineEvent) -> None:
        if event.kind is EventKind.SESSION_ENDED:
            await session_repo.save(event.data)  # type: ignore[arg-type]
        elif event.kind is EventKind.TRIGGER_DETECTED:
            await trigger_repo.save(event.data)  # type: ignore[arg-type]
        elif event.kind is EventKind.ACTIVITY_DETECTED:
            await activity_repo.save_detection(event.data)  # type: ignore[arg-type]
        elif event.kind is EventKind.ACTIVITY_TRANSITION:
            await activity_repo.save_transition(event.data)  # type: ignore[arg-type]

    async def _notify(event: EngineEvent) -> None:
        if event.kind is EventKind.NOTIFICATION and isinstance(event.data, Notification):
            await dispatcher.dispatch(event.data)

    _pipeline = EnginePipeline(_engine)
    _pipeline.add_consumer(_persist)
    _pipeline.add_consumer(_notify)
    _pipeline.add_consumer(ws_manager.broadcast_event)
    _pipeline_task = asyncio.create_task(_pipeline.start())

    # 5. Realtime ticks go through the pipeline so they stay ordered with samples
    if settings.tick_driver_enabled:
        _tick_driver = RealtimeTickDriver(_pipeline.tick, interval=settings.tick_interval_seconds)
        _tick_driver.start()

    logger.info("server.started", port=settings.api_port)

    yield  # ← application runs

    # Shutdown: flush an open session before stopping the loop
    if _tick_driver:
        await _tick_driver.stop()
    if _pipeline:
        if _engine is not None and _engine.state.session_active:
            await _pipeline.submit(Command(CommandKind.STOP_SESSION))
        await _pipeline.stop()
    if _pipeline_task:
        _pipeline_task.cancel()
    await close_db()
    _engine = _pipeline = _pipeline_task = _tick_driver = None
    logger.info("server.stopped")


app = FastAPI(
    title="Biometric Monitor API",
    description="Streaming stress, arousal and activity analytics for a wearable GSR / heart-rate sensor.",
    version=__version__,
    lifespan=lifespan,
)

setup_middleware(app)


# ── Health ────────────────────────────────────────────────────

@app.get("/health", tags=["system"])
async def health():
    return {"status": "ok", "pipeline_pending": _pipeline.pending if _pipeline else 0}


@app.get("/system/info", tags=["system"])
async def system_info():
    settings = get_settings()
    return {
        "version": __version__,
        "pipeline": {
            "running": _pipeline is not None,
            "pending": _pipeline.pending if _pipeline else 0,
            "processed_total": _pipeline.processed_total if _pipeline else 0,
        },
        "tick_driver": {
            "enabled": settings.tick_driver_enabled,
            "running": _tick_driver.running if _tick_driver else False,
            "interval_seconds": settings.tick_interval_seconds,
        },
        "websocket": {
            "connected_clients": ws_manager.client_count,
            "channels": ws_manager.channel_breakdown(),
            "stats": ws_manager.stats.snapshot(),
        },
    }


# ── Live state ────────────────────────────────────────────────

@app.get("/state", tags=["state"])
async def state():
    """Current observable snapshot of the engine."""
    return _require_engine().snapshot().model_dump(mode="json")


@app.get("/waveforms/{channel}", tags=["state"])
async def waveform(channel: Channel):
    engine = _require_engine()
    try:
        buf = engine.waveforms.buffer(channel)
    except ValueError as exc:
        raise HTTPException(404, str(exc)) from exc
    stats = buf.get_stats()
    return {
        "channel": channel.value,
        "points": [{"timestamp": p.timestamp.isoformat(), "value": p.value} for p in buf.points],
        "normalized": buf.get_normalized_values(),
        "stats": {
            "min": stats.min,
            "max": stats.max,
            "avg": stats.avg,
            "current": stats.current,
            "count": stats.count,
            "range": stats.range,
        },
        "time_range_seconds": buf.time_range_seconds(),
    }


# ── Ingestion ─────────────────────────────────────────────────

@app.post("/ingest/sample", status_code=201, tags=["ingest"])
async def ingest_sample(req: SampleRequest):
    """Validate one channel value and queue it; out-of-range values are dropped."""
    pipeline = _require_pipeline()
    sample = to_sample(req.channel, req.value, timestamp=req.timestamp)
    if sample is None:
        return {"queued": False}
    await pipeline.publish(sample)
    return {"queued": True}


@app.post("/ingest/raw", status_code=201, tags=["ingest"])
async def ingest_raw(req: RawPayloadRequest):
    """Decode a little-endian characteristic payload and queue it."""
    pipeline = _require_pipeline()
    try:
        payload = bytes.fromhex(req.payload_hex)
    except ValueError as exc:
        raise HTTPException(422, "payload_hex is not valid hexadecimal") from exc
    sample = to_sample(req.channel, payload=payload, timestamp=req.timestamp)
    if sample is None:
        return {"queued": False}
    await pipeline.publish(sample)
    return {"queued": True, "value": sample.value}


@app.post("/ingest/reading", status_code=201, tags=["ingest"])
async def ingest_reading(req: ReadingRequest):
    pipeline = _require_pipeline()
    data = req.model_dump(exclude_none=True)
    reading = sanitize_reading(Reading(**data))
    await pipeline.publish(reading)
    return {"queued": True}


# ── Sessions ──────────────────────────────────────────────────

@app.post("/session/start", tags=["session"])
async def start_session(req: SessionRequest | None = None):
    events = await _require_pipeline().submit(
        Command(CommandKind.START_SESSION, req.timestamp if req else None),
    )
    return {"started": bool(events), "events": [e.to_dict() for e in events]}


@app.post("/session/stop", tags=["session"])
async def stop_session(req: SessionRequest | None = None):
    events = await _require_pipeline().submit(
        Command(CommandKind.STOP_SESSION, req.timestamp if req else None),
    )
    session = next((e.data for e in events if e.kind is EventKind.SESSION_ENDED), None)
    return {
        "stopped": session is not None,
        "session": session.model_dump(mode="json") if session is not None else None,
    }


@app.get("/sessions", tags=["session"])
async def list_sessions(days: int = Query(7, ge=1, le=365)):
    start = datetime.now() - timedelta(days=days)
    sessions = await SessionRepository().get_range(start=start)
    return [
        {**s.model_dump(mode="json"), "duration_minutes": s.duration_minutes}
        for s in sessions
    ]


# ── Triggers ──────────────────────────────────────────────────

@app.get("/triggers", tags=["triggers"])
async def triggers(limit: int = Query(50, ge=1, le=500)):
    items = _require_engine().triggers.items()[-limit:]
    return [{**t.model_dump(mode="json"), "time_of_day": t.time_of_day} for t in reversed(items)]


@app.get("/triggers/analysis", tags=["triggers"])
async def trigger_analysis():
    analysis = _require_engine().trigger_analysis
    return {
        **analysis.model_dump(mode="json"),
        "critical_triggers": analysis.critical_triggers,
        "severe_triggers": analysis.severe_triggers,
        "overall_risk": analysis.overall_risk,
    }


@app.get("/triggers/strategies", tags=["triggers"])
async def trigger_strategies():
    strategies = mitigation_strategies(_require_engine().trigger_analysis)
    return [{**s.model_dump(mode="json"), "priority_label": s.priority_label} for s in strategies]


# ── Activity ──────────────────────────────────────────────────

@app.get("/activity/current", tags=["activity"])
async def current_activity():
    detection = _require_engine().recognizer.current
    if detection is None:
        return {"activity": None}
    meta = ACTIVITY_META[detection.activity_type]
    return {
        "activity": detection.model_dump(mode="json"),
        "name": meta.name,
        "icon": meta.icon,
        "description": meta.description,
        "confidence_level": detection.confidence_level,
        "recommendation": ACTIVITY_RECOMMENDATIONS[detection.activity_type],
    }


@app.get("/activity/history", tags=["activity"])
async def activity_history(limit: int = Query(100, ge=1, le=500)):
    history = list(_require_engine().recognizer.history)[-limit:]
    return [d.model_dump(mode="json") for d in history]


@app.get("/activity/transitions", tags=["activity"])
async def activity_transitions(limit: int = Query(100, ge=1, le=500)):
    transitions = list(_require_engine().recognizer.transitions)[-limit:]
    return [{**t.model_dump(mode="json"), "transition_name": t.transition_name} for t in transitions]


@app.get("/activity/stats", tags=["activity"])
async def activity_stats():
    stats = generate_stats(list(_require_engine().recognizer.history))
    return {
        **stats.model_dump(mode="json"),
        "summary": stats.summary,
        "insights": activity_insights(stats),
    }


# ── Trends (historical sessions) ─────────────────────────────

@app.get("/trends/insights", tags=["trends"])
async def trend_insights(days: int = Query(7, ge=1, le=365)):
    end = datetime.now()
    start = end - timedelta(days=days)
    sessions = await SessionRepository().get_range(start=start)
    insights = analyze_patterns(sessions, start, end, _require_engine().thresholds)
    return {
        **insights.model_dump(mode="json"),
        "stress_percentage": insights.stress_percentage,
        "calm_percentage": insights.calm_percentage,
        "stress_level": insights.stress_level,
    }


@app.get("/trends/daily", tags=["trends"])
async def trend_daily(days: int = Query(7, ge=1, le=365)):
    start = datetime.now() - timedelta(days=days)
    sessions = await SessionRepository().get_range(start=start)
    summaries = generate_daily_summaries(sessions, days, thresholds=_require_engine().thresholds)
    return [
        {
            **s.model_dump(mode="json"),
            "stress_percentage": s.stress_percentage,
            "stress_rating": s.stress_rating,
        }
        for s in summaries
    ]


# ── WebSocket ─────────────────────────────────────────────────

@app.get("/events/recent", tags=["stream"])
async def recent_events(limit: int = Query(50, ge=1, le=200)):
    """Most recent broadcast engine events, newest first."""
    return ws_manager.get_recent_messages(limit=limit)


@app.websocket("/ws/events")
async def ws_events(ws: WebSocket, channels: str = "all"):
    """Stream engine events; ``?channels=trigger_detected,notification`` to filter."""
    subscribed = [c.strip() for c in channels.split(",") if c.strip()] or ["all"]
    await ws_manager.connect(ws, subscribed)
    try:
        if _engine is not None:
            await ws.send_json({"kind": "snapshot", "data": _engine.snapshot().model_dump(mode="json")})
        while True:
            await ws.receive_text()  # keep-alive; clients don't send commands
    except WebSocketDisconnect:
        pass
    finally:
        await ws_manager.disconnect(ws)
