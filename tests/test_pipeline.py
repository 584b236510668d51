"""Tests for the single-owner engine pipeline and the realtime tick driver."""

from __future__ import annotations

import asyncio
import contextlib
from datetime import datetime, timedelta

import pytest

from conftest import T0

from biometric_monitor.engine.driver import RealtimeTickDriver
from biometric_monitor.engine.state import EngineEvent, EventKind
from biometric_monitor.models import Channel, RawSample
from biometric_monitor.streaming.pipeline import Command, CommandKind, EnginePipeline


@pytest.fixture
async def running(engine):
    """A started pipeline plus the list of events its consumer saw."""
    pipeline = EnginePipeline(engine)
    received: list[EngineEvent] = []

    async def collect(event: EngineEvent) -> None:
        received.append(event)

    pipeline.add_consumer(collect)
    task = asyncio.create_task(pipeline.start())
    yield pipeline, received
    await pipeline.stop()
    task.cancel()
    with contextlib.suppress(asyncio.CancelledError):
        await task


@pytest.mark.asyncio
async def test_items_applied_in_arrival_order(running, stressed_reading):
    pipeline, received = running
    await pipeline.submit(Command(CommandKind.START_SESSION, T0))
    await pipeline.publish(stressed_reading)
    for i in range(1, 11):
        await pipeline.tick(T0 + timedelta(seconds=i))
    await pipeline.drain()

    kinds = [e.kind for e in received]
    assert kinds[0] is EventKind.SESSION_STARTED
    assert kinds[1] is EventKind.AROUSAL_CHANGED
    assert EventKind.TRIGGER_DETECTED in kinds
    assert pipeline.engine.state.tick_count == 10
    assert pipeline.processed_total == 12
    assert pipeline.pending == 0


@pytest.mark.asyncio
async def test_submit_returns_produced_events(running):
    pipeline, _ = running
    events = await pipeline.submit(Command(CommandKind.START_SESSION, T0))
    assert [e.kind for e in events] == [EventKind.SESSION_STARTED]

    events = await pipeline.submit(Command(CommandKind.STOP_SESSION, T0 + timedelta(minutes=5)))
    assert events[0].kind is EventKind.SESSION_ENDED
    assert events[0].data.duration_minutes == 5


@pytest.mark.asyncio
async def test_publish_batch_of_samples(running):
    pipeline, _ = running
    await pipeline.publish_batch([
        RawSample(channel=Channel.HEART_RATE, value=88, timestamp=T0),
        RawSample(channel=Channel.HRV, value=31.5, timestamp=T0),
    ])
    await pipeline.drain()
    assert pipeline.engine.state.heart_rate == 88
    assert pipeline.engine.state.hrv == 31.5


@pytest.mark.asyncio
async def test_failing_consumer_is_isolated(engine):
    pipeline = EnginePipeline(engine)
    received: list[EngineEvent] = []

    async def broken(event: EngineEvent) -> None:
        raise RuntimeError("storage down")

    async def collect(event: EngineEvent) -> None:
        received.append(event)

    pipeline.add_consumer(broken)
    pipeline.add_consumer(collect)
    await pipeline.dispatch(engine.start_session(T0))
    assert [e.kind for e in received] == [EventKind.SESSION_STARTED]


@pytest.mark.asyncio
async def test_apply_failure_reaches_submitter(running, monkeypatch):
    pipeline, _ = running

    def explode(now=None):
        raise ZeroDivisionError

    monkeypatch.setattr(pipeline.engine, "tick", explode)
    with pytest.raises(ZeroDivisionError):
        await pipeline.submit(Command(CommandKind.TICK, T0))

    # the loop keeps running after a failed item
    events = await pipeline.submit(Command(CommandKind.START_SESSION, T0))
    assert events[0].kind is EventKind.SESSION_STARTED


def test_apply_is_synchronous(engine, stressed_reading):
    pipeline = EnginePipeline(engine)
    assert pipeline.apply(Command(CommandKind.START_SESSION, T0))[0].kind is EventKind.SESSION_STARTED
    assert pipeline.apply(stressed_reading)[0].kind is EventKind.AROUSAL_CHANGED
    assert pipeline.apply(Command(CommandKind.TICK, T0 + timedelta(seconds=1))) == []


# ── Realtime driver ──────────────────────────────────────────


@pytest.mark.asyncio
async def test_realtime_driver_ticks_until_stopped():
    ticks: list[datetime] = []

    async def on_tick(now: datetime) -> None:
        ticks.append(now)

    driver = RealtimeTickDriver(on_tick, interval=0.01)
    driver.start()
    assert driver.running
    await asyncio.sleep(0.1)
    await driver.stop()
    assert not driver.running

    count = len(ticks)
    assert count >= 2
    # time-of-day rules read the user's local wall clock
    assert abs((datetime.now() - ticks[-1]).total_seconds()) < 5
    assert ticks[-1].tzinfo is None
    await asyncio.sleep(0.05)
    assert len(ticks) == count


@pytest.mark.asyncio
async def test_realtime_driver_survives_failing_callback():
    calls = 0

    async def on_tick(now: datetime) -> None:
        nonlocal calls
        calls += 1
        raise RuntimeError("boom")

    driver = RealtimeTickDriver(on_tick, interval=0.01)
    driver.start()
    await asyncio.sleep(0.08)
    await driver.stop()
    assert calls >= 2
