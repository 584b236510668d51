"""Tick drivers — what advances the engine's one-second logical clock.

:class:`TickDriver` is fully deterministic: it owns a :class:`LogicalClock`
and calls :meth:`MonitorEngine.tick` with simulated time, so a test can run
an hour of session in microseconds.  :class:`RealtimeTickDriver` is the
host-side variant that schedules a tick every interval on the event loop.
"""

from __future__ import annotations

import asyncio
from datetime import datetime, timedelta
from typing import Awaitable, Callable

import structlog

from biometric_monitor.engine.core import MonitorEngine
from biometric_monitor.engine.state import EngineEvent

logger = structlog.get_logger(__name__)


class LogicalClock:
    """A settable clock that only moves when told to."""

    def __init__(self, start: datetime | None = None) -> None:
        self._now = start or datetime.now()

    def now(self) -> datetime:
        return self._now

    def advance(self, seconds: float = 1.0) -> datetime:
        self._now += timedelta(seconds=seconds)
        return self._now


class TickDriver:
    """Drive an engine with simulated time."""

    def __init__(
        self,
        engine: MonitorEngine,
        clock: LogicalClock | None = None,
        *,
        interval: float = 1.0,
    ) -> None:
        self.engine = engine
        self.clock = clock or LogicalClock()
        self.interval = interval

    def advance(self, ticks: int = 1) -> list[EngineEvent]:
        """Advance the clock *ticks* intervals, ticking the engine after each."""
        events: list[EngineEvent] = []
        for _ in range(ticks):
            events.extend(self.engine.tick(self.clock.advance(self.interval)))
        return events


TickCallback = Callable[[datetime], Awaitable[None]]


class RealtimeTickDriver:
    """Emit a tick every *interval* seconds of wall-clock time.

    The driver never touches the engine itself: *on_tick* hands the tick to
    the single engine owner (normally the ingestion pipeline), which keeps
    ticks ordered with respect to samples.
    """

    def __init__(self, on_tick: TickCallback, *, interval: float = 1.0) -> None:
        self._on_tick = on_tick
        self.interval = interval
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._run(), name="tick-driver")
        logger.info("tick_driver.started", interval=self.interval)

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("tick_driver.stopped")

    async def _run(self) -> None:
        loop = asyncio.get_running_loop()
        next_at = loop.time() + self.interval
        while True:
            await asyncio.sleep(max(0.0, next_at - loop.time()))
            next_at += self.interval
            try:
                await self._on_tick(datetime.now())
            except Exception:
                logger.exception("tick_driver.tick_failed")
