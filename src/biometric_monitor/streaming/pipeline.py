"""Async pipeline that serialises every engine mutation through one owner.

Producers (sample sources, the API, the realtime tick driver) publish
samples, readings and commands onto an :class:`asyncio.Queue`.  A single
consumer loop applies them to the :class:`MonitorEngine` in arrival
order and fans the resulting events out to registered consumers
(storage, notifications, WebSocket broadcast).
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Awaitable, Callable, Union

import structlog

from biometric_monitor.collectors.base import SampleSource
from biometric_monitor.engine.core import MonitorEngine
from biometric_monitor.engine.state import EngineEvent
from biometric_monitor.models import RawSample, Reading

logger = structlog.get_logger(__name__)


class CommandKind(str, Enum):
    TICK = "tick"
    START_SESSION = "start_session"
    STOP_SESSION = "stop_session"


@dataclass(frozen=True, slots=True)
class Command:
    kind: CommandKind
    now: datetime | None = None


PipelineItem = Union[RawSample, Reading, Command]
EventConsumer = Callable[[EngineEvent], Awaitable[None]]


class EnginePipeline:
    """In-process async pipeline owning a :class:`MonitorEngine`."""

    def __init__(self, engine: MonitorEngine, maxsize: int = 10_000) -> None:
        self.engine = engine
        self._queue: asyncio.Queue[tuple[PipelineItem, asyncio.Future[list[EngineEvent]] | None]] = (
            asyncio.Queue(maxsize=maxsize)
        )
        self._consumers: list[EventConsumer] = []
        self._running = False
        self._processed_total = 0

    # ── Configuration ─────────────────────────────────────────

    def add_consumer(self, fn: EventConsumer) -> None:
        """Register an async callback that receives every engine event."""
        self._consumers.append(fn)

    # ── Producer side ─────────────────────────────────────────

    async def publish(self, item: PipelineItem) -> None:
        """Enqueue an item without waiting for it to be applied."""
        await self._queue.put((item, None))

    async def publish_batch(self, items: list[PipelineItem]) -> None:
        for item in items:
            await self._queue.put((item, None))

    async def ingest(self, source: SampleSource) -> int:
        """Publish every sample *source* yields; return how many were queued."""
        count = 0
        try:
            async for sample in source.stream():
                await self._queue.put((sample, None))
                count += 1
        finally:
            await source.close()
        logger.info("stream_pipeline.source_drained", source=source.name, samples=count)
        return count

    async def submit(self, item: PipelineItem) -> list[EngineEvent]:
        """Enqueue *item* and wait for the events it produced."""
        future: asyncio.Future[list[EngineEvent]] = asyncio.get_running_loop().create_future()
        await self._queue.put((item, future))
        return await future

    async def tick(self, now: datetime | None = None) -> None:
        await self.publish(Command(CommandKind.TICK, now))

    # ── Consumer loop ─────────────────────────────────────────

    def apply(self, item: PipelineItem) -> list[EngineEvent]:
        """Apply one item to the engine synchronously."""
        if isinstance(item, RawSample):
            return self.engine.handle_sample(item)
        if isinstance(item, Reading):
            return self.engine.handle_reading(item)
        if item.kind is CommandKind.TICK:
            return self.engine.tick(item.now)
        if item.kind is CommandKind.START_SESSION:
            return self.engine.start_session(item.now)
        return self.engine.stop_session(item.now)

    async def dispatch(self, events: list[EngineEvent]) -> None:
        for event in events:
            for consumer in self._consumers:
                try:
                    await consumer(event)
                except Exception as exc:
                    logger.error(
                        "stream_pipeline.consumer_error",
                        consumer=getattr(consumer, "__qualname__", repr(consumer)),
                        event=event.kind.value,
                        error=str(exc),
                    )

    async def start(self) -> None:
        """Run the consumer loop (run as a background task)."""
        self._running = True
        logger.info("stream_pipeline.started", consumers=len(self._consumers))
        last_stats_time = time.monotonic()

        while self._running:
            try:
                item, future = await asyncio.wait_for(self._queue.get(), timeout=1.0)
            except asyncio.TimeoutError:
                continue

            try:
                events = self.apply(item)
            except Exception as exc:
                logger.exception("stream_pipeline.apply_failed", item=type(item).__name__)
                if future is not None and not future.done():
                    future.set_exception(exc)
                self._queue.task_done()
                continue

            await self.dispatch(events)
            if future is not None and not future.done():
                future.set_result(events)

            self._processed_total += 1
            self._queue.task_done()

            now = time.monotonic()
            if now - last_stats_time >= 60:
                logger.info(
                    "stream_pipeline.stats",
                    processed_total=self._processed_total,
                    queue_pending=self._queue.qsize(),
                )
                last_stats_time = now

    async def stop(self) -> None:
        """Gracefully stop the consumer loop."""
        self._running = False
        logger.info("stream_pipeline.stopped", processed_total=self._processed_total)

    async def drain(self) -> None:
        """Wait until every queued item has been applied."""
        await self._queue.join()

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    @property
    def processed_total(self) -> int:
        return self._processed_total
