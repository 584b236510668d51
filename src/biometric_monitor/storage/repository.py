"""Data-access layer — thin async wrappers around SQLAlchemy queries.

Reads decode each row's JSON payload; a row that fails to decode is
skipped with a ``storage.decode_skipped`` warning instead of failing the
whole query.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any, AsyncIterator, Callable, Sequence, TypeVar

import structlog
from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from biometric_monitor.activity.models import ActivityDetection, ActivityTransition
from biometric_monitor.sessions.models import SessionData
from biometric_monitor.storage import records
from biometric_monitor.storage.database import (
    ActivityDetectionRow,
    ActivityTransitionRow,
    SessionRow,
    TriggerRow,
    get_session_factory,
)
from biometric_monitor.triggers.models import StressTrigger

logger = structlog.get_logger(__name__)

T = TypeVar("T")


def _decode_rows(
    rows: Sequence[Any],
    decoder: Callable[[dict[str, Any]], T],
    table: str,
) -> list[T]:
    out: list[T] = []
    for row in rows:
        try:
            out.append(records.loads(decoder, row.payload))
        except records.RecordDecodeError as exc:
            logger.warning("storage.decode_skipped", table=table, row_id=row.id, error=str(exc))
    return out


class BaseRepository:
    """Shared base with session management for all repositories."""

    def __init__(self, session: AsyncSession | None = None) -> None:
        self._external_session = session

    @asynccontextmanager
    async def _session(self) -> AsyncIterator[AsyncSession]:
        if self._external_session is not None:
            yield self._external_session
            return
        async with get_session_factory()() as session:
            yield session


class SessionRepository(BaseRepository):
    """Persist and load :class:`SessionData` records."""

    async def save(self, session_data: SessionData) -> None:
        async with self._session() as session:
            session.add(
                SessionRow(
                    start_time=session_data.start_time,
                    end_time=session_data.end_time,
                    stress_seconds=session_data.stress_events,
                    payload=records.dumps(records.encode_session, session_data),
                ),
            )
            await session.commit()

    async def get_range(
        self,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> list[SessionData]:
        stmt = select(SessionRow).order_by(SessionRow.start_time.asc())
        if start is not None:
            stmt = stmt.where(SessionRow.start_time >= start)
        if end is not None:
            stmt = stmt.where(SessionRow.start_time <= end)
        async with self._session() as session:
            rows = (await session.execute(stmt)).scalars().all()
        return _decode_rows(rows, records.decode_session, SessionRow.__tablename__)

    async def count(self) -> int:
        async with self._session() as session:
            result = await session.execute(select(func.count()).select_from(SessionRow))
            return result.scalar() or 0

    async def delete_before(self, cutoff: datetime) -> int:
        """Drop sessions that started before *cutoff*; return how many."""
        async with self._session() as session:
            result = await session.execute(delete(SessionRow).where(SessionRow.start_time < cutoff))
            await session.commit()
            return result.rowcount or 0


class TriggerRepository(BaseRepository):
    """Persist and load :class:`StressTrigger` records."""

    async def save(self, trigger: StressTrigger) -> None:
        async with self._session() as session:
            session.add(
                TriggerRow(
                    timestamp=trigger.timestamp,
                    trigger_type=trigger.type.value,
                    severity=trigger.severity.value,
                    intensity=trigger.intensity,
                    payload=records.dumps(records.encode_trigger, trigger),
                ),
            )
            await session.commit()

    async def latest(self, limit: int = 100) -> list[StressTrigger]:
        """The newest *limit* triggers, oldest first."""
        stmt = select(TriggerRow).order_by(TriggerRow.timestamp.desc(), TriggerRow.id.desc()).limit(limit)
        async with self._session() as session:
            rows = (await session.execute(stmt)).scalars().all()
        return _decode_rows(list(reversed(rows)), records.decode_trigger, TriggerRow.__tablename__)

    async def clear(self) -> None:
        async with self._session() as session:
            await session.execute(delete(TriggerRow))
            await session.commit()


class ActivityRepository(BaseRepository):
    """Persist and load activity detections and transitions."""

    async def save_detection(self, detection: ActivityDetection) -> None:
        async with self._session() as session:
            session.add(
                ActivityDetectionRow(
                    timestamp=detection.timestamp,
                    activity_type=detection.activity_type.value,
                    payload=records.dumps(records.encode_detection, detection),
                ),
            )
            await session.commit()

    async def save_transition(self, transition: ActivityTransition) -> None:
        async with self._session() as session:
            session.add(
                ActivityTransitionRow(
                    timestamp=transition.timestamp,
                    payload=records.dumps(records.encode_transition, transition),
                ),
            )
            await session.commit()

    async def latest_detections(self, limit: int = 100) -> list[ActivityDetection]:
        stmt = select(ActivityDetectionRow).order_by(ActivityDetectionRow.id.desc()).limit(limit)
        async with self._session() as session:
            rows = (await session.execute(stmt)).scalars().all()
        return _decode_rows(list(reversed(rows)), records.decode_detection, ActivityDetectionRow.__tablename__)

    async def latest_transitions(self, limit: int = 100) -> list[ActivityTransition]:
        stmt = select(ActivityTransitionRow).order_by(ActivityTransitionRow.id.desc()).limit(limit)
        async with self._session() as session:
            rows = (await session.execute(stmt)).scalars().all()
        return _decode_rows(list(reversed(rows)), records.decode_transition, ActivityTransitionRow.__tablename__)
