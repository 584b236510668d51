"""SQLAlchemy async engine, session factory, and ORM table definitions.

Each table keeps a few indexed columns for querying plus the full record
as its versioned JSON payload (see :mod:`biometric_monitor.storage.records`).
"""

from __future__ import annotations

from datetime import datetime
from pathlib import Path
from typing import AsyncGenerator

import structlog
from sqlalchemy import DateTime, Float, Integer, String, Text, func
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from biometric_monitor.config import get_settings

logger = structlog.get_logger(__name__)


# ── Base ──────────────────────────────────────────────────────

class Base(DeclarativeBase):
    """Shared declarative base for all ORM models."""


# ── ORM tables ────────────────────────────────────────────────

class SessionRow(Base):
    """A completed monitoring session."""

    __tablename__ = "sessions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    start_time: Mapped[datetime] = mapped_column(DateTime, index=True)
    end_time: Mapped[datetime] = mapped_column(DateTime)
    stress_seconds: Mapped[int] = mapped_column(Integer, default=0)
    payload: Mapped[str] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())


class TriggerRow(Base):
    """A detected stress trigger."""

    __tablename__ = "stress_triggers"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    timestamp: Mapped[datetime] = mapped_column(DateTime, index=True)
    trigger_type: Mapped[str] = mapped_column(String(32), index=True)
    severity: Mapped[str] = mapped_column(String(16))
    intensity: Mapped[float] = mapped_column(Float, default=0.0)
    payload: Mapped[str] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())


class ActivityDetectionRow(Base):
    """One activity-recognition result."""

    __tablename__ = "activity_detections"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    timestamp: Mapped[datetime] = mapped_column(DateTime, index=True)
    activity_type: Mapped[str] = mapped_column(String(32))
    payload: Mapped[str] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())


class ActivityTransitionRow(Base):
    """A confident change between two activities."""

    __tablename__ = "activity_transitions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    timestamp: Mapped[datetime] = mapped_column(DateTime, index=True)
    payload: Mapped[str] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())


# ── Engine & session ──────────────────────────────────────────

_engine: AsyncEngine | None = None
_session_factory: async_sessionmaker[AsyncSession] | None = None
_database_url: str | None = None


def _get_engine() -> AsyncEngine:
    global _engine
    if _engine is None:
        _engine = create_async_engine(_database_url or get_settings().database_url, echo=False)
    return _engine


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    global _session_factory
    if _session_factory is None:
        _session_factory = async_sessionmaker(_get_engine(), expire_on_commit=False)
    return _session_factory


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """Dependency-injectable async session generator (for FastAPI)."""
    factory = get_session_factory()
    async with factory() as session:
        yield session


async def configure_database(url: str) -> None:
    """Point the storage layer at *url*, disposing any existing engine."""
    global _engine, _session_factory, _database_url
    if _engine is not None:
        await _engine.dispose()
    _engine = None
    _session_factory = None
    _database_url = url


async def init_db() -> None:
    """Create all tables (idempotent)."""
    url = _database_url or get_settings().database_url
    if url.startswith("sqlite") and ":memory:" not in url:
        # URL format: sqlite+aiosqlite:///path/to/db
        Path(url.split("///", 1)[-1]).parent.mkdir(parents=True, exist_ok=True)

    async with _get_engine().begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("storage.initialised", url=url.split("///", 1)[0])


async def close_db() -> None:
    global _engine, _session_factory
    if _engine is not None:
        await _engine.dispose()
    _engine = None
    _session_factory = None
