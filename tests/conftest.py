"""Shared pytest fixtures."""

from __future__ import annotations

from datetime import datetime, timedelta

import pytest
import structlog

from biometric_monitor.config import get_settings
from biometric_monitor.engine.core import MonitorEngine
from biometric_monitor.engine.driver import LogicalClock, TickDriver
from biometric_monitor.models import ArousalLevel, Reading
from biometric_monitor.sessions.models import SessionData
from biometric_monitor.storage import database
from biometric_monitor.storage.database import close_db, configure_database, init_db

# A Monday, inside the 8-10am stress band.
T0 = datetime(2024, 5, 6, 9, 0, 0)


@pytest.fixture(autouse=True)
def _isolated_settings(tmp_path, monkeypatch):
    """Point every test at its own SQLite file with the wall-clock ticker off."""
    monkeypatch.setenv("BIOMETRIC_MONITOR_DATABASE_URL", f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    monkeypatch.setenv("BIOMETRIC_MONITOR_TICK_DRIVER_ENABLED", "false")
    monkeypatch.setenv("BIOMETRIC_MONITOR_WEBHOOK_URL", "")
    monkeypatch.setattr(database, "_database_url", None)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture(autouse=True)
def _reset_structlog(monkeypatch):
    """Keep CLI tests' global structlog setup from binding loggers to pytest's per-test stderr.

    ``setup_logging`` still runs, but logger caching is turned off so module-level
    loggers never hold on to a capture stream that pytest closes after the test.
    """
    from biometric_monitor import main as main_module

    original = main_module.setup_logging

    def _setup_logging(*args, **kwargs):
        original(*args, **kwargs)
        structlog.configure(cache_logger_on_first_use=False)

    monkeypatch.setattr(main_module, "setup_logging", _setup_logging)
    yield
    structlog.reset_defaults()


@pytest.fixture
async def db():
    """Fresh, initialised database for the current test."""
    await configure_database(get_settings().database_url)
    await init_db()
    yield
    await close_db()


@pytest.fixture
def engine() -> MonitorEngine:
    return MonitorEngine()


@pytest.fixture
def driver(engine: MonitorEngine) -> TickDriver:
    return TickDriver(engine, LogicalClock(T0))


@pytest.fixture
def stressed_reading() -> Reading:
    """Exercise-like vitals with high GSR dispersion."""
    return Reading(heart_rate=130, hrv=8.0, gsr=600.0, temperature=33.0, gsr_variability=0.6, timestamp=T0)


@pytest.fixture
def calm_reading() -> Reading:
    return Reading(heart_rate=58, hrv=45.0, gsr=300.0, temperature=33.5, gsr_variability=0.03, timestamp=T0)


def make_session(
    start: datetime,
    minutes: int = 60,
    *,
    stressed: int = 0,
    highly: int = 0,
    calm: int = 0,
    relaxed: int = 0,
    alert: int = 0,
    avg_hrv: float = 35.0,
    avg_temperature: float = 33.0,
    avg_cognitive_score: float = 75.0,
) -> SessionData:
    """Build a stored session with distribution values given in seconds."""
    dist = {level.value: 0 for level in ArousalLevel if level is not ArousalLevel.INITIALIZING}
    dist[ArousalLevel.STRESSED.value] = stressed
    dist[ArousalLevel.HIGHLY_AROUSED.value] = highly
    dist[ArousalLevel.DEEP_CALM.value] = calm
    dist[ArousalLevel.RELAXED.value] = relaxed
    dist[ArousalLevel.ALERT.value] = alert
    return SessionData(
        start_time=start,
        end_time=start + timedelta(minutes=minutes),
        avg_heart_rate=80.0,
        avg_hrv=avg_hrv,
        avg_spo2=97.0,
        avg_gsr=450.0,
        avg_temperature=avg_temperature,
        avg_cognitive_score=avg_cognitive_score,
        arousal_distribution=dist,
        stress_events=stressed + highly,
        calm_periods=calm + relaxed,
    )
