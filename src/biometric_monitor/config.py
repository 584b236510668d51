"""Centralised application settings loaded from environment / .env file."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict

_PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent


def _resolve_db_dir() -> Path:
    """Return (and create) the directory that holds the SQLite file."""
    d = _PROJECT_ROOT / "data"
    d.mkdir(parents=True, exist_ok=True)
    return d


_DEFAULT_DB_URL = f"sqlite+aiosqlite:///{_resolve_db_dir() / 'biometric_monitor.db'}"


class Settings(BaseSettings):
    """All runtime configuration for the biometric monitor.

    Values are read from environment variables first, then from a *.env* file
    located at the project root.  Every variable lives in the flat
    ``BIOMETRIC_MONITOR_`` namespace.

    Classification thresholds are deliberately *not* here: they live in
    :class:`~biometric_monitor.thresholds.EngineThresholds` so they can be
    passed explicitly into each classifier.
    """

    model_config = SettingsConfigDict(
        env_prefix="BIOMETRIC_MONITOR_",
        env_file=str(_PROJECT_ROOT / ".env"),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── Database ──────────────────────────────────────────────
    database_url: str = _DEFAULT_DB_URL

    # ── API server ────────────────────────────────────────────
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    cors_origins: str = "*"  # comma-separated origins, or "*" for all

    # ── Notifications ─────────────────────────────────────────
    notifications_enabled: bool = True
    notification_cooldown_minutes: int = 5
    webhook_url: str = ""

    # ── Engine cadence ────────────────────────────────────────
    tick_interval_seconds: float = 1.0
    tick_driver_enabled: bool = True
    activity_check_every_ticks: int = 30
    trigger_check_every_ticks: int = 10

    # ── Buffers ───────────────────────────────────────────────
    waveform_max_points: int = 100
    waveform_time_window_seconds: float = 30.0
    trigger_log_capacity: int = 100
    activity_history_capacity: int = 100

    # ── GSR variability ───────────────────────────────────────
    gsr_variability_window: int = 20  # raw GSR samples per dispersion window
    gsr_variability_alpha: float = 0.3  # EWMA smoothing factor

    # ── Logging ───────────────────────────────────────────────
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"


@lru_cache
def get_settings() -> Settings:
    """Return a cached :class:`Settings` singleton."""
    return Settings()
