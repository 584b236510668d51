"""Data export utilities for offline analysis."""

from __future__ import annotations

import csv
import json
from datetime import datetime
from pathlib import Path

import structlog

from biometric_monitor.storage import records
from biometric_monitor.storage.repository import SessionRepository, TriggerRepository

logger = structlog.get_logger(__name__)

_SESSION_COLUMNS = [
    "start_time", "end_time", "duration_minutes", "avg_heart_rate", "avg_hrv",
    "avg_spo2", "avg_gsr", "avg_temperature", "avg_cognitive_score",
    "stress_events", "calm_periods",
]


async def export_sessions_csv(
    output_path: str | Path,
    start: datetime | None = None,
    end: datetime | None = None,
    *,
    repo: SessionRepository | None = None,
) -> Path:
    """Write one CSV row per stored session; return the output path."""
    repo = repo or SessionRepository()
    sessions = await repo.get_range(start, end)

    output = Path(output_path)
    output.parent.mkdir(parents=True, exist_ok=True)

    with output.open("w", newline="", encoding="utf-8") as f:
        writer = csv.writer(f)
        writer.writerow(_SESSION_COLUMNS)
        for s in sessions:
            writer.writerow([
                s.start_time.isoformat(), s.end_time.isoformat(), s.duration_minutes,
                s.avg_heart_rate, s.avg_hrv, s.avg_spo2, s.avg_gsr, s.avg_temperature,
                s.avg_cognitive_score, s.stress_events, s.calm_periods,
            ])

    logger.info("export.csv_written", path=str(output), rows=len(sessions))
    return output


async def export_sessions_json(
    output_path: str | Path,
    start: datetime | None = None,
    end: datetime | None = None,
    *,
    repo: SessionRepository | None = None,
) -> Path:
    """Write sessions in their persisted JSON shape."""
    repo = repo or SessionRepository()
    sessions = await repo.get_range(start, end)

    output = Path(output_path)
    output.parent.mkdir(parents=True, exist_ok=True)
    with output.open("w", encoding="utf-8") as f:
        json.dump([records.encode_session(s) for s in sessions], f, indent=2, ensure_ascii=False)

    logger.info("export.json_written", path=str(output), rows=len(sessions))
    return output


async def export_triggers_json(
    output_path: str | Path,
    *,
    limit: int = 1000,
    repo: TriggerRepository | None = None,
) -> Path:
    repo = repo or TriggerRepository()
    triggers = await repo.latest(limit)

    output = Path(output_path)
    output.parent.mkdir(parents=True, exist_ok=True)
    with output.open("w", encoding="utf-8") as f:
        json.dump([records.encode_trigger(t) for t in triggers], f, indent=2, ensure_ascii=False)

    logger.info("export.json_written", path=str(output), rows=len(triggers))
    return output
