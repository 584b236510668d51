"""Analysis helpers — pandas views over stored sessions and triggers."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Sequence

import pandas as pd

from biometric_monitor.models import ArousalLevel
from biometric_monitor.sessions.models import SessionData
from biometric_monitor.storage.repository import SessionRepository
from biometric_monitor.triggers.models import StressTrigger

_STRESSED = (ArousalLevel.STRESSED.value, ArousalLevel.HIGHLY_AROUSED.value)
_CALM = (ArousalLevel.DEEP_CALM.value, ArousalLevel.RELAXED.value)


def sessions_to_dataframe(sessions: Sequence[SessionData]) -> pd.DataFrame:
    """One row per session, indexed by ``start_time``.

    Columns: the averaged metrics, ``duration_minutes``, ``stress_minutes``,
    ``calm_minutes`` and one ``seconds_<label>`` column per arousal level.
    """
    records: list[dict[str, Any]] = []
    for s in sessions:
        row: dict[str, Any] = {
            "start_time": s.start_time,
            "end_time": s.end_time,
            "duration_minutes": s.duration_minutes,
            "avg_heart_rate": s.avg_heart_rate,
            "avg_hrv": s.avg_hrv,
            "avg_spo2": s.avg_spo2,
            "avg_gsr": s.avg_gsr,
            "avg_temperature": s.avg_temperature,
            "avg_cognitive_score": s.avg_cognitive_score,
            "stress_minutes": s.seconds_in(*_STRESSED) // 60,
            "calm_minutes": s.seconds_in(*_CALM) // 60,
        }
        for level, seconds in s.arousal_distribution.items():
            row[f"seconds_{level.lower().replace(' ', '_')}"] = seconds
        records.append(row)

    df = pd.DataFrame(records)
    if not df.empty:
        df["start_time"] = pd.to_datetime(df["start_time"])
        df = df.set_index("start_time").sort_index()
    return df


async def load_sessions_dataframe(
    start: datetime | None = None,
    end: datetime | None = None,
    *,
    repo: SessionRepository | None = None,
) -> pd.DataFrame:
    repo = repo or SessionRepository()
    return sessions_to_dataframe(await repo.get_range(start, end))


def triggers_to_dataframe(triggers: Sequence[StressTrigger]) -> pd.DataFrame:
    """One row per trigger, indexed by ``timestamp``; snapshot values become columns."""
    records = [
        {
            "timestamp": t.timestamp,
            "type": t.type.value,
            "severity": t.severity.value,
            "intensity": t.intensity,
            "description": t.description,
            **{f"snapshot_{k}": v for k, v in t.biometric_snapshot.items()},
        }
        for t in triggers
    ]
    df = pd.DataFrame(records)
    if not df.empty:
        df["timestamp"] = pd.to_datetime(df["timestamp"])
        df = df.set_index("timestamp").sort_index()
    return df


def compute_summary(df: pd.DataFrame, column: str) -> dict[str, Any]:
    """Summary statistics for *column*; ``{"count": 0}`` when absent or empty."""
    if df.empty or column not in df.columns:
        return {"count": 0}

    series = df[column]
    return {
        "count": int(series.count()),
        "mean": round(float(series.mean()), 2),
        "std": round(float(series.std()), 2) if series.count() > 1 else 0.0,
        "min": float(series.min()),
        "max": float(series.max()),
        "median": float(series.median()),
    }


def daily_stress(df: pd.DataFrame) -> pd.DataFrame:
    """Resample a sessions frame to calendar days.

    ``stress_percentage`` is 0 for days with no recorded minutes.
    """
    if df.empty:
        return df
    daily = df.resample("1D").agg(
        sessions=("duration_minutes", "count"),
        total_minutes=("duration_minutes", "sum"),
        stress_minutes=("stress_minutes", "sum"),
        calm_minutes=("calm_minutes", "sum"),
        avg_cognitive_score=("avg_cognitive_score", "mean"),
    )
    total = daily["total_minutes"].where(daily["total_minutes"] > 0)
    daily["stress_percentage"] = (daily["stress_minutes"] / total * 100).fillna(0.0)
    return daily


def trigger_hour_histogram(df: pd.DataFrame) -> pd.Series:
    """Trigger counts per hour of day (0-23, zero-filled)."""
    hours = pd.Series(0, index=range(24), name="triggers")
    if df.empty:
        return hours
    counts = df.index.hour.value_counts()
    hours.loc[counts.index] = counts.values
    return hours
