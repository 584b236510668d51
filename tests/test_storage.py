"""Tests for the repositories, research dataframes and exports."""

from __future__ import annotations

import csv
import json
from datetime import timedelta

import pytest

from conftest import T0, make_session

from biometric_monitor.activity.models import ActivityDetection, ActivityTransition
from biometric_monitor.models import ActivityType, TriggerSeverity, TriggerType
from biometric_monitor.research.analysis import (
    compute_summary,
    daily_stress,
    load_sessions_dataframe,
    sessions_to_dataframe,
    trigger_hour_histogram,
    triggers_to_dataframe,
)
from biometric_monitor.research.export import export_sessions_csv, export_sessions_json, export_triggers_json
from biometric_monitor.storage.database import SessionRow, get_session_factory
from biometric_monitor.storage.repository import ActivityRepository, SessionRepository, TriggerRepository
from biometric_monitor.triggers.models import StressTrigger


def _trigger(at, kind=TriggerType.PHYSIOLOGICAL, intensity=0.5) -> StressTrigger:
    return StressTrigger(
        type=kind,
        severity=TriggerSeverity.MODERATE,
        timestamp=at,
        description="test",
        intensity=intensity,
        biometric_snapshot={"heartRate": 110.0},
    )


# ── Repositories ─────────────────────────────────────────────


class TestSessionRepository:
    @pytest.mark.asyncio
    async def test_save_and_range(self, db):
        repo = SessionRepository()
        await repo.save(make_session(T0 + timedelta(days=1), stressed=600))
        await repo.save(make_session(T0, relaxed=1800))
        assert await repo.count() == 2

        everything = await repo.get_range()
        assert [s.start_time for s in everything] == [T0, T0 + timedelta(days=1)]
        assert everything[1].arousal_distribution["Stressed"] == 600

        later = await repo.get_range(start=T0 + timedelta(hours=1))
        assert len(later) == 1

    @pytest.mark.asyncio
    async def test_undecodable_row_skipped(self, db):
        repo = SessionRepository()
        await repo.save(make_session(T0))
        async with get_session_factory()() as session:
            session.add(SessionRow(start_time=T0, end_time=T0, payload="{not json"))
            await session.commit()

        assert await repo.count() == 2
        assert len(await repo.get_range()) == 1

    @pytest.mark.asyncio
    async def test_delete_before(self, db):
        repo = SessionRepository()
        await repo.save(make_session(T0 - timedelta(days=40)))
        await repo.save(make_session(T0))
        assert await repo.delete_before(T0 - timedelta(days=30)) == 1
        assert await repo.count() == 1


class TestTriggerRepository:
    @pytest.mark.asyncio
    async def test_latest_is_oldest_first(self, db):
        repo = TriggerRepository()
        for i in range(5):
            await repo.save(_trigger(T0 + timedelta(minutes=i), intensity=i / 10))
        latest = await repo.latest(3)
        assert [t.timestamp for t in latest] == [T0 + timedelta(minutes=m) for m in (2, 3, 4)]
        assert latest[-1].biometric_snapshot == {"heartRate": 110.0}

    @pytest.mark.asyncio
    async def test_clear(self, db):
        repo = TriggerRepository()
        await repo.save(_trigger(T0))
        await repo.clear()
        assert await repo.latest() == []


class TestActivityRepository:
    @pytest.mark.asyncio
    async def test_detections_and_transitions(self, db):
        repo = ActivityRepository()
        for i, kind in enumerate([ActivityType.RESTING, ActivityType.WORKING]):
            await repo.save_detection(
                ActivityDetection(activity_type=kind, confidence=0.8, timestamp=T0 + timedelta(minutes=i)),
            )
        await repo.save_transition(
            ActivityTransition(
                from_activity=ActivityType.RESTING,
                to_activity=ActivityType.WORKING,
                timestamp=T0 + timedelta(minutes=1),
            ),
        )

        detections = await repo.latest_detections()
        assert [d.activity_type for d in detections] == [ActivityType.RESTING, ActivityType.WORKING]
        transitions = await repo.latest_transitions()
        assert transitions[0].to_activity is ActivityType.WORKING


# ── Research dataframes ──────────────────────────────────────


class TestResearchAnalysis:
    def test_sessions_dataframe(self):
        df = sessions_to_dataframe([
            make_session(T0 + timedelta(days=1), calm=3600),
            make_session(T0, stressed=2400, relaxed=600),
        ])
        assert list(df.index) == sorted(df.index)
        assert df.iloc[0]["stress_minutes"] == 40
        assert df.iloc[0]["seconds_relaxed"] == 600
        assert df.iloc[1]["seconds_deep_calm"] == 3600

    def test_empty_frames(self):
        assert sessions_to_dataframe([]).empty
        assert daily_stress(sessions_to_dataframe([])).empty
        assert compute_summary(sessions_to_dataframe([]), "avg_hrv") == {"count": 0}

    def test_daily_stress_zero_fills_gap_days(self):
        df = sessions_to_dataframe([
            make_session(T0, stressed=2400),
            make_session(T0 + timedelta(days=2), calm=3600),
        ])
        daily = daily_stress(df)
        assert len(daily) == 3
        assert list(daily["sessions"]) == [1, 0, 1]
        assert daily["stress_percentage"].iloc[0] == pytest.approx(200 / 3)
        assert daily["stress_percentage"].iloc[1] == 0.0

    def test_compute_summary(self):
        df = sessions_to_dataframe([make_session(T0, avg_hrv=30.0), make_session(T0, avg_hrv=40.0)])
        summary = compute_summary(df, "avg_hrv")
        assert summary["count"] == 2
        assert summary["mean"] == 35.0
        assert summary["min"] == 30.0
        assert summary["median"] == 35.0

    def test_trigger_frames(self):
        triggers = [
            _trigger(T0.replace(hour=14)),
            _trigger(T0),
            _trigger(T0.replace(hour=14, minute=30)),
        ]
        df = triggers_to_dataframe(triggers)
        assert df.index[0] == T0
        assert "snapshot_heartRate" in df.columns

        hist = trigger_hour_histogram(df)
        assert len(hist) == 24
        assert hist[9] == 1
        assert hist[14] == 2
        assert hist.sum() == 3

    @pytest.mark.asyncio
    async def test_load_from_repository(self, db):
        await SessionRepository().save(make_session(T0, stressed=600))
        df = await load_sessions_dataframe()
        assert len(df) == 1
        assert df.iloc[0]["stress_minutes"] == 10


# ── Exports ──────────────────────────────────────────────────


class TestExport:
    @pytest.mark.asyncio
    async def test_sessions_csv(self, db, tmp_path):
        await SessionRepository().save(make_session(T0, minutes=45, stressed=600))
        path = await export_sessions_csv(tmp_path / "out" / "sessions.csv")
        with path.open(encoding="utf-8") as f:
            rows = list(csv.DictReader(f))
        assert len(rows) == 1
        assert rows[0]["start_time"] == T0.isoformat()
        assert rows[0]["duration_minutes"] == "45"
        assert rows[0]["stress_events"] == "600"

    @pytest.mark.asyncio
    async def test_sessions_json_uses_stored_shape(self, db, tmp_path):
        await SessionRepository().save(make_session(T0))
        path = await export_sessions_json(tmp_path / "sessions.json")
        data = json.loads(path.read_text(encoding="utf-8"))
        assert data[0]["schemaVersion"] == 1
        assert data[0]["startTime"] == T0.isoformat()

    @pytest.mark.asyncio
    async def test_triggers_json(self, db, tmp_path):
        await TriggerRepository().save(_trigger(T0, kind=TriggerType.WORKLOAD))
        path = await export_triggers_json(tmp_path / "triggers.json")
        data = json.loads(path.read_text(encoding="utf-8"))
        assert data[0]["type"] == "workload"
