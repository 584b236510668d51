"""Tests for per-session accumulation."""

from __future__ import annotations

from datetime import datetime, timedelta

from biometric_monitor.models import ArousalLevel, Reading
from biometric_monitor.sessions.accumulator import SessionAccumulator

T0 = datetime(2024, 5, 6, 9, 0, 0)


def _at(seconds: int) -> datetime:
    return T0 + timedelta(seconds=seconds)


class TestSessionAccumulator:
    def test_finish_without_start(self):
        assert SessionAccumulator().finish(T0) is None

    def test_record_without_start_is_ignored(self):
        acc = SessionAccumulator()
        acc.record(Reading(heart_rate=70), ArousalLevel.RELAXED, 80, T0)
        acc.start(_at(10))
        session = acc.finish(_at(20))
        assert session is not None
        assert session.avg_heart_rate == 0.0

    def test_arousal_time_accounting(self):
        acc = SessionAccumulator()
        acc.start(T0)
        reading = Reading(heart_rate=70, hrv=30.0, gsr=400.0, temperature=33.0, spo2=98)
        for s in range(1, 11):
            acc.record(reading, ArousalLevel.RELAXED, 85, _at(s))
        for s in range(11, 21):
            acc.record(reading, ArousalLevel.STRESSED, 65, _at(s))
        session = acc.finish(_at(21))

        assert session is not None
        assert session.arousal_distribution[ArousalLevel.RELAXED.value] == 11
        assert session.arousal_distribution[ArousalLevel.STRESSED.value] == 10
        assert session.stress_events == 10
        assert session.calm_periods == 11
        assert sum(session.arousal_distribution.values()) == session.duration_seconds
        assert session.duration_seconds == 21
        assert session.avg_cognitive_score == 75.0
        assert not acc.active

    def test_distribution_has_every_level(self):
        acc = SessionAccumulator()
        acc.start(T0)
        session = acc.finish(_at(5))
        assert session is not None
        assert set(session.arousal_distribution) == {
            "Deep Calm", "Relaxed", "Alert", "Engaged", "Stressed", "Highly Aroused",
        }
        assert sum(session.arousal_distribution.values()) == 0

    def test_initialising_is_never_counted(self):
        acc = SessionAccumulator()
        acc.start(T0)
        acc.record(Reading(), ArousalLevel.INITIALIZING, 75, _at(1))
        acc.record(Reading(gsr=400), ArousalLevel.ALERT, 75, _at(30))
        session = acc.finish(_at(40))
        assert session is not None
        assert "Initializing..." not in session.arousal_distribution
        assert session.arousal_distribution["Alert"] == 10

    def test_zero_channels_excluded_from_averages(self):
        acc = SessionAccumulator()
        acc.start(T0)
        acc.record(Reading(heart_rate=80, hrv=0.0, gsr=0.0), ArousalLevel.ALERT, 80, _at(1))
        acc.record(Reading(heart_rate=0, hrv=40.0, gsr=500.0), ArousalLevel.ALERT, 70, _at(2))
        session = acc.finish(_at(3))
        assert session is not None
        assert session.avg_heart_rate == 80.0
        assert session.avg_hrv == 40.0
        assert session.avg_gsr == 500.0
        assert session.avg_spo2 == 0.0
        assert session.avg_cognitive_score == 75.0

    def test_restart_discards_unfinished_data(self):
        acc = SessionAccumulator()
        acc.start(T0)
        acc.record(Reading(heart_rate=150), ArousalLevel.HIGHLY_AROUSED, 65, _at(1))
        acc.start(_at(100))
        acc.record(Reading(heart_rate=60), ArousalLevel.RELAXED, 85, _at(101))
        session = acc.finish(_at(111))
        assert session is not None
        assert session.start_time == _at(100)
        assert session.avg_heart_rate == 60.0
        assert session.arousal_distribution["Highly Aroused"] == 0
        assert session.arousal_distribution["Relaxed"] == 11
