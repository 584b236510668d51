"""Tests for stress-trigger detection, the trigger log and trigger analysis."""

from __future__ import annotations

from datetime import datetime, timedelta

import pytest

from biometric_monitor.models import ActivityType, ArousalLevel, TriggerSeverity, TriggerType
from biometric_monitor.triggers.analysis import analyze_triggers, mitigation_strategies, strategy_for
from biometric_monitor.triggers.detector import (
    TriggerLog,
    TriggerSignals,
    calculate_intensity,
    calculate_severity,
    detect_trigger,
    is_known_stress_time,
)
from biometric_monitor.triggers.models import StressTrigger, TriggerPattern

MORNING = datetime(2024, 5, 6, 9, 0, 0)
NIGHT = datetime(2024, 5, 6, 23, 0, 0)

BASELINE = TriggerSignals(
    heart_rate=75, hrv=35.0, gsr=400.0, gsr_variability=0.1, temperature=33.0, arousal=ArousalLevel.RELAXED,
)


def _signals(**changes) -> TriggerSignals:
    fields = {
        "heart_rate": BASELINE.heart_rate,
        "hrv": BASELINE.hrv,
        "gsr": BASELINE.gsr,
        "gsr_variability": BASELINE.gsr_variability,
        "temperature": BASELINE.temperature,
        "arousal": BASELINE.arousal,
    }
    fields.update(changes)
    return TriggerSignals(**fields)


def _trigger(type_: TriggerType, ts: datetime, severity=TriggerSeverity.MODERATE, intensity=0.5) -> StressTrigger:
    return StressTrigger(type=type_, severity=severity, timestamp=ts, description="test", intensity=intensity)


# ── Intensity & severity ─────────────────────────────────────


class TestIntensity:
    def test_calm_vitals_are_zero(self):
        assert calculate_intensity({"heartRate": 70, "hrv": 40, "gsrVariability": 0.1}) == 0.0

    def test_tiers_accumulate_and_clamp(self):
        snapshot = {"heartRate": 130, "hrv": 8, "gsrVariability": 0.6}
        assert calculate_intensity(snapshot) == 1.0

    def test_partial(self):
        assert calculate_intensity({"heartRate": 105, "hrv": 40, "gsrVariability": 0.1}) == pytest.approx(0.3)

    @pytest.mark.parametrize(
        ("intensity", "severity"),
        [
            (0.0, TriggerSeverity.MILD),
            (0.39, TriggerSeverity.MILD),
            (0.4, TriggerSeverity.MODERATE),
            (0.6, TriggerSeverity.SEVERE),
            (0.8, TriggerSeverity.CRITICAL),
            (1.0, TriggerSeverity.CRITICAL),
        ],
    )
    def test_severity_tiers(self, intensity, severity):
        assert calculate_severity(intensity) is severity

    def test_known_stress_hours(self):
        assert is_known_stress_time(9)
        assert is_known_stress_time(19)
        assert not is_known_stress_time(10)
        assert not is_known_stress_time(23)


# ── Detection rules ──────────────────────────────────────────


class TestDetectTrigger:
    def test_no_change_no_trigger(self):
        assert detect_trigger(BASELINE, BASELINE, now=NIGHT) is None

    def test_activity_change_into_stressed(self):
        trigger = detect_trigger(
            BASELINE, BASELINE, ActivityType.STRESSED, ActivityType.WORKING, now=NIGHT,
        )
        assert trigger is not None
        assert trigger.type is TriggerType.ACTIVITY_CHANGE
        assert trigger.description == "Transition from Working to Stressed"
        assert trigger.recommendation.startswith("Take immediate action")

    def test_activity_change_has_priority_over_spike(self):
        current = _signals(heart_rate=110)
        trigger = detect_trigger(
            current, BASELINE, ActivityType.WORKING, ActivityType.RESTING, now=NIGHT,
        )
        assert trigger is not None
        assert trigger.type is TriggerType.ACTIVITY_CHANGE

    def test_other_activity_change_ignored(self):
        trigger = detect_trigger(
            BASELINE, BASELINE, ActivityType.RESTING, ActivityType.WORKING, now=NIGHT,
        )
        assert trigger is None

    def test_physiological_spike(self):
        current = _signals(heart_rate=100, hrv=20.0, gsr_variability=0.45)
        trigger = detect_trigger(current, BASELINE, now=NIGHT)
        assert trigger is not None
        assert trigger.type is TriggerType.PHYSIOLOGICAL
        assert trigger.description == (
            "Rapid physiological changes detected: HR +25 BPM, HRV -15.0ms, GSR +0.35"
        )
        assert trigger.biometric_snapshot["hrChange"] == 25
        assert trigger.biometric_snapshot["gsr"] == 400.0

    def test_first_check_against_empty_signals_spikes(self):
        current = TriggerSignals(
            heart_rate=130, hrv=8.0, gsr=600.0, gsr_variability=0.6, temperature=33.0,
            arousal=ArousalLevel.STRESSED,
        )
        trigger = detect_trigger(current, TriggerSignals(), now=MORNING)
        assert trigger is not None
        assert trigger.type is TriggerType.PHYSIOLOGICAL
        assert trigger.intensity == 1.0
        assert trigger.severity is TriggerSeverity.CRITICAL

    def test_arousal_escalation(self):
        current = _signals(arousal=ArousalLevel.STRESSED)
        trigger = detect_trigger(current, BASELINE, now=NIGHT)
        assert trigger is not None
        assert trigger.type is TriggerType.PATTERN
        assert trigger.description == "Arousal shift: Relaxed → Stressed"
        assert trigger.context == "Unknown activity"

    def test_escalation_from_engaged_ignored(self):
        previous = _signals(arousal=ArousalLevel.ENGAGED)
        current = _signals(arousal=ArousalLevel.STRESSED)
        assert detect_trigger(current, previous, now=NIGHT) is None

    def test_environmental(self):
        previous = _signals(temperature=37.2)
        current = _signals(temperature=37.8)
        trigger = detect_trigger(current, previous, ActivityType.RESTING, ActivityType.RESTING, now=NIGHT)
        assert trigger is not None
        assert trigger.type is TriggerType.ENVIRONMENTAL

    def test_environmental_suppressed_while_exercising(self):
        previous = _signals(temperature=37.2)
        current = _signals(temperature=37.8)
        trigger = detect_trigger(current, previous, ActivityType.EXERCISING, ActivityType.EXERCISING, now=NIGHT)
        assert trigger is None

    def test_time_of_day(self):
        previous = _signals(arousal=ArousalLevel.STRESSED)
        current = _signals(arousal=ArousalLevel.STRESSED)
        trigger = detect_trigger(current, previous, now=MORNING)
        assert trigger is not None
        assert trigger.type is TriggerType.TIME_OF_DAY
        assert trigger.description == "Recurring stress during morning hours (8-9am)"
        assert detect_trigger(current, previous, now=NIGHT) is None


# ── Trigger log ──────────────────────────────────────────────


class TestTriggerLog:
    def test_oldest_evicted_first(self):
        log = TriggerLog(capacity=3)
        for i in range(5):
            log.append(_trigger(TriggerType.PHYSIOLOGICAL, MORNING + timedelta(minutes=i)))
        assert len(log) == 3
        assert [t.timestamp.minute for t in log] == [2, 3, 4]

    def test_seeded(self):
        seed = [_trigger(TriggerType.WORKLOAD, MORNING)]
        log = TriggerLog(10, seed)
        assert log.items() == seed
        log.clear()
        assert len(log) == 0


# ── Analysis ─────────────────────────────────────────────────


class TestAnalysis:
    def test_empty(self):
        analysis = analyze_triggers([])
        assert analysis.total_triggers == 0
        assert analysis.most_common_type is TriggerType.UNKNOWN
        assert analysis.overall_risk == "Low Risk"
        assert mitigation_strategies(analysis) == []

    def test_grouping_and_patterns(self):
        triggers = [
            _trigger(TriggerType.PHYSIOLOGICAL, MORNING, TriggerSeverity.CRITICAL, 1.0),
            _trigger(TriggerType.PHYSIOLOGICAL, MORNING + timedelta(minutes=10), TriggerSeverity.CRITICAL, 0.9),
            _trigger(TriggerType.PHYSIOLOGICAL, MORNING + timedelta(days=1), TriggerSeverity.SEVERE, 0.8),
            _trigger(TriggerType.TIME_OF_DAY, NIGHT, TriggerSeverity.MILD, 0.1),
        ]
        analysis = analyze_triggers(triggers)

        assert analysis.total_triggers == 4
        assert analysis.triggers_by_type == {TriggerType.PHYSIOLOGICAL: 3, TriggerType.TIME_OF_DAY: 1}
        assert analysis.triggers_by_hour == {9: 3, 23: 1}
        assert analysis.triggers_by_day == {1: 3, 2: 1}
        assert analysis.avg_intensity == pytest.approx(0.7)
        assert analysis.most_common_type is TriggerType.PHYSIOLOGICAL
        assert analysis.critical_triggers == 2

        assert len(analysis.patterns) == 1
        pattern = analysis.patterns[0]
        assert pattern.primary_type is TriggerType.PHYSIOLOGICAL
        assert pattern.description == "Recurring physiological stress pattern (3 occurrences)"
        assert pattern.average_intensity == pytest.approx(0.9)
        assert pattern.common_days_label == "Mon, Tue"

        assert analysis.insights == [
            "🆘 2 critical stress events detected - immediate attention recommended",
            "❤️ Most common trigger: Physiological (3 events)",
            "⏰ Peak stress time: morning hours (8-9am)",
        ]

    def test_pattern_needs_three_occurrences(self):
        two = [
            _trigger(TriggerType.WORKLOAD, MORNING),
            _trigger(TriggerType.WORKLOAD, MORNING + timedelta(hours=1)),
        ]
        assert analyze_triggers(two).patterns == []

        three = two + [_trigger(TriggerType.WORKLOAD, MORNING + timedelta(hours=2))]
        patterns = analyze_triggers(three).patterns
        assert [p.primary_type for p in patterns] == [TriggerType.WORKLOAD]
        assert patterns[0].occurrences == 3

    def test_strategies_top_three_by_frequency(self):
        triggers = (
            [_trigger(TriggerType.WORKLOAD, MORNING)] * 4
            + [_trigger(TriggerType.TIME_OF_DAY, MORNING)] * 3
            + [_trigger(TriggerType.SOCIAL, MORNING)] * 2
            + [_trigger(TriggerType.ENVIRONMENTAL, MORNING)]
        )
        strategies = mitigation_strategies(analyze_triggers(triggers))
        assert [s.trigger_type for s in strategies] == [
            TriggerType.WORKLOAD, TriggerType.TIME_OF_DAY, TriggerType.SOCIAL,
        ]
        assert strategies[2].strategy == "General Stress Management"

    def test_priority_scales_with_occurrences(self):
        assert strategy_for(TriggerType.TIME_OF_DAY, 10).priority == 5
        assert strategy_for(TriggerType.TIME_OF_DAY, 2).priority == 3
        assert strategy_for(TriggerType.PHYSIOLOGICAL, 1).priority_label == "High Priority"

    def test_pattern_common_time(self):
        pattern = TriggerPattern(
            primary_type=TriggerType.WORKLOAD, description="", occurrences=5, common_hours=[14, 15, 16],
        )
        assert pattern.common_time == "Afternoon (12-5pm)"
        assert pattern.frequency == "Occasional"
