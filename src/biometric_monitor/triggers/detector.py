"""Stress-trigger detection — delta rules over consecutive trigger checks.

:func:`detect_trigger` compares the current signals against those seen at
the previous check and emits at most one :class:`StressTrigger`.  Rules are
evaluated in a fixed priority order and the first match wins:

1. activity change (into *stressed*, or *resting* → *working*);
2. physiological spike (HR rise, HRV drop or GSR-variability rise);
3. arousal escalation from a calm/alert level into a stressed one;
4. environmental temperature rise above fever level while not exercising;
5. stressed arousal during a known stress hour.

The GSR signal compared and scored here is the GSR *variability* (0..1
scale); the raw conductance is kept in the biometric snapshot only.
"""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, Iterator

import structlog

from biometric_monitor.models import (
    ACTIVITY_META,
    ActivityType,
    ArousalLevel,
    TriggerSeverity,
    TriggerType,
)
from biometric_monitor.thresholds import DEFAULT_THRESHOLDS, EngineThresholds
from biometric_monitor.triggers.models import StressTrigger

logger = structlog.get_logger(__name__)

# (first hour, last hour, description, recommendation)
_TIME_BANDS: tuple[tuple[int, int, str, str], ...] = (
    (8, 9, "morning hours (8-9am)",
     "Morning stress detected. Consider earlier wake time or calming morning routine."),
    (12, 13, "midday period (12-1pm)",
     "Midday stress. Ensure proper lunch break and hydration."),
    (14, 16, "afternoon (2-4pm)",
     "Afternoon dip. Take short breaks, go for walk, or have healthy snack."),
    (17, 19, "evening hours (5-7pm)",
     "Evening stress. Plan transition from work to home mindfully."),
)

_ESCALATION_FROM = (ArousalLevel.RELAXED, ArousalLevel.DEEP_CALM, ArousalLevel.ALERT)


@dataclass(frozen=True, slots=True)
class TriggerSignals:
    """The values a trigger check compares between consecutive checks."""

    heart_rate: int = 0
    hrv: float = 0.0
    gsr: float = 0.0
    gsr_variability: float = 0.0
    temperature: float = 0.0
    arousal: ArousalLevel = ArousalLevel.INITIALIZING


# ── Helpers ───────────────────────────────────────────────────


def time_description(hour: int) -> str:
    for first, last, desc, _ in _TIME_BANDS:
        if first <= hour <= last:
            return desc
    return "this time of day"


def _time_recommendation(hour: int) -> str:
    for first, last, _, rec in _TIME_BANDS:
        if first <= hour <= last:
            return rec
    return "Recurring pattern at this time. Consider schedule adjustments."


def is_known_stress_time(hour: int, thresholds: EngineThresholds = DEFAULT_THRESHOLDS) -> bool:
    return any(start <= hour < end for start, end in thresholds.trigger.stress_hours)


def calculate_intensity(snapshot: dict[str, float], thresholds: EngineThresholds = DEFAULT_THRESHOLDS) -> float:
    """Tiered additive intensity from HR, HRV and GSR variability, clamped to [0, 1]."""
    t = thresholds.trigger
    hr = snapshot.get("heartRate", 0.0)
    hrv = snapshot.get("hrv", 0.0)
    gsr_var = snapshot.get("gsrVariability", 0.0)

    intensity = 0.0
    intensity += sum(w for bound, w in t.hr_tiers if hr > bound)
    intensity += sum(w for bound, w in t.hrv_tiers if hrv < bound)
    intensity += sum(w for bound, w in t.gsr_tiers if gsr_var > bound)
    return min(1.0, max(0.0, intensity))


def calculate_severity(intensity: float, thresholds: EngineThresholds = DEFAULT_THRESHOLDS) -> TriggerSeverity:
    t = thresholds.trigger
    if intensity >= t.critical:
        return TriggerSeverity.CRITICAL
    if intensity >= t.severe:
        return TriggerSeverity.SEVERE
    if intensity >= t.moderate:
        return TriggerSeverity.MODERATE
    return TriggerSeverity.MILD


def _activity_change_recommendation(current: ActivityType, previous: ActivityType) -> str:
    if current is ActivityType.STRESSED:
        return "Take immediate action: deep breathing, short break, or change environment"
    if previous is ActivityType.RESTING and current is ActivityType.WORKING:
        return "Ease into work gradually. Start with simple tasks."
    return "Monitor your response to this transition and adjust as needed"


# ── Detection ─────────────────────────────────────────────────


def detect_trigger(
    current: TriggerSignals,
    previous: TriggerSignals,
    current_activity: ActivityType | None = None,
    previous_activity: ActivityType | None = None,
    now: datetime | None = None,
    thresholds: EngineThresholds = DEFAULT_THRESHOLDS,
) -> StressTrigger | None:
    """Evaluate the trigger rules in priority order.

    Parameters
    ----------
    current, previous : TriggerSignals
        Signals at this check and at the previous one.
    current_activity, previous_activity : ActivityType | None
        Latest and prior recognised activities, if any.
    now : datetime | None
        Check time; also drives the time-of-day rule.

    Returns
    -------
    StressTrigger | None
        The first matching rule's trigger, or ``None``.
    """
    now = now or datetime.now()
    t = thresholds.trigger

    hr_change = current.heart_rate - previous.heart_rate
    hrv_change = previous.hrv - current.hrv  # positive = drop
    gsr_change = current.gsr_variability - previous.gsr_variability
    temp_change = current.temperature - previous.temperature

    snapshot = {
        "heartRate": float(current.heart_rate),
        "hrv": current.hrv,
        "gsr": current.gsr,
        "gsrVariability": current.gsr_variability,
        "temperature": current.temperature,
        "hrChange": float(hr_change),
        "hrvChange": hrv_change,
        "gsrChange": gsr_change,
    }
    intensity = calculate_intensity(snapshot, thresholds)
    severity = calculate_severity(intensity, thresholds)

    def make(type_: TriggerType, description: str, context: str | None, recommendation: str) -> StressTrigger:
        return StressTrigger(
            type=type_,
            severity=severity,
            timestamp=now,
            description=description,
            biometric_snapshot=snapshot,
            context=context,
            intensity=intensity,
            recommendation=recommendation,
        )

    activity_name = ACTIVITY_META[current_activity].name if current_activity is not None else None

    # 1. Activity change
    if (
        previous_activity is not None
        and current_activity is not None
        and previous_activity != current_activity
        and (
            current_activity is ActivityType.STRESSED
            or (previous_activity is ActivityType.RESTING and current_activity is ActivityType.WORKING)
        )
    ):
        prev_meta, cur_meta = ACTIVITY_META[previous_activity], ACTIVITY_META[current_activity]
        return make(
            TriggerType.ACTIVITY_CHANGE,
            f"Transition from {prev_meta.name} to {cur_meta.name}",
            f"{prev_meta.icon} → {cur_meta.icon}",
            _activity_change_recommendation(current_activity, previous_activity),
        )

    # 2. Physiological spike
    changes: list[str] = []
    if hr_change >= t.hr_spike:
        changes.append(f"HR +{hr_change} BPM")
    if hrv_change >= t.hrv_drop:
        changes.append(f"HRV -{hrv_change:.1f}ms")
    if gsr_change >= t.gsr_spike:
        changes.append(f"GSR +{gsr_change:.2f}")
    if changes:
        return make(
            TriggerType.PHYSIOLOGICAL,
            "Rapid physiological changes detected: " + ", ".join(changes),
            activity_name,
            "Sudden physiological changes detected. Take deep breaths and pause current activity.",
        )

    # 3. Arousal escalation
    if (
        current.arousal != previous.arousal
        and current.arousal.is_stressed
        and previous.arousal in _ESCALATION_FROM
    ):
        return make(
            TriggerType.PATTERN,
            f"Arousal shift: {previous.arousal.value} → {current.arousal.value}",
            activity_name or "Unknown activity",
            "Stress levels increasing. Consider taking a short break or practicing breathing exercises.",
        )

    # 4. Environmental
    if (
        temp_change >= t.temp_rise
        and current.temperature > t.fever_temp
        and current_activity is not ActivityType.EXERCISING
    ):
        return make(
            TriggerType.ENVIRONMENTAL,
            f"Elevated temperature (+{temp_change:.1f}°C) without physical activity",
            "Possible environmental heat or fever",
            "Check your environment. Ensure adequate ventilation and hydration.",
        )

    # 5. Known stress time of day
    if is_known_stress_time(now.hour, thresholds) and current.arousal.is_stressed:
        return make(
            TriggerType.TIME_OF_DAY,
            f"Recurring stress during {time_description(now.hour)}",
            activity_name or "Pattern observed",
            _time_recommendation(now.hour),
        )

    return None


# ── Trigger log ───────────────────────────────────────────────


class TriggerLog:
    """Capped FIFO of detected triggers; the oldest is evicted first."""

    def __init__(self, capacity: int = 100, triggers: Iterable[StressTrigger] = ()) -> None:
        self._items: deque[StressTrigger] = deque(triggers, maxlen=capacity)

    def append(self, trigger: StressTrigger) -> None:
        self._items.append(trigger)
        logger.info(
            "trigger.detected",
            type=trigger.type.value,
            severity=trigger.severity.value,
            intensity=round(trigger.intensity, 2),
        )

    def extend(self, triggers: Iterable[StressTrigger]) -> None:
        self._items.extend(triggers)

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[StressTrigger]:
        return iter(self._items)

    @property
    def capacity(self) -> int:
        return self._items.maxlen or 0

    def items(self) -> list[StressTrigger]:
        return list(self._items)

    def clear(self) -> None:
        self._items.clear()
