"""Historical stress analysis over stored :class:`SessionData` records.

Both entry points are pure functions of a snapshot of the session list:
they never touch live engine state and can run alongside ingestion.
Minutes are always whole minutes (integer division of seconds by 60) and
every percentage guards a zero denominator.
"""

from __future__ import annotations

import datetime as dt
from collections import Counter
from datetime import datetime, timedelta
from typing import Sequence

from biometric_monitor.analysis.models import DailyStressSummary, StressInsights, StressSpike
from biometric_monitor.models import ArousalLevel
from biometric_monitor.sessions.models import SessionData
from biometric_monitor.thresholds import DEFAULT_THRESHOLDS, EngineThresholds

_WEEKDAYS = ("Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun")

_STRESSED = (ArousalLevel.STRESSED.value, ArousalLevel.HIGHLY_AROUSED.value)
_CALM = (ArousalLevel.DEEP_CALM.value, ArousalLevel.RELAXED.value)
_ALERT = (ArousalLevel.ALERT.value, ArousalLevel.ENGAGED.value)

# (first hour, last hour, label) for spike attribution
_SPIKE_TRIGGER_HOURS: tuple[tuple[int, int, str], ...] = (
    (8, 9, "Morning commute/start of work"),
    (11, 13, "Midday/lunch period"),
    (14, 16, "Afternoon work period"),
    (17, 19, "Evening commute/end of work"),
    (20, 22, "Evening activities"),
    (0, 2, "Late night activity"),
)


def possible_trigger(start: datetime) -> str:
    """Heuristic time-of-day label for a stress spike."""
    for first, last, label in _SPIKE_TRIGGER_HOURS:
        if first <= start.hour <= last:
            return label
    return "Unknown trigger"


def _is_spike(session: SessionData, thresholds: EngineThresholds) -> bool:
    duration = session.duration_minutes * 60
    if duration <= 0:
        return False
    return session.seconds_in(*_STRESSED) / duration > thresholds.spike.stressed_fraction


# ── Period insights ──────────────────────────────────────────


def analyze_patterns(
    sessions: Sequence[SessionData],
    start: datetime,
    end: datetime,
    thresholds: EngineThresholds = DEFAULT_THRESHOLDS,
) -> StressInsights:
    """Summarise stress, calm and alert time for sessions starting in ``(start, end)``.

    Parameters
    ----------
    sessions : Sequence[SessionData]
        Snapshot of stored sessions (any order).
    start, end : datetime
        Exclusive period bounds on ``session.start_time``.

    Returns
    -------
    StressInsights
        Zero-valued insights when no session falls in the period.
    """
    relevant = [s for s in sessions if start < s.start_time < end]

    total = stress = calm = alert = 0
    hourly: dict[int, int] = {}
    spikes: list[StressSpike] = []

    for s in relevant:
        stressed_seconds = s.seconds_in(*_STRESSED)
        session_stress = stressed_seconds // 60

        total += s.duration_minutes
        stress += session_stress
        calm += s.seconds_in(*_CALM) // 60
        alert += s.seconds_in(*_ALERT) // 60

        hour = s.start_time.hour
        hourly[hour] = hourly.get(hour, 0) + session_stress

        if _is_spike(s, thresholds):
            highly = s.arousal_distribution.get(ArousalLevel.HIGHLY_AROUSED.value, 0)
            stressed = s.arousal_distribution.get(ArousalLevel.STRESSED.value, 0)
            spikes.append(
                StressSpike(
                    start_time=s.start_time,
                    end_time=s.end_time,
                    peak_arousal=(
                        ArousalLevel.HIGHLY_AROUSED.value if highly > stressed else ArousalLevel.STRESSED.value
                    ),
                    max_gsr=s.avg_gsr,
                    max_heart_rate=int(s.avg_heart_rate),
                    min_hrv=s.avg_hrv,
                    possible_trigger=possible_trigger(s.start_time),
                ),
            )

    return StressInsights(
        period_start=start,
        period_end=end,
        total_minutes=total,
        stress_minutes=stress,
        calm_minutes=calm,
        alert_minutes=alert,
        stress_spikes=spikes,
        hourly_stress_distribution=hourly,
        avg_stress_level=stress / total if total > 0 else 0.0,
        patterns=_detect_patterns(relevant, hourly, spikes, thresholds),
    )


def _detect_patterns(
    sessions: list[SessionData],
    hourly: dict[int, int],
    spikes: list[StressSpike],
    thresholds: EngineThresholds,
) -> list[str]:
    patterns: list[str] = []
    t = thresholds.spike

    peak = Counter(hourly).most_common(1)
    if peak and peak[0][1] > 0:
        hour = peak[0][0]
        if 6 <= hour < 12:
            patterns.append("🌅 Morning stress pattern detected")
        elif 12 <= hour < 17:
            patterns.append("☀️ Afternoon stress pattern detected")
        elif 17 <= hour < 21:
            patterns.append("🌆 Evening stress pattern detected")

    if len(spikes) > t.frequent_spikes:
        patterns.append(f"⚠️ Frequent stress spikes detected ({len(spikes)} events)")

    weekday_stress: Counter[int] = Counter()
    for s in sessions:
        weekday_stress[s.start_time.isoweekday()] += s.seconds_in(*_STRESSED)
    top_day = weekday_stress.most_common(1)
    if top_day and top_day[0][1] > 0:
        patterns.append(f"📅 Highest stress on {_WEEKDAYS[top_day[0][0] - 1]}s")

    if sessions:
        hot = sum(1 for s in sessions if s.avg_temperature > t.elevated_temp)
        if hot > len(sessions) * t.elevated_temp_fraction:
            patterns.append("🌡️ Elevated temperature often correlates with stress")

        # avg_hrv of 0 means the session had no HRV samples
        low_hrv = sum(1 for s in sessions if 0 < s.avg_hrv < t.low_hrv)
        if low_hrv > len(sessions) * t.low_hrv_fraction:
            patterns.append("💔 Low HRV pattern - reduced stress resilience")

    return patterns


# ── Daily summaries ──────────────────────────────────────────


def generate_daily_summaries(
    sessions: Sequence[SessionData],
    days: int,
    today: dt.date | None = None,
    thresholds: EngineThresholds = DEFAULT_THRESHOLDS,
) -> list[DailyStressSummary]:
    """One summary per trailing day (most recent first), skipping empty days."""
    today = today or datetime.now().date()
    summaries: list[DailyStressSummary] = []

    for offset in range(days):
        day = today - timedelta(days=offset)
        day_start = datetime.combine(day, dt.time.min)
        day_end = day_start + timedelta(days=1)
        day_sessions = [s for s in sessions if day_start <= s.start_time < day_end]
        if not day_sessions:
            continue

        dist: Counter[str] = Counter()
        for s in day_sessions:
            dist.update(s.arousal_distribution)

        dominant = "Alert"
        top = dist.most_common(1)
        if top and top[0][1] > 0:
            dominant = top[0][0]

        summaries.append(
            DailyStressSummary(
                date=day,
                total_sessions=len(day_sessions),
                total_minutes=sum(s.duration_minutes for s in day_sessions),
                stress_minutes=sum(s.seconds_in(*_STRESSED) // 60 for s in day_sessions),
                calm_minutes=sum(s.seconds_in(*_CALM) // 60 for s in day_sessions),
                stress_spikes=sum(1 for s in day_sessions if _is_spike(s, thresholds)),
                avg_cognitive_score=sum(s.avg_cognitive_score for s in day_sessions) / len(day_sessions),
                dominant_state=dominant,
                arousal_distribution=dict(dist),
            ),
        )

    return summaries
