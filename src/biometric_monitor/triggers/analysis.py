"""Trigger-log analysis — pattern mining, insights and mitigation strategies."""

from __future__ import annotations

from collections import Counter
from typing import Sequence

from biometric_monitor.models import TRIGGER_META, TriggerSeverity, TriggerType
from biometric_monitor.thresholds import DEFAULT_THRESHOLDS, EngineThresholds
from biometric_monitor.triggers.detector import time_description
from biometric_monitor.triggers.models import (
    MitigationStrategy,
    StressTrigger,
    TriggerAnalysis,
    TriggerPattern,
)

_PATTERN_RECOMMENDATIONS: dict[TriggerType, str] = {
    TriggerType.TIME_OF_DAY: "Schedule breaks or relaxation exercises during these times",
    TriggerType.ACTIVITY_CHANGE: "Prepare for transitions with brief mindfulness exercises",
    TriggerType.ENVIRONMENTAL: "Optimize your environment (temperature, lighting, noise)",
    TriggerType.PHYSIOLOGICAL: "Focus on sleep quality, hydration, and nutrition",
    TriggerType.WORKLOAD: "Better time management and task prioritization needed",
    TriggerType.SOCIAL: "Set boundaries and communicate needs clearly",
    TriggerType.PATTERN: "Identify and address underlying recurring stressors",
    TriggerType.UNKNOWN: "Continue monitoring to identify trigger patterns",
}


# ── Analysis ──────────────────────────────────────────────────


def analyze_triggers(
    triggers: Sequence[StressTrigger],
    thresholds: EngineThresholds = DEFAULT_THRESHOLDS,
) -> TriggerAnalysis:
    """Group the log by type, severity, hour and weekday and mine patterns.

    An empty log yields the all-zero :class:`TriggerAnalysis`.
    """
    if not triggers:
        return TriggerAnalysis()

    by_type: Counter[TriggerType] = Counter(t.type for t in triggers)
    by_severity: Counter[TriggerSeverity] = Counter(t.severity for t in triggers)
    by_hour: Counter[int] = Counter(t.timestamp.hour for t in triggers)
    by_day: Counter[int] = Counter(t.timestamp.isoweekday() for t in triggers)

    # most_common() keeps first-seen order among ties
    most_common_type = by_type.most_common(1)[0][0]

    return TriggerAnalysis(
        total_triggers=len(triggers),
        triggers_by_type=dict(by_type),
        triggers_by_severity=dict(by_severity),
        triggers_by_hour=dict(by_hour),
        triggers_by_day=dict(by_day),
        patterns=_detect_patterns(triggers, by_type, thresholds),
        avg_intensity=sum(t.intensity for t in triggers) / len(triggers),
        most_common_type=most_common_type,
        insights=_generate_insights(len(triggers), by_type, by_severity, by_hour),
    )


def _detect_patterns(
    triggers: Sequence[StressTrigger],
    by_type: Counter[TriggerType],
    thresholds: EngineThresholds,
) -> list[TriggerPattern]:
    patterns: list[TriggerPattern] = []
    for type_, count in by_type.items():
        if count < thresholds.trigger.min_pattern_occurrences:
            continue
        matching = [t for t in triggers if t.type == type_]
        patterns.append(
            TriggerPattern(
                primary_type=type_,
                description=(
                    f"Recurring {TRIGGER_META[type_].name.lower()} stress pattern ({count} occurrences)"
                ),
                occurrences=count,
                common_hours=[t.timestamp.hour for t in matching],
                common_days=[t.timestamp.isoweekday() for t in matching],
                average_intensity=sum(t.intensity for t in matching) / count,
                recommendation=_PATTERN_RECOMMENDATIONS[type_],
            ),
        )
    patterns.sort(key=lambda p: p.occurrences, reverse=True)
    return patterns


def _generate_insights(
    total: int,
    by_type: Counter[TriggerType],
    by_severity: Counter[TriggerSeverity],
    by_hour: Counter[int],
) -> list[str]:
    insights: list[str] = []

    critical = by_severity.get(TriggerSeverity.CRITICAL, 0)
    if critical > 0:
        insights.append(f"🆘 {critical} critical stress events detected - immediate attention recommended")

    if by_type:
        top, count = by_type.most_common(1)[0]
        meta = TRIGGER_META[top]
        insights.append(f"{meta.icon} Most common trigger: {meta.name} ({count} events)")

    if by_hour:
        peak_hour = by_hour.most_common(1)[0][0]
        insights.append(f"⏰ Peak stress time: {time_description(peak_hour)}")

    if total >= 10:
        insights.append("⚠️ High trigger frequency detected - consider stress management strategies")
    elif total <= 3:
        insights.append("✅ Low trigger frequency - stress levels well-managed")

    return insights


# ── Mitigation strategies ────────────────────────────────────


def mitigation_strategies(analysis: TriggerAnalysis) -> list[MitigationStrategy]:
    """Strategies for the three most frequent trigger types."""
    ranked = sorted(analysis.triggers_by_type.items(), key=lambda kv: kv[1], reverse=True)
    return [strategy_for(type_, count) for type_, count in ranked[:3]]


def strategy_for(type_: TriggerType, occurrences: int) -> MitigationStrategy:
    if type_ is TriggerType.TIME_OF_DAY:
        return MitigationStrategy(
            trigger_type=type_,
            strategy="Time-based Stress Management",
            short_term="Schedule breaks 15 minutes before typical trigger times",
            long_term="Restructure daily schedule to minimize stress periods",
            action_steps=[
                "Identify exact times of day stress occurs",
                "Block calendar for pre-emptive breaks",
                "Use morning/evening routines to buffer transitions",
                "Consider flexible work hours if possible",
            ],
            priority=5 if occurrences >= 10 else 3,
        )
    if type_ is TriggerType.ACTIVITY_CHANGE:
        return MitigationStrategy(
            trigger_type=type_,
            strategy="Transition Management",
            short_term="Use 2-minute breathing exercise before major transitions",
            long_term="Build transition rituals into daily routine",
            action_steps=[
                "Create buffer time between activities",
                "Use physical movement to mark transitions",
                "Practice mindful awareness during changes",
                "Prepare mentally before switching tasks",
            ],
            priority=4 if occurrences >= 8 else 3,
        )
    if type_ is TriggerType.PHYSIOLOGICAL:
        return MitigationStrategy(
            trigger_type=type_,
            strategy="Physiological Resilience Building",
            short_term="Deep breathing immediately when triggers detected",
            long_term="Improve overall physical health and stress resilience",
            action_steps=[
                "Regular exercise (30 min, 3-4x per week)",
                "Prioritize 7-8 hours quality sleep",
                "Stay hydrated throughout day",
                "Consider meditation or yoga practice",
            ],
            priority=5,
        )
    if type_ is TriggerType.ENVIRONMENTAL:
        return MitigationStrategy(
            trigger_type=type_,
            strategy="Environment Optimization",
            short_term="Adjust immediate surroundings (temp, light, noise)",
            long_term="Create optimal workspace and home environment",
            action_steps=[
                "Control temperature (20-22°C ideal)",
                "Optimize lighting (natural light preferred)",
                "Reduce noise with headphones or white noise",
                "Add plants or calming elements to space",
            ],
            priority=3,
        )
    if type_ is TriggerType.WORKLOAD:
        return MitigationStrategy(
            trigger_type=type_,
            strategy="Workload Management",
            short_term="Delegate or postpone non-urgent tasks",
            long_term="Develop sustainable work practices and boundaries",
            action_steps=[
                "Use time blocking for focused work",
                "Learn to say no to non-essential commitments",
                "Break large tasks into smaller chunks",
                "Communicate capacity limits to stakeholders",
            ],
            priority=4,
        )
    return MitigationStrategy(
        trigger_type=type_,
        strategy="General Stress Management",
        short_term="Take immediate breaks when stress detected",
        long_term="Build comprehensive stress management toolkit",
        action_steps=[
            "Continue monitoring to identify patterns",
            "Experiment with different coping strategies",
            "Seek professional guidance if needed",
            "Track what works and build on successes",
        ],
        priority=2,
    )
