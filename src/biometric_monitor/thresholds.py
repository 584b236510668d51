"""Named classification thresholds shared by every scoring function.

All numeric boundaries used by the arousal classifier, the cognitive score
estimator, the activity recognizer, the trigger detector and the stress
analyzer live here as immutable Pydantic models.  Every classifier accepts
an optional ``thresholds`` argument and falls back to
:data:`DEFAULT_THRESHOLDS`.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from biometric_monitor.models import ActivityType, ArousalLevel


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True)


# ── Arousal ───────────────────────────────────────────────────


class ArousalThresholds(_Frozen):
    """Upper (exclusive) GSR-variability bounds, ascending."""

    deep_calm: float = 0.05
    relaxed: float = 0.15
    alert: float = 0.28
    engaged: float = 0.45
    stressed: float = 0.75


# ── Cognitive score ──────────────────────────────────────────


class CognitiveThresholds(_Frozen):
    seed: float = 75.0
    floor: float = 65.0
    ceiling: float = 90.0

    hr_low: int = 50
    hr_high: int = 100
    hr_bonus: float = 5.0
    hr_penalty: float = 5.0

    hrv_good: float = 15.0
    hrv_bonus: float = 5.0
    hrv_penalty: float = 5.0

    gsr_var_calm: float = 0.25
    gsr_var_high: float = 0.5
    gsr_var_bonus: float = 5.0
    gsr_var_penalty: float = 10.0

    # Temperature disambiguation
    exercise_temp: float = 34.0
    exercise_hr: int = 90
    exercise_gsr_var: float = 0.4
    exercise_bonus: float = 5.0
    illness_temp: float = 37.0
    illness_hr: int = 90
    illness_penalty: float = 3.0
    normal_temp_low: float = 30.0
    normal_temp_high: float = 36.0
    normal_temp_bonus: float = 2.0


# ── Activity recognition ─────────────────────────────────────

ScoreMetric = Literal["heart_rate", "hrv", "gsr_variability", "temperature", "cognitive_score", "arousal"]


class ScoreRule(_Frozen):
    """One weighted condition contributing to an activity hypothesis.

    Numeric rules match when the metric lies within ``[min, max]`` (either
    bound optional; open interval when ``exclusive``).  Arousal rules match
    when the current level is one of ``levels``.
    """

    metric: ScoreMetric
    weight: float
    min: float | None = None
    max: float | None = None
    exclusive: bool = False
    levels: tuple[ArousalLevel, ...] = ()


def _rule(metric: ScoreMetric, weight: float, lo: float | None = None, hi: float | None = None, *, exclusive: bool = False) -> ScoreRule:
    return ScoreRule(metric=metric, weight=weight, min=lo, max=hi, exclusive=exclusive)


def _arousal(weight: float, *levels: ArousalLevel) -> ScoreRule:
    return ScoreRule(metric="arousal", weight=weight, levels=levels)


def _default_hypotheses() -> tuple[tuple[ActivityType, tuple[ScoreRule, ...]], ...]:
    # Evaluation order matters: the first hypothesis reaching the best
    # score wins ties.
    return (
        (ActivityType.EXERCISING, (
            _rule("heart_rate", 0.35, lo=100),
            _rule("heart_rate", 0.10, lo=120),
            _rule("heart_rate", 0.10, lo=140),
            _rule("temperature", 0.25, lo=37.0),
            _rule("temperature", 0.10, lo=37.5),
            _rule("gsr_variability", 0.15, 0.15, 0.5),
            _rule("hrv", 0.10, 10, 25, exclusive=True),
            _arousal(0.05, ArousalLevel.ENGAGED, ArousalLevel.STRESSED),
        )),
        (ActivityType.RESTING, (
            _rule("heart_rate", 0.35, hi=70),
            _rule("heart_rate", 0.10, hi=60),
            _rule("hrv", 0.25, lo=30),
            _rule("hrv", 0.10, lo=40),
            _rule("gsr_variability", 0.25, hi=0.1),
            _arousal(0.15, ArousalLevel.DEEP_CALM, ArousalLevel.RELAXED),
        )),
        (ActivityType.WORKING, (
            _rule("heart_rate", 0.25, 65, 90),
            _rule("hrv", 0.15, 20, 35),
            _rule("gsr_variability", 0.20, 0.1, 0.3),
            _arousal(0.25, ArousalLevel.ALERT, ArousalLevel.ENGAGED),
            _rule("cognitive_score", 0.15, lo=65),
        )),
        (ActivityType.STRESSED, (
            _rule("heart_rate", 0.25, 80, 110),
            _rule("hrv", 0.30, hi=15),
            _rule("gsr_variability", 0.30, lo=0.35),
            _arousal(0.15, ArousalLevel.STRESSED, ArousalLevel.HIGHLY_AROUSED),
        )),
        (ActivityType.SLEEPING, (
            _rule("heart_rate", 0.30, hi=55),
            _rule("heart_rate", 0.10, hi=50),
            _rule("hrv", 0.30, lo=40),
            _rule("gsr_variability", 0.25, hi=0.05),
            _arousal(0.15, ArousalLevel.DEEP_CALM),
        )),
        (ActivityType.RECOVERING, (
            _rule("heart_rate", 0.30, 75, 95),
            _rule("hrv", 0.20, 15, 25),
            _rule("temperature", 0.25, 36.8, 37.5),
            _rule("gsr_variability", 0.25, 0.1, 0.25),
        )),
    )


class ActivityThresholds(_Frozen):
    """Hypothesis weight tables plus selection and transition floors."""

    hypotheses: tuple[tuple[ActivityType, tuple[ScoreRule, ...]], ...] = Field(
        default_factory=_default_hypotheses,
    )
    detection_floor: float = 0.3
    transition_confidence: float = 0.6
    high_confidence: float = 0.8
    medium_confidence: float = 0.6
    history_capacity: int = 100


# ── Trigger detection ────────────────────────────────────────


class TriggerThresholds(_Frozen):
    hr_spike: float = 20.0
    hrv_drop: float = 10.0
    gsr_spike: float = 0.3
    temp_rise: float = 0.5
    fever_temp: float = 37.5

    # Intensity tiers: (bound, weight)
    hr_tiers: tuple[tuple[float, float], ...] = ((100, 0.3), (110, 0.1), (120, 0.1))
    hrv_tiers: tuple[tuple[float, float], ...] = ((20, 0.2), (15, 0.1), (10, 0.1))
    gsr_tiers: tuple[tuple[float, float], ...] = ((0.3, 0.2), (0.5, 0.1), (0.7, 0.1))

    critical: float = 0.8
    severe: float = 0.6
    moderate: float = 0.4

    # Known stress hours, [start, end) pairs.
    stress_hours: tuple[tuple[int, int], ...] = ((8, 10), (12, 14), (14, 17), (17, 20))

    min_pattern_occurrences: int = 3
    log_capacity: int = 100


# ── Historical stress analysis ───────────────────────────────


class SpikeThresholds(_Frozen):
    stressed_fraction: float = 0.5
    frequent_spikes: int = 5
    elevated_temp: float = 37.0
    elevated_temp_fraction: float = 0.3
    low_hrv: float = 20.0
    low_hrv_fraction: float = 0.4


class EngineThresholds(_Frozen):
    """The single configuration struct handed to every classifier."""

    arousal: ArousalThresholds = Field(default_factory=ArousalThresholds)
    cognitive: CognitiveThresholds = Field(default_factory=CognitiveThresholds)
    activity: ActivityThresholds = Field(default_factory=ActivityThresholds)
    trigger: TriggerThresholds = Field(default_factory=TriggerThresholds)
    spike: SpikeThresholds = Field(default_factory=SpikeThresholds)


DEFAULT_THRESHOLDS = EngineThresholds()
