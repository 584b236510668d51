"""Activity recognition — multi-hypothesis confidence scoring.

Each hypothesis (exercising, resting, working, stressed, sleeping,
recovering) is scored independently as a sum of weighted conditions from
:attr:`ActivityThresholds.hypotheses`, clamped to ``[0, 1]``.  The best
hypothesis must beat the detection floor, otherwise the result is
``UNKNOWN`` at the floor confidence.
"""

from __future__ import annotations

from collections import deque
from datetime import datetime

import structlog

from biometric_monitor.activity.models import ActivityDetection, ActivityStats, ActivityTransition
from biometric_monitor.models import ActivityType, ArousalLevel, Reading
from biometric_monitor.thresholds import DEFAULT_THRESHOLDS, EngineThresholds, ScoreRule

logger = structlog.get_logger(__name__)

# Known from → to pairs and the label attached to the transition.
_TRANSITION_LABELS: dict[tuple[ActivityType, ActivityType], str] = {
    (ActivityType.RESTING, ActivityType.WORKING): "Started work session",
    (ActivityType.WORKING, ActivityType.EXERCISING): "Started physical activity",
    (ActivityType.EXERCISING, ActivityType.RECOVERING): "Exercise completed",
    (ActivityType.STRESSED, ActivityType.RESTING): "Stress resolved",
}


# ── Scoring ───────────────────────────────────────────────────


def _rule_matches(rule: ScoreRule, metrics: dict[str, float], arousal: ArousalLevel) -> bool:
    if rule.metric == "arousal":
        return arousal in rule.levels

    value = metrics[rule.metric]
    if rule.exclusive:
        if rule.min is not None and not value > rule.min:
            return False
        if rule.max is not None and not value < rule.max:
            return False
        return True
    if rule.min is not None and value < rule.min:
        return False
    if rule.max is not None and value > rule.max:
        return False
    return True


def _metrics(reading: Reading, cognitive_score: float) -> dict[str, float]:
    return {
        "heart_rate": float(reading.heart_rate),
        "hrv": reading.hrv,
        "gsr_variability": reading.gsr_variability or 0.0,
        "temperature": reading.temperature,
        "cognitive_score": cognitive_score,
    }


def score_hypotheses(
    reading: Reading,
    arousal: ArousalLevel,
    cognitive_score: float,
    thresholds: EngineThresholds = DEFAULT_THRESHOLDS,
) -> dict[ActivityType, float]:
    """Return the clamped confidence of every hypothesis, in evaluation order."""
    metrics = _metrics(reading, cognitive_score)
    scores: dict[ActivityType, float] = {}
    for activity, rules in thresholds.activity.hypotheses:
        total = sum(r.weight for r in rules if _rule_matches(r, metrics, arousal))
        scores[activity] = min(1.0, max(0.0, total))
    return scores


def detect_activity(
    reading: Reading,
    arousal: ArousalLevel,
    cognitive_score: float,
    now: datetime | None = None,
    thresholds: EngineThresholds = DEFAULT_THRESHOLDS,
) -> ActivityDetection:
    """Pick the best-scoring hypothesis above the detection floor.

    Parameters
    ----------
    reading : Reading
        Current sample set; ``gsr_variability`` must already be resolved.
    arousal : ArousalLevel
        Current arousal classification.
    cognitive_score : float
        Current cognitive score.
    now : datetime | None
        Detection timestamp (defaults to local wall-clock time).

    Returns
    -------
    ActivityDetection
        ``UNKNOWN`` with the floor confidence when nothing beats the floor.
    """
    scores = score_hypotheses(reading, arousal, cognitive_score, thresholds)

    best_type = ActivityType.UNKNOWN
    best = thresholds.activity.detection_floor
    for activity, confidence in scores.items():
        if confidence > best:
            best, best_type = confidence, activity

    m = _metrics(reading, cognitive_score)
    return ActivityDetection(
        activity_type=best_type,
        confidence=best,
        timestamp=now or datetime.now(),
        metrics={
            "heartRate": m["heart_rate"],
            "hrv": m["hrv"],
            "gsrVariability": m["gsr_variability"],
            "temperature": m["temperature"],
            "cognitiveScore": m["cognitive_score"],
        },
    )


def detect_transition(
    previous: ActivityDetection,
    current: ActivityDetection,
    thresholds: EngineThresholds = DEFAULT_THRESHOLDS,
) -> ActivityTransition | None:
    """Return a transition only for a type change at medium+ confidence."""
    if previous.activity_type == current.activity_type:
        return None
    if current.confidence < thresholds.activity.transition_confidence:
        return None

    if current.activity_type is ActivityType.STRESSED:
        label: str | None = "Stress trigger detected"
    else:
        label = _TRANSITION_LABELS.get((previous.activity_type, current.activity_type))

    return ActivityTransition(
        from_activity=previous.activity_type,
        to_activity=current.activity_type,
        timestamp=current.timestamp,
        trigger=label,
    )


# ── Stateful recognizer ──────────────────────────────────────


class ActivityRecognizer:
    """Track the current activity across recognition ticks.

    A detection of the same type as the current one extends its duration
    and refreshes its confidence; a different type is checked for a
    transition and then replaces the current detection.
    """

    def __init__(self, thresholds: EngineThresholds = DEFAULT_THRESHOLDS) -> None:
        self._thresholds = thresholds
        capacity = thresholds.activity.history_capacity
        self.current: ActivityDetection | None = None
        self.previous: ActivityDetection | None = None
        self.history: deque[ActivityDetection] = deque(maxlen=capacity)
        self.transitions: deque[ActivityTransition] = deque(maxlen=capacity)

    def update(
        self,
        reading: Reading,
        arousal: ArousalLevel,
        cognitive_score: float,
        now: datetime | None = None,
    ) -> tuple[ActivityDetection, ActivityTransition | None]:
        """Run one recognition step; return the current detection and any transition."""
        now = now or datetime.now()
        detection = detect_activity(reading, arousal, cognitive_score, now, self._thresholds)
        transition: ActivityTransition | None = None

        if self.current is not None and self.current.activity_type == detection.activity_type:
            self.current = detection.model_copy(
                update={
                    "timestamp": self.current.timestamp,
                    "duration": int((now - self.current.timestamp).total_seconds()),
                },
            )
        else:
            if self.current is not None:
                transition = detect_transition(self.current, detection, self._thresholds)
                if transition is not None:
                    self.transitions.append(transition)
                    logger.info(
                        "activity.transition",
                        from_activity=transition.from_activity.value,
                        to_activity=transition.to_activity.value,
                        trigger=transition.trigger,
                    )
            self.previous = self.current
            self.current = detection

        self.history.append(self.current)
        return self.current, transition

    def restore(
        self,
        history: list[ActivityDetection],
        transitions: list[ActivityTransition],
    ) -> None:
        """Seed history and transitions from persisted records."""
        self.history.extend(history)
        self.transitions.extend(transitions)

    def reset(self) -> None:
        self.current = None
        self.previous = None


# ── Statistics & insights ─────────────────────────────────────


def generate_stats(detections: list[ActivityDetection]) -> ActivityStats:
    """Aggregate minutes and occurrences per activity.

    Consecutive detections of one sustained activity share the same
    ``timestamp`` (first detected) with growing ``duration``; each such
    episode counts once, at its longest duration.
    """
    episodes: dict[tuple[ActivityType, datetime], int] = {}
    for d in detections:
        key = (d.activity_type, d.timestamp)
        episodes[key] = max(episodes.get(key, 0), d.duration)

    minutes: dict[ActivityType, int] = {}
    counts: dict[ActivityType, int] = {}
    for (activity, _), duration in episodes.items():
        minutes[activity] = minutes.get(activity, 0) + duration // 60
        counts[activity] = counts.get(activity, 0) + 1

    dominant = ActivityType.UNKNOWN
    longest = 0
    for activity, mins in minutes.items():
        if mins > longest:
            longest, dominant = mins, activity

    return ActivityStats(
        minutes_by_activity=minutes,
        count_by_activity=counts,
        dominant_activity=dominant,
        total_minutes=sum(minutes.values()),
    )


def activity_insights(stats: ActivityStats) -> list[str]:
    """Text observations about the activity mix."""
    insights: list[str] = []

    exercise = stats.percentage(ActivityType.EXERCISING)
    if exercise >= 15:
        insights.append(f"🏃 Great exercise routine! {exercise:.0f}% of time exercising")
    elif exercise < 5:
        insights.append("💡 Consider adding more physical activity to your routine")

    stress = stats.percentage(ActivityType.STRESSED)
    if stress >= 30:
        insights.append(f"⚠️ High stress levels detected - {stress:.0f}% of time stressed")
    elif stress < 10:
        insights.append("😌 Excellent stress management - low stress levels maintained")

    rest = stats.percentage(ActivityType.RESTING)
    if rest >= 40:
        insights.append("🧘 Good balance of rest and recovery")
    elif rest < 15:
        insights.append("💤 Consider adding more rest periods for recovery")

    work = stats.percentage(ActivityType.WORKING)
    if work >= 50:
        insights.append("💼 Heavy work load detected - ensure adequate breaks")
    elif work >= 30:
        insights.append("✅ Good work-life balance maintained")

    return insights
