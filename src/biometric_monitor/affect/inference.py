"""Affect inference — arousal level, cognitive score and mental-state text.

Everything here is a pure function of the current reading; thresholds come
from :class:`~biometric_monitor.thresholds.EngineThresholds`.

Arousal
-------
A step function of GSR *variability* (not raw conductance) onto six
ordered levels.  ``INITIALIZING`` is returned only while both the raw GSR
and its variability are exactly zero, i.e. before any data arrived.

Cognitive score
---------------
Seeded at 75 and adjusted additively by heart rate, HRV, GSR variability
and a temperature pattern check, then clamped to ``[65, 90]``.  An unknown
heart rate (0) short-circuits to the seed.
"""

from __future__ import annotations

from biometric_monitor.models import ArousalLevel
from biometric_monitor.thresholds import DEFAULT_THRESHOLDS, EngineThresholds

# ── Arousal ───────────────────────────────────────────────────


def classify_arousal(
    gsr: float,
    gsr_variability: float,
    thresholds: EngineThresholds = DEFAULT_THRESHOLDS,
) -> ArousalLevel:
    """Map GSR variability onto the six-level arousal scale.

    Parameters
    ----------
    gsr : float
        Latest raw GSR value, used only for the no-data check.
    gsr_variability : float
        Smoothed GSR dispersion metric.
    thresholds : EngineThresholds
        Boundary set; defaults to :data:`DEFAULT_THRESHOLDS`.

    Returns
    -------
    ArousalLevel
    """
    if gsr == 0 and gsr_variability == 0:
        return ArousalLevel.INITIALIZING

    t = thresholds.arousal
    if gsr_variability < t.deep_calm:
        return ArousalLevel.DEEP_CALM
    if gsr_variability < t.relaxed:
        return ArousalLevel.RELAXED
    if gsr_variability < t.alert:
        return ArousalLevel.ALERT
    if gsr_variability < t.engaged:
        return ArousalLevel.ENGAGED
    if gsr_variability < t.stressed:
        return ArousalLevel.STRESSED
    return ArousalLevel.HIGHLY_AROUSED


# ── Cognitive score ──────────────────────────────────────────


def estimate_cognitive_score(
    heart_rate: int,
    hrv: float,
    gsr_variability: float,
    temperature: float,
    thresholds: EngineThresholds = DEFAULT_THRESHOLDS,
) -> float:
    """Return a cognitive-performance score in ``[65, 90]``."""
    t = thresholds.cognitive
    if heart_rate == 0:
        return t.seed

    score = t.seed

    if t.hr_low <= heart_rate <= t.hr_high:
        score += t.hr_bonus
    else:
        score -= t.hr_penalty

    if hrv > t.hrv_good:
        score += t.hrv_bonus
    elif hrv > 0:
        score -= t.hrv_penalty

    if gsr_variability <= t.gsr_var_calm:
        score += t.gsr_var_bonus
    elif gsr_variability > t.gsr_var_high:
        score -= t.gsr_var_penalty

    if temperature > 0:
        if (
            temperature > t.exercise_temp
            and heart_rate > t.exercise_hr
            and gsr_variability > t.exercise_gsr_var
        ):
            score += t.exercise_bonus  # exercise pattern
        elif temperature > t.illness_temp and heart_rate < t.illness_hr:
            score -= t.illness_penalty  # illness pattern
        elif t.normal_temp_low <= temperature <= t.normal_temp_high:
            score += t.normal_temp_bonus

    return min(t.ceiling, max(t.floor, score))


# ── Mental-state text ────────────────────────────────────────


def mental_state_insight(score: float, arousal: ArousalLevel) -> str:
    """One-line interpretation of the score / arousal combination."""
    if score >= 85 and arousal in (ArousalLevel.DEEP_CALM, ArousalLevel.RELAXED):
        return "Optimal state for deep work and creative thinking"
    if score >= 75 and arousal is ArousalLevel.ALERT:
        return "Excellent focus - perfect for learning and problem solving"
    if score >= 65 and arousal is ArousalLevel.ENGAGED:
        return "High performance state - great for challenging tasks"
    if score >= 50 and arousal is ArousalLevel.STRESSED:
        return "Manageable stress - good for routine tasks, consider breaks"
    if arousal is ArousalLevel.HIGHLY_AROUSED:
        return "High stress detected - prioritize relaxation and self-care"
    if score < 40:
        return "Low cognitive performance - rest and recovery recommended"
    return "Moderate state - suitable for light activities"


def recommendations(
    score: float,
    arousal: ArousalLevel,
    heart_rate: int = 0,
    spo2: int = 0,
) -> list[str]:
    """Actionable suggestions for the current state (never empty)."""
    recs: list[str] = []

    if arousal.is_stressed:
        recs += [
            "💆 Try deep breathing exercises",
            "🚶 Take a short walk outside",
            "🎵 Listen to calming music",
        ]

    if score < 50:
        recs += [
            "💤 Consider taking a rest break",
            "💧 Stay hydrated",
            "🍎 Have a healthy snack",
        ]

    if arousal is ArousalLevel.DEEP_CALM and score >= 80:
        recs += [
            "🧠 Perfect time for complex mental tasks",
            "📚 Great for learning new concepts",
            "🎨 Ideal for creative work",
        ]

    if arousal is ArousalLevel.ALERT and score >= 70:
        recs += [
            "✍️ Excellent for writing and analysis",
            "📊 Good time for data work",
            "🎯 Focus on important decisions",
        ]

    if heart_rate > 100:
        recs.append("❤️ Heart rate elevated - check if you need rest")

    # 0 means no SpO2 reading yet
    if 0 < spo2 < 95:
        recs.append("🫁 Consider deep breathing for better oxygenation")

    if not recs:
        recs.append("✅ You're in good balance - maintain current activities")

    return recs
