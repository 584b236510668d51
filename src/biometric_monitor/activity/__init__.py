"""Activity recognition from heart rate, HRV, GSR variability and temperature."""

from biometric_monitor.activity.models import ActivityDetection, ActivityStats, ActivityTransition
from biometric_monitor.activity.recognizer import (
    ActivityRecognizer,
    activity_insights,
    detect_activity,
    detect_transition,
    generate_stats,
)

__all__ = [
    "ActivityDetection",
    "ActivityRecognizer",
    "ActivityStats",
    "ActivityTransition",
    "activity_insights",
    "detect_activity",
    "detect_transition",
    "generate_stats",
]
