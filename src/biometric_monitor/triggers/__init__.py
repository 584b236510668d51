"""Stress-trigger detection and trigger-log analysis."""

from biometric_monitor.triggers.analysis import analyze_triggers, mitigation_strategies
from biometric_monitor.triggers.detector import TriggerLog, TriggerSignals, detect_trigger
from biometric_monitor.triggers.models import (
    MitigationStrategy,
    StressTrigger,
    TriggerAnalysis,
    TriggerPattern,
)

__all__ = [
    "MitigationStrategy",
    "StressTrigger",
    "TriggerAnalysis",
    "TriggerLog",
    "TriggerPattern",
    "TriggerSignals",
    "analyze_triggers",
    "detect_trigger",
    "mitigation_strategies",
]
