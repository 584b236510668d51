"""Pydantic models for stress-trigger detection and analysis."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

from biometric_monitor.models import TriggerSeverity, TriggerType

_WEEKDAYS = ("Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun")


class StressTrigger(BaseModel):
    """One detected stress-relevant event."""

    type: TriggerType
    severity: TriggerSeverity
    timestamp: datetime = Field(default_factory=datetime.now)
    description: str
    biometric_snapshot: dict[str, float] = Field(default_factory=dict)
    context: str | None = None
    intensity: float = Field(0.0, ge=0.0, le=1.0)
    duration_seconds: int = 0
    recommendation: str | None = None

    @property
    def time_of_day(self) -> str:
        hour = self.timestamp.hour
        if hour < 6:
            return "Late Night"
        if hour < 12:
            return "Morning"
        if hour < 17:
            return "Afternoon"
        if hour < 21:
            return "Evening"
        return "Night"


class TriggerPattern(BaseModel):
    """A trigger type that recurred at least three times."""

    primary_type: TriggerType
    description: str
    occurrences: int
    common_hours: list[int] = Field(default_factory=list)
    common_days: list[int] = Field(default_factory=list)  # ISO weekday, 1 = Monday
    average_intensity: float = 0.0
    recommendation: str = ""

    @property
    def frequency(self) -> str:
        if self.occurrences >= 20:
            return "Very Frequent"
        if self.occurrences >= 10:
            return "Frequent"
        if self.occurrences >= 5:
            return "Occasional"
        return "Rare"

    @property
    def common_time(self) -> str:
        """Day segment containing the mean trigger hour."""
        if not self.common_hours:
            return "Varies"
        avg_hour = sum(self.common_hours) // len(self.common_hours)
        if avg_hour < 6:
            return "Late Night (12-6am)"
        if avg_hour < 12:
            return "Morning (6am-12pm)"
        if avg_hour < 17:
            return "Afternoon (12-5pm)"
        if avg_hour < 21:
            return "Evening (5-9pm)"
        return "Night (9pm-12am)"

    @property
    def common_days_label(self) -> str:
        if not self.common_days:
            return "Any day"
        return ", ".join(_WEEKDAYS[d - 1] for d in sorted(set(self.common_days)))


class TriggerAnalysis(BaseModel):
    """Aggregate view over the trigger log.  All-zero for an empty log."""

    total_triggers: int = 0
    triggers_by_type: dict[TriggerType, int] = Field(default_factory=dict)
    triggers_by_severity: dict[TriggerSeverity, int] = Field(default_factory=dict)
    triggers_by_hour: dict[int, int] = Field(default_factory=dict)
    triggers_by_day: dict[int, int] = Field(default_factory=dict)
    patterns: list[TriggerPattern] = Field(default_factory=list)
    avg_intensity: float = 0.0
    most_common_type: TriggerType = TriggerType.UNKNOWN
    insights: list[str] = Field(default_factory=list)

    @property
    def critical_triggers(self) -> int:
        return self.triggers_by_severity.get(TriggerSeverity.CRITICAL, 0)

    @property
    def severe_triggers(self) -> int:
        return self.triggers_by_severity.get(TriggerSeverity.SEVERE, 0)

    @property
    def overall_risk(self) -> str:
        if self.critical_triggers > 5:
            return "High Risk"
        if self.severe_triggers > 10:
            return "Elevated Risk"
        if self.total_triggers > 20:
            return "Moderate Risk"
        return "Low Risk"


class MitigationStrategy(BaseModel):
    """Prescriptive guidance for one trigger type."""

    trigger_type: TriggerType
    strategy: str
    short_term: str
    long_term: str
    action_steps: list[str] = Field(default_factory=list)
    priority: int = Field(3, ge=1, le=5)

    @property
    def priority_label(self) -> str:
        if self.priority >= 4:
            return "High Priority"
        if self.priority >= 3:
            return "Medium Priority"
        return "Low Priority"
