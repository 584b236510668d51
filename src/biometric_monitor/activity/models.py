"""Pydantic models for activity recognition."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

from biometric_monitor.models import ACTIVITY_META, ActivityType


class ActivityDetection(BaseModel):
    """Best-scoring activity hypothesis at a point in time.

    ``timestamp`` is when this activity was first detected; ``duration`` is
    the number of seconds it has been sustained since.
    """

    activity_type: ActivityType
    confidence: float = Field(ge=0.0, le=1.0)
    timestamp: datetime = Field(default_factory=datetime.now)
    duration: int = 0
    metrics: dict[str, float] = Field(default_factory=dict)

    @property
    def confidence_level(self) -> str:
        if self.confidence >= 0.8:
            return "High"
        if self.confidence >= 0.6:
            return "Medium"
        return "Low"


class ActivityTransition(BaseModel):
    """A change between two consecutive detections."""

    from_activity: ActivityType
    to_activity: ActivityType
    timestamp: datetime = Field(default_factory=datetime.now)
    trigger: str | None = None

    @property
    def transition_name(self) -> str:
        return f"{ACTIVITY_META[self.from_activity].name} → {ACTIVITY_META[self.to_activity].name}"


class ActivityStats(BaseModel):
    """Time spent per activity over a set of detections."""

    minutes_by_activity: dict[ActivityType, int] = Field(default_factory=dict)
    count_by_activity: dict[ActivityType, int] = Field(default_factory=dict)
    dominant_activity: ActivityType = ActivityType.UNKNOWN
    total_minutes: int = 0

    def percentage(self, activity: ActivityType) -> float:
        if self.total_minutes == 0:
            return 0.0
        return self.minutes_by_activity.get(activity, 0) / self.total_minutes * 100

    @property
    def summary(self) -> str:
        name = ACTIVITY_META[self.dominant_activity].name
        return f"Mostly {name} ({self.percentage(self.dominant_activity):.0f}%)"
