"""Models for historical stress analysis over stored sessions."""

from __future__ import annotations

import datetime as dt
from datetime import datetime

from pydantic import BaseModel, Field


class StressSpike(BaseModel):
    """A session in which stressed time exceeded half the duration."""

    start_time: datetime
    end_time: datetime
    peak_arousal: str
    max_gsr: float = 0.0
    max_heart_rate: int = 0
    min_hrv: float = 0.0
    possible_trigger: str | None = None

    @property
    def duration_minutes(self) -> int:
        return int((self.end_time - self.start_time).total_seconds()) // 60

    @property
    def time_of_day(self) -> str:
        hour = self.start_time.hour
        if hour < 6:
            return "Night"
        if hour < 12:
            return "Morning"
        if hour < 17:
            return "Afternoon"
        if hour < 21:
            return "Evening"
        return "Night"


class StressInsights(BaseModel):
    """Aggregated stress view for a period."""

    period_start: datetime
    period_end: datetime
    total_minutes: int = 0
    stress_minutes: int = 0
    calm_minutes: int = 0
    alert_minutes: int = 0
    stress_spikes: list[StressSpike] = Field(default_factory=list)
    hourly_stress_distribution: dict[int, int] = Field(default_factory=dict)
    avg_stress_level: float = 0.0
    patterns: list[str] = Field(default_factory=list)

    @property
    def stress_percentage(self) -> float:
        return self.stress_minutes / self.total_minutes * 100 if self.total_minutes > 0 else 0.0

    @property
    def calm_percentage(self) -> float:
        return self.calm_minutes / self.total_minutes * 100 if self.total_minutes > 0 else 0.0

    @property
    def stress_level(self) -> str:
        pct = self.stress_percentage
        if pct < 10:
            return "Very Low Stress"
        if pct < 20:
            return "Low Stress"
        if pct < 35:
            return "Moderate Stress"
        if pct < 50:
            return "High Stress"
        return "Very High Stress"


class DailyStressSummary(BaseModel):
    """One calendar day's aggregate."""

    date: dt.date
    total_sessions: int
    total_minutes: int = 0
    stress_minutes: int = 0
    calm_minutes: int = 0
    stress_spikes: int = 0
    avg_cognitive_score: float = 0.0
    dominant_state: str = "Alert"
    arousal_distribution: dict[str, int] = Field(default_factory=dict)

    @property
    def stress_percentage(self) -> float:
        return self.stress_minutes / self.total_minutes * 100 if self.total_minutes > 0 else 0.0

    @property
    def stress_rating(self) -> str:
        pct = self.stress_percentage
        if pct < 15:
            return "😊 Low Stress Day"
        if pct < 30:
            return "😐 Moderate Stress"
        if pct < 50:
            return "😟 High Stress"
        return "😰 Very High Stress"
