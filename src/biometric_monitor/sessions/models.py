"""Session record produced when a monitoring session ends."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field


class SessionData(BaseModel):
    """One completed monitoring session.

    ``arousal_distribution`` maps arousal labels (``"Deep Calm"`` ...
    ``"Highly Aroused"``) to whole seconds spent in that state.
    ``stress_events`` and ``calm_periods`` are second totals for the
    stressed and calm label pairs.
    """

    start_time: datetime
    end_time: datetime
    avg_heart_rate: float = 0.0
    avg_hrv: float = 0.0
    avg_spo2: float = 0.0
    avg_gsr: float = 0.0
    avg_temperature: float = 0.0
    avg_cognitive_score: float = 0.0
    arousal_distribution: dict[str, int] = Field(default_factory=dict)
    stress_events: int = 0
    calm_periods: int = 0

    @property
    def duration_seconds(self) -> int:
        return int((self.end_time - self.start_time).total_seconds())

    @property
    def duration_minutes(self) -> int:
        return self.duration_seconds // 60

    def seconds_in(self, *labels: str) -> int:
        return sum(self.arousal_distribution.get(label, 0) for label in labels)
