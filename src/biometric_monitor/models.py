"""Shared Pydantic models and enums used across the engine."""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

# ── Enums ─────────────────────────────────────────────────────


class Channel(str, Enum):
    """Sensor channels delivered by the wearable transport."""

    HEART_RATE = "heart_rate"
    GSR = "gsr"
    TEMPERATURE = "temperature"
    HRV = "hrv"
    SPO2 = "spo2"
    BATTERY = "battery"


# Channels that keep a rolling waveform buffer.
WAVEFORM_CHANNELS: tuple[Channel, ...] = (
    Channel.HEART_RATE,
    Channel.GSR,
    Channel.TEMPERATURE,
    Channel.HRV,
)


class ArousalLevel(str, Enum):
    """Ordered arousal scale derived from GSR variability.

    Values are the human-readable labels; they double as the keys of a
    session's arousal-time distribution.
    """

    INITIALIZING = "Initializing..."
    DEEP_CALM = "Deep Calm"
    RELAXED = "Relaxed"
    ALERT = "Alert"
    ENGAGED = "Engaged"
    STRESSED = "Stressed"
    HIGHLY_AROUSED = "Highly Aroused"

    @property
    def ordinal(self) -> int:
        """Position on the scale; ``INITIALIZING`` is -1."""
        return _AROUSAL_ORDER.index(self) if self in _AROUSAL_ORDER else -1

    @property
    def is_stressed(self) -> bool:
        return self in (ArousalLevel.STRESSED, ArousalLevel.HIGHLY_AROUSED)

    @property
    def is_calm(self) -> bool:
        return self in (ArousalLevel.DEEP_CALM, ArousalLevel.RELAXED)


_AROUSAL_ORDER: tuple[ArousalLevel, ...] = (
    ArousalLevel.DEEP_CALM,
    ArousalLevel.RELAXED,
    ArousalLevel.ALERT,
    ArousalLevel.ENGAGED,
    ArousalLevel.STRESSED,
    ArousalLevel.HIGHLY_AROUSED,
)

# The six tracked labels, in scale order (no sentinel).
AROUSAL_LEVELS: tuple[ArousalLevel, ...] = _AROUSAL_ORDER


class ActivityType(str, Enum):
    RESTING = "resting"
    WORKING = "working"
    EXERCISING = "exercising"
    SLEEPING = "sleeping"
    STRESSED = "stressed"
    RECOVERING = "recovering"
    UNKNOWN = "unknown"


class TriggerType(str, Enum):
    """Categories of detected stress triggers."""

    TIME_OF_DAY = "timeOfDay"
    ACTIVITY_CHANGE = "activityChange"
    ENVIRONMENTAL = "environmental"
    PHYSIOLOGICAL = "physiological"
    WORKLOAD = "workload"
    SOCIAL = "social"
    PATTERN = "pattern"
    UNKNOWN = "unknown"


class TriggerSeverity(str, Enum):
    MILD = "mild"
    MODERATE = "moderate"
    SEVERE = "severe"
    CRITICAL = "critical"


# ── Presentation metadata ─────────────────────────────────────


@dataclass(frozen=True, slots=True)
class DisplayMeta:
    """Display name, icon and colour for an enum member."""

    name: str
    icon: str
    color: str = "#9E9E9E"
    description: str = ""
    unit: str = ""


AROUSAL_META: dict[ArousalLevel, DisplayMeta] = {
    ArousalLevel.INITIALIZING: DisplayMeta("Initializing...", "⏳", "#757575"),
    ArousalLevel.DEEP_CALM: DisplayMeta("Deep Calm", "🧘", "#3949AB"),
    ArousalLevel.RELAXED: DisplayMeta("Relaxed", "😌", "#009688"),
    ArousalLevel.ALERT: DisplayMeta("Alert", "👀", "#1E88E5"),
    ArousalLevel.ENGAGED: DisplayMeta("Engaged", "⚡", "#FFB300"),
    ArousalLevel.STRESSED: DisplayMeta("Stressed", "😰", "#FB8C00"),
    ArousalLevel.HIGHLY_AROUSED: DisplayMeta("Highly Aroused", "⚠️", "#E53935"),
}

ACTIVITY_META: dict[ActivityType, DisplayMeta] = {
    ActivityType.RESTING: DisplayMeta(
        "Resting", "😌", description="Relaxed state with low physiological activity",
    ),
    ActivityType.WORKING: DisplayMeta(
        "Working", "💼", description="Mental engagement with moderate arousal",
    ),
    ActivityType.EXERCISING: DisplayMeta(
        "Exercising", "🏃", description="Physical activity with elevated vitals",
    ),
    ActivityType.SLEEPING: DisplayMeta(
        "Sleeping", "😴", description="Deep rest with minimal activity",
    ),
    ActivityType.STRESSED: DisplayMeta(
        "Stressed", "😰", description="High arousal without physical exertion",
    ),
    ActivityType.RECOVERING: DisplayMeta(
        "Recovering", "🧘", description="Post-activity recovery phase",
    ),
    ActivityType.UNKNOWN: DisplayMeta(
        "Unknown", "❓", description="Activity pattern not yet identified",
    ),
}

ACTIVITY_RECOMMENDATIONS: dict[ActivityType, str] = {
    ActivityType.RESTING: "Great time for reading, meditation, or creative thinking",
    ActivityType.WORKING: "Optimal state for focused work and problem-solving",
    ActivityType.EXERCISING: "Stay hydrated and monitor your intensity level",
    ActivityType.SLEEPING: "Continue resting - recovery is important",
    ActivityType.STRESSED: "Take a break, practice breathing exercises",
    ActivityType.RECOVERING: "Allow time for recovery before next activity",
    ActivityType.UNKNOWN: "Continue monitoring to identify patterns",
}

TRIGGER_META: dict[TriggerType, DisplayMeta] = {
    TriggerType.TIME_OF_DAY: DisplayMeta("Time of Day", "⏰"),
    TriggerType.ACTIVITY_CHANGE: DisplayMeta("Activity Change", "🔄"),
    TriggerType.ENVIRONMENTAL: DisplayMeta("Environmental", "🌡️"),
    TriggerType.PHYSIOLOGICAL: DisplayMeta("Physiological", "❤️"),
    TriggerType.WORKLOAD: DisplayMeta("Workload", "💼"),
    TriggerType.SOCIAL: DisplayMeta("Social", "👥"),
    TriggerType.PATTERN: DisplayMeta("Recurring Pattern", "🔁"),
    TriggerType.UNKNOWN: DisplayMeta("Unknown", "❓"),
}

SEVERITY_META: dict[TriggerSeverity, DisplayMeta] = {
    TriggerSeverity.MILD: DisplayMeta("Mild", "😐", "#FDD835"),
    TriggerSeverity.MODERATE: DisplayMeta("Moderate", "😟", "#FB8C00"),
    TriggerSeverity.SEVERE: DisplayMeta("Severe", "😰", "#E53935"),
    TriggerSeverity.CRITICAL: DisplayMeta("Critical", "🆘", "#B71C1C"),
}

CHANNEL_META: dict[Channel, DisplayMeta] = {
    Channel.HEART_RATE: DisplayMeta("Heart Rate", "❤️", "#E53935", unit="BPM"),
    Channel.GSR: DisplayMeta("GSR", "⚡", "#43A047", unit="µS"),
    Channel.TEMPERATURE: DisplayMeta("Temperature", "🌡️", "#FF6F00", unit="°C"),
    Channel.HRV: DisplayMeta("HRV", "📊", "#1E88E5", unit="ms"),
    Channel.SPO2: DisplayMeta("SpO2", "🫁", "#8E24AA", unit="%"),
    Channel.BATTERY: DisplayMeta("Battery", "🔋", "#4CAF50", unit="%"),
}


# ── Data transfer objects ─────────────────────────────────────


class RawSample(BaseModel):
    """A single validated value delivered on one sensor channel."""

    model_config = ConfigDict(frozen=True)

    channel: Channel
    value: float
    timestamp: datetime = Field(default_factory=datetime.now)


class Reading(BaseModel):
    """One validated sample set at an instant.

    ``gsr`` is the raw conductance value (0-1023).  ``gsr_variability`` is
    the smoothed dispersion metric; when supplied it takes precedence over
    the value the engine derives from the raw GSR stream.
    """

    model_config = ConfigDict(frozen=True)

    heart_rate: int = 0
    hrv: float = 0.0
    gsr: float = 0.0
    temperature: float = 0.0
    spo2: int = 0
    gsr_variability: float | None = None
    timestamp: datetime = Field(default_factory=datetime.now)


def battery_status(percentage: int) -> str:
    """Map a battery percentage to a coarse status label."""
    if percentage >= 90:
        return "Full"
    if percentage >= 60:
        return "Good"
    if percentage >= 30:
        return "Medium"
    if percentage >= 15:
        return "Low"
    if percentage > 0:
        return "Critical"
    return "Unknown"


class NotificationCategory(str, Enum):
    AROUSAL = "arousal"
    ACTIVITY = "activity"
    TRIGGER = "trigger"


class Notification(BaseModel):
    """A (title, body, icon) message for the notification collaborator."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    title: str
    body: str
    icon: str = ""
    category: NotificationCategory
    timestamp: datetime = Field(default_factory=datetime.now)
