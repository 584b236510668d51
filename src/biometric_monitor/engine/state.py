"""Engine state, discrete output events and the observable snapshot."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from biometric_monitor.activity.models import ActivityDetection
from biometric_monitor.models import ArousalLevel, Channel, Reading
from biometric_monitor.streaming.waveform import WaveformStats
from biometric_monitor.triggers.detector import TriggerSignals
from biometric_monitor.triggers.models import StressTrigger, TriggerAnalysis

# ── Events ────────────────────────────────────────────────────


class EventKind(str, Enum):
    SESSION_STARTED = "session_started"
    SESSION_ENDED = "session_ended"
    AROUSAL_CHANGED = "arousal_changed"
    ACTIVITY_DETECTED = "activity_detected"
    ACTIVITY_TRANSITION = "activity_transition"
    TRIGGER_DETECTED = "trigger_detected"
    NOTIFICATION = "notification"


class ArousalChange(BaseModel):
    model_config = ConfigDict(frozen=True)

    previous: ArousalLevel
    current: ArousalLevel


@dataclass(frozen=True, slots=True)
class EngineEvent:
    """One discrete output of an engine operation.

    ``data`` is the pydantic record the event is about (a ``SessionData``,
    ``StressTrigger``, ``Notification`` ...).
    """

    kind: EventKind
    timestamp: datetime
    data: BaseModel | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind.value,
            "timestamp": self.timestamp.isoformat(),
            "data": self.data.model_dump(mode="json") if self.data is not None else None,
        }


# ── Mutable state (owned by MonitorEngine) ───────────────────


@dataclass(slots=True)
class EngineState:
    """Latest channel values and tick bookkeeping.

    Zero means "no data yet" for every channel.
    """

    heart_rate: int = 0
    hrv: float = 0.0
    gsr: float = 0.0
    temperature: float = 0.0
    spo2: int = 0
    battery: int = 0
    gsr_variability_override: float | None = None
    arousal: ArousalLevel = ArousalLevel.INITIALIZING
    tick_count: int = 0
    session_active: bool = False
    last_update: datetime | None = None
    previous_signals: TriggerSignals = field(default_factory=TriggerSignals)


# ── Observable snapshot ───────────────────────────────────────


class StateSnapshot(BaseModel):
    """Immutable view of everything the engine derives, taken after a step."""

    model_config = ConfigDict(frozen=True)

    timestamp: datetime
    reading: Reading
    arousal: ArousalLevel
    cognitive_score: float
    gsr_variability: float
    mental_state: str
    recommendations: list[str] = Field(default_factory=list)
    battery: int = 0
    battery_status: str = "Unknown"
    session_active: bool = False
    session_start: datetime | None = None
    session_seconds: int = 0
    current_activity: ActivityDetection | None = None
    triggers: list[StressTrigger] = Field(default_factory=list)
    trigger_analysis: TriggerAnalysis = Field(default_factory=TriggerAnalysis)
    waveforms: dict[Channel, WaveformStats] = Field(default_factory=dict)
