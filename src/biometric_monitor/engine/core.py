"""MonitorEngine — single owner of all live derived state.

Every public operation is one atomic step (validate → buffer → derive →
emit) and returns the discrete events it produced.  The engine performs
no I/O and never reads the wall clock when ``now`` is supplied, so a
:class:`~biometric_monitor.engine.driver.TickDriver` can drive it
deterministically.

Tick cadence
~~~~~~~~~~~~
* every tick: arousal-time accounting and session sampling
* every 30th tick: activity recognition
* every 10th tick: stress-trigger evaluation (skipped until both heart
  rate and GSR have data)
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime, timedelta
from typing import TYPE_CHECKING

import structlog

from biometric_monitor.activity.models import ActivityDetection, ActivityTransition
from biometric_monitor.activity.recognizer import ActivityRecognizer
from biometric_monitor.affect.features import GsrVariabilityTracker
from biometric_monitor.affect.inference import (
    classify_arousal,
    estimate_cognitive_score,
    mental_state_insight,
    recommendations,
)
from biometric_monitor.engine.state import (
    ArousalChange,
    EngineEvent,
    EngineState,
    EventKind,
    StateSnapshot,
)
from biometric_monitor.models import (
    ACTIVITY_META,
    AROUSAL_META,
    SEVERITY_META,
    TRIGGER_META,
    WAVEFORM_CHANNELS,
    ActivityType,
    ArousalLevel,
    Channel,
    Notification,
    NotificationCategory,
    RawSample,
    Reading,
    TriggerSeverity,
    battery_status,
)
from biometric_monitor.sessions.accumulator import SessionAccumulator
from biometric_monitor.streaming.waveform import WaveformConfig, WaveformManager
from biometric_monitor.thresholds import DEFAULT_THRESHOLDS, EngineThresholds
from biometric_monitor.triggers.analysis import analyze_triggers
from biometric_monitor.triggers.detector import TriggerLog, TriggerSignals, detect_trigger
from biometric_monitor.triggers.models import StressTrigger, TriggerAnalysis

if TYPE_CHECKING:
    from biometric_monitor.config import Settings

logger = structlog.get_logger(__name__)

# (title, body) per arousal level entered; icon comes from AROUSAL_META
_AROUSAL_NOTICES: dict[ArousalLevel, tuple[str, str]] = {
    ArousalLevel.DEEP_CALM: (
        "Deep Calm Achieved",
        "You've entered a deeply relaxed state. Perfect for meditation or rest.",
    ),
    ArousalLevel.ENGAGED: (
        "Engaged State",
        "Your arousal levels are increasing. You're in an active, focused state.",
    ),
    ArousalLevel.STRESSED: (
        "Stress Detected",
        "Elevated stress levels detected. Consider taking a break or trying breathing exercises.",
    ),
    ArousalLevel.HIGHLY_AROUSED: (
        "High Stress Alert",
        "Very high stress levels detected! Please take immediate action to relax.",
    ),
}

_NOTIFY_SEVERITIES = (TriggerSeverity.CRITICAL, TriggerSeverity.SEVERE)


class MonitorEngine:
    """Derive arousal, cognitive score, activity and triggers from samples.

    Parameters
    ----------
    thresholds : EngineThresholds
        Every numeric boundary the classifiers use.
    waveform_config : WaveformConfig | None
        Shared configuration for the per-channel waveform buffers.
    activity_every, trigger_every : int
        Tick cadence of activity recognition and trigger evaluation.
    """

    def __init__(
        self,
        thresholds: EngineThresholds = DEFAULT_THRESHOLDS,
        *,
        waveform_config: WaveformConfig | None = None,
        variability_window: int = 20,
        variability_alpha: float = 0.3,
        trigger_capacity: int | None = None,
        activity_every: int = 30,
        trigger_every: int = 10,
    ) -> None:
        if activity_every < 1 or trigger_every < 1:
            raise ValueError("Tick cadences must be positive")
        self.thresholds = thresholds
        self.activity_every = activity_every
        self.trigger_every = trigger_every

        self.state = EngineState()
        self.waveforms = WaveformManager(waveform_config)
        self.variability = GsrVariabilityTracker(variability_window, variability_alpha)
        self.recognizer = ActivityRecognizer(thresholds)
        self.triggers = TriggerLog(trigger_capacity or thresholds.trigger.log_capacity)
        self.trigger_analysis = TriggerAnalysis()
        self.accumulator = SessionAccumulator()

    @classmethod
    def from_settings(cls, settings: Settings, thresholds: EngineThresholds = DEFAULT_THRESHOLDS) -> MonitorEngine:
        return cls(
            thresholds,
            waveform_config=WaveformConfig(
                max_points=settings.waveform_max_points,
                time_window=timedelta(seconds=settings.waveform_time_window_seconds),
            ),
            variability_window=settings.gsr_variability_window,
            variability_alpha=settings.gsr_variability_alpha,
            trigger_capacity=settings.trigger_log_capacity,
            activity_every=settings.activity_check_every_ticks,
            trigger_every=settings.trigger_check_every_ticks,
        )

    # ── Derived values ────────────────────────────────────────

    @property
    def gsr_variability(self) -> float:
        override = self.state.gsr_variability_override
        return override if override is not None else self.variability.value

    @property
    def arousal(self) -> ArousalLevel:
        return self.state.arousal

    @property
    def cognitive_score(self) -> float:
        s = self.state
        return estimate_cognitive_score(
            s.heart_rate, s.hrv, self.gsr_variability, s.temperature, self.thresholds,
        )

    def current_reading(self, now: datetime | None = None) -> Reading:
        s = self.state
        return Reading(
            heart_rate=s.heart_rate,
            hrv=s.hrv,
            gsr=s.gsr,
            temperature=s.temperature,
            spo2=s.spo2,
            gsr_variability=self.gsr_variability,
            timestamp=now or s.last_update or datetime.now(),
        )

    # ── Session lifecycle ─────────────────────────────────────

    def start_session(self, now: datetime | None = None) -> list[EngineEvent]:
        """Begin a session; a no-op while one is already active."""
        if self.state.session_active:
            return []
        now = now or datetime.now()
        self.state.session_active = True
        self.state.tick_count = 0
        self.accumulator.start(now)
        return [EngineEvent(EventKind.SESSION_STARTED, now)]

    def stop_session(self, now: datetime | None = None) -> list[EngineEvent]:
        """Flush the session exactly once; further calls return nothing."""
        if not self.state.session_active:
            return []
        now = now or datetime.now()
        self.state.session_active = False
        self.state.tick_count = 0
        session = self.accumulator.finish(now)
        if session is None:
            return []
        return [EngineEvent(EventKind.SESSION_ENDED, now, session)]

    # ── Ingestion ─────────────────────────────────────────────

    def handle_sample(self, sample: RawSample) -> list[EngineEvent]:
        """Apply one validated channel value."""
        s = self.state
        now = sample.timestamp
        value = sample.value

        if sample.channel is Channel.HEART_RATE:
            s.heart_rate = int(value)
        elif sample.channel is Channel.HRV:
            s.hrv = value
        elif sample.channel is Channel.GSR:
            # the most recent variability source wins
            s.gsr = value
            s.gsr_variability_override = None
            self.variability.update(value)
        elif sample.channel is Channel.TEMPERATURE:
            s.temperature = value
        elif sample.channel is Channel.SPO2:
            s.spo2 = int(value)
        elif sample.channel is Channel.BATTERY:
            s.battery = int(value)
            return []

        if sample.channel in WAVEFORM_CHANNELS:
            self.waveforms.add_point(sample.channel, value, now)
        s.last_update = now
        return self._update_arousal(now)

    def handle_reading(self, reading: Reading) -> list[EngineEvent]:
        """Apply a full sample set; zero-valued channels count as "no data"."""
        s = self.state
        now = reading.timestamp

        s.heart_rate = reading.heart_rate
        s.hrv = reading.hrv
        s.gsr = reading.gsr
        s.temperature = reading.temperature
        s.spo2 = reading.spo2
        if reading.gsr_variability is not None:
            s.gsr_variability_override = reading.gsr_variability
        elif reading.gsr > 0:
            s.gsr_variability_override = None
            self.variability.update(reading.gsr)

        for channel, value in (
            (Channel.HEART_RATE, float(reading.heart_rate)),
            (Channel.GSR, reading.gsr),
            (Channel.TEMPERATURE, reading.temperature),
            (Channel.HRV, reading.hrv),
        ):
            if value > 0:
                self.waveforms.add_point(channel, value, now)

        s.last_update = now
        return self._update_arousal(now)

    # ── Tick ──────────────────────────────────────────────────

    def tick(self, now: datetime | None = None) -> list[EngineEvent]:
        """Advance one logical second of the active session."""
        s = self.state
        if not s.session_active:
            return []
        now = now or datetime.now()
        s.tick_count += 1

        events = self._update_arousal(now)
        reading = self.current_reading(now)
        self.accumulator.record(reading, s.arousal, self.cognitive_score, now)

        if s.tick_count % self.activity_every == 0:
            events.extend(self._recognize_activity(reading, now))
        if s.tick_count % self.trigger_every == 0:
            events.extend(self._check_triggers(now))
        return events

    # ── Internals ─────────────────────────────────────────────

    def _update_arousal(self, now: datetime) -> list[EngineEvent]:
        s = self.state
        level = classify_arousal(s.gsr, self.gsr_variability, self.thresholds)
        if level == s.arousal:
            return []

        previous, s.arousal = s.arousal, level
        logger.debug("engine.arousal_changed", previous=previous.value, current=level.value)
        events = [EngineEvent(EventKind.AROUSAL_CHANGED, now, ArousalChange(previous=previous, current=level))]

        notice = _AROUSAL_NOTICES.get(level)
        if notice is None:
            return events
        if level is ArousalLevel.ENGAGED and not previous.is_calm:
            return events
        events.append(self._notify(now, *notice, AROUSAL_META[level].icon, NotificationCategory.AROUSAL))
        return events

    def _recognize_activity(self, reading: Reading, now: datetime) -> list[EngineEvent]:
        detection, transition = self.recognizer.update(reading, self.state.arousal, self.cognitive_score, now)
        events = [EngineEvent(EventKind.ACTIVITY_DETECTED, now, detection)]
        if transition is not None:
            events.append(EngineEvent(EventKind.ACTIVITY_TRANSITION, now, transition))
            notice = _transition_notice(transition)
            if notice is not None:
                title, body, icon = notice
                events.append(self._notify(now, title, body, icon, NotificationCategory.ACTIVITY))
        return events

    def _check_triggers(self, now: datetime) -> list[EngineEvent]:
        s = self.state
        if s.heart_rate == 0 or s.gsr == 0:
            return []

        current = TriggerSignals(
            heart_rate=s.heart_rate,
            hrv=s.hrv,
            gsr=s.gsr,
            gsr_variability=self.gsr_variability,
            temperature=s.temperature,
            arousal=s.arousal,
        )
        cur_activity = self.recognizer.current.activity_type if self.recognizer.current else None
        prev_activity = self.recognizer.previous.activity_type if self.recognizer.previous else None

        trigger = detect_trigger(current, s.previous_signals, cur_activity, prev_activity, now, self.thresholds)
        s.previous_signals = current
        if trigger is None:
            return []

        self.triggers.append(trigger)
        self.trigger_analysis = analyze_triggers(self.triggers.items(), self.thresholds)
        events = [EngineEvent(EventKind.TRIGGER_DETECTED, now, trigger)]
        if trigger.severity in _NOTIFY_SEVERITIES:
            events.append(
                self._notify(
                    now,
                    f"{SEVERITY_META[trigger.severity].icon} Stress Trigger Detected",
                    trigger.description,
                    TRIGGER_META[trigger.type].icon,
                    NotificationCategory.TRIGGER,
                ),
            )
        return events

    @staticmethod
    def _notify(
        now: datetime, title: str, body: str, icon: str, category: NotificationCategory,
    ) -> EngineEvent:
        note = Notification(title=title, body=body, icon=icon, category=category, timestamp=now)
        return EngineEvent(EventKind.NOTIFICATION, now, note)

    # ── Persistence seeding ───────────────────────────────────

    def restore(
        self,
        *,
        triggers: Iterable[StressTrigger] = (),
        detections: Iterable[ActivityDetection] = (),
        transitions: Iterable[ActivityTransition] = (),
    ) -> None:
        """Seed the trigger log and activity history from stored records."""
        self.triggers.extend(triggers)
        self.trigger_analysis = analyze_triggers(self.triggers.items(), self.thresholds)
        self.recognizer.restore(list(detections), list(transitions))
        logger.info(
            "engine.restored",
            triggers=len(self.triggers),
            detections=len(self.recognizer.history),
            transitions=len(self.recognizer.transitions),
        )

    # ── Observation ───────────────────────────────────────────

    def snapshot(self, now: datetime | None = None) -> StateSnapshot:
        s = self.state
        score = self.cognitive_score
        return StateSnapshot(
            timestamp=now or s.last_update or datetime.now(),
            reading=self.current_reading(now),
            arousal=s.arousal,
            cognitive_score=score,
            gsr_variability=self.gsr_variability,
            mental_state=mental_state_insight(score, s.arousal),
            recommendations=recommendations(score, s.arousal, s.heart_rate, s.spo2),
            battery=s.battery,
            battery_status=battery_status(s.battery),
            session_active=s.session_active,
            session_start=self.accumulator.start_time,
            session_seconds=s.tick_count,
            current_activity=self.recognizer.current,
            triggers=self.triggers.items(),
            trigger_analysis=self.trigger_analysis,
            waveforms={ch: self.waveforms.get_stats(ch) for ch in self.waveforms.channels},
        )


def _transition_notice(transition: ActivityTransition) -> tuple[str, str, str] | None:
    to = transition.to_activity
    if to is ActivityType.EXERCISING:
        return "Exercise Detected", "Physical activity started. Stay hydrated!", ACTIVITY_META[to].icon
    if to is ActivityType.STRESSED:
        body = f"Activity shifted to stressed state. {transition.trigger or ''}".rstrip()
        return "Stress Transition", body, ACTIVITY_META[to].icon
    if to is ActivityType.RESTING and transition.from_activity is ActivityType.STRESSED:
        return "Stress Resolved", "Great! You've transitioned to a resting state.", ACTIVITY_META[to].icon
    return None
