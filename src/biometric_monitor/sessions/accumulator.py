"""Per-session accumulation of readings and time-in-arousal-state."""

from __future__ import annotations

from datetime import datetime

import structlog

from biometric_monitor.models import AROUSAL_LEVELS, ArousalLevel, Reading
from biometric_monitor.sessions.models import SessionData

logger = structlog.get_logger(__name__)


def _mean(values: list[float]) -> float:
    return sum(values) / len(values) if values else 0.0


class SessionAccumulator:
    """Collect readings for one connected session and fold them into a record.

    Arousal time is accounted by diffing the clock whenever the label
    changes.  The first label recorded is credited from the session start
    and the label current at :meth:`finish` is flushed then.
    ``INITIALIZING`` is never counted.  Zero channel values mean "no data"
    and are not sampled; the cognitive score is sampled on every tick.
    """

    def __init__(self) -> None:
        self._start: datetime | None = None
        self._reset()

    def _reset(self) -> None:
        self._heart_rates: list[float] = []
        self._hrvs: list[float] = []
        self._spo2s: list[float] = []
        self._gsrs: list[float] = []
        self._temps: list[float] = []
        self._cognitive: list[float] = []
        self._arousal_seconds: dict[str, int] = {level.value: 0 for level in AROUSAL_LEVELS}
        self._last_arousal: ArousalLevel | None = None
        self._last_change: datetime | None = None

    @property
    def active(self) -> bool:
        return self._start is not None

    @property
    def start_time(self) -> datetime | None:
        return self._start

    @property
    def arousal_seconds(self) -> dict[str, int]:
        return dict(self._arousal_seconds)

    # ── Lifecycle ─────────────────────────────────────────────

    def start(self, now: datetime | None = None) -> None:
        """Begin a new session, discarding anything not yet finished."""
        now = now or datetime.now()
        self._reset()
        self._start = now
        self._last_change = now
        logger.info("session.started", start=now.isoformat())

    def record(
        self,
        reading: Reading,
        arousal: ArousalLevel,
        cognitive_score: float,
        now: datetime | None = None,
    ) -> None:
        """Account one tick of *reading* under *arousal*."""
        if not self.active:
            return
        now = now or datetime.now()

        if arousal != self._last_arousal:
            self._flush_arousal(now)
            self._last_arousal = arousal

        if reading.heart_rate > 0:
            self._heart_rates.append(float(reading.heart_rate))
        if reading.hrv > 0:
            self._hrvs.append(reading.hrv)
        if reading.spo2 > 0:
            self._spo2s.append(float(reading.spo2))
        if reading.gsr > 0:
            self._gsrs.append(reading.gsr)
        if reading.temperature > 0:
            self._temps.append(reading.temperature)
        self._cognitive.append(cognitive_score)

    def finish(self, now: datetime | None = None) -> SessionData | None:
        """Emit the session record and reset; ``None`` when no session is active."""
        if self._start is None:
            return None
        now = now or datetime.now()
        self._flush_arousal(now)

        dist = dict(self._arousal_seconds)
        session = SessionData(
            start_time=self._start,
            end_time=now,
            avg_heart_rate=_mean(self._heart_rates),
            avg_hrv=_mean(self._hrvs),
            avg_spo2=_mean(self._spo2s),
            avg_gsr=_mean(self._gsrs),
            avg_temperature=_mean(self._temps),
            avg_cognitive_score=_mean(self._cognitive),
            arousal_distribution=dist,
            stress_events=dist[ArousalLevel.STRESSED.value] + dist[ArousalLevel.HIGHLY_AROUSED.value],
            calm_periods=dist[ArousalLevel.DEEP_CALM.value] + dist[ArousalLevel.RELAXED.value],
        )

        logger.info(
            "session.ended",
            duration_seconds=session.duration_seconds,
            stress_seconds=session.stress_events,
            calm_seconds=session.calm_periods,
        )
        self._start = None
        self._reset()
        return session

    # ── Internals ─────────────────────────────────────────────

    def _flush_arousal(self, now: datetime) -> None:
        last = self._last_arousal
        # the first label recorded owns the time since start
        if last is None or self._last_change is None:
            return
        if last is not ArousalLevel.INITIALIZING:
            elapsed = int((now - self._last_change).total_seconds())
            self._arousal_seconds[last.value] += max(0, elapsed)
        self._last_change = now
