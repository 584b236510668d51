"""Bounded rolling buffers backing the live waveform views.

Each channel keeps a :class:`WaveformBuffer` capped both by point count and
by age.  Eviction always runs count-first, then age, so after every
``add_point`` the buffer holds at most ``max_points`` points, none older
than ``time_window`` relative to the insertion time.
"""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass
from datetime import datetime, timedelta

from pydantic import BaseModel, ConfigDict, Field

from biometric_monitor.models import WAVEFORM_CHANNELS, Channel

# Ranges narrower than this are rendered flat instead of normalised.
_MIN_RANGE = 1e-3
_PADDING = 0.1


class WaveformConfig(BaseModel):
    """Buffer sizing and scaling options for one channel."""

    model_config = ConfigDict(frozen=True)

    max_points: int = Field(100, ge=1)
    time_window: timedelta = timedelta(seconds=30)
    auto_scale: bool = True
    min_y: float | None = None
    max_y: float | None = None


@dataclass(frozen=True, slots=True)
class WaveformPoint:
    timestamp: datetime
    value: float
    channel: Channel


@dataclass(frozen=True, slots=True)
class WaveformStats:
    """Summary of the values currently held in a buffer."""

    channel: Channel
    min: float = 0.0
    max: float = 0.0
    avg: float = 0.0
    current: float = 0.0
    count: int = 0

    @property
    def range(self) -> float:
        return self.max - self.min


class WaveformBuffer:
    """Count- and time-windowed sequence of samples for a single channel."""

    def __init__(self, channel: Channel, config: WaveformConfig | None = None) -> None:
        self.channel = channel
        self.config = config or WaveformConfig()
        self._points: deque[WaveformPoint] = deque()

    def __len__(self) -> int:
        return len(self._points)

    # ── Mutation ──────────────────────────────────────────────

    def add_point(self, value: float, now: datetime | None = None) -> WaveformPoint:
        """Append *value* stamped at *now*, then apply both eviction rules."""
        now = now or datetime.now()
        point = WaveformPoint(timestamp=now, value=float(value), channel=self.channel)
        self._points.append(point)

        while len(self._points) > self.config.max_points:
            self._points.popleft()

        cutoff = now - self.config.time_window
        while self._points and self._points[0].timestamp < cutoff:
            self._points.popleft()

        return point

    def reconfigure(self, config: WaveformConfig) -> None:
        """Swap in *config* and trim to the new point cap."""
        self.config = config
        while len(self._points) > config.max_points:
            self._points.popleft()

    def clear(self) -> None:
        self._points.clear()

    # ── Queries ───────────────────────────────────────────────

    @property
    def points(self) -> list[WaveformPoint]:
        return list(self._points)

    @property
    def values(self) -> list[float]:
        return [p.value for p in self._points]

    @property
    def latest(self) -> WaveformPoint | None:
        return self._points[-1] if self._points else None

    def get_stats(self) -> WaveformStats:
        """Return min/max/avg/current/count; all zero on an empty buffer."""
        if not self._points:
            return WaveformStats(channel=self.channel)
        values = self.values
        return WaveformStats(
            channel=self.channel,
            min=min(values),
            max=max(values),
            avg=sum(values) / len(values),
            current=values[-1],
            count=len(values),
        )

    def get_normalized_values(self) -> list[float]:
        """Project the buffered values onto ``[0, 1]`` for rendering.

        With ``auto_scale`` the bounds are the observed min/max padded by
        10% of the range on either side; otherwise the fixed ``min_y`` /
        ``max_y`` bounds (default 0..100) apply.  A degenerate range yields
        a flat line at 0.5.
        """
        values = self.values
        if not values:
            return []

        if self.config.auto_scale:
            lo, hi = min(values), max(values)
            pad = (hi - lo) * _PADDING
            lo, hi = lo - pad, hi + pad
        else:
            lo = self.config.min_y if self.config.min_y is not None else 0.0
            hi = self.config.max_y if self.config.max_y is not None else 100.0

        span = hi - lo
        if abs(span) < _MIN_RANGE:
            return [0.5] * len(values)

        return [min(1.0, max(0.0, (v - lo) / span)) for v in values]

    def time_range_seconds(self) -> float:
        if len(self._points) < 2:
            return 0.0
        return (self._points[-1].timestamp - self._points[0].timestamp).total_seconds()


class WaveformManager:
    """Owns one :class:`WaveformBuffer` per waveform channel."""

    def __init__(self, config: WaveformConfig | None = None) -> None:
        self._buffers: dict[Channel, WaveformBuffer] = {
            ch: WaveformBuffer(ch, config) for ch in WAVEFORM_CHANNELS
        }

    def buffer(self, channel: Channel) -> WaveformBuffer:
        try:
            return self._buffers[channel]
        except KeyError:
            raise ValueError(f"No waveform buffer for channel {channel.value!r}") from None

    def add_point(self, channel: Channel, value: float, now: datetime | None = None) -> WaveformPoint:
        return self.buffer(channel).add_point(value, now)

    def get_stats(self, channel: Channel) -> WaveformStats:
        return self.buffer(channel).get_stats()

    def get_normalized_values(self, channel: Channel) -> list[float]:
        return self.buffer(channel).get_normalized_values()

    def get_points(self, channel: Channel) -> list[WaveformPoint]:
        return self.buffer(channel).points

    def update_config(self, channel: Channel, config: WaveformConfig) -> None:
        self.buffer(channel).reconfigure(config)

    def clear(self, channel: Channel) -> None:
        self.buffer(channel).clear()

    def clear_all(self) -> None:
        for buf in self._buffers.values():
            buf.clear()

    @property
    def channels(self) -> tuple[Channel, ...]:
        return tuple(self._buffers)
