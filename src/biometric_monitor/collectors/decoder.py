"""Ingestion boundary — decode and validate raw characteristic payloads.

Every channel arrives as a little-endian scalar.  Values outside a
channel's valid range are sensor noise: they are dropped (``None``) and
logged at debug level, never raised.

=============  ===========  ==============
Channel        Encoding     Valid range
=============  ===========  ==============
heart_rate     int32        (20, 220)
gsr            int32        [0, 1023]
temperature    float32      (20, 45)
hrv            float32      [0, 500)
spo2           int32        [70, 100]
battery        int16        [0, 100]
=============  ===========  ==============
"""

from __future__ import annotations

import math
import struct
from datetime import datetime

import structlog

from biometric_monitor.models import Channel, RawSample, Reading

logger = structlog.get_logger(__name__)

_READING_FIELDS: tuple[tuple[Channel, str], ...] = (
    (Channel.HEART_RATE, "heart_rate"),
    (Channel.HRV, "hrv"),
    (Channel.GSR, "gsr"),
    (Channel.TEMPERATURE, "temperature"),
    (Channel.SPO2, "spo2"),
)

_FORMATS: dict[Channel, str] = {
    Channel.HEART_RATE: "<i",
    Channel.GSR: "<i",
    Channel.TEMPERATURE: "<f",
    Channel.HRV: "<f",
    Channel.SPO2: "<i",
    Channel.BATTERY: "<h",
}


def _in_range(channel: Channel, v: float) -> bool:
    if channel is Channel.HEART_RATE:
        return 20 < v < 220
    if channel is Channel.GSR:
        return 0 <= v <= 1023
    if channel is Channel.TEMPERATURE:
        return 20 < v < 45
    if channel is Channel.HRV:
        return 0 <= v < 500
    if channel is Channel.SPO2:
        return 70 <= v <= 100
    if channel is Channel.BATTERY:
        return 0 <= v <= 100
    raise ValueError(f"Unknown channel {channel!r}")


def decode_payload(channel: Channel, payload: bytes) -> float | None:
    """Unpack the leading scalar of *payload*; ``None`` if it is too short."""
    fmt = _FORMATS[channel]
    size = struct.calcsize(fmt)
    if len(payload) < size:
        logger.debug("ingest.sample_dropped", channel=channel.value, reason="short_payload", length=len(payload))
        return None
    (value,) = struct.unpack_from(fmt, payload)
    return float(value)


def validate(channel: Channel, value: float) -> bool:
    """Return ``True`` when *value* is finite and inside the channel's range."""
    if not math.isfinite(value):
        return False
    return _in_range(channel, value)


def to_sample(
    channel: Channel,
    value: float | None = None,
    *,
    payload: bytes | None = None,
    timestamp: datetime | None = None,
) -> RawSample | None:
    """Build a validated :class:`RawSample` from a decoded value or a raw payload."""
    if payload is not None:
        value = decode_payload(channel, payload)
    if value is None:
        return None
    if not validate(channel, value):
        logger.debug("ingest.sample_dropped", channel=channel.value, reason="out_of_range", value=value)
        return None
    return RawSample(channel=channel, value=value, timestamp=timestamp or datetime.now())


def encode_value(channel: Channel, value: float) -> bytes:
    """Pack *value* the way the sensor transmits it (used by replays and tests)."""
    fmt = _FORMATS[channel]
    if fmt == "<f":
        return struct.pack(fmt, float(value))
    return struct.pack(fmt, int(value))


def sanitize_reading(reading: Reading) -> Reading:
    """Zero every channel of *reading* that fails validation ("no data")."""
    updates: dict[str, float | int] = {}
    for channel, attr in _READING_FIELDS:
        value = getattr(reading, attr)
        if value and not validate(channel, float(value)):
            logger.debug("ingest.sample_dropped", channel=channel.value, reason="out_of_range", value=value)
            updates[attr] = 0 if isinstance(value, int) else 0.0
    return reading.model_copy(update=updates) if updates else reading
