"""Versioned JSON shape of every persisted record.

Field names are camelCase and timestamps ISO-8601.  Each encoded object
carries ``schemaVersion`` so later releases can migrate old rows.

Decoding is forward compatible: a missing optional field takes its
documented default (``durationSeconds`` → 0, ``context`` → ``None``,
unknown enum names → ``unknown``/``moderate``).  A missing *required*
field (``startTime``, ``timestamp`` ...) raises :class:`RecordDecodeError`;
the repository layer skips such rows and logs them.
"""

from __future__ import annotations

import json
from datetime import datetime
from enum import Enum
from typing import Any, Callable, TypeVar

from biometric_monitor.activity.models import ActivityDetection, ActivityTransition
from biometric_monitor.models import ActivityType, TriggerSeverity, TriggerType
from biometric_monitor.sessions.models import SessionData
from biometric_monitor.triggers.models import StressTrigger

SCHEMA_VERSION = 1

E = TypeVar("E", bound=Enum)


class RecordDecodeError(ValueError):
    """A stored record is malformed beyond what defaults can repair."""


# ── Field helpers ─────────────────────────────────────────────


def _required(data: dict[str, Any], key: str) -> Any:
    if data.get(key) is None:
        raise RecordDecodeError(f"missing required field {key!r}")
    return data[key]


def _timestamp(data: dict[str, Any], key: str) -> datetime:
    raw = _required(data, key)
    try:
        return datetime.fromisoformat(raw)
    except (TypeError, ValueError) as exc:
        raise RecordDecodeError(f"bad timestamp in {key!r}: {raw!r}") from exc


def _number(data: dict[str, Any], key: str, default: float = 0.0) -> float:
    raw = data.get(key)
    if raw is None:
        return default
    try:
        return float(raw)
    except (TypeError, ValueError) as exc:
        raise RecordDecodeError(f"bad number in {key!r}: {raw!r}") from exc


def _enum(cls: type[E], raw: Any, default: E) -> E:
    try:
        return cls(raw)
    except ValueError:
        return default


def _float_map(data: dict[str, Any], key: str) -> dict[str, float]:
    raw = data.get(key) or {}
    if not isinstance(raw, dict):
        raise RecordDecodeError(f"{key!r} must be an object")
    return {str(k): float(v) for k, v in raw.items()}


# ── SessionData ───────────────────────────────────────────────


def encode_session(s: SessionData) -> dict[str, Any]:
    return {
        "schemaVersion": SCHEMA_VERSION,
        "startTime": s.start_time.isoformat(),
        "endTime": s.end_time.isoformat(),
        "avgHeartRate": s.avg_heart_rate,
        "avgHRV": s.avg_hrv,
        "avgSpO2": s.avg_spo2,
        "avgGSR": s.avg_gsr,
        "avgTemperature": s.avg_temperature,
        "avgCognitiveScore": s.avg_cognitive_score,
        "arousalDistribution": dict(s.arousal_distribution),
        "stressEvents": s.stress_events,
        "calmPeriods": s.calm_periods,
    }


def decode_session(data: dict[str, Any]) -> SessionData:
    dist = {k: int(v) for k, v in _float_map(data, "arousalDistribution").items()}
    return SessionData(
        start_time=_timestamp(data, "startTime"),
        end_time=_timestamp(data, "endTime"),
        avg_heart_rate=_number(data, "avgHeartRate"),
        avg_hrv=_number(data, "avgHRV"),
        avg_spo2=_number(data, "avgSpO2"),
        avg_gsr=_number(data, "avgGSR"),
        avg_temperature=_number(data, "avgTemperature"),
        avg_cognitive_score=_number(data, "avgCognitiveScore"),
        arousal_distribution=dist,
        stress_events=int(_number(data, "stressEvents")),
        calm_periods=int(_number(data, "calmPeriods")),
    )


# ── StressTrigger ─────────────────────────────────────────────


def encode_trigger(t: StressTrigger) -> dict[str, Any]:
    return {
        "schemaVersion": SCHEMA_VERSION,
        "type": t.type.value,
        "severity": t.severity.value,
        "timestamp": t.timestamp.isoformat(),
        "description": t.description,
        "biometricSnapshot": dict(t.biometric_snapshot),
        "context": t.context,
        "intensity": t.intensity,
        "durationSeconds": t.duration_seconds,
        "recommendation": t.recommendation,
    }


def decode_trigger(data: dict[str, Any]) -> StressTrigger:
    return StressTrigger(
        type=_enum(TriggerType, data.get("type"), TriggerType.UNKNOWN),
        severity=_enum(TriggerSeverity, data.get("severity"), TriggerSeverity.MODERATE),
        timestamp=_timestamp(data, "timestamp"),
        description=str(data.get("description") or ""),
        biometric_snapshot=_float_map(data, "biometricSnapshot"),
        context=data.get("context"),
        intensity=min(max(_number(data, "intensity"), 0.0), 1.0),
        duration_seconds=int(_number(data, "durationSeconds")),
        recommendation=data.get("recommendation"),
    )


# ── ActivityDetection / ActivityTransition ───────────────────


def encode_detection(d: ActivityDetection) -> dict[str, Any]:
    return {
        "schemaVersion": SCHEMA_VERSION,
        "activityType": d.activity_type.value,
        "confidence": d.confidence,
        "timestamp": d.timestamp.isoformat(),
        "duration": d.duration,
        "metrics": dict(d.metrics),
    }


def decode_detection(data: dict[str, Any]) -> ActivityDetection:
    return ActivityDetection(
        activity_type=_enum(ActivityType, data.get("activityType"), ActivityType.UNKNOWN),
        confidence=min(max(_number(data, "confidence"), 0.0), 1.0),
        timestamp=_timestamp(data, "timestamp"),
        duration=int(_number(data, "duration")),
        metrics=_float_map(data, "metrics"),
    )


def encode_transition(t: ActivityTransition) -> dict[str, Any]:
    return {
        "schemaVersion": SCHEMA_VERSION,
        "fromActivity": t.from_activity.value,
        "toActivity": t.to_activity.value,
        "timestamp": t.timestamp.isoformat(),
        "trigger": t.trigger,
    }


def decode_transition(data: dict[str, Any]) -> ActivityTransition:
    return ActivityTransition(
        from_activity=_enum(ActivityType, data.get("fromActivity"), ActivityType.UNKNOWN),
        to_activity=_enum(ActivityType, data.get("toActivity"), ActivityType.UNKNOWN),
        timestamp=_timestamp(data, "timestamp"),
        trigger=data.get("trigger"),
    )


# ── Text round-trip ───────────────────────────────────────────

T = TypeVar("T")


def dumps(encoder: Callable[[T], dict[str, Any]], record: T) -> str:
    return json.dumps(encoder(record), ensure_ascii=False)


def loads(decoder: Callable[[dict[str, Any]], T], text: str) -> T:
    """Parse and decode *text*; every failure surfaces as :class:`RecordDecodeError`."""
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        raise RecordDecodeError(f"invalid JSON: {exc.msg}") from exc
    if not isinstance(data, dict):
        raise RecordDecodeError("record must be a JSON object")
    version = data.get("schemaVersion", SCHEMA_VERSION)
    if not isinstance(version, int) or version > SCHEMA_VERSION:
        raise RecordDecodeError(f"unsupported schemaVersion {version!r}")
    try:
        return decoder(data)
    except RecordDecodeError:
        raise
    except (TypeError, ValueError) as exc:
        raise RecordDecodeError(str(exc)) from exc
