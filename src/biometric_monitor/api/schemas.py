"""Request models for the HTTP API."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

from biometric_monitor.models import Channel


class SampleRequest(BaseModel):
    channel: Channel
    value: float
    timestamp: datetime | None = None


class RawPayloadRequest(BaseModel):
    """A characteristic payload as transmitted, hex encoded."""

    channel: Channel
    payload_hex: str = Field(min_length=2)
    timestamp: datetime | None = None


class ReadingRequest(BaseModel):
    heart_rate: int = 0
    hrv: float = 0.0
    gsr: float = 0.0
    temperature: float = 0.0
    spo2: int = 0
    gsr_variability: float | None = Field(None, ge=0.0)
    timestamp: datetime | None = None


class SessionRequest(BaseModel):
    timestamp: datetime | None = None
