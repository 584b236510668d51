"""WebSocket connection manager — broadcast engine events to clients.

Clients subscribe to named channels.  ``all`` receives everything; the
other channels are the engine event kinds (``trigger_detected``,
``notification``, ``arousal_changed`` ...).
"""

from __future__ import annotations

import asyncio
import json
import time
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

import structlog
from fastapi import WebSocket

from biometric_monitor.engine.state import EngineEvent

logger = structlog.get_logger(__name__)


# ── Streaming statistics ─────────────────────────────────────

@dataclass
class StreamStats:
    """Aggregate broadcast counters."""

    total_outbound: int = 0
    per_channel: dict[str, int] = field(default_factory=dict)
    started_at: float = field(default_factory=time.monotonic)

    def record_outbound(self, channel: str) -> None:
        self.total_outbound += 1
        self.per_channel[channel] = self.per_channel.get(channel, 0) + 1

    def snapshot(self) -> dict[str, Any]:
        return {
            "uptime_seconds": round(time.monotonic() - self.started_at),
            "total_outbound": self.total_outbound,
            "channels": dict(self.per_channel),
        }


class ConnectionManager:
    """Manage WebSocket connections and broadcast messages."""

    def __init__(self, recent_capacity: int = 200) -> None:
        self._connections: dict[str, list[WebSocket]] = {}
        self._all: list[WebSocket] = []
        self._lock = asyncio.Lock()
        self.stats = StreamStats()
        self._recent: deque[dict[str, Any]] = deque(maxlen=recent_capacity)

    # ── Connection lifecycle ──────────────────────────────────

    async def connect(self, ws: WebSocket, channels: list[str] | None = None) -> None:
        await ws.accept()
        async with self._lock:
            self._all.append(ws)
            for ch in channels or ["all"]:
                self._connections.setdefault(ch, []).append(ws)
        logger.info("ws.connected", total=len(self._all), channels=channels or ["all"])

    async def disconnect(self, ws: WebSocket) -> None:
        async with self._lock:
            if ws in self._all:
                self._all.remove(ws)
            for subs in self._connections.values():
                if ws in subs:
                    subs.remove(ws)
        logger.info("ws.disconnected", total=len(self._all))

    @property
    def client_count(self) -> int:
        return len(self._all)

    def channel_breakdown(self) -> dict[str, int]:
        return {ch: len(subs) for ch, subs in self._connections.items() if subs}

    # ── Broadcasting ──────────────────────────────────────────

    async def broadcast(self, message: dict[str, Any], channel: str = "all") -> None:
        """Send a JSON message to every subscriber of *channel*."""
        targets = list(self._connections.get(channel, []))
        if not targets:
            return

        payload = json.dumps(message, default=_json_default, ensure_ascii=False)
        dead: list[WebSocket] = []
        for ws in targets:
            try:
                await ws.send_text(payload)
            except Exception:
                dead.append(ws)
        self.stats.record_outbound(channel)

        for ws in dead:
            await self.disconnect(ws)

    async def broadcast_event(self, event: EngineEvent) -> None:
        """Pipeline consumer: fan an engine event out to its channel and ``all``."""
        message = event.to_dict()
        self._recent.appendleft(message)
        await self.broadcast(message, event.kind.value)
        await self.broadcast(message, "all")

    def get_recent_messages(self, limit: int = 100) -> list[dict[str, Any]]:
        return list(self._recent)[:limit]


ws_manager = ConnectionManager()


def _json_default(obj: Any) -> Any:
    if isinstance(obj, datetime):
        return obj.isoformat()
    raise TypeError(f"Not serialisable: {type(obj)}")
