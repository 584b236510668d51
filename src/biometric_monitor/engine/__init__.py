"""Live engine — single-owner state, tick cadence and output events."""

from biometric_monitor.engine.core import MonitorEngine
from biometric_monitor.engine.driver import LogicalClock, RealtimeTickDriver, TickDriver
from biometric_monitor.engine.state import EngineEvent, EventKind, StateSnapshot

__all__ = [
    "EngineEvent",
    "EventKind",
    "LogicalClock",
    "MonitorEngine",
    "RealtimeTickDriver",
    "StateSnapshot",
    "TickDriver",
]
