"""Abstract base class for sample sources feeding the engine."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import AsyncIterator

from biometric_monitor.models import RawSample


class SampleSource(ABC):
    """Contract for anything that delivers validated raw samples.

    A source owns its transport (a radio link, a recording on disk, a test
    fixture) and yields :class:`RawSample` objects in arrival order.  The
    consumer is the ingestion pipeline, which serialises them into the
    engine.
    """

    name: str = "base"

    @abstractmethod
    def stream(self) -> AsyncIterator[RawSample]:
        """Yield samples as they become available."""

    async def close(self) -> None:
        """Release any resources held by the source."""
