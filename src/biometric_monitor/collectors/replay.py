"""Replay a recorded sample stream from a JSON-lines or CSV file.

Recordings are in long format, one sample per row / line::

    {"timestamp": "2024-05-01T09:00:00", "channel": "heart_rate", "value": 72}

CSV recordings use the same three columns.  Rows that fail decoding or
validation are skipped.
"""

from __future__ import annotations

import asyncio
from datetime import datetime
from pathlib import Path
from typing import AsyncIterator

import pandas as pd
import structlog

from biometric_monitor.collectors.base import SampleSource
from biometric_monitor.collectors.decoder import to_sample
from biometric_monitor.models import Channel, RawSample

logger = structlog.get_logger(__name__)

_COLUMNS = ("timestamp", "channel", "value")


class ReplaySource(SampleSource):
    """Yield samples from a recording, optionally paced in real time.

    Parameters
    ----------
    path : Path
        ``.jsonl`` / ``.json`` or ``.csv`` recording.
    speed : float
        Playback speed multiplier; ``0`` replays as fast as possible.
    """

    name = "replay"

    def __init__(self, path: Path | str, *, speed: float = 0.0) -> None:
        self.path = Path(path)
        self.speed = speed
        self._frame: pd.DataFrame | None = None

    def _load(self) -> pd.DataFrame:
        if self._frame is not None:
            return self._frame
        if not self.path.exists():
            raise FileNotFoundError(f"Recording not found: {self.path}")

        if self.path.suffix.lower() == ".csv":
            df = pd.read_csv(self.path)
        else:
            df = pd.read_json(self.path, lines=True)

        missing = [c for c in _COLUMNS if c not in df.columns]
        if missing:
            raise ValueError(f"Recording {self.path.name} lacks columns: {missing}")

        df["timestamp"] = pd.to_datetime(df["timestamp"], errors="coerce")
        df = df.dropna(subset=["timestamp"]).sort_values("timestamp", kind="stable")
        logger.info("replay.loaded", path=str(self.path), rows=len(df))
        self._frame = df
        return df

    def samples(self) -> list[RawSample]:
        """Every valid sample in the recording, in timestamp order."""
        out: list[RawSample] = []
        skipped = 0
        for row in self._load().itertuples(index=False):
            sample = _row_to_sample(row.channel, row.value, row.timestamp.to_pydatetime())
            if sample is None:
                skipped += 1
                continue
            out.append(sample)
        if skipped:
            logger.info("replay.rows_skipped", path=str(self.path), skipped=skipped)
        return out

    async def stream(self) -> AsyncIterator[RawSample]:
        samples = self.samples()
        if not samples:
            return
        anchor = samples[0].timestamp
        wall_start = datetime.now()
        for sample in samples:
            if self.speed > 0:
                target = wall_start + (sample.timestamp - anchor) / self.speed
                delay = (target - datetime.now()).total_seconds()
                if delay > 0:
                    await asyncio.sleep(delay)
            yield sample


def _row_to_sample(channel: object, value: object, timestamp: datetime) -> RawSample | None:
    try:
        ch = Channel(str(channel))
        v = float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        logger.debug("ingest.sample_dropped", reason="malformed_row", channel=str(channel))
        return None
    return to_sample(ch, v, timestamp=timestamp)
