"""Feature engineering — GSR variability from the raw conductance stream.

The arousal classifier does not look at raw GSR: it looks at how much the
signal is *moving*.  :class:`GsrVariabilityTracker` turns the raw 0-1023
readings into that dispersion metric:

1. keep a rolling window of the last *N* raw samples;
2. compute the coefficient of variation (population std / mean);
3. smooth with an exponentially weighted moving average;
4. clamp to ``[0, 2]``.
"""

from __future__ import annotations

import statistics
from collections import deque

# ── Constants ─────────────────────────────────────────────────

_DEFAULT_WINDOW = 20
_DEFAULT_ALPHA = 0.3
_MAX_VARIABILITY = 2.0


class GsrVariabilityTracker:
    """Rolling, EWMA-smoothed coefficient of variation of raw GSR.

    Parameters
    ----------
    window : int
        Number of most recent raw samples considered.
    alpha : float
        EWMA smoothing factor in ``(0, 1]``; 1.0 disables smoothing.
    """

    def __init__(self, window: int = _DEFAULT_WINDOW, alpha: float = _DEFAULT_ALPHA) -> None:
        if window < 2:
            raise ValueError("window must hold at least two samples")
        if not 0.0 < alpha <= 1.0:
            raise ValueError("alpha must be in (0, 1]")
        self._samples: deque[float] = deque(maxlen=window)
        self._alpha = alpha
        self._value: float | None = None

    @property
    def value(self) -> float:
        """Current smoothed variability (0.0 before any sample)."""
        return self._value if self._value is not None else 0.0

    @property
    def sample_count(self) -> int:
        return len(self._samples)

    def update(self, raw_gsr: float) -> float:
        """Feed one raw GSR sample and return the new smoothed variability."""
        self._samples.append(float(raw_gsr))
        cv = _coefficient_of_variation(self._samples)

        if self._value is None:
            smoothed = cv
        else:
            smoothed = self._alpha * cv + (1.0 - self._alpha) * self._value

        self._value = min(_MAX_VARIABILITY, max(0.0, smoothed))
        return self._value

    def reset(self) -> None:
        self._samples.clear()
        self._value = None


def _coefficient_of_variation(samples: deque[float]) -> float:
    if len(samples) < 2:
        return 0.0
    mean = statistics.fmean(samples)
    if mean <= 0:
        return 0.0
    return statistics.pstdev(samples, mu=mean) / mean
