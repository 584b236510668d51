"""Affect inference — arousal and cognitive state from wearable signals.

1. **Feature engineering** (`features.py`)
   - GSR variability: rolling coefficient of variation, EWMA-smoothed

2. **Inference** (`inference.py`)
   - Six-level arousal classification from GSR variability
   - Bounded cognitive-performance score
   - Mental-state insight text and recommendations
"""

from biometric_monitor.affect.features import GsrVariabilityTracker
from biometric_monitor.affect.inference import (
    classify_arousal,
    estimate_cognitive_score,
    mental_state_insight,
    recommendations,
)

__all__ = [
    "GsrVariabilityTracker",
    "classify_arousal",
    "estimate_cognitive_score",
    "mental_state_insight",
    "recommendations",
]
