"""Mood analysis — facial-expression scores to bounded mood metrics.

Architecture
------------
1. **Models** (`models.py`)
   - Raw per-face expression scores and detection confidence
   - The detector protocol wrapping an on-device expression model

2. **Derivation** (`derivation.py`)
   - Happiness, stress, valence, arousal and confidence from one face
   - Three-decimal rounding shared with the event store
   - Bounded random fallback for development without a model

3. **Capture** (`capture.py`)
   - Detector → derivation → event store for a single frame

Limitations
-----------
Expression scores describe a single frame.  They are indicative of visible
facial affect only and are never presented as a diagnosis.
"""

from moody.analysis.derivation import (
    derive_from_detections,
    derive_from_scores,
    derive_metrics,
    fallback_metrics,
)
from moody.analysis.models import Detection, ExpressionDetector, ExpressionScores

__all__ = [
    "Detection",
    "ExpressionDetector",
    "ExpressionScores",
    "derive_from_detections",
    "derive_from_scores",
    "derive_metrics",
    "fallback_metrics",
]
