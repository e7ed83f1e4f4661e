"""Mood metric derivation — expression scores to bounded mood scalars.

Rules
-----
* ``happiness``  = happy
* ``stress``     = max(angry, fearful, disgusted)
* ``valence``    = happy − (sad + angry + fearful + disgusted), clamped to [-1, 1]
* ``arousal``    = min(1, (angry + fearful + surprised + 0.5·happy)
                   / (angry + fearful + surprised + sad + neutral + 0.1))
* ``confidence`` = detection score

All outputs are rounded to three decimals, the same precision the event
store keeps, so storing a derived metric never changes it.
"""

from __future__ import annotations

import random
from typing import Mapping, Sequence

import structlog
from pydantic import ValidationError as PydanticValidationError

from moody.analysis.models import Detection, ExpressionScores
from moody.errors import NoSubjectDetected, ValidationError
from moody.models import MoodMetric, round_metric

logger = structlog.get_logger(__name__)

# Keeps the arousal denominator positive for an all-zero score vector.
_AROUSAL_EPSILON = 0.1


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def derive_metrics(expressions: ExpressionScores, confidence: float) -> MoodMetric:
    """Map one face's expression scores to a :class:`MoodMetric`."""
    if not 0.0 <= confidence <= 1.0:
        raise ValidationError(f"confidence must be between 0 and 1, got {confidence}")

    e = expressions
    happiness = e.happy
    stress = max(e.angry, e.fearful, e.disgusted)
    valence = _clamp(e.happy - (e.sad + e.angry + e.fearful + e.disgusted), -1.0, 1.0)

    high_arousal = e.angry + e.fearful + e.surprised
    low_arousal = e.sad + e.neutral
    arousal = min(1.0, (high_arousal + e.happy * 0.5) / (high_arousal + low_arousal + _AROUSAL_EPSILON))

    return MoodMetric(
        happiness=round_metric(happiness),
        stress=round_metric(stress),
        valence=round_metric(valence),
        arousal=round_metric(arousal),
        confidence=round_metric(confidence),
    )


def derive_from_scores(scores: Mapping[str, float], confidence: float) -> MoodMetric:
    """Derive from a plain name → intensity mapping (e.g. a JSON payload)."""
    try:
        expressions = ExpressionScores(**scores)
    except PydanticValidationError as exc:
        raise ValidationError(f"invalid expression scores: {exc.errors()[0]['msg']}") from exc
    return derive_metrics(expressions, confidence)


def derive_from_detections(detections: Sequence[Detection]) -> MoodMetric:
    """Derive from the first detected face.

    Raises :class:`NoSubjectDetected` when the detector found no face, which
    callers must keep distinct from a low-confidence success.
    """
    if not detections:
        raise NoSubjectDetected("No face detected in the image.")
    if len(detections) > 1:
        logger.debug("derivation.multiple_faces", faces=len(detections))
    first = detections[0]
    return derive_metrics(first.expressions, first.confidence)


def fallback_metrics(rng: random.Random | None = None) -> MoodMetric:
    """Random bounded metrics for development when no detector is available.

    The values respect every metric bound but carry no information about
    any real expression.
    """
    rng = rng or random.Random()
    return MoodMetric(
        happiness=round_metric(rng.uniform(0.1, 0.9)),
        stress=round_metric(rng.uniform(0.0, 0.6)),
        valence=round_metric(rng.uniform(-0.8, 0.8)),
        arousal=round_metric(rng.uniform(0.1, 0.9)),
        confidence=round_metric(rng.uniform(0.7, 1.0)),
    )
