"""Pydantic models for raw facial-expression analysis output.

These mirror what an on-device face-expression network reports for a single
detected face: seven expression intensities in [0, 1] that need not sum to
one, plus a detection score.
"""

from __future__ import annotations

from typing import Any, Protocol, Sequence

from pydantic import BaseModel, Field


class ExpressionScores(BaseModel):
    """Per-face expression intensities.

    Expressions the detector does not report default to ``0.0``.
    """

    happy: float = Field(0.0, ge=0.0, le=1.0)
    sad: float = Field(0.0, ge=0.0, le=1.0)
    angry: float = Field(0.0, ge=0.0, le=1.0)
    fearful: float = Field(0.0, ge=0.0, le=1.0)
    disgusted: float = Field(0.0, ge=0.0, le=1.0)
    surprised: float = Field(0.0, ge=0.0, le=1.0)
    neutral: float = Field(0.0, ge=0.0, le=1.0)


class Detection(BaseModel):
    """One detected face: its expression scores and detection confidence."""

    expressions: ExpressionScores
    confidence: float = Field(..., ge=0.0, le=1.0)


class ExpressionDetector(Protocol):
    """Capability that finds faces in an image and scores their expressions.

    Implementations wrap a landmark/expression model.  The image never leaves
    this call; only the returned scores reach the rest of the service.
    """

    async def detect(self, image: Any) -> Sequence[Detection]: ...
