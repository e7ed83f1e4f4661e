"""Capture orchestrator — detection, derivation and storage of one selfie.

The image is handed to the detector and dropped; only the derived metrics
are persisted.
"""

from __future__ import annotations

import random
from typing import Any, Sequence

import structlog

from moody.analysis.derivation import derive_from_detections, fallback_metrics
from moody.analysis.models import Detection, ExpressionDetector
from moody.errors import NoSubjectDetected
from moody.models import MoodMetric
from moody.storage.repository import MoodEntryRepository

logger = structlog.get_logger(__name__)


class MoodCapture:
    """Turns a captured frame (or browser-side detections) into a stored entry.

    Parameters
    ----------
    entries : MoodEntryRepository
        Where derived metrics are appended.
    detector : ExpressionDetector, optional
        Face-expression capability.  ``None`` when analysis runs client-side.
    allow_fallback : bool
        When there is no detector or it finds no face, store random bounded
        metrics instead of failing.
        Development use only.
    rng : random.Random, optional
        Source for the fallback generator.
    """

    def __init__(
        self,
        entries: MoodEntryRepository,
        detector: ExpressionDetector | None = None,
        *,
        allow_fallback: bool = False,
        rng: random.Random | None = None,
    ) -> None:
        self._entries = entries
        self._detector = detector
        self._allow_fallback = allow_fallback
        self._rng = rng or random.Random()

    async def analyse(self, image: Any) -> MoodMetric:
        """Derive metrics for *image* without storing them."""
        if self._detector is None:
            if not self._allow_fallback:
                raise NoSubjectDetected("No expression detector configured.")
            logger.warning("capture.fallback_metrics")
            return fallback_metrics(self._rng)

        detections = await self._detector.detect(image)
        try:
            return derive_from_detections(detections)
        except NoSubjectDetected:
            if not self._allow_fallback:
                raise
            logger.warning("capture.fallback_metrics", reason="no_face")
            return fallback_metrics(self._rng)

    async def capture(self, user_id: int, image: Any) -> tuple[int, MoodMetric]:
        """Analyse *image* and store the result.  Returns ``(entry_id, metric)``."""
        metric = await self.analyse(image)
        entry_id = await self._entries.insert(user_id, metric)
        return entry_id, metric

    async def record_detections(
        self, user_id: int, detections: Sequence[Detection]
    ) -> tuple[int, MoodMetric]:
        """Store metrics derived from detections computed in the browser."""
        metric = derive_from_detections(detections)
        entry_id = await self._entries.insert(user_id, metric)
        return entry_id, metric
