"""All-time summary statistics for a user's mood log."""

from __future__ import annotations

from moody.models import METRIC_PRECISION, MetricAverages, UserStats
from moody.storage.repository import MoodEntryRepository


def _rounded(value: float | None) -> float:
    return round(float(value), METRIC_PRECISION) if value is not None else 0.0


class StatsSummarizer:
    """Totals, averages and first/last timestamps over the full history."""

    def __init__(self, entries: MoodEntryRepository) -> None:
        self._entries = entries

    async def stats(self, user_id: int) -> UserStats:
        agg = await self._entries.aggregate(user_id)
        if not agg.total:
            return UserStats()

        return UserStats(
            total_entries=agg.total,
            averages=MetricAverages(
                happiness=_rounded(agg.happiness),
                stress=_rounded(agg.stress),
                valence=_rounded(agg.valence),
                arousal=_rounded(agg.arousal),
            ),
            first_entry=agg.first,
            last_entry=agg.last,
        )
