"""Trend aggregation — bucket recent mood entries by day, ISO week or month.

Buckets are recomputed from the stored rows on every request; nothing is
cached, so an insert or delete is visible on the next read.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Callable

import pandas as pd
import structlog

from moody.errors import InvalidPeriod
from moody.models import METRIC_PRECISION, TREND_METRICS, TrendBucket, TrendPeriod, TrendSeries
from moody.storage.repository import MoodEntryRepository

logger = structlog.get_logger(__name__)

# Fixed look-back for trend output.  Export and stats ignore it.
TREND_WINDOW_DAYS = 30


def _daily_label(ts: datetime) -> str:
    return ts.strftime("%Y-%m-%d")


def _weekly_label(ts: datetime) -> str:
    # ISO 8601: weeks start on Monday and belong to the ISO year, so
    # 2025-12-29 is "2026-W01".
    iso_year, iso_week, _ = ts.isocalendar()
    return f"{iso_year}-W{iso_week:02d}"


def _monthly_label(ts: datetime) -> str:
    return ts.strftime("%Y-%m")


PERIOD_LABELERS: dict[TrendPeriod, Callable[[datetime], str]] = {
    TrendPeriod.DAILY: _daily_label,
    TrendPeriod.WEEKLY: _weekly_label,
    TrendPeriod.MONTHLY: _monthly_label,
}


def parse_period(period: str | TrendPeriod) -> TrendPeriod:
    """Return the :class:`TrendPeriod` for *period* or raise :class:`InvalidPeriod`."""
    try:
        return TrendPeriod(period)
    except ValueError:
        raise InvalidPeriod(
            f"Invalid period {period!r}. Must be daily, weekly, or monthly"
        ) from None


def bucket_entries(df: pd.DataFrame, period: TrendPeriod) -> list[TrendBucket]:
    """Group a frame of entries into ascending, non-empty buckets.

    Expects a ``timestamp`` column plus one column per trend metric.
    """
    if df.empty:
        return []

    labels = df["timestamp"].map(PERIOD_LABELERS[period]).rename("period_label")
    grouped = df.groupby(labels, sort=True).agg(
        **{name: (name, "mean") for name in TREND_METRICS},
        count=("happiness", "size"),
    )

    return [
        TrendBucket(
            period_label=str(label),
            count=int(row["count"]),
            **{name: round(float(row[name]), METRIC_PRECISION) for name in TREND_METRICS},
        )
        for label, row in grouped.iterrows()
    ]


class TrendAggregator:
    """Computes trend series over the most recent :data:`TREND_WINDOW_DAYS`.

    Parameters
    ----------
    entries : MoodEntryRepository
        Source of stored mood entries.
    clock : callable, optional
        Returns "now" as a naive UTC datetime; defaults to the repository clock.
    """

    def __init__(
        self,
        entries: MoodEntryRepository,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._entries = entries
        self._clock = clock or entries.now

    async def trend(self, user_id: int, period: str | TrendPeriod) -> TrendSeries:
        resolved = parse_period(period)
        start = self._clock() - timedelta(days=TREND_WINDOW_DAYS)
        entries = await self._entries.since(user_id, start)

        df = pd.DataFrame(
            [e.model_dump(include={"timestamp", *TREND_METRICS}) for e in entries],
            columns=["timestamp", *TREND_METRICS],
        )
        buckets = bucket_entries(df, resolved)
        logger.debug(
            "trends.computed",
            user_id=user_id,
            period=resolved.value,
            entries=len(entries),
            buckets=len(buckets),
        )
        return TrendSeries(period=resolved, window_days=TREND_WINDOW_DAYS, buckets=buckets)
