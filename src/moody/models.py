"""Shared Pydantic models used across the service."""

from __future__ import annotations

import math
from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field

from moody.errors import ValidationError

# Inclusive bounds for every stored metric.
METRIC_BOUNDS: dict[str, tuple[float, float]] = {
    "happiness": (0.0, 1.0),
    "stress": (0.0, 1.0),
    "valence": (-1.0, 1.0),
    "arousal": (0.0, 1.0),
    "confidence": (0.0, 1.0),
}

METRIC_PRECISION = 3
_METRIC_SCALE = 10 ** METRIC_PRECISION


def round_metric(value: float) -> float:
    """Round to three decimals, halves upward on the scaled value (0.1235 -> 0.124)."""
    return math.floor(value * _METRIC_SCALE + 0.5) / _METRIC_SCALE


# Metrics averaged in trend and stats output (confidence is excluded).
TREND_METRICS = ("happiness", "stress", "valence", "arousal")


# ── Enums ─────────────────────────────────────────────────────

class TrendPeriod(str, Enum):
    """Bucket granularity for trend aggregation."""
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"


class ExportFormat(str, Enum):
    """Portable export encodings."""
    JSON = "json"  # structured
    CSV = "csv"  # tabular


# ── Mood metrics ──────────────────────────────────────────────

class MoodMetric(BaseModel):
    """The five derived mood scalars for one capture.

    Construction does not enforce bounds so that callers can hand over
    untrusted values; :meth:`checked` is the gate used before storage.
    """

    happiness: float
    stress: float
    valence: float
    arousal: float
    confidence: float

    def checked(self) -> MoodMetric:
        """Return a rounded copy, raising :class:`ValidationError` if out of range."""
        values = {}
        for name, (low, high) in METRIC_BOUNDS.items():
            value = getattr(self, name)
            if not math.isfinite(value):
                raise ValidationError(f"{name} must be a finite number")
            if value < low or value > high:
                raise ValidationError(f"{name} must be between {low:g} and {high:g}, got {value}")
            values[name] = round_metric(value)
        return MoodMetric(**values)


class MoodEntry(MoodMetric):
    """A stored mood metric owned by one user."""

    id: int
    user_id: int
    timestamp: datetime


class EntryPage(BaseModel):
    """One page of a user's entries, newest first."""

    entries: list[MoodEntry]
    page: int
    limit: int
    total: int

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total / self.limit) if self.limit else 0


# ── Accounts ──────────────────────────────────────────────────

class UserAccount(BaseModel):
    """Identity metadata.  The credential is never part of this model."""

    id: int
    email: str
    consented: bool
    consent_timestamp: datetime | None = None
    created_at: datetime


class UserSettings(BaseModel):
    """Per-user privacy preferences."""

    user_id: int
    data_retention_days: int = 365
    export_format: ExportFormat = ExportFormat.JSON
    updated_at: datetime | None = None


# ── Derived (never persisted) ─────────────────────────────────

class TrendBucket(BaseModel):
    """Averages for one day / ISO week / month."""

    period_label: str
    happiness: float
    stress: float
    valence: float
    arousal: float
    count: int


class TrendSeries(BaseModel):
    period: TrendPeriod
    window_days: int
    buckets: list[TrendBucket] = Field(default_factory=list)


class MetricAverages(BaseModel):
    happiness: float = 0.0
    stress: float = 0.0
    valence: float = 0.0
    arousal: float = 0.0


class UserStats(BaseModel):
    """All-time summary of a user's mood log."""

    total_entries: int = 0
    averages: MetricAverages = Field(default_factory=MetricAverages)
    first_entry: datetime | None = None
    last_entry: datetime | None = None
