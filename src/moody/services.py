"""Wiring of the storage handle into repositories and engines."""

from __future__ import annotations

from dataclasses import dataclass

from moody.analysis.capture import MoodCapture
from moody.analysis.models import ExpressionDetector
from moody.config import Settings
from moody.insights.stats import StatsSummarizer
from moody.insights.trends import TrendAggregator
from moody.storage.database import Database
from moody.storage.repository import (
    Clock,
    MoodEntryRepository,
    SettingsRepository,
    UserRepository,
)


@dataclass
class Services:
    """Everything a request handler or CLI command needs, built once per process."""

    settings: Settings
    db: Database
    users: UserRepository
    entries: MoodEntryRepository
    user_settings: SettingsRepository
    trends: TrendAggregator
    stats: StatsSummarizer
    capture: MoodCapture


def build_services(
    settings: Settings,
    db: Database | None = None,
    *,
    detector: ExpressionDetector | None = None,
    clock: Clock | None = None,
) -> Services:
    db = db or Database(settings.database_url, echo=settings.database_echo)
    entries = MoodEntryRepository(db, clock)
    return Services(
        settings=settings,
        db=db,
        users=UserRepository(db, clock),
        entries=entries,
        user_settings=SettingsRepository(db, clock),
        trends=TrendAggregator(entries),
        stats=StatsSummarizer(entries),
        capture=MoodCapture(
            entries,
            detector,
            allow_fallback=settings.allow_fallback_analysis,
        ),
    )
