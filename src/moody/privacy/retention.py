"""On-demand retention purge driven by each user's ``data_retention_days``."""

from __future__ import annotations

from datetime import timedelta

import structlog

from moody.storage.repository import MoodEntryRepository, SettingsRepository

logger = structlog.get_logger(__name__)


async def purge_expired(
    user_id: int,
    *,
    entries: MoodEntryRepository,
    settings: SettingsRepository,
) -> int:
    """Delete entries older than the user's retention period.  Returns count deleted."""
    prefs = await settings.get(user_id)
    cutoff = entries.now() - timedelta(days=prefs.data_retention_days)
    deleted = await entries.purge_before(user_id, cutoff)
    logger.info(
        "retention.purged",
        user_id=user_id,
        retention_days=prefs.data_retention_days,
        deleted=deleted,
    )
    return deleted
