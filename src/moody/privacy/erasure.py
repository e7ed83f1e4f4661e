"""Irreversible erasure of an account and everything derived from it."""

from __future__ import annotations

from dataclasses import dataclass

import structlog
from sqlalchemy import delete as sa_delete
from sqlalchemy.exc import SQLAlchemyError

from moody.errors import FatalConsistencyError, UserNotFound
from moody.storage.database import Database, MoodEntryRow, UserRow, UserSettingsRow

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class ErasureReport:
    user_id: int
    entries_deleted: int
    settings_deleted: int


async def erase_user(db: Database, user_id: int) -> ErasureReport:
    """Delete mood entries, then settings, then the account, in one transaction.

    If the account is missing at the last step nothing is committed and
    :class:`UserNotFound` is raised.  A storage failure at any step rolls
    the whole transaction back and raises :class:`FatalConsistencyError`;
    it is never reported as success.
    """
    step = "mood_entries"
    async with db.session() as session:
        try:
            entries = await session.execute(
                sa_delete(MoodEntryRow).where(MoodEntryRow.user_id == user_id)
            )
            step = "user_settings"
            settings = await session.execute(
                sa_delete(UserSettingsRow).where(UserSettingsRow.user_id == user_id)
            )
            step = "users"
            account = await session.execute(sa_delete(UserRow).where(UserRow.id == user_id))
            if account.rowcount == 0:
                await session.rollback()
                raise UserNotFound()
            step = "commit"
            await session.commit()
        except SQLAlchemyError as exc:
            await session.rollback()
            logger.error("erasure.failed", user_id=user_id, step=step, error=str(exc))
            raise FatalConsistencyError(
                f"Erasure of user {user_id} failed at step {step!r}; operator attention required."
            ) from exc

    report = ErasureReport(
        user_id=user_id,
        entries_deleted=entries.rowcount,
        settings_deleted=settings.rowcount,
    )
    logger.info(
        "erasure.completed",
        user_id=user_id,
        entries_deleted=report.entries_deleted,
        settings_deleted=report.settings_deleted,
    )
    return report
