"""Data-access layer — thin async wrappers around SQLAlchemy queries."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Callable, NamedTuple

import structlog
from sqlalchemy import delete as sa_delete
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError

from moody.errors import ConflictError, UserNotFound, ValidationError
from moody.models import (
    EntryPage,
    ExportFormat,
    MoodEntry,
    MoodMetric,
    UserAccount,
    UserSettings,
)
from moody.storage.database import Database, MoodEntryRow, UserRow, UserSettingsRow

logger = structlog.get_logger(__name__)

Clock = Callable[[], datetime]

MAX_RETENTION_DAYS = 3650


def _utcnow() -> datetime:
    return datetime.now(UTC).replace(tzinfo=None)


def _entry_from_row(row: MoodEntryRow) -> MoodEntry:
    return MoodEntry(
        id=row.id,
        user_id=row.user_id,
        happiness=row.happiness,
        stress=row.stress,
        valence=row.valence,
        arousal=row.arousal,
        confidence=row.confidence,
        timestamp=row.timestamp,
    )


def _account_from_row(row: UserRow) -> UserAccount:
    return UserAccount(
        id=row.id,
        email=row.email,
        consented=bool(row.consented),
        consent_timestamp=row.consent_timestamp,
        created_at=row.created_at,
    )


def _settings_from_row(row: UserSettingsRow) -> UserSettings:
    return UserSettings(
        user_id=row.user_id,
        data_retention_days=row.data_retention_days,
        export_format=ExportFormat(row.export_format),
        updated_at=row.updated_at,
    )


class EntryAggregate(NamedTuple):
    """All-time SQL aggregates over one user's entries."""

    total: int
    happiness: float | None
    stress: float | None
    valence: float | None
    arousal: float | None
    first: datetime | None
    last: datetime | None


class BaseRepository:
    """Shared base holding the storage handle and the clock."""

    def __init__(self, db: Database, clock: Clock | None = None) -> None:
        self._db = db
        self._clock = clock or _utcnow

    def now(self) -> datetime:
        return self._clock()


class MoodEntryRepository(BaseRepository):
    """Append-only per-user log of :class:`MoodEntry` objects."""

    # ── Write ─────────────────────────────────────────────────

    async def insert(self, user_id: int, metric: MoodMetric) -> int:
        """Validate, timestamp and append one metric.  Returns the new id.

        The timestamp never goes backwards for a given user, even if the
        clock does.
        """
        checked = metric.checked()
        async with self._db.session() as session:
            if await session.get(UserRow, user_id) is None:
                raise UserNotFound()

            last = (
                await session.execute(
                    select(func.max(MoodEntryRow.timestamp)).where(MoodEntryRow.user_id == user_id)
                )
            ).scalar()
            now = self.now()
            timestamp = max(now, last) if last is not None else now

            row = MoodEntryRow(user_id=user_id, timestamp=timestamp, **checked.model_dump())
            session.add(row)
            await session.commit()
            logger.info("mood.entry_created", user_id=user_id, entry_id=row.id)
            return row.id

    async def delete(self, user_id: int, entry_id: int) -> bool:
        """Delete one entry.  Only the owning user's row can ever match."""
        async with self._db.session() as session:
            result = await session.execute(
                sa_delete(MoodEntryRow).where(
                    MoodEntryRow.id == entry_id,
                    MoodEntryRow.user_id == user_id,
                )
            )
            await session.commit()
        deleted = result.rowcount > 0
        if deleted:
            logger.info("mood.entry_deleted", user_id=user_id, entry_id=entry_id)
        return deleted

    async def delete_all(self, user_id: int) -> int:
        """Delete every entry for a user.  Returns count deleted (0 is fine)."""
        async with self._db.session() as session:
            result = await session.execute(
                sa_delete(MoodEntryRow).where(MoodEntryRow.user_id == user_id)
            )
            await session.commit()
        logger.info("mood.entries_cleared", user_id=user_id, deleted=result.rowcount)
        return result.rowcount

    async def purge_before(self, user_id: int, cutoff: datetime) -> int:
        """Delete entries strictly older than *cutoff*.  Returns count deleted."""
        async with self._db.session() as session:
            result = await session.execute(
                sa_delete(MoodEntryRow).where(
                    MoodEntryRow.user_id == user_id,
                    MoodEntryRow.timestamp < cutoff,
                )
            )
            await session.commit()
        return result.rowcount

    # ── Read ──────────────────────────────────────────────────

    async def list_page(self, user_id: int, page: int = 1, limit: int = 20) -> EntryPage:
        """Newest-first page of entries plus the user's total count.

        A page past the end yields an empty list, not an error.
        """
        if page < 1:
            raise ValidationError("page must be >= 1")
        if limit < 1:
            raise ValidationError("limit must be > 0")

        async with self._db.session() as session:
            stmt = (
                select(MoodEntryRow)
                .where(MoodEntryRow.user_id == user_id)
                .order_by(MoodEntryRow.timestamp.desc(), MoodEntryRow.id.desc())
                .limit(limit)
                .offset((page - 1) * limit)
            )
            rows = (await session.execute(stmt)).scalars().all()
            total = await self._count(session, user_id)

        return EntryPage(
            entries=[_entry_from_row(r) for r in rows],
            page=page,
            limit=limit,
            total=total,
        )

    async def count(self, user_id: int) -> int:
        async with self._db.session() as session:
            return await self._count(session, user_id)

    async def all_for_user(self, user_id: int) -> list[MoodEntry]:
        """Every entry for the user, oldest first."""
        async with self._db.session() as session:
            stmt = (
                select(MoodEntryRow)
                .where(MoodEntryRow.user_id == user_id)
                .order_by(MoodEntryRow.timestamp.asc(), MoodEntryRow.id.asc())
            )
            rows = (await session.execute(stmt)).scalars().all()
        return [_entry_from_row(r) for r in rows]

    async def since(self, user_id: int, start: datetime) -> list[MoodEntry]:
        """Entries at or after *start*, oldest first."""
        async with self._db.session() as session:
            stmt = (
                select(MoodEntryRow)
                .where(
                    MoodEntryRow.user_id == user_id,
                    MoodEntryRow.timestamp >= start,
                )
                .order_by(MoodEntryRow.timestamp.asc(), MoodEntryRow.id.asc())
            )
            rows = (await session.execute(stmt)).scalars().all()
        return [_entry_from_row(r) for r in rows]

    async def aggregate(self, user_id: int) -> EntryAggregate:
        async with self._db.session() as session:
            stmt = select(
                func.count(MoodEntryRow.id),
                func.avg(MoodEntryRow.happiness),
                func.avg(MoodEntryRow.stress),
                func.avg(MoodEntryRow.valence),
                func.avg(MoodEntryRow.arousal),
                func.min(MoodEntryRow.timestamp),
                func.max(MoodEntryRow.timestamp),
            ).where(MoodEntryRow.user_id == user_id)
            row = (await session.execute(stmt)).one()
        return EntryAggregate(*row)

    @staticmethod
    async def _count(session, user_id: int) -> int:
        stmt = (
            select(func.count())
            .select_from(MoodEntryRow)
            .where(MoodEntryRow.user_id == user_id)
        )
        return (await session.execute(stmt)).scalar() or 0


class UserRepository(BaseRepository):
    """Accounts and their default settings."""

    async def create(
        self,
        email: str,
        credential: str,
        consented: bool,
        *,
        retention_days: int = 365,
        export_format: ExportFormat = ExportFormat.JSON,
    ) -> UserAccount:
        """Register an account.  Consent is mandatory; emails are unique."""
        if not consented:
            raise ValidationError("Consent is required to create an account")
        email = email.strip().lower()
        if "@" not in email:
            raise ValidationError("email must be a valid address")

        if await self.get_by_email(email) is not None:
            raise ConflictError("Email already registered")

        now = self.now()
        async with self._db.session() as session:
            row = UserRow(
                email=email,
                credential=credential,
                consented=True,
                consent_timestamp=now,
                created_at=now,
                updated_at=now,
            )
            session.add(row)
            try:
                await session.flush()
                session.add(
                    UserSettingsRow(
                        user_id=row.id,
                        data_retention_days=retention_days,
                        export_format=export_format.value,
                        created_at=now,
                        updated_at=now,
                    )
                )
                await session.commit()
            except IntegrityError as exc:
                await session.rollback()
                raise ConflictError("Email already registered") from exc

            logger.info("user.registered", user_id=row.id)
            return _account_from_row(row)

    async def get(self, user_id: int) -> UserAccount:
        async with self._db.session() as session:
            row = await session.get(UserRow, user_id)
        if row is None:
            raise UserNotFound()
        return _account_from_row(row)

    async def get_by_email(self, email: str) -> UserAccount | None:
        async with self._db.session() as session:
            stmt = select(UserRow).where(UserRow.email == email.strip().lower())
            row = (await session.execute(stmt)).scalar_one_or_none()
        return _account_from_row(row) if row is not None else None


class SettingsRepository(BaseRepository):
    """Read / update :class:`UserSettings`."""

    async def get(self, user_id: int) -> UserSettings:
        async with self._db.session() as session:
            row = await self._get_row(session, user_id)
        return _settings_from_row(row)

    async def update(
        self,
        user_id: int,
        *,
        data_retention_days: int | None = None,
        export_format: ExportFormat | None = None,
    ) -> UserSettings:
        if data_retention_days is not None and not 1 <= data_retention_days <= MAX_RETENTION_DAYS:
            raise ValidationError(
                f"data_retention_days must be between 1 and {MAX_RETENTION_DAYS}"
            )

        async with self._db.session() as session:
            row = await self._get_row(session, user_id)
            if data_retention_days is not None:
                row.data_retention_days = data_retention_days
            if export_format is not None:
                row.export_format = export_format.value
            row.updated_at = self.now()
            await session.commit()
            logger.info("user.settings_updated", user_id=user_id)
            return _settings_from_row(row)

    @staticmethod
    async def _get_row(session, user_id: int) -> UserSettingsRow:
        stmt = select(UserSettingsRow).where(UserSettingsRow.user_id == user_id)
        row = (await session.execute(stmt)).scalar_one_or_none()
        if row is None:
            raise UserNotFound()
        return row
