"""Tests for the mood entry, account and settings repositories."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest
from sqlalchemy import delete as sa_delete

from conftest import make_metric
from moody.errors import ConflictError, UserNotFound, ValidationError
from moody.models import ExportFormat
from moody.storage.database import UserRow
from moody.storage.repository import MoodEntryRepository


# ── Insert ────────────────────────────────────────────────────


class TestInsert:
    @pytest.mark.asyncio
    async def test_insert_assigns_ascending_ids(self, entries, alice, clock):
        first = await entries.insert(alice.id, make_metric())
        clock.advance(minutes=1)
        second = await entries.insert(alice.id, make_metric())
        assert second > first

        stored = await entries.all_for_user(alice.id)
        assert [e.id for e in stored] == [first, second]
        assert stored[0].timestamp == datetime(2026, 3, 15, 9, 0)

    @pytest.mark.asyncio
    async def test_out_of_range_rejected_and_not_persisted(self, entries, alice):
        with pytest.raises(ValidationError):
            await entries.insert(alice.id, make_metric(happiness=1.5))
        assert await entries.count(alice.id) == 0

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "field,value",
        [("stress", -0.01), ("valence", -1.2), ("arousal", 1.01), ("confidence", float("nan"))],
    )
    async def test_each_bound_enforced(self, entries, alice, field, value):
        with pytest.raises(ValidationError):
            await entries.insert(alice.id, make_metric(**{field: value}))

    @pytest.mark.asyncio
    async def test_boundary_values_accepted(self, entries, alice):
        await entries.insert(
            alice.id,
            make_metric(happiness=1.0, stress=0.0, valence=-1.0, arousal=1.0, confidence=0.0),
        )
        assert await entries.count(alice.id) == 1

    @pytest.mark.asyncio
    async def test_values_rounded_on_storage(self, entries, alice):
        await entries.insert(alice.id, make_metric(happiness=0.12345, valence=-0.33333))
        (stored,) = await entries.all_for_user(alice.id)
        assert stored.happiness == 0.123
        assert stored.valence == -0.333

    @pytest.mark.asyncio
    async def test_half_values_round_up_on_storage(self, entries, alice):
        await entries.insert(alice.id, make_metric(happiness=0.1235))
        (stored,) = await entries.all_for_user(alice.id)
        assert stored.happiness == 0.124

    @pytest.mark.asyncio
    async def test_rounded_values_survive_round_trip(self, entries, alice):
        metric = make_metric(happiness=0.731, stress=0.052, valence=-0.418, arousal=0.9, confidence=0.777)
        await entries.insert(alice.id, metric)
        (stored,) = await entries.all_for_user(alice.id)
        assert stored.model_dump(include=set(metric.model_dump())) == metric.model_dump()

    @pytest.mark.asyncio
    async def test_unknown_user_rejected(self, entries):
        with pytest.raises(UserNotFound):
            await entries.insert(999, make_metric())

    @pytest.mark.asyncio
    async def test_default_clock_is_naive_utc(self, db):
        now = MoodEntryRepository(db).now()
        assert now.tzinfo is None
        assert abs(now - datetime.now(UTC).replace(tzinfo=None)) < timedelta(seconds=5)

    @pytest.mark.asyncio
    async def test_timestamps_never_go_backwards(self, entries, alice, clock):
        clock.set(datetime(2026, 3, 15, 12, 0))
        await entries.insert(alice.id, make_metric())
        clock.set(datetime(2026, 3, 15, 11, 0))
        await entries.insert(alice.id, make_metric())

        first, second = await entries.all_for_user(alice.id)
        assert second.timestamp >= first.timestamp


# ── Pagination ────────────────────────────────────────────────


class TestListPage:
    @pytest.mark.asyncio
    async def test_newest_first_with_total(self, entries, alice, clock):
        ids = []
        for _ in range(5):
            ids.append(await entries.insert(alice.id, make_metric()))
            clock.advance(minutes=1)

        page = await entries.list_page(alice.id, page=1, limit=2)
        assert [e.id for e in page.entries] == [ids[4], ids[3]]
        assert page.total == 5
        assert page.total_pages == 3

        last = await entries.list_page(alice.id, page=3, limit=2)
        assert [e.id for e in last.entries] == [ids[0]]

    @pytest.mark.asyncio
    async def test_past_the_end_is_empty(self, entries, alice):
        await entries.insert(alice.id, make_metric())
        page = await entries.list_page(alice.id, page=4, limit=10)
        assert page.entries == []
        assert page.total == 1

    @pytest.mark.asyncio
    async def test_only_own_entries(self, entries, alice, bob):
        await entries.insert(alice.id, make_metric())
        await entries.insert(bob.id, make_metric())
        page = await entries.list_page(bob.id)
        assert page.total == 1
        assert all(e.user_id == bob.id for e in page.entries)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("page,limit", [(0, 10), (1, 0), (-1, 5)])
    async def test_invalid_paging(self, entries, alice, page, limit):
        with pytest.raises(ValidationError):
            await entries.list_page(alice.id, page=page, limit=limit)


# ── Deletion ──────────────────────────────────────────────────


class TestDelete:
    @pytest.mark.asyncio
    async def test_delete_own_entry(self, entries, alice):
        entry_id = await entries.insert(alice.id, make_metric())
        assert await entries.delete(alice.id, entry_id) is True
        assert await entries.count(alice.id) == 0

    @pytest.mark.asyncio
    async def test_cannot_delete_other_users_entry(self, entries, alice, bob):
        entry_id = await entries.insert(alice.id, make_metric())
        assert await entries.delete(bob.id, entry_id) is False
        assert await entries.count(alice.id) == 1

    @pytest.mark.asyncio
    async def test_delete_missing_entry(self, entries, alice):
        assert await entries.delete(alice.id, 12345) is False

    @pytest.mark.asyncio
    async def test_delete_all_is_idempotent(self, entries, alice, bob):
        for _ in range(3):
            await entries.insert(alice.id, make_metric())
        await entries.insert(bob.id, make_metric())

        assert await entries.delete_all(alice.id) == 3
        assert await entries.count(alice.id) == 0
        assert await entries.delete_all(alice.id) == 0
        assert await entries.count(alice.id) == 0
        assert await entries.count(bob.id) == 1

    @pytest.mark.asyncio
    async def test_account_removal_cascades(self, db, entries, alice):
        await entries.insert(alice.id, make_metric())
        async with db.session() as session:
            await session.execute(sa_delete(UserRow).where(UserRow.id == alice.id))
            await session.commit()
        assert await entries.count(alice.id) == 0


# ── Accounts & settings ───────────────────────────────────────


class TestAccounts:
    @pytest.mark.asyncio
    async def test_register_records_consent(self, users, alice, clock):
        assert alice.consented is True
        assert alice.consent_timestamp == clock()
        assert alice.email == "alice@example.com"
        assert (await users.get(alice.id)).id == alice.id

    @pytest.mark.asyncio
    async def test_duplicate_email_conflicts(self, users, alice):
        with pytest.raises(ConflictError):
            await users.create("Alice@Example.com", "other", consented=True)

    @pytest.mark.asyncio
    async def test_consent_required(self, users):
        with pytest.raises(ValidationError):
            await users.create("carol@example.com", "cred", consented=False)
        assert await users.get_by_email("carol@example.com") is None

    @pytest.mark.asyncio
    async def test_missing_user(self, users):
        with pytest.raises(UserNotFound):
            await users.get(404)

    @pytest.mark.asyncio
    async def test_default_settings_created(self, user_settings, alice):
        prefs = await user_settings.get(alice.id)
        assert prefs.data_retention_days == 365
        assert prefs.export_format is ExportFormat.JSON

    @pytest.mark.asyncio
    async def test_update_settings(self, user_settings, alice):
        prefs = await user_settings.update(
            alice.id, data_retention_days=30, export_format=ExportFormat.CSV
        )
        assert prefs.data_retention_days == 30
        assert (await user_settings.get(alice.id)).export_format is ExportFormat.CSV

    @pytest.mark.asyncio
    async def test_retention_bounds(self, user_settings, alice):
        with pytest.raises(ValidationError):
            await user_settings.update(alice.id, data_retention_days=0)
