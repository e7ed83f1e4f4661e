"""Shared pytest fixtures."""

from __future__ import annotations

from datetime import datetime, timedelta

import pytest

from moody.analysis.models import Detection
from moody.models import MoodMetric, UserAccount
from moody.storage.database import Database
from moody.storage.repository import MoodEntryRepository, SettingsRepository, UserRepository


class FakeClock:
    """Settable replacement for the default UTC clock."""

    def __init__(self, start: datetime) -> None:
        self.current = start

    def __call__(self) -> datetime:
        return self.current

    def set(self, when: datetime) -> None:
        self.current = when

    def advance(self, **kwargs) -> None:
        self.current += timedelta(**kwargs)


class StubDetector:
    """Returns canned detections and remembers what it was given."""

    def __init__(self, detections: list[Detection]) -> None:
        self._detections = detections
        self.calls = 0
        self.images: list = []

    async def detect(self, image):
        self.calls += 1
        self.images.append(image)
        return self._detections


def make_metric(**overrides) -> MoodMetric:
    values = {
        "happiness": 0.5,
        "stress": 0.2,
        "valence": 0.1,
        "arousal": 0.4,
        "confidence": 0.9,
    }
    values.update(overrides)
    return MoodMetric(**values)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(datetime(2026, 3, 15, 9, 0))


@pytest.fixture
async def db(tmp_path):
    database = Database(f"sqlite+aiosqlite:///{tmp_path / 'moody-test.db'}")
    await database.init()
    yield database
    await database.dispose()


@pytest.fixture
def users(db: Database, clock: FakeClock) -> UserRepository:
    return UserRepository(db, clock)


@pytest.fixture
def entries(db: Database, clock: FakeClock) -> MoodEntryRepository:
    return MoodEntryRepository(db, clock)


@pytest.fixture
def user_settings(db: Database, clock: FakeClock) -> SettingsRepository:
    return SettingsRepository(db, clock)


@pytest.fixture
async def alice(users: UserRepository) -> UserAccount:
    return await users.create("alice@example.com", "opaque-credential-a", consented=True)


@pytest.fixture
async def bob(users: UserRepository) -> UserAccount:
    return await users.create("bob@example.com", "opaque-credential-b", consented=True)
