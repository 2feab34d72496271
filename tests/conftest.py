import itertools
from collections.abc import Iterable, Iterator
from datetime import UTC, datetime, timedelta

import pytest

from status_tracker.repositories.interfaces import StatusStorage
from status_tracker.repositories.memory import InMemoryStatusStorage
from status_tracker.repositories.sqlite import SQLiteDatabase, SQLiteStatusStorage
from status_tracker.services.search import SearchEngine
from status_tracker.services.status_store import StatusStore
from status_tracker.services.tracking_ids import TrackingIdGenerator

FIXED_NOW = datetime(2023, 6, 15, 9, 30, tzinfo=UTC)


class FakeClock:
    """Manually advanced clock."""

    def __init__(self, start: datetime = FIXED_NOW) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


class ScriptedRandom:
    """Stand-in for random.Random whose choice() replays fixed characters."""

    def __init__(self, chars: Iterable[str]) -> None:
        self._chars: Iterator[str] = itertools.cycle(chars)

    def choice(self, seq: str) -> str:
        return next(self._chars)


class RecordingSleep:
    def __init__(self) -> None:
        self.delays: list[float] = []

    def __call__(self, delay: float) -> None:
        self.delays.append(delay)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def memory_storage() -> InMemoryStatusStorage:
    storage = InMemoryStatusStorage()
    storage.initialize()
    return storage


@pytest.fixture
def sqlite_storage() -> Iterator[SQLiteStatusStorage]:
    storage = SQLiteStatusStorage(SQLiteDatabase(":memory:"))
    storage.initialize()
    yield storage
    storage.close()


@pytest.fixture(params=["memory", "sqlite"])
def storage(request: pytest.FixtureRequest) -> StatusStorage:
    """Every local backend, so contract tests run against each."""
    return request.getfixturevalue(f"{request.param}_storage")


@pytest.fixture
def tracking_ids(clock: FakeClock) -> TrackingIdGenerator:
    return TrackingIdGenerator(clock=clock)


@pytest.fixture
def store(
    storage: StatusStorage,
    clock: FakeClock,
    tracking_ids: TrackingIdGenerator,
    sleep: RecordingSleep,
) -> StatusStore:
    return StatusStore(storage, tracking_ids=tracking_ids, clock=clock, sleep=sleep)


@pytest.fixture
def search(store: StatusStore) -> SearchEngine:
    return SearchEngine(store)
