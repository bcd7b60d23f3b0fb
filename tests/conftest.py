from collections.abc import Callable

import httpx
import pytest
from sqlalchemy.exc import OperationalError

from title_ratings.schemas import RatingResult
from title_ratings.store import MemoryKeyValueStore


class FakeClock:
    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingStore(MemoryKeyValueStore):
    def __init__(self, initial: dict | None = None):
        super().__init__(initial)
        self.set_calls: list[str] = []

    async def set(self, key: str, value) -> None:
        self.set_calls.append(key)
        await super().set(key, value)


class FailingStore:
    async def get(self, key: str):
        raise OperationalError("SELECT", {}, Exception("database is locked"))

    async def set(self, key: str, value) -> None:
        raise OperationalError("INSERT", {}, Exception("database is locked"))


def make_result(**overrides) -> RatingResult:
    values = {
        "critics": "90%",
        "audience": "8.1/10",
        "source_title": "The Matrix",
        "source_year": "1999",
        "provider": "omdb",
    }
    values.update(overrides)
    return RatingResult(**values)


def mock_client(handler: Callable[[httpx.Request], httpx.Response]) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store() -> RecordingStore:
    return RecordingStore()
