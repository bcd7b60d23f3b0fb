import asyncio

import pytest

from title_ratings.cache import RatingCache
from title_ratings.coordinator import RequestCoordinator
from title_ratings.lookup import LookupIncompleteError
from title_ratings.schemas import ProviderError

from conftest import make_result

TTL = 7 * 24 * 60 * 60


class FakeChain:
    def __init__(self, result=None, error: Exception | None = None):
        self.result = result
        self.error = error
        self.calls: list[str] = []
        self.release: asyncio.Event | None = None

    async def lookup(self, title: str):
        self.calls.append(title)
        if self.release is not None:
            await self.release.wait()
        if self.error is not None:
            raise self.error
        return self.result


def _coordinator(chain, store, clock):
    cache = RatingCache(store, ttl_seconds=TTL, clock=clock)
    return RequestCoordinator(cache, chain), cache


@pytest.mark.asyncio
async def test_cached_result_skips_lookup(store, clock):
    chain = FakeChain()
    coordinator, cache = _coordinator(chain, store, clock)
    await cache.put_found("The Matrix", make_result())

    assert await coordinator.resolve("The Matrix") == make_result()
    assert chain.calls == []


@pytest.mark.asyncio
async def test_second_sequential_resolve_is_served_from_cache(store, clock):
    chain = FakeChain(result=make_result())
    coordinator, _ = _coordinator(chain, store, clock)

    assert await coordinator.resolve("The Matrix") == make_result()
    assert await coordinator.resolve("the matrix") == make_result()
    assert chain.calls == ["The Matrix"]


@pytest.mark.asyncio
async def test_concurrent_resolves_share_one_lookup(store, clock):
    chain = FakeChain(result=make_result())
    chain.release = asyncio.Event()
    coordinator, _ = _coordinator(chain, store, clock)

    first = asyncio.create_task(coordinator.resolve("The Matrix"))
    second = asyncio.create_task(coordinator.resolve("The Matrix"))
    await asyncio.sleep(0)
    assert coordinator.in_flight == 1

    chain.release.set()
    results = await asyncio.gather(first, second)

    assert results == [make_result(), make_result()]
    assert chain.calls == ["The Matrix"]
    assert coordinator.in_flight == 0


@pytest.mark.asyncio
async def test_tombstone_until_ttl_expires(store, clock):
    chain = FakeChain(result=None)
    coordinator, cache = _coordinator(chain, store, clock)

    assert await coordinator.resolve("Unknown Show") is None
    assert cache.get("Unknown Show").is_missing is True

    assert await coordinator.resolve("Unknown Show") is None
    assert len(chain.calls) == 1

    clock.advance(TTL + 1)
    assert await coordinator.resolve("Unknown Show") is None
    assert len(chain.calls) == 2


@pytest.mark.asyncio
async def test_unconfirmed_miss_is_not_cached(store, clock):
    error = LookupIncompleteError("Heat", [ProviderError(error="network")])
    chain = FakeChain(error=error)
    coordinator, cache = _coordinator(chain, store, clock)

    assert await coordinator.resolve("Heat") is None
    assert cache.get("Heat") is None
    assert coordinator.in_flight == 0

    assert await coordinator.resolve("Heat") is None
    assert len(chain.calls) == 2


@pytest.mark.asyncio
async def test_unexpected_errors_reach_every_waiter(store, clock):
    chain = FakeChain(error=KeyError("boom"))
    chain.release = asyncio.Event()
    coordinator, cache = _coordinator(chain, store, clock)

    first = asyncio.create_task(coordinator.resolve("Heat"))
    second = asyncio.create_task(coordinator.resolve("Heat"))
    await asyncio.sleep(0)
    chain.release.set()

    results = await asyncio.gather(first, second, return_exceptions=True)
    assert all(isinstance(result, KeyError) for result in results)
    assert len(chain.calls) == 1
    assert coordinator.in_flight == 0
    assert cache.get("Heat") is None


@pytest.mark.asyncio
async def test_cancelled_caller_does_not_cancel_shared_lookup(store, clock):
    chain = FakeChain(result=make_result())
    chain.release = asyncio.Event()
    coordinator, _ = _coordinator(chain, store, clock)

    first = asyncio.create_task(coordinator.resolve("The Matrix"))
    second = asyncio.create_task(coordinator.resolve("The Matrix"))
    await asyncio.sleep(0)

    first.cancel()
    chain.release.set()

    assert await second == make_result()
    assert first.cancelled()


@pytest.mark.asyncio
@pytest.mark.parametrize("title", ["", "   "])
async def test_blank_title_is_rejected(store, clock, title):
    coordinator, _ = _coordinator(FakeChain(), store, clock)
    with pytest.raises(ValueError):
        await coordinator.resolve(title)


@pytest.mark.asyncio
async def test_join_waits_for_lookups_in_flight(store, clock):
    chain = FakeChain(result=make_result())
    chain.release = asyncio.Event()
    coordinator, cache = _coordinator(chain, store, clock)

    caller = asyncio.create_task(coordinator.resolve("The Matrix"))
    await asyncio.sleep(0)
    joiner = asyncio.create_task(coordinator.join())
    await asyncio.sleep(0)
    assert not joiner.done()

    chain.release.set()
    await joiner
    assert coordinator.in_flight == 0
    assert cache.get("The Matrix").result == make_result()
    assert await caller == make_result()


@pytest.mark.asyncio
async def test_join_with_nothing_in_flight_returns_at_once(store, clock):
    coordinator, _ = _coordinator(FakeChain(), store, clock)
    await coordinator.join()
