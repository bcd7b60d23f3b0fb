import asyncio
import logging

from .cache import RatingCache
from .lookup import LookupChain, LookupIncompleteError
from .schemas import RatingResult
from .variations import normalize_key

logger = logging.getLogger(__name__)


class RequestCoordinator:
    """Cache check plus single-flight around ``LookupChain.lookup``.

    For a given title key at most one lookup runs at a time; concurrent
    callers await the same task. The in-flight entry is removed as soon as
    that task settles, whatever the outcome.
    """

    def __init__(self, cache: RatingCache, chain: LookupChain):
        self._cache = cache
        self._chain = chain
        self._in_flight: dict[str, asyncio.Task] = {}

    @property
    def in_flight(self) -> int:
        return len(self._in_flight)

    async def resolve(self, title: str) -> RatingResult | None:
        if not isinstance(title, str) or not title.strip():
            raise ValueError("title must be a non-empty string")

        entry = self._cache.get(title)
        if entry is not None:
            return entry.result

        key = normalize_key(title)
        task = self._in_flight.get(key)
        if task is None:
            task = asyncio.create_task(self._lookup_and_store(title))
            self._in_flight[key] = task
            task.add_done_callback(lambda _: self._in_flight.pop(key, None))
        # Shielded so one caller giving up does not cancel the shared lookup.
        return await asyncio.shield(task)

    async def join(self) -> None:
        """Wait for every lookup in flight to settle; failures are left to their callers."""
        while self._in_flight:
            await asyncio.gather(*list(self._in_flight.values()), return_exceptions=True)

    async def _lookup_and_store(self, title: str) -> RatingResult | None:
        try:
            result = await self._chain.lookup(title)
        except LookupIncompleteError as exc:
            logger.warning("Not caching miss for %r: %s", title, exc)
            return None

        if result is None:
            await self._cache.put_missing(title)
        else:
            await self._cache.put_found(title, result)
        return result
