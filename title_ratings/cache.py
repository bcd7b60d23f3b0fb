import logging
import time
from typing import Callable

from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError

from .schemas import CacheEntry, RatingResult
from .store import KeyValueStore
from .variations import normalize_key

logger = logging.getLogger(__name__)

CACHE_STORE_KEY = "ratingCache"
PERSISTENCE_ERRORS = (SQLAlchemyError, OSError, ValueError, TypeError)


class RatingCache:
    """Title -> rating map with a TTL, including "not found" tombstones.

    Writes go to memory first. The store is only written every
    ``flush_every`` writes (and on explicit ``flush()``), so a crash can lose
    the last few entries. Expired entries are dropped lazily on read.
    """

    def __init__(
        self,
        store: KeyValueStore,
        *,
        ttl_seconds: float,
        missing_ttl_seconds: float | None = None,
        flush_every: int = 10,
        clock: Callable[[], float] = time.time,
    ):
        self._store = store
        self._entries: dict[str, CacheEntry] = {}
        self._ttl = ttl_seconds
        self._missing_ttl = ttl_seconds if missing_ttl_seconds is None else missing_ttl_seconds
        self._flush_every = max(1, flush_every)
        self._writes_since_flush = 0
        self._clock = clock

    def __len__(self) -> int:
        return len(self._entries)

    def _is_expired(self, entry: CacheEntry, now: float) -> bool:
        ttl = self._missing_ttl if entry.is_missing else self._ttl
        return (now - entry.created_at) > ttl

    async def load(self) -> int:
        try:
            raw = await self._store.get(CACHE_STORE_KEY)
        except PERSISTENCE_ERRORS as exc:
            logger.warning("Failed to load rating cache, starting empty: %s", exc)
            return 0
        if not isinstance(raw, dict):
            return 0
        now = self._clock()
        loaded = 0
        for key, value in raw.items():
            try:
                entry = CacheEntry.model_validate(value)
            except ValidationError:
                logger.debug("Skipping malformed cache entry for %r", key)
                continue
            if self._is_expired(entry, now):
                continue
            self._entries[key] = entry
            loaded += 1
        logger.info("Loaded %d cached ratings", loaded)
        return loaded

    def get(self, title: str) -> CacheEntry | None:
        key = normalize_key(title)
        entry = self._entries.get(key)
        if entry is None:
            return None
        if self._is_expired(entry, self._clock()):
            self._entries.pop(key, None)
            return None
        return entry

    async def put_found(self, title: str, result: RatingResult) -> None:
        entry = CacheEntry(result=result, is_missing=False, created_at=self._clock())
        await self._put(title, entry)

    async def put_missing(self, title: str) -> None:
        entry = CacheEntry(result=None, is_missing=True, created_at=self._clock())
        await self._put(title, entry)

    async def _put(self, title: str, entry: CacheEntry) -> None:
        self._entries[normalize_key(title)] = entry
        self._writes_since_flush += 1
        if self._writes_since_flush >= self._flush_every:
            await self.flush()

    async def flush(self) -> bool:
        now = self._clock()
        snapshot = {
            key: entry.model_dump(mode="json")
            for key, entry in self._entries.items()
            if not self._is_expired(entry, now)
        }
        self._writes_since_flush = 0
        try:
            await self._store.set(CACHE_STORE_KEY, snapshot)
        except PERSISTENCE_ERRORS as exc:
            logger.warning("Failed to persist rating cache (%d entries): %s", len(snapshot), exc)
            return False
        logger.info("Persisted %d cached ratings", len(snapshot))
        return True
