import logging
import time
from typing import Callable

from .cache import PERSISTENCE_ERRORS
from .store import KeyValueStore

logger = logging.getLogger(__name__)

BLOCKLIST_STORE_KEY = "blocklist"


class Blocklist:
    """Read-only view of the user's block-list as stored by the settings UI.

    The settings UI writes the store directly, so ``refresh()`` re-reads it
    once the last load is older than ``refresh_seconds``.
    """

    def __init__(
        self,
        store: KeyValueStore,
        *,
        refresh_seconds: float = 30.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._store = store
        self._titles: list[str] = []
        self._refresh_seconds = refresh_seconds
        self._clock = clock
        self._loaded_at: float | None = None

    @property
    def titles(self) -> list[str]:
        return list(self._titles)

    async def load(self) -> list[str]:
        self._loaded_at = self._clock()
        try:
            raw = await self._store.get(BLOCKLIST_STORE_KEY)
        except PERSISTENCE_ERRORS as exc:
            logger.warning("Failed to load block-list, keeping %d entries: %s", len(self._titles), exc)
            return self.titles
        if isinstance(raw, list):
            self._titles = [str(item).strip() for item in raw if str(item or "").strip()]
        else:
            self._titles = []
        return self.titles

    async def refresh(self) -> bool:
        if self._loaded_at is not None and self._clock() - self._loaded_at < self._refresh_seconds:
            return False
        await self.load()
        return True

    def is_blocked(self, title: str) -> bool:
        lowered = title.lower()
        return any(blocked.lower() in lowered for blocked in self._titles)
