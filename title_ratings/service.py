import logging

import httpx

from .blocklist import Blocklist
from .cache import PERSISTENCE_ERRORS, RatingCache
from .config import Settings
from .coordinator import RequestCoordinator
from .database import close_db, create_engine, create_session_factory, init_db
from .dispatcher import RateLimitedDispatcher
from .lookup import LookupChain
from .omdb import OmdbClient
from .rotten_tomatoes import RottenTomatoesClient
from .schemas import ProviderOutcome, RatingResult, TitleRating
from .store import KeyValueStore, SqlKeyValueStore
from .variations import clean_title

logger = logging.getLogger(__name__)


def build_http_client(settings: Settings) -> httpx.AsyncClient:
    return httpx.AsyncClient(
        timeout=settings.http_timeout,
        headers={
            "User-Agent": settings.http_user_agent,
            "Accept-Language": "en-US,en;q=0.9",
        },
    )


class RatingService:
    """Wires the resolution engine together; one instance per process.

    ``store`` and ``http_client`` may be injected. When they are not, a
    SQL-backed store is created from ``settings.database_url`` and an HTTP
    client from the timeout / user agent settings; both are then owned (and
    closed) by the service.
    """

    def __init__(
        self,
        settings: Settings,
        *,
        store: KeyValueStore | None = None,
        http_client: httpx.AsyncClient | None = None,
    ):
        self.settings = settings
        self._engine = None
        if store is None:
            self._engine = create_engine(settings.database_url)
            store = SqlKeyValueStore(create_session_factory(self._engine))
        self._owns_http_client = http_client is None
        self._http_client = http_client or build_http_client(settings)

        self.cache = RatingCache(
            store,
            ttl_seconds=settings.cache_ttl_seconds,
            missing_ttl_seconds=settings.missing_ttl_seconds,
            flush_every=settings.cache_flush_every,
        )
        self.blocklist = Blocklist(store, refresh_seconds=settings.blocklist_refresh_seconds)
        self.dispatcher: RateLimitedDispatcher[ProviderOutcome] | None = None
        if settings.scraped_ratings_enabled:
            rotten = RottenTomatoesClient(self._http_client)
            self.dispatcher = RateLimitedDispatcher(
                rotten.fetch,
                base_delay=settings.scrape_base_delay,
                jitter=settings.scrape_jitter,
            )
        chain = LookupChain(OmdbClient(self._http_client, settings.omdb_api_keys), self.dispatcher)
        self.coordinator = RequestCoordinator(self.cache, chain)

    async def start(self) -> None:
        if self._engine is not None:
            try:
                await init_db(self._engine)
            except PERSISTENCE_ERRORS as exc:
                logger.warning("Rating store unavailable, running in memory only: %s", exc)
        await self.cache.load()
        await self.blocklist.load()

    async def resolve(self, title: str) -> RatingResult | None:
        return await self.coordinator.resolve(title)

    async def rate_title(self, raw_title: str) -> TitleRating:
        title = clean_title(raw_title)
        if not title:
            raise ValueError("title is empty after cleanup")
        await self.blocklist.refresh()
        if self.blocklist.is_blocked(title):
            return TitleRating(title=title, blocked=True)
        return TitleRating(title=title, ratings=await self.resolve(title))

    async def close(self) -> None:
        await self.coordinator.join()
        if self.dispatcher is not None:
            await self.dispatcher.join()
        await self.cache.flush()
        if self._owns_http_client:
            await self._http_client.aclose()
        if self._engine is not None:
            await close_db(self._engine)
