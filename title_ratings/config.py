import os

from pydantic import BaseModel, ConfigDict

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (X11; Linux x86_64) "
    "AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/126.0.0.0 Safari/537.36"
)
SEVEN_DAYS = 7 * 24 * 60 * 60


class Settings(BaseModel):
    model_config = ConfigDict(frozen=True)

    omdb_api_keys: tuple[str, ...] = ("trilogy",)
    database_url: str = "sqlite+aiosqlite:///./title_ratings.db"
    cache_ttl_seconds: float = SEVEN_DAYS
    missing_ttl_seconds: float = SEVEN_DAYS
    cache_flush_every: int = 10
    scrape_base_delay: float = 2.0
    scrape_jitter: float = 1.5
    scraped_ratings_enabled: bool = True
    blocklist_refresh_seconds: float = 30.0
    http_timeout: float = 8.0
    http_user_agent: str = DEFAULT_USER_AGENT
    cors_origins: tuple[str, ...] = ()
    ratings_rate_limit: str = "120/minute"


def _env_bool(name: str, default: bool = False) -> bool:
    raw = os.environ.get(name, "")
    if raw is None or raw == "":
        return default
    return str(raw).strip().lower() in {"1", "true", "yes", "on"}


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        value = float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}") from None
    if value < 0:
        raise ValueError(f"{name} must not be negative, got {raw!r}")
    return value


def _env_int(name: str, default: int) -> int:
    value = _env_float(name, float(default))
    if value != int(value) or value < 1:
        raise ValueError(f"{name} must be a positive integer")
    return int(value)


def _omdb_api_keys() -> tuple[str, ...]:
    keys: list[str] = []
    explicit_key = os.environ.get("OMDB_API_KEY", "").strip()
    if explicit_key:
        keys.append(explicit_key)

    # Public dev fallback key. Set OMDB_API_KEY in production.
    fallback_key = os.environ.get("OMDB_FALLBACK_API_KEY", "trilogy").strip()
    if fallback_key and fallback_key not in keys:
        keys.append(fallback_key)
    return tuple(keys)


def load_settings() -> Settings:
    cache_ttl = _env_float("RATINGS_CACHE_TTL_SECONDS", SEVEN_DAYS)
    origins = [o.strip() for o in os.environ.get("CORS_ORIGINS", "").split(",") if o.strip()]
    return Settings(
        omdb_api_keys=_omdb_api_keys(),
        database_url=os.environ.get("DATABASE_URL", "").strip() or Settings().database_url,
        cache_ttl_seconds=cache_ttl,
        missing_ttl_seconds=_env_float("RATINGS_MISSING_TTL_SECONDS", cache_ttl),
        cache_flush_every=_env_int("RATINGS_CACHE_FLUSH_EVERY", 10),
        scrape_base_delay=_env_float("SCRAPE_BASE_DELAY_MS", 2000) / 1000,
        scrape_jitter=_env_float("SCRAPE_JITTER_MS", 1500) / 1000,
        scraped_ratings_enabled=_env_bool("ENABLE_SCRAPED_RATINGS", default=True),
        blocklist_refresh_seconds=_env_float("BLOCKLIST_REFRESH_SECONDS", 30),
        http_timeout=_env_float("HTTP_TIMEOUT_SECONDS", 8),
        http_user_agent=os.environ.get("HTTP_USER_AGENT", "").strip() or DEFAULT_USER_AGENT,
        cors_origins=tuple(origins),
        ratings_rate_limit=os.environ.get("RATINGS_RATE_LIMIT", "").strip() or "120/minute",
    )
