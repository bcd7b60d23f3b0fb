import logging
from collections.abc import Sequence
from typing import Any

import httpx

from .schemas import ProviderError, ProviderFound, ProviderNotFound, ProviderOutcome, RatingResult

logger = logging.getLogger(__name__)

OMDB_URL = "https://www.omdbapi.com/"
CRITICS_SOURCE = "Rotten Tomatoes"
KEY_REJECTION_MARKERS = ("api key", "request limit")


def _parse_float(value: Any) -> float | None:
    if value is None:
        return None
    try:
        text = str(value).strip()
        if not text or text.upper() == "N/A":
            return None
        return float(text)
    except ValueError:
        return None


def _clean_text(value: Any) -> str | None:
    text = str(value or "").strip()
    if not text or text.upper() == "N/A":
        return None
    return text


def parse_omdb_payload(data: dict, title: str) -> ProviderOutcome:
    if str(data.get("Response", "")).lower() != "true":
        message = str(data.get("Error") or "").strip()
        if any(marker in message.lower() for marker in KEY_REJECTION_MARKERS):
            return ProviderError(error="rejected", detail=message)
        return ProviderNotFound(reason=message or "not found")

    critics: str | None = None
    for rating in data.get("Ratings") or []:
        if not isinstance(rating, dict):
            continue
        if str(rating.get("Source") or "").strip() == CRITICS_SOURCE:
            critics = _clean_text(rating.get("Value"))
            break

    audience: str | None = None
    imdb_rating = _parse_float(data.get("imdbRating"))
    if imdb_rating is not None:
        audience = f"{str(data.get('imdbRating')).strip()}/10"

    if critics is None and audience is None:
        return ProviderNotFound(reason="no scores")

    imdb_id = _clean_text(data.get("imdbID"))
    return ProviderFound(
        result=RatingResult(
            critics=critics,
            audience=audience,
            source_title=_clean_text(data.get("Title")) or title,
            source_year=_clean_text(data.get("Year")),
            source_url=f"https://www.imdb.com/title/{imdb_id}/" if imdb_id else None,
            provider="omdb",
        )
    )


class OmdbClient:
    """Structured lookup against OMDb by exact title.

    Never raises for transport problems: every failure is returned as a
    ``ProviderError`` so the caller can tell "not found" from "could not ask".
    """

    def __init__(self, client: httpx.AsyncClient, api_keys: Sequence[str], *, base_url: str = OMDB_URL):
        self._client = client
        self._api_keys = [key for key in api_keys if key]
        self._base_url = base_url

    async def lookup(self, title: str) -> ProviderOutcome:
        if not self._api_keys:
            return ProviderError(error="rejected", detail="no OMDb API key configured")

        failure: ProviderError | None = None
        for api_key in self._api_keys:
            params = {"t": title, "apikey": api_key, "r": "json"}
            try:
                resp = await self._client.get(self._base_url, params=params)
            except httpx.HTTPError as exc:
                failure = ProviderError(error="network", detail=str(exc) or type(exc).__name__)
                continue
            if resp.status_code != 200:
                failure = ProviderError(error="http_status", detail=f"HTTP {resp.status_code}")
                continue
            try:
                data = resp.json()
            except ValueError:
                failure = ProviderError(error="bad_payload", detail="response is not JSON")
                continue
            if not isinstance(data, dict):
                failure = ProviderError(error="bad_payload", detail="response is not an object")
                continue

            outcome = parse_omdb_payload(data, title)
            if isinstance(outcome, ProviderError):
                logger.warning("OMDb rejected an API key: %s", outcome.detail)
                failure = outcome
                continue
            return outcome

        logger.warning("OMDb lookup failed for %r: %s (%s)", title, failure.error, failure.detail)
        return failure
