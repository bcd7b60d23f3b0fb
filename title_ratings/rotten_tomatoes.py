"""Rotten Tomatoes fallback: search page -> detail page -> scores.

Nothing here is a documented API. Scores are pulled out of page markup with
regular expressions, so the patterns live in a version-tagged parser that can
be swapped when the site changes.
"""
import logging
import re
from urllib.parse import quote

import httpx

from .schemas import ProviderError, ProviderFound, ProviderNotFound, ProviderOutcome, RatingResult

logger = logging.getLogger(__name__)

ROTTEN_BASE_URL = "https://www.rottentomatoes.com"


def _parse_int(value: str | None) -> int | None:
    if value is None:
        return None
    digits = "".join(ch for ch in value if ch.isdigit())
    if not digits:
        return None
    return int(digits)


def _safe_percent(value: int | None) -> int | None:
    if value is None:
        return None
    if value < 0 or value > 100:
        return None
    return value


class ScorePatternParser:
    """Ordered, first-match-wins patterns for one revision of the site markup."""

    def __init__(
        self,
        *,
        version: str,
        link_pattern: str,
        critics_patterns: tuple[str, ...],
        audience_patterns: tuple[str, ...],
    ):
        self.version = version
        self._link_re = re.compile(link_pattern, flags=re.IGNORECASE)
        self._critics_res = tuple(re.compile(p, flags=re.IGNORECASE | re.DOTALL) for p in critics_patterns)
        self._audience_res = tuple(re.compile(p, flags=re.IGNORECASE | re.DOTALL) for p in audience_patterns)

    def find_detail_path(self, html: str) -> str | None:
        match = self._link_re.search(html)
        if not match:
            return None
        return match.group("path")

    @staticmethod
    def _first_score(patterns: tuple[re.Pattern, ...], html: str) -> int | None:
        for pattern in patterns:
            match = pattern.search(html)
            if match:
                score = _safe_percent(_parse_int(match.group("score")))
                if score is not None:
                    return score
        return None

    def extract_scores(self, html: str) -> tuple[int | None, int | None]:
        return self._first_score(self._critics_res, html), self._first_score(self._audience_res, html)


# Legacy <score-board tomatometerscore=".." audiencescore=".."> attributes first,
# then the newer <rt-text slot="criticsScore">90%</rt-text> elements.
SCOREBOARD_PARSER = ScorePatternParser(
    version="scoreboard-2024",
    link_pattern=r'href="(?:https?://www\.rottentomatoes\.com)?(?P<path>/(?:m|tv)/[^"#?]+)"',
    critics_patterns=(
        r'\btomatometerscore\s*=\s*"(?P<score>\d{1,3})"',
        r'<rt-text[^>]*\bslot\s*=\s*"critics-?score"[^>]*>\s*(?P<score>\d{1,3})\s*%',
    ),
    audience_patterns=(
        r'\baudiencescore\s*=\s*"(?P<score>\d{1,3})"',
        r'<rt-text[^>]*\bslot\s*=\s*"audience-?score"[^>]*>\s*(?P<score>\d{1,3})\s*%',
    ),
)


def build_search_url(title: str | None, base_url: str = ROTTEN_BASE_URL) -> str | None:
    if not title:
        return None
    query = quote(title.strip(), safe="")
    if not query:
        return None
    return f"{base_url}/search?search={query}"


class RottenTomatoesClient:
    def __init__(
        self,
        client: httpx.AsyncClient,
        *,
        base_url: str = ROTTEN_BASE_URL,
        parser: ScorePatternParser = SCOREBOARD_PARSER,
    ):
        self._client = client
        self._base_url = base_url.rstrip("/")
        self.parser = parser

    async def _get_html(self, url: str) -> str | ProviderError:
        try:
            resp = await self._client.get(url, follow_redirects=True)
        except httpx.HTTPError as exc:
            return ProviderError(error="network", detail=str(exc) or type(exc).__name__)
        if resp.status_code != 200:
            return ProviderError(error="http_status", detail=f"HTTP {resp.status_code} for {url}")
        return resp.text

    async def lookup(self, title: str) -> ProviderOutcome:
        search_url = build_search_url(title, self._base_url)
        if not search_url:
            return ProviderNotFound(reason="empty title")

        search_html = await self._get_html(search_url)
        if isinstance(search_html, ProviderError):
            return search_html
        path = self.parser.find_detail_path(search_html)
        if not path:
            return ProviderNotFound(reason="no search result")

        detail_url = f"{self._base_url}{path}"
        detail_html = await self._get_html(detail_url)
        if isinstance(detail_html, ProviderError):
            return detail_html
        critics, audience = self.parser.extract_scores(detail_html)
        if critics is None and audience is None:
            logger.debug("No scores matched parser %s on %s", self.parser.version, detail_url)
            return ProviderNotFound(reason="no scores")

        return ProviderFound(
            result=RatingResult(
                critics=f"{critics}%" if critics is not None else None,
                audience=f"{audience}%" if audience is not None else None,
                source_title=title,
                source_url=detail_url,
                provider="rotten_tomatoes",
            )
        )

    async def fetch(self, title: str) -> ProviderOutcome:
        try:
            outcome = await self.lookup(title)
        except Exception as exc:
            logger.exception("Rotten Tomatoes lookup crashed for %r", title)
            return ProviderError(error="unexpected", detail=type(exc).__name__)
        if isinstance(outcome, ProviderError):
            logger.warning("Rotten Tomatoes lookup failed for %r: %s (%s)", title, outcome.error, outcome.detail)
        elif isinstance(outcome, ProviderFound):
            logger.info("Rotten Tomatoes rating found for %r at %s", title, outcome.result.source_url)
        return outcome
