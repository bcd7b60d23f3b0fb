import logging

from .dispatcher import RateLimitedDispatcher
from .omdb import OmdbClient
from .schemas import ProviderError, ProviderFound, ProviderOutcome, RatingResult
from .variations import title_variations

logger = logging.getLogger(__name__)


class LookupIncompleteError(Exception):
    """The chain found nothing, but at least one provider call failed.

    The miss is therefore not confirmed and must not be cached as a tombstone.
    """

    def __init__(self, title: str, failures: list[ProviderError]):
        self.title = title
        self.failures = failures
        kinds = ", ".join(sorted({failure.error for failure in failures}))
        super().__init__(f"lookup for {title!r} incomplete after provider errors ({kinds})")


class LookupChain:
    def __init__(
        self,
        primary: OmdbClient,
        secondary: RateLimitedDispatcher[ProviderOutcome] | None,
    ):
        self._primary = primary
        self._secondary = secondary

    async def lookup(self, title: str) -> RatingResult | None:
        failures: list[ProviderError] = []
        for variation in title_variations(title):
            outcome = await self._primary.lookup(variation)
            if isinstance(outcome, ProviderFound):
                return outcome.result
            if isinstance(outcome, ProviderError):
                failures.append(outcome)
            else:
                logger.debug("OMDb has no rating for %r: %s", variation, outcome.reason)

        if self._secondary is not None:
            outcome = await self._secondary.submit(title)
            if isinstance(outcome, ProviderFound):
                return outcome.result
            if isinstance(outcome, ProviderError):
                failures.append(outcome)

        if failures:
            raise LookupIncompleteError(title, failures)
        return None
