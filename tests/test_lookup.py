import pytest

from title_ratings.lookup import LookupChain, LookupIncompleteError
from title_ratings.schemas import ProviderError, ProviderFound, ProviderNotFound

from conftest import make_result

NOT_FOUND = ProviderNotFound(reason="Movie not found!")


class FakePrimary:
    def __init__(self, outcomes: dict | None = None, default=NOT_FOUND):
        self.outcomes = outcomes or {}
        self.default = default
        self.calls: list[str] = []

    async def lookup(self, title: str):
        self.calls.append(title)
        return self.outcomes.get(title, self.default)


class FakeSecondary:
    def __init__(self, outcome=NOT_FOUND):
        self.outcome = outcome
        self.calls: list[str] = []

    async def submit(self, title: str):
        self.calls.append(title)
        return self.outcome


@pytest.mark.asyncio
async def test_first_primary_hit_wins():
    hit = ProviderFound(result=make_result())
    primary = FakePrimary({"The Matrix (1999)": hit})
    secondary = FakeSecondary()

    assert await LookupChain(primary, secondary).lookup("The Matrix (1999)") == make_result()
    assert primary.calls == ["The Matrix (1999)"]
    assert secondary.calls == []


@pytest.mark.asyncio
async def test_variations_are_tried_in_order_until_a_hit():
    hit = ProviderFound(result=make_result())
    primary = FakePrimary({"The Matrix": hit})

    assert await LookupChain(primary, FakeSecondary()).lookup("The Matrix (1999)") == make_result()
    assert primary.calls == ["The Matrix (1999)", "The Matrix"]


@pytest.mark.asyncio
async def test_secondary_gets_one_attempt_with_original_title():
    rt = make_result(critics="90%", audience="85%", provider="rotten_tomatoes", source_title="Good Movie")
    primary = FakePrimary()
    secondary = FakeSecondary(ProviderFound(result=rt))

    assert await LookupChain(primary, secondary).lookup("The Good Movie") == rt
    assert primary.calls == ["The Good Movie", "Good Movie"]
    assert secondary.calls == ["The Good Movie"]


@pytest.mark.asyncio
async def test_confirmed_total_miss_returns_none():
    secondary = FakeSecondary()
    assert await LookupChain(FakePrimary(), secondary).lookup("Nothing") is None
    assert secondary.calls == ["Nothing"]


@pytest.mark.asyncio
async def test_miss_is_unconfirmed_when_primary_failed():
    primary = FakePrimary(default=ProviderError(error="network", detail="boom"))
    with pytest.raises(LookupIncompleteError) as excinfo:
        await LookupChain(primary, FakeSecondary()).lookup("Nothing")
    assert [failure.error for failure in excinfo.value.failures] == ["network"]


@pytest.mark.asyncio
async def test_miss_is_unconfirmed_when_secondary_failed():
    secondary = FakeSecondary(ProviderError(error="http_status", detail="HTTP 403"))
    with pytest.raises(LookupIncompleteError):
        await LookupChain(FakePrimary(), secondary).lookup("Nothing")


@pytest.mark.asyncio
async def test_secondary_hit_beats_earlier_primary_errors():
    rt = make_result(provider="rotten_tomatoes")
    primary = FakePrimary(default=ProviderError(error="network"))
    assert await LookupChain(primary, FakeSecondary(ProviderFound(result=rt))).lookup("Heat") == rt


@pytest.mark.asyncio
async def test_without_secondary_provider():
    assert await LookupChain(FakePrimary(), None).lookup("Nothing") is None
