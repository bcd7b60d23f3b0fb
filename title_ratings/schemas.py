from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator


class RatingResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    critics: str | None = None
    audience: str | None = None
    source_title: str = Field(min_length=1)
    source_year: str | None = None
    source_url: str | None = None
    provider: Literal["omdb", "rotten_tomatoes"]

    @model_validator(mode="after")
    def _require_a_score(self) -> "RatingResult":
        if self.critics is None and self.audience is None:
            raise ValueError("a rating needs a critics or an audience score")
        return self


class CacheEntry(BaseModel):
    model_config = ConfigDict(frozen=True)

    result: RatingResult | None = None
    is_missing: bool
    created_at: float

    @model_validator(mode="after")
    def _missing_iff_empty(self) -> "CacheEntry":
        if self.is_missing != (self.result is None):
            raise ValueError("is_missing must be set exactly when result is empty")
        return self


class ProviderFound(BaseModel):
    kind: Literal["found"] = "found"
    result: RatingResult


class ProviderNotFound(BaseModel):
    kind: Literal["not_found"] = "not_found"
    reason: str = "no match"


class ProviderError(BaseModel):
    kind: Literal["error"] = "error"
    error: Literal["network", "http_status", "bad_payload", "rejected", "unexpected"]
    detail: str | None = None


ProviderOutcome = ProviderFound | ProviderNotFound | ProviderError


class TitleRating(BaseModel):
    title: str
    blocked: bool = False
    ratings: RatingResult | None = None
