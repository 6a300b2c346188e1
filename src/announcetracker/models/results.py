"""Result types returned across component boundaries.

Fetcher and summarizer never raise for expected upstream failures; they
return one of these instead, and the refresh orchestrator decides what a
failure means for the batch.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from announcetracker.models.announcement import RawItem


@dataclass(frozen=True)
class FetchFailure:
    source: str
    url: str
    reason: str


@dataclass(frozen=True)
class FeedResult:
    source: str
    items: list[RawItem] = field(default_factory=list)
    failure: FetchFailure | None = None

    @property
    def ok(self) -> bool:
        return self.failure is None


@dataclass(frozen=True)
class SummaryResult:
    text: str
    generated: bool
    fallback_reason: str | None = None


@dataclass(frozen=True)
class RateLimitDecision:
    allowed: bool
    limit: int
    remaining: int
    retry_after_seconds: int | None = None
