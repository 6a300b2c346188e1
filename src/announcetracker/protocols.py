"""Protocol interfaces for the external-collaborator boundaries.

The refresh orchestrator references these protocols, not the concrete
implementations. Tests substitute lightweight in-memory fakes.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from collections.abc import Iterable

    from announcetracker.config import FeedSource
    from announcetracker.models.results import FeedResult, SummaryResult


class FetcherProtocol(Protocol):
    """Interface for the feed fetcher."""

    async def fetch(self, source: FeedSource) -> FeedResult: ...

    async def fetch_all(self, sources: Iterable[FeedSource]) -> list[FeedResult]: ...


class SummarizerProtocol(Protocol):
    """Interface for the announcement summarizer."""

    async def summarize(self, title: str, content: str) -> SummaryResult: ...
