"""Shared test fixtures for the announcetracker test suite."""

from __future__ import annotations

import asyncio
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING

import pytest

from announcetracker.cache import AnnouncementCache
from announcetracker.config import CacheSettings, FeedSource
from announcetracker.models.announcement import RawItem
from announcetracker.models.results import FeedResult, FetchFailure, SummaryResult
from announcetracker.refresh import RefreshOrchestrator

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable

NOW = datetime(2026, 10, 18, 12, 0, tzinfo=UTC)

SOURCES = [
    FeedSource(name="Feed A", url="https://feeds.example.com/a.xml"),
    FeedSource(name="Feed B", url="https://feeds.example.com/b.xml"),
]


class FakeClock:
    """Manually advanced wall clock."""

    def __init__(self, now: datetime = NOW) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


class FakeFetcher:
    """In-memory FetcherProtocol. Returns ``results`` for every fetch_all call."""

    def __init__(self) -> None:
        self.results: list[FeedResult] = []
        self.delay: float = 0.0
        self.calls = 0

    def succeed(self, *results: FeedResult) -> None:
        self.results = list(results)

    def fail_all(self) -> None:
        self.results = [
            FeedResult(
                source=source.name,
                failure=FetchFailure(source=source.name, url=source.url, reason="HTTP 503"),
            )
            for source in SOURCES
        ]

    async def fetch(self, source: FeedSource) -> FeedResult:
        for result in self.results:
            if result.source == source.name:
                return result
        return FeedResult(source=source.name)

    async def fetch_all(self, sources: Iterable[FeedSource]) -> list[FeedResult]:
        self.calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        return list(self.results)


class EchoSummarizer:
    """SummarizerProtocol that records calls and echoes the title."""

    def __init__(self) -> None:
        self.calls: list[str] = []

    async def summarize(self, title: str, content: str) -> SummaryResult:
        self.calls.append(title)
        return SummaryResult(text=f"Summary: {title}", generated=True)


@pytest.fixture()
def make_raw() -> Callable[..., RawItem]:
    """Build a RawItem; ``age`` is how long before NOW it was published."""

    def _make(
        title: str,
        link: str,
        *,
        age: timedelta = timedelta(0),
        content: str = "",
        guid: str | None = None,
    ) -> RawItem:
        return RawItem(
            title=title,
            link=link,
            published=NOW - age,
            content=content,
            guid=guid,
        )

    return _make


@pytest.fixture()
def now() -> datetime:
    return NOW


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def fetcher() -> FakeFetcher:
    return FakeFetcher()


@pytest.fixture()
def summarizer() -> EchoSummarizer:
    return EchoSummarizer()


@pytest.fixture()
def cache_settings() -> CacheSettings:
    return CacheSettings(batch_delay_seconds=0.0, refresh_timeout_seconds=1.0)


@pytest.fixture()
def orchestrator(
    clock: FakeClock,
    fetcher: FakeFetcher,
    summarizer: EchoSummarizer,
    cache_settings: CacheSettings,
) -> RefreshOrchestrator:
    return RefreshOrchestrator(
        cache=AnnouncementCache(timedelta(seconds=cache_settings.validity_seconds)),
        fetcher=fetcher,
        summarizer=summarizer,
        sources=SOURCES,
        settings=cache_settings,
        clock=clock,
    )
