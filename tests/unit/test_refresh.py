"""Unit tests for RefreshOrchestrator.

The fetcher and summarizer are in-memory fakes from conftest.py; the clock
is advanced manually so cache freshness is deterministic.
"""

from __future__ import annotations

import asyncio
from datetime import timedelta
from typing import TYPE_CHECKING
from unittest.mock import AsyncMock, patch

import pytest

from announcetracker.errors import ErrorCode, TrackerError
from announcetracker.models.announcement import Category
from announcetracker.models.cache import CacheState
from announcetracker.models.results import FeedResult, FetchFailure
from announcetracker.normalizer import derive_id

if TYPE_CHECKING:
    from collections.abc import Callable

    from announcetracker.config import CacheSettings
    from announcetracker.models.announcement import RawItem
    from announcetracker.models.results import SummaryResult
    from announcetracker.refresh import RefreshOrchestrator


def _failed(source: str) -> FeedResult:
    return FeedResult(
        source=source,
        failure=FetchFailure(source=source, url=f"https://{source}.example.com", reason="HTTP 500"),
    )


@pytest.fixture()
def two_items(make_raw: Callable[..., RawItem]) -> FeedResult:
    return FeedResult(
        source="Feed A",
        items=[
            make_raw("New EC2 feature", "https://example.com/ec2", age=timedelta(minutes=10)),
            make_raw("S3 backup news", "https://example.com/s3", age=timedelta(days=2)),
        ],
    )


# ---------------------------------------------------------------------------
# Cache hits and misses
# ---------------------------------------------------------------------------


class TestGetAnnouncements:
    async def test_first_call_populates_cache(
        self, orchestrator: RefreshOrchestrator, fetcher, two_items: FeedResult
    ) -> None:
        fetcher.succeed(two_items)

        snapshot = await orchestrator.get_announcements()

        assert fetcher.calls == 1
        assert snapshot.fresh is True
        assert [a.title for a in snapshot.entry.announcements] == [
            "New EC2 feature",
            "S3 backup news",
        ]
        assert orchestrator.cache.entry is snapshot.entry

    async def test_scenario_categories_and_recency(
        self, orchestrator: RefreshOrchestrator, fetcher, two_items: FeedResult
    ) -> None:
        fetcher.succeed(two_items)

        snapshot = await orchestrator.get_announcements()

        ec2, s3 = snapshot.entry.announcements
        assert (ec2.category, ec2.is_new) == (Category.COMPUTE, True)
        assert (s3.category, s3.is_new) == (Category.STORAGE, False)

    async def test_fresh_cache_skips_upstream(
        self, orchestrator: RefreshOrchestrator, fetcher, clock, two_items: FeedResult
    ) -> None:
        fetcher.succeed(two_items)
        first = await orchestrator.get_announcements()
        clock.advance(minutes=4)

        second = await orchestrator.get_announcements()

        assert fetcher.calls == 1
        assert second.entry is first.entry
        assert second.fresh is True

    async def test_stale_cache_triggers_refresh(
        self,
        orchestrator: RefreshOrchestrator,
        fetcher,
        clock,
        two_items: FeedResult,
        make_raw: Callable[..., RawItem],
    ) -> None:
        fetcher.succeed(two_items)
        await orchestrator.get_announcements()
        clock.advance(minutes=6)
        fetcher.succeed(FeedResult(source="Feed A", items=[make_raw("Fresh", "https://x/1")]))

        snapshot = await orchestrator.get_announcements()

        assert fetcher.calls == 2
        assert [a.title for a in snapshot.entry.announcements] == ["Fresh"]
        assert snapshot.entry.refreshed_at == clock.now


# ---------------------------------------------------------------------------
# Failure handling
# ---------------------------------------------------------------------------


class TestFailureFallback:
    async def test_no_cache_and_all_sources_failed(
        self, orchestrator: RefreshOrchestrator, fetcher
    ) -> None:
        fetcher.fail_all()

        with pytest.raises(TrackerError) as exc_info:
            await orchestrator.get_announcements()

        assert exc_info.value.code == ErrorCode.NO_DATA_AVAILABLE
        assert exc_info.value.status_code == 500
        assert orchestrator.cache.entry is None

    async def test_stale_cache_served_when_refresh_fails(
        self, orchestrator: RefreshOrchestrator, fetcher, clock, two_items: FeedResult
    ) -> None:
        fetcher.succeed(two_items)
        original = await orchestrator.get_announcements()
        clock.advance(minutes=10)
        fetcher.fail_all()

        snapshot = await orchestrator.get_announcements()

        assert snapshot.entry is original.entry
        assert snapshot.fresh is False
        assert orchestrator.cache.entry.refreshed_at == original.entry.refreshed_at

    async def test_partial_failure_still_succeeds(
        self, orchestrator: RefreshOrchestrator, fetcher, two_items: FeedResult
    ) -> None:
        fetcher.succeed(_failed("Feed B"), two_items)

        snapshot = await orchestrator.get_announcements()

        assert len(snapshot.entry.announcements) == 2

    async def test_zero_announcements_counts_as_failure(
        self, orchestrator: RefreshOrchestrator, fetcher
    ) -> None:
        fetcher.succeed(FeedResult(source="Feed A"), FeedResult(source="Feed B"))

        with pytest.raises(TrackerError) as exc_info:
            await orchestrator.get_announcements()

        assert exc_info.value.code == ErrorCode.NO_DATA_AVAILABLE
        assert orchestrator.cache.entry is None

    async def test_no_results_counts_as_failure(
        self, orchestrator: RefreshOrchestrator, fetcher
    ) -> None:
        with pytest.raises(TrackerError):
            await orchestrator.get_announcements()

    async def test_unexpected_pipeline_error_falls_back(
        self, orchestrator: RefreshOrchestrator, fetcher, clock, two_items: FeedResult
    ) -> None:
        fetcher.succeed(two_items)
        original = await orchestrator.get_announcements()
        clock.advance(minutes=10)

        with patch.object(fetcher, "fetch_all", AsyncMock(side_effect=RuntimeError("boom"))):
            snapshot = await orchestrator.get_announcements()

        assert snapshot.entry is original.entry

    async def test_next_request_retries_after_failure(
        self, orchestrator: RefreshOrchestrator, fetcher, two_items: FeedResult
    ) -> None:
        fetcher.fail_all()
        with pytest.raises(TrackerError):
            await orchestrator.get_announcements()

        fetcher.succeed(two_items)
        snapshot = await orchestrator.get_announcements()

        assert fetcher.calls == 2
        assert len(snapshot.entry.announcements) == 2


# ---------------------------------------------------------------------------
# Timeout
# ---------------------------------------------------------------------------


class TestTimeout:
    @pytest.fixture()
    def cache_settings(self, cache_settings: CacheSettings) -> CacheSettings:
        return cache_settings.model_copy(update={"refresh_timeout_seconds": 0.05})

    async def test_timeout_without_cache_is_no_data(
        self, orchestrator: RefreshOrchestrator, fetcher, two_items: FeedResult
    ) -> None:
        fetcher.succeed(two_items)
        fetcher.delay = 0.5

        with pytest.raises(TrackerError) as exc_info:
            await orchestrator.get_announcements()

        assert exc_info.value.code == ErrorCode.NO_DATA_AVAILABLE

    async def test_timeout_serves_stale_cache(
        self, orchestrator: RefreshOrchestrator, fetcher, clock, two_items: FeedResult
    ) -> None:
        fetcher.succeed(two_items)
        original = await orchestrator.get_announcements()
        clock.advance(minutes=10)
        fetcher.delay = 0.5

        snapshot = await orchestrator.get_announcements()

        assert snapshot.entry is original.entry
        assert snapshot.fresh is False

    async def test_abandoned_refresh_never_writes_cache(
        self, orchestrator: RefreshOrchestrator, fetcher, two_items: FeedResult
    ) -> None:
        fetcher.succeed(two_items)
        fetcher.delay = 0.2

        with pytest.raises(TrackerError):
            await orchestrator.get_announcements()
        await asyncio.sleep(0.3)

        assert orchestrator.cache.entry is None


# ---------------------------------------------------------------------------
# Single flight
# ---------------------------------------------------------------------------


class TestSingleFlight:
    async def test_concurrent_callers_share_one_refresh(
        self, orchestrator: RefreshOrchestrator, fetcher, two_items: FeedResult
    ) -> None:
        fetcher.succeed(two_items)
        fetcher.delay = 0.05

        snapshots = await asyncio.gather(*(orchestrator.get_announcements() for _ in range(5)))

        assert fetcher.calls == 1
        assert len({id(s.entry) for s in snapshots}) == 1

    async def test_state_is_refreshing_while_in_flight(
        self, orchestrator: RefreshOrchestrator, fetcher, two_items: FeedResult
    ) -> None:
        fetcher.succeed(two_items)
        fetcher.delay = 0.05
        assert orchestrator.state() == CacheState.EMPTY

        task = asyncio.create_task(orchestrator.get_announcements())
        await asyncio.sleep(0.01)
        assert orchestrator.state() == CacheState.REFRESHING

        await task
        assert orchestrator.state() == CacheState.FRESH

    async def test_cancelled_waiter_does_not_cancel_refresh(
        self, orchestrator: RefreshOrchestrator, fetcher, two_items: FeedResult
    ) -> None:
        fetcher.succeed(two_items)
        fetcher.delay = 0.05

        first = asyncio.create_task(orchestrator.get_announcements())
        second = asyncio.create_task(orchestrator.get_announcements())
        await asyncio.sleep(0.01)
        first.cancel()

        snapshot = await second

        assert first.cancelled()
        assert fetcher.calls == 1
        assert orchestrator.cache.entry is snapshot.entry

    async def test_failed_refresh_shared_by_all_waiters(
        self, orchestrator: RefreshOrchestrator, fetcher
    ) -> None:
        fetcher.fail_all()
        fetcher.delay = 0.05

        results = await asyncio.gather(
            *(orchestrator.get_announcements() for _ in range(3)), return_exceptions=True
        )

        assert fetcher.calls == 1
        assert all(isinstance(r, TrackerError) for r in results)


# ---------------------------------------------------------------------------
# Pipeline shaping
# ---------------------------------------------------------------------------


class TestPipeline:
    async def test_items_capped_per_refresh(
        self,
        orchestrator: RefreshOrchestrator,
        fetcher,
        summarizer,
        make_raw: Callable[..., RawItem],
    ) -> None:
        items = [
            make_raw(f"Item {i}", f"https://example.com/{i}", age=timedelta(minutes=i))
            for i in range(12)
        ]
        fetcher.succeed(FeedResult(source="Feed A", items=items))

        snapshot = await orchestrator.get_announcements()

        assert len(snapshot.entry.announcements) == 8
        assert len(summarizer.calls) == 8

    async def test_items_outside_backfill_dropped(
        self, orchestrator: RefreshOrchestrator, fetcher, make_raw: Callable[..., RawItem]
    ) -> None:
        fetcher.succeed(
            FeedResult(
                source="Feed A",
                items=[
                    make_raw("Recent", "https://example.com/recent", age=timedelta(days=1)),
                    make_raw("Ancient", "https://example.com/old", age=timedelta(days=10)),
                ],
            )
        )

        snapshot = await orchestrator.get_announcements()

        assert [a.title for a in snapshot.entry.announcements] == ["Recent"]

    async def test_duplicates_across_sources_keep_first(
        self, orchestrator: RefreshOrchestrator, fetcher, make_raw: Callable[..., RawItem]
    ) -> None:
        fetcher.succeed(
            FeedResult(source="Feed A", items=[make_raw("From A", "https://example.com/same")]),
            FeedResult(source="Feed B", items=[make_raw("From B", "https://example.com/same")]),
        )

        snapshot = await orchestrator.get_announcements()

        (only,) = snapshot.entry.announcements
        assert only.source == "Feed A"
        assert only.id == derive_id("https://example.com/same")

    async def test_sorted_newest_first_across_sources(
        self, orchestrator: RefreshOrchestrator, fetcher, make_raw: Callable[..., RawItem]
    ) -> None:
        older = make_raw("Older", "https://a/1", age=timedelta(hours=3))
        newer = make_raw("Newer", "https://b/1", age=timedelta(hours=1))
        fetcher.succeed(
            FeedResult(source="Feed A", items=[older]),
            FeedResult(source="Feed B", items=[newer]),
        )

        snapshot = await orchestrator.get_announcements()

        assert [a.title for a in snapshot.entry.announcements] == ["Newer", "Older"]

    async def test_pauses_between_batches(
        self,
        orchestrator: RefreshOrchestrator,
        fetcher,
        cache_settings: CacheSettings,
        make_raw: Callable[..., RawItem],
    ) -> None:
        cache_settings.batch_size = 2
        cache_settings.batch_delay_seconds = 0.5
        fetcher.succeed(
            FeedResult(
                source="Feed A",
                items=[make_raw(f"Item {i}", f"https://example.com/{i}") for i in range(5)],
            )
        )
        mock_sleep = AsyncMock()

        with patch("announcetracker.refresh.asyncio.sleep", mock_sleep):
            await orchestrator.get_announcements()

        # After items 2 and 4; no pause after the final item
        assert mock_sleep.await_count == 2
        mock_sleep.assert_awaited_with(0.5)

    async def test_failing_item_dropped_rest_cached(
        self,
        orchestrator: RefreshOrchestrator,
        fetcher,
        summarizer,
        make_raw: Callable[..., RawItem],
    ) -> None:
        original = summarizer.summarize

        async def flaky(title: str, content: str) -> SummaryResult:
            if title == "Broken item":
                raise RuntimeError("summarizer blew up")
            return await original(title, content)

        summarizer.summarize = flaky
        fetcher.succeed(
            FeedResult(
                source="Feed A",
                items=[
                    make_raw("Broken item", "https://example.com/broken"),
                    make_raw("New EC2 feature", "https://example.com/ec2"),
                ],
            )
        )

        snapshot = await orchestrator.get_announcements()

        assert [a.title for a in snapshot.entry.announcements] == ["New EC2 feature"]
        assert orchestrator.cache.entry is snapshot.entry

    async def test_every_item_failing_is_no_data(
        self,
        orchestrator: RefreshOrchestrator,
        fetcher,
        summarizer,
        make_raw: Callable[..., RawItem],
    ) -> None:
        summarizer.summarize = AsyncMock(side_effect=RuntimeError("down"))
        fetcher.succeed(
            FeedResult(source="Feed A", items=[make_raw("Only", "https://example.com/only")])
        )

        with pytest.raises(TrackerError) as exc_info:
            await orchestrator.get_announcements()

        assert exc_info.value.code == ErrorCode.NO_DATA_AVAILABLE
        assert orchestrator.cache.entry is None
