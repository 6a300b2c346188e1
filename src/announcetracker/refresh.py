"""Refresh orchestration: when to refetch, and what to serve when it fails.

State machine (see :class:`~announcetracker.models.cache.CacheState`)::

    EMPTY -> REFRESHING -> FRESH -> STALE -> REFRESHING -> FRESH ...

A FRESH entry is served with no upstream call. EMPTY or STALE makes the
caller run (or join) a refresh. Concurrent callers share one in-flight
refresh task; the pipeline runs under a hard timeout. A failed refresh
never touches the cache: the previous entry keeps being served, and only
when there is none does the caller get NO_DATA_AVAILABLE.
"""

from __future__ import annotations

import asyncio
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING

import structlog

from announcetracker.errors import ErrorCode, TrackerError
from announcetracker.models.cache import CacheSnapshot, CacheState
from announcetracker.normalizer import (
    deduplicate,
    normalize,
    sort_newest_first,
    within_backfill,
)

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

    from announcetracker.cache import AnnouncementCache
    from announcetracker.config import CacheSettings, FeedSource
    from announcetracker.models.announcement import Announcement, RawItem
    from announcetracker.protocols import FetcherProtocol, SummarizerProtocol

log = structlog.get_logger()

NO_DATA_MESSAGE = (
    "No announcements available. This could be due to RSS feed issues or rate limiting."
)


def utcnow() -> datetime:
    return datetime.now(UTC)


class RefreshFailed(Exception):
    """Pipeline produced nothing usable. Never escapes the orchestrator."""

    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason


class RefreshOrchestrator:
    """Owns the announcement cache and every write to it."""

    def __init__(
        self,
        *,
        cache: AnnouncementCache,
        fetcher: FetcherProtocol,
        summarizer: SummarizerProtocol,
        sources: Sequence[FeedSource],
        settings: CacheSettings,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._cache = cache
        self._fetcher = fetcher
        self._summarizer = summarizer
        self._sources = list(sources)
        self._settings = settings
        self._clock = clock
        self._inflight: asyncio.Task[CacheSnapshot] | None = None

    @property
    def cache(self) -> AnnouncementCache:
        return self._cache

    @property
    def recency_window(self) -> timedelta:
        return timedelta(seconds=self._settings.recency_window_seconds)

    def now(self) -> datetime:
        return self._clock()

    def state(self) -> CacheState:
        if self._inflight is not None:
            return CacheState.REFRESHING
        return self._cache.state(self._clock())

    async def get_announcements(self) -> CacheSnapshot:
        """Serve the cached list, refreshing first when it is missing or stale."""
        entry = self._cache.entry
        if entry is not None and self._cache.is_fresh(self._clock()):
            log.debug("cache_hit", stale=False)
            return CacheSnapshot(entry=entry, fresh=True)
        log.info("cache_miss", state=self._cache.state(self._clock()))
        return await self.refresh()

    async def refresh(self) -> CacheSnapshot:
        """Run a refresh, or join the one already in flight."""
        task = self._inflight
        if task is None:
            # No await between the check and the assignment: single flight holds
            task = asyncio.create_task(self._refresh_once())
            self._inflight = task
            task.add_done_callback(self._clear_inflight)
        else:
            log.debug("refresh_joined")
        # Shielded so a disconnecting client cannot cancel a refresh others await
        return await asyncio.shield(task)

    def _clear_inflight(self, task: asyncio.Task[CacheSnapshot]) -> None:
        if self._inflight is task:
            self._inflight = None
        if not task.cancelled():
            # Mark the exception retrieved even if every waiter went away
            task.exception()

    async def _refresh_once(self) -> CacheSnapshot:
        timeout = self._settings.refresh_timeout_seconds
        log.info("refresh_started", sources=len(self._sources), timeout=timeout)
        try:
            announcements = await asyncio.wait_for(self._run_pipeline(), timeout=timeout)
        except TimeoutError:
            return self._fall_back("timeout")
        except RefreshFailed as exc:
            return self._fall_back(exc.reason)
        except Exception:
            log.error("refresh_unexpected_error", exc_info=True)
            return self._fall_back("unexpected_error")

        entry = self._cache.replace(announcements, refreshed_at=self._clock())
        log.info("refresh_complete", announcement_count=len(entry.announcements))
        return CacheSnapshot(entry=entry, fresh=True)

    def _fall_back(self, reason: str) -> CacheSnapshot:
        entry = self._cache.entry
        if entry is None:
            log.error("refresh_failed_no_cache", reason=reason)
            raise TrackerError(ErrorCode.NO_DATA_AVAILABLE, NO_DATA_MESSAGE)
        log.warning(
            "refresh_failed_serving_stale",
            reason=reason,
            refreshed_at=entry.refreshed_at.isoformat(),
        )
        return CacheSnapshot(entry=entry, fresh=self._cache.is_fresh(self._clock()))

    async def _run_pipeline(self) -> list[Announcement]:
        now = self._clock()
        results = await self._fetcher.fetch_all(self._sources)
        if not results:
            raise RefreshFailed("no_sources_configured")
        if not any(result.ok for result in results):
            raise RefreshFailed("all_sources_failed")

        batch: list[tuple[RawItem, str]] = [
            (item, result.source)
            for result in results
            for item in result.items
            if within_backfill(item, now, self._settings.backfill_days)
        ]
        limit = self._settings.max_items_per_refresh
        if len(batch) > limit:
            log.info("refresh_batch_capped", available=len(batch), processed=limit)
        selected = batch[:limit]

        normalized: list[Announcement] = []
        batch_size = self._settings.batch_size
        for index, (raw, source) in enumerate(selected, start=1):
            try:
                announcement = await normalize(
                    raw,
                    source,
                    self._summarizer,
                    now=now,
                    recency_window=self.recency_window,
                )
            except Exception:
                # One bad item is dropped; the rest of the batch still lands
                log.warning(
                    "announcement_normalize_failed",
                    link=raw.link,
                    source=source,
                    exc_info=True,
                )
            else:
                normalized.append(announcement)
            # Pause between batches to stay under third-party rate limits
            if batch_size > 0 and index % batch_size == 0 and index < len(selected):
                await asyncio.sleep(self._settings.batch_delay_seconds)

        announcements = sort_newest_first(deduplicate(normalized))
        if not announcements:
            raise RefreshFailed("no_announcements")
        return announcements
