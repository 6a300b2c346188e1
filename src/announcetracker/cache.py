"""In-process announcement cache.

Holds a single CacheEntry for the whole process. The entry is replaced
wholesale by a successful refresh (one attribute assignment), so readers
see either the old list or the new one, never a mix. Only the refresh
orchestrator writes to it.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from announcetracker.models.cache import CacheEntry, CacheState

if TYPE_CHECKING:
    from collections.abc import Iterable
    from datetime import datetime, timedelta

    from announcetracker.models.announcement import Announcement


class AnnouncementCache:
    """Time-boxed holder for the last successfully computed announcement list."""

    def __init__(self, validity: timedelta) -> None:
        self._validity = validity
        self._entry: CacheEntry | None = None

    @property
    def entry(self) -> CacheEntry | None:
        return self._entry

    @property
    def validity(self) -> timedelta:
        return self._validity

    def age(self, now: datetime) -> timedelta | None:
        if self._entry is None:
            return None
        return now - self._entry.refreshed_at

    def is_fresh(self, now: datetime) -> bool:
        age = self.age(now)
        return age is not None and age < self._validity

    def state(self, now: datetime) -> CacheState:
        if self._entry is None:
            return CacheState.EMPTY
        return CacheState.FRESH if self.is_fresh(now) else CacheState.STALE

    def replace(self, announcements: Iterable[Announcement], refreshed_at: datetime) -> CacheEntry:
        entry = CacheEntry(announcements=tuple(announcements), refreshed_at=refreshed_at)
        self._entry = entry
        return entry
