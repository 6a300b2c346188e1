from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import StrEnum

from announcetracker.models.announcement import Announcement


class CacheState(StrEnum):
    EMPTY = "EMPTY"
    REFRESHING = "REFRESHING"
    FRESH = "FRESH"
    STALE = "STALE"


@dataclass(frozen=True)
class CacheEntry:
    """The last successfully computed announcement list.

    Never mutated; a refresh installs a new entry.
    """

    announcements: tuple[Announcement, ...]
    refreshed_at: datetime


@dataclass(frozen=True)
class CacheSnapshot:
    """What a reader gets back from the orchestrator."""

    entry: CacheEntry
    fresh: bool  # False when served from a stale entry after a failed refresh
