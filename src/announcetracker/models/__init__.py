from __future__ import annotations

from announcetracker.models.announcement import (
    ALL_CATEGORIES,
    Announcement,
    Category,
    RawItem,
)
from announcetracker.models.api import (
    AnnouncementsOutput,
    AnnouncementsQuery,
    DiagnoseOutput,
    HandlerResult,
    HealthOutput,
    StatsOutput,
)
from announcetracker.models.cache import CacheEntry, CacheSnapshot, CacheState
from announcetracker.models.results import (
    FeedResult,
    FetchFailure,
    RateLimitDecision,
    SummaryResult,
)

__all__ = [
    # announcement
    "ALL_CATEGORIES",
    "Announcement",
    "Category",
    "RawItem",
    # cache
    "CacheEntry",
    "CacheSnapshot",
    "CacheState",
    # results
    "FeedResult",
    "FetchFailure",
    "RateLimitDecision",
    "SummaryResult",
    # api
    "AnnouncementsQuery",
    "AnnouncementsOutput",
    "StatsOutput",
    "HealthOutput",
    "DiagnoseOutput",
    "HandlerResult",
]
