"""Turns raw feed items into Announcements.

Identity, deduplication and ordering rules live here:
  - ``id`` is a truncated SHA-256 of the feed guid, or of the link when the
    feed provides no guid. Stable across runs and processes.
  - Deduplication keeps the first occurrence of an id in batch (fetch)
    order, not the most recently published one.
  - Result sets are ordered newest first; ties keep insertion order.
"""

from __future__ import annotations

import hashlib
from datetime import timedelta
from typing import TYPE_CHECKING

from announcetracker.classifier import classify_announcement
from announcetracker.models.announcement import Announcement

if TYPE_CHECKING:
    from collections.abc import Iterable
    from datetime import datetime

    from announcetracker.models.announcement import RawItem
    from announcetracker.protocols import SummarizerProtocol

ID_LENGTH = 16
DEFAULT_RECENCY_WINDOW = timedelta(hours=1)


def derive_id(link: str, guid: str | None = None) -> str:
    key = guid or link
    return hashlib.sha256(key.encode("utf-8")).hexdigest()[:ID_LENGTH]


def within_backfill(raw: RawItem, now: datetime, days: int) -> bool:
    return raw.published >= now - timedelta(days=days)


async def normalize(
    raw: RawItem,
    source_name: str,
    summarizer: SummarizerProtocol,
    *,
    now: datetime,
    recency_window: timedelta = DEFAULT_RECENCY_WINDOW,
) -> Announcement:
    """Classify, summarize and wrap one raw item."""
    summary = await summarizer.summarize(raw.title, raw.content)
    return Announcement(
        id=derive_id(raw.link, raw.guid),
        title=raw.title,
        category=classify_announcement(raw.title, raw.content),
        summary=summary.text,
        full_text=raw.full_text,
        timestamp=raw.published,
        link=raw.link,
        source=source_name,
        is_new=now - raw.published < recency_window,
    )


def deduplicate(announcements: Iterable[Announcement]) -> list[Announcement]:
    seen: set[str] = set()
    unique: list[Announcement] = []
    for announcement in announcements:
        if announcement.id in seen:
            continue
        seen.add(announcement.id)
        unique.append(announcement)
    return unique


def sort_newest_first(announcements: Iterable[Announcement]) -> list[Announcement]:
    # sorted() is stable, so equal timestamps keep their batch order
    return sorted(announcements, key=lambda a: a.timestamp, reverse=True)
