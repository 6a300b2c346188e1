"""RSS/Atom feed fetcher.

All network I/O for feeds goes through a single FeedFetcher instance. The
fetcher receives an httpx.AsyncClient via constructor injection; the
lifespan owns the client lifecycle. Parsing is delegated to feedparser.

A failing source never raises out of :meth:`FeedFetcher.fetch`: the
failure is logged and returned as a :class:`FeedResult` with an empty item
list, so one broken feed cannot block the others.
"""

from __future__ import annotations

import asyncio
import calendar
import html
import re
import time
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

import feedparser
import httpx
import structlog
from pydantic import ValidationError

from announcetracker.models.announcement import RawItem
from announcetracker.models.results import FeedResult, FetchFailure

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping

    from announcetracker.config import FeedSource, FetcherSettings

log = structlog.get_logger()

_TAG_RE = re.compile(r"<[^>]+>")
_WHITESPACE_RE = re.compile(r"\s+")


def build_http_client(settings: FetcherSettings) -> httpx.AsyncClient:
    """Create the shared httpx client. Called once at startup."""
    return httpx.AsyncClient(
        follow_redirects=True,
        timeout=httpx.Timeout(settings.timeout_seconds),
        headers={"User-Agent": settings.user_agent},
        limits=httpx.Limits(
            max_connections=10,
            max_keepalive_connections=5,
        ),
    )


def strip_html(markup: str) -> str:
    """Reduce feed markup to collapsed plain text."""
    text = html.unescape(_TAG_RE.sub(" ", markup))
    return _WHITESPACE_RE.sub(" ", text).strip()


def _published(entry: Mapping[str, Any]) -> datetime | None:
    # feedparser normalises dates to UTC struct_time
    for key in ("published_parsed", "updated_parsed"):
        value = entry.get(key)
        if isinstance(value, time.struct_time):
            return datetime.fromtimestamp(calendar.timegm(value), tz=UTC)
    return None


def _raw_content(entry: Mapping[str, Any]) -> str:
    for key in ("summary", "description"):
        value = entry.get(key)
        if isinstance(value, str) and value.strip():
            return value
    contents = entry.get("content")
    if isinstance(contents, list) and contents:
        value = contents[0].get("value")
        if isinstance(value, str):
            return value
    return ""


def _guid(entry: Mapping[str, Any]) -> str | None:
    for key in ("id", "guid"):
        value = entry.get(key)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return None


def to_raw_item(entry: Mapping[str, Any]) -> RawItem | None:
    """Map a feedparser entry onto RawItem, or None if required fields are missing."""
    title = (entry.get("title") or "").strip()
    link = (entry.get("link") or "").strip()
    published = _published(entry)
    if not title or not link or published is None:
        return None

    markup = _raw_content(entry)
    content = strip_html(markup)
    try:
        return RawItem(
            title=title,
            link=link,
            published=published,
            content=content,
            full_text=markup or None,
            guid=_guid(entry),
        )
    except ValidationError:
        return None


def parse_feed(document: bytes | str) -> tuple[list[RawItem], int]:
    """Parse a feed document.

    Returns the usable items plus the number of entries skipped for missing
    title, link or publish date. Raises ValueError when the document is not
    a feed at all.
    """
    parsed = feedparser.parse(document)
    entries = parsed.get("entries") or []
    if parsed.get("bozo") and not entries:
        reason = parsed.get("bozo_exception") or "malformed feed"
        raise ValueError(f"Invalid RSS/Atom feed ({reason})")

    items: list[RawItem] = []
    skipped = 0
    for entry in entries:
        item = to_raw_item(entry)
        if item is None:
            skipped += 1
            continue
        items.append(item)
    return items, skipped


class FeedFetcher:
    """Downloads and parses configured feed sources."""

    def __init__(self, client: httpx.AsyncClient) -> None:
        self._client = client

    async def fetch(self, source: FeedSource) -> FeedResult:
        """Fetch one source. Never raises for network, HTTP or parse failures."""
        source_log = log.bind(source=source.name, url=source.url)
        try:
            response = await self._client.get(source.url)
            response.raise_for_status()
            items, skipped = parse_feed(response.content)
        except httpx.HTTPStatusError as exc:
            return self._failed(source, f"HTTP {exc.response.status_code}", source_log)
        except httpx.HTTPError as exc:
            return self._failed(source, f"Network error: {exc}", source_log)
        except httpx.InvalidURL as exc:
            return self._failed(source, f"Invalid feed URL: {exc}", source_log)
        except ValueError as exc:
            return self._failed(source, str(exc), source_log)
        except Exception as exc:
            source_log.warning("feed_fetch_unexpected_error", exc_info=True)
            return self._failed(source, f"Unexpected error: {type(exc).__name__}", source_log)

        source_log.info("feed_fetch_complete", item_count=len(items), skipped=skipped)
        return FeedResult(source=source.name, items=items)

    async def fetch_all(self, sources: Iterable[FeedSource]) -> list[FeedResult]:
        """Fetch all sources concurrently. Results keep the configured source order."""
        return list(await asyncio.gather(*(self.fetch(source) for source in sources)))

    @staticmethod
    def _failed(source: FeedSource, reason: str, source_log: Any) -> FeedResult:
        source_log.warning("feed_fetch_failed", reason=reason)
        return FeedResult(
            source=source.name,
            failure=FetchFailure(source=source.name, url=source.url, reason=reason),
        )
