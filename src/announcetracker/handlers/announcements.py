"""Request handler for GET /announcements.

Order of work: validate parameters, charge the rate limiter, fetch the
(possibly refreshed) announcement list, then filter, search and limit.
Invalid parameters are rejected before the rate limiter or the cache are
touched. No Starlette imports; server.py handles the HTTP wiring.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog
from pydantic import ValidationError

from announcetracker.errors import ErrorCode, RateLimitedError, TrackerError
from announcetracker.models.announcement import ALL_CATEGORIES
from announcetracker.models.api import (
    AnnouncementsOutput,
    AnnouncementsQuery,
    HandlerResult,
)

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping

    from announcetracker.models.announcement import Announcement
    from announcetracker.state import AppState


def filter_announcements(
    announcements: Iterable[Announcement],
    *,
    category: str | None,
    search: str | None,
) -> list[Announcement]:
    """Apply the category filter, then the case-insensitive search."""
    filtered = list(announcements)
    if category and category != ALL_CATEGORIES:
        filtered = [a for a in filtered if a.category == category]
    if search:
        needle = search.lower()
        filtered = [
            a for a in filtered if needle in a.title.lower() or needle in a.summary.lower()
        ]
    return filtered


def _describe(exc: ValidationError) -> str:
    """Render validation errors as a client-safe message."""
    problems = [
        f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}"
        for error in exc.errors()
    ]
    return "Invalid query parameters: " + "; ".join(problems)


async def handle(params: Mapping[str, str], client_id: str, state: AppState) -> HandlerResult:
    """Handle a GET /announcements request."""
    log = structlog.get_logger().bind(handler="announcements", client_id=client_id)

    try:
        query = AnnouncementsQuery.model_validate(dict(params))
    except ValidationError as exc:
        raise TrackerError(ErrorCode.INVALID_INPUT, _describe(exc)) from exc

    decision = state.rate_limiter.check(client_id)
    rate_headers = {
        "X-RateLimit-Limit": str(decision.limit),
        "X-RateLimit-Remaining": str(decision.remaining),
    }
    if not decision.allowed:
        raise RateLimitedError(decision.retry_after_seconds or 1, headers=rate_headers)

    snapshot = await state.orchestrator.get_announcements()
    now = state.orchestrator.now()
    window = state.orchestrator.recency_window
    current = [a.with_recency(now, window) for a in snapshot.entry.announcements]

    filtered = filter_announcements(current, category=query.category, search=query.search)
    api = state.settings.api
    limit = min(query.limit or api.default_limit, api.max_limit)
    log.info(
        "announcements_served",
        matched=len(filtered),
        returned=min(limit, len(filtered)),
        cached=snapshot.fresh,
    )

    output = AnnouncementsOutput(
        announcements=filtered[:limit],
        total=len(filtered),
        last_update=snapshot.entry.refreshed_at,
        cached=snapshot.fresh,
    )
    server = state.settings.server
    headers = {
        **rate_headers,
        "Cache-Control": (
            f"public, s-maxage={server.cache_max_age}, "
            f"stale-while-revalidate={server.stale_while_revalidate}"
        ),
    }
    return HandlerResult(body=output.model_dump(mode="json", by_alias=True), headers=headers)
