"""Request handler for GET /stats."""

from __future__ import annotations

from collections import Counter
from typing import TYPE_CHECKING

import structlog

from announcetracker.models.api import StatsOutput

if TYPE_CHECKING:
    from announcetracker.state import AppState


async def handle(state: AppState) -> dict:
    """Summarise the cached announcement list. May trigger a refresh."""
    log = structlog.get_logger().bind(handler="stats")

    snapshot = await state.orchestrator.get_announcements()
    now = state.orchestrator.now()
    window = state.orchestrator.recency_window
    announcements = [a.with_recency(now, window) for a in snapshot.entry.announcements]

    categories = Counter(str(a.category) for a in announcements)
    sources = Counter(a.source for a in announcements)
    output = StatsOutput(
        total=len(announcements),
        last_update=snapshot.entry.refreshed_at,
        new_count=sum(1 for a in announcements if a.is_new),
        categories=dict(categories),
        sources=dict(sources),
    )
    log.info("stats_served", total=output.total, new_count=output.new_count)
    return output.model_dump(mode="json", by_alias=True)
