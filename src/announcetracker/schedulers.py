"""Background coroutines started by the server lifespan."""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

import structlog

from announcetracker.errors import TrackerError

if TYPE_CHECKING:
    from announcetracker.state import AppState

log = structlog.get_logger()


async def run_rate_limit_sweep_scheduler(state: AppState) -> None:
    """Purge idle rate-limit records on the configured interval, forever."""
    interval = state.settings.rate_limit.sweep_interval_seconds
    while True:
        await asyncio.sleep(interval)
        try:
            removed = state.rate_limiter.sweep()
        except Exception:
            log.warning("rate_limit_sweep_error", exc_info=True)
            continue
        log.debug("rate_limit_sweep_complete", removed=removed, tracked=len(state.rate_limiter))


async def warm_cache(state: AppState) -> bool:
    """Populate the cache before the first request arrives.

    Returns True when the cache holds data afterwards. Failure is only
    logged: the first request will simply retry the refresh.
    """
    try:
        await state.orchestrator.refresh()
    except TrackerError as exc:
        log.warning("cache_warmup_failed", code=exc.code, message=exc.message)
        return False
    log.info("cache_warmup_complete")
    return True
