"""Application state container.

AppState is created once at server startup (inside the Starlette lifespan)
and handed to every request handler. The cache and rate-limit tables live
inside the orchestrator and limiter it holds, so separate AppState
instances never share mutable state.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    import httpx

    from announcetracker.config import Settings
    from announcetracker.ratelimit import FixedWindowRateLimiter
    from announcetracker.refresh import RefreshOrchestrator
    from announcetracker.summarizer import Summarizer


@dataclass
class AppState:
    """Holds all shared runtime state. Passed to every request handler."""

    settings: Settings
    orchestrator: RefreshOrchestrator
    rate_limiter: FixedWindowRateLimiter
    summarizer: Summarizer
    http_client: httpx.AsyncClient | None = None
