"""HTTP server entrypoint.

Responsibilities (and nothing more):
- Configure structlog
- Create AppState via the Starlette lifespan context manager
- Register routes and translate TrackerError into JSON error responses
- Start uvicorn
"""

from __future__ import annotations

import asyncio
import logging
import sys
from contextlib import asynccontextmanager, suppress
from datetime import timedelta
from typing import TYPE_CHECKING

import structlog
from starlette.applications import Starlette
from starlette.responses import JSONResponse
from starlette.routing import Route

import announcetracker.handlers.announcements as h_announcements
import announcetracker.handlers.diagnose as h_diagnose
import announcetracker.handlers.health as h_health
import announcetracker.handlers.stats as h_stats
from announcetracker import __version__
from announcetracker.cache import AnnouncementCache
from announcetracker.config import Settings
from announcetracker.errors import TrackerError
from announcetracker.fetcher import FeedFetcher, build_http_client
from announcetracker.ratelimit import FixedWindowRateLimiter
from announcetracker.refresh import RefreshOrchestrator
from announcetracker.schedulers import run_rate_limit_sweep_scheduler, warm_cache
from announcetracker.state import AppState
from announcetracker.summarizer import build_summarizer
from announcetracker.transport import CorsMiddleware, client_identity, run_http_server

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator

    import httpx
    from starlette.requests import Request
    from starlette.types import ASGIApp

log = structlog.get_logger()


# ---------------------------------------------------------------------------
# Logging setup
# ---------------------------------------------------------------------------


def _setup_logging(settings: Settings) -> None:
    """Configure structlog. Called once at startup before any log statements."""
    log_level = logging.getLevelNamesMapping()[settings.logging.level]

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.TimeStamper(fmt="iso"),
    ]

    if settings.logging.format == "json":
        processors = [
            *shared_processors,
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        processors = [*shared_processors, structlog.dev.ConsoleRenderer()]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )


# ---------------------------------------------------------------------------
# State
# ---------------------------------------------------------------------------


def build_state(settings: Settings, http_client: httpx.AsyncClient) -> AppState:
    """Wire every component from settings. Each call yields independent state."""
    summarizer = build_summarizer(settings.summarizer)
    orchestrator = RefreshOrchestrator(
        cache=AnnouncementCache(timedelta(seconds=settings.cache.validity_seconds)),
        fetcher=FeedFetcher(http_client),
        summarizer=summarizer,
        sources=settings.sources,
        settings=settings.cache,
    )
    rate_limiter = FixedWindowRateLimiter(
        max_requests=settings.rate_limit.max_requests,
        window_seconds=settings.rate_limit.window_seconds,
    )
    return AppState(
        settings=settings,
        orchestrator=orchestrator,
        rate_limiter=rate_limiter,
        summarizer=summarizer,
        http_client=http_client,
    )


@asynccontextmanager
async def lifespan(app: Starlette) -> AsyncGenerator[None, None]:
    """Create and tear down all shared resources for the server's lifetime."""
    settings: Settings = app.state.settings
    log.info("server_starting", version=__version__, sources=len(settings.sources))

    http_client = build_http_client(settings.fetcher)
    state = build_state(settings, http_client)
    app.state.tracker = state

    sweep_task = asyncio.create_task(run_rate_limit_sweep_scheduler(state))
    warmup_task = asyncio.create_task(warm_cache(state)) if settings.cache.warm_on_startup else None

    log.info("server_started", version=__version__)
    try:
        yield
    finally:
        for task in (sweep_task, warmup_task):
            if task is None:
                continue
            task.cancel()
            with suppress(asyncio.CancelledError):
                await task
        await http_client.aclose()
        log.info("server_stopping")


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------


def _state(request: Request) -> AppState:
    return request.app.state.tracker


def _error_response(exc: TrackerError, *, handler: str) -> JSONResponse:
    log.warning(
        "handler_error",
        handler=handler,
        code=exc.code,
        status_code=exc.status_code,
        message=exc.message,
    )
    return JSONResponse(exc.to_dict(), status_code=exc.status_code, headers=exc.headers)


async def announcements_endpoint(request: Request) -> JSONResponse:
    state = _state(request)
    client_id = client_identity(request.headers, request.client)
    try:
        result = await h_announcements.handle(request.query_params, client_id, state)
    except TrackerError as exc:
        return _error_response(exc, handler="announcements")
    except Exception:
        log.error("handler_unexpected_error", handler="announcements", exc_info=True)
        raise
    return JSONResponse(result.body, headers=result.headers)


async def stats_endpoint(request: Request) -> JSONResponse:
    try:
        body = await h_stats.handle(_state(request))
    except TrackerError as exc:
        return _error_response(exc, handler="stats")
    except Exception:
        log.error("handler_unexpected_error", handler="stats", exc_info=True)
        raise
    return JSONResponse(body)


async def health_endpoint(request: Request) -> JSONResponse:
    return JSONResponse(h_health.handle(request.app.state.settings))


async def diagnose_endpoint(request: Request) -> JSONResponse:
    return JSONResponse(await h_diagnose.handle(_state(request)))


ROUTES = [
    Route("/announcements", announcements_endpoint, methods=["GET"]),
    Route("/stats", stats_endpoint, methods=["GET"]),
    Route("/health", health_endpoint, methods=["GET"]),
    Route("/diagnose", diagnose_endpoint, methods=["GET"]),
]


def build_app(settings: Settings, state: AppState | None = None) -> ASGIApp:
    """Build the ASGI application.

    With ``state`` given (tests, embedding) the lifespan is skipped and that
    state is used as-is; otherwise the lifespan builds it at startup.
    """
    app = Starlette(routes=ROUTES, lifespan=None if state is not None else lifespan)
    app.state.settings = settings
    if state is not None:
        app.state.tracker = state
    return CorsMiddleware(app)


# ---------------------------------------------------------------------------
# Entrypoint
# ---------------------------------------------------------------------------


def main() -> None:
    settings = Settings()
    _setup_logging(settings)
    run_http_server(build_app(settings), settings)


if __name__ == "__main__":
    main()
