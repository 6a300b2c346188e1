"""Integration test fixtures.

Provides a fully wired AppState: real cache, orchestrator, rate limiter and
ASGI app, with the in-memory fetcher and summarizer fakes from
tests/conftest.py standing in for the network.
"""

from __future__ import annotations

from datetime import timedelta
from typing import TYPE_CHECKING

import httpx
import pytest

from announcetracker.config import Settings
from announcetracker.models.results import FeedResult
from announcetracker.ratelimit import FixedWindowRateLimiter
from announcetracker.server import build_app
from announcetracker.state import AppState
from announcetracker.summarizer import Summarizer

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator, Callable

    from announcetracker.models.announcement import RawItem
    from announcetracker.refresh import RefreshOrchestrator


@pytest.fixture()
def settings() -> Settings:
    return Settings(cache={"batch_delay_seconds": 0.0})


@pytest.fixture()
def app_state(settings: Settings, orchestrator: RefreshOrchestrator) -> AppState:
    return AppState(
        settings=settings,
        orchestrator=orchestrator,
        rate_limiter=FixedWindowRateLimiter(
            max_requests=settings.rate_limit.max_requests,
            window_seconds=settings.rate_limit.window_seconds,
        ),
        summarizer=Summarizer(None, settings.summarizer),
    )


@pytest.fixture()
def feeds(make_raw: Callable[..., RawItem]) -> list[FeedResult]:
    """Two sources with a mix of categories and ages."""
    return [
        FeedResult(
            source="Feed A",
            items=[
                make_raw(
                    "New EC2 feature",
                    "https://example.com/ec2",
                    age=timedelta(minutes=10),
                    content="Graviton based instances",
                ),
                make_raw(
                    "Bedrock adds new models",
                    "https://example.com/bedrock",
                    age=timedelta(hours=3),
                ),
            ],
        ),
        FeedResult(
            source="Feed B",
            items=[
                make_raw(
                    "S3 backup news",
                    "https://example.com/s3",
                    age=timedelta(days=2),
                    content="Cross-region replication for backups",
                ),
            ],
        ),
    ]


@pytest.fixture()
async def client(
    settings: Settings, app_state: AppState
) -> AsyncGenerator[httpx.AsyncClient, None]:
    app = build_app(settings, app_state)
    async with httpx.AsyncClient(
        transport=httpx.ASGITransport(app=app),
        base_url="http://localhost",
    ) as http_client:
        yield http_client
