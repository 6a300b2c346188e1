"""Request handler for GET /health. Never touches the cache or upstream feeds."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import TYPE_CHECKING

from announcetracker import __version__
from announcetracker.models.api import HealthOutput

if TYPE_CHECKING:
    from announcetracker.config import Settings


def handle(settings: Settings) -> dict:
    output = HealthOutput(
        timestamp=datetime.now(UTC),
        service=settings.server.service_name,
        version=__version__,
    )
    return output.model_dump(mode="json", by_alias=True)
