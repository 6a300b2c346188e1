"""Request handler for GET /diagnose.

Reports whether summarization is configured and working, so an operator
can tell why summaries are truncated text. Never exposes the credential.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import TYPE_CHECKING

import structlog

from announcetracker.models.api import DiagnoseOutput

if TYPE_CHECKING:
    from announcetracker.state import AppState


async def handle(state: AppState) -> dict:
    log = structlog.get_logger().bind(handler="diagnose")
    report = await state.summarizer.probe()
    log.info("diagnose_complete", api_key_status=report["api_key_status"])
    output = DiagnoseOutput(timestamp=datetime.now(UTC), **report)
    return output.model_dump(mode="json", by_alias=True)
