"""Announcement summarization via the Anthropic Messages API.

Summaries are a quality improvement, never a requirement. Without a
credential, or when the API call fails for any reason, the summarizer
returns the first ``fallback_chars`` characters of the content with a
truncation marker. Fallbacks are logged and never raised.
"""

from __future__ import annotations

import os
from typing import TYPE_CHECKING

import anthropic
import structlog

from announcetracker.models.results import SummaryResult

if TYPE_CHECKING:
    from announcetracker.config import SummarizerSettings

log = structlog.get_logger()

TRUNCATION_MARKER = "..."
_EXPECTED_KEY_PREFIX = "sk-ant-"

_PROMPT = """Summarize this AWS announcement in 2-3 concise sentences:

Title: {title}
Content: {content}"""


def resolve_api_key(settings: SummarizerSettings) -> str | None:
    """Return the configured credential, falling back to ANTHROPIC_API_KEY."""
    if settings.api_key is not None and settings.api_key.get_secret_value():
        return settings.api_key.get_secret_value()
    return os.environ.get("ANTHROPIC_API_KEY") or None


def build_summarizer(settings: SummarizerSettings) -> Summarizer:
    """Create the summarizer, with an API client only when a credential exists."""
    api_key = resolve_api_key(settings)
    if api_key is None:
        log.info("summarizer_disabled", reason="no_api_key")
        return Summarizer(None, settings)
    client = anthropic.AsyncAnthropic(
        api_key=api_key,
        timeout=settings.timeout_seconds,
        max_retries=0,  # the refresh budget cannot absorb SDK retries
    )
    return Summarizer(client, settings, api_key=api_key)


def truncate(content: str, limit: int) -> str:
    return content[:limit] + TRUNCATION_MARKER


class Summarizer:
    """Produces short descriptions of announcements."""

    def __init__(
        self,
        client: anthropic.AsyncAnthropic | None,
        settings: SummarizerSettings,
        *,
        api_key: str | None = None,
    ) -> None:
        self._client = client
        self._settings = settings
        self._api_key = api_key

    @property
    def enabled(self) -> bool:
        return self._client is not None

    def fallback(self, content: str, reason: str) -> SummaryResult:
        return SummaryResult(
            text=truncate(content, self._settings.fallback_chars),
            generated=False,
            fallback_reason=reason,
        )

    async def summarize(self, title: str, content: str) -> SummaryResult:
        client = self._client
        if client is None:
            log.debug("summary_fallback", reason="not_configured", title=title)
            return self.fallback(content, "not_configured")

        try:
            text = await self._complete(
                client,
                _PROMPT.format(title=title, content=content[: self._settings.max_input_chars]),
                max_tokens=self._settings.max_tokens,
            )
        except anthropic.APIError as exc:
            log.warning("summary_fallback", reason="api_error", title=title, error=str(exc))
            return self.fallback(content, "api_error")
        except Exception:
            log.warning("summary_fallback", reason="unexpected_error", title=title, exc_info=True)
            return self.fallback(content, "unexpected_error")

        if not text:
            log.warning("summary_fallback", reason="empty_response", title=title)
            return self.fallback(content, "empty_response")
        return SummaryResult(text=text, generated=True)

    async def probe(self) -> dict:
        """Report credential status and try a minimal API call."""
        report: dict = {
            "api_key_status": "NOT_SET",
            "api_key_present": self._api_key is not None,
            "api_key_valid": False,
            "summarizer_configured": self.enabled,
            "test_summary": None,
            "error": None,
        }
        if self._api_key is None:
            return report

        report["api_key_status"] = "PRESENT"
        if not self._api_key.startswith(_EXPECTED_KEY_PREFIX):
            report["api_key_status"] = "INVALID_FORMAT"
            report["error"] = f"API key does not start with {_EXPECTED_KEY_PREFIX}"
            return report
        report["api_key_valid"] = True
        report["api_key_status"] = "VALID_FORMAT"

        client = self._client
        if client is None:
            report["error"] = "Summarizer has no API client"
            return report

        try:
            report["test_summary"] = await self._complete(
                client, 'Say "API key working!" in exactly those words.', max_tokens=50
            )
            report["api_key_status"] = "WORKING"
        except Exception as exc:
            log.warning("summarizer_probe_failed", error=str(exc), exc_info=True)
            report["api_key_status"] = "ERROR"
            report["error"] = str(exc)
        return report

    async def _complete(
        self, client: anthropic.AsyncAnthropic, prompt: str, *, max_tokens: int
    ) -> str:
        message = await client.messages.create(
            model=self._settings.model,
            max_tokens=max_tokens,
            messages=[{"role": "user", "content": prompt}],
        )
        # Malformed or non-text responses are treated as empty
        for block in getattr(message, "content", None) or []:
            text = getattr(block, "text", None)
            if isinstance(text, str) and text.strip():
                return text.strip()
        return ""
