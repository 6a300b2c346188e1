from __future__ import annotations

from enum import StrEnum


class ErrorCode(StrEnum):
    INVALID_INPUT = "INVALID_INPUT"
    RATE_LIMITED = "RATE_LIMITED"
    NO_DATA_AVAILABLE = "NO_DATA_AVAILABLE"


_STATUS_CODES: dict[ErrorCode, int] = {
    ErrorCode.INVALID_INPUT: 400,
    ErrorCode.RATE_LIMITED: 429,
    ErrorCode.NO_DATA_AVAILABLE: 500,
}

_TITLES: dict[ErrorCode, str] = {
    ErrorCode.INVALID_INPUT: "Invalid request parameters",
    ErrorCode.RATE_LIMITED: "Too Many Requests",
    ErrorCode.NO_DATA_AVAILABLE: "Failed to fetch announcements",
}


class TrackerError(Exception):
    """Raised by request handlers for all expected failure conditions.

    Caught by server.py and serialised into the JSON error body. The
    message is always safe to show to a client; internal details stay in
    the logs.
    """

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        *,
        headers: dict[str, str] | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.headers = headers or {}

    @property
    def status_code(self) -> int:
        return _STATUS_CODES[self.code]

    def to_dict(self) -> dict:
        return {"error": _TITLES[self.code], "message": self.message}


class RateLimitedError(TrackerError):
    """Client exceeded its request budget for the current window."""

    def __init__(self, retry_after: int, *, headers: dict[str, str] | None = None) -> None:
        super().__init__(
            ErrorCode.RATE_LIMITED,
            f"Rate limit exceeded. Please try again in {retry_after} seconds.",
            headers={**(headers or {}), "Retry-After": str(retry_after)},
        )
        self.retry_after = retry_after

    def to_dict(self) -> dict:
        return {**super().to_dict(), "retryAfter": self.retry_after}
