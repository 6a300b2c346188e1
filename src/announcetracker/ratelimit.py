"""Fixed-window rate limiting keyed by client identity.

Each identity gets ``max_requests`` per window of ``window_seconds``. The
window starts at the identity's first request and is replaced by a fresh
one (not slid) once it expires, so a client can burst up to twice the
limit across a window boundary.

``check`` contains no awaits, which makes it atomic with respect to the
event loop; no lock is needed while requests share one loop.
"""

from __future__ import annotations

import math
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING

import structlog

from announcetracker.models.results import RateLimitDecision

if TYPE_CHECKING:
    from collections.abc import Callable

log = structlog.get_logger()


@dataclass
class RateLimitRecord:
    count: int
    window_reset_at: float  # epoch seconds


class FixedWindowRateLimiter:
    def __init__(
        self,
        max_requests: int = 10,
        window_seconds: float = 60.0,
        *,
        clock: Callable[[], float] = time.time,
    ) -> None:
        if max_requests < 1:
            raise ValueError("max_requests must be at least 1")
        if window_seconds <= 0:
            raise ValueError("window_seconds must be positive")
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._clock = clock
        self._records: dict[str, RateLimitRecord] = {}

    def __len__(self) -> int:
        return len(self._records)

    def check(self, identity: str) -> RateLimitDecision:
        """Count one request for ``identity`` and decide whether it may proceed."""
        now = self._clock()
        record = self._records.get(identity)

        if record is None or now >= record.window_reset_at:
            self._records[identity] = RateLimitRecord(
                count=1, window_reset_at=now + self.window_seconds
            )
            return self._allowed(1)

        if record.count >= self.max_requests:
            retry_after = max(1, math.ceil(record.window_reset_at - now))
            log.info("rate_limited", identity=identity, retry_after=retry_after)
            return RateLimitDecision(
                allowed=False,
                limit=self.max_requests,
                remaining=0,
                retry_after_seconds=retry_after,
            )

        record.count += 1
        return self._allowed(record.count)

    def sweep(self, now: float | None = None) -> int:
        """Drop records idle for more than a window past their reset time."""
        if now is None:
            now = self._clock()
        expired = [
            identity
            for identity, record in self._records.items()
            if now - record.window_reset_at > self.window_seconds
        ]
        for identity in expired:
            del self._records[identity]
        if expired:
            log.debug("rate_limit_sweep", removed=len(expired), remaining=len(self._records))
        return len(expired)

    def _allowed(self, count: int) -> RateLimitDecision:
        return RateLimitDecision(
            allowed=True,
            limit=self.max_requests,
            remaining=self.max_requests - count,
        )
