"""
In-process token bucket guarding outbound LLM calls.

Refill is computed lazily from elapsed time on every check; there is no
background timer.  Not shared across processes and not thread-safe: one
limiter instance serves one request at a time.
"""
from __future__ import annotations

import logging
import time
from typing import Callable

from mission_coach.core.errors import RateLimitExceeded

logger = logging.getLogger(__name__)

RATE_LIMIT_MESSAGE = 'Trop de requêtes. Attends un moment avant de réessayer.'


class TokenBucket:
    def __init__(
        self,
        capacity: int = 10,
        refill_ms: int = 1000,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.capacity = capacity
        self.refill_ms = refill_ms
        self._clock = clock
        self.tokens = capacity
        self._last_refill = clock()

    def _refill(self) -> None:
        now = self._clock()
        elapsed_ms = (now - self._last_refill) * 1000
        earned = int(elapsed_ms // self.refill_ms)
        if earned <= 0:
            return
        self.tokens = min(self.capacity, self.tokens + earned)
        # Advance by whole intervals only so partial progress carries over
        self._last_refill += earned * self.refill_ms / 1000

    def check_limit(self) -> None:
        """Take one token or raise RateLimitExceeded."""
        self._refill()
        if self.tokens <= 0:
            logger.warning('Rate limit hit (capacity=%d, refill=%dms)', self.capacity, self.refill_ms)
            raise RateLimitExceeded(RATE_LIMIT_MESSAGE)
        self.tokens -= 1
