"""Bounded exponential backoff for capability calls."""

from __future__ import annotations

import asyncio
import random
from dataclasses import dataclass


@dataclass(frozen=True)
class RetryPolicy:
    """How many times a transient capability failure is retried.

    ``max_attempts`` counts the first call, so ``1`` disables retries.
    The delay before attempt ``n + 1`` is
    ``interval_seconds * backoff_rate ** (n - 1)``, capped at
    ``max_interval_seconds``, plus up to ``jitter_seconds`` of noise.
    """
    max_attempts: int = 3
    interval_seconds: float = 0.5
    backoff_rate: float = 2.0
    max_interval_seconds: float = 5.0
    jitter_seconds: float = 0.1

    def compute_backoff(self, attempt: int) -> float:
        """Delay after the given (1-based) failed attempt."""
        delay = self.interval_seconds * self.backoff_rate ** (attempt - 1)
        delay = min(delay, self.max_interval_seconds)
        if self.jitter_seconds:
            delay += random.uniform(0, self.jitter_seconds)
        return delay

    async def sleep(self, attempt: int) -> float:
        """Sleep for the computed backoff delay and return it."""
        delay = self.compute_backoff(attempt)
        await asyncio.sleep(delay)
        return delay


NO_RETRY = RetryPolicy(max_attempts=1)
