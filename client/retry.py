"""Retry loop with exponential backoff, independent of any UI lifecycle."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import TypeVar

logger = logging.getLogger("readivine.client.retry")

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    """Up to max_retries retries after the first call.

    The delay before retry n (0-based) is base_delay * backoff_multiplier ** n,
    so the defaults wait 1s, 2s, 4s.
    """

    max_retries: int = 3
    base_delay: float = 1.0
    backoff_multiplier: float = 2.0

    def delay_for(self, attempt: int) -> float:
        return self.base_delay * self.backoff_multiplier**attempt


def run_with_retry(
    fn: Callable[[], T],
    policy: RetryPolicy,
    should_retry: Callable[[Exception], bool],
    sleep: Callable[[float], None] = time.sleep,
    on_retry: Callable[[Exception, int, float], None] | None = None,
) -> T:
    """Call fn until it returns, a non-retryable exception is raised, or retries run out.

    Args:
        fn:           Zero-argument callable to invoke.
        policy:       Attempt limit and backoff shape.
        should_retry: Decides per exception whether another attempt is worthwhile.
        sleep:        Delay function; tests pass a recorder instead of time.sleep.
        on_retry:     Called with (exception, retry_number, delay) before each wait.

    The last exception propagates unchanged once retries are exhausted.
    """
    attempt = 0
    while True:
        try:
            return fn()
        except Exception as exc:
            if attempt >= policy.max_retries or not should_retry(exc):
                raise
            delay = policy.delay_for(attempt)
            attempt += 1
            logger.warning(
                "%s attempt %d/%d failed: %s. Retrying in %.1fs...",
                getattr(fn, "__name__", "call"),
                attempt,
                policy.max_retries + 1,
                exc,
                delay,
            )
            if on_retry:
                on_retry(exc, attempt, delay)
            sleep(delay)
