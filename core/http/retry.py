"""Retry utilities for async HTTP operations.

This module builds tenacity retry controllers for resilient routing calls.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any

from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception,
    stop_after_attempt,
    wait_incrementing,
)

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

logger = logging.getLogger(__name__)


def linear_retrying(
    max_attempts: int = 3,
    backoff: float = 1.0,
    *,
    should_retry: Callable[[BaseException], bool],
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    log: logging.Logger | None = None,
) -> AsyncRetrying:
    """Build a tenacity controller with linear backoff.

    The wait before retry ``n`` (1-based) is ``backoff * n``, so the default
    settings sleep 1s after the first failure and 2s after the second.

    Args:
        max_attempts: Total attempts including the first one.
        backoff: Base delay in seconds.
        should_retry: Predicate deciding whether an exception is retryable.
            Exceptions it rejects are re-raised immediately.
        sleep: Awaitable sleep used between attempts.
        log: Logger that receives a warning before each sleep.

    Example:
        async for attempt in linear_retrying(should_retry=is_transient):
            with attempt:
                return await fetch()
    """
    return AsyncRetrying(
        stop=stop_after_attempt(max_attempts),
        wait=wait_incrementing(start=backoff, increment=backoff),
        retry=retry_if_exception(should_retry),
        before_sleep=before_sleep_log(log or logger, logging.WARNING),
        sleep=sleep,
        # Surface the last real exception instead of tenacity's RetryError
        reraise=True,
    )
