"""
Fetch/retry policy for one route refresh cycle.

A cycle makes up to ``max_attempts`` backend calls, each bounded by its own
timeout, with linear backoff in between. External cancellation (a newer
cycle superseding this one, or teardown) ends the cycle immediately and is
never retried or reported.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from config import RefreshSettings
from core.http.retry import linear_retrying
from routing.cancellation import CancelCause, CycleCancelled
from routing.errors import classify_route_error, is_retryable

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from routing.backends import RouteBackend
    from routing.cancellation import CancellationToken
    from routing.models import RouteResult, RoutingRequest

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CycleOutcome:
    """Terminal result of a cycle that was not cancelled."""

    result: RouteResult | None = None
    error: str | None = None
    attempts: int = 0
    exception: BaseException | None = None

    @property
    def ok(self) -> bool:
        return self.result is not None


class FetchPolicy:
    def __init__(
        self,
        backend: RouteBackend,
        settings: RefreshSettings | None = None,
        *,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self.backend = backend
        self.settings = settings or RefreshSettings()
        self._sleep = sleep

    async def _attempt(
        self,
        request: RoutingRequest,
        token: CancellationToken,
        attempt_index: int,
    ) -> RouteResult:
        timeout = self.settings.attempt_timeout_seconds
        try:
            async with asyncio.timeout(timeout):
                return await self.backend.fetch_route(request, token)
        except TimeoutError:
            logger.warning(
                "Route attempt %d cancelled (%s after %.1fs)",
                attempt_index,
                CancelCause.TIMEOUT.value,
                timeout,
            )
            raise

    async def run_cycle(
        self,
        request: RoutingRequest,
        token: CancellationToken,
    ) -> CycleOutcome:
        """Run one fetch cycle.

        Returns a :class:`CycleOutcome` on success or after the last attempt
        fails. Raises ``asyncio.CancelledError`` or :class:`CycleCancelled`
        when the cycle is cancelled from outside; callers must treat that
        as "no outcome".
        """
        attempts = 0
        retrying = linear_retrying(
            self.settings.max_attempts,
            self.settings.retry_backoff_seconds,
            should_retry=is_retryable,
            sleep=self._sleep,
            log=logger,
        )
        try:
            async for attempt in retrying:
                with attempt:
                    attempts = attempt.retry_state.attempt_number
                    token.raise_if_cancelled()
                    result = await self._attempt(request, token, attempts - 1)
        except (asyncio.CancelledError, CycleCancelled):
            logger.debug(
                "Route cycle %s abandoned (%s)",
                token.id,
                token.cause.value if token.cause else "cancelled",
            )
            raise
        except Exception as exc:
            message = classify_route_error(exc)
            logger.warning(
                "Route cycle %s failed after %d attempts: %s",
                token.id,
                attempts,
                message,
            )
            return CycleOutcome(error=message, attempts=attempts, exception=exc)

        logger.info(
            "Route fetched: %.1f mi, %s, %d points (attempt %d)",
            result.distance_miles,
            result.duration_formatted,
            len(result.route_coords),
            attempts,
        )
        return CycleOutcome(result=result, attempts=attempts)
