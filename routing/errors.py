"""Classification of exhausted fetch failures into consumer messages."""

from __future__ import annotations

import asyncio

import aiohttp

from routing.cancellation import CycleCancelled

TIMEOUT_MESSAGE = "Route request timed out. Retrying..."
NETWORK_MESSAGE = "Network error: unable to reach the routing service"
GENERIC_MESSAGE = "Failed to fetch route"

_NETWORK_ERRORS = (
    aiohttp.ClientConnectionError,
    aiohttp.ClientPayloadError,
    ConnectionError,
    OSError,
)


def is_cancellation(exc: BaseException) -> bool:
    """True for supersession or teardown, which are never retried or surfaced."""
    return isinstance(exc, (asyncio.CancelledError, CycleCancelled))


def is_retryable(exc: BaseException) -> bool:
    """Every failure except an external cancellation is retried."""
    return isinstance(exc, Exception) and not is_cancellation(exc)


def classify_route_error(exc: BaseException) -> str:
    """Map the last attempt's exception to the message shown to the consumer."""
    # aiohttp's ServerTimeoutError is both a TimeoutError and an OSError.
    if isinstance(exc, TimeoutError):
        return TIMEOUT_MESSAGE
    if isinstance(exc, _NETWORK_ERRORS):
        return NETWORK_MESSAGE
    message = getattr(exc, "message", None) or str(exc)
    return message or GENERIC_MESSAGE
