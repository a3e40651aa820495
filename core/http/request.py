"""
JSON over HTTP for the routing backends.

Every backend goes through :func:`request_json` so that status handling,
rate limiting and malformed bodies surface as the same exception types.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

import aiohttp

from core.exceptions import ExternalServiceException, RateLimitException

if TYPE_CHECKING:
    from collections.abc import Iterable

logger = logging.getLogger(__name__)

DEFAULT_RETRY_AFTER_SECONDS = 5


def _retry_after_seconds(value: str | None) -> int:
    """Delay-seconds form only; an HTTP-date falls back to the default."""
    try:
        return max(int(value), 0)
    except (TypeError, ValueError):
        return DEFAULT_RETRY_AFTER_SECONDS


async def _raise_for_status(
    response: Any,
    expected: set[int],
    service_name: str,
    shown_url: str,
) -> None:
    status = response.status
    if status == 429:
        retry_after = _retry_after_seconds(response.headers.get("Retry-After"))
        msg = f"{service_name} error: 429"
        raise RateLimitException(
            msg,
            {"status": 429, "retry_after": retry_after, "url": shown_url},
        )
    if status not in expected:
        body = await response.text()
        msg = f"{service_name} error: {status}"
        raise ExternalServiceException(
            msg,
            {"status": status, "body": body, "url": shown_url},
        )


async def request_json(
    method: str,
    url: str,
    *,
    session: Any,
    params: dict[str, Any] | None = None,
    json: dict[str, Any] | None = None,
    headers: dict[str, str] | None = None,
    expected_status: int | Iterable[int] = 200,
    service_name: str = "Service",
    timeout: Any | None = None,
    log_url: str | None = None,
) -> Any:
    """Send a GET or POST and return the decoded JSON body.

    ``log_url`` replaces ``url`` in logs and error details, for URLs that
    carry an access token.

    Raises:
        RateLimitException: the service answered 429.
        ExternalServiceException: unexpected status or a body that is not JSON.
    """
    shown_url = log_url or url
    verb = method.upper()
    if verb not in {"GET", "POST"}:
        msg = f"{service_name} request error: unsupported method {verb}"
        raise ExternalServiceException(msg, {"url": shown_url})
    send = session.get if verb == "GET" else session.post

    expected = (
        {expected_status} if isinstance(expected_status, int) else set(expected_status)
    )
    kwargs: dict[str, Any] = {"params": params, "json": json, "headers": headers}
    if timeout is not None:
        kwargs["timeout"] = timeout

    logger.debug("%s %s %s", service_name, verb, shown_url)
    async with send(url, **kwargs) as response:
        await _raise_for_status(response, expected, service_name, shown_url)
        try:
            # ORS answers with application/geo+json; skip the content-type check.
            return await response.json(content_type=None)
        except (ValueError, aiohttp.ContentTypeError) as exc:
            msg = f"{service_name} error: invalid JSON response"
            raise ExternalServiceException(msg, {"url": shown_url}) from exc
