"""Shared aiohttp session for routing backends.

One ClientSession is kept per process and per event loop. A session
inherited through a fork, or created on a loop that is no longer the
running one, is thrown away and rebuilt on next use.
"""

from __future__ import annotations

import asyncio
import logging
import os

import aiohttp

from core.constants import (
    HTTP_CONNECTION_LIMIT,
    HTTP_TIMEOUT_CONNECT,
    HTTP_TIMEOUT_SOCK_READ,
    HTTP_TIMEOUT_TOTAL,
)

logger = logging.getLogger(__name__)

USER_AGENT = "DriverRoute/1.0"


class SessionState:
    """Module-level holder for the shared session and its owner."""

    session: aiohttp.ClientSession | None = None
    session_owner_pid: int | None = None
    session_loop: asyncio.AbstractEventLoop | None = None


def _forget_session() -> None:
    SessionState.session = None
    SessionState.session_owner_pid = None
    SessionState.session_loop = None


async def _close_quietly(session: aiohttp.ClientSession, reason: str) -> None:
    try:
        await session.close()
    except (aiohttp.ClientError, RuntimeError) as e:
        logger.warning("Error closing %s session: %s", reason, e)


def _build_session() -> aiohttp.ClientSession:
    return aiohttp.ClientSession(
        timeout=aiohttp.ClientTimeout(
            total=HTTP_TIMEOUT_TOTAL,
            connect=HTTP_TIMEOUT_CONNECT,
            sock_read=HTTP_TIMEOUT_SOCK_READ,
        ),
        headers={"User-Agent": USER_AGENT, "Accept": "application/json"},
        connector=aiohttp.TCPConnector(
            limit=HTTP_CONNECTION_LIMIT,
            enable_cleanup_closed=True,
        ),
    )


async def get_session() -> aiohttp.ClientSession:
    """Return the shared session, creating it on first use."""
    pid = os.getpid()
    loop = asyncio.get_running_loop()
    session = SessionState.session

    if session is not None and SessionState.session_owner_pid != pid:
        # The parent's connector sockets are not ours to close.
        logger.debug(
            "Dropping session inherited from process %s in %s",
            SessionState.session_owner_pid,
            pid,
        )
        _forget_session()
        session = None

    if session is not None and SessionState.session_loop is not loop:
        old_loop = SessionState.session_loop
        logger.info("Event loop changed; rebuilding routing HTTP session")
        if not session.closed and old_loop is not None and not old_loop.is_closed():
            await _close_quietly(session, "stale")
        _forget_session()
        session = None

    if session is None or session.closed:
        session = _build_session()
        SessionState.session = session
        SessionState.session_owner_pid = pid
        SessionState.session_loop = loop
        logger.debug("Created routing HTTP session for process %s", pid)

    return session


async def cleanup_session() -> None:
    """Close the shared session for the current process."""
    session = SessionState.session
    if session is not None and not session.closed:
        await _close_quietly(session, "shared")
        logger.info("Closed routing HTTP session for process %s", os.getpid())
    _forget_session()
