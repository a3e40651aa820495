"""Cooperative cancellation for route fetch cycles.

Every fetch cycle owns a fresh :class:`CancellationToken`. Backends receive
the token and may check it between I/O steps; the client additionally
cancels the asyncio task running the cycle so an in-flight HTTP call is
aborted at its next suspension point.
"""

from __future__ import annotations

import asyncio
import itertools
from enum import Enum


class CancelCause(str, Enum):
    """Why a cycle or attempt stopped early. Used for diagnostics only."""

    SUPERSEDED = "superseded"
    TEARDOWN = "teardown"
    TIMEOUT = "timeout"


class CycleCancelled(Exception):
    """Raised by :meth:`CancellationToken.raise_if_cancelled`."""

    def __init__(self, cause: CancelCause) -> None:
        super().__init__(f"Route cycle cancelled ({cause.value})")
        self.cause = cause


_token_ids = itertools.count(1)


class CancellationToken:
    def __init__(self) -> None:
        self.id = next(_token_ids)
        self._cause: CancelCause | None = None
        self._event = asyncio.Event()

    def __repr__(self) -> str:
        return f"CancellationToken(id={self.id}, cause={self._cause})"

    @property
    def cancelled(self) -> bool:
        return self._cause is not None

    @property
    def cause(self) -> CancelCause | None:
        return self._cause

    def cancel(self, cause: CancelCause) -> bool:
        """Cancel the token. The first cause wins; returns False if already cancelled."""
        if self._cause is not None:
            return False
        self._cause = cause
        self._event.set()
        return True

    def raise_if_cancelled(self) -> None:
        if self._cause is not None:
            raise CycleCancelled(self._cause)

    async def wait(self) -> CancelCause | None:
        """Block until cancelled; returns the cause."""
        await self._event.wait()
        return self._cause
