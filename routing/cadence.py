"""Cadence controller for route refresh cycles.

Decides when a new cycle may start:

* the scheduler starts the next cycle no sooner than ``interval`` after the
  start of the previous one, and only once that cycle has finished;
* any cycle request (scheduled or manual) arriving less than
  ``interval - slack`` after the previous start is dropped;
* a deferred request (new inputs that arrived inside that window) runs as
  soon as the window opens rather than a full interval later.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import TYPE_CHECKING, Any

from config import RefreshSettings

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

logger = logging.getLogger(__name__)


class CadenceController:
    def __init__(
        self,
        settings: RefreshSettings | None = None,
        *,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self.settings = settings or RefreshSettings()
        self._clock = clock
        self._sleep = sleep
        self._last_start: float | None = None
        self._deferred = False
        self._task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def last_start(self) -> float | None:
        return self._last_start

    def allows(self) -> bool:
        """Redundant-call guard."""
        if self._last_start is None:
            return True
        return self._clock() >= self._last_start + self.settings.guard_window_seconds

    @property
    def deferred(self) -> bool:
        return self._deferred

    def mark_started(self) -> None:
        self._last_start = self._clock()
        self._deferred = False

    def defer(self) -> None:
        """Make the next cycle due when the guard window opens."""
        self._deferred = True

    def reset(self) -> None:
        self._last_start = None
        self._deferred = False

    def seconds_until_due(self) -> float:
        if self._last_start is None:
            return 0.0
        if self._deferred:
            due = self._last_start + self.settings.guard_window_seconds
        else:
            due = self._last_start + self.settings.interval_seconds
        return max(due - self._clock(), 0.0)

    def start(
        self,
        request_cycle: Callable[[str], bool],
        wait_idle: Callable[[], Awaitable[None]],
    ) -> None:
        """Start the scheduling loop. ``request_cycle`` applies the guard itself."""
        if self.running:
            return
        self._task = asyncio.get_running_loop().create_task(
            self._run(request_cycle, wait_idle),
            name="route-cadence",
        )

    def stop(self) -> asyncio.Task | None:
        """Cancel the scheduled next cycle; returns the task so callers can await it."""
        task, self._task = self._task, None
        if task is not None and not task.done():
            task.cancel()
        return task

    async def _run(
        self,
        request_cycle: Callable[[str], bool],
        wait_idle: Callable[[], Awaitable[None]],
    ) -> None:
        while True:
            await wait_idle()
            delay = self.seconds_until_due()
            if delay > 0:
                # A manual refetch may start a cycle while we sleep; re-check after.
                await self._sleep(delay)
                continue
            if not request_cycle("scheduled"):
                await self._sleep(self.settings.interval_seconds)
