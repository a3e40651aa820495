"""
Live route refresh client.

Keeps the route between a driver's origin and destination fresh while the
client is active, and exposes the latest known good route to a consumer.

Usage::

    async with RouteRefreshClient(backend, origin=here, destination=dropoff) as client:
        unsubscribe = client.subscribe(render)
        ...
        client.update(origin=new_position)

Lifecycle:

* active when started, ``enabled`` and both coordinates are set;
* becoming active starts a cycle immediately;
* a change of the origin/destination pair cancels the in-flight cycle and
  starts a new one, immediately if the guard window allows it, otherwise
  as soon as the window opens (a burst of changes collapses into one call);
* deactivation clears the cached route and stops all network activity;
* :meth:`aclose` is deactivation plus awaiting every background task.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import TYPE_CHECKING, Any, Self

from config import RefreshSettings
from routing.cadence import CadenceController
from routing.cancellation import CancelCause, CancellationToken, CycleCancelled
from routing.fetch import FetchPolicy
from routing.models import ClientState, RoutingRequest, coerce_coordinate

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable
    from types import TracebackType

    from routing.backends import RouteBackend
    from routing.models import Coordinate, RouteResult

logger = logging.getLogger(__name__)

_UNSET: Any = object()


class RouteRefreshClient:
    def __init__(
        self,
        backend: RouteBackend,
        origin: Coordinate | dict[str, float] | None = None,
        destination: Coordinate | dict[str, float] | None = None,
        enabled: bool = True,
        settings: RefreshSettings | None = None,
        *,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        retry_sleep: Callable[[float], Awaitable[Any]] | None = None,
    ) -> None:
        self.settings = settings or RefreshSettings()
        self._policy = FetchPolicy(backend, self.settings, sleep=retry_sleep or sleep)
        self._cadence = CadenceController(self.settings, clock=clock, sleep=sleep)

        self._origin = coerce_coordinate(origin)
        self._destination = coerce_coordinate(destination)
        self._enabled = enabled

        self._state = ClientState()
        self._listeners: list[Callable[[ClientState], None]] = []
        self._request: RoutingRequest | None = None
        self._cycle_token: CancellationToken | None = None
        self._cycle_task: asyncio.Task | None = None
        self._retired: set[asyncio.Task] = set()
        self._started = False
        self._closed = False

    # ------------------------------------------------------------------
    # Consumer surface
    # ------------------------------------------------------------------

    @property
    def state(self) -> ClientState:
        return self._state

    @property
    def route_result(self) -> RouteResult | None:
        return self._state.route_result

    @property
    def is_loading(self) -> bool:
        return self._state.is_loading

    @property
    def error(self) -> str | None:
        return self._state.error

    @property
    def request(self) -> RoutingRequest | None:
        """The request currently being refreshed, or None while inactive."""
        return self._request

    @property
    def active(self) -> bool:
        return self._request is not None

    @property
    def refresh_allowed(self) -> bool:
        """True when a refetch now would not be dropped by the guard."""
        return self._cadence.allows()

    def subscribe(self, listener: Callable[[ClientState], None]) -> Callable[[], None]:
        """Call ``listener`` with every new state; returns an unsubscribe function."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def start(self) -> None:
        """Begin refreshing. Must be called from a running event loop."""
        if self._closed:
            msg = "RouteRefreshClient is closed"
            raise RuntimeError(msg)
        self._started = True
        self._sync()

    def update(
        self,
        *,
        origin: Coordinate | dict[str, float] | None = _UNSET,
        destination: Coordinate | dict[str, float] | None = _UNSET,
        enabled: bool = _UNSET,
    ) -> None:
        """Change inputs; only the arguments passed are updated."""
        if origin is not _UNSET:
            self._origin = coerce_coordinate(origin)
        if destination is not _UNSET:
            self._destination = coerce_coordinate(destination)
        if enabled is not _UNSET:
            self._enabled = bool(enabled)
        if self._started and not self._closed:
            self._sync()

    def refetch(self) -> bool:
        """Start a cycle now unless one started within the guard window.

        Returns True when a cycle was started.
        """
        if not self._started or self._closed:
            return False
        return self._request_cycle("manual")

    async def aclose(self) -> None:
        """Tear down: stop cadence, cancel the cycle and wait for all tasks."""
        if self._closed:
            return
        self._closed = True
        self._deactivate(CancelCause.TEARDOWN)
        pending = list(self._retired)
        self._retired.clear()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
        self._listeners.clear()
        logger.debug("Route refresh client closed")

    async def __aenter__(self) -> Self:
        self.start()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    # ------------------------------------------------------------------
    # Cadence
    # ------------------------------------------------------------------

    def _build_request(self) -> RoutingRequest | None:
        if not self._enabled or self._origin is None or self._destination is None:
            return None
        return RoutingRequest(origin=self._origin, destination=self._destination)

    def _sync(self) -> None:
        request = self._build_request()
        if request is None:
            if self._request is not None or self._state != ClientState():
                self._deactivate(CancelCause.TEARDOWN)
            return
        if request == self._request and self._cadence.running:
            return
        self._activate(request)

    def _activate(self, request: RoutingRequest) -> None:
        was_active = self._request is not None
        logger.info(
            "Route refresh %s: (%.5f, %.5f) -> (%.5f, %.5f)",
            "request changed" if was_active else "active",
            request.origin.latitude,
            request.origin.longitude,
            request.destination.latitude,
            request.destination.longitude,
        )
        self._retire(self._cadence.stop())
        self._cancel_cycle(CancelCause.SUPERSEDED)
        self._request = request
        if not was_active:
            self._cadence.reset()
        if self._cadence.allows():
            self._start_cycle(request, "activation")
        else:
            logger.debug("New route request deferred until the guard window opens")
            self._cadence.defer()
            if self._state.is_loading:
                self._set_state(is_loading=False)
        self._cadence.start(self._request_cycle, self._wait_idle)

    def _deactivate(self, cause: CancelCause) -> None:
        if self._request is not None:
            logger.info("Route refresh inactive (%s)", cause.value)
        self._retire(self._cadence.stop())
        self._cancel_cycle(cause)
        self._request = None
        self._cadence.reset()
        self._set_state(route_result=None, is_loading=False, error=None)

    def _request_cycle(self, reason: str) -> bool:
        if self._request is None:
            return False
        if not self._cadence.allows():
            logger.debug("Dropped %s route refresh inside guard window", reason)
            return False
        self._start_cycle(self._request, reason)
        return True

    async def _wait_idle(self) -> None:
        while self._cycle_task is not None and not self._cycle_task.done():
            await asyncio.wait({self._cycle_task})

    # ------------------------------------------------------------------
    # Cycles
    # ------------------------------------------------------------------

    def _start_cycle(self, request: RoutingRequest, reason: str) -> None:
        self._cancel_cycle(CancelCause.SUPERSEDED)
        token = CancellationToken()
        self._cycle_token = token
        self._cadence.mark_started()
        logger.debug("Starting route cycle %s (%s)", token.id, reason)
        self._set_state(is_loading=True, error=None)
        self._cycle_task = asyncio.get_running_loop().create_task(
            self._run_cycle(request, token),
            name=f"route-cycle-{token.id}",
        )

    async def _run_cycle(self, request: RoutingRequest, token: CancellationToken) -> None:
        try:
            outcome = await self._policy.run_cycle(request, token)
        except CycleCancelled:
            return
        if token.cancelled or token is not self._cycle_token:
            # Superseded after the backend answered; drop the stale outcome.
            return
        if outcome.ok:
            self._set_state(route_result=outcome.result, is_loading=False, error=None)
        else:
            self._set_state(is_loading=False, error=outcome.error)

    def _cancel_cycle(self, cause: CancelCause) -> None:
        token, self._cycle_token = self._cycle_token, None
        task, self._cycle_task = self._cycle_task, None
        if token is not None:
            token.cancel(cause)
        if task is not None and not task.done():
            logger.debug("Cancelling %s (%s)", task.get_name(), cause.value)
            task.cancel()
            self._retire(task)

    def _retire(self, task: asyncio.Task | None) -> None:
        if task is None or task.done():
            return
        self._retired.add(task)
        task.add_done_callback(self._retired.discard)

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    def _set_state(self, **changes: Any) -> None:
        self._state = self._state.model_copy(update=changes)
        for listener in list(self._listeners):
            try:
                listener(self._state)
            except Exception:
                logger.exception("Route state listener failed")


__all__ = ["RouteRefreshClient"]
