import asyncio
import logging

import pytest
from route_fakes import (
    HANG,
    LAS_VEGAS,
    LOS_ANGELES,
    SAN_DIEGO,
    FakeClock,
    Gate,
    ScriptedBackend,
    SleepRecorder,
    make_result,
    wait_until,
)

from config import RefreshSettings
from routing.cancellation import CancelCause
from routing.client import RouteRefreshClient
from routing.errors import NETWORK_MESSAGE
from routing.models import ClientState, Coordinate, RoutingRequest


def _client(backend, **kwargs) -> RouteRefreshClient:
    kwargs.setdefault("origin", LOS_ANGELES)
    kwargs.setdefault("destination", LAS_VEGAS)
    kwargs.setdefault("clock", FakeClock())
    kwargs.setdefault("retry_sleep", SleepRecorder())
    return RouteRefreshClient(backend, **kwargs)


@pytest.mark.asyncio
async def test_activation_fetches_and_exposes_route() -> None:
    backend = ScriptedBackend([make_result(distance_km=420, duration_min=240)])

    async with _client(backend) as client:
        assert client.is_loading
        await wait_until(lambda: client.route_result is not None)

        assert client.route_result.distance_miles == pytest.approx(260.98, abs=0.01)
        assert client.route_result.duration_formatted == "4 h 0 m"
        assert client.error is None
        assert not client.is_loading
        assert backend.calls == [
            RoutingRequest(origin=LOS_ANGELES, destination=LAS_VEGAS)
        ]


@pytest.mark.asyncio
async def test_does_nothing_until_started() -> None:
    backend = ScriptedBackend(default=make_result())
    client = _client(backend)

    client.update(origin=SAN_DIEGO)
    assert client.refetch() is False
    await asyncio.sleep(0.01)

    assert backend.calls == []
    assert not client.active
    await client.aclose()


@pytest.mark.asyncio
async def test_disabled_client_makes_no_calls() -> None:
    backend = ScriptedBackend(default=make_result())

    async with _client(backend, enabled=False) as client:
        await asyncio.sleep(0.01)

        assert backend.calls == []
        assert client.state == ClientState()
        assert client.refetch() is False


@pytest.mark.asyncio
async def test_refetch_inside_guard_window_is_dropped() -> None:
    clock = FakeClock()
    backend = ScriptedBackend(default=make_result())

    async with _client(backend, clock=clock) as client:
        await wait_until(lambda: client.route_result is not None)

        for _ in range(5):
            assert client.refetch() is False
        clock.advance(28.5)
        assert client.refetch() is False
        assert not client.refresh_allowed
        await asyncio.sleep(0.01)
        assert len(backend.calls) == 1

        clock.advance(0.5)
        assert client.refresh_allowed
        assert client.refetch() is True
        await wait_until(lambda: len(backend.calls) == 2)


@pytest.mark.asyncio
async def test_failed_cycle_without_prior_route_reports_network_error() -> None:
    backend = ScriptedBackend(default=ConnectionError("connection refused"))
    retry_sleep = SleepRecorder()

    async with _client(backend, retry_sleep=retry_sleep) as client:
        await wait_until(lambda: not client.is_loading)

        assert client.route_result is None
        assert client.error == NETWORK_MESSAGE
        assert len(backend.calls) == 3
        assert retry_sleep.delays == [1.0, 2.0]


@pytest.mark.asyncio
async def test_failed_cycle_keeps_previous_route() -> None:
    clock = FakeClock()
    first = make_result(distance_km=100, duration_min=60)
    failure = ConnectionError("connection reset")
    backend = ScriptedBackend([first, failure, failure, failure])

    async with _client(backend, clock=clock) as client:
        await wait_until(lambda: client.route_result is not None)

        clock.advance(30)
        assert client.refetch() is True
        assert client.is_loading
        assert client.route_result == first
        await wait_until(lambda: not client.is_loading)

        assert client.route_result == first
        assert client.error == NETWORK_MESSAGE
        assert len(backend.calls) == 4


@pytest.mark.asyncio
async def test_success_clears_previous_error() -> None:
    clock = FakeClock()
    failure = ConnectionError("down")
    backend = ScriptedBackend([failure, failure, failure, make_result()])

    async with _client(backend, clock=clock) as client:
        await wait_until(lambda: client.error is not None)

        clock.advance(30)
        assert client.refetch() is True
        assert client.error is None
        await wait_until(lambda: client.route_result is not None)
        assert client.error is None


@pytest.mark.asyncio
async def test_new_destination_supersedes_in_flight_cycle() -> None:
    stale = make_result(distance_km=100, duration_min=60)
    fresh = make_result(distance_km=200, duration_min=120)
    gate = Gate(stale)
    backend = ScriptedBackend([gate, fresh])
    seen: list[ClientState] = []
    clock = FakeClock()

    async with _client(backend, clock=clock) as client:
        client.subscribe(seen.append)
        await wait_until(lambda: len(backend.calls) == 1)

        clock.advance(29)
        client.update(destination=SAN_DIEGO)
        await wait_until(lambda: client.route_result is not None)
        gate.open()
        await asyncio.sleep(0.01)

        assert client.route_result == fresh
        assert backend.calls[1].destination == SAN_DIEGO
        assert backend.tokens[0].cause is CancelCause.SUPERSEDED
        assert all(state.route_result != stale for state in seen)
        assert all(state.error is None for state in seen)


@pytest.mark.asyncio
async def test_superseded_failure_is_not_reported() -> None:
    backend = ScriptedBackend(
        [Gate(ConnectionError("late failure")), make_result()]
    )
    clock = FakeClock()

    async with _client(backend, clock=clock) as client:
        await wait_until(lambda: len(backend.calls) == 1)
        clock.advance(29)
        client.update(origin=SAN_DIEGO)
        await wait_until(lambda: client.route_result is not None)
        await asyncio.sleep(0.01)

        assert client.error is None
        assert len(backend.calls) == 2



async def _poll_sleep(delay: float) -> None:
    await asyncio.sleep(0.001)


@pytest.mark.asyncio
async def test_burst_of_origin_changes_collapses_into_one_call() -> None:
    clock = FakeClock()
    backend = ScriptedBackend(default=make_result())
    origins = [
        Coordinate(latitude=34.05 + 0.01 * step, longitude=-118.24)
        for step in range(1, 6)
    ]

    async with _client(backend, clock=clock, sleep=_poll_sleep) as client:
        await wait_until(lambda: client.route_result is not None)

        for origin in origins:
            clock.advance(0.25)
            client.update(origin=origin)
            await asyncio.sleep(0.01)

        assert len(backend.calls) == 1
        assert not client.is_loading
        assert client.route_result is not None

        clock.advance(27.75)
        await wait_until(lambda: len(backend.calls) == 2)
        await wait_until(lambda: not client.is_loading)
        await asyncio.sleep(0.02)

        assert len(backend.calls) == 2
        assert backend.calls[1].origin == origins[-1]


@pytest.mark.asyncio
async def test_change_inside_guard_window_cancels_in_flight_cycle() -> None:
    stale = make_result(distance_km=100, duration_min=60)
    gate = Gate(stale)
    backend = ScriptedBackend([gate], default=make_result())

    async with _client(backend) as client:
        await wait_until(lambda: len(backend.calls) == 1)

        client.update(destination=SAN_DIEGO)

        assert backend.tokens[0].cause is CancelCause.SUPERSEDED
        assert not client.is_loading
        gate.open()
        await asyncio.sleep(0.01)
        assert client.route_result is None
        assert client.error is None
        assert len(backend.calls) == 1

@pytest.mark.asyncio
async def test_disabling_mid_cycle_clears_state_silently() -> None:
    clock = FakeClock()
    backend = ScriptedBackend([make_result(), HANG])

    async with _client(backend, clock=clock) as client:
        await wait_until(lambda: client.route_result is not None)
        clock.advance(30)
        client.refetch()
        await wait_until(lambda: len(backend.calls) == 2)

        client.update(enabled=False)

        assert client.route_result is None
        assert client.error is None
        assert not client.is_loading
        assert not client.active
        await asyncio.sleep(0.01)
        assert client.error is None
        assert backend.tokens[1].cause is CancelCause.TEARDOWN


@pytest.mark.asyncio
async def test_clearing_a_coordinate_stops_network_activity() -> None:
    clock = FakeClock()
    backend = ScriptedBackend(default=make_result())

    async with _client(backend, clock=clock) as client:
        await wait_until(lambda: client.route_result is not None)

        client.update(origin=None)
        assert client.route_result is None
        clock.advance(120)
        assert client.refetch() is False
        await asyncio.sleep(0.01)
        assert len(backend.calls) == 1

        client.update(origin=LOS_ANGELES)
        await wait_until(lambda: client.route_result is not None)
        assert len(backend.calls) == 2


@pytest.mark.asyncio
async def test_reactivation_ignores_guard_window() -> None:
    backend = ScriptedBackend(default=make_result())

    async with _client(backend) as client:
        await wait_until(lambda: client.route_result is not None)
        client.update(enabled=False)
        client.update(enabled=True)

        await wait_until(lambda: client.route_result is not None)
        assert len(backend.calls) == 2


@pytest.mark.asyncio
async def test_unchanged_inputs_do_not_restart_cycle() -> None:
    backend = ScriptedBackend(default=make_result())

    async with _client(backend) as client:
        await wait_until(lambda: client.route_result is not None)
        client.update(origin={"latitude": 34.05, "longitude": -118.24})
        client.update(enabled=True)
        await asyncio.sleep(0.01)

        assert len(backend.calls) == 1


@pytest.mark.asyncio
async def test_scheduled_refresh_repeats_at_interval() -> None:
    settings = RefreshSettings(interval_seconds=0.05, guard_slack_seconds=0.01)
    backend = ScriptedBackend(default=make_result())

    async with RouteRefreshClient(
        backend,
        origin=LOS_ANGELES,
        destination=LAS_VEGAS,
        settings=settings,
    ) as client:
        await wait_until(lambda: len(backend.calls) >= 3)
        assert client.route_result is not None

    calls = len(backend.calls)
    await asyncio.sleep(0.12)
    assert len(backend.calls) == calls


@pytest.mark.asyncio
async def test_listener_failure_does_not_break_updates(caplog) -> None:
    backend = ScriptedBackend(default=make_result())
    seen: list[ClientState] = []

    def broken(state: ClientState) -> None:
        raise RuntimeError("listener exploded")

    client = _client(backend)
    client.subscribe(broken)
    client.subscribe(seen.append)
    with caplog.at_level(logging.ERROR, logger="routing.client"):
        async with client:
            await wait_until(lambda: client.route_result is not None)

    assert seen[0].is_loading
    assert any(state.route_result is not None for state in seen)
    assert "Route state listener failed" in caplog.text


@pytest.mark.asyncio
async def test_unsubscribe_stops_notifications() -> None:
    clock = FakeClock()
    backend = ScriptedBackend(default=make_result())
    seen: list[ClientState] = []

    async with _client(backend, clock=clock) as client:
        unsubscribe = client.subscribe(seen.append)
        await wait_until(lambda: client.route_result is not None)
        count = len(seen)

        unsubscribe()
        clock.advance(30)
        client.refetch()
        await wait_until(lambda: not client.is_loading)

        assert len(seen) == count


@pytest.mark.asyncio
async def test_close_cancels_everything() -> None:
    backend = ScriptedBackend(default=HANG)
    client = _client(backend)
    client.start()
    await wait_until(lambda: len(backend.calls) == 1)

    await client.aclose()

    assert backend.tokens[0].cause is CancelCause.TEARDOWN
    assert client.state == ClientState()
    client.update(origin=SAN_DIEGO)
    await asyncio.sleep(0.01)
    assert len(backend.calls) == 1
    with pytest.raises(RuntimeError):
        client.start()
