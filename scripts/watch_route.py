#!/usr/bin/env python3
"""Watch a live route refresh from the command line.

Example:
    python scripts/watch_route.py --origin 34.05,-118.24 --destination 36.17,-115.14
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from config import ROUTING_PROVIDERS, RefreshSettings
from core.exceptions import ConfigurationError
from core.http.session import cleanup_session
from routing.backends import build_route_backend
from routing.client import RouteRefreshClient
from routing.models import ClientState, Coordinate

logger = logging.getLogger(__name__)


def parse_coordinate(value: str) -> Coordinate:
    """Parse ``"LAT,LON"`` into a Coordinate."""
    try:
        lat_text, lon_text = value.split(",")
        return Coordinate(latitude=float(lat_text), longitude=float(lon_text))
    except ValueError as exc:
        msg = f"expected LAT,LON in decimal degrees, got {value!r}"
        raise argparse.ArgumentTypeError(msg) from exc


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Fetch a driving route and keep it refreshed.",
    )
    parser.add_argument("--origin", type=parse_coordinate, required=True)
    parser.add_argument("--destination", type=parse_coordinate, required=True)
    parser.add_argument(
        "--provider",
        choices=ROUTING_PROVIDERS,
        default=None,
        help="Routing backend. Defaults to ROUTING_PROVIDER or the first configured one.",
    )
    parser.add_argument(
        "--cycles",
        type=int,
        default=1,
        help="Stop after this many completed refresh cycles.",
    )
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging.")
    return parser.parse_args(argv)


def format_state(state: ClientState) -> str:
    if state.is_loading:
        return "loading..."
    route = state.route_result
    parts = []
    if route is not None:
        parts.append(
            f"{route.distance_miles:.1f} mi ({route.distance_km:.1f} km), "
            f"{route.duration_formatted}, {len(route.route_coords)} points"
        )
    if state.error:
        parts.append(f"error: {state.error}")
    return " | ".join(parts) or "no route"


async def watch(args: argparse.Namespace) -> int:
    try:
        backend = build_route_backend(args.provider)
    except ConfigurationError as exc:
        print(f"Configuration error: {exc.message}", file=sys.stderr)
        return 2

    done = asyncio.Event()
    completed = 0
    was_loading = False
    last_state = ClientState()

    def on_state(state: ClientState) -> None:
        nonlocal completed, was_loading, last_state
        last_state = state
        print(format_state(state), flush=True)
        if was_loading and not state.is_loading:
            completed += 1
            if completed >= args.cycles:
                done.set()
        was_loading = state.is_loading

    client = RouteRefreshClient(
        backend,
        origin=args.origin,
        destination=args.destination,
        settings=RefreshSettings.from_env(),
    )
    unsubscribe = client.subscribe(on_state)
    try:
        async with client:
            await done.wait()
            unsubscribe()
    finally:
        await cleanup_session()
    return 1 if last_state.route_result is None else 0


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s - %(levelname)s - %(name)s - %(message)s",
    )
    return asyncio.run(watch(args))


if __name__ == "__main__":
    raise SystemExit(main())
