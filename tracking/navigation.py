"""
Driver navigation session.

Consumes the driver's position feed and keeps a :class:`RouteRefreshClient`
pointed from the driver's current location to the active destination.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from core.constants import NAVIGATION_MIN_DISTANCE_METERS
from core.spatial import GeometryService
from routing.models import Coordinate, coerce_coordinate

if TYPE_CHECKING:
    from collections.abc import AsyncIterable

    from routing.client import RouteRefreshClient

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LocationFix:
    """One position report from the device."""

    latitude: float
    longitude: float
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))
    accuracy: float | None = None
    speed: float | None = None
    heading: float | None = None

    def coordinate(self) -> Coordinate:
        return Coordinate(latitude=self.latitude, longitude=self.longitude)


def _distance_m(a: LocationFix | Coordinate, b: LocationFix | Coordinate) -> float:
    return GeometryService.haversine_distance(
        a.longitude, a.latitude, b.longitude, b.latitude
    )


class DriverNavigation:
    """Tracks one driver's location and routes them to a destination.

    Fixes closer than ``min_distance_m`` to the last accepted fix are ignored.
    While a destination is set, accepted fixes move the route client's
    origin; the client folds fixes that arrive inside its guard window into
    one refresh.
    """

    def __init__(
        self,
        driver_id: str,
        route_client: RouteRefreshClient | None = None,
        *,
        min_distance_m: float = NAVIGATION_MIN_DISTANCE_METERS,
    ) -> None:
        self.driver_id = driver_id
        self.route_client = route_client
        self.min_distance_m = min_distance_m
        self.current_location: LocationFix | None = None
        self.destination: Coordinate | None = None
        self.is_navigating = False
        self.error: str | None = None

    def start_navigation(self, destination: Coordinate | dict[str, float]) -> None:
        self.destination = coerce_coordinate(destination)
        self.error = None
        logger.info(
            "Driver %s navigating to (%.5f, %.5f)",
            self.driver_id,
            self.destination.latitude,
            self.destination.longitude,
        )
        if self.route_client is not None:
            origin = self.current_location.coordinate() if self.current_location else None
            self.route_client.update(
                origin=origin,
                destination=self.destination,
                enabled=True,
            )

    def stop_navigation(self) -> None:
        self.destination = None
        if self.route_client is not None:
            self.route_client.update(destination=None)
        logger.info("Driver %s stopped navigation", self.driver_id)

    def handle_fix(self, fix: LocationFix) -> bool:
        """Apply one position report; returns True if it was accepted."""
        previous = self.current_location
        if previous is not None and _distance_m(previous, fix) < self.min_distance_m:
            return False
        self.current_location = fix
        logger.debug(
            "Driver %s location update: %.6f, %.6f (speed=%s)",
            self.driver_id,
            fix.latitude,
            fix.longitude,
            fix.speed,
        )
        if self.route_client is not None and self.destination is not None:
            self.route_client.update(origin=fix.coordinate())
        return True

    async def track(self, locations: AsyncIterable[LocationFix]) -> None:
        """Consume ``locations`` until it ends or fails."""
        self.is_navigating = True
        self.error = None
        logger.info("Starting location tracking for driver %s", self.driver_id)
        try:
            async for fix in locations:
                self.handle_fix(fix)
        except Exception as exc:
            logger.exception("Location tracking failed for driver %s", self.driver_id)
            self.error = str(exc) or "Failed to start location tracking"
        finally:
            self.is_navigating = False

    def distance_to_destination_m(self) -> float | None:
        if self.current_location is None or self.destination is None:
            return None
        return _distance_m(self.current_location, self.destination)
