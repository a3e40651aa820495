"""
Spatial utilities.

Coordinate validation and great-circle distance, used by the offline route
estimate and by the navigation location filter.
"""

from __future__ import annotations

import math
from typing import TYPE_CHECKING, Any, Final

from core.constants import METERS_PER_MILE

if TYPE_CHECKING:
    from collections.abc import Sequence

_METERS_PER_UNIT: Final[dict[str, float]] = {
    "meters": 1.0,
    "km": 1000.0,
    "miles": METERS_PER_MILE,
}


class GeometryService:
    """Geometry helpers shared by routing and tracking."""

    EARTH_RADIUS_M = 6371000.0

    @staticmethod
    def validate_coordinate_pair(
        coord: Sequence[Any],
    ) -> tuple[bool, list[float] | None]:
        """Validate a GeoJSON-ordered ``[lon, lat]`` pair.

        Returns ``(True, [lon, lat])`` with float values, or ``(False, None)``.
        """
        if not isinstance(coord, (list, tuple)) or len(coord) < 2:
            return False, None
        try:
            lon, lat = float(coord[0]), float(coord[1])
        except (TypeError, ValueError):
            return False, None
        if abs(lon) > 180 or abs(lat) > 90:
            return False, None
        return True, [lon, lat]

    @staticmethod
    def haversine_distance(
        lon1: float,
        lat1: float,
        lon2: float,
        lat2: float,
        unit: str = "meters",
    ) -> float:
        """Great-circle distance between two points in ``meters``, ``km`` or ``miles``."""
        scale = _METERS_PER_UNIT.get(unit)
        if scale is None:
            msg = f"Invalid unit {unit!r}. Use one of: {', '.join(_METERS_PER_UNIT)}."
            raise ValueError(msg)
        phi1, phi2 = math.radians(lat1), math.radians(lat2)
        half_dphi = math.radians(lat2 - lat1) / 2
        half_dlmb = math.radians(lon2 - lon1) / 2
        h = (
            math.sin(half_dphi) ** 2
            + math.cos(phi1) * math.cos(phi2) * math.sin(half_dlmb) ** 2
        )
        central_angle = 2 * math.asin(min(1.0, math.sqrt(h)))
        return GeometryService.EARTH_RADIUS_M * central_angle / scale
