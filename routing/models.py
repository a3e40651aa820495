"""Route refresh data model.

Wire shapes use the camelCase keys of the routing RPC contract; Python code
uses the snake_case attribute names.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic import ValidationError as PydanticValidationError

from core.constants import KM_TO_MILES
from core.exceptions import ExternalServiceException


def format_duration(duration_min: int) -> str:
    """Render whole minutes as ``"2 h 5 m"`` or ``"45 m"``."""
    hours, minutes = divmod(duration_min, 60)
    if hours > 0:
        return f"{hours} h {minutes} m"
    return f"{minutes} m"


class Coordinate(BaseModel):
    """A WGS84 point in decimal degrees."""

    model_config = ConfigDict(frozen=True)

    latitude: float = Field(ge=-90.0, le=90.0)
    longitude: float = Field(ge=-180.0, le=180.0)

    def as_lon_lat(self) -> list[float]:
        return [self.longitude, self.latitude]


class RoutingRequest(BaseModel):
    """Origin/destination pair sent to the routing backend."""

    model_config = ConfigDict(frozen=True)

    origin: Coordinate
    destination: Coordinate

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(mode="json")


class RouteResult(BaseModel):
    """The latest successfully fetched route."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    route_coords: tuple[Coordinate, ...] = Field(default=(), alias="routeCoords")
    distance_km: float = Field(ge=0.0, alias="distanceKm")
    distance_miles: float = Field(ge=0.0, alias="distanceMiles")
    duration_min: int = Field(ge=0, alias="durationMin")
    duration_formatted: str = Field(alias="durationFormatted")

    @model_validator(mode="before")
    @classmethod
    def _derive_units(cls, data: Any) -> Any:
        # Miles and the display string are always derived, never trusted.
        if not isinstance(data, dict):
            return data
        data = dict(data)
        km = data.get("distanceKm", data.get("distance_km"))
        if isinstance(km, (int, float)) and not isinstance(km, bool):
            data.pop("distance_miles", None)
            data["distanceMiles"] = km * KM_TO_MILES
        minutes = data.get("durationMin", data.get("duration_min"))
        if isinstance(minutes, float) and minutes.is_integer():
            minutes = int(minutes)
            data.pop("duration_min", None)
            data["durationMin"] = minutes
        if isinstance(minutes, int) and not isinstance(minutes, bool):
            data.pop("duration_formatted", None)
            data["durationFormatted"] = format_duration(minutes)
        return data

    @classmethod
    def from_measurements(
        cls,
        coords: list[Coordinate] | tuple[Coordinate, ...],
        distance_meters: float,
        duration_seconds: float,
    ) -> RouteResult:
        """Build a result from raw provider units (meters, seconds)."""
        duration_min = round(max(duration_seconds, 0.0) / 60)
        return cls(
            route_coords=tuple(coords),
            distance_km=max(distance_meters, 0.0) / 1000,
            distance_miles=0.0,
            duration_min=duration_min,
            duration_formatted="",
        )

    @classmethod
    def from_payload(cls, payload: Any) -> RouteResult:
        """Parse the RPC success body; malformed payloads are backend errors."""
        if not isinstance(payload, dict):
            msg = "Malformed route response"
            raise ExternalServiceException(msg, {"payload": payload})
        try:
            return cls.model_validate(payload)
        except PydanticValidationError as exc:
            msg = "Malformed route response"
            raise ExternalServiceException(
                msg, {"errors": exc.errors(include_url=False)}
            ) from exc

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class ClientState(BaseModel):
    """Snapshot of what the consumer may read."""

    model_config = ConfigDict(frozen=True)

    route_result: RouteResult | None = None
    is_loading: bool = False
    error: str | None = None


def coerce_coordinate(value: Any) -> Coordinate | None:
    """Accept a Coordinate, a ``{latitude, longitude}`` mapping, or None."""
    if value is None or isinstance(value, Coordinate):
        return value
    return Coordinate.model_validate(value)
