"""
Routing backend clients.

Each backend turns a :class:`RoutingRequest` into a :class:`RouteResult`.
Retrying is not done here: the refresh client's fetch policy owns retries
and timeouts, so a backend makes exactly one upstream call per invocation.
"""

from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any

from config import (
    get_mapbox_base_url,
    get_ors_base_url,
    get_routing_provider,
    require_mapbox_token,
    require_ors_api_key,
    require_rpc_base_url,
)
from core.constants import ESTIMATE_MINUTES_PER_MILE, METERS_PER_MILE
from core.exceptions import (
    ConfigurationError,
    ExternalServiceException,
    RouteNotFoundException,
)
from core.http.request import request_json
from core.http.session import get_session
from core.spatial import GeometryService
from routing.models import Coordinate, RouteResult

if TYPE_CHECKING:
    from routing.cancellation import CancellationToken
    from routing.models import RoutingRequest

logger = logging.getLogger(__name__)


class RouteBackend(ABC):
    """A single-call routing service."""

    name = "backend"

    def __init__(self, session: Any | None = None) -> None:
        self._session = session

    async def _get_session(self) -> Any:
        if self._session is not None:
            return self._session
        return await get_session()

    @abstractmethod
    async def fetch_route(
        self,
        request: RoutingRequest,
        token: CancellationToken,
    ) -> RouteResult: ...


def _coords_from_lon_lat(raw: Any) -> list[Coordinate]:
    """Convert GeoJSON ``[lon, lat]`` pairs, skipping malformed points."""
    if not isinstance(raw, list):
        return []
    coords: list[Coordinate] = []
    for point in raw:
        valid, pair = GeometryService.validate_coordinate_pair(point)
        if not valid or pair is None:
            continue
        coords.append(Coordinate(latitude=pair[1], longitude=pair[0]))
    return coords


def _number(value: Any, default: float = 0.0) -> float:
    if isinstance(value, bool):
        return default
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


class RpcRouteBackend(RouteBackend):
    """Calls the app backend's ``routing.getRoute`` query procedure.

    The procedure speaks tRPC over HTTP with a superjson transformer:
    input goes in the ``input`` query parameter as ``{"json": {...}}`` and
    the result comes back under ``result.data.json``.
    """

    name = "rpc"
    procedure = "routing.getRoute"

    def __init__(self, base_url: str | None = None, session: Any | None = None) -> None:
        super().__init__(session)
        base = (base_url or require_rpc_base_url()).rstrip("/")
        self._url = f"{base}/api/trpc/{self.procedure}"

    async def fetch_route(
        self,
        request: RoutingRequest,
        token: CancellationToken,
    ) -> RouteResult:
        token.raise_if_cancelled()
        session = await self._get_session()
        data = await request_json(
            "GET",
            self._url,
            session=session,
            params={"input": json.dumps({"json": request.to_payload()})},
            expected_status=(200, 400, 404, 500),
            service_name="Routing RPC",
        )
        token.raise_if_cancelled()
        if not isinstance(data, dict):
            msg = "Routing RPC error: unexpected response"
            raise ExternalServiceException(msg, {"url": self._url})

        error = data.get("error")
        if error is not None:
            body = error.get("json", error) if isinstance(error, dict) else {}
            message = body.get("message") if isinstance(body, dict) else None
            msg = message or "Routing RPC error"
            if msg == "No route found":
                raise RouteNotFoundException(msg, {"url": self._url})
            raise ExternalServiceException(msg, {"url": self._url, "error": error})

        result = data.get("result")
        payload = result.get("data") if isinstance(result, dict) else None
        if isinstance(payload, dict) and "json" in payload:
            payload = payload["json"]
        return RouteResult.from_payload(payload)


class OpenRouteServiceBackend(RouteBackend):
    """OpenRouteService ``/v2/directions/driving-car`` (GeoJSON response)."""

    name = "ors"

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        session: Any | None = None,
    ) -> None:
        super().__init__(session)
        self._api_key = api_key or require_ors_api_key()
        base = (base_url or get_ors_base_url()).rstrip("/")
        self._url = f"{base}/v2/directions/driving-car"

    async def fetch_route(
        self,
        request: RoutingRequest,
        token: CancellationToken,
    ) -> RouteResult:
        token.raise_if_cancelled()
        payload = {
            "coordinates": [
                request.origin.as_lon_lat(),
                request.destination.as_lon_lat(),
            ],
        }
        session = await self._get_session()
        data = await request_json(
            "POST",
            self._url,
            session=session,
            json=payload,
            headers={
                "Authorization": self._api_key,
                "Content-Type": "application/json",
                "Accept": "application/json, application/geo+json",
            },
            service_name="ORS API",
        )
        token.raise_if_cancelled()
        return self._normalize_route_response(data)

    @staticmethod
    def _normalize_route_response(data: Any) -> RouteResult:
        features = data.get("features") if isinstance(data, dict) else None
        if not features:
            msg = "No route found"
            raise RouteNotFoundException(msg)
        route = features[0] if isinstance(features[0], dict) else {}
        geometry = route.get("geometry") or {}
        properties = route.get("properties") or {}
        summary = properties.get("summary") or {}
        return RouteResult.from_measurements(
            _coords_from_lon_lat(geometry.get("coordinates")),
            _number(summary.get("distance")),
            _number(summary.get("duration")),
        )


class MapboxDirectionsBackend(RouteBackend):
    """Mapbox Directions API, driving profile."""

    name = "mapbox"

    def __init__(
        self,
        access_token: str | None = None,
        base_url: str | None = None,
        session: Any | None = None,
    ) -> None:
        super().__init__(session)
        self._access_token = access_token or require_mapbox_token()
        self._base_url = (base_url or get_mapbox_base_url()).rstrip("/")

    def _route_url(self, request: RoutingRequest) -> str:
        origin = request.origin
        destination = request.destination
        return (
            f"{self._base_url}/directions/v5/mapbox/driving/"
            f"{origin.longitude},{origin.latitude};"
            f"{destination.longitude},{destination.latitude}"
        )

    async def fetch_route(
        self,
        request: RoutingRequest,
        token: CancellationToken,
    ) -> RouteResult:
        token.raise_if_cancelled()
        url = self._route_url(request)
        session = await self._get_session()
        data = await request_json(
            "GET",
            url,
            session=session,
            params={"geometries": "geojson", "access_token": self._access_token},
            service_name="Mapbox API",
            log_url=f"{url}?geometries=geojson&access_token=TOKEN",
        )
        token.raise_if_cancelled()
        return self._normalize_route_response(data)

    @staticmethod
    def _normalize_route_response(data: Any) -> RouteResult:
        routes = data.get("routes") if isinstance(data, dict) else None
        if not routes:
            msg = "No route found"
            raise RouteNotFoundException(msg)
        route = routes[0] if isinstance(routes[0], dict) else {}
        geometry = route.get("geometry") or {}
        return RouteResult.from_measurements(
            _coords_from_lon_lat(geometry.get("coordinates")),
            _number(route.get("distance")),
            _number(route.get("duration")),
        )


class StraightLineBackend(RouteBackend):
    """Offline estimate: great-circle distance at 1.5 minutes per mile."""

    name = "estimate"

    def __init__(self, minutes_per_mile: float = ESTIMATE_MINUTES_PER_MILE) -> None:
        super().__init__()
        self.minutes_per_mile = minutes_per_mile

    async def fetch_route(
        self,
        request: RoutingRequest,
        token: CancellationToken,
    ) -> RouteResult:
        token.raise_if_cancelled()
        origin = request.origin
        destination = request.destination
        distance_m = GeometryService.haversine_distance(
            origin.longitude,
            origin.latitude,
            destination.longitude,
            destination.latitude,
        )
        duration_s = distance_m / METERS_PER_MILE * self.minutes_per_mile * 60
        return RouteResult.from_measurements(
            [origin, destination], distance_m, duration_s
        )


_BACKENDS: dict[str, type[RouteBackend]] = {
    RpcRouteBackend.name: RpcRouteBackend,
    OpenRouteServiceBackend.name: OpenRouteServiceBackend,
    MapboxDirectionsBackend.name: MapboxDirectionsBackend,
    StraightLineBackend.name: StraightLineBackend,
}


def build_route_backend(provider: str | None = None) -> RouteBackend:
    """Instantiate the configured backend.

    Raises:
        ConfigurationError: unknown provider or missing credentials.
    """
    provider = (provider or get_routing_provider()).lower()
    backend_cls = _BACKENDS.get(provider)
    if backend_cls is None:
        msg = f"Unknown routing provider {provider!r}"
        raise ConfigurationError(msg, {"choices": sorted(_BACKENDS)})
    backend = backend_cls()
    logger.info("Using %s routing backend", provider)
    return backend
