"""Live route refresh: models, backends and the refresh client."""

from __future__ import annotations

from importlib import import_module

__all__ = [
    "ClientState",
    "Coordinate",
    "RouteResult",
    "RouteRefreshClient",
    "RoutingRequest",
    "build_route_backend",
]

_LAZY_IMPORTS: dict[str, tuple[str, str | None]] = {
    "ClientState": ("routing.models", "ClientState"),
    "Coordinate": ("routing.models", "Coordinate"),
    "RouteResult": ("routing.models", "RouteResult"),
    "RoutingRequest": ("routing.models", "RoutingRequest"),
    "RouteRefreshClient": ("routing.client", "RouteRefreshClient"),
    "build_route_backend": ("routing.backends", "build_route_backend"),
    "backends": ("routing.backends", None),
    "client": ("routing.client", None),
}


def __getattr__(name: str):
    target = _LAZY_IMPORTS.get(name)
    if not target:
        msg = f"module {__name__!r} has no attribute {name!r}"
        raise AttributeError(msg)

    module_name, attr_name = target
    module = import_module(module_name)
    return module if attr_name is None else getattr(module, attr_name)


def __dir__():
    return sorted(set(globals()) | set(_LAZY_IMPORTS))
