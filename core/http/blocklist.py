"""Host allow/block utilities for HTTP clients."""

from __future__ import annotations

from collections.abc import Iterable
from urllib.parse import urlparse

# Public routing providers; tests must never reach them.
DEFAULT_FORBIDDEN_HOSTS = {
    "api.mapbox.com",
    "events.mapbox.com",
    "api.openrouteservice.org",
}


def is_forbidden_host(
    url: str, forbidden_hosts: Iterable[str] = DEFAULT_FORBIDDEN_HOSTS
) -> bool:
    parsed = urlparse(url)
    host = (parsed.hostname or "").lower()
    if not host:
        return False
    forbidden = {item.lower() for item in forbidden_hosts}
    if host in forbidden:
        return True
    return any(host.endswith(f".{item}") for item in forbidden)
