"""Centralized configuration for environment variables and external APIs.

This module is the single source of truth for configuration used across the
application. Import helpers from here rather than calling os.getenv directly
in multiple places. Values are read at call time so tests can patch the
environment.
"""

from __future__ import annotations

import os
from typing import Final

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field

from core.constants import (
    ROUTE_ATTEMPT_TIMEOUT_SECONDS,
    ROUTE_GUARD_SLACK_SECONDS,
    ROUTE_MAX_ATTEMPTS,
    ROUTE_REFRESH_INTERVAL_SECONDS,
    ROUTE_RETRY_BACKOFF_SECONDS,
)
from core.exceptions import ConfigurationError

# Load environment variables from .env if present
load_dotenv()

ROUTING_PROVIDERS: Final[tuple[str, ...]] = ("rpc", "ors", "mapbox", "estimate")

DEFAULT_ORS_BASE_URL: Final[str] = "https://api.openrouteservice.org"
DEFAULT_MAPBOX_BASE_URL: Final[str] = "https://api.mapbox.com"


def _env(name: str) -> str:
    return os.getenv(name, "").strip()


def _env_float(name: str, default: float) -> float:
    raw = _env(name)
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError as exc:
        msg = f"{name} must be a number, got {raw!r}"
        raise ConfigurationError(msg) from exc


def _env_int(name: str, default: int) -> int:
    raw = _env(name)
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError as exc:
        msg = f"{name} must be a whole number, got {raw!r}"
        raise ConfigurationError(msg) from exc


# --- Routing backends ---


def require_rpc_base_url() -> str:
    """Base URL of the app backend exposing ``routing.getRoute``."""
    value = _env("ROUTING_RPC_BASE_URL")
    if not value:
        msg = "ROUTING_RPC_BASE_URL is not set"
        raise ConfigurationError(msg)
    return value.rstrip("/")


def require_ors_api_key() -> str:
    value = _env("ORS_API_KEY")
    if not value:
        msg = "ORS API key not configured"
        raise ConfigurationError(msg)
    return value


def get_ors_base_url() -> str:
    return (_env("ORS_BASE_URL") or DEFAULT_ORS_BASE_URL).rstrip("/")


def require_mapbox_token() -> str:
    value = _env("MAPBOX_TOKEN")
    if not value:
        msg = "Mapbox token not configured"
        raise ConfigurationError(msg)
    return value


def get_mapbox_base_url() -> str:
    return (_env("MAPBOX_BASE_URL") or DEFAULT_MAPBOX_BASE_URL).rstrip("/")


def get_routing_provider() -> str:
    """Resolve ROUTING_PROVIDER, falling back to the first configured backend."""
    provider = _env("ROUTING_PROVIDER").lower()
    if provider:
        if provider not in ROUTING_PROVIDERS:
            msg = f"Unknown ROUTING_PROVIDER {provider!r}"
            raise ConfigurationError(
                msg, {"choices": list(ROUTING_PROVIDERS)}
            )
        return provider
    if _env("ROUTING_RPC_BASE_URL"):
        return "rpc"
    if _env("ORS_API_KEY"):
        return "ors"
    if _env("MAPBOX_TOKEN"):
        return "mapbox"
    return "estimate"


# --- Refresh cadence ---


class RefreshSettings(BaseModel):
    """Cadence and retry tunables for the route refresh client."""

    model_config = ConfigDict(frozen=True)

    interval_seconds: float = Field(default=ROUTE_REFRESH_INTERVAL_SECONDS, gt=0)
    guard_slack_seconds: float = Field(default=ROUTE_GUARD_SLACK_SECONDS, ge=0)
    attempt_timeout_seconds: float = Field(default=ROUTE_ATTEMPT_TIMEOUT_SECONDS, gt=0)
    max_attempts: int = Field(default=ROUTE_MAX_ATTEMPTS, ge=1)
    retry_backoff_seconds: float = Field(default=ROUTE_RETRY_BACKOFF_SECONDS, ge=0)

    @property
    def guard_window_seconds(self) -> float:
        return max(self.interval_seconds - self.guard_slack_seconds, 0.0)

    @classmethod
    def from_env(cls) -> RefreshSettings:
        return cls(
            interval_seconds=_env_float(
                "ROUTE_REFRESH_INTERVAL_SECONDS", ROUTE_REFRESH_INTERVAL_SECONDS
            ),
            attempt_timeout_seconds=_env_float(
                "ROUTE_ATTEMPT_TIMEOUT_SECONDS", ROUTE_ATTEMPT_TIMEOUT_SECONDS
            ),
            max_attempts=_env_int("ROUTE_MAX_ATTEMPTS", ROUTE_MAX_ATTEMPTS),
            retry_backoff_seconds=_env_float(
                "ROUTE_RETRY_BACKOFF_SECONDS", ROUTE_RETRY_BACKOFF_SECONDS
            ),
        )


__all__ = [
    "DEFAULT_MAPBOX_BASE_URL",
    "DEFAULT_ORS_BASE_URL",
    "ROUTING_PROVIDERS",
    "RefreshSettings",
    "get_mapbox_base_url",
    "get_ors_base_url",
    "get_routing_provider",
    "require_mapbox_token",
    "require_ors_api_key",
    "require_rpc_base_url",
]
