import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]

if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

import pytest
from network_blocker import install_network_blocker

_ROUTING_ENV_KEYS = (
    "ROUTING_PROVIDER",
    "ROUTING_RPC_BASE_URL",
    "ORS_API_KEY",
    "ORS_BASE_URL",
    "MAPBOX_TOKEN",
    "MAPBOX_BASE_URL",
    "ROUTE_REFRESH_INTERVAL_SECONDS",
    "ROUTE_ATTEMPT_TIMEOUT_SECONDS",
    "ROUTE_MAX_ATTEMPTS",
    "ROUTE_RETRY_BACKOFF_SECONDS",
)


@pytest.fixture(autouse=True)
def _default_test_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for key in _ROUTING_ENV_KEYS:
        monkeypatch.delenv(key, raising=False)
    install_network_blocker(monkeypatch)
