"""Global constants for the core package.

This module contains shared constants used across the application core.
"""

from typing import Final

# HTTP Client Constants
HTTP_CONNECTION_LIMIT: Final[int] = 10
HTTP_TIMEOUT_CONNECT: Final[float] = 10.0
HTTP_TIMEOUT_SOCK_READ: Final[float] = 30.0
HTTP_TIMEOUT_TOTAL: Final[float] = 60.0

# Route refresh cadence
ROUTE_REFRESH_INTERVAL_SECONDS: Final[float] = 30.0
# Cycle requests closer than (interval - slack) to the last start are dropped
ROUTE_GUARD_SLACK_SECONDS: Final[float] = 1.0
ROUTE_ATTEMPT_TIMEOUT_SECONDS: Final[float] = 28.0
ROUTE_MAX_ATTEMPTS: Final[int] = 3
ROUTE_RETRY_BACKOFF_SECONDS: Final[float] = 1.0

# Distance Conversion
KM_TO_MILES: Final[float] = 0.621371
METERS_PER_MILE: Final[float] = 1609.344

# Offline estimate when no routing provider is configured
ESTIMATE_MINUTES_PER_MILE: Final[float] = 1.5

# Navigation location filter
NAVIGATION_MIN_DISTANCE_METERS: Final[float] = 10.0
