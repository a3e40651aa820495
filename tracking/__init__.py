"""Driver location tracking."""

from tracking.navigation import DriverNavigation, LocationFix

__all__ = ["DriverNavigation", "LocationFix"]
