"""
Centralized exception hierarchy for domain-specific errors.

Backends, configuration helpers and the HTTP layer raise these so the
route refresh client can tell a backend failure apart from a cancelled
cycle or a programming error.
"""


class DriverRouteError(Exception):
    """Base exception for all application-specific errors."""

    def __init__(self, message: str, details: dict | None = None) -> None:
        self.message = message
        self.details = details or {}
        super().__init__(self.message)


class ValidationError(DriverRouteError):
    """Exception raised when data validation fails."""


class ConfigurationError(DriverRouteError):
    """Exception raised when a required setting is missing or invalid."""


class ExternalServiceError(DriverRouteError):
    """Exception raised when service calls fail."""


class RateLimitError(ExternalServiceError):
    """Exception raised when rate limits are exceeded."""


class RouteNotFoundError(ExternalServiceError):
    """Exception raised when the routing service has no route for a request."""


DriverRouteException = DriverRouteError
ValidationException = ValidationError
ConfigurationException = ConfigurationError
ExternalServiceException = ExternalServiceError
RateLimitException = RateLimitError
RouteNotFoundException = RouteNotFoundError
