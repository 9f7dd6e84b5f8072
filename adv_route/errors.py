"""Central error types used across the application."""

from __future__ import annotations


class AdvRouteError(RuntimeError):
    """Base error for route planning failures."""


class RoutingError(AdvRouteError):
    """Raised when the routing service cannot produce a path.

    ``status`` is the upstream HTTP status when one was received, otherwise
    ``None`` (transport failures, malformed payloads, local validation).
    """

    def __init__(self, message: str, status: int | None = None) -> None:
        self.status = status
        self.message = message
        text = f"{message} (status {status})" if status is not None else message
        super().__init__(text)


class RoutingRateLimitedError(RoutingError):
    """Raised when the routing service asks the caller to back off."""

    def __init__(self, message: str, retry_after: float | None = None) -> None:
        super().__init__(message, status=429)
        self.retry_after = retry_after


class DiscoveryError(AdvRouteError):
    """Raised when the spatial discovery service request fails."""

    def __init__(self, message: str, status: int | None = None) -> None:
        self.status = status
        super().__init__(message)


class CoordinateError(ValueError):
    """Raised when a coordinate input cannot be parsed unambiguously."""


__all__ = [
    "AdvRouteError",
    "RoutingError",
    "RoutingRateLimitedError",
    "DiscoveryError",
    "CoordinateError",
]
