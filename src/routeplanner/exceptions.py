"""Error taxonomy shared by the services and the HTTP layer."""

from __future__ import annotations


class RoutePlannerError(Exception):
    """Base class for errors raised by the route planner core."""


class ValidationError(RoutePlannerError, ValueError):
    """Bad input; raised before any side effect."""


class InvariantViolation(ValidationError):
    """A mutation would break a route invariant (fixed origin, routable stop count)."""


class InvalidTransitionError(ValidationError):
    """A waypoint status change that the execution lifecycle does not allow."""


class AccessDeniedError(RoutePlannerError):
    """Caller may not touch the resource.

    Also raised when the resource does not exist, so callers cannot probe for ids.
    """

    def __init__(self, message: str = "Not authorized") -> None:
        super().__init__(message)


class ConflictError(RoutePlannerError):
    """The route changed since the caller last read it."""


class OracleError(RoutePlannerError, ConnectionError):
    """The distance oracle failed (non-2xx, network error or malformed payload)."""


class RouteNotFoundError(OracleError):
    """The distance oracle answered but found no route for the given stops."""
