"""Route group exports."""

from . import health, routes, shared, waypoints

__all__ = ["health", "routes", "shared", "waypoints"]
