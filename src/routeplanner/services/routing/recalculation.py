"""Route recalculation: refresh aggregates and coordinates from the oracle."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Sequence

from ...exceptions import InvariantViolation
from ...models.orm import Route, Waypoint
from ...persistence.waypoints import routable, set_coordinates
from ..oracle.models import DistanceOracle, OracleRoute
from .optimizer import to_oracle_stops

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class RouteMetrics:
    total_distance: int
    total_duration: int
    encoded_polyline: Optional[str] = None


def apply_oracle_route(route: Route, stops: Sequence[Waypoint], result: OracleRoute) -> RouteMetrics:
    """Write oracle totals onto the route and per-stop coordinates onto ``stops``."""
    route.total_distance = int(result.distance_meters)
    route.total_duration = int(result.duration_seconds)
    set_coordinates(stops, result.stop_coordinates(len(stops)))
    return RouteMetrics(
        total_distance=route.total_distance,
        total_duration=route.total_duration,
        encoded_polyline=result.encoded_polyline,
    )


def recalculate(route: Route, waypoints: Sequence[Waypoint], oracle: DistanceOracle) -> RouteMetrics:
    """One oracle call over the current routable order.

    Nothing is written unless the oracle call succeeds.
    """
    stops = routable(waypoints)
    if len(stops) < 2:
        raise InvariantViolation("Route must have at least 2 routable waypoints")

    result = oracle.compute_route(to_oracle_stops(stops))
    metrics = apply_oracle_route(route, stops, result)
    logger.info(
        f"Recalculated route {route.id}: {metrics.total_distance} m, {metrics.total_duration} s over {len(stops)} stops"
    )
    return metrics
