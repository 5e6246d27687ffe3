"""Stop ordering: full optimization and incremental insertion.

Full optimization hands the intermediate stops to the distance oracle and accepts
whatever visiting order it returns. Incremental optimization keeps the current
order of existing stops and places each new stop at the candidate position that
yields the shortest total route.

Neither function writes to the database; callers persist the returned order.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Callable, Optional, Sequence, Union

from ...config import settings
from ...exceptions import InvariantViolation, OracleError
from ...models.orm import Waypoint
from ..geospatial import path_length_meters
from ..oracle.models import DistanceOracle, OracleRoute, OracleStop

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ExistingStop:
    waypoint: Waypoint


@dataclass(frozen=True, slots=True)
class NewStop:
    waypoint: Waypoint


PlannedStop = Union[ExistingStop, NewStop]


@dataclass(slots=True)
class OptimizationOutcome:
    order: list[Waypoint]
    route: Optional[OracleRoute] = None
    placed: list[Waypoint] = field(default_factory=list)
    evaluations: int = 0


def to_oracle_stops(waypoints: Sequence[Waypoint]) -> list[OracleStop]:
    """Oracle request stops for the routable waypoints, in order."""
    return [
        OracleStop(address=waypoint.address, latitude=waypoint.latitude, longitude=waypoint.longitude)
        for waypoint in waypoints
        if not waypoint.is_gap_stop
    ]


def _routable(waypoints: Sequence[Waypoint]) -> list[Waypoint]:
    return [waypoint for waypoint in waypoints if not waypoint.is_gap_stop]


def classify_stops(waypoints: Sequence[Waypoint]) -> list[PlannedStop]:
    """Tag each waypoint as existing or new for one re-optimization pass.

    A stop is new when it was added after the last optimization. The origin and
    gap stops are always treated as existing.
    """
    planned: list[PlannedStop] = []
    for index, waypoint in enumerate(waypoints):
        if index > 0 and waypoint.pending_optimization and not waypoint.is_gap_stop:
            planned.append(NewStop(waypoint))
        else:
            planned.append(ExistingStop(waypoint))
    return planned


def _merge_routable(order: Sequence[Waypoint], routable_order: Sequence[Waypoint]) -> list[Waypoint]:
    """Put ``routable_order`` into the routable slots of ``order``; gap stops keep their slots."""
    replacements = iter(routable_order)
    return [waypoint if waypoint.is_gap_stop else next(replacements) for waypoint in order]


def full_optimize(waypoints: Sequence[Waypoint], oracle: DistanceOracle) -> OptimizationOutcome:
    """Let the oracle reorder every intermediate stop.

    The first and the last routable stop keep their places.
    """
    routable_stops = _routable(waypoints)
    if len(routable_stops) < 2:
        raise InvariantViolation("Route must have at least 2 routable waypoints")
    if waypoints and waypoints[0].is_gap_stop:
        raise InvariantViolation("The starting point of a route cannot be a gap stop.")

    route = oracle.compute_route(to_oracle_stops(routable_stops), optimize_order=True)

    intermediates = routable_stops[1:-1]
    permutation = list(route.optimized_intermediate_order)
    if permutation:
        if sorted(permutation) != list(range(len(intermediates))):
            raise OracleError(
                f"Routing service returned an invalid waypoint order {permutation} for {len(intermediates)} stops"
            )
        reordered = [routable_stops[0], *(intermediates[index] for index in permutation), routable_stops[-1]]
    else:
        reordered = list(routable_stops)

    logger.info(f"Full optimization ordered {len(intermediates)} intermediate stop(s): {permutation or 'unchanged'}")
    return OptimizationOutcome(order=_merge_routable(waypoints, reordered), route=route, evaluations=1)


def _oracle_cost(oracle: DistanceOracle) -> Callable[[Sequence[Waypoint]], float]:
    def cost(order: Sequence[Waypoint]) -> float:
        return float(oracle.compute_route(to_oracle_stops(order)).distance_meters)

    return cost


def _haversine_cost(order: Sequence[Waypoint]) -> float:
    points = [(waypoint.latitude, waypoint.longitude) for waypoint in _routable(order)]
    length = path_length_meters(points)
    if length is None:
        raise ValueError("Haversine scoring requires coordinates for every stop.")
    return length


def _select_cost(
    waypoints: Sequence[Waypoint], oracle: DistanceOracle, mode: str
) -> tuple[str, Callable[[Sequence[Waypoint]], float]]:
    if mode == "haversine":
        if all(waypoint.has_coordinates for waypoint in _routable(waypoints)):
            return "haversine", _haversine_cost
        logger.info("Some stops lack coordinates; scoring insertion candidates with the routing service")
    return "oracle", _oracle_cost(oracle)


def incremental_optimize(
    waypoints: Sequence[Waypoint],
    oracle: DistanceOracle,
    *,
    cost_mode: Optional[str] = None,
) -> OptimizationOutcome:
    """Insert new stops one at a time at their cheapest position.

    Existing stops keep their relative order. For each new stop (in current
    position order) every index between two consecutive stops of the working
    order is tried; index 0 is never a candidate. The lowest total distance wins
    and ties go to the earliest index. A new stop is inserted before the next one
    is evaluated. Oracle failures propagate, so nothing is returned half-done.
    """
    planned = classify_stops(waypoints)
    new_stops = [stop.waypoint for stop in planned if isinstance(stop, NewStop)]
    working = [stop.waypoint for stop in planned if isinstance(stop, ExistingStop)]
    if not new_stops:
        return OptimizationOutcome(order=list(waypoints))

    mode, cost = _select_cost(waypoints, oracle, cost_mode or settings.insertion_cost_mode)
    evaluations = 0

    for new_stop in new_stops:
        best_index: Optional[int] = None
        best_distance = math.inf
        scored: dict[tuple[int, ...], float] = {}

        for index in range(1, len(working)):
            trial = [*working[:index], new_stop, *working[index:]]
            # Neighbouring gap stops give identical routable sequences
            key = tuple(id(waypoint) for waypoint in _routable(trial))
            if key not in scored:
                scored[key] = cost(trial)
                evaluations += 1
            distance = scored[key]
            if distance < best_distance:
                best_distance = distance
                best_index = index

        if best_index is None:
            working.append(new_stop)
            logger.debug(f"No insertion candidate for waypoint {new_stop.id}; appended")
        else:
            working.insert(best_index, new_stop)
            logger.debug(
                f"Placed waypoint {new_stop.id} at index {best_index} ({best_distance:.0f} m, {mode} scoring)"
            )

    logger.info(f"Placed {len(new_stops)} new stop(s) with {evaluations} candidate evaluation(s)")
    return OptimizationOutcome(order=working, placed=new_stops, evaluations=evaluations)
