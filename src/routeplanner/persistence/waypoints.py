"""Waypoint store: ordered stops of a route.

Every operation that changes membership or order ends in ``apply_order`` so the
positions of a route are always the contiguous range ``0..N-1``.
"""

from __future__ import annotations

import logging
from typing import Iterable, Sequence

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..exceptions import AccessDeniedError, InvariantViolation, ValidationError
from ..models.orm import Route, Waypoint

logger = logging.getLogger(__name__)


def list_waypoints(session: Session, route_id: int) -> list[Waypoint]:
    """Waypoints of a route in visiting order."""
    stmt = (
        select(Waypoint)
        .where(Waypoint.route_id == route_id)
        .order_by(Waypoint.position, Waypoint.id)
    )
    return list(session.execute(stmt).scalars().all())


def routable(waypoints: Iterable[Waypoint]) -> list[Waypoint]:
    """Waypoints that are sent to the distance oracle (gap stops are not)."""
    return [waypoint for waypoint in waypoints if not waypoint.is_gap_stop]


def require_address(address: str | None) -> str:
    cleaned = (address or "").strip()
    if not cleaned:
        raise ValidationError("Waypoint address is required.")
    return cleaned


def apply_order(ordered: Sequence[Waypoint], *, sync_execution_order: bool = True) -> None:
    """Assign positions 0..N-1 following ``ordered``."""
    for index, waypoint in enumerate(ordered):
        waypoint.position = index
        if sync_execution_order:
            waypoint.execution_order = index


def normalize_positions(session: Session, route_id: int) -> list[Waypoint]:
    """Close gaps and duplicates left by inserts/deletes, keeping relative order."""
    session.flush()
    ordered = list_waypoints(session, route_id)
    apply_order(ordered)
    session.flush()
    return ordered


def add_waypoints(session: Session, route: Route, waypoints: Sequence[Waypoint]) -> list[Waypoint]:
    """Persist new waypoints for ``route`` in the given order."""
    for waypoint in waypoints:
        require_address(waypoint.address)
        waypoint.route_id = route.id
        session.add(waypoint)
    apply_order(waypoints)
    session.flush()
    return list(waypoints)


def append_waypoint(session: Session, route: Route, waypoint: Waypoint) -> Waypoint:
    """Append one waypoint at the end of the route."""
    waypoint.address = require_address(waypoint.address)
    existing = list_waypoints(session, route.id)
    waypoint.route_id = route.id
    waypoint.position = len(existing)
    waypoint.execution_order = len(existing)
    session.add(waypoint)
    session.flush()
    logger.debug(f"Appended waypoint {waypoint.id} to route {route.id} at position {waypoint.position}")
    return waypoint


def delete_waypoint(session: Session, route: Route, waypoint: Waypoint) -> list[Waypoint]:
    """Remove a waypoint; the fixed origin can only go when the route is deleted."""
    current = list_waypoints(session, route.id)
    if current and current[0].id == waypoint.id:
        raise InvariantViolation("The starting point of a route cannot be removed.")
    if len(routable(current)) <= 2 and not waypoint.is_gap_stop:
        raise InvariantViolation("Route must keep at least 2 waypoints.")
    session.delete(waypoint)
    return normalize_positions(session, route.id)


def plan_reorder(current: Sequence[Waypoint], moves: Sequence[tuple[int, int]]) -> list[Waypoint]:
    """Compute the new order for explicit ``(waypoint_id, position)`` moves.

    Waypoints not mentioned keep their relative order and fill the free slots.
    The waypoint at position 0 must stay there and nothing else may take its place.
    """
    count = len(current)
    by_id = {waypoint.id: waypoint for waypoint in current}
    targets: dict[int, int] = {}
    for waypoint_id, position in moves:
        if waypoint_id not in by_id:
            raise AccessDeniedError("Waypoint does not belong to this route")
        if waypoint_id in targets:
            raise ValidationError(f"Waypoint {waypoint_id} appears more than once.")
        if position < 0 or position >= count:
            raise ValidationError(f"Position {position} is outside 0..{count - 1}.")
        targets[waypoint_id] = position

    if len(set(targets.values())) != len(targets):
        raise ValidationError("Two waypoints cannot share a position.")

    origin = current[0]
    if targets.get(origin.id, 0) != 0:
        raise InvariantViolation("The starting point must stay at position 0.")
    if any(position == 0 and waypoint_id != origin.id for waypoint_id, position in targets.items()):
        raise InvariantViolation("Only the starting point may occupy position 0.")

    slots: list[Waypoint | None] = [None] * count
    for waypoint_id, position in targets.items():
        slots[position] = by_id[waypoint_id]
    remaining = iter(waypoint for waypoint in current if waypoint.id not in targets)
    for index, slot in enumerate(slots):
        if slot is None:
            slots[index] = next(remaining)
    return [waypoint for waypoint in slots if waypoint is not None]


def set_coordinates(waypoints: Sequence[Waypoint], coordinates: Sequence[tuple[float | None, float | None]]) -> None:
    for waypoint, (latitude, longitude) in zip(waypoints, coordinates):
        waypoint.latitude = latitude
        waypoint.longitude = longitude


def positions_are_contiguous(waypoints: Sequence[Waypoint]) -> bool:
    return sorted(waypoint.position for waypoint in waypoints) == list(range(len(waypoints)))
