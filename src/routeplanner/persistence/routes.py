"""Route lookups scoped to an owner or a share token."""

from __future__ import annotations

from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..exceptions import AccessDeniedError, ConflictError
from ..models.domain import RescheduleStatus, WaypointStatus
from ..models.orm import RescheduleHistory, Route, Waypoint


def get_owned_route(session: Session, route_id: int, owner_id: str) -> Route:
    """Return the route if ``owner_id`` owns it.

    Missing routes and foreign routes raise the same error.
    """
    route = session.get(Route, route_id)
    if route is None or route.owner_id != owner_id:
        raise AccessDeniedError()
    return route


def get_shared_route(session: Session, share_token: str) -> Route:
    """Return the route behind an active share token."""
    if not share_token:
        raise AccessDeniedError("Invalid or expired share link")
    stmt = select(Route).where(Route.share_token == share_token).limit(1)
    route = session.execute(stmt).scalar_one_or_none()
    if route is None or not route.is_publicly_accessible:
        raise AccessDeniedError("Invalid or expired share link")
    return route


def get_owned_waypoint(session: Session, waypoint_id: int, owner_id: str) -> tuple[Waypoint, Route]:
    waypoint = session.get(Waypoint, waypoint_id)
    if waypoint is None:
        raise AccessDeniedError()
    route = get_owned_route(session, waypoint.route_id, owner_id)
    return waypoint, route


def get_shared_waypoint(session: Session, share_token: str, waypoint_id: int) -> tuple[Waypoint, Route]:
    route = get_shared_route(session, share_token)
    waypoint = session.get(Waypoint, waypoint_id)
    if waypoint is None or waypoint.route_id != route.id:
        raise AccessDeniedError()
    return waypoint, route


def list_routes(session: Session, owner_id: str, *, archived: bool = False) -> list[Route]:
    stmt = (
        select(Route)
        .where(Route.owner_id == owner_id, Route.is_archived == archived)
        .order_by(Route.created_at.desc(), Route.id.desc())
    )
    return list(session.execute(stmt).scalars().all())


def bump_version(route: Route, expected_version: Optional[int] = None) -> None:
    """Increment the route's version, optionally checking the caller's copy first."""
    if expected_version is not None and expected_version != route.version:
        raise ConflictError(
            f"Route {route.id} changed since it was read (expected version {expected_version}, found {route.version})."
        )
    route.version = (route.version or 0) + 1


def list_missed_waypoints(session: Session, owner_id: str) -> list[tuple[Waypoint, Route]]:
    stmt = (
        select(Waypoint, Route)
        .join(Route, Waypoint.route_id == Route.id)
        .where(Route.owner_id == owner_id, Waypoint.status == WaypointStatus.MISSED)
        .order_by(Route.id, Waypoint.position)
    )
    return [(waypoint, route) for waypoint, route in session.execute(stmt).all()]


def pending_history_entries(session: Session, waypoint_id: int) -> list[RescheduleHistory]:
    stmt = select(RescheduleHistory).where(
        RescheduleHistory.waypoint_id == waypoint_id,
        RescheduleHistory.status == RescheduleStatus.PENDING,
    )
    return list(session.execute(stmt).scalars().all())


def list_reschedule_history(
    session: Session,
    owner_id: str,
    *,
    status: Optional[RescheduleStatus] = None,
) -> list[RescheduleHistory]:
    stmt = select(RescheduleHistory).where(RescheduleHistory.owner_id == owner_id)
    if status is not None:
        stmt = stmt.where(RescheduleHistory.status == status)
    stmt = stmt.order_by(RescheduleHistory.created_at.desc(), RescheduleHistory.id.desc())
    return list(session.execute(stmt).scalars().all())
