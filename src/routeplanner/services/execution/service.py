"""Execution tracking: status updates, reschedules and their history.

Every operation has an owner variant and a share-token variant; both run the
same state machine.
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Optional

from sqlalchemy.orm import Session

from ...db.session import transaction
from ...models.domain import RescheduleStatus, WaypointStatus
from ...models.orm import RescheduleHistory, Route, Waypoint, utcnow
from ...persistence import routes as route_store
from ...persistence.waypoints import list_waypoints
from ...schemas.execution import StatusUpdateRequest
from .events import RouteCompleted, publish
from .state_machine import StatusChange, apply_reschedule, apply_status, mark_route_completion

logger = logging.getLogger(__name__)


def _settle_history(session: Session, waypoint: Waypoint, change: StatusChange) -> None:
    if change.current == WaypointStatus.COMPLETE and change.previous != WaypointStatus.COMPLETE:
        outcome = RescheduleStatus.COMPLETED
    elif change.re_missed:
        outcome = RescheduleStatus.RE_MISSED
    else:
        return
    for entry in route_store.pending_history_entries(session, waypoint.id):
        entry.status = outcome
        entry.completed_at = utcnow()


def _completion_event(route: Route, waypoints: list[Waypoint]) -> RouteCompleted:
    stops = [waypoint for waypoint in waypoints if not waypoint.is_gap_stop]
    return RouteCompleted(
        route_id=route.id,
        owner_id=route.owner_id,
        completed_at=route.completed_at,
        completed_stops=sum(1 for waypoint in stops if waypoint.status == WaypointStatus.COMPLETE),
        missed_stops=sum(1 for waypoint in stops if waypoint.status == WaypointStatus.MISSED),
    )


def _update_status(session: Session, waypoint: Waypoint, route: Route, payload: StatusUpdateRequest) -> Waypoint:
    event: Optional[RouteCompleted] = None
    with transaction(session):
        change = apply_status(
            waypoint,
            payload.status,
            missed_reason=payload.missed_reason,
            execution_notes=payload.execution_notes,
        )
        _settle_history(session, waypoint, change)
        waypoints = list_waypoints(session, route.id)
        if mark_route_completion(route, waypoints):
            event = _completion_event(route, waypoints)

    if not change.is_note_only:
        logger.info(
            f"Waypoint {waypoint.id} on route {route.id}: {change.previous.value} -> {change.current.value}"
        )
    if event is not None:
        logger.info(f"Route {route.id} completed at {event.completed_at.isoformat()}")
        publish(event)
    return waypoint


def update_waypoint_status(
    session: Session, owner_id: str, waypoint_id: int, payload: StatusUpdateRequest
) -> Waypoint:
    waypoint, route = route_store.get_owned_waypoint(session, waypoint_id, owner_id)
    return _update_status(session, waypoint, route, payload)


def update_shared_waypoint_status(
    session: Session, share_token: str, waypoint_id: int, payload: StatusUpdateRequest
) -> Waypoint:
    waypoint, route = route_store.get_shared_waypoint(session, share_token, waypoint_id)
    return _update_status(session, waypoint, route, payload)


def _original_date(waypoint: Waypoint, route: Route) -> date:
    if waypoint.rescheduled_date is not None:
        return waypoint.rescheduled_date
    if route.scheduled_date is not None:
        return route.scheduled_date
    return route.created_at.date()


def _reschedule(
    session: Session, waypoint: Waypoint, route: Route, rescheduled_date: date, today: Optional[date] = None
) -> Waypoint:
    with transaction(session):
        original_date = _original_date(waypoint, route)
        apply_reschedule(waypoint, rescheduled_date, today=today)

        for entry in route_store.pending_history_entries(session, waypoint.id):
            entry.status = RescheduleStatus.CANCELLED
        session.add(
            RescheduleHistory(
                owner_id=route.owner_id,
                waypoint_id=waypoint.id,
                route_id=route.id,
                route_name=route.name,
                contact_name=waypoint.contact_name,
                address=waypoint.address,
                original_date=original_date,
                rescheduled_date=rescheduled_date,
                missed_reason=waypoint.missed_reason,
                status=RescheduleStatus.PENDING,
            )
        )
    logger.info(f"Rescheduled waypoint {waypoint.id} from {original_date} to {rescheduled_date}")
    return waypoint


def reschedule_waypoint(
    session: Session, owner_id: str, waypoint_id: int, rescheduled_date: date, *, today: Optional[date] = None
) -> Waypoint:
    waypoint, route = route_store.get_owned_waypoint(session, waypoint_id, owner_id)
    return _reschedule(session, waypoint, route, rescheduled_date, today)


def reschedule_shared_waypoint(
    session: Session, share_token: str, waypoint_id: int, rescheduled_date: date, *, today: Optional[date] = None
) -> Waypoint:
    waypoint, route = route_store.get_shared_waypoint(session, share_token, waypoint_id)
    return _reschedule(session, waypoint, route, rescheduled_date, today)


def reschedule_history(
    session: Session, owner_id: str, status: Optional[RescheduleStatus] = None
) -> list[RescheduleHistory]:
    return route_store.list_reschedule_history(session, owner_id, status=status)
