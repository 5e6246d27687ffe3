"""Waypoint execution lifecycle.

    pending -> in_progress -> complete
                           -> missed -> (reschedule) -> actionable again

Status only moves forward. A missed stop is stuck until it is rescheduled;
rescheduling clears ``needs_reschedule`` but leaves the status at ``missed``,
after which the stop may be worked again or missed again.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime
from typing import Iterable, Optional

from ...exceptions import InvalidTransitionError, ValidationError
from ...models.domain import WaypointStatus
from ...models.orm import Route, Waypoint, utcnow

logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS: dict[WaypointStatus, frozenset[WaypointStatus]] = {
    WaypointStatus.PENDING: frozenset(
        {WaypointStatus.PENDING, WaypointStatus.IN_PROGRESS, WaypointStatus.COMPLETE, WaypointStatus.MISSED}
    ),
    WaypointStatus.IN_PROGRESS: frozenset(
        {WaypointStatus.IN_PROGRESS, WaypointStatus.COMPLETE, WaypointStatus.MISSED}
    ),
    WaypointStatus.COMPLETE: frozenset({WaypointStatus.COMPLETE}),
    WaypointStatus.MISSED: frozenset({WaypointStatus.MISSED}),
}

# A rescheduled missed stop is actionable again
RESCHEDULED_TRANSITIONS = frozenset(WaypointStatus)


@dataclass(frozen=True, slots=True)
class StatusChange:
    previous: WaypointStatus
    current: WaypointStatus
    re_missed: bool = False

    @property
    def is_note_only(self) -> bool:
        return self.previous == self.current and not self.re_missed


def allowed_targets(waypoint: Waypoint) -> frozenset[WaypointStatus]:
    if waypoint.status == WaypointStatus.MISSED and not waypoint.needs_reschedule:
        return RESCHEDULED_TRANSITIONS
    return ALLOWED_TRANSITIONS[waypoint.status]


def apply_status(
    waypoint: Waypoint,
    status: WaypointStatus,
    *,
    missed_reason: Optional[str] = None,
    execution_notes: Optional[str] = None,
    now: Optional[datetime] = None,
) -> StatusChange:
    """Move ``waypoint`` to ``status``, validating before touching anything.

    Re-applying the current status only records ``execution_notes``. Marking a
    stop missed needs a reason, including missing a rescheduled stop again; a
    rescheduled stop is missed again only when a reason is given, otherwise the
    call is a note on the existing miss.
    """
    previous = waypoint.status
    if status not in allowed_targets(waypoint):
        raise InvalidTransitionError(f"Cannot change waypoint status from '{previous.value}' to '{status.value}'.")

    reason = (missed_reason or "").strip()
    re_missed = (
        previous == WaypointStatus.MISSED
        and status == WaypointStatus.MISSED
        and not waypoint.needs_reschedule
        and (bool(reason) or not execution_notes)
    )
    entering_missed = status == WaypointStatus.MISSED and (previous != WaypointStatus.MISSED or re_missed)
    if entering_missed and not reason:
        raise ValidationError("A reason is required when marking a stop as missed.")

    if status == WaypointStatus.COMPLETE and previous != WaypointStatus.COMPLETE:
        waypoint.completed_at = now or utcnow()
    if entering_missed:
        waypoint.missed_reason = reason
        waypoint.needs_reschedule = True
    elif status == WaypointStatus.MISSED and reason:
        waypoint.missed_reason = reason

    waypoint.status = status
    if execution_notes:
        waypoint.execution_notes = execution_notes

    return StatusChange(previous=previous, current=status, re_missed=re_missed)


def apply_reschedule(waypoint: Waypoint, rescheduled_date: date, *, today: Optional[date] = None) -> None:
    """Set a new date for the stop and clear ``needs_reschedule``; status is kept."""
    today = today or utcnow().date()
    if rescheduled_date < today:
        raise ValidationError("Rescheduled date must be today or in the future.")
    if waypoint.status != WaypointStatus.MISSED:
        logger.warning(
            f"Rescheduling waypoint {waypoint.id} with status '{waypoint.status.value}'; only the date is recorded"
        )
    waypoint.rescheduled_date = rescheduled_date
    waypoint.needs_reschedule = False


def all_stops_terminal(waypoints: Iterable[Waypoint]) -> bool:
    stops = [waypoint for waypoint in waypoints if not waypoint.is_gap_stop]
    return bool(stops) and all(waypoint.status.is_terminal for waypoint in stops)


def mark_route_completion(route: Route, waypoints: Iterable[Waypoint], *, now: Optional[datetime] = None) -> bool:
    """Stamp ``completed_at`` the first time every non-gap stop is terminal.

    Returns True only when the route became complete by this call.
    """
    if route.completed_at is not None:
        return False
    if not all_stops_terminal(waypoints):
        return False
    route.completed_at = now or utcnow()
    return True
