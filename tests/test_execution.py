from datetime import date, timedelta

import pytest

from routeplanner.exceptions import AccessDeniedError, InvalidTransitionError, ValidationError
from routeplanner.models.domain import RescheduleStatus, WaypointStatus
from routeplanner.models.orm import Route, Waypoint
from routeplanner.persistence.waypoints import add_waypoints, list_waypoints
from routeplanner.schemas.execution import StatusUpdateRequest
from routeplanner.services.execution import service as execution_service
from routeplanner.services.execution.events import register_listener
from routeplanner.services.execution.state_machine import apply_reschedule, apply_status

OWNER = "owner-1"
TODAY = date(2026, 3, 2)


def _route(session, addresses=("100 A St", "200 B St"), gap: bool = False) -> Route:
    route = Route(owner_id=OWNER, name="Rounds", version=1, scheduled_date=TODAY)
    session.add(route)
    session.flush()
    stops = [Waypoint(address=address) for address in addresses]
    if gap:
        stops.append(Waypoint(address="Lunch", is_gap_stop=True))
    add_waypoints(session, route, stops)
    session.commit()
    return route


def _status(status, reason=None, notes=None) -> StatusUpdateRequest:
    return StatusUpdateRequest(status=status, missed_reason=reason, execution_notes=notes)


def test_complete_records_timestamp():
    waypoint = Waypoint(address="100 A St", status=WaypointStatus.PENDING, needs_reschedule=False)

    change = apply_status(waypoint, WaypointStatus.COMPLETE)

    assert waypoint.status == WaypointStatus.COMPLETE
    assert waypoint.completed_at is not None
    assert change.previous == WaypointStatus.PENDING


def test_missed_requires_reason():
    waypoint = Waypoint(address="100 A St", status=WaypointStatus.PENDING, needs_reschedule=False)

    with pytest.raises(ValidationError):
        apply_status(waypoint, WaypointStatus.MISSED)
    with pytest.raises(ValidationError):
        apply_status(waypoint, WaypointStatus.MISSED, missed_reason="   ")
    assert waypoint.status == WaypointStatus.PENDING

    apply_status(waypoint, WaypointStatus.MISSED, missed_reason="Gate locked")
    assert waypoint.needs_reschedule is True
    assert waypoint.missed_reason == "Gate locked"


def test_backward_transitions_are_rejected():
    done = Waypoint(address="100 A St", status=WaypointStatus.COMPLETE, needs_reschedule=False)
    started = Waypoint(address="200 B St", status=WaypointStatus.IN_PROGRESS, needs_reschedule=False)
    missed = Waypoint(address="300 C St", status=WaypointStatus.MISSED, needs_reschedule=True)

    with pytest.raises(InvalidTransitionError):
        apply_status(done, WaypointStatus.PENDING)
    with pytest.raises(InvalidTransitionError):
        apply_status(started, WaypointStatus.PENDING)
    with pytest.raises(InvalidTransitionError):
        apply_status(missed, WaypointStatus.COMPLETE)


def test_note_action_keeps_status():
    waypoint = Waypoint(address="100 A St", status=WaypointStatus.COMPLETE, needs_reschedule=False)

    change = apply_status(waypoint, WaypointStatus.COMPLETE, execution_notes="Left at the door")

    assert change.is_note_only
    assert waypoint.execution_notes == "Left at the door"


def test_reschedule_clears_flag_not_status():
    waypoint = Waypoint(address="100 A St", status=WaypointStatus.MISSED, needs_reschedule=True)
    new_date = TODAY + timedelta(days=3)

    apply_reschedule(waypoint, new_date, today=TODAY)

    assert waypoint.status == WaypointStatus.MISSED
    assert waypoint.needs_reschedule is False
    assert waypoint.rescheduled_date == new_date


def test_reschedule_rejects_past_dates():
    waypoint = Waypoint(address="100 A St", status=WaypointStatus.MISSED, needs_reschedule=True)

    with pytest.raises(ValidationError):
        apply_reschedule(waypoint, TODAY - timedelta(days=1), today=TODAY)
    assert waypoint.needs_reschedule is True


def test_reschedule_of_pending_stop_only_sets_date():
    waypoint = Waypoint(id=7, address="100 A St", status=WaypointStatus.PENDING, needs_reschedule=False)

    apply_reschedule(waypoint, TODAY, today=TODAY)

    assert waypoint.status == WaypointStatus.PENDING
    assert waypoint.rescheduled_date == TODAY


def test_rescheduled_stop_can_be_worked_or_missed_again():
    waypoint = Waypoint(address="100 A St", status=WaypointStatus.MISSED, needs_reschedule=False, missed_reason="Closed")

    with pytest.raises(ValidationError):
        apply_status(waypoint, WaypointStatus.MISSED)

    change = apply_status(waypoint, WaypointStatus.MISSED, missed_reason="Closed again")
    assert change.re_missed is True
    assert waypoint.needs_reschedule is True


def test_note_on_missed_stop_keeps_reason_and_flag():
    waypoint = Waypoint(address="100 A St", status=WaypointStatus.MISSED, needs_reschedule=True, missed_reason="Closed")

    change = apply_status(waypoint, WaypointStatus.MISSED, execution_notes="Shop opens at noon")

    assert change.is_note_only
    assert waypoint.execution_notes == "Shop opens at noon"
    assert waypoint.missed_reason == "Closed"
    assert waypoint.needs_reschedule is True


def test_note_on_rescheduled_stop_does_not_miss_it_again():
    waypoint = Waypoint(address="100 A St", status=WaypointStatus.MISSED, needs_reschedule=False, missed_reason="Closed")

    change = apply_status(waypoint, WaypointStatus.MISSED, execution_notes="Called ahead")

    assert change.is_note_only
    assert change.re_missed is False
    assert waypoint.needs_reschedule is False
    assert waypoint.missed_reason == "Closed"
    assert waypoint.execution_notes == "Called ahead"


def test_note_on_rescheduled_stop_keeps_pending_history(session):
    route = _route(session)
    waypoint = list_waypoints(session, route.id)[0]
    execution_service.update_waypoint_status(session, OWNER, waypoint.id, _status(WaypointStatus.MISSED, "Closed"))
    execution_service.reschedule_waypoint(session, OWNER, waypoint.id, TODAY, today=TODAY)

    execution_service.update_waypoint_status(
        session, OWNER, waypoint.id, _status(WaypointStatus.MISSED, notes="Called ahead")
    )

    [entry] = execution_service.reschedule_history(session, OWNER)
    assert entry.status == RescheduleStatus.PENDING
    assert waypoint.needs_reschedule is False
    assert waypoint.execution_notes == "Called ahead"


def test_route_completes_when_all_stops_terminal(session):
    route = _route(session)
    first, second = list_waypoints(session, route.id)

    execution_service.update_waypoint_status(session, OWNER, first.id, _status(WaypointStatus.COMPLETE))
    assert route.completed_at is None

    execution_service.update_waypoint_status(session, OWNER, second.id, _status(WaypointStatus.MISSED, "No answer"))
    assert route.completed_at is not None


def test_route_with_pending_stop_is_not_complete(session):
    route = _route(session)
    first, _ = list_waypoints(session, route.id)

    execution_service.update_waypoint_status(session, OWNER, first.id, _status(WaypointStatus.COMPLETE))

    assert route.completed_at is None


def test_gap_stops_do_not_block_completion(session):
    route = _route(session, gap=True)
    first, second, _ = list_waypoints(session, route.id)

    execution_service.update_waypoint_status(session, OWNER, first.id, _status(WaypointStatus.COMPLETE))
    execution_service.update_waypoint_status(session, OWNER, second.id, _status(WaypointStatus.COMPLETE))

    assert route.completed_at is not None


def test_completion_timestamp_is_set_once(session):
    route = _route(session)
    first, second = list_waypoints(session, route.id)
    events = []
    register_listener(events.append)

    execution_service.update_waypoint_status(session, OWNER, first.id, _status(WaypointStatus.COMPLETE))
    execution_service.update_waypoint_status(session, OWNER, second.id, _status(WaypointStatus.COMPLETE))
    stamped = route.completed_at
    execution_service.update_waypoint_status(
        session, OWNER, second.id, _status(WaypointStatus.COMPLETE, notes="Signed by manager")
    )

    assert route.completed_at == stamped
    assert len(events) == 1
    assert events[0].route_id == route.id
    assert events[0].completed_stops == 2


def test_failing_listener_does_not_undo_completion(session):
    route = _route(session)
    first, second = list_waypoints(session, route.id)

    def broken(event):
        raise RuntimeError("billing offline")

    register_listener(broken)
    execution_service.update_waypoint_status(session, OWNER, first.id, _status(WaypointStatus.COMPLETE))
    execution_service.update_waypoint_status(session, OWNER, second.id, _status(WaypointStatus.COMPLETE))

    session.expire_all()
    assert session.get(Route, route.id).completed_at is not None


def test_status_update_for_foreign_owner_is_denied(session):
    route = _route(session)
    waypoint = list_waypoints(session, route.id)[0]

    with pytest.raises(AccessDeniedError):
        execution_service.update_waypoint_status(session, "intruder", waypoint.id, _status(WaypointStatus.COMPLETE))


def test_shared_status_update_requires_matching_route(session):
    route = _route(session)
    other = _route(session)
    route.share_token = "share-1"
    route.is_publicly_accessible = True
    session.commit()
    mine = list_waypoints(session, route.id)[0]
    foreign = list_waypoints(session, other.id)[0]

    execution_service.update_shared_waypoint_status(session, "share-1", mine.id, _status(WaypointStatus.IN_PROGRESS))
    assert mine.status == WaypointStatus.IN_PROGRESS

    with pytest.raises(AccessDeniedError):
        execution_service.update_shared_waypoint_status(
            session, "share-1", foreign.id, _status(WaypointStatus.COMPLETE)
        )
    with pytest.raises(AccessDeniedError):
        execution_service.update_shared_waypoint_status(session, "revoked", mine.id, _status(WaypointStatus.COMPLETE))


def test_reschedule_history_lifecycle(session):
    route = _route(session)
    waypoint = list_waypoints(session, route.id)[0]
    execution_service.update_waypoint_status(session, OWNER, waypoint.id, _status(WaypointStatus.MISSED, "Closed"))

    first_date = TODAY + timedelta(days=1)
    second_date = TODAY + timedelta(days=2)
    execution_service.reschedule_waypoint(session, OWNER, waypoint.id, first_date, today=TODAY)
    execution_service.reschedule_waypoint(session, OWNER, waypoint.id, second_date, today=TODAY)

    history = execution_service.reschedule_history(session, OWNER)
    by_date = {entry.rescheduled_date: entry for entry in history}
    assert by_date[first_date].status == RescheduleStatus.CANCELLED
    assert by_date[first_date].original_date == TODAY
    assert by_date[second_date].status == RescheduleStatus.PENDING
    assert by_date[second_date].original_date == first_date
    assert by_date[second_date].missed_reason == "Closed"

    execution_service.update_waypoint_status(session, OWNER, waypoint.id, _status(WaypointStatus.COMPLETE))

    assert by_date[second_date].status == RescheduleStatus.COMPLETED
    assert by_date[second_date].completed_at is not None
    pending = execution_service.reschedule_history(session, OWNER, RescheduleStatus.PENDING)
    assert pending == []


def test_missing_a_rescheduled_stop_again_marks_history(session):
    route = _route(session)
    waypoint = list_waypoints(session, route.id)[1]
    execution_service.update_waypoint_status(session, OWNER, waypoint.id, _status(WaypointStatus.MISSED, "Closed"))
    execution_service.reschedule_waypoint(session, OWNER, waypoint.id, TODAY, today=TODAY)

    execution_service.update_waypoint_status(
        session, OWNER, waypoint.id, _status(WaypointStatus.MISSED, "Closed again")
    )

    [entry] = execution_service.reschedule_history(session, OWNER)
    assert entry.status == RescheduleStatus.RE_MISSED
    assert waypoint.needs_reschedule is True


def test_shared_reschedule(session):
    route = _route(session)
    route.share_token = "share-2"
    route.is_publicly_accessible = True
    session.commit()
    waypoint = list_waypoints(session, route.id)[0]
    execution_service.update_shared_waypoint_status(
        session, "share-2", waypoint.id, _status(WaypointStatus.MISSED, "Dog in yard")
    )

    execution_service.reschedule_shared_waypoint(session, "share-2", waypoint.id, TODAY, today=TODAY)

    assert waypoint.status == WaypointStatus.MISSED
    assert waypoint.needs_reschedule is False
