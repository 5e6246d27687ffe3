import pytest

from routeplanner.exceptions import InvariantViolation
from routeplanner.models.orm import Route, Waypoint
from routeplanner.persistence.waypoints import add_waypoints, list_waypoints
from routeplanner.services.routing.recalculation import recalculate


def _route_with(session, stops) -> Route:
    route = Route(owner_id="owner-1", name="Tuesday", version=1)
    session.add(route)
    session.flush()
    add_waypoints(
        session,
        route,
        [Waypoint(address=address, is_gap_stop=gap) for address, gap in stops],
    )
    return route


def test_recalculate_sets_totals_and_coordinates(session, oracle):
    route = _route_with(session, [("Depot", False), ("100 A St", False), ("Lunch", True), ("300 C St", False)])
    waypoints = list_waypoints(session, route.id)

    metrics = recalculate(route, waypoints, oracle)

    assert metrics.total_distance == 3000
    assert route.total_distance == 3000
    assert route.total_duration == 300
    assert oracle.calls == [(["Depot", "100 A St", "300 C St"], False)]
    coordinates = [(waypoint.latitude, waypoint.longitude) for waypoint in waypoints]
    assert coordinates == [(0.0, 0.0), (0.01, 0.0), (None, None), (0.03, 0.0)]


def test_recalculate_is_idempotent(session, oracle):
    route = _route_with(session, [("Depot", False), ("200 B St", False), ("100 A St", False)])
    waypoints = list_waypoints(session, route.id)

    first = recalculate(route, waypoints, oracle)
    second = recalculate(route, waypoints, oracle)

    assert first == second
    assert [waypoint.position for waypoint in waypoints] == [0, 1, 2]


def test_recalculate_needs_two_routable_stops(session, oracle):
    route = _route_with(session, [("Depot", False), ("Lunch", True)])

    with pytest.raises(InvariantViolation):
        recalculate(route, list_waypoints(session, route.id), oracle)
    assert route.total_distance is None
    assert oracle.calls == []


def test_recalculate_leaves_route_untouched_when_oracle_fails(session, oracle):
    route = _route_with(session, [("Depot", False), ("100 A St", False)])
    oracle.fail = True

    with pytest.raises(ConnectionError):
        recalculate(route, list_waypoints(session, route.id), oracle)
    assert route.total_distance is None
