import pytest

from routeplanner.exceptions import InvariantViolation, OracleError
from routeplanner.models.orm import Waypoint
from routeplanner.services.oracle.models import OracleRoute
from routeplanner.services.routing.optimizer import (
    ExistingStop,
    NewStop,
    classify_stops,
    full_optimize,
    incremental_optimize,
)

_next_id = iter(range(1, 10_000))


def _wp(address: str, *, new: bool = False, gap: bool = False, lat=None, lon=None) -> Waypoint:
    return Waypoint(
        id=next(_next_id),
        address=address,
        is_gap_stop=gap,
        pending_optimization=new,
        latitude=lat,
        longitude=lon,
    )


def _addresses(order):
    return [waypoint.address for waypoint in order]


def test_classify_stops_never_marks_origin_or_gap_as_new():
    origin = _wp("Depot", new=True)
    gap = _wp("Lunch", new=True, gap=True)
    added = _wp("200 B St", new=True)

    planned = classify_stops([origin, _wp("100 A St"), gap, added])

    assert isinstance(planned[0], ExistingStop)
    assert isinstance(planned[1], ExistingStop)
    assert isinstance(planned[2], ExistingStop)
    assert planned[3] == NewStop(added)


def test_incremental_inserts_at_cheapest_position(oracle):
    waypoints = [_wp("Depot"), _wp("100 A St"), _wp("300 C St"), _wp("500 E St"), _wp("200 B St", new=True)]

    outcome = incremental_optimize(waypoints, oracle, cost_mode="oracle")

    assert _addresses(outcome.order) == ["Depot", "100 A St", "200 B St", "300 C St", "500 E St"]
    assert _addresses(outcome.placed) == ["200 B St"]
    assert outcome.evaluations == 3
    assert all(optimize is False for _, optimize in oracle.calls)


def test_incremental_preserves_existing_relative_order(oracle):
    a, b, c = _wp("Depot"), _wp("300 C St"), _wp("100 A St")
    new_stop = _wp("200 B St", new=True)

    outcome = incremental_optimize([a, b, c, new_stop], oracle, cost_mode="oracle")

    existing = [waypoint for waypoint in outcome.order if waypoint is not new_stop]
    assert existing == [a, b, c]
    assert outcome.order[0] is a


def test_incremental_ties_go_to_earliest_position():
    class FlatOracle:
        def __init__(self):
            self.calls = 0

        def compute_route(self, stops, *, optimize_order=False):
            self.calls += 1
            return OracleRoute(distance_meters=1000, duration_seconds=100)

    flat = FlatOracle()
    waypoints = [_wp("Depot"), _wp("100 A St"), _wp("200 B St"), _wp("300 C St", new=True)]

    outcome = incremental_optimize(waypoints, flat, cost_mode="oracle")

    assert _addresses(outcome.order) == ["Depot", "300 C St", "100 A St", "200 B St"]
    assert flat.calls == 2


def test_incremental_appends_when_no_candidate_exists(oracle):
    waypoints = [_wp("Depot"), _wp("200 B St", new=True), _wp("100 A St", new=True)]

    outcome = incremental_optimize(waypoints, oracle, cost_mode="oracle")

    # First new stop has no slot between two stops and is appended; the second then has one candidate
    assert _addresses(outcome.order) == ["Depot", "100 A St", "200 B St"]
    assert outcome.evaluations == 1


def test_incremental_places_new_stops_one_after_another(oracle):
    waypoints = [
        _wp("Depot"),
        _wp("500 E St"),
        _wp("400 D St", new=True),
        _wp("100 A St", new=True),
    ]

    outcome = incremental_optimize(waypoints, oracle, cost_mode="oracle")

    assert _addresses(outcome.order) == ["Depot", "100 A St", "400 D St", "500 E St"]


def test_incremental_without_new_stops_keeps_order_and_skips_oracle(oracle):
    waypoints = [_wp("Depot"), _wp("300 C St"), _wp("100 A St")]

    outcome = incremental_optimize(waypoints, oracle)

    assert outcome.order == waypoints
    assert outcome.placed == []
    assert oracle.calls == []


def test_incremental_scores_gap_neighbours_once(oracle):
    gap = _wp("Lunch", gap=True)
    waypoints = [_wp("Depot"), _wp("100 A St"), gap, _wp("300 C St"), _wp("200 B St", new=True)]

    outcome = incremental_optimize(waypoints, oracle, cost_mode="oracle")

    assert _addresses(outcome.order) == ["Depot", "100 A St", "200 B St", "Lunch", "300 C St"]
    assert outcome.evaluations == 2
    assert all("Lunch" not in addresses for addresses, _ in oracle.calls)


def test_incremental_haversine_mode_uses_coordinates_only(oracle):
    waypoints = [
        _wp("Depot", lat=0.0, lon=0.0),
        _wp("100 A St", lat=0.01, lon=0.0),
        _wp("300 C St", lat=0.03, lon=0.0),
        _wp("200 B St", new=True, lat=0.02, lon=0.0),
    ]

    outcome = incremental_optimize(waypoints, oracle, cost_mode="haversine")

    assert _addresses(outcome.order) == ["Depot", "100 A St", "200 B St", "300 C St"]
    assert oracle.calls == []


def test_incremental_haversine_falls_back_to_oracle_without_coordinates(oracle):
    waypoints = [_wp("Depot", lat=0.0, lon=0.0), _wp("300 C St"), _wp("100 A St", new=True, lat=0.01, lon=0.0)]

    outcome = incremental_optimize(waypoints, oracle, cost_mode="haversine")

    assert _addresses(outcome.order) == ["Depot", "100 A St", "300 C St"]
    assert len(oracle.calls) == 1


def test_incremental_propagates_oracle_failure(oracle):
    oracle.fail = True
    waypoints = [_wp("Depot"), _wp("100 A St"), _wp("200 B St", new=True)]

    with pytest.raises(OracleError):
        incremental_optimize(waypoints, oracle, cost_mode="oracle")


def test_full_optimize_applies_oracle_permutation(oracle):
    waypoints = [_wp("Depot"), _wp("300 C St"), _wp("100 A St"), _wp("200 B St"), _wp("500 E St")]

    outcome = full_optimize(waypoints, oracle)

    assert _addresses(outcome.order) == ["Depot", "100 A St", "200 B St", "300 C St", "500 E St"]
    assert oracle.calls == [(["Depot", "300 C St", "100 A St", "200 B St", "500 E St"], True)]
    assert outcome.route.distance_meters == 5000


def test_full_optimize_keeps_gap_stop_slots(oracle):
    waypoints = [_wp("Depot"), _wp("300 C St"), _wp("Lunch", gap=True), _wp("100 A St"), _wp("500 E St")]

    outcome = full_optimize(waypoints, oracle)

    assert _addresses(outcome.order) == ["Depot", "100 A St", "Lunch", "300 C St", "500 E St"]
    assert "Lunch" not in oracle.calls[0][0]


def test_full_optimize_rejects_invalid_permutation():
    class BrokenOracle:
        def compute_route(self, stops, *, optimize_order=False):
            return OracleRoute(distance_meters=1, duration_seconds=1, optimized_intermediate_order=[0, 0])

    waypoints = [_wp("Depot"), _wp("100 A St"), _wp("200 B St"), _wp("300 C St")]

    with pytest.raises(OracleError):
        full_optimize(waypoints, BrokenOracle())


def test_full_optimize_requires_two_routable_stops(oracle):
    with pytest.raises(InvariantViolation):
        full_optimize([_wp("Depot"), _wp("Lunch", gap=True)], oracle)
