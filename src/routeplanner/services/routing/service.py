"""Route orchestration service.

Each public function is one unit of work: it validates, applies the structural
change, consults the optimizer and the distance oracle where needed, and
commits. Any failure rolls the whole mutation back.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from typing import Optional, Sequence

from sqlalchemy.orm import Session

from ...config import settings
from ...db.session import transaction
from ...exceptions import OracleError
from ...models.domain import StopType, WaypointStatus, dump_contact_labels, dump_phone_numbers
from ...models.orm import Route, Waypoint, utcnow
from ...persistence import routes as route_store
from ...persistence.waypoints import (
    add_waypoints,
    append_waypoint,
    apply_order,
    delete_waypoint,
    list_waypoints,
    plan_reorder,
    require_address,
    routable,
)
from ...schemas.routes import AddGapStopRequest, RouteCreateRequest, WaypointInput
from ..export.maps_url import build_directions_url
from ..oracle.client import GoogleRoutesClient
from ..oracle.models import DistanceOracle
from .optimizer import full_optimize, incremental_optimize
from .recalculation import RouteMetrics, apply_oracle_route, recalculate

logger = logging.getLogger(__name__)

STARTING_POINT_NAME = "Starting Point"


@dataclass(slots=True)
class ReoptimizationReport:
    optimized_count: int
    message: str
    total_distance: int
    total_duration: int


def _resolve_oracle(oracle: Optional[DistanceOracle]) -> DistanceOracle:
    if oracle is not None:
        return oracle
    try:
        return GoogleRoutesClient()
    except ValueError as exc:
        raise OracleError(str(exc)) from exc


def _waypoint_from_input(item: WaypointInput, default_stop_type: str) -> Waypoint:
    return Waypoint(
        address=require_address(item.address),
        contact_name=item.contact_name,
        latitude=item.latitude,
        longitude=item.longitude,
        phone_numbers=dump_phone_numbers(item.phone_numbers),
        contact_labels=dump_contact_labels(item.contact_labels),
        stop_type=item.stop_type or StopType(default_stop_type),
        stop_color=item.stop_color or settings.default_stop_color,
        status=WaypointStatus.PENDING,
        needs_reschedule=False,
        is_gap_stop=False,
        pending_optimization=False,
    )


def _optimize_fully(route: Route, waypoints: Sequence[Waypoint], oracle: DistanceOracle) -> RouteMetrics:
    outcome = full_optimize(waypoints, oracle)
    apply_order(outcome.order)
    route.optimized = True
    return apply_oracle_route(route, routable(outcome.order), outcome.route)


def create_route(
    session: Session,
    owner_id: str,
    payload: RouteCreateRequest,
    oracle: Optional[DistanceOracle] = None,
) -> Route:
    """Create a route with its stops and compute its metrics.

    With ``optimize`` the oracle chooses the order of the intermediate stops;
    otherwise the given order is kept. A starting point address becomes the
    first stop.
    """
    with transaction(session):
        route = Route(
            owner_id=owner_id,
            name=payload.name,
            notes=payload.notes,
            scheduled_date=payload.scheduled_date,
            starting_point_address=payload.starting_point_address or None,
            optimized=payload.optimize,
            is_archived=False,
            is_publicly_accessible=False,
            version=1,
        )
        session.add(route)
        session.flush()

        waypoints: list[Waypoint] = []
        if payload.starting_point_address:
            waypoints.append(
                Waypoint(
                    address=require_address(payload.starting_point_address),
                    contact_name=STARTING_POINT_NAME,
                    stop_type=StopType.OTHER,
                    stop_color=settings.default_stop_color,
                    status=WaypointStatus.PENDING,
                    needs_reschedule=False,
                    is_gap_stop=False,
                    pending_optimization=False,
                )
            )
        waypoints.extend(_waypoint_from_input(item, settings.default_stop_type) for item in payload.waypoints)
        add_waypoints(session, route, waypoints)

        client = _resolve_oracle(oracle)
        if payload.optimize:
            metrics = _optimize_fully(route, waypoints, client)
        else:
            metrics = recalculate(route, waypoints, client)
        session.flush()

    logger.info(
        f"Created route {route.id} for {owner_id} with {len(waypoints)} stops "
        f"({metrics.total_distance} m, optimized={payload.optimize})"
    )
    return route


def get_route(session: Session, owner_id: str, route_id: int) -> tuple[Route, list[Waypoint]]:
    route = route_store.get_owned_route(session, route_id, owner_id)
    return route, list_waypoints(session, route.id)


def get_shared_route(session: Session, share_token: str) -> tuple[Route, list[Waypoint]]:
    route = route_store.get_shared_route(session, share_token)
    return route, list_waypoints(session, route.id)


def list_routes(session: Session, owner_id: str, *, archived: bool = False) -> list[Route]:
    return route_store.list_routes(session, owner_id, archived=archived)


def add_waypoint(
    session: Session,
    owner_id: str,
    route_id: int,
    item: WaypointInput,
    *,
    recalculate_metrics: bool = False,
    oracle: Optional[DistanceOracle] = None,
) -> Waypoint:
    """Append a stop; it is placed properly by the next re-optimization."""
    with transaction(session):
        route = route_store.get_owned_route(session, route_id, owner_id)
        waypoint = _waypoint_from_input(item, settings.added_stop_type)
        waypoint.pending_optimization = True
        append_waypoint(session, route, waypoint)
        route_store.bump_version(route)
        if recalculate_metrics:
            recalculate(route, list_waypoints(session, route.id), _resolve_oracle(oracle))
    logger.info(f"Added waypoint {waypoint.id} to route {route_id} at position {waypoint.position}")
    return waypoint


def add_gap_stop(
    session: Session,
    owner_id: str,
    route_id: int,
    payload: AddGapStopRequest,
    oracle: Optional[DistanceOracle] = None,
) -> Waypoint:
    """Append a non-routable break (lunch, meeting) to the end of the route."""
    with transaction(session):
        route = route_store.get_owned_route(session, route_id, owner_id)
        waypoint = Waypoint(
            address=require_address(payload.gap_name),
            contact_name=payload.gap_name,
            stop_type=StopType.OTHER,
            stop_color=settings.gap_stop_color,
            status=WaypointStatus.PENDING,
            needs_reschedule=False,
            is_gap_stop=True,
            gap_duration_minutes=payload.gap_duration_minutes,
            gap_description=payload.gap_description,
            pending_optimization=False,
        )
        append_waypoint(session, route, waypoint)
        route_store.bump_version(route)
        if payload.recalculate:
            recalculate(route, list_waypoints(session, route.id), _resolve_oracle(oracle))
    return waypoint


def remove_waypoint(
    session: Session,
    owner_id: str,
    waypoint_id: int,
    *,
    recalculate_metrics: bool = False,
    oracle: Optional[DistanceOracle] = None,
) -> Route:
    with transaction(session):
        waypoint, route = route_store.get_owned_waypoint(session, waypoint_id, owner_id)
        remaining = delete_waypoint(session, route, waypoint)
        route_store.bump_version(route)
        if recalculate_metrics:
            recalculate(route, remaining, _resolve_oracle(oracle))
    logger.info(f"Removed waypoint {waypoint_id} from route {route.id}")
    return route


def reorder_waypoints(
    session: Session,
    owner_id: str,
    route_id: int,
    moves: Sequence[tuple[int, int]],
    *,
    expected_version: Optional[int] = None,
    recalculate_metrics: bool = False,
    oracle: Optional[DistanceOracle] = None,
) -> list[Waypoint]:
    """Move stops to explicit positions; the starting point never moves."""
    with transaction(session):
        route = route_store.get_owned_route(session, route_id, owner_id)
        route_store.bump_version(route, expected_version)
        ordered = plan_reorder(list_waypoints(session, route.id), moves)
        apply_order(ordered)
        if recalculate_metrics:
            recalculate(route, ordered, _resolve_oracle(oracle))
        session.flush()
    return ordered


def update_waypoint_address(
    session: Session,
    owner_id: str,
    waypoint_id: int,
    address: str,
    *,
    contact_name: Optional[str] = None,
    recalculate_metrics: bool = False,
    oracle: Optional[DistanceOracle] = None,
) -> Waypoint:
    """Change where a stop is; its coordinates are refreshed by the next recalculation."""
    with transaction(session):
        waypoint, route = route_store.get_owned_waypoint(session, waypoint_id, owner_id)
        waypoint.address = require_address(address)
        waypoint.latitude = None
        waypoint.longitude = None
        if contact_name is not None:
            waypoint.contact_name = contact_name
        route_store.bump_version(route)
        if recalculate_metrics:
            recalculate(route, list_waypoints(session, route.id), _resolve_oracle(oracle))
    return waypoint


def set_execution_order(session: Session, owner_id: str, waypoint_id: int, execution_order: int) -> Waypoint:
    """Set the order a driver works through stops; the routing order is untouched."""
    with transaction(session):
        waypoint, _ = route_store.get_owned_waypoint(session, waypoint_id, owner_id)
        waypoint.execution_order = execution_order
    return waypoint


def recalculate_route(
    session: Session,
    owner_id: str,
    route_id: int,
    oracle: Optional[DistanceOracle] = None,
) -> RouteMetrics:
    with transaction(session):
        route = route_store.get_owned_route(session, route_id, owner_id)
        metrics = recalculate(route, list_waypoints(session, route.id), _resolve_oracle(oracle))
    return metrics


def reoptimize_route(
    session: Session,
    owner_id: str,
    route_id: int,
    *,
    full: bool = False,
    oracle: Optional[DistanceOracle] = None,
) -> ReoptimizationReport:
    """Re-optimize a route after stops were added.

    By default only stops added since the last optimization are placed, each at
    its cheapest position, and the order of the other stops is kept. ``full``
    lets the oracle reorder every intermediate stop instead.
    """
    with transaction(session):
        route = route_store.get_owned_route(session, route_id, owner_id)
        waypoints = list_waypoints(session, route.id)
        client = _resolve_oracle(oracle)

        if full:
            metrics = _optimize_fully(route, waypoints, client)
            count = max(len(routable(waypoints)) - 2, 0)
            message = f"Optimized {count} stop(s)"
            route_store.bump_version(route)
        else:
            outcome = incremental_optimize(waypoints, client)
            count = len(outcome.placed)
            if count:
                apply_order(outcome.order)
                metrics = recalculate(route, outcome.order, client)
                message = f"Optimized {count} new stop(s)"
                route_store.bump_version(route)
            else:
                metrics = recalculate(route, waypoints, client)
                message = "No new stops to optimize"

        for waypoint in waypoints:
            waypoint.pending_optimization = False
        session.flush()

    logger.info(f"Re-optimized route {route_id} (full={full}): {message}")
    return ReoptimizationReport(
        optimized_count=count,
        message=message,
        total_distance=metrics.total_distance,
        total_duration=metrics.total_duration,
    )


def copy_route(session: Session, owner_id: str, route_id: int) -> Route:
    """Duplicate a route with fresh execution state; sharing is not copied."""
    with transaction(session):
        original = route_store.get_owned_route(session, route_id, owner_id)
        copy = Route(
            owner_id=owner_id,
            name=f"{original.name} (Copy)",
            notes=original.notes,
            total_distance=original.total_distance,
            total_duration=original.total_duration,
            optimized=original.optimized,
            starting_point_address=original.starting_point_address,
            scheduled_date=original.scheduled_date,
            is_archived=False,
            is_publicly_accessible=False,
            version=1,
        )
        session.add(copy)
        session.flush()

        clones = [
            Waypoint(
                contact_name=waypoint.contact_name,
                address=waypoint.address,
                latitude=waypoint.latitude,
                longitude=waypoint.longitude,
                phone_numbers=waypoint.phone_numbers,
                contact_labels=waypoint.contact_labels,
                status=WaypointStatus.PENDING,
                needs_reschedule=False,
                stop_type=waypoint.stop_type,
                stop_color=waypoint.stop_color,
                is_gap_stop=waypoint.is_gap_stop,
                gap_duration_minutes=waypoint.gap_duration_minutes,
                gap_description=waypoint.gap_description,
                pending_optimization=waypoint.pending_optimization,
            )
            for waypoint in list_waypoints(session, original.id)
        ]
        add_waypoints(session, copy, clones)
    logger.info(f"Copied route {route_id} to {copy.id}")
    return copy


def archive_route(session: Session, owner_id: str, route_id: int) -> Route:
    with transaction(session):
        route = route_store.get_owned_route(session, route_id, owner_id)
        route.is_archived = True
        route.archived_at = utcnow()
    return route


def unarchive_route(session: Session, owner_id: str, route_id: int) -> Route:
    with transaction(session):
        route = route_store.get_owned_route(session, route_id, owner_id)
        route.is_archived = False
        route.archived_at = None
    return route


def delete_route(session: Session, owner_id: str, route_id: int) -> None:
    """Hard delete; waypoints go with the route, reschedule history is kept."""
    with transaction(session):
        route = route_store.get_owned_route(session, route_id, owner_id)
        session.delete(route)
    logger.info(f"Deleted route {route_id}")


def generate_share_token(session: Session, owner_id: str, route_id: int) -> str:
    """Issue a new share token; any previous token stops working."""
    with transaction(session):
        route = route_store.get_owned_route(session, route_id, owner_id)
        route.share_token = str(uuid.uuid4())
        route.is_publicly_accessible = True
        route.shared_at = utcnow()
    return route.share_token


def revoke_share_token(session: Session, owner_id: str, route_id: int) -> None:
    with transaction(session):
        route = route_store.get_owned_route(session, route_id, owner_id)
        route.share_token = None
        route.is_publicly_accessible = False


def google_maps_url(session: Session, owner_id: str, route_id: int) -> str:
    route = route_store.get_owned_route(session, route_id, owner_id)
    return build_directions_url(list_waypoints(session, route.id))


def missed_waypoints(session: Session, owner_id: str) -> list[tuple[Waypoint, Route]]:
    """Missed stops across every route of the owner, for follow-up."""
    return route_store.list_missed_waypoints(session, owner_id)
