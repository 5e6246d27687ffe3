"""Route endpoints (owner scoped)."""

from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from ...models.domain import RescheduleStatus
from ...schemas.execution import RescheduleHistoryModel
from ...schemas.routes import (
    AddGapStopRequest,
    AddWaypointRequest,
    CopyRouteResponse,
    MapsUrlResponse,
    MissedWaypointModel,
    ReoptimizeRequest,
    ReoptimizeResponse,
    ReorderRequest,
    RouteCreateRequest,
    RouteDetailModel,
    RouteModel,
    ShareTokenResponse,
    WaypointModel,
)
from ...services.execution import service as execution_service
from ...services.oracle.models import DistanceOracle
from ...services.routing import service as route_service
from ..deps import get_current_owner, get_db, get_oracle
from ..errors import service_errors

router = APIRouter(prefix="/routes", tags=["routes"])


def _detail(route, waypoints) -> RouteDetailModel:
    return RouteDetailModel(
        route=RouteModel.model_validate(route),
        waypoints=[WaypointModel.model_validate(waypoint) for waypoint in waypoints],
    )


@router.post("", response_model=RouteDetailModel, status_code=status.HTTP_201_CREATED)
def create_route(
    payload: RouteCreateRequest,
    owner_id: str = Depends(get_current_owner),
    session: Session = Depends(get_db),
    oracle: Optional[DistanceOracle] = Depends(get_oracle),
) -> RouteDetailModel:
    with service_errors("create route"):
        route = route_service.create_route(session, owner_id, payload, oracle=oracle)
        return _detail(*route_service.get_route(session, owner_id, route.id))


@router.get("", response_model=List[RouteModel])
def list_routes(owner_id: str = Depends(get_current_owner), session: Session = Depends(get_db)) -> List[RouteModel]:
    with service_errors("list routes"):
        return [RouteModel.model_validate(route) for route in route_service.list_routes(session, owner_id)]


@router.get("/archived", response_model=List[RouteModel])
def list_archived_routes(
    owner_id: str = Depends(get_current_owner), session: Session = Depends(get_db)
) -> List[RouteModel]:
    with service_errors("list archived routes"):
        routes = route_service.list_routes(session, owner_id, archived=True)
        return [RouteModel.model_validate(route) for route in routes]


@router.get("/missed-waypoints", response_model=List[MissedWaypointModel])
def list_missed_waypoints(
    owner_id: str = Depends(get_current_owner), session: Session = Depends(get_db)
) -> List[MissedWaypointModel]:
    """Missed stops across all routes, for the follow-up dashboard."""
    with service_errors("list missed waypoints"):
        return [
            MissedWaypointModel(**WaypointModel.model_validate(waypoint).model_dump(), route_name=route.name)
            for waypoint, route in route_service.missed_waypoints(session, owner_id)
        ]


@router.get("/reschedule-history", response_model=List[RescheduleHistoryModel])
def list_reschedule_history(
    status_filter: Optional[RescheduleStatus] = Query(default=None, alias="status"),
    owner_id: str = Depends(get_current_owner),
    session: Session = Depends(get_db),
) -> List[RescheduleHistoryModel]:
    with service_errors("list reschedule history"):
        entries = execution_service.reschedule_history(session, owner_id, status_filter)
        return [RescheduleHistoryModel.model_validate(entry) for entry in entries]


@router.get("/{route_id}", response_model=RouteDetailModel)
def get_route(
    route_id: int, owner_id: str = Depends(get_current_owner), session: Session = Depends(get_db)
) -> RouteDetailModel:
    with service_errors("load route"):
        return _detail(*route_service.get_route(session, owner_id, route_id))


@router.delete("/{route_id}", status_code=status.HTTP_200_OK)
def delete_route(route_id: int, owner_id: str = Depends(get_current_owner), session: Session = Depends(get_db)) -> dict:
    with service_errors("delete route"):
        route_service.delete_route(session, owner_id, route_id)
        return {"success": True}


@router.post("/{route_id}/waypoints", response_model=WaypointModel, status_code=status.HTTP_201_CREATED)
def add_waypoint(
    route_id: int,
    payload: AddWaypointRequest,
    owner_id: str = Depends(get_current_owner),
    session: Session = Depends(get_db),
    oracle: Optional[DistanceOracle] = Depends(get_oracle),
) -> WaypointModel:
    """Append a stop; call ``/reoptimize`` to place it."""
    with service_errors("add waypoint"):
        waypoint = route_service.add_waypoint(
            session, owner_id, route_id, payload, recalculate_metrics=payload.recalculate, oracle=oracle
        )
        return WaypointModel.model_validate(waypoint)


@router.post("/{route_id}/gap-stops", response_model=WaypointModel, status_code=status.HTTP_201_CREATED)
def add_gap_stop(
    route_id: int,
    payload: AddGapStopRequest,
    owner_id: str = Depends(get_current_owner),
    session: Session = Depends(get_db),
    oracle: Optional[DistanceOracle] = Depends(get_oracle),
) -> WaypointModel:
    with service_errors("add gap stop"):
        waypoint = route_service.add_gap_stop(session, owner_id, route_id, payload, oracle=oracle)
        return WaypointModel.model_validate(waypoint)


@router.put("/{route_id}/waypoints/order", response_model=RouteDetailModel)
def reorder_waypoints(
    route_id: int,
    payload: ReorderRequest,
    owner_id: str = Depends(get_current_owner),
    session: Session = Depends(get_db),
    oracle: Optional[DistanceOracle] = Depends(get_oracle),
) -> RouteDetailModel:
    with service_errors("reorder waypoints"):
        route_service.reorder_waypoints(
            session,
            owner_id,
            route_id,
            [(item.waypoint_id, item.position) for item in payload.waypoints],
            expected_version=payload.expected_version,
            recalculate_metrics=payload.recalculate,
            oracle=oracle,
        )
        return _detail(*route_service.get_route(session, owner_id, route_id))


@router.post("/{route_id}/recalculate", response_model=RouteModel)
def recalculate_route(
    route_id: int,
    owner_id: str = Depends(get_current_owner),
    session: Session = Depends(get_db),
    oracle: Optional[DistanceOracle] = Depends(get_oracle),
) -> RouteModel:
    with service_errors("recalculate route"):
        route_service.recalculate_route(session, owner_id, route_id, oracle=oracle)
        route, _ = route_service.get_route(session, owner_id, route_id)
        return RouteModel.model_validate(route)


@router.post("/{route_id}/reoptimize", response_model=ReoptimizeResponse)
def reoptimize_route(
    route_id: int,
    payload: Optional[ReoptimizeRequest] = None,
    owner_id: str = Depends(get_current_owner),
    session: Session = Depends(get_db),
    oracle: Optional[DistanceOracle] = Depends(get_oracle),
) -> ReoptimizeResponse:
    full = payload.full if payload is not None else False
    with service_errors("re-optimize route"):
        report = route_service.reoptimize_route(session, owner_id, route_id, full=full, oracle=oracle)
        return ReoptimizeResponse(
            optimized_count=report.optimized_count,
            message=report.message,
            total_distance=report.total_distance,
            total_duration=report.total_duration,
        )


@router.post("/{route_id}/copy", response_model=CopyRouteResponse, status_code=status.HTTP_201_CREATED)
def copy_route(
    route_id: int, owner_id: str = Depends(get_current_owner), session: Session = Depends(get_db)
) -> CopyRouteResponse:
    with service_errors("copy route"):
        copy = route_service.copy_route(session, owner_id, route_id)
        return CopyRouteResponse(route_id=copy.id)


@router.post("/{route_id}/archive", response_model=RouteModel)
def archive_route(route_id: int, owner_id: str = Depends(get_current_owner), session: Session = Depends(get_db)) -> RouteModel:
    with service_errors("archive route"):
        return RouteModel.model_validate(route_service.archive_route(session, owner_id, route_id))


@router.post("/{route_id}/unarchive", response_model=RouteModel)
def unarchive_route(
    route_id: int, owner_id: str = Depends(get_current_owner), session: Session = Depends(get_db)
) -> RouteModel:
    with service_errors("unarchive route"):
        return RouteModel.model_validate(route_service.unarchive_route(session, owner_id, route_id))


@router.post("/{route_id}/share", response_model=ShareTokenResponse)
def generate_share_token(
    route_id: int, owner_id: str = Depends(get_current_owner), session: Session = Depends(get_db)
) -> ShareTokenResponse:
    with service_errors("share route"):
        return ShareTokenResponse(share_token=route_service.generate_share_token(session, owner_id, route_id))


@router.delete("/{route_id}/share", status_code=status.HTTP_200_OK)
def revoke_share_token(route_id: int, owner_id: str = Depends(get_current_owner), session: Session = Depends(get_db)) -> dict:
    with service_errors("revoke share link"):
        route_service.revoke_share_token(session, owner_id, route_id)
        return {"success": True}


@router.get("/{route_id}/maps-url", response_model=MapsUrlResponse)
def google_maps_url(
    route_id: int, owner_id: str = Depends(get_current_owner), session: Session = Depends(get_db)
) -> MapsUrlResponse:
    with service_errors("build Google Maps link"):
        return MapsUrlResponse(url=route_service.google_maps_url(session, owner_id, route_id))
