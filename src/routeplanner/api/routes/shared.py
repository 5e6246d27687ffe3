"""Share-link endpoints; the token is the only credential."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ...schemas.execution import RescheduleRequest, StatusUpdateRequest
from ...schemas.routes import SharedRouteDetailModel, SharedRouteModel, WaypointModel
from ...services.execution import service as execution_service
from ...services.routing import service as route_service
from ..deps import get_db
from ..errors import service_errors

router = APIRouter(prefix="/shared", tags=["shared"])


@router.get("/{share_token}", response_model=SharedRouteDetailModel)
def get_shared_route(share_token: str, session: Session = Depends(get_db)) -> SharedRouteDetailModel:
    with service_errors("load shared route"):
        route, waypoints = route_service.get_shared_route(session, share_token)
        return SharedRouteDetailModel(
            route=SharedRouteModel.model_validate(route),
            waypoints=[WaypointModel.model_validate(waypoint) for waypoint in waypoints],
        )


@router.patch("/{share_token}/waypoints/{waypoint_id}/status", response_model=WaypointModel)
def update_shared_waypoint_status(
    share_token: str,
    waypoint_id: int,
    payload: StatusUpdateRequest,
    session: Session = Depends(get_db),
) -> WaypointModel:
    with service_errors("update waypoint status"):
        waypoint = execution_service.update_shared_waypoint_status(session, share_token, waypoint_id, payload)
        return WaypointModel.model_validate(waypoint)


@router.post("/{share_token}/waypoints/{waypoint_id}/reschedule", response_model=WaypointModel)
def reschedule_shared_waypoint(
    share_token: str,
    waypoint_id: int,
    payload: RescheduleRequest,
    session: Session = Depends(get_db),
) -> WaypointModel:
    with service_errors("reschedule waypoint"):
        waypoint = execution_service.reschedule_shared_waypoint(
            session, share_token, waypoint_id, payload.rescheduled_date
        )
        return WaypointModel.model_validate(waypoint)
