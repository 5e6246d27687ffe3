"""Waypoint endpoints (owner scoped)."""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from ...schemas.execution import RescheduleRequest, StatusUpdateRequest
from ...schemas.routes import RouteModel, UpdateAddressRequest, UpdateExecutionOrderRequest, WaypointModel
from ...services.execution import service as execution_service
from ...services.oracle.models import DistanceOracle
from ...services.routing import service as route_service
from ..deps import get_current_owner, get_db, get_oracle
from ..errors import service_errors

router = APIRouter(prefix="/waypoints", tags=["waypoints"])


@router.delete("/{waypoint_id}", response_model=RouteModel, status_code=status.HTTP_200_OK)
def remove_waypoint(
    waypoint_id: int,
    recalculate: bool = Query(default=False),
    owner_id: str = Depends(get_current_owner),
    session: Session = Depends(get_db),
    oracle: Optional[DistanceOracle] = Depends(get_oracle),
) -> RouteModel:
    with service_errors("remove waypoint"):
        route = route_service.remove_waypoint(
            session, owner_id, waypoint_id, recalculate_metrics=recalculate, oracle=oracle
        )
        return RouteModel.model_validate(route)


@router.patch("/{waypoint_id}/address", response_model=WaypointModel)
def update_waypoint_address(
    waypoint_id: int,
    payload: UpdateAddressRequest,
    owner_id: str = Depends(get_current_owner),
    session: Session = Depends(get_db),
    oracle: Optional[DistanceOracle] = Depends(get_oracle),
) -> WaypointModel:
    with service_errors("update waypoint address"):
        waypoint = route_service.update_waypoint_address(
            session,
            owner_id,
            waypoint_id,
            payload.address,
            contact_name=payload.contact_name,
            recalculate_metrics=payload.recalculate,
            oracle=oracle,
        )
        return WaypointModel.model_validate(waypoint)


@router.patch("/{waypoint_id}/execution-order", response_model=WaypointModel)
def update_execution_order(
    waypoint_id: int,
    payload: UpdateExecutionOrderRequest,
    owner_id: str = Depends(get_current_owner),
    session: Session = Depends(get_db),
) -> WaypointModel:
    with service_errors("update execution order"):
        waypoint = route_service.set_execution_order(session, owner_id, waypoint_id, payload.execution_order)
        return WaypointModel.model_validate(waypoint)


@router.patch("/{waypoint_id}/status", response_model=WaypointModel)
def update_waypoint_status(
    waypoint_id: int,
    payload: StatusUpdateRequest,
    owner_id: str = Depends(get_current_owner),
    session: Session = Depends(get_db),
) -> WaypointModel:
    with service_errors("update waypoint status"):
        waypoint = execution_service.update_waypoint_status(session, owner_id, waypoint_id, payload)
        return WaypointModel.model_validate(waypoint)


@router.post("/{waypoint_id}/reschedule", response_model=WaypointModel)
def reschedule_waypoint(
    waypoint_id: int,
    payload: RescheduleRequest,
    owner_id: str = Depends(get_current_owner),
    session: Session = Depends(get_db),
) -> WaypointModel:
    with service_errors("reschedule waypoint"):
        waypoint = execution_service.reschedule_waypoint(session, owner_id, waypoint_id, payload.rescheduled_date)
        return WaypointModel.model_validate(waypoint)
