"""Route and waypoint request/response schemas."""

from __future__ import annotations

from datetime import date, datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from ..models.domain import ContactLabel, PhoneNumber, StopType, WaypointStatus


class WaypointInput(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    address: str = Field(..., min_length=1)
    contact_name: Optional[str] = None
    latitude: Optional[float] = Field(None, ge=-90, le=90)
    longitude: Optional[float] = Field(None, ge=-180, le=180)
    phone_numbers: Optional[List[PhoneNumber]] = None
    contact_labels: Optional[List[ContactLabel]] = None
    stop_type: Optional[StopType] = None
    stop_color: Optional[str] = None


class RouteCreateRequest(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(..., min_length=1, max_length=255)
    waypoints: List[WaypointInput] = Field(..., min_length=2)
    optimize: bool = Field(
        default=True,
        description="Let the routing service choose the order of the intermediate stops.",
    )
    starting_point_address: Optional[str] = Field(
        default=None,
        description="Dedicated start address, prepended as the first stop.",
    )
    notes: Optional[str] = None
    scheduled_date: Optional[date] = None


class AddWaypointRequest(WaypointInput):
    recalculate: bool = False


class AddGapStopRequest(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    gap_name: str = Field(..., min_length=1)
    gap_duration_minutes: int = Field(..., gt=0)
    gap_description: Optional[str] = None
    recalculate: bool = False


class ReorderItem(BaseModel):
    waypoint_id: int
    position: int = Field(..., ge=0)


class ReorderRequest(BaseModel):
    waypoints: List[ReorderItem] = Field(..., min_length=1)
    expected_version: Optional[int] = Field(
        default=None,
        description="Reject the reorder if the route changed since this version was read.",
    )
    recalculate: bool = False


class UpdateAddressRequest(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    address: str = Field(..., min_length=1)
    contact_name: Optional[str] = None
    recalculate: bool = False


class UpdateExecutionOrderRequest(BaseModel):
    execution_order: int = Field(..., ge=0)


class ReoptimizeRequest(BaseModel):
    full: bool = False


class WaypointModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    route_id: int
    position: int
    execution_order: Optional[int] = None
    contact_name: Optional[str] = None
    address: str
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    phone_numbers: Optional[List[PhoneNumber]] = None
    contact_labels: Optional[List[ContactLabel]] = None
    status: WaypointStatus
    missed_reason: Optional[str] = None
    execution_notes: Optional[str] = None
    completed_at: Optional[datetime] = None
    rescheduled_date: Optional[date] = None
    needs_reschedule: bool = False
    stop_type: StopType
    stop_color: Optional[str] = None
    is_gap_stop: bool = False
    gap_duration_minutes: Optional[int] = None
    gap_description: Optional[str] = None
    pending_optimization: bool = False
    created_at: datetime


class RouteModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    owner_id: str
    name: str
    notes: Optional[str] = None
    total_distance: Optional[int] = None
    total_duration: Optional[int] = None
    optimized: bool
    starting_point_address: Optional[str] = None
    scheduled_date: Optional[date] = None
    is_archived: bool
    archived_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    share_token: Optional[str] = None
    is_publicly_accessible: bool
    shared_at: Optional[datetime] = None
    version: int
    created_at: datetime
    updated_at: datetime


class RouteDetailModel(BaseModel):
    route: RouteModel
    waypoints: List[WaypointModel]


class SharedRouteModel(BaseModel):
    """Route as seen through a share link; the token itself is not echoed."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    notes: Optional[str] = None
    total_distance: Optional[int] = None
    total_duration: Optional[int] = None
    scheduled_date: Optional[date] = None
    completed_at: Optional[datetime] = None


class SharedRouteDetailModel(BaseModel):
    route: SharedRouteModel
    waypoints: List[WaypointModel]


class ReoptimizeResponse(BaseModel):
    optimized_count: int
    message: str
    total_distance: int
    total_duration: int


class ShareTokenResponse(BaseModel):
    share_token: str


class MapsUrlResponse(BaseModel):
    url: str


class MissedWaypointModel(WaypointModel):
    route_name: str


class CopyRouteResponse(BaseModel):
    route_id: int
