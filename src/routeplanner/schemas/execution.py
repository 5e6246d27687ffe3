"""Execution (status, reschedule) request/response schemas."""

from __future__ import annotations

from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from ..models.domain import RescheduleStatus, WaypointStatus


class StatusUpdateRequest(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    status: WaypointStatus
    missed_reason: Optional[str] = Field(default=None, description="Required when status is 'missed'.")
    execution_notes: Optional[str] = None


class RescheduleRequest(BaseModel):
    rescheduled_date: date


class RescheduleHistoryModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    waypoint_id: Optional[int] = None
    route_id: Optional[int] = None
    route_name: Optional[str] = None
    contact_name: Optional[str] = None
    address: Optional[str] = None
    original_date: Optional[date] = None
    rescheduled_date: date
    missed_reason: Optional[str] = None
    status: RescheduleStatus
    completed_at: Optional[datetime] = None
    created_at: datetime
