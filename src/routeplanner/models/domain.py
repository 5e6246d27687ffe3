"""Domain enums and typed records shared by the ORM, services and schemas."""

from __future__ import annotations

import enum
from typing import Any, Iterable, Optional

from pydantic import BaseModel, Field, TypeAdapter


class WaypointStatus(str, enum.Enum):
    """Execution lifecycle of a single stop."""

    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETE = "complete"
    MISSED = "missed"

    @property
    def is_terminal(self) -> bool:
        return self in (WaypointStatus.COMPLETE, WaypointStatus.MISSED)


class StopType(str, enum.Enum):
    PICKUP = "pickup"
    DELIVERY = "delivery"
    MEETING = "meeting"
    VISIT = "visit"
    OTHER = "other"


class RescheduleStatus(str, enum.Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    RE_MISSED = "re_missed"
    CANCELLED = "cancelled"


class PhoneNumber(BaseModel):
    value: str = Field(..., min_length=1)
    type: Optional[str] = None
    label: Optional[str] = None


class ContactLabel(BaseModel):
    name: str = Field(..., min_length=1)
    color: Optional[str] = None


_phone_numbers = TypeAdapter(list[PhoneNumber])
_contact_labels = TypeAdapter(list[ContactLabel])


def dump_phone_numbers(values: Optional[Iterable[Any]]) -> Optional[list[dict]]:
    """Validate phone numbers at the boundary and return JSON-ready dicts."""
    if values is None:
        return None
    return [item.model_dump() for item in _phone_numbers.validate_python(list(values))]


def dump_contact_labels(values: Optional[Iterable[Any]]) -> Optional[list[dict]]:
    if values is None:
        return None
    return [item.model_dump() for item in _contact_labels.validate_python(list(values))]
