"""Relational schema for routes, waypoints and reschedule history."""

from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Optional

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    Enum as SQLEnum,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

from .domain import RescheduleStatus, StopType, WaypointStatus


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _enum_values(enum_cls):
    return [member.value for member in enum_cls]


class Base(DeclarativeBase):
    pass


class Route(Base):
    """A named, owned, shareable ordered collection of waypoints."""

    __tablename__ = "routes"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    owner_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    total_distance: Mapped[Optional[int]] = mapped_column(Integer, nullable=True, comment="Meters")
    total_duration: Mapped[Optional[int]] = mapped_column(Integer, nullable=True, comment="Seconds")
    optimized: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    starting_point_address: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    scheduled_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    is_archived: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    archived_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    share_token: Mapped[Optional[str]] = mapped_column(String(64), nullable=True, unique=True)
    is_publicly_accessible: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    shared_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )

    waypoints: Mapped[list["Waypoint"]] = relationship(
        back_populates="route",
        cascade="all, delete-orphan",
        order_by="Waypoint.position",
        passive_deletes=True,
    )

    __table_args__ = (
        CheckConstraint("total_distance IS NULL OR total_distance >= 0", name="check_route_distance_positive"),
        CheckConstraint("total_duration IS NULL OR total_duration >= 0", name="check_route_duration_positive"),
        Index("idx_routes_owner_archived", "owner_id", "is_archived"),
    )

    def __repr__(self):
        return f"<Route(id={self.id}, name='{self.name}', owner='{self.owner_id}')>"


class Waypoint(Base):
    """One stop within a route; ``position`` defines the visiting order."""

    __tablename__ = "route_waypoints"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    route_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("routes.id", ondelete="CASCADE"), nullable=False, index=True
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    execution_order: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    contact_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    address: Mapped[str] = mapped_column(Text, nullable=False)
    latitude: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    longitude: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    phone_numbers: Mapped[Optional[list]] = mapped_column(JSON, nullable=True, comment="[{value, type, label}]")
    contact_labels: Mapped[Optional[list]] = mapped_column(JSON, nullable=True, comment="[{name, color}]")
    status: Mapped[WaypointStatus] = mapped_column(
        SQLEnum(WaypointStatus, name="waypoint_status_enum", values_callable=_enum_values),
        nullable=False,
        default=WaypointStatus.PENDING,
    )
    missed_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    execution_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    rescheduled_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    needs_reschedule: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    stop_type: Mapped[StopType] = mapped_column(
        SQLEnum(StopType, name="stop_type_enum", values_callable=_enum_values),
        nullable=False,
        default=StopType.OTHER,
    )
    stop_color: Mapped[Optional[str]] = mapped_column(String(16), nullable=True)
    is_gap_stop: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    gap_duration_minutes: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    gap_description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    pending_optimization: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, comment="Added after the last optimization"
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)

    route: Mapped[Route] = relationship(back_populates="waypoints")

    __table_args__ = (
        CheckConstraint("position >= 0", name="check_waypoint_position_positive"),
        CheckConstraint("latitude IS NULL OR (latitude >= -90 AND latitude <= 90)", name="check_waypoint_latitude_range"),
        CheckConstraint(
            "longitude IS NULL OR (longitude >= -180 AND longitude <= 180)", name="check_waypoint_longitude_range"
        ),
        Index("idx_waypoints_route_position", "route_id", "position"),
        Index("idx_waypoints_status", "status"),
    )

    @property
    def has_coordinates(self) -> bool:
        return self.latitude is not None and self.longitude is not None

    def __repr__(self):
        return f"<Waypoint(id={self.id}, route_id={self.route_id}, position={self.position}, status={self.status.value})>"


class RescheduleHistory(Base):
    """Read model of reschedule events; never authoritative for waypoint status."""

    __tablename__ = "reschedule_history"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    owner_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    waypoint_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("route_waypoints.id", ondelete="SET NULL"), nullable=True, index=True
    )
    route_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("routes.id", ondelete="SET NULL"), nullable=True, index=True
    )
    route_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    contact_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    address: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    original_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    rescheduled_date: Mapped[date] = mapped_column(Date, nullable=False)
    missed_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    status: Mapped[RescheduleStatus] = mapped_column(
        SQLEnum(RescheduleStatus, name="reschedule_status_enum", values_callable=_enum_values),
        nullable=False,
        default=RescheduleStatus.PENDING,
    )
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)

