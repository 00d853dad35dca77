"""SQLAlchemy async database models for Panel Tracker.

Maps to the hosted PostgreSQL schema. Name uniqueness for customers,
projects, buildings (per project) and facades (per building) is enforced by
the import reconciler rather than by constraints.
"""

from __future__ import annotations

from datetime import date, datetime
from uuid import UUID, uuid4

from sqlalchemy import (
    Date,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    SmallInteger,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.sql import func


class Base(DeclarativeBase):
    """Base class for all models."""

    pass


class UserModel(Base):
    """Application user with a role string (see ``access.permissions``)."""

    __tablename__ = "users"

    id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    name: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    email: Mapped[str | None] = mapped_column(Text)
    role: Mapped[str] = mapped_column(Text, nullable=False, default="Customer")
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )


class CustomerModel(Base):
    __tablename__ = "customers"

    id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    name: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    email: Mapped[str | None] = mapped_column(Text)
    phone: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )


class ProjectModel(Base):
    __tablename__ = "projects"

    id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    name: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    customer_id: Mapped[UUID | None] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("customers.id"), index=True
    )
    location: Mapped[str | None] = mapped_column(Text)
    start_date: Mapped[date | None] = mapped_column(Date)
    end_date: Mapped[date | None] = mapped_column(Date)
    status: Mapped[str] = mapped_column(Text, nullable=False, default="active")
    estimated_cost: Mapped[float | None] = mapped_column(Float)
    estimated_panels: Mapped[int | None] = mapped_column(Integer)
    user_id: Mapped[UUID | None] = mapped_column(Uuid(as_uuid=True))
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )


class BuildingModel(Base):
    __tablename__ = "buildings"

    id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    project_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("projects.id"), nullable=False, index=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )


class FacadeModel(Base):
    __tablename__ = "facades"

    id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    building_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("buildings.id"), nullable=False, index=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )


class PanelModel(Base):
    """Manufactured panel. ``status`` 0-11 and ``type`` 0-4 are codes."""

    __tablename__ = "panels"

    id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    type: Mapped[int] = mapped_column(SmallInteger, nullable=False, default=0)
    status: Mapped[int] = mapped_column(SmallInteger, nullable=False, default=0)

    project_id: Mapped[UUID | None] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("projects.id"), index=True
    )
    building_id: Mapped[UUID | None] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("buildings.id"), index=True
    )
    facade_id: Mapped[UUID | None] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("facades.id"), index=True
    )

    issue_transmittal_no: Mapped[str | None] = mapped_column(Text)
    drawing_number: Mapped[str | None] = mapped_column(Text)
    description: Mapped[str | None] = mapped_column(Text)
    unit_rate_qr_m2: Mapped[float | None] = mapped_column(Float)
    ifp_qty_nos: Mapped[int | None] = mapped_column(Integer)
    ifp_qty_area_sm: Mapped[float | None] = mapped_column(Float)
    weight: Mapped[float | None] = mapped_column(Float)
    dimension: Mapped[str | None] = mapped_column(Text)
    issued_for_production_date: Mapped[date | None] = mapped_column(Date)

    user_id: Mapped[UUID | None] = mapped_column(Uuid(as_uuid=True))
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    __table_args__ = (
        Index("idx_panels_name", "name"),  # upsert lookup by name
        Index("idx_panels_project_status", "project_id", "status"),
    )


class PanelStatusHistoryModel(Base):
    """Append-only status change log per panel."""

    __tablename__ = "panel_status_histories"

    id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    panel_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("panels.id"), nullable=False, index=True
    )
    status: Mapped[int] = mapped_column(SmallInteger, nullable=False)
    user_id: Mapped[UUID | None] = mapped_column(Uuid(as_uuid=True))
    image_url: Mapped[str | None] = mapped_column(Text)
    notes: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )


class UserProjectAccessModel(Base):
    """Grants a non-administrator user visibility of one project."""

    __tablename__ = "user_project_access"

    id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    user_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("users.id"), nullable=False, index=True
    )
    project_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("projects.id"), nullable=False, index=True
    )

    __table_args__ = (UniqueConstraint("user_id", "project_id", name="uq_user_project"),)
