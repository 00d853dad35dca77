"""Panel Tracker Pydantic models for type-safe data handling.

These are transient in-memory snapshots of rows owned by the database;
ORM rows convert with ``Model.model_validate(row)``.
"""

from __future__ import annotations

from datetime import date, datetime
from enum import Enum
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field


class ProjectStatus(str, Enum):
    """Project lifecycle status as stored in ``projects.status``."""

    ACTIVE = "active"
    COMPLETED = "completed"
    ON_HOLD = "on-hold"
    INACTIVE = "inactive"


class EntityKind(str, Enum):
    """Entities the bulk importers may resolve or create by name."""

    CUSTOMER = "customer"
    PROJECT = "project"
    BUILDING = "building"
    FACADE = "facade"


class _Snapshot(BaseModel):
    model_config = ConfigDict(from_attributes=True)


class Customer(_Snapshot):
    id: UUID = Field(default_factory=uuid4)
    name: str
    email: str | None = None
    phone: str | None = None


class Project(_Snapshot):
    id: UUID = Field(default_factory=uuid4)
    name: str
    customer_id: UUID | None = None
    location: str | None = None
    start_date: date | None = None
    end_date: date | None = None
    status: ProjectStatus = ProjectStatus.ACTIVE
    estimated_cost: float | None = None
    estimated_panels: int | None = None


class Building(_Snapshot):
    id: UUID = Field(default_factory=uuid4)
    name: str
    project_id: UUID


class Facade(_Snapshot):
    id: UUID = Field(default_factory=uuid4)
    name: str
    building_id: UUID


class Panel(_Snapshot):
    """Panel snapshot. ``status`` and ``type`` are codes from ``paneltracker.codes``."""

    id: UUID = Field(default_factory=uuid4)
    name: str
    type: int = 0
    status: int = 0
    project_id: UUID | None = None
    building_id: UUID | None = None
    facade_id: UUID | None = None

    issue_transmittal_no: str | None = None
    drawing_number: str | None = None
    description: str | None = None
    unit_rate_qr_m2: float | None = None
    ifp_qty_nos: int | None = None
    ifp_qty_area_sm: float | None = None
    weight: float | None = None
    dimension: str | None = None
    issued_for_production_date: date | None = None


class PanelStatusHistory(_Snapshot):
    id: UUID = Field(default_factory=uuid4)
    panel_id: UUID
    status: int
    user_id: UUID | None = None
    created_at: datetime | None = None
    image_url: str | None = None
    notes: str | None = None


class User(_Snapshot):
    id: UUID = Field(default_factory=uuid4)
    name: str
    email: str | None = None
    role: str = "Customer"
