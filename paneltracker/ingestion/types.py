"""Type definitions for bulk import operations."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ImportState(str, Enum):
    """Lifecycle of one bulk import run."""

    IDLE = "idle"
    PARSED = "parsed"
    VALIDATED = "validated"
    IMPORTING = "importing"
    DONE = "done"


class ImportKind(str, Enum):
    PANELS = "panels"
    PROJECTS = "projects"
    PANEL_HISTORIES = "panel_histories"


class ImportMode(str, Enum):
    """How history rows meet entries already in the store."""

    INSERT = "insert"
    UPDATE_EXISTING = "update_existing"


@dataclass
class PanelImportRow:
    """One panel spreadsheet row, cells trimmed, blanks as None.

    Numeric cells stay as text; the validator decides whether they parse.
    """

    row_number: int
    project_name: str | None = None
    name: str | None = None
    type: str | None = None
    status: str | None = None
    date: str | None = None
    issue_transmittal_no: str | None = None
    dwg_no: str | None = None
    description: str | None = None
    unit_qty: str | None = None
    ifp_qty_nos: str | None = None
    ifp_qty: str | None = None
    weight: str | None = None
    dimension: str | None = None
    building_name: str | None = None
    facade_name: str | None = None
    customer_name: str | None = None

    @property
    def label(self) -> str:
        return self.name or f"row {self.row_number}"


@dataclass
class ProjectImportRow:
    row_number: int
    name: str | None = None
    customer_name: str | None = None
    location: str | None = None
    start_date: str | None = None
    end_date: str | None = None
    status: str | None = None
    estimated_cost: str | None = None
    estimated_panels: str | None = None

    @property
    def label(self) -> str:
        return self.name or f"row {self.row_number}"


@dataclass
class PanelHistoryImportRow:
    row_number: int
    panel_name: str | None = None
    status: str | None = None
    changed_by: str | None = None
    created_at: str | None = None
    image_url: str | None = None
    notes: str | None = None

    @property
    def label(self) -> str:
        return self.panel_name or f"row {self.row_number}"


@dataclass
class ValidationResult:
    """Outcome of validating one row; warnings never block import."""

    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors


@dataclass
class RowResult:
    """Outcome of importing one row (or one panel's history group)."""

    label: str
    success: bool
    message: str
    errors: list[str] = field(default_factory=list)
    created: bool = False
    record_id: Any = None


@dataclass
class ImportSummary:
    """Aggregate tally of an import run."""

    kind: ImportKind
    total_rows: int
    valid_rows: int
    results: list[RowResult] = field(default_factory=list)
    duration_seconds: float = 0.0

    @property
    def successful(self) -> int:
        return sum(1 for r in self.results if r.success)

    @property
    def failed(self) -> int:
        return sum(1 for r in self.results if not r.success)

    @property
    def message(self) -> str:
        return f"Import completed: {self.successful} successful, {self.failed} failed"
