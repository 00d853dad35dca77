"""Row validators for the bulk importers.

Pure functions: one ``ValidationResult`` per row, order preserved. A row
with no errors is importable whatever its warnings. Entity existence is not
checked here; the reconciler resolves or creates referenced entities during
the import itself.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from typing import Any

from paneltracker.codes import PANEL_STATUSES, PANEL_TYPES, PROJECT_STATUSES, status_code, type_code
from paneltracker.ingestion.dates import parse_date, parse_datetime
from paneltracker.ingestion.types import (
    PanelHistoryImportRow,
    PanelImportRow,
    ProjectImportRow,
    ValidationResult,
)

DATE_FORMAT_HINT = "use DD/MM/YYYY, DD.MM.YYYY, or YYYY-MM-DD"


def parse_number(text: str | None) -> float | None:
    """Parse a numeric cell; None when blank or not a finite number."""
    if text is None or not text.strip():
        return None
    try:
        value = float(text.strip())
    except ValueError:
        return None
    if value != value or value in (float("inf"), float("-inf")):
        return None
    return value


def _check_number(
    result: ValidationResult, text: str | None, message: str, non_negative: bool = False
) -> None:
    if text is None or not text.strip():
        return
    value = parse_number(text)
    if value is None:
        result.errors.append(message)
    elif non_negative and value < 0:
        result.errors.append(message.replace("must be a number", "must be zero or greater"))


def validate_panel_row(row: PanelImportRow) -> ValidationResult:
    result = ValidationResult()

    if not (row.name or "").strip():
        result.errors.append("Panel name is required")

    if row.date and parse_date(row.date) is None:
        result.errors.append(f"Invalid date format ({DATE_FORMAT_HINT})")

    if row.type and type_code(row.type) is None:
        result.errors.append(
            f'Invalid panel type "{row.type}". Valid types are: {", ".join(PANEL_TYPES)}'
        )

    if row.status and status_code(row.status) is None:
        result.warnings.append(
            f'Status "{row.status}" is not a standard value and will import as '
            f'"{PANEL_STATUSES[0]}"'
        )

    _check_number(result, row.unit_qty, "Unit quantity must be a number")
    _check_number(result, row.ifp_qty_nos, "IFP quantity numbers must be a number")
    _check_number(result, row.ifp_qty, "IFP quantity must be a number")
    _check_number(result, row.weight, "Weight must be a number", non_negative=True)

    if row.facade_name and not row.building_name:
        result.warnings.append(
            f'Facade "{row.facade_name}" has no building and will be ignored'
        )

    return result


def validate_project_row(row: ProjectImportRow) -> ValidationResult:
    result = ValidationResult()

    if not (row.name or "").strip():
        result.errors.append("Project name is required")

    if row.start_date and parse_date(row.start_date) is None:
        result.errors.append(f"Invalid start date format ({DATE_FORMAT_HINT})")
    if row.end_date and parse_date(row.end_date) is None:
        result.errors.append(f"Invalid end date format ({DATE_FORMAT_HINT})")

    start = parse_date(row.start_date)
    end = parse_date(row.end_date)
    if start and end and end < start:
        result.warnings.append("End date is before start date")

    if row.status and row.status.strip().lower() not in PROJECT_STATUSES:
        result.warnings.append(
            f'Status "{row.status}" is not a standard value and will import as "active"'
        )

    _check_number(result, row.estimated_cost, "Estimated cost must be a number", non_negative=True)
    _check_number(
        result, row.estimated_panels, "Estimated panels must be a number", non_negative=True
    )

    return result


def validate_history_row(row: PanelHistoryImportRow) -> ValidationResult:
    result = ValidationResult()

    if not (row.panel_name or "").strip():
        result.errors.append("Panel name is required")

    if not (row.status or "").strip():
        result.errors.append("Status is required")
    elif status_code(row.status) is None:
        result.errors.append(
            f'Invalid status "{row.status}". Valid statuses: {", ".join(PANEL_STATUSES)}'
        )

    if row.created_at and parse_datetime(row.created_at) is None:
        result.errors.append(
            "Invalid created_at format (supports: YYYY-MM-DD, DD/MM/YYYY, "
            "DD.MM.YYYY, optional HH:MM:SS, or Excel date format)"
        )

    return result


def validate_rows(
    rows: Sequence[Any], validator: Callable[[Any], ValidationResult]
) -> list[ValidationResult]:
    """Validate each row independently, keeping sheet order."""
    return [validator(row) for row in rows]
