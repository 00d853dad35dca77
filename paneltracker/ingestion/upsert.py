"""Upsert-by-name for panels and projects.

Re-importing a sheet is safe: a row whose name already exists updates that
record in place (same id) instead of inserting a duplicate.
"""

from __future__ import annotations

import logging
from typing import Any
from uuid import UUID

from paneltracker.codes import (
    DEFAULT_PROJECT_STATUS,
    PROJECT_STATUSES,
    map_status_to_code,
    map_type_to_code,
)
from paneltracker.db.models import PanelModel, PanelStatusHistoryModel, ProjectModel
from paneltracker.ingestion.dates import normalize_date
from paneltracker.ingestion.reconciler import EntityReconciler, ResolutionError
from paneltracker.ingestion.types import PanelImportRow, ProjectImportRow, RowResult
from paneltracker.ingestion.validation import parse_number
from paneltracker.models import EntityKind, Panel, Project

logger = logging.getLogger(__name__)


def _int(text: str | None) -> int | None:
    value = parse_number(text)
    return int(value) if value is not None else None


def _text(text: str | None) -> str | None:
    return text.strip() if text and text.strip() else None


def panel_values(
    row: PanelImportRow,
    project_id: UUID,
    building_id: UUID | None,
    facade_id: UUID | None,
) -> dict[str, Any]:
    """Column values for one panel row; every mutable field is included."""
    return {
        "name": row.name.strip(),
        "type": map_type_to_code(row.type),
        "status": map_status_to_code(row.status),
        "project_id": project_id,
        "building_id": building_id,
        "facade_id": facade_id,
        "issue_transmittal_no": _text(row.issue_transmittal_no),
        "drawing_number": _text(row.dwg_no),
        "description": _text(row.description),
        "unit_rate_qr_m2": parse_number(row.unit_qty),
        "ifp_qty_nos": _int(row.ifp_qty_nos),
        "ifp_qty_area_sm": parse_number(row.ifp_qty),
        "weight": parse_number(row.weight),
        "dimension": _text(row.dimension),
        "issued_for_production_date": normalize_date(row.date),
    }


async def upsert_panel(
    reconciler: EntityReconciler,
    row: PanelImportRow,
    user_id: UUID | None = None,
) -> RowResult:
    """Insert or update one panel, resolving its project/building/facade.

    A status history entry is appended when the panel is inserted or its
    status code changes.

    Raises:
        ResolutionError: Row has no project name
        StoreError: A create/update call failed; the panel and its history entry
            are then both left unwritten
    """
    context = reconciler.context
    repo = reconciler.repo

    project_id, building_id, facade_id = await reconciler.resolve_panel_location(
        row.project_name, row.building_name, row.facade_name, row.customer_name
    )
    values = panel_values(row, project_id, building_id, facade_id)

    existing = context.find_panel(values["name"])
    created = existing is None
    status_changed = created or existing.status != values["status"]

    def status_entry(saved: PanelModel) -> list[PanelStatusHistoryModel]:
        if not status_changed:
            return []
        return [PanelStatusHistoryModel(panel_id=saved.id, status=saved.status, user_id=user_id)]

    # Panel and its history entry commit together or not at all
    if created:
        saved = await repo.save(
            PanelModel, {**values, "user_id": user_id}, dependents=status_entry
        )
    else:
        saved = await repo.save(
            PanelModel, values, row_id=existing.id, dependents=status_entry
        )

    panel = Panel.model_validate(saved)
    context.replace_panel(panel)

    action = "Created" if created else "Updated"
    return RowResult(
        label=panel.name,
        success=True,
        message=f'{action} panel "{panel.name}"',
        created=created,
        record_id=panel.id,
    )


def project_values(row: ProjectImportRow) -> dict[str, Any]:
    status = (row.status or "").strip().lower()
    return {
        "name": row.name.strip(),
        "location": _text(row.location),
        "start_date": normalize_date(row.start_date),
        "end_date": normalize_date(row.end_date),
        "status": status if status in PROJECT_STATUSES else DEFAULT_PROJECT_STATUS,
        "estimated_cost": parse_number(row.estimated_cost),
        "estimated_panels": _int(row.estimated_panels),
    }


async def upsert_project(
    reconciler: EntityReconciler,
    row: ProjectImportRow,
    user_id: UUID | None = None,
) -> RowResult:
    """Insert or update one project matched by case-insensitive name.

    The customer is resolved (or created with placeholder contacts) only when
    the row names one or the project is new; an existing project keeps its
    customer when the row leaves it blank.
    """
    if not (row.name or "").strip():
        raise ResolutionError("Project name is required")

    context = reconciler.context
    values = project_values(row)

    existing = context.find(EntityKind.PROJECT, values["name"])
    customer_name = (row.customer_name or "").strip()
    if customer_name or existing is None:
        values["customer_id"] = await reconciler.resolve_customer(customer_name or values["name"])

    if existing is not None:
        saved = await reconciler.repo.update(ProjectModel, existing.id, values)
        project = Project.model_validate(saved)
        projects = context.projects
        projects[projects.index(existing)] = project
        created = False
    else:
        saved = await reconciler.repo.insert(ProjectModel, {**values, "user_id": user_id})
        project = Project.model_validate(saved)
        context.add(EntityKind.PROJECT, project)
        created = True
        logger.info("Created project %r (%s)", project.name, project.id)

    action = "Created" if created else "Updated"
    return RowResult(
        label=project.name,
        success=True,
        message=f'{action} project "{project.name}"',
        created=created,
        record_id=project.id,
    )
