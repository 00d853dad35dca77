"""Bulk import routes for Panel Tracker.

Routes:
- POST /api/imports/{kind}           - Upload a workbook; validate only
                                       (dry_run) or validate and import
- GET  /api/imports/{kind}/template  - Download the .xlsx template
"""

from __future__ import annotations

from dataclasses import asdict

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile
from fastapi.responses import StreamingResponse
import structlog

from paneltracker.access.permissions import CurrentUser
from paneltracker.config import get_config
from paneltracker.db.connection import get_session
from paneltracker.db.repository import StoreError, StoreTimeoutError, TrackerRepository
from paneltracker.ingestion.orchestrator import (
    BulkImportOrchestrator,
    NothingToImportError,
    PermissionDeniedError,
    get_importer,
)
from paneltracker.ingestion.spreadsheet import SpreadsheetParseError
from paneltracker.ingestion.types import ImportKind, ImportMode
from paneltracker.reporting.templates import build_template, template_filename
from paneltracker.web.dependencies import get_current_user

logger = structlog.get_logger()

router = APIRouter(prefix="/api/imports", tags=["imports"])

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


def _preview(orchestrator: BulkImportOrchestrator) -> list[dict]:
    return [
        {
            "row_number": row.row_number,
            "label": row.label,
            "is_valid": result.is_valid,
            "errors": result.errors,
            "warnings": result.warnings,
        }
        for row, result in zip(orchestrator.rows, orchestrator.validation)
    ]


@router.post("/{kind}")
async def import_workbook(
    kind: ImportKind,
    file: UploadFile = File(...),
    dry_run: bool = Form(False),
    mode: ImportMode = Form(ImportMode.INSERT),
    user: CurrentUser = Depends(get_current_user),
):
    """Validate an uploaded workbook and, unless ``dry_run``, import it.

    ``mode=update_existing`` (histories only) corrects the timestamps of
    matching history entries instead of inserting new ones.
    """
    config = get_config()
    try:
        importer = get_importer(kind, mode)
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    orchestrator = BulkImportOrchestrator(importer, user, config.imports)

    if not orchestrator.can_import:
        raise HTTPException(
            status_code=403, detail=f"Role {user.role} may not import {kind.value}"
        )

    try:
        orchestrator.load(await file.read(), filename=file.filename)
    except SpreadsheetParseError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    response = {
        "kind": kind.value,
        "mode": mode.value,
        "state": orchestrator.state.value,
        "total_rows": len(orchestrator.rows),
        "valid_rows": len(orchestrator.valid_rows),
        "invalid_rows": orchestrator.invalid_count,
        "rows": _preview(orchestrator),
    }
    if dry_run:
        return response

    try:
        async with get_session() as session:
            repo = TrackerRepository(session, config.store)
            summary = await orchestrator.run(repo)
    except PermissionDeniedError as exc:
        raise HTTPException(status_code=403, detail=str(exc)) from exc
    except NothingToImportError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    except StoreTimeoutError:
        raise
    except StoreError as exc:
        logger.error("import_failed", kind=kind.value, mode=mode.value, error=str(exc))
        raise HTTPException(status_code=502, detail=str(exc)) from exc

    logger.info(
        "import_completed",
        kind=kind.value,
        mode=mode.value,
        successful=summary.successful,
        failed=summary.failed,
    )
    response.update(
        state=orchestrator.state.value,
        message=summary.message,
        successful=summary.successful,
        failed=summary.failed,
        duration_seconds=round(summary.duration_seconds, 3),
        results=[asdict(result) for result in summary.results],
    )
    return response


@router.get("/{kind}/template")
async def download_template(kind: ImportKind):
    """Download the import template for ``kind``."""
    filename = template_filename(kind)
    return StreamingResponse(
        build_template(kind),
        media_type=XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
