"""Spreadsheet parsing for bulk imports.

Reads the first worksheet of an ``.xlsx`` workbook (first row = header) and
turns each non-empty record row into a typed row. Two column strategies are
kept deliberately separate:

- positional: the panel and panel-history templates, cell N is field N
  regardless of the header text
- header-named: the project template, columns found by header name or alias

Parsing never decides whether a row is usable; that is the validator's job.
Rows whose cells are all empty are dropped.
"""

from __future__ import annotations

import logging
import zipfile
from collections.abc import Sequence
from io import BytesIO
from pathlib import Path
from typing import Any, BinaryIO

from openpyxl import load_workbook
from openpyxl.utils.exceptions import InvalidFileException

from paneltracker.config import ImportConfig
from paneltracker.ingestion.dates import cell_to_date_text
from paneltracker.ingestion.types import (
    PanelHistoryImportRow,
    PanelImportRow,
    ProjectImportRow,
)

logger = logging.getLogger(__name__)

SUPPORTED_SUFFIXES = (".xlsx", ".xlsm")

PANEL_COLUMNS: tuple[str, ...] = (
    "project_name",
    "name",
    "type",
    "status",
    "date",
    "issue_transmittal_no",
    "dwg_no",
    "description",
    "unit_qty",
    "ifp_qty_nos",
    "ifp_qty",
    "weight",
    "dimension",
    "building_name",
    "facade_name",
    "customer_name",
)

PROJECT_COLUMNS: tuple[str, ...] = (
    "name",
    "customer_name",
    "location",
    "start_date",
    "end_date",
    "status",
    "estimated_cost",
    "estimated_panels",
)

HISTORY_COLUMNS: tuple[str, ...] = (
    "panel_name",
    "status",
    "changed_by",
    "created_at",
    "image_url",
    "notes",
)

# Header aliases accepted by the project importer (after normalisation)
PROJECT_HEADER_ALIASES: dict[str, tuple[str, ...]] = {
    "name": ("project_name", "project", "name"),
    "customer_name": ("customer", "client", "client_name", "customer_name"),
    "location": ("site", "address", "location"),
    "start_date": ("start", "start_date"),
    "end_date": ("end", "finish_date", "end_date"),
    "status": ("project_status", "status"),
    "estimated_cost": ("cost", "budget", "estimated_cost"),
    "estimated_panels": ("panels", "panel_count", "estimated_panels"),
}


class SpreadsheetParseError(Exception):
    """The uploaded file could not be read as an import workbook."""


def read_rows(
    source: bytes | Path | BinaryIO,
    filename: str | None = None,
    config: ImportConfig | None = None,
) -> list[tuple[Any, ...]]:
    """Read all rows of the first worksheet as raw cell tuples.

    Args:
        source: Workbook bytes, a path, or a binary file object
        filename: Original filename, used for the extension check
        config: Size/row limits (defaults apply when omitted)

    Raises:
        SpreadsheetParseError: Unsupported extension, limits exceeded, or
            unreadable workbook
    """
    config = config or ImportConfig()

    if isinstance(source, Path):
        filename = filename or source.name
        if not source.exists():
            raise SpreadsheetParseError(f"File not found: {source}")
        data = source.read_bytes()
    elif isinstance(source, (bytes, bytearray)):
        data = bytes(source)
    else:
        data = source.read()

    if filename and not filename.lower().endswith(SUPPORTED_SUFFIXES):
        raise SpreadsheetParseError("Please upload an Excel file (.xlsx)")

    size_mb = len(data) / (1024 * 1024)
    if size_mb > config.max_file_size_mb:
        raise SpreadsheetParseError(
            f"File too large ({size_mb:.1f}MB). Maximum allowed: {config.max_file_size_mb}MB"
        )

    try:
        workbook = load_workbook(BytesIO(data), read_only=True, data_only=True)
    except (InvalidFileException, zipfile.BadZipFile, KeyError, OSError, ValueError) as exc:
        raise SpreadsheetParseError(f"Failed to parse Excel file: {exc}") from exc

    try:
        if not workbook.sheetnames:
            raise SpreadsheetParseError("Workbook has no worksheets")
        sheet = workbook[workbook.sheetnames[0]]
        rows = [tuple(row) for row in sheet.iter_rows(values_only=True)]
    finally:
        workbook.close()

    if len(rows) - 1 > config.max_rows:
        raise SpreadsheetParseError(
            f"Too many rows ({len(rows) - 1:,}). Maximum allowed: {config.max_rows:,}"
        )

    return rows


def is_blank_row(row: Sequence[Any] | None) -> bool:
    return not row or all(cell is None or cell == "" for cell in row)


def cell_text(value: Any) -> str | None:
    """Render a cell as trimmed text; empty cells become None."""
    if value is None:
        return None
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if hasattr(value, "strftime"):
        return cell_to_date_text(value)
    text = str(value).strip()
    return text or None


def _cell(row: Sequence[Any], index: int) -> Any:
    return row[index] if index < len(row) else None


def parse_panel_rows(rows: Sequence[Sequence[Any]]) -> list[PanelImportRow]:
    """Positional strategy for the 16-column panel template."""
    parsed: list[PanelImportRow] = []
    date_index = PANEL_COLUMNS.index("date")

    for row_number, row in enumerate(rows[1:], start=2):
        if is_blank_row(row):
            continue
        values = {
            column: cell_text(_cell(row, index))
            for index, column in enumerate(PANEL_COLUMNS)
            if index != date_index
        }
        values["date"] = cell_to_date_text(_cell(row, date_index))
        parsed.append(PanelImportRow(row_number=row_number, **values))

    logger.info("Parsed %d panel rows", len(parsed))
    return parsed


def normalize_header(value: Any) -> str:
    text = str(value or "").strip().lower()
    for char in (" ", "-", "."):
        text = text.replace(char, "_")
    while "__" in text:
        text = text.replace("__", "_")
    return text.strip("_")


def resolve_project_columns(header: Sequence[Any]) -> dict[str, int]:
    """Map project fields to column indexes using the header row.

    Exact field names win over aliases.

    Raises:
        SpreadsheetParseError: No column could be found for ``name``
    """
    normalized = [normalize_header(cell) for cell in header]
    columns: dict[str, int] = {}

    for field_name in PROJECT_COLUMNS:
        candidates = (field_name,) + PROJECT_HEADER_ALIASES.get(field_name, ())
        for candidate in candidates:
            if candidate in normalized and normalized.index(candidate) not in columns.values():
                columns[field_name] = normalized.index(candidate)
                break

    if "name" not in columns:
        raise SpreadsheetParseError(
            "Missing required column: name (accepted headers: "
            + ", ".join(PROJECT_HEADER_ALIASES["name"])
            + ")"
        )
    return columns


def parse_project_rows(rows: Sequence[Sequence[Any]]) -> list[ProjectImportRow]:
    """Header-named strategy for the project template."""
    if not rows:
        return []

    columns = resolve_project_columns(rows[0])
    parsed: list[ProjectImportRow] = []

    for row_number, row in enumerate(rows[1:], start=2):
        if is_blank_row(row):
            continue
        values: dict[str, str | None] = {}
        for field_name, index in columns.items():
            raw = _cell(row, index)
            if field_name in ("start_date", "end_date"):
                values[field_name] = cell_to_date_text(raw)
            else:
                values[field_name] = cell_text(raw)
        parsed.append(ProjectImportRow(row_number=row_number, **values))

    logger.info("Parsed %d project rows", len(parsed))
    return parsed


def parse_history_rows(rows: Sequence[Sequence[Any]]) -> list[PanelHistoryImportRow]:
    """Positional strategy for the panel status history template."""
    parsed: list[PanelHistoryImportRow] = []
    created_index = HISTORY_COLUMNS.index("created_at")

    for row_number, row in enumerate(rows[1:], start=2):
        if is_blank_row(row):
            continue
        values = {
            column: cell_text(_cell(row, index))
            for index, column in enumerate(HISTORY_COLUMNS)
            if index != created_index
        }
        values["created_at"] = cell_to_date_text(_cell(row, created_index), keep_time=True)
        parsed.append(PanelHistoryImportRow(row_number=row_number, **values))

    logger.info("Parsed %d panel history rows", len(parsed))
    return parsed
