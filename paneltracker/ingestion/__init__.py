"""Spreadsheet bulk import for Panel Tracker.

Handles importing panels, projects and panel status histories from Excel
workbooks.
"""

from paneltracker.ingestion.orchestrator import (
    BulkImportOrchestrator,
    NothingToImportError,
    PermissionDeniedError,
    get_importer,
)
from paneltracker.ingestion.spreadsheet import SpreadsheetParseError
from paneltracker.ingestion.types import ImportKind, ImportState, ImportSummary

__all__ = [
    "BulkImportOrchestrator",
    "get_importer",
    "ImportKind",
    "ImportState",
    "ImportSummary",
    "NothingToImportError",
    "PermissionDeniedError",
    "SpreadsheetParseError",
]
