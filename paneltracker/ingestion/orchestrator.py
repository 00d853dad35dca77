"""Bulk import orchestrator.

One ``BulkImportOrchestrator`` drives one import run through
``idle -> parsed -> validated -> importing -> done``:

- ``load()`` parses the workbook (parsed) and validates every row (validated)
- ``run()`` imports the valid rows strictly one after another (importing)
  and returns an ``ImportSummary`` once the last row is processed (done)

Rows are never processed in parallel: a row may reference a project or
building created by an earlier row in the same run. A failing row is
recorded and the run moves on; rows that already succeeded stay in place.
"""

from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod
from collections.abc import Callable, Sequence
from pathlib import Path
from typing import Any, BinaryIO
from uuid import UUID

from paneltracker.access.permissions import CurrentUser, has_permission
from paneltracker.config import ImportConfig
from paneltracker.core.logging import import_run_context
from paneltracker.db.repository import StoreError, TrackerRepository
from paneltracker.ingestion.histories import (
    group_by_panel,
    import_panel_history,
    update_panel_history_dates,
)
from paneltracker.ingestion.reconciler import (
    EntityReconciler,
    ReconciliationContext,
    ResolutionError,
)
from paneltracker.ingestion.spreadsheet import (
    parse_history_rows,
    parse_panel_rows,
    parse_project_rows,
    read_rows,
)
from paneltracker.ingestion.types import (
    ImportKind,
    ImportMode,
    ImportState,
    ImportSummary,
    RowResult,
    ValidationResult,
)
from paneltracker.ingestion.upsert import upsert_panel, upsert_project
from paneltracker.ingestion.validation import (
    validate_history_row,
    validate_panel_row,
    validate_project_row,
    validate_rows,
)

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int], None]


class ImportStateError(Exception):
    """Operation not allowed in the orchestrator's current state."""


class PermissionDeniedError(Exception):
    """The user's role does not allow this import."""


class NothingToImportError(Exception):
    """No valid rows to import."""


class RowImporter(ABC):
    """Per-kind strategy: how to parse, validate and import rows.

    Importers are stateless; the orchestrator holds all run state.
    """

    kind: ImportKind
    resource: str
    action: str
    mode = ImportMode.INSERT

    @abstractmethod
    def parse(self, raw_rows: Sequence[Sequence[Any]]) -> list:
        pass

    @abstractmethod
    def validate(self, row) -> ValidationResult:
        pass

    def units(self, rows: list) -> list:
        """Split valid rows into units of work, one progress step each."""
        return list(rows)

    def unit_label(self, unit) -> str:
        return unit.label

    @abstractmethod
    async def import_unit(
        self, reconciler: EntityReconciler, unit, user_id: UUID | None
    ) -> list[RowResult]:
        """Import one unit.

        Raises:
            ResolutionError: A required parent entity is missing
            StoreError: A store call failed
        """


class PanelImporter(RowImporter):
    kind = ImportKind.PANELS
    resource = "panels"
    action = "create"

    def parse(self, raw_rows):
        return parse_panel_rows(raw_rows)

    def validate(self, row):
        return validate_panel_row(row)

    async def import_unit(self, reconciler, unit, user_id):
        return [await upsert_panel(reconciler, unit, user_id)]


class ProjectImporter(RowImporter):
    kind = ImportKind.PROJECTS
    resource = "projects"
    action = "create"

    def parse(self, raw_rows):
        return parse_project_rows(raw_rows)

    def validate(self, row):
        return validate_project_row(row)

    async def import_unit(self, reconciler, unit, user_id):
        return [await upsert_project(reconciler, unit, user_id)]


class PanelHistoryImporter(RowImporter):
    """Histories import per panel: one unit is one panel's row group."""

    kind = ImportKind.PANEL_HISTORIES
    resource = "panels"
    action = "bulk_import"

    def parse(self, raw_rows):
        return parse_history_rows(raw_rows)

    def validate(self, row):
        return validate_history_row(row)

    def units(self, rows):
        return list(group_by_panel(rows).values())

    def unit_label(self, unit):
        return unit[0].panel_name.strip()

    async def import_unit(self, reconciler, unit, user_id):
        return await import_panel_history(
            reconciler.repo, reconciler.context, self.unit_label(unit), unit, user_id
        )


class PanelHistoryDateImporter(PanelHistoryImporter):
    """Corrects timestamps of existing history entries instead of inserting."""

    mode = ImportMode.UPDATE_EXISTING

    async def import_unit(self, reconciler, unit, user_id):
        return await update_panel_history_dates(
            reconciler.repo, reconciler.context, self.unit_label(unit), unit, user_id
        )


IMPORTERS: dict[ImportKind, type[RowImporter]] = {
    ImportKind.PANELS: PanelImporter,
    ImportKind.PROJECTS: ProjectImporter,
    ImportKind.PANEL_HISTORIES: PanelHistoryImporter,
}


def get_importer(
    kind: ImportKind | str, mode: ImportMode | str = ImportMode.INSERT
) -> RowImporter:
    """Importer for ``kind``; only histories support ``update_existing``.

    Raises:
        ValueError: Unknown kind or mode, or a mode the kind does not support
    """
    kind, mode = ImportKind(kind), ImportMode(mode)
    if mode is ImportMode.UPDATE_EXISTING:
        if kind is not ImportKind.PANEL_HISTORIES:
            raise ValueError(f"{kind.value} imports do not support {mode.value}")
        return PanelHistoryDateImporter()
    return IMPORTERS[kind]()


class BulkImportOrchestrator:
    """State machine for one spreadsheet import run."""

    def __init__(
        self,
        importer: RowImporter,
        user: CurrentUser | None,
        config: ImportConfig | None = None,
    ):
        self.importer = importer
        self.user = user
        self.config = config or ImportConfig()
        self.state = ImportState.IDLE
        self.rows: list = []
        self.validation: list[ValidationResult] = []
        self.summary: ImportSummary | None = None

    @property
    def kind(self) -> ImportKind:
        return self.importer.kind

    @property
    def can_import(self) -> bool:
        role = self.user.role if self.user else None
        return has_permission(role, self.importer.resource, self.importer.action)

    @property
    def valid_rows(self) -> list:
        return [row for row, result in zip(self.rows, self.validation) if result.is_valid]

    @property
    def invalid_count(self) -> int:
        return sum(1 for result in self.validation if not result.is_valid)

    @property
    def warning_count(self) -> int:
        return sum(len(result.warnings) for result in self.validation)

    def load(
        self, source: bytes | Path | BinaryIO, filename: str | None = None
    ) -> list[ValidationResult]:
        """Parse a workbook and validate every row.

        Raises:
            ImportStateError: An import is in progress
            SpreadsheetParseError: The workbook could not be read
        """
        if self.state is ImportState.IMPORTING:
            raise ImportStateError("Cannot load a file while an import is running")

        raw_rows = read_rows(source, filename=filename, config=self.config)
        self.rows = self.importer.parse(raw_rows)
        self.validation = []
        self.summary = None
        self.state = ImportState.PARSED
        return self.validate()

    def validate(self) -> list[ValidationResult]:
        if self.state not in (ImportState.PARSED, ImportState.VALIDATED):
            raise ImportStateError(f"Cannot validate in state {self.state.value}")

        self.validation = validate_rows(self.rows, self.importer.validate)
        self.state = ImportState.VALIDATED
        logger.info(
            "Validated %d %s rows: %d valid, %d invalid",
            len(self.rows),
            self.kind.value,
            len(self.valid_rows),
            self.invalid_count,
        )
        return self.validation

    async def run(
        self,
        repo: TrackerRepository,
        progress_callback: ProgressCallback | None = None,
    ) -> ImportSummary:
        """Import every valid row sequentially.

        Args:
            repo: Store access for this run
            progress_callback: Called with (completed, total) after each unit

        Returns:
            ImportSummary with one result per row (or per history entry batch)

        Raises:
            ImportStateError: Not in the validated state
            PermissionDeniedError: Role may not run this import
            NothingToImportError: No valid rows
            StoreError: The initial entity fetch failed
        """
        user_id = self.user.id if self.user else None
        with import_run_context(self.kind.value, self.importer.mode.value, user_id):
            return await self._run(repo, progress_callback)

    async def _run(
        self, repo: TrackerRepository, progress_callback: ProgressCallback | None
    ) -> ImportSummary:
        if self.state is not ImportState.VALIDATED:
            raise ImportStateError(f"Cannot start an import in state {self.state.value}")
        if not self.can_import:
            raise PermissionDeniedError(
                f"Role {self.user.role if self.user else None!r} may not import {self.kind.value}"
            )

        valid_rows = self.valid_rows
        if not valid_rows:
            raise NothingToImportError("No valid rows to import")

        start_time = time.time()
        user_id = self.user.id if self.user else None
        self.state = ImportState.IMPORTING

        try:
            context = await ReconciliationContext.load(repo)
        except StoreError:
            self.state = ImportState.VALIDATED
            raise

        reconciler = EntityReconciler(repo, context, self.config, user_id)
        units = self.importer.units(valid_rows)
        results: list[RowResult] = []
        logger.info(
            "Starting %s import (%s): %d units",
            self.kind.value,
            self.importer.mode.value,
            len(units),
        )

        for completed, unit in enumerate(units, start=1):
            label = self.importer.unit_label(unit)
            try:
                results.extend(await self.importer.import_unit(reconciler, unit, user_id))
            except (ResolutionError, StoreError) as exc:
                logger.warning("Failed to import %s: %s", label, exc)
                results.append(
                    RowResult(
                        label=label,
                        success=False,
                        message=f'Failed to import "{label}"',
                        errors=[str(exc)],
                    )
                )
            if progress_callback is not None:
                progress_callback(completed, len(units))

        self.summary = ImportSummary(
            kind=self.kind,
            total_rows=len(self.rows),
            valid_rows=len(valid_rows),
            results=results,
            duration_seconds=time.time() - start_time,
        )
        self.state = ImportState.DONE
        logger.info(
            "%s (%s, created: %s)",
            self.summary.message,
            self.kind.value,
            dict((kind.value, count) for kind, count in context.created.items()) or "none",
        )
        return self.summary

    def reset(self) -> None:
        if self.state is ImportState.IMPORTING:
            raise ImportStateError("Cannot reset while an import is running")
        self.state = ImportState.IDLE
        self.rows = []
        self.validation = []
        self.summary = None
