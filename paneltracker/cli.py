"""Panel Tracker CLI.

Commands:
- init-db: Initialize database schema
- import-panels: Import panels from an .xlsx workbook
- import-projects: Import projects from an .xlsx workbook
- import-histories: Import panel status histories from an .xlsx workbook
  (--update-existing corrects dates of existing entries instead)
- template: Write an import template workbook
- dashboard: Show dashboard metrics
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from uuid import UUID

import typer
from rich.console import Console
from rich.progress import BarColumn, MofNCompleteColumn, Progress, TextColumn
from rich.table import Table

from paneltracker.access.permissions import ADMINISTRATOR, CurrentUser
from paneltracker.codes import status_label
from paneltracker.config import get_config
from paneltracker.core.logging import configure_logging
from paneltracker.db.connection import close_db, get_session, init_db
from paneltracker.db.repository import StoreError, TrackerRepository
from paneltracker.ingestion.orchestrator import (
    BulkImportOrchestrator,
    NothingToImportError,
    PermissionDeniedError,
    get_importer,
)
from paneltracker.ingestion.spreadsheet import SpreadsheetParseError
from paneltracker.ingestion.types import ImportKind, ImportMode
from paneltracker.reporting.dashboard_metrics import DashboardFilter, compute_dashboard_metrics
from paneltracker.reporting.templates import build_template, template_filename

app = typer.Typer(
    name="paneltracker",
    help="Panel Tracker - panel production imports and dashboard",
    no_args_is_help=True,
)

console = Console()


def _user(user_id: str | None, role: str) -> CurrentUser:
    return CurrentUser(id=UUID(user_id) if user_id else None, role=role)


@app.callback()
def main():
    configure_logging()


@app.command(name="init-db")
def init_db_cmd(
    drop: bool = typer.Option(False, "--drop", help="Drop existing tables"),
):
    """Initialize database schema."""
    config = get_config()
    console.print(f"[bold]Initializing database:[/bold] {config.db.url}")

    async def _init():
        await init_db(drop=drop)
        await close_db()

    asyncio.run(_init())
    console.print("[bold green]✓[/bold green] Database initialized")


def _run_import(
    kind: ImportKind,
    file: Path,
    user: CurrentUser,
    dry_run: bool,
    mode: ImportMode = ImportMode.INSERT,
) -> None:
    config = get_config()
    orchestrator = BulkImportOrchestrator(get_importer(kind, mode), user, config.imports)

    console.print(f"[bold]Reading {kind.value} workbook:[/bold] {file}")
    try:
        validation = orchestrator.load(file)
    except SpreadsheetParseError as e:
        console.print(f"[red]✗[/red] {e}")
        raise typer.Exit(1) from e

    console.print(
        f"  {len(orchestrator.rows)} rows: "
        f"[green]{len(orchestrator.valid_rows)} valid[/green], "
        f"[red]{orchestrator.invalid_count} invalid[/red], "
        f"[yellow]{orchestrator.warning_count} warnings[/yellow]"
    )
    for row, result in zip(orchestrator.rows, validation):
        for error in result.errors:
            console.print(f"    [red]✗[/red] row {row.row_number} ({row.label}): {error}")
        for warning in result.warnings:
            console.print(f"    [yellow]⚠[/yellow] row {row.row_number} ({row.label}): {warning}")

    if dry_run:
        return

    async def _import():
        try:
            async with get_session() as session:
                repo = TrackerRepository(session, config.store)
                with Progress(
                    TextColumn("Importing"), BarColumn(), MofNCompleteColumn(), console=console
                ) as progress:
                    task = progress.add_task("import", total=None)

                    def _advance(completed: int, total: int) -> None:
                        progress.update(task, completed=completed, total=total)

                    return await orchestrator.run(repo, progress_callback=_advance)
        finally:
            await close_db()

    try:
        summary = asyncio.run(_import())
    except (PermissionDeniedError, NothingToImportError, StoreError) as e:
        console.print(f"[red]✗[/red] {e}")
        raise typer.Exit(1) from e

    for result in summary.results:
        if not result.success:
            console.print(f"  [red]✗[/red] {result.message}: {'; '.join(result.errors)}")

    console.print(f"\n[bold green]✓[/bold green] {summary.message}")
    if summary.failed:
        raise typer.Exit(1)


_USER_ID = typer.Option(None, "--user-id", help="Importing user id")
_ROLE = typer.Option(ADMINISTRATOR, "--role", help="Importing user role")
_DRY_RUN = typer.Option(False, "--dry-run", help="Validate only")


@app.command(name="import-panels")
def import_panels_cmd(
    file: Path = typer.Argument(..., help="Panel workbook (.xlsx)"),
    user_id: str | None = _USER_ID,
    role: str = _ROLE,
    dry_run: bool = _DRY_RUN,
):
    """Import panels, creating missing projects, buildings and facades."""
    _run_import(ImportKind.PANELS, file, _user(user_id, role), dry_run)


@app.command(name="import-projects")
def import_projects_cmd(
    file: Path = typer.Argument(..., help="Project workbook (.xlsx)"),
    user_id: str | None = _USER_ID,
    role: str = _ROLE,
    dry_run: bool = _DRY_RUN,
):
    """Import projects, creating missing customers."""
    _run_import(ImportKind.PROJECTS, file, _user(user_id, role), dry_run)


@app.command(name="import-histories")
def import_histories_cmd(
    file: Path = typer.Argument(..., help="Panel history workbook (.xlsx)"),
    user_id: str | None = _USER_ID,
    role: str = _ROLE,
    dry_run: bool = _DRY_RUN,
    update_existing: bool = typer.Option(
        False,
        "--update-existing",
        help="Correct dates of matching existing entries instead of inserting",
    ),
):
    """Import panel status histories for existing panels."""
    mode = ImportMode.UPDATE_EXISTING if update_existing else ImportMode.INSERT
    _run_import(ImportKind.PANEL_HISTORIES, file, _user(user_id, role), dry_run, mode)


@app.command()
def template(
    kind: ImportKind = typer.Argument(..., help="panels, projects or panel_histories"),
    output: Path | None = typer.Option(None, "--output", "-o", help="Output path"),
):
    """Write an import template workbook."""
    output = output or Path(template_filename(kind))
    output.write_bytes(build_template(kind).getvalue())
    console.print(f"[bold green]✓[/bold green] Template written to {output}")


@app.command()
def dashboard(
    project_ids: list[UUID] = typer.Option([], "--project", help="Project id (repeatable)"),
    building_ids: list[UUID] = typer.Option([], "--building", help="Building id (repeatable)"),
    facade_ids: list[UUID] = typer.Option([], "--facade", help="Facade id (repeatable)"),
    user_id: str | None = _USER_ID,
    role: str = _ROLE,
):
    """Show dashboard metrics."""
    selection = DashboardFilter.of(project_ids, building_ids, facade_ids)
    user = _user(user_id, role)

    async def _metrics():
        try:
            async with get_session() as session:
                return await compute_dashboard_metrics(session, selection, user)
        finally:
            await close_db()

    metrics = asyncio.run(_metrics())

    console.print(
        f"[bold]Panels:[/bold] {metrics.total_panels}   "
        f"[bold]Projects:[/bold] {metrics.total_projects}   "
        f"[bold]Estimated cost:[/bold] {metrics.total_estimated_cost:,.2f} QR   "
        f"[bold]Estimated panels:[/bold] {metrics.total_estimated_panels:,}"
    )

    for title, counts in (
        ("Primary statuses", metrics.primary_status_counts),
        ("Secondary statuses", metrics.secondary_status_counts),
    ):
        table = Table(title=title)
        table.add_column("Status")
        table.add_column("Panels", justify="right")
        table.add_column("%", justify="right")
        for item in counts:
            table.add_row(status_label(item.code), str(item.count), f"{item.percentage:.1f}")
        console.print(table)

    table = Table(title="Pipeline (at or beyond stage)")
    table.add_column("Stage")
    table.add_column("Panels", justify="right")
    table.add_column("%", justify="right")
    for stage in metrics.pipeline:
        table.add_row(stage.label, str(stage.count), f"{stage.percentage:.1f}")
    console.print(table)

    console.print("\n[bold]Efficiency (% of estimated panels):[/bold]")
    console.print(f"  Production: {metrics.production_efficiency:.1f}%")
    console.print(f"  Delivery: {metrics.delivery_efficiency:.1f}%")
    console.print(f"  Overall completion: {metrics.overall_completion:.1f}%")


if __name__ == "__main__":
    app()
