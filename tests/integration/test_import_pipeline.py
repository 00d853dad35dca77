"""Integration tests for the panel and project bulk import pipeline.

Runs the orchestrator end to end against an in-memory SQLite database.
"""

from datetime import date
from uuid import uuid4

import pytest

from paneltracker.access.permissions import CurrentUser
from paneltracker.db.models import (
    BuildingModel,
    CustomerModel,
    FacadeModel,
    PanelModel,
    PanelStatusHistoryModel,
    ProjectModel,
)
from paneltracker.ingestion import upsert
from paneltracker.ingestion.dates import SENTINEL_DATE
from paneltracker.ingestion.orchestrator import (
    BulkImportOrchestrator,
    ImportStateError,
    NothingToImportError,
    PermissionDeniedError,
    get_importer,
)
from paneltracker.ingestion.spreadsheet import PANEL_COLUMNS, PROJECT_COLUMNS
from paneltracker.ingestion.types import ImportKind, ImportState


async def run_import(repo, user, kind, content, progress=None):
    orchestrator = BulkImportOrchestrator(get_importer(kind), user)
    orchestrator.load(content, filename="upload.xlsx")
    summary = await orchestrator.run(repo, progress)
    return orchestrator, summary


@pytest.fixture
def panel_sheet(xlsx, panel_values):
    def _build(*rows):
        return xlsx([panel_values(**row) for row in rows], header=PANEL_COLUMNS)

    return _build


class TestPanelImport:
    @pytest.mark.asyncio
    async def test_end_to_end(self, repo, admin_user, xlsx, panel_values):
        content = xlsx(
            [
                panel_values(project_name="Lusail Tower", name="PNL-001", type="GRC",
                             date="15/01/2024", weight="120"),
                panel_values(project_name="Lusail Tower", name="PNL-002", type="XYZ"),
                panel_values(),
            ],
            header=PANEL_COLUMNS,
        )

        orchestrator, summary = await run_import(repo, admin_user, ImportKind.PANELS, content)

        assert orchestrator.state is ImportState.DONE
        assert len(orchestrator.rows) == 2
        assert orchestrator.invalid_count == 1
        assert summary.message == "Import completed: 1 successful, 0 failed"
        assert summary.results[0].message == 'Created panel "PNL-001"'

        panels = await repo.fetch_all(PanelModel)
        assert len(panels) == 1
        panel = panels[0]
        assert panel.type == 0
        assert panel.status == 0
        assert panel.weight == 120.0
        assert panel.issued_for_production_date == date(2024, 1, 15)
        assert panel.user_id == admin_user.id

        project = await repo.find_one(ProjectModel, name="Lusail Tower")
        assert panel.project_id == project.id
        assert project.status == "active"

        histories = await repo.fetch_all(PanelStatusHistoryModel, order_by="created_at")
        assert [(h.panel_id, h.status) for h in histories] == [(panel.id, 0)]

    @pytest.mark.asyncio
    async def test_project_without_customer_gets_placeholder(self, repo, admin_user, panel_sheet):
        content = panel_sheet({"project_name": "Lusail Tower", "name": "PNL-001"})

        await run_import(repo, admin_user, ImportKind.PANELS, content)

        customers = await repo.fetch_all(CustomerModel)
        assert len(customers) == 1
        assert customers[0].name == "Lusail Tower"
        assert customers[0].email == "lusail.tower@placeholder.local"
        assert customers[0].phone == "+974 0000 0000"

    @pytest.mark.asyncio
    async def test_named_customer_is_created_once(self, repo, admin_user, panel_sheet):
        content = panel_sheet(
            {"project_name": "Lusail Tower", "name": "PNL-001", "customer_name": "Qatar Rail"},
            {"project_name": "Msheireb", "name": "PNL-002", "customer_name": "QATAR RAIL "},
        )

        await run_import(repo, admin_user, ImportKind.PANELS, content)

        customers = await repo.fetch_all(CustomerModel)
        assert [c.name for c in customers] == ["Qatar Rail"]
        projects = await repo.fetch_all(ProjectModel)
        assert {p.customer_id for p in projects} == {customers[0].id}

    @pytest.mark.asyncio
    async def test_reimport_updates_in_place(self, repo, admin_user, panel_sheet):
        content = panel_sheet({"project_name": "Lusail Tower", "name": "PNL-001", "weight": "10"})
        await run_import(repo, admin_user, ImportKind.PANELS, content)
        first = await repo.find_one(PanelModel, name="PNL-001")

        content = panel_sheet({"project_name": "Lusail Tower", "name": "PNL-001", "weight": "12"})
        _, summary = await run_import(repo, admin_user, ImportKind.PANELS, content)

        panels = await repo.fetch_all(PanelModel)
        assert len(panels) == 1
        assert panels[0].id == first.id
        assert panels[0].weight == 12.0
        assert summary.results[0].message == 'Updated panel "PNL-001"'
        assert summary.results[0].created is False
        assert len(await repo.fetch_all(ProjectModel)) == 1
        # Status unchanged, so no second history entry
        assert len(await repo.fetch_all(PanelStatusHistoryModel, order_by="created_at")) == 1

    @pytest.mark.asyncio
    async def test_status_change_appends_history(self, repo, admin_user, panel_sheet):
        await run_import(
            repo, admin_user, ImportKind.PANELS,
            panel_sheet({"project_name": "Lusail Tower", "name": "PNL-001", "status": "Produced"}),
        )
        await run_import(
            repo, admin_user, ImportKind.PANELS,
            panel_sheet({"project_name": "Lusail Tower", "name": "PNL-001", "status": "Delivered"}),
        )

        panel = await repo.find_one(PanelModel, name="PNL-001")
        assert panel.status == 3
        histories = await repo.fetch_all(PanelStatusHistoryModel, order_by="created_at")
        assert sorted(h.status for h in histories) == [1, 3]

    @pytest.mark.asyncio
    async def test_failed_history_entry_leaves_panel_unwritten(
        self, repo, admin_user, panel_sheet, monkeypatch
    ):
        await run_import(
            repo, admin_user, ImportKind.PANELS,
            panel_sheet({"project_name": "Lusail Tower", "name": "PNL-001", "status": "Produced"}),
        )

        def rejected_entry(**values):
            return PanelStatusHistoryModel(**{**values, "status": None})

        monkeypatch.setattr(upsert, "PanelStatusHistoryModel", rejected_entry)
        _, summary = await run_import(
            repo, admin_user, ImportKind.PANELS,
            panel_sheet(
                {"project_name": "Lusail Tower", "name": "PNL-001", "status": "Delivered"},
                {"project_name": "Lusail Tower", "name": "PNL-002", "status": "Produced"},
            ),
        )

        assert summary.message == "Import completed: 0 successful, 2 failed"
        assert all(not result.success for result in summary.results)
        panels = await repo.fetch_all(PanelModel)
        assert [(p.name, p.status) for p in panels] == [("PNL-001", 1)]
        histories = await repo.fetch_all(PanelStatusHistoryModel, order_by="created_at")
        assert [h.status for h in histories] == [1]

    @pytest.mark.asyncio
    async def test_project_names_match_case_insensitively(self, repo, admin_user, panel_sheet):
        content = panel_sheet(
            {"project_name": "Lusail Tower", "name": "PNL-001"},
            {"project_name": "  LUSAIL tower ", "name": "PNL-002"},
        )

        await run_import(repo, admin_user, ImportKind.PANELS, content)

        projects = await repo.fetch_all(ProjectModel)
        assert [p.name for p in projects] == ["Lusail Tower"]
        panels = await repo.fetch_all(PanelModel)
        assert {p.project_id for p in panels} == {projects[0].id}

    @pytest.mark.asyncio
    async def test_existing_entities_are_reused(self, repo, admin_user, panel_sheet):
        customer = await repo.insert(CustomerModel, {"name": "Qatar Rail"})
        project = await repo.insert(
            ProjectModel, {"name": "Lusail Tower", "customer_id": customer.id}
        )

        content = panel_sheet({"project_name": "lusail tower", "name": "PNL-001"})
        await run_import(repo, admin_user, ImportKind.PANELS, content)

        assert len(await repo.fetch_all(ProjectModel)) == 1
        assert len(await repo.fetch_all(CustomerModel)) == 1
        panel = await repo.find_one(PanelModel, name="PNL-001")
        assert panel.project_id == project.id

    @pytest.mark.asyncio
    async def test_buildings_are_scoped_to_their_project(self, repo, admin_user, panel_sheet):
        content = panel_sheet(
            {"project_name": "Alpha", "name": "A-1", "building_name": "Tower 1",
             "facade_name": "North"},
            {"project_name": "Alpha", "name": "A-2", "building_name": "tower 1",
             "facade_name": "NORTH"},
            {"project_name": "Beta", "name": "B-1", "building_name": "Tower 1",
             "facade_name": "North"},
        )

        await run_import(repo, admin_user, ImportKind.PANELS, content)

        buildings = await repo.fetch_all(BuildingModel)
        assert len(buildings) == 2
        assert len({b.project_id for b in buildings}) == 2
        assert len(await repo.fetch_all(FacadeModel)) == 2

        a1 = await repo.find_one(PanelModel, name="A-1")
        a2 = await repo.find_one(PanelModel, name="A-2")
        b1 = await repo.find_one(PanelModel, name="B-1")
        assert a1.building_id == a2.building_id != b1.building_id
        assert a1.facade_id == a2.facade_id != b1.facade_id

        facade = await repo.find_one(FacadeModel, id=a1.facade_id)
        assert facade.building_id == a1.building_id

    @pytest.mark.asyncio
    async def test_facade_without_building_is_ignored(self, repo, admin_user, panel_sheet):
        content = panel_sheet({"project_name": "Alpha", "name": "A-1", "facade_name": "North"})

        orchestrator, summary = await run_import(repo, admin_user, ImportKind.PANELS, content)

        assert orchestrator.warning_count == 1
        assert summary.successful == 1
        panel = await repo.find_one(PanelModel, name="A-1")
        assert panel.building_id is None
        assert panel.facade_id is None
        assert await repo.fetch_all(FacadeModel) == []

    @pytest.mark.asyncio
    async def test_zero_date_becomes_sentinel(self, repo, admin_user, panel_sheet):
        content = panel_sheet({"project_name": "Alpha", "name": "A-1", "date": "00/00/0000"})

        await run_import(repo, admin_user, ImportKind.PANELS, content)

        panel = await repo.find_one(PanelModel, name="A-1")
        assert panel.issued_for_production_date == SENTINEL_DATE

    @pytest.mark.asyncio
    async def test_row_without_project_fails_alone(self, repo, admin_user, panel_sheet):
        content = panel_sheet(
            {"name": "ORPHAN-1"},
            {"project_name": "Alpha", "name": "A-1"},
        )

        _, summary = await run_import(repo, admin_user, ImportKind.PANELS, content)

        assert summary.message == "Import completed: 1 successful, 1 failed"
        failed = summary.results[0]
        assert failed.success is False
        assert failed.message == 'Failed to import "ORPHAN-1"'
        assert failed.errors == ["Project name is required to import a panel"]
        assert [p.name for p in await repo.fetch_all(PanelModel)] == ["A-1"]

    @pytest.mark.asyncio
    async def test_progress_is_reported_per_row(self, repo, admin_user, panel_sheet):
        content = panel_sheet(
            {"project_name": "Alpha", "name": "A-1"},
            {"project_name": "Alpha", "name": "A-2"},
        )
        calls = []

        await run_import(
            repo, admin_user, ImportKind.PANELS, content,
            progress=lambda done, total: calls.append((done, total)),
        )

        assert calls == [(1, 2), (2, 2)]


class TestOrchestratorState:
    @pytest.mark.asyncio
    async def test_run_before_load(self, repo, admin_user):
        orchestrator = BulkImportOrchestrator(get_importer("panels"), admin_user)

        with pytest.raises(ImportStateError):
            await orchestrator.run(repo)

    @pytest.mark.asyncio
    async def test_run_twice(self, repo, admin_user, panel_sheet):
        orchestrator, _ = await run_import(
            repo, admin_user, ImportKind.PANELS, panel_sheet({"project_name": "A", "name": "P"})
        )

        with pytest.raises(ImportStateError):
            await orchestrator.run(repo)

        orchestrator.reset()
        assert orchestrator.state is ImportState.IDLE
        assert orchestrator.rows == []
        assert orchestrator.summary is None

    @pytest.mark.asyncio
    async def test_permission_denied(self, repo, panel_sheet):
        customer = CurrentUser(id=uuid4(), role="Customer")
        orchestrator = BulkImportOrchestrator(get_importer("panels"), customer)
        orchestrator.load(panel_sheet({"project_name": "A", "name": "P"}))

        assert not orchestrator.can_import
        with pytest.raises(PermissionDeniedError):
            await orchestrator.run(repo)
        assert orchestrator.state is ImportState.VALIDATED
        assert await repo.fetch_all(PanelModel) == []

    @pytest.mark.asyncio
    async def test_nothing_to_import(self, repo, admin_user, panel_sheet):
        orchestrator = BulkImportOrchestrator(get_importer("panels"), admin_user)
        orchestrator.load(panel_sheet({"project_name": "A", "type": "XYZ"}))

        with pytest.raises(NothingToImportError):
            await orchestrator.run(repo)
        assert orchestrator.state is ImportState.VALIDATED


class TestProjectImport:
    @pytest.mark.asyncio
    async def test_create_then_update(self, repo, admin_user, xlsx):
        first = xlsx(
            [["Lusail Tower", "Qatar Rail", "Lusail", "15/01/2024", "31/12/2025",
              "active", "500000", "120"]],
            header=PROJECT_COLUMNS,
        )
        _, summary = await run_import(repo, admin_user, ImportKind.PROJECTS, first)

        assert summary.results[0].message == 'Created project "Lusail Tower"'
        project = await repo.find_one(ProjectModel, name="Lusail Tower")
        assert project.start_date == date(2024, 1, 15)
        assert project.end_date == date(2025, 12, 31)
        assert project.estimated_cost == 500000.0
        assert project.estimated_panels == 120
        assert project.user_id == admin_user.id
        customer = await repo.find_one(CustomerModel, name="Qatar Rail")
        assert project.customer_id == customer.id

        second = xlsx(
            [["lusail tower", None, "Lusail Marina", None, None, "on-hold", None, "150"]],
            header=PROJECT_COLUMNS,
        )
        _, summary = await run_import(repo, admin_user, ImportKind.PROJECTS, second)

        assert summary.results[0].message == 'Updated project "lusail tower"'
        projects = await repo.fetch_all(ProjectModel)
        assert len(projects) == 1
        assert projects[0].id == project.id
        assert projects[0].customer_id == customer.id
        assert projects[0].location == "Lusail Marina"
        assert projects[0].status == "on-hold"
        assert projects[0].estimated_panels == 150
        assert len(await repo.fetch_all(CustomerModel)) == 1

    @pytest.mark.asyncio
    async def test_unknown_status_defaults_to_active(self, repo, admin_user, xlsx):
        content = xlsx([["Msheireb", None, None, None, None, "paused"]], header=PROJECT_COLUMNS)

        orchestrator, _ = await run_import(repo, admin_user, ImportKind.PROJECTS, content)

        assert orchestrator.warning_count == 1
        project = await repo.find_one(ProjectModel, name="Msheireb")
        assert project.status == "active"
        customer = await repo.find_one(CustomerModel, id=project.customer_id)
        assert customer.name == "Msheireb"
