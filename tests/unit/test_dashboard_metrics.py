"""Tests for paneltracker.reporting.dashboard_metrics - dashboard aggregation."""

from uuid import uuid4

import pytest

from paneltracker.access.permissions import CurrentUser
from paneltracker.db.models import CustomerModel, PanelModel, ProjectModel, UserProjectAccessModel
from paneltracker.models import Panel, Project
from paneltracker.reporting.dashboard_metrics import (
    PIPELINE_STAGES,
    PRIMARY_STATUSES,
    SECONDARY_STATUSES,
    DashboardFilter,
    aggregate,
    compute_dashboard_metrics,
    percentage,
)


@pytest.fixture
def projects() -> list[Project]:
    return [
        Project(name="Alpha", estimated_cost=500000, estimated_panels=10),
        Project(name="Beta", estimated_cost=250000.5, estimated_panels=0),
    ]


@pytest.fixture
def panels(projects) -> list[Panel]:
    alpha, beta = projects
    building = uuid4()
    statuses = [0, 1, 2, 3, 4, 5, 6, 7, 8, 9]
    result = [
        Panel(name=f"A-{s}", status=s, project_id=alpha.id, building_id=building)
        for s in statuses
    ]
    result.append(Panel(name="B-1", status=11, project_id=beta.id))
    return result


def test_taxonomies_cover_every_status_once():
    assert len(PRIMARY_STATUSES) == 4
    assert len(SECONDARY_STATUSES) == 8
    assert sorted(PRIMARY_STATUSES + SECONDARY_STATUSES) == list(range(12))


def test_pipeline_stages_are_nested():
    for (_, _, outer), (_, _, inner) in zip(PIPELINE_STAGES, PIPELINE_STAGES[1:]):
        assert inner <= outer


def test_percentage_guards_zero():
    assert percentage(5, 0) == 0.0
    assert percentage(1, 3) == 33.33


def test_empty_inputs_give_zeroes():
    metrics = aggregate([], [])
    assert metrics.total_panels == 0
    assert all(item.count == 0 and item.percentage == 0.0 for item in metrics.primary_status_counts)
    assert all(stage.percentage == 0.0 for stage in metrics.pipeline)
    assert metrics.production_efficiency == 0.0
    assert metrics.delivery_efficiency == 0.0
    assert metrics.overall_completion == 0.0


def test_status_counts(panels, projects):
    metrics = aggregate(panels, projects)

    assert metrics.total_panels == 11
    primary = {item.code: item.count for item in metrics.primary_status_counts}
    assert primary == {0: 1, 1: 1, 3: 1, 6: 1}
    secondary = {item.code: item.count for item in metrics.secondary_status_counts}
    assert secondary[9] == 1
    assert secondary[10] == 0
    assert secondary[11] == 1
    assert metrics.primary_status_counts[0].label == "Issued For Production"
    assert metrics.primary_status_counts[0].percentage == 9.09


def test_pipeline_counts(panels, projects):
    metrics = aggregate(panels, projects)

    counts = [stage.count for stage in metrics.pipeline]
    assert counts == [9, 8, 7, 6, 4, 3, 2, 1]
    assert counts == sorted(counts, reverse=True)
    # Rejected material is delivered but never approved
    assert metrics.pipeline_count("delivered") == 6
    assert metrics.pipeline_count("approved_material") == 4
    with pytest.raises(KeyError):
        metrics.pipeline_count("painted")


def test_financials_and_efficiency(panels, projects):
    metrics = aggregate(panels, projects)

    assert metrics.total_projects == 2
    assert metrics.total_estimated_cost == 750000.5
    assert metrics.total_estimated_panels == 10
    assert metrics.production_efficiency == 80.0
    assert metrics.delivery_efficiency == 60.0
    assert metrics.overall_completion == 30.0


def test_project_filter(panels, projects):
    alpha, beta = projects
    metrics = aggregate(panels, projects, DashboardFilter.of(project_ids=[beta.id]))

    assert metrics.total_panels == 1
    assert metrics.total_projects == 1
    assert metrics.total_estimated_panels == 0
    assert metrics.overall_completion == 0.0


def test_building_and_facade_filter(panels, projects):
    building = panels[0].building_id
    by_building = aggregate(panels, projects, DashboardFilter.of(building_ids=[building]))
    assert by_building.total_panels == 10

    by_facade = aggregate(panels, projects, DashboardFilter.of(facade_ids=[uuid4()]))
    assert by_facade.total_panels == 0


def test_to_dict(panels, projects):
    data = aggregate(panels, projects).to_dict()
    assert data["total_panels"] == 11
    assert data["pipeline"][0]["key"] == "issued"
    assert isinstance(data["computed_at"], str)


@pytest.mark.asyncio
async def test_compute_applies_project_access(repo):
    customer = await repo.insert(CustomerModel, {"name": "Acme"})
    visible = await repo.insert(
        ProjectModel, {"name": "Visible", "customer_id": customer.id, "estimated_panels": 4}
    )
    hidden = await repo.insert(
        ProjectModel, {"name": "Hidden", "customer_id": customer.id, "estimated_panels": 100}
    )
    await repo.insert(PanelModel, {"name": "V1", "status": 6, "project_id": visible.id})
    await repo.insert(PanelModel, {"name": "H1", "status": 6, "project_id": hidden.id})

    user = CurrentUser(id=uuid4(), role="Site Engineer")
    await repo.insert(UserProjectAccessModel, {"user_id": user.id, "project_id": visible.id})

    metrics = await compute_dashboard_metrics(repo.session, user=user, repo=repo)
    assert metrics.total_panels == 1
    assert metrics.total_projects == 1
    assert metrics.overall_completion == 25.0

    admin = CurrentUser(id=uuid4(), role="Administrator")
    everything = await compute_dashboard_metrics(repo.session, user=admin)
    assert everything.total_panels == 2
    assert everything.total_estimated_panels == 104
