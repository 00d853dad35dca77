"""Dashboard metrics for panel production progress.

``aggregate`` is a pure function over already-fetched panels and projects:
status counts in two taxonomies, cumulative pipeline counts, financial
totals, and efficiency ratios. ``compute_dashboard_metrics`` fetches the
collections the user may see and feeds them to ``aggregate``.

Pipeline stages are nested sets of status codes, not a numeric range: a
panel counts toward every stage whose set contains its status, so each
stage's count is at most the previous stage's. Rejected material counts as
delivered but never as approved material; On Hold, Cancelled and Broken at
Site are outside the pipeline.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from paneltracker.access.permissions import CurrentUser
from paneltracker.access.project_access import get_accessible_project_ids
from paneltracker.codes import (
    APPROVED_FINAL,
    APPROVED_MATERIAL,
    BROKEN_AT_SITE,
    CANCELLED,
    DELIVERED,
    INSPECTED,
    INSTALLED,
    ISSUED_FOR_PRODUCTION,
    ON_HOLD,
    PROCEED_FOR_DELIVERY,
    PRODUCED,
    REJECTED_MATERIAL,
    status_label,
)
from paneltracker.db.models import PanelModel, ProjectModel
from paneltracker.db.repository import TrackerRepository
from paneltracker.models import Panel, Project

PRIMARY_STATUSES: tuple[int, ...] = (ISSUED_FOR_PRODUCTION, PRODUCED, DELIVERED, INSTALLED)

SECONDARY_STATUSES: tuple[int, ...] = (
    PROCEED_FOR_DELIVERY,
    APPROVED_MATERIAL,
    REJECTED_MATERIAL,
    INSPECTED,
    APPROVED_FINAL,
    ON_HOLD,
    CANCELLED,
    BROKEN_AT_SITE,
)

# (key, label, statuses at or beyond the stage)
PIPELINE_STAGES: tuple[tuple[str, str, frozenset[int]], ...] = (
    ("issued", "Issued For Production", frozenset({0, 1, 2, 3, 4, 5, 6, 7, 8})),
    ("produced", "Produced", frozenset({1, 2, 3, 4, 5, 6, 7, 8})),
    ("proceed_for_delivery", "Proceed for Delivery", frozenset({2, 3, 4, 5, 6, 7, 8})),
    ("delivered", "Delivered", frozenset({3, 4, 5, 6, 7, 8})),
    ("approved_material", "Approved Material", frozenset({4, 6, 7, 8})),
    ("installed", "Installed", frozenset({6, 7, 8})),
    ("inspected", "Inspected", frozenset({7, 8})),
    ("approved_final", "Approved Final", frozenset({8})),
)

_STAGES = {key: statuses for key, _, statuses in PIPELINE_STAGES}

PRODUCTION_STATUSES = _STAGES["produced"]
DELIVERY_STATUSES = _STAGES["delivered"]
COMPLETION_STATUSES = _STAGES["installed"]


@dataclass(frozen=True)
class DashboardFilter:
    """User selection; an empty id set means no restriction on that level."""

    project_ids: frozenset[UUID] = frozenset()
    building_ids: frozenset[UUID] = frozenset()
    facade_ids: frozenset[UUID] = frozenset()

    @classmethod
    def of(
        cls,
        project_ids: Iterable[UUID] | None = None,
        building_ids: Iterable[UUID] | None = None,
        facade_ids: Iterable[UUID] | None = None,
    ) -> DashboardFilter:
        return cls(
            frozenset(project_ids or ()),
            frozenset(building_ids or ()),
            frozenset(facade_ids or ()),
        )

    def includes_project(self, project_id: UUID | None) -> bool:
        return not self.project_ids or project_id in self.project_ids

    def includes_panel(self, panel: Panel) -> bool:
        if not self.includes_project(panel.project_id):
            return False
        if self.building_ids and panel.building_id not in self.building_ids:
            return False
        if self.facade_ids and panel.facade_id not in self.facade_ids:
            return False
        return True


@dataclass
class StatusCount:
    code: int
    label: str
    count: int
    percentage: float


@dataclass
class PipelineStage:
    key: str
    label: str
    count: int
    percentage: float


@dataclass
class DashboardMetrics:
    """Derived dashboard figures for one filter selection."""

    # Totals
    total_panels: int
    total_projects: int

    # Status distribution
    primary_status_counts: list[StatusCount]
    secondary_status_counts: list[StatusCount]

    # Cumulative pipeline
    pipeline: list[PipelineStage]

    # Financial (over the filtered projects)
    total_estimated_cost: float
    total_estimated_panels: int

    # Percent of estimated panels
    production_efficiency: float
    delivery_efficiency: float
    overall_completion: float

    computed_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def pipeline_count(self, key: str) -> int:
        for stage in self.pipeline:
            if stage.key == key:
                return stage.count
        raise KeyError(key)

    def to_dict(self) -> dict:
        data = asdict(self)
        data["computed_at"] = self.computed_at.isoformat()
        return data


def percentage(part: float, whole: float) -> float:
    """``part / whole`` as a percentage; 0.0 when ``whole`` is zero."""
    if not whole:
        return 0.0
    return round(part / whole * 100, 2)


def _status_counts(
    codes: Sequence[int], counts: dict[int, int], total: int
) -> list[StatusCount]:
    result = []
    for code in codes:
        count = counts.get(code, 0)
        result.append(StatusCount(code, status_label(code), count, percentage(count, total)))
    return result


def aggregate(
    panels: Sequence[Panel],
    projects: Sequence[Project],
    selection: DashboardFilter | None = None,
) -> DashboardMetrics:
    """Compute dashboard metrics over the selected panels and projects.

    Args:
        panels: Every loaded panel
        projects: Every loaded project
        selection: Project/building/facade filter (None selects everything)

    Returns:
        DashboardMetrics; percentages and ratios are 0.0 for empty inputs
    """
    selection = selection or DashboardFilter()
    selected_panels = [panel for panel in panels if selection.includes_panel(panel)]
    selected_projects = [p for p in projects if selection.includes_project(p.id)]

    counts: dict[int, int] = {}
    for panel in selected_panels:
        counts[panel.status] = counts.get(panel.status, 0) + 1
    total = len(selected_panels)

    pipeline = []
    for key, label, statuses in PIPELINE_STAGES:
        count = sum(counts.get(code, 0) for code in statuses)
        pipeline.append(PipelineStage(key, label, count, percentage(count, total)))

    estimated_cost = sum(p.estimated_cost or 0.0 for p in selected_projects)
    estimated_panels = sum(p.estimated_panels or 0 for p in selected_projects)

    def _sum(statuses: frozenset[int]) -> int:
        return sum(counts.get(code, 0) for code in statuses)

    return DashboardMetrics(
        total_panels=total,
        total_projects=len(selected_projects),
        primary_status_counts=_status_counts(PRIMARY_STATUSES, counts, total),
        secondary_status_counts=_status_counts(SECONDARY_STATUSES, counts, total),
        pipeline=pipeline,
        total_estimated_cost=float(estimated_cost),
        total_estimated_panels=int(estimated_panels),
        production_efficiency=percentage(_sum(PRODUCTION_STATUSES), estimated_panels),
        delivery_efficiency=percentage(_sum(DELIVERY_STATUSES), estimated_panels),
        overall_completion=percentage(_sum(COMPLETION_STATUSES), estimated_panels),
    )


async def compute_dashboard_metrics(
    session: AsyncSession,
    selection: DashboardFilter | None = None,
    user: CurrentUser | None = None,
    repo: TrackerRepository | None = None,
) -> DashboardMetrics:
    """Fetch the projects and panels ``user`` may see and aggregate them.

    Args:
        session: Database session
        selection: Dashboard filter
        user: Signed-in user; non-administrators only see granted projects
        repo: Optional repository (defaults to one over ``session``)
    """
    repo = repo or TrackerRepository(session)
    accessible = await get_accessible_project_ids(repo, user)

    projects = [Project.model_validate(row) for row in await repo.fetch_all(ProjectModel)]
    panels = [Panel.model_validate(row) for row in await repo.fetch_all(PanelModel)]

    if accessible is not None:
        projects = [p for p in projects if p.id in accessible]
        panels = [p for p in panels if p.project_id in accessible]

    return aggregate(panels, projects, selection)
