"""Dashboard routes for Panel Tracker.

Routes:
- GET /api/dashboard/metrics - Status, pipeline and efficiency metrics
"""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, Query

from paneltracker.access.permissions import CurrentUser
from paneltracker.db.connection import get_session
from paneltracker.reporting.dashboard_metrics import DashboardFilter, compute_dashboard_metrics
from paneltracker.web.dependencies import get_current_user

router = APIRouter(prefix="/api/dashboard", tags=["dashboard"])


@router.get("/metrics")
async def dashboard_metrics(
    project_id: list[UUID] = Query(default=[]),
    building_id: list[UUID] = Query(default=[]),
    facade_id: list[UUID] = Query(default=[]),
    user: CurrentUser = Depends(get_current_user),
):
    """Dashboard metrics for the projects the user may see.

    Repeat ``project_id``, ``building_id`` or ``facade_id`` to narrow the
    selection; omitted levels are unrestricted.
    """
    selection = DashboardFilter.of(project_id, building_id, facade_id)

    async with get_session() as session:
        metrics = await compute_dashboard_metrics(session, selection, user)

    return metrics.to_dict()
