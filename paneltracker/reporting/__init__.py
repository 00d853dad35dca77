"""Reporting module for Panel Tracker.

Dashboard metrics over loaded panels and projects, and import templates.
"""

from paneltracker.reporting.dashboard_metrics import (
    DashboardFilter,
    DashboardMetrics,
    aggregate,
    compute_dashboard_metrics,
)
from paneltracker.reporting.templates import build_template

__all__ = [
    "DashboardFilter",
    "DashboardMetrics",
    "aggregate",
    "build_template",
    "compute_dashboard_metrics",
]
