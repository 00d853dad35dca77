"""Panel Tracker web route modules.

Each module exports a ``router`` (APIRouter instance) included by
``paneltracker.web.app``.
"""

from paneltracker.web.routes import dashboard, imports

__all__ = ["dashboard", "imports"]
