"""Database layer for Panel Tracker with async SQLAlchemy."""

from paneltracker.db.connection import get_session, init_db
from paneltracker.db.models import (
    Base,
    BuildingModel,
    CustomerModel,
    FacadeModel,
    PanelModel,
    PanelStatusHistoryModel,
    ProjectModel,
    UserModel,
    UserProjectAccessModel,
)
from paneltracker.db.repository import StoreError, StoreTimeoutError, TrackerRepository

__all__ = [
    "Base",
    "CustomerModel",
    "ProjectModel",
    "BuildingModel",
    "FacadeModel",
    "PanelModel",
    "PanelStatusHistoryModel",
    "UserModel",
    "UserProjectAccessModel",
    "TrackerRepository",
    "StoreError",
    "StoreTimeoutError",
    "get_session",
    "init_db",
]
