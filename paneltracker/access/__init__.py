"""Role permissions and project visibility."""

from paneltracker.access.permissions import (
    ROLE_PERMISSIONS,
    CurrentUser,
    can_access_navigation,
    has_permission,
)

__all__ = ["ROLE_PERMISSIONS", "CurrentUser", "can_access_navigation", "has_permission"]
