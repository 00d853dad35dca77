"""Role-based access control for Panel Tracker.

Every user carries one role string. Permissions are looked up per resource
and action, e.g. ``has_permission("Data Entry", "panels", "bulk_import")``.
"""

from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID

ADMINISTRATOR = "Administrator"
DATA_ENTRY = "Data Entry"
CUSTOMER = "Customer"

ROLES: tuple[str, ...] = (
    ADMINISTRATOR,
    DATA_ENTRY,
    "Production engineer",
    "QC Factory",
    "Store Site",
    "QC Site",
    "Foreman Site",
    "Site Engineer",
    CUSTOMER,
)

RESOURCES: tuple[str, ...] = (
    "users",
    "projects",
    "customers",
    "buildings",
    "facades",
    "panels",
    "panel_groups",
    "notes",
)

NAVIGATION_PAGES: tuple[str, ...] = (
    "dashboard",
    "projects",
    "buildings",
    "facades",
    "panels",
    "customers",
    "panel_groups",
    "notes",
    "users",
    "bulk_import",
)


@dataclass(frozen=True)
class CurrentUser:
    """The signed-in user as exposed by the session layer."""

    id: UUID | None
    role: str
    name: str | None = None

    @property
    def is_administrator(self) -> bool:
        return self.role == ADMINISTRATOR


def _crud(
    create: bool = False,
    read: bool = False,
    update: bool = False,
    delete: bool = False,
    **extra: bool,
) -> dict[str, bool]:
    return {"create": create, "read": read, "update": update, "delete": delete, **extra}


_FULL = _crud(True, True, True, True)
_READ = _crud(read=True)
_NONE = _crud()


def _full_access(users: dict[str, bool]) -> dict:
    return {
        "users": users,
        "projects": _crud(True, True, True, True, bulk_import=True),
        "customers": _FULL,
        "buildings": _FULL,
        "facades": _FULL,
        "panels": _crud(
            True, True, True, True, bulk_import=True, change_status=True, select=True
        ),
        "panel_groups": _FULL,
        "notes": _FULL,
    }


def _site_staff() -> dict:
    """Factory and site roles: read everything, move panel statuses."""
    return {
        "users": _NONE,
        "projects": _READ,
        "customers": _READ,
        "buildings": _READ,
        "facades": _READ,
        "panels": _crud(read=True, bulk_import=False, change_status=True, select=True),
        "panel_groups": _READ,
        "notes": _READ,
    }


_STAFF_NAVIGATION = {page: page not in ("users", "bulk_import") for page in NAVIGATION_PAGES}

ROLE_PERMISSIONS: dict[str, dict] = {
    ADMINISTRATOR: {
        **_full_access(users=_FULL),
        "navigation": {page: True for page in NAVIGATION_PAGES},
    },
    DATA_ENTRY: {
        **_full_access(users=_NONE),
        "navigation": {page: page != "users" for page in NAVIGATION_PAGES},
    },
    CUSTOMER: {
        "users": _NONE,
        "projects": _crud(read=True, customer_specific=True),
        "customers": _NONE,
        "buildings": _READ,
        "facades": _READ,
        "panels": _crud(read=True, bulk_import=False, change_status=False, select=False),
        "panel_groups": _READ,
        "notes": _READ,
        "navigation": {page: page in ("projects", "panels") for page in NAVIGATION_PAGES},
    },
}

for _role in ROLES[2:-1]:
    ROLE_PERMISSIONS[_role] = {**_site_staff(), "navigation": dict(_STAFF_NAVIGATION)}


def has_permission(role: str | None, resource: str, action: str) -> bool:
    """True only when ``role`` is known and explicitly grants ``action``."""
    permissions = ROLE_PERMISSIONS.get(role or "")
    if not permissions or resource == "navigation":
        return False
    return permissions.get(resource, {}).get(action) is True


def can_perform_action(role: str | None, resource: str, action: str) -> bool:
    """CRUD shorthand; ``action`` is one of create/read/update/delete."""
    if action not in ("create", "read", "update", "delete"):
        raise ValueError(f"Unknown CRUD action: {action}")
    return has_permission(role, resource, action)


def can_access_navigation(role: str | None, page: str) -> bool:
    permissions = ROLE_PERMISSIONS.get(role or "")
    if not permissions:
        return False
    return permissions["navigation"].get(page) is True


def is_read_only_role(role: str | None) -> bool:
    return role == CUSTOMER


def can_modify_data(role: str | None) -> bool:
    return not is_read_only_role(role)


def can_manage_users(role: str | None) -> bool:
    return role == ADMINISTRATOR
