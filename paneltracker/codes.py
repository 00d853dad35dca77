"""Panel status and type code tables.

Panels persist status and type as small integers. The status table below is
the one already-persisted records use (0 = Issued For Production ...
11 = Broken at Site); the order is not the production pipeline order, see
``paneltracker.reporting.dashboard_metrics`` for that.
"""

from __future__ import annotations

PANEL_STATUSES: tuple[str, ...] = (
    "Issued For Production",  # 0
    "Produced",  # 1
    "Proceed for Delivery",  # 2
    "Delivered",  # 3
    "Approved Material",  # 4
    "Rejected Material",  # 5
    "Installed",  # 6
    "Inspected",  # 7
    "Approved Final",  # 8
    "On Hold",  # 9
    "Cancelled",  # 10
    "Broken at Site",  # 11
)

ISSUED_FOR_PRODUCTION = 0
PRODUCED = 1
PROCEED_FOR_DELIVERY = 2
DELIVERED = 3
APPROVED_MATERIAL = 4
REJECTED_MATERIAL = 5
INSTALLED = 6
INSPECTED = 7
APPROVED_FINAL = 8
ON_HOLD = 9
CANCELLED = 10
BROKEN_AT_SITE = 11

# Accepted spreadsheet phrases (lower-cased). Includes the common
# "procced" misspelling found in customer sheets.
STATUS_PHRASES: dict[str, int] = {
    "issued for production": ISSUED_FOR_PRODUCTION,
    "produced": PRODUCED,
    "proceed for delivery": PROCEED_FOR_DELIVERY,
    "procced for delivery": PROCEED_FOR_DELIVERY,
    "delivered": DELIVERED,
    "approved material": APPROVED_MATERIAL,
    "rejected material": REJECTED_MATERIAL,
    "installed": INSTALLED,
    "inspected": INSPECTED,
    "approved final": APPROVED_FINAL,
    "on hold": ON_HOLD,
    "cancelled": CANCELLED,
    "broken at site": BROKEN_AT_SITE,
}

PANEL_TYPES: tuple[str, ...] = ("GRC", "GRG", "GRP", "EIFS", "UHPC")

PROJECT_STATUSES: tuple[str, ...] = ("active", "completed", "on-hold", "inactive")
DEFAULT_PROJECT_STATUS = "active"

# Allowed forward moves per status. On Hold and Cancelled are reachable from
# anywhere via SPECIAL_STATUSES.
STATUS_FLOW: dict[int, tuple[int, ...]] = {
    ISSUED_FOR_PRODUCTION: (PRODUCED,),
    PRODUCED: (PROCEED_FOR_DELIVERY,),
    PROCEED_FOR_DELIVERY: (DELIVERED,),
    DELIVERED: (APPROVED_MATERIAL, REJECTED_MATERIAL),
    APPROVED_MATERIAL: (INSTALLED,),
    REJECTED_MATERIAL: (ISSUED_FOR_PRODUCTION,),
    INSTALLED: (INSPECTED, BROKEN_AT_SITE),
    INSPECTED: (APPROVED_FINAL,),
    APPROVED_FINAL: (),
    ON_HOLD: tuple(code for code in range(len(PANEL_STATUSES)) if code != ON_HOLD),
    CANCELLED: (),
    BROKEN_AT_SITE: (ISSUED_FOR_PRODUCTION,),
}

SPECIAL_STATUSES: tuple[int, ...] = (ON_HOLD, CANCELLED)


def status_code(text: str | None) -> int | None:
    """Return the status code for a spreadsheet phrase, or None if unknown."""
    if text is None:
        return None
    return STATUS_PHRASES.get(text.strip().lower())


def map_status_to_code(text: str | None) -> int:
    """Map free-text status to its code; unknown or blank text maps to 0.

    The silent default is relied on by existing sheets and must not change.
    """
    code = status_code(text)
    return code if code is not None else ISSUED_FOR_PRODUCTION


def type_code(text: str | None) -> int | None:
    if text is None:
        return None
    normalized = text.strip().upper()
    if normalized in PANEL_TYPES:
        return PANEL_TYPES.index(normalized)
    return None


def map_type_to_code(text: str | None) -> int:
    """Map panel type text to its code; unknown or blank text maps to 0 (GRC)."""
    code = type_code(text)
    return code if code is not None else 0


def status_label(code: int | None) -> str:
    if code is None or not 0 <= code < len(PANEL_STATUSES):
        return "Unknown"
    return PANEL_STATUSES[code]


def type_label(code: int | None) -> str:
    if code is None or not 0 <= code < len(PANEL_TYPES):
        return "Unknown"
    return PANEL_TYPES[code]


def is_terminal_status(code: int) -> bool:
    return not valid_next_statuses(code)


def valid_next_statuses(current: int) -> list[int]:
    """All statuses a panel may move to from ``current``."""
    if current == CANCELLED:
        return []
    allowed = list(STATUS_FLOW.get(current, ()))
    for special in SPECIAL_STATUSES:
        if special != current and special not in allowed:
            allowed.append(special)
    return allowed


def validate_status_transition(current: int, new: int) -> tuple[bool, str | None]:
    """Check whether a panel may move from ``current`` to ``new``.

    Returns:
        Tuple of (is_valid, error_message)
    """
    if current == new:
        return False, "Cannot change to the same status"

    if current == CANCELLED:
        return False, f'"{status_label(current)}" is a terminal status'

    if new in SPECIAL_STATUSES:
        return True, None

    allowed = valid_next_statuses(current)
    if new not in allowed:
        allowed_names = ", ".join(status_label(code) for code in allowed)
        return False, (
            f'Cannot change from "{status_label(current)}" to "{status_label(new)}". '
            f"Allowed transitions: {allowed_names}"
        )

    return True, None
