"""Shared dependencies for Panel Tracker web routes.

Authentication is handled upstream; the gateway forwards the signed-in user
as ``X-User-Id`` and ``X-User-Role`` headers.

Usage:
    from fastapi import Depends
    from paneltracker.web.dependencies import get_current_user

    @router.get("/page")
    async def page(user: CurrentUser = Depends(get_current_user)):
        ...
"""

from __future__ import annotations

from uuid import UUID

from fastapi import Header, HTTPException

from paneltracker.access.permissions import ROLES, CurrentUser


def get_current_user(
    x_user_id: str | None = Header(default=None),
    x_user_role: str | None = Header(default=None),
    x_user_name: str | None = Header(default=None),
) -> CurrentUser:
    """Build the current user from gateway headers.

    Raises:
        HTTPException: 401 when the role header is missing, 400 when a header
            value is malformed
    """
    if not x_user_role:
        raise HTTPException(status_code=401, detail="Not authenticated")
    if x_user_role not in ROLES:
        raise HTTPException(status_code=400, detail=f"Unknown role: {x_user_role}")

    user_id = None
    if x_user_id:
        try:
            user_id = UUID(x_user_id)
        except ValueError:
            raise HTTPException(status_code=400, detail="Invalid X-User-Id header") from None

    return CurrentUser(id=user_id, role=x_user_role, name=x_user_name)
