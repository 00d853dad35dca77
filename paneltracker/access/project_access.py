"""Project visibility per user.

Administrators see every project; everyone else only the projects granted
to them in ``user_project_access``.
"""

from __future__ import annotations

import logging
from uuid import UUID

from paneltracker.access.permissions import CurrentUser
from paneltracker.db.models import UserProjectAccessModel
from paneltracker.db.repository import TrackerRepository

logger = logging.getLogger(__name__)


async def get_accessible_project_ids(
    repo: TrackerRepository, user: CurrentUser | None
) -> set[UUID] | None:
    """Return the project ids ``user`` may see.

    Returns:
        None when the user may see all projects, otherwise a (possibly empty) set
    """
    if user is None:
        return set()

    if user.is_administrator:
        return None

    if user.id is None:
        return set()

    grants = await repo.fetch_all(
        UserProjectAccessModel, order_by=None, user_id=user.id
    )
    logger.debug("User %s has access to %d projects", user.id, len(grants))
    return {grant.project_id for grant in grants}


async def has_project_access(
    repo: TrackerRepository, user: CurrentUser | None, project_id: UUID
) -> bool:
    accessible = await get_accessible_project_ids(repo, user)
    return accessible is None or project_id in accessible
