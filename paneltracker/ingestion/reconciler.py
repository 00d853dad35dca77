"""Entity reconciliation for bulk imports.

Spreadsheets reference customers, projects, buildings and facades by name.
``EntityReconciler.resolve_or_create`` finds an existing entity by
case-insensitive trimmed name (buildings within their project, facades within
their building) or creates it, in dependency order customer -> project ->
building -> facade.

All lookups run against a ``ReconciliationContext``: a per-run cache seeded
from one initial fetch and appended to immediately after every create, so
row N+1 sees what row N created. The orchestrator owns the context for the
length of one run and then drops it.
"""

from __future__ import annotations

import logging
import re
from collections import Counter
from dataclasses import dataclass, field
from typing import Any
from uuid import UUID

from paneltracker.codes import DEFAULT_PROJECT_STATUS
from paneltracker.config import ImportConfig
from paneltracker.db.models import (
    BuildingModel,
    CustomerModel,
    FacadeModel,
    PanelModel,
    ProjectModel,
    UserModel,
)
from paneltracker.db.repository import TrackerRepository
from paneltracker.models import Building, Customer, EntityKind, Facade, Panel, Project, User

logger = logging.getLogger(__name__)


class ResolutionError(Exception):
    """A required parent entity could not be found or created."""


@dataclass(frozen=True)
class _KindSpec:
    model: type
    snapshot: type
    attribute: str
    parent_field: str | None


_KINDS: dict[EntityKind, _KindSpec] = {
    EntityKind.CUSTOMER: _KindSpec(CustomerModel, Customer, "customers", None),
    EntityKind.PROJECT: _KindSpec(ProjectModel, Project, "projects", None),
    EntityKind.BUILDING: _KindSpec(BuildingModel, Building, "buildings", "project_id"),
    EntityKind.FACADE: _KindSpec(FacadeModel, Facade, "facades", "building_id"),
}


def normalize_name(name: str | None) -> str:
    return (name or "").strip().lower()


@dataclass
class ReconciliationContext:
    """Session-scoped cache of known entities for one import run."""

    customers: list[Customer] = field(default_factory=list)
    projects: list[Project] = field(default_factory=list)
    buildings: list[Building] = field(default_factory=list)
    facades: list[Facade] = field(default_factory=list)
    panels: list[Panel] = field(default_factory=list)
    users: list[User] = field(default_factory=list)
    created: Counter = field(default_factory=Counter)

    @classmethod
    async def load(cls, repo: TrackerRepository) -> ReconciliationContext:
        """Seed the cache with one fetch per collection."""
        return cls(
            customers=[Customer.model_validate(r) for r in await repo.fetch_all(CustomerModel)],
            projects=[Project.model_validate(r) for r in await repo.fetch_all(ProjectModel)],
            buildings=[Building.model_validate(r) for r in await repo.fetch_all(BuildingModel)],
            facades=[Facade.model_validate(r) for r in await repo.fetch_all(FacadeModel)],
            panels=[Panel.model_validate(r) for r in await repo.fetch_all(PanelModel)],
            users=[User.model_validate(r) for r in await repo.fetch_all(UserModel)],
        )

    def entities(self, kind: EntityKind) -> list:
        return getattr(self, _KINDS[kind].attribute)

    def find(self, kind: EntityKind, name: str, parent_id: UUID | None = None):
        """Linear scan for a normalised-name match, scoped to ``parent_id``."""
        wanted = normalize_name(name)
        parent_field = _KINDS[kind].parent_field
        for entity in self.entities(kind):
            if parent_field and getattr(entity, parent_field) != parent_id:
                continue
            if normalize_name(entity.name) == wanted:
                return entity
        return None

    def add(self, kind: EntityKind, entity: Any) -> None:
        self.entities(kind).append(entity)
        self.created[kind] += 1

    def find_panel(self, name: str) -> Panel | None:
        """Panels match on exact trimmed name."""
        wanted = name.strip()
        for panel in self.panels:
            if panel.name.strip() == wanted:
                return panel
        return None

    def find_panel_by_name_ci(self, name: str) -> Panel | None:
        wanted = normalize_name(name)
        for panel in self.panels:
            if normalize_name(panel.name) == wanted:
                return panel
        return None

    def replace_panel(self, panel: Panel) -> None:
        for index, existing in enumerate(self.panels):
            if existing.id == panel.id:
                self.panels[index] = panel
                return
        self.panels.append(panel)

    def find_user(self, name: str) -> User | None:
        wanted = normalize_name(name)
        for user in self.users:
            if normalize_name(user.name) == wanted:
                return user
        return None


class EntityReconciler:
    """Resolves names to ids, creating missing entities on the fly."""

    def __init__(
        self,
        repo: TrackerRepository,
        context: ReconciliationContext,
        config: ImportConfig | None = None,
        user_id: UUID | None = None,
    ):
        self.repo = repo
        self.context = context
        self.config = config or ImportConfig()
        self.user_id = user_id

    async def resolve_or_create(
        self,
        kind: EntityKind,
        name: str | None,
        parent_id: UUID | None = None,
        defaults: dict[str, Any] | None = None,
    ) -> UUID:
        """Return the id of the ``kind`` entity called ``name``.

        Args:
            kind: Entity kind
            name: Display name from the sheet
            parent_id: Project id for buildings, building id for facades
            defaults: Extra column values used only when creating

        Raises:
            ResolutionError: Blank name or missing parent
            StoreError: The create call failed
        """
        spec = _KINDS[kind]
        if not (name or "").strip():
            raise ResolutionError(f"{kind.value.capitalize()} name is required")
        if spec.parent_field and parent_id is None:
            raise ResolutionError(
                f'{kind.value.capitalize()} "{name}" needs a {spec.parent_field.removesuffix("_id")}'
            )

        existing = self.context.find(kind, name, parent_id)
        if existing is not None:
            return existing.id

        values: dict[str, Any] = {"name": name.strip(), **(defaults or {})}
        if spec.parent_field:
            values[spec.parent_field] = parent_id

        row = await self.repo.insert(spec.model, values)
        entity = spec.snapshot.model_validate(row)
        self.context.add(kind, entity)
        logger.info("Created %s %r (%s)", kind.value, entity.name, entity.id)
        return entity.id

    def placeholder_contact(self, name: str) -> dict[str, str]:
        slug = re.sub(r"[^a-z0-9]+", ".", name.strip().lower()).strip(".") or "customer"
        return {
            "email": f"{slug}@{self.config.placeholder_email_domain}",
            "phone": self.config.placeholder_phone,
        }

    async def resolve_customer(self, name: str) -> UUID:
        return await self.resolve_or_create(
            EntityKind.CUSTOMER, name, defaults=self.placeholder_contact(name)
        )

    async def resolve_project(self, name: str | None, customer_name: str | None = None) -> UUID:
        """Resolve a project; a new project also resolves its customer.

        With no customer given, the new project's customer is created under
        the project's own name with placeholder contact details.
        """
        if not (name or "").strip():
            raise ResolutionError("Project name is required")

        existing = self.context.find(EntityKind.PROJECT, name)
        if existing is not None:
            return existing.id

        customer_id = await self.resolve_customer((customer_name or "").strip() or name)
        return await self.resolve_or_create(
            EntityKind.PROJECT,
            name,
            defaults={
                "customer_id": customer_id,
                "status": DEFAULT_PROJECT_STATUS,
                "user_id": self.user_id,
            },
        )

    async def resolve_panel_location(
        self,
        project_name: str | None,
        building_name: str | None = None,
        facade_name: str | None = None,
        customer_name: str | None = None,
    ) -> tuple[UUID, UUID | None, UUID | None]:
        """Resolve (project_id, building_id, facade_id) for one panel row.

        A facade is only resolved inside a resolved building, so a panel's
        facade always belongs to the panel's building.

        Raises:
            ResolutionError: No project name on the row
        """
        if not (project_name or "").strip():
            raise ResolutionError("Project name is required to import a panel")

        project_id = await self.resolve_project(project_name, customer_name)

        building_id = None
        if (building_name or "").strip():
            building_id = await self.resolve_or_create(
                EntityKind.BUILDING, building_name, parent_id=project_id
            )

        facade_id = None
        if building_id is not None and (facade_name or "").strip():
            facade_id = await self.resolve_or_create(
                EntityKind.FACADE, facade_name, parent_id=building_id
            )

        return project_id, building_id, facade_id
