"""Collection-level access to the hosted database.

Mirrors the row-oriented API the dashboard was built against: equality
filters, ordering, range-paginated reads, and single-row insert/update calls
that each commit on their own, together with any dependent rows. Every call
is bounded by ``StoreConfig.request_timeout_seconds`` so one hung request
cannot stall an import run.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from paneltracker.config import StoreConfig
from paneltracker.db.models import Base

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=Base)
T = TypeVar("T")


class StoreError(Exception):
    """The backing store rejected or failed a call."""


class StoreTimeoutError(StoreError):
    """A store call exceeded the configured timeout."""


def _backend_message(exc: SQLAlchemyError) -> str:
    orig = getattr(exc, "orig", None)
    return str(orig) if orig is not None else str(exc)


class TrackerRepository:
    """Thin query/insert/update API over one AsyncSession."""

    def __init__(self, session: AsyncSession, store_config: StoreConfig | None = None):
        self.session = session
        self.config = store_config or StoreConfig()

    async def _call(self, awaitable: Awaitable[T], operation: str) -> T:
        timeout = self.config.request_timeout_seconds
        try:
            return await asyncio.wait_for(awaitable, timeout=timeout)
        except asyncio.TimeoutError as exc:
            await self.session.rollback()
            logger.warning("Store call timed out: %s (%.1fs)", operation, timeout)
            raise StoreTimeoutError(f"{operation} timed out after {timeout:g}s") from exc
        except SQLAlchemyError as exc:
            await self.session.rollback()
            logger.warning("Store call failed: %s: %s", operation, exc)
            raise StoreError(_backend_message(exc)) from exc
        except StoreError:
            await self.session.rollback()
            raise

    async def fetch_all(
        self,
        model: type[ModelT],
        order_by: str | None = "name",
        **equals: Any,
    ) -> list[ModelT]:
        """Read every row matching ``equals``, one page at a time.

        Args:
            model: ORM model class (collection)
            order_by: Column to order by; ``id`` breaks ties so pages are stable
            **equals: Column equality filters

        Returns:
            All matching rows in order
        """
        page_size = self.config.page_size
        rows: list[ModelT] = []
        offset = 0

        while True:
            stmt = select(model).filter_by(**equals)
            if order_by:
                stmt = stmt.order_by(getattr(model, order_by), model.id)
            else:
                stmt = stmt.order_by(model.id)
            stmt = stmt.offset(offset).limit(page_size)

            result = await self._call(
                self.session.execute(stmt), f"select {model.__tablename__}"
            )
            batch = list(result.scalars().all())
            rows.extend(batch)

            if len(batch) < page_size:
                break
            offset += page_size

        return rows

    async def find_one(self, model: type[ModelT], **equals: Any) -> ModelT | None:
        stmt = select(model).filter_by(**equals).limit(1)
        result = await self._call(
            self.session.execute(stmt), f"select {model.__tablename__}"
        )
        return result.scalars().first()

    async def insert(self, model: type[ModelT], values: dict[str, Any]) -> ModelT:
        """Insert one row and commit it.

        Raises:
            StoreError: Backend rejected the insert
            StoreTimeoutError: Call exceeded the timeout
        """
        return await self.save(model, values)

    async def insert_many(
        self, model: type[ModelT], rows: list[dict[str, Any]]
    ) -> list[ModelT]:
        """Insert a batch of rows in a single commit."""
        objects = [model(**values) for values in rows]

        async def _insert() -> list[ModelT]:
            self.session.add_all(objects)
            await self.session.flush()
            await self.session.commit()
            return objects

        return await self._call(_insert(), f"insert into {model.__tablename__}")

    async def update(
        self, model: type[ModelT], row_id: UUID, values: dict[str, Any]
    ) -> ModelT:
        """Update one row in place by primary key and commit it.

        Raises:
            StoreError: Row missing or backend rejected the update
        """
        return await self.save(model, values, row_id=row_id)

    async def update_many(
        self, model: type[ModelT], changes: dict[UUID, dict[str, Any]]
    ) -> list[ModelT]:
        """Update several rows by primary key in a single commit.

        Raises:
            StoreError: A row is missing or the backend rejected the update;
                nothing is committed
        """
        table = model.__tablename__

        async def _update() -> list[ModelT]:
            rows = []
            for row_id, values in changes.items():
                row = await self.session.get(model, row_id)
                if row is None:
                    raise StoreError(f"{table} row {row_id} not found")
                for key, value in values.items():
                    setattr(row, key, value)
                rows.append(row)
            await self.session.flush()
            await self.session.commit()
            return rows

        return await self._call(_update(), f"update {table}")

    async def save(
        self,
        model: type[ModelT],
        values: dict[str, Any],
        row_id: UUID | None = None,
        dependents: Callable[[ModelT], list[Base]] | None = None,
    ) -> ModelT:
        """Insert (no ``row_id``) or update one row, plus dependent rows, in one commit.

        Args:
            model: ORM model class
            values: Column values to write
            row_id: Primary key of the row to update; None inserts
            dependents: Builds extra rows from the flushed row (its id is set),
                e.g. a status history entry; they commit or fail with it

        Raises:
            StoreError: Row missing or backend rejected the write; nothing
                is committed
            StoreTimeoutError: Call exceeded the timeout
        """
        table = model.__tablename__
        operation = f"update {table}" if row_id is not None else f"insert into {table}"

        async def _save() -> ModelT:
            if row_id is None:
                row = model(**values)
                self.session.add(row)
            else:
                row = await self.session.get(model, row_id)
                if row is None:
                    raise StoreError(f"{table} row {row_id} not found")
                for key, value in values.items():
                    setattr(row, key, value)

            await self.session.flush()
            if row_id is None:
                await self.session.refresh(row)
            if dependents is not None:
                self.session.add_all(dependents(row))
                await self.session.flush()
            await self.session.commit()
            return row

        return await self._call(_save(), operation)
