"""Pytest configuration and fixtures for Panel Tracker tests.

Provides an in-memory database per test and helpers for building
spreadsheet uploads.
"""

from __future__ import annotations

from collections.abc import Sequence
from io import BytesIO
from typing import Any
from uuid import uuid4

import pytest
import pytest_asyncio
from openpyxl import Workbook
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker

from paneltracker.access.permissions import ADMINISTRATOR, CurrentUser
from paneltracker.db.models import Base
from paneltracker.db.repository import TrackerRepository
from paneltracker.ingestion.spreadsheet import PANEL_COLUMNS


def make_workbook(rows: Sequence[Sequence[Any]], header: Sequence[str] | None = None) -> bytes:
    """Build ``.xlsx`` bytes with ``header`` as the first row."""
    wb = Workbook()
    ws = wb.active
    if header is not None:
        ws.append(list(header))
    for row in rows:
        ws.append(list(row))
    output = BytesIO()
    wb.save(output)
    return output.getvalue()


def panel_row(**values: Any) -> list[Any]:
    """A positional panel row with the given fields set, others blank."""
    return [values.get(column) for column in PANEL_COLUMNS]


@pytest_asyncio.fixture()
async def db_session() -> AsyncSession:
    """Create in-memory database for testing."""
    engine = create_async_engine("sqlite+aiosqlite:///:memory:")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    SessionLocal = sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    session = SessionLocal()
    try:
        yield session
    finally:
        await session.close()
        await engine.dispose()


@pytest.fixture
def repo(db_session: AsyncSession) -> TrackerRepository:
    return TrackerRepository(db_session)


@pytest.fixture
def admin_user() -> CurrentUser:
    return CurrentUser(id=uuid4(), role=ADMINISTRATOR, name="admin")


@pytest.fixture
def xlsx():
    """Factory fixture: ``xlsx(rows, header=None) -> bytes``."""
    return make_workbook


@pytest.fixture
def panel_values():
    """Factory fixture: ``panel_values(name=..., ...) -> positional row``."""
    return panel_row
