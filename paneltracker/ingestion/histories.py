"""Panel status history bulk import.

Rows are grouped per panel (case-insensitive name), put in chronological
order, and consecutive repeats of the same status are dropped. Each group is
then handled in one of two modes:

- insert (default): the group is inserted as one batch. If the panel's
  current status differs from the last imported one, a synchronising entry
  is appended so the history ends on the panel's actual status.
- update existing: nothing is inserted. Each row is matched to the panel's
  earliest existing entry with the same status and user, and only that
  entry's ``created_at`` is corrected when it is more than
  ``DATE_TOLERANCE`` away from the sheet's timestamp.

A blank ``changed_by`` is attributed to the importing user in both modes,
not to a fixed administrator account.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from datetime import datetime, timedelta, timezone
from typing import Any
from uuid import UUID

from paneltracker.codes import map_status_to_code, status_label
from paneltracker.db.models import PanelModel, PanelStatusHistoryModel
from paneltracker.db.repository import TrackerRepository
from paneltracker.ingestion.dates import parse_datetime
from paneltracker.ingestion.reconciler import ReconciliationContext, normalize_name
from paneltracker.ingestion.types import PanelHistoryImportRow, RowResult

logger = logging.getLogger(__name__)

SYNC_NOTE = "Status synchronized with current panel status during bulk import"
DATE_TOLERANCE = timedelta(seconds=1)

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def group_by_panel(
    rows: Sequence[PanelHistoryImportRow],
) -> dict[str, list[PanelHistoryImportRow]]:
    """Group rows by normalised panel name, keeping first-seen order."""
    groups: dict[str, list[PanelHistoryImportRow]] = {}
    for row in rows:
        groups.setdefault(normalize_name(row.panel_name), []).append(row)
    return groups


def chronological(rows: Sequence[PanelHistoryImportRow]) -> list[PanelHistoryImportRow]:
    """Stable sort by ``created_at``; rows without a timestamp sort first."""
    return sorted(rows, key=lambda row: parse_datetime(row.created_at) or _EPOCH)


def drop_consecutive_duplicates(
    rows: Sequence[PanelHistoryImportRow],
) -> list[PanelHistoryImportRow]:
    kept: list[PanelHistoryImportRow] = []
    last: int | None = None
    for row in rows:
        code = map_status_to_code(row.status)
        if code != last:
            kept.append(row)
            last = code
    return kept


def _panel_not_found(panel_name: str) -> list[RowResult]:
    return [
        RowResult(
            label=panel_name,
            success=False,
            message=f'Panel "{panel_name}" not found',
            errors=["Panel not found in database"],
        )
    ]


def _history_user(
    context: ReconciliationContext,
    row: PanelHistoryImportRow,
    panel_name: str,
    user_id: UUID | None,
) -> tuple[UUID | None, RowResult | None]:
    """Resolve ``changed_by`` to a user id, or a failed result if unknown."""
    changed_by = (row.changed_by or "").strip()
    if not changed_by:
        return user_id, None
    user = context.find_user(changed_by)
    if user is None:
        return None, RowResult(
            label=panel_name,
            success=False,
            message=f'User "{changed_by}" not found for panel "{panel_name}"',
            errors=["User not found in database"],
        )
    return user.id, None


def _as_utc(moment: datetime) -> datetime:
    # SQLite hands back naive timestamps
    return moment if moment.tzinfo else moment.replace(tzinfo=timezone.utc)


async def import_panel_history(
    repo: TrackerRepository,
    context: ReconciliationContext,
    panel_name: str,
    rows: Sequence[PanelHistoryImportRow],
    user_id: UUID | None = None,
) -> list[RowResult]:
    """Import one panel's history group.

    Args:
        repo: Store access
        context: Run cache holding panels and users
        panel_name: Panel name as written on the first row of the group
        rows: The group's validated rows
        user_id: Importing user, used when ``changed_by`` is blank

    Returns:
        One result for the batch, plus one per row whose ``changed_by``
        names an unknown user and one for a sync entry

    Raises:
        StoreError: The batch insert failed
    """
    panel = context.find_panel_by_name_ci(panel_name)
    if panel is None:
        return _panel_not_found(panel_name)

    results: list[RowResult] = []
    batch: list[dict[str, Any]] = []
    last_status: int | None = None

    for index, row in enumerate(drop_consecutive_duplicates(chronological(rows))):
        history_user_id, failure = _history_user(context, row, panel_name, user_id)
        if failure is not None:
            results.append(failure)
            continue

        status = map_status_to_code(row.status)
        created_at = parse_datetime(row.created_at, order_index=index) or datetime.now(timezone.utc)
        batch.append(
            {
                "panel_id": panel.id,
                "status": status,
                "user_id": history_user_id,
                "created_at": created_at,
                "image_url": (row.image_url or "").strip() or None,
                "notes": (row.notes or "").strip() or None,
            }
        )
        last_status = status

    if not batch:
        return results

    await repo.insert_many(PanelStatusHistoryModel, batch)
    results.append(
        RowResult(
            label=panel.name,
            success=True,
            message=f'Imported {len(batch)} histories for panel "{panel.name}"',
            record_id=panel.id,
        )
    )

    current = await repo.find_one(PanelModel, id=panel.id)
    if current is not None and current.status != last_status:
        await repo.insert(
            PanelStatusHistoryModel,
            {
                "panel_id": panel.id,
                "status": current.status,
                "user_id": user_id,
                "created_at": datetime.now(timezone.utc),
                "notes": SYNC_NOTE,
            },
        )
        logger.info(
            "Synchronised panel %r history from %s to %s",
            panel.name,
            status_label(last_status),
            status_label(current.status),
        )
        results.append(
            RowResult(
                label=panel.name,
                success=True,
                message=f'Synchronized panel "{panel.name}" status with current panel status',
                record_id=panel.id,
            )
        )

    return results


async def update_panel_history_dates(
    repo: TrackerRepository,
    context: ReconciliationContext,
    panel_name: str,
    rows: Sequence[PanelHistoryImportRow],
    user_id: UUID | None = None,
) -> list[RowResult]:
    """Correct ``created_at`` on one panel's existing history entries.

    Rows without a timestamp are skipped. Every correction for the panel
    is written in one commit.

    Raises:
        StoreError: Reading or updating the panel's entries failed
    """
    panel = context.find_panel_by_name_ci(panel_name)
    if panel is None:
        return _panel_not_found(panel_name)

    existing = await repo.fetch_all(
        PanelStatusHistoryModel, order_by="created_at", panel_id=panel.id
    )
    if not existing:
        return [
            RowResult(
                label=panel.name,
                success=False,
                message=f'No existing histories found for panel "{panel.name}"',
                errors=["No existing panel histories to update"],
            )
        ]

    earliest: dict[tuple[int, UUID | None], PanelStatusHistoryModel] = {}
    for entry in existing:
        earliest.setdefault((entry.status, entry.user_id), entry)

    results: list[RowResult] = []
    changes: dict[UUID, dict[str, Any]] = {}

    for index, row in enumerate(drop_consecutive_duplicates(chronological(rows))):
        history_user_id, failure = _history_user(context, row, panel_name, user_id)
        if failure is not None:
            results.append(failure)
            continue

        entry = earliest.get((map_status_to_code(row.status), history_user_id))
        created_at = parse_datetime(row.created_at, order_index=index)
        if entry is None or created_at is None:
            continue
        if abs(created_at - _as_utc(entry.created_at)) > DATE_TOLERANCE:
            changes[entry.id] = {"created_at": created_at}

    if not changes:
        results.append(
            RowResult(
                label=panel.name,
                success=True,
                message=(
                    f'No updates needed for panel "{panel.name}" - all dates are already correct'
                ),
                record_id=panel.id,
            )
        )
        return results

    await repo.update_many(PanelStatusHistoryModel, changes)
    logger.info("Corrected %d history dates for panel %r", len(changes), panel.name)
    results.append(
        RowResult(
            label=panel.name,
            success=True,
            message=f'Updated {len(changes)} histories for panel "{panel.name}"',
            record_id=panel.id,
        )
    )
    return results
