"""Downloadable ``.xlsx`` templates for the bulk importers.

Each template has a bold header row in the exact column order the matching
parser expects, followed by sample rows that validate cleanly.
"""

from __future__ import annotations

from io import BytesIO

from openpyxl import Workbook
from openpyxl.styles import Font, PatternFill
from openpyxl.utils import get_column_letter

from paneltracker.ingestion.spreadsheet import HISTORY_COLUMNS, PANEL_COLUMNS, PROJECT_COLUMNS
from paneltracker.ingestion.types import ImportKind

PANEL_SAMPLES: list[tuple] = [
    (
        "Project Alpha", "Panel A-001", "UHPC", "Issued For Production", "15/01/2024",
        "IT-001", "DWG-001", "Exterior wall panel", "10.5", "5", "52.5", "120",
        "1200x600", "Building A", "North Facade", "Al Rayyan Construction",
    ),
    (
        "Project Beta", "Panel B-002", "GRC", "Produced", "01.02.2024",
        "IT-002", "DWG-002", "Interior partition panel", "8.25", "3", "24.75", "95.5",
        "900x600", "Tower 1", "", "",
    ),
]

PROJECT_SAMPLES: list[tuple] = [
    ("Project Alpha", "Al Rayyan Construction", "Doha, Qatar",
     "2024-01-15", "2024-06-30", "active", 500000, 1200),
    ("Project Beta", "Qatar Building Solutions", "Al Wakrah, Qatar",
     "2024-02-01", "2024-08-15", "active", 750000, 1800),
]

HISTORY_SAMPLES: list[tuple] = [
    ("Panel A-001", "Issued For Production", "", "15/01/2024 09:00:00", "", "Initial status"),
    ("Panel A-001", "Produced", "", "20/01/2024 14:30:00", "", "Production completed"),
    ("Panel A-001", "Proceed for Delivery", "", "25/01/2024", "", ""),
]

TEMPLATES: dict[ImportKind, tuple[str, tuple[str, ...], list[tuple]]] = {
    ImportKind.PANELS: ("Panels", PANEL_COLUMNS, PANEL_SAMPLES),
    ImportKind.PROJECTS: ("Projects", PROJECT_COLUMNS, PROJECT_SAMPLES),
    ImportKind.PANEL_HISTORIES: ("Panel Histories", HISTORY_COLUMNS, HISTORY_SAMPLES),
}

HEADER_FILL = PatternFill(start_color="1F4E78", end_color="1F4E78", fill_type="solid")


def template_filename(kind: ImportKind | str) -> str:
    return f"{ImportKind(kind).value}_import_template.xlsx"


def build_template(kind: ImportKind | str) -> BytesIO:
    """Build the import template workbook for ``kind``.

    Returns:
        BytesIO positioned at the start of the workbook bytes
    """
    title, columns, samples = TEMPLATES[ImportKind(kind)]

    wb = Workbook()
    ws = wb.active
    ws.title = title

    ws.append(list(columns))
    for cell in ws[1]:
        cell.font = Font(bold=True, color="FFFFFF")
        cell.fill = HEADER_FILL

    for sample in samples:
        ws.append([value if value != "" else None for value in sample])

    for index, column in enumerate(columns, start=1):
        ws.column_dimensions[get_column_letter(index)].width = max(len(column) + 4, 16)
    ws.freeze_panes = "A2"

    output = BytesIO()
    wb.save(output)
    output.seek(0)
    return output
