"""Date handling for spreadsheet imports.

Spreadsheet cells arrive as text in one of three layouts, as native
datetimes, or as Excel serial numbers. Parsing keeps dates as ``DD/MM/YYYY``
text; the importers turn that text into ``date`` objects here and persist
them as ``YYYY-MM-DD``.

Delimiter decides layout: ``/`` and ``.`` are always day-first, ``-`` is
year-first. Explicit zero dates (``0000-00-00``, ``00/00/0000``,
``00.00.0000`` and any zero component) map to ``SENTINEL_DATE``.
"""

from __future__ import annotations

import logging
import re
from datetime import date, datetime, time, timedelta, timezone
from typing import Any

import pandas as pd
from openpyxl.utils.datetime import WINDOWS_EPOCH, from_excel

logger = logging.getLogger(__name__)

SENTINEL_DATE = date(1900, 1, 1)
MIN_YEAR = 1900
MAX_YEAR = 2100
DISPLAY_FORMAT = "%d/%m/%Y"

_ZERO_DATES = {"0000-00-00", "00/00/0000", "00.00.0000"}
_LEADING_INT = re.compile(r"^\s*(\d+)")
_SERIAL = re.compile(r"^\d+(\.\d+)?$")
_WORDS = re.compile(r"[A-Za-z]{3,}")
_TRAILING_TIME = re.compile(r"^(?P<date>.+?)\s+(?P<h>\d{1,2}):(?P<m>\d{2})(?::(?P<s>\d{2}))?$")

# delimiter -> index of (day, month, year) within the split parts
_LAYOUTS: tuple[tuple[str, tuple[int, int, int], str], ...] = (
    ("/", (0, 1, 2), "DD/MM/YYYY"),
    (".", (0, 1, 2), "DD.MM.YYYY"),
    ("-", (2, 1, 0), "YYYY-MM-DD"),
)


def _leading_int(part: str) -> int | None:
    match = _LEADING_INT.match(part)
    return int(match.group(1)) if match else None


def _is_zero_part(part: str, width: int) -> bool:
    return part.strip() == "0" * width


def parse_date(text: str | None) -> date | None:
    """Strict parse used by the row validators.

    Returns:
        The parsed date, ``SENTINEL_DATE`` for explicit zero dates, or None
        when the text is blank or cannot be read as a date.
    """
    if text is None:
        return None
    value = str(text).strip()
    if not value:
        return None
    if value in _ZERO_DATES:
        return SENTINEL_DATE

    for delimiter, (day_idx, month_idx, year_idx), _ in _LAYOUTS:
        if delimiter not in value:
            continue
        parts = value.split(delimiter)
        if len(parts) != 3:
            break

        if (
            _is_zero_part(parts[day_idx], 2)
            or _is_zero_part(parts[month_idx], 2)
            or _is_zero_part(parts[year_idx], 4)
        ):
            return SENTINEL_DATE

        day = _leading_int(parts[day_idx])
        month = _leading_int(parts[month_idx])
        year = _leading_int(parts[year_idx])
        if day is None or month is None or year is None:
            return None
        if not MIN_YEAR <= year <= MAX_YEAR:
            return None
        try:
            return date(year, month, day)
        except ValueError:
            return None

    # Free-form text such as "15 January 2024"
    if _WORDS.search(value):
        parsed = pd.to_datetime(value, dayfirst=True, errors="coerce")
        if not pd.isna(parsed) and MIN_YEAR <= parsed.year <= MAX_YEAR:
            return parsed.date()

    return None


def normalize_date(text: str | None) -> date | None:
    """Lenient parse: anything unreadable becomes ``SENTINEL_DATE``.

    Returns None only for blank input, which persists as NULL.
    """
    if text is None or not str(text).strip():
        return None
    parsed = parse_date(text)
    if parsed is None:
        logger.debug("Unparseable date %r normalised to %s", text, SENTINEL_DATE)
        return SENTINEL_DATE
    return parsed


def to_iso(value: date | None) -> str | None:
    """Render for persistence (``YYYY-MM-DD``)."""
    return value.isoformat() if value is not None else None


def to_display(value: date) -> str:
    return value.strftime(DISPLAY_FORMAT)


def excel_serial_to_datetime(serial: float) -> datetime | None:
    """Convert an Excel serial number using the 1900 date system.

    Day 0 is 1899-12-30; serials below 61 are shifted for Excel's phantom
    29 February 1900. Returns None for serials that are not a calendar day
    (fractions below 1 are a bare time of day) or fall outside the
    supported date range.
    """
    try:
        moment = from_excel(serial, epoch=WINDOWS_EPOCH)
    except (OverflowError, ValueError):
        return None
    if not isinstance(moment, datetime):
        return None
    return moment


def cell_to_date_text(value: Any, keep_time: bool = False) -> str | None:
    """Render a raw spreadsheet cell as date text.

    Native datetimes and serial numbers become ``DD/MM/YYYY`` (plus
    ``HH:MM:SS`` when ``keep_time`` and the value carries a time of day);
    other text passes through trimmed.
    """
    if value is None:
        return None

    moment: datetime | None = None
    if isinstance(value, datetime):
        moment = value
    elif isinstance(value, date):
        moment = datetime.combine(value, time())
    elif isinstance(value, (int, float)) and not isinstance(value, bool):
        moment = excel_serial_to_datetime(value) if value > 0 else None
        if moment is None:
            return str(value)
    else:
        text = str(value).strip()
        if not text:
            return None
        if not _SERIAL.match(text) or float(text) <= 0:
            return text
        moment = excel_serial_to_datetime(float(text))
        if moment is None:
            # Out-of-range serials stay as text for the validator to reject
            return text

    rendered = moment.strftime(DISPLAY_FORMAT)
    if keep_time and moment.time() != time():
        rendered += moment.strftime(" %H:%M:%S")
    return rendered


def parse_datetime(text: str | None, order_index: int = 0) -> datetime | None:
    """Parse history timestamps (date text with an optional ``HH:MM[:SS]``).

    Without an explicit time the result is midnight UTC plus ``order_index``
    seconds, so rows sharing a date keep their sheet order.
    """
    if text is None or not str(text).strip():
        return None
    value = str(text).strip()

    clock: time | None = None
    match = _TRAILING_TIME.match(value)
    if match:
        try:
            clock = time(int(match["h"]), int(match["m"]), int(match["s"] or 0))
        except ValueError:
            return None
        value = match["date"]

    day = parse_date(value)
    if day is None:
        return None

    if clock is not None:
        return datetime.combine(day, clock, tzinfo=timezone.utc)
    return datetime.combine(day, time(), tzinfo=timezone.utc) + timedelta(seconds=order_index)
