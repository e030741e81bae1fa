"""
Explicit coercion rules for raw cell values.

Cells arrive either as strings (delimited text) or as native scalars
(workbooks decoded through pandas). Every stage that needs a number, a date
or a label goes through the functions below instead of relying on implicit
conversions, so the validator and the aggregator agree on what counts as a
valid value.
"""

from __future__ import annotations

import math
import re
from datetime import date, datetime, timezone
from typing import Any, Optional

import pandas as pd

NULL = "null"
STRING = "string"
NUMBER = "number"
DATE = "date"

NUMBER_RE = re.compile(r"^[+-]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?$")
DIGITS_RE = re.compile(r"^\d+$")
COMPACT_DATE_RE = re.compile(r"^\d{8}$")
YEAR_RE = re.compile(r"(?<!\d)\d{4}(?!\d)")

# Month-first before day-first for ambiguous slash/dash dates; the day-first
# twin only matches when the month-first reading is impossible.
DATE_FORMAT_PATTERNS = [
    ("%Y-%m-%d", re.compile(r"^\d{4}-\d{1,2}-\d{1,2}$")),
    ("%Y/%m/%d", re.compile(r"^\d{4}/\d{1,2}/\d{1,2}$")),
    ("%Y-%m-%dT%H:%M:%S", re.compile(r"^\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}$")),
    ("%Y-%m-%d %H:%M:%S", re.compile(r"^\d{4}-\d{2}-\d{2} \d{2}:\d{2}:\d{2}$")),
    ("%m/%d/%Y", re.compile(r"^\d{1,2}/\d{1,2}/\d{4}$")),
    ("%d/%m/%Y", re.compile(r"^\d{1,2}/\d{1,2}/\d{4}$")),
    ("%m-%d-%Y", re.compile(r"^\d{1,2}-\d{1,2}-\d{4}$")),
    ("%d-%m-%Y", re.compile(r"^\d{1,2}-\d{1,2}-\d{4}$")),
    ("%m/%d/%y", re.compile(r"^\d{1,2}/\d{1,2}/\d{2}$")),
    ("%d/%m/%y", re.compile(r"^\d{1,2}/\d{1,2}/\d{2}$")),
    ("%Y%m%d", COMPACT_DATE_RE),
    ("%B %d %Y", re.compile(r"^[A-Za-z]+\s+\d{1,2}\s+\d{4}$")),
    ("%b %d %Y", re.compile(r"^[A-Za-z]{3}\s+\d{1,2}\s+\d{4}$")),
    ("%d %B %Y", re.compile(r"^\d{1,2}\s+[A-Za-z]+\s+\d{4}$")),
    ("%d %b %Y", re.compile(r"^\d{1,2}\s+[A-Za-z]{3}\s+\d{4}$")),
    ("%B %d, %Y", re.compile(r"^[A-Za-z]+\s+\d{1,2},\s+\d{4}$")),
    ("%b %d, %Y", re.compile(r"^[A-Za-z]{3}\s+\d{1,2},\s+\d{4}$")),
]

EXCEL_SERIAL_MIN = 25000
EXCEL_SERIAL_MAX = 60000

DEFAULT_DISPLAY_DATE_FORMAT = "{month}/{day}/{year}"


def normalize_scalar(value: Any) -> Any:
    """Turn pandas/numpy scalars into plain Python values; NaN/NaT become None."""
    if value is None:
        return None
    if isinstance(value, (list, tuple, dict, set)):
        return value
    try:
        if pd.isna(value):
            return None
    except (TypeError, ValueError):
        return value
    if isinstance(value, pd.Timestamp):
        if value.tzinfo is not None:
            value = value.tz_convert(None)
        return value.to_pydatetime()
    if hasattr(value, "item") and not isinstance(value, (str, bytes)):
        # numpy scalar
        return value.item()
    return value


def normalize_datetime(value: datetime) -> datetime:
    if value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def is_missing(value: Any) -> bool:
    """Missing means absent, None, NaN or the empty string.

    Whitespace-only strings are present values.
    """
    normalized = normalize_scalar(value)
    return normalized is None or normalized == ""


def classify_cell(value: Any) -> str:
    """Tag a raw cell as one of ``null``, ``number``, ``date`` or ``string``."""
    normalized = normalize_scalar(value)
    if normalized is None or normalized == "":
        return NULL
    if isinstance(normalized, bool):
        return STRING
    if isinstance(normalized, (int, float)):
        return NUMBER
    if isinstance(normalized, (datetime, date)):
        return DATE
    return STRING


def to_number(value: Any) -> Optional[float]:
    """Return the numeric value of a cell, or None when it is not a number."""
    normalized = normalize_scalar(value)
    if normalized is None or isinstance(normalized, bool):
        return None
    if isinstance(normalized, (int, float)):
        number = float(normalized)
        return number if math.isfinite(number) else None
    if not isinstance(normalized, str):
        return None
    text = normalized.strip()
    if not NUMBER_RE.fullmatch(text):
        return None
    number = float(text)
    return number if math.isfinite(number) else None


def _parse_date_text(text: str) -> Optional[datetime]:
    for fmt, pattern in DATE_FORMAT_PATTERNS:
        if not pattern.fullmatch(text):
            continue
        try:
            return datetime.strptime(text, fmt)
        except ValueError:
            continue

    if DIGITS_RE.fullmatch(text) or NUMBER_RE.fullmatch(text):
        return None
    # Without an explicit year the parser would fill in the current one.
    if not YEAR_RE.search(text):
        return None

    parsed = pd.to_datetime(text, errors="coerce")
    if pd.isna(parsed) or not isinstance(parsed, pd.Timestamp):
        return None
    return normalize_datetime(parsed.to_pydatetime())


def to_date(value: Any) -> Optional[datetime]:
    """Return the cell as a naive datetime, or None when it is not a date."""
    normalized = normalize_scalar(value)
    if normalized is None or isinstance(normalized, bool):
        return None
    if isinstance(normalized, datetime):
        return normalize_datetime(normalized)
    if isinstance(normalized, date):
        return datetime(normalized.year, normalized.month, normalized.day)
    if isinstance(normalized, (int, float)):
        number = float(normalized)
        if EXCEL_SERIAL_MIN <= number <= EXCEL_SERIAL_MAX:
            parsed = pd.to_datetime(number, unit="D", origin="1899-12-30", errors="coerce")
            if not pd.isna(parsed):
                return normalize_datetime(parsed.to_pydatetime())
        return None
    text = str(normalized).strip()
    if not text:
        return None
    return _parse_date_text(text)


def to_text(value: Any) -> str:
    """Render a cell as a label; integral floats lose their trailing ``.0``."""
    normalized = normalize_scalar(value)
    if normalized is None:
        return ""
    if isinstance(normalized, bool):
        return "TRUE" if normalized else "FALSE"
    if isinstance(normalized, float) and normalized.is_integer():
        return str(int(normalized))
    if isinstance(normalized, datetime):
        if normalized.time() == datetime.min.time():
            return normalized.date().isoformat()
        return normalized.isoformat(sep=" ")
    if isinstance(normalized, date):
        return normalized.isoformat()
    return str(normalized)


def format_display_date(value: datetime, template: str = DEFAULT_DISPLAY_DATE_FORMAT) -> str:
    """Format a date for period strings.

    ``template`` uses ``{day}``, ``{month}``, ``{year}`` (unpadded) and
    ``{dd}``, ``{mm}`` (zero padded) placeholders.
    """
    return template.format(
        day=value.day,
        month=value.month,
        year=value.year,
        dd=f"{value.day:02d}",
        mm=f"{value.month:02d}",
    )
