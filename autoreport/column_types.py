"""
Column type inference for the upload preview.

Each present cell gets an atomic type, then the column type is rolled up
from the counts:

- every present cell is a date            -> ``date``
- any cell is an amount with a currency   -> ``currency``
- every present cell is a number          -> ``number``
- anything else                           -> ``string``
- no present cells                        -> ``unknown``
"""

from __future__ import annotations

import re
from collections import Counter
from typing import Any, Iterable, Sequence

from autoreport.coercion import is_missing, normalize_scalar, to_date, to_number
from autoreport.models import DataType, Record

UNKNOWN = "unknown"

CURRENCY_RE = re.compile(r"(?<![A-Za-z])(?:Rp|IDR|USD|EUR|GBP|JPY|SGD)(?![A-Za-z])|[$€£¥₹]", re.IGNORECASE)


def _strip_amount(text: str) -> str:
    return CURRENCY_RE.sub("", text).replace(",", "").replace(" ", "")


def detect_atomic_type(value: Any) -> str:
    normalized = normalize_scalar(value)
    if is_missing(normalized):
        return UNKNOWN
    if to_number(normalized) is not None:
        return DataType.NUMBER.value
    if to_date(normalized) is not None:
        return DataType.DATE.value
    if isinstance(normalized, str):
        text = normalized.strip()
        if CURRENCY_RE.search(text) and to_number(_strip_amount(text)) is not None:
            return DataType.CURRENCY.value
        if to_number(text.replace(",", "")) is not None:
            return DataType.NUMBER.value
    return DataType.STRING.value


def infer_column_type(values: Iterable[Any]) -> str:
    counts = Counter(detect_atomic_type(value) for value in values)
    counts.pop(UNKNOWN, None)
    present = sum(counts.values())
    if present == 0:
        return UNKNOWN
    if counts[DataType.DATE.value] == present:
        return DataType.DATE.value
    if counts[DataType.CURRENCY.value]:
        return DataType.CURRENCY.value
    if counts[DataType.NUMBER.value] == present:
        return DataType.NUMBER.value
    return DataType.STRING.value


def infer_column_types(records: Sequence[Record], columns: Sequence[str]) -> dict[str, str]:
    """Type per column, in column order."""
    return {column: infer_column_type(record.get(column) for record in records) for column in columns}
