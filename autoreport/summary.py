"""
Summary aggregator: totals, averages, category counts and the date period.

Each measure picks its column with an explicit rule: the first mapping, in
the caller's mapping order, that satisfies the measure's predicate. Each
measure is then a fold over the records that returns a fresh value.
"""

from __future__ import annotations

import logging
from collections import Counter
from functools import reduce
from typing import Callable, NamedTuple, Optional, Sequence

from autoreport.coercion import DEFAULT_DISPLAY_DATE_FORMAT, format_display_date, is_missing, to_date, to_number, to_text
from autoreport.models import ColumnMapping, DataType, Record, Summary

logger = logging.getLogger(__name__)

UNCATEGORIZED = "Uncategorized"


class AmountTotals(NamedTuple):
    total: float = 0.0
    count: int = 0


def first_mapping(
    mappings: Sequence[ColumnMapping],
    predicate: Callable[[ColumnMapping], bool],
) -> Optional[ColumnMapping]:
    for mapping in mappings:
        if predicate(mapping):
            return mapping
    return None


def is_amount_mapping(mapping: ColumnMapping) -> bool:
    return mapping.target_field == "amount" or mapping.data_type == DataType.CURRENCY


def is_category_mapping(mapping: ColumnMapping) -> bool:
    return mapping.target_field == "category"


def is_date_mapping(mapping: ColumnMapping) -> bool:
    return mapping.target_field == "date" or mapping.data_type == DataType.DATE


def _add_amount(totals: AmountTotals, value: object) -> AmountTotals:
    number = to_number(value)
    if number is None:
        return totals
    return AmountTotals(totals.total + number, totals.count + 1)


def amount_totals(records: Sequence[Record], column: str) -> AmountTotals:
    return reduce(_add_amount, (record.get(column) for record in records), AmountTotals())


def category_label(value: object) -> str:
    if is_missing(value):
        return UNCATEGORIZED
    return to_text(value) or UNCATEGORIZED


def category_counts(records: Sequence[Record], column: str) -> dict[str, int]:
    """Frequency of each label in first-seen order."""
    counts = Counter(category_label(record.get(column)) for record in records)
    return dict(counts)


def date_period(
    records: Sequence[Record],
    column: str,
    display_format: str = DEFAULT_DISPLAY_DATE_FORMAT,
) -> Optional[str]:
    dates = sorted(parsed for parsed in (to_date(record.get(column)) for record in records) if parsed is not None)
    if len(dates) < 2:
        return None
    return f"{format_display_date(dates[0], display_format)} - {format_display_date(dates[-1], display_format)}"


def summarize(
    records: Sequence[Record],
    mappings: Sequence[ColumnMapping],
    *,
    display_date_format: str = DEFAULT_DISPLAY_DATE_FORMAT,
) -> Summary:
    total_amount = None
    average_amount = None
    amount_count = 0
    amount_mapping = first_mapping(mappings, is_amount_mapping)
    if amount_mapping is not None:
        totals = amount_totals(records, amount_mapping.source_column)
        amount_count = totals.count
        if totals.count > 0:
            total_amount = totals.total
            average_amount = totals.total / totals.count
        logger.debug(
            "Amount from %r: total=%s over %d numeric rows",
            amount_mapping.source_column,
            total_amount,
            totals.count,
        )

    categories = None
    category_mapping = first_mapping(mappings, is_category_mapping)
    if category_mapping is not None:
        categories = category_counts(records, category_mapping.source_column) or None

    period = None
    date_mapping = first_mapping(mappings, is_date_mapping)
    if date_mapping is not None and records:
        period = date_period(records, date_mapping.source_column, display_date_format)
        logger.debug("Period from %r: %s", date_mapping.source_column, period)

    return Summary(
        total_rows=len(records),
        total_amount=total_amount,
        average_amount=average_amount,
        period=period,
        categories=categories,
        amount_count=amount_count,
    )
