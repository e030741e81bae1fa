"""
Row validator: check every mapped cell against its declared data type.

The pass is exhaustive. Every (row, mapping) pair is inspected and all
findings are returned together; nothing is raised for bad data.
"""

from __future__ import annotations

import logging
from typing import Sequence

from autoreport.coercion import is_missing, to_date, to_number
from autoreport.models import ColumnMapping, DataType, Record, ValidationError

logger = logging.getLogger(__name__)


def check_cell(value: object, mapping: ColumnMapping) -> str | None:
    """Return the error message for one cell, or None when it is acceptable."""
    if is_missing(value):
        return f"Missing value for {mapping.target_field}"
    if mapping.data_type.is_numeric:
        if to_number(value) is None:
            return f"Invalid number format for {mapping.target_field}"
    elif mapping.data_type == DataType.DATE:
        if to_date(value) is None:
            return f"Invalid date format for {mapping.target_field}"
    return None


def validate_rows(records: Sequence[Record], mappings: Sequence[ColumnMapping]) -> list[ValidationError]:
    errors: list[ValidationError] = []
    for index, record in enumerate(records):
        for mapping in mappings:
            value = record.get(mapping.source_column)
            message = check_cell(value, mapping)
            if message is not None:
                errors.append(
                    ValidationError(
                        row=index + 1,
                        column=mapping.source_column,
                        message=message,
                        value=value,
                    )
                )
    if errors:
        logger.info("Validation found %d problems in %d rows", len(errors), len(records))
    return errors
