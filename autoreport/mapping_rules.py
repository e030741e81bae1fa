"""
Checks and helpers for a confirmed column mapping.

The pipeline itself never refuses an incomplete mapping; callers (CLI, web
front end) use these helpers to decide whether to let the user continue.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Mapping, Optional, Sequence

from autoreport.field_matcher import DEFAULT_FIELD_TABLE, FieldTable
from autoreport.models import ColumnMapping, DataType

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MappingCheck:
    valid: bool
    error: Optional[str] = None
    invalid_columns: list[str] = field(default_factory=list)
    missing_fields: list[str] = field(default_factory=list)


def invalid_source_columns(mappings: Sequence[ColumnMapping], columns: Sequence[str]) -> list[str]:
    available = set(columns)
    return [m.source_column for m in mappings if m.source_column not in available]


def missing_required_fields(mappings: Sequence[ColumnMapping], required_fields: Sequence[str]) -> list[str]:
    mapped = {m.target_field for m in mappings}
    return [name for name in required_fields if name not in mapped]


def check_mappings(
    mappings: Sequence[ColumnMapping],
    columns: Sequence[str],
    required_fields: Sequence[str] = (),
) -> MappingCheck:
    invalid = invalid_source_columns(mappings, columns)
    missing = missing_required_fields(mappings, required_fields)
    problems = []
    if invalid:
        problems.append(f"Invalid columns: {', '.join(invalid)}")
        logger.warning("Invalid columns in mapping: %s", invalid)
    if missing:
        problems.append(f"Required fields not mapped: {', '.join(missing)}")
        logger.warning("Required fields not mapped: %s", missing)
    return MappingCheck(
        valid=not problems,
        error="; ".join(problems) or None,
        invalid_columns=invalid,
        missing_fields=missing,
    )


def merge_mappings(
    existing: Sequence[ColumnMapping],
    overrides: Sequence[ColumnMapping],
) -> list[ColumnMapping]:
    """Overrides replace entries with the same target field; new targets are appended."""
    by_target = {m.target_field: m for m in overrides}
    merged = [by_target.pop(m.target_field, m) for m in existing]
    merged.extend(m for m in overrides if m.target_field in by_target)
    return merged


def without_field(mappings: Sequence[ColumnMapping], target_field: str) -> list[ColumnMapping]:
    return [m for m in mappings if m.target_field != target_field]


def reverse_mapping(mappings: Sequence[ColumnMapping]) -> dict[str, str]:
    return {m.source_column: m.target_field for m in mappings}


def mapping_stats(
    mappings: Sequence[ColumnMapping],
    required_fields: Sequence[str],
    optional_fields: Sequence[str] = (),
) -> dict[str, int]:
    mapped = {m.target_field for m in mappings}
    required_mapped = sum(1 for name in required_fields if name in mapped)
    optional_mapped = sum(1 for name in optional_fields if name in mapped)
    total_fields = len(required_fields) + len(optional_fields)
    total_mapped = required_mapped + optional_mapped
    return {
        "total": total_mapped,
        "requiredMapped": required_mapped,
        "optionalMapped": optional_mapped,
        "requiredTotal": len(required_fields),
        "optionalTotal": len(optional_fields),
        "completion": round(total_mapped / total_fields * 100) if total_fields else 0,
    }


def mapping_from_dict(
    pairs: Mapping[str, str],
    field_table: Optional[FieldTable] = None,
) -> list[ColumnMapping]:
    """Build mappings from ``{target_field: source_column}``; types come from the field table."""
    table = DEFAULT_FIELD_TABLE if field_table is None else field_table
    mappings = []
    for target, source in pairs.items():
        spec = table.get(target)
        data_type = spec.data_type if spec else DataType.STRING
        mappings.append(ColumnMapping(source_column=source, target_field=target, data_type=data_type))
    return mappings
