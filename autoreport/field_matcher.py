"""
Field matcher: propose which source column feeds each semantic field.

Matching is a case-insensitive substring test of the field's keywords
against column names. The keyword table is passed in when the matcher is
built; ``DEFAULT_FIELD_TABLE`` holds the stock English/Indonesian keywords.

Selection rule for one field: scan the columns in source order and take the
first column that contains any of the field's keywords. Among the keywords,
the earliest one that hits that column is recorded as the reason.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Mapping, Optional, Sequence

from autoreport.models import ColumnMapping, DataType

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FieldSpec:
    keywords: tuple[str, ...]
    data_type: DataType = DataType.STRING


FieldTable = Mapping[str, FieldSpec]

DEFAULT_FIELD_TABLE: dict[str, FieldSpec] = {
    "date": FieldSpec(("date", "tanggal", "tgl", "time", "waktu"), DataType.DATE),
    "amount": FieldSpec(
        ("amount", "total", "nominal", "harga", "price", "value", "jumlah"),
        DataType.CURRENCY,
    ),
    "category": FieldSpec(("category", "kategori", "type", "jenis", "group"), DataType.STRING),
    "description": FieldSpec(
        ("description", "deskripsi", "detail", "keterangan", "notes", "catatan"),
        DataType.STRING,
    ),
    "name": FieldSpec(("name", "nama", "person", "student", "employee"), DataType.STRING),
    "status": FieldSpec(("status", "state", "condition"), DataType.STRING),
    "quantity": FieldSpec(("quantity", "qty", "jumlah", "count"), DataType.NUMBER),
}


def first_keyword_hit(column: str, keywords: Iterable[str]) -> Optional[str]:
    lowered = column.lower()
    for keyword in keywords:
        if keyword.lower() in lowered:
            return keyword
    return None


class FieldMatcher:
    def __init__(self, field_table: Optional[FieldTable] = None) -> None:
        self.field_table: dict[str, FieldSpec] = dict(
            DEFAULT_FIELD_TABLE if field_table is None else field_table
        )

    def spec_for(self, field_name: str) -> Optional[FieldSpec]:
        return self.field_table.get(field_name)

    def data_type_for(self, field_name: str) -> DataType:
        spec = self.spec_for(field_name)
        return spec.data_type if spec else DataType.STRING

    def match_field(self, field_name: str, columns: Sequence[str]) -> Optional[ColumnMapping]:
        spec = self.spec_for(field_name)
        if spec is None:
            logger.debug("No keyword entry for field %r; skipped", field_name)
            return None
        for column in columns:
            keyword = first_keyword_hit(column, spec.keywords)
            if keyword is not None:
                logger.debug("Mapped %r -> %r via keyword %r", field_name, column, keyword)
                return ColumnMapping(source_column=column, target_field=field_name, data_type=spec.data_type)
        return None

    def match(
        self,
        columns: Sequence[str],
        required_fields: Sequence[str],
        optional_fields: Sequence[str] = (),
    ) -> list[ColumnMapping]:
        """Best-guess mappings, in ``required_fields + optional_fields`` order.

        Fields with no keyword entry or no matching column are left out; the
        caller decides whether an unmapped required field blocks progress.
        """
        mappings: list[ColumnMapping] = []
        seen: set[str] = set()
        for field_name in [*required_fields, *optional_fields]:
            if field_name in seen:
                continue
            seen.add(field_name)
            mapping = self.match_field(field_name, columns)
            if mapping is not None:
                mappings.append(mapping)

        unmatched = [name for name in required_fields if name not in {m.target_field for m in mappings}]
        if unmatched:
            logger.warning("Required fields without a matching column: %s", ", ".join(unmatched))
        logger.info("Field matching complete: %d of %d fields mapped", len(mappings), len(seen))
        return mappings

    def suggest(
        self,
        target_field: str,
        columns: Sequence[str],
        current_mappings: Sequence[ColumnMapping] = (),
    ) -> list[str]:
        """Candidate columns for one field, best first.

        Columns already used by other fields are excluded. Ranking is by the
        position of the first keyword that hits, then by source order.
        """
        spec = self.spec_for(target_field)
        if spec is None:
            return []
        used = {m.source_column for m in current_mappings if m.target_field != target_field}
        ranked: list[tuple[int, int, str]] = []
        for position, column in enumerate(columns):
            if column in used:
                continue
            keyword = first_keyword_hit(column, spec.keywords)
            if keyword is None:
                continue
            ranked.append((spec.keywords.index(keyword), position, column))
        return [column for _, _, column in sorted(ranked)]


def field_table_from_dict(payload: Mapping[str, object]) -> dict[str, FieldSpec]:
    if not isinstance(payload, dict) or not payload:
        raise ValueError("Field table must be a non-empty JSON object")
    table: dict[str, FieldSpec] = {}
    for field_name, entry in payload.items():
        if not isinstance(entry, dict):
            raise ValueError(f"Field '{field_name}' must map to an object with 'keywords'")
        keywords = entry.get("keywords")
        if not isinstance(keywords, list) or not keywords or not all(isinstance(k, str) and k for k in keywords):
            raise ValueError(f"Field '{field_name}' needs a non-empty list of keyword strings")
        data_type = DataType.parse(entry.get("data_type", DataType.STRING))
        table[str(field_name)] = FieldSpec(tuple(keywords), data_type)
    return table


def load_field_table(path: "str | Path") -> dict[str, FieldSpec]:
    """Read a keyword table from JSON: ``{field: {"keywords": [...], "data_type": "..."}}``."""
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Field table not found: {path}")
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise ValueError(f"Invalid field table JSON: {exc}") from exc
    return field_table_from_dict(payload)
