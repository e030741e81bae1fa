"""
Report assembler: package records, mappings, validation findings and the
summary into the single ``ProcessedData`` handed to exporters.
"""

from __future__ import annotations

import logging
import uuid
from pathlib import Path
from typing import Any, Optional, Sequence

from autoreport import __version__ as TOOL_VERSION
from autoreport.coercion import DEFAULT_DISPLAY_DATE_FORMAT
from autoreport.contracts import build_contract, build_run_summary, utc_now_iso
from autoreport.models import (
    CellValue,
    ColumnMapping,
    ProcessedData,
    Record,
    ReportConfig,
    ReportHistoryEntry,
    Summary,
    ValidationError,
)
from autoreport.summary import summarize
from autoreport.validator import validate_rows

logger = logging.getLogger(__name__)


def derive_columns(records: Sequence[Record]) -> list[str]:
    """Column names from the first record's keys; empty when there are no records."""
    if not records:
        return []
    return list(records[0].keys())


def assemble_report(
    records: Sequence[Record],
    mappings: Sequence[ColumnMapping],
    errors: Sequence[ValidationError],
    summary: Summary,
) -> ProcessedData:
    return ProcessedData(
        raw_data=tuple(dict(record) for record in records),
        columns=tuple(derive_columns(records)),
        mappings=tuple(mappings),
        summary=summary,
        errors=tuple(errors),
    )


def process_data(
    records: Sequence[Record],
    mappings: Sequence[ColumnMapping],
    *,
    display_date_format: str = DEFAULT_DISPLAY_DATE_FORMAT,
) -> ProcessedData:
    """Validate and summarise in two independent passes, then assemble."""
    errors = validate_rows(records, mappings)
    summary = summarize(records, mappings, display_date_format=display_date_format)
    processed = assemble_report(records, mappings, errors, summary)
    logger.info(
        "Report assembled: %d rows, %d mappings, %d validation errors",
        summary.total_rows,
        len(mappings),
        len(errors),
    )
    return processed


def mapped_row(record: Record, mappings: Sequence[ColumnMapping]) -> dict[str, CellValue]:
    return {m.target_field: record.get(m.source_column, "") for m in mappings}


def preview_rows(processed: ProcessedData, limit: int = 100) -> list[dict[str, CellValue]]:
    """First ``limit`` records keyed by target field, for the preview step."""
    return [mapped_row(record, processed.mappings) for record in processed.raw_data[:limit]]


def build_report_payload(
    processed: ProcessedData,
    *,
    config: Optional[ReportConfig] = None,
    input_path: Path | str | None = None,
    output_path: Path | None = None,
    warnings: Sequence[str] = (),
) -> dict[str, Any]:
    contract = build_contract("autoreport.processed_data")
    summary = processed.summary
    return {
        "contract": contract,
        "schema_version": contract["version"],
        "tool_version": TOOL_VERSION,
        "report": config.to_dict() if config else None,
        **processed.to_dict(),
        "run_summary": build_run_summary(
            step="report",
            input_path=input_path,
            output_path=output_path,
            warnings=list(warnings),
            metrics={
                "total_rows": summary.total_rows,
                "amount_rows": summary.amount_count,
                "mapped_fields": len(processed.mappings),
                "validation_errors": len(processed.errors),
                "rows_with_errors": len({error.row for error in processed.errors}),
            },
        ),
    }


def build_history_entry(
    processed: ProcessedData,
    config: ReportConfig,
    *,
    exported_formats: Sequence[str] = (),
    report_id: Optional[str] = None,
    exported_at: Optional[str] = None,
) -> ReportHistoryEntry:
    """Metadata the persistence layer stores for the report history list."""
    summary = processed.summary
    return ReportHistoryEntry(
        id=report_id or f"report_{uuid.uuid4().hex[:12]}",
        title=config.title,
        template_name=config.template.name if config.template else "",
        period=config.period or summary.period or "",
        total_rows=summary.total_rows,
        total_amount=summary.total_amount,
        exported_at=exported_at or utc_now_iso(),
        exported_formats=tuple(exported_formats),
        mappings=processed.mappings,
        summary=summary,
        config=config,
    )
