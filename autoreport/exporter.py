"""
Excel export of a processed report.

Three sheets: ``Data`` (one column per mapping, headed by the target field),
``Summary`` and ``Validation``. Header rows share the bold white font,
coloured fill, frozen first row and inferred widths used across our
workbook outputs.
"""

from __future__ import annotations

import logging
import re
from datetime import date
from pathlib import Path
from typing import BinaryIO, Optional, Union

import openpyxl
from openpyxl.styles import Alignment, Font, PatternFill
from openpyxl.utils import get_column_letter

from autoreport.assembler import preview_rows
from autoreport.models import ProcessedData, ReportConfig

logger = logging.getLogger(__name__)

NOT_AVAILABLE = "N/A"
DATA_COLOR = "4CAF50"
SUMMARY_COLOR = "1565C0"
VALIDATION_COLOR = "E53935"

ExportTarget = Union[str, Path, BinaryIO]


def _header_font() -> Font:
    return Font(bold=True, color="FFFFFF")


def _header_fill(hex_color: str) -> PatternFill:
    return PatternFill("solid", fgColor=hex_color)


def _style_sheet(ws, col_widths: list[int], header_color: str):
    """Apply bold header, color, frozen row, and column widths."""
    fill = _header_fill(header_color)
    font = _header_font()
    for cell in ws[1]:
        cell.font = font
        cell.fill = fill
        cell.alignment = Alignment(horizontal="center", vertical="center", wrap_text=False)
    ws.freeze_panes = "A2"
    for i, width in enumerate(col_widths, start=1):
        ws.column_dimensions[get_column_letter(i)].width = width


def _infer_col_widths(rows: list[list], min_width: int = 10, max_width: int = 60, sample: int = 300) -> list[int]:
    if not rows:
        return []
    column_count = max(len(row) for row in rows[: sample + 1])
    widths = [min_width] * column_count
    for row in rows[: sample + 1]:
        for i, val in enumerate(row):
            text = "" if val is None else str(val)
            widths[i] = max(widths[i], min(max_width, len(text) + 2))
    return widths


def _or_not_available(value):
    return NOT_AVAILABLE if value is None else value


def data_sheet_rows(processed: ProcessedData) -> list[list]:
    headers = [m.target_field for m in processed.mappings]
    body = [
        [row[name] for name in headers]
        for row in preview_rows(processed, limit=len(processed.raw_data))
    ]
    return [headers] + body


def summary_sheet_rows(processed: ProcessedData, config: ReportConfig) -> list[list]:
    summary = processed.summary
    rows: list[list] = [
        ["Report Title", config.title],
        ["Period", config.period or summary.period or NOT_AVAILABLE],
        ["Total Records", summary.total_rows],
        ["Total Amount", _or_not_available(summary.total_amount)],
        ["Average Amount", _or_not_available(summary.average_amount)],
        ["Validation Errors", len(processed.errors)],
    ]
    if config.template is not None:
        rows.insert(1, ["Template", config.template.name])
    if summary.categories:
        rows.append([])
        rows.append(["Category Breakdown"])
        rows.append(["Category", "Count"])
        rows.extend([label, count] for label, count in summary.categories.items())
    return rows


def validation_sheet_rows(processed: ProcessedData) -> list[list]:
    rows: list[list] = [["row", "column", "message", "value"]]
    for error in processed.errors:
        rows.append([error.row, error.column, error.message, error.value])
    return rows


def _as_literal_text(ws) -> None:
    """openpyxl treats any string starting with ``=`` as a formula; cell text is data."""
    for cells in ws.iter_rows():
        for cell in cells:
            if cell.data_type == "f":
                cell.data_type = "s"


def _fill_sheet(ws, rows: list[list], header_color: str) -> None:
    for row in rows:
        ws.append(row)
    _as_literal_text(ws)
    _style_sheet(ws, _infer_col_widths(rows), header_color)


def export_excel(processed: ProcessedData, config: ReportConfig, output: ExportTarget) -> None:
    """Write the report workbook to a path or a writable binary stream."""
    wb = openpyxl.Workbook()

    ws_data = wb.active
    ws_data.title = "Data"
    _fill_sheet(ws_data, data_sheet_rows(processed), DATA_COLOR)

    ws_summary = wb.create_sheet("Summary")
    _fill_sheet(ws_summary, summary_sheet_rows(processed, config), SUMMARY_COLOR)

    ws_validation = wb.create_sheet("Validation")
    _fill_sheet(ws_validation, validation_sheet_rows(processed), VALIDATION_COLOR)
    for cell in ws_validation["C"][1:]:
        cell.alignment = Alignment(wrap_text=True, vertical="top")

    if isinstance(output, (str, Path)):
        output = Path(output)
        output.parent.mkdir(parents=True, exist_ok=True)
    wb.save(output)
    logger.info(
        "Excel report written: %d data rows, %d validation errors",
        len(processed.raw_data),
        len(processed.errors),
    )


def export_filename(title: str, fmt: str, today: Optional[date] = None) -> str:
    """``Monthly Sales`` + ``xlsx`` -> ``Monthly_Sales_2024-03-01.xlsx``."""
    day = today or date.today()
    stem = re.sub(r"\s+", "_", title.strip()) or "report"
    return f"{stem}_{day.isoformat()}.{fmt.lstrip('.')}"
