"""
loader.py: row decoder for autoreport

Turns an uploaded file (delimited text or a workbook) into an ordered list of
records keyed by the header row.

Public API:
    table   = load_file("path/to/file.csv")
    table   = decode(raw_bytes, "csv")
    records = table.records

Only the first sheet of a workbook is read. Values are never type-coerced
here: delimited text stays as strings, workbook cells keep their native
scalars.
"""

from __future__ import annotations

import csv
import io
import logging
from collections import Counter
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional, Union

import chardet
import pandas as pd

from autoreport.coercion import normalize_scalar
from autoreport.models import CellValue

logger = logging.getLogger(__name__)

# ── Format groups ──────────────────────────────────────────────────────────────
TEXT_FORMATS  = {".csv", ".tsv", ".txt"}
EXCEL_FORMATS = {".xlsx", ".xlsm", ".xls"}
ODS_FORMATS   = {".ods"}
ALL_FORMATS   = TEXT_FORMATS | EXCEL_FORMATS | ODS_FORMATS

FORMAT_CSV = "csv"
FORMAT_TABULAR_BINARY = "tabular-binary"

MIN_ROWS_MESSAGE = "File must contain at least a header row and one data row"
DEFAULT_MAX_UPLOAD_BYTES = 10 * 1024 * 1024

DELIMITER_CANDIDATES = [",", ";", "\t", "|"]


class MalformedInputError(ValueError):
    """The upload cannot be turned into a header row plus data rows."""


@dataclass(frozen=True)
class DecodedTable:
    records: list[dict[str, CellValue]]
    columns: list[str]
    detected_format: str
    detected_encoding: Optional[str] = None
    delimiter: Optional[str] = None
    warnings: list[str] = field(default_factory=list)

    @property
    def row_count(self) -> int:
        return len(self.records)


# ══════════════════════════════════════════════════════════════════════════════
# ENCODING
# ══════════════════════════════════════════════════════════════════════════════

def detect_encoding(raw: bytes) -> str:
    """Best-guess encoding for raw text bytes; ``utf-8`` when chardet is unsure."""
    if raw.startswith(b"\xef\xbb\xbf"):
        return "utf-8"
    result = chardet.detect(raw[:200_000])
    detected = result.get("encoding")
    if not detected or (result.get("confidence") or 0.0) < 0.2:
        return "utf-8"
    return detected


def read_text_safely(raw: bytes, preferred_encoding: str) -> str:
    """
    Decode raw bytes line-by-line.

    Strategy per line:
      1. Try UTF-8
      2. Try preferred_encoding (chardet result)
      3. Try latin-1
      4. CP1252 with replace (never crashes)

    Embedded null bytes are stripped.
    """
    decoded_lines: list[str] = []
    for raw_line in raw.split(b"\n"):
        decoded: str | None = None
        for enc in ("utf-8", preferred_encoding, "latin-1"):
            if not enc:
                continue
            try:
                decoded = raw_line.decode(enc)
                break
            except (LookupError, UnicodeDecodeError):
                continue
        if decoded is None:
            decoded = raw_line.decode("cp1252", errors="replace")
        decoded_lines.append(decoded.replace("\x00", ""))
    return "\n".join(decoded_lines)


def normalize_text(text: str) -> str:
    """Drop a leading BOM and convert CRLF/CR line endings to LF."""
    if text.startswith("\ufeff"):
        text = text[1:]
    return text.replace("\r\n", "\n").replace("\r", "\n")


# ══════════════════════════════════════════════════════════════════════════════
# DELIMITED TEXT
# ══════════════════════════════════════════════════════════════════════════════

def detect_delimiter(text: str) -> str:
    """
    Infer the delimiter from sample lines.

    Uses csv.Sniffer first; falls back to scoring each candidate delimiter by
    column-count consistency and column width.
    """
    sample_lines = [line for line in text.split("\n") if line.strip()][:50]
    sample = "\n".join(sample_lines[:25])

    if sample:
        try:
            sniffed = csv.Sniffer().sniff(sample, delimiters="".join(DELIMITER_CANDIDATES))
            return sniffed.delimiter
        except csv.Error:
            pass

    best_delim = ","
    best_score = float("-inf")
    sample_text = "\n".join(sample_lines)

    for delim in DELIMITER_CANDIDATES:
        rows = [row for row in csv.reader(io.StringIO(sample_text), delimiter=delim) if row]
        if not rows:
            continue

        widths = Counter(len(row) for row in rows)
        mode_width, mode_count = widths.most_common(1)[0]
        consistency = mode_count / len(rows)

        score = (mode_width * 2.0) + (consistency * mode_width)
        if len(rows[0]) == mode_width:
            score += 1.0
        if mode_width == 1:
            score -= 10.0

        if score > best_score:
            best_score = score
            best_delim = delim

    return best_delim


def clean_cell_text(value: str) -> str:
    """Trim whitespace, then drop one surrounding quote character from each end."""
    text = value.strip()
    if text.startswith('"'):
        text = text[1:]
    if text.endswith('"'):
        text = text[:-1]
    return text


def _is_blank_row(row: list[str]) -> bool:
    return not row or (len(row) == 1 and not row[0].strip())


def zip_records(headers: list[str], rows: list[list[Any]]) -> list[dict[str, CellValue]]:
    """Pair each data row with the header row; missing trailing cells become ''."""
    records: list[dict[str, CellValue]] = []
    for row in rows:
        record: dict[str, CellValue] = {}
        for index, header in enumerate(headers):
            record[header] = row[index] if index < len(row) else ""
        records.append(record)
    return records


def decode_text(
    text: str,
    delimiter: Optional[str] = None,
    *,
    encoding: Optional[str] = None,
    detected_format: str = "csv",
) -> DecodedTable:
    """Decode delimited text. The first non-blank row is the header row."""
    text = normalize_text(text)
    delimiter = delimiter or detect_delimiter(text)

    rows = [
        [clean_cell_text(cell) for cell in row]
        for row in csv.reader(io.StringIO(text), delimiter=delimiter)
        if not _is_blank_row(row)
    ]
    if len(rows) < 2:
        raise MalformedInputError(MIN_ROWS_MESSAGE)

    headers = rows[0]
    warnings: list[str] = []
    duplicates = sorted(name for name, count in Counter(headers).items() if count > 1)
    if duplicates:
        warnings.append(f"Duplicate header names keep the last column's values: {duplicates}")
    long_rows = sum(1 for row in rows[1:] if len(row) > len(headers))
    if long_rows:
        warnings.append(f"{long_rows} rows had more values than headers; extra values were dropped")

    records = zip_records(headers, rows[1:])
    columns = list(dict.fromkeys(headers))
    logger.info("Decoded %d records with %d columns (delimiter %r)", len(records), len(columns), delimiter)
    return DecodedTable(
        records=records,
        columns=columns,
        detected_format=detected_format,
        detected_encoding=encoding,
        delimiter=delimiter,
        warnings=warnings,
    )


def decode_text_bytes(
    raw: bytes,
    delimiter: Optional[str] = None,
    *,
    detected_format: str = "csv",
) -> DecodedTable:
    encoding = detect_encoding(raw)
    text = read_text_safely(raw, encoding)
    return decode_text(text, delimiter, encoding=encoding, detected_format=detected_format)


# ══════════════════════════════════════════════════════════════════════════════
# WORKBOOKS
# ══════════════════════════════════════════════════════════════════════════════

def _engine_for_suffix(suffix: str) -> Optional[str]:
    if suffix == ".xls":
        try:
            import xlrd  # noqa: F401
        except ImportError:
            raise ImportError(".xls files require xlrd; run: pip install xlrd")
        return "xlrd"
    if suffix == ".ods":
        try:
            import odf  # noqa: F401
        except ImportError:
            raise ImportError(".ods files require odfpy; run: pip install odfpy")
        return "odf"
    if suffix in {".xlsx", ".xlsm"}:
        return "openpyxl"
    return None


def _workbook_cell(value: Any) -> CellValue:
    normalized = normalize_scalar(value)
    return "" if normalized is None else normalized


def _header_text(value: Any) -> str:
    normalized = normalize_scalar(value)
    if normalized is None:
        return ""
    if isinstance(normalized, float) and normalized.is_integer():
        return str(int(normalized))
    return str(normalized).strip()


def decode_workbook(raw: bytes, suffix: str = ".xlsx") -> DecodedTable:
    """Decode the first sheet of a workbook, keeping native cell scalars."""
    engine = _engine_for_suffix(suffix.lower())
    try:
        with pd.ExcelFile(io.BytesIO(raw), engine=engine) as workbook:
            sheet_names = list(workbook.sheet_names)
            frame = workbook.parse(sheet_names[0], header=None, dtype=object)
    except ImportError:
        raise
    except Exception as exc:
        raise MalformedInputError(f"Could not read workbook: {exc}") from exc

    rows = [
        list(row)
        for row in frame.itertuples(index=False, name=None)
        if any(normalize_scalar(cell) not in (None, "") for cell in row)
    ]
    if len(rows) < 2:
        raise MalformedInputError(MIN_ROWS_MESSAGE)

    headers = [_header_text(cell) for cell in rows[0]]
    while headers and headers[-1] == "":
        headers.pop()
    data_rows = [[_workbook_cell(cell) for cell in row] for row in rows[1:]]

    warnings: list[str] = []
    if len(sheet_names) > 1:
        warnings.append(
            f"Multiple sheets found ({len(sheet_names)} total); used '{sheet_names[0]}'. "
            f"Ignored: {sheet_names[1:]}"
        )

    records = zip_records(headers, data_rows)
    columns = list(dict.fromkeys(headers))
    logger.info("Decoded %d workbook records from sheet %r", len(records), sheet_names[0])
    return DecodedTable(
        records=records,
        columns=columns,
        detected_format=suffix.lower().lstrip("."),
        warnings=warnings,
    )


# ══════════════════════════════════════════════════════════════════════════════
# PUBLIC API
# ══════════════════════════════════════════════════════════════════════════════

def check_size(size: int, max_bytes: int = DEFAULT_MAX_UPLOAD_BYTES) -> None:
    if size > max_bytes:
        raise MalformedInputError(
            f"File is too large ({size} bytes). Maximum size is {max_bytes} bytes."
        )


def decode(
    content: Union[str, bytes],
    fmt: str = FORMAT_CSV,
    *,
    suffix: str = ".xlsx",
    delimiter: Optional[str] = None,
    max_bytes: int = DEFAULT_MAX_UPLOAD_BYTES,
) -> DecodedTable:
    """
    Decode uploaded content.

    Args:
        content:   text or raw bytes of the upload.
        fmt:       ``"csv"`` for delimited text, ``"tabular-binary"`` for workbooks.
        suffix:    workbook extension, selects the pandas engine.
        delimiter: force a delimiter for text input; None = auto-detect.
        max_bytes: upload size limit.

    Raises:
        MalformedInputError  for too-small, oversized or unreadable input.
        ImportError          if an optional workbook engine is missing.
    """
    size = len(content.encode("utf-8")) if isinstance(content, str) else len(content)
    check_size(size, max_bytes)

    if fmt == FORMAT_CSV:
        if isinstance(content, bytes):
            return decode_text_bytes(content, delimiter)
        return decode_text(content, delimiter)

    if fmt == FORMAT_TABULAR_BINARY:
        if isinstance(content, str):
            raise MalformedInputError("Workbook content must be bytes, not text")
        return decode_workbook(content, suffix)

    raise MalformedInputError(f"Unsupported format '{fmt}'. Use '{FORMAT_CSV}' or '{FORMAT_TABULAR_BINARY}'")


def format_for_suffix(suffix: str) -> str:
    suffix = suffix.lower()
    if suffix in TEXT_FORMATS:
        return FORMAT_CSV
    if suffix in EXCEL_FORMATS | ODS_FORMATS:
        return FORMAT_TABULAR_BINARY
    supported = ", ".join(sorted(ALL_FORMATS))
    raise MalformedInputError(f"Unsupported format '{suffix}'. Supported: {supported}")


def load_file(
    path: "str | Path",
    *,
    delimiter: Optional[str] = None,
    max_bytes: int = DEFAULT_MAX_UPLOAD_BYTES,
) -> DecodedTable:
    """
    Read and decode a file from disk.

    Raises:
        FileNotFoundError    if the file does not exist.
        OSError              if the file cannot be read.
        MalformedInputError  if the format is unsupported or the content is unusable.
    """
    path = Path(path)
    suffix = path.suffix.lower()

    if not path.exists():
        raise FileNotFoundError(f"File not found: {path}")

    fmt = format_for_suffix(suffix)
    check_size(path.stat().st_size, max_bytes)
    raw = path.read_bytes()

    if fmt == FORMAT_CSV:
        if suffix == ".tsv":
            delimiter = "\t"
        return decode_text_bytes(raw, delimiter, detected_format=suffix.lstrip("."))
    return decode_workbook(raw, suffix)
