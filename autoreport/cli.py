from __future__ import annotations

import argparse
import json
import logging
import os
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional, Sequence

from autoreport import __version__ as TOOL_VERSION
from autoreport.assembler import build_history_entry, build_report_payload, process_data
from autoreport.column_types import infer_column_types
from autoreport.config import DEFAULT_CONFIG_NAME, Settings, load_settings, starter_config_text
from autoreport.contracts import build_contract
from autoreport.exporter import export_excel
from autoreport.field_matcher import FieldMatcher, load_field_table
from autoreport.loader import DecodedTable, MalformedInputError, load_file
from autoreport.mapping_rules import check_mappings, mapping_stats, merge_mappings
from autoreport.models import ColumnMapping, ReportConfig, ReportTemplate
from autoreport.templates import REPORT_TEMPLATES, get_template_by_id
from autoreport.validator import validate_rows

EXIT_SUCCESS = 0
EXIT_COMMAND_ERROR = 1
EXIT_PARSE_FAILED = 2
EXIT_VALIDATION_ERRORS = 3
EXIT_REQUIRED_UNMAPPED = 5

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"

logger = logging.getLogger("autoreport.cli")


class CliError(Exception):
    def __init__(self, message: str, code: int = EXIT_COMMAND_ERROR) -> None:
        super().__init__(message)
        self.code = code


class AutoreportArgumentParser(argparse.ArgumentParser):
    def error(self, message: str) -> None:
        raise CliError(message, EXIT_COMMAND_ERROR)


def eprint(message: str) -> None:
    print(message, file=sys.stderr)


def emit_human(message: str, *, quiet: bool = False) -> None:
    if not quiet:
        eprint(message)


def json_dumps(payload: Any) -> str:
    return json.dumps(payload, indent=2, ensure_ascii=False, sort_keys=True)


def maybe_emit_json_stdout(payload: Any, enabled: bool) -> None:
    if enabled:
        print(json_dumps(payload))


def timestamp_token() -> str:
    override = os.environ.get("AUTOREPORT_OUTPUT_STAMP")
    if override:
        return override
    return datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%SZ")


def default_output_dir(input_path: Path) -> Path:
    return Path.cwd() / "autoreport-output" / f"{input_path.stem}-{timestamp_token()}"


def determine_output_dir(args: argparse.Namespace, input_path: Path) -> Path:
    if getattr(args, "out_dir", None):
        return Path(args.out_dir)
    return default_output_dir(input_path)


def ensure_parent(path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)


def write_text(path: Path, payload: str) -> None:
    ensure_parent(path)
    path.write_text(payload, encoding="utf-8")


def write_json(path: Path, payload: Any) -> None:
    write_text(path, json_dumps(payload))


def classify_backend_exception(exc: Exception) -> int:
    if isinstance(exc, CliError):
        return exc.code
    if isinstance(exc, (MalformedInputError, ImportError, UnicodeDecodeError)):
        return EXIT_PARSE_FAILED
    if isinstance(exc, FileNotFoundError):
        return EXIT_COMMAND_ERROR
    if isinstance(exc, ValueError):
        return EXIT_PARSE_FAILED
    return EXIT_COMMAND_ERROR


def configure_logging(args: argparse.Namespace, settings: Optional[Settings] = None) -> None:
    level = settings.log_level if settings else "WARNING"
    if getattr(args, "verbose", False):
        level = "DEBUG"
    elif getattr(args, "quiet", False):
        level = "WARNING"
    logging.basicConfig(level=getattr(logging, level), format=LOG_FORMAT, stream=sys.stderr)


def resolve_settings(args: argparse.Namespace) -> Settings:
    try:
        return load_settings(getattr(args, "config", None))
    except (ValueError, FileNotFoundError) as exc:
        raise CliError(str(exc), EXIT_COMMAND_ERROR) from exc


def build_matcher(settings: Settings) -> FieldMatcher:
    if not settings.field_table_path:
        return FieldMatcher()
    try:
        return FieldMatcher(load_field_table(settings.field_table_path))
    except (ValueError, FileNotFoundError) as exc:
        raise CliError(str(exc), EXIT_COMMAND_ERROR) from exc


def resolve_template(template_id: str) -> ReportTemplate:
    template = get_template_by_id(template_id)
    if template is None:
        known = ", ".join(t.id for t in REPORT_TEMPLATES)
        raise CliError(f"Unknown template '{template_id}'. Available: {known}", EXIT_COMMAND_ERROR)
    return template


def parse_map_overrides(
    pairs: Sequence[str],
    template: ReportTemplate,
    matcher: FieldMatcher,
) -> list[ColumnMapping]:
    """``target=column`` pairs into mappings; the column part may itself contain ``=``."""
    overrides = []
    for pair in pairs:
        target, sep, column = pair.partition("=")
        target, column = target.strip(), column.strip()
        if not sep or not target or not column:
            raise CliError(f"--map expects target=column, got '{pair}'", EXIT_COMMAND_ERROR)
        if target not in template.fields:
            raise CliError(
                f"Field '{target}' is not part of template '{template.id}'. "
                f"Fields: {', '.join(template.fields)}",
                EXIT_COMMAND_ERROR,
            )
        overrides.append(ColumnMapping(column, target, matcher.data_type_for(target)))
    return overrides


def load_input(input_path: Path, settings: Settings) -> DecodedTable:
    if not input_path.exists():
        raise CliError(f"File not found: {input_path}", EXIT_COMMAND_ERROR)
    table = load_file(input_path, max_bytes=settings.max_upload_bytes)
    logger.info("Loaded %d rows and %d columns from %s", table.row_count, len(table.columns), input_path)
    return table


def resolve_mappings(
    args: argparse.Namespace,
    table: DecodedTable,
    template: ReportTemplate,
    matcher: FieldMatcher,
) -> list[ColumnMapping]:
    proposed = matcher.match(table.columns, template.required_fields, template.optional_fields)
    overrides = parse_map_overrides(getattr(args, "map", None) or [], template, matcher)
    mappings = merge_mappings(proposed, overrides)
    check = check_mappings(mappings, table.columns, template.required_fields)
    if check.invalid_columns:
        raise CliError(
            f"Mapped columns not found in input: {', '.join(check.invalid_columns)}. "
            f"Columns: {', '.join(table.columns)}",
            EXIT_COMMAND_ERROR,
        )
    if check.missing_fields:
        raise CliError(
            f"Required fields not mapped: {', '.join(check.missing_fields)}. Use --map field=column.",
            EXIT_REQUIRED_UNMAPPED,
        )
    return mappings


def format_amount(value: Optional[float]) -> str:
    return "N/A" if value is None else f"{value:,.2f}"


def render_templates_text() -> str:
    lines = ["autoreport templates"]
    for template in REPORT_TEMPLATES:
        lines.append(f"{template.id}: {template.name}")
        lines.append(f"  {template.description}")
        lines.append(f"  required: {', '.join(template.required_fields)}")
        if template.optional_fields:
            lines.append(f"  optional: {', '.join(template.optional_fields)}")
    return "\n".join(lines) + "\n"


def render_match_text(payload: dict[str, Any]) -> str:
    stats = payload["stats"]
    lines = [
        "autoreport match",
        f"Input: {payload['input']}",
        f"Template: {payload['template']}",
        f"Mapped: {stats['total']} fields ({stats['completion']}% complete)",
    ]
    lines.extend(
        f"- {m['targetField']} <- {m['sourceColumn']} ({m['dataType']})" for m in payload["mappings"]
    )
    if payload["missing_required"]:
        lines.append("Required fields not mapped: " + ", ".join(payload["missing_required"]))
    if payload["unmapped_columns"]:
        lines.append("Unused columns: " + ", ".join(payload["unmapped_columns"]))
    lines.append("Column types: " + ", ".join(f"{name} ({kind})" for name, kind in payload["column_types"].items()))
    return "\n".join(lines) + "\n"


def render_validate_text(payload: dict[str, Any]) -> str:
    lines = [
        "autoreport validate",
        f"Input: {payload['input']}",
        f"Rows: {payload['total_rows']}",
        f"Valid: {payload['valid']}",
        f"Errors: {payload['error_count']}",
    ]
    for error in payload["errors"][:20]:
        lines.append(f"- row {error['row']}, {error['column']}: {error['message']}")
    if payload["error_count"] > 20:
        lines.append(f"... {payload['error_count'] - 20} more")
    return "\n".join(lines) + "\n"


def render_report_text(payload: dict[str, Any]) -> str:
    summary = payload["summary"]
    lines = [
        "autoreport report",
        f"Title: {payload['report']['title']}",
        f"Input: {payload['run_summary']['input_file']}",
        f"Rows: {summary['totalRows']}",
        f"Total amount: {format_amount(summary.get('totalAmount'))}",
        f"Average amount: {format_amount(summary.get('averageAmount'))}",
        f"Period: {payload['report']['period'] or summary.get('period') or 'N/A'}",
        f"Validation errors: {len(payload['errors'])}",
    ]
    categories = summary.get("categories") or {}
    if categories:
        lines.append("Categories:")
        lines.extend(f"- {label}: {count}" for label, count in categories.items())
    return "\n".join(lines) + "\n"


def build_parser() -> argparse.ArgumentParser:
    parser = AutoreportArgumentParser(prog="autoreport", description="Map spreadsheet columns to report templates and summarise them.")
    subparsers = parser.add_subparsers(dest="command", required=True)

    templates = subparsers.add_parser("templates", help="List report templates.")
    templates.add_argument("--json", action="store_true", help="Write machine JSON to stdout")

    match = subparsers.add_parser("match", help="Propose a column mapping for a template.")
    match.add_argument("input", help="Input file path")
    match.add_argument("--template", required=True, help="Template id")
    match.add_argument("--config", help=f"Config path (default: ./{DEFAULT_CONFIG_NAME} when present)")
    match.add_argument("--json", action="store_true", help="Write machine JSON to stdout")
    match.add_argument("-q", "--quiet", action="store_true", help="Minimal human logs")
    match.add_argument("-v", "--verbose", action="store_true", help="More human logs")

    validate = subparsers.add_parser("validate", help="Validate mapped cells against their data types.")
    validate.add_argument("input", help="Input file path")
    validate.add_argument("--template", required=True, help="Template id")
    validate.add_argument("--map", action="append", metavar="FIELD=COLUMN", help="Override one field mapping (repeatable)")
    validate.add_argument("--config", help=f"Config path (default: ./{DEFAULT_CONFIG_NAME} when present)")
    validate.add_argument("--json", action="store_true", help="Write machine JSON to stdout")
    validate.add_argument("-o", "--out", dest="out_dir", help="Output directory")
    validate.add_argument("--output", help="Explicit validation output path")
    validate.add_argument("-q", "--quiet", action="store_true", help="Minimal human logs")
    validate.add_argument("-v", "--verbose", action="store_true", help="More human logs")

    report = subparsers.add_parser("report", help="Run the full pipeline and write the report.")
    report.add_argument("input", help="Input file path")
    report.add_argument("--template", required=True, help="Template id")
    report.add_argument("--map", action="append", metavar="FIELD=COLUMN", help="Override one field mapping (repeatable)")
    report.add_argument("--title", help="Report title (default: template name)")
    report.add_argument("--period", default="", help="Period label shown instead of the detected date range")
    report.add_argument("--config", help=f"Config path (default: ./{DEFAULT_CONFIG_NAME} when present)")
    report.add_argument("-o", "--out", dest="out_dir", help="Output directory")
    report.add_argument("--xlsx", help="Also export an Excel workbook to this path")
    report.add_argument("--json", action="store_true", help="Write machine JSON to stdout")
    report.add_argument("-q", "--quiet", action="store_true", help="Minimal human logs")
    report.add_argument("-v", "--verbose", action="store_true", help="More human logs")

    config = subparsers.add_parser("config", help="Generate configuration.")
    config_subparsers = config.add_subparsers(dest="config_command", required=True)
    config_init = config_subparsers.add_parser("init", help="Write a starter config file.")
    config_init.add_argument("--path", default=DEFAULT_CONFIG_NAME, help="Config output path")

    subparsers.add_parser("version", help="Print version")
    return parser


def run_templates(args: argparse.Namespace) -> int:
    if args.json:
        maybe_emit_json_stdout([t.to_dict() for t in REPORT_TEMPLATES], True)
    else:
        print(render_templates_text().rstrip())
    return EXIT_SUCCESS


def run_match(args: argparse.Namespace) -> int:
    input_path = Path(args.input)
    try:
        settings = resolve_settings(args)
        configure_logging(args, settings)
        template = resolve_template(args.template)
        matcher = build_matcher(settings)
        table = load_input(input_path, settings)
        mappings = matcher.match(table.columns, template.required_fields, template.optional_fields)
        check = check_mappings(mappings, table.columns, template.required_fields)
        used = {m.source_column for m in mappings}
        contract = build_contract("autoreport.mapping_proposal")
        payload = {
            "contract": contract,
            "schema_version": contract["version"],
            "tool_version": TOOL_VERSION,
            "input": str(input_path),
            "template": template.id,
            "columns": table.columns,
            "column_types": infer_column_types(table.records, table.columns),
            "mappings": [m.to_dict() for m in mappings],
            "missing_required": check.missing_fields,
            "unmapped_columns": [c for c in table.columns if c not in used],
            "stats": mapping_stats(mappings, template.required_fields, template.optional_fields),
            "warnings": table.warnings,
        }
        if args.json:
            maybe_emit_json_stdout(payload, True)
        else:
            emit_human(render_match_text(payload).rstrip(), quiet=args.quiet)
        return EXIT_REQUIRED_UNMAPPED if check.missing_fields else EXIT_SUCCESS
    except Exception as exc:
        eprint(str(exc))
        return classify_backend_exception(exc)


def run_validate(args: argparse.Namespace) -> int:
    input_path = Path(args.input)
    try:
        settings = resolve_settings(args)
        configure_logging(args, settings)
        template = resolve_template(args.template)
        matcher = build_matcher(settings)
        table = load_input(input_path, settings)
        mappings = resolve_mappings(args, table, template, matcher)
        errors = validate_rows(table.records, mappings)
        contract = build_contract("autoreport.validation")
        payload = {
            "contract": contract,
            "schema_version": contract["version"],
            "tool_version": TOOL_VERSION,
            "input": str(input_path),
            "template": template.id,
            "mappings": [m.to_dict() for m in mappings],
            "total_rows": table.row_count,
            "valid": not errors,
            "error_count": len(errors),
            "rows_with_errors": len({e.row for e in errors}),
            "errors": [e.to_dict() for e in errors],
        }
        if args.output or args.out_dir:
            out_dir = determine_output_dir(args, input_path)
            output_path = Path(args.output) if args.output else out_dir / "validation.json"
            write_json(output_path, payload)
            emit_human(f"Validation report: {output_path}", quiet=args.quiet)
        if args.json:
            maybe_emit_json_stdout(payload, True)
        else:
            emit_human(render_validate_text(payload).rstrip(), quiet=args.quiet)
        return EXIT_SUCCESS if payload["valid"] else EXIT_VALIDATION_ERRORS
    except Exception as exc:
        eprint(str(exc))
        return classify_backend_exception(exc)


def run_report(args: argparse.Namespace) -> int:
    input_path = Path(args.input)
    try:
        settings = resolve_settings(args)
        configure_logging(args, settings)
        template = resolve_template(args.template)
        matcher = build_matcher(settings)
        table = load_input(input_path, settings)
        mappings = resolve_mappings(args, table, template, matcher)
        processed = process_data(table.records, mappings, display_date_format=settings.display_date_format)
        config = ReportConfig(title=args.title or template.name, period=args.period, template=template)

        out_dir = determine_output_dir(args, input_path)
        report_path = out_dir / "report.json"
        exported_formats = ["json"]
        outputs = {"report": str(report_path)}
        if args.xlsx:
            xlsx_path = Path(args.xlsx)
            export_excel(processed, config, xlsx_path)
            exported_formats.append("xlsx")
            outputs["workbook"] = str(xlsx_path)

        payload = build_report_payload(
            processed,
            config=config,
            input_path=input_path,
            output_path=report_path,
            warnings=table.warnings,
        )
        history = build_history_entry(
            processed,
            config,
            exported_formats=exported_formats,
            report_id=f"report_{timestamp_token()}",
        )
        payload["history"] = history.to_dict()
        payload["outputs"] = outputs
        write_json(report_path, payload)

        if args.json:
            maybe_emit_json_stdout(payload, True)
        else:
            emit_human(render_report_text(payload).rstrip(), quiet=args.quiet)
            emit_human(f"Report: {report_path}", quiet=args.quiet)
            if args.xlsx:
                emit_human(f"Workbook: {outputs['workbook']}", quiet=args.quiet)
        return EXIT_VALIDATION_ERRORS if processed.errors else EXIT_SUCCESS
    except Exception as exc:
        eprint(str(exc))
        return classify_backend_exception(exc)


def run_config_init(args: argparse.Namespace) -> int:
    config_path = Path(args.path)
    if config_path.exists():
        eprint(f"Refusing to overwrite existing config: {config_path}")
        return EXIT_COMMAND_ERROR
    write_text(config_path, starter_config_text())
    emit_human(f"Config written: {config_path}")
    return EXIT_SUCCESS


def run_version() -> int:
    print(TOOL_VERSION)
    return EXIT_SUCCESS


def main(argv: list[str] | None = None) -> int:
    try:
        parser = build_parser()
        args = parser.parse_args(argv)
        if args.command == "templates":
            return run_templates(args)
        if args.command == "match":
            return run_match(args)
        if args.command == "validate":
            return run_validate(args)
        if args.command == "report":
            return run_report(args)
        if args.command == "config":
            if args.config_command == "init":
                return run_config_init(args)
        if args.command == "version":
            return run_version()
        raise CliError(f"Unknown command: {args.command}", EXIT_COMMAND_ERROR)
    except CliError as exc:
        eprint(str(exc))
        return exc.code


if __name__ == "__main__":
    raise SystemExit(main())
