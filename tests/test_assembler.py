from __future__ import annotations

import json
import unittest

from autoreport.assembler import (
    assemble_report,
    build_history_entry,
    build_report_payload,
    preview_rows,
    process_data,
)
from autoreport.field_matcher import FieldMatcher
from autoreport.loader import MalformedInputError, decode
from autoreport.models import ColumnMapping, DataType, ReportConfig, Summary, ValidationError
from autoreport.templates import require_template

SAMPLE_CSV = "Date,Amount,Category\n2024-01-01,100,Food\n2024-01-15,200,Transport\n"


def run_pipeline(content: str, template_id: str = "financial-summary"):
    template = require_template(template_id)
    table = decode(content, "csv")
    mappings = FieldMatcher().match(table.columns, template.required_fields, template.optional_fields)
    return mappings, process_data(table.records, mappings)


class EndToEndTests(unittest.TestCase):
    def test_clean_financial_csv(self):
        mappings, processed = run_pipeline(SAMPLE_CSV)
        self.assertEqual(
            mappings,
            [
                ColumnMapping("Date", "date", DataType.DATE),
                ColumnMapping("Amount", "amount", DataType.CURRENCY),
                ColumnMapping("Category", "category", DataType.STRING),
            ],
        )
        summary = processed.summary
        self.assertEqual(summary.total_rows, 2)
        self.assertEqual(summary.total_amount, 300.0)
        self.assertEqual(summary.average_amount, 150.0)
        self.assertEqual(summary.categories, {"Food": 1, "Transport": 1})
        self.assertEqual(summary.period, "1/1/2024 - 1/15/2024")
        self.assertEqual(processed.errors, ())

    def test_malformed_amount_is_reported_and_excluded(self):
        _, processed = run_pipeline("Date,Amount,Category\n2024-01-01,100,Food\n2024-01-15,abc,Transport\n")
        self.assertEqual(
            processed.errors,
            (ValidationError(2, "Amount", "Invalid number format for amount", "abc"),),
        )
        self.assertEqual(processed.summary.total_amount, 100.0)
        self.assertEqual(processed.summary.average_amount, 100.0)
        self.assertEqual(processed.summary.amount_count, 1)

    def test_header_only_fails_before_matching(self):
        with self.assertRaises(MalformedInputError):
            run_pipeline("Date,Amount,Category\n")

    def test_no_amount_column(self):
        _, processed = run_pipeline("Date,Category\n2024-01-01,Food\n2024-01-02,Rent\n2024-01-03,Food\n")
        self.assertEqual(processed.summary.total_rows, 3)
        self.assertIsNone(processed.summary.total_amount)
        self.assertIsNone(processed.summary.average_amount)
        self.assertNotIn("totalAmount", processed.summary.to_dict())


class AssembleTests(unittest.TestCase):
    def test_columns_come_from_first_record(self):
        records = [{"b": 1, "a": 2}]
        processed = assemble_report(records, [], [], Summary(total_rows=1))
        self.assertEqual(processed.columns, ("b", "a"))
        self.assertEqual(processed.raw_data, ({"b": 1, "a": 2},))

    def test_empty_dataset_has_no_columns(self):
        processed = assemble_report([], [], [], Summary(total_rows=0))
        self.assertEqual(processed.columns, ())

    def test_records_are_copied(self):
        records = [{"a": 1}]
        processed = assemble_report(records, [], [], Summary(total_rows=1))
        records[0]["a"] = 99
        self.assertEqual(processed.raw_data[0]["a"], 1)


class PayloadTests(unittest.TestCase):
    def setUp(self):
        _, self.processed = run_pipeline("Date,Amount,Category\n2024-01-01,100,Food\n2024-01-15,abc,Transport\n")
        self.template = require_template("financial-summary")
        self.config = ReportConfig(title="January Spend", template=self.template)

    def test_report_payload_is_json_ready(self):
        payload = build_report_payload(self.processed, config=self.config, input_path="jan.csv")
        json.dumps(payload)
        self.assertEqual(payload["contract"], {"name": "autoreport.processed_data", "version": "1.0.0"})
        self.assertEqual(payload["summary"]["totalAmount"], 100.0)
        self.assertEqual(payload["columns"], ["Date", "Amount", "Category"])
        self.assertEqual(payload["report"]["title"], "January Spend")
        metrics = payload["run_summary"]["metrics"]
        self.assertEqual(metrics["validation_errors"], 1)
        self.assertEqual(metrics["rows_with_errors"], 1)
        self.assertEqual(metrics["amount_rows"], 1)
        self.assertEqual(payload["run_summary"]["input_file"], "jan.csv")

    def test_history_entry(self):
        entry = build_history_entry(
            self.processed,
            self.config,
            exported_formats=["xlsx"],
            report_id="report_1",
            exported_at="2024-02-01T00:00:00Z",
        )
        data = entry.to_dict()
        self.assertEqual(data["id"], "report_1")
        self.assertEqual(data["templateName"], "Financial Summary")
        self.assertEqual(data["period"], "1/1/2024 - 1/15/2024")
        self.assertEqual(data["totalRows"], 2)
        self.assertEqual(data["totalAmount"], 100.0)
        self.assertEqual(data["exportedFormats"], ["xlsx"])

    def test_history_entry_prefers_configured_period(self):
        config = ReportConfig(title="Q1", period="Q1 2024")
        entry = build_history_entry(self.processed, config)
        self.assertEqual(entry.period, "Q1 2024")
        self.assertTrue(entry.id.startswith("report_"))
        self.assertEqual(entry.template_name, "")

    def test_preview_rows_use_target_fields(self):
        rows = preview_rows(self.processed, limit=1)
        self.assertEqual(rows, [{"date": "2024-01-01", "amount": "100", "category": "Food"}])


if __name__ == "__main__":
    unittest.main()
