from __future__ import annotations

import io
import tempfile
import unittest
from datetime import date
from pathlib import Path

from openpyxl import load_workbook

from autoreport.assembler import process_data
from autoreport.exporter import NOT_AVAILABLE, export_excel, export_filename
from autoreport.models import ColumnMapping, DataType, ReportConfig
from autoreport.templates import require_template

RECORDS = [
    {"Date": "2024-01-01", "Amount": "100", "Category": "Food", "Memo": "x"},
    {"Date": "2024-01-15", "Amount": "abc", "Category": "Transport", "Memo": "y"},
]
MAPPINGS = [
    ColumnMapping("Date", "date", DataType.DATE),
    ColumnMapping("Amount", "amount", DataType.CURRENCY),
    ColumnMapping("Category", "category", DataType.STRING),
]


def sheet_values(ws) -> list[list]:
    return [list(row) for row in ws.iter_rows(values_only=True)]


class ExportExcelTests(unittest.TestCase):
    def setUp(self):
        self.processed = process_data(RECORDS, MAPPINGS)
        self.config = ReportConfig(title="January Spend", template=require_template("financial-summary"))

    def export_to_buffer(self, config=None):
        buffer = io.BytesIO()
        export_excel(self.processed, config or self.config, buffer)
        buffer.seek(0)
        return load_workbook(buffer)

    def test_sheet_layout(self):
        wb = self.export_to_buffer()
        self.assertEqual(wb.sheetnames, ["Data", "Summary", "Validation"])

    def test_data_sheet_has_one_column_per_mapping(self):
        rows = sheet_values(self.export_to_buffer()["Data"])
        self.assertEqual(rows[0], ["date", "amount", "category"])
        self.assertEqual(rows[1], ["2024-01-01", "100", "Food"])
        self.assertEqual(len(rows), 3)

    def test_summary_sheet(self):
        rows = sheet_values(self.export_to_buffer()["Summary"])
        labels = {row[0]: row[1] for row in rows if row[0]}
        self.assertEqual(labels["Report Title"], "January Spend")
        self.assertEqual(labels["Template"], "Financial Summary")
        self.assertEqual(labels["Period"], "1/1/2024 - 1/15/2024")
        self.assertEqual(labels["Total Records"], 2)
        self.assertEqual(labels["Total Amount"], 100)
        self.assertEqual(labels["Validation Errors"], 1)
        self.assertEqual(labels["Transport"], 1)
        self.assertIn(["Category", "Count"], rows)

    def test_missing_amount_renders_not_available(self):
        processed = process_data(RECORDS, MAPPINGS[:1])
        buffer = io.BytesIO()
        export_excel(processed, ReportConfig(title="Dates only", period="January"), buffer)
        buffer.seek(0)
        rows = sheet_values(load_workbook(buffer)["Summary"])
        labels = {row[0]: row[1] for row in rows if row[0]}
        self.assertEqual(labels["Total Amount"], NOT_AVAILABLE)
        self.assertEqual(labels["Period"], "January")
        self.assertNotIn("Template", labels)

    def test_validation_sheet_lists_errors(self):
        rows = sheet_values(self.export_to_buffer()["Validation"])
        self.assertEqual(rows[0], ["row", "column", "message", "value"])
        self.assertEqual(rows[1], [2, "Amount", "Invalid number format for amount", "abc"])

    def test_header_styling(self):
        ws = self.export_to_buffer()["Data"]
        self.assertTrue(ws["A1"].font.bold)
        self.assertEqual(ws.freeze_panes, "A2")
        self.assertGreaterEqual(ws.column_dimensions["A"].width, 10)

    def test_text_starting_with_equals_is_stored_as_string(self):
        records = [
            {"Date": "2024-01-01", "Amount": "=1+1", "Category": '=HYPERLINK("http://example.com","x")', "Memo": "=== opening ==="},
            {"Date": "2024-01-02", "Amount": "5", "Category": "Food", "Memo": "plain"},
        ]
        mappings = MAPPINGS + [ColumnMapping("Memo", "description", DataType.STRING)]
        buffer = io.BytesIO()
        export_excel(process_data(records, mappings), self.config, buffer)
        buffer.seek(0)
        wb = load_workbook(buffer)

        data_row = wb["Data"][2]
        self.assertEqual([c.value for c in data_row], ["2024-01-01", "=1+1", '=HYPERLINK("http://example.com","x")', "=== opening ==="])
        self.assertEqual([c.data_type for c in data_row[1:]], ["s", "s", "s"])

        validation_value = wb["Validation"]["D2"]
        self.assertEqual(validation_value.value, "=1+1")
        self.assertEqual(validation_value.data_type, "s")

        summary = wb["Summary"]
        label_cells = [row[0] for row in summary.iter_rows() if row[0].value == '=HYPERLINK("http://example.com","x")']
        self.assertEqual(len(label_cells), 1)
        self.assertEqual(label_cells[0].data_type, "s")

    def test_writes_to_path_and_creates_parents(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "nested" / "report.xlsx"
            export_excel(self.processed, self.config, path)
            self.assertTrue(path.exists())
            self.assertEqual(load_workbook(path).sheetnames, ["Data", "Summary", "Validation"])


class ExportFilenameTests(unittest.TestCase):
    def test_whitespace_becomes_underscores(self):
        self.assertEqual(export_filename("Monthly  Sales Report", "xlsx", date(2024, 3, 1)), "Monthly_Sales_Report_2024-03-01.xlsx")

    def test_blank_title_and_dotted_extension(self):
        self.assertEqual(export_filename("  ", ".json", date(2024, 3, 1)), "report_2024-03-01.json")


if __name__ == "__main__":
    unittest.main()
