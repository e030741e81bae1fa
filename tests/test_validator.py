from __future__ import annotations

import random
import unittest
from datetime import datetime

from autoreport.models import ColumnMapping, DataType, ValidationError
from autoreport.validator import check_cell, validate_rows

AMOUNT = ColumnMapping("Amount", "amount", DataType.CURRENCY)
QTY = ColumnMapping("Qty", "quantity", DataType.NUMBER)
DATE = ColumnMapping("Date", "date", DataType.DATE)
NAME = ColumnMapping("Name", "name", DataType.STRING)


class CheckCellTests(unittest.TestCase):
    def test_missing_values(self):
        for value in (None, "", float("nan")):
            with self.subTest(value=value):
                self.assertEqual(check_cell(value, NAME), "Missing value for name")

    def test_whitespace_string_is_present(self):
        self.assertIsNone(check_cell("  ", NAME))

    def test_number_and_currency(self):
        self.assertIsNone(check_cell("12.5", AMOUNT))
        self.assertIsNone(check_cell(3, QTY))
        self.assertEqual(check_cell("abc", AMOUNT), "Invalid number format for amount")
        self.assertEqual(check_cell("1,000", QTY), "Invalid number format for quantity")
        self.assertEqual(check_cell("  ", QTY), "Invalid number format for quantity")

    def test_dates(self):
        self.assertIsNone(check_cell("2024-01-15", DATE))
        self.assertIsNone(check_cell(datetime(2024, 1, 15), DATE))
        self.assertEqual(check_cell("yesterday", DATE), "Invalid date format for date")

    def test_strings_accept_anything_present(self):
        self.assertIsNone(check_cell(42, NAME))


class ValidateRowsTests(unittest.TestCase):
    def test_one_error_per_failing_cell_with_one_based_rows(self):
        records = [
            {"Date": "2024-01-01", "Amount": "100", "Name": "Ana"},
            {"Date": "bad", "Amount": "abc", "Name": ""},
            {"Date": "2024-01-03", "Amount": "5", "Name": "Bo"},
        ]
        errors = validate_rows(records, [DATE, AMOUNT, NAME])
        self.assertEqual(
            errors,
            [
                ValidationError(2, "Date", "Invalid date format for date", "bad"),
                ValidationError(2, "Amount", "Invalid number format for amount", "abc"),
                ValidationError(2, "Name", "Missing value for name", ""),
            ],
        )

    def test_absent_key_counts_as_missing(self):
        errors = validate_rows([{"Other": 1}], [AMOUNT])
        self.assertEqual(errors, [ValidationError(1, "Amount", "Missing value for amount", None)])

    def test_no_mappings_or_no_rows(self):
        self.assertEqual(validate_rows([{"a": ""}], []), [])
        self.assertEqual(validate_rows([], [AMOUNT]), [])

    def test_duplicate_source_column_reports_per_mapping(self):
        total = ColumnMapping("Amount", "total", DataType.NUMBER)
        errors = validate_rows([{"Amount": "x"}], [AMOUNT, total])
        self.assertEqual([e.message for e in errors], ["Invalid number format for amount", "Invalid number format for total"])


class ValidatorPropertyTests(unittest.TestCase):
    MAPPINGS = [DATE, AMOUNT, QTY, NAME]
    VALID_ROW = {"Date": "2024-01-01", "Amount": "10", "Qty": "2", "Name": "Ana"}
    INVALID_ROW = {"Date": "never", "Amount": "ten", "Qty": "", "Name": None}

    def test_every_row_and_mapping_is_checked(self):
        records = [dict(self.INVALID_ROW) for _ in range(4)]
        errors = validate_rows(records, self.MAPPINGS)
        self.assertEqual(len(errors), len(records) * len(self.MAPPINGS))
        self.assertEqual(
            {(e.row, e.column) for e in errors},
            {(row, m.source_column) for row in range(1, 5) for m in self.MAPPINGS},
        )

    def test_error_count_grows_with_each_invalid_cell(self):
        rng = random.Random(7)
        records = [dict(self.VALID_ROW) for _ in range(6)]
        positions = [(row, m.source_column) for row in range(len(records)) for m in self.MAPPINGS]
        rng.shuffle(positions)

        previous = len(validate_rows(records, self.MAPPINGS))
        self.assertEqual(previous, 0)
        for broken, (row, column) in enumerate(positions, start=1):
            records[row][column] = self.INVALID_ROW[column]
            count = len(validate_rows(records, self.MAPPINGS))
            self.assertGreaterEqual(count, previous)
            self.assertEqual(count, broken)
            previous = count


if __name__ == "__main__":
    unittest.main()
