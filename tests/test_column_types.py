from __future__ import annotations

import unittest
from datetime import datetime

from autoreport.column_types import UNKNOWN, detect_atomic_type, infer_column_type, infer_column_types


class AtomicTypeTests(unittest.TestCase):
    def test_cells(self):
        cases = {
            "": UNKNOWN,
            None: UNKNOWN,
            "12.5": "number",
            "1,250": "number",
            "2024-01-15": "date",
            "$1,250.00": "currency",
            "Rp 125.000": "currency",
            "USD": "string",
            "Food": "string",
            45000: "number",
            True: "string",
        }
        for value, expected in cases.items():
            with self.subTest(value=value):
                self.assertEqual(detect_atomic_type(value), expected)

    def test_native_datetime_is_date(self):
        self.assertEqual(detect_atomic_type(datetime(2024, 1, 15)), "date")


class ColumnTypeTests(unittest.TestCase):
    def test_all_dates(self):
        self.assertEqual(infer_column_type(["2024-01-01", "", "01/15/2024"]), "date")

    def test_any_currency_wins_over_numbers(self):
        self.assertEqual(infer_column_type(["100", "$25", "7"]), "currency")

    def test_all_numbers(self):
        self.assertEqual(infer_column_type(["100", 25, "1,000"]), "number")

    def test_mixed_values_are_strings(self):
        self.assertEqual(infer_column_type(["100", "abc"]), "string")

    def test_empty_column_is_unknown(self):
        self.assertEqual(infer_column_type(["", None]), UNKNOWN)

    def test_types_follow_column_order(self):
        records = [
            {"Date": "2024-01-01", "Amount": "100", "Category": "Food"},
            {"Date": "2024-01-15", "Amount": "200"},
        ]
        types = infer_column_types(records, ["Date", "Amount", "Category"])
        self.assertEqual(list(types.items()), [("Date", "date"), ("Amount", "number"), ("Category", "string")])


if __name__ == "__main__":
    unittest.main()
