from __future__ import annotations

import unittest

from autoreport.field_matcher import FieldSpec
from autoreport.mapping_rules import (
    check_mappings,
    mapping_from_dict,
    mapping_stats,
    merge_mappings,
    reverse_mapping,
    without_field,
)
from autoreport.models import ColumnMapping, DataType

COLUMNS = ["Date", "Amount", "Category", "Memo"]


class CheckMappingsTests(unittest.TestCase):
    def test_complete_mapping_is_valid(self):
        mappings = [ColumnMapping("Date", "date"), ColumnMapping("Amount", "amount"), ColumnMapping("Category", "category")]
        check = check_mappings(mappings, COLUMNS, ["date", "amount", "category"])
        self.assertTrue(check.valid)
        self.assertIsNone(check.error)

    def test_unknown_source_column(self):
        check = check_mappings([ColumnMapping("Nope", "date")], COLUMNS)
        self.assertFalse(check.valid)
        self.assertEqual(check.invalid_columns, ["Nope"])
        self.assertEqual(check.error, "Invalid columns: Nope")

    def test_missing_required_fields(self):
        check = check_mappings([ColumnMapping("Date", "date")], COLUMNS, ["date", "amount", "category"])
        self.assertEqual(check.missing_fields, ["amount", "category"])
        self.assertEqual(check.error, "Required fields not mapped: amount, category")

    def test_both_problems_are_reported(self):
        check = check_mappings([ColumnMapping("Nope", "date")], COLUMNS, ["amount"])
        self.assertIn("Invalid columns", check.error)
        self.assertIn("Required fields not mapped", check.error)


class MappingEditTests(unittest.TestCase):
    def test_merge_replaces_same_target_and_appends_new(self):
        existing = [ColumnMapping("Date", "date"), ColumnMapping("Amount", "amount")]
        merged = merge_mappings(existing, [ColumnMapping("Memo", "amount"), ColumnMapping("Category", "category")])
        self.assertEqual(
            [(m.source_column, m.target_field) for m in merged],
            [("Date", "date"), ("Memo", "amount"), ("Category", "category")],
        )

    def test_merge_does_not_touch_inputs(self):
        existing = [ColumnMapping("Date", "date")]
        merge_mappings(existing, [ColumnMapping("Memo", "date")])
        self.assertEqual(existing, [ColumnMapping("Date", "date")])

    def test_without_field_and_reverse(self):
        mappings = [ColumnMapping("Date", "date"), ColumnMapping("Amount", "amount")]
        self.assertEqual(without_field(mappings, "date"), [ColumnMapping("Amount", "amount")])
        self.assertEqual(reverse_mapping(mappings), {"Date": "date", "Amount": "amount"})


class MappingStatsTests(unittest.TestCase):
    def test_completion_percentage(self):
        mappings = [ColumnMapping("Date", "date"), ColumnMapping("Amount", "amount"), ColumnMapping("Memo", "notes")]
        stats = mapping_stats(mappings, ["date", "amount", "category"], ["description", "reference", "notes"])
        self.assertEqual(
            stats,
            {
                "total": 3,
                "requiredMapped": 2,
                "optionalMapped": 1,
                "requiredTotal": 3,
                "optionalTotal": 3,
                "completion": 50,
            },
        )

    def test_no_fields(self):
        self.assertEqual(mapping_stats([], [])["completion"], 0)


class MappingFromDictTests(unittest.TestCase):
    def test_types_come_from_field_table(self):
        mappings = mapping_from_dict({"date": "Date", "amount": "Amount", "reference": "Ref"})
        self.assertEqual(
            [m.data_type for m in mappings],
            [DataType.DATE, DataType.CURRENCY, DataType.STRING],
        )

    def test_custom_table(self):
        mappings = mapping_from_dict({"qty": "Menge"}, {"qty": FieldSpec(("menge",), DataType.NUMBER)})
        self.assertEqual(mappings, [ColumnMapping("Menge", "qty", DataType.NUMBER)])


if __name__ == "__main__":
    unittest.main()
