from __future__ import annotations

import re
import unittest

from autoreport.contracts import CONTRACT_VERSIONS, build_contract, build_run_summary, utc_now_iso


class ContractTests(unittest.TestCase):
    def test_every_contract_is_versioned(self):
        for name, version in CONTRACT_VERSIONS.items():
            with self.subTest(name=name):
                self.assertEqual(build_contract(name), {"name": name, "version": version})
                self.assertRegex(version, r"^\d+\.\d+\.\d+$")

    def test_unknown_contract(self):
        with self.assertRaises(KeyError):
            build_contract("autoreport.nope")

    def test_run_summary_shape(self):
        summary = build_run_summary(step="report", input_path="in.csv", metrics={"total_rows": 2}, warnings=["w"])
        self.assertEqual(summary["tool"], "autoreport")
        self.assertEqual(summary["step"], "report")
        self.assertEqual(summary["status"], "ok")
        self.assertEqual(summary["input_file"], "in.csv")
        self.assertIsNone(summary["output_file"])
        self.assertEqual(summary["warnings_count"], 1)
        self.assertEqual(summary["metrics"], {"total_rows": 2})

    def test_timestamps_are_utc_seconds(self):
        self.assertTrue(re.fullmatch(r"\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}Z", utc_now_iso()))


if __name__ == "__main__":
    unittest.main()
