#!/usr/bin/env python3
"""
Generates sample inputs for trying autoreport end to end.

Run from the repo root:
    python sample-data/generate_samples.py

Files written:
  financial_sample.xlsx  (financial-summary template)
    - Indonesian headers: "Tanggal", "Nominal", "Kategori", "Keterangan"
    - Native Excel dates and numbers
    - One amount cell with text ("pending") and one blank category
    - A second sheet "Notes" that the decoder ignores
  attendance_sample.csv  (attendance-report template)
    - Semicolon delimited, mixed date formats, one missing status
"""

from datetime import datetime
from pathlib import Path

import openpyxl

HERE = Path(__file__).parent

# ── financial_sample.xlsx ───────────────────────────────────────────────────
wb = openpyxl.Workbook()
ws = wb.active
ws.title = "Transaksi"
ws.append(["Tanggal", "Nominal", "Kategori", "Keterangan"])
rows = [
    [datetime(2024, 1, 2),  125000,    "Makan",     "Lunch meeting"],
    [datetime(2024, 1, 5),  50000,     "Transport", "Taxi"],
    [datetime(2024, 1, 9),  "pending", "Makan",     "Catering deposit"],
    [datetime(2024, 1, 14), 900000,    None,        "Office chair"],
    [datetime(2024, 1, 31), 75000.5,   "Transport", "Fuel"],
]
for row in rows:
    ws.append(row)
wb.create_sheet("Notes").append(["Exported from the finance shared drive"])
wb.save(HERE / "financial_sample.xlsx")

# ── attendance_sample.csv ───────────────────────────────────────────────────
attendance = """Date;Employee Name;Status;Department
2024-03-01;Ana Putri;present;Finance
03/01/2024;Budi Santoso;absent;Operations
2024-03-02;Ana Putri;present;Finance
March 2, 2024;Budi Santoso;;Operations
"""
(HERE / "attendance_sample.csv").write_text(attendance, encoding="utf-8")

print(f"Written: {HERE / 'financial_sample.xlsx'}")
print(f"Written: {HERE / 'attendance_sample.csv'}")
