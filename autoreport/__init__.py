"""Spreadsheet-to-report pipeline: decode, map, validate, summarise, assemble."""

__version__ = "0.3.0"
