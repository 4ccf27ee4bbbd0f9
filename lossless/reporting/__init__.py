"""Reporting utilities for lossless."""

from .artifacts import write_manifest
from .metrics import ConsoleReporter, CsvSink, JsonlSink
from .summary import write_summary

__all__ = ["write_manifest", "ConsoleReporter", "CsvSink", "JsonlSink", "write_summary"]
