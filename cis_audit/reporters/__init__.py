"""Report generation module for CIS Audit."""

from .base_reporter import BaseReporter, ReportData
from .csv_reporter import CSVReporter
from .json_reporter import JSONReporter
from .pdf_reporter import PDFReporter
from .report_generator import ReportGenerator
from .terminal_reporter import TerminalReporter

__all__ = [
    "BaseReporter",
    "ReportData",
    "CSVReporter",
    "JSONReporter",
    "PDFReporter",
    "ReportGenerator",
    "TerminalReporter",
]
