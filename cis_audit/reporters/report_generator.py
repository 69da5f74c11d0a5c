"""Report Generator Module - Writes audit reports in the requested file formats."""

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

from ..core.auditor import AuditReport
from .base_reporter import BaseReporter, ReportData
from .csv_reporter import CSVReporter
from .json_reporter import JSONReporter
from .pdf_reporter import PDFReporter

logger = logging.getLogger(__name__)


class ReportGenerator:
    """Writes one finished audit in several file formats."""

    SUPPORTED_FORMATS = ["json", "csv", "pdf"]

    def __init__(self, output_dir: Optional[str] = None):
        """Initialize the report generator.

        Args:
            output_dir: Directory to save reports (default: ./cis_reports)
        """
        self.output_dir = Path(output_dir) if output_dir else Path.cwd() / "cis_reports"

        self.reporters: Dict[str, BaseReporter] = {
            "json": JSONReporter(str(self.output_dir)),
            "csv": CSVReporter(str(self.output_dir)),
        }

        # Try to add PDF reporter
        try:
            self.reporters["pdf"] = PDFReporter(str(self.output_dir))
        except ImportError:
            logger.warning("ReportLab is not installed; PDF reports are unavailable")

    def get_available_formats(self) -> List[str]:
        """Get list of available report formats."""
        return list(self.reporters.keys())

    def generate_reports(
        self,
        report: AuditReport,
        formats: Optional[List[str]] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, str]:
        """Write the audit in each requested format.

        Args:
            report: Finished audit
            formats: Formats to generate (default: all available)
            metadata: Additional metadata for the report

        Returns:
            Dictionary mapping format to report path

        Raises:
            ValueError: If a requested format is not available
        """
        formats = formats or self.get_available_formats()

        invalid_formats = [f for f in formats if f not in self.reporters]
        if invalid_formats:
            raise ValueError(f"Unsupported formats: {invalid_formats}")

        report_data = ReportData.from_report(report, metadata)

        report_paths = {}
        for format_name in formats:
            reporter = self.reporters[format_name]
            path = reporter.save(report_data)
            logger.info("Wrote %s report to %s", format_name, path)
            report_paths[format_name] = path

        return report_paths

    def get_report_content(self, report: AuditReport, format_name: str) -> bytes:
        """Render one format in memory.

        Raises:
            ValueError: If the format is not available
        """
        if format_name not in self.reporters:
            raise ValueError(f"Unsupported format: {format_name}")
        return self.reporters[format_name].generate(ReportData.from_report(report))
