"""CSV Reporter Module - One row per section banner and per check result."""

import csv
import io
from typing import List, Optional

from ..core.check import Section
from .base_reporter import BaseReporter, ReportData

HEADER = ["ID", "Description", "Scoring", "Level", "Result", "Duration"]


class CSVReporter(BaseReporter):
    """Generate reports as CSV rows: one per section banner and one per result.

    Section rows carry only the id and title, the remaining columns are empty.
    """

    def __init__(self, output_dir: Optional[str] = None, include_header: bool = True):
        super().__init__(output_dir)
        self.include_header = include_header

    @property
    def format(self) -> str:
        return "csv"

    @property
    def extension(self) -> str:
        return "csv"

    def build_rows(self, report_data: ReportData) -> List[List[str]]:
        rows = [HEADER] if self.include_header else []
        for row in report_data.rows():
            if isinstance(row, Section):
                rows.append([row.id, row.title, "", "", "", ""])
            else:
                rows.append([
                    row.id,
                    row.description,
                    row.scoring_class.value,
                    str(row.level),
                    row.label,
                    row.duration_text,
                ])
        return rows

    def generate(self, report_data: ReportData) -> bytes:
        """Generate CSV report.

        Args:
            report_data: Data to include in the report

        Returns:
            CSV content as UTF-8 bytes
        """
        buffer = io.StringIO()
        writer = csv.writer(buffer, lineterminator="\n")
        writer.writerows(self.build_rows(report_data))
        return buffer.getvalue().encode("utf-8")
