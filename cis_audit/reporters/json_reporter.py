"""JSON Reporter Module - Machine-readable audit results."""

import json
from typing import Any, Dict, List, Optional

from .. import __version__
from ..core.identifiers import is_ancestor, parse_id, sort_by_id
from .base_reporter import BaseReporter, ReportData


class JSONReporter(BaseReporter):
    """Generate reports in JSON format."""

    def __init__(
        self,
        output_dir: Optional[str] = None,
        indent: int = 2,
        include_metadata: bool = True,
    ):
        """Initialize the JSON reporter.

        Args:
            output_dir: Directory to save reports
            indent: JSON indentation level
            include_metadata: Include metadata in the report
        """
        super().__init__(output_dir)
        self.indent = indent
        self.include_metadata = include_metadata

    @property
    def format(self) -> str:
        return "json"

    @property
    def extension(self) -> str:
        return "json"

    def generate(self, report_data: ReportData) -> bytes:
        """Generate JSON report.

        Args:
            report_data: Data to include in the report

        Returns:
            JSON content as bytes
        """
        report_dict = self._build_report_structure(report_data)
        json_str = json.dumps(report_dict, indent=self.indent, ensure_ascii=False)
        return json_str.encode("utf-8")

    def _build_report_structure(self, report_data: ReportData) -> Dict[str, Any]:
        """Build the JSON report structure.

        Schema:
        {
          "report_info": { benchmark, hostname, generated_at, version, request },
          "summary": { counts, compliance_score, grade, status, section_scores },
          "sections": [ { id, title, results: [...] } ],
          "results": [ every result record in id order ]
        }

        Args:
            report_data: Report data

        Returns:
            Dictionary for JSON serialization
        """
        summary = report_data.summary
        report = {
            "report_info": {
                "benchmark": report_data.benchmark,
                "hostname": report_data.hostname,
                "generated_at": report_data.generated_at.isoformat(),
                "version": __version__,
                "request": report_data.request,
            },
            "summary": summary.to_dict(),
            "sections": self._build_sections(report_data),
            "results": [record.to_dict() for record in report_data.records],
        }
        report["summary"]["summary_line"] = summary.summary_line

        if self.include_metadata:
            report["metadata"] = report_data.metadata

        return report

    def _build_sections(self, report_data: ReportData) -> List[Dict[str, Any]]:
        """List section banners with the ids of the results directly under them.

        A result belongs to its deepest enclosing section, so "1.9" sits
        under "1" when there is no "1.9" banner.
        """
        sections = {
            section.id: {"id": section.id, "title": section.title, "results": []}
            for section in sort_by_id(report_data.sections)
        }
        for record in report_data.records:
            parents = [sid for sid in sections if is_ancestor(sid, record.id)]
            if parents:
                deepest = max(parents, key=lambda sid: len(parse_id(sid)))
                sections[deepest]["results"].append(record.id)
        return list(sections.values())
