"""Base Reporter Module - Shared report data and the reporter interface."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from ..core.auditor import AuditReport
from ..core.check import Outcome, ResultRecord, Section
from ..core.identifiers import id_sort_key
from ..core.scorer import Summary


@dataclass
class ReportData:
    """Data structure containing all information for a report."""
    benchmark: str
    hostname: str
    sections: List[Section]
    records: List[ResultRecord]
    summary: Summary
    request: Dict[str, Any] = field(default_factory=dict)
    generated_at: datetime = field(default_factory=datetime.now)
    metadata: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_report(cls, report: AuditReport, metadata: Optional[Dict[str, Any]] = None) -> "ReportData":
        """Build report data from a finished audit."""
        return cls(
            benchmark=report.benchmark,
            hostname=report.hostname,
            sections=list(report.sections),
            records=list(report.records),
            summary=report.summary,
            request=report.request.to_dict(),
            generated_at=report.completed_at,
            metadata=metadata or {"execution": report.execution.to_dict()},
        )

    def rows(self) -> List[Union[Section, ResultRecord]]:
        """Section banners and results merged in id order."""
        merged: List[Union[Section, ResultRecord]] = [*self.sections, *self.records]
        return sorted(
            merged,
            key=lambda row: (id_sort_key(row.id), 0 if isinstance(row, Section) else 1),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "benchmark": self.benchmark,
            "hostname": self.hostname,
            "sections": [s.to_dict() for s in self.sections],
            "results": [r.to_dict() for r in self.records],
            "summary": self.summary.to_dict(),
            "request": self.request,
            "generated_at": self.generated_at.isoformat(),
            "metadata": self.metadata,
        }

    @property
    def failed_records(self) -> List[ResultRecord]:
        return [r for r in self.records if not r.skipped and r.outcome == Outcome.FAIL]


class BaseReporter(ABC):
    """Abstract base class for report generators."""

    def __init__(self, output_dir: Optional[str] = None):
        """Initialize the reporter.

        Args:
            output_dir: Directory to save reports (default: current directory)
        """
        self.output_dir = Path(output_dir) if output_dir else Path.cwd()

    @property
    @abstractmethod
    def format(self) -> str:
        """Report format identifier (e.g., 'json', 'csv', 'pdf')."""
        pass

    @property
    @abstractmethod
    def extension(self) -> str:
        """File extension for the report format."""
        pass

    @abstractmethod
    def generate(self, report_data: ReportData) -> bytes:
        """Generate the report content.

        Args:
            report_data: Data to include in the report

        Returns:
            Report content as bytes
        """
        pass

    def generate_filename(
        self,
        hostname: str,
        timestamp: Optional[datetime] = None,
    ) -> str:
        """Generate a filename for the report.

        Args:
            hostname: Name of the audited host
            timestamp: Timestamp for the report (default: now)

        Returns:
            Generated filename
        """
        ts = timestamp or datetime.now()
        ts_str = ts.strftime("%Y%m%d_%H%M%S")
        safe_name = "".join(c if c.isalnum() else "_" for c in hostname) or "host"
        return f"cis_audit_{safe_name}_{ts_str}.{self.extension}"

    def save(
        self,
        report_data: ReportData,
        filename: Optional[str] = None,
    ) -> str:
        """Generate and save the report to a file.

        Args:
            report_data: Data to include in the report
            filename: Custom filename (default: auto-generated)

        Returns:
            Path to the saved report
        """
        content = self.generate(report_data)

        if not filename:
            filename = self.generate_filename(
                report_data.hostname,
                report_data.generated_at,
            )

        self.output_dir.mkdir(parents=True, exist_ok=True)
        output_path = self.output_dir / filename

        with open(output_path, "wb") as f:
            f.write(content)

        return str(output_path)
