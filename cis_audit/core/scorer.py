"""Scorer Module - Summarizes result records into counts and a compliance score."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Iterable

from .check import Outcome, ResultRecord
from .config import DEFAULT_THRESHOLD
from .identifiers import id_sort_key, parse_id


def _grade(score: float) -> str:
    if score >= 90:
        return "A"
    elif score >= 80:
        return "B"
    elif score >= 70:
        return "C"
    elif score >= 60:
        return "D"
    else:
        return "F"


@dataclass
class SectionScore:
    """Counts for one top-level benchmark section."""
    section: str
    passed: int = 0
    failed: int = 0
    errored: int = 0
    skipped: int = 0

    @property
    def ran(self) -> int:
        return self.passed + self.failed + self.errored

    @property
    def score(self) -> float:
        if self.ran == 0:
            return 100.0
        return self.passed / self.ran * 100

    @property
    def grade(self) -> str:
        return _grade(self.score)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "section": self.section,
            "score": round(self.score, 2),
            "grade": self.grade,
            "passed": self.passed,
            "failed": self.failed,
            "errored": self.errored,
            "skipped": self.skipped,
        }


@dataclass
class Summary:
    """Totals for a finished run."""
    total: int = 0
    passed: int = 0
    failed: int = 0
    errored: int = 0
    skipped: int = 0
    duration_seconds: float = 0.0
    threshold: float = DEFAULT_THRESHOLD
    block_on_error: bool = False
    section_scores: Dict[str, SectionScore] = field(default_factory=dict)
    calculated_at: datetime = field(default_factory=datetime.now)

    @property
    def ran(self) -> int:
        """Get number of checks that were not skipped."""
        return self.total - self.skipped

    @property
    def compliance_score(self) -> float:
        """Percentage of non-skipped checks that passed."""
        if self.ran == 0:
            return 100.0
        return self.passed / self.ran * 100

    @property
    def grade(self) -> str:
        """Get letter grade for the compliance score."""
        return _grade(self.compliance_score)

    @property
    def is_compliant(self) -> bool:
        if self.compliance_score < self.threshold:
            return False
        if self.block_on_error and self.errored > 0:
            return False
        return True

    @property
    def status(self) -> str:
        """Get status text for the run."""
        if self.is_compliant:
            if self.compliance_score >= 90:
                return "Compliant - Excellent"
            elif self.compliance_score >= 80:
                return "Compliant - Good"
            else:
                return "Compliant - Acceptable"
        if self.compliance_score < self.threshold:
            return f"Not Compliant - Score Below {self.threshold}"
        return f"Not Compliant - {self.errored} Errors"

    @property
    def summary_line(self) -> str:
        """One-line run summary, e.g. "Passed 3 of 5 tests in 2 seconds (1 Skipped, 0 Errors)"."""
        return (
            f"Passed {self.passed} of {self.total} tests in {int(self.duration_seconds)} seconds "
            f"({self.skipped} Skipped, {self.errored} Errors)"
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "total": self.total,
            "ran": self.ran,
            "passed": self.passed,
            "failed": self.failed,
            "errored": self.errored,
            "skipped": self.skipped,
            "duration_seconds": round(self.duration_seconds, 3),
            "compliance_score": round(self.compliance_score, 2),
            "grade": self.grade,
            "status": self.status,
            "is_compliant": self.is_compliant,
            "threshold": self.threshold,
            "section_scores": {k: v.to_dict() for k, v in self.section_scores.items()},
            "calculated_at": self.calculated_at.isoformat(),
        }


class Scorer:
    """Calculates compliance summaries from result records."""

    def __init__(self, threshold: float = DEFAULT_THRESHOLD, block_on_error: bool = False):
        """Initialize the scorer.

        Args:
            threshold: Minimum compliance score for a passing run
            block_on_error: Treat any Error result as non-compliant
        """
        self.threshold = threshold
        self.block_on_error = block_on_error

    def summarize(self, records: Iterable[ResultRecord], elapsed_seconds: float) -> Summary:
        """Count outcomes and compute the compliance score.

        Args:
            records: Results of every executed check
            elapsed_seconds: Wall-clock duration of the run

        Returns:
            Summary of the run
        """
        summary = Summary(
            duration_seconds=elapsed_seconds,
            threshold=self.threshold,
            block_on_error=self.block_on_error,
        )

        for record in records:
            section_id = parse_id(record.id)[0]
            section = summary.section_scores.setdefault(section_id, SectionScore(section_id))
            summary.total += 1

            if record.skipped:
                summary.skipped += 1
                section.skipped += 1
            elif record.outcome == Outcome.PASS:
                summary.passed += 1
                section.passed += 1
            elif record.outcome == Outcome.ERROR:
                summary.errored += 1
                section.errored += 1
            else:
                summary.failed += 1
                section.failed += 1

        summary.section_scores = dict(
            sorted(summary.section_scores.items(), key=lambda item: id_sort_key(item[0]))
        )
        return summary
