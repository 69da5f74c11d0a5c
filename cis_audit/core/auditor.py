"""Auditor Module - Runs one benchmark audit end to end."""

import asyncio
import logging
import platform
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Union

from .aggregator import ResultAggregator
from .check import CheckContext, CheckSpec, ResultRecord, Section
from .config import RunRequest
from .filter import IdentifierFilter
from .host import HostProbe
from .identifiers import id_sort_key
from .parallel_executor import ExecutionResult, ParallelExecutor
from .progress import ProgressObserver, ProgressSnapshot, ProgressTracker
from .registry import CheckRegistry
from .scorer import Scorer, Summary

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[ProgressSnapshot], None]


@dataclass
class AuditReport:
    """Everything a reporter needs about a finished run."""
    benchmark: str
    request: RunRequest
    sections: List[Section]
    records: List[ResultRecord]
    summary: Summary
    execution: ExecutionResult
    started_at: datetime
    completed_at: datetime
    hostname: str = field(default_factory=platform.node)

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
            "request": self.request.to_dict(),
            "sections": [s.to_dict() for s in self.sections],
            "results": [r.to_dict() for r in self.records],
            "summary": self.summary.to_dict(),
            "execution": self.execution.to_dict(),
            "started_at": self.started_at.isoformat(),
            "completed_at": self.completed_at.isoformat(),
        }


class Auditor:
    """Drives the catalog through filter, scheduler and scorer."""

    def __init__(
        self,
        registry: CheckRegistry,
        host: Optional[HostProbe] = None,
        scorer: Optional[Scorer] = None,
    ):
        """Initialize the auditor.

        Args:
            registry: Catalog of sections and checks
            host: Host probe to audit (default: the local system)
            scorer: Scorer for the summary (default threshold when omitted)
        """
        self.registry = registry
        self.host = host
        self.scorer = scorer or Scorer()

    async def run(
        self,
        request: RunRequest,
        progress_callback: Optional[ProgressCallback] = None,
    ) -> AuditReport:
        """Run every accepted check and score the results.

        Args:
            request: Run options
            progress_callback: Called with progress snapshots while checks run.
                Ignored in verbose and trace mode.

        Returns:
            AuditReport for the run

        Raises:
            InfrastructureError: If the run could not be completed reliably
        """
        started_at = datetime.now()
        host = self.host or HostProbe(trace=request.trace)
        tracker = ProgressTracker()
        aggregator = ResultAggregator()
        check_filter = IdentifierFilter(request)
        executor = ParallelExecutor(
            request,
            CheckContext(host=host, tracker=tracker, request=request),
            aggregator,
            check_filter,
        )

        observer = None
        if progress_callback is not None and not request.serial:
            observer = ProgressObserver(tracker, progress_callback, request.progress_interval)
            observer.start()

        logger.info("Running %s with %s", self.registry.benchmark, request.to_dict())
        sections: List[Section] = []
        try:
            for entry in self.registry.entries():
                if isinstance(entry, CheckSpec):
                    await executor.submit(entry)
                elif check_filter.should_run(entry.id, None, request):
                    sections.append(entry)
            execution = await executor.drain()
        except BaseException:
            if observer is not None:
                observer.cancel()
            raise

        if observer is not None:
            await observer.stop()

        completed_at = datetime.now()
        records = aggregator.sorted()
        summary = self.scorer.summarize(records, (completed_at - started_at).total_seconds())
        logger.info(summary.summary_line)

        return AuditReport(
            benchmark=self.registry.benchmark,
            request=request,
            sections=sections,
            records=records,
            summary=summary,
            execution=execution,
            started_at=started_at,
            completed_at=completed_at,
        )

    def run_sync(
        self,
        request: RunRequest,
        progress_callback: Optional[ProgressCallback] = None,
    ) -> AuditReport:
        """Run the audit on a fresh event loop."""
        return asyncio.run(self.run(request, progress_callback))
