"""Parallel Executor Module - Runs accepted checks concurrently with a bounded pool."""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

from .aggregator import ResultAggregator
from .check import CheckContext, CheckSpec, Outcome, ResultRecord
from .config import RunRequest
from .exceptions import InfrastructureError
from .filter import IdentifierFilter
from .progress import RunPhase

logger = logging.getLogger(__name__)


@dataclass
class ExecutionResult:
    """Bookkeeping for one pass over the catalog."""
    submitted: int = 0
    accepted: int = 0
    rejected: int = 0
    errored: int = 0
    peak_in_flight: int = 0
    total_duration_ms: int = 0
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    errors: Dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "submitted": self.submitted,
            "accepted": self.accepted,
            "rejected": self.rejected,
            "errored": self.errored,
            "peak_in_flight": self.peak_in_flight,
            "total_duration_ms": self.total_duration_ms,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "errors": self.errors,
        }


class ParallelExecutor:
    """Submits checks one at a time and runs the accepted ones in parallel.

    At most ``request.max_concurrency`` checks are in flight. When the pool
    is full, submit() waits for a slot, so only the submitting flow blocks.
    In verbose or trace mode every check is awaited inline instead.
    """

    def __init__(
        self,
        request: RunRequest,
        context: CheckContext,
        aggregator: ResultAggregator,
        check_filter: Optional[IdentifierFilter] = None,
    ):
        """Initialize the parallel executor.

        Args:
            request: Run options (filter, concurrency, timeout)
            context: Host probe and progress tracker shared by all checks
            aggregator: Destination for result records
            check_filter: Filter deciding which checks run
        """
        self.request = request
        self.context = context
        self.tracker = context.tracker
        self.aggregator = aggregator
        self.filter = check_filter or IdentifierFilter(request)
        self.result = ExecutionResult()

        self._slots: Optional[asyncio.Semaphore] = None
        self._tasks: List[asyncio.Task] = []
        self._in_flight = 0
        self._drained = False

    @property
    def in_flight(self) -> int:
        """Get number of checks currently executing."""
        return self._in_flight

    @property
    def peak_in_flight(self) -> int:
        """Get highest number of checks that ran at the same time."""
        return self.result.peak_in_flight

    async def submit(self, spec: CheckSpec) -> bool:
        """Offer a catalog entry for execution.

        Args:
            spec: Check to run if the filter accepts it

        Returns:
            True if the check was accepted and launched
        """
        if self._drained:
            raise InfrastructureError(f"Check {spec.id} submitted after the run was drained")
        if self.result.started_at is None:
            self.result.started_at = datetime.now()

        self.result.submitted += 1
        if not self.filter.should_run(spec.id, spec.level, self.request):
            self.result.rejected += 1
            return False

        self.result.accepted += 1
        if self.tracker.phase == RunPhase.LOADING:
            self.tracker.set_phase(RunPhase.RUNNING)

        if self.request.serial:
            await self._execute(spec)
            return True

        slots = self._get_slots()
        if slots.locked():
            logger.debug(
                "There were already %s tests running while attempting to start test %s",
                self.request.max_concurrency, spec.id,
            )
        await slots.acquire()
        logger.debug(
            "There were %s/%s tests running when starting test %s",
            self._in_flight, self.request.max_concurrency, spec.id,
        )
        self._tasks.append(asyncio.ensure_future(self._execute_in_slot(spec, slots)))
        return True

    async def drain(self) -> ExecutionResult:
        """Wait for every launched check, then seal the results.

        Returns:
            ExecutionResult for the run

        Raises:
            InfrastructureError: If a check broke the orchestration invariants
        """
        self.tracker.set_phase(RunPhase.DRAINING)
        outcomes = await asyncio.gather(*self._tasks, return_exceptions=True)
        self._drained = True

        for outcome in outcomes:
            if isinstance(outcome, BaseException):
                raise outcome

        self.aggregator.seal()
        self.tracker.set_phase(RunPhase.FINISHED)
        logger.debug("All tests have completed")

        completed_at = datetime.now()
        started_at = self.result.started_at or completed_at
        self.result.started_at = started_at
        self.result.completed_at = completed_at
        self.result.total_duration_ms = int((completed_at - started_at).total_seconds() * 1000)
        return self.result

    async def execute(self, specs: Iterable[CheckSpec]) -> ExecutionResult:
        """Submit every spec in order, then drain.

        Args:
            specs: Catalog entries in declaration order

        Returns:
            ExecutionResult for the run
        """
        for spec in specs:
            await self.submit(spec)
        return await self.drain()

    def _get_slots(self) -> asyncio.Semaphore:
        # Created lazily so it belongs to the running event loop
        if self._slots is None:
            self._slots = asyncio.Semaphore(self.request.max_concurrency)
        return self._slots

    async def _execute_in_slot(self, spec: CheckSpec, slots: asyncio.Semaphore) -> None:
        try:
            await self._execute(spec)
        finally:
            slots.release()

    async def _execute(self, spec: CheckSpec) -> None:
        self._in_flight += 1
        self.result.peak_in_flight = max(self.result.peak_in_flight, self._in_flight)
        try:
            record = await self._invoke(spec)
        finally:
            self._in_flight -= 1
        self.aggregator.append(record)

    async def _invoke(self, spec: CheckSpec) -> ResultRecord:
        """Run one procedure, turning any failure into an Error record."""
        started = time.monotonic()
        timeout = self.request.check_timeout

        try:
            if timeout:
                record = await asyncio.wait_for(spec.procedure.run(spec, self.context), timeout=timeout)
            else:
                record = await spec.procedure.run(spec, self.context)
            if isinstance(record, ResultRecord) and record.id == spec.id:
                return record
            message = f"Procedure returned {type(record).__name__} instead of a result for {spec.id}"

        except InfrastructureError:
            raise

        except asyncio.TimeoutError:
            message = f"Check timed out after {timeout}s"

        except Exception as e:
            message = f"{type(e).__name__}: {e}"
            logger.debug("Test %s raised", spec.id, exc_info=True)

        self.tracker.settle(spec.id)
        self.result.errored += 1
        self.result.errors[spec.id] = message
        logger.warning("Test %s errored: %s", spec.id, message)

        return ResultRecord(
            id=spec.id,
            description=spec.description,
            scoring_class=spec.scoring_class,
            level=spec.level,
            outcome=Outcome.ERROR,
            duration_ms=int((time.monotonic() - started) * 1000),
            message=message,
        )
