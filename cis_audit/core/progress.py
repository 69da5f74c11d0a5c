"""Progress Module - Run phase, started/finished counters and the observer loop."""

import asyncio
import logging
import threading
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, Optional, Set

from .exceptions import ProgressError

logger = logging.getLogger(__name__)


class RunPhase(Enum):
    """Lifecycle of a run. Transitions only move forward."""
    LOADING = "loading"
    RUNNING = "running"
    DRAINING = "draining"
    FINISHED = "finished"

    @property
    def order(self) -> int:
        """Get position of the phase in the lifecycle."""
        orders = {
            RunPhase.LOADING: 0,
            RunPhase.RUNNING: 1,
            RunPhase.DRAINING: 2,
            RunPhase.FINISHED: 3,
        }
        return orders[self]

    @property
    def submission_complete(self) -> bool:
        """No further checks will be started."""
        return self.order >= RunPhase.DRAINING.order


@dataclass(frozen=True)
class ProgressSnapshot:
    """Point-in-time copy of the tracker state."""
    started: int
    finished: int
    phase: RunPhase
    elapsed_seconds: float

    @property
    def running(self) -> int:
        """Get number of checks currently in flight."""
        return self.started - self.finished

    @property
    def done(self) -> bool:
        """Every submitted check has finished and nothing more will start."""
        return self.phase.submission_complete and self.finished == self.started

    @property
    def elapsed_clock(self) -> str:
        """Elapsed time as HH:MM:SS."""
        total = int(self.elapsed_seconds)
        hours, remainder = divmod(total, 3600)
        minutes, seconds = divmod(remainder, 60)
        return f"{hours:02d}:{minutes:02d}:{seconds:02d}"


class ProgressTracker:
    """Thread-safe started/finished counters shared by all checks.

    ``finished <= started`` holds at every instant and both counters only
    ever increase.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._lock = threading.Lock()
        self._clock = clock
        self._started = 0
        self._finished = 0
        self._phase = RunPhase.LOADING
        self._running: Dict[str, float] = {}
        self._completed: Set[str] = set()
        self._created_at = clock()

    def on_start(self, check_id: str) -> float:
        """Record that a check has begun.

        Args:
            check_id: Id of the check

        Returns:
            Monotonic start time
        """
        now = self._clock()
        with self._lock:
            if check_id in self._running:
                raise ProgressError(f"Check {check_id} was started twice")
            self._running[check_id] = now
            self._started += 1
        logger.debug("Test %s started", check_id)
        return now

    def on_finish(self, check_id: str) -> int:
        """Record that a check has ended.

        Args:
            check_id: Id of the check

        Returns:
            Elapsed wall-clock milliseconds since on_start

        Raises:
            ProgressError: If the check was never started
        """
        now = self._clock()
        with self._lock:
            started_at = self._running.pop(check_id, None)
            if started_at is None:
                raise ProgressError(f"Check {check_id} finished without being started")
            self._finished += 1
            self._completed.add(check_id)
        duration_ms = max(0, int((now - started_at) * 1000))
        logger.debug("Test %s finished after %sms", check_id, duration_ms)
        return duration_ms

    def is_running(self, check_id: str) -> bool:
        """Check whether on_start was called without a matching on_finish."""
        with self._lock:
            return check_id in self._running

    def settle(self, check_id: str) -> int:
        """Balance the counters for a check whose procedure failed.

        Finishes a check left running, or counts a check that died before
        it could start as both started and finished. A check that already
        finished is left alone.

        Returns:
            Elapsed milliseconds, 0 if the check was not running
        """
        with self._lock:
            if check_id in self._completed:
                return 0
            if check_id not in self._running:
                self._started += 1
                self._finished += 1
                self._completed.add(check_id)
                return 0
        return self.on_finish(check_id)

    def set_phase(self, phase: RunPhase) -> None:
        """Advance the run phase.

        Raises:
            ProgressError: If the transition would move backwards
        """
        with self._lock:
            if phase.order < self._phase.order:
                raise ProgressError(
                    f"Cannot move run phase from {self._phase.value} back to {phase.value}"
                )
            self._phase = phase
        logger.debug("Run phase is now %s", phase.value)

    @property
    def phase(self) -> RunPhase:
        with self._lock:
            return self._phase

    def snapshot(self) -> ProgressSnapshot:
        """Take a consistent copy of the counters and phase."""
        now = self._clock()
        with self._lock:
            return ProgressSnapshot(
                started=self._started,
                finished=self._finished,
                phase=self._phase,
                elapsed_seconds=now - self._created_at,
            )


class ProgressObserver:
    """Polls a tracker and hands snapshots to a render callback.

    The observer never blocks checks: it only copies counters under the
    tracker lock and renders outside it.
    """

    def __init__(
        self,
        tracker: ProgressTracker,
        render: Callable[[ProgressSnapshot], None],
        interval: float = 0.1,
    ):
        """Initialize the observer.

        Args:
            tracker: Tracker to poll
            render: Callback invoked with each snapshot, and once more at the end
            interval: Seconds between polls
        """
        self.tracker = tracker
        self.render = render
        self.interval = interval
        self._task: Optional[asyncio.Task] = None

    async def watch(self) -> ProgressSnapshot:
        """Poll until the run is done, then render a final snapshot."""
        while True:
            snapshot = self.tracker.snapshot()
            if snapshot.done:
                break
            self.render(snapshot)
            await asyncio.sleep(self.interval)

        final = self.tracker.snapshot()
        self.render(final)
        return final

    def start(self) -> asyncio.Task:
        """Start watching in the background of the running event loop."""
        self._task = asyncio.ensure_future(self.watch())
        return self._task

    async def stop(self) -> Optional[ProgressSnapshot]:
        """Wait for the observer to render its final snapshot."""
        if self._task is None:
            return None
        return await self._task

    def cancel(self) -> None:
        """Abandon the observer without a final render."""
        if self._task is not None and not self._task.done():
            self._task.cancel()
