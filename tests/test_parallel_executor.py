"""Tests for the parallel executor and the auditor."""

import asyncio
import pytest
import random
import shutil
from pathlib import Path

from cis_audit.core.aggregator import ResultAggregator
from cis_audit.core.auditor import Auditor
from cis_audit.core.check import CheckContext, Finding, Outcome, Section
from cis_audit.core.config import RunRequest
from cis_audit.core.exceptions import InfrastructureError
from cis_audit.core.host import HostProbe
from cis_audit.core.parallel_executor import ParallelExecutor
from cis_audit.core.progress import ProgressTracker, RunPhase
from cis_audit.core.registry import CheckRegistry
from cis_audit.core.scorer import Scorer

from fakes import BrokenRunCheck, CommandCheck, ConcurrencyCheck, RaisingCheck, StaticCheck, make_spec


def execute(specs, request, samples=None):
    """Submit every spec to a fresh executor and drain it.

    When ``samples`` is a list, tracker snapshots are appended to it
    every millisecond while the run is in progress.
    """
    async def go():
        tracker = ProgressTracker()
        aggregator = ResultAggregator()
        context = CheckContext(host=HostProbe(), tracker=tracker, request=request)
        executor = ParallelExecutor(request, context, aggregator)

        async def sample():
            while True:
                samples.append(tracker.snapshot())
                await asyncio.sleep(0.001)

        sampler = asyncio.ensure_future(sample()) if samples is not None else None
        try:
            result = await executor.execute(specs)
        finally:
            if sampler:
                sampler.cancel()
        if samples is not None:
            samples.append(tracker.snapshot())
        return executor, tracker, aggregator, result

    return asyncio.run(go())


def running_commands(marker):
    """Pids of live processes whose argument list contains ``marker``."""
    pids = []
    for cmdline in Path("/proc").glob("[0-9]*/cmdline"):
        try:
            argv = cmdline.read_bytes().split(b"\0")
        except OSError:
            continue
        if marker.encode() in argv:
            pids.append(cmdline.parent.name)
    return pids


class TestParallelExecutor:
    """Tests for ParallelExecutor class."""

    def test_every_check_recorded_once(self):
        """Test each accepted check runs and is recorded exactly once."""
        rng = random.Random(1804)
        procedures = [StaticCheck(delay=rng.uniform(0, 0.01)) for _ in range(40)]
        specs = [make_spec(f"1.{i + 1}", procedure) for i, procedure in enumerate(procedures)]
        samples = []

        _, tracker, aggregator, result = execute(specs, RunRequest(max_concurrency=4), samples)

        records = aggregator.all()
        assert sorted(r.id for r in records) == sorted(s.id for s in specs)
        assert len(records) == 40
        assert all(p.calls == 1 for p in procedures)
        assert all(r.outcome == Outcome.PASS for r in records)
        assert result.submitted == result.accepted == 40

        snapshot = tracker.snapshot()
        assert snapshot.started == snapshot.finished == 40
        assert snapshot.phase == RunPhase.FINISHED

    def test_counters_during_run(self):
        """Test counters and phase only move forward while checks run."""
        rng = random.Random(2018)
        specs = [make_spec(f"3.{i}", StaticCheck(delay=rng.uniform(0, 0.01))) for i in range(1, 31)]
        samples = []

        execute(specs, RunRequest(max_concurrency=5), samples)

        assert len(samples) > 2
        assert any(0 < s.running for s in samples)
        for earlier, later in zip(samples, samples[1:]):
            assert earlier.started <= later.started
            assert earlier.finished <= later.finished
            assert earlier.phase.order <= later.phase.order
        for sample in samples:
            assert 0 <= sample.running <= 5
        assert samples[-1].done

    def test_concurrency_bound(self):
        """Test no more than max_concurrency checks run at once."""
        gauge = {"current": 0, "peak": 0}
        specs = [make_spec(f"2.{i}", ConcurrencyCheck(gauge)) for i in range(1, 13)]

        executor, _, aggregator, result = execute(specs, RunRequest(max_concurrency=3))

        assert 2 <= gauge["peak"] <= 3
        assert result.peak_in_flight <= 3
        assert executor.in_flight == 0
        assert len(aggregator.all()) == 12

    def test_single_slot(self):
        """Test max_concurrency=1 runs one check at a time."""
        gauge = {"current": 0, "peak": 0}
        specs = [make_spec(f"2.{i}", ConcurrencyCheck(gauge, delay=0.005)) for i in range(1, 6)]

        _, _, _, result = execute(specs, RunRequest(max_concurrency=1))

        assert gauge["peak"] == 1
        assert result.peak_in_flight == 1

    def test_serial_mode_keeps_order(self):
        """Test verbose mode runs checks inline in submission order."""
        order = []
        specs = [
            make_spec(check_id, StaticCheck(delay=delay, order=order, name=check_id))
            for check_id, delay in (("1.1", 0.03), ("1.2", 0.0), ("1.3", 0.01))
        ]

        _, _, _, result = execute(specs, RunRequest(verbose=True, max_concurrency=8))

        assert order == ["1.1", "1.2", "1.3"]
        assert result.peak_in_flight == 1

    def test_fail_closed(self):
        """Test a procedure that never says Pass is recorded as Fail."""
        specs = [
            make_spec("1.1", StaticCheck(None)),
            make_spec("1.2", StaticCheck("yes")),
            make_spec("1.3", StaticCheck(Finding(False, "bad"))),
        ]

        _, _, aggregator, _ = execute(specs, RunRequest())

        assert {r.outcome for r in aggregator.all()} == {Outcome.FAIL}

    def test_exception_is_isolated(self):
        """Test a raising check becomes Error and the others still run."""
        specs = [
            make_spec("1.1", StaticCheck()),
            make_spec("1.2", RaisingCheck(RuntimeError("boom"))),
            make_spec("1.3", StaticCheck(delay=0.01)),
        ]

        _, tracker, aggregator, result = execute(specs, RunRequest(max_concurrency=2))

        outcomes = {r.id: r for r in aggregator.all()}
        assert outcomes["1.1"].outcome == Outcome.PASS
        assert outcomes["1.3"].outcome == Outcome.PASS
        assert outcomes["1.2"].outcome == Outcome.ERROR
        assert outcomes["1.2"].message == "RuntimeError: boom"
        assert result.errored == 1
        assert result.errors == {"1.2": "RuntimeError: boom"}

        snapshot = tracker.snapshot()
        assert snapshot.started == snapshot.finished == 3

    def test_timeout(self):
        """Test a check exceeding the timeout is recorded as Error."""
        specs = [make_spec("1.1", StaticCheck(delay=5)), make_spec("1.2", StaticCheck())]

        _, tracker, aggregator, _ = execute(specs, RunRequest(check_timeout=0.05))

        outcomes = {r.id: r for r in aggregator.all()}
        assert outcomes["1.1"].outcome == Outcome.ERROR
        assert "timed out" in outcomes["1.1"].message
        assert outcomes["1.2"].outcome == Outcome.PASS

        snapshot = tracker.snapshot()
        assert snapshot.started == snapshot.finished == 2

    def test_missing_record(self):
        """Test a procedure that returns no record is recorded as Error."""
        _, tracker, aggregator, _ = execute([make_spec("1.1", BrokenRunCheck())], RunRequest())

        (only,) = aggregator.all()
        assert only.outcome == Outcome.ERROR
        assert "NoneType" in only.message
        snapshot = tracker.snapshot()
        assert snapshot.started == snapshot.finished == 1

    def test_infrastructure_error_aborts(self):
        """Test orchestration failures are not turned into Error records."""
        specs = [make_spec("1.1", RaisingCheck(InfrastructureError("lost result")))]
        with pytest.raises(InfrastructureError):
            execute(specs, RunRequest())

    def test_rejected_checks(self):
        """Test filtered checks are counted but never run."""
        level_two = StaticCheck()
        specs = [make_spec("1.1"), make_spec("1.2", level_two, level=2)]

        _, _, aggregator, result = execute(specs, RunRequest(level=1))

        assert [r.id for r in aggregator.all()] == ["1.1"]
        assert level_two.calls == 0
        assert result.submitted == 2
        assert result.accepted == 1
        assert result.rejected == 1

    def test_submit_after_drain(self):
        """Test submitting after the run was drained is rejected."""
        async def go():
            request = RunRequest()
            context = CheckContext(host=HostProbe(), tracker=ProgressTracker(), request=request)
            executor = ParallelExecutor(request, context, ResultAggregator())
            await executor.drain()
            await executor.submit(make_spec("1.1"))

        with pytest.raises(InfrastructureError):
            asyncio.run(go())


@pytest.mark.skipif(
    shutil.which("sleep") is None or not Path("/proc").is_dir(),
    reason="needs a sleep binary and /proc",
)
class TestCommandCleanup:
    """Tests that host commands do not outlive the check that started them."""

    def test_check_timeout_kills_command(self):
        """Test a timed out check leaves no child process behind."""
        specs = [make_spec("3.1", CommandCheck(["sleep", "7.31"]))]

        _, tracker, aggregator, _ = execute(specs, RunRequest(check_timeout=0.2))

        (only,) = aggregator.all()
        assert only.outcome == Outcome.ERROR
        assert running_commands("7.31") == []
        snapshot = tracker.snapshot()
        assert snapshot.started == snapshot.finished == 1

    def test_command_timeout_kills_command(self):
        """Test a command exceeding the probe timeout is killed and reaped."""
        host = HostProbe(command_timeout=0.2)

        result = asyncio.run(host.run(["sleep", "7.32"]))

        assert result.returncode == -1
        assert "timed out" in result.stderr
        assert running_commands("7.32") == []

    def test_command_output(self):
        """Test a finished command reports its output and status."""
        result = asyncio.run(HostProbe().run(["sleep", "0"]))
        assert result.returncode == 0
        assert result.ok


def five_check_registry():
    return CheckRegistry("Test Benchmark").register_all([
        Section("1", "One"),
        make_spec("1.1"),
        make_spec("1.1.1"),
        make_spec("1.1.2"),
        Section("2", "Two"),
        make_spec("2.1"),
        make_spec("2.2", StaticCheck(Finding(False, "not configured"))),
    ])


class TestAuditor:
    """Tests for Auditor class."""

    def test_include_exclude_scenario(self):
        """Test include 1.1 with exclude 1.1.2 runs exactly 1.1 and 1.1.1."""
        auditor = Auditor(five_check_registry(), host=HostProbe())
        request = RunRequest(include={"1.1"}, exclude={"1.1.2"}, max_concurrency=2)

        report = auditor.run_sync(request)

        assert [r.id for r in report.records] == ["1.1", "1.1.1"]
        assert [s.id for s in report.sections] == ["1"]
        assert report.execution.submitted == 5
        assert report.execution.accepted == 2
        assert report.execution.rejected == 3
        assert report.summary.total == 2
        assert report.summary.compliance_score == 100.0

    def test_full_run(self):
        """Test a full run scores every check."""
        report = Auditor(five_check_registry(), host=HostProbe(), scorer=Scorer(threshold=90)).run_sync(RunRequest())

        assert report.benchmark == "Test Benchmark"
        assert report.summary.passed == 4
        assert report.summary.failed == 1
        assert report.summary.compliance_score == 80.0
        assert not report.summary.is_compliant
        assert report.completed_at >= report.started_at

    def test_rows_interleave_sections(self):
        """Test rows put each section banner before its checks."""
        report = Auditor(five_check_registry(), host=HostProbe()).run_sync(RunRequest())
        assert [row.id for row in report.rows()] == ["1", "1.1", "1.1.1", "1.1.2", "2", "2.1", "2.2"]

    def test_progress_callback(self):
        """Test the progress callback ends with a finished snapshot."""
        snapshots = []
        Auditor(five_check_registry(), host=HostProbe()).run_sync(RunRequest(), snapshots.append)

        assert snapshots
        assert snapshots[-1].done
        assert snapshots[-1].finished == 5
        assert all(s.finished <= s.started for s in snapshots)

    def test_no_progress_in_verbose_mode(self):
        """Test verbose runs do not render progress."""
        snapshots = []
        Auditor(five_check_registry(), host=HostProbe()).run_sync(RunRequest(verbose=True), snapshots.append)
        assert snapshots == []

    def test_to_dict(self):
        """Test report serialization."""
        data = Auditor(five_check_registry(), host=HostProbe()).run_sync(RunRequest(level=1)).to_dict()

        assert data["benchmark"] == "Test Benchmark"
        assert len(data["results"]) == 5
        assert data["summary"]["failed"] == 1
        assert data["execution"]["accepted"] == 5
        assert data["request"]["level"] == 1
