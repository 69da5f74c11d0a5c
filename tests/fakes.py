"""Test doubles shared by the test modules."""

import asyncio
import os
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from cis_audit.core.check import BaseCheck, CheckContext, CheckSpec, Finding, ScoringClass
from cis_audit.core.host import COMMAND_NOT_FOUND, CommandResult, HostProbe
from cis_audit.core.progress import ProgressTracker


class FakeHost(HostProbe):
    """HostProbe rooted at a temporary directory with canned command output.

    Commands that were not registered behave like a missing binary.
    """

    def __init__(self, root, tools: Optional[Dict[str, str]] = None):
        super().__init__(root=root)
        self.commands: Dict[Tuple[str, ...], CommandResult] = {}
        self.tools = dict(tools or {})
        self.calls: List[Tuple[str, ...]] = []

    def on(self, *command: str, stdout: str = "", returncode: int = 0, stderr: str = "") -> "FakeHost":
        self.commands[tuple(command)] = CommandResult(returncode, stdout, stderr)
        return self

    def install(self, *packages: str) -> "FakeHost":
        for package in packages:
            self.on("dpkg-query", "-W", "-f=${Status}", package, stdout="install ok installed")
        return self

    def service(self, unit: str, state: str) -> "FakeHost":
        return self.on("systemctl", "is-enabled", unit, stdout=state + "\n")

    def _make_parents(self, path: Path) -> None:
        # Explicit modes so results do not depend on the umask
        missing = []
        parent = path.parent
        while not parent.exists():
            missing.append(parent)
            parent = parent.parent
        for directory in reversed(missing):
            directory.mkdir()
            os.chmod(directory, 0o755)

    def write(self, host_path: str, content: str = "", mode: int = 0o644) -> Path:
        path = self.path(host_path)
        self._make_parents(path)
        path.write_text(content)
        os.chmod(path, mode)
        return path

    def mkdir(self, host_path: str, mode: int = 0o755) -> Path:
        path = self.path(host_path)
        self._make_parents(path)
        path.mkdir(exist_ok=True)
        os.chmod(path, mode)
        return path

    async def run(self, command):
        self.calls.append(tuple(command))
        return self.commands.get(
            tuple(command),
            CommandResult(COMMAND_NOT_FOUND, "", f"{command[0]}: not found"),
        )

    def which(self, tool: str) -> Optional[str]:
        return self.tools.get(tool)


class StaticCheck(BaseCheck):
    """Returns a fixed inspection result, optionally after a delay."""

    def __init__(self, result=True, delay: float = 0.0, order: Optional[List[str]] = None, name: str = ""):
        self.result = result
        self.delay = delay
        self.order = order
        self.name = name
        self.calls = 0

    async def inspect(self, host):
        self.calls += 1
        if self.order is not None:
            self.order.append(self.name)
        if self.delay:
            await asyncio.sleep(self.delay)
        return self.result


class RaisingCheck(BaseCheck):
    def __init__(self, error: BaseException):
        self.error = error

    async def inspect(self, host):
        raise self.error


class CommandCheck(BaseCheck):
    """Passes when a real host command exits 0."""

    def __init__(self, command: List[str]):
        self.command = command

    async def inspect(self, host):
        result = await host.run(self.command)
        return Finding(result.ok, f"exit status {result.returncode}")


class ConcurrencyCheck(BaseCheck):
    """Counts how many instances sharing ``gauge`` are inside inspect() at once."""

    def __init__(self, gauge: Dict[str, int], delay: float = 0.02):
        self.gauge = gauge
        self.delay = delay

    async def inspect(self, host):
        self.gauge["current"] += 1
        self.gauge["peak"] = max(self.gauge["peak"], self.gauge["current"])
        try:
            await asyncio.sleep(self.delay)
        finally:
            self.gauge["current"] -= 1
        return Finding(True)


class BrokenRunCheck(BaseCheck):
    """Overrides run() and returns nothing instead of a record."""

    async def inspect(self, host):
        return True

    async def run(self, spec, context):
        return None


def make_spec(
    check_id: str,
    procedure: Optional[BaseCheck] = None,
    level: int = 1,
    scoring_class: ScoringClass = ScoringClass.SCORED,
) -> CheckSpec:
    procedure = procedure or StaticCheck()
    return CheckSpec(check_id, level, scoring_class, f"Check {check_id}", procedure)


def run_check(procedure: BaseCheck, host: HostProbe, check_id: str = "9.9", level: int = 1):
    """Run one procedure the way the executor does and return its record."""
    spec = make_spec(check_id, procedure, level)
    context = CheckContext(host=host, tracker=ProgressTracker())
    return asyncio.run(procedure.run(spec, context))
