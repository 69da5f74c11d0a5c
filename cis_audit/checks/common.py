"""Common check procedures shared across benchmark sections."""

import logging
from typing import Optional, Sequence, Tuple, Union

from ..core.check import BaseCheck, Finding
from ..core.exceptions import CheckSkipped
from ..core.host import HostProbe

logger = logging.getLogger(__name__)


def _as_tuple(value: Union[str, Sequence[str]]) -> Tuple[str, ...]:
    if isinstance(value, str):
        return (value,)
    return tuple(value)


def mode_digits(mode: int) -> Tuple[int, int, int]:
    """Split the permission bits of a mode into user, group and other digits."""
    return (mode >> 6) & 0o7, (mode >> 3) & 0o7, mode & 0o7


def format_mode(mode: int) -> str:
    return format(mode & 0o7777, "04o")


class SkipCheck(BaseCheck):
    """Benchmark item that is not audited automatically. Always Skipped."""

    def __init__(self, reason: str = "Not audited automatically"):
        self.reason = reason

    async def inspect(self, host: HostProbe) -> Finding:
        raise CheckSkipped(self.reason)


class PackageInstalledCheck(BaseCheck):
    """Pass when every named Debian package is installed."""

    tools = ("dpkg-query",)

    def __init__(self, packages: Union[str, Sequence[str]], name: Optional[str] = None):
        self.packages = _as_tuple(packages)
        self.name = name or self.packages[0]

    def describe(self) -> str:
        return f"Ensure {self.name} is installed"

    async def inspect(self, host: HostProbe) -> Finding:
        missing = [pkg for pkg in self.packages if not await host.package_installed(pkg)]
        if missing:
            return Finding(False, f"Not installed: {', '.join(missing)}")
        return Finding(True, f"Installed: {', '.join(self.packages)}")


class PackageNotInstalledCheck(BaseCheck):
    """Pass when none of the named packages (dpkg patterns allowed) is installed."""

    tools = ("dpkg-query",)

    def __init__(self, packages: Union[str, Sequence[str]], name: Optional[str] = None):
        self.packages = _as_tuple(packages)
        self.name = name or self.packages[0]

    def describe(self) -> str:
        return f"Ensure {self.name} is not installed"

    async def inspect(self, host: HostProbe) -> Finding:
        installed = [pkg for pkg in self.packages if await host.package_installed(pkg)]
        if installed:
            return Finding(False, f"Installed: {', '.join(installed)}")
        return Finding(True)


class ServiceEnabledCheck(BaseCheck):
    """Pass when a systemd unit is enabled."""

    tools = ("systemctl",)

    def __init__(self, unit: str, name: Optional[str] = None):
        self.unit = unit
        self.name = name or unit

    def describe(self) -> str:
        return f"Ensure {self.name} service is enabled"

    async def inspect(self, host: HostProbe) -> Finding:
        state = await host.service_state(self.unit)
        return Finding(state == "enabled", f"{self.unit} is {state}")


class FilePermissionsCheck(BaseCheck):
    """Pass when a file is owned by root:root and no permission digit exceeds the limit.

    The limit is given the way the benchmark writes it, e.g. "644". Each of
    the user, group and other digits is compared on its own.
    """

    def __init__(self, path: str, limit: str):
        self.path = path
        self.limit = tuple(int(c) for c in limit)
        if len(self.limit) != 3:
            raise ValueError(f"Permission limit must have three digits: {limit!r}")

    def describe(self) -> str:
        return f"Ensure permissions on {self.path} are configured"

    async def inspect(self, host: HostProbe) -> Finding:
        st = host.stat(self.path)
        if st is None:
            return Finding(False, f"{self.path} does not exist")

        problems = []
        if st.st_uid != 0 or st.st_gid != 0:
            problems.append(f"owned by {st.st_uid}:{st.st_gid}")
        digits = mode_digits(st.st_mode)
        if any(actual > allowed for actual, allowed in zip(digits, self.limit)):
            problems.append(f"mode {format_mode(st.st_mode)}")

        if problems:
            return Finding(False, f"{self.path} is {' and '.join(problems)}")
        return Finding(True)


class PackageGatedCheck(BaseCheck):
    """Run another check only when a package is present.

    Without the package the item is Skipped, or passes outright when
    ``absent_passes`` is set (e.g. desktop settings on a host without one).
    """

    tools = ("dpkg-query",)

    def __init__(self, package: str, check: BaseCheck, absent_passes: bool = False):
        self.package = package
        self.check = check
        self.absent_passes = absent_passes
        self.tools = tuple(dict.fromkeys(PackageGatedCheck.tools + check.tools))

    def describe(self) -> str:
        return self.check.describe()

    async def inspect(self, host: HostProbe) -> Finding:
        if not await host.package_installed(self.package):
            if self.absent_passes:
                return Finding(True, f"{self.package} is not installed")
            raise CheckSkipped(f"{self.package} is not installed")
        return self.check._as_finding(await self.check.inspect(host))
