"""Service checks: special purpose servers, time synchronisation and the MTA."""

import re
from typing import Optional, Sequence

from ..core.check import BaseCheck, Finding
from ..core.exceptions import CheckSkipped
from ..core.host import HostProbe

LOOPBACK_ADDRESSES = ("127.0.0.1", "::1", "[::1]")


def split_address(address: str):
    """Split an ``ss`` local address such as "0.0.0.0:25" or "[::1]:25" into host and port."""
    host, _, port = address.rpartition(":")
    return host.split("%")[0], port


class ServerNotInstalledCheck(BaseCheck):
    """Pass when a server package is absent, or present but disabled and not listening."""

    tools = ("dpkg-query", "systemctl", "ss")

    def __init__(
        self,
        package: str,
        name: str,
        unit: Optional[str] = None,
        ports: Sequence[int] = (),
    ):
        self.package = package
        self.name = name
        self.unit = unit
        self.ports = tuple(str(p) for p in ports)

    def describe(self) -> str:
        return f"Ensure {self.name} is not installed"

    async def inspect(self, host: HostProbe) -> Finding:
        if not await host.package_installed(self.package):
            return Finding(True, f"{self.package} is not installed")

        if not self.unit:
            return Finding(False, f"{self.package} is installed")

        problems = []
        state = await host.service_state(self.unit)
        if state not in ("disabled", "masked"):
            problems.append(f"{self.unit} is {state}")
        if self.ports:
            listening = sorted(await host.listening_ports() & set(self.ports))
            if listening:
                problems.append(f"listening on {', '.join(listening)}")

        if problems:
            return Finding(False, f"{self.package} is installed; " + "; ".join(problems))
        return Finding(True, f"{self.package} is installed but inactive")


class TimeSyncInUseCheck(BaseCheck):
    """Pass when ntp or chrony is installed, or systemd-timesyncd is enabled."""

    tools = ("dpkg-query", "systemctl")

    def describe(self) -> str:
        return "Ensure time synchronisation is in use"

    async def inspect(self, host: HostProbe) -> Finding:
        for package in ("ntp", "chrony"):
            if await host.package_installed(package):
                return Finding(True, f"{package} is installed")
        state = await host.service_state("systemd-timesyncd")
        return Finding(state == "enabled", f"systemd-timesyncd is {state}")


class ChronyConfiguredCheck(BaseCheck):
    """Pass when chrony has a time source and runs as the _chrony user.

    Skipped when chrony is not installed.
    """

    tools = ("dpkg-query", "ps")

    CONFIG_PATHS = ("/etc/chrony/chrony.conf", "/etc/chrony.conf")

    def describe(self) -> str:
        return "Ensure chrony is configured"

    async def inspect(self, host: HostProbe) -> Finding:
        if not await host.package_installed("chrony"):
            raise CheckSkipped("chrony is not installed")

        problems = []
        if not host.grep(r"^\s*(server|pool)\s+\S+", self.CONFIG_PATHS):
            problems.append("no server or pool configured")

        result = await host.run(["ps", "-C", "chronyd", "-o", "user="])
        users = set(result.lines)
        if users and users != {"_chrony"}:
            problems.append(f"chronyd runs as {', '.join(sorted(users))}")

        if problems:
            return Finding(False, "; ".join(problems))
        return Finding(True)


class NtpConfiguredCheck(BaseCheck):
    """Pass when ntp restricts queries, has a time source and runs as ntp.

    Skipped when ntp is not installed.
    """

    tools = ("dpkg-query",)
    REQUIRED_FLAGS = ("kod", "nomodify", "notrap", "nopeer", "noquery")

    def describe(self) -> str:
        return "Ensure ntp is configured"

    async def inspect(self, host: HostProbe) -> Finding:
        if not await host.package_installed("ntp"):
            raise CheckSkipped("ntp is not installed")

        problems = []
        for family in ("-4", "-6"):
            lines = host.grep(r"^\s*restrict\s+" + re.escape(family) + r"\s+default\b", ["/etc/ntp.conf"])
            flags = set(" ".join(lines).split())
            missing = [flag for flag in self.REQUIRED_FLAGS if flag not in flags]
            if missing:
                problems.append(f"restrict {family} default lacks {', '.join(missing)}")

        if not host.grep(r"^\s*(server|pool)\s+\S+", ["/etc/ntp.conf"]):
            problems.append("no server or pool configured")
        if not host.grep(r"^\s*RUNASUSER=ntp\b", ["/etc/init.d/ntp"]):
            problems.append("ntpd does not run as ntp")

        if problems:
            return Finding(False, "; ".join(problems))
        return Finding(True)


class LocalOnlyMTACheck(BaseCheck):
    """Pass when nothing but the loopback interface listens on port 25."""

    tools = ("ss",)

    def describe(self) -> str:
        return "Ensure mail transfer agent is configured for local-only mode"

    async def inspect(self, host: HostProbe) -> Finding:
        exposed = []
        for address in await host.listening_sockets():
            listen_host, port = split_address(address)
            if port == "25" and listen_host not in LOOPBACK_ADDRESSES:
                exposed.append(address)
        if exposed:
            return Finding(False, f"SMTP listening on {', '.join(sorted(set(exposed)))}")
        return Finding(True)
