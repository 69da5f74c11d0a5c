"""Network checks: kernel parameters, IPv6, wireless and host firewalls."""

import re
from typing import List, Sequence

from ..core.check import BaseCheck, Finding
from ..core.exceptions import CheckDataError
from ..core.host import COMMAND_NOT_FOUND, HostProbe
from .logging_audit import GrubKernelArgumentCheck
from .services import LOOPBACK_ADDRESSES, split_address


class SysctlCheck(BaseCheck):
    """Pass when kernel parameters have the expected value at runtime and in sysctl config.

    With ``require_persisted`` off, a parameter that is not set in any config
    file is accepted, but a conflicting persisted value still fails.
    """

    tools = ("sysctl",)

    def __init__(
        self,
        keys: Sequence[str],
        value: str,
        description: str,
        require_persisted: bool = True,
    ):
        self.keys = tuple(keys)
        self.value = " ".join(str(value).split())
        self.description = description
        self.require_persisted = require_persisted

    @classmethod
    def single(cls, protocol: str, name: str, value: str, description: str) -> "SysctlCheck":
        """Check net.<protocol>.<name>."""
        return cls([f"net.{protocol}.{name}"], value, description)

    @classmethod
    def pair(cls, protocol: str, name: str, value: str, description: str) -> "SysctlCheck":
        """Check net.<protocol>.conf.all.<name> and net.<protocol>.conf.default.<name>."""
        return cls(
            [f"net.{protocol}.conf.all.{name}", f"net.{protocol}.conf.default.{name}"],
            value,
            description,
        )

    def describe(self) -> str:
        return self.description

    async def inspect(self, host: HostProbe) -> Finding:
        problems = []
        for key in self.keys:
            running = host.sysctl(key)
            if running is None:
                problems.append(f"{key} is not available")
            elif running != self.value:
                problems.append(f"{key} = {running}")

            persisted = host.sysctl_config_values(key)
            if not persisted and self.require_persisted:
                problems.append(f"{key} is not set in sysctl configuration")
            conflicting = sorted({v for v in persisted if v != self.value})
            if conflicting:
                problems.append(f"{key} is configured as {', '.join(conflicting)}")

        if problems:
            return Finding(False, "; ".join(problems))
        return Finding(True)


class IPv6DisabledCheck(GrubKernelArgumentCheck):
    """Pass when IPv6 is disabled through the module options or the kernel command line."""

    tools = ("modprobe",)

    def __init__(self):
        super().__init__("ipv6.disable=1", "Disable IPv6")

    async def inspect(self, host: HostProbe) -> Finding:
        result = await host.run(["modprobe", "-c"])
        if any(re.match(r"^options\s+ipv6\s+disable=1\b", line) for line in result.lines):
            return Finding(True, "ipv6 module option disable=1 is set")
        return await super().inspect(host)


class WirelessDisabledCheck(BaseCheck):
    """Pass when no wireless interface is active.

    Uses NetworkManager when present. Otherwise every wireless driver found
    under /sys/class/net must be disabled with an ``install`` line in
    /etc/modprobe.d.
    """

    tools = ("nmcli",)

    def describe(self) -> str:
        return "Ensure wireless interfaces are disabled"

    async def inspect(self, host: HostProbe) -> Finding:
        if host.which("nmcli"):
            result = await host.run(["nmcli", "radio", "all"])
            if any(re.search(r"\S+\s+disabled\s+\S+\s+disabled\b", line) for line in result.lines):
                return Finding(True, "Wireless radios are disabled")
            return Finding(False, " / ".join(result.lines) or "nmcli reported no radio state")

        drivers = set()
        for wireless_dir in host.glob("/sys/class/net/*/wireless"):
            driver_link = host.path(wireless_dir).parent / "device" / "driver"
            if driver_link.exists():
                drivers.add(driver_link.resolve().name)

        enabled = [
            driver for driver in sorted(drivers)
            if not host.grep(r"^\s*install\s+" + re.escape(driver) + r"\s+/bin/(true|false)", ["/etc/modprobe.d/*.conf"])
        ]
        if enabled:
            return Finding(False, f"Wireless drivers not disabled: {', '.join(enabled)}")
        return Finding(True)


class UfwStatusCheck(BaseCheck):
    """Pass when ``ufw status verbose`` output matches every pattern.

    With ``pass_if_missing`` a host without ufw passes, which suits items
    that only require ufw to be inactive.
    """

    tools = ("ufw",)

    def __init__(self, patterns: Sequence[str], description: str, pass_if_missing: bool = False):
        self.patterns = tuple(patterns)
        self.description = description
        self.pass_if_missing = pass_if_missing

    def describe(self) -> str:
        return self.description

    async def inspect(self, host: HostProbe) -> Finding:
        result = await host.run(["ufw", "status", "verbose"])
        if result.returncode == COMMAND_NOT_FOUND:
            return Finding(self.pass_if_missing, "ufw is not installed")

        missing = [p for p in self.patterns if not re.search(p, result.stdout, re.MULTILINE)]
        if missing:
            return Finding(False, f"ufw status does not show {', '.join(missing)}")
        return Finding(True)


class UfwOpenPortsCheck(BaseCheck):
    """Pass when ufw has a rule for every port listening on a non-loopback address."""

    tools = ("ufw", "ss")

    def describe(self) -> str:
        return "Ensure ufw firewall rules exist for all open ports"

    async def inspect(self, host: HostProbe) -> Finding:
        result = await host.run(["ufw", "status"])
        if not result.ok:
            return Finding(False, "ufw status is not available")

        ports = set()
        for address in await host.listening_sockets():
            listen_host, port = split_address(address)
            if listen_host not in LOOPBACK_ADDRESSES and not listen_host.startswith("127."):
                ports.add(port)

        ruled = {re.split(r"[/\s]", line, maxsplit=1)[0] for line in result.lines}
        unruled = sorted(ports - ruled, key=lambda p: int(p) if p.isdigit() else 0)
        if unruled:
            return Finding(False, f"No ufw rule for ports {', '.join(unruled)}")
        return Finding(True)


class NftablesRulesetCheck(BaseCheck):
    """Pass when the nftables ruleset matches every pattern.

    With ``chains`` set, every pattern must match inside the block of each
    base chain hooked on them (for example "input" and "output").
    """

    tools = ("nft",)

    def __init__(
        self,
        patterns: Sequence[str],
        description: str,
        chains: Sequence[str] = (),
        command: Sequence[str] = ("nft", "list", "ruleset"),
    ):
        self.patterns = tuple(patterns)
        self.description = description
        self.chains = tuple(chains)
        self.command = list(command)

    def describe(self) -> str:
        return self.description

    @staticmethod
    def chain_block(ruleset: str, hook: str) -> str:
        """Lines from the ``hook <name>`` statement to the end of that chain."""
        lines: List[str] = []
        inside = False
        for line in ruleset.splitlines():
            if not inside and re.search(r"\bhook\s+" + re.escape(hook) + r"\b", line):
                inside = True
            if inside:
                lines.append(line)
                if line.strip() == "}":
                    break
        return "\n".join(lines)

    async def inspect(self, host: HostProbe) -> Finding:
        result = await host.run(self.command)
        if not result.ok:
            return Finding(False, f"{' '.join(self.command)} failed")

        blocks = {hook: self.chain_block(result.stdout, hook) for hook in self.chains} or {"ruleset": result.stdout}
        missing = [
            f"{p} ({name})" for name, text in blocks.items()
            for p in self.patterns if not re.search(p, text, re.MULTILINE)
        ]
        if missing:
            return Finding(False, f"Ruleset does not match {', '.join(missing)}")
        return Finding(True)


class IptablesPolicyCheck(BaseCheck):
    """Audit iptables or ip6tables.

    Modes:
        policy: INPUT, FORWARD and OUTPUT default to DROP
        loopback: lo traffic is accepted and spoofed loopback traffic dropped
        flushed: no rules are loaded
    """

    MODES = ("policy", "loopback", "flushed")

    def __init__(self, binary: str, mode: str, description: str):
        if mode not in self.MODES:
            raise ValueError(f"Unknown iptables mode: {mode}")
        self.binary = binary
        self.mode = mode
        self.description = description
        self.tools = (binary,)

    def describe(self) -> str:
        return self.description

    async def _list(self, host: HostProbe, *args: str) -> List[str]:
        result = await host.run([self.binary, "-L", *args, "-n", "-v"])
        if not result.ok:
            raise CheckDataError(f"{self.binary} -L failed: {result.stderr.strip() or result.returncode}")
        return result.lines

    async def inspect(self, host: HostProbe) -> Finding:
        if self.mode == "policy":
            lines = await self._list(host)
            loose = [
                chain for chain in ("INPUT", "FORWARD", "OUTPUT")
                if not any(line.startswith(f"Chain {chain} (policy DROP") for line in lines)
            ]
            if loose:
                return Finding(False, f"Default policy is not DROP for {', '.join(loose)}")
            return Finding(True)

        if self.mode == "flushed":
            lines = await self._list(host)
            rules = [line for line in lines if not line.startswith(("Chain ", "pkts ", "target "))]
            if rules:
                return Finding(False, f"{len(rules)} {self.binary} rules are loaded")
            return Finding(True)

        loopback_net = "::1" if self.binary == "ip6tables" else "127.0.0.0/8"
        input_rules = [line.split() for line in await self._list(host, "INPUT")]
        output_rules = [line.split() for line in await self._list(host, "OUTPUT")]

        # pkts bytes target prot opt in out source destination
        accepts_in = any(len(f) >= 9 and f[2] == "ACCEPT" and f[5] == "lo" for f in input_rules)
        drops_spoofed = any(len(f) >= 9 and f[2] == "DROP" and f[7] == loopback_net for f in input_rules)
        accepts_out = any(len(f) >= 9 and f[2] == "ACCEPT" and f[6] == "lo" for f in output_rules)

        problems = []
        if not accepts_in:
            problems.append("INPUT does not accept lo")
        if not drops_spoofed:
            problems.append(f"INPUT does not drop {loopback_net}")
        if not accepts_out:
            problems.append("OUTPUT does not accept lo")
        if problems:
            return Finding(False, "; ".join(problems))
        return Finding(True)
