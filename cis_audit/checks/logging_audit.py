"""Logging and auditing checks: auditd, rsyslog, journald and config directives."""

import logging
import re
import stat
from typing import Dict, Optional, Sequence, Union

from ..core.check import BaseCheck, Finding
from ..core.exceptions import CheckDataError
from ..core.host import HostProbe
from .filesystem import paths_message

logger = logging.getLogger(__name__)

GRUB_CONFIG = "/boot/grub/grub.cfg"
AUDITD_CONFIG = "/etc/audit/auditd.conf"


def kernel_command_lines(host: HostProbe):
    """The ``linux`` lines of the GRUB configuration."""
    return [line for line in host.read_lines(GRUB_CONFIG) if re.match(r"^linux(16|efi)?\s", line)]


def normalize_rule(rule: str) -> str:
    """Collapse whitespace and drop trailing slashes from ``-w`` watch paths."""
    tokens = rule.split()
    for i, token in enumerate(tokens[:-1]):
        if token == "-w" and len(tokens[i + 1]) > 1:
            tokens[i + 1] = tokens[i + 1].rstrip("/")
    return " ".join(tokens)


class GrubKernelArgumentCheck(BaseCheck):
    """Pass when every kernel line in grub.cfg carries all the given arguments."""

    def __init__(self, arguments: Union[str, Sequence[str]], description: str):
        self.arguments = (arguments,) if isinstance(arguments, str) else tuple(arguments)
        self.description = description
        self._patterns = [re.compile(r"(^|\s)" + arg + r"(\s|$)") for arg in self.arguments]

    def describe(self) -> str:
        return self.description

    async def inspect(self, host: HostProbe) -> Finding:
        lines = kernel_command_lines(host)
        if not lines:
            return Finding(False, f"No kernel lines found in {GRUB_CONFIG}")
        missing = [
            line for line in lines
            if not all(pattern.search(line) for pattern in self._patterns)
        ]
        if missing:
            return Finding(False, f"{len(missing)} of {len(lines)} kernel lines lack {' '.join(self.arguments)}")
        return Finding(True)


class AuditdConfCheck(BaseCheck):
    """Pass when auditd.conf sets each key to a value matching its pattern."""

    def __init__(self, settings: Dict[str, str], description: str):
        self.settings = settings
        self.description = description

    def describe(self) -> str:
        return self.description

    async def inspect(self, host: HostProbe) -> Finding:
        if not host.is_file(AUDITD_CONFIG):
            return Finding(False, f"{AUDITD_CONFIG} does not exist")

        values = {}
        for line in host.read_lines(AUDITD_CONFIG):
            key, sep, value = line.partition("=")
            if sep:
                values[key.strip().lower()] = value.strip()

        problems = []
        for key, pattern in self.settings.items():
            value = values.get(key)
            if value is None:
                problems.append(f"{key} is not set")
            elif not re.fullmatch(pattern, value, re.IGNORECASE):
                problems.append(f"{key} = {value}")
        if problems:
            return Finding(False, "; ".join(problems))
        return Finding(True)


class AuditRulesCheck(BaseCheck):
    """Pass when every expected rule is loaded in the kernel audit rule set.

    Rules are compared as ``auditctl -l`` prints them, with whitespace
    normalized. Extra rules under the same key are allowed.
    """

    tools = ("auditctl",)

    def __init__(self, key: str, rules: Sequence[str], description: str):
        self.key = key
        self.rules = [normalize_rule(r) for r in rules]
        self.description = description

    def describe(self) -> str:
        return self.description

    async def inspect(self, host: HostProbe) -> Finding:
        result = await host.run(["auditctl", "-l"])
        if not result.ok:
            raise CheckDataError(f"Could not list audit rules: {result.stderr.strip() or result.returncode}")

        loaded = {normalize_rule(line) for line in result.lines}
        missing = [rule for rule in self.rules if rule not in loaded]
        if missing:
            logger.debug("Audit key %s is missing rules: %s", self.key, missing)
            return Finding(False, f"{len(missing)} of {len(self.rules)} {self.key} rules not loaded")
        return Finding(True)


class AuditImmutableCheck(BaseCheck):
    """Pass when the final audit rule makes the configuration immutable (``-e 2``)."""

    RULE_PATTERNS = ("/etc/audit/audit.rules", "/etc/audit/rules.d/*.rules")

    def describe(self) -> str:
        return "Ensure the audit configuration is immutable"

    async def inspect(self, host: HostProbe) -> Finding:
        files = host.expand(self.RULE_PATTERNS)
        for path in files:
            lines = host.read_lines(path)
            if lines and normalize_rule(lines[-1]) == "-e 2":
                return Finding(True, f"{path} ends with -e 2")
        return Finding(False, "No audit rules file ends with -e 2")


class ConfigDirectiveCheck(BaseCheck):
    """Pass when a regex matches (or, with ``present=False``, never matches)
    a non-comment line in any of the given files or glob patterns.
    """

    def __init__(
        self,
        paths: Union[str, Sequence[str]],
        pattern: str,
        description: str,
        present: bool = True,
        flags: int = 0,
    ):
        self.paths = (paths,) if isinstance(paths, str) else tuple(paths)
        self.pattern = pattern
        self.description = description
        self.present = present
        self.flags = flags

    def describe(self) -> str:
        return self.description

    def matches(self, host: HostProbe):
        regex = re.compile(self.pattern, self.flags)
        found = []
        for path in host.expand(self.paths):
            for line in host.read_lines(path):
                if regex.search(line):
                    found.append(f"{path}: {line}")
        return found

    async def inspect(self, host: HostProbe) -> Finding:
        found = self.matches(host)
        if self.present:
            if found:
                return Finding(True, found[0])
            return Finding(False, f"No match in {', '.join(self.paths)}")
        if found:
            return Finding(False, found[0])
        return Finding(True)


class LogfilePermissionsCheck(BaseCheck):
    """Pass when no log file grants group write or any access to others."""

    def __init__(self, directory: str = "/var/log", forbidden: int = 0o037):
        self.directory = directory
        self.forbidden = forbidden

    def describe(self) -> str:
        return "Ensure permissions on all logfiles are configured"

    async def inspect(self, host: HostProbe) -> Finding:
        if not host.is_dir(self.directory):
            return Finding(False, f"{self.directory} does not exist")
        offending = await host.find(
            lambda st: stat.S_ISREG(st.st_mode) and bool(st.st_mode & self.forbidden),
            tops=[self.directory],
        )
        if offending:
            return Finding(False, paths_message(offending, "log files with loose permissions"))
        return Finding(True)


class SyslogRemoteHostCheck(ConfigDirectiveCheck):
    """Pass when rsyslog forwards to a remote host, by action() target or @host."""

    PATHS = ("/etc/rsyslog.conf", "/etc/rsyslog.d/*.conf")

    def __init__(self, description: Optional[str] = None):
        super().__init__(
            self.PATHS,
            r'(^\s*([^#]+\s+)?action\(([^#]+\s+)?\btarget="?[^#"]+"?\b|^[^#]*\s*\S+\s+@)',
            description or "Ensure rsyslog is configured to send logs to a remote log host",
        )
