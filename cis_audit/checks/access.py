"""Access checks: sshd, cron/at, PAM and the shadow password suite."""

import re
from typing import Callable, Dict, List, Optional, Sequence

from ..core.check import BaseCheck, Finding
from ..core.exceptions import CheckDataError
from ..core.host import HostProbe
from .common import format_mode, mode_digits
from .logging_audit import ConfigDirectiveCheck

Predicate = Callable[[str], bool]


def _as_int(value: str) -> Optional[int]:
    value = value.strip()
    return int(value) if value.lstrip("-").isdigit() else None


def one_of(*allowed: str) -> Predicate:
    """Value is one of the allowed words (case-insensitive)."""
    allowed_lower = {a.lower() for a in allowed}
    return lambda value: value.lower() in allowed_lower


def at_most(limit: int) -> Predicate:
    def check(value: str) -> bool:
        number = _as_int(value)
        return number is not None and number <= limit
    return check


def at_least(limit: int) -> Predicate:
    def check(value: str) -> bool:
        number = _as_int(value)
        return number is not None and number >= limit
    return check


def in_range(low: int, high: int) -> Predicate:
    def check(value: str) -> bool:
        number = _as_int(value)
        return number is not None and low <= number <= high
    return check


def none_of(*forbidden: str) -> Predicate:
    """A comma-separated list contains none of the forbidden items."""
    forbidden_lower = {f.lower() for f in forbidden}
    return lambda value: not any(item.lower() in forbidden_lower for item in value.split(","))


def all_in(*approved: str) -> Predicate:
    """Every item of a comma-separated list is approved."""
    approved_lower = {a.lower() for a in approved}
    return lambda value: all(item.lower() in approved_lower for item in value.split(",") if item)


def max_startups(start: int, rate: int, full: int) -> Predicate:
    """MaxStartups "start:rate:full" with each field at or below the limit."""
    def check(value: str) -> bool:
        fields = value.split(":")
        if len(fields) == 1:
            fields = fields * 3
        if len(fields) != 3 or not all(f.isdigit() for f in fields):
            return False
        return all(int(f) <= limit for f, limit in zip(fields, (start, rate, full)))
    return check


class SSHDSettingCheck(BaseCheck):
    """Pass when every keyword in the effective sshd configuration satisfies its predicate.

    Settings come from ``sshd -T``, which prints lower-cased keywords with
    defaults applied, so an unset keyword is judged by its default value.
    """

    tools = ("sshd",)

    def __init__(self, conditions: Dict[str, Predicate], description: str):
        self.conditions = {keyword.lower(): predicate for keyword, predicate in conditions.items()}
        self.description = description

    def describe(self) -> str:
        return self.description

    async def inspect(self, host: HostProbe) -> Finding:
        settings = await host.sshd_settings()
        if not settings:
            return Finding(False, "sshd -T returned no settings")

        problems = []
        for keyword, predicate in self.conditions.items():
            values = settings.get(keyword)
            if not values:
                problems.append(f"{keyword} is not set")
            elif not predicate(values[0]):
                problems.append(f"{keyword} {values[0]}")
        if problems:
            return Finding(False, "; ".join(problems))
        return Finding(True)


class SSHKeyPermissionsCheck(BaseCheck):
    """Pass when SSH host keys are root owned with 0600 (private) or 0644 (public) or stricter."""

    PATTERNS = {
        "private": ("/etc/ssh/ssh_host_*_key", (6, 0, 0)),
        "public": ("/etc/ssh/ssh_host_*_key.pub", (6, 4, 4)),
    }

    def __init__(self, kind: str):
        if kind not in self.PATTERNS:
            raise ValueError(f"kind must be 'private' or 'public', not {kind!r}")
        self.kind = kind

    def describe(self) -> str:
        return f"Ensure permissions on SSH {self.kind} host key files are configured"

    async def inspect(self, host: HostProbe) -> Finding:
        pattern, limit = self.PATTERNS[self.kind]
        keys = [path for path in host.glob(pattern) if host.is_file(path)]
        if not keys:
            return Finding(False, f"No {self.kind} host keys found")

        problems = []
        for path in keys:
            st = host.stat(path)
            if st is None:
                continue
            digits = mode_digits(st.st_mode)
            if st.st_uid != 0 or any(a > b for a, b in zip(digits, limit)):
                problems.append(f"{path} ({st.st_uid}:{st.st_gid} {format_mode(st.st_mode)})")
        if problems:
            return Finding(False, ", ".join(problems))
        return Finding(True, f"{len(keys)} {self.kind} keys inspected")


class AccessRestrictedCheck(BaseCheck):
    """Pass when cron or at use an allow list: no deny file, and a root-only allow file."""

    def __init__(self, daemon: str):
        if daemon not in ("cron", "at"):
            raise ValueError(f"daemon must be 'cron' or 'at', not {daemon!r}")
        self.daemon = daemon

    def describe(self) -> str:
        return f"Ensure {self.daemon} is restricted to authorized users"

    async def inspect(self, host: HostProbe) -> Finding:
        deny = f"/etc/{self.daemon}.deny"
        allow = f"/etc/{self.daemon}.allow"

        problems = []
        if host.exists(deny):
            problems.append(f"{deny} exists")
        st = host.stat(allow)
        if st is None:
            problems.append(f"{allow} does not exist")
        else:
            digits = mode_digits(st.st_mode)
            if st.st_uid != 0 or st.st_gid != 0 or digits[1] or digits[2] or digits[0] > 6:
                problems.append(f"{allow} is {st.st_uid}:{st.st_gid} {format_mode(st.st_mode)}")
        if problems:
            return Finding(False, "; ".join(problems))
        return Finding(True)


class LoginDefsCheck(BaseCheck):
    """Pass when a login.defs default and every password-bearing account respect a limit.

    Args:
        key: login.defs setting, e.g. PASS_MAX_DAYS
        limit: Bound the value is compared with
        compare: "max" (value <= limit) or "min" (value >= limit)
        field: ShadowEntry attribute holding the per-account value
        description: Result description
    """

    def __init__(self, key: str, limit: int, compare: str, field: str, description: str):
        if compare not in ("max", "min"):
            raise ValueError(f"compare must be 'max' or 'min', not {compare!r}")
        self.key = key
        self.limit = limit
        self.compare = compare
        self.field = field
        self.description = description

    def describe(self) -> str:
        return self.description

    def _ok(self, value: Optional[int]) -> bool:
        if value is None or value < 0:
            return False
        return value <= self.limit if self.compare == "max" else value >= self.limit

    async def inspect(self, host: HostProbe) -> Finding:
        shadow = host.shadow()
        if shadow is None:
            raise CheckDataError("/etc/shadow could not be read")

        problems = []
        configured = _as_int(host.login_defs().get(self.key, ""))
        if not self._ok(configured):
            problems.append(f"{self.key} is {configured if configured is not None else 'not set'}")

        offenders = [
            entry.name for entry in shadow
            if entry.password and entry.password[0] not in "!*" and not self._ok(getattr(entry, self.field))
        ]
        if offenders:
            problems.append(f"{self.field} out of range for {', '.join(offenders)}")
        if problems:
            return Finding(False, "; ".join(problems))
        return Finding(True)


class InactivePasswordLockCheck(BaseCheck):
    """Pass when accounts are locked within ``max_days`` of password expiry."""

    tools = ("useradd",)

    def __init__(self, max_days: int = 30):
        self.max_days = max_days

    def describe(self) -> str:
        return f"Ensure inactive password lock is {self.max_days} days or less"

    def _ok(self, value: Optional[int]) -> bool:
        return value is not None and 0 <= value <= self.max_days

    async def inspect(self, host: HostProbe) -> Finding:
        result = await host.run(["useradd", "-D"])
        if not result.ok:
            raise CheckDataError(f"useradd -D failed: {result.stderr.strip() or result.returncode}")
        shadow = host.shadow()
        if shadow is None:
            raise CheckDataError("/etc/shadow could not be read")

        problems = []
        defaults = dict(line.split("=", 1) for line in result.lines if "=" in line)
        inactive = _as_int(defaults.get("INACTIVE", ""))
        if not self._ok(inactive):
            problems.append(f"default INACTIVE is {inactive}")

        offenders = [
            entry.name for entry in shadow
            if entry.password and entry.password[0] not in "!*" and not self._ok(entry.inactive_days)
        ]
        if offenders:
            problems.append(f"inactive lock not set for {', '.join(offenders)}")
        if problems:
            return Finding(False, "; ".join(problems))
        return Finding(True)


class SuRestrictedCheck(ConfigDirectiveCheck):
    """Pass when su requires membership of the wheel-style group via pam_wheel."""

    def __init__(self):
        super().__init__(
            "/etc/pam.d/su",
            r"^\s*auth\s+required\s+pam_wheel\.so\b.*\buse_uid\b",
            "Ensure access to the su command is restricted",
        )


def _mask_from_symbolic(value: str) -> Optional[int]:
    """Convert "u=rwx,g=rx,o=" to the equivalent octal umask."""
    allowed = {"u": 0, "g": 0, "o": 0}
    for clause in value.split(","):
        who, sep, perms = clause.partition("=")
        if not sep or who not in allowed or set(perms) - set("rwx"):
            return None
        allowed[who] = sum({"r": 4, "w": 2, "x": 1}[p] for p in set(perms))
    return 0o777 & ~((allowed["u"] << 6) | (allowed["g"] << 3) | allowed["o"])


class DefaultUmaskCheck(BaseCheck):
    """Pass when a default umask is set and every one found is 027 or stricter."""

    PATHS = ("/etc/login.defs", "/etc/profile", "/etc/profile.d/*.sh", "/etc/bash.bashrc")
    REQUIRED = 0o027

    def describe(self) -> str:
        return "Ensure default user umask is 027 or more restrictive"

    def masks(self, host: HostProbe) -> List[str]:
        found = []
        for line in host.grep(r"^[^#]*\bumask\s+\S+", self.PATHS, flags=re.IGNORECASE):
            match = re.search(r"\bumask\s+(\S+)", line, re.IGNORECASE)
            if match:
                found.append(match.group(1))
        return found

    async def inspect(self, host: HostProbe) -> Finding:
        masks = self.masks(host)
        if not masks:
            return Finding(False, "No default umask is set")

        weak = []
        for text in masks:
            if re.fullmatch(r"[0-7]{3,4}", text):
                mask = int(text, 8)
            else:
                mask = _mask_from_symbolic(text)
            if mask is None or mask & self.REQUIRED != self.REQUIRED:
                weak.append(text)
        if weak:
            return Finding(False, f"Weak umask: {', '.join(weak)}")
        return Finding(True)


class PasswordQualityCheck(BaseCheck):
    """Pass when pam_pwquality enforces length, complexity and retry limits.

    Complexity is met by ``minclass = 4`` or by all four credit settings
    being negative.
    """

    PWQUALITY = "/etc/security/pwquality.conf"
    COMMON_PASSWORD = "/etc/pam.d/common-password"
    CREDITS = ("dcredit", "ucredit", "lcredit", "ocredit")

    def __init__(self, min_length: int = 14, max_retry: int = 3):
        self.min_length = min_length
        self.max_retry = max_retry

    def describe(self) -> str:
        return "Ensure password creation requirements are configured"

    async def inspect(self, host: HostProbe) -> Finding:
        settings = {}
        for line in host.read_lines(self.PWQUALITY):
            key, sep, value = line.partition("=")
            if sep:
                settings[key.strip()] = value.strip()

        problems = []
        minlen = _as_int(settings.get("minlen", ""))
        if minlen is None or minlen < self.min_length:
            problems.append(f"minlen is {minlen if minlen is not None else 'not set'}")

        minclass = _as_int(settings.get("minclass", ""))
        credits_ok = all((_as_int(settings.get(c, "")) or 0) <= -1 for c in self.CREDITS)
        if minclass != 4 and not credits_ok:
            problems.append("character classes are not enforced")

        retry = r"[1-{}]".format(self.max_retry)
        pam_line = r"^\s*password\s+(requisite|required)\s+pam_pwquality\.so\b.*\bretry=" + retry + r"\b"
        if not host.grep(pam_line, [self.COMMON_PASSWORD]):
            problems.append(f"pam_pwquality retry is not {self.max_retry} or less")

        if problems:
            return Finding(False, "; ".join(problems))
        return Finding(True)
