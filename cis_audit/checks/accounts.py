"""Account checks over /etc/passwd, /etc/shadow and /etc/group."""

import datetime
import os
import stat
from collections import Counter
from typing import List, Optional

from ..core.check import BaseCheck, Finding
from ..core.exceptions import CheckDataError
from ..core.host import HostProbe, PasswdEntry
from .common import format_mode

NOLOGIN_SHELLS = ("/sbin/nologin", "/usr/sbin/nologin", "/bin/false", "/usr/bin/false")
SHUTDOWN_HELPERS = ("sync", "shutdown", "halt")
# Accounts allowed a login shell below UID_MIN
SYSTEM_SHELL_EXEMPT = ("root",) + SHUTDOWN_HELPERS
DEFAULT_UID_MIN = 1000


def uid_min(host: HostProbe) -> int:
    value = host.login_defs().get("UID_MIN", "")
    return int(value) if value.isdigit() else DEFAULT_UID_MIN


def interactive_users(host: HostProbe) -> List[PasswdEntry]:
    """Accounts with a login shell, excluding the sync/halt/shutdown helpers."""
    return [
        entry for entry in host.passwd()
        if entry.shell not in NOLOGIN_SHELLS and entry.name not in SHUTDOWN_HELPERS
    ]


def _read_shadow(host: HostProbe):
    shadow = host.shadow()
    if shadow is None:
        raise CheckDataError("/etc/shadow could not be read")
    return shadow


def _offenders(names, what: str) -> Finding:
    if names:
        return Finding(False, f"{what}: {', '.join(names)}")
    return Finding(True)


class ShadowedPasswordsCheck(BaseCheck):
    def describe(self) -> str:
        return "Ensure accounts in /etc/passwd use shadowed passwords"

    async def inspect(self, host: HostProbe) -> Finding:
        return _offenders([e.name for e in host.passwd() if e.password != "x"], "Not shadowed")


class EmptyPasswordsCheck(BaseCheck):
    def describe(self) -> str:
        return "Ensure password fields are not empty"

    async def inspect(self, host: HostProbe) -> Finding:
        return _offenders([e.name for e in _read_shadow(host) if e.password == ""], "Empty password")


class GroupsExistCheck(BaseCheck):
    def describe(self) -> str:
        return "Ensure all groups in /etc/passwd exist in /etc/group"

    async def inspect(self, host: HostProbe) -> Finding:
        gids = {entry.gid for entry in host.group()}
        missing = sorted({str(e.gid) for e in host.passwd() if e.gid not in gids})
        return _offenders(missing, "Undefined group ids")


class DuplicateEntriesCheck(BaseCheck):
    """Pass when no name or id appears twice in /etc/passwd or /etc/group.

    Works on the raw file so that malformed duplicates are still counted.
    """

    FIELDS = {"name": 0, "uid": 2, "gid": 2}

    def __init__(self, source: str, field: str):
        if source not in ("passwd", "group") or field not in self.FIELDS:
            raise ValueError(f"Unsupported duplicate check: {source}/{field}")
        self.source = source
        self.field = field

    def describe(self) -> str:
        what = {"name": "user names" if self.source == "passwd" else "group names",
                "uid": "UIDs", "gid": "GIDs"}[self.field]
        return f"Ensure no duplicate {what} exist"

    async def inspect(self, host: HostProbe) -> Finding:
        path = f"/etc/{self.source}"
        lines = host.read_lines(path)
        if not lines:
            raise CheckDataError(f"{path} could not be read")

        index = self.FIELDS[self.field]
        values = [line.split(":")[index] for line in lines if len(line.split(":")) > index]
        duplicates = sorted(value for value, count in Counter(values).items() if count > 1)
        return _offenders(duplicates, f"Duplicate {self.field}s in {path}")


class RootOnlyUID0Check(BaseCheck):
    def describe(self) -> str:
        return "Ensure root is the only UID 0 account"

    async def inspect(self, host: HostProbe) -> Finding:
        return _offenders([e.name for e in host.passwd() if e.uid == 0 and e.name != "root"], "UID 0 accounts")


class RootPathCheck(BaseCheck):
    """Pass when root's PATH has no empty or relative entries and only root-owned,
    non group/world writable directories.

    Args:
        path_value: PATH to audit (default: the PATH of this process)
    """

    def __init__(self, path_value: Optional[str] = None):
        self.path_value = path_value

    def describe(self) -> str:
        return "Ensure root PATH Integrity"

    async def inspect(self, host: HostProbe) -> Finding:
        path_value = self.path_value if self.path_value is not None else os.environ.get("PATH", "")
        entries = path_value.split(":")

        problems = []
        if "" in entries:
            problems.append("empty directory in PATH")
        for entry in entries:
            if not entry:
                continue
            if not entry.startswith("/"):
                problems.append(f"{entry} is relative")
                continue
            st = host.stat(entry)
            if st is None or not stat.S_ISDIR(st.st_mode):
                continue
            if st.st_uid != 0:
                problems.append(f"{entry} is not owned by root")
            if st.st_mode & 0o022:
                problems.append(f"{entry} is {format_mode(st.st_mode)}")
        if problems:
            return Finding(False, "; ".join(problems))
        return Finding(True)


class HomeDirectoriesCheck(BaseCheck):
    """Audit user home directories.

    Modes:
        exist: every regular user's home directory exists
        owned: every regular user owns their home directory
        permissions: interactive users' homes are 750 or stricter
    """

    DESCRIPTIONS = {
        "exist": "Ensure all users' home directories exist",
        "owned": "Ensure users own their home directories",
        "permissions": "Ensure users' home directories permissions are 750 or more restrictive",
    }

    def __init__(self, mode: str):
        if mode not in self.DESCRIPTIONS:
            raise ValueError(f"Unknown home directory mode: {mode}")
        self.mode = mode

    def describe(self) -> str:
        return self.DESCRIPTIONS[self.mode]

    async def inspect(self, host: HostProbe) -> Finding:
        if self.mode == "permissions":
            offenders = []
            for entry in interactive_users(host):
                st = host.stat(entry.home)
                if st is not None and stat.S_ISDIR(st.st_mode) and st.st_mode & 0o027:
                    offenders.append(f"{entry.home} ({format_mode(st.st_mode)})")
            return _offenders(offenders, "Loose home directories")

        minimum = uid_min(host)
        users = [
            e for e in host.passwd()
            if e.uid >= minimum and e.name != "nfsnobody" and e.shell not in NOLOGIN_SHELLS
        ]
        if self.mode == "exist":
            return _offenders([f"{e.name} ({e.home})" for e in users if not host.is_dir(e.home)], "Missing home directories")

        offenders = []
        for entry in users:
            st = host.stat(entry.home)
            if st is not None and st.st_uid != entry.uid:
                offenders.append(f"{entry.name} ({entry.home})")
        return _offenders(offenders, "Home directories not owned by their user")


class DotFilesCheck(BaseCheck):
    """Pass when no interactive user's dot file is group or world writable."""

    def describe(self) -> str:
        return "Ensure users' dot files are not group or world writable"

    async def inspect(self, host: HostProbe) -> Finding:
        offenders = []
        for entry in interactive_users(host):
            for path in host.glob(entry.home.rstrip("/") + "/.[A-Za-z0-9]*"):
                st = host.stat(path, follow_symlinks=False)
                if st is not None and stat.S_ISREG(st.st_mode) and st.st_mode & 0o022:
                    offenders.append(path)
        return _offenders(offenders, "Writable dot files")


class ForbiddenUserFilesCheck(BaseCheck):
    """Pass when no user's home directory contains the given file (.netrc, .forward, .rhosts)."""

    def __init__(self, filename: str):
        self.filename = filename

    def describe(self) -> str:
        return f"Ensure no users have {self.filename} files"

    async def inspect(self, host: HostProbe) -> Finding:
        found = []
        for home in sorted({e.home for e in host.passwd() if e.home}):
            path = home.rstrip("/") + "/" + self.filename
            if host.exists(path) or host.is_symlink(path):
                found.append(path)
        return _offenders(found, f"{self.filename} files")


class ShadowGroupEmptyCheck(BaseCheck):
    def describe(self) -> str:
        return "Ensure shadow group is empty"

    async def inspect(self, host: HostProbe) -> Finding:
        shadow_group = next((g for g in host.group() if g.name == "shadow"), None)
        if shadow_group is None:
            return Finding(True, "No shadow group")
        members = list(shadow_group.members)
        members += [e.name for e in host.passwd() if e.gid == shadow_group.gid]
        return _offenders(sorted(set(members)), "shadow group members")


class RootGroupCheck(BaseCheck):
    def describe(self) -> str:
        return "Ensure default group for the root account is GID 0"

    async def inspect(self, host: HostProbe) -> Finding:
        root = next((e for e in host.passwd() if e.name == "root"), None)
        if root is None:
            raise CheckDataError("root is missing from /etc/passwd")
        return Finding(root.gid == 0, f"root has GID {root.gid}")


class SystemAccountsCheck(BaseCheck):
    """Pass when accounts below UID_MIN, other than root and the shutdown helpers, cannot log in."""

    def describe(self) -> str:
        return "Ensure system accounts are secured"

    async def inspect(self, host: HostProbe) -> Finding:
        minimum = uid_min(host)
        offenders = [
            f"{e.name} ({e.shell})" for e in host.passwd()
            if e.uid < minimum and e.name not in SYSTEM_SHELL_EXEMPT and e.shell not in NOLOGIN_SHELLS
        ]
        return _offenders(offenders, "System accounts with a login shell")


class PasswordChangeInPastCheck(BaseCheck):
    """Pass when no account's last password change lies in the future.

    Args:
        today: Reference date (default: the current UTC date)
    """

    def __init__(self, today: Optional[datetime.date] = None):
        self.today = today

    def describe(self) -> str:
        return "Ensure all users last password change date is in the past"

    async def inspect(self, host: HostProbe) -> Finding:
        today = self.today or datetime.datetime.now(datetime.timezone.utc).date()
        days = (today - datetime.date(1970, 1, 1)).days
        offenders = [
            e.name for e in _read_shadow(host)
            if e.last_change is not None and e.last_change > days
        ]
        return _offenders(offenders, "Password changed in the future")
