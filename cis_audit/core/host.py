"""Host Module - Read-only queries against the audited operating system.

Every query tolerates a missing tool or file: commands that cannot be
started report return code 127 and unreadable files read as None, so a
check can decide what an absent source means for its outcome.
"""

import asyncio
import glob as globlib
import logging
import os
import re
import shutil
import stat
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, Iterator, List, Optional, Sequence, Set, Tuple, Union

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]

# Return code reported when a command cannot be executed at all
COMMAND_NOT_FOUND = 127


@dataclass(frozen=True)
class CommandResult:
    """Outcome of a host command."""
    returncode: int
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    @property
    def lines(self) -> List[str]:
        """Non-blank stdout lines, stripped."""
        return [line.strip() for line in self.stdout.splitlines() if line.strip()]


@dataclass(frozen=True)
class PasswdEntry:
    """A line of /etc/passwd."""
    name: str
    password: str
    uid: int
    gid: int
    gecos: str
    home: str
    shell: str


@dataclass(frozen=True)
class GroupEntry:
    """A line of /etc/group."""
    name: str
    password: str
    gid: int
    members: Tuple[str, ...]


@dataclass(frozen=True)
class ShadowEntry:
    """A line of /etc/shadow. Empty numeric fields are None."""
    name: str
    password: str
    last_change: Optional[int]
    min_days: Optional[int]
    max_days: Optional[int]
    warn_days: Optional[int]
    inactive_days: Optional[int]


@dataclass(frozen=True)
class MountEntry:
    """A line of /proc/mounts."""
    device: str
    mountpoint: str
    fstype: str
    options: Tuple[str, ...]


def _optional_int(value: str) -> Optional[int]:
    value = value.strip()
    return int(value) if value.lstrip("-").isdigit() else None


class HostProbe:
    """Query primitives used by check procedures.

    All file paths are given as absolute paths on the audited host and are
    resolved below ``root``, so the probe can be pointed at a copy of a
    filesystem tree.
    """

    SYSCTL_CONFIG_PATTERNS = (
        "/etc/sysctl.conf",
        "/etc/sysctl.d/*.conf",
        "/usr/lib/sysctl.d/*.conf",
        "/usr/local/lib/sysctl.d/*.conf",
        "/run/sysctl.d/*.conf",
    )

    # Pseudo and network filesystems skipped by filesystem-wide searches
    NONLOCAL_FSTYPES = frozenset({
        "proc", "sysfs", "devpts", "devtmpfs", "cgroup", "cgroup2", "securityfs",
        "debugfs", "tracefs", "pstore", "bpf", "mqueue", "hugetlbfs", "configfs",
        "fusectl", "autofs", "binfmt_misc", "rpc_pipefs", "nsfs", "efivarfs",
        "squashfs", "nfs", "nfs4", "cifs", "smbfs", "sshfs", "fuse.sshfs", "ceph",
        "glusterfs", "9p",
    })

    def __init__(
        self,
        root: PathLike = "/",
        command_timeout: int = 120,
        trace: bool = False,
    ):
        """Initialize the probe.

        Args:
            root: Filesystem root the host paths are resolved against
            command_timeout: Timeout in seconds for each host command
            trace: Log every command and its exit status at DEBUG level
        """
        self.root = Path(root)
        self.command_timeout = command_timeout
        self.trace = trace

    def path(self, host_path: PathLike) -> Path:
        """Resolve an absolute host path below the probe root."""
        return self.root / str(host_path).lstrip("/")

    # Commands

    async def run(self, command: Sequence[str]) -> CommandResult:
        """Run a command asynchronously.

        Args:
            command: Command and arguments as list

        Returns:
            CommandResult; return code 127 if the command could not be started
        """
        try:
            process = await asyncio.create_subprocess_exec(
                *command,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
            try:
                stdout, stderr = await asyncio.wait_for(
                    process.communicate(),
                    timeout=self.command_timeout,
                )
            except BaseException:
                # Timed out here or cancelled by a check timeout; reap the child either way
                if process.returncode is None:
                    try:
                        process.kill()
                    except ProcessLookupError:
                        pass
                    await process.wait()
                raise
            result = CommandResult(
                returncode=process.returncode or 0,
                stdout=stdout.decode("utf-8", errors="replace"),
                stderr=stderr.decode("utf-8", errors="replace"),
            )
        except asyncio.TimeoutError:
            result = CommandResult(-1, "", f"Command timed out after {self.command_timeout} seconds")
        except (FileNotFoundError, PermissionError) as e:
            result = CommandResult(COMMAND_NOT_FOUND, "", str(e))

        if self.trace:
            logger.debug("+ %s -> %s", " ".join(command), result.returncode)
        return result

    def which(self, tool: str) -> Optional[str]:
        """Locate an executable on PATH."""
        return shutil.which(tool)

    # Files

    def read_text(self, host_path: PathLike) -> Optional[str]:
        """Read a file, or None if it is missing or unreadable."""
        try:
            return self.path(host_path).read_text(encoding="utf-8", errors="replace")
        except OSError:
            return None

    def read_lines(self, host_path: PathLike, strip_comments: bool = True) -> List[str]:
        """Read the meaningful lines of a config file.

        Args:
            host_path: File to read
            strip_comments: Drop blank lines and lines starting with '#'

        Returns:
            Stripped lines; empty if the file cannot be read
        """
        content = self.read_text(host_path)
        if content is None:
            return []
        lines = [line.strip() for line in content.splitlines()]
        if strip_comments:
            lines = [line for line in lines if line and not line.startswith("#")]
        return lines

    def exists(self, host_path: PathLike) -> bool:
        return self.path(host_path).exists()

    def is_file(self, host_path: PathLike) -> bool:
        return self.path(host_path).is_file()

    def is_dir(self, host_path: PathLike) -> bool:
        return self.path(host_path).is_dir()

    def is_symlink(self, host_path: PathLike) -> bool:
        return self.path(host_path).is_symlink()

    def stat(self, host_path: PathLike, follow_symlinks: bool = True) -> Optional[os.stat_result]:
        """Stat a file, or None if it does not exist."""
        try:
            return os.stat(self.path(host_path), follow_symlinks=follow_symlinks)
        except OSError:
            return None

    def glob(self, pattern: str) -> List[str]:
        """Expand a host glob pattern.

        Returns:
            Matching host paths (absolute, relative to the probe root), sorted
        """
        matches = globlib.glob(str(self.path(pattern)))
        return sorted(self._host_path(m) for m in matches)

    def _host_path(self, real_path: str) -> str:
        root = str(self.root).rstrip("/")
        return "/" + real_path[len(root):].lstrip("/")

    def expand(self, patterns: Sequence[str]) -> List[str]:
        """Expand several paths or glob patterns into existing files."""
        paths: List[str] = []
        for pattern in patterns:
            if any(c in pattern for c in "*?["):
                paths.extend(self.glob(pattern))
            elif self.is_file(pattern):
                paths.append(pattern)
        return paths

    def grep(self, pattern: str, patterns: Sequence[str], flags: int = 0) -> List[str]:
        """Find lines matching a regex across files.

        Args:
            pattern: Regular expression applied with re.search
            patterns: Files or glob patterns to search
            flags: re flags

        Returns:
            Matching lines (unstripped) in file order
        """
        regex = re.compile(pattern, flags)
        matches = []
        for host_path in self.expand(patterns):
            for line in self.read_lines(host_path, strip_comments=False):
                if regex.search(line):
                    matches.append(line)
        return matches

    # Packages and services

    async def package_installed(self, package: str) -> bool:
        """Check whether a Debian package is installed."""
        result = await self.run(["dpkg-query", "-W", "-f=${Status}", package])
        return result.ok and "install ok installed" in result.stdout

    async def service_state(self, unit: str) -> str:
        """Get the systemd enablement state of a unit (e.g. "enabled", "disabled")."""
        result = await self.run(["systemctl", "is-enabled", unit])
        lines = result.lines
        return lines[0] if lines else "not-found"

    # Kernel

    def sysctl(self, key: str) -> Optional[str]:
        """Read the running value of a kernel parameter."""
        content = self.read_text("/proc/sys/" + key.replace(".", "/"))
        if content is None:
            return None
        return " ".join(content.split())

    def sysctl_config_values(self, key: str) -> List[str]:
        """Values persisted for a kernel parameter across sysctl config files."""
        regex = re.compile(r"^\s*" + re.escape(key) + r"\s*=\s*(.*?)\s*$")
        values = []
        for host_path in self.expand(self.SYSCTL_CONFIG_PATTERNS):
            for line in self.read_lines(host_path):
                match = regex.match(line)
                if match:
                    values.append(" ".join(match.group(1).split()))
        return values

    def loaded_modules(self) -> Set[str]:
        """Names of the kernel modules currently loaded."""
        return {line.split()[0] for line in self.read_lines("/proc/modules") if line.split()}

    async def module_status(self, module: str) -> Tuple[bool, bool]:
        """Inspect a kernel module.

        Returns:
            Tuple of (loading_disabled, currently_loaded)
        """
        result = await self.run(["modprobe", "-n", "-v", module])
        lines = result.lines
        last = lines[-1] if lines else ""
        loading_disabled = bool(re.match(r"^install\s+/bin/(true|false)\b", last))
        loaded = module.replace("-", "_") in self.loaded_modules()
        return loading_disabled, loaded

    def mounts(self) -> List[MountEntry]:
        """Parse the mount table."""
        entries = []
        for line in self.read_lines("/proc/mounts"):
            fields = line.split()
            if len(fields) < 4:
                continue
            entries.append(MountEntry(
                device=fields[0],
                mountpoint=fields[1].replace("\\040", " "),
                fstype=fields[2],
                options=tuple(fields[3].split(",")),
            ))
        return entries

    def find_mount(self, mountpoint: str) -> Optional[MountEntry]:
        """Get the last mount of a mountpoint, which is the one in effect."""
        found = None
        for entry in self.mounts():
            if entry.mountpoint == mountpoint:
                found = entry
        return found

    def local_mountpoints(self) -> List[str]:
        """Mountpoints of local filesystems, the set ``df --local`` reports."""
        mountpoints = []
        for entry in self.mounts():
            if entry.fstype in self.NONLOCAL_FSTYPES or entry.mountpoint in mountpoints:
                continue
            mountpoints.append(entry.mountpoint)
        return sorted(mountpoints)

    def walk(self, top: str, same_device: bool = True) -> Iterator[Tuple[str, os.stat_result]]:
        """Yield (host path, lstat) for every entry below top.

        Symlinks are never followed. With same_device, entries on other
        filesystems are left out and not descended into, like ``find -xdev``.
        """
        real_top = str(self.path(top))
        try:
            top_device = os.lstat(real_top).st_dev
        except OSError:
            return

        for dirpath, dirnames, filenames in os.walk(real_top):
            descend = []
            for name in dirnames + filenames:
                full_path = os.path.join(dirpath, name)
                try:
                    st = os.lstat(full_path)
                except OSError:
                    continue
                if same_device and st.st_dev != top_device:
                    continue
                if name in dirnames and stat.S_ISDIR(st.st_mode):
                    descend.append(name)
                yield self._host_path(full_path), st
            dirnames[:] = descend

    async def find(
        self,
        predicate: Callable[[os.stat_result], bool],
        tops: Optional[Sequence[str]] = None,
    ) -> List[str]:
        """Search directory trees for entries matching predicate.

        The walk runs in the default executor so other checks keep running.

        Args:
            predicate: Called with the lstat result of each entry
            tops: Trees to search (default: every local filesystem, without
                crossing into other mounts)

        Returns:
            Sorted host paths of the matching entries
        """
        same_device = tops is None
        roots = self.local_mountpoints() if tops is None else list(tops)

        def search() -> List[str]:
            found: Set[str] = set()
            for top in roots:
                for host_path, st in self.walk(top, same_device=same_device):
                    if predicate(st):
                        found.add(host_path)
            return sorted(found)

        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, search)

    # Daemons

    async def sshd_settings(self) -> Dict[str, List[str]]:
        """Effective sshd configuration from ``sshd -T``.

        Returns:
            Lower-cased keyword -> list of values; empty if sshd is unavailable
        """
        result = await self.run(["sshd", "-T"])
        if not result.ok:
            return {}
        settings: Dict[str, List[str]] = {}
        for line in result.lines:
            keyword, _, value = line.partition(" ")
            settings.setdefault(keyword.lower(), []).append(value.strip())
        return settings

    async def audit_rules(self) -> List[str]:
        """Loaded audit rules from ``auditctl -l``."""
        result = await self.run(["auditctl", "-l"])
        return result.lines if result.ok else []

    async def listening_sockets(self) -> List[str]:
        """Local addresses (address:port) of listening TCP and UDP sockets."""
        result = await self.run(["ss", "-H", "-lntu"])
        sockets = []
        for line in result.lines:
            fields = line.split()
            if len(fields) >= 5:
                sockets.append(fields[4])
        return sockets

    async def listening_ports(self) -> Set[str]:
        """Ports with a listening TCP or UDP socket on any address."""
        return {address.rpartition(":")[2] for address in await self.listening_sockets()}

    # Accounts

    def passwd(self) -> List[PasswdEntry]:
        """Parse /etc/passwd, skipping malformed and NIS (+) lines."""
        entries = []
        for line in self.read_lines("/etc/passwd"):
            fields = line.split(":")
            if len(fields) != 7 or fields[0].startswith("+"):
                continue
            uid, gid = _optional_int(fields[2]), _optional_int(fields[3])
            if uid is None or gid is None:
                continue
            entries.append(PasswdEntry(fields[0], fields[1], uid, gid, fields[4], fields[5], fields[6]))
        return entries

    def group(self) -> List[GroupEntry]:
        """Parse /etc/group."""
        entries = []
        for line in self.read_lines("/etc/group"):
            fields = line.split(":")
            if len(fields) != 4 or fields[0].startswith("+"):
                continue
            gid = _optional_int(fields[2])
            if gid is None:
                continue
            members = tuple(m for m in fields[3].split(",") if m)
            entries.append(GroupEntry(fields[0], fields[1], gid, members))
        return entries

    def shadow(self) -> Optional[List[ShadowEntry]]:
        """Parse /etc/shadow, or None if it cannot be read."""
        content = self.read_text("/etc/shadow")
        if content is None:
            return None
        entries = []
        for line in content.splitlines():
            fields = line.strip().split(":")
            if len(fields) < 7 or not fields[0]:
                continue
            entries.append(ShadowEntry(
                name=fields[0],
                password=fields[1],
                last_change=_optional_int(fields[2]),
                min_days=_optional_int(fields[3]),
                max_days=_optional_int(fields[4]),
                warn_days=_optional_int(fields[5]),
                inactive_days=_optional_int(fields[6]),
            ))
        return entries

    def login_defs(self) -> Dict[str, str]:
        """Settings from /etc/login.defs."""
        settings = {}
        for line in self.read_lines("/etc/login.defs"):
            fields = line.split(None, 1)
            if len(fields) == 2:
                settings[fields[0]] = fields[1].strip()
        return settings
