"""Filesystem checks: kernel modules, partitions, mount options and file ownership."""

import logging
import stat
from typing import Optional

from ..core.check import BaseCheck, Finding
from ..core.exceptions import CheckDataError
from ..core.host import HostProbe

logger = logging.getLogger(__name__)

# Number of offending paths quoted in a failure message
MAX_REPORTED_PATHS = 5


def paths_message(paths, what: str) -> str:
    """Summarize offending paths, e.g. "3 world-writable files: /a, /b, /c"."""
    shown = ", ".join(paths[:MAX_REPORTED_PATHS])
    more = f" (+{len(paths) - MAX_REPORTED_PATHS} more)" if len(paths) > MAX_REPORTED_PATHS else ""
    return f"{len(paths)} {what}: {shown}{more}"


class KernelModuleDisabledCheck(BaseCheck):
    """Pass when a kernel module cannot be loaded and is not currently loaded.

    Loading counts as disabled when ``modprobe -n -v`` resolves the module to
    ``install /bin/true`` (or ``/bin/false``).
    """

    tools = ("modprobe",)

    def __init__(self, module: str, description: Optional[str] = None):
        self.module = module
        self.description = description

    def describe(self) -> str:
        return self.description or f"Ensure mounting of {self.module} filesystems is disabled"

    async def inspect(self, host: HostProbe) -> Finding:
        loading_disabled, loaded = await host.module_status(self.module)
        problems = []
        if not loading_disabled:
            problems.append("can be loaded")
        if loaded:
            problems.append("is loaded")
        if problems:
            return Finding(False, f"{self.module} {' and '.join(problems)}")
        return Finding(True)


class PartitionCheck(BaseCheck):
    """Pass when a directory is a separate mount."""

    def __init__(self, mountpoint: str):
        self.mountpoint = mountpoint

    def describe(self) -> str:
        return f"Ensure separate partition exists for {self.mountpoint}"

    async def inspect(self, host: HostProbe) -> Finding:
        entry = host.find_mount(self.mountpoint)
        if entry is None:
            return Finding(False, f"{self.mountpoint} is not a separate mount")
        return Finding(True, f"{self.mountpoint} is mounted from {entry.device} ({entry.fstype})")


class MountOptionCheck(BaseCheck):
    """Pass when a mount is in effect with the given option."""

    def __init__(self, mountpoint: str, option: str):
        self.mountpoint = mountpoint
        self.option = option

    def describe(self) -> str:
        return f"Ensure {self.option} option set on {self.mountpoint} partition"

    async def inspect(self, host: HostProbe) -> Finding:
        entry = host.find_mount(self.mountpoint)
        if entry is None:
            return Finding(False, f"{self.mountpoint} is not a separate mount")
        if self.option not in entry.options:
            return Finding(False, f"{self.mountpoint} is mounted {','.join(entry.options)}")
        return Finding(True)


class RemovableMediaOptionCheck(BaseCheck):
    """Pass when every mounted USB partition carries the given option."""

    tools = ("lsblk",)

    def __init__(self, option: str):
        self.option = option

    def describe(self) -> str:
        return f"Ensure {self.option} option set on removable media partitions"

    async def inspect(self, host: HostProbe) -> Finding:
        result = await host.run(["lsblk", "-pnlS", "-o", "NAME,TRAN"])
        if not result.ok:
            raise CheckDataError(f"Could not list block devices: {result.stderr.strip()}")

        devices = [line.split()[0] for line in result.lines if line.split()[-1] == "usb"]
        mounts = {entry.device: entry for entry in host.mounts()}
        missing = []
        for device in devices:
            partitions = await host.run(["lsblk", "-nlp", "-o", "NAME", device])
            for name in partitions.lines:
                entry = mounts.get(name)
                if entry is not None and self.option not in entry.options:
                    missing.append(f"{name} on {entry.mountpoint}")

        if missing:
            return Finding(False, f"Missing {self.option}: {', '.join(missing)}")
        return Finding(True, f"{len(devices)} removable devices inspected")


class StickyBitCheck(BaseCheck):
    """Pass when every world-writable directory on local filesystems has the sticky bit."""

    def describe(self) -> str:
        return "Ensure sticky bit is set on all world-writable directories"

    async def inspect(self, host: HostProbe) -> Finding:
        def unprotected(st) -> bool:
            return (
                stat.S_ISDIR(st.st_mode)
                and bool(st.st_mode & stat.S_IWOTH)
                and not st.st_mode & stat.S_ISVTX
            )

        paths = await host.find(unprotected)
        if paths:
            return Finding(False, paths_message(paths, "world-writable directories without sticky bit"))
        return Finding(True)


class AutomountDisabledCheck(BaseCheck):
    """Pass when the autofs service is not enabled."""

    tools = ("systemctl",)

    def describe(self) -> str:
        return "Disable Automounting"

    async def inspect(self, host: HostProbe) -> Finding:
        state = await host.service_state("autofs")
        return Finding(state != "enabled", f"autofs is {state}")


class WorldWritableFilesCheck(BaseCheck):
    """Pass when no regular file on local filesystems is world-writable."""

    def describe(self) -> str:
        return "Ensure no world writable files exist"

    async def inspect(self, host: HostProbe) -> Finding:
        paths = await host.find(lambda st: stat.S_ISREG(st.st_mode) and bool(st.st_mode & stat.S_IWOTH))
        if paths:
            return Finding(False, paths_message(paths, "world-writable files"))
        return Finding(True)


class UnownedFilesCheck(BaseCheck):
    """Pass when every file belongs to a known user (or group)."""

    def __init__(self, kind: str = "user"):
        if kind not in ("user", "group"):
            raise ValueError(f"kind must be 'user' or 'group', not {kind!r}")
        self.kind = kind

    def describe(self) -> str:
        if self.kind == "user":
            return "Ensure no unowned files or directories exist"
        return "Ensure no ungrouped files or directories exist"

    async def inspect(self, host: HostProbe) -> Finding:
        if self.kind == "user":
            known = {entry.uid for entry in host.passwd()}
        else:
            known = {entry.gid for entry in host.group()}
        if not known:
            raise CheckDataError(f"No {self.kind} database could be read")

        if self.kind == "user":
            paths = await host.find(lambda st: st.st_uid not in known)
        else:
            paths = await host.find(lambda st: st.st_gid not in known)
        if paths:
            return Finding(False, paths_message(paths, f"entries without a {self.kind}"))
        return Finding(True)
