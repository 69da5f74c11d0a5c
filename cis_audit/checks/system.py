"""System checks: boot security, process hardening, MAC, banners and updates."""

import logging
import re
from typing import List

from ..core.check import BaseCheck, Finding
from ..core.exceptions import CheckDataError
from ..core.host import COMMAND_NOT_FOUND, HostProbe
from .logging_audit import GRUB_CONFIG

logger = logging.getLogger(__name__)


class BootloaderPasswordCheck(BaseCheck):
    """Pass when grub.cfg sets a superuser and a password for it."""

    def describe(self) -> str:
        return "Ensure bootloader password is set"

    async def inspect(self, host: HostProbe) -> Finding:
        lines = host.read_lines(GRUB_CONFIG)
        if not lines:
            return Finding(False, f"{GRUB_CONFIG} could not be read")
        superusers = any(re.match(r"^set\s+superusers\s*=", line) for line in lines)
        password = any(re.match(r"^password(_pbkdf2)?\s+\S+\s+\S+", line) for line in lines)
        if superusers and password:
            return Finding(True)
        missing = [name for name, ok in (("superusers", superusers), ("password", password)) if not ok]
        return Finding(False, f"{GRUB_CONFIG} has no {' or '.join(missing)}")


class SingleUserAuthCheck(BaseCheck):
    """Pass when root has a password hash, so single user mode asks for it."""

    def describe(self) -> str:
        return "Ensure authentication required for single user mode"

    async def inspect(self, host: HostProbe) -> Finding:
        shadow = host.shadow()
        if shadow is None:
            raise CheckDataError("/etc/shadow could not be read")
        root = next((entry for entry in shadow if entry.name == "root"), None)
        if root is None:
            return Finding(False, "root has no shadow entry")
        if re.match(r"^\$[0-9a-z]+\$", root.password):
            return Finding(True)
        return Finding(False, "root has no password")


class CoreDumpsCheck(BaseCheck):
    """Pass when core dumps are limited to 0 and setuid programs cannot dump."""

    tools = ("sysctl",)
    LIMITS = ("/etc/security/limits.conf", "/etc/security/limits.d/*")

    def describe(self) -> str:
        return "Ensure core dumps are restricted"

    async def inspect(self, host: HostProbe) -> Finding:
        problems = []
        if not host.grep(r"^\s*\*\s+hard\s+core\s+0\s*(#.*)?$", self.LIMITS):
            problems.append("no '* hard core 0' limit")

        running = host.sysctl("fs.suid_dumpable")
        if running != "0":
            problems.append(f"fs.suid_dumpable = {running}")
        persisted = host.sysctl_config_values("fs.suid_dumpable")
        if not persisted or any(value != "0" for value in persisted):
            problems.append("fs.suid_dumpable is not persisted as 0")

        if problems:
            return Finding(False, "; ".join(problems))
        return Finding(True)


class BannerContentCheck(BaseCheck):
    """Pass when a login banner does not leak OS details through getty escapes or the OS name.

    Args:
        path: Banner file
        require_content: Fail when the banner is missing or empty
    """

    ESCAPES = re.compile(r"\\[mrsv]")

    def __init__(self, path: str, require_content: bool = True):
        self.path = path
        self.require_content = require_content

    def describe(self) -> str:
        return f"Ensure {self.path} is configured properly"

    def os_name(self, host: HostProbe) -> str:
        for line in host.read_lines("/etc/os-release"):
            if line.startswith("ID="):
                return line[3:].strip().strip('"')
        return ""

    async def inspect(self, host: HostProbe) -> Finding:
        content = host.read_text(self.path)
        if not content or not content.strip():
            if self.require_content:
                return Finding(False, f"{self.path} is missing or empty")
            return Finding(True, f"{self.path} is empty")

        if self.ESCAPES.search(content):
            return Finding(False, f"{self.path} contains getty escape sequences")
        name = self.os_name(host)
        if name and re.search(re.escape(name), content, re.IGNORECASE):
            return Finding(False, f"{self.path} mentions {name}")
        return Finding(True)


class AideScheduledCheck(BaseCheck):
    """Pass when aide runs from cron or from the aidecheck systemd timer."""

    tools = ("systemctl",)
    CRON_PATHS = (
        "/etc/crontab",
        "/etc/cron.d/*",
        "/etc/cron.hourly/*",
        "/etc/cron.daily/*",
        "/etc/cron.weekly/*",
        "/etc/cron.monthly/*",
        "/var/spool/cron/crontabs/*",
    )

    def describe(self) -> str:
        return "Ensure filesystem integrity is regularly checked"

    async def inspect(self, host: HostProbe) -> Finding:
        scheduled = host.grep(r"^[^#]*\baide\b", self.CRON_PATHS)
        if scheduled:
            return Finding(True, scheduled[0].strip())
        state = await host.service_state("aidecheck.timer")
        if state == "enabled":
            return Finding(True, "aidecheck.timer is enabled")
        return Finding(False, "aide is not scheduled")


class NXSupportCheck(BaseCheck):
    """Pass when the kernel reports NX protection active.

    Falls back to the CPU ``nx`` flag when the kernel log is unavailable.
    """

    tools = ("journalctl",)

    def describe(self) -> str:
        return "Ensure XD/NX support is enabled"

    async def inspect(self, host: HostProbe) -> Finding:
        result = await host.run(["journalctl", "-k", "--no-pager"])
        if result.ok and result.stdout:
            if re.search(r"NX \(Execute Disable\) protection: active", result.stdout):
                return Finding(True)
            if re.search(r"NX \(Execute Disable\) protection: disabled", result.stdout):
                return Finding(False, "NX protection is disabled")

        for line in host.read_lines("/proc/cpuinfo"):
            if line.startswith("flags"):
                has_nx = "nx" in line.split(":", 1)[-1].split()
                return Finding(has_nx, "CPU nx flag present" if has_nx else "CPU has no nx flag")
        raise CheckDataError("Neither the kernel log nor /proc/cpuinfo report NX status")


class AppArmorProfilesCheck(BaseCheck):
    """Pass when AppArmor profiles are loaded and no process is unconfined.

    With ``enforce_only`` no profile may be in complain mode either.
    """

    tools = ("apparmor_status",)

    def __init__(self, enforce_only: bool = False):
        self.enforce_only = enforce_only

    def describe(self) -> str:
        if self.enforce_only:
            return "Ensure all AppArmor Profiles are enforcing"
        return "Ensure all AppArmor Profiles are in enforce or complain mode"

    @staticmethod
    def _count(lines: List[str], pattern: str):
        for line in lines:
            match = re.match(r"^(\d+)\s+" + pattern, line)
            if match:
                return int(match.group(1))
        return None

    async def inspect(self, host: HostProbe) -> Finding:
        result = await host.run(["apparmor_status"])
        if result.returncode == COMMAND_NOT_FOUND:
            return Finding(False, "apparmor_status is not available")
        lines = result.lines

        loaded = self._count(lines, r"profiles are loaded")
        if loaded is None:
            raise CheckDataError("apparmor_status output has no profile count")

        problems = []
        if loaded == 0:
            problems.append("no profiles are loaded")
        unconfined = self._count(lines, r"processes are unconfined")
        if unconfined:
            problems.append(f"{unconfined} processes are unconfined")
        if self.enforce_only:
            complain = self._count(lines, r"profiles are in complain mode")
            if complain:
                problems.append(f"{complain} profiles are in complain mode")
        if problems:
            return Finding(False, "; ".join(problems))
        return Finding(True, f"{loaded} profiles loaded")


class GdmBannerCheck(BaseCheck):
    """Pass when the GDM greeter enables a login banner with text."""

    PATHS = ("/etc/gdm3/greeter.dconf-defaults", "/etc/dconf/db/gdm.d/*")

    def describe(self) -> str:
        return "Ensure GDM login banner is configured"

    async def inspect(self, host: HostProbe) -> Finding:
        enabled = host.grep(r"^\s*banner-message-enable\s*=\s*true\b", self.PATHS)
        text = host.grep(r"^\s*banner-message-text\s*=\s*\S+", self.PATHS)
        if enabled and text:
            return Finding(True)
        if not enabled:
            return Finding(False, "banner-message-enable is not true")
        return Finding(False, "banner-message-text is not set")


class SecurityUpdatesCheck(BaseCheck):
    """Pass when a simulated upgrade installs no packages from the security pocket."""

    tools = ("apt-get",)

    def describe(self) -> str:
        return "Ensure updates, patches, and additional security software are installed"

    async def inspect(self, host: HostProbe) -> Finding:
        result = await host.run(["apt-get", "-s", "upgrade"])
        if not result.ok:
            raise CheckDataError(f"apt-get -s upgrade failed: {result.stderr.strip() or result.returncode}")

        pending = [line.split()[1] for line in result.lines if line.startswith("Inst ") and "-security" in line]
        logger.debug("Pending security updates: %s", pending)
        if pending:
            shown = ", ".join(pending[:5])
            return Finding(False, f"{len(pending)} security updates pending: {shown}")
        return Finding(True)
