"""CIS Ubuntu 18.04 benchmark catalog.

Declares every section banner and check in benchmark order. Order matters:
checks are submitted in the order they are declared here.
"""

import re
from typing import List, Optional, Union

from ..core.check import BaseCheck, CheckSpec, ScoringClass, Section
from ..core.registry import CatalogEntry, CheckRegistry
from .access import (
    AccessRestrictedCheck,
    DefaultUmaskCheck,
    InactivePasswordLockCheck,
    LoginDefsCheck,
    PasswordQualityCheck,
    SSHDSettingCheck,
    SSHKeyPermissionsCheck,
    SuRestrictedCheck,
    all_in,
    at_most,
    in_range,
    max_startups,
    none_of,
    one_of,
)
from .accounts import (
    DotFilesCheck,
    DuplicateEntriesCheck,
    EmptyPasswordsCheck,
    ForbiddenUserFilesCheck,
    GroupsExistCheck,
    HomeDirectoriesCheck,
    PasswordChangeInPastCheck,
    RootGroupCheck,
    RootOnlyUID0Check,
    RootPathCheck,
    ShadowedPasswordsCheck,
    ShadowGroupEmptyCheck,
    SystemAccountsCheck,
)
from .common import (
    FilePermissionsCheck,
    PackageGatedCheck,
    PackageInstalledCheck,
    PackageNotInstalledCheck,
    ServiceEnabledCheck,
    SkipCheck,
)
from .filesystem import (
    AutomountDisabledCheck,
    KernelModuleDisabledCheck,
    MountOptionCheck,
    PartitionCheck,
    RemovableMediaOptionCheck,
    StickyBitCheck,
    UnownedFilesCheck,
    WorldWritableFilesCheck,
)
from .logging_audit import (
    AuditdConfCheck,
    AuditImmutableCheck,
    AuditRulesCheck,
    ConfigDirectiveCheck,
    GrubKernelArgumentCheck,
    LogfilePermissionsCheck,
    SyslogRemoteHostCheck,
)
from .network import (
    IPv6DisabledCheck,
    IptablesPolicyCheck,
    NftablesRulesetCheck,
    SysctlCheck,
    UfwOpenPortsCheck,
    UfwStatusCheck,
    WirelessDisabledCheck,
)
from .services import (
    ChronyConfiguredCheck,
    LocalOnlyMTACheck,
    NtpConfiguredCheck,
    ServerNotInstalledCheck,
    TimeSyncInUseCheck,
)
from .system import (
    AideScheduledCheck,
    AppArmorProfilesCheck,
    BannerContentCheck,
    BootloaderPasswordCheck,
    CoreDumpsCheck,
    GdmBannerCheck,
    NXSupportCheck,
    SecurityUpdatesCheck,
    SingleUserAuthCheck,
)

BENCHMARK_NAME = "CIS Ubuntu 18.04 Benchmark v2.1.0"

SYSCTL_PATHS = "/etc/sysctl.conf"
SUDOERS = ("/etc/sudoers", "/etc/sudoers.d/*")
RSYSLOG = ("/etc/rsyslog.conf", "/etc/rsyslog.d/*.conf")
JOURNALD = "/etc/systemd/journald.conf"
COMMON_PASSWORD = "/etc/pam.d/common-password"
GDM_GREETER = "/etc/gdm3/greeter.dconf-defaults"

WEAK_CIPHERS = (
    "3des-cbc", "aes128-cbc", "aes192-cbc", "aes256-cbc", "arcfour", "arcfour128",
    "arcfour256", "blowfish-cbc", "cast128-cbc", "rijndael-cbc@lysator.liu.se",
)
STRONG_MACS = (
    "hmac-sha2-512-etm@openssh.com", "hmac-sha2-256-etm@openssh.com",
    "umac-128-etm@openssh.com", "hmac-sha2-512", "hmac-sha2-256", "umac-128@openssh.com",
)
WEAK_KEX = (
    "diffie-hellman-group1-sha1", "diffie-hellman-group14-sha1",
    "diffie-hellman-group-exchange-sha1",
)

# (id, package, name, systemd unit, listening ports)
SPECIAL_PURPOSE_SERVERS = (
    ("2.1.3", "avahi-daemon", "Avahi Server", "avahi-daemon.service", (5353,)),
    ("2.1.4", "cups", "CUPS", "cups.service", (631,)),
    ("2.1.5", "isc-dhcp-server", "DHCP Server", "isc-dhcp-server.service", (67,)),
    ("2.1.6", "slapd", "LDAP server", "slapd.service", (389, 636)),
    ("2.1.8", "bind9", "DNS Server", "bind9.service", (53,)),
    ("2.1.9", "vsftpd", "FTP Server", "vsftpd.service", (21,)),
    ("2.1.10", "apache2", "HTTP server", "apache2.service", (80, 443)),
    ("2.1.11", "dovecot-imapd", "IMAP and POP3 server", "dovecot.service", (110, 143, 587, 993, 995)),
    ("2.1.12", "samba", "Samba", "smbd.service", (445,)),
    ("2.1.13", "squid", "HTTP Proxy Server", "squid.service", (3128, 80, 443)),
    ("2.1.14", "snmpd", "SNMP Server", "snmpd.service", (161,)),
)

# (id, level, key, rules, description)
AUDIT_RULES = (
    ("4.1.3", "time-change", (
        "-a always,exit -F arch=b64 -S adjtimex,settimeofday -F key=time-change",
        "-a always,exit -F arch=b32 -S stime,settimeofday,adjtimex -F key=time-change",
        "-a always,exit -F arch=b64 -S clock_settime -F key=time-change",
        "-a always,exit -F arch=b32 -S clock_settime -F key=time-change",
        "-w /etc/localtime -p wa -k time-change",
    ), "Ensure events that modify date and time information are collected"),
    ("4.1.4", "identity", (
        "-w /etc/group -p wa -k identity",
        "-w /etc/passwd -p wa -k identity",
        "-w /etc/gshadow -p wa -k identity",
        "-w /etc/shadow -p wa -k identity",
        "-w /etc/security/opasswd -p wa -k identity",
    ), "Ensure events that modify user/group information are collected"),
    ("4.1.5", "system-locale", (
        "-a always,exit -F arch=b64 -S sethostname,setdomainname -F key=system-locale",
        "-a always,exit -F arch=b32 -S sethostname,setdomainname -F key=system-locale",
        "-w /etc/issue -p wa -k system-locale",
        "-w /etc/issue.net -p wa -k system-locale",
        "-w /etc/hosts -p wa -k system-locale",
        "-w /etc/network -p wa -k system-locale",
    ), "Ensure events that modify the system's network environment are collected"),
    ("4.1.6", "MAC-policy", (
        "-w /etc/apparmor -p wa -k MAC-policy",
        "-w /etc/apparmor.d -p wa -k MAC-policy",
    ), "Ensure events that modify the system's Mandatory Access Controls are collected"),
    ("4.1.7", "logins", (
        "-w /var/log/faillog -p wa -k logins",
        "-w /var/log/lastlog -p wa -k logins",
        "-w /var/log/tallylog -p wa -k logins",
    ), "Ensure login and logout events are collected"),
    ("4.1.8", "session", (
        "-w /var/run/utmp -p wa -k session",
        "-w /var/log/wtmp -p wa -k logins",
        "-w /var/log/btmp -p wa -k logins",
    ), "Ensure session initiation information is collected"),
    ("4.1.9", "perm_mod", (
        "-a always,exit -F arch=b64 -S chmod,fchmod,fchmodat -F auid>=1000 -F auid!=-1 -F key=perm_mod",
        "-a always,exit -F arch=b32 -S chmod,fchmod,fchmodat -F auid>=1000 -F auid!=-1 -F key=perm_mod",
        "-a always,exit -F arch=b64 -S chown,fchown,lchown,fchownat -F auid>=1000 -F auid!=-1 -F key=perm_mod",
        "-a always,exit -F arch=b32 -S lchown,fchown,chown,fchownat -F auid>=1000 -F auid!=-1 -F key=perm_mod",
        "-a always,exit -F arch=b64 -S setxattr,lsetxattr,fsetxattr,removexattr,lremovexattr,fremovexattr"
        " -F auid>=1000 -F auid!=-1 -F key=perm_mod",
        "-a always,exit -F arch=b32 -S setxattr,lsetxattr,fsetxattr,removexattr,lremovexattr,fremovexattr"
        " -F auid>=1000 -F auid!=-1 -F key=perm_mod",
    ), "Ensure discretionary access control permission modification events are collected"),
    ("4.1.10", "access", (
        "-a always,exit -F arch=b64 -S open,truncate,ftruncate,creat,openat -F exit=-EACCES"
        " -F auid>=1000 -F auid!=-1 -F key=access",
        "-a always,exit -F arch=b32 -S open,creat,truncate,ftruncate,openat -F exit=-EACCES"
        " -F auid>=1000 -F auid!=-1 -F key=access",
        "-a always,exit -F arch=b64 -S open,truncate,ftruncate,creat,openat -F exit=-EPERM"
        " -F auid>=1000 -F auid!=-1 -F key=access",
        "-a always,exit -F arch=b32 -S open,creat,truncate,ftruncate,openat -F exit=-EPERM"
        " -F auid>=1000 -F auid!=-1 -F key=access",
    ), "Ensure unsuccessful unauthorized file access attempts are collected"),
)

AUDIT_RULES_LATE = (
    ("4.1.12", "mounts", (
        "-a always,exit -F arch=b64 -S mount -F auid>=1000 -F auid!=-1 -F key=mounts",
        "-a always,exit -F arch=b32 -S mount -F auid>=1000 -F auid!=-1 -F key=mounts",
    ), "Ensure successful file system mounts are collected"),
    ("4.1.13", "delete", (
        "-a always,exit -F arch=b64 -S rename,unlink,unlinkat,renameat -F auid>=1000 -F auid!=-1 -F key=delete",
        "-a always,exit -F arch=b32 -S unlink,rename,unlinkat,renameat -F auid>=1000 -F auid!=-1 -F key=delete",
    ), "Ensure file deletion events by users are collected"),
    ("4.1.14", "scope", (
        "-w /etc/sudoers -p wa -k scope",
        "-w /etc/sudoers.d -p wa -k scope",
    ), "Ensure changes to system administration scope (sudoers) is collected"),
    ("4.1.15", "actions", (
        "-a always,exit -F arch=b64 -S execve -C uid!=euid -F euid=0 -F auid>=1000 -F auid!=-1 -F key=actions",
        "-a always,exit -F arch=b32 -S execve -C uid!=euid -F euid=0 -F auid>=1000 -F auid!=-1 -F key=actions",
    ), "Ensure system administrator command executions (sudo) are collected"),
    ("4.1.16", "modules", (
        "-w /sbin/insmod -p x -k modules",
        "-w /sbin/rmmod -p x -k modules",
        "-w /sbin/modprobe -p x -k modules",
        "-a always,exit -F arch=b64 -S init_module,delete_module -F key=modules",
    ), "Ensure kernel module loading and unloading is collected"),
)


def section(section_id: str, title: str) -> Section:
    return Section(section_id, title)


def check(
    check_id: str,
    level: int,
    procedure: BaseCheck,
    description: Optional[str] = None,
    scored: Union[bool, ScoringClass] = True,
) -> CheckSpec:
    """Bind a procedure to a benchmark id.

    Args:
        check_id: Benchmark id, e.g. "1.1.2"
        level: Benchmark level (1 or 2)
        procedure: Check instance with its parameters bound
        description: Row text (default: the procedure's own description)
        scored: True/False for Scored/Not Scored, or an explicit ScoringClass

    Returns:
        CheckSpec for the registry
    """
    if isinstance(scored, ScoringClass):
        scoring_class = scored
    else:
        scoring_class = ScoringClass.SCORED if scored else ScoringClass.NOT_SCORED
    return CheckSpec(check_id, level, scoring_class, description or procedure.describe(), procedure)


def skip(check_id: str, level: int, description: str, reason: str = "Not audited automatically") -> CheckSpec:
    """Declare a benchmark item that is reported as Skipped."""
    return CheckSpec(check_id, level, ScoringClass.SKIPPED, description, SkipCheck(reason))


def sysctl_pair(check_id: str, protocol: str, name: str, value: str, description: str) -> CheckSpec:
    return check(check_id, 1, SysctlCheck.pair(protocol, name, value, description))


def sysctl_single(check_id: str, protocol: str, name: str, value: str, description: str) -> CheckSpec:
    return check(check_id, 1, SysctlCheck.single(protocol, name, value, description))


def sshd(check_id: str, description: str, level: int = 1, **conditions) -> CheckSpec:
    return check(check_id, level, SSHDSettingCheck(conditions, description))


def _initial_setup() -> List[CatalogEntry]:
    entries: List[CatalogEntry] = [
        section("1", "Initial Setup"),
        section("1.1", "Filesystem Configuration"),
        section("1.1.1", "Disable unused filesystems"),
    ]
    for i, module in enumerate(("cramfs", "freevxfs", "jffs2", "hfs", "hfsplus", "udf"), start=1):
        entries.append(check(f"1.1.1.{i}", 1, KernelModuleDisabledCheck(module)))

    entries += [
        check("1.1.2", 1, PartitionCheck("/tmp"), "Ensure /tmp is configured"),
        check("1.1.3", 1, MountOptionCheck("/tmp", "nodev")),
        check("1.1.4", 1, MountOptionCheck("/tmp", "nosuid")),
        check("1.1.5", 1, MountOptionCheck("/tmp", "noexec")),
        check("1.1.6", 1, PartitionCheck("/dev/shm"), "Ensure /dev/shm is configured"),
        check("1.1.7", 1, MountOptionCheck("/dev/shm", "nodev")),
        check("1.1.8", 1, MountOptionCheck("/dev/shm", "nosuid")),
        check("1.1.9", 1, MountOptionCheck("/dev/shm", "noexec")),
        check("1.1.10", 2, PartitionCheck("/var")),
        check("1.1.11", 2, PartitionCheck("/var/tmp")),
        check("1.1.12", 1, MountOptionCheck("/var/tmp", "nodev")),
        check("1.1.13", 1, MountOptionCheck("/var/tmp", "nosuid")),
        check("1.1.14", 1, MountOptionCheck("/var/tmp", "noexec")),
        check("1.1.15", 2, PartitionCheck("/var/log")),
        check("1.1.16", 2, PartitionCheck("/var/log/audit")),
        check("1.1.17", 2, PartitionCheck("/home")),
        check("1.1.18", 1, MountOptionCheck("/home", "nodev")),
        check("1.1.19", 1, RemovableMediaOptionCheck("nodev"), scored=False),
        check("1.1.20", 1, RemovableMediaOptionCheck("nosuid"), scored=False),
        check("1.1.21", 1, RemovableMediaOptionCheck("noexec"), scored=False),
        check("1.1.22", 1, StickyBitCheck()),
        check("1.1.23", 1, AutomountDisabledCheck()),
        check("1.1.24", 1, KernelModuleDisabledCheck("usb-storage", "Disable USB Storage")),

        section("1.2", "Configure Software Updates"),
        skip("1.2.1", 1, "Ensure package manager repositories are configured"),
        skip("1.2.2", 1, "Ensure GPG keys are configured"),

        section("1.3", "Filesystem Integrity Checking"),
        check("1.3.1", 1, PackageInstalledCheck(("aide", "aide-common"), "AIDE")),
        check("1.3.2", 1, AideScheduledCheck()),

        section("1.4", "Secure Boot Settings"),
        check("1.4.1", 1, FilePermissionsCheck("/boot/grub/grub.cfg", "400"),
              "Ensure permissions on bootloader config are not overridden"),
        check("1.4.2", 1, BootloaderPasswordCheck()),
        check("1.4.3", 1, FilePermissionsCheck("/boot/grub/grub.cfg", "400"),
              "Ensure permissions on bootloader config are configured"),
        check("1.4.4", 1, SingleUserAuthCheck()),

        section("1.5", "Additional Process Hardening"),
        check("1.5.1", 1, NXSupportCheck(), scored=False),
        check("1.5.2", 1, SysctlCheck(
            ["kernel.randomize_va_space"], "2",
            "Ensure address space layout randomization (ASLR) is enabled",
            require_persisted=False,
        )),
        check("1.5.3", 1, PackageNotInstalledCheck("prelink"), "Ensure prelink is disabled"),
        check("1.5.4", 1, CoreDumpsCheck()),

        section("1.6", "Mandatory Access Control"),
        section("1.6.1", "Configure AppArmor"),
        check("1.6.1.1", 1, PackageInstalledCheck("apparmor", "AppArmor")),
        check("1.6.1.2", 1, GrubKernelArgumentCheck(
            ["apparmor=1", "security=apparmor"],
            "Ensure AppArmor is enabled in the bootloader configuration",
        )),
        check("1.6.1.3", 1, AppArmorProfilesCheck()),
        check("1.6.1.4", 2, AppArmorProfilesCheck(enforce_only=True)),
        skip("1.6.2", 2, "Ensure SELinux is installed", "Not applicable on Ubuntu"),

        section("1.7", "Command Line Warning Banners"),
        check("1.7.1", 1, BannerContentCheck("/etc/motd", require_content=False),
              "Ensure message of the day is configured properly"),
        check("1.7.2", 1, FilePermissionsCheck("/etc/issue.net", "644")),
        check("1.7.3", 1, FilePermissionsCheck("/etc/issue", "644")),
        check("1.7.4", 1, FilePermissionsCheck("/etc/motd", "644")),
        check("1.7.5", 1, BannerContentCheck("/etc/issue.net"),
              "Ensure remote login warning banner is configured properly", scored=False),
        check("1.7.6", 1, BannerContentCheck("/etc/issue"),
              "Ensure local login warning banner is configured properly", scored=False),

        section("1.8", "GNOME Display Manager"),
        check("1.8.1", 2, PackageNotInstalledCheck("gdm3", "GNOME Display Manager"),
              "Ensure GNOME Display Manager is removed"),
        check("1.8.2", 1, PackageGatedCheck("gdm3", GdmBannerCheck(), absent_passes=True)),
        check("1.8.3", 1, PackageGatedCheck("gdm3", ConfigDirectiveCheck(
            GDM_GREETER, r"^\s*disable-user-list\s*=\s*true\b", "Ensure disable-user-list is enabled",
        ), absent_passes=True)),
        check("1.8.4", 1, ConfigDirectiveCheck(
            "/etc/gdm3/custom.conf", r"^\s*Enable\s*=\s*true\b", "Ensure XDCMP is not enabled",
            present=False, flags=re.IGNORECASE,
        )),
        check("1.9", 1, SecurityUpdatesCheck()),
    ]
    return entries


def _services() -> List[CatalogEntry]:
    entries: List[CatalogEntry] = [
        section("2", "Services"),
        section("2.1", "Special Purpose Services"),
        section("2.1.1", "Time Synchronization"),
        check("2.1.1.1", 1, TimeSyncInUseCheck(), scored=False),
        check("2.1.1.2", 1, ServiceEnabledCheck("systemd-timesyncd"),
              "Ensure systemd-timesyncd is configured", scored=False),
        check("2.1.1.3", 1, ChronyConfiguredCheck()),
        check("2.1.1.4", 1, NtpConfiguredCheck()),
        check("2.1.2", 1, PackageNotInstalledCheck("xserver-xorg*", "X Window System")),
    ]

    servers = {server[0]: server for server in SPECIAL_PURPOSE_SERVERS}
    for number in range(3, 18):
        check_id = f"2.1.{number}"
        if check_id in servers:
            _, package, name, unit, ports = servers[check_id]
            entries.append(check(check_id, 1, ServerNotInstalledCheck(package, name, unit, ports)))
        elif check_id == "2.1.7":
            entries.append(check(check_id, 1, PackageNotInstalledCheck("nfs-kernel-server", "NFS")))
        elif check_id == "2.1.15":
            entries.append(check(check_id, 1, LocalOnlyMTACheck()))
        elif check_id == "2.1.16":
            entries.append(check(check_id, 1, ServerNotInstalledCheck("rsync", "rsync service", "rsync.service", (873,))))
        elif check_id == "2.1.17":
            entries.append(check(check_id, 1, ServerNotInstalledCheck("nis", "NIS Server")))

    entries += [
        section("2.2", "Service Clients"),
        check("2.2.1", 1, PackageNotInstalledCheck("nis", "NIS Client")),
        check("2.2.2", 1, PackageNotInstalledCheck("rsh-client", "rsh client")),
        check("2.2.3", 1, PackageNotInstalledCheck("talk", "talk client")),
        check("2.2.4", 1, PackageNotInstalledCheck("telnet", "telnet client")),
        check("2.2.5", 1, PackageNotInstalledCheck("ldap-utils", "LDAP client")),
        check("2.2.6", 1, PackageNotInstalledCheck("rpcbind", "RPC")),
        skip("2.3", 1, "Ensure nonessential services are removed or masked", "Depends on site policy"),
    ]
    return entries


def _network() -> List[CatalogEntry]:
    return [
        section("3", "Network Configuration"),
        section("3.1", "Disable unused network protocols and devices"),
        check("3.1.1", 2, IPv6DisabledCheck()),
        check("3.1.2", 1, WirelessDisabledCheck(), scored=False),

        section("3.2", "Network Parameters (Host Only)"),
        sysctl_pair("3.2.1", "ipv4", "send_redirects", "0", "Ensure packet redirect sending is disabled"),
        sysctl_single("3.2.2", "ipv4", "ip_forward", "0", "Ensure IP forwarding is disabled"),

        section("3.3", "Network Parameters (Host and Router)"),
        sysctl_pair("3.3.1", "ipv4", "accept_source_route", "0", "Ensure source routed packets are not accepted"),
        sysctl_pair("3.3.2", "ipv4", "accept_redirects", "0", "Ensure ICMP redirects are not accepted"),
        sysctl_pair("3.3.3", "ipv4", "secure_redirects", "0", "Ensure secure ICMP redirects are not accepted"),
        sysctl_pair("3.3.4", "ipv4", "log_martians", "1", "Ensure suspicious packets are logged"),
        sysctl_single("3.3.5", "ipv4", "icmp_echo_ignore_broadcasts", "1", "Ensure broadcast ICMP requests are ignored"),
        sysctl_single("3.3.6", "ipv4", "icmp_ignore_bogus_error_responses", "1", "Ensure bogus ICMP responses are ignored"),
        sysctl_pair("3.3.7", "ipv4", "rp_filter", "1", "Ensure Reverse Path Filtering is enabled"),
        sysctl_single("3.3.8", "ipv4", "tcp_syncookies", "1", "Ensure TCP SYN Cookies is enabled"),
        sysctl_pair("3.3.9", "ipv6", "accept_ra", "0", "Ensure IPv6 router advertisements are not accepted"),

        section("3.4", "Uncommon Network Protocols"),
        check("3.4.1", 2, KernelModuleDisabledCheck("dccp", "Ensure DCCP is disabled")),
        check("3.4.2", 2, KernelModuleDisabledCheck("sctp", "Ensure SCTP is disabled")),
        check("3.4.3", 2, KernelModuleDisabledCheck("rds", "Ensure RDS is disabled")),
        check("3.4.4", 2, KernelModuleDisabledCheck("tipc", "Ensure TIPC is disabled")),

        section("3.5", "Firewall Configuration"),
        section("3.5.1", "Configure Uncomplicated Firewall"),
        check("3.5.1.1", 1, PackageInstalledCheck("ufw")),
        check("3.5.1.2", 1, PackageNotInstalledCheck("iptables-persistent"),
              "Ensure iptables-persistent is not installed with ufw", scored=False),
        check("3.5.1.3", 1, ServiceEnabledCheck("ufw")),
        check("3.5.1.4", 1, UfwStatusCheck(
            [
                r"^Anywhere on lo\s+ALLOW IN\s+Anywhere",
                r"^Anywhere\s+DENY IN\s+127\.0\.0\.0/8",
                r"^Anywhere\s+ALLOW OUT\s+Anywhere on lo",
            ],
            "Ensure ufw loopback traffic is configured",
        )),
        check("3.5.1.5", 1, UfwStatusCheck(
            [r"^Status: active", r"\bALLOW OUT\b"],
            "Ensure ufw outbound connections are configured",
        )),
        check("3.5.1.6", 1, UfwOpenPortsCheck()),
        check("3.5.1.7", 1, UfwStatusCheck(
            [r"^Default: (deny|reject) \(incoming\), (deny|reject) \(outgoing\), (deny|reject|disabled) \(routed\)"],
            "Ensure ufw default deny firewall policy",
        )),

        section("3.5.2", "Configure nftables"),
        check("3.5.2.1", 1, PackageInstalledCheck("nftables"), scored=False),
        check("3.5.2.2", 1, UfwStatusCheck(
            [r"^Status: inactive"], "Ensure ufw is uninstalled or disabled with nftables", pass_if_missing=True,
        ), scored=False),
        check("3.5.2.3", 1, IptablesPolicyCheck(
            "iptables", "flushed", "Ensure iptables are flushed with nftables",
        ), scored=False),
        check("3.5.2.4", 1, NftablesRulesetCheck(
            [r"^table\s+\S+"], "Ensure a nftables table exists", command=("nft", "list", "tables"),
        ), scored=False),
        check("3.5.2.5", 1, NftablesRulesetCheck(
            [r"\bhook input\b", r"\bhook forward\b", r"\bhook output\b"], "Ensure nftables base chains exist",
        ), scored=False),
        check("3.5.2.6", 1, NftablesRulesetCheck(
            [r'iif "lo" accept', r"ip saddr 127\.0\.0\.0/8 .*drop", r"ip6 saddr ::1 .*drop"],
            "Ensure nftables loopback traffic is configured",
            chains=["input"],
        ), scored=False),
        check("3.5.2.7", 1, NftablesRulesetCheck(
            [r"ip protocol (tcp|udp|icmp) ct state"],
            "Ensure nftables outbound and established connections are configured",
            chains=["input", "output"],
        ), scored=False),
        check("3.5.2.8", 1, NftablesRulesetCheck(
            [r"hook input .*policy drop", r"hook forward .*policy drop", r"hook output .*policy drop"],
            "Ensure nftables default deny firewall policy",
        ), scored=False),
        check("3.5.2.9", 1, ServiceEnabledCheck("nftables")),
        check("3.5.2.10", 1, ConfigDirectiveCheck(
            "/etc/nftables.conf", r'^\s*include\s+"\S+"', "Ensure nftables rules are permanent",
        )),

        section("3.5.3", "Configure iptables"),
        section("3.5.3.1", "Configure iptables software"),
        check("3.5.3.1.1", 1, PackageInstalledCheck(("iptables", "iptables-persistent"), "iptables packages"),
              "Ensure iptables packages are installed", scored=False),
        check("3.5.3.1.2", 1, PackageNotInstalledCheck("nftables"), "Ensure nftables is not installed with iptables"),
        check("3.5.3.1.3", 1, UfwStatusCheck(
            [r"^Status: inactive"], "Ensure ufw is uninstalled or disabled with iptables", pass_if_missing=True,
        ), scored=False),
        section("3.5.3.2", "Configure IPv4 iptables"),
        check("3.5.3.2.1", 1, IptablesPolicyCheck(
            "iptables", "policy", "Ensure iptables default deny firewall policy"), scored=False),
        check("3.5.3.2.2", 1, IptablesPolicyCheck(
            "iptables", "loopback", "Ensure iptables loopback traffic is configured"), scored=False),
        skip("3.5.3.2.3", 1, "Ensure iptables outbound and established connections are configured"),
        skip("3.5.3.2.4", 1, "Ensure iptables firewall rules exist for all open ports"),
        section("3.5.3.3", "Configure IPv6 ip6tables"),
        check("3.5.3.3.1", 1, IptablesPolicyCheck(
            "ip6tables", "policy", "Ensure ip6tables default deny firewall policy"), scored=False),
        check("3.5.3.3.2", 1, IptablesPolicyCheck(
            "ip6tables", "loopback", "Ensure ip6tables loopback traffic is configured"), scored=False),
        skip("3.5.3.3.3", 1, "Ensure ip6tables outbound and established connections are configured"),
        skip("3.5.3.3.4", 1, "Ensure ip6tables firewall rules exist for all open ports"),
    ]


def _logging_and_auditing() -> List[CatalogEntry]:
    entries: List[CatalogEntry] = [
        section("4", "Logging and Auditing"),
        section("4.1", "Configure System Accounting (auditd)"),
        section("4.1.1", "Ensure auditing is enabled"),
        check("4.1.1.1", 2, PackageInstalledCheck(("auditd", "audispd-plugins"), "auditd"), scored=False),
        check("4.1.1.2", 2, ServiceEnabledCheck("auditd")),
        check("4.1.1.3", 2, GrubKernelArgumentCheck(
            "audit=1", "Ensure auditing for processes that start prior to auditd is enabled"), scored=False),
        check("4.1.1.4", 2, GrubKernelArgumentCheck(
            r"audit_backlog_limit=(819[2-9]|8[2-9]\d\d|9\d{3}|[1-9]\d{4,})",
            "Ensure audit_backlog_limit is sufficient"), scored=False),
        section("4.1.2", "Configure Data Retention"),
        check("4.1.2.1", 2, AuditdConfCheck(
            {"max_log_file": r"\d+"}, "Ensure audit log storage size is configured"), scored=False),
        check("4.1.2.2", 2, AuditdConfCheck(
            {"max_log_file_action": "keep_logs"}, "Ensure audit logs are not automatically deleted")),
        check("4.1.2.3", 2, AuditdConfCheck(
            {"space_left_action": "email", "action_mail_acct": "root", "admin_space_left_action": "halt"},
            "Ensure system is disabled when audit logs are full",
        )),
    ]
    for check_id, key, rules, description in AUDIT_RULES:
        entries.append(check(check_id, 2, AuditRulesCheck(key, rules, description)))
    entries.append(skip("4.1.11", 2, "Ensure use of privileged commands is collected"))
    for check_id, key, rules, description in AUDIT_RULES_LATE:
        entries.append(check(check_id, 2, AuditRulesCheck(key, rules, description)))

    entries += [
        check("4.1.17", 2, AuditImmutableCheck()),

        section("4.2", "Configure Logging"),
        section("4.2.1", "Configure rsyslog"),
        check("4.2.1.1", 1, PackageGatedCheck("rsyslog", PackageInstalledCheck("rsyslog"))),
        check("4.2.1.2", 1, PackageGatedCheck("rsyslog", ServiceEnabledCheck("rsyslog"))),
        skip("4.2.1.3", 1, "Ensure logging is configured"),
        check("4.2.1.4", 1, PackageGatedCheck("rsyslog", ConfigDirectiveCheck(
            RSYSLOG, r"^\s*\$FileCreateMode\s+0?[0-6][0-4]0\b", "Ensure rsyslog default file permissions configured",
        ))),
        check("4.2.1.5", 1, PackageGatedCheck("rsyslog", SyslogRemoteHostCheck()), scored=False),
        skip("4.2.1.6", 1, "Ensure remote rsyslog messages are only accepted on designated log hosts"),
        section("4.2.2", "Configure journald"),
        check("4.2.2.1", 1, PackageGatedCheck("systemd", ConfigDirectiveCheck(
            JOURNALD, r"^\s*ForwardToSyslog\s*=\s*yes\b", "Ensure journald is configured to send logs to rsyslog",
        ))),
        check("4.2.2.2", 1, PackageGatedCheck("systemd", ConfigDirectiveCheck(
            JOURNALD, r"^\s*Compress\s*=\s*yes\b", "Ensure journald is configured to compress large log files",
        ))),
        check("4.2.2.3", 1, PackageGatedCheck("systemd", ConfigDirectiveCheck(
            JOURNALD, r"^\s*Storage\s*=\s*persistent\b",
            "Ensure journald is configured to write logfiles to persistent disk",
        ))),
        check("4.2.3", 1, LogfilePermissionsCheck()),
        skip("4.3", 1, "Ensure logrotate is configured"),
        check("4.4", 1, ConfigDirectiveCheck(
            ("/etc/logrotate.conf", "/etc/logrotate.d/*"),
            r"^\s*create\s+(?!0?[0-6][04]0\b)\S+",
            "Ensure logrotate assigns appropriate permissions",
            present=False,
        ), scored=False),
    ]
    return entries


def _access() -> List[CatalogEntry]:
    cron_dirs = ("/etc/cron.hourly", "/etc/cron.daily", "/etc/cron.weekly", "/etc/cron.monthly", "/etc/cron.d")
    entries: List[CatalogEntry] = [
        section("5", "Access, Authentication and Authorization"),
        section("5.1", "Configure time-based job schedulers"),
        check("5.1.1", 1, ServiceEnabledCheck("cron", "cron daemon"), "Ensure cron daemon is enabled and running"),
        check("5.1.2", 1, FilePermissionsCheck("/etc/crontab", "600")),
    ]
    for number, path in enumerate(cron_dirs, start=3):
        entries.append(check(f"5.1.{number}", 1, FilePermissionsCheck(path, "700")))

    entries += [
        check("5.1.8", 1, AccessRestrictedCheck("cron")),
        check("5.1.9", 1, AccessRestrictedCheck("at")),

        section("5.2", "Configure sudo"),
        check("5.2.1", 1, PackageInstalledCheck("sudo")),
        check("5.2.2", 1, ConfigDirectiveCheck(
            SUDOERS, r"^\s*Defaults\s+([^#]+,\s*)?use_pty\b", "Ensure sudo commands use pty")),
        check("5.2.3", 1, ConfigDirectiveCheck(
            SUDOERS, r"^\s*Defaults\s+([^#]+,\s*)?logfile=", "Ensure sudo log file exists")),

        section("5.3", "Configure SSH Server"),
        check("5.3.1", 1, FilePermissionsCheck("/etc/ssh/sshd_config", "600")),
        check("5.3.2", 1, SSHKeyPermissionsCheck("private")),
        check("5.3.3", 1, SSHKeyPermissionsCheck("public")),
        skip("5.3.4", 1, "Ensure SSH access is limited"),
        sshd("5.3.5", "Ensure SSH LogLevel is appropriate", loglevel=one_of("INFO", "VERBOSE")),
        sshd("5.3.6", "Ensure SSH X11 forwarding is disabled", x11forwarding=one_of("no")),
        sshd("5.3.7", "Ensure SSH MaxAuthTries is set to 4 or less", maxauthtries=at_most(4)),
        sshd("5.3.8", "Ensure SSH IgnoreRhosts is enabled", ignorerhosts=one_of("yes")),
        sshd("5.3.9", "Ensure SSH HostbasedAuthentication is disabled", hostbasedauthentication=one_of("no")),
        sshd("5.3.10", "Ensure SSH root login is disabled", permitrootlogin=one_of("no")),
        sshd("5.3.11", "Ensure SSH PermitEmptyPasswords is disabled", permitemptypasswords=one_of("no")),
        sshd("5.3.12", "Ensure SSH PermitUserEnvironment is disabled", permituserenvironment=one_of("no")),
        sshd("5.3.13", "Ensure only strong Ciphers are used", ciphers=none_of(*WEAK_CIPHERS)),
        sshd("5.3.14", "Ensure only strong MAC algorithms are used", macs=all_in(*STRONG_MACS)),
        sshd("5.3.15", "Ensure only strong Key Exchange algorithms are used", kexalgorithms=none_of(*WEAK_KEX)),
        sshd(
            "5.3.16", "Ensure SSH Idle Timeout Interval is configured",
            clientaliveinterval=in_range(1, 300), clientalivecountmax=at_most(3),
        ),
        sshd("5.3.17", "Ensure SSH LoginGraceTime is set to one minute or less", logingracetime=in_range(1, 60)),
        sshd("5.3.18", "Ensure SSH warning banner is configured", banner=one_of("/etc/issue.net")),
        sshd("5.3.19", "Ensure SSH PAM is enabled", usepam=one_of("yes")),
        sshd("5.3.20", "Ensure SSH AllowTcpForwarding is disabled", level=2, allowtcpforwarding=one_of("no")),
        sshd("5.3.21", "Ensure SSH MaxStartups is configured", maxstartups=max_startups(10, 30, 60)),
        sshd("5.3.22", "Ensure SSH MaxSessions is limited", maxsessions=at_most(10)),

        section("5.4", "Configure PAM"),
        check("5.4.1", 1, PasswordQualityCheck()),
        skip("5.4.2", 1, "Ensure lockout for failed password attempts is configured"),
        check("5.4.3", 1, ConfigDirectiveCheck(
            COMMON_PASSWORD,
            r"^\s*password\s+required\s+pam_pwhistory\.so\s+([^#]+\s+)?remember=([5-9]|[1-9][0-9]+)\b",
            "Ensure password reuse is limited",
        )),
        check("5.4.4", 1, ConfigDirectiveCheck(
            COMMON_PASSWORD,
            r"^\s*password\s+(\[success=1\s+default=ignore\]|required)\s+pam_unix\.so\s+([^#]+\s+)?sha512\b",
            "Ensure password hashing algorithm is SHA-512",
        )),

        section("5.5", "User Accounts and Environment"),
        section("5.5.1", "Set Shadow Password Suite Parameters"),
        check("5.5.1.1", 1, LoginDefsCheck(
            "PASS_MIN_DAYS", 1, "min", "min_days", "Ensure minimum days between password changes is configured")),
        check("5.5.1.2", 1, LoginDefsCheck(
            "PASS_MAX_DAYS", 365, "max", "max_days", "Ensure password expiration is 365 days or less")),
        check("5.5.1.3", 1, LoginDefsCheck(
            "PASS_WARN_AGE", 7, "min", "warn_days", "Ensure password expiration warning days is 7 or more")),
        check("5.5.1.4", 1, InactivePasswordLockCheck(30)),
        check("5.5.1.5", 1, PasswordChangeInPastCheck()),
        check("5.5.2", 1, SystemAccountsCheck()),
        check("5.5.3", 1, RootGroupCheck()),
        check("5.5.4", 1, DefaultUmaskCheck()),
        skip("5.5.5", 1, "Ensure default user shell timeout is 900 seconds or less"),
        skip("5.6", 1, "Ensure root login is restricted to system console"),
        check("5.7", 1, SuRestrictedCheck()),
    ]
    return entries


def _system_maintenance() -> List[CatalogEntry]:
    entries: List[CatalogEntry] = [
        section("6", "System Maintenance"),
        section("6.1", "System File Permissions"),
        skip("6.1.1", 1, "Audit system file permissions"),
    ]
    permissions = (
        ("/etc/passwd", "644"), ("/etc/passwd-", "644"), ("/etc/group", "644"), ("/etc/group-", "644"),
        ("/etc/shadow", "640"), ("/etc/shadow-", "640"), ("/etc/gshadow", "640"), ("/etc/gshadow-", "640"),
    )
    for number, (path, limit) in enumerate(permissions, start=2):
        entries.append(check(f"6.1.{number}", 1, FilePermissionsCheck(path, limit)))

    entries += [
        check("6.1.10", 1, WorldWritableFilesCheck()),
        check("6.1.11", 1, UnownedFilesCheck("user")),
        check("6.1.12", 1, UnownedFilesCheck("group")),
        skip("6.1.13", 1, "Audit SUID executables"),
        skip("6.1.14", 1, "Audit SGID executables"),

        section("6.2", "User and Group Settings"),
        check("6.2.1", 1, ShadowedPasswordsCheck()),
        check("6.2.2", 1, EmptyPasswordsCheck()),
        check("6.2.3", 1, GroupsExistCheck()),
        check("6.2.4", 1, HomeDirectoriesCheck("exist")),
        check("6.2.5", 1, HomeDirectoriesCheck("owned")),
        check("6.2.6", 1, HomeDirectoriesCheck("permissions")),
        check("6.2.7", 1, DotFilesCheck()),
        check("6.2.8", 1, ForbiddenUserFilesCheck(".netrc")),
        check("6.2.9", 1, ForbiddenUserFilesCheck(".forward")),
        check("6.2.10", 1, ForbiddenUserFilesCheck(".rhosts")),
        check("6.2.11", 1, RootOnlyUID0Check()),
        check("6.2.12", 1, RootPathCheck()),
        check("6.2.13", 1, DuplicateEntriesCheck("passwd", "uid")),
        check("6.2.14", 1, DuplicateEntriesCheck("group", "gid")),
        check("6.2.15", 1, DuplicateEntriesCheck("passwd", "name")),
        check("6.2.16", 1, DuplicateEntriesCheck("group", "name")),
        check("6.2.17", 1, ShadowGroupEmptyCheck()),
    ]
    return entries


def build_catalog() -> CheckRegistry:
    """Build the full benchmark catalog.

    Returns:
        CheckRegistry holding sections 1 to 6 in benchmark order
    """
    registry = CheckRegistry(benchmark=BENCHMARK_NAME)
    for part in (_initial_setup, _services, _network, _logging_and_auditing, _access, _system_maintenance):
        registry.register_all(part())
    return registry
