"""Tests for check procedures against a fake host."""

import datetime
import os
import pytest
import tempfile

from cis_audit.checks.access import (
    AccessRestrictedCheck,
    DefaultUmaskCheck,
    InactivePasswordLockCheck,
    LoginDefsCheck,
    SSHDSettingCheck,
    all_in,
    at_most,
    in_range,
    max_startups,
    none_of,
    one_of,
)
from cis_audit.checks.accounts import (
    DuplicateEntriesCheck,
    EmptyPasswordsCheck,
    ForbiddenUserFilesCheck,
    HomeDirectoriesCheck,
    PasswordChangeInPastCheck,
    RootOnlyUID0Check,
    ShadowGroupEmptyCheck,
    SystemAccountsCheck,
)
from cis_audit.checks.common import (
    FilePermissionsCheck,
    PackageGatedCheck,
    PackageInstalledCheck,
    PackageNotInstalledCheck,
    ServiceEnabledCheck,
    SkipCheck,
)
from cis_audit.checks.filesystem import (
    KernelModuleDisabledCheck,
    MountOptionCheck,
    PartitionCheck,
    RemovableMediaOptionCheck,
    StickyBitCheck,
    UnownedFilesCheck,
    WorldWritableFilesCheck,
)
from cis_audit.checks.logging_audit import (
    AuditdConfCheck,
    AuditImmutableCheck,
    AuditRulesCheck,
    ConfigDirectiveCheck,
    GrubKernelArgumentCheck,
    LogfilePermissionsCheck,
    SyslogRemoteHostCheck,
)
from cis_audit.checks.network import IptablesPolicyCheck, SysctlCheck, UfwStatusCheck
from cis_audit.checks.services import (
    ChronyConfiguredCheck,
    LocalOnlyMTACheck,
    NtpConfiguredCheck,
    ServerNotInstalledCheck,
    TimeSyncInUseCheck,
)
from cis_audit.checks.system import BannerContentCheck, BootloaderPasswordCheck, CoreDumpsCheck
from cis_audit.core.check import Outcome, ScoringClass

from fakes import FakeHost, run_check

PASSWD = (
    "root:x:0:0:root:/root:/bin/bash\n"
    "daemon:x:1:1:daemon:/usr/sbin:/usr/sbin/nologin\n"
    "sync:x:4:65534:sync:/bin:/bin/sync\n"
    "alice:x:1000:1000:Alice:/home/alice:/bin/bash\n"
)
GROUP = "root:x:0:\nshadow:x:42:\nalice:x:1000:\n"
SHADOW = (
    "root:$6$salt$hash:18000:1:365:7:30::\n"
    "daemon:*:18000:0:99999:7:::\n"
    "alice:$6$salt$hash:18000:1:365:7:30::\n"
)


def outcome(procedure, host):
    return run_check(procedure, host).outcome


class TestCommonChecks:
    """Tests for package, service and permission checks."""

    def test_package_installed(self):
        """Test every named package must be installed."""
        with tempfile.TemporaryDirectory() as tmpdir:
            host = FakeHost(tmpdir).install("aide")
            check = PackageInstalledCheck(("aide", "aide-common"), "AIDE")

            result = run_check(check, host)
            assert result.outcome == Outcome.FAIL
            assert result.message == "Not installed: aide-common"

            host.install("aide-common")
            assert outcome(check, host) == Outcome.PASS
            assert check.describe() == "Ensure AIDE is installed"

    def test_package_not_installed(self):
        """Test a missing dpkg-query reads as not installed."""
        with tempfile.TemporaryDirectory() as tmpdir:
            host = FakeHost(tmpdir)
            assert outcome(PackageNotInstalledCheck("telnet"), host) == Outcome.PASS
            host.install("telnet")
            assert outcome(PackageNotInstalledCheck("telnet"), host) == Outcome.FAIL

    def test_service_enabled(self):
        """Test the unit must report enabled."""
        with tempfile.TemporaryDirectory() as tmpdir:
            host = FakeHost(tmpdir).service("cron", "enabled")
            assert outcome(ServiceEnabledCheck("cron"), host) == Outcome.PASS
            host.service("cron", "disabled")
            result = run_check(ServiceEnabledCheck("cron"), host)
            assert result.outcome == Outcome.FAIL
            assert result.message == "cron is disabled"

    def test_skip_check(self):
        """Test manual items are always Skipped."""
        with tempfile.TemporaryDirectory() as tmpdir:
            result = run_check(SkipCheck(), FakeHost(tmpdir))
            assert result.label == "Skipped"
            assert result.message == "Not audited automatically"

    def test_package_gated(self):
        """Test a gated check is Skipped, or passes, without its package."""
        with tempfile.TemporaryDirectory() as tmpdir:
            host = FakeHost(tmpdir)
            inner = ConfigDirectiveCheck("/etc/rsyslog.conf", r"^\$FileCreateMode\s+0[0-6][0-4]0", "mode")

            result = run_check(PackageGatedCheck("rsyslog", inner), host)
            assert result.scoring_class == ScoringClass.SKIPPED
            assert result.message == "rsyslog is not installed"

            assert outcome(PackageGatedCheck("rsyslog", inner, absent_passes=True), host) == Outcome.PASS

            host.install("rsyslog")
            assert outcome(PackageGatedCheck("rsyslog", inner), host) == Outcome.FAIL
            host.write("/etc/rsyslog.conf", "$FileCreateMode 0640\n")
            assert outcome(PackageGatedCheck("rsyslog", inner), host) == Outcome.PASS

    def test_file_permissions_too_open(self):
        """Test a permission digit above the limit fails."""
        with tempfile.TemporaryDirectory() as tmpdir:
            host = FakeHost(tmpdir)
            host.write("/etc/passwd", PASSWD, mode=0o666)
            result = run_check(FilePermissionsCheck("/etc/passwd", "644"), host)
            assert result.outcome == Outcome.FAIL
            assert "mode 0666" in result.message

    def test_file_permissions_missing(self):
        """Test a missing file fails."""
        with tempfile.TemporaryDirectory() as tmpdir:
            result = run_check(FilePermissionsCheck("/etc/shadow", "640"), FakeHost(tmpdir))
            assert result.outcome == Outcome.FAIL
            assert result.message == "/etc/shadow does not exist"

    @pytest.mark.skipif(os.geteuid() != 0, reason="needs root-owned files")
    def test_file_permissions_pass(self):
        """Test a root owned file within the limit passes."""
        with tempfile.TemporaryDirectory() as tmpdir:
            host = FakeHost(tmpdir)
            host.write("/etc/passwd", PASSWD, mode=0o644)
            os.chown(host.path("/etc/passwd"), 0, 0)
            assert outcome(FilePermissionsCheck("/etc/passwd", "644"), host) == Outcome.PASS

    def test_file_permissions_limit_format(self):
        """Test the limit needs three digits."""
        with pytest.raises(ValueError):
            FilePermissionsCheck("/etc/passwd", "0644")


class TestFilesystemChecks:
    """Tests for kernel module, mount and file search checks."""

    def test_module_disabled(self):
        """Test modprobe must resolve to /bin/true and the module must not be loaded."""
        with tempfile.TemporaryDirectory() as tmpdir:
            host = FakeHost(tmpdir).on("modprobe", "-n", "-v", "cramfs", stdout="install /bin/true \n")
            host.write("/proc/modules", "ext4 737280 1 - Live 0x0\n")
            assert outcome(KernelModuleDisabledCheck("cramfs"), host) == Outcome.PASS

            host.write("/proc/modules", "cramfs 16384 0 - Live 0x0\n")
            result = run_check(KernelModuleDisabledCheck("cramfs"), host)
            assert result.outcome == Outcome.FAIL
            assert result.message == "cramfs is loaded"

    def test_module_without_modprobe(self):
        """Test a module counts as loadable when modprobe is unavailable."""
        with tempfile.TemporaryDirectory() as tmpdir:
            result = run_check(KernelModuleDisabledCheck("udf"), FakeHost(tmpdir))
            assert result.outcome == Outcome.FAIL
            assert result.message == "udf can be loaded"

    def test_partition_and_mount_options(self):
        """Test separate mounts and their options."""
        with tempfile.TemporaryDirectory() as tmpdir:
            host = FakeHost(tmpdir)
            host.write(
                "/proc/mounts",
                "/dev/sda1 / ext4 rw,relatime 0 0\n"
                "tmpfs /tmp tmpfs rw,nosuid,nodev,relatime 0 0\n",
            )

            assert outcome(PartitionCheck("/tmp"), host) == Outcome.PASS
            assert outcome(PartitionCheck("/var"), host) == Outcome.FAIL
            assert outcome(MountOptionCheck("/tmp", "nodev"), host) == Outcome.PASS
            result = run_check(MountOptionCheck("/tmp", "noexec"), host)
            assert result.outcome == Outcome.FAIL
            assert result.message == "/tmp is mounted rw,nosuid,nodev,relatime"

    def test_removable_media(self):
        """Test mounted USB partitions need the option."""
        with tempfile.TemporaryDirectory() as tmpdir:
            host = FakeHost(tmpdir)
            host.on("lsblk", "-pnlS", "-o", "NAME,TRAN", stdout="/dev/sda sata\n/dev/sdb usb\n")
            host.on("lsblk", "-nlp", "-o", "NAME", "/dev/sdb", stdout="/dev/sdb\n/dev/sdb1\n")
            host.write("/proc/mounts", "/dev/sdb1 /media/usb vfat rw,nosuid 0 0\n")

            result = run_check(RemovableMediaOptionCheck("nodev"), host)
            assert result.outcome == Outcome.FAIL
            assert result.message == "Missing nodev: /dev/sdb1 on /media/usb"
            assert outcome(RemovableMediaOptionCheck("nosuid"), host) == Outcome.PASS

    def test_removable_media_without_lsblk(self):
        """Test an unusable lsblk is an Error."""
        with tempfile.TemporaryDirectory() as tmpdir:
            assert outcome(RemovableMediaOptionCheck("noexec"), FakeHost(tmpdir)) == Outcome.ERROR

    def test_sticky_bit(self):
        """Test world-writable directories need the sticky bit."""
        with tempfile.TemporaryDirectory() as tmpdir:
            host = FakeHost(tmpdir)
            host.write("/proc/mounts", "/dev/sda1 / ext4 rw 0 0\n")
            host.mkdir("/srv/drop", mode=0o777)

            result = run_check(StickyBitCheck(), host)
            assert result.outcome == Outcome.FAIL
            assert "/srv/drop" in result.message

            os.chmod(host.path("/srv/drop"), 0o1777)
            assert outcome(StickyBitCheck(), host) == Outcome.PASS

    def test_world_writable_files(self):
        """Test world-writable regular files are reported."""
        with tempfile.TemporaryDirectory() as tmpdir:
            host = FakeHost(tmpdir)
            host.write("/proc/mounts", "/dev/sda1 / ext4 rw 0 0\n")
            host.write("/data/report.txt", "ok")
            assert outcome(WorldWritableFilesCheck(), host) == Outcome.PASS

            host.write("/data/shared.txt", "open", mode=0o666)
            result = run_check(WorldWritableFilesCheck(), host)
            assert result.outcome == Outcome.FAIL
            assert result.message == "1 world-writable files: /data/shared.txt"

    def test_unowned_files_without_passwd(self):
        """Test an unreadable user database is an Error."""
        with tempfile.TemporaryDirectory() as tmpdir:
            assert outcome(UnownedFilesCheck("user"), FakeHost(tmpdir)) == Outcome.ERROR


class TestNetworkChecks:
    """Tests for kernel parameter and firewall checks."""

    def test_sysctl_runtime_and_persisted(self):
        """Test the running value and every persisted value must match."""
        with tempfile.TemporaryDirectory() as tmpdir:
            host = FakeHost(tmpdir)
            check = SysctlCheck.single("ipv4", "ip_forward", "0", "Ensure IP forwarding is disabled")
            host.write("/proc/sys/net/ipv4/ip_forward", "0\n")

            result = run_check(check, host)
            assert result.outcome == Outcome.FAIL
            assert result.message == "net.ipv4.ip_forward is not set in sysctl configuration"

            host.write("/etc/sysctl.conf", "net.ipv4.ip_forward = 0\n")
            assert outcome(check, host) == Outcome.PASS

            host.write("/etc/sysctl.d/99-router.conf", "net.ipv4.ip_forward=1\n")
            result = run_check(check, host)
            assert result.outcome == Outcome.FAIL
            assert result.message == "net.ipv4.ip_forward is configured as 1"

    def test_sysctl_pair(self):
        """Test pair checks cover the all and default keys."""
        check = SysctlCheck.pair("ipv4", "send_redirects", "0", "Ensure packet redirect sending is disabled")
        assert check.keys == ("net.ipv4.conf.all.send_redirects", "net.ipv4.conf.default.send_redirects")

        with tempfile.TemporaryDirectory() as tmpdir:
            host = FakeHost(tmpdir)
            host.write("/proc/sys/net/ipv4/conf/all/send_redirects", "0\n")
            host.write(
                "/etc/sysctl.d/60-net.conf",
                "net.ipv4.conf.all.send_redirects = 0\nnet.ipv4.conf.default.send_redirects = 0\n",
            )
            result = run_check(check, host)
            assert result.outcome == Outcome.FAIL
            assert result.message == "net.ipv4.conf.default.send_redirects is not available"

    def test_ufw_missing(self):
        """Test a missing ufw only passes when allowed."""
        with tempfile.TemporaryDirectory() as tmpdir:
            host = FakeHost(tmpdir)
            assert outcome(UfwStatusCheck([r"^Status: active"], "active"), host) == Outcome.FAIL
            assert outcome(UfwStatusCheck([r"^Status: inactive"], "inactive", pass_if_missing=True), host) == Outcome.PASS

            host.on("ufw", "status", "verbose", stdout="Status: active\nDefault: deny (incoming)\n")
            assert outcome(UfwStatusCheck([r"^Status: active"], "active"), host) == Outcome.PASS

    def test_iptables_policy(self):
        """Test every built-in chain must default to DROP."""
        with tempfile.TemporaryDirectory() as tmpdir:
            host = FakeHost(tmpdir)
            check = IptablesPolicyCheck("iptables", "policy", "Ensure default deny firewall policy")
            assert outcome(check, host) == Outcome.ERROR

            host.on("iptables", "-L", "-n", "-v", stdout=(
                "Chain INPUT (policy DROP 0 packets, 0 bytes)\n"
                "Chain FORWARD (policy DROP 0 packets, 0 bytes)\n"
                "Chain OUTPUT (policy ACCEPT 0 packets, 0 bytes)\n"
            ))
            result = run_check(check, host)
            assert result.outcome == Outcome.FAIL
            assert result.message == "Default policy is not DROP for OUTPUT"

    def test_iptables_mode(self):
        """Test unknown modes are rejected."""
        with pytest.raises(ValueError):
            IptablesPolicyCheck("iptables", "open", "bad")


class TestServiceChecks:
    """Tests for server, time synchronisation and MTA checks."""

    def test_server_absent(self):
        """Test an absent server package passes."""
        with tempfile.TemporaryDirectory() as tmpdir:
            check = ServerNotInstalledCheck("slapd", "LDAP server", "slapd", ports=(389, 636))
            assert outcome(check, FakeHost(tmpdir)) == Outcome.PASS

    def test_server_installed_and_listening(self):
        """Test an installed server must be disabled and not listening."""
        with tempfile.TemporaryDirectory() as tmpdir:
            host = FakeHost(tmpdir).install("slapd").service("slapd", "disabled")
            check = ServerNotInstalledCheck("slapd", "LDAP server", "slapd", ports=(389, 636))

            result = run_check(check, host)
            assert result.outcome == Outcome.PASS
            assert result.message == "slapd is installed but inactive"

            host.on("ss", "-H", "-lntu", stdout="tcp LISTEN 0 128 0.0.0.0:389 0.0.0.0:*\n")
            result = run_check(check, host)
            assert result.outcome == Outcome.FAIL
            assert result.message == "slapd is installed; listening on 389"

    def test_time_sync(self):
        """Test timesyncd counts when neither ntp nor chrony is installed."""
        with tempfile.TemporaryDirectory() as tmpdir:
            host = FakeHost(tmpdir)
            assert outcome(TimeSyncInUseCheck(), host) == Outcome.FAIL
            host.service("systemd-timesyncd", "enabled")
            assert outcome(TimeSyncInUseCheck(), host) == Outcome.PASS

    def test_ntp_skipped_without_package(self):
        """Test ntp configuration is Skipped when ntp is absent."""
        with tempfile.TemporaryDirectory() as tmpdir:
            result = run_check(NtpConfiguredCheck(), FakeHost(tmpdir))
            assert result.scoring_class == ScoringClass.SKIPPED

    def test_chrony_configured(self):
        """Test chrony needs a source and the _chrony user."""
        with tempfile.TemporaryDirectory() as tmpdir:
            host = FakeHost(tmpdir).install("chrony")
            host.on("ps", "-C", "chronyd", "-o", "user=", stdout="_chrony\n")
            assert outcome(ChronyConfiguredCheck(), host) == Outcome.FAIL

            host.write("/etc/chrony/chrony.conf", "pool ntp.ubuntu.com iburst maxsources 4\n")
            assert outcome(ChronyConfiguredCheck(), host) == Outcome.PASS

            host.on("ps", "-C", "chronyd", "-o", "user=", stdout="root\n")
            result = run_check(ChronyConfiguredCheck(), host)
            assert result.message == "chronyd runs as root"

    def test_local_only_mta(self):
        """Test SMTP may only listen on loopback."""
        with tempfile.TemporaryDirectory() as tmpdir:
            host = FakeHost(tmpdir)
            host.on("ss", "-H", "-lntu", stdout=(
                "tcp LISTEN 0 100 127.0.0.1:25 0.0.0.0:*\n"
                "tcp LISTEN 0 100 [::1]:25 [::]:*\n"
            ))
            assert outcome(LocalOnlyMTACheck(), host) == Outcome.PASS

            host.on("ss", "-H", "-lntu", stdout="tcp LISTEN 0 100 0.0.0.0:25 0.0.0.0:*\n")
            result = run_check(LocalOnlyMTACheck(), host)
            assert result.outcome == Outcome.FAIL
            assert result.message == "SMTP listening on 0.0.0.0:25"


class TestLoggingChecks:
    """Tests for auditd, rsyslog and log file checks."""

    def test_grub_kernel_argument(self):
        """Test every kernel line needs the argument."""
        with tempfile.TemporaryDirectory() as tmpdir:
            host = FakeHost(tmpdir)
            check = GrubKernelArgumentCheck("audit=1", "Ensure auditing for processes that start prior to auditd")
            assert outcome(check, host) == Outcome.FAIL

            host.write("/boot/grub/grub.cfg", (
                "linux /boot/vmlinuz-4.15 root=/dev/sda1 ro audit=1\n"
                "linux /boot/vmlinuz-4.15 root=/dev/sda1 ro recovery\n"
            ))
            result = run_check(check, host)
            assert result.outcome == Outcome.FAIL
            assert result.message == "1 of 2 kernel lines lack audit=1"

    def test_audit_rules(self):
        """Test rules are compared with whitespace normalized."""
        with tempfile.TemporaryDirectory() as tmpdir:
            host = FakeHost(tmpdir)
            check = AuditRulesCheck("identity", [
                "-w /etc/group -p wa -k identity",
                "-w /etc/passwd -p wa -k identity",
            ], "Ensure events that modify user/group information are collected")
            assert outcome(check, host) == Outcome.ERROR

            host.on("auditctl", "-l", stdout="-w /etc/group  -p wa -k identity\n")
            result = run_check(check, host)
            assert result.outcome == Outcome.FAIL
            assert result.message == "1 of 2 identity rules not loaded"

            host.on("auditctl", "-l", stdout=(
                "-w /etc/group -p wa -k identity\n"
                "-w /etc/passwd -p wa -k identity\n"
                "-w /etc/shadow -p wa -k identity\n"
            ))
            assert outcome(check, host) == Outcome.PASS

    def test_audit_immutable(self):
        """Test the last rule must be -e 2."""
        with tempfile.TemporaryDirectory() as tmpdir:
            host = FakeHost(tmpdir)
            host.write("/etc/audit/rules.d/50-time.rules", "-a always,exit -F arch=b64 -S adjtimex\n")
            assert outcome(AuditImmutableCheck(), host) == Outcome.FAIL
            host.write("/etc/audit/rules.d/99-finalize.rules", "# lock\n-e 2\n")
            assert outcome(AuditImmutableCheck(), host) == Outcome.PASS

    def test_auditd_conf(self):
        """Test auditd.conf values are matched case-insensitively."""
        with tempfile.TemporaryDirectory() as tmpdir:
            host = FakeHost(tmpdir)
            check = AuditdConfCheck({"max_log_file_action": "keep_logs"}, "Ensure audit logs are not automatically deleted")
            assert outcome(check, host) == Outcome.FAIL
            host.write("/etc/audit/auditd.conf", "max_log_file_action = KEEP_LOGS\n")
            assert outcome(check, host) == Outcome.PASS

    def test_config_directive_absent(self):
        """Test present=False fails when the pattern matches."""
        with tempfile.TemporaryDirectory() as tmpdir:
            host = FakeHost(tmpdir)
            check = ConfigDirectiveCheck("/etc/ssh/sshd_config", r"^PermitEmptyPasswords\s+yes", "empty", present=False)
            assert outcome(check, host) == Outcome.PASS
            host.write("/etc/ssh/sshd_config", "# PermitEmptyPasswords yes\nPermitEmptyPasswords yes\n")
            assert outcome(check, host) == Outcome.FAIL

    def test_syslog_remote_host(self):
        """Test forwarding with @@host is recognised."""
        with tempfile.TemporaryDirectory() as tmpdir:
            host = FakeHost(tmpdir)
            assert outcome(SyslogRemoteHostCheck(), host) == Outcome.FAIL
            host.write("/etc/rsyslog.d/50-remote.conf", "*.* @@loghost.example.com\n")
            assert outcome(SyslogRemoteHostCheck(), host) == Outcome.PASS

    def test_logfile_permissions(self):
        """Test log files may not be group writable or readable by others."""
        with tempfile.TemporaryDirectory() as tmpdir:
            host = FakeHost(tmpdir)
            host.write("/var/log/syslog", "", mode=0o640)
            assert outcome(LogfilePermissionsCheck(), host) == Outcome.PASS

            host.write("/var/log/app.log", "", mode=0o644)
            result = run_check(LogfilePermissionsCheck(), host)
            assert result.outcome == Outcome.FAIL
            assert "/var/log/app.log" in result.message


class TestAccessChecks:
    """Tests for sshd, cron and password policy checks."""

    def test_sshd_settings(self):
        """Test every keyword must satisfy its predicate."""
        with tempfile.TemporaryDirectory() as tmpdir:
            host = FakeHost(tmpdir)
            check = SSHDSettingCheck(
                {"PermitRootLogin": one_of("no"), "MaxAuthTries": at_most(4)},
                "Ensure SSH root login is disabled",
            )
            result = run_check(check, host)
            assert result.outcome == Outcome.FAIL
            assert result.message == "sshd -T returned no settings"

            host.on("sshd", "-T", stdout="permitrootlogin no\nmaxauthtries 4\n")
            assert outcome(check, host) == Outcome.PASS

            host.on("sshd", "-T", stdout="permitrootlogin no\nmaxauthtries 6\n")
            result = run_check(check, host)
            assert result.outcome == Outcome.FAIL
            assert result.message == "maxauthtries 6"

    def test_predicates(self):
        """Test the sshd value predicates."""
        assert max_startups(10, 30, 60)("10:30:60")
        assert not max_startups(10, 30, 60)("10:30:100")
        assert max_startups(10, 30, 60)("10")
        assert in_range(1, 300)("300")
        assert not in_range(1, 300)("0")
        assert all_in("hmac-sha2-512", "hmac-sha2-256")("hmac-sha2-512,hmac-sha2-256")
        assert not all_in("hmac-sha2-512")("hmac-sha2-512,hmac-md5")
        assert none_of("3des-cbc")("aes256-ctr,aes128-ctr")
        assert not none_of("3des-cbc")("aes256-ctr,3des-cbc")
        assert one_of("no", "prohibit-password")("No")

    def test_cron_restricted(self):
        """Test a deny file fails and the allow file must exist."""
        with tempfile.TemporaryDirectory() as tmpdir:
            host = FakeHost(tmpdir)
            host.write("/etc/cron.deny", "")
            result = run_check(AccessRestrictedCheck("cron"), host)
            assert result.outcome == Outcome.FAIL
            assert result.message == "/etc/cron.deny exists; /etc/cron.allow does not exist"

    def test_login_defs(self):
        """Test the default and each password-bearing account are bounded."""
        with tempfile.TemporaryDirectory() as tmpdir:
            host = FakeHost(tmpdir)
            check = LoginDefsCheck("PASS_MAX_DAYS", 365, "max", "max_days", "Ensure password expiration is 365 days or less")
            assert outcome(check, host) == Outcome.ERROR

            host.write("/etc/login.defs", "PASS_MAX_DAYS 365\n")
            host.write("/etc/shadow", SHADOW)
            assert outcome(check, host) == Outcome.PASS

            host.write("/etc/shadow", SHADOW + "bob:$6$salt$hash:18000:1:99999:7:30::\n")
            result = run_check(check, host)
            assert result.outcome == Outcome.FAIL
            assert result.message == "max_days out of range for bob"

    def test_inactive_lock(self):
        """Test the useradd default and every account lock within 30 days."""
        with tempfile.TemporaryDirectory() as tmpdir:
            host = FakeHost(tmpdir).on("useradd", "-D", stdout="GROUP=100\nINACTIVE=30\n")
            host.write("/etc/shadow", SHADOW)
            assert outcome(InactivePasswordLockCheck(), host) == Outcome.PASS

            host.on("useradd", "-D", stdout="GROUP=100\nINACTIVE=-1\n")
            result = run_check(InactivePasswordLockCheck(), host)
            assert result.message == "default INACTIVE is -1"

    def test_default_umask(self):
        """Test octal and symbolic umasks."""
        with tempfile.TemporaryDirectory() as tmpdir:
            host = FakeHost(tmpdir)
            assert outcome(DefaultUmaskCheck(), host) == Outcome.FAIL

            host.write("/etc/profile", "umask 027\n")
            host.write("/etc/profile.d/local.sh", "umask u=rwx,g=rx,o=\n")
            assert outcome(DefaultUmaskCheck(), host) == Outcome.PASS

            host.write("/etc/bash.bashrc", "umask 022\n")
            result = run_check(DefaultUmaskCheck(), host)
            assert result.message == "Weak umask: 022"


class TestAccountChecks:
    """Tests for passwd, shadow and group checks."""

    def test_root_only_uid0(self):
        """Test a second UID 0 account fails."""
        with tempfile.TemporaryDirectory() as tmpdir:
            host = FakeHost(tmpdir)
            host.write("/etc/passwd", PASSWD)
            assert outcome(RootOnlyUID0Check(), host) == Outcome.PASS

            host.write("/etc/passwd", PASSWD + "toor:x:0:0::/root:/bin/sh\n")
            result = run_check(RootOnlyUID0Check(), host)
            assert result.message == "UID 0 accounts: toor"

    def test_duplicates(self):
        """Test duplicate uids and group names are found."""
        with tempfile.TemporaryDirectory() as tmpdir:
            host = FakeHost(tmpdir)
            host.write("/etc/passwd", PASSWD + "toor:x:0:0::/root:/bin/sh\n")
            host.write("/etc/group", GROUP + "alice:x:1001:\n")

            assert run_check(DuplicateEntriesCheck("passwd", "uid"), host).message == "Duplicate uids in /etc/passwd: 0"
            assert outcome(DuplicateEntriesCheck("passwd", "name"), host) == Outcome.PASS
            assert outcome(DuplicateEntriesCheck("group", "name"), host) == Outcome.FAIL

    def test_empty_passwords_without_shadow(self):
        """Test an unreadable shadow file is an Error."""
        with tempfile.TemporaryDirectory() as tmpdir:
            assert outcome(EmptyPasswordsCheck(), FakeHost(tmpdir)) == Outcome.ERROR

    def test_password_change_in_future(self):
        """Test last change dates after today fail."""
        with tempfile.TemporaryDirectory() as tmpdir:
            host = FakeHost(tmpdir)
            host.write("/etc/shadow", SHADOW)
            check = PasswordChangeInPastCheck(today=datetime.date(2020, 1, 1))
            assert outcome(check, host) == Outcome.PASS

            host.write("/etc/shadow", SHADOW + "bob:$6$salt$hash:19000:1:365:7:30::\n")
            assert run_check(check, host).message == "Password changed in the future: bob"

    def test_forbidden_user_files(self):
        """Test .netrc files in home directories fail."""
        with tempfile.TemporaryDirectory() as tmpdir:
            host = FakeHost(tmpdir)
            host.write("/etc/passwd", PASSWD)
            assert outcome(ForbiddenUserFilesCheck(".netrc"), host) == Outcome.PASS

            host.write("/home/alice/.netrc", "machine example.com\n", mode=0o600)
            assert run_check(ForbiddenUserFilesCheck(".netrc"), host).message == ".netrc files: /home/alice/.netrc"

    def test_shadow_group(self):
        """Test the shadow group may have no members."""
        with tempfile.TemporaryDirectory() as tmpdir:
            host = FakeHost(tmpdir)
            host.write("/etc/passwd", PASSWD)
            host.write("/etc/group", GROUP)
            assert outcome(ShadowGroupEmptyCheck(), host) == Outcome.PASS

            host.write("/etc/group", GROUP.replace("shadow:x:42:", "shadow:x:42:alice"))
            assert run_check(ShadowGroupEmptyCheck(), host).message == "shadow group members: alice"

    def test_system_accounts(self):
        """Test system accounts need a nologin shell."""
        with tempfile.TemporaryDirectory() as tmpdir:
            host = FakeHost(tmpdir)
            host.write("/etc/passwd", PASSWD)
            assert outcome(SystemAccountsCheck(), host) == Outcome.PASS

            host.write("/etc/passwd", PASSWD.replace("/usr/sbin:/usr/sbin/nologin", "/usr/sbin:/bin/bash"))
            assert run_check(SystemAccountsCheck(), host).message == "System accounts with a login shell: daemon (/bin/bash)"

    def test_home_directories_exist(self):
        """Test regular users need an existing home directory."""
        with tempfile.TemporaryDirectory() as tmpdir:
            host = FakeHost(tmpdir)
            host.write("/etc/passwd", PASSWD)
            assert outcome(HomeDirectoriesCheck("exist"), host) == Outcome.FAIL
            host.mkdir("/home/alice", mode=0o750)
            assert outcome(HomeDirectoriesCheck("exist"), host) == Outcome.PASS
            assert outcome(HomeDirectoriesCheck("permissions"), host) == Outcome.PASS


class TestSystemChecks:
    """Tests for boot, core dump and banner checks."""

    def test_bootloader_password(self):
        """Test grub.cfg needs superusers and a password."""
        with tempfile.TemporaryDirectory() as tmpdir:
            host = FakeHost(tmpdir)
            host.write("/boot/grub/grub.cfg", 'set superusers="root"\n')
            result = run_check(BootloaderPasswordCheck(), host)
            assert result.message == "/boot/grub/grub.cfg has no password"

            host.write("/boot/grub/grub.cfg", 'set superusers="root"\npassword_pbkdf2 root grub.pbkdf2.sha512.10000.ABC\n')
            assert outcome(BootloaderPasswordCheck(), host) == Outcome.PASS

    def test_core_dumps(self):
        """Test the hard limit and fs.suid_dumpable."""
        with tempfile.TemporaryDirectory() as tmpdir:
            host = FakeHost(tmpdir)
            host.write("/etc/security/limits.conf", "* hard core 0\n")
            host.write("/proc/sys/fs/suid_dumpable", "0\n")
            assert outcome(CoreDumpsCheck(), host) == Outcome.FAIL

            host.write("/etc/sysctl.d/60-coredump.conf", "fs.suid_dumpable = 0\n")
            assert outcome(CoreDumpsCheck(), host) == Outcome.PASS

    def test_banner_content(self):
        """Test banners may not show escapes or the OS name."""
        with tempfile.TemporaryDirectory() as tmpdir:
            host = FakeHost(tmpdir)
            host.write("/etc/os-release", 'NAME="Ubuntu"\nID=ubuntu\n')
            check = BannerContentCheck("/etc/issue")
            assert outcome(check, host) == Outcome.FAIL
            assert outcome(BannerContentCheck("/etc/motd", require_content=False), host) == Outcome.PASS

            host.write("/etc/issue", "Ubuntu 18.04 LTS\n")
            assert run_check(check, host).message == "/etc/issue mentions ubuntu"

            host.write("/etc/issue", "Kernel \\r on \\m\n")
            assert run_check(check, host).message == "/etc/issue contains getty escape sequences"

            host.write("/etc/issue", "Authorized uses only. All activity may be monitored.\n")
            assert outcome(check, host) == Outcome.PASS
