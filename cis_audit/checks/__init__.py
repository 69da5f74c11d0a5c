"""Check procedures and the CIS Ubuntu 18.04 benchmark catalog."""

from .catalog import BENCHMARK_NAME, build_catalog
from .common import (
    FilePermissionsCheck,
    PackageGatedCheck,
    PackageInstalledCheck,
    PackageNotInstalledCheck,
    ServiceEnabledCheck,
    SkipCheck,
)
from .filesystem import KernelModuleDisabledCheck, MountOptionCheck, PartitionCheck
from .logging_audit import AuditRulesCheck, ConfigDirectiveCheck
from .network import SysctlCheck
from .access import SSHDSettingCheck

__all__ = [
    "BENCHMARK_NAME",
    "build_catalog",
    "FilePermissionsCheck",
    "PackageGatedCheck",
    "PackageInstalledCheck",
    "PackageNotInstalledCheck",
    "ServiceEnabledCheck",
    "SkipCheck",
    "KernelModuleDisabledCheck",
    "MountOptionCheck",
    "PartitionCheck",
    "AuditRulesCheck",
    "ConfigDirectiveCheck",
    "SysctlCheck",
    "SSHDSettingCheck",
]
