"""Background service management for UnifiWatch.

Registers the stock-monitoring worker as an OS-native service:
- Windows services via sc.exe
- systemd system units on Linux
- launchd user agents on macOS

Example:
    from unifiwatch.service import ServiceManager

    manager = ServiceManager()
    success, message = await manager.start()
    status = await manager.status()
"""

from unifiwatch.service.backends import Platform, create_installer, detect_platform
from unifiwatch.service.base import (
    ServiceErrorKind,
    ServiceInstaller,
    ServiceInstallOptions,
    ServiceResult,
    ServiceState,
    ServiceStatus,
    StartupType,
    UnsupportedPlatformError,
)
from unifiwatch.service.commands import CommandResult, CommandRunner
from unifiwatch.service.manager import ServiceManager

__all__ = [
    "CommandResult",
    "CommandRunner",
    "Platform",
    "ServiceErrorKind",
    "ServiceInstallOptions",
    "ServiceInstaller",
    "ServiceManager",
    "ServiceResult",
    "ServiceState",
    "ServiceStatus",
    "StartupType",
    "UnsupportedPlatformError",
    "create_installer",
    "detect_platform",
]
