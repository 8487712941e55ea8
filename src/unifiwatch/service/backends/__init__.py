"""Platform detection and installer factory."""

import importlib
import sys
from enum import Enum

from unifiwatch.service.base import (
    DEFAULT_SERVICE_NAME,
    ServiceInstaller,
    UnsupportedPlatformError,
)
from unifiwatch.service.commands import CommandRunner


class Platform(Enum):
    """Operating systems with a service backend."""

    WINDOWS = "windows"
    LINUX = "linux"
    MACOS = "macos"


_INSTALLERS = {
    Platform.WINDOWS: "unifiwatch.service.backends.windows.WindowsServiceInstaller",
    Platform.LINUX: "unifiwatch.service.backends.systemd.SystemdServiceInstaller",
    Platform.MACOS: "unifiwatch.service.backends.launchd.LaunchdServiceInstaller",
}


def detect_platform(sys_platform: str | None = None) -> Platform:
    """Detect the running operating system.

    Raises:
        UnsupportedPlatformError: If the OS has no service backend.
    """
    value = sys_platform or sys.platform
    if value == "win32":
        return Platform.WINDOWS
    if value.startswith("linux"):
        return Platform.LINUX
    if value == "darwin":
        return Platform.MACOS
    raise UnsupportedPlatformError(
        f"Service installation is not supported on {value!r}"
    )


def create_installer(
    platform: Platform | str | None = None,
    service_name: str = DEFAULT_SERVICE_NAME,
    runner: CommandRunner | None = None,
) -> ServiceInstaller:
    """Create the installer for a platform, or for the running OS.

    Args:
        platform: Platform or its value ('windows', 'linux', 'macos').
            None auto-detects.
        service_name: Service the installer is bound to.
        runner: Command runner override (tests).

    Raises:
        UnsupportedPlatformError: If the platform has no backend.
    """
    if platform is None:
        platform = detect_platform()
    elif not isinstance(platform, Platform):
        try:
            platform = Platform(str(platform).lower())
        except ValueError:
            raise UnsupportedPlatformError(
                f"Unknown platform: {platform}. "
                f"Available: {[p.value for p in Platform]}"
            ) from None

    # Import dynamically to avoid loading unnecessary backends
    module_path, class_name = _INSTALLERS[platform].rsplit(".", 1)
    module = importlib.import_module(module_path)
    installer_class = getattr(module, class_name)
    return installer_class(service_name=service_name, runner=runner)


__all__ = ["Platform", "create_installer", "detect_platform"]
