"""Status model, install options and the abstract lifecycle contract."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path, PurePosixPath, PureWindowsPath

from unifiwatch.service.commands import CommandRunner

logger = logging.getLogger(__name__)

DEFAULT_SERVICE_NAME = "UnifiWatch"
DEFAULT_DISPLAY_NAME = "UnifiWatch Stock Monitor"
DEFAULT_DESCRIPTION = (
    "Background service to monitor Ubiquiti product stock and send notifications"
)

# Flag passed to the worker so it runs headless under the service manager
SERVICE_MODE_FLAG = "--service-mode"


class ServiceState(Enum):
    """Registration and running state of the service."""

    NOT_INSTALLED = "not_installed"
    INSTALLED = "installed"
    RUNNING = "running"
    STOPPED = "stopped"
    UNKNOWN = "unknown"


class StartupType(Enum):
    """How the OS should start the service."""

    AUTOMATIC = "Automatic"
    MANUAL = "Manual"
    DISABLED = "Disabled"

    @classmethod
    def parse(cls, value: StartupType | str) -> StartupType:
        """Parse a startup type, accepting names case-insensitively."""
        if isinstance(value, cls):
            return value
        normalized = str(value).strip().lower()
        for member in cls:
            if member.value.lower() == normalized:
                return member
        raise ValueError(
            f"Unknown startup type: {value!r}. "
            f"Expected one of: {[m.value for m in cls]}"
        )


class ServiceErrorKind(Enum):
    """Why a lifecycle operation failed."""

    UNSUPPORTED_PLATFORM = "unsupported_platform"
    ALREADY_REGISTERED = "already_registered"
    NATIVE_TOOL_FAILURE = "native_tool_failure"
    PRIVILEGE_DENIED = "privilege_denied"
    MALFORMED_STATUS_RESPONSE = "malformed_status_response"
    NOT_INSTALLED = "not_installed"


class UnsupportedPlatformError(RuntimeError):
    """Raised when no adapter exists for the running operating system."""

    kind = ServiceErrorKind.UNSUPPORTED_PLATFORM


@dataclass(frozen=True)
class ServiceResult:
    """Outcome of a mutating lifecycle operation.

    Truthy when the operation succeeded, so ``if await installer.start():``
    reads naturally. ``detail`` is a short message suitable for users; raw
    native tool output only goes to the log.
    """

    success: bool
    error_kind: ServiceErrorKind | None = None
    detail: str = ""

    def __bool__(self) -> bool:
        return self.success

    @classmethod
    def ok(cls, detail: str = "") -> ServiceResult:
        return cls(success=True, detail=detail)

    @classmethod
    def fail(cls, kind: ServiceErrorKind, detail: str) -> ServiceResult:
        return cls(success=False, error_kind=kind, detail=detail)


@dataclass
class ServiceStatus:
    """Service status information.

    Produced fresh on every query; never cached.
    """

    state: ServiceState
    display_name: str = ""
    startup_type: str = ""  # Free-form per platform ("Automatic", "Unknown", ...)
    last_start_time: datetime | None = None
    process_id: int | None = None
    message: str = ""
    # Native registration exists, even when the state itself is UNKNOWN
    registered: bool = False

    @property
    def is_installed(self) -> bool:
        if self.registered:
            return True
        return self.state not in (ServiceState.NOT_INSTALLED, ServiceState.UNKNOWN)


def _is_absolute(path: str) -> bool:
    return PurePosixPath(path).is_absolute() or PureWindowsPath(path).is_absolute()


@dataclass(frozen=True)
class ServiceInstallOptions:
    """Everything an adapter needs to register the service.

    Immutable once constructed. ``allow_reuse_existing`` left as None means
    the adapter's own default applies (see ServiceInstaller.reuses_existing_by_default).
    """

    executable_path: str
    service_name: str = DEFAULT_SERVICE_NAME
    display_name: str = DEFAULT_DISPLAY_NAME
    description: str = DEFAULT_DESCRIPTION
    startup_type: StartupType = StartupType.AUTOMATIC
    delayed_auto_start: bool = True
    restart_attempts_on_failure: int = 3
    restart_delay_seconds: int = 10
    dependencies: tuple[str, ...] = field(default_factory=tuple)
    user_account: str | None = None
    launcher: str | None = None
    allow_reuse_existing: bool | None = None

    def __post_init__(self) -> None:
        if not self.service_name.strip():
            raise ValueError("service_name must not be empty")
        if not self.executable_path or not _is_absolute(self.executable_path):
            raise ValueError(
                f"executable_path must be absolute, got: {self.executable_path!r}"
            )
        if self.restart_attempts_on_failure < 1:
            raise ValueError("restart_attempts_on_failure must be >= 1")
        if self.restart_delay_seconds < 1:
            raise ValueError("restart_delay_seconds must be >= 1")

        # Frozen dataclass: normalize through object.__setattr__
        object.__setattr__(self, "startup_type", StartupType.parse(self.startup_type))
        object.__setattr__(
            self, "dependencies", tuple(dict.fromkeys(d for d in self.dependencies if d))
        )

    @property
    def working_directory(self) -> str:
        """Directory containing the executable."""
        if PureWindowsPath(self.executable_path).drive:
            return str(PureWindowsPath(self.executable_path).parent)
        return str(PurePosixPath(self.executable_path).parent)

    def __str__(self) -> str:
        return f"{self.display_name} ({self.service_name})"


class ServiceInstaller(ABC):
    """Abstract lifecycle contract for one named OS service.

    Adapters handle OS-specific service management:
    - Windows service control database (sc.exe / PowerShell)
    - systemd system units on Linux
    - launchd user agents on macOS

    An instance is bound to a single service name for its whole lifetime.
    Mutating operations return a ServiceResult and never raise for
    operational failures; get_status() never raises at all.
    """

    # Whether install() on an existing registration ensures it is started
    # and succeeds, when the options leave allow_reuse_existing unset.
    reuses_existing_by_default: bool = False

    def __init__(
        self,
        service_name: str = DEFAULT_SERVICE_NAME,
        runner: CommandRunner | None = None,
    ):
        if not service_name.strip():
            raise ValueError("service_name must not be empty")
        self._service_name = service_name
        self._runner = runner or CommandRunner()

    @property
    def service_name(self) -> str:
        return self._service_name

    @property
    @abstractmethod
    def name(self) -> str:
        """Backend name (e.g., 'windows', 'systemd', 'launchd')."""
        ...

    @property
    @abstractmethod
    def descriptor_path(self) -> Path | None:
        """Path of the native descriptor file, or None when it is not a file."""
        ...

    @abstractmethod
    async def install(self, options: ServiceInstallOptions) -> ServiceResult:
        """Register the service, configure restart policy and start it."""
        ...

    @abstractmethod
    async def uninstall(self) -> ServiceResult:
        """Stop the service and remove its registration.

        Succeeds when the service was never installed.
        """
        ...

    @abstractmethod
    async def start(self) -> ServiceResult:
        """Start the service. Starting a running service succeeds."""
        ...

    @abstractmethod
    async def stop(self) -> ServiceResult:
        """Stop the service. Stopping a stopped service succeeds."""
        ...

    @abstractmethod
    async def get_status(self) -> ServiceStatus:
        """Query the current status. Never raises."""
        ...

    async def restart(self) -> ServiceResult:
        """Stop then start the service."""
        stopped = await self.stop()
        if not stopped:
            return stopped
        return await self.start()

    def _check_options(self, options: ServiceInstallOptions) -> None:
        """Reject options that target a different service than this adapter."""
        if options.service_name != self._service_name:
            raise ValueError(
                f"{type(self).__name__} is bound to service {self._service_name!r}; "
                f"cannot install {options.service_name!r}"
            )

    def _reuses_existing(self, options: ServiceInstallOptions) -> bool:
        if options.allow_reuse_existing is None:
            return self.reuses_existing_by_default
        return options.allow_reuse_existing

    async def _precheck_install(
        self, options: ServiceInstallOptions
    ) -> ServiceResult | None:
        """Decide what install() does before touching anything.

        Returns None when the service is not installed and install should
        proceed, otherwise the final result of install().
        """
        self._check_options(options)

        status = await self.get_status()
        if status.state == ServiceState.NOT_INSTALLED:
            return None

        if not status.is_installed:
            logger.error(
                "Cannot determine whether '%s' is installed: %s",
                self._service_name,
                status.message,
            )
            return ServiceResult.fail(
                ServiceErrorKind.NATIVE_TOOL_FAILURE,
                f"Cannot determine whether '{self._service_name}' is installed: "
                f"{status.message}",
            )

        if self._reuses_existing(options):
            logger.warning(
                "Service '%s' is already installed; ensuring it is started",
                self._service_name,
            )
            return await self.start()

        logger.warning("Service '%s' is already installed", self._service_name)
        return ServiceResult.fail(
            ServiceErrorKind.ALREADY_REGISTERED,
            f"Service '{self._service_name}' is already installed",
        )
