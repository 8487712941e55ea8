"""Launchd user agent backend for macOS."""

import logging
import plistlib
from datetime import datetime
from pathlib import Path
from typing import Any

import psutil

from unifiwatch.config.paths import get_service_stderr_path, get_service_stdout_path
from unifiwatch.service.base import (
    DEFAULT_SERVICE_NAME,
    SERVICE_MODE_FLAG,
    ServiceErrorKind,
    ServiceInstaller,
    ServiceInstallOptions,
    ServiceResult,
    ServiceState,
    ServiceStatus,
)
from unifiwatch.service.commands import CommandRunner
from unifiwatch.service.launcher import find_launcher

logger = logging.getLogger(__name__)

PRODUCT = "unifiwatch"
SERVICE_LABEL = f"com.{PRODUCT}"


def get_launch_agents_dir() -> Path:
    """Get the user's LaunchAgents directory."""
    return Path.home() / "Library" / "LaunchAgents"


def parse_launchctl_list(output: str, label: str) -> tuple[bool, int | None]:
    """Find a label in ``launchctl list`` output.

    Rows are ``PID<TAB>Status<TAB>Label`` where PID is ``-`` for jobs that
    are loaded but not running.

    Returns:
        (loaded, pid) for the label.
    """
    for line in output.splitlines():
        parts = line.split(None, 2)
        if len(parts) != 3 or parts[2].strip() != label:
            continue
        pid_str = parts[0]
        pid = int(pid_str) if pid_str.isdigit() and int(pid_str) > 0 else None
        return True, pid
    return False, None


def _process_start_time(pid: int) -> datetime | None:
    try:
        return datetime.fromtimestamp(psutil.Process(pid).create_time())
    except psutil.Error:
        return None


class LaunchdServiceInstaller(ServiceInstaller):
    """Launchd user agent backend for macOS.

    Uses launchctl for service management.
    Plist file stored in ~/Library/LaunchAgents/com.unifiwatch.plist.
    Loading the agent both registers and starts it; there is no separate
    enable step.
    """

    def __init__(
        self,
        service_name: str = DEFAULT_SERVICE_NAME,
        runner: CommandRunner | None = None,
        agents_dir: Path | None = None,
        label: str = SERVICE_LABEL,
    ):
        super().__init__(service_name, runner)
        self._agents_dir = agents_dir
        self._label = label

    @property
    def name(self) -> str:
        return "launchd"

    @property
    def label(self) -> str:
        return self._label

    @property
    def plist_path(self) -> Path:
        """Path to launchd plist file."""
        agents_dir = self._agents_dir or get_launch_agents_dir()
        return agents_dir / f"{self.label}.plist"

    @property
    def descriptor_path(self) -> Path:
        return self.plist_path

    # ------------------------------------------------------------------
    # Install / Uninstall
    # ------------------------------------------------------------------

    async def install(self, options: ServiceInstallOptions) -> ServiceResult:
        """Write the plist and load it, which also starts the agent."""
        precheck = await self._precheck_install(options)
        if precheck is not None:
            return precheck

        try:
            self._write_plist(options)
        except OSError as e:
            logger.error("Failed to write plist %s: %s", self.plist_path, e)
            return ServiceResult.fail(
                ServiceErrorKind.PRIVILEGE_DENIED,
                f"Cannot write {self.plist_path}: {e.strerror or e}",
            )

        load = await self._runner.run("launchctl", "load", "-w", str(self.plist_path))
        if not load.ok:
            logger.error("Failed to load launch agent: %s", load.combined)
            return ServiceResult.fail(
                ServiceErrorKind.NATIVE_TOOL_FAILURE,
                f"Service '{self.service_name}' installed but failed to load "
                f"({load.describe()})",
            )

        logger.info("Service '%s' installed and started", self.service_name)
        return ServiceResult.ok(f"Service '{self.service_name}' installed and started")

    async def uninstall(self) -> ServiceResult:
        """Unload the agent and delete the plist."""
        if not self.plist_path.exists():
            logger.info("Service '%s' is not installed", self.service_name)
            return ServiceResult.ok(f"Service '{self.service_name}' is not installed")

        unload = await self._runner.run("launchctl", "unload", str(self.plist_path))
        if not unload.ok:
            # Not loaded is fine; the file is still removed below
            logger.debug("launchctl unload: %s", unload.combined)

        try:
            self.plist_path.unlink(missing_ok=True)
        except OSError as e:
            logger.error("Failed to remove plist %s: %s", self.plist_path, e)
            return ServiceResult.fail(
                ServiceErrorKind.PRIVILEGE_DENIED,
                f"Cannot remove {self.plist_path}: {e.strerror or e}",
            )

        logger.info("Service '%s' uninstalled", self.service_name)
        return ServiceResult.ok(f"Service '{self.service_name}' uninstalled")

    # ------------------------------------------------------------------
    # Start / Stop
    # ------------------------------------------------------------------

    async def start(self) -> ServiceResult:
        """Start the agent, loading it first if it is not loaded."""
        if not self.plist_path.exists():
            return ServiceResult.fail(
                ServiceErrorKind.NOT_INSTALLED,
                f"Service '{self.service_name}' is not installed",
            )

        listing = await self._runner.run("launchctl", "list")
        loaded, pid = parse_launchctl_list(listing.stdout, self.label)
        if pid is not None:
            return ServiceResult.ok(f"Service '{self.service_name}' already running")

        if loaded:
            result = await self._runner.run("launchctl", "start", self.label)
        else:
            result = await self._runner.run(
                "launchctl", "load", "-w", str(self.plist_path)
            )

        if not result.ok:
            logger.error("Failed to start '%s': %s", self.label, result.combined)
            return ServiceResult.fail(
                ServiceErrorKind.NATIVE_TOOL_FAILURE,
                f"Failed to start '{self.label}' ({result.describe()})",
            )

        logger.info("Service '%s' started", self.service_name)
        return ServiceResult.ok(f"Service '{self.service_name}' started")

    async def stop(self) -> ServiceResult:
        """Stop the agent by unloading it (KeepAlive would restart a plain stop)."""
        if not self.plist_path.exists():
            return ServiceResult.ok(f"Service '{self.service_name}' is not installed")

        listing = await self._runner.run("launchctl", "list")
        loaded, _ = parse_launchctl_list(listing.stdout, self.label)
        if listing.ok and not loaded:
            return ServiceResult.ok(f"Service '{self.service_name}' is not running")

        result = await self._runner.run("launchctl", "unload", str(self.plist_path))
        if not result.ok:
            logger.warning("Failed to stop '%s': %s", self.label, result.combined)
            return ServiceResult.fail(
                ServiceErrorKind.NATIVE_TOOL_FAILURE,
                f"Failed to stop '{self.label}' ({result.describe()})",
            )

        logger.info("Service '%s' stopped", self.service_name)
        return ServiceResult.ok(f"Service '{self.service_name}' stopped")

    # ------------------------------------------------------------------
    # Status
    # ------------------------------------------------------------------

    async def get_status(self) -> ServiceStatus:
        """Get service status from the plist and ``launchctl list``."""
        try:
            return await self._query_status()
        except Exception as e:
            logger.exception("Error getting status of '%s'", self.label)
            return ServiceStatus(state=ServiceState.UNKNOWN, message=f"Error: {e}")

    async def _query_status(self) -> ServiceStatus:
        if not self.plist_path.exists():
            return ServiceStatus(
                state=ServiceState.NOT_INSTALLED,
                display_name=self.service_name,
                message=f"Service '{self.service_name}' is not installed",
            )

        startup_type = self._read_startup_type()

        listing = await self._runner.run("launchctl", "list")
        if not listing.ok:
            logger.error("launchctl list failed: %s", listing.combined)
            return ServiceStatus(
                state=ServiceState.UNKNOWN,
                display_name=self.service_name,
                startup_type=startup_type,
                message=f"Unable to list launch agents ({listing.describe()})",
                registered=True,
            )

        loaded, pid = parse_launchctl_list(listing.stdout, self.label)
        if pid is not None:
            return ServiceStatus(
                state=ServiceState.RUNNING,
                display_name=self.service_name,
                startup_type=startup_type,
                last_start_time=_process_start_time(pid),
                process_id=pid,
                message="Service is running",
            )

        return ServiceStatus(
            state=ServiceState.STOPPED,
            display_name=self.service_name,
            startup_type=startup_type,
            message="Service is stopped" if loaded else "Service is not loaded",
        )

    def _read_startup_type(self) -> str:
        try:
            with self.plist_path.open("rb") as f:
                plist = plistlib.load(f)
        except (OSError, plistlib.InvalidFileException, ValueError) as e:
            logger.warning("Cannot read %s: %s", self.plist_path, e)
            return "Unknown"
        return "Automatic" if plist.get("RunAtLoad") else "Manual"

    # ------------------------------------------------------------------
    # Plist
    # ------------------------------------------------------------------

    def build_plist(self, options: ServiceInstallOptions) -> dict[str, Any]:
        """Generate the launchd plist dictionary."""
        return {
            "Label": self.label,
            "ProgramArguments": [
                find_launcher("darwin", options.launcher),
                options.executable_path,
                SERVICE_MODE_FLAG,
            ],
            "RunAtLoad": True,
            "KeepAlive": True,
            "StandardOutPath": str(get_service_stdout_path()),
            "StandardErrorPath": str(get_service_stderr_path()),
            "WorkingDirectory": options.working_directory,
            "ProcessType": "Background",
            "ThrottleInterval": options.restart_delay_seconds,
        }

    def _write_plist(self, options: ServiceInstallOptions) -> None:
        plist = self.build_plist(options)

        get_service_stdout_path().parent.mkdir(parents=True, exist_ok=True)
        self.plist_path.parent.mkdir(parents=True, exist_ok=True)
        with self.plist_path.open("wb") as f:
            plistlib.dump(plist, f)
