"""Systemd system service backend for Linux."""

import getpass
import logging
import os
import tempfile
from datetime import datetime
from pathlib import Path

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
from unifiwatch.service.commands import CommandResult, CommandRunner
from unifiwatch.service.launcher import find_launcher

logger = logging.getLogger(__name__)

SYSTEM_UNIT_DIR = Path("/etc/systemd/system")

# LSB exit codes returned by systemctl start/stop
_EXIT_NO_PRIVILEGE = 4
_EXIT_NOT_INSTALLED = 5

_STATUS_PROPERTIES = "LoadState,ActiveState,MainPID,ExecMainStartTimestamp"

# ActiveState -> ServiceState; "failed" keeps the unit registered but not running
_ACTIVE_STATES = {
    "active": ServiceState.RUNNING,
    "inactive": ServiceState.STOPPED,
    "failed": ServiceState.INSTALLED,
}

_ENABLED_STATES = {
    "enabled": "Automatic",
    "disabled": "Manual",
}


def _quote(arg: str) -> str:
    """Quote an ExecStart argument if it contains whitespace."""
    if any(c.isspace() for c in arg):
        escaped = arg.replace("\\", "\\\\").replace('"', '\\"')
        return f'"{escaped}"'
    return arg


def _mentions_unknown_unit(result: CommandResult) -> bool:
    text = result.combined.lower()
    return "unknown unit" in text or "could not be found" in text


def parse_properties(output: str) -> dict[str, str]:
    """Parse ``systemctl show`` Key=Value output."""
    props: dict[str, str] = {}
    for line in output.strip().splitlines():
        if "=" in line:
            key, value = line.split("=", 1)
            props[key.strip()] = value.strip()
    return props


def parse_timestamp(value: str) -> datetime | None:
    """Parse a systemd timestamp such as ``Mon 2024-01-01 12:00:00 UTC``."""
    parts = value.split()
    if len(parts) < 3 or parts[0] == "n/a":
        return None
    try:
        return datetime.strptime(f"{parts[1]} {parts[2]}", "%Y-%m-%d %H:%M:%S")
    except ValueError:
        return None


class SystemdServiceInstaller(ServiceInstaller):
    """Systemd system service backend for Linux.

    Unit file stored in /etc/systemd/system/<lowercased-name>.service.
    When not running as root, privileged steps (writing the unit, systemctl
    mutations) go through ``sudo -n``.
    """

    def __init__(
        self,
        service_name: str = DEFAULT_SERVICE_NAME,
        runner: CommandRunner | None = None,
        unit_dir: Path | None = None,
        use_sudo: bool | None = None,
    ):
        super().__init__(service_name, runner)
        self._unit_dir = unit_dir or SYSTEM_UNIT_DIR
        if use_sudo is None:
            use_sudo = hasattr(os, "geteuid") and os.geteuid() != 0
        self._use_sudo = use_sudo

    @property
    def name(self) -> str:
        return "systemd"

    @property
    def unit_name(self) -> str:
        return f"{self.service_name.lower()}.service"

    @property
    def unit_path(self) -> Path:
        return self._unit_dir / self.unit_name

    @property
    def descriptor_path(self) -> Path:
        return self.unit_path

    async def _privileged(self, *args: str) -> CommandResult:
        if self._use_sudo:
            return await self._runner.run("sudo", "-n", *args)
        return await self._runner.run(*args)

    async def _systemctl(self, *args: str, privileged: bool = False) -> CommandResult:
        if privileged:
            return await self._privileged("systemctl", *args)
        return await self._runner.run("systemctl", *args)

    # ------------------------------------------------------------------
    # Install / Uninstall
    # ------------------------------------------------------------------

    async def install(self, options: ServiceInstallOptions) -> ServiceResult:
        """Write the unit, reload systemd, enable and start the service."""
        precheck = await self._precheck_install(options)
        if precheck is not None:
            return precheck

        written = await self._write_unit_file(self.render_unit(options))
        if not written:
            return written

        reload = await self._systemctl("daemon-reload", privileged=True)
        if not reload.ok:
            logger.error("Failed to reload systemd daemon: %s", reload.combined)
            return ServiceResult.fail(
                ServiceErrorKind.NATIVE_TOOL_FAILURE,
                f"Failed to reload systemd ({reload.describe()})",
            )

        enable = await self._systemctl("enable", self.unit_name, privileged=True)
        if not enable.ok:
            # The unit can still be started manually
            logger.warning(
                "Failed to enable service '%s' for auto-start: %s",
                self.service_name,
                enable.combined,
            )

        started = await self.start()
        if not started:
            logger.error(
                "Service '%s' installed but failed to start", self.service_name
            )
            return ServiceResult.fail(
                started.error_kind or ServiceErrorKind.NATIVE_TOOL_FAILURE,
                f"Service '{self.service_name}' installed but failed to start: "
                f"{started.detail}",
            )

        logger.info("Service '%s' installed and started", self.service_name)
        return ServiceResult.ok(f"Service '{self.service_name}' installed and started")

    async def uninstall(self) -> ServiceResult:
        """Stop, disable and remove the unit."""
        status = await self.get_status()
        if status.state == ServiceState.NOT_INSTALLED and not self.unit_path.exists():
            logger.info("Service '%s' is not installed", self.service_name)
            return ServiceResult.ok(f"Service '{self.service_name}' is not installed")

        await self.stop()

        disable = await self._systemctl("disable", self.unit_name, privileged=True)
        if not disable.ok:
            logger.warning("Failed to disable '%s': %s", self.unit_name, disable.combined)

        removed = await self._remove_unit_file()
        if not removed:
            return removed

        reload = await self._systemctl("daemon-reload", privileged=True)
        if not reload.ok:
            logger.warning("Failed to reload systemd daemon: %s", reload.combined)

        logger.info("Service '%s' uninstalled", self.service_name)
        return ServiceResult.ok(f"Service '{self.service_name}' uninstalled")

    # ------------------------------------------------------------------
    # Start / Stop
    # ------------------------------------------------------------------

    async def start(self) -> ServiceResult:
        result = await self._systemctl("start", self.unit_name, privileged=True)
        if result.ok:
            logger.info("Service '%s' started", self.service_name)
            return ServiceResult.ok(f"Service '{self.service_name}' started")

        logger.error("Failed to start '%s': %s", self.unit_name, result.combined)
        if result.returncode == _EXIT_NOT_INSTALLED:
            return ServiceResult.fail(
                ServiceErrorKind.NOT_INSTALLED,
                f"Service '{self.service_name}' is not installed",
            )
        if result.returncode == _EXIT_NO_PRIVILEGE:
            return ServiceResult.fail(
                ServiceErrorKind.PRIVILEGE_DENIED,
                f"Not permitted to start '{self.unit_name}'",
            )
        return ServiceResult.fail(
            ServiceErrorKind.NATIVE_TOOL_FAILURE,
            f"Failed to start '{self.unit_name}' ({result.describe()})",
        )

    async def stop(self) -> ServiceResult:
        result = await self._systemctl("stop", self.unit_name, privileged=True)
        if result.ok:
            logger.info("Service '%s' stopped", self.service_name)
            return ServiceResult.ok(f"Service '{self.service_name}' stopped")

        # Nothing loaded means nothing to stop
        if result.returncode == _EXIT_NOT_INSTALLED:
            return ServiceResult.ok(f"Service '{self.service_name}' is not running")

        logger.warning("Failed to stop '%s': %s", self.unit_name, result.combined)
        if result.returncode == _EXIT_NO_PRIVILEGE:
            return ServiceResult.fail(
                ServiceErrorKind.PRIVILEGE_DENIED,
                f"Not permitted to stop '{self.unit_name}'",
            )
        return ServiceResult.fail(
            ServiceErrorKind.NATIVE_TOOL_FAILURE,
            f"Failed to stop '{self.unit_name}' ({result.describe()})",
        )

    # ------------------------------------------------------------------
    # Status
    # ------------------------------------------------------------------

    async def get_status(self) -> ServiceStatus:
        """Get service status from ``systemctl show`` and ``is-enabled``."""
        try:
            return await self._query_status()
        except Exception as e:
            logger.exception("Error getting status of '%s'", self.unit_name)
            return ServiceStatus(state=ServiceState.UNKNOWN, message=f"Error: {e}")

    async def _query_status(self) -> ServiceStatus:
        show = await self._systemctl(
            "show", self.unit_name, f"--property={_STATUS_PROPERTIES}"
        )
        if _mentions_unknown_unit(show):
            return self._not_installed()

        if not show.ok:
            logger.error("systemctl show failed: %s", show.combined)
            return ServiceStatus(
                state=ServiceState.UNKNOWN,
                message=f"Unable to query service ({show.describe()})",
            )

        props = parse_properties(show.stdout)
        load_state = props.get("LoadState")
        active_state = props.get("ActiveState")
        if load_state is None or active_state is None:
            logger.error("Unexpected systemctl show output: %r", show.stdout)
            return ServiceStatus(
                state=ServiceState.UNKNOWN,
                message="Malformed status response from systemctl",
            )

        if load_state == "not-found":
            return self._not_installed()

        state = _ACTIVE_STATES.get(active_state, ServiceState.UNKNOWN)

        enabled = await self._systemctl("is-enabled", self.unit_name)
        startup_type = _ENABLED_STATES.get(enabled.stdout.strip(), "Unknown")

        pid_str = props.get("MainPID", "0")
        pid = int(pid_str) if pid_str.isdigit() and pid_str != "0" else None

        return ServiceStatus(
            state=state,
            display_name=self.service_name,
            startup_type=startup_type,
            last_start_time=parse_timestamp(props.get("ExecMainStartTimestamp", "")),
            process_id=pid,
            message=f"Service is {active_state}",
            registered=True,
        )

    def _not_installed(self) -> ServiceStatus:
        return ServiceStatus(
            state=ServiceState.NOT_INSTALLED,
            display_name=self.service_name,
            message=f"Service '{self.service_name}' is not installed",
        )

    # ------------------------------------------------------------------
    # Unit file
    # ------------------------------------------------------------------

    def render_unit(self, options: ServiceInstallOptions) -> str:
        """Generate the systemd unit file content."""
        launcher = find_launcher("linux", options.launcher)
        exec_start = " ".join(
            _quote(arg) for arg in (launcher, options.executable_path, SERVICE_MODE_FLAG)
        )
        user = options.user_account or getpass.getuser()

        after = " ".join(["network.target", *options.dependencies])
        wants = ""
        if options.dependencies:
            wants = f"Wants={' '.join(options.dependencies)}\n"

        return f"""[Unit]
Description={options.description}
After={after}
{wants}
[Service]
Type=simple
ExecStart={exec_start}
WorkingDirectory={_quote(options.working_directory)}
Restart=on-failure
RestartSec={options.restart_delay_seconds}
User={user}
StandardOutput=journal
StandardError=journal

[Install]
WantedBy=multi-user.target
"""

    async def _write_unit_file(self, content: str) -> ServiceResult:
        """Write the unit, via a temp file and ``sudo install`` when unprivileged."""
        if not self._use_sudo:
            try:
                self.unit_path.parent.mkdir(parents=True, exist_ok=True)
                self.unit_path.write_text(content, encoding="utf-8")
            except OSError as e:
                logger.error("Failed to write unit file %s: %s", self.unit_path, e)
                return ServiceResult.fail(
                    ServiceErrorKind.PRIVILEGE_DENIED,
                    f"Cannot write {self.unit_path}: {e.strerror or e}",
                )
            return ServiceResult.ok()

        try:
            with tempfile.NamedTemporaryFile(
                "w", suffix=".service", delete=False, encoding="utf-8"
            ) as tmp:
                tmp.write(content)
                tmp_path = Path(tmp.name)
        except OSError as e:
            logger.error("Failed to write temporary unit file: %s", e)
            return ServiceResult.fail(
                ServiceErrorKind.NATIVE_TOOL_FAILURE,
                f"Cannot write temporary unit file: {e}",
            )

        try:
            moved = await self._privileged(
                "install", "-m", "644", str(tmp_path), str(self.unit_path)
            )
        finally:
            tmp_path.unlink(missing_ok=True)

        if not moved.ok:
            logger.error("Failed to install unit file: %s", moved.combined)
            return ServiceResult.fail(
                ServiceErrorKind.PRIVILEGE_DENIED,
                f"Cannot write {self.unit_path} ({moved.describe()})",
            )
        return ServiceResult.ok()

    async def _remove_unit_file(self) -> ServiceResult:
        if not self._use_sudo:
            try:
                self.unit_path.unlink(missing_ok=True)
            except OSError as e:
                logger.error("Failed to remove unit file %s: %s", self.unit_path, e)
                return ServiceResult.fail(
                    ServiceErrorKind.PRIVILEGE_DENIED,
                    f"Cannot remove {self.unit_path}: {e.strerror or e}",
                )
            return ServiceResult.ok()

        removed = await self._privileged("rm", "-f", str(self.unit_path))
        if not removed.ok:
            logger.error("Failed to remove unit file: %s", removed.combined)
            return ServiceResult.fail(
                ServiceErrorKind.PRIVILEGE_DENIED,
                f"Cannot remove {self.unit_path} ({removed.describe()})",
            )
        return ServiceResult.ok()
