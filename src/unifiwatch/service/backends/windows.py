"""Windows service control database backend (sc.exe + PowerShell)."""

import asyncio
import json
import logging
from typing import Any

from unifiwatch.service.base import (
    DEFAULT_SERVICE_NAME,
    SERVICE_MODE_FLAG,
    ServiceErrorKind,
    ServiceInstaller,
    ServiceInstallOptions,
    ServiceResult,
    ServiceState,
    ServiceStatus,
    StartupType,
)
from unifiwatch.service.commands import CommandResult, CommandRunner

logger = logging.getLogger(__name__)

SC = "sc.exe"
POWERSHELL = "powershell"

# Win32 error codes reported by sc.exe
ERROR_ACCESS_DENIED = 5
ERROR_SERVICE_ALREADY_RUNNING = 1056
ERROR_SERVICE_DOES_NOT_EXIST = 1060
ERROR_SERVICE_NOT_ACTIVE = 1062
ERROR_SERVICE_MARKED_FOR_DELETE = 1072

# Failure counter reset period for recovery actions (one day)
RECOVERY_RESET_SECONDS = 86400

DEFAULT_STOP_GRACE_SECONDS = 10.0
_POLL_INTERVAL = 0.5

_START_ARGS = {
    StartupType.AUTOMATIC: "auto",
    StartupType.MANUAL: "demand",
    StartupType.DISABLED: "disabled",
}

# ServiceControllerStatus values
_STATUS_CODES = {
    4: ServiceState.RUNNING,
    1: ServiceState.STOPPED,
}
_STATUS_NAMES = {
    "running": 4,
    "stopped": 1,
    "startpending": 2,
    "stoppending": 3,
    "continuepending": 5,
    "pausepending": 6,
    "paused": 7,
}

# ServiceStartMode values
_START_TYPE_CODES = {
    2: "Automatic",
    3: "Manual",
    4: "Disabled",
}
_START_TYPE_NAMES = {
    "boot": 0,
    "system": 1,
    "automatic": 2,
    "manual": 3,
    "disabled": 4,
}

_STATUS_SCRIPT = """\
$ErrorActionPreference = 'Stop'
$name = '{name}'
$service = Get-Service -Name ([WildcardPattern]::Escape($name)) -ErrorAction SilentlyContinue
if ($null -eq $service) {{
    @{{ Found = $false }} | ConvertTo-Json -Compress
    exit 0
}}
$wmi = Get-CimInstance -ClassName Win32_Service -ErrorAction SilentlyContinue |
    Where-Object {{ $_.Name -eq $name }}
$processId = 0
if ($null -ne $wmi) {{ $processId = [int]$wmi.ProcessId }}
[pscustomobject]@{{
    Found = $true
    Name = $service.Name
    DisplayName = $service.DisplayName
    Status = [int]$service.Status
    StartType = [int]$service.StartType
    ProcessId = $processId
}} | ConvertTo-Json -Compress
"""


def _ps_literal(value: str) -> str:
    """Escape a value for a single-quoted PowerShell string."""
    return value.replace("'", "''")


def _enum_value(raw: Any, names: dict[str, int]) -> int | None:
    """Coerce a PowerShell enum as number, digit string or member name."""
    if isinstance(raw, bool):
        return None
    if isinstance(raw, int):
        return raw
    if isinstance(raw, str):
        text = raw.strip()
        if text.isdigit():
            return int(text)
        return names.get(text.lower())
    return None


def recovery_actions(options: ServiceInstallOptions) -> str:
    """Build the ``actions=`` value for ``sc.exe failure``."""
    delay_ms = max(1000, options.restart_delay_seconds * 1000)
    attempts = max(1, options.restart_attempts_on_failure)
    return "/".join([f"restart/{delay_ms}"] * attempts)


def parse_status(output: str, service_name: str) -> ServiceStatus:
    """Parse the JSON emitted by the status script."""
    try:
        data = json.loads(output)
    except ValueError:
        data = None

    if not isinstance(data, dict) or "Found" not in data:
        logger.error("Malformed status response for '%s': %r", service_name, output)
        return ServiceStatus(
            state=ServiceState.UNKNOWN,
            display_name=service_name,
            message="Malformed status response from PowerShell",
        )

    if not data["Found"]:
        return ServiceStatus(
            state=ServiceState.NOT_INSTALLED,
            display_name=service_name,
            message=f"Service '{service_name}' is not installed",
        )

    status_code = _enum_value(data.get("Status"), _STATUS_NAMES)
    start_code = _enum_value(data.get("StartType"), _START_TYPE_NAMES)
    state = _STATUS_CODES.get(status_code, ServiceState.UNKNOWN)

    pid = _enum_value(data.get("ProcessId"), {})
    process_id = pid if pid else None

    display_name = data.get("DisplayName")
    if state == ServiceState.UNKNOWN:
        message = f"Service status is {data.get('Status')!r}"
    else:
        message = f"Service is {state.value}"

    return ServiceStatus(
        state=state,
        display_name=display_name if isinstance(display_name, str) else service_name,
        startup_type=_START_TYPE_CODES.get(start_code, "Unknown"),
        process_id=process_id if state == ServiceState.RUNNING else None,
        message=message,
        registered=True,
    )


class WindowsServiceInstaller(ServiceInstaller):
    """Windows service backend.

    Registers the worker in the service control database with sc.exe and
    reads status through PowerShell. There is no descriptor file.
    """

    reuses_existing_by_default = True

    def __init__(
        self,
        service_name: str = DEFAULT_SERVICE_NAME,
        runner: CommandRunner | None = None,
        stop_grace_seconds: float = DEFAULT_STOP_GRACE_SECONDS,
    ):
        super().__init__(service_name, runner)
        self.stop_grace_seconds = stop_grace_seconds

    @property
    def name(self) -> str:
        return "windows"

    @property
    def descriptor_path(self) -> None:
        return None

    async def _sc(self, *args: str) -> CommandResult:
        return await self._runner.run(SC, *args)

    def _failure(self, action: str, result: CommandResult) -> ServiceResult:
        if result.returncode == ERROR_ACCESS_DENIED:
            kind = ServiceErrorKind.PRIVILEGE_DENIED
            detail = f"Access denied while trying to {action} '{self.service_name}'"
        elif result.returncode == ERROR_SERVICE_DOES_NOT_EXIST:
            kind = ServiceErrorKind.NOT_INSTALLED
            detail = f"Service '{self.service_name}' is not installed"
        else:
            kind = ServiceErrorKind.NATIVE_TOOL_FAILURE
            detail = f"Failed to {action} '{self.service_name}' ({result.describe()})"
        logger.error("sc.exe %s failed: %s", action, result.combined)
        return ServiceResult.fail(kind, detail)

    # ------------------------------------------------------------------
    # Install / Uninstall
    # ------------------------------------------------------------------

    async def install(self, options: ServiceInstallOptions) -> ServiceResult:
        """Create the service, configure description and recovery, start it."""
        precheck = await self._precheck_install(options)
        if precheck is not None:
            return precheck

        name = self.service_name
        create_args = [
            "create",
            name,
            "binPath=",
            f'"{options.executable_path}" {SERVICE_MODE_FLAG}',
            "DisplayName=",
            options.display_name,
            "start=",
            _START_ARGS[options.startup_type],
        ]
        if options.dependencies:
            create_args += ["depend=", "/".join(options.dependencies)]

        created = await self._sc(*create_args)
        if not created.ok:
            return self._failure("create", created)

        # Registration exists from here on; the rest is best-effort tuning
        description = await self._sc("description", name, options.description)
        if not description.ok:
            logger.warning("Failed to set description: %s", description.combined)

        if options.startup_type == StartupType.AUTOMATIC and options.delayed_auto_start:
            delayed = await self._sc("config", name, "start=", "delayed-auto")
            if not delayed.ok:
                logger.warning("Failed to enable delayed start: %s", delayed.combined)

        if options.user_account:
            account = await self._sc("config", name, "obj=", options.user_account)
            if not account.ok:
                logger.warning("Failed to set service account: %s", account.combined)

        failure = await self._sc(
            "failure",
            name,
            "reset=",
            str(RECOVERY_RESET_SECONDS),
            "actions=",
            recovery_actions(options),
        )
        if not failure.ok:
            logger.warning("Failed to configure recovery: %s", failure.combined)

        started = await self.start()
        if not started:
            return ServiceResult.fail(
                started.error_kind or ServiceErrorKind.NATIVE_TOOL_FAILURE,
                f"Service '{name}' installed but failed to start: {started.detail}",
            )

        logger.info("Service '%s' installed and started", name)
        return ServiceResult.ok(f"Service '{name}' installed and started")

    async def uninstall(self) -> ServiceResult:
        """Stop the service and delete it from the service database."""
        status = await self.get_status()
        if status.state == ServiceState.NOT_INSTALLED:
            logger.info("Service '%s' is not installed", self.service_name)
            return ServiceResult.ok(f"Service '{self.service_name}' is not installed")

        stopped = await self.stop()
        if not stopped:
            logger.warning("Continuing uninstall after stop failed: %s", stopped.detail)
        else:
            await self._wait_until_stopped()

        deleted = await self._sc("delete", self.service_name)
        if not deleted.ok and deleted.returncode not in (
            ERROR_SERVICE_MARKED_FOR_DELETE,
            ERROR_SERVICE_DOES_NOT_EXIST,
        ):
            return self._failure("delete", deleted)

        logger.info("Service '%s' uninstalled", self.service_name)
        return ServiceResult.ok(f"Service '{self.service_name}' uninstalled")

    async def _wait_until_stopped(self) -> None:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.stop_grace_seconds
        while True:
            status = await self.get_status()
            if status.state != ServiceState.RUNNING:
                return
            if loop.time() >= deadline:
                logger.warning(
                    "Service '%s' still running after %ss",
                    self.service_name,
                    self.stop_grace_seconds,
                )
                return
            await asyncio.sleep(_POLL_INTERVAL)

    # ------------------------------------------------------------------
    # Start / Stop
    # ------------------------------------------------------------------

    async def start(self) -> ServiceResult:
        result = await self._sc("start", self.service_name)
        if result.ok or result.returncode == ERROR_SERVICE_ALREADY_RUNNING:
            logger.info("Service '%s' started", self.service_name)
            return ServiceResult.ok(f"Service '{self.service_name}' started")
        return self._failure("start", result)

    async def stop(self) -> ServiceResult:
        result = await self._sc("stop", self.service_name)
        if result.ok:
            logger.info("Service '%s' stopped", self.service_name)
            return ServiceResult.ok(f"Service '{self.service_name}' stopped")
        if result.returncode in (ERROR_SERVICE_NOT_ACTIVE, ERROR_SERVICE_DOES_NOT_EXIST):
            return ServiceResult.ok(f"Service '{self.service_name}' is not running")
        return self._failure("stop", result)

    # ------------------------------------------------------------------
    # Status
    # ------------------------------------------------------------------

    async def get_status(self) -> ServiceStatus:
        try:
            return await self._query_status()
        except Exception as e:
            logger.exception("Error getting status of '%s'", self.service_name)
            return ServiceStatus(state=ServiceState.UNKNOWN, message=f"Error: {e}")

    async def _query_status(self) -> ServiceStatus:
        script = _STATUS_SCRIPT.format(name=_ps_literal(self.service_name))
        result = await self._runner.run(
            POWERSHELL, "-NoProfile", "-NonInteractive", "-Command", script
        )
        if not result.ok:
            logger.error("Status query failed: %s", result.combined)
            return ServiceStatus(
                state=ServiceState.UNKNOWN,
                display_name=self.service_name,
                message=f"Unable to query service ({result.describe()})",
            )
        return parse_status(result.stdout.strip(), self.service_name)
