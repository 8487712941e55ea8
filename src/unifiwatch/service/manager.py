"""High-level service management interface."""

import asyncio
import logging

from unifiwatch.service.backends import create_installer
from unifiwatch.service.base import (
    ServiceInstaller,
    ServiceInstallOptions,
    ServiceResult,
    ServiceState,
    ServiceStatus,
)

logger = logging.getLogger(__name__)


class ServiceManager:
    """High-level service management interface.

    Wraps a platform installer and turns its results into
    ``(success, message)`` pairs for user-facing callers.

    Example:
        manager = ServiceManager()
        success, message = await manager.start()
        status = await manager.status()
    """

    def __init__(
        self,
        installer: ServiceInstaller | None = None,
        settle_seconds: float = 0.5,
    ):
        """Initialize the service manager.

        Args:
            installer: Specific installer to use, or None for the running OS.
            settle_seconds: Pause before re-reading status after a start.
        """
        self._installer = installer or create_installer()
        self._settle_seconds = settle_seconds

    @property
    def backend_name(self) -> str:
        """Get the name of the active backend."""
        return self._installer.name

    @property
    def service_name(self) -> str:
        return self._installer.service_name

    @property
    def installer(self) -> ServiceInstaller:
        return self._installer

    async def install(self, options: ServiceInstallOptions) -> tuple[bool, str]:
        """Register and start the service.

        Returns:
            Tuple of (success, message).
        """
        try:
            result = await self._installer.install(options)
        except ValueError as e:
            return False, str(e)
        return self._report(result, f"Installed as {self.backend_name} service")

    async def uninstall(self) -> tuple[bool, str]:
        """Stop and remove the service."""
        result = await self._installer.uninstall()
        return self._report(result, "Service uninstalled")

    async def start(self) -> tuple[bool, str]:
        """Start the service, reporting the PID when it is known."""
        result = await self._installer.start()
        if not result:
            return self._report(result, "")

        await asyncio.sleep(self._settle_seconds)
        status = await self._installer.get_status()
        if status.state == ServiceState.RUNNING and status.process_id:
            return (
                True,
                f"Service started using {self.backend_name} (PID {status.process_id})",
            )
        return True, f"Service started using {self.backend_name}"

    async def stop(self) -> tuple[bool, str]:
        """Stop the service."""
        result = await self._installer.stop()
        return self._report(result, "Service stopped")

    async def restart(self) -> tuple[bool, str]:
        """Restart the service."""
        result = await self._installer.restart()
        return self._report(result, "Service restarted")

    async def status(self) -> ServiceStatus:
        """Get current service status."""
        return await self._installer.get_status()

    def _report(self, result: ServiceResult, success_message: str) -> tuple[bool, str]:
        if result:
            return True, success_message or result.detail
        logger.debug(
            "%s failed: %s (%s)", self.backend_name, result.detail, result.error_kind
        )
        return False, result.detail
