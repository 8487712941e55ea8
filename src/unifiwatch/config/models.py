"""Configuration models using Pydantic."""

import logging

from pydantic import BaseModel, Field, field_validator

from unifiwatch.service.base import (
    DEFAULT_DESCRIPTION,
    DEFAULT_DISPLAY_NAME,
    DEFAULT_SERVICE_NAME,
    ServiceInstallOptions,
    StartupType,
)

logger = logging.getLogger(__name__)


class ConfigError(Exception):
    """Configuration error."""

    pass


class ServiceConfig(BaseModel):
    """The ``[service]`` table: how the worker is registered with the OS."""

    name: str = DEFAULT_SERVICE_NAME
    display_name: str = DEFAULT_DISPLAY_NAME
    description: str = DEFAULT_DESCRIPTION
    executable_path: str | None = None
    startup_type: StartupType = StartupType.AUTOMATIC
    delayed_auto_start: bool = True  # Windows only
    restart_attempts_on_failure: int = Field(default=3, ge=1)
    restart_delay_seconds: int = Field(default=10, ge=1)
    dependencies: list[str] = Field(default_factory=list)
    user_account: str | None = None
    launcher: str | None = None
    # None = platform default (Windows reuses, Linux/macOS refuse)
    allow_reuse_existing: bool | None = None

    @field_validator("startup_type", mode="before")
    @classmethod
    def _parse_startup_type(cls, value: object) -> StartupType:
        if isinstance(value, StartupType | str):
            return StartupType.parse(value)
        raise ValueError(f"Invalid startup type: {value!r}")

    @field_validator("name")
    @classmethod
    def _non_empty_name(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("service name must not be empty")
        return value

    def to_install_options(
        self, executable_path: str | None = None
    ) -> ServiceInstallOptions:
        """Build install options, letting an explicit executable win.

        Raises:
            ConfigError: If no usable executable path is available.
        """
        exe = executable_path or self.executable_path
        if not exe:
            raise ConfigError(
                "No executable configured. Pass --executable or set "
                "[service] executable_path"
            )
        try:
            return ServiceInstallOptions(
                executable_path=exe,
                service_name=self.name,
                display_name=self.display_name,
                description=self.description,
                startup_type=self.startup_type,
                delayed_auto_start=self.delayed_auto_start,
                restart_attempts_on_failure=self.restart_attempts_on_failure,
                restart_delay_seconds=self.restart_delay_seconds,
                dependencies=tuple(self.dependencies),
                user_account=self.user_account,
                launcher=self.launcher,
                allow_reuse_existing=self.allow_reuse_existing,
            )
        except ValueError as e:
            raise ConfigError(str(e)) from e


class UnifiWatchConfig(BaseModel):
    """Root configuration model.

    Only the sections this package consumes are modeled; other tables in the
    file (stores, notifications) are ignored.
    """

    service: ServiceConfig = Field(default_factory=ServiceConfig)
    log_level: str | None = None
