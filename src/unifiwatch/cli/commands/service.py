"""Service management commands."""

import asyncio
from pathlib import Path
from typing import Annotated

import typer
from rich.markup import escape

from unifiwatch.cli.console import console, create_table, dim, error, success
from unifiwatch.config import ConfigError, UnifiWatchConfig, load_config
from unifiwatch.logging import set_console_level
from unifiwatch.service import (
    ServiceManager,
    ServiceState,
    UnsupportedPlatformError,
    create_installer,
)

ConfigOption = Annotated[
    Path | None,
    typer.Option(
        "--config",
        "-c",
        help="Path to configuration file",
    ),
]


def _load(ctx: typer.Context, config_path: Path | None) -> UnifiWatchConfig:
    try:
        config = load_config(config_path)
    except (ConfigError, FileNotFoundError) as e:
        error(str(e))
        raise typer.Exit(1) from None

    if config.log_level and not (ctx.obj or {}).get("log_level"):
        set_console_level(config.log_level)
    return config


def _create_manager(config: UnifiWatchConfig) -> ServiceManager:
    """Build a manager for the configured service on the running OS."""
    try:
        installer = create_installer(service_name=config.service.name)
    except UnsupportedPlatformError as e:
        error(str(e))
        raise typer.Exit(1) from None
    return ServiceManager(installer)


def _report(result: bool, message: str) -> None:
    if result:
        success(message)
    else:
        error(message)
        raise typer.Exit(1)


def _run_service_action(
    ctx: typer.Context, action_name: str, config_path: Path | None
) -> None:
    """Run a service manager action and handle the result.

    Args:
        ctx: Click context carrying the level chosen on the command line.
        action_name: Name of the ServiceManager method to call (start, stop, restart).
        config_path: Optional config file naming the service.
    """
    manager = _create_manager(_load(ctx, config_path))
    action = getattr(manager, action_name)
    result, message = asyncio.run(action())
    _report(result, message)


_STATE_COLORS = {
    ServiceState.RUNNING: "green",
    ServiceState.STOPPED: "yellow",
    ServiceState.INSTALLED: "yellow",
    ServiceState.NOT_INSTALLED: "red",
    ServiceState.UNKNOWN: "dim",
}


def register(app: typer.Typer) -> None:
    """Register service subcommands."""
    service_app = typer.Typer(
        help="Manage the UnifiWatch background service", no_args_is_help=True
    )
    app.add_typer(service_app, name="service")

    @service_app.command("install")
    def service_install(
        ctx: typer.Context,
        executable: Annotated[
            str | None,
            typer.Option(
                "--executable",
                "-e",
                help="Absolute path of the worker script to run as a service",
            ),
        ] = None,
        config: ConfigOption = None,
    ) -> None:
        """Register UnifiWatch as an auto-starting service and start it."""
        cfg = _load(ctx, config)
        try:
            options = cfg.service.to_install_options(executable)
        except ConfigError as e:
            error(str(e))
            raise typer.Exit(1) from None

        manager = _create_manager(cfg)
        dim(f"Installing {options} using {manager.backend_name}")
        result, message = asyncio.run(manager.install(options))
        _report(result, message)

    @service_app.command("uninstall")
    def service_uninstall(ctx: typer.Context, config: ConfigOption = None) -> None:
        """Stop UnifiWatch and remove the service registration."""
        _run_service_action(ctx, "uninstall", config)

    @service_app.command("start")
    def service_start(ctx: typer.Context, config: ConfigOption = None) -> None:
        """Start the UnifiWatch service."""
        _run_service_action(ctx, "start", config)

    @service_app.command("stop")
    def service_stop(ctx: typer.Context, config: ConfigOption = None) -> None:
        """Stop the UnifiWatch service."""
        _run_service_action(ctx, "stop", config)

    @service_app.command("restart")
    def service_restart(ctx: typer.Context, config: ConfigOption = None) -> None:
        """Restart the UnifiWatch service."""
        _run_service_action(ctx, "restart", config)

    @service_app.command("status")
    def service_status(ctx: typer.Context, config: ConfigOption = None) -> None:
        """Show UnifiWatch service status."""
        manager = _create_manager(_load(ctx, config))
        status = asyncio.run(manager.status())

        table = create_table(
            "UnifiWatch Service Status",
            [
                ("Property", "cyan"),
                ("Value", ""),
            ],
        )

        state_color = _STATE_COLORS.get(status.state, "white")
        table.add_row("State", f"[{state_color}]{status.state.value}[/{state_color}]")
        table.add_row("Service", manager.service_name)
        table.add_row("Backend", manager.backend_name)

        if status.display_name:
            table.add_row("Display Name", status.display_name)
        if status.startup_type:
            table.add_row("Startup", status.startup_type)
        if status.process_id:
            table.add_row("PID", str(status.process_id))
        if status.last_start_time:
            table.add_row("Started", status.last_start_time.isoformat(sep=" "))
        if status.message:
            table.add_row("Message", escape(status.message))

        descriptor = manager.installer.descriptor_path
        if descriptor is not None:
            table.add_row("Descriptor", str(descriptor))

        console.print(table)
