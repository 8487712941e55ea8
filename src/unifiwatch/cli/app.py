"""Main CLI application."""

import logging
import os
from typing import Annotated

import typer

from unifiwatch.cli.commands import service
from unifiwatch.logging import LEVEL_ENV_VAR, configure_logging

logger = logging.getLogger(__name__)

app = typer.Typer(
    name="unifiwatch",
    help="UnifiWatch - Ubiquiti stock monitor",
    no_args_is_help=True,
)


@app.callback()
def main(
    ctx: typer.Context,
    verbose: Annotated[
        bool,
        typer.Option(
            "--verbose",
            "-v",
            help="Show debug logs, including native tool output",
        ),
    ] = False,
    log_file: Annotated[
        bool,
        typer.Option(
            "--log-file/--no-log-file",
            help="Write JSONL logs under ~/.unifiwatch/logs",
        ),
    ] = True,
) -> None:
    """UnifiWatch command line."""
    # Explicit levels win over [log_level] in the config file
    level = "DEBUG" if verbose else os.environ.get(LEVEL_ENV_VAR)
    ctx.obj = {"log_level": level}

    console_level = level or "WARNING"
    try:
        configure_logging(level=console_level, use_rich=True, log_to_file=log_file)
    except OSError as e:
        configure_logging(level=console_level, use_rich=True)
        logger.warning("File logging disabled: %s", e)


service.register(app)


if __name__ == "__main__":
    app()
