"""CLI command modules."""

from unifiwatch.cli.commands import service

__all__ = ["service"]
