"""Shared test fixtures and factories."""

import logging
from collections.abc import Callable
from pathlib import Path

import pytest

from unifiwatch.config.paths import ENV_VAR, get_unifiwatch_home
from unifiwatch.service.commands import CommandResult, CommandRunner

Handler = Callable[[tuple[str, ...]], CommandResult]


# =============================================================================
# Command Runner Fake
# =============================================================================


class FakeRunner(CommandRunner):
    """Scripted command runner.

    Responses are registered per argv prefix; the longest matching prefix
    wins. Unmatched commands succeed with empty output. Every call is
    recorded in ``calls``.
    """

    def __init__(self):
        super().__init__()
        self.calls: list[tuple[str, ...]] = []
        self._handlers: dict[tuple[str, ...], Handler] = {}

    def set(
        self,
        *prefix: str,
        returncode: int = 0,
        stdout: str = "",
        stderr: str = "",
    ) -> None:
        """Respond to commands starting with prefix with a fixed result."""
        self._handlers[prefix] = lambda args: CommandResult(
            args=args, returncode=returncode, stdout=stdout, stderr=stderr
        )

    def on(self, *prefix: str, handler: Handler) -> None:
        """Respond to commands starting with prefix by calling handler(args)."""
        self._handlers[prefix] = handler

    async def run(self, *args: str, timeout: float | None = None) -> CommandResult:
        argv = tuple(args)
        self.calls.append(argv)

        best: tuple[str, ...] | None = None
        for prefix in self._handlers:
            if argv[: len(prefix)] == prefix and (best is None or len(prefix) > len(best)):
                best = prefix

        if best is None:
            return CommandResult(args=argv, returncode=0)
        return self._handlers[best](argv)

    def matching(self, *prefix: str) -> list[tuple[str, ...]]:
        """Recorded calls that start with prefix."""
        return [c for c in self.calls if c[: len(prefix)] == prefix]

    def called(self, *prefix: str) -> bool:
        return bool(self.matching(*prefix))


def result(args: tuple[str, ...], returncode: int = 0, stdout: str = "") -> CommandResult:
    """Shorthand for building a CommandResult inside handlers."""
    return CommandResult(args=args, returncode=returncode, stdout=stdout)


@pytest.fixture
def runner() -> FakeRunner:
    return FakeRunner()


# =============================================================================
# Path Fixtures
# =============================================================================


@pytest.fixture
def unifiwatch_home(monkeypatch, tmp_path: Path):
    """Point UNIFIWATCH_HOME at a temporary directory."""
    home = tmp_path / "home"
    monkeypatch.setenv(ENV_VAR, str(home))
    get_unifiwatch_home.cache_clear()
    yield home
    get_unifiwatch_home.cache_clear()


# =============================================================================
# Logging Fixtures
# =============================================================================


@pytest.fixture
def root_logger():
    """Restore the root logger after a test reconfigures logging."""
    root = logging.getLogger()
    saved_handlers = root.handlers[:]
    saved_level = root.level
    yield root
    for handler in root.handlers:
        if handler not in saved_handlers:
            handler.close()
    root.handlers[:] = saved_handlers
    root.setLevel(saved_level)


# =============================================================================
# CLI Fixtures
# =============================================================================


@pytest.fixture
def cli_runner():
    """Create a Typer CLI test runner with colors disabled."""
    from typer.testing import CliRunner

    return CliRunner(env={"NO_COLOR": "1"})
