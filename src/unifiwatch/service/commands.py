"""Running native service-management tools.

Every backend shells out through a CommandRunner so tests can substitute a
scripted runner. Success is decided by exit code; output is only parsed for
structured status data and logged for diagnosis.
"""

import asyncio
import logging
from dataclasses import dataclass

logger = logging.getLogger(__name__)

# Conventional exit codes for failures that happen before/around the tool
EXIT_TIMEOUT = 124
EXIT_NOT_FOUND = 127


@dataclass(frozen=True)
class CommandResult:
    """Result of one external command.

    Attributes:
        args: The full argument vector that was executed.
        returncode: Process exit code (127 if the program was not found,
            124 if it timed out).
        stdout: Decoded standard output.
        stderr: Decoded standard error.
    """

    args: tuple[str, ...]
    returncode: int
    stdout: str = ""
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    @property
    def combined(self) -> str:
        """Stdout and stderr joined for logging."""
        if not self.stderr:
            return self.stdout
        return f"{self.stdout}\nSTDERR: {self.stderr}"

    @property
    def output(self) -> str:
        """Best single-line-ish message: stripped stdout, else stderr."""
        return self.stdout.strip() or self.stderr.strip()

    @property
    def error(self) -> str:
        """Best error message: stripped stderr, else stdout."""
        return self.stderr.strip() or self.stdout.strip()

    def describe(self) -> str:
        """Short description for result details ("sc.exe start exited with 5")."""
        head = " ".join(self.args[:2])
        return f"{head} exited with {self.returncode}"


class CommandRunner:
    """Spawns external programs and captures their output."""

    def __init__(self, default_timeout: float | None = 60.0):
        self.default_timeout = default_timeout

    async def run(self, *args: str, timeout: float | None = None) -> CommandResult:
        """Run a command to completion.

        Args:
            *args: Program and arguments (no shell involved).
            timeout: Seconds to wait before killing the process. Defaults to
                the runner's default_timeout.

        Returns:
            CommandResult with exit code and decoded output.

        Raises:
            asyncio.CancelledError: If the awaiting task is cancelled; the
                child process is killed and reaped first.
        """
        argv = tuple(args)
        wait_for = self.default_timeout if timeout is None else timeout
        logger.debug("Running: %s", " ".join(argv))

        try:
            proc = await asyncio.create_subprocess_exec(
                *argv,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                stdin=asyncio.subprocess.DEVNULL,
            )
        except FileNotFoundError:
            logger.warning("Command not found: %s", argv[0])
            return CommandResult(
                args=argv,
                returncode=EXIT_NOT_FOUND,
                stderr=f"{argv[0]}: command not found",
            )
        except PermissionError as e:
            logger.warning("Command not executable: %s (%s)", argv[0], e)
            return CommandResult(args=argv, returncode=126, stderr=str(e))

        try:
            stdout, stderr = await asyncio.wait_for(proc.communicate(), wait_for)
        except TimeoutError:
            _kill(proc)
            await proc.wait()
            logger.warning("Command timed out after %ss: %s", wait_for, " ".join(argv))
            return CommandResult(
                args=argv,
                returncode=EXIT_TIMEOUT,
                stderr=f"timed out after {wait_for}s",
            )
        except asyncio.CancelledError:
            _kill(proc)
            await asyncio.shield(proc.wait())
            raise

        result = CommandResult(
            args=argv,
            returncode=proc.returncode if proc.returncode is not None else -1,
            stdout=stdout.decode(errors="replace"),
            stderr=stderr.decode(errors="replace"),
        )

        if result.stderr.strip():
            logger.debug("%s stderr: %s", argv[0], result.stderr.strip())
        logger.debug("%s exited with %d", argv[0], result.returncode)
        return result


def _kill(proc: asyncio.subprocess.Process) -> None:
    if proc.returncode is None:
        try:
            proc.kill()
        except ProcessLookupError:
            pass
