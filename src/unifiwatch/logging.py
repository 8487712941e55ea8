"""Centralized logging configuration for UnifiWatch.

All entry points (CLI, the service-mode worker) should call configure_logging()
early. Library modules only ever do ``logging.getLogger(__name__)``.

Logging Levels:
- DEBUG: Native tool invocations and their raw output
- INFO: Lifecycle operations that changed something (installed, started, ...)
- WARNING: Recoverable issues (enable failed, stderr from a tool that succeeded)
- ERROR: Failures that make an operation return an unsuccessful result

Native tool stdout/stderr is only ever written to the log sink; results
returned to callers carry a short human-readable detail instead.
"""

import json
import logging
import os
from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import TextIO

# Default retention period for log files
DEFAULT_LOG_RETENTION_DAYS = 7

LEVEL_ENV_VAR = "UNIFIWATCH_LOG_LEVEL"


def prune_old_logs(
    logs_dir: Path,
    retention_days: int = DEFAULT_LOG_RETENTION_DAYS,
    suffix: str = ".jsonl",
) -> int:
    """Delete log files older than retention period.

    Args:
        logs_dir: Directory containing log files.
        retention_days: Number of days to retain logs.
        suffix: File suffix to match (default: .jsonl).

    Returns:
        Number of files deleted.
    """
    if not logs_dir.exists():
        return 0

    cutoff = datetime.now(UTC) - timedelta(days=retention_days)
    deleted = 0

    for entry in logs_dir.iterdir():
        if not entry.is_file() or not entry.name.endswith(suffix):
            continue
        try:
            mtime = datetime.fromtimestamp(entry.stat().st_mtime, UTC)
            if mtime < cutoff:
                entry.unlink()
                deleted += 1
        except OSError:
            pass  # Ignore errors on individual files

    return deleted


def _component(logger_name: str) -> str:
    """Map a logger name to its component (unifiwatch.service.x -> service)."""
    parts = logger_name.split(".")
    if len(parts) >= 2 and parts[0] == "unifiwatch":
        return parts[1]
    return parts[0]


class JSONLHandler(logging.Handler):
    """Handler that writes structured log entries to a JSONL file.

    Logs are written to <logs_dir>/YYYY-MM-DD.jsonl with one JSON object per
    line, rotated daily and pruned after the retention period.
    """

    def __init__(
        self,
        logs_dir: Path,
        retention_days: int = DEFAULT_LOG_RETENTION_DAYS,
    ):
        super().__init__()
        self._logs_dir = logs_dir
        self._logs_dir.mkdir(parents=True, exist_ok=True)
        self._retention_days = retention_days
        self._current_date: str | None = None
        self._file: TextIO | None = None

    def _get_log_file(self) -> TextIO:
        """Get the current log file, rotating daily."""
        today = datetime.now(UTC).strftime("%Y-%m-%d")
        if self._current_date != today or self._file is None:
            if self._file:
                self._file.close()
            self._current_date = today
            log_path = self._logs_dir / f"{today}.jsonl"
            self._file = log_path.open("a", encoding="utf-8")

            # Prune old logs on rotation (once per day)
            prune_old_logs(self._logs_dir, self._retention_days)

        return self._file

    def emit(self, record: logging.LogRecord) -> None:
        """Write a log record as one JSON line."""
        try:
            entry = {
                "ts": datetime.now(UTC).isoformat(),
                "level": record.levelname,
                "component": _component(record.name),
                "logger": record.name,
                "message": record.getMessage(),
            }

            if record.exc_info:
                formatter = self.formatter or logging.Formatter()
                entry["exception"] = formatter.formatException(record.exc_info)

            log_file = self._get_log_file()
            log_file.write(json.dumps(entry) + "\n")
            log_file.flush()
        except Exception:
            self.handleError(record)

    def close(self) -> None:
        """Close the log file."""
        if self._file:
            self._file.close()
            self._file = None
        super().close()


class ComponentFormatter(logging.Formatter):
    """Formatter that exposes the short component name as %(component)s.

    - unifiwatch.service.backends.systemd -> service
    - unifiwatch.config.loader -> config
    """

    def format(self, record: logging.LogRecord) -> str:
        record.component = _component(record.name)
        return super().format(record)


def resolve_level(level: str | None = None) -> str:
    """Resolve a log level name, falling back to the env var and then INFO."""
    if level is None:
        level = os.environ.get(LEVEL_ENV_VAR, "INFO")
    level = level.upper()
    if level not in ("DEBUG", "INFO", "WARNING", "ERROR"):
        return "INFO"
    return level


def configure_logging(
    level: str | None = None,
    use_rich: bool = False,
    log_to_file: bool = False,
) -> None:
    """Configure logging for UnifiWatch.

    Call this once at application startup.

    Args:
        level: Console log level (DEBUG, INFO, WARNING, ERROR).
            If None, uses UNIFIWATCH_LOG_LEVEL env var or INFO.
        use_rich: Use Rich handler for colorful console output.
        log_to_file: Also write logs to JSONL files in ~/.unifiwatch/logs/.
            The file sink always records DEBUG, so native tool output is
            kept even when the console is quiet.
    """
    from unifiwatch.config.paths import get_logs_path

    log_level = getattr(logging, resolve_level(level))

    handlers: list[logging.Handler] = []

    if use_rich:
        from rich.logging import RichHandler

        console_handler: logging.Handler = RichHandler(
            rich_tracebacks=False,
            show_path=False,
            show_time=True,
            markup=False,
        )
        console_handler.setFormatter(ComponentFormatter("%(component)s | %(message)s"))
    else:
        console_handler = logging.StreamHandler()
        console_handler.setFormatter(
            logging.Formatter(
                "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
                datefmt="%H:%M:%S",
            )
        )
    console_handler.setLevel(log_level)
    handlers.append(console_handler)

    root_level = log_level
    if log_to_file:
        file_handler = JSONLHandler(get_logs_path())
        file_handler.setLevel(logging.DEBUG)
        handlers.append(file_handler)
        root_level = logging.DEBUG

    logging.basicConfig(
        level=root_level,
        handlers=handlers,
        force=True,
    )


def set_console_level(level: str) -> None:
    """Change the console level after configure_logging(); file sinks keep DEBUG."""
    log_level = getattr(logging, resolve_level(level))
    root = logging.getLogger()

    has_file_sink = False
    for handler in root.handlers:
        if isinstance(handler, JSONLHandler):
            has_file_sink = True
        else:
            handler.setLevel(log_level)

    if not has_file_sink:
        root.setLevel(log_level)
