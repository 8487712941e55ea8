"""Tests for logging configuration and utilities."""

import json
import logging
import os
import time

import pytest

from unifiwatch.logging import (
    LEVEL_ENV_VAR,
    ComponentFormatter,
    JSONLHandler,
    configure_logging,
    prune_old_logs,
    resolve_level,
    set_console_level,
)


class TestPruneOldLogs:
    def test_deletes_old_files(self, tmp_path):
        old = tmp_path / "2020-01-01.jsonl"
        old.write_text("{}\n")
        eight_days_ago = time.time() - 8 * 86400
        os.utime(old, (eight_days_ago, eight_days_ago))

        recent = tmp_path / "today.jsonl"
        recent.write_text("{}\n")

        assert prune_old_logs(tmp_path, retention_days=7) == 1
        assert not old.exists()
        assert recent.exists()

    def test_ignores_other_suffixes(self, tmp_path):
        other = tmp_path / "stdout.log"
        other.write_text("x")
        os.utime(other, (0, 0))

        assert prune_old_logs(tmp_path) == 0
        assert other.exists()

    def test_missing_directory(self, tmp_path):
        assert prune_old_logs(tmp_path / "missing") == 0


class TestJSONLHandler:
    def test_writes_structured_entries(self, tmp_path):
        handler = JSONLHandler(tmp_path / "logs")
        logger = logging.getLogger("unifiwatch.service.backends.systemd")
        record = logger.makeRecord(
            logger.name, logging.WARNING, __file__, 1, "enable failed: %s", ("boom",), None
        )

        handler.emit(record)
        handler.close()

        files = list((tmp_path / "logs").glob("*.jsonl"))
        assert len(files) == 1
        entry = json.loads(files[0].read_text().strip())
        assert entry["level"] == "WARNING"
        assert entry["component"] == "service"
        assert entry["logger"] == "unifiwatch.service.backends.systemd"
        assert entry["message"] == "enable failed: boom"
        assert "ts" in entry


class TestComponentFormatter:
    @pytest.mark.parametrize(
        ("name", "component"),
        [
            ("unifiwatch.config.loader", "config"),
            ("unifiwatch.service.manager", "service"),
            ("asyncio", "asyncio"),
        ],
    )
    def test_component(self, name, component):
        formatter = ComponentFormatter("%(component)s | %(message)s")
        record = logging.LogRecord(name, logging.INFO, __file__, 1, "hi", None, None)
        assert formatter.format(record) == f"{component} | hi"


class TestResolveLevel:
    def test_explicit(self):
        assert resolve_level("debug") == "DEBUG"

    def test_env_var(self, monkeypatch):
        monkeypatch.setenv(LEVEL_ENV_VAR, "warning")
        assert resolve_level() == "WARNING"

    def test_default(self, monkeypatch):
        monkeypatch.delenv(LEVEL_ENV_VAR, raising=False)
        assert resolve_level() == "INFO"

    def test_invalid_falls_back_to_info(self):
        assert resolve_level("chatty") == "INFO"


def _console_handlers(root: logging.Logger) -> list[logging.Handler]:
    return [h for h in root.handlers if not isinstance(h, JSONLHandler)]


class TestConfigureLogging:
    def test_file_sink_records_debug_behind_quiet_console(
        self, root_logger, unifiwatch_home
    ):
        configure_logging(level="WARNING", log_to_file=True)

        logging.getLogger("unifiwatch.service.commands").debug("Running: sc.exe query")
        for handler in root_logger.handlers:
            handler.flush()

        assert root_logger.level == logging.DEBUG
        assert [h.level for h in _console_handlers(root_logger)] == [logging.WARNING]

        files = list((unifiwatch_home / "logs").glob("*.jsonl"))
        assert len(files) == 1
        entry = json.loads(files[0].read_text().splitlines()[-1])
        assert entry["level"] == "DEBUG"
        assert entry["message"] == "Running: sc.exe query"

    def test_without_file_sink(self, root_logger, unifiwatch_home):
        configure_logging(level="ERROR")

        assert root_logger.level == logging.ERROR
        assert not any(isinstance(h, JSONLHandler) for h in root_logger.handlers)

    def test_set_console_level_keeps_file_sink(self, root_logger, unifiwatch_home):
        configure_logging(level="WARNING", log_to_file=True)

        set_console_level("info")

        assert [h.level for h in _console_handlers(root_logger)] == [logging.INFO]
        sinks = [h for h in root_logger.handlers if isinstance(h, JSONLHandler)]
        assert [h.level for h in sinks] == [logging.DEBUG]
        assert root_logger.level == logging.DEBUG

    def test_set_console_level_without_file_sink(self, root_logger, unifiwatch_home):
        configure_logging(level="WARNING")

        set_console_level("DEBUG")

        assert root_logger.level == logging.DEBUG
