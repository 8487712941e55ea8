"""Centralized path management for UnifiWatch.

All local state (config, logs) is stored under a single base directory.
The base directory can be overridden with the UNIFIWATCH_HOME environment variable.

Default locations:
- Linux/macOS: ~/.unifiwatch
- Windows: %USERPROFILE%\\.unifiwatch

Native service descriptors do not live here; each backend owns its own
platform-defined location (see unifiwatch.service.backends).
"""

import os
from functools import lru_cache
from pathlib import Path

ENV_VAR = "UNIFIWATCH_HOME"

# System-wide config location consulted after the user config
SYSTEM_CONFIG_PATH = Path("/etc/unifiwatch/config.toml")


@lru_cache(maxsize=1)
def get_unifiwatch_home() -> Path:
    """Get the base directory for all UnifiWatch data.

    Resolution order:
    1. UNIFIWATCH_HOME environment variable (if set)
    2. Platform default (~/.unifiwatch)

    Returns:
        Path to the UnifiWatch home directory.
    """
    if env_home := os.environ.get(ENV_VAR):
        return Path(env_home).expanduser().resolve()

    return Path.home() / ".unifiwatch"


def get_config_path() -> Path:
    """Get the default config file path."""
    return get_unifiwatch_home() / "config.toml"


def get_logs_path() -> Path:
    """Get the logs directory path (JSONL logs and service stdout/stderr)."""
    return get_unifiwatch_home() / "logs"


def get_service_stdout_path() -> Path:
    """Get the stdout redirect path used by the launchd agent."""
    return get_logs_path() / "stdout.log"


def get_service_stderr_path() -> Path:
    """Get the stderr redirect path used by the launchd agent."""
    return get_logs_path() / "stderr.log"
