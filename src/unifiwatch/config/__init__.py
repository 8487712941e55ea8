"""Configuration module."""

from unifiwatch.config.paths import (
    get_config_path,
    get_logs_path,
    get_unifiwatch_home,
)
from unifiwatch.config.models import ConfigError, ServiceConfig, UnifiWatchConfig
from unifiwatch.config.loader import find_config_path, load_config

__all__ = [
    "ConfigError",
    "ServiceConfig",
    "UnifiWatchConfig",
    "find_config_path",
    "get_config_path",
    "get_logs_path",
    "get_unifiwatch_home",
    "load_config",
]
