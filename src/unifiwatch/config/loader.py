"""Configuration loading from TOML files."""

import logging
import tomllib
from pathlib import Path

from pydantic import ValidationError

from unifiwatch.config.models import ConfigError, UnifiWatchConfig
from unifiwatch.config.paths import SYSTEM_CONFIG_PATH, get_config_path

logger = logging.getLogger(__name__)


def _get_default_config_paths() -> list[Path]:
    """Get ordered list of default config file locations."""
    return [
        Path("config.toml"),  # Current directory
        get_config_path(),  # ~/.unifiwatch/config.toml (or UNIFIWATCH_HOME)
        SYSTEM_CONFIG_PATH,  # System-wide
    ]


def find_config_path() -> Path | None:
    """Return the first existing default config file, if any."""
    for default_path in _get_default_config_paths():
        expanded = default_path.expanduser()
        if expanded.exists():
            return expanded
    return None


def load_config(path: Path | str | None = None) -> UnifiWatchConfig:
    """Load configuration from TOML file.

    Args:
        path: Explicit path to config file. If None, searches default locations
            and falls back to defaults when none exists.

    Returns:
        Validated UnifiWatchConfig instance.

    Raises:
        FileNotFoundError: If an explicit path does not exist.
        ConfigError: If the config file is invalid.
    """
    if path is not None:
        config_path: Path | None = Path(path).expanduser()
        if not config_path.exists():
            raise FileNotFoundError(f"Config file not found: {config_path}")
    else:
        config_path = find_config_path()

    if config_path is None:
        logger.debug("No config file found, using defaults")
        return UnifiWatchConfig()

    try:
        with config_path.open("rb") as f:
            raw_config = tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise ConfigError(f"Invalid TOML in {config_path}: {e}") from e

    try:
        config = UnifiWatchConfig.model_validate(raw_config)
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration in {config_path}:\n{e}") from e

    logger.debug("Loaded config from %s", config_path)
    return config
