"""Resolve the runtime launcher used to run the worker under the service manager."""

import logging
import shutil

logger = logging.getLogger(__name__)

LAUNCHER_NAME = "python3"

# Used when the launcher is not on PATH (e.g. sudo with a reset PATH)
FALLBACK_LAUNCHERS = {
    "linux": "/usr/bin/python3",
    "darwin": "/usr/local/bin/python3",
}


def find_launcher(platform_key: str, explicit: str | None = None) -> str:
    """Find the launcher binary for a platform.

    Resolution order:
    1. An explicit launcher from the install options
    2. ``python3`` on the process search path
    3. The documented per-platform absolute fallback

    Args:
        platform_key: "linux" or "darwin".
        explicit: Launcher configured by the caller, if any.

    Returns:
        Absolute path (or bare name as last resort) of the launcher.
    """
    if explicit:
        return explicit

    found = shutil.which(LAUNCHER_NAME)
    if found:
        return found

    fallback = FALLBACK_LAUNCHERS.get(platform_key, LAUNCHER_NAME)
    logger.debug("%s not on PATH, using fallback %s", LAUNCHER_NAME, fallback)
    return fallback
