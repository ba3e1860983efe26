"""
Runtime configuration read from the environment.
Business defaults (GST, discount, handling) live in the AppSettings table instead.
"""

import logging
import os

from interio.core.paths import app_paths


def get_database_url() -> str:
    """Database URL, overridable with INTERIO_DATABASE_URL."""
    url = os.environ.get("INTERIO_DATABASE_URL")
    if url:
        return url
    return f"sqlite:///{app_paths.database_path}"


def get_log_level() -> int:
    """Log level name from INTERIO_LOG_LEVEL, defaulting to INFO."""
    name = os.environ.get("INTERIO_LOG_LEVEL", "INFO").upper()
    level = logging.getLevelName(name)
    if isinstance(level, int):
        return level
    return logging.INFO
