"""
Application paths management.
Uses platformdirs to ensure data persists in user-writable locations.
"""

import os
from pathlib import Path
from platformdirs import user_data_dir


class AppPaths:
    """Centralized path management for the application."""

    APP_NAME = "InterioQuoter"
    APP_AUTHOR = "Interio"

    def __init__(self, base_dir: str = None):
        # INTERIO_DATA_DIR redirects everything, e.g. for tests or containers
        self._base_dir = base_dir or os.environ.get("INTERIO_DATA_DIR")

    @property
    def data_dir(self) -> Path:
        """User data directory for database and application data."""
        if self._base_dir:
            data_path = Path(self._base_dir)
        else:
            data_path = Path(user_data_dir(self.APP_NAME, self.APP_AUTHOR))
        data_path.mkdir(parents=True, exist_ok=True)
        return data_path

    @property
    def database_path(self) -> Path:
        """SQLite database file path."""
        db_dir = self.data_dir / "data"
        db_dir.mkdir(exist_ok=True)
        return db_dir / "interio.db"

    @property
    def logs_dir(self) -> Path:
        """Directory for daily and rotating log files."""
        logs_path = self.data_dir / "logs"
        logs_path.mkdir(parents=True, exist_ok=True)
        return logs_path


# Global instance
app_paths = AppPaths()
