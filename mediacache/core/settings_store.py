"""JSON settings blob stored on disk for the front end."""

import json
from pathlib import Path
from typing import Any

from mediacache.core.logging import get_logger

logger = get_logger(__name__)


class SettingsFileError(Exception):
    """Raised when the settings file cannot be read or written."""


class SettingsFile:
    """Reads and atomically replaces a JSON document."""

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)

    def read(self) -> Any:
        try:
            with open(self.path, encoding="utf-8") as f:
                return json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.error("settings_read_failed", path=str(self.path), error=str(e))
            raise SettingsFileError(f"Failed to read settings: {e}") from e

    def write(self, data: Any) -> None:
        """Write to a temporary file first, then move it into place."""
        temp_file = self.path.with_suffix(self.path.suffix + ".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(temp_file, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2)
            temp_file.replace(self.path)
        except (OSError, TypeError, ValueError) as e:
            logger.error("settings_write_failed", path=str(self.path), error=str(e))
            if temp_file.exists():
                temp_file.unlink(missing_ok=True)
            raise SettingsFileError(f"Failed to save settings: {e}") from e
        logger.info("settings_updated", path=str(self.path))
