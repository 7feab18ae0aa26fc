import json
from pathlib import Path
from typing import Any, Optional

from pydantic import ValidationError

from attendance_app.schemas import AttendanceSettings
from attendance_app.utils.logger import get_logger

log = get_logger(__name__)

SETTINGS_KEY = "settings"


class InvalidSettingsError(ValueError):
    pass


class SettingsStore:
    """
    Holds the live AttendanceSettings and persists them as JSON under the
    `settings` key. Callers read `current` on every decision, so saved
    changes apply from the next attempt on.
    """

    def __init__(self, path: Optional[Path] = None):
        self.path = path
        self._current = self._load()

    @property
    def current(self) -> AttendanceSettings:
        return self._current

    def _load(self) -> AttendanceSettings:
        if self.path is None or not self.path.exists():
            return AttendanceSettings()
        try:
            with open(self.path, "r", encoding="utf-8") as fh:
                data = json.load(fh)
            return AttendanceSettings.model_validate(data[SETTINGS_KEY])
        except (OSError, json.JSONDecodeError, KeyError, TypeError, ValidationError) as e:
            log.warning(f"Ignoring unreadable settings file {self.path}: {e}")
            return AttendanceSettings()

    def save(self, settings: AttendanceSettings) -> AttendanceSettings:
        self._current = settings
        if self.path is not None:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.path, "w", encoding="utf-8") as fh:
                json.dump({SETTINGS_KEY: self.export()}, fh, indent=2)
        log.info("Settings saved")
        return settings

    def export(self) -> dict:
        return self._current.model_dump(by_alias=True)

    @staticmethod
    def parse(raw: Any) -> AttendanceSettings:
        """Validates an imported settings document (bytes, str or dict)."""
        try:
            data = json.loads(raw) if isinstance(raw, (bytes, str)) else raw
            if isinstance(data, dict) and SETTINGS_KEY in data:
                data = data[SETTINGS_KEY]
            return AttendanceSettings.model_validate(data)
        except (json.JSONDecodeError, UnicodeDecodeError, ValidationError) as e:
            raise InvalidSettingsError("Invalid settings file") from e
