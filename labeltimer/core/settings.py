"""Alarm Settings - Configuration loaded from JSON.

Settings live in ~/.labeltimer/settings.json. A missing file means
defaults; a malformed one is an error.
"""

import json
import logging
from pathlib import Path

from pydantic import BaseModel, Field, ValidationError, field_validator

logger = logging.getLogger(__name__)

SETTINGS_DIR = Path.home() / ".labeltimer"
SETTINGS_FILE = SETTINGS_DIR / "settings.json"

# Infinite alarms stop on their own after 15 minutes
DEFAULT_AUTO_STOP_SECONDS = 900.0


class SettingsError(Exception):
    """Raised when the settings file cannot be parsed or validated."""

    pass


class AlarmSettings(BaseModel):
    """Tunables for alarm playback and notifications."""

    auto_stop_seconds: float = Field(DEFAULT_AUTO_STOP_SECONDS, gt=0)
    vibration_interval: float = Field(1.7, gt=0)
    sounds_dir: Path = SETTINGS_DIR / "sounds"
    default_sound: str = "melody"
    feedback_sound: str = "low_buzz"
    notification_interval: float = Field(2.0, gt=0)
    max_pending_notifications: int = Field(64, ge=1)

    @field_validator("default_sound", "feedback_sound")
    @classmethod
    def _known_sound(cls, value: str) -> str:
        from labeltimer.core.sounds import AlarmSound

        if AlarmSound.from_name(value) is None:
            known = ", ".join(s.file_name for s in AlarmSound)
            raise ValueError(f"unknown sound '{value}' (known: {known})")
        return value


def load_settings(path: str | Path | None = None) -> AlarmSettings:
    """Load settings from a JSON file.

    Args:
        path: Settings file. Defaults to ~/.labeltimer/settings.json.

    Returns:
        AlarmSettings, with defaults if the file does not exist.

    Raises:
        SettingsError: If the file is not valid JSON or fails validation.
    """
    path = Path(path) if path else SETTINGS_FILE

    if not path.exists():
        logger.debug("No settings file at %s, using defaults", path)
        return AlarmSettings()

    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise SettingsError(f"Invalid JSON in {path}: {e}") from e

    try:
        settings = AlarmSettings.model_validate(data)
    except ValidationError as e:
        raise SettingsError(f"Invalid settings in {path}: {e}") from e

    logger.info("Settings loaded: %s", path)
    return settings
