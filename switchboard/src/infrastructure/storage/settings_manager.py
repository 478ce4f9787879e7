"""
Settings Manager for Switchboard.

Loads and saves the four user preferences in app_settings.json, repairing
the one dangerous combination (silent start without a tray) on every load
and every update.
"""

import logging
import threading
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from ...domain.errors import DecodeError, NotFoundError, StorageIOError, ValidationError
from ...domain.models.settings import AppSettings
from ...utils.config_paths import get_settings_file
from .json_file import read_json, write_json

logger = logging.getLogger("switchboard.settings")


@dataclass(frozen=True)
class UpdateResult:
    """Settings after an update, and whether validation had to correct them."""
    settings: AppSettings
    corrected: bool


class SettingsManager:
    """
    Manages application settings.

    Features:
    - Type-checked merge of the file with defaults (unknown keys ignored)
    - ``silent_start_enabled`` implies ``system_tray_enabled``
    - Read-modify-write under a single lock
    - Observer callbacks on change
    """

    DEFAULT_SETTINGS = AppSettings()

    def __init__(self, settings_file: Optional[Path] = None):
        self.settings_file = Path(settings_file) if settings_file else get_settings_file()
        self._settings = self.DEFAULT_SETTINGS
        self._lock = threading.Lock()
        self._change_callbacks: List[Callable[[AppSettings], None]] = []
        self.load()

    # --- Observer pattern for settings changes ------------------------------------

    def on_change(self, callback: Callable[[AppSettings], None]) -> None:
        """Register a callback receiving the new settings after each update."""
        if callback not in self._change_callbacks:
            self._change_callbacks.append(callback)

    def _notify_change(self, new_settings: AppSettings) -> None:
        for cb in list(self._change_callbacks):
            try:
                cb(new_settings)
            except Exception as e:
                logger.warning(f"Settings change callback error: {e}")

    # --- Load / save --------------------------------------------------------------

    def _validate_and_merge_settings(self, loaded: Dict[str, Any]) -> AppSettings:
        """Keep known boolean fields from the file; fill the rest with defaults."""
        values = {}
        defaults = self.DEFAULT_SETTINGS.to_dict()
        for key, default_value in defaults.items():
            if key not in loaded:
                logger.debug(f"Using default for missing key: {key}")
                values[key] = default_value
                continue
            value = loaded[key]
            if isinstance(value, bool):
                values[key] = value
            else:
                logger.warning(
                    f"Invalid type for '{key}': expected bool, "
                    f"got {type(value).__name__}. Using default: {default_value}"
                )
                values[key] = default_value

        for key in loaded:
            if key not in defaults:
                logger.debug(f"Ignoring unknown key from config file: {key}")

        return AppSettings(**values)

    def load(self) -> bool:
        """
        Load settings from disk.

        Returns:
            True if the loaded settings had to be corrected
        """
        with self._lock:
            try:
                loaded = read_json(self.settings_file)
                if not isinstance(loaded, dict):
                    raise DecodeError("Settings file is not a JSON object")
                settings = self._validate_and_merge_settings(loaded)
                logger.info("Settings loaded and validated successfully")
            except NotFoundError:
                settings = self.DEFAULT_SETTINGS
                logger.info("No settings file, using defaults")
            except (DecodeError, StorageIOError) as e:
                logger.error(f"Failed to load settings: {e}. Using defaults.")
                settings = self.DEFAULT_SETTINGS

            settings, corrected = settings.validated()
            if corrected:
                logger.warning("Loaded settings contained a dangerous combination, corrected")
                try:
                    self._write(settings)
                except StorageIOError as e:
                    logger.error(f"Failed to persist corrected settings: {e}")
            self._settings = settings
            return corrected

    def _write(self, settings: AppSettings) -> None:
        write_json(self.settings_file, settings.to_dict())
        logger.debug(f"Settings saved to {self.settings_file}")

    def get(self) -> AppSettings:
        """Current settings (immutable copy)."""
        with self._lock:
            return self._settings

    def update(self, **changes: bool) -> UpdateResult:
        """
        Apply changes, validate, and persist.

        Raises:
            ValidationError: unknown field or non-boolean value
            StorageIOError: the settings file could not be written
        """
        for key, value in changes.items():
            if key not in AppSettings.field_names():
                raise ValidationError(f"Unknown setting: {key}")
            if not isinstance(value, bool):
                raise ValidationError(f"Setting '{key}' must be a boolean")

        with self._lock:
            old = self._settings
            new_settings, corrected = replace(old, **changes).validated()
            if corrected:
                logger.info(
                    f"Settings corrected: silent_start {old.silent_start_enabled} -> "
                    f"{new_settings.silent_start_enabled}, system_tray {old.system_tray_enabled} -> "
                    f"{new_settings.system_tray_enabled}"
                )
            self._write(new_settings)
            self._settings = new_settings

        logger.info(f"Settings updated: {changes}")
        self._notify_change(new_settings)
        return UpdateResult(settings=new_settings, corrected=corrected)


_settings_manager: Optional[SettingsManager] = None
_settings_lock = threading.Lock()


def get_settings_manager() -> SettingsManager:
    """Process-wide settings instance, created on first use."""
    global _settings_manager
    with _settings_lock:
        if _settings_manager is None:
            _settings_manager = SettingsManager()
        return _settings_manager
