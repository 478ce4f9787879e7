"""
Application settings model.
"""

import logging
from dataclasses import asdict, dataclass, fields, replace
from typing import Any, Dict

logger = logging.getLogger("switchboard.settings_model")


@dataclass(frozen=True)
class AppSettings:
    """User preferences persisted in app_settings.json."""
    system_tray_enabled: bool = False
    # Start hidden in the tray; only meaningful when the tray is enabled.
    silent_start_enabled: bool = False
    debug_mode: bool = False
    # Mask e-mail addresses in the UI and tray.
    private_mode: bool = True

    def validated(self) -> tuple:
        """
        Repair dangerous combinations.

        Silent start without a tray would leave the app unreachable, so
        ``silent_start_enabled`` is cleared in that case.

        Returns:
            (settings, corrected) where corrected is True if anything changed
        """
        if self.silent_start_enabled and not self.system_tray_enabled:
            logger.warning(
                "Silent start enabled while system tray is disabled - "
                "disabling silent start so the window stays reachable"
            )
            return replace(self, silent_start_enabled=False), True
        return self, False

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def field_names(cls) -> tuple:
        return tuple(f.name for f in fields(cls))
