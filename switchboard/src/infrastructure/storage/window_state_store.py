"""
Window state file storage.

Invalid geometry is never written and never trusted when read; both paths
fall back to the default state instead.
"""

import logging
from pathlib import Path
from typing import Optional

from ...domain.errors import DecodeError, NotFoundError, StorageIOError
from ...domain.models.window_state import DEFAULT_WINDOW_STATE, WindowState
from ...utils.config_paths import get_window_state_file
from .json_file import read_json, write_json

logger = logging.getLogger("switchboard.window_state_store")


class WindowStateStore:
    """Reads and writes window_state.json."""

    def __init__(self, state_file: Optional[Path] = None):
        self.state_file = Path(state_file) if state_file else get_window_state_file()

    def save(self, state: WindowState) -> bool:
        """
        Persist ``state`` if it is valid.

        Returns:
            True if written, False if the state was rejected

        Raises:
            StorageIOError: the file could not be written
        """
        if not state.is_valid():
            logger.warning(
                f"Invalid window state, skipping save: position({state.x:.1f}, {state.y:.1f}), "
                f"size({state.width:.1f}x{state.height:.1f})"
            )
            return False

        write_json(self.state_file, state.to_dict())
        logger.debug(
            f"Window state saved: position({state.x:.1f}, {state.y:.1f}), "
            f"size({state.width:.1f}x{state.height:.1f}), maximized: {state.maximized}"
        )
        return True

    def load(self) -> WindowState:
        """Last saved state, or the default on missing/corrupt/invalid file."""
        try:
            data = read_json(self.state_file)
        except NotFoundError:
            return DEFAULT_WINDOW_STATE
        except (DecodeError, StorageIOError) as e:
            logger.warning(f"Failed to load window state: {e}, using default state")
            return DEFAULT_WINDOW_STATE

        state = WindowState.from_dict(data) if isinstance(data, dict) else None
        if state is None:
            logger.warning("Window state file is malformed, using default state")
            return DEFAULT_WINDOW_STATE

        if not state.is_valid():
            logger.warning(
                f"Loaded window state is invalid (position({state.x:.1f}, {state.y:.1f}), "
                f"size({state.width:.1f}x{state.height:.1f})), using default state"
            )
            return DEFAULT_WINDOW_STATE

        return state
