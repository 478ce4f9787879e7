"""
Window geometry model.

Tracks the main window position, size and maximized flag between runs.
"""

from dataclasses import asdict, dataclass
from typing import Any, Dict, Optional

# Position bounds are exclusive; a hidden/minimized window on Windows
# reports (-32000, -32000).
MIN_POSITION = -1000.0
MAX_POSITION = 10000.0

MIN_WIDTH = 400.0
MAX_WIDTH = 4000.0
MIN_HEIGHT = 400.0
MAX_HEIGHT = 3000.0


@dataclass(frozen=True)
class WindowState:
    """Main window geometry."""
    x: float = 100.0
    y: float = 100.0
    width: float = 800.0
    height: float = 600.0
    maximized: bool = False

    def is_valid(self) -> bool:
        """
        Check that the geometry is worth persisting or applying.

        Rejects positions outside a generous on-screen box and sizes outside
        [400, 4000] x [400, 3000]. Size bounds are inclusive.
        """
        position_valid = (
            MIN_POSITION < self.x < MAX_POSITION
            and MIN_POSITION < self.y < MAX_POSITION
        )
        size_valid = (
            MIN_WIDTH <= self.width <= MAX_WIDTH
            and MIN_HEIGHT <= self.height <= MAX_HEIGHT
        )
        return position_valid and size_valid

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Optional['WindowState']:
        """Build from a decoded JSON object; None if a field is missing or mistyped."""
        try:
            values = {name: data[name] for name in ('x', 'y', 'width', 'height', 'maximized')}
        except (KeyError, TypeError):
            return None

        if not isinstance(values['maximized'], bool):
            return None
        for name in ('x', 'y', 'width', 'height'):
            value = values[name]
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                return None
            values[name] = float(value)

        return cls(**values)


DEFAULT_WINDOW_STATE = WindowState()
