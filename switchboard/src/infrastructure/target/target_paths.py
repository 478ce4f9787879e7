"""
Antigravity installation discovery.

Locates the state database and the executable on each platform, and keeps
the optional user-chosen executable path.
"""

import json
import logging
import os
import platform
import sys
from pathlib import Path
from typing import Dict, List, Optional

from ...domain.errors import StorageIOError, ValidationError
from ...utils.config_paths import get_target_path_file, get_user_data_dir
from .constants import STATE_DB_FILENAME

logger = logging.getLogger("switchboard.target_paths")

TARGET_APP_NAME = "Antigravity"


def _config_base_dir() -> Path:
    """Platform config directory (what Electron apps call appData)."""
    if sys.platform == "win32":
        appdata = os.environ.get('APPDATA')
        if appdata:
            return Path(appdata)
        return Path.home() / "AppData" / "Roaming"
    if sys.platform == "darwin":
        return Path.home() / "Library" / "Application Support"
    xdg_config_home = os.environ.get('XDG_CONFIG_HOME')
    if xdg_config_home:
        return Path(xdg_config_home)
    return Path.home() / ".config"


def get_target_data_dir() -> Path:
    """
    Antigravity global storage directory.

    - Windows: %APPDATA%\\Antigravity\\User\\globalStorage
    - macOS: ~/Library/Application Support/Antigravity/User/globalStorage
    - Linux: ~/.config/Antigravity/User/globalStorage
    """
    return _config_base_dir() / TARGET_APP_NAME / "User" / "globalStorage"


def get_state_db_path() -> Path:
    return get_target_data_dir() / STATE_DB_FILENAME


def find_installations() -> List[Path]:
    """Directories where an Antigravity profile may live."""
    candidates = [_config_base_dir() / TARGET_APP_NAME]
    xdg_data_home = os.environ.get('XDG_DATA_HOME')
    if xdg_data_home:
        candidates.append(Path(xdg_data_home) / TARGET_APP_NAME)
    elif sys.platform not in ("win32", "darwin"):
        candidates.append(Path.home() / ".local" / "share" / TARGET_APP_NAME)
    return candidates


def get_all_state_db_paths() -> List[Path]:
    """Primary database path first, then any other existing state.vscdb found."""
    paths = [get_state_db_path()]
    for install_dir in find_installations():
        if not install_dir.is_dir():
            continue
        for candidate in install_dir.rglob(STATE_DB_FILENAME):
            if candidate.is_file() and candidate not in paths:
                paths.append(candidate)
    return paths


def resolve_state_db_path() -> Path:
    """Pick the database to operate on: the primary path, else the first one found."""
    primary = get_state_db_path()
    if primary.exists():
        return primary
    for path in get_all_state_db_paths():
        if path.exists():
            logger.info(f"Using alternate state database: {path}")
            return path
    return primary


def get_executable_candidates() -> List[Path]:
    """Default install locations of the Antigravity executable."""
    paths: List[Path] = []
    home = Path.home()

    if sys.platform == "win32":
        local_appdata = os.environ.get('LOCALAPPDATA')
        if local_appdata:
            paths.append(Path(local_appdata) / "Programs" / TARGET_APP_NAME / "Antigravity.exe")
        paths.append(home / "AppData" / "Local" / "Programs" / TARGET_APP_NAME / "Antigravity.exe")
        for env_var in ('ProgramFiles', 'ProgramFiles(x86)'):
            program_files = os.environ.get(env_var)
            if program_files:
                paths.append(Path(program_files) / TARGET_APP_NAME / "Antigravity.exe")
    elif sys.platform == "darwin":
        paths.append(Path("/Applications/Antigravity.app"))
        paths.append(home / "Applications" / "Antigravity.app")
    else:
        paths.extend([
            Path("/usr/bin/antigravity"),
            Path("/usr/local/bin/antigravity"),
            Path("/usr/share/antigravity/antigravity"),
            Path("/opt/Antigravity/antigravity"),
            home / ".local" / "bin" / "antigravity",
            home / "Applications" / "Antigravity.AppImage",
        ])

    return paths


def validate_executable_path(path: str) -> bool:
    """A valid executable is an existing file (or an .app bundle on macOS)."""
    if not path:
        return False
    candidate = Path(path)
    if sys.platform == "darwin" and candidate.suffix == ".app":
        return candidate.is_dir()
    return candidate.is_file()


def get_custom_executable_path() -> Optional[str]:
    """Return the saved executable path, or None if unset or unreadable."""
    path_file = get_target_path_file()
    if not path_file.exists():
        return None
    try:
        with open(path_file, 'r', encoding='utf-8') as f:
            data = json.load(f)
        value = data.get('executable_path') if isinstance(data, dict) else None
        return value or None
    except (OSError, json.JSONDecodeError) as e:
        logger.warning(f"Failed to read custom executable path: {e}")
        return None


def save_custom_executable_path(path: str) -> None:
    """
    Persist a user-chosen executable path.

    Raises:
        ValidationError: if the path is not an existing executable
        StorageIOError: if the file cannot be written
    """
    if not validate_executable_path(path):
        raise ValidationError(f"Invalid path: '{path}' does not exist or is not an executable")
    try:
        with open(get_target_path_file(), 'w', encoding='utf-8') as f:
            json.dump({'executable_path': path}, f, indent=2)
    except OSError as e:
        raise StorageIOError(f"Failed to save executable path: {e}") from e
    logger.info(f"Saved Antigravity executable path: {path}")


def detect_executable() -> Optional[Path]:
    """Custom path first, then the platform defaults."""
    custom = get_custom_executable_path()
    if custom and validate_executable_path(custom):
        return Path(custom)
    for candidate in get_executable_candidates():
        if validate_executable_path(str(candidate)):
            return candidate
    return None


def get_platform_info() -> Dict[str, object]:
    """Diagnostics shown in the UI and by ``switchboard info``."""
    db_paths = get_all_state_db_paths()
    executable = detect_executable()
    return {
        'os': platform.system(),
        'arch': platform.machine(),
        'python': platform.python_version(),
        'target_available': get_state_db_path().exists(),
        'state_db_paths': [str(p) for p in db_paths],
        'executable': str(executable) if executable else None,
        'custom_executable': get_custom_executable_path(),
        'data_dir': str(get_user_data_dir()),
    }
