"""
Configuration paths utilities for Switchboard.

Provides centralized path management for all application data.
"""

import os
from pathlib import Path

APP_DIR_NAME = "Switchboard"
HOME_ENV_VAR = "SWITCHBOARD_HOME"


def get_user_data_dir() -> Path:
    """
    Get the user data directory for Switchboard.

    Returns:
        Path to the user data directory (AppData/Roaming/Switchboard on Windows)
    """
    override = os.environ.get(HOME_ENV_VAR)
    if override:
        return Path(override)

    if os.name == 'nt':  # Windows
        appdata = os.environ.get('APPDATA')
        if appdata:
            return Path(appdata) / APP_DIR_NAME

    # Fallback for other platforms
    xdg_data_home = os.environ.get('XDG_DATA_HOME')
    if xdg_data_home:
        return Path(xdg_data_home) / APP_DIR_NAME.lower()

    # Default XDG location
    return Path.home() / ".local" / "share" / APP_DIR_NAME.lower()


def get_configs_dir() -> Path:
    """Get the configs directory."""
    configs_dir = get_user_data_dir() / "configs"
    configs_dir.mkdir(parents=True, exist_ok=True)
    return configs_dir


def get_logs_dir() -> Path:
    """Get the logs directory."""
    logs_dir = get_user_data_dir() / "logs"
    logs_dir.mkdir(parents=True, exist_ok=True)
    return logs_dir


def get_accounts_dir() -> Path:
    """Get the account backups directory."""
    accounts_dir = get_user_data_dir() / "accounts"
    accounts_dir.mkdir(parents=True, exist_ok=True)
    return accounts_dir


def get_settings_file() -> Path:
    return get_configs_dir() / "app_settings.json"


def get_window_state_file() -> Path:
    return get_configs_dir() / "window_state.json"


def get_target_path_file() -> Path:
    """File holding the user-chosen Antigravity executable path."""
    return get_configs_dir() / "target_path.json"
