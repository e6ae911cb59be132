from __future__ import annotations

import os
import sys
from pathlib import Path

APP_DIR_NAME = "konnichiwa"
SETTINGS_FILENAME = "settings.json"
CONFIG_DIR_ENV = "KONNICHIWA_CONFIG_DIR"


def _platform_config_base() -> Path:
    home = Path.home()
    if sys.platform.startswith("win"):
        appdata = os.getenv("LOCALAPPDATA") or os.getenv("APPDATA")
        return Path(appdata) if appdata else home / "AppData" / "Local"
    if sys.platform == "darwin":
        return home / "Library" / "Application Support"
    xdg = os.getenv("XDG_CONFIG_HOME")
    return Path(xdg) if xdg else home / ".config"


def user_config_dir(*, app_dir_name: str = APP_DIR_NAME) -> Path:
    """Per-user directory for settings and the encrypted secrets file."""
    override = os.getenv(CONFIG_DIR_ENV)
    if override:
        return Path(override).expanduser()
    return _platform_config_base() / app_dir_name


def default_settings_path() -> Path:
    return user_config_dir() / SETTINGS_FILENAME
