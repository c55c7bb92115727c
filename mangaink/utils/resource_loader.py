"""
Per-user directories for settings and logs.
"""
import os
import sys
from pathlib import Path

APP_NAME = "MangaInk"


def get_app_data_dir(app_name: str = APP_NAME) -> Path:
    """
    Get the application data directory for storing user data.

    Args:
        app_name: Name of the application

    Returns:
        Path to the app data directory
    """
    if os.name == 'nt':  # Windows
        base_dir = os.environ.get('APPDATA', os.path.expanduser('~'))
    elif sys.platform == 'darwin':  # macOS
        base_dir = os.path.expanduser('~/Library/Application Support')
    else:  # Linux and others
        base_dir = os.path.expanduser('~/.local/share')

    app_dir = Path(base_dir) / app_name
    app_dir.mkdir(parents=True, exist_ok=True)
    return app_dir


def get_config_dir(app_name: str = APP_NAME) -> Path:
    """
    Get the configuration directory holding ``settings.json``.

    ``MANGAINK_CONFIG_DIR`` overrides the platform default.
    """
    override = os.environ.get("MANGAINK_CONFIG_DIR")
    if override:
        config_dir = Path(override)
    elif os.name == 'nt':
        config_dir = get_app_data_dir(app_name) / "config"
    elif sys.platform == 'darwin':
        config_dir = Path.home() / "Library" / "Preferences" / app_name
    else:
        config_dir = Path.home() / ".config" / app_name

    config_dir.mkdir(parents=True, exist_ok=True)
    return config_dir


def get_log_dir(app_name: str = APP_NAME) -> Path:
    """Log directory: ``MANGAINK_LOG_DIR`` or ``logs`` under the app data dir."""
    override = os.environ.get("MANGAINK_LOG_DIR")
    log_dir = Path(override) if override else get_app_data_dir(app_name) / "logs"
    log_dir.mkdir(parents=True, exist_ok=True)
    return log_dir
