"""
Application-wide logging setup.
"""
import logging
from logging.handlers import RotatingFileHandler
from typing import Optional

from .resource_loader import get_log_dir

LOG_FILE = "mangaink.log"


def configure_logging(*, debug: bool = False, log_path: Optional[str] = None) -> None:
    """
    Configure app-wide logging.

    Always logs to a rotating file (``MANGAINK_LOG_DIR`` or the user data
    dir); also logs to the console when ``debug`` is set.
    """
    level = logging.DEBUG if debug else logging.INFO

    if log_path is None:
        log_path = str(get_log_dir() / LOG_FILE)

    root = logging.getLogger()
    root.setLevel(level)

    # Avoid duplicating handlers if called more than once.
    if getattr(root, "_mangaink_configured", False):
        return

    fmt = logging.Formatter(
        fmt="%(asctime)s %(levelname)s %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    file_handler = RotatingFileHandler(log_path, maxBytes=1_000_000, backupCount=3, encoding="utf-8")
    file_handler.setLevel(level)
    file_handler.setFormatter(fmt)
    root.addHandler(file_handler)

    if debug:
        console = logging.StreamHandler()
        console.setLevel(level)
        console.setFormatter(fmt)
        root.addHandler(console)

    setattr(root, "_mangaink_configured", True)
