"""
Utility functions and helpers.
"""
from .logging_utils import configure_logging
from .resource_loader import get_app_data_dir, get_config_dir, get_log_dir
from .warning_manager import WarningManager, WarningType, warning_manager

__all__ = [
    'configure_logging',
    'get_app_data_dir',
    'get_config_dir',
    'get_log_dir',
    'WarningManager',
    'WarningType',
    'warning_manager',
]
