"""
Core module initialization.
Exports configuration, logging utilities and domain exceptions.
"""

from qrmenu.core.config import get_settings, setup_logging, Settings, EnvironmentMode
from qrmenu.core.exceptions import AppError, ValidationFailed, NotFound, Conflict

__all__ = [
    "get_settings",
    "setup_logging",
    "Settings",
    "EnvironmentMode",
    "AppError",
    "ValidationFailed",
    "NotFound",
    "Conflict",
]
