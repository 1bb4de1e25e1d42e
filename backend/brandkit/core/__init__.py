"""Core application modules."""

from brandkit.core.config import Settings, get_settings
from brandkit.core.database import Base, db_manager, get_session
from brandkit.core.logging import get_logger, setup_logging

__all__ = [
    "Base",
    "Settings",
    "db_manager",
    "get_logger",
    "get_session",
    "get_settings",
    "setup_logging",
]
