"""
Configuration package for the wellness lending system.

Environment settings, database connections and logging.
"""

from wellness_lending.config.settings import Settings, get_settings, settings
from wellness_lending.config.database import SessionLocal, engine, get_db_context, get_db_session, init_db
from wellness_lending.config.logging import get_logger, setup_logging

__all__ = [
    "Settings",
    "get_settings",
    "settings",
    "SessionLocal",
    "engine",
    "get_db_context",
    "get_db_session",
    "init_db",
    "get_logger",
    "setup_logging",
]
