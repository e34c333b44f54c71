"""Core infrastructure: configuration, database, logging, errors and metrics."""

from homefence.core.config import Settings, get_settings
from homefence.core.database import (
    Base,
    close_db,
    get_db,
    get_engine,
    get_session,
    init_db,
)

__all__ = [
    "Base",
    "Settings",
    "close_db",
    "get_db",
    "get_engine",
    "get_session",
    "get_settings",
    "init_db",
]
