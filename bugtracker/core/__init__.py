"""Core app configuration, database, security and errors."""

from bugtracker.core.config import get_settings, settings
from bugtracker.core.database import get_db

__all__ = ["get_settings", "settings", "get_db"]
