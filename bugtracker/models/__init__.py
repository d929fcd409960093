"""SQLAlchemy ORM models."""

from bugtracker.models.base import Base
from bugtracker.models.user import User

__all__ = ["Base", "User"]
