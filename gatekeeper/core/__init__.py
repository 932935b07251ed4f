"""Core app configuration, database and error types."""

from gatekeeper.core.config import get_settings, settings
from gatekeeper.core.database import get_db, transaction

__all__ = ["get_settings", "settings", "get_db", "transaction"]
