"""SQLAlchemy ORM models."""

from gatekeeper.models.base import Base
from gatekeeper.models.session import UserSession
from gatekeeper.models.user import User

__all__ = ["Base", "User", "UserSession"]
