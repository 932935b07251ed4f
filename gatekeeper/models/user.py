"""ORM model for registered users (credentials and permission level)."""

from sqlalchemy import Column, Integer, Text
from sqlalchemy.orm import relationship

from gatekeeper.models.base import Base


class User(Base):
    """
    User account.

    password holds the bcrypt hash, never the plain credential.
    permission_level: 0 is a regular user; higher values carry more privilege.
    """

    __tablename__ = "users"
    # SQLite: never reuse the id of a deleted user.
    __table_args__ = {"sqlite_autoincrement": True}

    id = Column(Integer, primary_key=True, autoincrement=True)
    username = Column(Text, nullable=False, unique=True)
    profile = Column(Text, nullable=True)
    permission_level = Column(Integer, nullable=False, default=0, server_default="0")
    password = Column(Text, nullable=False)

    sessions = relationship(
        "UserSession",
        back_populates="user",
        passive_deletes=True,
    )

    def __repr__(self) -> str:
        return f"<User id={self.id} username={self.username!r} level={self.permission_level}>"
