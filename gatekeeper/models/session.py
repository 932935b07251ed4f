"""ORM model for opaque session tokens bound to users."""

from sqlalchemy import Column, ForeignKey, Integer, LargeBinary
from sqlalchemy.orm import relationship

from gatekeeper.models.base import Base


class UserSession(Base):
    """
    Active login session.

    session_token is random bytes and the row identity; revoking a session
    deletes the row. Rows are removed by the database when their user is deleted.
    """

    __tablename__ = "sessions"

    session_token = Column(LargeBinary, primary_key=True)
    user_id = Column(
        Integer,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=True,
        index=True,
    )

    user = relationship("User", back_populates="sessions")

    def __repr__(self) -> str:
        return f"<UserSession user={self.user_id}>"
