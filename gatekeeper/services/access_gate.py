"""Access gate: resolve a session token and enforce a minimum permission level."""

import logging

from sqlalchemy.orm import Session

from gatekeeper.core.errors import (
    InsufficientPermissionError,
    InvalidSessionError,
    NotFoundError,
)
from gatekeeper.services import credential_store, session_store

logger = logging.getLogger(__name__)


def authorize(
    db: Session,
    token: bytes,
    min_permission_level: int = 0,
    *,
    timeout: float | None = None,
) -> int:
    """
    Return the user id behind `token` if its permission level is at least
    `min_permission_level`.

    A session that is not bound to a user, or whose user has vanished, is
    reported as InvalidSessionError; the dangling session is revoked.
    """
    user_id = session_store.resolve_session(db, token, timeout=timeout)
    if user_id is None:
        raise InvalidSessionError("Invalid session")
    try:
        level = credential_store.get_permission_level(db, user_id, timeout=timeout)
    except NotFoundError:
        logger.warning("Revoking dangling session for missing user id=%s", user_id)
        session_store.revoke_session(db, token, timeout=timeout)
        raise InvalidSessionError("Invalid session") from None
    if level < min_permission_level:
        raise InsufficientPermissionError(
            "Insufficient permissions", required=min_permission_level, actual=level
        )
    return user_id
