"""
Session store: opaque random tokens mapped to user ids.

Tokens are SESSION_TOKEN_BYTES of CSPRNG output and are the primary key of
the sessions table. A revoked token is deleted and never issued again.
"""

import hmac
import logging
import secrets

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from gatekeeper.core.database import transaction
from gatekeeper.core.errors import InvalidSessionError, NotFoundError
from gatekeeper.models import User, UserSession

logger = logging.getLogger(__name__)

# 256 bits of entropy per token.
SESSION_TOKEN_BYTES = 32


def generate_session_token() -> bytes:
    return secrets.token_bytes(SESSION_TOKEN_BYTES)


def encode_session_token(token: bytes) -> str:
    """Wire form of a token (cookie value / bearer credential): lowercase hex."""
    return token.hex()


def decode_session_token(value: str) -> bytes:
    """Parse the wire form of a token. Raises InvalidSessionError when malformed."""
    try:
        token = bytes.fromhex(value)
    except (ValueError, TypeError):
        raise InvalidSessionError("Invalid session") from None
    if len(token) != SESSION_TOKEN_BYTES:
        raise InvalidSessionError("Invalid session")
    return token


def issue_session(db: Session, user_id: int, *, timeout: float | None = None) -> bytes:
    """Create a session bound to a live user and return its token."""
    token = generate_session_token()
    try:
        with transaction(db, timeout):
            exists = db.execute(select(User.id).where(User.id == user_id)).first()
            if exists is None:
                raise NotFoundError(f"could not find user {user_id}")
            db.add(UserSession(session_token=token, user_id=user_id))
            db.flush()
    except IntegrityError:
        # The user was deleted between the check and the insert.
        raise NotFoundError(f"could not find user {user_id}") from None
    logger.debug("Issued session for user id=%s", user_id)
    return token


def resolve_session(db: Session, token: bytes, *, timeout: float | None = None) -> int | None:
    """
    Return the user id bound to a token (None for an unassociated session).

    Raises InvalidSessionError if the token is unknown or revoked.
    """
    if not isinstance(token, bytes) or len(token) != SESSION_TOKEN_BYTES:
        raise InvalidSessionError("Invalid session")
    with transaction(db, timeout):
        row = db.execute(
            select(UserSession.session_token, UserSession.user_id).where(
                UserSession.session_token == token
            )
        ).first()
    if row is None or not hmac.compare_digest(bytes(row.session_token), token):
        raise InvalidSessionError("Invalid session")
    return row.user_id


def revoke_session(db: Session, token: bytes, *, timeout: float | None = None) -> None:
    """Delete a session. Unknown tokens are ignored."""
    with transaction(db, timeout):
        db.execute(delete(UserSession).where(UserSession.session_token == token))


def revoke_all_for_user(db: Session, user_id: int, *, timeout: float | None = None) -> int:
    """Delete every session bound to a user; returns the number removed."""
    with transaction(db, timeout):
        revoked = db.execute(
            delete(UserSession).where(UserSession.user_id == user_id)
        ).rowcount
    if revoked:
        logger.info("Revoked %s session(s) for user id=%s", revoked, user_id)
    return revoked
