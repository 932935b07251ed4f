"""
Credential store: the users table.

Owns username uniqueness, bcrypt-derived credentials, permission levels and
the opaque profile text. Uniqueness is enforced by the database constraint
(never by a read-then-insert check), and deleting a user removes its sessions
in the same transaction.
"""

import logging

from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from gatekeeper.core.database import deadline_after, remaining, transaction
from gatekeeper.core.errors import (
    DuplicateUsernameError,
    InvalidCredentialError,
    InvalidInputError,
    NotFoundError,
)
from gatekeeper.core.security import (
    CREDENTIAL_MAX_BYTES,
    dummy_password_hash,
    hash_password,
    is_valid_username,
    verify_password,
)
from gatekeeper.models import User, UserSession

logger = logging.getLogger(__name__)

DEFAULT_LIST_LIMIT = 100


def _validate_username(username: str) -> None:
    if not isinstance(username, str) or not is_valid_username(username):
        raise InvalidInputError(
            "Username must be 1-19 characters of lowercase letters, digits or '-', and not reserved."
        )


def _validate_credential(credential: str) -> None:
    if not isinstance(credential, str) or not credential:
        raise InvalidInputError("Credential must be non-empty.")
    if len(credential.encode("utf-8")) > CREDENTIAL_MAX_BYTES:
        raise InvalidInputError(f"Credential must be at most {CREDENTIAL_MAX_BYTES} bytes.")


def _validate_permission_level(level: int) -> None:
    if isinstance(level, bool) or not isinstance(level, int):
        raise InvalidInputError("Permission level must be an integer.")


def _validate_profile(profile: str | None) -> None:
    if profile is not None and not isinstance(profile, str):
        raise InvalidInputError("Profile must be text or None.")


def create_user(
    db: Session,
    username: str,
    credential: str,
    profile: str | None = None,
    permission_level: int = 0,
    *,
    timeout: float | None = None,
) -> int:
    """
    Register a user and return the generated id.

    Raises InvalidInputError for an invalid username, empty credential or
    non-integer level, and DuplicateUsernameError if the name is taken
    (including when a concurrent create wins the race).
    """
    deadline = deadline_after(timeout)
    _validate_username(username)
    _validate_credential(credential)
    _validate_profile(profile)
    _validate_permission_level(permission_level)

    # Hash before the transaction opens so no row lock is held during bcrypt;
    # the hashing time still counts against the deadline.
    password_hash = hash_password(credential)
    user = User(
        username=username,
        password=password_hash,
        profile=profile,
        permission_level=permission_level,
    )
    try:
        with transaction(db, remaining(deadline)):
            db.add(user)
            db.flush()
            user_id = user.id
    except IntegrityError:
        logger.info("Sign up rejected: username already exists")
        raise DuplicateUsernameError("Username already exists") from None
    logger.info("Created user id=%s level=%s", user_id, permission_level)
    return user_id


def verify_credential(
    db: Session,
    username: str,
    credential: str,
    *,
    timeout: float | None = None,
) -> int:
    """
    Check a username/credential pair and return the user id.

    A bcrypt comparison runs even for unknown usernames so response time does
    not reveal which accounts exist.
    """
    deadline = deadline_after(timeout)
    with transaction(db, remaining(deadline)):
        row = db.execute(
            select(User.id, User.password).where(User.username == username)
        ).first()

    stored_hash = row.password if row is not None else dummy_password_hash()
    matches = verify_password(credential if isinstance(credential, str) else "", stored_hash)
    remaining(deadline)
    if row is None:
        logger.info("Sign in failed: unknown username")
        raise NotFoundError("User does not exist")
    if not matches:
        logger.info("Sign in failed: wrong credential for user id=%s", row.id)
        raise InvalidCredentialError("Wrong password")
    return row.id


def get_user(db: Session, user_id: int, *, timeout: float | None = None) -> User:
    with transaction(db, timeout):
        user = db.execute(
            select(User)
            .where(User.id == user_id)
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
    if user is None:
        raise NotFoundError(f"could not find user {user_id}")
    return user


def get_user_by_username(
    db: Session, username: str, *, timeout: float | None = None
) -> User:
    with transaction(db, timeout):
        user = db.execute(
            select(User)
            .where(User.username == username)
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
    if user is None:
        raise NotFoundError(f"could not find user '{username}'")
    return user


def get_permission_level(db: Session, user_id: int, *, timeout: float | None = None) -> int:
    with transaction(db, timeout):
        level = db.execute(
            select(User.permission_level).where(User.id == user_id)
        ).scalar_one_or_none()
    if level is None:
        raise NotFoundError(f"could not find user {user_id}")
    return level


def list_usernames(
    db: Session, limit: int = DEFAULT_LIST_LIMIT, *, timeout: float | None = None
) -> list[str]:
    with transaction(db, timeout):
        names = db.execute(select(User.username).order_by(User.id).limit(limit)).scalars().all()
    return list(names)


def list_usernames_with_level(
    db: Session,
    level: int,
    limit: int = DEFAULT_LIST_LIMIT,
    *,
    timeout: float | None = None,
) -> list[str]:
    """Usernames whose permission level is exactly `level`."""
    with transaction(db, timeout):
        names = db.execute(
            select(User.username)
            .where(User.permission_level == level)
            .order_by(User.id)
            .limit(limit)
        ).scalars().all()
    return list(names)


def delete_user(db: Session, user_id: int, *, timeout: float | None = None) -> None:
    """
    Delete a user and every session bound to it. Idempotent.

    Sessions are removed explicitly before the user row in one transaction;
    the foreign key cascade covers the same rows on databases that enforce it.
    """
    with transaction(db, timeout):
        sessions_deleted = db.execute(
            delete(UserSession).where(UserSession.user_id == user_id)
        ).rowcount
        users_deleted = db.execute(delete(User).where(User.id == user_id)).rowcount
    if users_deleted:
        logger.info("Deleted user id=%s (sessions_deleted=%s)", user_id, sessions_deleted)


def _update_user(db: Session, user_id: int, timeout: float | None, **values) -> None:
    with transaction(db, timeout):
        updated = db.execute(
            update(User).where(User.id == user_id).values(**values)
        ).rowcount
        if not updated:
            raise NotFoundError(f"could not find user {user_id}")


def update_credential(
    db: Session, user_id: int, credential: str, *, timeout: float | None = None
) -> None:
    """Replace the stored credential and revoke every session of the user."""
    deadline = deadline_after(timeout)
    _validate_credential(credential)
    password_hash = hash_password(credential)
    with transaction(db, remaining(deadline)):
        updated = db.execute(
            update(User).where(User.id == user_id).values(password=password_hash)
        ).rowcount
        if not updated:
            raise NotFoundError(f"could not find user {user_id}")
        revoked = db.execute(
            delete(UserSession).where(UserSession.user_id == user_id)
        ).rowcount
    logger.info("Credential changed for user id=%s (sessions_revoked=%s)", user_id, revoked)


def update_permission_level(
    db: Session, user_id: int, level: int, *, timeout: float | None = None
) -> None:
    _validate_permission_level(level)
    _update_user(db, user_id, timeout, permission_level=level)
    logger.info("Permission level for user id=%s set to %s", user_id, level)


def update_profile(
    db: Session, user_id: int, profile: str | None, *, timeout: float | None = None
) -> None:
    _validate_profile(profile)
    _update_user(db, user_id, timeout, profile=profile)
