"""Credential hashing and verification (bcrypt) plus username/credential input rules."""

import re
import secrets
from functools import lru_cache

import bcrypt

from gatekeeper.core.config import get_settings

# Usernames: lowercase ASCII letters, digits and '-'; compared exactly.
USERNAME_MIN_LEN = 1
USERNAME_MAX_LEN = 19
USERNAME_PATTERN = re.compile(r"^[a-z0-9-]+$")
# Path segments under /users that would shadow a user profile route.
RESERVED_USERNAMES = frozenset({"me"})

# bcrypt only looks at the first 72 bytes; longer credentials are rejected, not truncated.
CREDENTIAL_MAX_BYTES = 72

# HTTP signup/password-change policy (the store itself only requires non-empty).
PASSWORD_MIN_LEN = 8
PASSWORD_MAX_LEN = 72

# Named permission tiers used by the HTTP layer.
PERMISSION_USER = 0
PERMISSION_ADMIN = 1


def is_valid_username(username: str) -> bool:
    return (
        USERNAME_MIN_LEN <= len(username) <= USERNAME_MAX_LEN
        and USERNAME_PATTERN.match(username) is not None
        and username not in RESERVED_USERNAMES
    )


def hash_password(plain_password: str) -> str:
    """Hash a plain-text password for storage. Do not store plain passwords."""
    rounds = get_settings().BCRYPT_ROUNDS
    return bcrypt.hashpw(
        plain_password.encode("utf-8"), bcrypt.gensalt(rounds=rounds)
    ).decode("utf-8")


def verify_password(plain_password: str, hashed: str) -> bool:
    """Verify a plain password against a stored hash."""
    try:
        return bcrypt.checkpw(plain_password.encode("utf-8"), hashed.encode("utf-8"))
    except (ValueError, TypeError):
        return False


@lru_cache(maxsize=1)
def dummy_password_hash() -> str:
    """Hash of a random secret; verified against when a username does not exist."""
    return hash_password(secrets.token_urlsafe(32))
