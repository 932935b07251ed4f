"""Error taxonomy shared by the credential store, session store and access gate."""


class GatekeeperError(Exception):
    """Base class for every failure surfaced by the auth core."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class DuplicateUsernameError(GatekeeperError):
    """Raised when a username is already taken."""


class InvalidInputError(GatekeeperError):
    """Raised for empty or malformed usernames, credentials or permission levels."""


class NotFoundError(GatekeeperError):
    """Raised when a referenced user does not exist (or was deleted concurrently)."""


class InvalidCredentialError(GatekeeperError):
    """Raised when a presented credential does not match the stored one."""


class InvalidSessionError(GatekeeperError):
    """Raised when a session token is unknown, revoked or malformed."""


class InsufficientPermissionError(GatekeeperError):
    """Raised when a user's permission level is below the required minimum."""

    def __init__(self, message: str, required: int, actual: int) -> None:
        self.required = required
        self.actual = actual
        super().__init__(message)


class StorageUnavailableError(GatekeeperError):
    """Raised when the database cannot be reached or an I/O failure occurs."""


class OperationTimeoutError(StorageUnavailableError):
    """Raised when an operation overruns its deadline; the transaction is rolled back."""
