"""Signup, login, logout and account deletion, plus the session dependencies used by every router."""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from gatekeeper.core.config import get_settings
from gatekeeper.core.database import get_db
from gatekeeper.core.errors import (
    DuplicateUsernameError,
    InsufficientPermissionError,
    InvalidCredentialError,
    InvalidInputError,
    InvalidSessionError,
    NotFoundError,
)
from gatekeeper.schemas.auth import (
    CurrentUser,
    LoginRequest,
    MessageResponse,
    SessionResponse,
    SignupRequest,
)
from gatekeeper.services import access_gate, credential_store, session_store

logger = logging.getLogger(__name__)
router = APIRouter()
security = HTTPBearer(auto_error=False)


def op_timeout() -> float:
    """Deadline applied to each store call made while serving a request."""
    return get_settings().DB_OPERATION_TIMEOUT_SEC


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def set_session_cookie(response: Response, token: bytes) -> None:
    settings = get_settings()
    response.set_cookie(
        key=settings.SESSION_COOKIE_NAME,
        value=session_store.encode_session_token(token),
        max_age=settings.SESSION_COOKIE_MAX_AGE,
        httponly=True,
        samesite="lax",
        secure=settings.APP_ENV == "prod",
    )


def clear_session_cookie(response: Response) -> None:
    response.delete_cookie(key=get_settings().SESSION_COOKIE_NAME)


def get_optional_session_token(
    request: Request,
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
) -> bytes | None:
    """Token from the Authorization header or the session cookie; None if neither is sent."""
    if credentials is not None:
        raw = credentials.credentials
    else:
        raw = request.cookies.get(get_settings().SESSION_COOKIE_NAME)
    if not raw:
        return None
    try:
        return session_store.decode_session_token(raw)
    except InvalidSessionError:
        return None


def get_session_token(
    token: Annotated[bytes | None, Depends(get_optional_session_token)],
) -> bytes:
    """Dependency: require a well-formed session token. Raises 401 if missing."""
    if token is None:
        raise _unauthorized("Not authenticated")
    return token


def _load_current_user(db: Session, user_id: int) -> CurrentUser:
    try:
        user = credential_store.get_user(db, user_id, timeout=op_timeout())
    except NotFoundError:
        raise _unauthorized("Invalid session")
    return CurrentUser.model_validate(user)


class require_permission_level:
    """
    Dependency factory.

    Depends(require_permission_level(1)) lets through sessions whose user has
    permission_level >= 1 and returns that user; 401 for a bad session, 403
    for a low level.
    """

    def __init__(self, min_level: int):
        self.min_level = min_level

    def __call__(
        self,
        token: Annotated[bytes, Depends(get_session_token)],
        db: Annotated[Session, Depends(get_db)],
    ) -> CurrentUser:
        try:
            user_id = access_gate.authorize(db, token, self.min_level, timeout=op_timeout())
        except InvalidSessionError:
            raise _unauthorized("Invalid session")
        except InsufficientPermissionError as e:
            logger.warning(
                "Permission denied: required level %s, user has %s", e.required, e.actual
            )
            # Do not reveal the required level
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Insufficient permissions",
            )
        return _load_current_user(db, user_id)


get_current_user = require_permission_level(0)


def get_optional_current_user_id(
    token: Annotated[bytes | None, Depends(get_optional_session_token)],
    db: Annotated[Session, Depends(get_db)],
) -> int | None:
    """Authenticated user id, or None for anonymous callers and stale sessions."""
    if token is None:
        return None
    try:
        return session_store.resolve_session(db, token, timeout=op_timeout())
    except InvalidSessionError:
        return None


@router.post("/signup", response_model=SessionResponse, status_code=status.HTTP_201_CREATED)
def signup(
    body: SignupRequest,
    response: Response,
    db: Annotated[Session, Depends(get_db)],
) -> SessionResponse:
    """Create an account and log it in (session cookie plus token in the body)."""
    if body.password != body.confirm_password:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="Passwords do not match",
        )
    try:
        user_id = credential_store.create_user(
            db, body.username, body.password, timeout=op_timeout()
        )
    except InvalidInputError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=e.message)
    except DuplicateUsernameError:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Username already exists")

    token = session_store.issue_session(db, user_id, timeout=op_timeout())
    set_session_cookie(response, token)
    return SessionResponse(user_id=user_id, session_token=session_store.encode_session_token(token))


@router.post("/login", response_model=SessionResponse)
def login(
    body: LoginRequest,
    response: Response,
    db: Annotated[Session, Depends(get_db)],
) -> SessionResponse:
    """
    Authenticate with username and password; returns a session token and sets the cookie.
    Unknown users and wrong passwords get the same response.
    """
    try:
        user_id = credential_store.verify_credential(
            db, body.username, body.password, timeout=op_timeout()
        )
    except (NotFoundError, InvalidCredentialError):
        raise _unauthorized("Invalid username or password.")
    try:
        token = session_store.issue_session(db, user_id, timeout=op_timeout())
    except NotFoundError:
        # Account deleted between verification and session creation.
        raise _unauthorized("Invalid username or password.")
    set_session_cookie(response, token)
    return SessionResponse(user_id=user_id, session_token=session_store.encode_session_token(token))


@router.post("/logout", response_model=MessageResponse)
def logout(
    response: Response,
    token: Annotated[bytes | None, Depends(get_optional_session_token)],
    db: Annotated[Session, Depends(get_db)],
) -> MessageResponse:
    """Revoke the presented session (if any) and clear the cookie."""
    if token is not None:
        session_store.revoke_session(db, token, timeout=op_timeout())
    clear_session_cookie(response)
    return MessageResponse(detail="Logged out")


@router.post("/delete", response_model=MessageResponse)
def delete_account(
    response: Response,
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    db: Annotated[Session, Depends(get_db)],
) -> MessageResponse:
    """Delete the authenticated account; all of its sessions go with it."""
    credential_store.delete_user(db, current_user.id, timeout=op_timeout())
    clear_session_cookie(response)
    return MessageResponse(detail="Account deleted")
