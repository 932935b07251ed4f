"""User directory, own-profile and password endpoints."""

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Response, status
from sqlalchemy.orm import Session

from gatekeeper.api.v1.auth import (
    clear_session_cookie,
    get_current_user,
    get_optional_current_user_id,
    op_timeout,
)
from gatekeeper.core.config import get_settings
from gatekeeper.core.database import get_db
from gatekeeper.core.errors import InvalidInputError, NotFoundError
from gatekeeper.schemas.auth import (
    CurrentUser,
    MessageResponse,
    PasswordChangeRequest,
    ProfileUpdateRequest,
    PublicUser,
    UsersListResponse,
)
from gatekeeper.services import credential_store

router = APIRouter()

NO_PROFILE_TEXT = "No profile set"


@router.get("", response_model=UsersListResponse)
def list_users(db: Annotated[Session, Depends(get_db)]) -> UsersListResponse:
    """List usernames (first USERS_LIST_LIMIT by id)."""
    names = credential_store.list_usernames(
        db, limit=get_settings().USERS_LIST_LIMIT, timeout=op_timeout()
    )
    return UsersListResponse(users=names)


@router.get("/me", response_model=CurrentUser)
def me(current_user: Annotated[CurrentUser, Depends(get_current_user)]) -> CurrentUser:
    return current_user


@router.post("/me/profile", response_model=CurrentUser)
def update_profile(
    body: ProfileUpdateRequest,
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    db: Annotated[Session, Depends(get_db)],
) -> CurrentUser:
    try:
        credential_store.update_profile(db, current_user.id, body.profile, timeout=op_timeout())
    except NotFoundError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid session")
    return current_user.model_copy(update={"profile": body.profile})


@router.post("/me/password", response_model=MessageResponse)
def change_password(
    body: PasswordChangeRequest,
    response: Response,
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    db: Annotated[Session, Depends(get_db)],
) -> MessageResponse:
    """Replace the password. Every session of the account is revoked, this one included."""
    if body.password != body.confirm_password:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="Passwords do not match",
        )
    try:
        credential_store.update_credential(
            db, current_user.id, body.password, timeout=op_timeout()
        )
    except InvalidInputError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=e.message)
    except NotFoundError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid session")
    clear_session_cookie(response)
    return MessageResponse(detail="Password changed; please log in again")


@router.get("/{username}", response_model=PublicUser)
def get_user(
    username: str,
    current_user_id: Annotated[int | None, Depends(get_optional_current_user_id)],
    db: Annotated[Session, Depends(get_db)],
) -> PublicUser:
    try:
        user = credential_store.get_user_by_username(db, username, timeout=op_timeout())
    except NotFoundError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"could not find user '{username}'",
        )
    return PublicUser(
        username=user.username,
        profile=user.profile if user.profile is not None else NO_PROFILE_TEXT,
        is_self=current_user_id == user.id,
    )
