"""Admin endpoints: list admins, promote and demote users (permission level 0 <-> 1)."""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from gatekeeper.api.v1.auth import op_timeout, require_permission_level
from gatekeeper.core.config import get_settings
from gatekeeper.core.database import get_db
from gatekeeper.core.errors import NotFoundError
from gatekeeper.core.security import PERMISSION_ADMIN, PERMISSION_USER
from gatekeeper.schemas.auth import AdminOverviewResponse, CurrentUser, MessageResponse
from gatekeeper.services import credential_store

logger = logging.getLogger(__name__)
router = APIRouter()

require_admin = require_permission_level(PERMISSION_ADMIN)


def _set_level_if(db: Session, username: str, current: int, new: int) -> None:
    """Move `username` from level `current` to `new`; other levels are left untouched."""
    try:
        user = credential_store.get_user_by_username(db, username, timeout=op_timeout())
        if user.permission_level == current:
            credential_store.update_permission_level(db, user.id, new, timeout=op_timeout())
    except NotFoundError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"could not find user '{username}'",
        )


@router.get("", response_model=AdminOverviewResponse)
def admin_overview(
    admin: Annotated[CurrentUser, Depends(require_admin)],
    db: Annotated[Session, Depends(get_db)],
) -> AdminOverviewResponse:
    """All users, and every admin except the caller."""
    limit = get_settings().USERS_LIST_LIMIT
    users = credential_store.list_usernames(db, limit=limit, timeout=op_timeout())
    admins = credential_store.list_usernames_with_level(
        db, PERMISSION_ADMIN, limit=limit, timeout=op_timeout()
    )
    return AdminOverviewResponse(
        users=users,
        admins=[name for name in admins if name != admin.username],
    )


@router.post("/add/{username}", response_model=MessageResponse)
def add_admin(
    username: str,
    admin: Annotated[CurrentUser, Depends(require_admin)],
    db: Annotated[Session, Depends(get_db)],
) -> MessageResponse:
    _set_level_if(db, username, PERMISSION_USER, PERMISSION_ADMIN)
    logger.info("Admin id=%s promoted '%s'", admin.id, username)
    return MessageResponse(detail=f"'{username}' is an admin")


@router.post("/remove/{username}", response_model=MessageResponse)
def remove_admin(
    username: str,
    admin: Annotated[CurrentUser, Depends(require_admin)],
    db: Annotated[Session, Depends(get_db)],
) -> MessageResponse:
    _set_level_if(db, username, PERMISSION_ADMIN, PERMISSION_USER)
    logger.info("Admin id=%s demoted '%s'", admin.id, username)
    return MessageResponse(detail=f"'{username}' is no longer an admin")
