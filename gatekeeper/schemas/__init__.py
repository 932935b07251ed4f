"""Pydantic request/response schemas."""

from gatekeeper.schemas.auth import (
    AdminOverviewResponse,
    CurrentUser,
    LoginRequest,
    MessageResponse,
    PasswordChangeRequest,
    ProfileUpdateRequest,
    PublicUser,
    SessionResponse,
    SignupRequest,
    UsersListResponse,
)
from gatekeeper.schemas.health import HealthResponse

__all__ = [
    "AdminOverviewResponse",
    "CurrentUser",
    "HealthResponse",
    "LoginRequest",
    "MessageResponse",
    "PasswordChangeRequest",
    "ProfileUpdateRequest",
    "PublicUser",
    "SessionResponse",
    "SignupRequest",
    "UsersListResponse",
]
