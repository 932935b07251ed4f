"""Request/response schemas for auth and user endpoints."""

from pydantic import BaseModel, ConfigDict, Field

from gatekeeper.core.security import PASSWORD_MAX_LEN, PASSWORD_MIN_LEN


class LoginRequest(BaseModel):
    """Credentials for login."""

    username: str = Field(..., min_length=1, max_length=255, description="Username")
    password: str = Field(..., min_length=1, max_length=PASSWORD_MAX_LEN, description="Password")


class SignupRequest(BaseModel):
    """New account: username plus password typed twice."""

    username: str = Field(..., min_length=1, max_length=255, description="Username")
    password: str = Field(
        ..., min_length=PASSWORD_MIN_LEN, max_length=PASSWORD_MAX_LEN, description="Password"
    )
    confirm_password: str = Field(..., description="Must equal password")


class PasswordChangeRequest(BaseModel):
    password: str = Field(..., min_length=PASSWORD_MIN_LEN, max_length=PASSWORD_MAX_LEN)
    confirm_password: str


class ProfileUpdateRequest(BaseModel):
    profile: str = Field(..., max_length=10000, description="Free-form profile text")


class SessionResponse(BaseModel):
    """Issued session; the token is also set as a cookie."""

    user_id: int
    session_token: str = Field(..., description="Hex-encoded opaque session token")
    token_type: str = Field(default="bearer", description="Token type")


class CurrentUser(BaseModel):
    """Authenticated user for dependency injection and GET /users/me."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    username: str
    profile: str | None = None
    permission_level: int


class PublicUser(BaseModel):
    """Public view of a user profile."""

    username: str
    profile: str
    is_self: bool = False


class UsersListResponse(BaseModel):
    users: list[str]


class AdminOverviewResponse(BaseModel):
    """Admin page payload: all users and the other admins."""

    users: list[str]
    admins: list[str]


class MessageResponse(BaseModel):
    detail: str
