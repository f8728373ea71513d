"""
API request and response models for AuthGate REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/models.py and the
result types in auth/service.py, which own the internal representation. Route
handlers map between the two.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class LoginRequest(BaseModel):
    """Request body for POST /api/v1/auth/login.

    Password length is capped at 72 -- the number of bytes bcrypt looks at.
    Passwords are taken verbatim; the user store normalizes the email.
    """

    email: str = Field(min_length=3, max_length=255)
    password: str = Field(min_length=1, max_length=72)


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class UserInfo(BaseModel):
    """Public identity fields of a user."""

    model_config = ConfigDict(frozen=True)

    id: str
    email: str
    role: str


class TokenResponse(BaseModel):
    """Response body for POST /api/v1/auth/refresh.

    The rotated refresh token is not in the body; it is set as an httpOnly
    cookie so browser JavaScript never sees it.
    """

    model_config = ConfigDict(frozen=True)

    access_token: str
    token_type: str = "bearer"
    expires_in: int


class LoginResponse(TokenResponse):
    """Response body for POST /api/v1/auth/login."""

    user: UserInfo


class MessageResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    message: str


class LogoutAllResponse(BaseModel):
    """Response body for POST /api/v1/auth/logout-all."""

    model_config = ConfigDict(frozen=True)

    message: str
    devices_logged_out: int


class MeResponse(BaseModel):
    """Response body for GET /api/v1/auth/me."""

    model_config = ConfigDict(frozen=True)

    user: UserInfo
    active_session_count: int


class ErrorDetail(BaseModel):
    """Machine-readable error payload."""

    model_config = ConfigDict(frozen=True)

    code: str
    message: str
    detail: Optional[str] = None


class ErrorResponse(BaseModel):
    """Top-level error envelope returned on 4xx/5xx responses."""

    model_config = ConfigDict(frozen=True)

    error: ErrorDetail


class HealthResponse(BaseModel):
    """Response for GET /api/v1/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "ok"
    version: str


class ServerInfoResponse(BaseModel):
    """Response for GET /."""

    model_config = ConfigDict(frozen=True)

    server: str
    version: str
    run_date: str


class PingResponse(BaseModel):
    """Response for GET /api/v1/ping."""

    model_config = ConfigDict(frozen=True)

    message: str
    authenticated: bool
