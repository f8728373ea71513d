"""
api/routes/v1/auth.py -- Authentication REST endpoints.

Routes:
  POST /api/v1/auth/login       -- password login; returns access token, sets refresh cookie
  POST /api/v1/auth/refresh     -- rotate the refresh cookie; returns a new access token
  POST /api/v1/auth/logout      -- close this device's session; always 200
  POST /api/v1/auth/logout-all  -- close every session for the caller (requires auth)
  GET  /api/v1/auth/me          -- caller identity and active session count (requires auth)

Token transport:
  The access token is returned in the JSON body and sent back by clients as
  "Authorization: Bearer <token>". The refresh token only ever travels in an
  httpOnly, SameSite=strict cookie scoped to "/", so page scripts cannot read
  it and cross-site requests do not carry it.

Security:
  Login returns the same INVALID_CREDENTIALS error for unknown email and wrong
  password. Failed refreshes clear the cookie so the client stops retrying a
  dead token. Logout is 200 whether or not the token was valid.
  Cache-Control: no-store on every response that carries a token.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from api.models import (
    ErrorDetail,
    ErrorResponse,
    LoginRequest,
    LoginResponse,
    LogoutAllResponse,
    MeResponse,
    MessageResponse,
    TokenResponse,
    UserInfo,
)
from auth.dependencies import get_auth_engine, get_current_user
from auth.models import TokenMetadata, TokenPayload
from auth.service import AuthEngine, AuthFailure
from auth.sessions import SESSION_TTL
from core.config import Settings

# Auth policy:
# - POST /api/v1/auth/login:       public -- login endpoint must be unauthenticated
# - POST /api/v1/auth/refresh:     public -- authenticated by the refresh cookie itself
# - POST /api/v1/auth/logout:      public -- best effort, never fails
# - POST /api/v1/auth/logout-all:  requires access token (get_current_user)
# - GET  /api/v1/auth/me:          requires access token (get_current_user)
router = APIRouter()

_COOKIE_MAX_AGE = int(SESSION_TTL.total_seconds())


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _settings(request: Request) -> Settings:
    return request.app.state.settings


def _metadata(request: Request) -> TokenMetadata:
    return TokenMetadata(
        user_agent=request.headers.get("user-agent"),
        ip_address=request.client.host if request.client else None,
    )


def _set_refresh_cookie(response: JSONResponse, settings: Settings, token: str) -> None:
    """Write the refresh token as an httpOnly cookie.

    max_age matches the server-side session lifetime, so the browser drops
    the cookie at the same time the session store would.
    """
    response.set_cookie(
        settings.refresh_cookie_name,
        value=token,
        httponly=True,
        samesite="strict",
        secure=settings.secure_cookies,
        max_age=_COOKIE_MAX_AGE,
        path="/",
    )


def _clear_refresh_cookie(response: JSONResponse, settings: Settings) -> None:
    response.delete_cookie(
        settings.refresh_cookie_name,
        path="/",
        httponly=True,
        samesite="strict",
        secure=settings.secure_cookies,
    )


def _unauthorized(code: str, message: str) -> JSONResponse:
    resp = JSONResponse(
        status_code=401,
        content=ErrorResponse(error=ErrorDetail(code=code, message=message)).model_dump(exclude_none=True),
    )
    resp.headers["Cache-Control"] = "no-store"
    return resp


def _failure_response(failure: AuthFailure) -> JSONResponse:
    return _unauthorized(failure.code.value, failure.message)


# ---------------------------------------------------------------------------
# Public endpoints
# ---------------------------------------------------------------------------


@router.post("/auth/login", response_model=LoginResponse)
def login(request: Request, body: LoginRequest, engine: AuthEngine = Depends(get_auth_engine)) -> JSONResponse:
    """Authenticate with email and password; open a session on this device."""
    settings = _settings(request)
    result = engine.login(body.email, body.password, _metadata(request))
    if isinstance(result, AuthFailure):
        return _failure_response(result)

    resp = JSONResponse(
        status_code=200,
        content=LoginResponse(
            access_token=result.access_token,
            token_type="bearer",  # noqa: S106 # nosec B106 -- OAuth token type, not a password
            expires_in=settings.access_token_expire_seconds,
            user=UserInfo(id=result.user.id, email=result.user.email, role=result.user.role),
        ).model_dump(),
    )
    _set_refresh_cookie(resp, settings, result.refresh_token)
    resp.headers["Cache-Control"] = "no-store"
    return resp


@router.post("/auth/refresh", response_model=TokenResponse)
def refresh(request: Request, engine: AuthEngine = Depends(get_auth_engine)) -> JSONResponse:
    """Exchange the refresh cookie for a new access token and a rotated cookie."""
    settings = _settings(request)
    refresh_token = request.cookies.get(settings.refresh_cookie_name)
    if not refresh_token:
        return _unauthorized("NO_REFRESH_TOKEN", "Refresh token not found")

    result = engine.refresh(refresh_token, _metadata(request))
    if isinstance(result, AuthFailure):
        resp = _failure_response(result)
        _clear_refresh_cookie(resp, settings)
        return resp

    resp = JSONResponse(
        status_code=200,
        content=TokenResponse(
            access_token=result.access_token,
            token_type="bearer",  # noqa: S106 # nosec B106
            expires_in=settings.access_token_expire_seconds,
        ).model_dump(),
    )
    _set_refresh_cookie(resp, settings, result.refresh_token)
    resp.headers["Cache-Control"] = "no-store"
    return resp


@router.post("/auth/logout", response_model=MessageResponse)
def logout(request: Request, engine: AuthEngine = Depends(get_auth_engine)) -> JSONResponse:
    """Close the session behind the refresh cookie, if any, and clear the cookie."""
    settings = _settings(request)
    refresh_token = request.cookies.get(settings.refresh_cookie_name)
    if refresh_token:
        engine.logout(refresh_token)
    resp = JSONResponse(content=MessageResponse(message="Logged out successfully").model_dump())
    _clear_refresh_cookie(resp, settings)
    return resp


# ---------------------------------------------------------------------------
# Authenticated endpoints
# ---------------------------------------------------------------------------


@router.post("/auth/logout-all", response_model=LogoutAllResponse)
def logout_all(
    request: Request,
    current_user: TokenPayload = Depends(get_current_user),
    engine: AuthEngine = Depends(get_auth_engine),
) -> JSONResponse:
    """Close every session for the caller ("log out of all devices")."""
    count = engine.logout_all(current_user.user_id)
    resp = JSONResponse(
        content=LogoutAllResponse(
            message=f"Logged out from {count} device(s)",
            devices_logged_out=count,
        ).model_dump()
    )
    _clear_refresh_cookie(resp, _settings(request))
    return resp


@router.get("/auth/me", response_model=MeResponse)
def me(
    current_user: TokenPayload = Depends(get_current_user),
    engine: AuthEngine = Depends(get_auth_engine),
) -> MeResponse:
    """Return the caller's identity and how many devices are logged in."""
    return MeResponse(
        user=UserInfo(id=current_user.user_id, email=current_user.email, role=current_user.role),
        active_session_count=engine.get_session_count(current_user.user_id),
    )
