"""
auth/dependencies.py -- FastAPI Depends() helpers for authentication.

Protected routes authenticate with a short-lived access token sent as
"Authorization: Bearer <token>". Refresh tokens travel only in the httpOnly
cookie and are never accepted here.

try_get_current_user() is the soft variant (returns None on failure).
get_current_user() raises HTTP 401 with a machine-readable code:
  NO_TOKEN      -- header missing or not a Bearer header
  INVALID_TOKEN -- token present but bad signature, expired or wrong type

get_auth_engine() hands route handlers the AuthEngine built by the lifespan.

Layer rule: auth/dependencies.py may import from fastapi because it is part of
the FastAPI dependency injection system. No imports from api/.
"""

from __future__ import annotations

from fastapi import HTTPException, Request

from auth.models import TokenPayload
from auth.service import AuthEngine


def get_auth_engine(request: Request) -> AuthEngine:
    return request.app.state.auth_engine


def _extract_bearer(request: Request) -> str | None:
    """Return the token from "Authorization: Bearer <token>", else None."""
    parts = request.headers.get("Authorization", "").split(" ")
    if len(parts) != 2 or parts[0] != "Bearer" or not parts[1]:
        return None
    return parts[1]


def try_get_current_user(request: Request) -> TokenPayload | None:
    """Return the access token's payload, or None if absent or invalid. Never raises."""
    token = _extract_bearer(request)
    if token is None:
        return None
    return get_auth_engine(request).codec.verify_access_token(token)


def get_current_user(request: Request) -> TokenPayload:
    """Require a valid access token. Raises HTTP 401 otherwise.

    Use as a FastAPI dependency:
        @router.get("/protected")
        def route(user: TokenPayload = Depends(get_current_user)): ...
    """
    token = _extract_bearer(request)
    if token is None:
        raise HTTPException(
            status_code=401,
            detail={"code": "NO_TOKEN", "message": "Authentication required."},
        )
    payload = get_auth_engine(request).codec.verify_access_token(token)
    if payload is None:
        raise HTTPException(
            status_code=401,
            detail={"code": "INVALID_TOKEN", "message": "Invalid or expired token."},
        )
    return payload
