"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, zero logic). Stores, the token
codec and the auth engine do the work; these only own the shape.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime


@dataclass
class User:
    """A local account that can log in with email and password.

    email is stored lowercased so lookups are case-insensitive. id is an
    opaque string ("user-1", "user-3f9a...") and is what tokens and sessions
    are keyed by.
    """

    id: str
    email: str
    hashed_password: str
    role: str  # "user", "admin"
    created_at: str | None = None


@dataclass(frozen=True)
class TokenPayload:
    """Claims carried by both access and refresh tokens."""

    user_id: str
    email: str
    role: str

    @classmethod
    def from_user(cls, user: User) -> TokenPayload:
        return cls(user_id=user.id, email=user.email, role=user.role)


@dataclass(frozen=True)
class TokenMetadata:
    """Client details recorded alongside a refresh-token session."""

    user_agent: str | None = None
    ip_address: str | None = None


@dataclass(frozen=True)
class Session:
    """One stored refresh token, i.e. one logged-in device or client.

    Sessions are created and destroyed only by the session store. expires_at
    is fixed at creation (created_at + 7 days) and is independent of the
    refresh token's own exp claim.
    """

    user_id: str
    token: str
    created_at: datetime
    expires_at: datetime
    user_agent: str | None = None
    ip_address: str | None = None
