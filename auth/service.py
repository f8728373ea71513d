"""
auth/service.py -- Authentication engine: login, refresh rotation, logout.

AuthEngine owns the token lifecycle and nothing else. It knows nothing about
HTTP, cookies or headers -- routes translate requests into engine calls and
engine results back into responses.

Expected failures are returned, not raised:
  login()   -> LoginSuccess   | AuthFailure(INVALID_CREDENTIALS)
  refresh() -> RefreshSuccess | AuthFailure(INVALID_REFRESH_TOKEN | REVOKED_REFRESH_TOKEN)

Anything raised out of the engine is an unexpected failure (store corruption,
codec misconfiguration) and is left for the app's catch-all handler.

Security:
  Unknown email and wrong password produce the same code and message, and
  both run a bcrypt comparison, so neither the body nor the timing reveals
  whether an account exists.

  Refresh rotation: every successful refresh retires the presented token and
  issues a new one. Re-using a retired token fails with REVOKED_REFRESH_TOKEN.

  logout() never fails. It must not become an oracle for token validity.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import Protocol, Union

from auth.models import TokenMetadata, TokenPayload, User
from auth.sessions import SessionStore
from auth.tokens import DUMMY_HASH, TokenCodec, verify_password

logger = logging.getLogger("authgate.auth")


class UserLookup(Protocol):
    def find_by_email(self, email: str) -> User | None: ...


PasswordVerifier = Callable[[str, str], bool]


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------


class AuthErrorCode(str, Enum):
    INVALID_CREDENTIALS = "INVALID_CREDENTIALS"
    INVALID_REFRESH_TOKEN = "INVALID_REFRESH_TOKEN"
    REVOKED_REFRESH_TOKEN = "REVOKED_REFRESH_TOKEN"


_MESSAGES = {
    AuthErrorCode.INVALID_CREDENTIALS: "Invalid email or password",
    AuthErrorCode.INVALID_REFRESH_TOKEN: "Invalid or expired refresh token",
    AuthErrorCode.REVOKED_REFRESH_TOKEN: "Refresh token has been revoked",
}


@dataclass(frozen=True)
class AuthFailure:
    code: AuthErrorCode
    message: str

    @classmethod
    def of(cls, code: AuthErrorCode) -> AuthFailure:
        return cls(code=code, message=_MESSAGES[code])


@dataclass(frozen=True)
class PublicUser:
    """The subset of a User that is safe to return to clients."""

    id: str
    email: str
    role: str


@dataclass(frozen=True)
class LoginSuccess:
    access_token: str
    refresh_token: str
    user: PublicUser


@dataclass(frozen=True)
class RefreshSuccess:
    access_token: str
    refresh_token: str


LoginResult = Union[LoginSuccess, AuthFailure]
RefreshResult = Union[RefreshSuccess, AuthFailure]


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------


class AuthEngine:
    """Coordinates the token codec, the session store and the user lookup.

    All collaborators are passed in. The application lifespan builds one
    engine and keeps it on app.state; tests build their own.
    """

    def __init__(
        self,
        users: UserLookup,
        codec: TokenCodec,
        sessions: SessionStore,
        password_verifier: PasswordVerifier = verify_password,
    ) -> None:
        self.users = users
        self.codec = codec
        self.sessions = sessions
        self._verify_password = password_verifier

    def login(self, email: str, password: str, metadata: TokenMetadata | None = None) -> LoginResult:
        """Check credentials and open a new session."""
        user = self.users.find_by_email(email)
        if user is None:
            # Equalize timing -- do NOT return before running bcrypt.
            self._verify_password(password, DUMMY_HASH)
            logger.info("Login failed: unknown account")
            return AuthFailure.of(AuthErrorCode.INVALID_CREDENTIALS)
        if not self._verify_password(password, user.hashed_password):
            logger.info("Login failed: bad password for user %s", user.id)
            return AuthFailure.of(AuthErrorCode.INVALID_CREDENTIALS)

        payload = TokenPayload.from_user(user)
        access_token = self.codec.generate_access_token(payload)
        refresh_token = self.codec.generate_refresh_token(payload)
        self.sessions.store(user.id, refresh_token, metadata)
        logger.info("Login succeeded for user %s", user.id)

        return LoginSuccess(
            access_token=access_token,
            refresh_token=refresh_token,
            user=PublicUser(id=user.id, email=user.email, role=user.role),
        )

    def refresh(self, refresh_token: str, metadata: TokenMetadata | None = None) -> RefreshResult:
        """Exchange a refresh token for a new access/refresh pair (rotation)."""
        payload = self.codec.verify_refresh_token(refresh_token)
        if payload is None:
            logger.info("Refresh failed: token did not verify")
            return AuthFailure.of(AuthErrorCode.INVALID_REFRESH_TOKEN)

        new_access_token = self.codec.generate_access_token(payload)
        new_refresh_token = self.codec.generate_refresh_token(payload)

        if not self.sessions.rotate(payload.user_id, refresh_token, new_refresh_token, metadata):
            logger.info("Refresh failed: no live session for user %s", payload.user_id)
            return AuthFailure.of(AuthErrorCode.REVOKED_REFRESH_TOKEN)

        return RefreshSuccess(access_token=new_access_token, refresh_token=new_refresh_token)

    def logout(self, refresh_token: str) -> None:
        """Close the session behind refresh_token. Invalid tokens are ignored."""
        payload = self.codec.verify_refresh_token(refresh_token)
        if payload is not None:
            self.sessions.revoke(payload.user_id, refresh_token)

    def logout_all(self, user_id: str) -> int:
        """Close every session for user_id. Returns how many were closed."""
        count = self.sessions.revoke_all_for_user(user_id)
        logger.info("Revoked %d session(s) for user %s", count, user_id)
        return count

    def get_session_count(self, user_id: str) -> int:
        return self.sessions.get_active_token_count(user_id)
