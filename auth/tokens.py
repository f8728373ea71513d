"""
auth/tokens.py -- JWT codec and password hashing utilities.

Security design decisions:
  JWT: python-jose with HS256. Access and refresh tokens are signed with
       separate secrets and carry separate lifetimes, so a leaked access secret
       cannot be used to mint refresh tokens and each kind can be rotated on its
       own schedule. Verification returns None on any failure -- the auth engine
       and route layer turn that into a typed 401.

  Claims: sub (user id), email, role, type ("access" | "refresh"), iat, exp
       and a random jti. The jti keeps two tokens minted for the same user in
       the same second distinct, which refresh rotation depends on. The type
       claim is checked on verify so one kind is never accepted as the other.

  Passwords: bcrypt used directly. The DUMMY_HASH constant enables timing
       equalization in the login path so response time does not reveal whether
       an email is registered.

Layer rule: no imports from api/. Import from core/ is allowed.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING, Any
from uuid import uuid4

import bcrypt
from jose import JWTError, jwt

from auth.models import TokenPayload

if TYPE_CHECKING:
    from core.config import Settings

_ALGORITHM = "HS256"

_ACCESS = "access"
_REFRESH = "refresh"

# ---------------------------------------------------------------------------
# Password hashing (bcrypt -- direct usage, no passlib wrapper)
# ---------------------------------------------------------------------------


# Cost factor for every stored hash and for DUMMY_HASH. They must match, or the
# unknown-email login path costs a different amount of time than a wrong password.
BCRYPT_ROUNDS = 12


def hash_password(plain: str, rounds: int = BCRYPT_ROUNDS) -> str:
    """Return a bcrypt hash of the given plaintext password.

    bcrypt only looks at the first 72 bytes. The API layer caps password
    length well below that.
    """
    return bcrypt.hashpw(plain.encode("utf-8"), bcrypt.gensalt(rounds=rounds)).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    """Return True if the plaintext password matches the bcrypt hash."""
    try:
        return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))
    except Exception:
        return False


# Timing equalization dummy hash.
# Computed once at module load so the first login attempt is not measurably
# slower than subsequent ones. The login path runs verify_password() against
# this hash when the email is unknown.
DUMMY_HASH: str = hash_password("authgate_timing_dummy", rounds=BCRYPT_ROUNDS)


# ---------------------------------------------------------------------------
# JWT encode / decode
# ---------------------------------------------------------------------------


class TokenCodec:
    """Signs and verifies access and refresh tokens.

    Stateless apart from its configuration: output depends only on the
    secret, the payload and the current time.

    Usage:
        codec = TokenCodec.from_settings(get_settings())
        token = codec.generate_access_token(TokenPayload("user-1", "a@b.c", "user"))
        codec.verify_access_token(token)   # -> TokenPayload or None
    """

    def __init__(
        self,
        access_secret: str,
        refresh_secret: str,
        access_expire_seconds: int,
        refresh_expire_seconds: int,
    ) -> None:
        self._access_secret = access_secret
        self._refresh_secret = refresh_secret
        self.access_expire_seconds = access_expire_seconds
        self.refresh_expire_seconds = refresh_expire_seconds

    @classmethod
    def from_settings(cls, settings: Settings) -> TokenCodec:
        return cls(
            access_secret=settings.access_token_secret,
            refresh_secret=settings.refresh_token_secret,
            access_expire_seconds=settings.access_token_expire_seconds,
            refresh_expire_seconds=settings.refresh_token_expire_seconds,
        )

    def generate_access_token(self, payload: TokenPayload) -> str:
        return self._encode(payload, _ACCESS, self._access_secret, self.access_expire_seconds)

    def generate_refresh_token(self, payload: TokenPayload) -> str:
        return self._encode(payload, _REFRESH, self._refresh_secret, self.refresh_expire_seconds)

    def verify_access_token(self, token: str) -> TokenPayload | None:
        return self._decode(token, _ACCESS, self._access_secret)

    def verify_refresh_token(self, token: str) -> TokenPayload | None:
        return self._decode(token, _REFRESH, self._refresh_secret)

    @staticmethod
    def _encode(payload: TokenPayload, token_type: str, secret: str, expire_seconds: int) -> str:
        now = datetime.now(timezone.utc)
        claims: dict[str, Any] = {
            "sub": payload.user_id,
            "email": payload.email,
            "role": payload.role,
            "type": token_type,
            "iat": now,
            "exp": now + timedelta(seconds=expire_seconds),
            "jti": uuid4().hex,
        }
        return jwt.encode(claims, secret, algorithm=_ALGORITHM)

    @staticmethod
    def _decode(token: str, token_type: str, secret: str) -> TokenPayload | None:
        """Decode and verify a JWT. Returns the payload or None on any failure.

        Signature, expiry and the type claim are all checked. Missing or
        non-string identity claims are treated the same as a bad signature.
        """
        if not token or not isinstance(token, str):
            return None
        try:
            claims = jwt.decode(token, secret, algorithms=[_ALGORITHM])
        except JWTError:
            return None
        if claims.get("type") != token_type:
            return None
        user_id = claims.get("sub")
        email = claims.get("email")
        role = claims.get("role")
        if not all(isinstance(value, str) for value in (user_id, email, role)):
            return None
        return TokenPayload(user_id=user_id, email=email, role=role)
