"""
auth/sessions.py -- Refresh-token session store.

Every refresh token handed to a client is recorded here as a Session. A
refresh token is only honoured while its session exists, which is what makes
logout, logout-all, eviction and rotation effective against tokens whose
signature is still valid.

Policy:
  Lifetime: a session lives SESSION_TTL (7 days) from creation, regardless of
      the access-token lifetime.

  Cap: at most MAX_SESSIONS_PER_USER live sessions per user. When a user is at
      the cap, store() evicts exactly one session -- the oldest -- before
      appending. Insertion order is recency order.

  Cleanup: expired sessions are dropped lazily, on store(), validate() and
      get_active_token_count() for the user being touched. There is no
      background sweep. revoke() and revoke_all_for_user() do not clean.

  Empty users: when a user's list becomes empty it is removed from the map.

Concurrency:
  FastAPI runs sync route handlers in a thread pool, so every operation on a
  user's list holds that user's lock. Locks are re-entrant so compound
  operations (rotate) can call the single-step ones while holding the lock.
  Locks are striped over a fixed pool: the table never grows with the user
  population, and two users only contend when they hash to the same stripe.

Persistence: none. Sessions are lost on restart. SessionStore is a Protocol
so a durable backend can be dropped in without touching the auth engine.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

import logging
import threading
import zlib
from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from typing import Protocol

from auth.models import Session, TokenMetadata

logger = logging.getLogger("authgate.sessions")

SESSION_TTL = timedelta(days=7)
MAX_SESSIONS_PER_USER = 5

_LOCK_STRIPES = 64


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SessionStore(Protocol):
    """Contract the auth engine relies on. All operations are keyed by user id."""

    def store(self, user_id: str, token: str, metadata: TokenMetadata | None = None) -> None: ...

    def validate(self, user_id: str, token: str) -> bool: ...

    def revoke(self, user_id: str, token: str) -> bool: ...

    def revoke_all_for_user(self, user_id: str) -> int: ...

    def get_active_token_count(self, user_id: str) -> int: ...

    def rotate(
        self,
        user_id: str,
        old_token: str,
        new_token: str,
        metadata: TokenMetadata | None = None,
    ) -> bool: ...


class InMemorySessionStore:
    """Process-local SessionStore backed by a dict of per-user lists.

    Usage:
        sessions = InMemorySessionStore()
        sessions.store("user-1", refresh_token, TokenMetadata(user_agent="curl/8"))
        sessions.validate("user-1", refresh_token)     # True
        sessions.revoke_all_for_user("user-1")         # 1

    clock is injectable so tests can move time forward without sleeping.
    """

    def __init__(
        self,
        ttl: timedelta = SESSION_TTL,
        max_sessions: int = MAX_SESSIONS_PER_USER,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        if max_sessions < 1:
            raise ValueError("max_sessions must be at least 1")
        self.ttl = ttl
        self.max_sessions = max_sessions
        self._clock = clock
        self._sessions: dict[str, list[Session]] = {}
        self._locks = tuple(threading.RLock() for _ in range(_LOCK_STRIPES))

    # ------------------------------------------------------------------
    # Locking
    # ------------------------------------------------------------------

    def lock_for(self, user_id: str) -> threading.RLock:
        """Return the re-entrant lock that serializes operations on user_id."""
        return self._locks[zlib.crc32(user_id.encode("utf-8")) % _LOCK_STRIPES]

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def store(self, user_id: str, token: str, metadata: TokenMetadata | None = None) -> None:
        """Record a new session for token, evicting the oldest one if at the cap."""
        with self.lock_for(user_id):
            self._clean_expired(user_id)
            now = self._clock()
            session = Session(
                user_id=user_id,
                token=token,
                created_at=now,
                expires_at=now + self.ttl,
                user_agent=metadata.user_agent if metadata else None,
                ip_address=metadata.ip_address if metadata else None,
            )
            sessions = self._sessions.setdefault(user_id, [])
            if len(sessions) >= self.max_sessions:
                sessions.pop(0)
                logger.info("Session cap reached for user %s -- evicted oldest session", user_id)
            sessions.append(session)

    def validate(self, user_id: str, token: str) -> bool:
        """Return True if a live session holds exactly this token."""
        with self.lock_for(user_id):
            self._clean_expired(user_id)
            return any(s.token == token for s in self._sessions.get(user_id, ()))

    def revoke(self, user_id: str, token: str) -> bool:
        """Remove the session holding token. Returns whether one was removed."""
        with self.lock_for(user_id):
            sessions = self._sessions.get(user_id)
            if not sessions:
                return False
            remaining = [s for s in sessions if s.token != token]
            if remaining:
                self._sessions[user_id] = remaining
            else:
                del self._sessions[user_id]
            return len(remaining) < len(sessions)

    def revoke_all_for_user(self, user_id: str) -> int:
        """Drop every session for user_id, expired or not. Returns how many there were."""
        with self.lock_for(user_id):
            return len(self._sessions.pop(user_id, ()))

    def get_active_token_count(self, user_id: str) -> int:
        with self.lock_for(user_id):
            self._clean_expired(user_id)
            return len(self._sessions.get(user_id, ()))

    def rotate(
        self,
        user_id: str,
        old_token: str,
        new_token: str,
        metadata: TokenMetadata | None = None,
    ) -> bool:
        """Swap old_token's session for a new one as a single step.

        Returns False, changing nothing, when old_token has no live session.
        Holding the user's lock across validate -> revoke -> store means two
        concurrent rotations of the same token cannot both succeed, and no
        other caller ever sees both tokens valid or neither.
        """
        with self.lock_for(user_id):
            if not self.validate(user_id, old_token):
                return False
            self.revoke(user_id, old_token)
            self.store(user_id, new_token, metadata)
            return True

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _clean_expired(self, user_id: str) -> None:
        """Drop expired sessions for user_id. Caller must hold the user's lock."""
        sessions = self._sessions.get(user_id)
        if sessions is None:
            return
        now = self._clock()
        live = [s for s in sessions if s.expires_at > now]
        if live:
            self._sessions[user_id] = live
        else:
            del self._sessions[user_id]
