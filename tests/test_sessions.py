"""Unit tests for auth/sessions.py -- InMemorySessionStore.

Covers:
- store/validate/revoke/count basics
- FIFO eviction at MAX_SESSIONS_PER_USER (exactly one evicted per store)
- Lazy expiry cleanup driven by an injected clock
- revoke_all_for_user scope (other users untouched) and empty-entry removal
- rotate() atomicity under concurrent callers
"""

from __future__ import annotations

import threading

import pytest

from auth.models import TokenMetadata
from auth.sessions import MAX_SESSIONS_PER_USER, SESSION_TTL, InMemorySessionStore
from conftest import FakeClock


class TestBasics:
    def test_store_two_tokens(self, sessions: InMemorySessionStore) -> None:
        sessions.store("u1", "tok-A")
        sessions.store("u1", "tok-B")
        assert sessions.get_active_token_count("u1") == 2
        assert sessions.validate("u1", "tok-A") is True
        assert sessions.validate("u1", "tok-B") is True

    def test_revoke_one(self, sessions: InMemorySessionStore) -> None:
        sessions.store("u1", "tok-A")
        sessions.store("u1", "tok-B")
        assert sessions.revoke("u1", "tok-A") is True
        assert sessions.validate("u1", "tok-A") is False
        assert sessions.get_active_token_count("u1") == 1

    def test_revoke_unknown_token(self, sessions: InMemorySessionStore) -> None:
        sessions.store("u1", "tok-A")
        assert sessions.revoke("u1", "tok-Z") is False
        assert sessions.revoke("nobody", "tok-A") is False
        assert sessions.get_active_token_count("u1") == 1

    def test_validate_is_scoped_to_user(self, sessions: InMemorySessionStore) -> None:
        sessions.store("u1", "tok-A")
        assert sessions.validate("u2", "tok-A") is False

    def test_unknown_user_counts_zero(self, sessions: InMemorySessionStore) -> None:
        assert sessions.get_active_token_count("ghost") == 0
        assert sessions.validate("ghost", "anything") is False

    def test_metadata_recorded(self, sessions: InMemorySessionStore, clock: FakeClock) -> None:
        sessions.store("u1", "tok-A", TokenMetadata(user_agent="pytest", ip_address="10.0.0.1"))
        stored = sessions._sessions["u1"][0]
        assert stored.user_agent == "pytest"
        assert stored.ip_address == "10.0.0.1"
        assert stored.created_at == clock.now
        assert stored.expires_at == clock.now + SESSION_TTL

    def test_revoking_last_session_removes_user_entry(self, sessions: InMemorySessionStore) -> None:
        sessions.store("u1", "tok-A")
        sessions.revoke("u1", "tok-A")
        assert "u1" not in sessions._sessions

    def test_max_sessions_must_be_positive(self) -> None:
        with pytest.raises(ValueError):
            InMemorySessionStore(max_sessions=0)


class TestEviction:
    def test_cap_never_exceeded_and_oldest_evicted(self, sessions: InMemorySessionStore) -> None:
        tokens = [f"tok-{i}" for i in range(MAX_SESSIONS_PER_USER + 3)]
        for token in tokens:
            sessions.store("u1", token)
            assert sessions.get_active_token_count("u1") <= MAX_SESSIONS_PER_USER

        assert sessions.get_active_token_count("u1") == MAX_SESSIONS_PER_USER
        for evicted in tokens[:3]:
            assert sessions.validate("u1", evicted) is False
        for kept in tokens[3:]:
            assert sessions.validate("u1", kept) is True

    def test_exactly_one_evicted_per_store_at_cap(self, sessions: InMemorySessionStore) -> None:
        for i in range(MAX_SESSIONS_PER_USER):
            sessions.store("u1", f"tok-{i}")
        sessions.store("u1", "tok-new")
        assert sessions.validate("u1", "tok-0") is False
        assert sessions.validate("u1", "tok-1") is True
        assert sessions.validate("u1", "tok-new") is True

    def test_expired_sessions_cleaned_before_cap_check(
        self, sessions: InMemorySessionStore, clock: FakeClock
    ) -> None:
        """Expired sessions free their slots, so nothing live gets evicted."""
        for i in range(MAX_SESSIONS_PER_USER - 1):
            sessions.store("u1", f"old-{i}")
        clock.advance(days=6)
        sessions.store("u1", "fresh-1")
        clock.advance(days=2)  # old-* are now 8 days old, fresh-1 is 2 days old
        sessions.store("u1", "fresh-2")
        assert sessions.get_active_token_count("u1") == 2
        assert sessions.validate("u1", "fresh-1") is True


class TestExpiry:
    def test_session_valid_until_ttl(self, sessions: InMemorySessionStore, clock: FakeClock) -> None:
        sessions.store("u1", "tok-A")
        clock.advance(days=7, seconds=-1)
        assert sessions.validate("u1", "tok-A") is True

    def test_session_expires_at_ttl(self, sessions: InMemorySessionStore, clock: FakeClock) -> None:
        sessions.store("u1", "tok-A")
        clock.advance(days=7)
        assert sessions.validate("u1", "tok-A") is False
        assert sessions.get_active_token_count("u1") == 0
        assert "u1" not in sessions._sessions

    def test_count_drops_expired_only(self, sessions: InMemorySessionStore, clock: FakeClock) -> None:
        sessions.store("u1", "tok-A")
        clock.advance(days=3)
        sessions.store("u1", "tok-B")
        clock.advance(days=5)
        assert sessions.get_active_token_count("u1") == 1
        assert sessions.validate("u1", "tok-B") is True

    def test_revoke_all_counts_expired_too(self, sessions: InMemorySessionStore, clock: FakeClock) -> None:
        """revoke_all_for_user does not clean first -- it reports what was held."""
        sessions.store("u1", "tok-A")
        sessions.store("u1", "tok-B")
        clock.advance(days=30)
        assert sessions.revoke_all_for_user("u1") == 2


class TestRevokeAll:
    def test_only_target_user_affected(self, sessions: InMemorySessionStore) -> None:
        for token in ("a1", "a2", "a3"):
            sessions.store("alice", token)
        sessions.store("bob", "b1")
        sessions.store("bob", "b2")

        assert sessions.revoke_all_for_user("alice") == 3
        assert sessions.get_active_token_count("alice") == 0
        assert sessions.get_active_token_count("bob") == 2
        assert sessions.validate("bob", "b1") is True

    def test_unknown_user_returns_zero(self, sessions: InMemorySessionStore) -> None:
        assert sessions.revoke_all_for_user("ghost") == 0


class TestRotate:
    def test_rotate_swaps_tokens(self, sessions: InMemorySessionStore) -> None:
        sessions.store("u1", "old")
        assert sessions.rotate("u1", "old", "new") is True
        assert sessions.validate("u1", "old") is False
        assert sessions.validate("u1", "new") is True
        assert sessions.get_active_token_count("u1") == 1

    def test_rotate_unknown_token_changes_nothing(self, sessions: InMemorySessionStore) -> None:
        sessions.store("u1", "tok-A")
        assert sessions.rotate("u1", "missing", "new") is False
        assert sessions.validate("u1", "new") is False
        assert sessions.get_active_token_count("u1") == 1

    def test_rotate_at_cap_keeps_other_sessions(self, sessions: InMemorySessionStore) -> None:
        """Revoke runs before store, so rotating at the cap evicts nobody else."""
        for i in range(MAX_SESSIONS_PER_USER):
            sessions.store("u1", f"tok-{i}")
        assert sessions.rotate("u1", "tok-2", "tok-2b") is True
        assert sessions.get_active_token_count("u1") == MAX_SESSIONS_PER_USER
        assert sessions.validate("u1", "tok-0") is True

    def test_concurrent_rotation_single_winner(self) -> None:
        sessions = InMemorySessionStore()
        sessions.store("u1", "shared")
        workers = 16
        barrier = threading.Barrier(workers)
        results: list[bool] = []
        results_lock = threading.Lock()

        def attempt(i: int) -> None:
            barrier.wait()
            ok = sessions.rotate("u1", "shared", f"new-{i}")
            with results_lock:
                results.append(ok)

        threads = [threading.Thread(target=attempt, args=(i,)) for i in range(workers)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert results.count(True) == 1
        assert sessions.get_active_token_count("u1") == 1
        assert sessions.validate("u1", "shared") is False

    def test_lock_is_stable_per_user(self, sessions: InMemorySessionStore) -> None:
        assert sessions.lock_for("u1") is sessions.lock_for("u1")
