"""
auth/seed.py -- Demo accounts for local development.

When USE_MOCK_DATA is on (the default), the application lifespan calls
seed_demo_users() so the login flow can be tried without creating accounts
by hand. Plaintext passwords live here for readability only; they are
bcrypt-hashed before they reach the user store.

Seeding is idempotent: an email that already exists is left untouched.
"""

from __future__ import annotations

import logging
from typing import NamedTuple

from auth.models import User
from auth.store import UserStore
from auth.tokens import BCRYPT_ROUNDS, hash_password

logger = logging.getLogger("authgate.users")


class DemoUser(NamedTuple):
    id: str
    email: str
    password: str
    role: str


DEMO_USERS: tuple[DemoUser, ...] = (
    DemoUser("user-1", "demo@example.com", "password123", "user"),
    DemoUser("user-2", "admin@example.com", "admin123", "admin"),
)


def seed_demo_users(store: UserStore, rounds: int = BCRYPT_ROUNDS) -> int:
    """Create any missing demo accounts. Returns how many were created.

    Hashes at BCRYPT_ROUNDS, the cost DUMMY_HASH uses. Tests pass a cheap rounds.
    """
    created = 0
    for demo in DEMO_USERS:
        if store.find_by_email(demo.email) is not None:
            continue
        store.create_user(
            User(
                id=demo.id,
                email=demo.email,
                hashed_password=hash_password(demo.password, rounds=rounds),
                role=demo.role,
            )
        )
        created += 1
    logger.info("Demo users ready (%d created, %d total)", created, len(DEMO_USERS))
    return created
