"""
core/config.py -- Centralized application configuration via pydantic-settings.

All environment variable reads for AuthGate happen here. No module should
call os.getenv() or os.environ.get() directly -- import get_settings() instead.

Design patterns used:
  Singleton via lru_cache: get_settings() instantiates Settings once at first
      call and returns the cached instance on every subsequent call. This is
      the FastAPI dependency injection pattern for config.

  BaseSettings (pydantic-settings): Reads values from environment variables
      and an optional .env file automatically. Field names map to env var names
      (e.g. access_token_secret -> ACCESS_TOKEN_SECRET).

  @model_validator(mode="after"): Runs cross-field validation after all fields
      are resolved. Dev mode generates missing signing secrets with a warning,
      production mode refuses to start without them.

Security notes:
  Secrets shorter than 32 chars are rejected. HS256 signing strength is bounded
  by key entropy.

  Access and refresh tokens are signed with separate secrets. A leaked access
  secret must not let an attacker mint refresh tokens, so identical values are
  rejected at startup.

Layer rule: core/ is the kernel. This module may not import from api/ or auth/.
"""

import logging
import secrets
from functools import lru_cache
from pathlib import Path

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("authgate.config")

_DEFAULT_DB_URL = f"sqlite:///{Path(__file__).resolve().parent.parent / 'auth' / 'authgate_users.db'}"

_MIN_SECRET_LENGTH = 32


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env file.

    All fields have defaults so Settings() can be instantiated in test
    environments without a real .env file. The model_validator enforces
    production-safety rules at startup.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ------------------------------------------------------------------
    # Core
    # ------------------------------------------------------------------

    debug: bool = False
    app_name: str = "AuthGate"
    app_version: str = "1.0.0"
    host: str = "127.0.0.1"
    port: int = 4000
    cors_origins: list[str] = ["http://localhost:3000"]

    # ------------------------------------------------------------------
    # Tokens
    # ------------------------------------------------------------------

    # Empty string is the sentinel for "not configured". The model_validator
    # below either generates a dev key or raises, so callers never see "".
    access_token_secret: str = ""
    refresh_token_secret: str = ""
    access_token_expire_seconds: int = 15 * 60
    refresh_token_expire_seconds: int = 7 * 24 * 60 * 60

    # ------------------------------------------------------------------
    # Cookies
    # ------------------------------------------------------------------

    refresh_cookie_name: str = "refresh_token"
    secure_cookies: bool = False

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    database_url: str = _DEFAULT_DB_URL
    # Seed demo@example.com / admin@example.com at startup. Turn off in production.
    use_mock_data: bool = True

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @model_validator(mode="after")
    def validate_token_settings(self) -> "Settings":
        """Enforce the signing-secret and lifetime policy.

        Dev mode (DEBUG=true): missing secrets are generated at random.
            Tokens will not survive a restart, which is fine locally.

        Production mode: a missing secret is a startup failure.

        Both modes: reject short secrets, identical access/refresh secrets and
            non-positive lifetimes.
        """
        for field_name in ("access_token_secret", "refresh_token_secret"):
            if getattr(self, field_name):
                continue
            env_name = field_name.upper()
            if not self.debug:
                raise ValueError(
                    f"{env_name} is required in production mode. "
                    "Set it in your environment or .env file. "
                    "To run in development mode, set DEBUG=true."
                )
            setattr(self, field_name, secrets.token_hex(32))
            logger.warning("Using auto-generated %s. Tokens will not survive a restart.", env_name)

        if len(self.access_token_secret) < _MIN_SECRET_LENGTH:
            raise ValueError("ACCESS_TOKEN_SECRET must be at least 32 characters.")
        if len(self.refresh_token_secret) < _MIN_SECRET_LENGTH:
            raise ValueError("REFRESH_TOKEN_SECRET must be at least 32 characters.")
        if self.access_token_secret == self.refresh_token_secret:
            raise ValueError("ACCESS_TOKEN_SECRET and REFRESH_TOKEN_SECRET must differ.")
        if self.access_token_expire_seconds <= 0 or self.refresh_token_expire_seconds <= 0:
            raise ValueError("Token lifetimes must be positive.")
        return self


@lru_cache
def get_settings() -> Settings:
    """Return the application Settings singleton.

    In tests: call get_settings.cache_clear() between test cases if you need
    to inject different environment variables.
    """
    return Settings()
