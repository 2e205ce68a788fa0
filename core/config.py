"""
core/config.py -- Centralized application configuration via pydantic-settings.

All environment variable reads for imgshare-auth happen here. No module should
call os.getenv() or os.environ.get() directly -- import get_settings() instead.

Design patterns used:
  Singleton via lru_cache: get_settings() instantiates Settings once at first
      call and returns the cached instance on every subsequent call. This is
      the official FastAPI dependency injection pattern for config.

  BaseSettings (pydantic-settings): Reads values from environment variables
      and an optional .env file automatically. Field names map to env var names
      (e.g. session_lifetime_seconds -> SESSION_LIFETIME_SECONDS).

  @model_validator(mode="after"): Runs cross-field validation after all fields
      are resolved from environment. Out-of-range values are a hard startup
      failure rather than a silently weaker deployment.

Layer rule: core/ is the kernel. This module may not import from api/, auth/,
or users/.
"""

import logging
from datetime import timedelta
from functools import lru_cache

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("imgshare.config")

# Session tokens below this size are rejected at startup.
MIN_SESSION_TOKEN_BYTES = 24


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env file.

    All fields have defaults so Settings() can be instantiated in test
    environments without a real .env file.
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
    # Empty string means "use the SQLite file next to the package".
    database_url: str = ""

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    session_lifetime_seconds: int = 24 * 60 * 60
    session_token_bytes: int = MIN_SESSION_TOKEN_BYTES
    secure_cookies: bool = False
    sweep_interval_seconds: int = 60 * 60

    # ------------------------------------------------------------------
    # Store
    # ------------------------------------------------------------------

    # Budget for a single store round-trip. Exceeding it raises StoreTimeout.
    store_timeout_seconds: float = 5.0

    # ------------------------------------------------------------------
    # Credentials
    # ------------------------------------------------------------------

    bcrypt_rounds: int = 12
    default_user_active: bool = True

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @model_validator(mode="after")
    def validate_ranges(self) -> "Settings":
        """Reject configurations that would weaken sessions or hang requests."""
        if self.session_token_bytes < MIN_SESSION_TOKEN_BYTES:
            raise ValueError(f"SESSION_TOKEN_BYTES must be at least {MIN_SESSION_TOKEN_BYTES}.")
        if self.session_lifetime_seconds <= 0:
            raise ValueError("SESSION_LIFETIME_SECONDS must be positive.")
        if self.store_timeout_seconds <= 0:
            raise ValueError("STORE_TIMEOUT_SECONDS must be positive.")
        if self.sweep_interval_seconds <= 0:
            raise ValueError("SWEEP_INTERVAL_SECONDS must be positive.")
        if not 4 <= self.bcrypt_rounds <= 31:
            raise ValueError("BCRYPT_ROUNDS must be between 4 and 31.")
        if self.debug and self.bcrypt_rounds < 10:
            logger.warning("WARNING: BCRYPT_ROUNDS=%d is below the production default.", self.bcrypt_rounds)
        return self

    @property
    def session_lifetime(self) -> timedelta:
        return timedelta(seconds=self.session_lifetime_seconds)


@lru_cache
def get_settings() -> Settings:
    """Return the application Settings singleton.

    Uses lru_cache so Settings() is instantiated exactly once -- at first call.
    All modules should call get_settings() rather than constructing Settings() directly.

    In tests: call get_settings.cache_clear() between test cases if you need
    to inject different environment variables.
    """
    return Settings()
