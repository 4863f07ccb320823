"""
core/config.py -- Centralized application configuration via pydantic-settings.

All environment variable reads for UnityPrep happen here. No module should
call os.getenv() or os.environ.get() directly -- import get_settings() instead.

Design patterns used:
  Singleton via lru_cache: get_settings() instantiates Settings once at first
      call and returns the cached instance on every subsequent call. This is
      the official FastAPI dependency injection pattern for config.

  BaseSettings (pydantic-settings): Reads values from environment variables
      and an optional .env file automatically. Field names map to env var names
      (e.g. telegram_bot_token -> TELEGRAM_BOT_TOKEN).

  @model_validator(mode="after"): Runs the signing-secret policy after all
      fields are resolved from environment.

Security notes:
  [S1] TELEGRAM_BOT_TOKEN toggles auth enforcement. Without it every write
       endpoint is open -- acceptable only for local development.

  [S2] The session signing secret falls back AUTH_SECRET -> TELEGRAM_BOT_TOKEN
       -> DEV_AUTH_SECRET. DEV_AUTH_SECRET is public (it is in this file), so
       production mode (DEBUG not set or false) refuses to start with it.

Layer rule: core/ is the kernel. This module may not import from api/ or auth/.
"""

import logging
from functools import lru_cache

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("unityprep.config")

# Shared by every deployment that omits AUTH_SECRET and TELEGRAM_BOT_TOKEN.
DEV_AUTH_SECRET = "unityprep-dev-auth-secret"

_MIN_SECRET_LENGTH = 32


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env file.

    All fields have defaults so Settings(debug=True) can be instantiated in
    test environments without a real .env file.
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

    # ------------------------------------------------------------------
    # Auth
    # ------------------------------------------------------------------

    # Empty string is the sentinel for "not configured".
    telegram_bot_token: str = ""
    auth_secret: str = ""

    login_rate_limit: str = "10/minute"

    # ------------------------------------------------------------------
    # HTTP
    # ------------------------------------------------------------------

    allowed_hosts: list[str] = ["*"]
    cors_origins: list[str] = ["*"]

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @field_validator("telegram_bot_token", "auth_secret", mode="before")
    @classmethod
    def strip_secret(cls, value: object) -> object:
        if isinstance(value, str):
            return value.strip()
        return value

    @model_validator(mode="after")
    def validate_signing_secret(self) -> "Settings":
        """Enforce the signing-secret policy [S2].

        Dev mode (DEBUG=true): fall back to DEV_AUTH_SECRET with a warning.
        Production mode: refuse to start when nothing better is configured.
        """
        if not self.auth_enabled:
            logger.warning("TELEGRAM_BOT_TOKEN is not set -- auth is disabled and write endpoints are open.")
        if self.signing_secret == DEV_AUTH_SECRET:
            if not self.debug:
                raise ValueError(
                    "AUTH_SECRET or TELEGRAM_BOT_TOKEN is required in production mode. "
                    "Set one in your environment or .env file. "
                    "To run in development mode, set DEBUG=true."
                )
            logger.warning("WARNING: Using the built-in development AUTH_SECRET. Do not deploy this configuration.")
        elif len(self.signing_secret) < _MIN_SECRET_LENGTH:
            logger.warning("Session signing secret is shorter than %d characters.", _MIN_SECRET_LENGTH)
        return self

    # ------------------------------------------------------------------
    # Derived values
    # ------------------------------------------------------------------

    @property
    def auth_enabled(self) -> bool:
        """True when Telegram login is configured and writes require a session [S1]."""
        return bool(self.telegram_bot_token)

    @property
    def signing_secret(self) -> str:
        return self.auth_secret or self.telegram_bot_token or DEV_AUTH_SECRET


@lru_cache
def get_settings() -> Settings:
    """Return the application Settings singleton.

    Uses lru_cache so Settings() is instantiated exactly once -- at first call.
    Route dependencies take it via Depends(get_settings), so tests override it
    with app.dependency_overrides instead of mutating the environment.
    """
    return Settings()
