"""
core/config.py -- Centralized application configuration via pydantic-settings.

All environment variable reads for LMS Auth happen here. No module should
call os.getenv() or os.environ.get() directly.

Design patterns used:
  Explicit configuration object: create_app(settings) builds every component
      (hasher, token service, OTP service, stores) from the Settings instance
      it is given. Components never read settings at import time, so tests can
      build an app from a hand-made Settings(...) without touching the
      environment.

  Singleton via lru_cache: get_settings() instantiates Settings once at first
      call. Only the process entry points (asgi.py, main.py) use it.

  @model_validator(mode="after"): Runs cross-field validation after all fields
      are resolved from environment. Used to implement the DEBUG-conditional
      SECRET_KEY logic: dev mode generates a key with a warning, production
      mode refuses to start without one.

Security notes:
  [M6] SECRET_KEY shorter than 32 chars is rejected outright. JWT signing
       relies on key entropy -- a short key weakens every issued token.

  [M7] In production mode (DEBUG not set or false), a missing SECRET_KEY is a
       hard startup failure. Running with a random key would silently log
       every user out on restart; running with a guessable one is worse.

Layer rule: core/ is the kernel. This module may not import from api/,
auth/, or catalog/.
"""

import logging
import secrets
from functools import lru_cache

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("lmsauth.config")


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env file.

    Everything except SECRET_KEY has a default so Settings() can be
    instantiated in test environments without a real .env file.

    Environment variable name mapping: field names are uppercased automatically.
    E.g. `secret_key` reads from SECRET_KEY, `database_url` from DATABASE_URL.
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
    # Empty string is the sentinel for "not configured". The model_validator
    # below either generates a dev key or raises, so callers never see "".
    secret_key: str = ""
    database_url: str = "sqlite:///./lmsauth.db"
    log_level: str = "INFO"

    # ------------------------------------------------------------------
    # Server
    # ------------------------------------------------------------------

    host: str = "127.0.0.1"
    port: int = Field(default=8000, ge=1, le=65535)
    allowed_hosts: list[str] = ["*"]
    cors_origins: list[str] = []

    # ------------------------------------------------------------------
    # Auth
    # ------------------------------------------------------------------

    # 24 hours. Tokens are stateless, so this is also the longest a stolen
    # token stays usable.
    token_expire_seconds: int = Field(default=86400, gt=0)
    otp_expire_seconds: int = Field(default=600, gt=0)
    otp_length: int = Field(default=6, ge=4, le=10)
    # Wrong guesses allowed against one code before it is thrown away.
    otp_max_attempts: int = Field(default=5, ge=1)

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    # Self-registration as admin is a privilege escalation path. Admins are
    # created with `python main.py create-admin` unless this is switched on.
    allow_admin_registration: bool = False

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @model_validator(mode="after")
    def validate_secret_key(self) -> "Settings":
        """Enforce the SECRET_KEY policy [M7].

        Dev mode (DEBUG=true): auto-generate a random key with a warning.
            Tokens will not survive restart -- acceptable for local dev.

        Production mode (DEBUG=false or not set): refuse to start if
            SECRET_KEY is missing.

        Both modes: reject keys shorter than 32 characters [M6].
        """
        if not self.secret_key:
            if self.debug:
                self.secret_key = secrets.token_hex(32)
                logger.warning("WARNING: Using auto-generated SECRET_KEY. Tokens will not persist across restarts.")
            else:
                raise ValueError(
                    "SECRET_KEY is required in production mode. "
                    "Set SECRET_KEY in your environment or .env file. "
                    "To run in development mode, set DEBUG=true."
                )
        if len(self.secret_key) < 32:
            raise ValueError("SECRET_KEY must be at least 32 characters.")
        return self


@lru_cache
def get_settings() -> Settings:
    """Return the process-wide Settings instance.

    Only entry points call this (asgi.py, main.py). Everything below them
    receives the Settings object explicitly.

    In tests: build Settings(...) directly instead, or call
    get_settings.cache_clear() after changing the environment.
    """
    return Settings()
