"""
core/config.py -- Application settings for CampReview (pydantic-settings).

Every environment variable the app reads is declared on Settings below.
Other modules call get_settings() rather than touching os.environ.

  get_settings() is wrapped in lru_cache, so the environment and .env file
      are read once per process. Tests set their env vars before the first
      import of any app module.

  Field names map to upper-case env vars (secret_key -> SECRET_KEY,
      auth_failure_mode -> AUTH_FAILURE_MODE).

  SECRET_KEY policy lives in a model_validator: DEBUG=true generates a
      throwaway key, anything else refuses to start without one.

Layer rule: core/ is the kernel. This module may not import from api/,
auth/, or campgrounds/.
"""

import logging
import secrets
from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("campreview.config")

_DEFAULT_DB_URL = f"sqlite:///{Path(__file__).resolve().parent.parent / 'campreview.db'}"


class Settings(BaseSettings):
    """Settings from the environment and an optional .env file.

    Only SECRET_KEY lacks a usable default, and DEBUG=true fills that in.
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
    database_url: str = _DEFAULT_DB_URL
    allowed_hosts: list[str] = ["localhost", "127.0.0.1", "*.localhost", "testserver"]

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    secure_cookies: bool = False
    # One week, same lifetime as the browser deployment this replaces.
    session_max_age_seconds: int = 60 * 60 * 24 * 7

    # "redirect": guard failures answer 302 to /login or the resource page.
    # "status":   guard failures answer 401 / 403 with the JSON error envelope.
    auth_failure_mode: Literal["redirect", "status"] = "redirect"

    # ------------------------------------------------------------------
    # Rate limiting
    # ------------------------------------------------------------------

    rate_limit_enabled: bool = True
    login_rate_limit: str = "10/minute"

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @model_validator(mode="after")
    def validate_secret_key(self) -> "Settings":
        """Enforce the SECRET_KEY policy.

        DEBUG=true: generate a random key and warn. Every restart logs all
            sessions out, which is fine on a laptop.

        Production mode: refuse to start if SECRET_KEY is missing. The key
            signs session cookies and keys the session-id HMAC.

        Both modes: reject keys shorter than 32 characters.
        """
        if not self.secret_key:
            if self.debug:
                self.secret_key = secrets.token_hex(32)
                logger.warning("WARNING: Using auto-generated SECRET_KEY. Sessions will not persist across restarts.")
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
    """Return the process-wide Settings instance (built on first call)."""
    return Settings()
