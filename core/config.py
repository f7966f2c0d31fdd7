"""
core/config.py -- Centralized application configuration via pydantic-settings.

All environment variable reads for the blog API happen here. No module should
call os.getenv() or os.environ.get() directly -- import get_settings() instead.

Design patterns used:
  Singleton via lru_cache: get_settings() instantiates Settings once at first
      call and returns the cached instance on every subsequent call. This is
      the FastAPI dependency injection pattern for config.

  BaseSettings (pydantic-settings): Reads values from environment variables
      and an optional .env file. Field names map to env var names
      (e.g. secret_key -> SECRET_KEY, csrf_exempt_paths -> CSRF_EXEMPT_PATHS
      as a JSON list).

  @model_validator(mode="after"): Cross-field validation after all fields
      are resolved. DEBUG mode generates a key with a warning, production
      mode refuses to start without one.

Security notes:
  SECRET_KEY keys the HMAC applied to session identifiers before they are
  written to the session table. Keys shorter than 32 chars are rejected.

  The CSRF exemption list is empty by default. /login is deliberately NOT
  exempt: the double-submit pair is required on every state-changing request.

Layer rule: core/ is the kernel. This module may not import from api/,
auth/, or blog/.
"""

import logging
import secrets
from functools import lru_cache
from pathlib import Path

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("blog.config")

_DEFAULT_DB_URL = f"sqlite:///{Path(__file__).resolve().parent.parent / 'blog.db'}"


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
    # Empty string is the sentinel for "not configured". The model_validator
    # below either generates a dev key or raises, so callers never see "".
    secret_key: str = ""
    database_url: str = _DEFAULT_DB_URL
    default_locale: str = "en"

    # ------------------------------------------------------------------
    # Session
    # ------------------------------------------------------------------

    secure_cookies: bool = False
    session_cookie_name: str = "JSESSIONID"
    # Idle timeout. A session untouched for longer is treated as absent.
    session_timeout_seconds: int = 1800
    session_purge_interval_seconds: int = 3600

    # ------------------------------------------------------------------
    # CSRF
    # ------------------------------------------------------------------

    csrf_cookie_name: str = "XSRF-TOKEN"
    csrf_header_name: str = "X-XSRF-TOKEN"
    csrf_exempt_paths: list[str] = []

    # ------------------------------------------------------------------
    # Login / logout filter paths
    # ------------------------------------------------------------------

    login_path: str = "/login"
    logout_path: str = "/logout"

    # ------------------------------------------------------------------
    # HTTP
    # ------------------------------------------------------------------

    allowed_hosts: list[str] = ["*"]
    cors_origins: list[str] = ["http://localhost:3000"]

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @model_validator(mode="after")
    def validate_secret_key(self) -> "Settings":
        """Enforce the SECRET_KEY policy.

        Dev mode (DEBUG=true): auto-generate a random key with a warning.
            Stored session ids will not match after a restart, so every user
            is logged out -- acceptable for local dev.

        Production mode (DEBUG=false or not set): refuse to start if
            SECRET_KEY is missing.

        Both modes: reject keys shorter than 32 characters.
        """
        if not self.secret_key:
            if self.debug:
                self.secret_key = secrets.token_hex(32)
                logger.warning(
                    "WARNING: Using auto-generated SECRET_KEY. " "Sessions will not persist across restarts."
                )
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
    """Return the application Settings singleton.

    In tests: call get_settings.cache_clear() between test cases if you need
    to inject different environment variables.
    """
    return Settings()
