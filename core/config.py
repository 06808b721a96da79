"""
core/config.py -- Centralized application configuration via pydantic-settings.

All environment variable reads for UserHub happen here. No module should
call os.getenv() or os.environ.get() directly -- import get_settings() instead.

Design patterns used:
  Singleton via lru_cache: get_settings() instantiates Settings once at first
      call and returns the cached instance on every subsequent call.

  BaseSettings (pydantic-settings): Reads values from environment variables
      and an optional .env file automatically. Field names map to env var names
      (e.g. jwt_secret -> JWT_SECRET).

  SigningConfig: a frozen dataclass cut from Settings once at startup and
      handed to TokenIssuer. The token code never reaches for get_settings()
      itself, so tests can build an issuer with throwaway keys.

Security notes:
  [M6] JWT secrets shorter than 32 chars are rejected outright.

  [M7] In production mode (DEBUG not set or false), a missing secret is a
       hard startup failure.

  [K1] JWT_SECRET and JWT_REFRESH_SECRET must differ. A leaked access key must
       not be usable to forge refresh tokens and vice versa.

Layer rule: core/ is the kernel. This module may not import from api/, auth/,
or mail/.
"""

import logging
import secrets
from dataclasses import dataclass
from datetime import timedelta
from functools import lru_cache
from pathlib import Path

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("userhub.config")

_DEFAULT_DB_URL = f"sqlite:///{Path(__file__).resolve().parent.parent / 'userhub.db'}"


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
    app_url: str = "http://localhost:3000"
    # JSON list in the environment, e.g. ALLOWED_HOSTS='["api.example.com"]'
    allowed_hosts: list[str] = ["localhost", "127.0.0.1", "*.localhost"]
    database_url: str = _DEFAULT_DB_URL

    # ------------------------------------------------------------------
    # Tokens
    # ------------------------------------------------------------------

    # Empty string is the sentinel for "not configured". The model_validator
    # below either generates a dev key or raises, so callers never see "".
    jwt_secret: str = ""
    jwt_refresh_secret: str = ""
    jwt_expire_seconds: int = 15 * 60
    jwt_refresh_expire_seconds: int = 7 * 24 * 3600
    secure_cookies: bool = False

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    default_role: str = "User"

    # ------------------------------------------------------------------
    # Rate limiting
    # ------------------------------------------------------------------

    login_rate_limit: str = "10/minute"

    # ------------------------------------------------------------------
    # Outbound mail (empty smtp_host = log instead of send)
    # ------------------------------------------------------------------

    smtp_host: str = ""
    smtp_port: int = 587
    smtp_user: str = ""
    smtp_password: str = ""
    smtp_use_tls: bool = True
    mail_from: str = "UserHub <no-reply@localhost>"

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @model_validator(mode="after")
    def validate_secrets(self) -> "Settings":
        """Enforce the JWT secret policy [M6][M7][K1].

        Dev mode (DEBUG=true): auto-generate missing keys with a warning.
            Sessions will not survive restart -- acceptable for local dev.

        Production mode: refuse to start if either key is missing.
        """
        for field_name in ("jwt_secret", "jwt_refresh_secret"):
            value = getattr(self, field_name)
            if not value:
                if self.debug:
                    setattr(self, field_name, secrets.token_hex(32))
                    logger.warning(
                        "WARNING: Using auto-generated %s. Sessions will not persist across restarts.",
                        field_name.upper(),
                    )
                else:
                    raise ValueError(
                        f"{field_name.upper()} is required in production mode. "
                        "Set it in your environment or .env file. "
                        "To run in development mode, set DEBUG=true."
                    )
            if len(getattr(self, field_name)) < 32:
                raise ValueError(f"{field_name.upper()} must be at least 32 characters.")
        if self.jwt_secret == self.jwt_refresh_secret:
            raise ValueError("JWT_SECRET and JWT_REFRESH_SECRET must be different.")
        return self


@dataclass(frozen=True)
class SigningConfig:
    """Immutable signing material for TokenIssuer [K1]."""

    access_secret: str
    refresh_secret: str
    access_expires: timedelta
    refresh_expires: timedelta
    algorithm: str = "HS256"

    def __post_init__(self) -> None:
        if self.access_secret == self.refresh_secret:
            raise ValueError("Access and refresh tokens must use distinct signing keys.")

    @classmethod
    def from_settings(cls, settings: Settings) -> "SigningConfig":
        return cls(
            access_secret=settings.jwt_secret,
            refresh_secret=settings.jwt_refresh_secret,
            access_expires=timedelta(seconds=settings.jwt_expire_seconds),
            refresh_expires=timedelta(seconds=settings.jwt_refresh_expire_seconds),
        )


@lru_cache
def get_settings() -> Settings:
    """Return the application Settings singleton.

    In tests: call get_settings.cache_clear() between test cases if you need
    to inject different environment variables.
    """
    return Settings()
