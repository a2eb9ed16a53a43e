"""
core/config.py -- Centralized application configuration via pydantic-settings.

All environment variable reads for Readivine happen here. No module should
call os.getenv() or os.environ.get() directly -- import get_settings() instead.

Design patterns used:
  Singleton via lru_cache: get_settings() instantiates Settings once at first
      call and returns the cached instance on every subsequent call. This is
      the official FastAPI dependency injection pattern for config.

  BaseSettings (pydantic-settings): Reads values from environment variables
      and an optional .env file automatically. Field names map to env var names
      (e.g. access_token_secret -> ACCESS_TOKEN_SECRET).

  @model_validator(mode="after"): Runs cross-field validation after all fields
      are resolved from environment. Dev mode generates missing secrets with a
      warning, production mode refuses to start without them.

Security notes:
  [M6] Secrets shorter than 32 chars are rejected outright. HS256 signing and
       the Fernet key derivation both rely on key entropy.

  [M7] Outside DEBUG mode a missing secret is a hard startup failure. A random
       secret would invalidate every session (and make stored GitHub tokens
       undecryptable) on each restart.

Layer rule: core/ is the kernel. This module may not import from api/, auth/
or client/.
"""

import logging
import secrets
from functools import lru_cache
from pathlib import Path

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("readivine.config")

_DEFAULT_DB_URL = f"sqlite:///{Path(__file__).resolve().parent.parent / 'auth' / 'readivine_auth.db'}"
_DEFAULT_PROD_FRONTEND_URL = "https://readivine.vercel.app"

# Session lifetimes in seconds. Development windows are shorter so expiry paths
# are easy to exercise locally.
_ACCESS_TTL_DEV = 8 * 60 * 60
_ACCESS_TTL_PROD = 7 * 24 * 60 * 60
_REFRESH_TTL_DEV = 24 * 60 * 60
_REFRESH_TTL_PROD = 10 * 24 * 60 * 60

_SECRET_FIELDS = ("access_token_secret", "refresh_token_secret", "crypto_secret_key")


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

    environment: str = "development"
    debug: bool = False
    database_url: str = _DEFAULT_DB_URL
    allowed_hosts: list[str] = ["*"]

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    # Empty string is the sentinel for "not configured". The model_validator
    # below either generates a dev secret or raises, so callers never see "".
    access_token_secret: str = ""
    refresh_token_secret: str = ""
    crypto_secret_key: str = ""
    # 0 means "use the environment default" (see access_token_ttl below).
    access_token_expire_seconds: int = 0
    refresh_token_expire_seconds: int = 0

    # ------------------------------------------------------------------
    # GitHub OAuth (empty string means not configured)
    # ------------------------------------------------------------------

    github_client_id: str = ""
    github_client_secret: str = ""
    github_callback_url: str = ""
    github_scopes: str = "repo user:email"

    # ------------------------------------------------------------------
    # Frontend
    # ------------------------------------------------------------------

    frontend_url: str = ""
    frontend_url_dev: str = "http://localhost:5173"

    # ------------------------------------------------------------------
    # Rate limiting
    # ------------------------------------------------------------------

    oauth_rate_limit: str = "20/minute"

    # ------------------------------------------------------------------
    # Derived values
    # ------------------------------------------------------------------

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"

    @property
    def frontend_base_url(self) -> str:
        """Return the frontend origin OAuth redirects land on, without a trailing slash."""
        if self.is_production:
            if not self.frontend_url:
                logger.warning("FRONTEND_URL not set in production -- using default %s", _DEFAULT_PROD_FRONTEND_URL)
                return _DEFAULT_PROD_FRONTEND_URL
            return self.frontend_url.rstrip("/")
        return (self.frontend_url_dev or "http://localhost:5173").rstrip("/")

    @property
    def access_token_ttl(self) -> int:
        if self.access_token_expire_seconds > 0:
            return self.access_token_expire_seconds
        return _ACCESS_TTL_PROD if self.is_production else _ACCESS_TTL_DEV

    @property
    def refresh_token_ttl(self) -> int:
        if self.refresh_token_expire_seconds > 0:
            return self.refresh_token_expire_seconds
        return _REFRESH_TTL_PROD if self.is_production else _REFRESH_TTL_DEV

    @property
    def cors_origins(self) -> list[str]:
        origins = [self.frontend_url, self.frontend_url_dev, "http://localhost:5173", "http://localhost:3000"]
        return list(dict.fromkeys(o.rstrip("/") for o in origins if o))

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @model_validator(mode="after")
    def validate_secrets(self) -> "Settings":
        """Enforce the secret policy [M7].

        Dev mode (DEBUG=true): auto-generate each missing secret with a warning.
            Sessions and stored GitHub tokens will not survive a restart --
            acceptable for local dev.

        Production mode (DEBUG=false or not set): refuse to start if any secret
            is missing.

        Both modes: reject secrets shorter than 32 characters [M6].
        """
        for field in _SECRET_FIELDS:
            value = getattr(self, field)
            env_name = field.upper()
            if not value:
                if self.debug:
                    setattr(self, field, secrets.token_hex(32))
                    logger.warning("WARNING: Using auto-generated %s. Sessions will not persist across restarts.", env_name)
                    continue
                raise ValueError(
                    f"{env_name} is required in production mode. "
                    "Set it in your environment or .env file. "
                    "To run in development mode, set DEBUG=true."
                )
            if len(value) < 32:
                raise ValueError(f"{env_name} must be at least 32 characters.")
        return self


@lru_cache
def get_settings() -> Settings:
    """Return the application Settings singleton.

    In tests: call get_settings.cache_clear() between test cases if you need
    to inject different environment variables.
    """
    return Settings()
