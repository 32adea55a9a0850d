"""
core/config.py -- Centralized application configuration via pydantic-settings.

All environment variable reads for MarketBoard happen here. No module should
call os.getenv() or os.environ.get() directly -- import get_settings() instead.

Design patterns used:
  Singleton via lru_cache: get_settings() instantiates Settings once at first
      call and returns the cached instance on every subsequent call.

  BaseSettings (pydantic-settings): Reads values from environment variables
      and an optional .env file. Field names map to env var names
      (e.g. jwt_secret -> JWT_SECRET).

  @model_validator(mode="after"): DEBUG-conditional JWT_SECRET policy. Dev mode
      generates a key with a warning, production refuses to start without one.

Security notes:
  JWT_SECRET shorter than 32 chars is a startup failure in production. In
  debug mode it is accepted with a warning so local setups stay easy.

Layer rule: core/ is the kernel. This module may not import from api/, auth/,
or market/.
"""

import logging
import secrets
from functools import lru_cache
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("marketboard.config")

_DEFAULT_EXPIRE_SECONDS = 24 * 60 * 60
_UNIT_SECONDS = {"m": 60, "h": 60 * 60, "d": 24 * 60 * 60}


def parse_duration(value: str) -> int:
    """Convert a lifetime string like "30m", "24h" or "7d" into seconds.

    Unknown units and unparseable numbers fall back to 24 hours. A bad value
    here should never stop the server from issuing tokens.
    """
    raw = (value or "").strip()
    unit = raw[-1:].lower()
    if unit not in _UNIT_SECONDS:
        logger.warning("Unknown token lifetime %r -- using 24h", value)
        return _DEFAULT_EXPIRE_SECONDS
    try:
        amount = int(raw[:-1])
    except ValueError:
        logger.warning("Unparseable token lifetime %r -- using 24h", value)
        return _DEFAULT_EXPIRE_SECONDS
    if amount <= 0:
        logger.warning("Non-positive token lifetime %r -- using 24h", value)
        return _DEFAULT_EXPIRE_SECONDS
    return amount * _UNIT_SECONDS[unit]


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env file.

    All fields have defaults so Settings() can be instantiated in test
    environments without a real .env file (given DEBUG=true).
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
    database_url: str = "sqlite:///marketboard.db"
    allowed_hosts: str = "localhost,127.0.0.1,testserver"
    cors_origins: str = "http://localhost:3000"

    # ------------------------------------------------------------------
    # Auth
    # ------------------------------------------------------------------

    # Empty string is the sentinel for "not configured". The validator below
    # either generates a dev key or raises, so callers never see "".
    jwt_secret: str = ""
    jwt_expires_in: str = "24h"
    # None means "secure unless DEBUG" -- see cookie_secure.
    secure_cookies: Optional[bool] = None
    bcrypt_rounds: int = 12

    # Bootstrap identity. Documented default; rotate it right after first boot.
    admin_default_username: str = "admin"
    admin_default_password: str = "ChangeMe2024"

    # ------------------------------------------------------------------
    # Login throttling
    # ------------------------------------------------------------------

    login_max_attempts: int = 5
    login_window_seconds: int = 15 * 60

    # ------------------------------------------------------------------
    # Market
    # ------------------------------------------------------------------

    market_timezone: str = "Asia/Bangkok"

    @property
    def token_expire_seconds(self) -> int:
        return parse_duration(self.jwt_expires_in)

    @property
    def cookie_secure(self) -> bool:
        if self.secure_cookies is not None:
            return self.secure_cookies
        return not self.debug

    @property
    def allowed_host_list(self) -> list[str]:
        return [h.strip() for h in self.allowed_hosts.split(",") if h.strip()]

    @property
    def cors_origin_list(self) -> list[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @field_validator("market_timezone")
    @classmethod
    def validate_market_timezone(cls, value: str) -> str:
        """Refuse to start with a timezone zoneinfo cannot load."""
        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError, OSError) as exc:
            raise ValueError(f"MARKET_TIMEZONE {value!r} is not a known IANA timezone") from exc
        return value

    @model_validator(mode="after")
    def validate_jwt_secret(self) -> "Settings":
        """Enforce the JWT_SECRET policy.

        Dev mode (DEBUG=true): auto-generate a random key with a warning.
            Sessions will not survive restart -- acceptable for local dev.
            Short keys are accepted with a warning.

        Production mode (DEBUG=false or not set): refuse to start if
            JWT_SECRET is missing or shorter than 32 characters.
        """
        if not self.jwt_secret:
            if self.debug:
                self.jwt_secret = secrets.token_hex(32)
                logger.warning("Using auto-generated JWT_SECRET. Sessions will not persist across restarts.")
            else:
                raise ValueError(
                    "JWT_SECRET is required in production mode. "
                    "Set JWT_SECRET in your environment or .env file. "
                    "To run in development mode, set DEBUG=true."
                )
        if len(self.jwt_secret) < 32:
            if not self.debug:
                raise ValueError("JWT_SECRET must be at least 32 characters.")
            logger.warning("JWT_SECRET is shorter than 32 characters; this is refused in production.")
        return self


@lru_cache
def get_settings() -> Settings:
    """Return the application Settings singleton.

    In tests: call get_settings.cache_clear() between test cases if you need
    to inject different environment variables.
    """
    return Settings()
