"""
Configuration
=============
Settings for the OTP authentication core, read from the environment.
"""

import os
from dataclasses import dataclass
from typing import Mapping, Optional
import structlog

from .errors import ConfigError
from .tokens import HMAC_ALGORITHMS

logger = structlog.get_logger(__name__)

DEFAULT_JWT_SECRET = "default-jwt-secret"
STORAGE_TYPES = ("inmemory", "postgres", "sql")


def _get_int(env: Mapping[str, str], key: str, default: int) -> int:
    """Read an integer, falling back to the default when unparseable."""
    value = env.get(key)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        logger.warning("Ignoring non-integer setting", key=key)
        return default


def _get_float(env: Mapping[str, str], key: str, default: float) -> float:
    value = env.get(key)
    if value is None:
        return default
    try:
        return float(value)
    except ValueError:
        logger.warning("Ignoring non-numeric setting", key=key)
        return default


@dataclass
class AuthConfig:
    """Settings for code issuance, rate limiting, tokens and storage."""
    code_length: int = 6
    code_ttl_seconds: int = 120  # 2 minutes
    rate_limit_max_requests: int = 3
    rate_limit_window_seconds: int = 600  # 10 minutes
    jwt_secret: str = DEFAULT_JWT_SECRET
    jwt_algorithm: str = "HS256"
    token_ttl_seconds: int = 24 * 3600
    store_timeout_seconds: float = 5.0
    storage_type: str = "inmemory"
    database_url: str = ""
    janitor_interval_seconds: Optional[int] = None  # Defaults to the rate limit window

    @property
    def uses_sql_storage(self) -> bool:
        return self.storage_type in ("postgres", "sql")

    @property
    def janitor_interval(self) -> int:
        return self.janitor_interval_seconds or self.rate_limit_window_seconds

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "AuthConfig":
        """
        Build a config from environment variables.

        Args:
            env: Mapping to read from (defaults to ``os.environ``)
        """
        env = os.environ if env is None else env

        config = cls(
            code_length=_get_int(env, "OTP_CODE_LENGTH", 6),
            code_ttl_seconds=_get_int(env, "OTP_EXPIRATION_MINUTES", 2) * 60,
            rate_limit_max_requests=_get_int(env, "OTP_RATE_LIMIT_MAX_REQUESTS", 3),
            rate_limit_window_seconds=_get_int(env, "OTP_RATE_LIMIT_WINDOW_SECONDS", 600),
            jwt_secret=env.get("JWT_SECRET", DEFAULT_JWT_SECRET),
            jwt_algorithm=env.get("JWT_ALGORITHM", "HS256"),
            token_ttl_seconds=_get_int(env, "JWT_TTL_HOURS", 24) * 3600,
            store_timeout_seconds=_get_float(env, "STORE_TIMEOUT_SECONDS", 5.0),
            storage_type=env.get("STORAGE_TYPE", "inmemory").lower(),
            database_url=env.get("DATABASE_URL", ""),
            janitor_interval_seconds=_get_int(env, "JANITOR_INTERVAL_SECONDS", 0) or None,
        )
        config.validate()
        return config

    def validate(self) -> None:
        """
        Raises:
            ConfigError: If a setting is missing or out of range
        """
        if self.storage_type not in STORAGE_TYPES:
            raise ConfigError(f"STORAGE_TYPE must be one of {', '.join(STORAGE_TYPES)}")
        if self.uses_sql_storage and not self.database_url:
            raise ConfigError(f"STORAGE_TYPE is '{self.storage_type}' but DATABASE_URL is not set")
        if not 4 <= self.code_length <= 10:
            raise ConfigError("OTP_CODE_LENGTH must be between 4 and 10")
        if self.code_ttl_seconds <= 0:
            raise ConfigError("OTP expiration must be positive")
        if self.rate_limit_max_requests < 1:
            raise ConfigError("OTP_RATE_LIMIT_MAX_REQUESTS must be at least 1")
        if self.rate_limit_window_seconds < 1:
            raise ConfigError("OTP_RATE_LIMIT_WINDOW_SECONDS must be at least 1")
        if self.token_ttl_seconds <= 0:
            raise ConfigError("JWT TTL must be positive")
        if self.store_timeout_seconds <= 0:
            raise ConfigError("STORE_TIMEOUT_SECONDS must be positive")
        if self.jwt_algorithm not in HMAC_ALGORITHMS:
            raise ConfigError(f"JWT_ALGORITHM must be one of {', '.join(HMAC_ALGORITHMS)}")
        if not self.jwt_secret:
            raise ConfigError("JWT_SECRET must not be empty")
        if self.janitor_interval < self.rate_limit_window_seconds:
            raise ConfigError("JANITOR_INTERVAL_SECONDS must not be shorter than the rate limit window")

        if self.jwt_secret == DEFAULT_JWT_SECRET:
            logger.warning("Using default JWT_SECRET. Set a strong secret in the environment.")
