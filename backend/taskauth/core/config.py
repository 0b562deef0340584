"""Application settings with environment-based simple classes."""

from __future__ import annotations

import os
from collections.abc import Mapping
from typing import Any, Final

from dotenv import load_dotenv

# Public selector env var (keep neutral name to avoid collisions)
ENV_VAR: Final[str] = "APP_ENV"  # 'development' | 'testing' | 'production'

# Environments where a missing signing identity must abort startup
PRODUCTION_LIKE: Final[frozenset[str]] = frozenset({"production", "prod", "staging"})


# Load .env during development (no-op when the file is missing)
load_dotenv()


def env_bool(name: str, default: bool = False) -> bool:
    """Parse a boolean flag from an environment variable.

    Parameters
    ----------
    name: str
        Environment variable to inspect.
    default: bool, optional
        Value returned when the variable is unset. Defaults to ``False``.

    Returns
    -------
    bool
        ``True`` if the value resembles ``{"1", "true", "yes", "y", "on"}``
        ignoring case; otherwise ``False`` or ``default`` when missing.
    """
    val = os.getenv(name)
    if val is None:
        return default
    return str(val).strip().lower() in {"1", "true", "yes", "y", "on"}


def split_list(raw: str) -> list[str]:
    """Split a comma-separated value into trimmed, non-empty items."""
    return [item.strip() for item in raw.split(",") if item.strip()]


def env_list(name: str, default: str = "") -> list[str]:
    """Split a comma-separated environment variable into trimmed items."""
    return split_list(os.getenv(name, default))


def env_int(name: str, default: int) -> int:
    """Read an integer environment variable, falling back to ``default``."""
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return int(raw)


def is_production_like(config: Mapping[str, Any]) -> bool:
    """Return ``True`` when ``APP_ENV`` names a production-like environment."""
    return str(config.get("APP_ENV", "development")).strip().lower() in PRODUCTION_LIKE


class BaseConfig:
    """Base configuration shared across environments.

    Attributes
    ----------
    APP_ENV: str
        Environment name; production-like names make missing keys fatal.
    API_BASE_PREFIX: str
        Root path for registering API blueprints.
    SQLALCHEMY_DATABASE_URI: str
        Database connection string consumed by SQLAlchemy.
    JWT_ISSUER: str
        Exact ``iss`` claim written into and required from access tokens.
    JWT_AUDIENCE: list[str]
        Audiences written into tokens; a token must list at least one of them.
    ACCESS_TOKEN_TTL_SECONDS: int
        Access-token lifetime (15 minutes by default).
    REFRESH_TOKEN_TTL_SECONDS: int
        Refresh-token lifetime (14 days by default).
    JWT_CLOCK_SKEW_SECONDS: int
        Tolerance applied to ``iat``/``exp`` checks.
    JWT_PEM_PUBLIC / JWT_PEM_PRIVATE: list[str]
        Parallel lists of PEM file paths (or inline PEM text) for signing keys.
    JWT_KEY_IDS: list[str]
        Optional explicit key ids, parallel to the PEM lists.
    JWT_CURRENT_KID: str | None
        Key id used for new signatures when it names a loaded key.
    REFRESH_HMAC_SECRET: str | None
        Secret for hashing refresh tokens at rest.
    REFRESH_TOKEN_STORE: str
        ``"sql"`` (default), ``"redis"`` or ``"memory"``.
    LOGIN_MAX_PER_MINUTE / REFRESH_MAX_PER_MINUTE: int
        Fixed-window limits per client identity.

    Notes
    -----
    Values are primarily sourced from environment variables, enabling
    configuration without code changes.
    """

    APP_ENV = os.getenv(ENV_VAR, "development").strip().lower()
    API_BASE_PREFIX = "/api"

    SECRET_KEY = os.getenv("SECRET_KEY", "CHANGE_ME")

    # DB
    SQLALCHEMY_DATABASE_URI = os.getenv("DATABASE_URL", "sqlite:///./dev.db")
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ECHO = env_bool("SQLALCHEMY_ECHO", False)
    REDIS_URL = os.getenv("REDIS_URL")

    # Access tokens
    JWT_ISSUER = os.getenv("JWT_ISSUER", "http://localhost:8080")
    JWT_AUDIENCE = env_list("JWT_AUDIENCE", "web")
    ACCESS_TOKEN_TTL_SECONDS = env_int("ACCESS_TOKEN_TTL_SECONDS", 15 * 60)
    JWT_CLOCK_SKEW_SECONDS = env_int("JWT_CLOCK_SKEW_SECONDS", 60)

    # Signing keys
    JWT_PEM_PUBLIC = env_list("JWT_PEM_PUBLIC")
    JWT_PEM_PRIVATE = env_list("JWT_PEM_PRIVATE")
    JWT_KEY_IDS = env_list("JWT_KEY_IDS")
    JWT_CURRENT_KID = os.getenv("JWT_CURRENT_KID") or None

    # Refresh tokens
    REFRESH_TOKEN_TTL_SECONDS = env_int("REFRESH_TOKEN_TTL_SECONDS", 14 * 24 * 3600)
    REFRESH_HMAC_SECRET = os.getenv("REFRESH_HMAC_SECRET") or None
    REFRESH_TOKEN_STORE = os.getenv("REFRESH_TOKEN_STORE", "sql").strip().lower()
    REFRESH_REUSE_CASCADE = env_bool("REFRESH_REUSE_CASCADE", False)

    # Rate limits
    LOGIN_MAX_PER_MINUTE = env_int("LOGIN_MAX_PER_MINUTE", 5)
    REFRESH_MAX_PER_MINUTE = env_int("REFRESH_MAX_PER_MINUTE", 20)

    # Flask & JSON
    JSON_SORT_KEYS = False
    PROPAGATE_EXCEPTIONS = False

    # Logging, CORS & proxies
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
    CORS_ORIGINS = os.getenv("CORS_ORIGINS", "http://localhost:5173")
    USE_PROXYFIX = env_bool("USE_PROXYFIX", True)

    DEBUG = False
    TESTING = False


class DevelopmentConfig(BaseConfig):
    """Configuration tailored for local development.

    Notes
    -----
    Without PEM keys an ephemeral RSA key is generated at startup, so tokens do
    not survive a restart.
    """

    APP_ENV = "development"
    DEBUG = env_bool("FLASK_DEBUG", True)
    CORS_MAX_AGE = 600  # 10 minutes


class TestingConfig(BaseConfig):
    """Configuration for automated test runs.

    Notes
    -----
    - Uses an in-memory SQLite database unless ``TEST_DATABASE_URL`` is set.
    - Never reads PEM keys from the environment; tests get an ephemeral key.
    - Propagates exceptions so pytest can surface tracebacks directly.
    """

    APP_ENV = "testing"
    TESTING = True
    DEBUG = False
    SQLALCHEMY_DATABASE_URI = os.getenv("TEST_DATABASE_URL", "sqlite:///:memory:")
    JWT_PEM_PUBLIC: list[str] = []
    JWT_PEM_PRIVATE: list[str] = []
    JWT_KEY_IDS: list[str] = []
    JWT_CURRENT_KID = None
    REFRESH_HMAC_SECRET = "testing-refresh-secret"
    REFRESH_TOKEN_STORE = "sql"
    USE_PROXYFIX = False
    PROPAGATE_EXCEPTIONS = True


class ProductionConfig(BaseConfig):
    """Configuration defaults for production deployments.

    Notes
    -----
    Signing keys and ``REFRESH_HMAC_SECRET`` are mandatory; the application
    factory refuses to start without them.
    """

    APP_ENV = "production"
    DEBUG = False
    SQLALCHEMY_ECHO = False
    PROPAGATE_EXCEPTIONS = False


CONFIG_MAP: Mapping[str, type[BaseConfig]] = {
    "development": DevelopmentConfig,
    "testing": TestingConfig,
    "production": ProductionConfig,
    "prod": ProductionConfig,
    "staging": ProductionConfig,
}


def get_config() -> type[BaseConfig]:
    """Return the configuration class inferred from ``APP_ENV``.

    Returns
    -------
    type[BaseConfig]
        Class to pass to :meth:`flask.Config.from_object`.

    Notes
    -----
    Falls back to :class:`DevelopmentConfig` when ``APP_ENV`` is unset or
    unknown.
    """
    name = os.getenv(ENV_VAR, "development").strip().lower()
    return CONFIG_MAP.get(name, DevelopmentConfig)
