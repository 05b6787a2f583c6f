"""Application settings with environment-based simple classes."""

from __future__ import annotations

import os
import re
from collections.abc import Mapping
from datetime import timedelta
from typing import Final

from dotenv import load_dotenv

# Public selector env var (keep neutral name to avoid collisions)
ENV_VAR: Final[str] = "APP_ENV"  # 'development' | 'testing' | 'production'

_DURATION_RE: Final = re.compile(r"^\s*(\d+)\s*([smhd]?)\s*$", re.IGNORECASE)
_DURATION_UNITS: Final[Mapping[str, str]] = {
    "": "seconds",
    "s": "seconds",
    "m": "minutes",
    "h": "hours",
    "d": "days",
}


# Load .env in development (no-op when the file is absent)
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


def parse_duration(raw: str) -> timedelta:
    """Parse a compact duration such as ``"15m"``, ``"7d"`` or ``"3600"``.

    Parameters
    ----------
    raw: str
        Integer amount followed by an optional unit (``s``, ``m``, ``h``,
        ``d``). A bare integer is read as seconds.

    Returns
    -------
    datetime.timedelta
        Parsed duration.

    Raises
    ------
    ValueError
        When the string does not match the expected format or is zero.
    """
    match = _DURATION_RE.match(raw or "")
    if match is None:
        raise ValueError(f"Invalid duration: {raw!r}")
    amount, unit = int(match.group(1)), match.group(2).lower()
    if amount <= 0:
        raise ValueError(f"Duration must be positive: {raw!r}")
    return timedelta(**{_DURATION_UNITS[unit]: amount})


def env_duration(name: str, default: str) -> timedelta:
    """Read a duration from the environment using :func:`parse_duration`."""
    return parse_duration(os.getenv(name, default))


def env_list(name: str, default: str) -> tuple[str, ...]:
    """Read a comma-separated list, dropping blanks and surrounding spaces."""
    raw = os.getenv(name, default)
    return tuple(item.strip() for item in raw.split(",") if item.strip())


class BaseConfig:
    """Base configuration shared across environments.

    Attributes
    ----------
    API_BASE_PREFIX: str
        Root path for registering API blueprints.
    SECRET_KEY: str
        Flask secret. Defaults to a development-safe placeholder.
    JWT_SECRET_KEY: str
        Signing secret for **access** tokens. Shared with
        ``flask-jwt-extended`` so protected endpoints accept the tokens the
        credential codec issues.
    JWT_REFRESH_SECRET_KEY: str
        Signing secret for **refresh** tokens. Rotating it invalidates every
        outstanding refresh token without touching access tokens.
    JWT_ACCESS_TOKEN_EXPIRES: datetime.timedelta
        Access token lifetime (``JWT_EXPIRES_IN``, default ``15m``).
    JWT_REFRESH_TOKEN_EXPIRES: datetime.timedelta
        Refresh token lifetime (``JWT_REFRESH_EXPIRES_IN``, default ``30d``).
    SQLALCHEMY_DATABASE_URI: str
        Connection string of the profile store database.
    REDIS_URL: str | None
        Redis connection used by the optional revocation store.
    IDENTITY_DIRECTORY_BACKEND: str
        ``"http"`` for the remote directory, ``"memory"`` for the in-process
        double used in tests and local runs.
    IDENTITY_DIRECTORY_URL: str
        Base URL of the identity directory.
    IDENTITY_DIRECTORY_SERVICE_KEY: str
        Privileged key for the directory's admin endpoints.
    DIRECTORY_TIMEOUT_SECONDS: float
        Per-call timeout applied to directory requests.
    PROFILE_STORE_BACKEND: str
        ``"sqlalchemy"`` or ``"memory"``.
    REVOCATION_BACKEND: str
        ``"none"`` (stateless tokens, default) or ``"redis"``.
    ALLOWED_ROLES: tuple[str, ...]
        Roles the coordinator accepts at registration and on profile updates.
    SELF_REGISTRATION_ROLES: tuple[str, ...]
        Roles a client may pick on ``POST /auth/register`` (``applicant``
        by default). The HTTP API never lets callers change their own role.
    FRONTEND_URL: str
        Base URL used to build the password-reset redirect.
    LOG_LEVEL: str
        Root logging verbosity (``INFO`` by default).
    CORS_ORIGINS: str
        Comma-separated list of allowed origins for CORS.

    Notes
    -----
    Values are primarily sourced from environment variables, enabling
    configuration without code changes.
    """

    API_BASE_PREFIX = "/api"

    # Secrets / security
    SECRET_KEY = os.getenv("SECRET_KEY", "CHANGE_ME")
    JWT_SECRET_KEY = os.getenv("JWT_SECRET", "CHANGE_ME_JWT")
    JWT_REFRESH_SECRET_KEY = os.getenv("JWT_REFRESH_SECRET", "CHANGE_ME_JWT_REFRESH")
    JWT_ACCESS_TOKEN_EXPIRES = env_duration("JWT_EXPIRES_IN", "15m")
    JWT_REFRESH_TOKEN_EXPIRES = env_duration("JWT_REFRESH_EXPIRES_IN", "30d")
    JWT_TOKEN_LOCATION = ["headers"]

    # Profile store
    SQLALCHEMY_DATABASE_URI = os.getenv("DATABASE_URL", "sqlite:///./dev.db")
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ECHO = env_bool("SQLALCHEMY_ECHO", False)
    PROFILE_STORE_BACKEND = os.getenv("PROFILE_STORE_BACKEND", "sqlalchemy")

    # Identity directory
    IDENTITY_DIRECTORY_BACKEND = os.getenv("IDENTITY_DIRECTORY_BACKEND", "http")
    IDENTITY_DIRECTORY_URL = os.getenv("IDENTITY_DIRECTORY_URL", "")
    IDENTITY_DIRECTORY_SERVICE_KEY = os.getenv("IDENTITY_DIRECTORY_SERVICE_KEY", "")
    DIRECTORY_TIMEOUT_SECONDS = float(os.getenv("DIRECTORY_TIMEOUT_SECONDS", "10"))

    # Revocation (opt-in)
    REVOCATION_BACKEND = os.getenv("REVOCATION_BACKEND", "none")
    REDIS_URL = os.getenv("REDIS_URL")

    # Accounts
    ALLOWED_ROLES = env_list("ALLOWED_ROLES", "applicant,reviewer,admin")
    SELF_REGISTRATION_ROLES = env_list("SELF_REGISTRATION_ROLES", "applicant")
    FRONTEND_URL = os.getenv("FRONTEND_URL", "http://localhost:3000")

    # Flask & JSON
    JSON_SORT_KEYS = False
    PROPAGATE_EXCEPTIONS = False

    # Logging & CORS
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
    CORS_ORIGINS = os.getenv("CORS_ORIGINS", "http://localhost:3000")

    # Flask built-ins
    DEBUG = False
    TESTING = False


class DevelopmentConfig(BaseConfig):
    """Configuration tailored for local development.

    Notes
    -----
    Enables debug mode by default. The identity directory backend still
    defaults to ``http``; set ``IDENTITY_DIRECTORY_BACKEND=memory`` to run
    without a directory server.
    """

    DEBUG = env_bool("FLASK_DEBUG", True)
    CORS_MAX_AGE = 600  # 10 minutes


class TestingConfig(BaseConfig):
    """Configuration for automated test runs.

    Notes
    -----
    - Forces ``TESTING`` mode and disables debug logs.
    - Uses an in-memory SQLite profile store unless ``TEST_DATABASE_URL`` is set.
    - Uses the in-memory identity directory and no revocation store.
    - Propagates exceptions so pytest can surface tracebacks directly.
    """

    TESTING = True
    DEBUG = False
    SQLALCHEMY_DATABASE_URI = os.getenv("TEST_DATABASE_URL", "sqlite:///:memory:")
    IDENTITY_DIRECTORY_BACKEND = "memory"
    PROFILE_STORE_BACKEND = "sqlalchemy"
    REVOCATION_BACKEND = "none"
    REDIS_URL = None
    JWT_SECRET_KEY = "test-access-secret-0123456789abcdef"
    JWT_REFRESH_SECRET_KEY = "test-refresh-secret-0123456789abcdef"
    PROPAGATE_EXCEPTIONS = True


class ProductionConfig(BaseConfig):
    """Configuration defaults for production deployments.

    Notes
    -----
    Keeps debug and SQL echoing disabled while relying on WSGI-level log
    configuration for noise control.
    """

    DEBUG = False
    SQLALCHEMY_ECHO = False
    PROPAGATE_EXCEPTIONS = False


# Map names -> classes (simple, explicit)
CONFIG_MAP: Mapping[str, type[BaseConfig]] = {
    "development": DevelopmentConfig,
    "testing": TestingConfig,
    "production": ProductionConfig,
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
