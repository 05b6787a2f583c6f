"""Global Flask extension instances and initialization helpers."""

from __future__ import annotations

import redis  # type: ignore[import-untyped]
from flask import Flask, current_app
from flask_jwt_extended import JWTManager
from flask_sqlalchemy import SQLAlchemy
from redis.exceptions import RedisError  # type: ignore[import-untyped]
from sqlalchemy import MetaData

COORDINATOR_KEY = "account_coordinator"

# Global naming convention for all constraints
convention = {
    "ix": "ix_%(table_name)s_%(column_0_name)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}

metadata = MetaData(naming_convention=convention)

# Global singletons (import-safe)
db: SQLAlchemy = SQLAlchemy(session_options={"autoflush": False}, metadata=metadata)
jwt = JWTManager()
redis_client: redis.Redis | None = None


def init_app(app: Flask) -> None:
    """Initialize SQLAlchemy, JWT, Redis and the account coordinator.

    Parameters
    ----------
    app: flask.Flask
        Application used to bind extension instances. The ``profiles`` table
        is created on first start when the SQLAlchemy profile store is active.
    """
    db.init_app(app)

    from account_hub import models as _models  # noqa: F401

    jwt.init_app(app)

    global redis_client
    redis_url = app.config.get("REDIS_URL")
    if not redis_url:
        redis_client = None
        app.extensions.pop("redis_client", None)
    else:
        redis_client = redis.Redis.from_url(redis_url)
        try:
            redis_client.ping()
        except RedisError as exc:
            raise RuntimeError(f"Failed to connect to Redis at {redis_url!r}") from exc
        app.extensions["redis_client"] = redis_client

    if app.config.get("PROFILE_STORE_BACKEND", "sqlalchemy") == "sqlalchemy":
        with app.app_context():
            db.create_all()

    app.extensions[COORDINATOR_KEY] = build_coordinator(app)


def get_redis() -> redis.Redis:
    """Return the initialized Redis client."""
    if redis_client is None:
        raise RuntimeError("Redis client is not initialized. Set REDIS_URL first.")
    return redis_client


def build_coordinator(app: Flask):
    """Wire the account coordinator from the ``*_BACKEND`` settings.

    :raises RuntimeError: On an unknown backend name or missing settings.
    """
    from account_hub.infra.jwt.jwt_credential_codec import JWTCredentialCodec
    from account_hub.services._shared.ports import (
        InMemoryIdentityDirectory,
        InMemoryProfileStore,
    )
    from account_hub.services.accounts.service import AccountLifecycleCoordinator

    cfg = app.config

    directory_backend = cfg.get("IDENTITY_DIRECTORY_BACKEND", "http")
    if directory_backend == "memory":
        directory = InMemoryIdentityDirectory()
    elif directory_backend == "http":
        from account_hub.infra.directory.http_identity_directory import HttpIdentityDirectory

        directory = HttpIdentityDirectory(
            cfg.get("IDENTITY_DIRECTORY_URL", ""),
            cfg.get("IDENTITY_DIRECTORY_SERVICE_KEY", ""),
            timeout=float(cfg.get("DIRECTORY_TIMEOUT_SECONDS", 10)),
        )
    else:
        raise RuntimeError(f"Unknown IDENTITY_DIRECTORY_BACKEND: {directory_backend!r}")

    profile_backend = cfg.get("PROFILE_STORE_BACKEND", "sqlalchemy")
    if profile_backend == "memory":
        profiles = InMemoryProfileStore()
    elif profile_backend == "sqlalchemy":
        from account_hub.infra.profiles.sqlalchemy_profile_store import SqlAlchemyProfileStore

        profiles = SqlAlchemyProfileStore()
    else:
        raise RuntimeError(f"Unknown PROFILE_STORE_BACKEND: {profile_backend!r}")

    revocation_backend = cfg.get("REVOCATION_BACKEND", "none")
    revocations = None
    if revocation_backend == "redis":
        from account_hub.infra.redis.redis_revocation_store import RedisRevocationStore

        revocations = RedisRevocationStore(get_redis())
    elif revocation_backend != "none":
        raise RuntimeError(f"Unknown REVOCATION_BACKEND: {revocation_backend!r}")

    frontend_url = (cfg.get("FRONTEND_URL") or "").rstrip("/")
    return AccountLifecycleCoordinator(
        directory=directory,
        profiles=profiles,
        codec=JWTCredentialCodec.from_config(cfg),
        revocations=revocations,
        revocation_ttl=cfg["JWT_REFRESH_TOKEN_EXPIRES"],
        allowed_roles=cfg.get("ALLOWED_ROLES") or ("applicant",),
        reset_redirect_url=f"{frontend_url}/reset-password" if frontend_url else None,
    )


def get_coordinator():
    """Return the coordinator wired for the current application."""
    return current_app.extensions[COORDINATOR_KEY]
