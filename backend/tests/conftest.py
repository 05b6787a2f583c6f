"""Shared pytest fixtures.

Unit tests of the coordinator run against the in-memory collaborators and a
controllable clock. Store and API tests build a fresh Flask app per test; the
in-memory SQLite engine lives and dies with that app, so no data leaks between
cases.
"""

from __future__ import annotations

import os
from datetime import UTC, datetime, timedelta

import factory
import pytest

from account_hub.core.config import TestingConfig
from account_hub.core.extensions import db as _db
from account_hub.core.extensions import get_coordinator
from account_hub.factory import create_app
from account_hub.infra.jwt.jwt_credential_codec import JWTCredentialCodec
from account_hub.models.profile import Profile
from account_hub.services._shared.ports import (
    InMemoryIdentityDirectory,
    InMemoryProfileStore,
    InMemoryRevocationStore,
)
from account_hub.services.accounts.service import AccountLifecycleCoordinator

ACCESS_SECRET = "unit-access-secret-0123456789abcdef"
REFRESH_SECRET = "unit-refresh-secret-0123456789abcdef"


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start: datetime) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **delta: float) -> None:
        self.now += timedelta(**delta)


# ------------------------------ Unit doubles ------------------------------ #


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock(datetime(2024, 1, 1, 12, 0, 0, tzinfo=UTC))


@pytest.fixture()
def codec(clock) -> JWTCredentialCodec:
    return JWTCredentialCodec(
        access_secret=ACCESS_SECRET,
        refresh_secret=REFRESH_SECRET,
        access_ttl=timedelta(minutes=15),
        refresh_ttl=timedelta(days=7),
        clock=clock,
    )


@pytest.fixture()
def directory() -> InMemoryIdentityDirectory:
    return InMemoryIdentityDirectory()


@pytest.fixture()
def profiles(clock) -> InMemoryProfileStore:
    return InMemoryProfileStore(clock=clock)


@pytest.fixture()
def coordinator(directory, profiles, codec, clock) -> AccountLifecycleCoordinator:
    """Build a coordinator wired to in-memory doubles (stateless tokens)."""
    return AccountLifecycleCoordinator(
        directory=directory,
        profiles=profiles,
        codec=codec,
        allowed_roles=("applicant", "reviewer", "admin"),
        reset_redirect_url="http://frontend.test/reset-password",
        clock=clock,
    )


@pytest.fixture()
def revocations() -> InMemoryRevocationStore:
    return InMemoryRevocationStore()


@pytest.fixture()
def revoking_coordinator(directory, profiles, codec, clock, revocations):
    """Coordinator with the opt-in revocation watermark enabled."""
    return AccountLifecycleCoordinator(
        directory=directory,
        profiles=profiles,
        codec=codec,
        revocations=revocations,
        clock=clock,
    )


# ------------------------------ Flask app --------------------------------- #


@pytest.fixture()
def app():
    """Create a Flask application configured for testing."""
    # Ensure env-based config does not leak into tests
    os.environ.pop("DATABASE_URL", None)
    app = create_app(TestingConfig)
    app.logger.setLevel("WARNING")
    yield app
    with app.app_context():
        _db.session.remove()
        _db.drop_all()


@pytest.fixture()
def client(app):
    return app.test_client()


@pytest.fixture()
def app_ctx(app):
    with app.app_context():
        yield app


@pytest.fixture()
def app_directory(app) -> InMemoryIdentityDirectory:
    """The in-memory directory wired into ``app``."""
    with app.app_context():
        return get_coordinator().directory


@pytest.fixture(scope="session")
def faker():
    """Provide a :class:`faker.Faker` instance seeded for deterministic tests."""
    from faker import Faker

    fk = Faker()
    Faker.seed(1337)
    return fk


# ------------------------------ Factories --------------------------------- #


class ProfileFactory(factory.alchemy.SQLAlchemyModelFactory):
    """Build persisted :class:`Profile` rows on the Flask-scoped session."""

    class Meta:
        model = Profile
        sqlalchemy_session_factory = lambda: _db.session  # noqa: E731
        sqlalchemy_session_persistence = "commit"

    identity_id = factory.Faker("uuid4")
    email = factory.Sequence(lambda n: f"user{n}@example.com")
    full_name = factory.Faker("name")
    role = "applicant"
    email_verified = True
    phone_number = None


@pytest.fixture()
def profile_factory(app_ctx):
    return ProfileFactory
