"""
account_hub.services._shared.ports
==================================

Collection of *ports* (hexagonal interfaces) that define the contracts for
the collaborators the account coordinator drives.

These ports decouple the service layer from the concrete identity directory,
profile database, token format and revocation backend, so every collaborator
can be replaced by an in-memory double in tests.

Modules
-------
- :mod:`credential_codec`:
    Defines :class:`~.CredentialCodec` with :class:`~.SessionClaims` and
    :class:`~.TokenPair`: signing and verification of session tokens.

- :mod:`identity_directory`:
    Defines :class:`~.IdentityDirectory`: credentials, authentication and
    password reset, plus :class:`~.InMemoryIdentityDirectory`.

- :mod:`profile_store`:
    Defines :class:`~.ProfileStore` and :class:`~.ProfileRecord`, plus
    :class:`~.InMemoryProfileStore`.

- :mod:`revocation_store`:
    Defines :class:`~.RevocationStore`: opt-in per-identity revocation
    watermark, plus :class:`~.InMemoryRevocationStore`.

Design Notes
------------
Concrete adapters (HTTP, SQLAlchemy, Redis, PyJWT) implement these
interfaces under ``account_hub.infra``.
"""

from __future__ import annotations

from .credential_codec import CredentialCodec, InvalidTokenError, SessionClaims, TokenPair
from .identity_directory import (
    AuthenticatedIdentity,
    DirectoryError,
    DirectoryUser,
    IdentityDirectory,
    InMemoryIdentityDirectory,
)
from .profile_store import (
    UPDATABLE_FIELDS,
    InMemoryProfileStore,
    ProfileRecord,
    ProfileStore,
    ProfileStoreError,
)
from .revocation_store import InMemoryRevocationStore, RevocationStore

__all__ = [
    "CredentialCodec",
    "InvalidTokenError",
    "SessionClaims",
    "TokenPair",
    "IdentityDirectory",
    "DirectoryError",
    "DirectoryUser",
    "AuthenticatedIdentity",
    "InMemoryIdentityDirectory",
    "ProfileStore",
    "ProfileStoreError",
    "ProfileRecord",
    "InMemoryProfileStore",
    "UPDATABLE_FIELDS",
    "RevocationStore",
    "InMemoryRevocationStore",
]
