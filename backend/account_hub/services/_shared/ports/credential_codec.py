from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Protocol


class InvalidTokenError(Exception):
    """Raised when a token is malformed, wrongly signed, of the wrong type, or expired."""


@dataclass(frozen=True, slots=True)
class SessionClaims:
    """
    Claim set carried by session tokens.

    :ivar identity_id: Directory-assigned primary key of the identity.
    :ivar email: Account email at issuance.
    :ivar role: Profile role at issuance.
    :ivar issued_at: Issue time (``None`` on claims that were never issued).
    :ivar expires_at: Expiry time (``None`` on claims that were never issued).
    """

    identity_id: str
    email: str
    role: str
    issued_at: datetime | None = None
    expires_at: datetime | None = None


@dataclass(frozen=True, slots=True)
class TokenPair:
    """Access/refresh token pair returned to clients."""

    access_token: str
    refresh_token: str


class CredentialCodec(Protocol):
    """
    Port for signing and verifying session tokens.

    Implementations are pure: output depends only on the claims, the signing
    secrets/lifetimes they were configured with, and the current time.
    """

    def issue_pair(self, claims: SessionClaims) -> TokenPair: ...

    def issue_access(self, claims: SessionClaims) -> str: ...

    def verify_refresh(self, token: str) -> SessionClaims: ...

    def verify_access(self, token: str) -> SessionClaims: ...
