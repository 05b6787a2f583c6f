"""
DTOs for AccountLifecycleCoordinator.

Outputs are public-safe views built from the combined directory and profile
state. Credentials and directory sessions never appear in them.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from account_hub.services._shared.ports import ProfileRecord, TokenPair

# --------------------------------------------------------------------------- #
# Views
# --------------------------------------------------------------------------- #


@dataclass(frozen=True, slots=True)
class UserView:
    """
    Public view of an account.

    :param identity_id: Directory-assigned id.
    :type identity_id: str
    :param email: Account email.
    :type email: str
    :param full_name: Display name.
    :type full_name: str
    :param role: Application role.
    :type role: str
    :param email_verified: Verification flag; ``None`` when not part of the view.
    :type email_verified: bool | None
    :param phone_number: Optional phone number.
    :type phone_number: str | None
    :param created_at: Profile creation time, when loaded from the store.
    :type created_at: datetime | None
    :param updated_at: Last profile update, when loaded from the store.
    :type updated_at: datetime | None
    """

    identity_id: str
    email: str
    full_name: str
    role: str
    email_verified: bool | None = None
    phone_number: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @classmethod
    def from_record(cls, record: ProfileRecord) -> UserView:
        return cls(
            identity_id=record.identity_id,
            email=record.email,
            full_name=record.full_name,
            role=record.role,
            email_verified=record.email_verified,
            phone_number=record.phone_number,
            created_at=record.created_at,
            updated_at=record.updated_at,
        )


@dataclass(frozen=True, slots=True)
class VerifiedUser:
    """Minimal identity view used by request authentication."""

    identity_id: str
    email: str
    role: str
    full_name: str


# --------------------------------------------------------------------------- #
# Operation results
# --------------------------------------------------------------------------- #


@dataclass(frozen=True, slots=True)
class RegistrationOut:
    """Result of a successful registration: the new account and its tokens."""

    user: UserView
    tokens: TokenPair


@dataclass(frozen=True, slots=True)
class LoginOut:
    """Result of a successful login."""

    user: UserView
    tokens: TokenPair


@dataclass(frozen=True, slots=True)
class RefreshOut:
    """
    Result of a refresh.

    :param access_token: New access token; the refresh token is not rotated.
    :param user: Current profile state the token was issued from.
    """

    access_token: str
    user: UserView
