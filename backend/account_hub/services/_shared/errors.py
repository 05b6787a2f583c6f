"""
Domain-level exceptions used within the service layer.

These exceptions are **framework-agnostic** and never import Flask, HTTP or
SQLAlchemy. They form the closed error taxonomy of the account coordinator:
collaborator-native failures are translated into one of these kinds before
they leave a service, so callers never see directory or database error shapes.

The translation to HTTP responses (RFC 7807) is handled by
``account_hub/core/errors.py``.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, ClassVar

# --------------------------------------------------------------------------- #
# Stable reason codes
# --------------------------------------------------------------------------- #

EMAIL_TAKEN = "email-taken"
INVALID_CREDENTIALS = "invalid-credentials"
INVALID_TOKEN = "invalid-token"
PROFILE_MISSING = "profile-missing"
USER_MISSING = "user-missing"
PROFILE_CREATION_FAILED = "profile-creation-failed"
INVALID_REQUEST = "invalid-request"
INTERNAL = "internal"


# --------------------------------------------------------------------------- #
# Base type
# --------------------------------------------------------------------------- #


@dataclass(slots=True, eq=False)
class ServiceError(Exception):
    """
    Base class for all service-level errors.

    :param reason: Stable, machine-consumable reason code (e.g. ``"email-taken"``).
    :type reason: str
    :param detail: Client-safe, human-readable message.
    :type detail: str

    Notes
    -----
    - These are *not* HTTP errors; ``kind`` names the taxonomy bucket and the
      API layer picks the status code from it.
    - Two errors with the same ``shape()`` are indistinguishable to callers.
    """

    reason: str
    detail: str

    kind: ClassVar[str] = "internal"

    def __str__(self) -> str:
        return self.detail

    def shape(self) -> dict[str, Any]:
        """Return the caller-visible error surface."""
        return {"kind": self.kind, "reason": self.reason, "detail": self.detail}


# --------------------------------------------------------------------------- #
# Taxonomy
# --------------------------------------------------------------------------- #


@dataclass(slots=True, eq=False)
class ConflictError(ServiceError):
    """Raised when the email is already owned by another account."""

    kind: ClassVar[str] = "conflict"

    @classmethod
    def email_taken(cls) -> ConflictError:
        return cls(EMAIL_TAKEN, "User with this email already exists")


@dataclass(slots=True, eq=False)
class UnauthorizedError(ServiceError):
    """Raised on bad credentials or an invalid/expired token."""

    kind: ClassVar[str] = "unauthorized"

    @classmethod
    def invalid_credentials(cls) -> UnauthorizedError:
        return cls(INVALID_CREDENTIALS, "Invalid email or password")

    @classmethod
    def invalid_token(cls) -> UnauthorizedError:
        return cls(INVALID_TOKEN, "Invalid or expired refresh token")


@dataclass(slots=True, eq=False)
class NotFoundError(ServiceError):
    """
    Raised when the profile side of an account is missing.

    For an authenticated identity this signals a directory/profile desync and
    is surfaced apart from authentication failures.
    """

    kind: ClassVar[str] = "not_found"

    @classmethod
    def profile_missing(cls) -> NotFoundError:
        return cls(PROFILE_MISSING, "User profile not found")

    @classmethod
    def user_missing(cls) -> NotFoundError:
        return cls(USER_MISSING, "User not found")


@dataclass(slots=True, eq=False)
class InvalidRequestError(ServiceError):
    """Raised on malformed input or a collaborator-reported validation error."""

    kind: ClassVar[str] = "invalid_request"

    @classmethod
    def from_message(cls, message: str) -> InvalidRequestError:
        return cls(INVALID_REQUEST, message)


@dataclass(slots=True, eq=False)
class InternalError(ServiceError):
    """Raised on unexpected collaborator failures, including failed compensation."""

    kind: ClassVar[str] = "internal"

    @classmethod
    def profile_creation_failed(cls) -> InternalError:
        return cls(PROFILE_CREATION_FAILED, "Profile creation failed")

    @classmethod
    def generic(cls, message: str = "Unexpected error") -> InternalError:
        return cls(INTERNAL, message)
