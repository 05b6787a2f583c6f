"""Profile model: application attributes keyed by the directory identity id."""

from __future__ import annotations

from sqlalchemy import Boolean, String, false
from sqlalchemy.orm import Mapped, mapped_column, validates

from account_hub.core.extensions import db

from .base import ReprMixin, TimestampMixin


class Profile(ReprMixin, TimestampMixin, db.Model):
    """
    Application-level account attributes.

    The primary key is the identity id assigned by the identity directory;
    there is no surrogate key, so a profile can only exist for an identity.

    Fields
    ------
    identity_id : str
        Directory-assigned id (opaque string, immutable).
    email : str
        Denormalized copy of the identity email. Stored normalized.
    full_name : str
        Display name.
    role : str
        Application role; ``applicant`` unless another allowed role was given.
    email_verified : bool
        Verification flag mirrored from the directory.
    phone_number : str | None
        Optional contact number.
    """

    __tablename__ = "profiles"
    __repr_key__ = "identity_id"

    identity_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    email: Mapped[str] = mapped_column(String(254), nullable=False, unique=True, index=True)
    full_name: Mapped[str] = mapped_column(String(200), nullable=False)
    role: Mapped[str] = mapped_column(String(32), nullable=False, default="applicant")
    email_verified: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default=false()
    )
    phone_number: Mapped[str | None] = mapped_column(String(32), nullable=True)

    @validates("email")
    def _normalize_email(self, key: str, value: str) -> str:
        """
        Normalize the email before it reaches the unique index.

        :raises ValueError: If the email is empty.
        """
        if not value or not isinstance(value, str):
            raise ValueError("Email is required.")
        return value.strip().lower()
