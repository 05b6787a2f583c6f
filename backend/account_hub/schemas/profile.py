"""Profile resource schemas."""

from __future__ import annotations

from marshmallow import RAISE, Schema, fields, validate


class ProfileUpdateSchema(Schema):
    """Partial update of the caller's own profile.

    Unknown keys are rejected so clients cannot touch fields such as
    ``email``, ``email_verified`` or ``role``.
    """

    class Meta:
        unknown = RAISE

    full_name = fields.String(validate=validate.Length(min=1, max=200))
    phone_number = fields.String(allow_none=True, validate=validate.Length(max=32))


class UserSchema(Schema):
    """Public representation of an account."""

    id = fields.String(attribute="identity_id", required=True)
    email = fields.Email(required=True)
    full_name = fields.String(required=True)
    role = fields.String(required=True)
    email_verified = fields.Boolean(allow_none=True)
    phone_number = fields.String(allow_none=True)
    created_at = fields.DateTime(allow_none=True)
    updated_at = fields.DateTime(allow_none=True)


class VerifiedUserSchema(Schema):
    """Minimal identity view of the authenticated caller."""

    id = fields.String(attribute="identity_id", required=True)
    email = fields.Email(required=True)
    role = fields.String(required=True)
    full_name = fields.String(required=True)
