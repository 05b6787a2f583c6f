"""Authentication-related Marshmallow schemas."""

from __future__ import annotations

from flask import current_app
from marshmallow import Schema, ValidationError, fields, validate, validates


class RegisterSchema(Schema):
    """Input payload for account registration.

    ``role`` is limited to ``SELF_REGISTRATION_ROLES``; other allowed roles
    are granted out of band through the coordinator.
    """

    email = fields.Email(required=True, validate=validate.Length(max=254))
    password = fields.String(required=True, validate=validate.Length(min=8, max=128))
    full_name = fields.String(required=True, validate=validate.Length(min=1, max=200))
    role = fields.String(load_default="applicant", validate=validate.Length(min=1, max=32))

    @validates("role")
    def _validate_role(self, value: str, **kwargs) -> None:
        roles = current_app.config.get("SELF_REGISTRATION_ROLES") or ("applicant",)
        if value not in roles:
            raise ValidationError(f"Must be one of: {', '.join(roles)}.")


class LoginSchema(Schema):
    """Input payload for authenticating a user."""

    email = fields.Email(required=True, validate=validate.Length(max=254))
    password = fields.String(required=True, validate=validate.Length(min=1, max=128))


class RefreshSchema(Schema):
    """Input payload carrying a refresh token."""

    refresh_token = fields.String(required=True, validate=validate.Length(min=1))


class ForgotPasswordSchema(Schema):
    """Input payload for starting a password reset."""

    email = fields.Email(required=True, validate=validate.Length(max=254))


class ResetPasswordSchema(Schema):
    """Input payload for completing a password reset."""

    password = fields.String(required=True, validate=validate.Length(min=8, max=128))
    recovery_token = fields.String(load_default=None)


class TokenPairSchema(Schema):
    """Response payload containing an access/refresh token pair."""

    access_token = fields.String(required=True)
    refresh_token = fields.String(required=True)
    token_type = fields.Constant("bearer")
