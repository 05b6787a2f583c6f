"""Convenience exports for application schemas."""

from __future__ import annotations

from .auth import (
    ForgotPasswordSchema,
    LoginSchema,
    RefreshSchema,
    RegisterSchema,
    ResetPasswordSchema,
    TokenPairSchema,
)
from .profile import ProfileUpdateSchema, UserSchema, VerifiedUserSchema

__all__ = [
    "RegisterSchema",
    "LoginSchema",
    "RefreshSchema",
    "ForgotPasswordSchema",
    "ResetPasswordSchema",
    "TokenPairSchema",
    "ProfileUpdateSchema",
    "UserSchema",
    "VerifiedUserSchema",
]
