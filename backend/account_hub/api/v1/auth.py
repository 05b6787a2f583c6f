"""Account endpoints backed by the account lifecycle coordinator."""

from __future__ import annotations

from flask import Blueprint, g

from account_hub.api.deps import (
    coordinator,
    current_identity_id,
    json_body,
    json_response,
    require_auth,
    timing,
)
from account_hub.schemas import (
    ForgotPasswordSchema,
    LoginSchema,
    ProfileUpdateSchema,
    RefreshSchema,
    RegisterSchema,
    ResetPasswordSchema,
    TokenPairSchema,
    UserSchema,
    VerifiedUserSchema,
)
from account_hub.services.accounts.dto import VerifiedUser

bp = Blueprint("auth", __name__)

register_schema = RegisterSchema()
login_schema = LoginSchema()
refresh_schema = RefreshSchema()
forgot_schema = ForgotPasswordSchema()
reset_schema = ResetPasswordSchema()
profile_update_schema = ProfileUpdateSchema()
user_schema = UserSchema()
verified_schema = VerifiedUserSchema()
token_schema = TokenPairSchema()


def _current_user() -> VerifiedUser:
    """Resolve the caller's account, failing when the profile is gone."""

    user = coordinator().verify_user_by_id(current_identity_id())
    g.current_user = user
    return user


@bp.post("/register")
@timing
def register():
    """Create an account and return it with a token pair."""

    data = register_schema.load(json_body())
    result = coordinator().register(
        data["email"], data["password"], data["full_name"], data["role"]
    )
    body = {
        "data": {
            "user": user_schema.dump(result.user),
            "tokens": token_schema.dump(result.tokens),
        }
    }
    return json_response(body, status=201)


@bp.post("/login")
@timing
def login():
    """Authenticate credentials and issue a token pair."""

    data = login_schema.load(json_body())
    result = coordinator().login(data["email"], data["password"])
    body = {
        "data": {
            "user": user_schema.dump(result.user),
            "tokens": token_schema.dump(result.tokens),
        }
    }
    return json_response(body)


@bp.post("/refresh")
@timing
def refresh():
    """Exchange a refresh token for a new access token."""

    data = refresh_schema.load(json_body())
    result = coordinator().refresh_token(data["refresh_token"])
    body = {
        "data": {
            "access_token": result.access_token,
            "token_type": "bearer",
            "user": user_schema.dump(result.user),
        }
    }
    return json_response(body)


@bp.post("/logout")
@require_auth
@timing
def logout():
    """Drop the caller's directory sessions; always succeeds."""

    coordinator().logout(current_identity_id())
    return json_response({"data": {"logged_out": True}})


@bp.post("/password/forgot")
@timing
def forgot_password():
    """Start the directory's password-reset flow."""

    data = forgot_schema.load(json_body())
    coordinator().request_password_reset(data["email"])
    return json_response({"data": {"requested": True}}, status=202)


@bp.post("/password/reset")
@timing
def reset_password():
    """Set a new password using the recovery token from the reset email."""

    data = reset_schema.load(json_body())
    coordinator().reset_password(data["password"], data["recovery_token"])
    return json_response({"data": {"reset": True}})


@bp.get("/me")
@require_auth
@timing
def me():
    """Return the caller's full profile."""

    user = _current_user()
    profile = coordinator().get_user_profile(user.identity_id)
    return json_response({"data": user_schema.dump(profile)})


@bp.get("/verify")
@require_auth
@timing
def verify():
    """Return the minimal identity view used by other services."""

    return json_response({"data": verified_schema.dump(_current_user())})


@bp.patch("/me")
@require_auth
@timing
def update_me():
    """Apply a partial update to the caller's profile."""

    user = _current_user()
    data = profile_update_schema.load(json_body())
    profile = coordinator().update_user_profile(user.identity_id, data)
    return json_response({"data": user_schema.dump(profile)})
