# tests/unit/services/test_account_coordinator.py
from __future__ import annotations

import logging
import threading

import pytest

from account_hub.services._shared.errors import (
    EMAIL_TAKEN,
    INVALID_CREDENTIALS,
    INVALID_TOKEN,
    PROFILE_CREATION_FAILED,
    PROFILE_MISSING,
    USER_MISSING,
    ConflictError,
    InternalError,
    InvalidRequestError,
    NotFoundError,
    UnauthorizedError,
)
from account_hub.services._shared.ports import (
    AuthenticatedIdentity,
    DirectoryError,
    ProfileRecord,
    ProfileStoreError,
)
from account_hub.services.accounts.dto import LoginOut, RefreshOut, RegistrationOut, VerifiedUser

PASSWORD = "s3cret-passw0rd"


class WorkerTimeout(BaseException):
    """Stands in for an interruption that is not an ``Exception``."""


def _events(caplog) -> list[str]:
    return [getattr(r, "event", None) for r in caplog.records]


def _register(coordinator, email="ada@example.com", role="applicant") -> RegistrationOut:
    return coordinator.register(email, PASSWORD, "Ada Lovelace", role)


# ------------------------------ Registration ------------------------------ #


def test_register_creates_identity_profile_and_tokens(coordinator, directory, profiles, codec):
    result = _register(coordinator)

    assert isinstance(result, RegistrationOut)
    assert result.user.email == "ada@example.com"
    assert result.user.role == "applicant"
    assert result.user.email_verified is True

    identity = directory.get_by_email("ada@example.com")
    assert identity is not None
    assert identity.identity_id == result.user.identity_id
    assert identity.email_confirmed_at is not None
    assert identity.metadata == {"full_name": "Ada Lovelace", "role": "applicant"}

    profile = profiles.find_by_id(result.user.identity_id)
    assert profile is not None
    assert profile.email_verified is True
    assert profile.full_name == "Ada Lovelace"

    access = codec.verify_access(result.tokens.access_token)
    refresh = codec.verify_refresh(result.tokens.refresh_token)
    assert access.identity_id == refresh.identity_id == result.user.identity_id
    assert access.role == "applicant"


def test_register_normalizes_email(coordinator, directory, profiles):
    result = coordinator.register("  Ada@Example.COM ", PASSWORD, "Ada Lovelace")

    assert result.user.email == "ada@example.com"
    assert directory.get_by_email("ada@example.com") is not None
    assert profiles.find_by_email("ada@example.com") is not None


def test_register_accepts_configured_role(coordinator, codec):
    result = _register(coordinator, role="reviewer")

    assert result.user.role == "reviewer"
    assert codec.verify_access(result.tokens.access_token).role == "reviewer"


def test_register_rejects_unknown_role_before_any_write(coordinator, directory, profiles):
    with pytest.raises(InvalidRequestError):
        _register(coordinator, role="superuser")

    assert directory.get_by_email("ada@example.com") is None
    assert len(profiles) == 0


def test_register_conflict_from_profile_precheck(coordinator, directory, profiles):
    profiles.upsert(
        ProfileRecord(identity_id="existing", email="ada@example.com", full_name="X", role="applicant")
    )

    with pytest.raises(ConflictError) as exc:
        _register(coordinator)

    assert exc.value.reason == EMAIL_TAKEN
    assert directory.get_by_email("ada@example.com") is None


def test_register_conflict_from_directory_duplicate(coordinator, directory, profiles):
    # Identity exists without a profile, so the advisory pre-check passes.
    directory.create_user("ada@example.com", PASSWORD, confirmed=True)

    with pytest.raises(ConflictError) as exc:
        _register(coordinator)

    assert exc.value.reason == EMAIL_TAKEN
    assert len(profiles) == 0


def test_register_conflict_has_same_shape_on_both_paths(coordinator, directory, profiles):
    _register(coordinator)
    with pytest.raises(ConflictError) as first:
        _register(coordinator)

    directory.create_user("bob@example.com", PASSWORD, confirmed=True)
    with pytest.raises(ConflictError) as second:
        _register(coordinator, email="bob@example.com")

    assert first.value.shape() == second.value.shape()


def test_register_directory_validation_error_is_invalid_request(coordinator, directory, profiles):
    directory.fail_next("create_user", DirectoryError("Password should be at least 6 characters"))

    with pytest.raises(InvalidRequestError) as exc:
        _register(coordinator)

    assert exc.value.detail == "Password should be at least 6 characters"
    assert len(profiles) == 0


def test_register_directory_returning_no_user(coordinator, directory, monkeypatch):
    monkeypatch.setattr(directory, "create_user", lambda *a, **k: None)

    with pytest.raises(InvalidRequestError) as exc:
        _register(coordinator)

    assert exc.value.detail == "User registration failed"


def test_register_unexpected_directory_error_is_internal(coordinator, directory, profiles):
    directory.fail_next("create_user", RuntimeError("socket closed"))

    with pytest.raises(InternalError) as exc:
        _register(coordinator)

    assert exc.value.detail == "Registration failed"
    assert "socket closed" not in str(exc.value)
    assert len(profiles) == 0


def test_register_precheck_store_failure_is_internal(coordinator, directory, profiles):
    profiles.fail_next("find_by_email", ProfileStoreError("connection refused"))

    with pytest.raises(InternalError):
        _register(coordinator)

    assert directory.get_by_email("ada@example.com") is None


def test_register_profile_failure_deletes_identity(coordinator, directory, profiles, caplog):
    caplog.set_level(logging.WARNING)
    profiles.fail_next("upsert", ProfileStoreError("constraint violated"))

    with pytest.raises(InternalError) as exc:
        _register(coordinator)

    assert exc.value.reason == PROFILE_CREATION_FAILED
    assert directory.get_by_email("ada@example.com") is None
    assert len(directory.deleted) == 1
    assert len(profiles) == 0
    assert "account.registration_rolled_back" in _events(caplog)
    assert "account.dangling_identity" not in _events(caplog)


def test_register_succeeds_again_after_rolled_back_attempt(coordinator, directory, profiles):
    profiles.fail_next("upsert", ProfileStoreError("constraint violated"))
    with pytest.raises(InternalError):
        _register(coordinator)

    retried = _register(coordinator)

    assert isinstance(retried, RegistrationOut)
    identity = directory.get_by_email("ada@example.com")
    profile = profiles.find_by_email("ada@example.com")
    assert identity is not None and profile is not None
    assert identity.identity_id == profile.identity_id == retried.user.identity_id
    assert retried.user.identity_id not in directory.deleted


def test_register_failed_compensation_flags_dangling_identity(
    coordinator, directory, profiles, caplog
):
    caplog.set_level(logging.WARNING)
    profiles.fail_next("upsert", ProfileStoreError("constraint violated"))
    directory.fail_next("delete_user", RuntimeError("directory unreachable"))

    with pytest.raises(InternalError) as exc:
        _register(coordinator)

    assert exc.value.reason == PROFILE_CREATION_FAILED
    dangling = directory.get_by_email("ada@example.com")
    assert dangling is not None
    flagged = [r for r in caplog.records if getattr(r, "event", None) == "account.dangling_identity"]
    assert len(flagged) == 1
    assert flagged[0].identity_id == dangling.identity_id


def test_register_interrupted_after_identity_is_logged_and_propagates(
    coordinator, directory, profiles, caplog
):
    caplog.set_level(logging.WARNING)
    profiles.fail_next("upsert", WorkerTimeout())

    with pytest.raises(WorkerTimeout):
        _register(coordinator)

    assert directory.get_by_email("ada@example.com") is not None
    assert directory.deleted == []
    assert "account.dangling_identity" in _events(caplog)


@pytest.mark.parametrize(
    "inject",
    [
        None,
        ("directory", "create_user", DirectoryError("rejected")),
        ("directory", "create_user", RuntimeError("boom")),
        ("profiles", "upsert", ProfileStoreError("rejected")),
        ("profiles", "upsert", RuntimeError("boom")),
    ],
)
def test_register_leaves_both_stores_or_neither(coordinator, directory, profiles, inject):
    if inject is not None:
        target, operation, error = inject
        {"directory": directory, "profiles": profiles}[target].fail_next(operation, error)

    try:
        _register(coordinator)
    except (InvalidRequestError, InternalError):
        pass

    has_identity = directory.get_by_email("ada@example.com") is not None
    has_profile = profiles.find_by_email("ada@example.com") is not None
    assert has_identity == has_profile


def test_concurrent_registration_yields_exactly_one_account(coordinator, directory):
    barrier = threading.Barrier(2)
    outcomes: list[object] = []
    lock = threading.Lock()

    def attempt() -> None:
        barrier.wait()
        try:
            result: object = _register(coordinator)
        except ConflictError as exc:
            result = exc
        with lock:
            outcomes.append(result)

    threads = [threading.Thread(target=attempt) for _ in range(2)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert sum(isinstance(o, RegistrationOut) for o in outcomes) == 1
    assert sum(isinstance(o, ConflictError) for o in outcomes) == 1


# --------------------------------- Login ---------------------------------- #


def test_login_issues_tokens_from_directory_and_profile(coordinator, codec):
    registered = _register(coordinator)

    result = coordinator.login("ada@example.com", PASSWORD)

    assert isinstance(result, LoginOut)
    assert result.user.identity_id == registered.user.identity_id
    assert result.user.full_name == "Ada Lovelace"
    assert result.user.email_verified is True
    claims = codec.verify_access(result.tokens.access_token)
    assert claims.email == "ada@example.com"
    assert claims.role == "applicant"


def test_login_normalizes_email(coordinator):
    _register(coordinator)

    assert coordinator.login(" ADA@example.com", PASSWORD).user.email == "ada@example.com"


def test_login_wrong_password_and_unknown_email_are_indistinguishable(coordinator):
    _register(coordinator)

    with pytest.raises(UnauthorizedError) as wrong_password:
        coordinator.login("ada@example.com", "not-the-password")
    with pytest.raises(UnauthorizedError) as unknown_email:
        coordinator.login("nobody@example.com", PASSWORD)

    assert wrong_password.value.reason == INVALID_CREDENTIALS
    assert wrong_password.value.shape() == unknown_email.value.shape()


def test_login_unconfirmed_email_is_unauthorized(coordinator, directory, profiles):
    user = directory.create_user("eve@example.com", PASSWORD, confirmed=False)
    profiles.upsert(
        ProfileRecord(identity_id=user.identity_id, email=user.email, full_name="Eve", role="applicant")
    )

    with pytest.raises(UnauthorizedError) as exc:
        coordinator.login("eve@example.com", PASSWORD)

    assert exc.value.reason == INVALID_CREDENTIALS


def test_login_without_directory_session_is_unauthorized(coordinator, directory, monkeypatch):
    registered = _register(coordinator)
    monkeypatch.setattr(
        directory,
        "authenticate",
        lambda email, password: AuthenticatedIdentity(
            identity_id=registered.user.identity_id,
            email=email,
            email_confirmed_at=None,
            session_token=None,
        ),
    )

    with pytest.raises(UnauthorizedError):
        coordinator.login("ada@example.com", PASSWORD)


def test_login_without_profile_reports_desync(coordinator, directory, caplog):
    caplog.set_level(logging.WARNING)
    directory.create_user("ghost@example.com", PASSWORD, confirmed=True)

    with pytest.raises(NotFoundError) as exc:
        coordinator.login("ghost@example.com", PASSWORD)

    assert exc.value.reason == PROFILE_MISSING
    assert "account.profile_desync" in _events(caplog)


def test_login_profile_store_outage_is_internal(coordinator, profiles):
    _register(coordinator)
    profiles.fail_next("find_by_id", ProfileStoreError("timeout"))

    with pytest.raises(InternalError) as exc:
        coordinator.login("ada@example.com", PASSWORD)

    assert exc.value.detail == "Login failed"


# -------------------------------- Refresh --------------------------------- #


def test_refresh_issues_access_token_for_current_profile(coordinator, codec, clock):
    registered = _register(coordinator)
    clock.advance(minutes=20)

    result = coordinator.refresh_token(registered.tokens.refresh_token)

    assert isinstance(result, RefreshOut)
    assert result.user.identity_id == registered.user.identity_id
    claims = codec.verify_access(result.access_token)
    assert claims.identity_id == registered.user.identity_id
    assert claims.issued_at == clock.now


def test_refresh_does_not_rotate_refresh_token(coordinator):
    registered = _register(coordinator)

    coordinator.refresh_token(registered.tokens.refresh_token)
    again = coordinator.refresh_token(registered.tokens.refresh_token)

    assert again.access_token


def test_refresh_applies_role_changes(coordinator, profiles, codec):
    registered = _register(coordinator)
    profiles.update(registered.user.identity_id, {"role": "reviewer"})

    result = coordinator.refresh_token(registered.tokens.refresh_token)

    assert result.user.role == "reviewer"
    assert codec.verify_access(result.access_token).role == "reviewer"
    relogged = coordinator.login("ada@example.com", PASSWORD)
    assert codec.verify_access(relogged.tokens.access_token).role == "reviewer"


def test_refresh_expiry_boundary(coordinator, clock):
    registered = _register(coordinator)

    clock.advance(days=7, seconds=-1)
    assert coordinator.refresh_token(registered.tokens.refresh_token).access_token

    clock.advance(seconds=1)
    with pytest.raises(UnauthorizedError) as exc:
        coordinator.refresh_token(registered.tokens.refresh_token)
    assert exc.value.reason == INVALID_TOKEN


@pytest.mark.parametrize("token", ["", "not-a-jwt", "a.b.c"])
def test_refresh_rejects_malformed_tokens(coordinator, token):
    with pytest.raises(UnauthorizedError) as exc:
        coordinator.refresh_token(token)

    assert exc.value.reason == INVALID_TOKEN


def test_refresh_rejects_access_token(coordinator):
    registered = _register(coordinator)

    with pytest.raises(UnauthorizedError):
        coordinator.refresh_token(registered.tokens.access_token)


def test_refresh_for_deleted_profile_is_user_missing(coordinator, profiles):
    registered = _register(coordinator)
    profiles.delete(registered.user.identity_id)

    with pytest.raises(NotFoundError) as exc:
        coordinator.refresh_token(registered.tokens.refresh_token)

    assert exc.value.reason == USER_MISSING


# --------------------------------- Logout --------------------------------- #


def test_logout_invalidates_directory_sessions(coordinator, directory):
    registered = _register(coordinator)

    assert coordinator.logout(registered.user.identity_id) is True
    assert directory.invalidated == [registered.user.identity_id]


def test_logout_swallows_directory_failures(coordinator, directory, caplog):
    caplog.set_level(logging.WARNING)
    directory.fail_next("invalidate_sessions", DirectoryError("directory down"))

    assert coordinator.logout("some-id") is True
    assert "account.logout_incomplete" in _events(caplog)


def test_logout_keeps_tokens_valid_without_revocation_store(coordinator):
    registered = _register(coordinator)

    coordinator.logout(registered.user.identity_id)

    assert coordinator.refresh_token(registered.tokens.refresh_token).access_token


def test_logout_with_revocation_store_rejects_earlier_refresh_tokens(
    revoking_coordinator, clock
):
    registered = _register(revoking_coordinator)

    revoking_coordinator.logout(registered.user.identity_id)

    with pytest.raises(UnauthorizedError) as exc:
        revoking_coordinator.refresh_token(registered.tokens.refresh_token)
    assert exc.value.reason == INVALID_TOKEN

    clock.advance(seconds=1)
    fresh = revoking_coordinator.login("ada@example.com", PASSWORD)
    assert revoking_coordinator.refresh_token(fresh.tokens.refresh_token).access_token


def test_login_in_same_second_as_logout_gets_usable_refresh_token(
    revoking_coordinator, clock
):
    registered = _register(revoking_coordinator)
    clock.advance(milliseconds=200)
    revoking_coordinator.logout(registered.user.identity_id)
    clock.advance(milliseconds=300)

    fresh = revoking_coordinator.login("ada@example.com", PASSWORD)

    assert revoking_coordinator.refresh_token(fresh.tokens.refresh_token).access_token
    with pytest.raises(UnauthorizedError):
        revoking_coordinator.refresh_token(registered.tokens.refresh_token)


def test_logout_swallows_revocation_store_failures(revoking_coordinator, revocations, monkeypatch):
    def broken(*args, **kwargs):
        raise ConnectionError("redis down")

    monkeypatch.setattr(revocations, "revoke_all_for_identity", broken)

    assert revoking_coordinator.logout("some-id") is True


# ----------------------------- Password reset ----------------------------- #


def test_request_password_reset_uses_configured_redirect(coordinator, directory):
    _register(coordinator)

    assert coordinator.request_password_reset("Ada@Example.com") is True
    assert directory.reset_requests == [
        ("ada@example.com", "http://frontend.test/reset-password")
    ]


def test_request_password_reset_directory_error_is_invalid_request(coordinator, directory):
    directory.fail_next("request_reset", DirectoryError("For security purposes, wait 60 seconds"))

    with pytest.raises(InvalidRequestError) as exc:
        coordinator.request_password_reset("ada@example.com")

    assert exc.value.detail == "For security purposes, wait 60 seconds"


def test_request_password_reset_unexpected_error_is_internal(coordinator, directory):
    directory.fail_next("request_reset", RuntimeError("smtp relay down"))

    with pytest.raises(InternalError) as exc:
        coordinator.request_password_reset("ada@example.com")

    assert exc.value.detail == "Password reset request failed"


def test_reset_password_with_recovery_token(coordinator, directory):
    _register(coordinator)
    coordinator.request_password_reset("ada@example.com")
    token = directory.recovery_token_for("ada@example.com")

    assert coordinator.reset_password("brand-new-passw0rd", token) is True

    assert coordinator.login("ada@example.com", "brand-new-passw0rd").user.email == "ada@example.com"
    with pytest.raises(UnauthorizedError):
        coordinator.login("ada@example.com", PASSWORD)


def test_reset_password_without_recovery_session_is_invalid_request(coordinator):
    with pytest.raises(InvalidRequestError) as exc:
        coordinator.reset_password("brand-new-passw0rd")

    assert exc.value.detail == "Auth session missing!"


# -------------------------------- Profile --------------------------------- #


def test_get_user_profile_returns_full_view(coordinator):
    registered = _register(coordinator)

    view = coordinator.get_user_profile(registered.user.identity_id)

    assert view.email == "ada@example.com"
    assert view.email_verified is True
    assert view.phone_number is None
    assert view.created_at is not None
    assert view.updated_at is not None


def test_get_user_profile_missing(coordinator):
    with pytest.raises(NotFoundError) as exc:
        coordinator.get_user_profile("missing")

    assert exc.value.reason == PROFILE_MISSING


def test_update_user_profile_applies_whitelisted_fields(coordinator, clock):
    registered = _register(coordinator)
    created = clock.now
    clock.advance(minutes=5)

    updated = coordinator.update_user_profile(
        registered.user.identity_id, {"full_name": "Ada King", "phone_number": "+44 20 7946 0000"}
    )

    assert updated.full_name == "Ada King"
    assert updated.phone_number == "+44 20 7946 0000"
    assert updated.email == "ada@example.com"
    assert updated.created_at == created
    assert updated.updated_at == clock.now


def test_update_user_profile_role_must_be_allowed(coordinator):
    registered = _register(coordinator)

    assert coordinator.update_user_profile(registered.user.identity_id, {"role": "admin"}).role == "admin"
    with pytest.raises(InvalidRequestError):
        coordinator.update_user_profile(registered.user.identity_id, {"role": "root"})


@pytest.mark.parametrize(
    "fields",
    [{}, {"email": "other@example.com"}, {"email_verified": False}, {"full_name": "  "}],
)
def test_update_user_profile_rejects_invalid_updates(coordinator, fields):
    registered = _register(coordinator)

    with pytest.raises(InvalidRequestError):
        coordinator.update_user_profile(registered.user.identity_id, fields)


def test_update_user_profile_missing(coordinator):
    with pytest.raises(NotFoundError) as exc:
        coordinator.update_user_profile("missing", {"full_name": "Nobody"})

    assert exc.value.reason == PROFILE_MISSING


def test_update_user_profile_store_rejection(coordinator, profiles):
    registered = _register(coordinator)
    profiles.fail_next("update", ProfileStoreError("value too long"))

    with pytest.raises(InvalidRequestError) as exc:
        coordinator.update_user_profile(registered.user.identity_id, {"full_name": "Ada"})

    assert exc.value.detail == "Profile update failed"


def test_verify_user_by_id(coordinator):
    registered = _register(coordinator)

    verified = coordinator.verify_user_by_id(registered.user.identity_id)

    assert verified == VerifiedUser(
        identity_id=registered.user.identity_id,
        email="ada@example.com",
        role="applicant",
        full_name="Ada Lovelace",
    )


def test_verify_user_by_id_missing(coordinator):
    with pytest.raises(NotFoundError) as exc:
        coordinator.verify_user_by_id("missing")

    assert exc.value.reason == USER_MISSING
