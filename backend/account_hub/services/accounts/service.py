"""
AccountLifecycleCoordinator
===========================

Process-level service that owns every account operation spanning the
identity directory and the profile store:

- Registration writes the identity first, then the profile; a failed profile
  write deletes the identity again (see :mod:`account_hub.services._shared.saga`).
- Login and refresh issue session tokens from the combined state of both
  stores, so role changes in the profile store take effect on the next token.
- Collaborator errors never leave this module untranslated.
"""

from __future__ import annotations

import logging
from collections.abc import Collection, Mapping
from datetime import timedelta
from typing import Any

from account_hub.core.logger import log_event
from account_hub.services._shared.base import BaseService, Clock, ServiceContext
from account_hub.services._shared.errors import (
    ConflictError,
    InternalError,
    InvalidRequestError,
    NotFoundError,
    UnauthorizedError,
)
from account_hub.services._shared.ports import (
    CredentialCodec,
    DirectoryError,
    DirectoryUser,
    IdentityDirectory,
    InvalidTokenError,
    ProfileRecord,
    ProfileStore,
    ProfileStoreError,
    RevocationStore,
    SessionClaims,
)
from account_hub.services._shared.saga import Saga, SagaContext, SagaFailed, SagaStep
from account_hub.services.accounts.dto import (
    LoginOut,
    RefreshOut,
    RegistrationOut,
    UserView,
    VerifiedUser,
)

log = logging.getLogger(__name__)

DEFAULT_ROLE = "applicant"
DEFAULT_ROLES: tuple[str, ...] = ("applicant", "reviewer", "admin")

#: Keys a caller may change through :meth:`update_user_profile`.
PROFILE_UPDATE_FIELDS = frozenset({"full_name", "phone_number", "role"})


def normalize_email(email: str | None) -> str:
    return (email or "").strip().lower()


class AccountLifecycleCoordinator(BaseService):
    """
    Keeps identity records and profile records consistent and issues sessions.

    All collaborators are injected; the coordinator holds no mutable state of
    its own and is safe to share between requests.
    """

    def __init__(
        self,
        *,
        directory: IdentityDirectory,
        profiles: ProfileStore,
        codec: CredentialCodec,
        revocations: RevocationStore | None = None,
        revocation_ttl: timedelta = timedelta(days=30),
        allowed_roles: Collection[str] = DEFAULT_ROLES,
        reset_redirect_url: str | None = None,
        clock: Clock | None = None,
        ctx: ServiceContext | None = None,
    ) -> None:
        """
        Initialize the coordinator with its collaborators.

        :param directory: System of record for credentials.
        :param profiles: System of record for profile attributes.
        :param codec: Signs and verifies session tokens.
        :param revocations: Optional revocation watermark store. When ``None``
            tokens stay valid until expiry, even after logout.
        :param revocation_ttl: Lifetime of a watermark; should cover the
            refresh token lifetime.
        :param allowed_roles: Roles accepted at registration and on update.
        :param reset_redirect_url: Where the directory's reset email points to.
        :param clock: Source of "now" (watermarks only; tokens use the codec clock).
        """
        super().__init__(ctx=ctx, clock=clock)
        self.directory = directory
        self.profiles = profiles
        self.codec = codec
        self.revocations = revocations
        self.revocation_ttl = revocation_ttl
        self.allowed_roles = frozenset(allowed_roles)
        self.reset_redirect_url = reset_redirect_url

    # ------------------------------------------------------------------ #
    # Registration
    # ------------------------------------------------------------------ #

    def register(
        self, email: str, password: str, full_name: str, role: str = DEFAULT_ROLE
    ) -> RegistrationOut:
        """
        Create the identity and its profile, then issue a token pair.

        :returns: New account view (``email_verified=True``) and tokens.
        :raises ConflictError: Email already registered (profile pre-check or
            directory duplicate).
        :raises InvalidRequestError: Unknown role, or the directory rejected
            the input.
        :raises InternalError: Profile write failed; the identity was deleted
            again (or logged as dangling when that failed too).
        """
        email = normalize_email(email)
        self._check_role(role)

        with self.error_boundary(
            "register", fallback=lambda: InternalError.generic("Registration failed")
        ):
            # Advisory only; the directory duplicate signal is authoritative.
            if self.profiles.find_by_email(email) is not None:
                raise ConflictError.email_taken()

            def create_identity(_: SagaContext) -> DirectoryUser:
                try:
                    user = self.directory.create_user(
                        email,
                        password,
                        confirmed=True,
                        metadata={"full_name": full_name, "role": role},
                    )
                except DirectoryError as exc:
                    if exc.duplicate:
                        raise ConflictError.email_taken() from exc
                    raise InvalidRequestError.from_message(exc.message) from exc
                if user is None:
                    raise InvalidRequestError.from_message("User registration failed")
                return user

            def delete_identity(state: SagaContext) -> None:
                self.directory.delete_user(state["identity"].identity_id)

            def create_profile(state: SagaContext) -> ProfileRecord:
                return self.profiles.upsert(
                    ProfileRecord(
                        identity_id=state["identity"].identity_id,
                        email=email,
                        full_name=full_name,
                        role=role,
                        email_verified=True,
                    )
                )

            saga = Saga(
                "register",
                [
                    SagaStep("identity", create_identity, undo=delete_identity),
                    SagaStep("profile", create_profile),
                ],
            )
            state: SagaContext = {}
            try:
                saga.run(state)
            except SagaFailed as failed:
                self._raise_registration_failure(failed, state)
            except BaseException:
                if "identity" in state and "profile" not in state:
                    log_event(
                        log,
                        logging.CRITICAL,
                        "account.dangling_identity",
                        "Registration interrupted after the identity was created",
                        identity_id=state["identity"].identity_id,
                        step="profile",
                    )
                raise

            identity: DirectoryUser = state["identity"]
            tokens = self.codec.issue_pair(
                SessionClaims(identity_id=identity.identity_id, email=email, role=role)
            )

        log_event(
            log,
            logging.INFO,
            "account.registered",
            "Account registered",
            identity_id=identity.identity_id,
        )
        return RegistrationOut(
            user=UserView(
                identity_id=identity.identity_id,
                email=email,
                full_name=full_name,
                role=role,
                email_verified=True,
            ),
            tokens=tokens,
        )

    def _raise_registration_failure(self, failed: SagaFailed, state: SagaContext) -> None:
        if failed.step == "identity":
            # Already classified (conflict / invalid request) or unexpected.
            raise failed.cause

        identity_id = state["identity"].identity_id
        if failed.compensated:
            log_event(
                log,
                logging.WARNING,
                "account.registration_rolled_back",
                "Profile write failed; identity deleted: %s",
                failed.cause,
                identity_id=identity_id,
                step=failed.step,
            )
        else:
            log_event(
                log,
                logging.CRITICAL,
                "account.dangling_identity",
                "Profile write failed and the identity could not be deleted: %s",
                failed.compensation_errors.get("identity"),
                identity_id=identity_id,
                step=failed.step,
            )
        raise InternalError.profile_creation_failed() from failed.cause

    # ------------------------------------------------------------------ #
    # Sessions
    # ------------------------------------------------------------------ #

    def login(self, email: str, password: str) -> LoginOut:
        """
        Authenticate against the directory and issue a token pair.

        Unknown email, wrong password and unconfirmed email produce the same
        :class:`UnauthorizedError`.

        :raises UnauthorizedError: Authentication failed.
        :raises NotFoundError: Authenticated identity has no profile.
        """
        email = normalize_email(email)
        with self.error_boundary("login", fallback=lambda: InternalError.generic("Login failed")):
            try:
                auth = self.directory.authenticate(email, password)
            except DirectoryError as exc:
                log_event(
                    log, logging.INFO, "account.login_rejected", "Login rejected: %s", exc.message
                )
                raise UnauthorizedError.invalid_credentials() from exc
            if auth is None or not auth.session_token:
                raise UnauthorizedError.invalid_credentials()

            profile = self.profiles.find_by_id(auth.identity_id)
            if profile is None:
                log_event(
                    log,
                    logging.ERROR,
                    "account.profile_desync",
                    "Authenticated identity has no profile",
                    identity_id=auth.identity_id,
                )
                raise NotFoundError.profile_missing()

            tokens = self.codec.issue_pair(
                SessionClaims(identity_id=auth.identity_id, email=auth.email, role=profile.role)
            )

        return LoginOut(
            user=UserView(
                identity_id=auth.identity_id,
                email=auth.email,
                full_name=profile.full_name,
                role=profile.role,
                email_verified=auth.email_confirmed_at is not None,
            ),
            tokens=tokens,
        )

    def refresh_token(self, refresh_token: str) -> RefreshOut:
        """
        Issue a new access token from a valid refresh token.

        Claims are rebuilt from the current profile, not copied from the
        refresh token. The refresh token itself is not rotated.

        :raises UnauthorizedError: Token invalid, expired, or revoked.
        :raises NotFoundError: The profile no longer exists.
        """
        with self.error_boundary(
            "refresh_token", fallback=lambda: InternalError.generic("Token refresh failed")
        ):
            try:
                claims = self.codec.verify_refresh(refresh_token)
            except InvalidTokenError as exc:
                raise UnauthorizedError.invalid_token() from exc

            if self._is_revoked(claims):
                raise UnauthorizedError.invalid_token()

            profile = self.profiles.find_by_id(claims.identity_id)
            if profile is None:
                raise NotFoundError.user_missing()

            access = self.codec.issue_access(
                SessionClaims(
                    identity_id=profile.identity_id, email=profile.email, role=profile.role
                )
            )

        return RefreshOut(
            access_token=access,
            user=UserView(
                identity_id=profile.identity_id,
                email=profile.email,
                full_name=profile.full_name,
                role=profile.role,
            ),
        )

    def _is_revoked(self, claims: SessionClaims) -> bool:
        if self.revocations is None or claims.issued_at is None:
            return False
        watermark = self.revocations.revoked_at(claims.identity_id)
        return watermark is not None and claims.issued_at <= watermark

    def logout(self, identity_id: str) -> bool:
        """
        Best-effort session invalidation. Always returns ``True``.

        Directory and revocation failures are logged, never raised.
        """
        try:
            self.directory.invalidate_sessions(identity_id)
        except Exception:
            log_event(
                log,
                logging.WARNING,
                "account.logout_incomplete",
                "Directory session invalidation failed",
                exc_info=True,
                identity_id=identity_id,
            )

        if self.revocations is not None:
            try:
                self.revocations.revoke_all_for_identity(
                    identity_id, at=self.now_utc(), ttl=self.revocation_ttl
                )
            except Exception:
                log_event(
                    log,
                    logging.WARNING,
                    "account.revocation_failed",
                    "Could not record revocation watermark",
                    exc_info=True,
                    identity_id=identity_id,
                )
        return True

    # ------------------------------------------------------------------ #
    # Password reset
    # ------------------------------------------------------------------ #

    def request_password_reset(self, email: str) -> bool:
        """
        Ask the directory to send a reset email.

        :raises InvalidRequestError: Directory rejected the request.
        """
        email = normalize_email(email)
        with self.error_boundary(
            "request_password_reset",
            fallback=lambda: InternalError.generic("Password reset request failed"),
        ):
            try:
                self.directory.request_reset(email, redirect_to=self.reset_redirect_url)
            except DirectoryError as exc:
                raise InvalidRequestError.from_message(exc.message) from exc
        return True

    def reset_password(self, new_password: str, recovery_token: str | None = None) -> bool:
        """
        Set a new password for the recovery session bound to ``recovery_token``.

        :raises InvalidRequestError: Directory rejected the token or password.
        """
        with self.error_boundary(
            "reset_password", fallback=lambda: InternalError.generic("Password reset failed")
        ):
            try:
                self.directory.apply_reset(new_password, recovery_token=recovery_token)
            except DirectoryError as exc:
                raise InvalidRequestError.from_message(exc.message) from exc
        return True

    # ------------------------------------------------------------------ #
    # Profile
    # ------------------------------------------------------------------ #

    def get_user_profile(self, identity_id: str) -> UserView:
        """:raises NotFoundError: No profile for ``identity_id``."""
        with self.error_boundary(
            "get_user_profile",
            fallback=lambda: InternalError.generic("Failed to fetch user profile"),
            identity_id=identity_id,
        ):
            record = self.profiles.find_by_id(identity_id)
        if record is None:
            raise NotFoundError.profile_missing()
        return UserView.from_record(record)

    def update_user_profile(self, identity_id: str, fields: Mapping[str, Any]) -> UserView:
        """
        Apply a partial update restricted to :data:`PROFILE_UPDATE_FIELDS`.

        :raises InvalidRequestError: Empty update, disallowed key, unknown
            role, or the store rejected the write.
        :raises NotFoundError: No profile for ``identity_id``.
        """
        updates = dict(fields)
        if not updates:
            raise InvalidRequestError.from_message("No fields to update")
        disallowed = sorted(set(updates) - PROFILE_UPDATE_FIELDS)
        if disallowed:
            raise InvalidRequestError.from_message(
                f"Fields cannot be updated: {', '.join(disallowed)}"
            )
        if "role" in updates:
            self._check_role(updates["role"])
        if "full_name" in updates and not str(updates["full_name"] or "").strip():
            raise InvalidRequestError.from_message("Full name cannot be empty")

        with self.error_boundary(
            "update_user_profile",
            fallback=lambda: InternalError.generic("Profile update failed"),
            identity_id=identity_id,
        ):
            try:
                record = self.profiles.update(identity_id, updates)
            except ProfileStoreError as exc:
                log_event(
                    log,
                    logging.WARNING,
                    "account.profile_update_rejected",
                    "Profile store rejected update: %s",
                    exc,
                    identity_id=identity_id,
                )
                raise InvalidRequestError.from_message("Profile update failed") from exc
        if record is None:
            raise NotFoundError.profile_missing()
        return UserView.from_record(record)

    def verify_user_by_id(self, identity_id: str) -> VerifiedUser:
        """:raises NotFoundError: No profile for ``identity_id``."""
        with self.error_boundary(
            "verify_user_by_id",
            fallback=lambda: InternalError.generic("User verification failed"),
            identity_id=identity_id,
        ):
            record = self.profiles.find_by_id(identity_id)
        if record is None:
            raise NotFoundError.user_missing()
        return VerifiedUser(
            identity_id=record.identity_id,
            email=record.email,
            role=record.role,
            full_name=record.full_name,
        )

    # ------------------------------------------------------------------ #
    # Helpers
    # ------------------------------------------------------------------ #

    def _check_role(self, role: Any) -> None:
        if role not in self.allowed_roles:
            raise InvalidRequestError.from_message(f"Unsupported role: {role}")
