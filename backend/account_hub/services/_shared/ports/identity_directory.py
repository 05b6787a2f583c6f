from __future__ import annotations

import threading
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any, Protocol
from uuid import uuid4

from werkzeug.security import check_password_hash, generate_password_hash


class DirectoryError(Exception):
    """
    Failure reported by the identity directory.

    :param message: Directory-provided message (safe to show for validation errors).
    :param duplicate: ``True`` when the directory rejected an already-registered email.
    :param status: Transport status code when known.
    """

    def __init__(self, message: str, *, duplicate: bool = False, status: int | None = None):
        super().__init__(message)
        self.message = message
        self.duplicate = duplicate
        self.status = status


@dataclass(frozen=True, slots=True)
class DirectoryUser:
    """Identity record as returned by ``create_user``."""

    identity_id: str
    email: str
    email_confirmed_at: datetime | None = None
    metadata: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class AuthenticatedIdentity:
    """
    Result of a password authentication.

    :ivar session_token: Directory session; ``None`` when the directory
        authenticated the user but did not open a session.
    """

    identity_id: str
    email: str
    email_confirmed_at: datetime | None
    session_token: str | None


class IdentityDirectory(Protocol):
    """Port for the external system of record for credentials."""

    def create_user(
        self,
        email: str,
        password: str,
        *,
        confirmed: bool,
        metadata: Mapping[str, Any] | None = None,
    ) -> DirectoryUser | None:
        """Create an identity. :raises DirectoryError: duplicate or invalid input."""

    def authenticate(self, email: str, password: str) -> AuthenticatedIdentity:
        """Verify credentials. :raises DirectoryError: on any authentication failure."""

    def delete_user(self, identity_id: str) -> None:
        """Delete an identity (compensation only)."""

    def invalidate_sessions(self, identity_id: str) -> None:
        """Drop directory-side sessions of the identity."""

    def request_reset(self, email: str, *, redirect_to: str | None = None) -> None:
        """Start the directory's native password-reset flow."""

    def apply_reset(self, new_password: str, *, recovery_token: str | None = None) -> None:
        """Set a new password for the session bound to ``recovery_token``."""


@dataclass
class _Identity:
    identity_id: str
    email: str
    password_hash: str
    email_confirmed_at: datetime | None
    metadata: dict[str, Any]


class InMemoryIdentityDirectory(IdentityDirectory):
    """
    In-process identity directory used in unit tests and local runs.

    Failures can be injected per operation with :meth:`fail_next`; each
    injected error is raised once, in FIFO order.

    .. note::
       Uses a threading lock so concurrent registrations observe the same
       uniqueness constraint a real directory enforces.
    """

    def __init__(self) -> None:
        self._by_id: dict[str, _Identity] = {}
        self._by_email: dict[str, str] = {}
        self._recovery: dict[str, str] = {}
        self._failures: dict[str, list[BaseException]] = {}
        self._lock = threading.Lock()
        self.invalidated: list[str] = []
        self.reset_requests: list[tuple[str, str | None]] = []
        self.deleted: list[str] = []

    # ------------------------- helpers -------------------------

    def fail_next(self, operation: str, error: BaseException) -> None:
        """Make the next call to ``operation`` raise ``error``."""
        with self._lock:
            self._failures.setdefault(operation, []).append(error)

    def _maybe_fail(self, operation: str) -> None:
        queue = self._failures.get(operation)
        if queue:
            raise queue.pop(0)

    def exists(self, identity_id: str) -> bool:
        return identity_id in self._by_id

    def get_by_email(self, email: str) -> DirectoryUser | None:
        identity_id = self._by_email.get(email)
        if identity_id is None:
            return None
        ident = self._by_id[identity_id]
        return DirectoryUser(
            identity_id=ident.identity_id,
            email=ident.email,
            email_confirmed_at=ident.email_confirmed_at,
            metadata=dict(ident.metadata),
        )

    def recovery_token_for(self, email: str) -> str | None:
        """Return the last recovery token sent to ``email`` (stands in for the mailbox)."""
        for token, identity_id in reversed(list(self._recovery.items())):
            if self._by_id.get(identity_id) and self._by_id[identity_id].email == email:
                return token
        return None

    # -------------------------- API ----------------------------

    def create_user(
        self,
        email: str,
        password: str,
        *,
        confirmed: bool,
        metadata: Mapping[str, Any] | None = None,
    ) -> DirectoryUser | None:
        with self._lock:
            self._maybe_fail("create_user")
            if not password:
                raise DirectoryError("Password should be at least 6 characters", status=422)
            if email in self._by_email:
                raise DirectoryError(
                    "A user with this email address has already been registered",
                    duplicate=True,
                    status=422,
                )
            ident = _Identity(
                identity_id=str(uuid4()),
                email=email,
                password_hash=generate_password_hash(password),
                email_confirmed_at=datetime.now(UTC) if confirmed else None,
                metadata=dict(metadata or {}),
            )
            self._by_id[ident.identity_id] = ident
            self._by_email[email] = ident.identity_id
            return DirectoryUser(
                identity_id=ident.identity_id,
                email=ident.email,
                email_confirmed_at=ident.email_confirmed_at,
                metadata=dict(ident.metadata),
            )

    def authenticate(self, email: str, password: str) -> AuthenticatedIdentity:
        with self._lock:
            self._maybe_fail("authenticate")
            identity_id = self._by_email.get(email)
            ident = self._by_id.get(identity_id) if identity_id else None
            if ident is None or not check_password_hash(ident.password_hash, password):
                raise DirectoryError("Invalid login credentials", status=400)
            if ident.email_confirmed_at is None:
                raise DirectoryError("Email not confirmed", status=400)
            return AuthenticatedIdentity(
                identity_id=ident.identity_id,
                email=ident.email,
                email_confirmed_at=ident.email_confirmed_at,
                session_token=f"session-{uuid4().hex}",
            )

    def delete_user(self, identity_id: str) -> None:
        with self._lock:
            self._maybe_fail("delete_user")
            ident = self._by_id.pop(identity_id, None)
            if ident is not None:
                self._by_email.pop(ident.email, None)
                self.deleted.append(identity_id)

    def invalidate_sessions(self, identity_id: str) -> None:
        with self._lock:
            self._maybe_fail("invalidate_sessions")
            self.invalidated.append(identity_id)

    def request_reset(self, email: str, *, redirect_to: str | None = None) -> None:
        with self._lock:
            self._maybe_fail("request_reset")
            self.reset_requests.append((email, redirect_to))
            identity_id = self._by_email.get(email)
            # Unknown emails are acknowledged silently, like a real directory.
            if identity_id is not None:
                self._recovery[f"recovery-{uuid4().hex}"] = identity_id

    def apply_reset(self, new_password: str, *, recovery_token: str | None = None) -> None:
        with self._lock:
            self._maybe_fail("apply_reset")
            if not recovery_token or recovery_token not in self._recovery:
                raise DirectoryError("Auth session missing!", status=401)
            if not new_password:
                raise DirectoryError("Password should be at least 6 characters", status=422)
            identity_id = self._recovery.pop(recovery_token)
            self._by_id[identity_id].password_hash = generate_password_hash(new_password)
