from __future__ import annotations

import threading
from collections.abc import Callable, Mapping
from dataclasses import dataclass, replace
from datetime import UTC, datetime
from typing import Any, Protocol

#: Profile attributes that ``ProfileStore.update`` may change.
UPDATABLE_FIELDS = frozenset({"full_name", "phone_number", "role", "email_verified"})


class ProfileStoreError(Exception):
    """Failure reported by the profile store (constraint violation, unavailable backend)."""


@dataclass(frozen=True, slots=True)
class ProfileRecord:
    """
    Application-level attributes of an account, keyed by the identity id.

    :ivar identity_id: Primary key shared with the identity directory (1:1).
    :ivar email: Denormalized copy of the identity email.
    :ivar full_name: Display name.
    :ivar role: Application role (``"applicant"`` by default).
    :ivar email_verified: Verification flag mirrored from the directory.
    :ivar phone_number: Optional phone number.
    :ivar created_at: Row creation time (store-assigned).
    :ivar updated_at: Last update time (store-assigned).
    """

    identity_id: str
    email: str
    full_name: str
    role: str
    email_verified: bool = False
    phone_number: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class ProfileStore(Protocol):
    """Port for the external system of record for profile attributes."""

    def find_by_email(self, email: str) -> ProfileRecord | None: ...

    def find_by_id(self, identity_id: str) -> ProfileRecord | None: ...

    def upsert(self, record: ProfileRecord) -> ProfileRecord:
        """Insert or update using ``identity_id`` as the conflict key."""

    def update(self, identity_id: str, fields: Mapping[str, Any]) -> ProfileRecord | None:
        """Apply a partial update; ``None`` when no profile exists for the id."""


class InMemoryProfileStore(ProfileStore):
    """
    Dict-backed profile store for unit tests.

    Enforces the same uniqueness rule as the ``profiles`` table (one profile
    per email) and supports failure injection via :meth:`fail_next`.

    :param clock: Source of ``created_at``/``updated_at``; defaults to UTC now.
    """

    def __init__(self, *, clock: Callable[[], datetime] | None = None) -> None:
        self._rows: dict[str, ProfileRecord] = {}
        self._failures: dict[str, list[BaseException]] = {}
        self._lock = threading.Lock()
        self._clock = clock or (lambda: datetime.now(UTC))

    def fail_next(self, operation: str, error: BaseException) -> None:
        """Make the next call to ``operation`` raise ``error``."""
        with self._lock:
            self._failures.setdefault(operation, []).append(error)

    def _maybe_fail(self, operation: str) -> None:
        queue = self._failures.get(operation)
        if queue:
            raise queue.pop(0)

    def delete(self, identity_id: str) -> None:
        """Drop a row directly (simulates out-of-band account removal)."""
        with self._lock:
            self._rows.pop(identity_id, None)

    def __len__(self) -> int:
        return len(self._rows)

    def find_by_email(self, email: str) -> ProfileRecord | None:
        with self._lock:
            self._maybe_fail("find_by_email")
            return next((r for r in self._rows.values() if r.email == email), None)

    def find_by_id(self, identity_id: str) -> ProfileRecord | None:
        with self._lock:
            self._maybe_fail("find_by_id")
            return self._rows.get(identity_id)

    def upsert(self, record: ProfileRecord) -> ProfileRecord:
        with self._lock:
            self._maybe_fail("upsert")
            clash = next(
                (
                    r
                    for r in self._rows.values()
                    if r.email == record.email and r.identity_id != record.identity_id
                ),
                None,
            )
            if clash is not None:
                raise ProfileStoreError("duplicate key value violates unique constraint")
            now = self._clock()
            existing = self._rows.get(record.identity_id)
            stored = replace(
                record,
                created_at=existing.created_at if existing else now,
                updated_at=now,
            )
            self._rows[record.identity_id] = stored
            return stored

    def update(self, identity_id: str, fields: Mapping[str, Any]) -> ProfileRecord | None:
        with self._lock:
            self._maybe_fail("update")
            unknown = set(fields) - UPDATABLE_FIELDS
            if unknown:
                raise ProfileStoreError(f"Unknown or non-updatable fields: {sorted(unknown)}")
            existing = self._rows.get(identity_id)
            if existing is None:
                return None
            stored = replace(existing, **dict(fields), updated_at=self._clock())
            self._rows[identity_id] = stored
            return stored
