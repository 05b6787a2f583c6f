from __future__ import annotations

from datetime import datetime, timedelta
from typing import Protocol


class RevocationStore(Protocol):
    """
    Optional per-identity revocation watermark.

    Tokens issued at or before the watermark are rejected on refresh.
    Watermarks are kept to the millisecond, matching token issue times.
    Methods are expected to be idempotent; a later watermark replaces an
    earlier one.
    """

    def revoke_all_for_identity(self, identity_id: str, *, at: datetime, ttl: timedelta) -> None: ...

    def revoked_at(self, identity_id: str) -> datetime | None: ...


class InMemoryRevocationStore(RevocationStore):
    """Simple in-memory watermark store for unit tests."""

    def __init__(self) -> None:
        self._marks: dict[str, datetime] = {}

    def revoke_all_for_identity(self, identity_id: str, *, at: datetime, ttl: timedelta) -> None:
        # TTL is not enforced here; expired watermarks are harmless for tests.
        at = at - timedelta(microseconds=at.microsecond % 1000)
        current = self._marks.get(identity_id)
        if current is None or at > current:
            self._marks[identity_id] = at

    def revoked_at(self, identity_id: str) -> datetime | None:
        return self._marks.get(identity_id)
