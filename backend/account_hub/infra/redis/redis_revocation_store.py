from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

import redis  # type: ignore[import-untyped]

from account_hub.services._shared.ports import RevocationStore

EPOCH = datetime(1970, 1, 1, tzinfo=UTC)
ONE_MS = timedelta(milliseconds=1)


@dataclass(slots=True)
class RedisRevocationStore(RevocationStore):
    """
    Per-identity revocation watermark in Redis.

    The key holds the epoch millisecond of the latest logout (the precision of
    the ``iat_ms`` token claim) and expires together with the longest-lived
    refresh token it could affect.

    :param r: A Redis client (already connected).
    """

    r: redis.Redis

    @staticmethod
    def _k(identity_id: str) -> str:
        return f"revoke:id:{identity_id}"

    def revoke_all_for_identity(self, identity_id: str, *, at: datetime, ttl: timedelta) -> None:
        key = self._k(identity_id)
        ts_ms = (at - EPOCH) // ONE_MS
        seconds = max(1, int(ttl.total_seconds()))
        current = self.r.get(key)
        if current is not None and int(current) >= ts_ms:
            # keep the later watermark, only extend its lifetime
            self.r.expire(key, seconds)
            return
        self.r.set(key, str(ts_ms), ex=seconds)

    def revoked_at(self, identity_id: str) -> datetime | None:
        raw = self.r.get(self._k(identity_id))
        if raw is None:
            return None
        return EPOCH + int(raw) * ONE_MS
