# account_hub/infra/jwt/jwt_credential_codec.py
from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from typing import Any, cast
from uuid import uuid4

import jwt

from account_hub.services._shared.ports import (
    CredentialCodec,
    InvalidTokenError,
    SessionClaims,
    TokenPair,
)

ALGORITHM = "HS256"
EPOCH = datetime(1970, 1, 1, tzinfo=UTC)
ONE_MS = timedelta(milliseconds=1)
ACCESS = "access"
REFRESH = "refresh"

# Claims are checked against the injected clock, not PyJWT's wall clock.
_DECODE_OPTIONS = {
    "verify_exp": False,
    "verify_iat": False,
    "verify_nbf": False,
    "require": ["sub", "type", "iat", "exp"],
}


def _utc_now() -> datetime:
    return datetime.now(UTC)


@dataclass(slots=True)
class JWTCredentialCodec(CredentialCodec):
    """
    HS256 session tokens signed with PyJWT.

    Access and refresh tokens use separate secrets and lifetimes, so rotating
    one secret invalidates only that class of token. The claim layout
    (``sub``, ``type``, ``jti``, ``fresh``, ``iat``, ``nbf``, ``exp``) matches
    Flask-JWT-Extended, so access tokens pass ``verify_jwt_in_request`` when
    ``JWT_SECRET_KEY`` equals ``access_secret``. The extra ``iat_ms`` claim
    carries the issue time in milliseconds; it is what
    :attr:`SessionClaims.issued_at` reports, so revocation watermarks can tell
    a logout from a login a few hundred milliseconds later.

    :param access_secret: Signing key for access tokens.
    :param refresh_secret: Signing key for refresh tokens.
    :param access_ttl: Access token lifetime.
    :param refresh_ttl: Refresh token lifetime.
    :param clock: Source of "now" used for issuance and expiry checks.
    """

    access_secret: str
    refresh_secret: str
    access_ttl: timedelta = timedelta(minutes=15)
    refresh_ttl: timedelta = timedelta(days=30)
    clock: Callable[[], datetime] = field(default=_utc_now)

    def __post_init__(self) -> None:
        if not self.access_secret or not self.refresh_secret:
            raise ValueError("Both access and refresh secrets must be configured.")
        if self.access_ttl <= timedelta(0) or self.refresh_ttl <= timedelta(0):
            raise ValueError("Token lifetimes must be positive.")

    @classmethod
    def from_config(
        cls, config: Mapping[str, Any], *, clock: Callable[[], datetime] | None = None
    ) -> JWTCredentialCodec:
        """Build the codec from Flask config keys (``JWT_*``)."""
        return cls(
            access_secret=config["JWT_SECRET_KEY"],
            refresh_secret=config["JWT_REFRESH_SECRET_KEY"],
            access_ttl=config["JWT_ACCESS_TOKEN_EXPIRES"],
            refresh_ttl=config["JWT_REFRESH_TOKEN_EXPIRES"],
            clock=clock or _utc_now,
        )

    # -------------------- helpers --------------------

    def _secret(self, token_type: str) -> str:
        return self.access_secret if token_type == ACCESS else self.refresh_secret

    def _encode(self, claims: SessionClaims, token_type: str) -> str:
        issued_ms = (self.clock() - EPOCH) // ONE_MS
        now = issued_ms // 1000
        ttl = self.access_ttl if token_type == ACCESS else self.refresh_ttl
        payload: dict[str, Any] = {
            "sub": claims.identity_id,
            "email": claims.email,
            "role": claims.role,
            "type": token_type,
            "jti": str(uuid4()),
            "iat": now,
            "iat_ms": issued_ms,
            "nbf": now,
            "exp": now + int(ttl.total_seconds()),
        }
        if token_type == ACCESS:
            payload["fresh"] = False
        return jwt.encode(payload, self._secret(token_type), algorithm=ALGORITHM)

    def _decode(self, token: str, token_type: str) -> SessionClaims:
        try:
            payload = cast(
                dict[str, Any],
                jwt.decode(
                    token,
                    self._secret(token_type),
                    algorithms=[ALGORITHM],
                    options=_DECODE_OPTIONS,
                ),
            )
        except jwt.PyJWTError as exc:
            raise InvalidTokenError(str(exc)) from exc

        if payload.get("type") != token_type:
            raise InvalidTokenError(f"Expected a {token_type} token.")

        try:
            iat = int(payload["iat"])
            exp = int(payload["exp"])
            nbf = int(payload.get("nbf", iat))
            issued_ms = int(payload.get("iat_ms", iat * 1000))
        except (TypeError, ValueError) as exc:
            raise InvalidTokenError("Malformed timestamp claims.") from exc
        if issued_ms // 1000 != iat:
            raise InvalidTokenError("Malformed timestamp claims.")

        now = self.clock().timestamp()
        if now >= exp:
            raise InvalidTokenError("Token has expired.")
        if now < nbf:
            raise InvalidTokenError("Token is not yet valid.")

        sub, email, role = payload.get("sub"), payload.get("email"), payload.get("role")
        if not isinstance(sub, str) or not isinstance(email, str) or not isinstance(role, str):
            raise InvalidTokenError("Token is missing identity claims.")

        return SessionClaims(
            identity_id=sub,
            email=email,
            role=role,
            issued_at=EPOCH + issued_ms * ONE_MS,
            expires_at=datetime.fromtimestamp(exp, tz=UTC),
        )

    # -------------------- API ------------------------

    def issue_pair(self, claims: SessionClaims) -> TokenPair:
        return TokenPair(
            access_token=self._encode(claims, ACCESS),
            refresh_token=self._encode(claims, REFRESH),
        )

    def issue_access(self, claims: SessionClaims) -> str:
        return self._encode(claims, ACCESS)

    def verify_refresh(self, token: str) -> SessionClaims:
        return self._decode(token, REFRESH)

    def verify_access(self, token: str) -> SessionClaims:
        return self._decode(token, ACCESS)
