# account_hub/infra/directory/http_identity_directory.py
from __future__ import annotations

import logging
from collections.abc import Mapping
from datetime import datetime
from typing import Any

import requests

from account_hub.services._shared.ports import (
    AuthenticatedIdentity,
    DirectoryError,
    DirectoryUser,
    IdentityDirectory,
)

log = logging.getLogger(__name__)

_DUPLICATE_CODES = frozenset({"email_exists", "user_already_exists"})
_DUPLICATE_MARKERS = ("already registered", "already been registered")


def _parse_ts(raw: Any) -> datetime | None:
    if not raw:
        return None
    try:
        return datetime.fromisoformat(str(raw))
    except ValueError:
        return None


class HttpIdentityDirectory(IdentityDirectory):
    """
    Identity directory client for a GoTrue-style auth server.

    Admin operations authenticate with the service key; password resets are
    applied with the recovery session token the user received by email.

    :param base_url: Directory root (``https://auth.example.com``).
    :param service_key: Privileged key sent as ``apikey`` and bearer token.
    :param timeout: Per-request timeout in seconds.
    :param session: Optional :class:`requests.Session` (injected in tests).
    """

    CREATE_PATH = "/auth/v1/admin/users"
    USER_PATH = "/auth/v1/admin/users/{identity_id}"
    LOGOUT_PATH = "/auth/v1/admin/users/{identity_id}/logout"
    TOKEN_PATH = "/auth/v1/token"
    RECOVER_PATH = "/auth/v1/recover"
    SELF_PATH = "/auth/v1/user"

    def __init__(
        self,
        base_url: str,
        service_key: str,
        *,
        timeout: float = 10.0,
        session: requests.Session | None = None,
    ) -> None:
        if not base_url:
            raise ValueError("IDENTITY_DIRECTORY_URL is required for the http directory backend.")
        self.base_url = base_url.rstrip("/")
        self.service_key = service_key
        self.timeout = timeout
        self.session = session or requests.Session()

    # -------------------- helpers --------------------

    def _headers(self, bearer: str | None = None) -> dict[str, str]:
        return {
            "apikey": self.service_key,
            "Authorization": f"Bearer {bearer or self.service_key}",
            "Content-Type": "application/json",
        }

    def _request(
        self,
        method: str,
        path: str,
        *,
        json: Mapping[str, Any] | None = None,
        params: Mapping[str, str] | None = None,
        bearer: str | None = None,
    ) -> dict[str, Any]:
        url = f"{self.base_url}{path}"
        try:
            resp = self.session.request(
                method,
                url,
                json=json,
                params=params,
                headers=self._headers(bearer),
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            log.warning("Directory request %s %s failed: %s", method, path, exc)
            raise DirectoryError("Identity directory unavailable") from exc

        body: dict[str, Any] = {}
        if resp.content:
            try:
                parsed = resp.json()
            except ValueError:
                parsed = {}
            if isinstance(parsed, dict):
                body = parsed

        if resp.status_code >= 400:
            raise self._error_from(resp.status_code, body)
        return body

    @staticmethod
    def _error_from(status: int, body: Mapping[str, Any]) -> DirectoryError:
        message = str(
            body.get("msg")
            or body.get("message")
            or body.get("error_description")
            or body.get("error")
            or f"Identity directory returned HTTP {status}"
        )
        code = str(body.get("error_code") or "")
        lowered = message.lower()
        duplicate = code in _DUPLICATE_CODES or any(m in lowered for m in _DUPLICATE_MARKERS)
        return DirectoryError(message, duplicate=duplicate, status=status)

    @staticmethod
    def _to_user(payload: Mapping[str, Any]) -> DirectoryUser | None:
        # Admin create returns the user object itself; some versions wrap it.
        user = payload.get("user", payload)
        if not isinstance(user, Mapping) or not user.get("id"):
            return None
        return DirectoryUser(
            identity_id=str(user["id"]),
            email=str(user.get("email") or ""),
            email_confirmed_at=_parse_ts(user.get("email_confirmed_at")),
            metadata=dict(user.get("user_metadata") or {}),
        )

    # -------------------- API ------------------------

    def create_user(
        self,
        email: str,
        password: str,
        *,
        confirmed: bool,
        metadata: Mapping[str, Any] | None = None,
    ) -> DirectoryUser | None:
        body = self._request(
            "POST",
            self.CREATE_PATH,
            json={
                "email": email,
                "password": password,
                "email_confirm": confirmed,
                "user_metadata": dict(metadata or {}),
            },
        )
        return self._to_user(body)

    def authenticate(self, email: str, password: str) -> AuthenticatedIdentity:
        body = self._request(
            "POST",
            self.TOKEN_PATH,
            params={"grant_type": "password"},
            json={"email": email, "password": password},
        )
        user = self._to_user(body)
        if user is None:
            raise DirectoryError("Authentication returned no user")
        return AuthenticatedIdentity(
            identity_id=user.identity_id,
            email=user.email or email,
            email_confirmed_at=user.email_confirmed_at,
            session_token=body.get("access_token") or None,
        )

    def delete_user(self, identity_id: str) -> None:
        self._request("DELETE", self.USER_PATH.format(identity_id=identity_id))

    def invalidate_sessions(self, identity_id: str) -> None:
        self._request("POST", self.LOGOUT_PATH.format(identity_id=identity_id))

    def request_reset(self, email: str, *, redirect_to: str | None = None) -> None:
        params = {"redirect_to": redirect_to} if redirect_to else None
        self._request("POST", self.RECOVER_PATH, params=params, json={"email": email})

    def apply_reset(self, new_password: str, *, recovery_token: str | None = None) -> None:
        if not recovery_token:
            raise DirectoryError("Auth session missing!", status=401)
        self._request(
            "PUT",
            self.SELF_PATH,
            json={"password": new_password},
            bearer=recovery_token,
        )
