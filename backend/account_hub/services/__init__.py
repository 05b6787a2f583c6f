"""Service layer public API.

This package exposes the building blocks of the service layer so that callers
can import from :mod:`account_hub.services` without knowing internal structure.

Re-exports
----------
- Base primitives (from ``account_hub.services._shared.base``)
    * :class:`BaseService`
    * :class:`ServiceContext`

- Error taxonomy (from ``account_hub.services._shared.errors``)
    * :class:`ServiceError` and its subclasses

- Account lifecycle (from ``account_hub.services.accounts``)
    * :class:`AccountLifecycleCoordinator`
    * DTOs: :class:`UserView`, :class:`VerifiedUser`, :class:`RegistrationOut`,
      :class:`LoginOut`, :class:`RefreshOut`
"""

from __future__ import annotations

from ._shared.base import BaseService, ServiceContext
from ._shared.errors import (
    ConflictError,
    InternalError,
    InvalidRequestError,
    NotFoundError,
    ServiceError,
    UnauthorizedError,
)
from .accounts.dto import LoginOut, RefreshOut, RegistrationOut, UserView, VerifiedUser
from .accounts.service import AccountLifecycleCoordinator

__all__ = [
    "BaseService",
    "ServiceContext",
    "ServiceError",
    "ConflictError",
    "UnauthorizedError",
    "NotFoundError",
    "InvalidRequestError",
    "InternalError",
    "AccountLifecycleCoordinator",
    "UserView",
    "VerifiedUser",
    "RegistrationOut",
    "LoginOut",
    "RefreshOut",
]
