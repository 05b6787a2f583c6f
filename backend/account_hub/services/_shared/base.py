# account_hub/services/_shared/base.py
from __future__ import annotations

import logging
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import UTC, datetime

from account_hub.core.logger import log_event
from account_hub.services._shared.errors import InternalError, ServiceError

log = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    """Return a timezone-aware UTC "now"."""
    return datetime.now(UTC)


@dataclass(slots=True)
class ServiceContext:
    """
    Carry cross-cutting request-scoped data (auth, request ids, etc.).

    :param actor_id: Authenticated identity id, when known.
    :param request_id: Correlation id for logging/tracing.
    """

    actor_id: str | None = None
    request_id: str | None = None


class BaseService:
    """
    Base class for application services.

    Responsibilities
    ----------------
    * Hold the request-scoped context and the clock.
    * Enforce the error boundary: only :class:`ServiceError` subclasses leave
      a public operation; anything else becomes :class:`InternalError`.
    * Keep services thin, orchestration-only, no web/ORM leakage.
    """

    def __init__(self, *, ctx: ServiceContext | None = None, clock: Clock | None = None) -> None:
        """
        Initialize the base service.

        :param ctx: Optional request-scoped context.
        :type ctx: ServiceContext | None
        :param clock: Source of "now"; defaults to :func:`utc_now`.
        :type clock: Callable[[], datetime] | None
        """
        self.ctx = ctx or ServiceContext()
        self._clock = clock or utc_now

    def now_utc(self) -> datetime:
        return self._clock()

    # -------------------------- Error handling ------------------------------

    @contextmanager
    def error_boundary(
        self,
        operation: str,
        *,
        fallback: Callable[[], ServiceError] | None = None,
        identity_id: str | None = None,
    ) -> Iterator[None]:
        """
        Translate unanticipated exceptions raised inside the block.

        :param operation: Operation name used in logs.
        :param fallback: Factory for the error raised instead of a generic
            :class:`InternalError`.
        :param identity_id: Identity involved, for log correlation.
        :raises ServiceError: Re-raised untouched when already classified.
        """
        try:
            yield
        except ServiceError:
            raise
        except Exception as exc:
            log_event(
                log,
                logging.ERROR,
                "account.unexpected_error",
                "%s failed with an unexpected collaborator error",
                operation,
                exc_info=True,
                identity_id=identity_id,
            )
            error = fallback() if fallback is not None else InternalError.generic()
            raise error from exc
