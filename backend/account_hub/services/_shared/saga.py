"""
Saga runner for multi-store writes.

There is no transaction spanning the identity directory and the profile
store, so a multi-store write is expressed as an explicit ordered list of
steps. Each step that commits state another step may later invalidate
declares an ``undo``. On failure, the undo actions of committed steps run in
reverse order, and the outcome is reported as :class:`SagaFailed`.

Interruptions (``BaseException`` that is not an ``Exception``, e.g. a worker
timeout or ``KeyboardInterrupt``) are *not* compensated: the committed steps
are logged as a detected inconsistency and the interruption propagates.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from typing import Any

from account_hub.core.logger import log_event

log = logging.getLogger(__name__)

#: Step results keyed by step name, passed to later actions and undos.
SagaContext = dict[str, Any]


@dataclass(frozen=True, slots=True)
class SagaStep:
    """
    One ordered action of a saga.

    :param name: Unique step name; its result is stored under this key.
    :param action: Callable receiving the context of earlier results.
    :param undo: Optional compensation receiving the context (including this
        step's own result).
    """

    name: str
    action: Callable[[SagaContext], Any]
    undo: Callable[[SagaContext], None] | None = None


@dataclass(slots=True, eq=False)
class SagaFailed(Exception):
    """
    Raised when a step fails.

    :param step: Name of the failing step.
    :param cause: Exception raised by the step.
    :param committed: Names of steps that had committed before the failure.
    :param compensation_errors: Undo failures keyed by step name. Non-empty
        means partial state persists.
    """

    step: str
    cause: Exception
    committed: tuple[str, ...] = ()
    compensation_errors: dict[str, Exception] = field(default_factory=dict)

    @property
    def compensated(self) -> bool:
        """``True`` when every committed step was rolled back successfully."""
        return not self.compensation_errors

    def __str__(self) -> str:
        return f"saga step {self.step!r} failed: {self.cause}"


class Saga:
    """Run :class:`SagaStep` sequences with reverse-order compensation."""

    def __init__(self, name: str, steps: Sequence[SagaStep]) -> None:
        names = [s.name for s in steps]
        if len(names) != len(set(names)):
            raise ValueError(f"Duplicate step names in saga {name!r}: {names}")
        self.name = name
        self.steps = tuple(steps)

    def run(self, context: SagaContext | None = None) -> SagaContext:
        """
        Execute every step in order.

        :param context: Optional context dict, updated in place so callers can
            inspect committed results even when the run is interrupted.
        :returns: Context holding each step's result under its name.
        :raises SagaFailed: When a step raises an ``Exception``.
        """
        ctx: SagaContext = context if context is not None else {}
        committed: list[SagaStep] = []

        for step in self.steps:
            try:
                ctx[step.name] = step.action(ctx)
            except Exception as exc:
                errors = self._compensate(committed, ctx, failed_step=step.name)
                raise SagaFailed(
                    step=step.name,
                    cause=exc,
                    committed=tuple(s.name for s in committed),
                    compensation_errors=errors,
                ) from exc
            except BaseException:
                if committed:
                    log_event(
                        log,
                        logging.ERROR,
                        "saga.interrupted",
                        "Saga %s interrupted during %s; committed steps left in place: %s",
                        self.name,
                        step.name,
                        [s.name for s in committed],
                        step=step.name,
                    )
                raise
            committed.append(step)

        return ctx

    def _compensate(
        self, committed: list[SagaStep], ctx: SagaContext, *, failed_step: str
    ) -> dict[str, Exception]:
        errors: dict[str, Exception] = {}
        for step in reversed(committed):
            if step.undo is None:
                continue
            log_event(
                log,
                logging.WARNING,
                "saga.compensating",
                "Saga %s: undoing %s after %s failed",
                self.name,
                step.name,
                failed_step,
                step=step.name,
            )
            try:
                step.undo(ctx)
            except Exception as exc:
                errors[step.name] = exc
                log_event(
                    log,
                    logging.ERROR,
                    "saga.compensation_failed",
                    "Saga %s: undo of %s failed",
                    self.name,
                    step.name,
                    exc_info=True,
                    step=step.name,
                )
        return errors
