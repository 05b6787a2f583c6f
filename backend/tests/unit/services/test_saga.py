from __future__ import annotations

import logging

import pytest

from account_hub.services._shared.saga import Saga, SagaFailed, SagaStep


class Interrupted(BaseException):
    pass


def _recorder():
    calls: list[str] = []

    def action(name, result=None, error=None):
        def run(ctx):
            calls.append(f"do:{name}")
            if error is not None:
                raise error
            return result if result is not None else name

        return run

    def undo(name, error=None):
        def run(ctx):
            calls.append(f"undo:{name}")
            if error is not None:
                raise error

        return run

    return calls, action, undo


def test_run_returns_each_step_result_by_name():
    _, action, _ = _recorder()
    saga = Saga("demo", [SagaStep("a", action("a", 1)), SagaStep("b", lambda ctx: ctx["a"] + 1)])

    assert saga.run() == {"a": 1, "b": 2}


def test_run_updates_the_given_context_in_place():
    _, action, _ = _recorder()
    ctx: dict = {"seed": 0}

    Saga("demo", [SagaStep("a", action("a"))]).run(ctx)

    assert ctx == {"seed": 0, "a": "a"}


def test_failure_undoes_committed_steps_in_reverse_order():
    calls, action, undo = _recorder()
    saga = Saga(
        "demo",
        [
            SagaStep("a", action("a"), undo=undo("a")),
            SagaStep("b", action("b"), undo=undo("b")),
            SagaStep("c", action("c", error=RuntimeError("boom"))),
        ],
    )

    with pytest.raises(SagaFailed) as exc:
        saga.run()

    assert calls == ["do:a", "do:b", "do:c", "undo:b", "undo:a"]
    assert exc.value.step == "c"
    assert exc.value.committed == ("a", "b")
    assert exc.value.compensated is True
    assert isinstance(exc.value.cause, RuntimeError)
    assert exc.value.__cause__ is exc.value.cause


def test_failing_step_is_not_undone():
    calls, action, undo = _recorder()
    saga = Saga(
        "demo",
        [SagaStep("a", action("a", error=ValueError("bad")), undo=undo("a"))],
    )

    with pytest.raises(SagaFailed) as exc:
        saga.run()

    assert calls == ["do:a"]
    assert exc.value.committed == ()


def test_compensation_errors_are_collected_and_remaining_undos_still_run(caplog):
    caplog.set_level(logging.WARNING)
    calls, action, undo = _recorder()
    saga = Saga(
        "demo",
        [
            SagaStep("a", action("a"), undo=undo("a")),
            SagaStep("b", action("b"), undo=undo("b", error=RuntimeError("undo failed"))),
            SagaStep("c", action("c", error=RuntimeError("boom"))),
        ],
    )

    with pytest.raises(SagaFailed) as exc:
        saga.run()

    assert calls[-2:] == ["undo:b", "undo:a"]
    assert exc.value.compensated is False
    assert set(exc.value.compensation_errors) == {"b"}
    events = [getattr(r, "event", None) for r in caplog.records]
    assert "saga.compensation_failed" in events


def test_interruption_is_not_compensated(caplog):
    caplog.set_level(logging.ERROR)
    calls, action, undo = _recorder()
    saga = Saga(
        "demo",
        [
            SagaStep("a", action("a"), undo=undo("a")),
            SagaStep("b", action("b", error=Interrupted())),
        ],
    )
    ctx: dict = {}

    with pytest.raises(Interrupted):
        saga.run(ctx)

    assert "undo:a" not in calls
    assert ctx == {"a": "a"}
    assert [getattr(r, "event", None) for r in caplog.records] == ["saga.interrupted"]


def test_duplicate_step_names_are_rejected():
    with pytest.raises(ValueError):
        Saga("demo", [SagaStep("a", lambda ctx: 1), SagaStep("a", lambda ctx: 2)])
