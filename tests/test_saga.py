"""Saga runner: ordering, reverse compensation, resumption."""
import pytest

from app.core.errors import ConflictError, ExternalError
from app.services.saga import Saga, SagaStep


def _recording_saga(log, fail_at=None, failing_compensation=None):
    def make(name):
        def action(ctx):
            if name == fail_at:
                raise RuntimeError(f"{name} exploded")
            log.append(f"do:{name}")

        def compensation(ctx):
            if name == failing_compensation:
                raise RuntimeError("undo exploded")
            log.append(f"undo:{name}")

        return SagaStep(name, action, compensation=compensation)

    return Saga("test", [make("a"), make("b"), make("c")])


def test_runs_steps_in_order():
    log = []
    ctx = _recording_saga(log).run({})
    assert log == ["do:a", "do:b", "do:c"]
    assert ctx["completed"] == ["a", "b", "c"]


def test_compensates_completed_steps_in_reverse():
    log = []
    saga = _recording_saga(log, fail_at="c")
    with pytest.raises(ExternalError) as exc_info:
        saga.run({})
    assert log == ["do:a", "do:b", "undo:b", "undo:a"]
    assert exc_info.value.step == "c"
    assert saga.cursor == 2


def test_failed_compensation_does_not_mask_original_error():
    log = []
    saga = _recording_saga(log, fail_at="c", failing_compensation="b")
    with pytest.raises(ExternalError, match="c exploded"):
        saga.run({})
    # a is still compensated after b's compensation failed
    assert log == ["do:a", "do:b", "undo:a"]


def test_app_errors_pass_through_untouched():
    def conflict(ctx):
        raise ConflictError("taken")

    saga = Saga("test", [SagaStep("insert", conflict)])
    with pytest.raises(ConflictError):
        saga.run({})


def test_external_error_keeps_its_own_step():
    def dns(ctx):
        raise ExternalError("timeout", step="dns_resolve")

    with pytest.raises(ExternalError) as exc_info:
        Saga("test", [SagaStep("check", dns)]).run({})
    assert exc_info.value.step == "dns_resolve"


def test_rerun_skips_steps_whose_compensation_failed():
    log = []
    ctx = {}
    with pytest.raises(ExternalError):
        _recording_saga(log, fail_at="c", failing_compensation="b").run(ctx)
    assert ctx["completed"] == ["b"]

    log.clear()
    _recording_saga(log).run(ctx)
    assert log == ["do:a", "do:c"]
    assert ctx["completed"] == ["b", "a", "c"]
