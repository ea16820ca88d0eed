"""Run report state-machine tests."""

from __future__ import annotations

import pytest

from core.errors import InvalidState, MalformedAction, UnknownTask
from reporting.run_report import RunReport, TaskState, TransitionEvent


def test_new_report_is_all_pending() -> None:
    report = RunReport(["a", "b"])

    assert report.status("a") is TaskState.PENDING
    assert report.summary().pending == 2
    assert report.duration("a") is None
    assert not report.finalized


def test_legal_transitions_record_timing_and_errors() -> None:
    report = RunReport(["a", "b", "c"])

    report.start("a")
    report.succeed("a")
    report.start("b")
    report.fail("b", RuntimeError("boom"))
    report.skip("c", reason="dependency 'b' failed")

    assert report.status("a") is TaskState.SUCCEEDED
    assert report.duration("a") is not None and report.duration("a") >= 0
    assert str(report.error("b")) == "boom"
    assert report.skip_reason("c") == "dependency 'b' failed"
    assert report.duration("c") is None
    assert report.failed() == ["b"]
    assert not report.ok
    assert report.exit_code == 1


@pytest.mark.parametrize(
    ("steps", "illegal"),
    [
        ([], "succeed"),
        (["start"], "start"),
        (["start", "succeed"], "start"),
        (["skip"], "start"),
        (["start"], "skip"),
    ],
)
def test_illegal_transitions_raise(steps: list[str], illegal: str) -> None:
    report = RunReport(["a"])
    for step in steps:
        getattr(report, step)("a")

    with pytest.raises(InvalidState):
        getattr(report, illegal)("a")


def test_failed_task_cannot_be_revived() -> None:
    report = RunReport(["a"])
    report.start("a")
    report.fail("a", RuntimeError("x"))

    with pytest.raises(InvalidState):
        report.succeed("a")
    assert report.status("a") is TaskState.FAILED


def test_unknown_task_in_report() -> None:
    report = RunReport(["a"])
    with pytest.raises(UnknownTask):
        report.status("b")
    with pytest.raises(UnknownTask):
        report.start("b")


def test_finalized_report_is_read_only() -> None:
    report = RunReport(["a", "b"])
    report.start("a")
    report.succeed("a")
    report.finalize()

    with pytest.raises(InvalidState):
        report.skip("b")
    assert report.finalized
    elapsed = report.summary().total_elapsed
    assert report.summary().total_elapsed == elapsed


def test_listener_sees_each_transition() -> None:
    seen: list[TransitionEvent] = []
    report = RunReport(["a"], listener=seen.append)

    report.start("a")
    report.succeed("a")

    assert [(e.old_state, e.new_state) for e in seen] == [
        (TaskState.PENDING, TaskState.RUNNING),
        (TaskState.RUNNING, TaskState.SUCCEEDED),
    ]
    assert seen[0].timestamp <= seen[1].timestamp


def test_malformed_flag_and_dict_view() -> None:
    report = RunReport(["a", "b"])
    report.start("a")
    report.fail("a", MalformedAction("a", "done signal called 2 times"))
    report.skip("b", reason="dependency 'a' failed")
    report.finalize()

    assert report.is_malformed("a")
    data = report.to_dict()
    assert data["ok"] is False
    assert data["summary"]["failed"] == 1
    assert data["tasks"][0]["malformed"] is True
    assert data["tasks"][1] == {
        "name": "b",
        "state": "skipped",
        "duration": None,
        "error": None,
        "malformed": False,
        "skip_reason": "dependency 'a' failed",
    }


def test_settled_states() -> None:
    assert not TaskState.PENDING.settled
    assert not TaskState.RUNNING.settled
    assert all(state.settled for state in (TaskState.SUCCEEDED, TaskState.FAILED, TaskState.SKIPPED))
