"""Per-task outcome ledger for one execution request."""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable, Iterable
from dataclasses import dataclass, replace
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any

from core.errors import InvalidState, MalformedAction, UnknownTask

logger = logging.getLogger("wavebuild.report")


class TaskState(StrEnum):
    PENDING = "pending"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    SKIPPED = "skipped"

    @property
    def settled(self) -> bool:
        return self in (TaskState.SUCCEEDED, TaskState.FAILED, TaskState.SKIPPED)


_TRANSITIONS: dict[TaskState, frozenset[TaskState]] = {
    TaskState.PENDING: frozenset({TaskState.RUNNING, TaskState.SKIPPED}),
    TaskState.RUNNING: frozenset({TaskState.SUCCEEDED, TaskState.FAILED}),
}


@dataclass(frozen=True)
class TransitionEvent:
    task: str
    old_state: TaskState
    new_state: TaskState
    timestamp: datetime


TransitionListener = Callable[[TransitionEvent], None]


@dataclass(frozen=True)
class TaskRecord:
    name: str
    state: TaskState = TaskState.PENDING
    started_at: float | None = None
    finished_at: float | None = None
    error: BaseException | None = None
    skip_reason: str = ""

    @property
    def duration(self) -> float | None:
        if self.started_at is None or self.finished_at is None:
            return None
        return self.finished_at - self.started_at

    @property
    def malformed(self) -> bool:
        return isinstance(self.error, MalformedAction)


@dataclass(frozen=True)
class RunSummary:
    succeeded: int
    failed: int
    skipped: int
    pending: int
    running: int
    total_elapsed: float

    @property
    def ok(self) -> bool:
        return self.failed == 0


class RunReport:
    """Task states, timings and errors; safe to read while the run is in progress.

    All writes go through ``_transition`` under one lock. Listeners are called
    after the lock is released, in the order the transitions were applied for
    any single task.
    """

    def __init__(self, names: Iterable[str], listener: TransitionListener | None = None) -> None:
        self._records: dict[str, TaskRecord] = {name: TaskRecord(name=name) for name in names}
        self._listener = listener
        self._lock = threading.Lock()
        self._started = time.monotonic()
        self._finished: float | None = None

    def start(self, name: str) -> None:
        self._transition(name, TaskState.RUNNING, started_at=time.monotonic())

    def succeed(self, name: str) -> None:
        self._transition(name, TaskState.SUCCEEDED, finished_at=time.monotonic())

    def fail(self, name: str, error: BaseException) -> None:
        self._transition(name, TaskState.FAILED, finished_at=time.monotonic(), error=error)

    def skip(self, name: str, reason: str = "") -> None:
        self._transition(name, TaskState.SKIPPED, skip_reason=reason)

    def _transition(self, name: str, new_state: TaskState, **changes: Any) -> None:
        with self._lock:
            if self._finished is not None:
                raise InvalidState("Run report is finalized.")
            record = self._record(name)
            if new_state not in _TRANSITIONS.get(record.state, frozenset()):
                raise InvalidState(f"Task '{name}' cannot move from {record.state} to {new_state}.")
            self._records[name] = replace(record, state=new_state, **changes)
            event = TransitionEvent(name, record.state, new_state, datetime.now(UTC))
        logger.debug("%s: %s -> %s", name, event.old_state, event.new_state)
        if self._listener is not None:
            self._listener(event)

    def finalize(self) -> RunReport:
        with self._lock:
            if self._finished is None:
                self._finished = time.monotonic()
        return self

    @property
    def finalized(self) -> bool:
        return self._finished is not None

    def _record(self, name: str) -> TaskRecord:
        try:
            return self._records[name]
        except KeyError:
            raise UnknownTask(name) from None

    def status(self, name: str) -> TaskState:
        with self._lock:
            return self._record(name).state

    def duration(self, name: str) -> float | None:
        with self._lock:
            return self._record(name).duration

    def error(self, name: str) -> BaseException | None:
        with self._lock:
            return self._record(name).error

    def is_malformed(self, name: str) -> bool:
        with self._lock:
            return self._record(name).malformed

    def skip_reason(self, name: str) -> str:
        with self._lock:
            return self._record(name).skip_reason

    def records(self) -> list[TaskRecord]:
        with self._lock:
            return list(self._records.values())

    def names_in(self, state: TaskState) -> list[str]:
        return [record.name for record in self.records() if record.state is state]

    def failed(self) -> list[str]:
        return self.names_in(TaskState.FAILED)

    def summary(self) -> RunSummary:
        with self._lock:
            counts = {state: 0 for state in TaskState}
            for record in self._records.values():
                counts[record.state] += 1
            end = self._finished if self._finished is not None else time.monotonic()
            return RunSummary(
                succeeded=counts[TaskState.SUCCEEDED],
                failed=counts[TaskState.FAILED],
                skipped=counts[TaskState.SKIPPED],
                pending=counts[TaskState.PENDING],
                running=counts[TaskState.RUNNING],
                total_elapsed=end - self._started,
            )

    @property
    def ok(self) -> bool:
        return self.summary().ok

    @property
    def exit_code(self) -> int:
        return 0 if self.ok else 1

    def __contains__(self, name: object) -> bool:
        return name in self._records

    def __len__(self) -> int:
        return len(self._records)

    def to_dict(self) -> dict[str, Any]:
        """JSON-friendly view of the report."""
        summary = self.summary()
        return {
            "ok": summary.ok,
            "summary": {
                "succeeded": summary.succeeded,
                "failed": summary.failed,
                "skipped": summary.skipped,
                "pending": summary.pending,
                "running": summary.running,
                "total_elapsed": round(summary.total_elapsed, 3),
            },
            "tasks": [
                {
                    "name": record.name,
                    "state": record.state.value,
                    "duration": None if record.duration is None else round(record.duration, 3),
                    "error": None if record.error is None else str(record.error),
                    "malformed": record.malformed,
                    "skip_reason": record.skip_reason,
                }
                for record in self.records()
            ],
        }
