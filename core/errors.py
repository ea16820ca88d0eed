"""Exception hierarchy for task registration, resolution and execution."""

from __future__ import annotations

from collections.abc import Sequence


class TaskGraphError(Exception):
    """Base class for all task graph errors."""


class InvalidName(TaskGraphError):
    """Raised for empty or malformed task names."""

    def __init__(self, name: object) -> None:
        super().__init__(f"Invalid task name: {name!r}")
        self.name = name


class DuplicateTask(TaskGraphError):
    """Raised when a task name is registered twice without overwrite."""

    def __init__(self, name: str) -> None:
        super().__init__(f"Task '{name}' is already registered.")
        self.name = name


class InvalidState(TaskGraphError):
    """Raised for operations that are illegal in the current lifecycle state."""


class ResolutionError(TaskGraphError):
    """Base class for errors that abort a run before any task starts."""


class UnknownTask(ResolutionError):
    def __init__(self, name: str) -> None:
        super().__init__(f"Unknown task '{name}'.")
        self.name = name


class UnresolvedDependency(ResolutionError):
    def __init__(self, task: str, missing: str) -> None:
        super().__init__(f"Task '{task}' depends on unknown task '{missing}'.")
        self.task = task
        self.missing = missing


class CyclicDependency(ResolutionError):
    """Raised with one concrete cycle; each name depends on the next, the last on the first."""

    def __init__(self, cycle: Sequence[str]) -> None:
        self.cycle = tuple(cycle)
        path = " -> ".join([*self.cycle, self.cycle[0]]) if self.cycle else "?"
        super().__init__(f"Cyclic dependency: {path}")


class ActionFailure(TaskGraphError):
    """A task's action failed. The original exception, if any, is chained as __cause__."""

    def __init__(self, task: str, error: BaseException | str) -> None:
        self.task = task
        self.error = error
        super().__init__(f"Task '{task}' failed: {error}")


class MalformedAction(ActionFailure):
    """The action broke the completion contract (double signal, wrong return type)."""


class TaskTimeout(ActionFailure):
    def __init__(self, task: str, seconds: float) -> None:
        super().__init__(task, f"timed out after {seconds:g}s")
        self.seconds = seconds


class ConfigError(ValueError):
    """Raised when configuration files cannot be loaded or validated."""
