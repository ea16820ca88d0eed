"""Process-wide registry of named tasks."""

from __future__ import annotations

import re
import threading
from collections.abc import Callable, Iterable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any

from core.errors import DuplicateTask, InvalidName, InvalidState, UnknownTask
from executor.action_adapter import Action

_NAME_RE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_.:\-]*$")


def validate_name(name: object) -> str:
    """Return the name unchanged or raise InvalidName."""
    if not isinstance(name, str) or not _NAME_RE.match(name):
        raise InvalidName(name)
    return name


@dataclass(frozen=True)
class Task:
    """A named unit of work with declared dependencies."""

    name: str
    dependencies: tuple[str, ...] = ()
    action: Action | None = None
    timeout_seconds: float | None = None
    description: str = ""


class TaskRegistry:
    """Stores task definitions in registration order.

    The registry is frozen while a run is in progress; registering then raises
    InvalidState.
    """

    def __init__(self) -> None:
        self._tasks: dict[str, Task] = {}
        self._positions: dict[str, int] = {}
        self._lock = threading.Lock()
        self._active_runs = 0

    def register(
        self,
        name: str,
        dependencies: Iterable[str] = (),
        action: Action | Callable[..., Any] | None = None,
        *,
        overwrite: bool = False,
        timeout_seconds: float | None = None,
        description: str = "",
    ) -> Task:
        validate_name(name)
        if isinstance(dependencies, str):
            raise TypeError("dependencies must be a sequence of names, not a string")
        deps = tuple(dict.fromkeys(validate_name(dep) for dep in dependencies))
        wrapped = Action.from_callable(action) if action is not None else None
        if timeout_seconds is not None and timeout_seconds <= 0:
            raise ValueError("timeout_seconds must be positive")
        task = Task(
            name=name,
            dependencies=deps,
            action=wrapped,
            timeout_seconds=timeout_seconds,
            description=description,
        )
        with self._lock:
            if self._active_runs:
                raise InvalidState(f"Cannot register '{name}' while a run is in progress.")
            if name in self._tasks and not overwrite:
                raise DuplicateTask(name)
            self._positions.setdefault(name, len(self._positions))
            self._tasks[name] = task
        return task

    def get(self, name: str) -> Task:
        try:
            return self._tasks[name]
        except KeyError:
            raise UnknownTask(name) from None

    def list(self) -> TaskNames:
        """Lazy view of task names in registration order; iterate it any number of times."""
        return TaskNames(self)

    def position(self, name: str) -> int:
        try:
            return self._positions[name]
        except KeyError:
            raise UnknownTask(name) from None

    def __contains__(self, name: object) -> bool:
        return name in self._tasks

    def __len__(self) -> int:
        return len(self._tasks)

    @property
    def is_frozen(self) -> bool:
        return self._active_runs > 0

    @contextmanager
    def frozen(self) -> Iterator[TaskRegistry]:
        """Hold the registry read-only for the duration of a run."""
        with self._lock:
            self._active_runs += 1
        try:
            yield self
        finally:
            with self._lock:
                self._active_runs -= 1


class TaskNames:
    """Restartable iterable over a registry's names."""

    def __init__(self, registry: TaskRegistry) -> None:
        self._registry = registry

    def __iter__(self) -> Iterator[str]:
        # Positions keep first-registration order, overwrite included.
        yield from tuple(self._registry._positions)

    def __len__(self) -> int:
        return len(self._registry)

    def __contains__(self, name: object) -> bool:
        return name in self._registry
