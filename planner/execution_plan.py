"""Execution plan models."""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType

from core.errors import UnknownTask
from planner.task_registry import Task


@dataclass(frozen=True)
class ExecutionPlan:
    """Waves of tasks; every task's dependencies sit in earlier waves."""

    requested: tuple[str, ...]
    waves: tuple[tuple[str, ...], ...]
    tasks: Mapping[str, Task] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "tasks", MappingProxyType(dict(self.tasks)))

    def __iter__(self) -> Iterator[tuple[str, ...]]:
        return iter(self.waves)

    def __len__(self) -> int:
        return sum(len(wave) for wave in self.waves)

    @property
    def order(self) -> tuple[str, ...]:
        """Flattened topological order."""
        return tuple(name for wave in self.waves for name in wave)

    def wave_of(self, name: str) -> int:
        for index, wave in enumerate(self.waves):
            if name in wave:
                return index
        raise UnknownTask(name)

    def dependencies_of(self, name: str) -> tuple[str, ...]:
        try:
            return self.tasks[name].dependencies
        except KeyError:
            raise UnknownTask(name) from None

    def describe(self) -> list[str]:
        """One line per wave, for CLI output."""
        return [f"wave {index}: {', '.join(wave)}" for index, wave in enumerate(self.waves)]
