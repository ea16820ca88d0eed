"""Dependency resolution: closure, wave ordering and cycle detection."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field

from core.errors import CyclicDependency, UnresolvedDependency
from planner.execution_plan import ExecutionPlan
from planner.task_registry import Task, TaskRegistry

logger = logging.getLogger("wavebuild.planner")


@dataclass
class DependencyGraph:
    """Dependencies among the tasks reachable from a request.

    Edges point from a task to one of its dependencies. Nodes are kept in
    registration order, which is also the tie-break inside a wave.
    """

    nodes: list[str] = field(default_factory=list)
    edges: list[tuple[str, str]] = field(default_factory=list)
    tasks: dict[str, Task] = field(default_factory=dict)

    @classmethod
    def from_registry(cls, registry: TaskRegistry, requested: Iterable[str]) -> DependencyGraph:
        """Collect the transitive closure of ``requested``.

        Raises UnknownTask for a requested name and UnresolvedDependency for a
        missing dependency.
        """
        tasks: dict[str, Task] = {}
        stack = [registry.get(name) for name in reversed(list(dict.fromkeys(requested)))]
        while stack:
            task = stack.pop()
            if task.name in tasks:
                continue
            tasks[task.name] = task
            for dep in reversed(task.dependencies):
                if dep not in registry:
                    raise UnresolvedDependency(task.name, dep)
                if dep not in tasks:
                    stack.append(registry.get(dep))

        nodes = sorted(tasks, key=registry.position)
        edges = [(name, dep) for name in nodes for dep in tasks[name].dependencies]
        return cls(nodes=nodes, edges=edges, tasks=tasks)

    def dependencies_of(self, name: str) -> tuple[str, ...]:
        return self.tasks[name].dependencies

    def waves(self) -> list[list[str]]:
        """Kahn's algorithm, one level at a time."""
        remaining = {name: len(self.dependencies_of(name)) for name in self.nodes}
        dependents: dict[str, list[str]] = {name: [] for name in self.nodes}
        for task, dep in self.edges:
            dependents[dep].append(task)

        rank = {name: index for index, name in enumerate(self.nodes)}
        ready = [name for name in self.nodes if remaining[name] == 0]
        result: list[list[str]] = []
        while ready:
            result.append(ready)
            following: list[str] = []
            for name in ready:
                del remaining[name]
                for task in dependents[name]:
                    remaining[task] -= 1
                    if remaining[task] == 0:
                        following.append(task)
            ready = sorted(following, key=rank.__getitem__)

        if remaining:
            raise CyclicDependency(self.find_cycle(remaining))
        return result

    def find_cycle(self, candidates: Iterable[str]) -> list[str]:
        """Return one concrete cycle among nodes that never became ready.

        Every such node has at least one dependency that also never became
        ready, so walking first such dependencies must revisit a node.
        """
        blocked = set(candidates)
        start = next(name for name in self.nodes if name in blocked)
        path: list[str] = []
        seen: dict[str, int] = {}
        current = start
        while current not in seen:
            seen[current] = len(path)
            path.append(current)
            current = next(dep for dep in self.dependencies_of(current) if dep in blocked)
        return path[seen[current]:]


def resolve(registry: TaskRegistry, requested: Iterable[str]) -> ExecutionPlan:
    """Build the execution plan for ``requested`` and everything it depends on."""
    requested = tuple(dict.fromkeys(requested))
    graph = DependencyGraph.from_registry(registry, requested)
    waves = graph.waves()
    logger.debug(
        "Resolved %d task(s) into %d wave(s) for %s",
        len(graph.nodes),
        len(waves),
        ", ".join(requested) or "(nothing)",
    )
    return ExecutionPlan(
        requested=requested,
        waves=tuple(tuple(wave) for wave in waves),
        tasks={name: graph.tasks[name] for name in graph.nodes},
    )
