"""Task registry behavior tests."""

from __future__ import annotations

import pytest

from core.errors import DuplicateTask, InvalidName, InvalidState, UnknownTask
from executor.action_adapter import Action, ActionKind
from planner.task_registry import TaskRegistry


def test_register_and_get_round_trip() -> None:
    registry = TaskRegistry()
    registry.register("build", ["lint", "compile"], lambda ctx: None, description="Build it")

    task = registry.get("build")
    assert task.name == "build"
    assert task.dependencies == ("lint", "compile")
    assert task.action is not None
    assert task.action.kind is ActionKind.SYNC
    assert task.description == "Build it"


def test_duplicate_registration_fails_by_default() -> None:
    registry = TaskRegistry()
    registry.register("build", [])

    with pytest.raises(DuplicateTask) as excinfo:
        registry.register("build", [])

    assert excinfo.value.name == "build"


def test_overwrite_replaces_definition_and_keeps_position() -> None:
    registry = TaskRegistry()
    registry.register("a", [])
    registry.register("b", [])
    registry.register("a", ["b"], overwrite=True)

    assert registry.get("a").dependencies == ("b",)
    assert list(registry.list()) == ["a", "b"]
    assert registry.position("a") == 0


@pytest.mark.parametrize("name", ["", " ", "-leading-dash", "has space", "bad/slash", None, 42])
def test_invalid_names_are_rejected(name: object) -> None:
    registry = TaskRegistry()
    with pytest.raises(InvalidName):
        registry.register(name, [])  # type: ignore[arg-type]


def test_invalid_dependency_names_are_rejected() -> None:
    registry = TaskRegistry()
    with pytest.raises(InvalidName):
        registry.register("ok", ["fine", ""])
    assert "ok" not in registry


def test_unknown_task_lookup() -> None:
    registry = TaskRegistry()
    with pytest.raises(UnknownTask):
        registry.get("missing")


def test_list_is_restartable_and_in_registration_order() -> None:
    registry = TaskRegistry()
    for name in ["zeta", "alpha", "concat-web-mainnet-min"]:
        registry.register(name, [])

    names = registry.list()
    assert list(names) == ["zeta", "alpha", "concat-web-mainnet-min"]
    assert list(names) == ["zeta", "alpha", "concat-web-mainnet-min"]
    assert len(names) == 3
    assert "alpha" in names


def test_duplicate_dependencies_are_collapsed() -> None:
    registry = TaskRegistry()
    registry.register("x", ["a", "b", "a"])
    assert registry.get("x").dependencies == ("a", "b")


def test_coroutine_functions_become_coroutine_actions() -> None:
    async def fetch(ctx: object) -> None:
        return None

    registry = TaskRegistry()
    registry.register("fetch", [], fetch)
    registry.register("explicit", [], Action.stream(lambda ctx: []))

    assert registry.get("fetch").action.kind is ActionKind.COROUTINE
    assert registry.get("explicit").action.kind is ActionKind.STREAM


def test_generator_functions_become_stream_actions() -> None:
    def steps(ctx: object) -> object:
        yield None

    async def async_steps(ctx: object) -> object:
        yield None

    registry = TaskRegistry()
    registry.register("steps", [], steps)
    registry.register("async-steps", [], async_steps)

    assert registry.get("steps").action.kind is ActionKind.STREAM
    assert registry.get("async-steps").action.kind is ActionKind.STREAM


def test_string_dependencies_are_a_type_error() -> None:
    registry = TaskRegistry()
    with pytest.raises(TypeError):
        registry.register("x", "abc")


def test_register_is_refused_while_frozen() -> None:
    registry = TaskRegistry()
    with registry.frozen():
        assert registry.is_frozen
        with pytest.raises(InvalidState):
            registry.register("late", [])
    registry.register("late", [])
    assert "late" in registry
