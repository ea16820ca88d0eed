"""Uniform completion contract for task actions.

Leaf actions finish in one of four ways: they return (sync), they call a
``done`` signal (callback), they yield a sequence of effects that must all
settle (stream), or they are coroutines (coroutine). ``ActionAdapter`` turns
every style into one ``ActionOutcome``: succeeded, or failed with an
``ActionFailure``.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
import threading
from collections.abc import AsyncIterable, Callable, Iterable
from concurrent.futures import Future
from dataclasses import dataclass, field
from enum import StrEnum
from pathlib import Path
from typing import TYPE_CHECKING, Any

from core.errors import ActionFailure, MalformedAction, TaskTimeout

if TYPE_CHECKING:
    from planner.task_registry import Task

logger = logging.getLogger("wavebuild.action_adapter")


class ActionKind(StrEnum):
    SYNC = "sync"
    CALLBACK = "callback"
    STREAM = "stream"
    COROUTINE = "coroutine"


@dataclass(frozen=True)
class Action:
    """A leaf callable tagged with its completion style."""

    fn: Callable[..., Any]
    kind: ActionKind = ActionKind.SYNC

    @classmethod
    def sync(cls, fn: Callable[[ActionContext], Any]) -> Action:
        return cls(fn, ActionKind.SYNC)

    @classmethod
    def callback(cls, fn: Callable[[ActionContext, DoneSignal], Any]) -> Action:
        return cls(fn, ActionKind.CALLBACK)

    @classmethod
    def stream(cls, fn: Callable[[ActionContext], Iterable[Any]]) -> Action:
        return cls(fn, ActionKind.STREAM)

    @classmethod
    def coroutine(cls, fn: Callable[[ActionContext], Any]) -> Action:
        return cls(fn, ActionKind.COROUTINE)

    @classmethod
    def from_callable(cls, fn: Action | Callable[..., Any]) -> Action:
        """Wrap a plain callable.

        Coroutine functions become coroutine actions; generator and async
        generator functions become stream actions.
        """
        if isinstance(fn, Action):
            return fn
        if not callable(fn):
            raise TypeError(f"Action must be callable, got {type(fn).__name__}")
        if inspect.iscoroutinefunction(fn):
            return cls(fn, ActionKind.COROUTINE)
        if inspect.isgeneratorfunction(fn) or inspect.isasyncgenfunction(fn):
            return cls(fn, ActionKind.STREAM)
        return cls(fn, ActionKind.SYNC)

    @property
    def label(self) -> str:
        return getattr(self.fn, "__name__", type(self.fn).__name__)


@dataclass(frozen=True)
class ActionContext:
    """What a leaf action may reach: its own name, paths, and the manifest."""

    task_name: str
    root: Path = field(default_factory=Path.cwd)
    dist_dir: Path | None = None
    manifest: Any = None

    @property
    def logger(self) -> logging.Logger:
        return logging.getLogger(f"wavebuild.task.{self.task_name}")


@dataclass(frozen=True)
class ActionOutcome:
    succeeded: bool
    error: ActionFailure | None = None

    @property
    def malformed(self) -> bool:
        return isinstance(self.error, MalformedAction)

    @property
    def timed_out(self) -> bool:
        return isinstance(self.error, TaskTimeout)


class DoneSignal:
    """Completion signal handed to callback-style actions.

    The first call settles the task. A further call made before the adapter
    has read the signal marks the action as malformed. A call that arrives
    after the task has settled can no longer change its outcome; it is counted
    in ``calls`` and logged as an error.
    """

    def __init__(self, task_name: str) -> None:
        self.task_name = task_name
        self._event = threading.Event()
        self._lock = threading.Lock()
        self._calls = 0
        self._error: BaseException | str | None = None

    def __call__(self, error: BaseException | str | None = None) -> None:
        with self._lock:
            self._calls += 1
            calls = self._calls
            if calls == 1:
                self._error = error
        if calls > 1:
            logger.error("Task '%s' signalled completion %d times", self.task_name, calls)
            return
        self._event.set()

    @property
    def calls(self) -> int:
        with self._lock:
            return self._calls

    @property
    def error(self) -> BaseException | str | None:
        return self._error

    def wait(self, timeout: float | None = None) -> bool:
        return self._event.wait(timeout)


class ActionAdapter:
    """Invokes task actions and normalizes every completion style."""

    def __init__(self, default_timeout: float | None = None) -> None:
        self.default_timeout = default_timeout

    def invoke(
        self,
        task: Task,
        context: ActionContext,
        default_timeout: float | None = None,
    ) -> ActionOutcome:
        """Run the task's action to settlement. Never raises for action errors.

        The task's own timeout wins over ``default_timeout``, which wins over
        the adapter's default.
        """
        if task.action is None:
            return ActionOutcome(succeeded=True)
        timeout = next(
            (value for value in (task.timeout_seconds, default_timeout, self.default_timeout) if value is not None),
            None,
        )
        if timeout is None:
            return self._settle(task.name, task.action, context)
        return self._settle_with_timeout(task.name, task.action, context, timeout)

    def _settle_with_timeout(
        self,
        name: str,
        action: Action,
        context: ActionContext,
        timeout: float,
    ) -> ActionOutcome:
        # The action thread is not interrupted; it is abandoned once the task has failed.
        box: list[ActionOutcome] = []
        worker = threading.Thread(
            target=lambda: box.append(self._settle(name, action, context)),
            name=f"wavebuild-action-{name}",
            daemon=True,
        )
        worker.start()
        worker.join(timeout)
        if worker.is_alive():
            logger.warning("Task '%s' exceeded its %.2fs timeout", name, timeout)
            return ActionOutcome(succeeded=False, error=TaskTimeout(name, timeout))
        return box[0]

    def _settle(self, name: str, action: Action, context: ActionContext) -> ActionOutcome:
        try:
            if action.kind is ActionKind.SYNC:
                self._run_sync(name, action, context)
            elif action.kind is ActionKind.CALLBACK:
                self._run_callback(name, action, context)
            elif action.kind is ActionKind.STREAM:
                self._run_stream(name, action, context)
            elif action.kind is ActionKind.COROUTINE:
                asyncio.run(action.fn(context))
            else:
                raise MalformedAction(name, f"unsupported action kind {action.kind!r}")
        except ActionFailure as exc:
            return ActionOutcome(succeeded=False, error=exc)
        except (Exception, asyncio.CancelledError) as exc:
            logger.debug("Task '%s' raised", name, exc_info=True)
            failure = ActionFailure(name, exc)
            failure.__cause__ = exc
            return ActionOutcome(succeeded=False, error=failure)
        return ActionOutcome(succeeded=True)

    @staticmethod
    def _run_sync(name: str, action: Action, context: ActionContext) -> None:
        result = action.fn(context)
        if inspect.isgenerator(result) or inspect.isasyncgen(result):
            if inspect.isgenerator(result):
                result.close()
            raise MalformedAction(name, "sync action returned a generator; register it as a stream action")
        if inspect.isawaitable(result):
            if inspect.iscoroutine(result):
                result.close()
            raise MalformedAction(name, "sync action returned an awaitable; register it as a coroutine action")

    @staticmethod
    def _run_callback(name: str, action: Action, context: ActionContext) -> None:
        done = DoneSignal(name)
        returned = action.fn(context, done)
        if returned is not None:
            if inspect.iscoroutine(returned):
                returned.close()
            raise MalformedAction(name, "callback action both returned a value and uses a done signal")
        done.wait()
        if done.calls > 1:
            raise MalformedAction(name, f"done signal called {done.calls} times")
        error = done.error
        if error is None:
            return
        failure = ActionFailure(name, error)
        if isinstance(error, BaseException):
            failure.__cause__ = error
        raise failure

    def _run_stream(self, name: str, action: Action, context: ActionContext) -> None:
        effects = action.fn(context)
        if isinstance(effects, AsyncIterable):
            asyncio.run(self._drain(name, effects, context))
            return
        if effects is None or isinstance(effects, (str, bytes)) or not isinstance(effects, Iterable):
            raise MalformedAction(
                name, f"stream action returned {type(effects).__name__}, expected an iterable or async iterable"
            )
        for effect in effects:
            self._settle_effect(name, effect, context)

    def _settle_effect(self, name: str, effect: Any, context: ActionContext) -> None:
        if isinstance(effect, Future):
            effect.result()
        elif inspect.isawaitable(effect):
            asyncio.run(_await(effect))
        elif isinstance(effect, Action):
            outcome = self._settle(name, effect, context)
            if outcome.error is not None:
                raise outcome.error

    async def _drain(self, name: str, effects: AsyncIterable[Any], context: ActionContext) -> None:
        async for effect in effects:
            if isinstance(effect, Future):
                await asyncio.wrap_future(effect)
            elif inspect.isawaitable(effect):
                await effect
            elif isinstance(effect, Action):
                outcome = await asyncio.to_thread(self._settle, name, effect, context)
                if outcome.error is not None:
                    raise outcome.error


async def _await(awaitable: Any) -> Any:
    return await awaitable
