"""Wave-by-wave executor with a bounded worker pool."""

from __future__ import annotations

import logging
from collections import deque
from collections.abc import Callable
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from datetime import datetime

from core.errors import ActionFailure
from core.event_bus import RUN_FINISHED, RUN_STARTED, TASK_TRANSITION, EventBus
from executor.action_adapter import ActionAdapter, ActionContext, ActionOutcome
from planner.execution_plan import ExecutionPlan
from planner.task_registry import Task
from reporting.run_report import RunReport, TaskState, TransitionEvent

logger = logging.getLogger("wavebuild.scheduler")

ContextFactory = Callable[[Task], ActionContext]
ProgressCallback = Callable[[str, TaskState, TaskState, datetime], None]


def _default_context(task: Task) -> ActionContext:
    return ActionContext(task_name=task.name)


class Scheduler:
    """Runs an execution plan; agnostic to what the actions do.

    Waves run in order. Inside a wave, tasks start in plan order with at most
    ``concurrency_limit`` actions in flight. A task whose dependencies did not
    all succeed is skipped without invoking its action.
    """

    def __init__(
        self,
        adapter: ActionAdapter | None = None,
        event_bus: EventBus | None = None,
        progress: ProgressCallback | None = None,
        context_factory: ContextFactory | None = None,
    ) -> None:
        self.adapter = adapter or ActionAdapter()
        self.event_bus = event_bus
        self.progress = progress
        self.context_factory = context_factory or _default_context

    def execute(
        self,
        plan: ExecutionPlan,
        concurrency_limit: int = 4,
        fail_fast: bool = True,
        task_timeout: float | None = None,
    ) -> RunReport:
        """Run every task of ``plan`` and return the finalized report.

        ``task_timeout`` applies to tasks that do not set their own.
        """
        if concurrency_limit < 1:
            raise ValueError("concurrency_limit must be at least 1")

        report = RunReport(plan.order, listener=self._on_transition)
        self._emit(RUN_STARTED, {"requested": list(plan.requested), "tasks": len(plan)})
        logger.info(
            "Running %d task(s) in %d wave(s), concurrency=%d, fail_fast=%s",
            len(plan),
            len(plan.waves),
            concurrency_limit,
            fail_fast,
        )

        aborted = False
        with ThreadPoolExecutor(max_workers=concurrency_limit, thread_name_prefix="wavebuild") as pool:
            for wave in plan.waves:
                queue = deque(wave)
                in_flight: dict[Future[ActionOutcome], str] = {}
                while queue or in_flight:
                    while queue and len(in_flight) < concurrency_limit:
                        name = queue.popleft()
                        if aborted:
                            report.skip(name, reason="run aborted after failure")
                            continue
                        blocker = self._blocking_dependency(plan, report, name)
                        if blocker is not None:
                            report.skip(name, reason=f"dependency '{blocker}' {report.status(blocker)}")
                            continue
                        task = plan.tasks[name]
                        logger.debug("Starting '%s' (%s)", name, task.action.label if task.action else "group")
                        report.start(name)
                        future = pool.submit(self.adapter.invoke, task, self.context_factory(task), task_timeout)
                        in_flight[future] = name

                    if not in_flight:
                        continue
                    finished, _ = wait(in_flight, return_when=FIRST_COMPLETED)
                    for future in finished:
                        name = in_flight.pop(future)
                        outcome = self._outcome(name, future)
                        if outcome.succeeded:
                            report.succeed(name)
                            continue
                        report.fail(name, outcome.error)
                        logger.error("Task '%s' failed: %s", name, outcome.error)
                        if fail_fast and not aborted:
                            aborted = True
                            logger.warning("Fail-fast: no further tasks will be started")

        report.finalize()
        summary = report.summary()
        logger.info(
            "Run finished: %d succeeded, %d failed, %d skipped in %.2fs",
            summary.succeeded,
            summary.failed,
            summary.skipped,
            summary.total_elapsed,
        )
        self._emit(
            RUN_FINISHED,
            {
                "ok": summary.ok,
                "succeeded": summary.succeeded,
                "failed": summary.failed,
                "skipped": summary.skipped,
                "total_elapsed": summary.total_elapsed,
            },
        )
        return report

    @staticmethod
    def _blocking_dependency(plan: ExecutionPlan, report: RunReport, name: str) -> str | None:
        for dep in plan.dependencies_of(name):
            if report.status(dep) is not TaskState.SUCCEEDED:
                return dep
        return None

    @staticmethod
    def _outcome(name: str, future: Future[ActionOutcome]) -> ActionOutcome:
        try:
            return future.result()
        except (KeyboardInterrupt, SystemExit):
            raise
        except BaseException as exc:
            logger.exception("Action adapter crashed for task '%s'", name)
            failure = ActionFailure(name, exc)
            failure.__cause__ = exc
            return ActionOutcome(succeeded=False, error=failure)

    def _on_transition(self, event: TransitionEvent) -> None:
        if self.progress is not None:
            try:
                self.progress(event.task, event.old_state, event.new_state, event.timestamp)
            except Exception:
                logger.exception("Progress callback failed for task '%s'", event.task)
        self._emit(
            TASK_TRANSITION,
            {
                "task": event.task,
                "old_state": event.old_state.value,
                "new_state": event.new_state.value,
                "timestamp": event.timestamp,
            },
        )

    def _emit(self, event_name: str, payload: dict) -> None:
        if self.event_bus is not None:
            self.event_bus.emit(event_name, payload)
