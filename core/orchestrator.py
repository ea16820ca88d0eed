"""Top-level application orchestrator."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path

from core.config_loader import ensure_runtime_dirs, load_app_config, load_manifest
from core.event_bus import TASK_TRANSITION, EventBus
from core.settings import AppConfig, BuildManifest, RunOptions
from executor.action_adapter import ActionAdapter, ActionContext
from executor.scheduler import ProgressCallback, Scheduler
from planner.dependency_graph import resolve
from planner.execution_plan import ExecutionPlan
from planner.task_builder import build_registry
from planner.task_registry import Task, TaskRegistry
from reporting.run_report import RunReport
from reporting.transition_log import TransitionLog
from tools.build_toolbox import BuildPaths, BuildToolbox

logger = logging.getLogger("wavebuild.orchestrator")


def plan_tasks(registry: TaskRegistry, names: Iterable[str] = ()) -> ExecutionPlan:
    """Resolve ``names``; no names means every registered task."""
    requested = list(names) or list(registry.list())
    return resolve(registry, requested)


def run_tasks(
    registry: TaskRegistry,
    names: Iterable[str] = (),
    options: RunOptions | None = None,
    *,
    scheduler: Scheduler | None = None,
) -> RunReport:
    """Resolve and execute ``names`` against ``registry``.

    Resolution errors propagate before any task starts. The registry is held
    frozen for the whole run.
    """
    options = options or RunOptions()
    scheduler = scheduler or Scheduler()
    with registry.frozen():
        plan = plan_tasks(registry, names)
        return scheduler.execute(
            plan,
            concurrency_limit=options.concurrency_limit,
            fail_fast=options.fail_fast,
            task_timeout=options.task_timeout_seconds,
        )


@dataclass
class RuntimeBundle:
    """Holds initialized runtime components."""

    root: Path
    config: AppConfig
    manifest: BuildManifest
    paths: dict[str, Path]
    registry: TaskRegistry
    event_bus: EventBus
    transition_log: TransitionLog

    def scheduler(self, progress: ProgressCallback | None = None) -> Scheduler:
        dist_dir = self.paths["dist_dir"]

        def context_for(task: Task) -> ActionContext:
            return ActionContext(task_name=task.name, root=self.root, dist_dir=dist_dir, manifest=self.manifest)

        return Scheduler(
            adapter=ActionAdapter(),
            event_bus=self.event_bus,
            progress=progress,
            context_factory=context_for,
        )

    def run(
        self,
        names: Iterable[str] = (),
        options: RunOptions | None = None,
        progress: ProgressCallback | None = None,
    ) -> RunReport:
        return run_tasks(
            self.registry,
            names,
            options or self.config.runner,
            scheduler=self.scheduler(progress),
        )


class Orchestrator:
    """Creates and wires runtime components for CLI use."""

    def __init__(self, root: Path | None = None) -> None:
        self.root = (root or Path.cwd()).resolve()

    def build(self) -> RuntimeBundle:
        config = load_app_config(self.root)
        manifest = load_manifest(self.root)
        paths = ensure_runtime_dirs(self.root, config)

        toolbox = BuildToolbox(manifest=manifest, config=config, paths=BuildPaths.from_runtime(paths))
        registry = build_registry(manifest, toolbox)

        event_bus = EventBus()
        transition_log = TransitionLog(paths["transition_log"])
        event_bus.subscribe(TASK_TRANSITION, transition_log.on_event)
        logger.debug("Registered %d task(s) for %s %s", len(registry), manifest.name, manifest.version)

        return RuntimeBundle(
            root=self.root,
            config=config,
            manifest=manifest,
            paths=paths,
            registry=registry,
            event_bus=event_bus,
            transition_log=transition_log,
        )
