"""Typer command handlers."""

from __future__ import annotations

import json
import logging
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Any

import typer
from pydantic import ValidationError

from core.errors import ConfigError, TaskGraphError
from core.logging_setup import setup_logging
from core.orchestrator import Orchestrator, RuntimeBundle, plan_tasks
from core.settings import RunOptions
from reporting.run_report import RunReport, TaskState

EXIT_TASK_FAILED = 1
EXIT_USAGE = 2


@contextmanager
def _handled_errors() -> Iterator[None]:
    """Turn configuration and resolution errors into exit code 2."""
    try:
        yield
    except (TaskGraphError, ConfigError) as exc:
        typer.echo(f"error: {exc}", err=True)
        raise typer.Exit(EXIT_USAGE) from exc


def _runtime(root: Path | None, verbose: bool = False) -> RuntimeBundle:
    bundle = Orchestrator(root=root).build()
    setup_logging(
        log_dir=bundle.paths["log_dir"],
        console_level=logging.DEBUG if verbose else logging.WARNING,
    )
    return bundle


def _run_options(base: RunOptions, **overrides: Any) -> RunOptions:
    update = {key: value for key, value in overrides.items() if value is not None}
    try:
        return RunOptions.model_validate({**base.model_dump(), **update})
    except ValidationError as exc:
        raise ConfigError(f"Invalid run options:\n{exc}") from exc


def _echo_progress(task: str, old_state: TaskState, new_state: TaskState, timestamp: datetime) -> None:
    typer.echo(f"[{timestamp.astimezone():%H:%M:%S}] {task}: {old_state} -> {new_state}")


def _render_report(report: RunReport) -> None:
    for record in report.records():
        line = f"{record.state.value:<10} {record.name}"
        if record.duration is not None:
            line += f" ({record.duration:.2f}s)"
        if record.error is not None:
            line += f" - {record.error}"
            if record.malformed:
                line += " [malformed action]"
        elif record.skip_reason:
            line += f" - {record.skip_reason}"
        typer.echo(line)
    summary = report.summary()
    typer.echo(
        f"Succeeded: {summary.succeeded} | Failed: {summary.failed} | "
        f"Skipped: {summary.skipped} | Elapsed: {summary.total_elapsed:.2f}s"
    )


def run(
    names: list[str],
    root: Path | None = None,
    concurrency: int | None = None,
    fail_fast: bool | None = None,
    timeout: float | None = None,
    as_json: bool = False,
    verbose: bool = False,
) -> None:
    """Execute the named tasks and their dependencies."""
    with _handled_errors():
        bundle = _runtime(root, verbose=verbose)
        options = _run_options(
            bundle.config.runner,
            concurrency_limit=concurrency,
            fail_fast=fail_fast,
            task_timeout_seconds=timeout,
        )
        progress: Callable[..., None] | None = None if as_json else _echo_progress
        report = bundle.run(names, options, progress=progress)

    if as_json:
        typer.echo(json.dumps(report.to_dict(), indent=2))
    else:
        _render_report(report)
    if not report.ok:
        raise typer.Exit(EXIT_TASK_FAILED)


def plan(names: list[str], root: Path | None = None, as_json: bool = False) -> None:
    """Show the waves a run would execute."""
    with _handled_errors():
        bundle = _runtime(root)
        execution_plan = plan_tasks(bundle.registry, names)
    if as_json:
        typer.echo(json.dumps({"requested": list(execution_plan.requested), "waves": execution_plan.waves}, indent=2))
        return
    for line in execution_plan.describe():
        typer.echo(line)


def list_tasks(root: Path | None = None) -> None:
    """List registered tasks in registration order."""
    with _handled_errors():
        bundle = _runtime(root)
    for name in bundle.registry.list():
        task = bundle.registry.get(name)
        typer.echo(f"{name}: {task.description}" if task.description else name)


def graph(root: Path | None = None) -> None:
    """Print each task with its dependencies and action style."""
    with _handled_errors():
        bundle = _runtime(root)
    for name in bundle.registry.list():
        task = bundle.registry.get(name)
        dependencies = ", ".join(task.dependencies) or "(no deps)"
        style = task.action.kind.value if task.action is not None else "group"
        typer.echo(f"{name} [{style}] <- {dependencies}")


def config_show(root: Path | None = None) -> None:
    """Show effective configuration and manifest."""
    with _handled_errors():
        bundle = _runtime(root)
    payload = {
        "config": bundle.config.model_dump(),
        "manifest": bundle.manifest.model_dump(),
        "paths": {key: str(value) for key, value in bundle.paths.items()},
    }
    typer.echo(json.dumps(payload, indent=2))
