"""CLI entrypoint for wavebuild."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer

from ui.cli import commands

app = typer.Typer(help="Declarative task-graph build runner")
config_app = typer.Typer(help="Configuration commands")

ROOT_OPTION = typer.Option(None, "--root", help="Project root holding config/ (defaults to cwd)")


@app.command("run")
def run_cmd(
    names: Optional[list[str]] = typer.Argument(None, help="Tasks to run; none means every task"),
    root: Optional[Path] = ROOT_OPTION,
    concurrency: Optional[int] = typer.Option(None, "--concurrency", "-j", min=1, help="Max tasks in flight"),
    fail_fast: Optional[bool] = typer.Option(
        None, "--fail-fast/--keep-going", help="Stop scheduling after the first failure"
    ),
    timeout: Optional[float] = typer.Option(None, "--timeout", help="Per-task timeout in seconds"),
    as_json: bool = typer.Option(False, "--json", help="Print the run report as JSON"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging on stderr"),
) -> None:
    """Run tasks and their dependencies."""
    commands.run(
        names=names or [],
        root=root,
        concurrency=concurrency,
        fail_fast=fail_fast,
        timeout=timeout,
        as_json=as_json,
        verbose=verbose,
    )


@app.command("plan")
def plan_cmd(
    names: Optional[list[str]] = typer.Argument(None, help="Tasks to plan; none means every task"),
    root: Optional[Path] = ROOT_OPTION,
    as_json: bool = typer.Option(False, "--json", help="Print waves as JSON"),
) -> None:
    """Show execution waves without running anything."""
    commands.plan(names=names or [], root=root, as_json=as_json)


@app.command("list")
def list_cmd(root: Optional[Path] = ROOT_OPTION) -> None:
    """List registered tasks."""
    commands.list_tasks(root=root)


@app.command("graph")
def graph_cmd(root: Optional[Path] = ROOT_OPTION) -> None:
    """Show the dependency graph."""
    commands.graph(root=root)


@config_app.command("show")
def config_show_cmd(root: Optional[Path] = ROOT_OPTION) -> None:
    """Show effective configuration."""
    commands.config_show(root=root)


app.add_typer(config_app, name="config")


def main() -> None:
    """Console script entrypoint."""
    app()


if __name__ == "__main__":
    main()
