"""Build toolbox leaf action tests."""

from __future__ import annotations

import sys
from pathlib import Path

from core.settings import AppConfig, BuildManifest, CommandSettings
from executor.action_adapter import ActionAdapter, ActionContext
from planner.task_registry import Task
from tools.build_toolbox import BuildPaths, BuildToolbox

# Marks itself as started, then waits for a sibling run to start too.
WAIT_FOR_SIBLING = """\
import pathlib, sys, time
dest = pathlib.Path(sys.argv[1])
dest.with_name(dest.name + '.started').touch()
deadline = time.monotonic() + 5
while len(list(dest.parent.glob('*.started'))) < 2:
    if time.monotonic() > deadline:
        sys.exit(1)
    time.sleep(0.01)
dest.write_text('minified')
"""


def make_toolbox(root: Path, commands: CommandSettings) -> BuildToolbox:
    manifest = BuildManifest.model_validate(
        {"name": "client", "version": "1.0.0", "configurations": {"mainnet": {"code": "W", "node": "https://main"}}}
    )
    paths = BuildPaths(root=root, src_dir=root / "src", dist_dir=root / "dist", tmp_dir=root / "dist" / "tmp")
    return BuildToolbox(manifest=manifest, config=AppConfig(commands=commands), paths=paths)


def test_uglify_minifies_bundle_and_templates_concurrently(tmp_path: Path) -> None:
    toolbox = make_toolbox(tmp_path, CommandSettings(uglify=[sys.executable, "-c", WAIT_FOR_SIBLING, "{dest}"]))
    toolbox.paths.tmp_js.mkdir(parents=True)

    outcome = ActionAdapter().invoke(Task(name="uglify", action=toolbox.uglify()), ActionContext(task_name="uglify"))

    assert outcome.succeeded, outcome.error
    assert (toolbox.paths.tmp_js / "bundle.min.js").read_text(encoding="utf-8") == "minified"
    assert (toolbox.paths.tmp_js / "templates.min.js").read_text(encoding="utf-8") == "minified"


def test_uglify_failure_fails_the_task(tmp_path: Path) -> None:
    toolbox = make_toolbox(tmp_path, CommandSettings(uglify=["false"]))

    outcome = ActionAdapter().invoke(Task(name="uglify", action=toolbox.uglify()), ActionContext(task_name="uglify"))

    assert not outcome.succeeded
    assert not outcome.malformed
