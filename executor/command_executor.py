"""External command execution for leaf actions."""

from __future__ import annotations

import logging
import subprocess
from collections.abc import Mapping, Sequence
from pathlib import Path

logger = logging.getLogger("wavebuild.command")


class CommandError(RuntimeError):
    """A command exited non-zero or could not be started."""

    def __init__(self, command: Sequence[str], returncode: int, stderr: str = "") -> None:
        self.command = list(command)
        self.returncode = returncode
        self.stderr = stderr
        detail = f": {stderr.strip()[:500]}" if stderr.strip() else ""
        super().__init__(f"Command {' '.join(self.command)!r} exited with {returncode}{detail}")


def run_command(command: list[str], cwd: Path | None = None) -> tuple[int, str, str]:
    """Run command and return (exit_code, stdout, stderr)."""
    proc = subprocess.run(command, cwd=cwd, capture_output=True, text=True)
    return proc.returncode, proc.stdout, proc.stderr


def render_command(template: Sequence[str], values: Mapping[str, object]) -> list[str]:
    """Substitute ``{name}`` placeholders in every argv entry."""
    try:
        return [part.format(**values) for part in template]
    except KeyError as exc:
        raise ValueError(f"Unknown placeholder {exc} in command {list(template)!r}") from None


def check_command(command: list[str], cwd: Path | None = None) -> str:
    """Run command, raise CommandError on failure, return stdout."""
    logger.debug("exec: %s (cwd=%s)", " ".join(command), cwd)
    try:
        code, stdout, stderr = run_command(command, cwd=cwd)
    except FileNotFoundError as exc:
        raise CommandError(command, 127, str(exc)) from exc
    if code != 0:
        raise CommandError(command, code, stderr or stdout)
    return stdout
