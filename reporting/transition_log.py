"""JSONL log of task state transitions."""

from __future__ import annotations

import json
import logging
import threading
from datetime import UTC, datetime
from pathlib import Path
from typing import Any


class TransitionLog:
    """Appends one JSON line per task transition."""

    def __init__(self, log_path: Path, run_id: str | None = None) -> None:
        self.log_path = log_path
        self.log_path.parent.mkdir(parents=True, exist_ok=True)
        self.run_id = run_id or datetime.now(UTC).strftime("%Y%m%dT%H%M%S%fZ")
        self.logger = logging.getLogger("wavebuild.transitions")
        self._lock = threading.Lock()

    def log(self, task: str, old_state: str, new_state: str, timestamp: datetime) -> None:
        """Append one JSONL transition record."""
        record = {
            "run_id": self.run_id,
            "timestamp": timestamp.isoformat(),
            "task": task,
            "from": old_state,
            "to": new_state,
        }
        self._write(record)
        self.logger.debug(json.dumps(record, ensure_ascii=True))

    def on_event(self, payload: dict[str, Any]) -> None:
        """Event-bus handler for ``task_transition`` payloads."""
        self.log(
            task=str(payload["task"]),
            old_state=str(payload["old_state"]),
            new_state=str(payload["new_state"]),
            timestamp=payload["timestamp"],
        )

    def _write(self, record: dict[str, Any]) -> None:
        with self._lock, self.log_path.open("a", encoding="utf-8") as fh:
            fh.write(json.dumps(record, ensure_ascii=True) + "\n")

    def read(self) -> list[dict[str, Any]]:
        if not self.log_path.exists():
            return []
        with self.log_path.open("r", encoding="utf-8") as fh:
            return [json.loads(line) for line in fh if line.strip()]
