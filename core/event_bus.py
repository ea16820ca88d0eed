"""In-process event bus carrying run and task transition events."""

from __future__ import annotations

import logging
import threading
from collections import defaultdict
from collections.abc import Callable
from typing import Any

EventHandler = Callable[[dict[str, Any]], None]

RUN_STARTED = "run_started"
TASK_TRANSITION = "task_transition"
RUN_FINISHED = "run_finished"

logger = logging.getLogger("wavebuild.events")


class EventBus:
    """Dispatches events to subscribers by event name.

    Events are emitted from scheduler worker threads, so the handler table is
    guarded and handlers are called on a snapshot. A failing handler is logged
    and does not affect the run or the remaining handlers.
    """

    def __init__(self) -> None:
        self._handlers: dict[str, list[EventHandler]] = defaultdict(list)
        self._lock = threading.Lock()

    def subscribe(self, event_name: str, handler: EventHandler) -> None:
        """Register a callback for an event."""
        with self._lock:
            self._handlers[event_name].append(handler)

    def unsubscribe(self, event_name: str, handler: EventHandler) -> None:
        with self._lock:
            handlers = self._handlers.get(event_name, [])
            if handler in handlers:
                handlers.remove(handler)

    def emit(self, event_name: str, payload: dict[str, Any]) -> None:
        """Emit an event to all subscribers."""
        with self._lock:
            handlers = list(self._handlers.get(event_name, []))
        for handler in handlers:
            try:
                handler(payload)
            except Exception:
                logger.exception("Event handler failed for '%s'", event_name)
