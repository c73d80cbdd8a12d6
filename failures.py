"""
Failure channel: record structured failure reports from the scheduler and keep
a bounded history.
"""
from __future__ import annotations

import threading
import time
from typing import Callable

from models import FailureKind, FailureReport
from utils import get_logger

logger = get_logger(__name__)


class FailureLog:
    """Thread-safe bounded history of failure reports, mirrored to the log."""

    def __init__(self, max_events: int = 500) -> None:
        self.events: list[FailureReport] = []
        self._max_events = max_events
        self._listeners: list[Callable[[FailureReport], None]] = []
        self._lock = threading.Lock()

    def subscribe(self, listener: Callable[[FailureReport], None]) -> None:
        self._listeners.append(listener)

    def report(
        self,
        plugin_name: str,
        instance_id: str,
        kind: FailureKind,
        error: BaseException | str,
    ) -> FailureReport:
        event = FailureReport(
            plugin_name=plugin_name,
            instance_id=instance_id,
            kind=kind,
            error=error if isinstance(error, str) else f"{type(error).__name__}: {error}",
            timestamp=time.time(),
        )
        logger.warning("[%s] %s: %s", instance_id, kind.value, event.error)
        with self._lock:
            self.events.append(event)
            while len(self.events) > self._max_events:
                self.events.pop(0)
        for listener in self._listeners:
            try:
                listener(event)
            except Exception:
                logger.exception("Failure listener %r raised", listener)
        return event

    def get_events(self, limit: int = 100, instance_id: str | None = None) -> list[FailureReport]:
        """Newest first."""
        with self._lock:
            events = [e for e in self.events if instance_id is None or e.instance_id == instance_id]
        return list(reversed(events[-limit:]))

    def count(self, kind: FailureKind | None = None) -> int:
        with self._lock:
            return sum(1 for e in self.events if kind is None or e.kind == kind)

    def clear_events(self) -> None:
        with self._lock:
            self.events.clear()
