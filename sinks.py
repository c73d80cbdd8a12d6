"""
Downstream sinks. Every sink here is safe for concurrent emit() calls from
several plugin threads.
"""
from __future__ import annotations

import queue
import threading
from collections import deque
from typing import TYPE_CHECKING, Iterable, Protocol

if TYPE_CHECKING:
    from models import Measurement


class Sink(Protocol):
    def emit(self, measurement: Measurement) -> None:
        ...


class QueueSink:
    """Hand-off through a queue.Queue; a consumer thread drains it."""

    def __init__(self, maxsize: int = 0) -> None:
        self.queue: queue.Queue[Measurement] = queue.Queue(maxsize=maxsize)

    def emit(self, measurement: Measurement) -> None:
        self.queue.put(measurement)

    def drain(self, max_items: int | None = None) -> list[Measurement]:
        out: list[Measurement] = []
        while max_items is None or len(out) < max_items:
            try:
                out.append(self.queue.get_nowait())
            except queue.Empty:
                break
        return out


class BufferSink:
    """Bounded in-memory buffer keeping the most recent measurements."""

    def __init__(self, max_points: int = 10000) -> None:
        self.max_points = max_points
        self._buffer: deque[Measurement] = deque(maxlen=max_points)
        self._lock = threading.Lock()

    def emit(self, measurement: Measurement) -> None:
        with self._lock:
            self._buffer.append(measurement)

    def get_buffer(self, limit: int | None = None) -> list[Measurement]:
        with self._lock:
            items = list(self._buffer)
        return items if limit is None else items[-limit:]

    def latest_by_series(self) -> list[Measurement]:
        """Most recent measurement per (name, tags) series, in first-seen order."""
        latest: dict[tuple, Measurement] = {}
        for m in self.get_buffer():
            latest[(m.name, tuple(sorted(m.tags.items())))] = m
        return list(latest.values())

    def clear(self) -> None:
        with self._lock:
            self._buffer.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._buffer)


class FanoutSink:
    """Forward each measurement to several sinks, in order."""

    def __init__(self, sinks: Iterable[Sink]) -> None:
        self.sinks = list(sinks)

    def emit(self, measurement: Measurement) -> None:
        for sink in self.sinks:
            sink.emit(measurement)
