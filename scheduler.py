"""
Scheduler: drive each configured plugin instance on its own timer thread.

Per instance, gather() runs strictly serially: the timer waits for the running
invocation to finish before arming the next tick. An invocation that exceeds
its timeout is abandoned (its accumulator is closed) and later ticks are
skipped until it actually returns. Different instances never wait on each other.
"""
from __future__ import annotations

import random
import threading
import time
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any, Mapping

from accumulator import Accumulator, check_tags
from errors import GatherFailure, GatherSkipped, GatherTimeout
from failures import FailureLog
from models import FailureKind
from utils import get_logger

if TYPE_CHECKING:
    from collectors.base import BaseCollector
    from sinks import Sink

logger = get_logger(__name__)


class SlotState(str, Enum):
    IDLE = "idle"
    GATHERING = "gathering"
    ERRORED = "errored"
    STOPPED = "stopped"


@dataclass
class SlotStats:
    runs: int = 0
    failures: int = 0
    timeouts: int = 0
    skips: int = 0
    emitted: int = 0
    last_duration: float = 0.0
    last_run: float = 0.0
    last_error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "runs": self.runs,
            "failures": self.failures,
            "timeouts": self.timeouts,
            "skips": self.skips,
            "emitted": self.emitted,
            "last_duration": self.last_duration,
            "last_run": self.last_run,
            "last_error": self.last_error,
        }


class _Invocation:
    """One gather() call on a daemon thread, so an abandoned call never blocks exit."""

    def __init__(self, collector: BaseCollector, acc: Accumulator, name: str) -> None:
        self.collector = collector
        self.acc = acc
        self.error: BaseException | None = None
        self._done = threading.Event()
        self._thread = threading.Thread(target=self._run, name=name, daemon=True)

    def _run(self) -> None:
        try:
            self.collector.gather(self.acc)
        except BaseException as e:  # SystemExit from collector code must not escape the thread
            self.error = e
        finally:
            self._done.set()

    def start(self) -> None:
        self._thread.start()

    def wait(self, timeout: float | None) -> bool:
        return self._done.wait(timeout)

    def done(self) -> bool:
        return self._done.is_set()


class PluginSlot:
    """Exclusive owner of one collector instance and its schedule."""

    def __init__(
        self,
        plugin_name: str,
        collector: BaseCollector,
        sink: Sink,
        failures: FailureLog | None = None,
        interval_sec: float = 10.0,
        timeout_sec: float | None = None,
        instance_id: str | None = None,
        default_tags: Mapping[str, str] | None = None,
        override_tags: Mapping[str, str] | None = None,
        jitter_sec: float = 0.0,
    ) -> None:
        if interval_sec <= 0:
            raise ValueError(f"{plugin_name}: interval must be positive")
        self.plugin_name = plugin_name
        self.instance_id = instance_id or plugin_name
        self.collector = collector
        self.sink = sink
        self.failures = failures or FailureLog()
        self.interval_sec = float(interval_sec)
        self.timeout_sec = timeout_sec if timeout_sec and timeout_sec > 0 else None
        self.default_tags = check_tags(default_tags)
        self.override_tags = check_tags(override_tags)
        self.jitter_sec = jitter_sec
        self.state = SlotState.IDLE
        self.stats = SlotStats()
        self._pending: _Invocation | None = None
        self._current: _Invocation | None = None
        self._stopped = False
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    def new_accumulator(self) -> Accumulator:
        return Accumulator(
            self.plugin_name,
            self.sink,
            default_tags=self.default_tags,
            override_tags=self.override_tags,
            instance_id=self.instance_id,
        )

    def in_flight(self) -> bool:
        return self._pending is not None and not self._pending.done()

    def run_once(self) -> bool:
        """Run one tick synchronously. Returns True if gather() completed without error."""
        if self._stopped:
            return False
        if self.in_flight():
            self.stats.skips += 1
            self._fail(
                FailureKind.GATHER_SKIPPED,
                GatherSkipped("previous invocation still running", plugin=self.plugin_name),
            )
            return False

        acc = self.new_accumulator()
        call = _Invocation(self.collector, acc, name=f"gather-{self.instance_id}")
        self.state = SlotState.GATHERING
        started = time.monotonic()
        self.stats.last_run = time.time()
        self._current = call
        call.start()
        finished = call.wait(self.timeout_sec)
        self._current = None
        self.stats.runs += 1
        self.stats.last_duration = time.monotonic() - started

        if not finished:
            acc.close()
            self._pending = call
            self.stats.timeouts += 1
            self.stats.emitted += acc.emitted
            self._fail(
                FailureKind.GATHER_TIMEOUT,
                GatherTimeout(f"gather exceeded {self.timeout_sec}s, abandoned", plugin=self.plugin_name),
            )
            return False

        self._pending = None
        self.stats.emitted += acc.emitted
        if call.error is not None:
            self.stats.failures += 1
            error = call.error
            if not isinstance(error, Exception):
                error = GatherFailure(f"gather terminated abnormally: {error!r}", plugin=self.plugin_name)
            self._fail(FailureKind.GATHER_FAILURE, error)
            return False

        self.stats.last_error = None
        self._settle()
        return True

    def _settle(self) -> None:
        self.state = SlotState.STOPPED if self._stopped else SlotState.IDLE

    def _fail(self, kind: FailureKind, error: BaseException) -> None:
        if not self._stopped:
            self.state = SlotState.ERRORED
        self.stats.last_error = f"{type(error).__name__}: {error}"
        self.failures.report(self.plugin_name, self.instance_id, kind, error)
        self._settle()

    def _loop(self) -> None:
        if self.jitter_sec > 0 and self._stop.wait(random.uniform(0, self.jitter_sec)):
            return
        next_tick = time.monotonic()
        while not self._stop.is_set():
            try:
                self.run_once()
            except Exception:
                logger.exception("%s: tick failed", self.instance_id)
                self._settle()
            now = time.monotonic()
            next_tick += self.interval_sec
            if next_tick <= now:
                # Missed ticks are dropped; stay on the interval grid
                missed = int((now - next_tick) // self.interval_sec) + 1
                next_tick += missed * self.interval_sec
                logger.debug("%s: gather overran interval, dropped %d tick(s)", self.instance_id, missed)
            if self._stop.wait(next_tick - now):
                break

    def start(self) -> None:
        if self._thread is not None:
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._loop, name=f"slot-{self.instance_id}", daemon=True)
        self._thread.start()

    def request_stop(self) -> None:
        self._stop.set()

    def join(self, timeout: float | None = None) -> bool:
        """Wait for the timer thread. Returns False if it is still busy after timeout."""
        if self._thread is not None:
            self._thread.join(timeout)
            if self._thread.is_alive():
                return False
        return True

    def abandon(self) -> None:
        """Close the accumulator of any gather still running; its later output is dropped."""
        for call in (self._current, self._pending):
            if call is not None and not call.done():
                call.acc.close()

    def mark_stopped(self) -> None:
        self._stopped = True
        self.state = SlotState.STOPPED

    def status(self) -> dict[str, Any]:
        return {
            "instance_id": self.instance_id,
            "plugin": self.plugin_name,
            "state": self.state.value,
            "interval_sec": self.interval_sec,
            "timeout_sec": self.timeout_sec,
            **self.stats.to_dict(),
        }


class Scheduler:
    """Owns every PluginSlot; starts and stops their timers."""

    def __init__(self, failures: FailureLog | None = None) -> None:
        self.failures = failures or FailureLog()
        self.slots: list[PluginSlot] = []
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    def add(self, slot: PluginSlot) -> PluginSlot:
        if self._running:
            raise RuntimeError("cannot add slots to a running scheduler")
        taken = {s.instance_id for s in self.slots}
        if slot.instance_id in taken:
            n = 2
            while f"{slot.instance_id}-{n}" in taken:
                n += 1
            slot.instance_id = f"{slot.instance_id}-{n}"
        slot.failures = self.failures
        self.slots.append(slot)
        return slot

    def start(self) -> None:
        if self._running:
            return
        self._running = True
        for slot in self.slots:
            slot.start()
        logger.info("Scheduler started with %d input(s)", len(self.slots))

    def gather_once(self) -> dict[str, bool]:
        """One synchronous tick of every slot, in order."""
        return {slot.instance_id: slot.run_once() for slot in self.slots}

    def stop(self, timeout: float = 5.0) -> list[str]:
        """Stop arming ticks and wait up to timeout for in-flight gathers.
        Returns instance ids whose invocation was abandoned."""
        for slot in self.slots:
            slot.request_stop()
        deadline = time.monotonic() + timeout
        abandoned: list[str] = []
        for slot in self.slots:
            if not slot.join(max(0.0, deadline - time.monotonic())) or slot.in_flight():
                abandoned.append(slot.instance_id)
                slot.abandon()
            slot.mark_stopped()
        if abandoned:
            logger.warning("Abandoned in-flight gather for: %s", ", ".join(abandoned))
        self._running = False
        logger.info("Scheduler stopped")
        return abandoned

    def status(self) -> list[dict[str, Any]]:
        return [slot.status() for slot in self.slots]
