"""Tests for the scheduler: serial invocation, isolation, timeouts, shutdown."""
from __future__ import annotations

import sys
import threading
import time
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from collectors.base import BaseCollector
from collectors.simple_collector import SimpleCollector
from failures import FailureLog
from models import FailureKind
from scheduler import PluginSlot, Scheduler, SlotState
from sinks import BufferSink


class SlowCollector(BaseCollector):
    """Sleeps in gather and tracks how many invocations overlap."""
    name = "slow"

    def __init__(self, sleep: float) -> None:
        self.sleep = sleep
        self.active = 0
        self.max_active = 0
        self.calls = 0
        self._lock = threading.Lock()

    def description(self) -> str:
        return "slow"

    def sample_config(self) -> str:
        return ""

    def gather(self, acc) -> None:
        with self._lock:
            self.active += 1
            self.calls += 1
            self.max_active = max(self.max_active, self.active)
        time.sleep(self.sleep)
        with self._lock:
            self.active -= 1
        acc.add("tick", self.calls)


class FailingCollector(BaseCollector):
    name = "bad"

    def description(self) -> str:
        return "always fails"

    def sample_config(self) -> str:
        return ""

    def gather(self, acc) -> None:
        raise RuntimeError("boom")


class GoodCollector(BaseCollector):
    name = "good"

    def description(self) -> str:
        return "always works"

    def sample_config(self) -> str:
        return ""

    def gather(self, acc) -> None:
        acc.add("ok", True)


class ExitingCollector(GoodCollector):
    def gather(self, acc) -> None:
        raise SystemExit(3)


class BlockingCollector(GoodCollector):
    def __init__(self) -> None:
        self.release = threading.Event()

    def gather(self, acc) -> None:
        self.release.wait(5)


class LateCollector(BlockingCollector):
    def gather(self, acc) -> None:
        self.release.wait(5)
        acc.add("after_stop", 1)


def _simple(ok: bool) -> SimpleCollector:
    c = SimpleCollector()
    c.configure({"ok": ok})
    return c


def test_run_once_success() -> None:
    sink = BufferSink()
    slot = PluginSlot("simple", _simple(True), sink)
    assert slot.run_once() is True
    assert [m.name for m in sink.get_buffer()] == ["simple_state"]
    assert slot.state is SlotState.IDLE
    assert slot.stats.runs == 1
    assert slot.stats.emitted == 1


def test_run_once_failure_is_reported_and_contained() -> None:
    sink = BufferSink()
    failures = FailureLog()
    slot = PluginSlot("simple", _simple(False), sink, failures=failures, instance_id="simple-bad")
    assert slot.run_once() is False
    assert slot.state is SlotState.IDLE
    [report] = failures.get_events()
    assert report.kind is FailureKind.GATHER_FAILURE
    assert report.plugin_name == "simple"
    assert report.instance_id == "simple-bad"
    assert "not ok" in report.error
    assert slot.run_once() is False
    assert slot.stats.failures == 2


def test_abnormal_termination_is_contained() -> None:
    failures = FailureLog()
    slot = PluginSlot("exiting", ExitingCollector(), BufferSink(), failures=failures)
    assert slot.run_once() is False
    [report] = failures.get_events()
    assert report.kind is FailureKind.GATHER_FAILURE
    assert "abnormally" in report.error


def test_gather_never_overlaps_when_slower_than_interval() -> None:
    interval = 0.05
    collector = SlowCollector(sleep=2 * interval)
    scheduler = Scheduler()
    scheduler.add(PluginSlot("slow", collector, BufferSink(), interval_sec=interval))
    scheduler.start()
    time.sleep(0.7)
    scheduler.stop(timeout=2.0)
    assert collector.calls >= 2
    assert collector.max_active == 1


def test_failing_instance_does_not_affect_healthy_one() -> None:
    sink = BufferSink()
    scheduler = Scheduler()
    scheduler.add(PluginSlot("bad", FailingCollector(), sink, interval_sec=0.05))
    good = scheduler.add(PluginSlot("good", GoodCollector(), sink, interval_sec=0.05))
    scheduler.start()
    time.sleep(0.6)
    scheduler.stop(timeout=2.0)
    names = {m.name for m in sink.get_buffer()}
    assert names == {"good_ok"}
    assert len(sink) >= 5
    assert good.stats.failures == 0
    assert scheduler.failures.count(FailureKind.GATHER_FAILURE) >= 3


def test_timeout_abandons_and_skips_until_done() -> None:
    collector = SlowCollector(sleep=0.3)
    sink = BufferSink()
    scheduler = Scheduler()
    slot = scheduler.add(PluginSlot("slow", collector, sink, interval_sec=0.05, timeout_sec=0.05))
    scheduler.start()
    time.sleep(0.8)
    scheduler.stop(timeout=1.0)
    time.sleep(0.4)
    assert collector.max_active == 1
    assert slot.stats.timeouts >= 1
    assert slot.stats.skips >= 1
    assert scheduler.failures.count(FailureKind.GATHER_TIMEOUT) >= 1
    assert scheduler.failures.count(FailureKind.GATHER_SKIPPED) >= 1
    # Every invocation timed out, so its late output never reached the sink
    assert len(sink) == 0


def test_duplicate_instance_ids_are_made_unique() -> None:
    scheduler = Scheduler()
    a = scheduler.add(PluginSlot("good", GoodCollector(), BufferSink()))
    b = scheduler.add(PluginSlot("good", GoodCollector(), BufferSink()))
    assert a.instance_id == "good"
    assert b.instance_id == "good-2"
    assert a.failures is scheduler.failures


def test_stop_abandons_blocked_gather_after_deadline() -> None:
    collector = BlockingCollector()
    scheduler = Scheduler()
    slot = scheduler.add(PluginSlot("blocking", collector, BufferSink(), interval_sec=1.0))
    scheduler.start()
    time.sleep(0.1)
    started = time.monotonic()
    abandoned = scheduler.stop(timeout=0.2)
    assert time.monotonic() - started < 1.5
    assert abandoned == ["blocking"]
    assert slot.state is SlotState.STOPPED
    assert not scheduler.running
    collector.release.set()


def test_stopped_slot_does_not_run() -> None:
    slot = PluginSlot("good", GoodCollector(), BufferSink())
    slot.mark_stopped()
    assert slot.run_once() is False
    assert slot.stats.runs == 0


def test_status_reports_stats() -> None:
    scheduler = Scheduler()
    scheduler.add(PluginSlot("good", GoodCollector(), BufferSink(), interval_sec=3))
    scheduler.gather_once()
    [status] = scheduler.status()
    assert status["instance_id"] == "good"
    assert status["state"] == "idle"
    assert status["interval_sec"] == 3.0
    assert status["runs"] == 1


def test_raising_failure_listener_does_not_stop_the_slot() -> None:
    failures = FailureLog()

    def broken_listener(report) -> None:
        raise RuntimeError("listener broke")

    failures.subscribe(broken_listener)
    scheduler = Scheduler(failures)
    slot = scheduler.add(PluginSlot("bad", FailingCollector(), BufferSink(), interval_sec=0.05))
    scheduler.start()
    time.sleep(0.5)
    alive = slot._thread is not None and slot._thread.is_alive()
    scheduler.stop(timeout=2.0)
    assert alive
    assert slot.stats.runs >= 3
    assert failures.count(FailureKind.GATHER_FAILURE) >= 3


def test_output_of_gather_abandoned_at_stop_is_dropped() -> None:
    collector = LateCollector()
    sink = BufferSink()
    scheduler = Scheduler()
    scheduler.add(PluginSlot("late", collector, sink, interval_sec=1.0))
    scheduler.start()
    time.sleep(0.1)
    assert scheduler.stop(timeout=0.1) == ["late"]
    collector.release.set()
    time.sleep(0.2)
    assert len(sink) == 0
