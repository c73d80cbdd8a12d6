"""
Agent wiring: registry + configured inputs + sinks + scheduler.
"""
from __future__ import annotations

import signal
import threading
from typing import Any, Iterable, Mapping

import config
from collectors import register_all
from config import PluginConfig
from errors import PluginConfigError, UnknownPlugin
from failures import FailureLog
from models import FailureKind
from persistence import HistoryPersistence
from registry import PluginRegistry
from scheduler import PluginSlot, Scheduler
from sinks import BufferSink, FanoutSink, Sink
from utils import get_logger, hostname

logger = get_logger(__name__)


def build_registry(registry: PluginRegistry | None = None) -> PluginRegistry:
    """Explicit registration pass for every bundled plugin."""
    registry = registry if registry is not None else PluginRegistry()
    register_all(registry)
    return registry


class Agent:
    def __init__(
        self,
        registry: PluginRegistry,
        sink: Sink,
        failures: FailureLog | None = None,
        global_tags: Mapping[str, str] | None = None,
        jitter_sec: float = 0.0,
        shutdown_timeout_sec: float = 5.0,
    ) -> None:
        self.registry = registry
        self.sink = sink
        self.failures = failures or FailureLog()
        self.scheduler = Scheduler(self.failures)
        self.global_tags = dict(global_tags or {})
        self.jitter_sec = jitter_sec
        self.shutdown_timeout_sec = shutdown_timeout_sec
        self.buffer: BufferSink | None = None
        self.history: HistoryPersistence | None = None
        self._stop_event = threading.Event()

    @classmethod
    def from_config(cls, registry: PluginRegistry | None = None) -> Agent:
        """Build an agent from the loaded config (see config.load_config_file)."""
        registry = registry if registry is not None else build_registry()
        buffer = BufferSink(max_points=int(config.get("outputs.buffer.max_points", 10000)))
        sinks: list[Sink] = [buffer]
        history = None
        if config.get("outputs.history.enabled", False):
            history = HistoryPersistence(
                config.get("outputs.history.path"),
                max_points=int(config.get("outputs.history.max_points", 10000)),
                save_interval_sec=float(config.get("outputs.history.save_interval_sec", 60)),
            )
            # Keep what earlier runs saved; the next save rewrites the whole file
            history.load()
            sinks.append(history)

        tags = config.parse_tags(config.get("agent.tags"), "agent.tags")
        if not config.get("agent.omit_hostname", False):
            tags.setdefault("host", hostname())

        agent = cls(
            registry,
            FanoutSink(sinks) if len(sinks) > 1 else buffer,
            global_tags=tags,
            jitter_sec=float(config.get("agent.collection_jitter_sec", 0.0)),
            shutdown_timeout_sec=float(config.get("agent.shutdown_timeout_sec", 5.0)),
        )
        agent.buffer = buffer
        agent.history = history
        agent.load_inputs(config.plugin_configs())
        return agent

    def add_input(self, cfg: PluginConfig) -> PluginSlot | None:
        """Resolve and configure one input. Optional inputs that fail are reported and skipped."""
        self.registry.seal()
        try:
            collector = self.registry.instantiate(cfg.plugin)
            try:
                collector.configure(cfg.options)
            except (TypeError, ValueError) as e:
                raise PluginConfigError(f"{cfg.plugin}: {e}", plugin=cfg.plugin) from e
        except (UnknownPlugin, PluginConfigError) as e:
            if cfg.required:
                raise
            kind = FailureKind.UNKNOWN_PLUGIN if isinstance(e, UnknownPlugin) else FailureKind.PLUGIN_CONFIG
            self.failures.report(cfg.plugin, cfg.instance_id, kind, e)
            return None
        slot = PluginSlot(
            cfg.plugin,
            collector,
            self.sink,
            interval_sec=cfg.interval_sec,
            timeout_sec=cfg.timeout_sec,
            instance_id=cfg.instance_id,
            default_tags=self.global_tags,
            override_tags=cfg.tags,
            jitter_sec=self.jitter_sec,
        )
        return self.scheduler.add(slot)

    def load_inputs(self, configs: Iterable[PluginConfig]) -> list[PluginSlot]:
        slots = [self.add_input(cfg) for cfg in configs]
        return [s for s in slots if s is not None]

    def gather_once(self) -> dict[str, bool]:
        return self.scheduler.gather_once()

    def start(self) -> None:
        self.registry.seal()
        self._stop_event.clear()
        self.scheduler.start()

    def stop(self) -> list[str]:
        self._stop_event.set()
        abandoned = self.scheduler.stop(self.shutdown_timeout_sec)
        if self.history is not None:
            self.history.save()
        return abandoned

    def request_stop(self) -> None:
        self._stop_event.set()

    def run(self) -> None:
        """Start and block until interrupted (Ctrl-C or SIGTERM), then shut down."""
        if threading.current_thread() is threading.main_thread():
            signal.signal(signal.SIGTERM, lambda *_: self._stop_event.set())
        self.start()
        try:
            while not self._stop_event.wait(1.0):
                pass
        except KeyboardInterrupt:
            logger.info("Interrupted")
        finally:
            self.stop()

    def status(self) -> dict[str, Any]:
        return {
            "running": self.scheduler.running,
            "inputs": self.scheduler.status(),
            "failures": self.failures.count(),
            "buffered": len(self.buffer) if self.buffer is not None else None,
        }
