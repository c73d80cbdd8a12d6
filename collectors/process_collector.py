"""
Process collector: status counts plus the top N processes by CPU and memory.
"""
from __future__ import annotations

from collections import Counter
from typing import TYPE_CHECKING, Any

import psutil

from collectors.base import BaseCollector
from errors import PluginConfigError
from utils import clamp

if TYPE_CHECKING:
    from accumulator import Accumulator
    from registry import PluginRegistry

_SORT_KEYS = ("cpu_percent", "memory_percent")


class ProcessCollector(BaseCollector):
    name = "processes"
    options = ("top_n", "sort_by")

    def __init__(self) -> None:
        self.top_n = 20
        self.sort_by = "cpu_percent"

    def description(self) -> str:
        return "Process counts by status and the top N processes"

    def sample_config(self) -> str:
        return """
- plugin: processes
  # Number of processes reported individually (1-200, 0 disables)
  top_n: 20
  # cpu_percent or memory_percent
  sort_by: cpu_percent
"""

    def validate(self) -> None:
        if self.sort_by not in _SORT_KEYS:
            raise PluginConfigError(
                f"processes: sort_by must be one of {', '.join(_SORT_KEYS)}", plugin=self.name
            )
        self.top_n = int(clamp(int(self.top_n), 0, 200))

    def gather(self, acc: Accumulator) -> None:
        procs: list[dict[str, Any]] = []
        statuses: Counter[str] = Counter()
        for p in psutil.process_iter(attrs=["pid", "name", "memory_percent", "memory_info", "status", "username", "num_threads"]):
            try:
                pinfo = p.info
                statuses[pinfo.get("status") or "unknown"] += 1
                mem_info = pinfo.get("memory_info")
                rss = (getattr(mem_info, "rss", 0) or 0) / (1024 * 1024) if mem_info else 0.0
                try:
                    cpu = p.cpu_percent(interval=None)
                except (psutil.NoSuchProcess, psutil.AccessDenied):
                    cpu = 0.0
                procs.append({
                    "pid": pinfo.get("pid", 0),
                    "name": (pinfo.get("name") or "")[:80],
                    "status": pinfo.get("status") or "",
                    "username": pinfo.get("username") or "",
                    "cpu_percent": float(cpu),
                    "memory_percent": float(pinfo.get("memory_percent") or 0),
                    "memory_rss_mb": float(rss),
                    "num_threads": int(pinfo.get("num_threads") or 0),
                })
            except (psutil.NoSuchProcess, psutil.AccessDenied, KeyError):
                continue

        totals: dict[str, Any] = {"total": sum(statuses.values())}
        for status, n in statuses.items():
            totals[status.replace("-", "_")] = n
        acc.add_fields("total", totals)

        procs.sort(key=lambda x: x[self.sort_by], reverse=True)
        for proc in procs[: self.top_n]:
            tags = {"pid": str(proc["pid"])}
            for key in ("name", "status", "username"):
                if proc[key]:
                    tags[key] = proc[key]
            acc.add_fields("top", {
                "cpu_percent": proc["cpu_percent"],
                "memory_percent": proc["memory_percent"],
                "memory_rss_mb": proc["memory_rss_mb"],
                "num_threads": proc["num_threads"],
            }, tags)


def register(registry: PluginRegistry) -> None:
    registry.register(ProcessCollector.name, ProcessCollector)
