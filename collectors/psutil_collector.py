"""
Psutil-based collectors: CPU, memory, disk and system/battery.
"""
from __future__ import annotations

import platform
import time
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

import psutil

from collectors.base import BaseCollector
from errors import PluginConfigError

if TYPE_CHECKING:
    from accumulator import Accumulator
    from registry import PluginRegistry


def _tags(**kwargs: Any) -> dict[str, str]:
    """Drop empty values; tag values must be non-empty strings."""
    return {k: str(v) for k, v in kwargs.items() if v not in (None, "")}


class CpuCollector(BaseCollector):
    name = "cpu"
    options = ("percpu", "totalcpu", "load")

    def __init__(self) -> None:
        self.percpu = False
        self.totalcpu = True
        self.load = True

    def description(self) -> str:
        return "CPU utilisation percent, core count and load average"

    def sample_config(self) -> str:
        return """
- plugin: cpu
  # Report usage per logical CPU (tag cpu=cpuN)
  percpu: false
  # Report total usage (tag cpu=cpu-total)
  totalcpu: true
  # Report 1/5/15 minute load average when the platform has one
  load: true
"""

    def gather(self, acc: Accumulator) -> None:
        # interval=None compares against the previous call, which is the last tick
        if self.totalcpu:
            acc.add_fields(
                "usage",
                {"usage_percent": float(psutil.cpu_percent(interval=None))},
                {"cpu": "cpu-total"},
            )
        if self.percpu:
            for i, pct in enumerate(psutil.cpu_percent(interval=None, percpu=True)):
                acc.add_fields("usage", {"usage_percent": float(pct)}, {"cpu": f"cpu{i}"})
        acc.add("count", psutil.cpu_count() or 0)

        if self.load:
            try:
                load = psutil.getloadavg()
            except (AttributeError, OSError):
                return
            acc.add_fields("load", {"load1": load[0], "load5": load[1], "load15": load[2]})


class MemCollector(BaseCollector):
    name = "mem"
    options = ("swap",)

    def __init__(self) -> None:
        self.swap = True

    def description(self) -> str:
        return "Virtual memory and swap usage"

    def sample_config(self) -> str:
        return """
- plugin: mem
  # Also report swap usage
  swap: true
"""

    def gather(self, acc: Accumulator) -> None:
        vmem = psutil.virtual_memory()
        acc.add_fields("virtual", {
            "total": int(vmem.total),
            "used": int(vmem.used),
            "available": int(vmem.available),
            "used_percent": float(vmem.percent),
        })
        if self.swap:
            swap = psutil.swap_memory()
            acc.add_fields("swap", {
                "total": int(swap.total),
                "used": int(swap.used),
                "free": int(swap.free),
                "used_percent": float(swap.percent),
            })


class DiskCollector(BaseCollector):
    name = "disk"
    options = ("mount_points", "ignore_fs", "max_mounts", "io")

    def __init__(self) -> None:
        self.mount_points: list[str] = []
        self.ignore_fs: list[str] = ["tmpfs", "devtmpfs", "squashfs", "overlay"]
        self.max_mounts = 20
        self.io = True

    def description(self) -> str:
        return "Disk usage per mount point and cumulative disk I/O"

    def sample_config(self) -> str:
        return """
- plugin: disk
  # Only these mount points (empty = all physical mounts)
  mount_points: []
  # Filesystem types to skip
  ignore_fs: [tmpfs, devtmpfs, squashfs, overlay]
  max_mounts: 20
  # Report cumulative read/write counters
  io: true
"""

    def validate(self) -> None:
        if not isinstance(self.mount_points, list) or not isinstance(self.ignore_fs, list):
            raise PluginConfigError("disk: mount_points and ignore_fs must be lists", plugin=self.name)

    def gather(self, acc: Accumulator) -> None:
        count = 0
        for part in psutil.disk_partitions(all=False):
            if count >= self.max_mounts:
                break
            if self.mount_points and part.mountpoint not in self.mount_points:
                continue
            if part.fstype in self.ignore_fs:
                continue
            try:
                usage = psutil.disk_usage(part.mountpoint)
            except (PermissionError, OSError):
                continue
            acc.add_fields(
                "usage",
                {
                    "total": int(usage.total),
                    "used": int(usage.used),
                    "free": int(usage.free),
                    "used_percent": float(usage.percent),
                },
                _tags(path=part.mountpoint, device=part.device, fstype=part.fstype),
            )
            count += 1

        if self.io:
            io = psutil.disk_io_counters()
            if io is not None:
                acc.add_fields("io", {
                    "read_bytes": int(io.read_bytes),
                    "write_bytes": int(io.write_bytes),
                    "read_count": int(io.read_count),
                    "write_count": int(io.write_count),
                })


class SystemCollector(BaseCollector):
    name = "system"
    options = ("battery",)

    def __init__(self) -> None:
        self.battery = True

    def description(self) -> str:
        return "Host identity, uptime, boot time and battery state"

    def sample_config(self) -> str:
        return """
- plugin: system
  # Report battery percent and charger state when a battery is present
  battery: true
"""

    def gather(self, acc: Accumulator) -> None:
        boot = psutil.boot_time()
        acc.add_fields("info", {
            "hostname": platform.node() or "unknown",
            "platform": platform.system() or "unknown",
            "release": platform.release() or "unknown",
            "architecture": platform.machine() or "unknown",
            "logical_cores": psutil.cpu_count() or 0,
            "physical_cores": psutil.cpu_count(logical=False) or 0,
            "boot_time": datetime.fromtimestamp(boot, tz=timezone.utc),
            "uptime_sec": time.time() - boot,
        })

        if not self.battery or not hasattr(psutil, "sensors_battery"):
            return
        bat = psutil.sensors_battery()
        if bat is None:
            return
        fields: dict[str, Any] = {"percent": float(bat.percent)}
        if bat.power_plugged is not None:
            fields["plugged"] = bool(bat.power_plugged)
        # Negative values are psutil's UNLIMITED/UNKNOWN markers
        if isinstance(bat.secsleft, int) and bat.secsleft >= 0:
            fields["secs_left"] = bat.secsleft
        acc.add_fields("battery", fields)


def register(registry: PluginRegistry) -> None:
    registry.register(CpuCollector.name, CpuCollector)
    registry.register(MemCollector.name, MemCollector)
    registry.register(DiskCollector.name, DiskCollector)
    registry.register(SystemCollector.name, SystemCollector)
