"""
Network I/O collector: system-wide and per-interface counters via psutil.
"""
from __future__ import annotations

from typing import TYPE_CHECKING

import psutil

from collectors.base import BaseCollector

if TYPE_CHECKING:
    from accumulator import Accumulator
    from registry import PluginRegistry


class NetworkCollector(BaseCollector):
    name = "net"
    options = ("per_interface", "interfaces", "max_interfaces")

    def __init__(self) -> None:
        self.per_interface = True
        self.interfaces: list[str] = []
        self.max_interfaces = 50

    def description(self) -> str:
        return "Network I/O counters, total and per interface"

    def sample_config(self) -> str:
        return """
- plugin: net
  # Report one measurement per interface (tag interface=<name>)
  per_interface: true
  # Restrict to these interfaces (empty = all)
  interfaces: []
  max_interfaces: 50
"""

    def gather(self, acc: Accumulator) -> None:
        net = psutil.net_io_counters()
        if net:
            acc.add_fields("io", {
                "bytes_sent": net.bytes_sent,
                "bytes_recv": net.bytes_recv,
                "packets_sent": net.packets_sent,
                "packets_recv": net.packets_recv,
                "err_in": net.errin,
                "err_out": net.errout,
                "drop_in": net.dropin,
                "drop_out": net.dropout,
            }, {"interface": "all"})

        if not self.per_interface:
            return
        counters = psutil.net_io_counters(pernic=True)
        stats = psutil.net_if_stats()
        emitted = 0
        for name, io in sorted(counters.items()):
            if emitted >= self.max_interfaces:
                break
            if self.interfaces and name not in self.interfaces:
                continue
            st = stats.get(name)
            acc.add_fields("io", {
                "bytes_sent": io.bytes_sent,
                "bytes_recv": io.bytes_recv,
                "packets_sent": io.packets_sent,
                "packets_recv": io.packets_recv,
                "up": bool(getattr(st, "isup", False)),
            }, {"interface": name})
            emitted += 1


def register(registry: PluginRegistry) -> None:
    registry.register(NetworkCollector.name, NetworkCollector)
