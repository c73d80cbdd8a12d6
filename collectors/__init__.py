"""
Collectors package: pluggable input plugins.

Nothing registers itself on import; the agent calls register_all() once at
startup, before the registry is sealed.
"""
from __future__ import annotations

from typing import TYPE_CHECKING

from collectors import (
    exec_collector,
    network_collector,
    powermetrics_collector,
    process_collector,
    psutil_collector,
    simple_collector,
)
from collectors.base import BaseCollector
from collectors.exec_collector import ExecCollector
from collectors.network_collector import NetworkCollector
from collectors.powermetrics_collector import PowermetricsCollector
from collectors.process_collector import ProcessCollector
from collectors.psutil_collector import CpuCollector, DiskCollector, MemCollector, SystemCollector
from collectors.simple_collector import SimpleCollector

if TYPE_CHECKING:
    from registry import PluginRegistry

BUILTIN = (
    psutil_collector,
    network_collector,
    process_collector,
    powermetrics_collector,
    exec_collector,
    simple_collector,
)


def register_all(registry: PluginRegistry) -> None:
    for module in BUILTIN:
        module.register(registry)


__all__ = [
    "BaseCollector",
    "CpuCollector",
    "MemCollector",
    "DiskCollector",
    "SystemCollector",
    "NetworkCollector",
    "ProcessCollector",
    "PowermetricsCollector",
    "ExecCollector",
    "SimpleCollector",
    "register_all",
]
