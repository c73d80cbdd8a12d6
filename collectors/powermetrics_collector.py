"""
Powermetrics collector (macOS): thermal pressure, power (Apple Silicon), temps & fans (Intel SMC).
"""
from __future__ import annotations

import re
import subprocess
import time
from typing import TYPE_CHECKING

from collectors.base import BaseCollector
from errors import GatherFailure
from utils import thermal_pressure_level

if TYPE_CHECKING:
    from accumulator import Accumulator
    from registry import PluginRegistry

_CACHE_TTL = 2
_TIMEOUT = 8


def _run_powermetrics_impl(timeout_sec: float) -> str:
    for samplers in [
        "thermal,cpu_power,gpu_power,ane_power",
        "thermal,cpu_power,gpu_power",
        "smc",
    ]:
        try:
            out = subprocess.run(
                [
                    "powermetrics",
                    "--samplers", samplers,
                    "-i", "1000",
                    "-n", "1",
                ],
                capture_output=True,
                text=True,
                timeout=timeout_sec,
            )
            if out.returncode == 0 and (out.stdout or "").strip():
                return out.stdout or ""
        except (subprocess.TimeoutExpired, FileNotFoundError, PermissionError):
            continue
    return ""


def _watts(number: str, unit: str) -> float | None:
    try:
        value = float(number)
    except ValueError:
        return None
    return value / 1000.0 if unit.lower() == "mw" else value


def parse_powermetrics(
    stdout: str,
) -> tuple[dict[str, float], dict[str, int], dict[str, float], str | None]:
    """Return (temperatures °C, fan speeds RPM, power W, thermal pressure level)."""
    temperatures: dict[str, float] = {}
    fan_speeds: dict[str, int] = {}
    power_estimates: dict[str, float] = {}
    thermal_pressure: str | None = None

    m_pressure = re.search(
        r"(?:current\s+)?pressure\s+level\s*:\s*(\w+)|thermal\s+pressure[^\n]*?:\s*(\w+)",
        stdout, re.I,
    )
    if m_pressure:
        level = (m_pressure.group(1) or m_pressure.group(2) or "").strip()
        if thermal_pressure_level(level) >= 0:
            thermal_pressure = level

    for m in re.finditer(r"(\w+)\s+Power\s*:\s*([\d.]+)\s*(m?W)\b", stdout, re.I):
        watts = _watts(m.group(2), m.group(3))
        if watts is not None:
            power_estimates[m.group(1).strip()] = watts
    m_combined = re.search(r"Combined\s+Power[^\n]*?:\s*([\d.]+)\s*(m?W)\b", stdout, re.I)
    if m_combined:
        watts = _watts(m_combined.group(1), m_combined.group(2))
        if watts is not None:
            power_estimates["Combined"] = watts

    for m in re.finditer(
        r"^\s*([\w ]*?(?:die|package|thermal)\s+temperature)\s*:\s*([\d.]+)\s*C", stdout, re.I | re.M,
    ):
        name = m.group(1).strip().replace(" ", "_")
        try:
            temperatures[name] = float(m.group(2))
        except ValueError:
            pass

    for m in re.finditer(r"^\s*Fan\s*(\d*)\s*(?:speed)?\s*:\s*([\d.]+)\s*rpm", stdout, re.I | re.M):
        label = m.group(1) or "0"
        try:
            fan_speeds[f"fan_{label}"] = int(float(m.group(2)))
        except ValueError:
            pass

    return temperatures, fan_speeds, power_estimates, thermal_pressure


class PowermetricsCollector(BaseCollector):
    name = "powermetrics"
    options = ("command_timeout_sec", "cache_ttl")

    def __init__(self) -> None:
        self.command_timeout_sec: float = _TIMEOUT
        self.cache_ttl: float = _CACHE_TTL
        self._cache: tuple[float, str] | None = None

    def description(self) -> str:
        return "macOS thermal pressure, power, temperatures and fans via powermetrics (needs root)"

    def sample_config(self) -> str:
        return """
- plugin: powermetrics
  interval_sec: 10
  # Per-invocation deadline enforced by the scheduler
  timeout_sec: 30
  # powermetrics samples for one second; allow for slow starts
  command_timeout_sec: 8
  # Reuse the last output for this many seconds
  cache_ttl: 2
"""

    def _run(self) -> str:
        now = time.time()
        if self._cache is not None and (now - self._cache[0]) < self.cache_ttl:
            return self._cache[1]
        raw = _run_powermetrics_impl(self.command_timeout_sec)
        if raw:
            self._cache = (now, raw)
        return raw

    def gather(self, acc: Accumulator) -> None:
        raw = self._run()
        if not raw:
            raise GatherFailure("powermetrics produced no output (macOS only, requires root)", plugin=self.name)
        temps, fans, power, pressure = parse_powermetrics(raw)
        if pressure is not None:
            acc.add_fields("thermal", {
                "pressure": pressure,
                "pressure_level": thermal_pressure_level(pressure),
            })
        for sensor, celsius in sorted(temps.items()):
            acc.add_fields("temperature", {"celsius": celsius}, {"sensor": sensor})
        for subsystem, watts in sorted(power.items()):
            acc.add_fields("power", {"watts": watts}, {"subsystem": subsystem})
        for fan, rpm in sorted(fans.items()):
            acc.add_fields("fan", {"rpm": rpm}, {"fan": fan})


def register(registry: PluginRegistry) -> None:
    registry.register(PowermetricsCollector.name, PowermetricsCollector)
