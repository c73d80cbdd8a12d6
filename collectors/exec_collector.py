"""
Exec collector: run an external command and turn its JSON output into measurements.

The command prints either one JSON object of fields, or a list of objects of
the form {"measurement": ..., "fields": {...}, "tags": {...}, "timestamp": epoch}.
"""
from __future__ import annotations

import json
import shlex
import subprocess
from typing import TYPE_CHECKING, Any

from collectors.base import BaseCollector
from errors import GatherFailure, PluginConfigError

if TYPE_CHECKING:
    from accumulator import Accumulator
    from registry import PluginRegistry


class ExecCollector(BaseCollector):
    name = "exec"
    options = ("command", "command_timeout_sec", "measurement")

    def __init__(self) -> None:
        self.command: str | list[str] = ""
        self.command_timeout_sec: float = 5
        self.measurement = "output"

    def description(self) -> str:
        return "Run a command and parse its JSON output into fields"

    def sample_config(self) -> str:
        return """
- plugin: exec
  # String (split shell-style) or argv list
  command: ["/usr/local/bin/report-queue-depth", "--json"]
  command_timeout_sec: 5
  # Measurement name for plain-object output (emitted as exec_<measurement>)
  measurement: output
"""

    def validate(self) -> None:
        if not self.command:
            raise PluginConfigError("exec: command is required", plugin=self.name)
        if not isinstance(self.command, (str, list)):
            raise PluginConfigError("exec: command must be a string or a list", plugin=self.name)

    def _argv(self) -> list[str]:
        if isinstance(self.command, str):
            return shlex.split(self.command)
        return [str(a) for a in self.command]

    def gather(self, acc: Accumulator) -> None:
        argv = self._argv()
        try:
            out = subprocess.run(
                argv,
                capture_output=True,
                text=True,
                timeout=self.command_timeout_sec,
            )
        except subprocess.TimeoutExpired as e:
            raise GatherFailure(f"exec: {argv[0]} timed out after {self.command_timeout_sec}s", plugin=self.name) from e
        except FileNotFoundError as e:
            raise GatherFailure(f"exec: command not found: {argv[0]}", plugin=self.name) from e
        if out.returncode != 0:
            raise GatherFailure(
                f"exec: {argv[0]} exited {out.returncode}: {(out.stderr or '').strip()[:200]}",
                plugin=self.name,
            )
        try:
            payload = json.loads(out.stdout or "")
        except ValueError as e:
            raise GatherFailure(f"exec: output of {argv[0]} is not JSON: {e}", plugin=self.name) from e
        self._emit(acc, payload)

    def _emit(self, acc: Accumulator, payload: Any) -> None:
        if isinstance(payload, dict):
            acc.add_fields(self.measurement, payload)
            return
        if not isinstance(payload, list):
            raise GatherFailure("exec: expected a JSON object or list", plugin=self.name)
        for item in payload:
            if not isinstance(item, dict) or not isinstance(item.get("fields"), dict):
                raise GatherFailure("exec: list items need a 'fields' object", plugin=self.name)
            name = item.get("measurement") or self.measurement
            tags = item.get("tags") or {}
            if "timestamp" in item:
                acc.add_values_with_time(name, item["fields"], tags, item["timestamp"])
            else:
                acc.add_fields(name, item["fields"], tags)


def register(registry: PluginRegistry) -> None:
    registry.register(ExecCollector.name, ExecCollector)
