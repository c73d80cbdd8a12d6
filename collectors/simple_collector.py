"""
Minimal example plugin: a template for collector authors.
"""
from __future__ import annotations

from typing import TYPE_CHECKING

from collectors.base import BaseCollector
from errors import GatherFailure

if TYPE_CHECKING:
    from accumulator import Accumulator
    from registry import PluginRegistry


class SimpleCollector(BaseCollector):
    name = "simple"
    options = ("ok",)

    def __init__(self) -> None:
        self.ok = False

    def description(self) -> str:
        return "A minimal plugin that reports how it feels"

    def sample_config(self) -> str:
        return """
- plugin: simple
  # Indicate if everything is fine
  ok: true
"""

    def gather(self, acc: Accumulator) -> None:
        if not self.ok:
            raise GatherFailure("simple: not ok", plugin=self.name)
        acc.add("state", "pretty good")


def register(registry: PluginRegistry) -> None:
    registry.register(SimpleCollector.name, SimpleCollector)
