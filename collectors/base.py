"""
Base collector interface: all input plugins implement this.

gather() is never invoked concurrently on the same instance, so collectors may
keep plain instance state without locking.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, Mapping

from errors import PluginConfigError

if TYPE_CHECKING:
    from accumulator import Accumulator


class BaseCollector(ABC):
    """Abstract base for all input plugins."""

    name: str = "base"
    # Option names accepted by configure(); each is an instance attribute
    options: tuple[str, ...] = ()

    @abstractmethod
    def description(self) -> str:
        """One line, no side effects."""
        ...

    @abstractmethod
    def sample_config(self) -> str:
        """YAML snippet documenting recognized options."""
        ...

    @abstractmethod
    def gather(self, acc: Accumulator) -> None:
        """Emit zero or more measurements into acc. Raise to signal a failed attempt."""
        ...

    def configure(self, options: Mapping[str, Any]) -> None:
        """Apply an options blob before the first gather."""
        unknown = sorted(set(options) - set(self.options))
        if unknown:
            raise PluginConfigError(
                f"{self.name}: unknown option(s) {', '.join(unknown)}", plugin=self.name
            )
        for key, value in options.items():
            setattr(self, key, value)
        self.validate()

    def validate(self) -> None:
        """Hook for option checks; raise PluginConfigError on bad values."""
