"""
Plugin registry: process-wide table from plugin name to a zero-argument factory.

Registration happens in an explicit startup pass (see collectors.register_all);
the agent seals the registry before resolving any configured plugin, after which
it is read-only and needs no locking.
"""
from __future__ import annotations

from typing import TYPE_CHECKING, Callable, Iterator

from errors import RegistrationConflict, RegistryClosed, UnknownPlugin

if TYPE_CHECKING:
    from collectors.base import BaseCollector

Factory = Callable[[], "BaseCollector"]


class PluginRegistry:
    def __init__(self) -> None:
        self._factories: dict[str, Factory] = {}
        self._sealed = False

    @property
    def sealed(self) -> bool:
        return self._sealed

    def register(self, name: str, factory: Factory) -> None:
        if not name or not isinstance(name, str):
            raise ValueError("plugin name must be a non-empty string")
        if self._sealed:
            raise RegistryClosed(name)
        if name in self._factories:
            raise RegistrationConflict(name)
        self._factories[name] = factory

    def plugin(self, name: str) -> Callable[[type], type]:
        """Class decorator: register the class itself as the factory."""
        def deco(cls: type) -> type:
            self.register(name, cls)
            return cls
        return deco

    def seal(self) -> None:
        self._sealed = True

    def instantiate(self, name: str) -> BaseCollector:
        """Fresh, independent instance from the named factory."""
        try:
            factory = self._factories[name]
        except KeyError:
            raise UnknownPlugin(name) from None
        return factory()

    def names(self) -> list[str]:
        return sorted(self._factories)

    def describe(self) -> dict[str, str]:
        return {name: self.instantiate(name).description() for name in self.names()}

    def sample_config(self, names: list[str] | None = None) -> str:
        """Aggregate sample config of the given (default: all) plugins, verbatim."""
        chunks = []
        for name in names or self.names():
            collector = self.instantiate(name)
            chunks.append(f"# {collector.description()}\n{collector.sample_config().strip()}\n")
        return "\n".join(chunks)

    def __contains__(self, name: object) -> bool:
        return name in self._factories

    def __len__(self) -> int:
        return len(self._factories)

    def __iter__(self) -> Iterator[str]:
        return iter(self.names())

