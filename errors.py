"""
Exception hierarchy for the agent. Startup errors are fatal; gather errors are
contained by the scheduler and only reported.
"""
from __future__ import annotations


class AgentError(Exception):
    """Base for all agent errors."""

    def __init__(self, message: str, plugin: str | None = None) -> None:
        super().__init__(message)
        self.plugin = plugin


# -----------------------------------------------------------------------------
# Startup (fatal)
# -----------------------------------------------------------------------------

class ConfigError(AgentError):
    """Config file missing, unreadable or malformed."""


class RegistrationConflict(AgentError):
    """A plugin name was registered twice."""

    def __init__(self, name: str) -> None:
        super().__init__(f"plugin {name!r} is already registered", plugin=name)


class RegistryClosed(AgentError):
    """Registration attempted after the registry was sealed."""

    def __init__(self, name: str) -> None:
        super().__init__(f"cannot register {name!r}: registry is sealed", plugin=name)


class UnknownPlugin(AgentError):
    """Config references a plugin name nobody registered."""

    def __init__(self, name: str) -> None:
        super().__init__(f"unknown plugin {name!r}", plugin=name)


class PluginConfigError(AgentError):
    """Options rejected by a plugin's configure()."""


# -----------------------------------------------------------------------------
# Collector boundary
# -----------------------------------------------------------------------------

class InvalidValue(AgentError, TypeError):
    """Raw value outside the closed value model, or malformed measurement."""


class InvalidTag(AgentError, ValueError):
    """Tag key or value is not a non-empty string."""


# -----------------------------------------------------------------------------
# Per-tick (recovered by the scheduler)
# -----------------------------------------------------------------------------

class GatherFailure(AgentError):
    """gather() raised."""


class GatherTimeout(AgentError):
    """gather() exceeded its deadline and was abandoned."""


class GatherSkipped(AgentError):
    """Tick skipped because an abandoned invocation is still running."""
