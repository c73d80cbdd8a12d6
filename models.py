"""
Data models for the agent: the closed value union, measurements and failure
reports.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from types import MappingProxyType
from typing import Any, Mapping

from errors import InvalidValue

INT64_MIN = -(2**63)
INT64_MAX = 2**63 - 1

# Field name used by the single-value shorthand Accumulator.add()
FIELD_VALUE = "value"


class ValueKind(str, Enum):
    INT = "int"
    FLOAT = "float"
    BOOL = "bool"
    STRING = "string"
    TIMESTAMP = "timestamp"


def as_utc(ts: datetime) -> datetime:
    """Naive datetimes are taken to be UTC; aware ones are converted."""
    if ts.tzinfo is None:
        return ts.replace(tzinfo=timezone.utc)
    return ts.astimezone(timezone.utc)


@dataclass(frozen=True)
class Value:
    """
    One metric value: exactly one of int64, float64, bool, string or timestamp.

    Equality is kind-and-value exact, so Value.int64(1) != Value.float64(1.0).
    Use the per-kind constructors or Value.of() rather than the raw constructor.
    """
    kind: ValueKind
    raw: Any

    @classmethod
    def int64(cls, v: int) -> Value:
        if isinstance(v, bool) or not isinstance(v, int):
            raise InvalidValue(f"int64 expects int, got {type(v).__name__}")
        if not INT64_MIN <= v <= INT64_MAX:
            raise InvalidValue(f"integer {v} does not fit in 64 bits")
        return cls(ValueKind.INT, int(v))

    @classmethod
    def float64(cls, v: float) -> Value:
        if isinstance(v, bool) or not isinstance(v, (int, float)):
            raise InvalidValue(f"float64 expects float, got {type(v).__name__}")
        return cls(ValueKind.FLOAT, float(v))

    @classmethod
    def boolean(cls, v: bool) -> Value:
        if not isinstance(v, bool):
            raise InvalidValue(f"boolean expects bool, got {type(v).__name__}")
        return cls(ValueKind.BOOL, v)

    @classmethod
    def string(cls, v: str) -> Value:
        if not isinstance(v, str):
            raise InvalidValue(f"string expects str, got {type(v).__name__}")
        return cls(ValueKind.STRING, str(v))

    @classmethod
    def timestamp(cls, v: datetime) -> Value:
        if not isinstance(v, datetime):
            raise InvalidValue(f"timestamp expects datetime, got {type(v).__name__}")
        return cls(ValueKind.TIMESTAMP, as_utc(v))

    @classmethod
    def of(cls, raw: Any) -> Value:
        """Infer the kind of a raw Python value. Fails on anything outside the closed set."""
        if isinstance(raw, Value):
            return raw
        # bool first: it is an int subclass
        if isinstance(raw, bool):
            return cls.boolean(raw)
        if isinstance(raw, int):
            return cls.int64(raw)
        if isinstance(raw, float):
            return cls.float64(raw)
        if isinstance(raw, str):
            return cls.string(raw)
        if isinstance(raw, datetime):
            return cls.timestamp(raw)
        raise InvalidValue(f"unsupported value type {type(raw).__name__}")

    def to_json(self) -> Any:
        if self.kind is ValueKind.TIMESTAMP:
            return self.raw.isoformat()
        return self.raw


@dataclass(frozen=True)
class Measurement:
    """One emitted data point. Built by the Accumulator, read-only afterwards."""
    name: str
    fields: Mapping[str, Value]
    tags: Mapping[str, str]
    timestamp: datetime

    def __post_init__(self) -> None:
        if not self.name:
            raise InvalidValue("measurement name must not be empty")
        if not self.fields:
            raise InvalidValue(f"measurement {self.name!r} has no fields")
        for key, value in self.fields.items():
            if not key or not isinstance(key, str):
                raise InvalidValue(f"measurement {self.name!r} has an empty field name")
            if not isinstance(value, Value):
                raise InvalidValue(f"field {key!r} is not a Value")
        object.__setattr__(self, "fields", MappingProxyType(dict(self.fields)))
        object.__setattr__(self, "tags", MappingProxyType(dict(self.tags)))
        object.__setattr__(self, "timestamp", as_utc(self.timestamp))

    def field(self, key: str = FIELD_VALUE) -> Any:
        """Raw value of one field."""
        return self.fields[key].raw

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "fields": {k: v.to_json() for k, v in self.fields.items()},
            "tags": dict(self.tags),
            "timestamp": self.timestamp.isoformat(),
        }


class FailureKind(str, Enum):
    GATHER_FAILURE = "gather_failure"
    GATHER_TIMEOUT = "gather_timeout"
    GATHER_SKIPPED = "gather_skipped"
    UNKNOWN_PLUGIN = "unknown_plugin"
    PLUGIN_CONFIG = "plugin_config"


@dataclass
class FailureReport:
    """A single failure surfaced by the scheduler or during startup."""
    plugin_name: str
    instance_id: str
    kind: FailureKind
    error: str
    timestamp: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "plugin_name": self.plugin_name,
            "instance_id": self.instance_id,
            "kind": self.kind.value,
            "error": self.error,
            "timestamp": self.timestamp,
        }
