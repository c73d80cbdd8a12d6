"""
Accumulator: the per-invocation handle a collector writes measurements to.

Every call builds exactly one Measurement, prefixes its name with the owning
plugin's registered name and forwards it to the sink before returning.
"""
from __future__ import annotations

import threading
from datetime import datetime, timezone
from typing import Any, Mapping

from errors import InvalidTag, InvalidValue
from models import FIELD_VALUE, Measurement, Value, as_utc
from sinks import Sink
from utils import get_logger, utcnow

logger = get_logger(__name__)


def check_tags(tags: Mapping[str, str] | None) -> dict[str, str]:
    if not tags:
        return {}
    out: dict[str, str] = {}
    for k, v in tags.items():
        if not isinstance(k, str) or not k:
            raise InvalidTag(f"tag key must be a non-empty string, got {k!r}")
        if not isinstance(v, str) or not v:
            raise InvalidTag(f"tag {k!r} must have a non-empty string value, got {v!r}")
        out[k] = v
    return out


def _to_timestamp(ts: datetime | int | float) -> datetime:
    if isinstance(ts, datetime):
        return as_utc(ts)
    if isinstance(ts, (int, float)) and not isinstance(ts, bool):
        return datetime.fromtimestamp(ts, tz=timezone.utc)
    raise InvalidValue(f"timestamp must be datetime or epoch seconds, got {type(ts).__name__}")


class Accumulator:
    """Bound to one plugin instance for one gather() invocation."""

    def __init__(
        self,
        plugin_name: str,
        sink: Sink,
        default_tags: Mapping[str, str] | None = None,
        override_tags: Mapping[str, str] | None = None,
        instance_id: str | None = None,
    ) -> None:
        self.plugin_name = plugin_name
        self.instance_id = instance_id or plugin_name
        self.sink = sink
        self.default_tags = check_tags(default_tags)
        self.override_tags = check_tags(override_tags)
        self.emitted = 0
        self.dropped = 0
        self._closed = False
        self._lock = threading.Lock()

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        """Stop forwarding. Later calls are dropped instead of reaching the sink."""
        with self._lock:
            self._closed = True

    def add(
        self,
        measurement: str,
        value: Any,
        tags: Mapping[str, str] | None = None,
    ) -> None:
        """Single-field shorthand, stamped with the current wall clock."""
        self._emit(measurement, {FIELD_VALUE: value}, tags, utcnow())

    def add_fields(
        self,
        measurement: str,
        values: Mapping[str, Any],
        tags: Mapping[str, str] | None = None,
    ) -> None:
        """Several fields, stamped with the current wall clock."""
        self._emit(measurement, values, tags, utcnow())

    def add_values_with_time(
        self,
        measurement: str,
        values: Mapping[str, Any],
        tags: Mapping[str, str] | None,
        timestamp: datetime | int | float,
    ) -> None:
        """Several fields with an explicit event timestamp (back-dated or batched data)."""
        self._emit(measurement, values, tags, _to_timestamp(timestamp))

    def _emit(
        self,
        measurement: str,
        values: Mapping[str, Any],
        tags: Mapping[str, str] | None,
        timestamp: datetime,
    ) -> None:
        if not isinstance(measurement, str) or not measurement:
            raise InvalidValue(f"{self.plugin_name}: measurement name must be a non-empty string")
        if not values:
            raise InvalidValue(f"{self.plugin_name}: measurement {measurement!r} has no fields")
        fields = {k: Value.of(v) for k, v in values.items()}
        merged = dict(self.default_tags)
        merged.update(check_tags(tags))
        merged.update(self.override_tags)
        m = Measurement(
            name=f"{self.plugin_name}_{measurement}",
            fields=fields,
            tags=merged,
            timestamp=timestamp,
        )
        # close() and forwarding are mutually exclusive
        with self._lock:
            if self._closed:
                self.dropped += 1
                logger.debug("%s: dropped %s emitted after invocation was abandoned", self.instance_id, m.name)
                return
            self.sink.emit(m)
            self.emitted += 1
