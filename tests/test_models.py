"""Tests for the value model and measurements."""
from __future__ import annotations

import sys
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from errors import InvalidValue
from models import (
    INT64_MAX,
    INT64_MIN,
    FailureKind,
    FailureReport,
    Measurement,
    Value,
    ValueKind,
)


def test_value_of_infers_each_kind() -> None:
    ts = datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc)
    assert Value.of(7).kind is ValueKind.INT
    assert Value.of(7.5).kind is ValueKind.FLOAT
    assert Value.of(True).kind is ValueKind.BOOL
    assert Value.of("up").kind is ValueKind.STRING
    assert Value.of(ts).kind is ValueKind.TIMESTAMP
    assert Value.of(ts).raw == ts


def test_value_of_bool_is_not_int() -> None:
    v = Value.of(False)
    assert v.kind is ValueKind.BOOL
    assert v.raw is False


def test_value_equality_is_kind_exact() -> None:
    assert Value.int64(1) != Value.float64(1.0)
    assert Value.boolean(True) != Value.int64(1)
    assert Value.string("1") != Value.int64(1)
    assert Value.int64(1) == Value.of(1)
    assert hash(Value.int64(5)) == hash(Value.of(5))


def test_value_int64_range() -> None:
    assert Value.int64(INT64_MAX).raw == INT64_MAX
    assert Value.int64(INT64_MIN).raw == INT64_MIN
    with pytest.raises(InvalidValue):
        Value.int64(INT64_MAX + 1)
    with pytest.raises(InvalidValue):
        Value.of(INT64_MIN - 1)


def test_value_of_rejects_outside_closed_set() -> None:
    for raw in (None, [1], {"a": 1}, b"x", Decimal("1.5"), (1, 2)):
        with pytest.raises(InvalidValue):
            Value.of(raw)


def test_invalid_value_is_a_type_error() -> None:
    with pytest.raises(TypeError):
        Value.of(None)


def test_explicit_constructors_reject_wrong_types() -> None:
    with pytest.raises(InvalidValue):
        Value.int64(1.5)  # type: ignore[arg-type]
    with pytest.raises(InvalidValue):
        Value.int64(True)
    with pytest.raises(InvalidValue):
        Value.boolean(1)  # type: ignore[arg-type]
    with pytest.raises(InvalidValue):
        Value.string(3)  # type: ignore[arg-type]
    with pytest.raises(InvalidValue):
        Value.timestamp(0)  # type: ignore[arg-type]


def test_naive_timestamp_is_utc() -> None:
    v = Value.timestamp(datetime(2024, 5, 1, 12, 0, 0))
    assert v.raw.tzinfo is not None
    assert v.raw.utcoffset() == timedelta(0)
    assert v.to_json() == "2024-05-01T12:00:00+00:00"


def test_measurement_is_read_only() -> None:
    fields = {"value": Value.of(1)}
    m = Measurement("cpu_usage", fields, {"host": "a"}, datetime.now(timezone.utc))
    with pytest.raises(AttributeError):
        m.name = "other"  # type: ignore[misc]
    with pytest.raises(TypeError):
        m.fields["x"] = Value.of(2)  # type: ignore[index]
    with pytest.raises(TypeError):
        m.tags["x"] = "y"  # type: ignore[index]
    fields["late"] = Value.of(3)
    assert "late" not in m.fields


def test_measurement_requires_name_and_fields() -> None:
    now = datetime.now(timezone.utc)
    with pytest.raises(InvalidValue):
        Measurement("", {"value": Value.of(1)}, {}, now)
    with pytest.raises(InvalidValue):
        Measurement("x", {}, {}, now)
    with pytest.raises(InvalidValue):
        Measurement("x", {"value": 1}, {}, now)  # type: ignore[dict-item]


def test_measurement_to_dict() -> None:
    ts = datetime(2024, 1, 1, tzinfo=timezone.utc)
    m = Measurement("system_info", {"up": Value.of(True), "boot": Value.of(ts)}, {"host": "a"}, ts)
    d = m.to_dict()
    assert d["name"] == "system_info"
    assert d["fields"] == {"up": True, "boot": "2024-01-01T00:00:00+00:00"}
    assert d["tags"] == {"host": "a"}
    assert d["timestamp"] == "2024-01-01T00:00:00+00:00"
    assert m.field("up") is True


def test_failure_report_to_dict() -> None:
    r = FailureReport("cpu", "cpu-1", FailureKind.GATHER_TIMEOUT, "slow", 1.0)
    d = r.to_dict()
    assert d["plugin_name"] == "cpu"
    assert d["instance_id"] == "cpu-1"
    assert d["kind"] == "gather_timeout"
