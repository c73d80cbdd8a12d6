"""Tests for the accumulator."""
from __future__ import annotations

import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from accumulator import Accumulator
from errors import InvalidTag, InvalidValue
from models import ValueKind
from sinks import BufferSink


def _acc(plugin: str = "simple", **kwargs) -> tuple[Accumulator, BufferSink]:
    sink = BufferSink()
    return Accumulator(plugin, sink, **kwargs), sink


def test_add_simple_state() -> None:
    acc, sink = _acc("simple")
    before = datetime.now(timezone.utc)
    acc.add("state", "pretty good", {})
    after = datetime.now(timezone.utc)
    [m] = sink.get_buffer()
    assert m.name == "simple_state"
    assert m.field() == "pretty good"
    assert m.fields["value"].kind is ValueKind.STRING
    assert dict(m.tags) == {}
    assert before <= m.timestamp <= after


def test_add_values_with_time_keeps_event_time() -> None:
    acc, sink = _acc("procstat")
    t0 = datetime(2023, 6, 1, 8, 30, tzinfo=timezone.utc)
    acc.add_values_with_time("cpu", {"time": 12.5}, {"pid": "42"}, t0)
    [m] = sink.get_buffer()
    assert m.name == "procstat_cpu"
    assert dict(m.tags) == {"pid": "42"}
    assert m.fields["time"].kind is ValueKind.FLOAT
    assert m.field("time") == 12.5
    assert m.timestamp == t0


def test_add_values_with_time_accepts_epoch_seconds() -> None:
    acc, sink = _acc()
    acc.add_values_with_time("batch", {"n": 1}, None, 1_700_000_000)
    [m] = sink.get_buffer()
    assert m.timestamp == datetime.fromtimestamp(1_700_000_000, tz=timezone.utc)


@pytest.mark.parametrize("plugin", ["cpu", "simple", "my_plugin", "x"])
def test_names_are_always_namespaced(plugin: str) -> None:
    acc, sink = _acc(plugin)
    acc.add("a", 1)
    acc.add_values_with_time("b", {"v": 2}, None, datetime.now(timezone.utc))
    acc.add_fields("c", {"v": 3})
    names = [m.name for m in sink.get_buffer()]
    assert names == [f"{plugin}_a", f"{plugin}_b", f"{plugin}_c"]


def test_every_kind_survives_accumulation() -> None:
    acc, sink = _acc()
    ts = datetime(2020, 2, 2, tzinfo=timezone.utc)
    raw = {"i": 2**40, "f": 0.1, "b": True, "s": "text", "t": ts}
    acc.add_fields("mixed", raw)
    [m] = sink.get_buffer()
    kinds = {k: v.kind for k, v in m.fields.items()}
    assert kinds == {
        "i": ValueKind.INT,
        "f": ValueKind.FLOAT,
        "b": ValueKind.BOOL,
        "s": ValueKind.STRING,
        "t": ValueKind.TIMESTAMP,
    }
    assert {k: v.raw for k, v in m.fields.items()} == raw


def test_invalid_value_fails_fast_and_emits_nothing() -> None:
    acc, sink = _acc()
    with pytest.raises(InvalidValue):
        acc.add("bad", None)
    with pytest.raises(InvalidValue):
        acc.add_fields("bad", {"ok": 1, "nope": [1, 2]})
    assert len(sink) == 0
    assert acc.emitted == 0


def test_empty_name_or_fields_rejected() -> None:
    acc, _ = _acc()
    with pytest.raises(InvalidValue):
        acc.add("", 1)
    with pytest.raises(InvalidValue):
        acc.add_fields("x", {})


def test_invalid_tags_rejected() -> None:
    acc, sink = _acc()
    with pytest.raises(InvalidTag):
        acc.add("x", 1, {"": "a"})
    with pytest.raises(InvalidTag):
        acc.add("x", 1, {"k": ""})
    with pytest.raises(InvalidTag):
        acc.add("x", 1, {"k": 5})  # type: ignore[dict-item]
    assert len(sink) == 0


def test_tag_precedence() -> None:
    acc, sink = _acc(default_tags={"host": "h1", "dc": "eu"}, override_tags={"role": "db"})
    acc.add("x", 1, {"dc": "us", "role": "web"})
    [m] = sink.get_buffer()
    assert dict(m.tags) == {"host": "h1", "dc": "us", "role": "db"}


def test_order_preserved_within_invocation() -> None:
    acc, sink = _acc()
    for i in range(20):
        acc.add("seq", i)
    assert [m.field() for m in sink.get_buffer()] == list(range(20))
    assert acc.emitted == 20


def test_closed_accumulator_drops() -> None:
    acc, sink = _acc()
    acc.add("before", 1)
    acc.close()
    acc.add("after", 2)
    assert [m.name for m in sink.get_buffer()] == ["simple_before"]
    assert acc.dropped == 1
    assert acc.closed


def test_timestamp_type_checked() -> None:
    acc, _ = _acc()
    with pytest.raises(InvalidValue):
        acc.add_values_with_time("x", {"v": 1}, None, "yesterday")  # type: ignore[arg-type]


def test_naive_event_time_treated_as_utc() -> None:
    acc, sink = _acc()
    acc.add_values_with_time("x", {"v": 1}, None, datetime(2024, 1, 1, 0, 0))
    [m] = sink.get_buffer()
    assert m.timestamp.utcoffset() == timedelta(0)


def test_configured_tags_are_checked() -> None:
    with pytest.raises(InvalidTag):
        Accumulator("simple", BufferSink(), default_tags={"dc": ""})
    with pytest.raises(InvalidTag):
        Accumulator("simple", BufferSink(), override_tags={"role": None})  # type: ignore[dict-item]
