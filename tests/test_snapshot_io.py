import enum
import gzip
import json
from dataclasses import dataclass
from fractions import Fraction
from pathlib import Path

import pytest

from rhmap.contracts.error import BadInputError
from rhmap.io import snapshot


def _state(items):
    return {
        "kind": "OrderedRobinHoodMap",
        "version": 1,
        "capacity": 20,
        "policy": {"initial_capacity": 20, "max_load_factor": 0.5},
        "items": items,
    }


class Colour(enum.Enum):
    RED = 1


@dataclass
class Point:
    x: int
    y: int


def test_write_and_read_roundtrip(tmp_path: Path):
    target = tmp_path / "map.snapshot"
    written = snapshot.write_snapshot(target, _state([("a", 1), ("b", [2, 3])]))
    assert written == target.stat().st_size
    assert snapshot.read_snapshot(target)["items"] == [["a", 1], ["b", [2, 3]]]


def test_compressed_snapshot_is_detected_on_read(tmp_path: Path):
    target = tmp_path / "map.snapshot"
    snapshot.write_snapshot(target, _state([("a", 1)]), compress=True)
    raw = target.read_bytes()
    assert raw[:2] == b"\x1f\x8b"
    assert json.loads(gzip.decompress(raw))["items"] == [["a", 1]]
    assert snapshot.read_snapshot(target)["items"] == [["a", 1]]

    info = snapshot.describe_snapshot(target)
    assert info.compressed is True
    assert info.size == 1
    assert info.file_bytes == len(raw)


def test_loads_rejects_bytes_that_are_not_json():
    with pytest.raises(ValueError, match="not a JSON document"):
        snapshot.loads_snapshot(b"not a snapshot")


def test_loads_rejects_truncated_gzip():
    blob = gzip.compress(json.dumps(_state([])).encode("utf-8"))
    with pytest.raises(ValueError, match="Corrupt gzip"):
        snapshot.loads_snapshot(blob[:12])


@pytest.mark.parametrize(
    "state",
    [
        {"foo": "bar"},
        {**_state([]), "version": 2},
        {**_state([]), "capacity": 0},
        {**_state([["a", 1, 2]])},
        {**_state([[["list", "key"], 1]])},
        {**_state([]), "extra": True},
    ],
)
def test_loads_rejects_documents_outside_the_schema(state):
    with pytest.raises(ValueError, match="map_snapshot.v1"):
        snapshot.loads_snapshot(json.dumps(state).encode("utf-8"))


def test_read_missing_file(tmp_path: Path):
    with pytest.raises(FileNotFoundError):
        snapshot.read_snapshot(tmp_path / "absent.snapshot")


def test_failed_replace_keeps_previous_file(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    target = tmp_path / "map.snapshot"
    snapshot.write_snapshot(target, _state([("a", 1)]))

    def refuse(src, dst):
        raise OSError("disk full")

    monkeypatch.setattr(snapshot.os, "replace", refuse)
    with pytest.raises(OSError, match="disk full"):
        snapshot.write_snapshot(target, _state([("a", 2)]))

    assert snapshot.read_snapshot(target)["items"] == [["a", 1]]
    assert [p.name for p in tmp_path.iterdir()] == ["map.snapshot"]


def test_write_creates_missing_parent_directories(tmp_path: Path):
    target = tmp_path / "nested" / "dir" / "map.snapshot"
    snapshot.write_snapshot(target, _state([]))
    assert snapshot.describe_snapshot(target).size == 0


@pytest.mark.parametrize(
    ("items", "message"),
    [
        ([(Fraction(1, 3), "x")], "key of type Fraction"),
        ([(("a", "b"), 1)], "key of type tuple"),
        ([("a", ("t", "v"))], "value of type tuple"),
        ([("a", Colour.RED)], "value of type Colour"),
        ([("a", Point(1, 2))], "value of type Point"),
        ([("a", {1: "int key"})], "dict key int"),
        ([("a", [1, {2.0}])], "value of type set"),
        ([(float("nan"), 1)], "non-finite float"),
        ([("a", float("inf"))], "non-finite float"),
    ],
)
def test_check_snapshot_items_names_the_offending_entry(items, message):
    with pytest.raises(BadInputError, match=message):
        snapshot.check_snapshot_items([("ok", 0), *items])


def test_check_snapshot_items_reports_position_and_key():
    with pytest.raises(BadInputError) as excinfo:
        snapshot.check_snapshot_items([("ok", 0), ("bad", b"bytes")])
    assert "Entry 1 (key 'bad')" in str(excinfo.value)
    assert excinfo.value.hint


def test_rejected_state_writes_nothing(tmp_path: Path):
    target = tmp_path / "map.snapshot"
    with pytest.raises(BadInputError):
        snapshot.write_snapshot(target, _state([(Fraction(1, 2), 1)]))
    assert list(tmp_path.iterdir()) == []
