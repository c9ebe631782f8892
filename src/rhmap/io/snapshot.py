"""Map snapshots: the map's state as a JSON document, optionally gzip-compressed.

A snapshot holds exactly what ``OrderedRobinHoodMap.to_state`` returns and is
checked against ``map_snapshot.v1`` when read. Keys must be JSON scalars
(``str``, ``int``, ``float``, ``bool`` or ``None``); values may also be lists
and ``str``-keyed dicts built from those. Anything else is refused when the
snapshot is written, since it could not be rebuilt when it is read.

Writes go through a temporary file in the target directory and ``os.replace``,
so a reader sees either the previous snapshot or the new one.
"""

from __future__ import annotations

import gzip
import json
import math
import os
import tempfile
import zlib
from contextlib import suppress
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterable, Optional, Tuple

from rhmap.contracts.error import BadInputError
from rhmap.contracts.schemas import MAP_SNAPSHOT_SCHEMA, schema_errors

_GZIP_MAGIC = b"\x1f\x8b"
_SCALAR_TYPES = (str, int, float, bool, type(None))


def _unsupported_type(value: Any, *, as_key: bool) -> Optional[str]:
    """Name the first type inside ``value`` that JSON would not give back unchanged."""

    kind = type(value)
    if kind is float and not math.isfinite(value):
        return "non-finite float"
    if kind in _SCALAR_TYPES:
        return None
    if as_key:
        return kind.__name__
    if kind is list:
        for item in value:
            found = _unsupported_type(item, as_key=False)
            if found is not None:
                return found
        return None
    if kind is dict:
        for name, item in value.items():
            if type(name) is not str:
                return f"dict key {type(name).__name__}"
            found = _unsupported_type(item, as_key=False)
            if found is not None:
                return found
        return None
    return kind.__name__


def check_snapshot_items(items: Iterable[Tuple[Any, Any]]) -> None:
    """Raise :class:`BadInputError` for the first entry a snapshot cannot carry."""

    for position, (key, value) in enumerate(items):
        part, found = "key", _unsupported_type(key, as_key=True)
        if found is None:
            part, found = "value", _unsupported_type(value, as_key=False)
        if found is not None:
            raise BadInputError(
                f"Entry {position} (key {key!r}): {part} of type {found} cannot be stored in a snapshot",
                hint="keys: str, int, float, bool or None; values: those plus lists and str-keyed dicts",
            )


def dumps_snapshot(state: Dict[str, Any], *, compress: bool = False) -> bytes:
    check_snapshot_items(state.get("items", ()))
    blob = json.dumps(state, ensure_ascii=False, separators=(",", ":")).encode("utf-8")
    return gzip.compress(blob) if compress else blob


def loads_snapshot(blob: bytes) -> Dict[str, Any]:
    """Decode and validate snapshot bytes; any defect raises ``ValueError``."""

    if blob[:2] == _GZIP_MAGIC:
        try:
            blob = gzip.decompress(blob)
        except (OSError, EOFError, zlib.error) as exc:
            raise ValueError(f"Corrupt gzip snapshot: {exc}") from exc
    try:
        state = json.loads(blob.decode("utf-8"))
    except ValueError as exc:
        raise ValueError(f"Snapshot is not a JSON document: {exc}") from exc
    errors = schema_errors(MAP_SNAPSHOT_SCHEMA, state)
    if errors:
        raise ValueError(f"Snapshot does not match map_snapshot.v1: {errors[0]}")
    return state


def write_snapshot(path: Path, state: Dict[str, Any], *, compress: bool = False) -> int:
    """Atomically replace ``path`` with ``state``; return the number of bytes written."""

    blob = dumps_snapshot(state, compress=compress)
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "wb") as fh:
            fh.write(blob)
        os.replace(tmp_name, path)
    except Exception:
        with suppress(FileNotFoundError):
            os.unlink(tmp_name)
        raise
    return len(blob)


def read_snapshot(path: Path) -> Dict[str, Any]:
    return loads_snapshot(path.read_bytes())


@dataclass(frozen=True)
class SnapshotInfo:
    """What ``inspect-snapshot`` reports about a snapshot file."""

    kind: str
    version: int
    size: int
    capacity: int
    compressed: bool
    file_bytes: int


def describe_snapshot(path: Path) -> SnapshotInfo:
    blob = path.read_bytes()
    state = loads_snapshot(blob)
    return SnapshotInfo(
        kind=state["kind"],
        version=state["version"],
        size=len(state["items"]),
        capacity=state["capacity"],
        compressed=blob[:2] == _GZIP_MAGIC,
        file_bytes=len(blob),
    )


__all__ = [
    "SnapshotInfo",
    "check_snapshot_items",
    "describe_snapshot",
    "dumps_snapshot",
    "loads_snapshot",
    "read_snapshot",
    "write_snapshot",
]
