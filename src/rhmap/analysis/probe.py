"""Probe-path tracing for OrderedRobinHoodMap.

Traces replay the index algorithms on copies of the slot arrays, so tracing
never mutates the map being inspected.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Union, cast

from rhmap.core.entries import _Entry
from rhmap.core.index import EMPTY
from rhmap.core.maps import OrderedRobinHoodMap

TRACE_SCHEMA = "probe_trace.v1"

ProbeTrace = Dict[str, Any]


def _json_friendly(value: Any) -> Any:
    """Return a JSON-serialisable representation of ``value``."""

    try:
        json.dumps(value)
        return value
    except (TypeError, ValueError):
        return repr(value)


def _keys_equal(left: Any, right: Any) -> bool:
    return left is right or left == right


def _base_trace(map_obj: OrderedRobinHoodMap, operation: str, key: Any) -> ProbeTrace:
    return {
        "schema": TRACE_SCHEMA,
        "operation": operation,
        "key_repr": repr(key),
        "capacity": map_obj.capacity,
        "size": len(map_obj),
    }


def _walk_locate(map_obj: OrderedRobinHoodMap, key: Any) -> tuple[List[Dict[str, Any]], str, Optional[int]]:
    index = map_obj._index  # pylint: disable=protected-access
    cap = index.capacity
    start = index.home(key)
    pos = start
    waited = 0
    path: List[Dict[str, Any]] = []
    while waited < cap:
        handle, distance = index.slot(pos)
        step: Dict[str, Any] = {"step": waited, "slot": pos, "start_slot": start}
        if handle is None:
            step.update({"state": "empty", "action": "stop"})
            path.append(step)
            return path, "empty", None
        step.update(
            {
                "state": "occupied",
                "key_repr": repr(handle.key),
                "ideal_slot": index.home(handle.key),
                "probe_distance": distance,
            }
        )
        if distance < waited:
            step["action"] = "stop"
            path.append(step)
            return path, "early-exit", None
        matches = _keys_equal(handle.key, key)
        step["matches"] = matches
        step["action"] = "match" if matches else "advance"
        path.append(step)
        if matches:
            return path, "match", pos
        waited += 1
        pos = (pos + 1) % cap
    return path, "exhausted", None


def trace_locate(map_obj: OrderedRobinHoodMap, key: Any) -> ProbeTrace:
    path, terminal, position = _walk_locate(map_obj, key)
    trace = _base_trace(map_obj, "find", key)
    trace.update({"found": position is not None, "terminal": terminal, "slot": position, "path": path})
    return trace


def trace_insert(map_obj: OrderedRobinHoodMap, key: Any, value: Any) -> ProbeTrace:
    trace = _base_trace(map_obj, "insert", key)
    trace["value_repr"] = _json_friendly(value)
    locate_path, _, position = _walk_locate(map_obj, key)
    if position is not None:
        # insert() leaves an existing value untouched.
        trace.update({"found": True, "terminal": "present", "slot": position, "path": locate_path})
        return trace

    index = map_obj._index  # pylint: disable=protected-access
    cap = index.capacity
    handles = [index.slot(pos)[0] for pos in range(cap)]
    distances = [index.slot(pos)[1] for pos in range(cap)]
    carried = _Entry(key, value)
    distance = 0
    pos = index.home(key)
    path: List[Dict[str, Any]] = []
    terminal = "exhausted"
    for step_no in range(cap):
        resident = handles[pos]
        step: Dict[str, Any] = {
            "step": step_no,
            "slot": pos,
            "candidate_key": repr(carried.key),
            "candidate_distance": distance,
        }
        if resident is None:
            step.update({"state": "empty", "action": "insert"})
            path.append(step)
            terminal = "insert"
            break
        step.update(
            {
                "state": "occupied",
                "occupant_key": repr(resident.key),
                "probe_distance": distances[pos],
            }
        )
        if distances[pos] < distance:
            step["action"] = "swap"
            handles[pos], carried = carried, resident
            distances[pos], distance = distance, distances[pos]
        else:
            step["action"] = "advance"
        path.append(step)
        distance += 1
        pos = (pos + 1) % cap

    policy = map_obj.policy
    size_after = len(map_obj) + 1
    rehash_after = size_after / cap > policy.max_load_factor
    trace.update(
        {
            "found": False,
            "terminal": terminal,
            "slot": None,
            "path": path,
            "rehash_after": rehash_after,
            "capacity_after": policy.grown_capacity(size_after) if rehash_after else cap,
        }
    )
    return trace


def trace_erase(map_obj: OrderedRobinHoodMap, key: Any) -> ProbeTrace:
    trace = _base_trace(map_obj, "erase", key)
    locate_path, _, position = _walk_locate(map_obj, key)
    if position is None:
        trace.update({"found": False, "terminal": "absent", "slot": None, "path": locate_path})
        return trace

    index = map_obj._index  # pylint: disable=protected-access
    cap = index.capacity
    handles = [index.slot(p)[0] for p in range(cap)]
    distances = [index.slot(p)[1] for p in range(cap)]
    removed = cast(_Entry, handles[position])
    path: List[Dict[str, Any]] = [
        {"step": 0, "slot": position, "action": "free", "key_repr": repr(removed.key)}
    ]
    pos = position
    following = (pos + 1) % cap
    shifted = 0
    while shifted < cap - 1 and distances[following] > 0:
        moved = cast(_Entry, handles[following])
        handles[pos] = moved
        distances[pos] = distances[following] - 1
        shifted += 1
        path.append(
            {
                "step": shifted,
                "slot": following,
                "action": "shift",
                "to_slot": pos,
                "key_repr": repr(moved.key),
                "probe_distance": distances[pos],
            }
        )
        pos = following
        following = (pos + 1) % cap
    handles[pos] = None
    distances[pos] = EMPTY
    stop_handle = handles[following]
    path.append(
        {
            "step": shifted + 1,
            "slot": following,
            "action": "stop",
            "state": "empty" if stop_handle is None else "home",
        }
    )
    trace.update(
        {
            "found": True,
            "terminal": "shifted" if shifted else "erased",
            "slot": position,
            "shifted": shifted,
            "path": path,
        }
    )
    return trace


def format_trace_lines(
    trace: Dict[str, Any],
    *,
    snapshot: Optional[Union[str, Path]] = None,
    seeds: Optional[Sequence[str]] = None,
    export_path: Optional[Union[str, Path]] = None,
) -> List[str]:
    """Return a human-friendly rendering of a probe trace."""

    lines: List[str] = []
    operation = trace.get("operation", "?")
    key_repr = trace.get("key_repr", "?")
    lines.append(f"Probe visualization {operation.upper()} key={key_repr}")
    lines.append(f"Found: {trace.get('found')} | Terminal: {trace.get('terminal')}")
    capacity_line = f"Capacity: {trace.get('capacity')} | Size: {trace.get('size')}"
    if trace.get("rehash_after"):
        capacity_line += f" (rehash to {trace.get('capacity_after')} after insert)"
    lines.append(capacity_line)
    if snapshot:
        lines.append(f"Snapshot: {snapshot}")
    if seeds:
        lines.append("Seed entries: " + ", ".join(seeds))
    lines.append("Steps:")
    path = trace.get("path")
    if not isinstance(path, list) or not path:
        lines.append("  (no path recorded)")
    else:
        for item in path:
            if not isinstance(item, dict):
                lines.append(f"  {item!r}")
                continue
            attrs: List[str] = []
            for key in (
                "slot",
                "to_slot",
                "state",
                "action",
                "ideal_slot",
                "probe_distance",
                "candidate_distance",
                "matches",
                "key_repr",
                "occupant_key",
                "candidate_key",
            ):
                if key in item and item[key] is not None:
                    value = item[key]
                    if isinstance(value, bool):
                        value = str(value).lower()
                    attrs.append(f"{key}={value}")
            lines.append(f"  Step {item.get('step', '?')}: " + ", ".join(attrs))
    if export_path:
        lines.append(f"Trace JSON written to: {export_path}")
    return lines


__all__ = [
    "TRACE_SCHEMA",
    "format_trace_lines",
    "trace_erase",
    "trace_insert",
    "trace_locate",
]
