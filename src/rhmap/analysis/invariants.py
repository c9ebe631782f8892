"""Consistency checks between the entry store and the probe index."""

from __future__ import annotations

from typing import List, Tuple

from rhmap.core.maps import OrderedRobinHoodMap


def verify_map(m: OrderedRobinHoodMap, verbose: bool = False) -> Tuple[bool, List[str]]:
    """Check the entry/slot bijection, probe distances and Robin Hood ordering.

    Returns ``(ok, messages)``; messages describe each violation found, plus a
    summary line when ``verbose`` is set.
    """

    msgs: List[str] = []
    index = m._index  # pylint: disable=protected-access
    cap = index.capacity
    entries = list(m._entries)  # pylint: disable=protected-access
    occupied = list(index.occupied_slots())

    if len(occupied) != len(entries) or len(index) != len(entries):
        msgs.append(
            f"Size mismatch: entries={len(entries)}, occupied slots={len(occupied)}, "
            f"index count={len(index)}"
        )

    slot_ids = [id(handle) for _, handle, _ in occupied]
    if len(set(slot_ids)) != len(slot_ids):
        msgs.append("An entry is referenced by more than one slot")
    entry_ids = {id(entry) for entry in entries}
    dangling = sum(1 for ident in slot_ids if ident not in entry_ids)
    if dangling:
        msgs.append(f"{dangling} slot(s) reference entries missing from the entry store")
    unindexed = len(entry_ids - set(slot_ids))
    if unindexed:
        msgs.append(f"{unindexed} entr(y/ies) have no slot in the probe index")

    for pos, handle, distance in occupied:
        expected = (pos - index.home(handle.key)) % cap
        if distance != expected:
            msgs.append(f"Slot {pos}: stored distance {distance} != computed {expected} for key {handle.key!r}")
        if distance > 0:
            prev_handle, prev_distance = index.slot((pos - 1) % cap)
            if prev_handle is None or prev_distance < distance - 1:
                msgs.append(f"Slot {pos}: Robin Hood ordering broken (distance {distance} after {prev_distance})")
        if index.locate(handle.key) != pos:
            msgs.append(f"Slot {pos}: key {handle.key!r} is not reachable by lookup")

    if m.load_factor() > m.policy.max_load_factor:
        msgs.append(f"Load factor {m.load_factor():.3f} exceeds policy max {m.policy.max_load_factor:.3f}")

    ok = not msgs
    if verbose:
        msgs.append(
            f"Cap={cap}, Size={len(entries)}, LF={m.load_factor():.3f}, "
            f"AvgProbe={m.avg_probe_distance():.3f}, MaxProbe={m.max_probe_distance()}"
        )
    return ok, msgs


__all__ = ["verify_map"]
