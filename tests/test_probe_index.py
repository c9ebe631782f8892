from __future__ import annotations

from typing import Iterable, List, Optional, Tuple

import pytest

from rhmap.core.entries import EntryStore
from rhmap.core.index import EMPTY, NOT_FOUND, ProbeIndex
from tests.util.keys import identity_hash


def _index_with(keys: Iterable[int], capacity: int = 10) -> Tuple[EntryStore, ProbeIndex]:
    store = EntryStore()
    index = ProbeIndex(capacity, identity_hash)
    for key in keys:
        index.place(store.append(key, str(key)))
    return store, index


def _layout(index: ProbeIndex) -> List[Tuple[Optional[int], int]]:
    layout = []
    for pos in range(index.capacity):
        handle, distance = index.slot(pos)
        layout.append((handle.key if handle is not None else None, distance))
    return layout


def test_capacity_must_be_positive() -> None:
    with pytest.raises(ValueError):
        ProbeIndex(0, identity_hash)


def test_place_probes_linearly_past_collisions() -> None:
    _, index = _index_with([3, 13, 4])
    layout = _layout(index)
    assert layout[3] == (3, 0)
    assert layout[4] == (13, 1)
    assert layout[5] == (4, 1)
    assert len(index) == 3


def test_place_displaces_entries_closer_to_home() -> None:
    # 4 sits at its home slot until 13 arrives one step from home and evicts it.
    _, index = _index_with([3, 4, 13])
    layout = _layout(index)
    assert layout[3] == (3, 0)
    assert layout[4] == (13, 1)
    assert layout[5] == (4, 1)


def test_place_wraps_around_the_end_of_the_table() -> None:
    _, index = _index_with([9, 19, 29])
    layout = _layout(index)
    assert layout[9] == (9, 0)
    assert layout[0] == (19, 1)
    assert layout[1] == (29, 2)
    assert index.locate(29) == 1


def test_locate_finds_displaced_keys() -> None:
    _, index = _index_with([3, 13, 4])
    assert index.locate(3) == 3
    assert index.locate(13) == 4
    assert index.locate(4) == 5


def test_locate_stops_at_richer_resident() -> None:
    _, index = _index_with([3, 13, 4])
    # 23 would have displaced the distance-1 resident at slot 5 by its third step.
    assert index.locate(23) == NOT_FOUND
    assert index.locate(7) == NOT_FOUND


def test_home_is_non_negative_for_negative_hashes() -> None:
    index = ProbeIndex(10, lambda key: -1)
    assert index.home("anything") == 9


def test_remove_at_backward_shifts_displaced_run() -> None:
    _, index = _index_with([3, 13, 4, 6])
    removed = index.remove_at(3)
    assert removed.key == 3
    layout = _layout(index)
    assert layout[3] == (13, 0)
    assert layout[4] == (4, 0)
    assert layout[5] == (None, EMPTY)
    assert layout[6] == (6, 0)
    assert len(index) == 3


def test_remove_at_stops_at_empty_slot() -> None:
    _, index = _index_with([3, 13])
    index.remove_at(4)
    layout = _layout(index)
    assert layout[3] == (3, 0)
    assert layout[4] == (None, EMPTY)


def test_remove_at_shifts_across_the_wrap() -> None:
    _, index = _index_with([9, 19, 29])
    index.remove_at(9)
    layout = _layout(index)
    assert layout[9] == (19, 0)
    assert layout[0] == (29, 1)
    assert layout[1] == (None, EMPTY)


def test_remove_at_empty_slot_raises() -> None:
    _, index = _index_with([3])
    with pytest.raises(IndexError):
        index.remove_at(5)


def test_place_into_full_index_raises() -> None:
    _, index = _index_with([0, 1], capacity=2)
    store = EntryStore()
    with pytest.raises(RuntimeError, match="full"):
        index.place(store.append(2, "2"))


def test_occupied_slots_reports_positions_and_distances() -> None:
    _, index = _index_with([3, 13])
    assert [(pos, handle.key, distance) for pos, handle, distance in index.occupied_slots()] == [
        (3, 3, 0),
        (4, 13, 1),
    ]
