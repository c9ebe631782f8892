"""Open-addressing probe index with Robin Hood displacement.

The index never owns entries. Each occupied slot references an entry handle
living in :class:`~rhmap.core.entries.EntryStore` together with its probe
distance, the number of steps from the entry's home slot
(``hash(key) % capacity``) to the slot it occupies.

Along any probe run the stored distances never jump by more than one from one
slot to the next, and a slot that follows an empty one has distance zero.
Lookups use this to stop early, and deletions keep it by shifting the run
back instead of leaving tombstones.
"""

from __future__ import annotations

from typing import Any, Callable, Iterator, List, Optional, Tuple, cast

from .entries import _Entry

EMPTY = -1
NOT_FOUND = -1

HashFunction = Callable[[Any], int]


class ProbeIndex:
    """Fixed-capacity slot array; parallel lists of handles and distances."""

    __slots__ = ("_capacity", "_hash", "_handles", "_distances", "_occupied")

    def __init__(self, capacity: int, hash_function: HashFunction) -> None:
        if capacity < 1:
            raise ValueError("capacity must be >= 1")
        self._capacity = capacity
        self._hash = hash_function
        self._handles: List[Optional[_Entry]] = [None] * capacity
        self._distances: List[int] = [EMPTY] * capacity
        self._occupied = 0

    @property
    def capacity(self) -> int:
        return self._capacity

    def __len__(self) -> int:
        return self._occupied

    def home(self, key: Any) -> int:
        # Python's % is non-negative for a positive modulus, even for negative hashes.
        return self._hash(key) % self._capacity

    def _step(self, pos: int) -> int:
        pos += 1
        return 0 if pos == self._capacity else pos

    def slot(self, pos: int) -> Tuple[Optional[_Entry], int]:
        return self._handles[pos], self._distances[pos]

    def occupied_slots(self) -> Iterator[Tuple[int, _Entry, int]]:
        for pos, (handle, distance) in enumerate(zip(self._handles, self._distances)):
            if handle is not None:
                yield pos, handle, distance

    def locate(self, key: Any) -> int:
        """Return the slot holding ``key`` or ``NOT_FOUND``.

        The walk stops at the first slot whose distance is below the number of
        steps taken: a resident that close to home would have been displaced
        by ``key`` had ``key`` been placed beyond it.
        """

        handles = self._handles
        distances = self._distances
        pos = self.home(key)
        waited = 0
        while waited < self._capacity and distances[pos] >= waited:
            candidate = cast(_Entry, handles[pos])
            if candidate.key is key or candidate.key == key:
                return pos
            waited += 1
            pos = self._step(pos)
        return NOT_FOUND

    def place(self, entry: _Entry) -> None:
        """Store ``entry``, displacing residents closer to home than the carried entry."""

        handles = self._handles
        distances = self._distances
        pos = self.home(entry.key)
        carried = entry
        distance = 0
        for _ in range(self._capacity):
            resident = handles[pos]
            if resident is None:
                handles[pos] = carried
                distances[pos] = distance
                self._occupied += 1
                return
            if distances[pos] < distance:
                handles[pos], carried = carried, resident
                distances[pos], distance = distance, distances[pos]
            distance += 1
            pos = self._step(pos)
        raise RuntimeError(f"probe index is full (capacity={self._capacity})")

    def remove_at(self, pos: int) -> _Entry:
        """Free ``pos`` and backward-shift the displaced run that follows it."""

        handles = self._handles
        distances = self._distances
        removed = handles[pos]
        if removed is None:
            raise IndexError(f"slot {pos} is empty")
        following = self._step(pos)
        for _ in range(self._capacity - 1):
            if distances[following] <= 0:
                break
            handles[pos] = handles[following]
            distances[pos] = distances[following] - 1
            pos = following
            following = self._step(pos)
        handles[pos] = None
        distances[pos] = EMPTY
        self._occupied -= 1
        return removed


__all__ = ["EMPTY", "NOT_FOUND", "HashFunction", "ProbeIndex"]
