"""Insertion-ordered entry storage with removal-stable handles."""

from __future__ import annotations

from typing import Any, Iterator, Optional, cast


class _Entry:
    """Owned ``(key, value)`` node; the node itself is the handle."""

    __slots__ = ("key", "value", "prev", "next")

    def __init__(self, key: Any, value: Any) -> None:
        self.key = key
        self.value = value
        self.prev: Optional[_Entry] = None
        self.next: Optional[_Entry] = None

    def __repr__(self) -> str:
        return f"_Entry({self.key!r}, {self.value!r})"


class EntryStore:
    """Doubly linked sequence of entries around a sentinel root.

    Appending and removing are O(1). Removing an entry unlinks only that node,
    so handles to every other entry stay valid.

    A removed node drops its ``prev`` link but keeps ``next``. Iteration that
    is parked on a removed node follows ``next`` past every other removed node
    to the first live one, so entries may be removed (the current one, its
    successors, or both) while the store is being iterated.
    """

    __slots__ = ("_root", "_size")

    def __init__(self) -> None:
        root = _Entry(None, None)
        root.prev = root
        root.next = root
        self._root = root
        self._size = 0

    def __len__(self) -> int:
        return self._size

    def append(self, key: Any, value: Any) -> _Entry:
        entry = _Entry(key, value)
        last = cast(_Entry, self._root.prev)
        entry.prev = last
        entry.next = self._root
        last.next = entry
        self._root.prev = entry
        self._size += 1
        return entry

    def remove(self, entry: _Entry) -> None:
        if entry.prev is None or entry.next is None:
            raise ValueError(f"{entry!r} is not linked into this store")
        entry.prev.next = entry.next
        entry.next.prev = entry.prev
        entry.prev = None
        self._size -= 1

    def clear(self) -> None:
        node = self._root.next
        while node is not None and node is not self._root:
            following = node.next
            node.prev = None
            node.next = None
            node = following
        self._root.prev = self._root
        self._root.next = self._root
        self._size = 0

    def __iter__(self) -> Iterator[_Entry]:
        root = self._root
        node = root.next
        while node is not None and node is not root:
            yield node
            node = node.next
            # Removed nodes have no prev; skip to the first one still linked.
            while node is not None and node is not root and node.prev is None:
                node = node.next


__all__ = ["EntryStore"]
