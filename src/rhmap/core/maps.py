"""The insertion-ordered map engine.

:class:`OrderedRobinHoodMap` pairs an :class:`~rhmap.core.entries.EntryStore`,
which owns the entries and their order, with a
:class:`~rhmap.core.index.ProbeIndex` that maps keys to entry handles. Every
mutation resolves the key through the index first and then updates both
structures together. Growth rebuilds only the index.

Snapshots carry the plain state from :meth:`OrderedRobinHoodMap.to_state`; the
hash function and default factory are supplied again when loading.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, Iterator, List, Mapping, Optional, Tuple, Union

from rhmap.config import MapPolicy
from rhmap.contracts.error import KeyNotFoundError
from rhmap.io.snapshot import read_snapshot, write_snapshot

from .entries import EntryStore, _Entry
from .index import NOT_FOUND, HashFunction, ProbeIndex

logger = logging.getLogger("rhmap")

SNAPSHOT_KIND = "OrderedRobinHoodMap"
SNAPSHOT_VERSION = 1

PairSource = Union[Mapping[Any, Any], Iterable[Tuple[Any, Any]]]


class EntryView:
    """Accessor for one live entry: read-only key, writable value."""

    __slots__ = ("_entry",)

    def __init__(self, entry: _Entry) -> None:
        self._entry = entry

    @property
    def key(self) -> Any:
        return self._entry.key

    @property
    def value(self) -> Any:
        return self._entry.value

    @value.setter
    def value(self, new_value: Any) -> None:
        self._entry.value = new_value

    def __iter__(self) -> Iterator[Any]:
        yield self._entry.key
        yield self._entry.value

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, EntryView):
            return NotImplemented
        return self._entry is other._entry

    def __hash__(self) -> int:
        return id(self._entry)

    def __repr__(self) -> str:
        return f"EntryView({self._entry.key!r}, {self._entry.value!r})"


def _materialize_pairs(pairs: PairSource) -> List[Tuple[Any, Any]]:
    if isinstance(pairs, (Mapping, OrderedRobinHoodMap)):
        return list(pairs.items())
    return [(key, value) for key, value in pairs]


class OrderedRobinHoodMap:
    """Insertion-ordered hash map over a Robin Hood probe index.

    Entries live in an :class:`EntryStore`; the :class:`ProbeIndex` only maps
    keys to entry handles. Growth rebuilds the index and never touches the
    entries, so iteration order is insertion order regardless of rehashing.

    ``insert`` never overwrites an existing value; assignment through indexed
    access (``m[key] = value`` or ``m.entry(key).value = value``) does.
    """

    __slots__ = ("_policy", "_hash", "_default_factory", "_entries", "_index")

    def __init__(
        self,
        pairs: Optional[PairSource] = None,
        *,
        hash_function: HashFunction = hash,
        default_factory: Optional[Callable[[], Any]] = None,
        policy: Optional[MapPolicy] = None,
    ) -> None:
        self._policy = policy if policy is not None else MapPolicy()
        self._policy.validate()
        self._hash = hash_function
        self._default_factory = default_factory
        self._entries = EntryStore()
        seed = _materialize_pairs(pairs) if pairs is not None else []
        capacity = self._policy.grown_capacity(len(seed)) if seed else self._policy.initial_capacity
        self._index = ProbeIndex(capacity, hash_function)
        for key, value in seed:
            self.insert(key, value)

    # ------------------------------------------------------------------
    # size / introspection
    # ------------------------------------------------------------------
    def __len__(self) -> int:
        return len(self._entries)

    def size(self) -> int:
        return len(self._entries)

    def empty(self) -> bool:
        return len(self._entries) == 0

    def hash_function(self) -> HashFunction:
        return self._hash

    @property
    def capacity(self) -> int:
        return self._index.capacity

    @property
    def policy(self) -> MapPolicy:
        return self._policy

    def load_factor(self) -> float:
        return len(self._entries) / self._index.capacity

    # ------------------------------------------------------------------
    # growth
    # ------------------------------------------------------------------
    def _check_and_rehash(self) -> None:
        if self.load_factor() <= self._policy.max_load_factor:
            return
        self._rehash(self._policy.grown_capacity(len(self._entries)))

    def _rehash(self, new_capacity: int) -> None:
        size = len(self._entries)
        if size >= self._policy.large_map_warn_threshold:
            logger.warning("Large rehash starting (size=%d, capacity=%d)", size, new_capacity)
        # Fill a fresh index first; the current one stays installed until it is complete.
        fresh = ProbeIndex(new_capacity, self._hash)
        for entry in self._entries:
            fresh.place(entry)
        old_capacity = self._index.capacity
        self._index = fresh
        logger.debug("Rehashed probe index %d -> %d slots (size=%d)", old_capacity, new_capacity, size)

    # ------------------------------------------------------------------
    # lookup
    # ------------------------------------------------------------------
    def _handle_for(self, key: Any) -> Optional[_Entry]:
        pos = self._index.locate(key)
        if pos == NOT_FOUND:
            return None
        return self._index.slot(pos)[0]

    def __contains__(self, key: Any) -> bool:
        return self._index.locate(key) != NOT_FOUND

    def find(self, key: Any) -> Optional[EntryView]:
        """Return an accessor for ``key``'s entry, or ``None`` when absent."""

        handle = self._handle_for(key)
        return EntryView(handle) if handle is not None else None

    def at(self, key: Any) -> Any:
        """Return the value stored for ``key``; raise :class:`KeyNotFoundError` if absent."""

        handle = self._handle_for(key)
        if handle is None:
            raise KeyNotFoundError(key)
        return handle.value

    def get(self, key: Any, default: Any = None) -> Any:
        handle = self._handle_for(key)
        return handle.value if handle is not None else default

    # ------------------------------------------------------------------
    # mutation
    # ------------------------------------------------------------------
    def insert(self, key: Any, value: Any) -> None:
        """Add ``key`` -> ``value`` unless ``key`` is already present."""

        if self._index.locate(key) == NOT_FOUND:
            self._index.place(self._entries.append(key, value))
        self._check_and_rehash()

    def entry(self, key: Any) -> EntryView:
        """Indexed access: the accessor for ``key``, default-inserting when absent."""

        handle = self._handle_for(key)
        if handle is None:
            default = self._default_factory() if self._default_factory is not None else None
            handle = self._entries.append(key, default)
            self._index.place(handle)
        self._check_and_rehash()
        return EntryView(handle)

    def __getitem__(self, key: Any) -> Any:
        return self.entry(key).value

    def __setitem__(self, key: Any, value: Any) -> None:
        self.entry(key).value = value

    def erase(self, key: Any) -> None:
        """Remove ``key`` if present; absent keys are ignored."""

        pos = self._index.locate(key)
        if pos == NOT_FOUND:
            return
        handle = self._index.remove_at(pos)
        self._entries.remove(handle)

    def clear(self) -> None:
        self._entries.clear()
        self._index = ProbeIndex(self._policy.initial_capacity, self._hash)

    # ------------------------------------------------------------------
    # iteration (insertion order)
    # ------------------------------------------------------------------
    def __iter__(self) -> Iterator[Any]:
        for entry in self._entries:
            yield entry.key

    def keys(self) -> Iterator[Any]:
        return iter(self)

    def values(self) -> Iterator[Any]:
        for entry in self._entries:
            yield entry.value

    def items(self) -> Iterator[Tuple[Any, Any]]:
        for entry in self._entries:
            yield entry.key, entry.value

    def entries(self) -> Iterator[EntryView]:
        for entry in self._entries:
            yield EntryView(entry)

    def __repr__(self) -> str:
        body = ", ".join(f"{key!r}: {value!r}" for key, value in self.items())
        return f"{type(self).__name__}({{{body}}})"

    # ------------------------------------------------------------------
    # probe statistics
    # ------------------------------------------------------------------
    def probe_distances(self) -> Iterator[int]:
        for _, _, distance in self._index.occupied_slots():
            yield distance

    def avg_probe_distance(self) -> float:
        total = 0
        count = 0
        for distance in self.probe_distances():
            total += distance
            count += 1
        return total / count if count else 0.0

    def max_probe_distance(self) -> int:
        return max(self.probe_distances(), default=0)

    # ------------------------------------------------------------------
    # snapshots
    # ------------------------------------------------------------------
    def to_state(self) -> Dict[str, Any]:
        return {
            "kind": SNAPSHOT_KIND,
            "version": SNAPSHOT_VERSION,
            "capacity": self._index.capacity,
            "policy": self._policy.to_dict(),
            "items": list(self.items()),
        }

    @classmethod
    def from_state(
        cls,
        state: Any,
        *,
        hash_function: HashFunction = hash,
        default_factory: Optional[Callable[[], Any]] = None,
    ) -> "OrderedRobinHoodMap":
        if not isinstance(state, dict) or state.get("kind") != SNAPSHOT_KIND:
            raise TypeError(f"Snapshot is not an {SNAPSHOT_KIND}")
        if state.get("version") != SNAPSHOT_VERSION:
            raise TypeError(f"Unsupported {SNAPSHOT_KIND} snapshot version {state.get('version')!r}")
        policy_data = state.get("policy", {})
        policy = MapPolicy.from_dict(policy_data) if isinstance(policy_data, dict) else MapPolicy()
        obj = cls(hash_function=hash_function, default_factory=default_factory, policy=policy)
        capacity = state.get("capacity")
        if isinstance(capacity, int) and capacity >= policy.initial_capacity:
            obj._index = ProbeIndex(capacity, hash_function)
        for key, value in state.get("items", []):
            obj.insert(key, value)
        return obj

    def save(self, filepath: str, compress: bool = False) -> None:
        """Write a snapshot; raises :class:`BadInputError` for keys or values JSON cannot hold."""

        written = write_snapshot(Path(filepath), self.to_state(), compress=compress)
        logger.info(
            "Saved %s snapshot (size=%d, bytes=%d) to %s", SNAPSHOT_KIND, len(self), written, filepath
        )

    @classmethod
    def load(
        cls,
        filepath: str,
        *,
        hash_function: HashFunction = hash,
        default_factory: Optional[Callable[[], Any]] = None,
    ) -> "OrderedRobinHoodMap":
        state = read_snapshot(Path(filepath))
        obj = cls.from_state(state, hash_function=hash_function, default_factory=default_factory)
        logger.info("Loaded %s snapshot (size=%d) from %s", SNAPSHOT_KIND, len(obj), filepath)
        return obj


def collect_probe_histogram(m: OrderedRobinHoodMap) -> List[List[int]]:
    histogram: Dict[int, int] = defaultdict(int)
    for distance in m.probe_distances():
        histogram[distance] += 1
    return [[distance, count] for distance, count in sorted(histogram.items())]


def sample_stats(m: OrderedRobinHoodMap) -> Dict[str, Any]:
    return {
        "size": len(m),
        "capacity": m.capacity,
        "load_factor": m.load_factor(),
        "avg_probe_distance": m.avg_probe_distance(),
        "max_probe_distance": m.max_probe_distance(),
        "probe_histogram": collect_probe_histogram(m),
    }


__all__ = [
    "EntryView",
    "OrderedRobinHoodMap",
    "SNAPSHOT_KIND",
    "collect_probe_histogram",
    "sample_stats",
]
