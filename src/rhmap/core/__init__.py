from .entries import EntryStore
from .index import EMPTY, NOT_FOUND, ProbeIndex
from .maps import (
    EntryView,
    OrderedRobinHoodMap,
    collect_probe_histogram,
    sample_stats,
)

__all__ = [
    "EMPTY",
    "NOT_FOUND",
    "EntryStore",
    "EntryView",
    "OrderedRobinHoodMap",
    "ProbeIndex",
    "collect_probe_histogram",
    "sample_stats",
]
