"""JSON map snapshots for rhmap."""

from .snapshot import (
    SnapshotInfo,
    check_snapshot_items,
    describe_snapshot,
    dumps_snapshot,
    loads_snapshot,
    read_snapshot,
    write_snapshot,
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
