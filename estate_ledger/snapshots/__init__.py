"""Monthly close: building, storing and comparing snapshots."""

from estate_ledger.snapshots.lifecycle import (
    SnapshotLedger,
    build_snapshot,
    occupancy_rate,
)

__all__ = [
    "SnapshotLedger",
    "build_snapshot",
    "occupancy_rate",
]
