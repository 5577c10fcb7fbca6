"""
In-Memory Storage Implementation

Implements both store interfaces on plain Python structures. Used by the
test suite and for throwaway sessions (e.g. previewing a backup before
restoring it).

Every write works on a copy and swaps it in at the end, so a failure in
the middle of a multi-collection write leaves the previous state intact,
just like a rolled-back transaction.

write_count records how many full entity writes happened, which is how
tests observe flush coalescing in the write-through cache.
"""

from typing import Optional

from estate_ledger.models.entities import EntitySet
from estate_ledger.models.snapshot import MonthlySnapshot, StoreMeta
from estate_ledger.services.storage.interface import (
    DuplicateCycleError,
    EntityStoreInterface,
    SnapshotStoreInterface,
    StoreIOError,
)


class InMemoryStore(EntityStoreInterface, SnapshotStoreInterface):
    """Volatile store with the same semantics as SqliteStore."""

    def __init__(self):
        self._entities = EntitySet.empty()
        self._snapshots: dict[str, MonthlySnapshot] = {}
        self._meta: Optional[StoreMeta] = None
        self.write_count = 0
        self.written: list[EntitySet] = []
        self.fail_writes = False

    def _check_writable(self, action: str) -> None:
        if self.fail_writes:
            raise StoreIOError(f"Failed to {action}: store is read-only")

    async def initialize(self) -> None:
        pass

    async def close(self) -> None:
        pass

    async def load_entities(self) -> EntitySet:
        return self._entities.model_copy(deep=True)

    async def replace_entities(self, entities: EntitySet) -> None:
        self._check_writable("persist entities")
        self._entities = entities.model_copy(deep=True)
        self.write_count += 1
        self.written.append(self._entities)

    async def import_legacy(
        self,
        entities: EntitySet,
        snapshots: list[MonthlySnapshot],
        meta: StoreMeta,
    ) -> None:
        self._check_writable("import legacy document")
        merged = dict(self._snapshots)
        for snapshot in snapshots:
            merged[snapshot.id] = snapshot
        self._entities = entities.model_copy(deep=True)
        self._snapshots = merged
        self._meta = meta

    async def get_meta(self) -> Optional[StoreMeta]:
        return self._meta

    async def put_meta(self, meta: StoreMeta) -> None:
        self._check_writable("write store meta")
        self._meta = meta

    async def reset(self) -> None:
        self._check_writable("reset store")
        self._entities = EntitySet.empty()
        self._snapshots = {}
        self._meta = None

    async def add_snapshot(self, snapshot: MonthlySnapshot) -> None:
        self._check_writable("save snapshot")
        if any(s.cycle_month == snapshot.cycle_month for s in self._snapshots.values()):
            raise DuplicateCycleError(snapshot.cycle_month)
        self._snapshots[snapshot.id] = snapshot

    async def get_snapshot(self, snapshot_id: str) -> Optional[MonthlySnapshot]:
        return self._snapshots.get(snapshot_id)

    async def find_snapshot_by_cycle(self, cycle_month: str) -> Optional[MonthlySnapshot]:
        return next(
            (s for s in self._snapshots.values() if s.cycle_month == cycle_month),
            None,
        )

    async def list_snapshots(self) -> list[MonthlySnapshot]:
        return sorted(
            self._snapshots.values(),
            key=lambda s: s.cycle_month,
            reverse=True,
        )

    async def delete_snapshot(self, snapshot_id: str) -> bool:
        self._check_writable("delete snapshot")
        return self._snapshots.pop(snapshot_id, None) is not None
