"""
Abstract Storage Interface

DESIGN DECISION: We define abstract interfaces for storage operations.
This allows us to:
1. Use SQLite locally and an in-memory store in tests
2. Keep the cache, migration and snapshot logic decoupled from SQL
3. Pass an explicitly constructed store handle around (no global store)

Two interfaces, because the two halves have different write patterns:
- Entity collections are always written WHOLE (full replace), because the
  write-through cache persists its complete in-memory value.
- Snapshots are written ONE AT A TIME and never updated.

Every multi-collection write is a single all-or-nothing transaction.
"""

from abc import ABC, abstractmethod
from typing import Optional

from estate_ledger.models.entities import EntitySet
from estate_ledger.models.snapshot import MonthlySnapshot, StoreMeta


class EntityStoreInterface(ABC):
    """
    Durable store for properties, tenants, employees, config and meta.
    """

    @abstractmethod
    async def initialize(self) -> None:
        """Create collections/indexes if they do not exist yet."""
        pass

    @abstractmethod
    async def load_entities(self) -> EntitySet:
        """
        Bulk-load every entity collection.

        A missing config record yields the default AppConfig.

        Raises:
            StoreIOError: If the read fails
        """
        pass

    @abstractmethod
    async def replace_entities(self, entities: EntitySet) -> None:
        """
        Persist the entity set with full-replace semantics.

        Properties, tenants and every employee collection are cleared and
        bulk-written; config is upserted. One transaction.

        Raises:
            StoreIOError: If the write fails (store left unchanged)
        """
        pass

    @abstractmethod
    async def import_legacy(
        self,
        entities: EntitySet,
        snapshots: list[MonthlySnapshot],
        meta: StoreMeta,
    ) -> None:
        """
        Write a migrated legacy document: entities, snapshots and the
        migration marker, all in one transaction.

        Raises:
            StoreIOError: If the write fails (store left unchanged)
        """
        pass

    @abstractmethod
    async def get_meta(self) -> Optional[StoreMeta]:
        """Return the store metadata record, if any."""
        pass

    @abstractmethod
    async def put_meta(self, meta: StoreMeta) -> None:
        """Upsert the store metadata record."""
        pass

    @abstractmethod
    async def reset(self) -> None:
        """
        Clear EVERY collection, snapshots and meta included.

        Destructive. One transaction.
        """
        pass

    @abstractmethod
    async def close(self) -> None:
        """Release connections."""
        pass


class SnapshotStoreInterface(ABC):
    """
    Durable store for monthly snapshots.

    Snapshots are insert-only; cycle_month is unique.
    """

    @abstractmethod
    async def add_snapshot(self, snapshot: MonthlySnapshot) -> None:
        """
        Insert a snapshot.

        Raises:
            DuplicateCycleError: If a snapshot for the same cycle exists
            StoreIOError: If the write fails
        """
        pass

    @abstractmethod
    async def get_snapshot(self, snapshot_id: str) -> Optional[MonthlySnapshot]:
        """Look up a snapshot by id."""
        pass

    @abstractmethod
    async def find_snapshot_by_cycle(self, cycle_month: str) -> Optional[MonthlySnapshot]:
        """Equality lookup on cycle_month."""
        pass

    @abstractmethod
    async def list_snapshots(self) -> list[MonthlySnapshot]:
        """All snapshots, most recent cycle first."""
        pass

    @abstractmethod
    async def delete_snapshot(self, snapshot_id: str) -> bool:
        """
        Delete a snapshot.

        Returns:
            True if a snapshot was removed, False if it was already absent
        """
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class StoreIOError(StorageError):
    """A read or write against the durable store failed."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class DuplicateError(StorageError):
    """Attempted to insert a duplicate entity."""
    pass


class DuplicateCycleError(DuplicateError):
    """A snapshot for this billing cycle already exists."""

    def __init__(self, cycle_month: str):
        self.cycle_month = cycle_month
        super().__init__(f"Cycle {cycle_month} is already closed")
