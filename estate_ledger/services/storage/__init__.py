"""
Storage Services Package

Provides abstract interfaces and concrete implementations for the entity
and snapshot stores. SQLite is the durable backend; the in-memory store
implements the same interfaces for tests and throwaway sessions.
"""

from estate_ledger.services.storage.interface import (
    DuplicateCycleError,
    DuplicateError,
    EntityStoreInterface,
    NotFoundError,
    SnapshotStoreInterface,
    StorageError,
    StoreIOError,
)
from estate_ledger.services.storage.legacy import (
    LegacyDocumentSource,
    MigrationCorruptionError,
    migrate_from_legacy,
)
from estate_ledger.services.storage.memory import InMemoryStore
from estate_ledger.services.storage.sqlite_store import SqliteStore

__all__ = [
    # Interfaces
    "EntityStoreInterface",
    "SnapshotStoreInterface",
    # Exceptions
    "DuplicateCycleError",
    "DuplicateError",
    "MigrationCorruptionError",
    "NotFoundError",
    "StorageError",
    "StoreIOError",
    # Implementations
    "InMemoryStore",
    "SqliteStore",
    # Legacy import
    "LegacyDocumentSource",
    "migrate_from_legacy",
]
