"""Services package."""

from estate_ledger.services.backup import export_backup, parse_backup
from estate_ledger.services.storage import (
    DuplicateCycleError,
    DuplicateError,
    EntityStoreInterface,
    InMemoryStore,
    LegacyDocumentSource,
    MigrationCorruptionError,
    NotFoundError,
    SnapshotStoreInterface,
    SqliteStore,
    StorageError,
    StoreIOError,
    migrate_from_legacy,
)

__all__ = [
    # Backup
    "export_backup",
    "parse_backup",
    # Storage services
    "DuplicateCycleError",
    "DuplicateError",
    "EntityStoreInterface",
    "InMemoryStore",
    "LegacyDocumentSource",
    "MigrationCorruptionError",
    "NotFoundError",
    "SnapshotStoreInterface",
    "SqliteStore",
    "StorageError",
    "StoreIOError",
    "migrate_from_legacy",
]
