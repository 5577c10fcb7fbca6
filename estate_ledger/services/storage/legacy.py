"""
Legacy Flat-Document Migration

Before the SQLite store existed, the whole entity set lived in ONE flat JSON
document ({properties, tenants, employees, config}) with a sibling document
holding {snapshots: [...]}. This module imports those documents once.

GUARANTEES:
- The migration runs at most once ever, guarded by StoreMeta.migrated_from_legacy
- The import is a single transaction: never half-migrated
- A corrupt document is skipped AND marked done, so startup never loops on it;
  the operator gets a warning instead
"""

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

import structlog
from pydantic import ValidationError as PydanticValidationError

from estate_ledger.audit import AuditLogger
from estate_ledger.config import LegacySettings
from estate_ledger.models.entities import AppConfig, EntitySet
from estate_ledger.models.snapshot import MonthlySnapshot, StoreMeta
from estate_ledger.services.storage.interface import (
    EntityStoreInterface,
    StorageError,
)

logger = structlog.get_logger(__name__)

STORE_VERSION = "8.0"

REQUIRED_COLLECTIONS = ("properties", "tenants", "employees")

# Legacy config keys -> AppConfig fields
CONFIG_KEYS = {
    "companyName": "company_name",
    "closingDay": "closing_day",
    "defaultCleaningFee": "default_cleaning_fee",
}


class MigrationCorruptionError(StorageError):
    """The legacy document exists but cannot be imported."""
    pass


def config_from_document(raw: Any, defaults: AppConfig) -> AppConfig:
    """
    Build an AppConfig from a (possibly partial) config object.

    Accepts the legacy camelCase keys and the current snake_case ones.
    Missing or empty values fall back to `defaults`.
    """
    values = defaults.model_dump()
    if isinstance(raw, dict):
        for key, value in raw.items():
            field = CONFIG_KEYS.get(key, key)
            if field in values and value not in (None, ""):
                values[field] = value
    return AppConfig.model_validate(values)


def entities_from_document(document: Any, defaults: AppConfig) -> EntitySet:
    """
    Parse a flat document into an EntitySet.

    Raises:
        MigrationCorruptionError: If a collection is missing, not a list,
            holds records that do not parse, or reuses an id
    """
    if not isinstance(document, dict):
        raise MigrationCorruptionError("Document is not a JSON object")

    for name in REQUIRED_COLLECTIONS:
        if not isinstance(document.get(name), list):
            raise MigrationCorruptionError(f"'{name}' is missing or not an array")

    try:
        entities = EntitySet(
            properties=document["properties"],
            tenants=document["tenants"],
            employees=document["employees"],
            config=config_from_document(document.get("config"), defaults),
        )
    except PydanticValidationError as e:
        raise MigrationCorruptionError(
            f"Records do not parse ({e.error_count()} errors)"
        ) from e

    duplicates = entities.duplicate_ids()
    if duplicates:
        listed = ", ".join(f"{collection}:{record_id}" for collection, record_id in duplicates)
        raise MigrationCorruptionError(f"Duplicate ids ({listed})")
    return entities


class LegacyDocumentSource:
    """
    Reads the legacy documents from disk.

    Missing files are normal (fresh install) and read as None.
    """

    def __init__(
        self,
        settings: Optional[LegacySettings] = None,
        defaults: Optional[AppConfig] = None,
    ):
        settings = settings or LegacySettings()
        self.database_path = Path(settings.database_document)
        self.reports_path = Path(settings.reports_document)
        self.defaults = defaults or AppConfig()

    @staticmethod
    def _read_json(path: Path) -> Optional[Any]:
        """
        Returns None if the file does not exist.

        Raises:
            MigrationCorruptionError: If the file cannot be read or parsed
        """
        try:
            text = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except (OSError, UnicodeDecodeError) as e:
            raise MigrationCorruptionError(f"Cannot read {path}: {e}") from e

        if not text.strip():
            return None
        try:
            return json.loads(text)
        except json.JSONDecodeError as e:
            raise MigrationCorruptionError(f"{path} is not valid JSON: {e}") from e

    def read_entities(self) -> Optional[EntitySet]:
        """
        Strict read used by the migration.

        Raises:
            MigrationCorruptionError: If the document is malformed
        """
        document = self._read_json(self.database_path)
        if document is None:
            return None
        return entities_from_document(document, self.defaults)

    def read_snapshots(self) -> list[MonthlySnapshot]:
        """
        Raises:
            MigrationCorruptionError: If the reports document is malformed
        """
        document = self._read_json(self.reports_path)
        if document is None:
            return []
        snapshots = document.get("snapshots") if isinstance(document, dict) else None
        if not isinstance(snapshots, list):
            raise MigrationCorruptionError("'snapshots' is missing or not an array")
        try:
            return [MonthlySnapshot.model_validate(s) for s in snapshots]
        except PydanticValidationError as e:
            raise MigrationCorruptionError(
                f"Snapshots do not parse ({e.error_count()} errors)"
            ) from e

    def read_fallback(self) -> Optional[EntitySet]:
        """
        Lenient read used when the store is empty or unreachable.

        Missing collections count as empty; anything unreadable yields None.
        """
        try:
            document = self._read_json(self.database_path)
        except MigrationCorruptionError as e:
            logger.warning("legacy_fallback_unreadable", error=str(e))
            return None
        if not isinstance(document, dict):
            return None

        lenient = {
            name: document.get(name) if isinstance(document.get(name), list) else []
            for name in REQUIRED_COLLECTIONS
        }
        lenient["config"] = document.get("config")
        try:
            return entities_from_document(lenient, self.defaults)
        except MigrationCorruptionError as e:
            logger.warning("legacy_fallback_unreadable", error=str(e))
            return None


def migrated_marker() -> StoreMeta:
    return StoreMeta(
        version=STORE_VERSION,
        last_sync=datetime.now(timezone.utc),
        migrated_from_legacy=True,
    )


async def migrate_from_legacy(
    store: EntityStoreInterface,
    source: LegacyDocumentSource,
    audit_logger: Optional[AuditLogger] = None,
) -> bool:
    """
    Import the legacy documents into the store, once.

    Returns:
        True if data was imported, False otherwise (already migrated,
        nothing to import, corrupt document, or store failure)
    """
    try:
        meta = await store.get_meta()
        if meta is not None and meta.migrated_from_legacy:
            return False

        try:
            entities = source.read_entities()
        except MigrationCorruptionError as e:
            logger.warning("legacy_migration_skipped", reason=str(e))
            if audit_logger:
                audit_logger.log_migration_skipped(str(e))
            await store.put_meta(migrated_marker())
            return False

        if entities is None:
            # Fresh install: nothing to import
            await store.put_meta(migrated_marker())
            return False

        try:
            snapshots = source.read_snapshots()
        except MigrationCorruptionError as e:
            logger.warning("legacy_snapshots_ignored", reason=str(e))
            snapshots = []

        await store.import_legacy(entities, snapshots, migrated_marker())

    except StorageError as e:
        # Not marked as migrated: the import is retried on next start
        logger.error("legacy_migration_failed", error=str(e))
        return False

    logger.info(
        "legacy_migration_completed",
        properties=len(entities.properties),
        tenants=len(entities.tenants),
        employees=len(entities.employees),
        snapshots=len(snapshots),
    )
    if audit_logger:
        audit_logger.log_migration_completed(
            properties=len(entities.properties),
            tenants=len(entities.tenants),
            employees=len(entities.employees),
            snapshots=len(snapshots),
        )
    return True
