"""
Main Orchestrator for Estate Ledger

Ties the components together and exposes the operations the UI calls:
- Reading: current reports, billing cycle, integrity check
- Editing: properties, tenants, config (validated, then written to the cache)
- Monthly close: close, list, delete and compare snapshots
- Maintenance: backup, restore, reset

DESIGN DECISION: The orchestrator enforces the boundaries:
- Every mutation is validated BEFORE it reaches the cache
- A rejected mutation leaves memory and store untouched
- Every mutation and every close is audited

Store handles are constructed explicitly (create_ledger / open_ledger) and
passed in; nothing here is a module-level singleton.
"""

import time
from contextlib import asynccontextmanager
from datetime import date, datetime
from typing import Any, AsyncIterator, Optional, Union

import structlog

from estate_ledger.audit import AuditLogger
from estate_ledger.cache import WriteThroughCache
from estate_ledger.config import Settings, get_settings
from estate_ledger.models.entities import (
    AppConfig,
    EntitySet,
    Property,
    Tenant,
    TenantStatus,
)
from estate_ledger.models.reports import ReportBundle
from estate_ledger.models.snapshot import (
    BillingCycle,
    MonthlySnapshot,
    SnapshotComparison,
    SnapshotOperationResult,
)
from estate_ledger.reports import ReportEngine
from estate_ledger.services import backup
from estate_ledger.services.storage import (
    EntityStoreInterface,
    LegacyDocumentSource,
    NotFoundError,
    SnapshotStoreInterface,
    SqliteStore,
)
from estate_ledger.snapshots import SnapshotLedger
from estate_ledger.validation import (
    EntityValidator,
    IntegrityReport,
    ValidationError,
    ValidationResult,
    require_valid,
)

logger = structlog.get_logger(__name__)


def new_entity_id(existing: list[int]) -> int:
    """Millisecond timestamp id, bumped past any existing id."""
    return max(int(time.time() * 1000), max(existing, default=0) + 1)


class EstateLedger:
    """
    Application facade over cache, report engine and snapshot ledger.

    Reads come from the cache's in-memory EntitySet; writes go through
    validation, then cache.mutate(), then the debounced flush.
    """

    def __init__(
        self,
        store: EntityStoreInterface,
        snapshot_store: SnapshotStoreInterface,
        cache: WriteThroughCache,
        engine: Optional[ReportEngine] = None,
        validator: Optional[EntityValidator] = None,
        audit_logger: Optional[AuditLogger] = None,
        defaults: Optional[AppConfig] = None,
    ):
        self._store = store
        self._cache = cache
        self._engine = engine or ReportEngine()
        self._validator = validator or EntityValidator()
        self._audit = audit_logger or AuditLogger()
        self._snapshots = SnapshotLedger(snapshot_store, self._audit)
        self._defaults = defaults or AppConfig()

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    async def load(self) -> EntitySet:
        return await self._cache.load()

    async def close(self) -> None:
        """Flush pending edits, then release the store."""
        try:
            await self._cache.close()
        finally:
            await self._store.close()

    @property
    def entities(self) -> EntitySet:
        return self._cache.value

    @property
    def cache(self) -> WriteThroughCache:
        return self._cache

    @property
    def audit_logger(self) -> AuditLogger:
        return self._audit

    # -------------------------------------------------------------------------
    # Reading
    # -------------------------------------------------------------------------

    def reports(self, now: Optional[datetime] = None) -> ReportBundle:
        return self._engine.build(self.entities, now or datetime.now())

    def current_cycle(self, today: Optional[date] = None) -> BillingCycle:
        return BillingCycle.for_date(
            today or date.today(),
            self.entities.config.closing_day,
        )

    def integrity_report(self) -> IntegrityReport:
        return self._validator.check_integrity(self.entities)

    # -------------------------------------------------------------------------
    # Monthly close
    # -------------------------------------------------------------------------

    async def close_month(
        self,
        cycle: Optional[BillingCycle] = None,
        now: Optional[datetime] = None,
    ) -> SnapshotOperationResult:
        """
        Freeze the current reports as the snapshot of `cycle`.

        Raises:
            DuplicateCycleError: If the cycle is already closed
        """
        now = now or datetime.now()
        cycle = cycle or self.current_cycle(now.date())
        return await self._snapshots.close(cycle, self.reports(now))

    async def list_snapshots(self) -> list[MonthlySnapshot]:
        return await self._snapshots.list()

    async def delete_snapshot(self, snapshot_id: str) -> SnapshotOperationResult:
        return await self._snapshots.delete(snapshot_id)

    async def compare_snapshots(self, id_a: str, id_b: str) -> Optional[SnapshotComparison]:
        return await self._snapshots.compare(id_a, id_b)

    # -------------------------------------------------------------------------
    # Editing
    # -------------------------------------------------------------------------

    def _check(self, result: ValidationResult) -> ValidationResult:
        try:
            return require_valid(result)
        except ValidationError as e:
            self._audit.log_validation_failed(
                e.entity_type,
                [issue.model_dump() for issue in e.issues],
            )
            raise

    def _require_tenant(self, tenant_id: int) -> Tenant:
        tenant = self.entities.find_tenant(tenant_id)
        if tenant is None:
            raise NotFoundError(f"Tenant {tenant_id} not found")
        return tenant

    def save_property(self, prop: Property) -> ValidationResult:
        """
        Insert or replace a property (matched by id).

        Returns the validation result so the caller can show warnings.

        Raises:
            ValidationError: If the property is invalid
        """
        result = self._check(self._validator.validate_property(prop))
        existed = self.entities.find_property(prop.id) is not None

        def apply(draft: EntitySet) -> None:
            if existed:
                draft.properties = [prop if p.id == prop.id else p for p in draft.properties]
            else:
                draft.properties.append(prop)

        self._cache.mutate(apply)
        self._audit.log_entity_mutated("property", prop.id, "updated" if existed else "created")
        return result

    def new_property_id(self) -> int:
        return new_entity_id([p.id for p in self.entities.properties])

    def add_tenant(
        self,
        employee_id: str,
        property_id: int,
        name: str = "",
        name_kana: str = "",
        company: Optional[str] = None,
        rent_contribution: int = 0,
        parking_fee: int = 0,
        entry_date: Optional[str] = None,
        cleaning_fee: Optional[int] = None,
    ) -> Tenant:
        """
        Assign an employee to a property.

        Blank name, kana and company are filled from the employee master.

        Raises:
            ValidationError: If the tenant is invalid, the property does not
                exist, or the employee already has an active tenancy
        """
        entities = self.entities
        employee = entities.find_employee(str(employee_id).strip())
        if employee is not None:
            name = name or employee.name
            name_kana = name_kana or employee.name_kana
            company = company or employee.company or None

        tenant = Tenant(
            id=new_entity_id([t.id for t in entities.tenants]),
            employee_id=employee_id,
            name=name,
            name_kana=name_kana,
            company=company,
            property_id=property_id,
            rent_contribution=rent_contribution,
            parking_fee=parking_fee,
            entry_date=entry_date or date.today().isoformat(),
            cleaning_fee=cleaning_fee,
            status=TenantStatus.ACTIVE,
        )
        self._check(self._validator.validate_tenant(tenant, entities))

        self._cache.mutate(lambda draft: draft.tenants.append(tenant))
        self._audit.log_entity_mutated("tenant", tenant.id, "created")
        return tenant

    def _replace_tenant(self, updated: Tenant, action: str, validate: bool = True) -> Tenant:
        if validate:
            self._check(self._validator.validate_tenant(updated, self.entities))

        def apply(draft: EntitySet) -> None:
            draft.tenants = [updated if t.id == updated.id else t for t in draft.tenants]

        self._cache.mutate(apply)
        self._audit.log_entity_mutated("tenant", updated.id, action)
        return updated

    def update_tenant_amounts(
        self,
        tenant_id: int,
        rent_contribution: Optional[int] = None,
        parking_fee: Optional[int] = None,
    ) -> Tenant:
        """
        Raises:
            NotFoundError: If the tenant does not exist
            ValidationError: If an amount is negative
        """
        changes: dict[str, Any] = {}
        if rent_contribution is not None:
            changes["rent_contribution"] = rent_contribution
        if parking_fee is not None:
            changes["parking_fee"] = parking_fee

        tenant = self._require_tenant(tenant_id)
        return self._replace_tenant(tenant.model_copy(update=changes), "amounts_updated")

    def distribute_rent_evenly(self, property_id: int) -> Optional[int]:
        """
        Split the property's target rent equally across its active tenants.

        Each share is floor(target / tenants); the remainder is not charged.

        Returns:
            The per-tenant share, or None if the property has no active tenant

        Raises:
            NotFoundError: If the property does not exist
        """
        prop = self.entities.find_property(property_id)
        if prop is None:
            raise NotFoundError(f"Property {property_id} not found")

        tenants = [t for t in self.entities.active_tenants() if t.property_id == property_id]
        if not tenants:
            return None

        share = prop.target_rent // len(tenants)

        def apply(draft: EntitySet) -> None:
            for tenant in draft.tenants:
                if tenant.property_id == property_id and tenant.is_active:
                    tenant.rent_contribution = share

        self._cache.mutate(apply)
        self._audit.log_entity_mutated("property", property_id, "rent_distributed")
        return share

    def deactivate_tenant(self, tenant_id: int, exit_date: Optional[str] = None) -> Tenant:
        """
        Soft delete: the tenancy ends but the record and its amounts stay.

        Raises:
            NotFoundError: If the tenant does not exist
        """
        tenant = self._require_tenant(tenant_id)
        updated = tenant.model_copy(update={
            "status": TenantStatus.INACTIVE,
            "exit_date": exit_date or date.today().isoformat(),
        })
        return self._replace_tenant(updated, "deactivated", validate=False)

    def delete_tenant(self, tenant_id: int) -> bool:
        """Permanent delete. Returns False if there was no such tenant."""
        if self.entities.find_tenant(tenant_id) is None:
            return False

        def apply(draft: EntitySet) -> None:
            draft.tenants = [t for t in draft.tenants if t.id != tenant_id]

        self._cache.mutate(apply)
        self._audit.log_entity_mutated("tenant", tenant_id, "deleted")
        return True

    def update_config(self, **changes: Any) -> AppConfig:
        """
        Raises:
            ValidationError: If the resulting config is invalid
        """
        config = AppConfig.model_validate({**self.entities.config.model_dump(), **changes})
        self._check(self._validator.validate_config(config))

        def apply(draft: EntitySet) -> None:
            draft.config = config

        self._cache.mutate(apply)
        self._audit.log_entity_mutated("config", "main", "updated")
        return config

    # -------------------------------------------------------------------------
    # Maintenance
    # -------------------------------------------------------------------------

    def export_backup(self) -> dict[str, Any]:
        return backup.export_backup(self.entities)

    def restore_backup(self, raw: Union[str, bytes, dict]) -> EntitySet:
        """
        Replace the whole entity set with a backup.

        Raises:
            ValidationError: If the backup is malformed (nothing is replaced)
        """
        try:
            restored = backup.parse_backup(raw, self._defaults)
        except ValidationError as e:
            self._audit.log_validation_failed(
                "backup",
                [issue.model_dump() for issue in e.issues],
            )
            raise

        self._cache.replace(restored)
        self._audit.log_backup_restored(
            properties=len(restored.properties),
            tenants=len(restored.tenants),
            employees=len(restored.employees),
        )
        return restored

    async def reset(self) -> None:
        """
        Wipe everything, snapshots included.

        Raises:
            StoreIOError: If the store could not be cleared
        """
        await self._cache.reset()


def default_config(settings: Settings) -> AppConfig:
    app = settings.app
    return AppConfig(
        company_name=app.default_company_name,
        closing_day=app.default_closing_day,
        default_cleaning_fee=app.default_cleaning_fee,
    )


def create_ledger(
    settings: Optional[Settings] = None,
    store: Optional[EntityStoreInterface] = None,
    legacy_source: Optional[LegacyDocumentSource] = None,
    audit_logger: Optional[AuditLogger] = None,
) -> EstateLedger:
    """
    Factory function to create all application components.

    Args:
        settings: Settings to build from (defaults to get_settings())
        store: Store implementing both store interfaces. Defaults to a
            SqliteStore on settings.store; tests pass an InMemoryStore.
        legacy_source: Legacy document reader. Defaults to the configured
            document paths.
        audit_logger: Shared audit logger

    Returns:
        An EstateLedger that still needs `await ledger.load()`
    """
    settings = settings or get_settings()
    defaults = default_config(settings)
    audit_logger = audit_logger or AuditLogger()

    store = store or SqliteStore(settings.store)
    legacy_source = legacy_source or LegacyDocumentSource(settings.legacy, defaults)

    cache = WriteThroughCache(
        store,
        legacy_source=legacy_source,
        flush_delay=settings.cache.flush_delay_seconds,
        audit_logger=audit_logger,
        defaults=defaults,
    )

    return EstateLedger(
        store=store,
        snapshot_store=store,
        cache=cache,
        engine=ReportEngine(settings.reports),
        audit_logger=audit_logger,
        defaults=defaults,
    )


@asynccontextmanager
async def open_ledger(
    settings: Optional[Settings] = None,
    **components: Any,
) -> AsyncIterator[EstateLedger]:
    """
    Load a ledger for the duration of a block; pending edits are flushed
    and the store released on exit.

    Usage:
        async with open_ledger() as ledger:
            bundle = ledger.reports()
    """
    ledger = create_ledger(settings, **components)
    await ledger.load()
    try:
        yield ledger
    finally:
        await ledger.close()
        logger.info("ledger_closed")
