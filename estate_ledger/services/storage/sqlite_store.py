"""
SQLite Storage Implementation

DESIGN DECISION: A local SQLite file, driven through SQLAlchemy's asyncio
extension (aiosqlite driver), is the durable store because:
1. The tool runs for a single operator on a single machine
2. No server to install or keep running
3. Real transactions: a migration or a full persist is all-or-nothing
4. A unique index on cycle_month backs the one-close-per-cycle rule

TRADEOFFS:
- One writer at a time. Transient "database is locked" errors are retried
  with tenacity before surfacing as StoreIOError.
- Entity collections are small (hundreds of rows), so full replace on
  every flush is cheaper than tracking dirty rows.
"""

from typing import Any, Optional

import structlog
from sqlalchemy import delete, func, insert, select
from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from estate_ledger.config import StoreSettings
from estate_ledger.models.entities import (
    AppConfig,
    Employee,
    EntitySet,
    Property,
    Tenant,
)
from estate_ledger.models.snapshot import MonthlySnapshot, StoreMeta
from estate_ledger.services.storage.interface import (
    DuplicateCycleError,
    EntityStoreInterface,
    SnapshotStoreInterface,
    StoreIOError,
)
from estate_ledger.services.storage.tables import (
    ALL_TABLES,
    EMPLOYEE_TABLES,
    Base,
    ConfigRow,
    MetaRow,
    PropertyRow,
    SnapshotRow,
    TenantRow,
)

logger = structlog.get_logger(__name__)

CONFIG_KEY = "main"
META_KEY = "dbmeta"

# Retry transient lock contention only; constraint violations are final
transient_retry = retry(
    retry=retry_if_exception_type(OperationalError),
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=0.05, min=0.05, max=1),
    reraise=True,
)


def _columns(row: Base) -> dict[str, Any]:
    """ORM row to a plain dict of its column values."""
    return {column.key: getattr(row, column.key) for column in row.__table__.columns}


def _employee_row(employee: Employee) -> dict[str, Any]:
    return employee.model_dump(mode="json", exclude={"category"})


def _config_row(config: AppConfig) -> dict[str, Any]:
    return {"key": CONFIG_KEY, **config.model_dump()}


def _meta_row(meta: StoreMeta) -> dict[str, Any]:
    return {"key": META_KEY, **meta.model_dump(mode="json")}


class SqliteStore(EntityStoreInterface, SnapshotStoreInterface):
    """
    SQLite implementation of both store interfaces.

    Every public method wraps SQLAlchemy failures into StoreIOError so
    callers only deal with the storage exception hierarchy.
    """

    def __init__(self, settings: Optional[StoreSettings] = None):
        self._settings = settings or StoreSettings()
        url = self._settings.database_url

        engine_options: dict[str, Any] = {"echo": self._settings.echo}
        if ":memory:" in url:
            # One shared connection, otherwise every session sees an empty DB
            engine_options["poolclass"] = StaticPool

        self._engine = create_async_engine(url, **engine_options)
        self._sessions = async_sessionmaker(
            bind=self._engine,
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
        )

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    async def initialize(self) -> None:
        try:
            async with self._engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
        except SQLAlchemyError as e:
            raise StoreIOError(f"Failed to initialize store: {e}") from e

    async def close(self) -> None:
        await self._engine.dispose()

    # -------------------------------------------------------------------------
    # Entity collections
    # -------------------------------------------------------------------------

    @transient_retry
    async def _load_entities(self) -> EntitySet:
        async with self._sessions() as session:
            properties = (await session.scalars(
                select(PropertyRow).order_by(PropertyRow.id)
            )).all()
            tenants = (await session.scalars(
                select(TenantRow).order_by(TenantRow.id)
            )).all()

            employees = []
            for category, table in EMPLOYEE_TABLES.items():
                rows = (await session.scalars(select(table).order_by(table.id))).all()
                employees.extend(
                    Employee.model_validate({**_columns(row), "category": category})
                    for row in rows
                )

            config_row = await session.get(ConfigRow, CONFIG_KEY)

        config = AppConfig()
        if config_row is not None:
            values = _columns(config_row)
            values.pop("key")
            config = AppConfig.model_validate(values)

        return EntitySet(
            properties=[Property.model_validate(_columns(row)) for row in properties],
            tenants=[Tenant.model_validate(_columns(row)) for row in tenants],
            employees=employees,
            config=config,
        )

    async def load_entities(self) -> EntitySet:
        try:
            return await self._load_entities()
        except SQLAlchemyError as e:
            raise StoreIOError(f"Failed to load entities: {e}") from e

    async def _write_entities(self, session: AsyncSession, entities: EntitySet) -> None:
        """Clear and bulk-write the entity collections inside `session`."""
        await session.execute(delete(PropertyRow))
        if entities.properties:
            await session.execute(
                insert(PropertyRow),
                [p.model_dump(mode="json") for p in entities.properties],
            )

        await session.execute(delete(TenantRow))
        if entities.tenants:
            await session.execute(
                insert(TenantRow),
                [t.model_dump(mode="json") for t in entities.tenants],
            )

        for category, employees in entities.employees_by_category().items():
            table = EMPLOYEE_TABLES[category]
            await session.execute(delete(table))
            if employees:
                await session.execute(insert(table), [_employee_row(e) for e in employees])

        await session.merge(ConfigRow(**_config_row(entities.config)))

    @transient_retry
    async def _replace_entities(self, entities: EntitySet) -> None:
        async with self._sessions() as session:
            async with session.begin():
                await self._write_entities(session, entities)

    async def replace_entities(self, entities: EntitySet) -> None:
        try:
            await self._replace_entities(entities)
        except SQLAlchemyError as e:
            raise StoreIOError(f"Failed to persist entities: {e}") from e
        logger.debug(
            "entities_persisted",
            properties=len(entities.properties),
            tenants=len(entities.tenants),
            employees=len(entities.employees),
        )

    @transient_retry
    async def _import_legacy(
        self,
        entities: EntitySet,
        snapshots: list[MonthlySnapshot],
        meta: StoreMeta,
    ) -> None:
        async with self._sessions() as session:
            async with session.begin():
                await self._write_entities(session, entities)
                for snapshot in snapshots:
                    await session.merge(SnapshotRow(**snapshot.model_dump(mode="json")))
                await session.merge(MetaRow(**_meta_row(meta)))

    async def import_legacy(
        self,
        entities: EntitySet,
        snapshots: list[MonthlySnapshot],
        meta: StoreMeta,
    ) -> None:
        try:
            await self._import_legacy(entities, snapshots, meta)
        except SQLAlchemyError as e:
            raise StoreIOError(f"Failed to import legacy document: {e}") from e

    async def get_meta(self) -> Optional[StoreMeta]:
        try:
            async with self._sessions() as session:
                row = await session.get(MetaRow, META_KEY)
        except SQLAlchemyError as e:
            raise StoreIOError(f"Failed to read store meta: {e}") from e

        if row is None:
            return None
        values = _columns(row)
        values.pop("key")
        return StoreMeta.model_validate(values)

    async def put_meta(self, meta: StoreMeta) -> None:
        try:
            async with self._sessions() as session:
                async with session.begin():
                    await session.merge(MetaRow(**_meta_row(meta)))
        except SQLAlchemyError as e:
            raise StoreIOError(f"Failed to write store meta: {e}") from e

    @transient_retry
    async def _reset(self) -> None:
        async with self._sessions() as session:
            async with session.begin():
                for table in ALL_TABLES:
                    await session.execute(delete(table))

    async def reset(self) -> None:
        try:
            await self._reset()
        except SQLAlchemyError as e:
            raise StoreIOError(f"Failed to reset store: {e}") from e
        logger.warning("store_reset", tables=len(ALL_TABLES))

    async def count_rows(self) -> dict[str, int]:
        """Row count per table, for diagnostics."""
        counts = {}
        try:
            async with self._sessions() as session:
                for table in ALL_TABLES:
                    counts[table.__tablename__] = await session.scalar(
                        select(func.count()).select_from(table)
                    )
        except SQLAlchemyError as e:
            raise StoreIOError(f"Failed to count rows: {e}") from e
        return counts

    # -------------------------------------------------------------------------
    # Snapshots
    # -------------------------------------------------------------------------

    @staticmethod
    def _to_snapshot(row: SnapshotRow) -> MonthlySnapshot:
        return MonthlySnapshot.model_validate(_columns(row))

    @transient_retry
    async def _add_snapshot(self, snapshot: MonthlySnapshot) -> None:
        async with self._sessions() as session:
            async with session.begin():
                session.add(SnapshotRow(**snapshot.model_dump(mode="json")))

    async def add_snapshot(self, snapshot: MonthlySnapshot) -> None:
        try:
            await self._add_snapshot(snapshot)
        except IntegrityError as e:
            # Unique index on cycle_month caught a close that raced the check
            raise DuplicateCycleError(snapshot.cycle_month) from e
        except SQLAlchemyError as e:
            raise StoreIOError(f"Failed to save snapshot: {e}") from e

    async def get_snapshot(self, snapshot_id: str) -> Optional[MonthlySnapshot]:
        try:
            async with self._sessions() as session:
                row = await session.get(SnapshotRow, snapshot_id)
        except SQLAlchemyError as e:
            raise StoreIOError(f"Failed to get snapshot: {e}") from e
        return self._to_snapshot(row) if row is not None else None

    async def find_snapshot_by_cycle(self, cycle_month: str) -> Optional[MonthlySnapshot]:
        try:
            async with self._sessions() as session:
                row = await session.scalar(
                    select(SnapshotRow).where(SnapshotRow.cycle_month == cycle_month)
                )
        except SQLAlchemyError as e:
            raise StoreIOError(f"Failed to look up cycle {cycle_month}: {e}") from e
        return self._to_snapshot(row) if row is not None else None

    async def list_snapshots(self) -> list[MonthlySnapshot]:
        try:
            async with self._sessions() as session:
                rows = (await session.scalars(
                    select(SnapshotRow).order_by(SnapshotRow.cycle_month.desc())
                )).all()
        except SQLAlchemyError as e:
            raise StoreIOError(f"Failed to list snapshots: {e}") from e
        return [self._to_snapshot(row) for row in rows]

    async def delete_snapshot(self, snapshot_id: str) -> bool:
        try:
            async with self._sessions() as session:
                async with session.begin():
                    result = await session.execute(
                        delete(SnapshotRow).where(SnapshotRow.id == snapshot_id)
                    )
        except SQLAlchemyError as e:
            raise StoreIOError(f"Failed to delete snapshot: {e}") from e
        return result.rowcount > 0
