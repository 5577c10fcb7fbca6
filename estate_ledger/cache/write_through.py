"""
Write-Through Cache

The EntitySet lives in memory and is the source of truth for every read.
Mutations swap the in-memory value immediately; persistence follows on a
short debounce so a burst of edits (e.g. typing into a rent cell) becomes
one store write.

GUARANTEES:
- A mutation is visible to the next read at once, before any I/O
- Within one coalescing window, only the LAST state is written
- Only one flush runs at a time
- close() persists a pending change before returning

A failed flush is logged, audited and kept in last_flush_error. Memory is
NOT rolled back: the operator keeps their edit, the cache stays dirty, and
the next flush (or close) retries.
"""

import asyncio
from typing import Callable, Optional

import structlog

from estate_ledger.audit import AuditLogger
from estate_ledger.models.entities import AppConfig, EntitySet
from estate_ledger.services.storage.interface import (
    EntityStoreInterface,
    StoreIOError,
)
from estate_ledger.services.storage.legacy import (
    LegacyDocumentSource,
    migrate_from_legacy,
)

logger = structlog.get_logger(__name__)

DEFAULT_FLUSH_DELAY = 0.1

Updater = Callable[[EntitySet], Optional[EntitySet]]


class WriteThroughCache:
    """
    In-memory EntitySet with debounced full-replace persistence.

    Must be used from inside a running event loop.
    """

    def __init__(
        self,
        store: EntityStoreInterface,
        legacy_source: Optional[LegacyDocumentSource] = None,
        flush_delay: float = DEFAULT_FLUSH_DELAY,
        audit_logger: Optional[AuditLogger] = None,
        defaults: Optional[AppConfig] = None,
    ):
        self._store = store
        self._legacy = legacy_source
        self._flush_delay = flush_delay
        self._audit = audit_logger or AuditLogger()
        self._defaults = defaults or AppConfig()

        self._value = EntitySet.empty(self._defaults)
        self._timer: Optional[asyncio.TimerHandle] = None
        self._flush_lock = asyncio.Lock()
        self._flush_tasks: set[asyncio.Task] = set()
        self._dirty = False

        self.loaded = False
        self.load_error: Optional[str] = None
        self.last_flush_error: Optional[str] = None

    @property
    def value(self) -> EntitySet:
        return self._value

    @property
    def pending_flush(self) -> bool:
        return self._timer is not None

    @property
    def dirty(self) -> bool:
        """Memory holds changes the store has not accepted yet."""
        return self._dirty

    # -------------------------------------------------------------------------
    # Load
    # -------------------------------------------------------------------------

    async def load(self) -> EntitySet:
        """
        Initial load: migrate once, read the store, fall back to the
        legacy document when the store is empty or unreachable.
        """
        try:
            await self._store.initialize()
            if self._legacy is not None:
                await migrate_from_legacy(self._store, self._legacy, self._audit)
            entities = await self._store.load_entities()
        except StoreIOError as e:
            self.load_error = str(e)
            logger.error("cache_load_failed", error=str(e))
            # Memory only: nothing is written back to a store that just failed
            fallback = self._legacy.read_fallback() if self._legacy else None
            self._value = fallback or EntitySet.empty(self._defaults)
            self.loaded = True
            return self._value

        if not entities.has_records and self._legacy is not None:
            fallback = self._legacy.read_fallback()
            if fallback is not None and fallback.has_records:
                logger.info("cache_adopted_legacy_document")
                self._value = fallback
                self.loaded = True
                await self.flush()
                return self._value

        self._value = entities
        self.loaded = True
        logger.info(
            "cache_loaded",
            properties=len(entities.properties),
            tenants=len(entities.tenants),
            employees=len(entities.employees),
        )
        return self._value

    # -------------------------------------------------------------------------
    # Mutations
    # -------------------------------------------------------------------------

    def mutate(self, updater: Updater) -> EntitySet:
        """
        Apply `updater` to a deep copy of the current value.

        The updater may edit the copy in place and return None, or return
        a new EntitySet. Nothing is awaited: the new value is visible
        immediately and persisted on the debounce timer.
        """
        draft = self._value.model_copy(deep=True)
        result = updater(draft)
        self._value = draft if result is None else result
        self._dirty = True
        self._schedule_flush()
        return self._value

    def replace(self, value: EntitySet) -> EntitySet:
        self._value = value.model_copy(deep=True)
        self._dirty = True
        self._schedule_flush()
        return self._value

    # -------------------------------------------------------------------------
    # Flush scheduling
    # -------------------------------------------------------------------------

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _schedule_flush(self) -> None:
        loop = asyncio.get_running_loop()
        self._cancel_timer()
        self._timer = loop.call_later(self._flush_delay, self._on_timer)

    def _on_timer(self) -> None:
        self._timer = None
        task = asyncio.get_running_loop().create_task(self._persist())
        self._flush_tasks.add(task)
        task.add_done_callback(self._flush_tasks.discard)

    async def _persist(self) -> bool:
        async with self._flush_lock:
            # Whatever is current now, not what it was when the timer was set
            value = self._value
            try:
                await self._store.replace_entities(value)
            except StoreIOError as e:
                self.last_flush_error = str(e)
                logger.error("cache_flush_failed", error=str(e))
                self._audit.log_flush_failed(str(e))
                return False

            if self._value is value:
                self._dirty = False

        self.last_flush_error = None
        return True

    async def _wait_in_flight(self) -> None:
        if self._flush_tasks:
            await asyncio.wait(set(self._flush_tasks))

    async def flush(self) -> bool:
        """Persist now. Returns False if the write failed."""
        self._cancel_timer()
        return await self._persist()

    async def close(self) -> None:
        """Wait for in-flight flushes, then persist anything still unsaved."""
        self._cancel_timer()
        await self._wait_in_flight()
        if self._dirty:
            await self._persist()

    async def reset(self) -> None:
        """
        Wipe the store (snapshots and meta included, one transaction) and
        memory.

        Raises:
            StoreIOError: If the store could not be cleared
        """
        self._cancel_timer()
        await self._wait_in_flight()
        async with self._flush_lock:
            await self._store.reset()
            self._value = EntitySet.empty(self._defaults)
            self._dirty = False

        logger.warning("cache_reset")
        self._audit.log_store_reset()
