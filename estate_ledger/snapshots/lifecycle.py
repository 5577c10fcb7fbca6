"""
Monthly Snapshot Lifecycle

Closing a month freezes the current report views into one immutable
MonthlySnapshot.

CRITICAL RULES:
1. At most one snapshot per cycle_month. A second close is REJECTED with
   DuplicateCycleError; it never overwrites the first.
2. A snapshot is built from the bundle passed in, i.e. the views the
   operator is looking at when they press "close".
3. Snapshots are never edited. Deleting one is the only way to re-close.

Store failures on these operator-initiated actions come back as
SnapshotOperationResult(success=False) so the UI can show them.
"""

from datetime import datetime, timezone
from typing import Optional

import structlog

from estate_ledger.audit import AuditLogger
from estate_ledger.models.reports import ReportBundle
from estate_ledger.models.snapshot import (
    BillingCycle,
    MonthlySnapshot,
    SnapshotComparison,
    SnapshotOperationResult,
)
from estate_ledger.reports.allocation import round_half_up
from estate_ledger.services.storage.interface import (
    DuplicateCycleError,
    SnapshotStoreInterface,
    StoreIOError,
)

logger = structlog.get_logger(__name__)


def occupancy_rate(occupants: int, vacancy: int) -> int:
    """Occupied share of all beds, in whole percent. 0 when there are none."""
    beds = occupants + vacancy
    if beds <= 0:
        return 0
    return round_half_up(occupants * 100, beds)


def build_snapshot(
    cycle: BillingCycle,
    bundle: ReportBundle,
    closed_at: Optional[datetime] = None,
) -> MonthlySnapshot:
    """Freeze a report bundle as the snapshot of `cycle`."""
    property_totals = bundle.property_report.totals
    payroll_totals = bundle.payroll_report.totals

    return MonthlySnapshot(
        cycle_month=cycle.month,
        cycle_start=cycle.start,
        cycle_end=cycle.end,
        closed_at=closed_at or datetime.now(timezone.utc),
        total_properties=property_totals.total_properties,
        total_tenants=payroll_totals.total_employees,
        total_collected=payroll_totals.total_deduction,
        total_cost=property_totals.total_rent_cost,
        total_target=property_totals.total_rent_target,
        profit=property_totals.total_profit,
        occupancy_rate=occupancy_rate(
            property_totals.total_occupants,
            property_totals.total_vacancy,
        ),
        company_summary=list(bundle.company_report.rows),
        property_detail=list(bundle.property_report.rows),
        payroll_detail=list(bundle.payroll_report.rows),
    )


class SnapshotLedger:
    """Close, list, delete and compare monthly snapshots."""

    def __init__(
        self,
        store: SnapshotStoreInterface,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._store = store
        self._audit = audit_logger or AuditLogger()

    async def close(
        self,
        cycle: BillingCycle,
        bundle: ReportBundle,
        closed_at: Optional[datetime] = None,
    ) -> SnapshotOperationResult:
        """
        Close `cycle` with the given report views.

        Raises:
            DuplicateCycleError: If the cycle is already closed
        """
        try:
            existing = await self._store.find_snapshot_by_cycle(cycle.month)
            if existing is not None:
                raise DuplicateCycleError(cycle.month)

            snapshot = build_snapshot(cycle, bundle, closed_at)
            await self._store.add_snapshot(snapshot)

        except DuplicateCycleError:
            logger.warning("snapshot_close_rejected", cycle_month=cycle.month)
            self._audit.log_snapshot_close_rejected(cycle.month)
            raise

        except StoreIOError as e:
            logger.error("snapshot_close_failed", cycle_month=cycle.month, error=str(e))
            self._audit.log_snapshot_operation_failed("close", str(e))
            return SnapshotOperationResult(success=False, error_message=str(e))

        logger.info("snapshot_closed", snapshot_id=snapshot.id, cycle_month=snapshot.cycle_month)
        self._audit.log_snapshot_closed(
            snapshot_id=snapshot.id,
            cycle_month=snapshot.cycle_month,
            total_tenants=snapshot.total_tenants,
            profit=snapshot.profit,
        )
        return SnapshotOperationResult(success=True, snapshot=snapshot)

    async def list(self) -> list[MonthlySnapshot]:
        """All snapshots, newest cycle first. Empty if the store is unreadable."""
        try:
            return await self._store.list_snapshots()
        except StoreIOError as e:
            logger.error("snapshot_list_failed", error=str(e))
            return []

    async def get(self, snapshot_id: str) -> Optional[MonthlySnapshot]:
        try:
            return await self._store.get_snapshot(snapshot_id)
        except StoreIOError as e:
            logger.error("snapshot_get_failed", snapshot_id=snapshot_id, error=str(e))
            return None

    async def delete(self, snapshot_id: str) -> SnapshotOperationResult:
        """Delete a snapshot. Deleting an unknown id is a success."""
        try:
            existed = await self._store.delete_snapshot(snapshot_id)
        except StoreIOError as e:
            logger.error("snapshot_delete_failed", snapshot_id=snapshot_id, error=str(e))
            self._audit.log_snapshot_operation_failed("delete", str(e), snapshot_id)
            return SnapshotOperationResult(success=False, error_message=str(e))

        logger.info("snapshot_deleted", snapshot_id=snapshot_id, existed=existed)
        self._audit.log_snapshot_deleted(snapshot_id, existed)
        return SnapshotOperationResult(success=True)

    async def compare(self, id_a: str, id_b: str) -> Optional[SnapshotComparison]:
        """Side-by-side view of two snapshots, or None if either is missing."""
        a = await self.get(id_a)
        b = await self.get(id_b)
        if a is None or b is None:
            return None
        return SnapshotComparison(a=a, b=b)
