"""
Monthly Close Models

A MonthlySnapshot freezes the three report views of one billing cycle.

CRITICAL: Snapshots are immutable once created. They carry their own copy
of every report row and have no live link back to properties or tenants,
so later edits never change a closed month.
"""

from datetime import date, datetime
from typing import Optional
from uuid import uuid4

from dateutil.relativedelta import relativedelta
from pydantic import BaseModel, ConfigDict, Field, field_validator

from estate_ledger.models.reports import (
    CompanyReportRow,
    PayrollDeductionRow,
    PropertyReportRow,
)


def new_snapshot_id() -> str:
    return f"snap_{uuid4().hex[:16]}"


class BillingCycle(BaseModel):
    """
    A billing month: a "YYYY-MM" token plus explicit start/end dates.
    """
    model_config = ConfigDict(frozen=True)

    month: str = Field(
        ...,
        pattern=r"^\d{4}-(0[1-9]|1[0-2])$",
        description="Cycle token, e.g. 2025-03"
    )
    start: date
    end: date

    @classmethod
    def for_date(cls, today: date, closing_day: int = 0) -> "BillingCycle":
        """
        Cycle containing `today`.

        closing_day 0 means calendar months. Otherwise a cycle runs from
        closing_day + 1 of one month to closing_day of the next; the token
        is always the calendar month of `today`.
        """
        month_start = today.replace(day=1)
        if closing_day <= 0:
            start = month_start
            end = month_start + relativedelta(months=1, days=-1)
        elif today.day <= closing_day:
            # days= offset rolls a missing Feb 29 over to Mar 1
            start = month_start + relativedelta(months=-1, days=closing_day)
            end = month_start.replace(day=closing_day)
        else:
            start = month_start + relativedelta(days=closing_day)
            end = (month_start + relativedelta(months=1)).replace(day=closing_day)

        return cls(month=today.strftime("%Y-%m"), start=start, end=end)


class MonthlySnapshot(BaseModel):
    """A closed billing cycle."""
    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=new_snapshot_id)
    cycle_month: str = Field(..., pattern=r"^\d{4}-(0[1-9]|1[0-2])$")
    cycle_start: str
    cycle_end: str
    closed_at: datetime

    # Headline totals
    total_properties: int
    total_tenants: int
    total_collected: int
    total_cost: int
    total_target: int
    profit: int
    occupancy_rate: int = Field(ge=0, description="Percent, rounded")

    # Frozen report views
    company_summary: list[CompanyReportRow] = Field(default_factory=list)
    property_detail: list[PropertyReportRow] = Field(default_factory=list)
    payroll_detail: list[PayrollDeductionRow] = Field(default_factory=list)

    @field_validator('cycle_start', 'cycle_end', mode='before')
    @classmethod
    def date_to_text(cls, v):
        if isinstance(v, date):
            return v.isoformat()
        return v


HEADLINE_FIELDS = (
    "total_properties",
    "total_tenants",
    "total_collected",
    "total_cost",
    "total_target",
    "profit",
    "occupancy_rate",
)


class SnapshotComparison(BaseModel):
    """Two closed cycles side by side."""

    a: MonthlySnapshot
    b: MonthlySnapshot

    @property
    def deltas(self) -> dict[str, int]:
        """b - a for every headline total."""
        return {
            name: getattr(self.b, name) - getattr(self.a, name)
            for name in HEADLINE_FIELDS
        }


class SnapshotOperationResult(BaseModel):
    """
    Outcome of a user-initiated snapshot operation.

    Store failures are reported here instead of raised, so the caller can
    show them to the operator.
    """

    success: bool
    snapshot: Optional[MonthlySnapshot] = None
    error_message: Optional[str] = None


class StoreMeta(BaseModel):
    """Singleton store metadata (key "dbmeta")."""

    version: str = "8.0"
    last_sync: datetime
    migrated_from_legacy: bool = False
