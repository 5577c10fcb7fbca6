"""
Data Models Package

This package contains all Pydantic models used in Estate Ledger:
raw entities, derived report views, monthly snapshots and audit events.
"""

from estate_ledger.models.entities import (
    AppConfig,
    BillingMode,
    Employee,
    EmployeeCategory,
    EntitySet,
    Property,
    Tenant,
    TenantStatus,
)
from estate_ledger.models.reports import (
    CompanyReport,
    CompanyReportRow,
    CompanyReportTotals,
    PayrollDeductionRow,
    PayrollReport,
    PayrollReportTotals,
    PropertyReport,
    PropertyReportRow,
    PropertyReportTotals,
    ReportBundle,
)
from estate_ledger.models.snapshot import (
    BillingCycle,
    MonthlySnapshot,
    SnapshotComparison,
    SnapshotOperationResult,
    StoreMeta,
)
from estate_ledger.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Entities
    "AppConfig",
    "BillingMode",
    "Employee",
    "EmployeeCategory",
    "EntitySet",
    "Property",
    "Tenant",
    "TenantStatus",
    # Reports
    "CompanyReport",
    "CompanyReportRow",
    "CompanyReportTotals",
    "PayrollDeductionRow",
    "PayrollReport",
    "PayrollReportTotals",
    "PropertyReport",
    "PropertyReportRow",
    "PropertyReportTotals",
    "ReportBundle",
    # Snapshots
    "BillingCycle",
    "MonthlySnapshot",
    "SnapshotComparison",
    "SnapshotOperationResult",
    "StoreMeta",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
