"""
Audit Models for Estate Ledger

Every action that touches financial records is logged for audit purposes:
monthly closes, snapshot deletes, migrations, store failures, restores.
This gives operators a trail to answer "who closed March, and when?" and
"why did the import not run?".

DESIGN DECISION: Audit events are append-only records. We never modify them.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Monthly close
    SNAPSHOT_CLOSED = "snapshot_closed"
    SNAPSHOT_CLOSE_REJECTED = "snapshot_close_rejected"
    SNAPSHOT_DELETED = "snapshot_deleted"
    SNAPSHOT_OPERATION_FAILED = "snapshot_operation_failed"

    # Legacy import
    MIGRATION_COMPLETED = "migration_completed"
    MIGRATION_SKIPPED_CORRUPT = "migration_skipped_corrupt"

    # Persistence
    STORE_FLUSH_FAILED = "store_flush_failed"
    STORE_RESET = "store_reset"
    BACKUP_RESTORED = "backup_restored"

    # Mutations
    ENTITY_MUTATED = "entity_mutated"
    VALIDATION_FAILED = "validation_failed"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=_utcnow,
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType
    severity: AuditSeverity = AuditSeverity.INFO

    # Context - what entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'snapshot', 'tenant', 'store')"
    )
    entity_id: Optional[str] = Field(
        default=None,
        description="ID of the entity this event relates to"
    )

    description: str = Field(..., max_length=500)
    details: dict[str, Any] = Field(default_factory=dict)

    error_message: Optional[str] = None

    is_user_action: bool = Field(
        default=False,
        description="Was this triggered by an operator action?"
    )

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.snapshot_closed(snapshot_id, "2025-03")
        event = AuditEventBuilder.store_flush_failed("disk I/O error")
    """

    @staticmethod
    def snapshot_closed(
        snapshot_id: str,
        cycle_month: str,
        total_tenants: int,
        profit: int,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SNAPSHOT_CLOSED,
            entity_type="snapshot",
            entity_id=snapshot_id,
            description=f"Cycle {cycle_month} closed",
            details={
                "cycle_month": cycle_month,
                "total_tenants": total_tenants,
                "profit": profit,
            },
            is_user_action=True,
        )

    @staticmethod
    def snapshot_close_rejected(cycle_month: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SNAPSHOT_CLOSE_REJECTED,
            severity=AuditSeverity.WARNING,
            entity_type="snapshot",
            description=f"Close rejected: cycle {cycle_month} is already closed",
            details={"cycle_month": cycle_month},
            is_user_action=True,
        )

    @staticmethod
    def snapshot_deleted(snapshot_id: str, existed: bool) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SNAPSHOT_DELETED,
            entity_type="snapshot",
            entity_id=snapshot_id,
            description=f"Snapshot deleted: {snapshot_id}",
            details={"existed": existed},
            is_user_action=True,
        )

    @staticmethod
    def snapshot_operation_failed(
        operation: str,
        error_message: str,
        snapshot_id: Optional[str] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SNAPSHOT_OPERATION_FAILED,
            severity=AuditSeverity.ERROR,
            entity_type="snapshot",
            entity_id=snapshot_id,
            description=f"Snapshot {operation} failed",
            error_message=error_message,
            details={"operation": operation},
            is_user_action=True,
        )

    @staticmethod
    def migration_completed(
        properties: int,
        tenants: int,
        employees: int,
        snapshots: int,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.MIGRATION_COMPLETED,
            entity_type="store",
            description=(
                f"Legacy import: {properties} properties, "
                f"{tenants} tenants, {employees} employees"
            ),
            details={
                "properties": properties,
                "tenants": tenants,
                "employees": employees,
                "snapshots": snapshots,
            },
        )

    @staticmethod
    def migration_skipped_corrupt(reason: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.MIGRATION_SKIPPED_CORRUPT,
            severity=AuditSeverity.WARNING,
            entity_type="store",
            description="Legacy document is corrupt; migration skipped and marked done",
            error_message=reason,
        )

    @staticmethod
    def store_flush_failed(error_message: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.STORE_FLUSH_FAILED,
            severity=AuditSeverity.ERROR,
            entity_type="store",
            description="Background flush to the store failed; memory kept as source of truth",
            error_message=error_message,
        )

    @staticmethod
    def store_reset() -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.STORE_RESET,
            severity=AuditSeverity.WARNING,
            entity_type="store",
            description="All collections cleared",
            is_user_action=True,
        )

    @staticmethod
    def backup_restored(properties: int, tenants: int, employees: int) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BACKUP_RESTORED,
            severity=AuditSeverity.WARNING,
            entity_type="store",
            description="Entity set replaced from backup",
            details={
                "properties": properties,
                "tenants": tenants,
                "employees": employees,
            },
            is_user_action=True,
        )

    @staticmethod
    def entity_mutated(entity_type: str, entity_id: str, action: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ENTITY_MUTATED,
            entity_type=entity_type,
            entity_id=entity_id,
            description=f"{entity_type} {entity_id}: {action}",
            details={"action": action},
            is_user_action=True,
        )

    @staticmethod
    def validation_failed(
        entity_type: str,
        issues: list[dict],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.VALIDATION_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type=entity_type,
            description=f"{entity_type} rejected with {len(issues)} issues",
            details={"issues": issues},
            is_user_action=True,
        )
