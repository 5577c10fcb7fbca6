"""
Audit Logger

DESIGN DECISION: Every action that touches financial records is logged.
This provides:
1. Traceability of monthly closes and deletes
2. Visibility of silent background failures (debounced flushes)
3. An operator-facing warning when a legacy import is skipped

The audit logger:
- Writes structured events through structlog
- Never raises: a logging failure must not break a close or a flush
"""

import logging
import sys
from typing import Optional

import structlog

from estate_ledger.models.audit import AuditEvent, AuditEventBuilder, AuditSeverity


def configure_logging(debug: bool = False) -> None:
    """
    Configure structlog on top of the standard library logger.

    debug=True renders human-readable console lines, otherwise JSON.
    """
    level = logging.DEBUG if debug else logging.INFO
    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level)

    if not debug:
        logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)

    renderer = (
        structlog.dev.ConsoleRenderer()
        if debug
        else structlog.processors.JSONRenderer()
    )

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


class AuditLogger:
    """
    Central audit logging service.

    Keeps the most recent events in memory so the UI can show what just
    happened (e.g. "migration skipped") without scraping log output.
    """

    def __init__(self, history_size: int = 200):
        self._logger = structlog.get_logger("estate_ledger.audit")
        self._history_size = history_size
        self._recent: list[AuditEvent] = []

    @property
    def recent_events(self) -> list[AuditEvent]:
        """Most recent events, newest first."""
        return list(reversed(self._recent))

    def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Returns False if the structured log write failed.
        """
        self._recent.append(event)
        if len(self._recent) > self._history_size:
            del self._recent[0]

        log_dict = event.to_log_dict()
        try:
            if event.severity in (AuditSeverity.ERROR, AuditSeverity.CRITICAL):
                self._logger.error("audit_event", **log_dict)
            elif event.severity == AuditSeverity.WARNING:
                self._logger.warning("audit_event", **log_dict)
            else:
                self._logger.info("audit_event", **log_dict)
        except Exception:
            return False
        return True

    def log_snapshot_closed(
        self,
        snapshot_id: str,
        cycle_month: str,
        total_tenants: int,
        profit: int,
    ) -> None:
        self.log(AuditEventBuilder.snapshot_closed(
            snapshot_id=snapshot_id,
            cycle_month=cycle_month,
            total_tenants=total_tenants,
            profit=profit,
        ))

    def log_snapshot_close_rejected(self, cycle_month: str) -> None:
        self.log(AuditEventBuilder.snapshot_close_rejected(cycle_month))

    def log_snapshot_deleted(self, snapshot_id: str, existed: bool) -> None:
        self.log(AuditEventBuilder.snapshot_deleted(snapshot_id, existed))

    def log_snapshot_operation_failed(
        self,
        operation: str,
        error_message: str,
        snapshot_id: Optional[str] = None,
    ) -> None:
        self.log(AuditEventBuilder.snapshot_operation_failed(
            operation=operation,
            error_message=error_message,
            snapshot_id=snapshot_id,
        ))

    def log_migration_completed(
        self,
        properties: int,
        tenants: int,
        employees: int,
        snapshots: int,
    ) -> None:
        self.log(AuditEventBuilder.migration_completed(
            properties=properties,
            tenants=tenants,
            employees=employees,
            snapshots=snapshots,
        ))

    def log_migration_skipped(self, reason: str) -> None:
        self.log(AuditEventBuilder.migration_skipped_corrupt(reason))

    def log_flush_failed(self, error_message: str) -> None:
        self.log(AuditEventBuilder.store_flush_failed(error_message))

    def log_store_reset(self) -> None:
        self.log(AuditEventBuilder.store_reset())

    def log_backup_restored(self, properties: int, tenants: int, employees: int) -> None:
        self.log(AuditEventBuilder.backup_restored(properties, tenants, employees))

    def log_entity_mutated(self, entity_type: str, entity_id, action: str) -> None:
        self.log(AuditEventBuilder.entity_mutated(entity_type, str(entity_id), action))

    def log_validation_failed(self, entity_type: str, issues: list[dict]) -> None:
        self.log(AuditEventBuilder.validation_failed(entity_type, issues))
