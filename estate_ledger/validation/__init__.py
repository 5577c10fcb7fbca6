"""Entity validation."""

from estate_ledger.validation.validator import (
    EntityValidator,
    IntegrityIssue,
    IntegrityReport,
    ValidationError,
    ValidationIssue,
    ValidationResult,
    require_valid,
)

__all__ = [
    "EntityValidator",
    "IntegrityIssue",
    "IntegrityReport",
    "ValidationError",
    "ValidationIssue",
    "ValidationResult",
    "require_valid",
]
