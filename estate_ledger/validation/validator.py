"""
Two-Stage Entity Validation

DESIGN DECISION: Validation happens in two distinct stages:

STAGE 1 - SCHEMA VALIDATION:
- Required fields and lengths
- Non-negative amounts
- Postal code and date formats
- Needs nothing but the record itself

STAGE 2 - SEMANTIC VALIDATION:
- References (tenant -> property)
- One active tenancy per employee id
- Capacity and date-order warnings
- Needs the current EntitySet

Stage 2 only runs when stage 1 found no errors.

IMPORTANT: Validation NEVER silently fixes issues. It reports them; the
caller decides whether to reject the mutation (errors) or show a warning.
"""

import re
from datetime import date
from typing import Optional

from pydantic import BaseModel, Field

from estate_ledger.models.entities import AppConfig, EntitySet, Property, Tenant

POSTAL_CODE = re.compile(r"^\d{3}-?\d{4}$")
ISO_DATE = re.compile(r"^\d{4}-\d{2}-\d{2}$")

PROPERTY_NAME_MIN = 2
PROPERTY_NAME_MAX = 100
EMPLOYEE_ID_MAX = 50
MAX_CLOSING_DAY = 28


class ValidationIssue(BaseModel):
    """A single validation issue found."""

    field: str = Field(..., description="Field with the issue")
    issue_type: str = Field(
        ...,
        description="Type of issue (e.g. 'missing', 'invalid_format', 'duplicate')"
    )
    message: str
    severity: str = Field(..., pattern="^(error|warning|info)$")
    suggested_fix: Optional[str] = None


class ValidationResult(BaseModel):
    """Issues found for one record. Valid means: no error-severity issue."""

    entity_type: str
    issues: list[ValidationIssue] = Field(default_factory=list)

    @property
    def errors(self) -> list[ValidationIssue]:
        return [i for i in self.issues if i.severity == "error"]

    @property
    def warnings(self) -> list[str]:
        return [i.message for i in self.issues if i.severity == "warning"]

    @property
    def is_valid(self) -> bool:
        return not self.errors


class ValidationError(Exception):
    """A mutation was rejected. Carries every issue found."""

    def __init__(self, entity_type: str, issues: list[ValidationIssue]):
        self.entity_type = entity_type
        self.issues = issues
        summary = "; ".join(f"{i.field}: {i.message}" for i in issues if i.severity == "error")
        super().__init__(f"Invalid {entity_type}: {summary or 'rejected'}")


class IntegrityIssue(BaseModel):
    type: str = Field(..., description="FK_ERROR or CAPACITY_ERROR")
    message: str


class IntegrityReport(BaseModel):
    """Cross-record consistency of a whole EntitySet."""

    errors: list[IntegrityIssue] = Field(default_factory=list)
    alerts: list[str] = Field(
        default_factory=list,
        description="Dashboard notices that are not errors (e.g. ¥0 rent)"
    )

    @property
    def valid(self) -> bool:
        return not self.errors


def _is_iso_date(value: str) -> bool:
    if not ISO_DATE.match(value):
        return False
    try:
        date.fromisoformat(value)
    except ValueError:
        return False
    return True


def _date_issue(field: str, value: Optional[str]) -> Optional[ValidationIssue]:
    if value is None or _is_iso_date(value):
        return None
    return ValidationIssue(
        field=field,
        issue_type="invalid_format",
        message=f"'{value}' is not a date",
        severity="error",
        suggested_fix="Use YYYY-MM-DD",
    )


def _negative_issue(field: str, value: Optional[int]) -> Optional[ValidationIssue]:
    if value is None or value >= 0:
        return None
    return ValidationIssue(
        field=field,
        issue_type="invalid_value",
        message=f"{field} cannot be negative",
        severity="error",
    )


class EntityValidator:
    """
    Validates properties, tenants and the config record before they are
    written to the cache.
    """

    # -------------------------------------------------------------------------
    # Property
    # -------------------------------------------------------------------------

    def _property_schema(self, prop: Property) -> list[ValidationIssue]:
        issues = []

        if not PROPERTY_NAME_MIN <= len(prop.name) <= PROPERTY_NAME_MAX:
            issues.append(ValidationIssue(
                field="name",
                issue_type="invalid_length",
                message=(
                    f"Name must be {PROPERTY_NAME_MIN}-{PROPERTY_NAME_MAX} characters"
                ),
                severity="error",
            ))

        if not prop.address:
            issues.append(ValidationIssue(
                field="address",
                issue_type="missing",
                message="Address is required",
                severity="error",
            ))

        if prop.capacity < 0:
            issues.append(ValidationIssue(
                field="capacity",
                issue_type="invalid_value",
                message="Capacity cannot be negative",
                severity="error",
            ))

        for field in ("rent_cost", "management_fee", "parking_cost", "target_rent"):
            issue = _negative_issue(field, getattr(prop, field))
            if issue:
                issues.append(issue)

        if prop.postal_code and not POSTAL_CODE.match(prop.postal_code):
            issues.append(ValidationIssue(
                field="postal_code",
                issue_type="invalid_format",
                message=f"Invalid postal code '{prop.postal_code}'",
                severity="error",
                suggested_fix="Format: 123-4567",
            ))

        for field in ("contract_start", "contract_end"):
            issue = _date_issue(field, getattr(prop, field))
            if issue:
                issues.append(issue)

        return issues

    def _property_semantic(self, prop: Property) -> list[ValidationIssue]:
        issues = []
        if prop.contract_start and prop.contract_end and prop.contract_end < prop.contract_start:
            issues.append(ValidationIssue(
                field="contract_end",
                issue_type="inconsistent",
                message="Contract ends before it starts",
                severity="warning",
                suggested_fix="Please verify both dates",
            ))
        return issues

    def validate_property(self, prop: Property) -> ValidationResult:
        issues = self._property_schema(prop)
        if not any(i.severity == "error" for i in issues):
            issues.extend(self._property_semantic(prop))
        return ValidationResult(entity_type="property", issues=issues)

    # -------------------------------------------------------------------------
    # Tenant
    # -------------------------------------------------------------------------

    def _tenant_schema(self, tenant: Tenant) -> list[ValidationIssue]:
        issues = []

        if not 1 <= len(tenant.employee_id) <= EMPLOYEE_ID_MAX:
            issues.append(ValidationIssue(
                field="employee_id",
                issue_type="invalid_length",
                message=f"Employee ID must be 1-{EMPLOYEE_ID_MAX} characters",
                severity="error",
            ))

        if not tenant.name:
            issues.append(ValidationIssue(
                field="name",
                issue_type="missing",
                message="Name is required",
                severity="error",
            ))

        for field in ("rent_contribution", "parking_fee", "cleaning_fee"):
            issue = _negative_issue(field, getattr(tenant, field))
            if issue:
                issues.append(issue)

        for field in ("entry_date", "exit_date"):
            issue = _date_issue(field, getattr(tenant, field))
            if issue:
                issues.append(issue)

        return issues

    def _tenant_semantic(self, tenant: Tenant, entities: EntitySet) -> list[ValidationIssue]:
        issues = []

        prop = entities.find_property(tenant.property_id)
        if prop is None:
            issues.append(ValidationIssue(
                field="property_id",
                issue_type="not_found",
                message=f"Property {tenant.property_id} does not exist",
                severity="error",
            ))

        if not tenant.is_active:
            return issues

        others = [t for t in entities.active_tenants() if t.id != tenant.id]
        if any(t.employee_id == tenant.employee_id for t in others):
            issues.append(ValidationIssue(
                field="employee_id",
                issue_type="duplicate",
                message=f"ID already assigned: {tenant.employee_id} has an active tenancy",
                severity="error",
                suggested_fix="Deactivate the existing tenancy first",
            ))

        if prop is not None:
            occupants = sum(1 for t in others if t.property_id == prop.id) + 1
            if occupants > prop.capacity:
                issues.append(ValidationIssue(
                    field="property_id",
                    issue_type="over_capacity",
                    message=f"{prop.name} would exceed capacity ({occupants}/{prop.capacity})",
                    severity="warning",
                ))

        return issues

    def validate_tenant(self, tenant: Tenant, entities: EntitySet) -> ValidationResult:
        """
        Validate a tenant as it would be after the mutation.

        `entities` is the state BEFORE the mutation; a tenant with the same
        id in it is treated as the record being edited.
        """
        issues = self._tenant_schema(tenant)
        if not any(i.severity == "error" for i in issues):
            issues.extend(self._tenant_semantic(tenant, entities))
        return ValidationResult(entity_type="tenant", issues=issues)

    # -------------------------------------------------------------------------
    # Config
    # -------------------------------------------------------------------------

    def validate_config(self, config: AppConfig) -> ValidationResult:
        issues = []
        if not config.company_name.strip():
            issues.append(ValidationIssue(
                field="company_name",
                issue_type="missing",
                message="Company name is required",
                severity="error",
            ))
        if not 0 <= config.closing_day <= MAX_CLOSING_DAY:
            issues.append(ValidationIssue(
                field="closing_day",
                issue_type="invalid_value",
                message=f"Closing day must be 0 (month end) to {MAX_CLOSING_DAY}",
                severity="error",
            ))
        issue = _negative_issue("default_cleaning_fee", config.default_cleaning_fee)
        if issue:
            issues.append(issue)
        return ValidationResult(entity_type="config", issues=issues)

    # -------------------------------------------------------------------------
    # Whole entity set
    # -------------------------------------------------------------------------

    def check_integrity(self, entities: EntitySet) -> IntegrityReport:
        """
        Referential and capacity checks over the whole set.

        Legacy imports and restored backups bypass per-record validation,
        so this is what surfaces their inconsistencies.
        """
        report = IntegrityReport()
        properties = entities.property_index()

        for tenant in entities.tenants:
            if tenant.property_id not in properties:
                report.errors.append(IntegrityIssue(
                    type="FK_ERROR",
                    message=(
                        f'Tenant "{tenant.name}" is assigned to a missing '
                        f"property (ID: {tenant.property_id})"
                    ),
                ))

        active = entities.active_tenants()
        for prop in entities.properties:
            count = sum(1 for t in active if t.property_id == prop.id)
            if count > prop.capacity:
                report.errors.append(IntegrityIssue(
                    type="CAPACITY_ERROR",
                    message=f'Property "{prop.name}" exceeds capacity ({count}/{prop.capacity})',
                ))

        for tenant in active:
            if tenant.rent_contribution == 0:
                prop = properties.get(tenant.property_id)
                where = prop.name if prop else f"property {tenant.property_id}"
                report.alerts.append(f"{tenant.name} ({where}) pays ¥0 rent")

        return report


def require_valid(result: ValidationResult) -> ValidationResult:
    """
    Raises:
        ValidationError: If the result holds an error-severity issue
    """
    if not result.is_valid:
        raise ValidationError(result.entity_type, result.issues)
    return result
