"""
Core Entity Models for Estate Ledger

These models define the schemas for the raw entity set the reports are
derived from: properties, tenants, employees and the configuration record.

DESIGN DECISION: The models check TYPES, not business rules.
Data loaded from the store or from a legacy document must always parse,
even when an operator once typed something odd (an unparsable contract date,
an over-full property). Business rules live in estate_ledger.validation and
are applied to mutations before they reach the cache.

Amounts are whole yen, stored as int.
"""

from enum import Enum
from typing import Any, Optional, Union

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
)


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class TenantStatus(str, Enum):
    """
    Tenancy status.

    Inactive tenants are a soft delete: they keep their exit date and
    contribution amounts until an explicit permanent delete.
    """
    ACTIVE = "active"
    INACTIVE = "inactive"


class EmployeeCategory(str, Enum):
    """
    Employment type. Each category is persisted in its own collection.
    """
    DISPATCH = "dispatch"   # 派遣 (Genzai master)
    CONTRACT = "contract"   # 請負 (Ukeoi master)
    STAFF = "staff"
    TRAINEE = "trainee"


class BillingMode(str, Enum):
    """How the target rent of a property is split among its tenants."""
    SPLIT = "split"   # 均等割り
    FIXED = "fixed"   # 個別設定


def _blank_to_none(v: Any) -> Any:
    if isinstance(v, str) and not v.strip():
        return None
    return v


# =============================================================================
# ENTITIES
# =============================================================================

class Property(BaseModel):
    """
    A rented apartment/house that hosts company tenants.

    Costs are what the owner charges us; target_rent is what we charge
    the sponsoring company.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: int
    name: str
    address: str = ""
    capacity: int = 0

    # Monthly cost components
    rent_cost: int = 0
    management_fee: int = Field(
        default=0,
        validation_alias=AliasChoices("management_fee", "kanri_hi"),
        description="管理費"
    )
    parking_cost: int = 0

    # What the sponsoring company is charged
    target_rent: int = Field(
        default=0,
        validation_alias=AliasChoices("target_rent", "rent_price_uns"),
    )

    room_number: Optional[str] = None
    postal_code: Optional[str] = None
    address_detail: Optional[str] = None
    layout: str = Field(
        default="1K",
        validation_alias=AliasChoices("layout", "type"),
    )
    billing_mode: Optional[BillingMode] = None
    manager_name: Optional[str] = None
    manager_phone: Optional[str] = None

    # Kept as raw text: an unparsable end date means "still active"
    contract_start: Optional[str] = None
    contract_end: Optional[str] = None

    @field_validator(
        'room_number', 'postal_code', 'address_detail', 'billing_mode',
        'manager_name', 'manager_phone', 'contract_start', 'contract_end',
        mode='before',
    )
    @classmethod
    def blank_is_missing(cls, v: Any) -> Any:
        return _blank_to_none(v)

    @field_validator('layout', mode='before')
    @classmethod
    def default_layout(cls, v: Any) -> Any:
        return _blank_to_none(v) or "1K"

    @property
    def total_cost(self) -> int:
        """Base rent + management fee + parking."""
        return self.rent_cost + self.management_fee + self.parking_cost


class Tenant(BaseModel):
    """
    An employee assigned to a property.

    rent_contribution and parking_fee are deducted from payroll each cycle.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: int
    employee_id: str
    name: str
    name_kana: str = ""
    company: Optional[str] = None
    property_id: int
    rent_contribution: int = 0
    parking_fee: int = 0
    entry_date: Optional[str] = None
    exit_date: Optional[str] = None
    cleaning_fee: Optional[int] = None
    status: TenantStatus = TenantStatus.ACTIVE

    @field_validator('company', 'entry_date', 'exit_date', mode='before')
    @classmethod
    def blank_is_missing(cls, v: Any) -> Any:
        return _blank_to_none(v)

    @field_validator('employee_id', mode='before')
    @classmethod
    def coerce_employee_id(cls, v: Any) -> Any:
        # Employee numbers often arrive as numbers from spreadsheets
        if isinstance(v, int):
            return str(v)
        return v

    @property
    def is_active(self) -> bool:
        return self.status == TenantStatus.ACTIVE

    @property
    def total_contribution(self) -> int:
        return self.rent_contribution + self.parking_fee


class Employee(BaseModel):
    """Employee master record. Read-mostly reference data."""
    model_config = ConfigDict(str_strip_whitespace=True)

    id: str
    name: str
    name_kana: str = ""
    company: str = ""
    category: EmployeeCategory = EmployeeCategory.DISPATCH
    full_data: dict[str, Any] = Field(
        default_factory=dict,
        description="Raw row from the master spreadsheet"
    )

    @field_validator('id', mode='before')
    @classmethod
    def coerce_id(cls, v: Any) -> Any:
        if isinstance(v, int):
            return str(v)
        return v

    @field_validator('company', 'name_kana', mode='before')
    @classmethod
    def none_is_empty(cls, v: Any) -> Any:
        return "" if v is None else v

    @field_validator('full_data', mode='before')
    @classmethod
    def none_is_empty_dict(cls, v: Any) -> Any:
        return {} if v is None else v


class AppConfig(BaseModel):
    """Singleton configuration record (stored under key "main")."""

    company_name: str = "UNS-KIKAKU"
    closing_day: int = Field(
        default=0,
        description="0 = end of month, otherwise day of month the cycle closes"
    )
    default_cleaning_fee: int = 30000


class EntitySet(BaseModel):
    """
    The whole entity set as one in-memory value.

    This is what the write-through cache holds and what the report
    engine reads.
    """

    properties: list[Property] = Field(default_factory=list)
    tenants: list[Tenant] = Field(default_factory=list)
    employees: list[Employee] = Field(default_factory=list)
    config: AppConfig = Field(default_factory=AppConfig)

    @classmethod
    def empty(cls, config: Optional[AppConfig] = None) -> "EntitySet":
        return cls(config=config or AppConfig())

    @property
    def has_records(self) -> bool:
        """True if any property, tenant or employee exists."""
        return bool(self.properties or self.tenants or self.employees)

    def active_tenants(self) -> list[Tenant]:
        return [t for t in self.tenants if t.is_active]

    def property_index(self) -> dict[int, Property]:
        return {p.id: p for p in self.properties}

    def find_property(self, property_id: int) -> Optional[Property]:
        return next((p for p in self.properties if p.id == property_id), None)

    def find_tenant(self, tenant_id: int) -> Optional[Tenant]:
        return next((t for t in self.tenants if t.id == tenant_id), None)

    def find_employee(self, employee_id: str) -> Optional[Employee]:
        return next((e for e in self.employees if e.id == employee_id), None)

    def duplicate_ids(self) -> list[tuple[str, Union[int, str]]]:
        """
        (collection, id) pairs whose id is used more than once.

        Employee ids only need to be unique within their category; each
        category is its own table.
        """
        keyed = {
            "properties": [p.id for p in self.properties],
            "tenants": [t.id for t in self.tenants],
        }
        for category, employees in self.employees_by_category().items():
            keyed[f"employees_{category.value}"] = [e.id for e in employees]

        duplicates = []
        for collection, ids in keyed.items():
            seen = set()
            for record_id in ids:
                if record_id in seen and (collection, record_id) not in duplicates:
                    duplicates.append((collection, record_id))
                seen.add(record_id)
        return duplicates

    def employees_by_category(self) -> dict[EmployeeCategory, list[Employee]]:
        grouped: dict[EmployeeCategory, list[Employee]] = {
            category: [] for category in EmployeeCategory
        }
        for employee in self.employees:
            grouped[employee.category].append(employee)
        return grouped
