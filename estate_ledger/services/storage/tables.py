"""
services/storage/tables.py
--------------------------
SQLAlchemy ORM tables for the local SQLite store.

Column names mirror the pydantic field names, so rows are written from
model_dump() and read back by validating their column dict.

Employees live in four tables, one per EmployeeCategory; they share their
columns through EmployeeColumns.
"""

from sqlalchemy import JSON, Boolean, Index, Integer, String
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from estate_ledger.models.entities import EmployeeCategory


class Base(DeclarativeBase):
    """Base class for all ORM models."""
    pass


class PropertyRow(Base):
    __tablename__ = "properties"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)
    name: Mapped[str] = mapped_column(String(200), nullable=False, index=True)
    address: Mapped[str] = mapped_column(String(500), default="")
    capacity: Mapped[int] = mapped_column(Integer, default=0)
    rent_cost: Mapped[int] = mapped_column(Integer, default=0)
    management_fee: Mapped[int] = mapped_column(Integer, default=0)
    parking_cost: Mapped[int] = mapped_column(Integer, default=0)
    target_rent: Mapped[int] = mapped_column(Integer, default=0)
    room_number: Mapped[str | None] = mapped_column(String(50))
    postal_code: Mapped[str | None] = mapped_column(String(10))
    address_detail: Mapped[str | None] = mapped_column(String(500))
    layout: Mapped[str] = mapped_column(String(20), default="1K")
    billing_mode: Mapped[str | None] = mapped_column(String(10))
    manager_name: Mapped[str | None] = mapped_column(String(100))
    manager_phone: Mapped[str | None] = mapped_column(String(50))
    contract_start: Mapped[str | None] = mapped_column(String(30))
    contract_end: Mapped[str | None] = mapped_column(String(30), index=True)

    def __repr__(self) -> str:
        return f"<PropertyRow id={self.id} name={self.name}>"


class TenantRow(Base):
    __tablename__ = "tenants"
    __table_args__ = (
        Index("ix_tenants_property_status", "property_id", "status"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)
    employee_id: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    name_kana: Mapped[str] = mapped_column(String(200), default="")
    company: Mapped[str | None] = mapped_column(String(200))
    property_id: Mapped[int] = mapped_column(Integer, nullable=False)
    rent_contribution: Mapped[int] = mapped_column(Integer, default=0)
    parking_fee: Mapped[int] = mapped_column(Integer, default=0)
    entry_date: Mapped[str | None] = mapped_column(String(30))
    exit_date: Mapped[str | None] = mapped_column(String(30))
    cleaning_fee: Mapped[int | None] = mapped_column(Integer)
    status: Mapped[str] = mapped_column(String(10), nullable=False, default="active")

    def __repr__(self) -> str:
        return f"<TenantRow id={self.id} employee_id={self.employee_id}>"


class EmployeeColumns:
    """Columns shared by the four employee tables."""

    id: Mapped[str] = mapped_column(String(50), primary_key=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    name_kana: Mapped[str] = mapped_column(String(200), default="", index=True)
    company: Mapped[str] = mapped_column(String(200), default="", index=True)
    full_data: Mapped[dict] = mapped_column(JSON, default=dict)


class DispatchEmployeeRow(EmployeeColumns, Base):
    __tablename__ = "employees_dispatch"


class ContractEmployeeRow(EmployeeColumns, Base):
    __tablename__ = "employees_contract"


class StaffEmployeeRow(EmployeeColumns, Base):
    __tablename__ = "employees_staff"


class TraineeEmployeeRow(EmployeeColumns, Base):
    __tablename__ = "employees_trainee"


EMPLOYEE_TABLES: dict[EmployeeCategory, type[EmployeeColumns]] = {
    EmployeeCategory.DISPATCH: DispatchEmployeeRow,
    EmployeeCategory.CONTRACT: ContractEmployeeRow,
    EmployeeCategory.STAFF: StaffEmployeeRow,
    EmployeeCategory.TRAINEE: TraineeEmployeeRow,
}


class ConfigRow(Base):
    __tablename__ = "config"

    key: Mapped[str] = mapped_column(String(20), primary_key=True, default="main")
    company_name: Mapped[str] = mapped_column(String(200), nullable=False)
    closing_day: Mapped[int] = mapped_column(Integer, default=0)
    default_cleaning_fee: Mapped[int] = mapped_column(Integer, default=30000)


class SnapshotRow(Base):
    __tablename__ = "snapshots"

    id: Mapped[str] = mapped_column(String(40), primary_key=True)
    cycle_month: Mapped[str] = mapped_column(String(7), nullable=False, unique=True, index=True)
    cycle_start: Mapped[str] = mapped_column(String(30), nullable=False)
    cycle_end: Mapped[str] = mapped_column(String(30), nullable=False)
    closed_at: Mapped[str] = mapped_column(String(40), nullable=False)
    total_properties: Mapped[int] = mapped_column(Integer, default=0)
    total_tenants: Mapped[int] = mapped_column(Integer, default=0)
    total_collected: Mapped[int] = mapped_column(Integer, default=0)
    total_cost: Mapped[int] = mapped_column(Integer, default=0)
    total_target: Mapped[int] = mapped_column(Integer, default=0)
    profit: Mapped[int] = mapped_column(Integer, default=0)
    occupancy_rate: Mapped[int] = mapped_column(Integer, default=0)
    company_summary: Mapped[list] = mapped_column(JSON, default=list)
    property_detail: Mapped[list] = mapped_column(JSON, default=list)
    payroll_detail: Mapped[list] = mapped_column(JSON, default=list)

    def __repr__(self) -> str:
        return f"<SnapshotRow id={self.id} cycle_month={self.cycle_month}>"


class MetaRow(Base):
    __tablename__ = "meta"

    key: Mapped[str] = mapped_column(String(20), primary_key=True, default="dbmeta")
    version: Mapped[str] = mapped_column(String(20), nullable=False)
    last_sync: Mapped[str] = mapped_column(String(40), nullable=False)
    migrated_from_legacy: Mapped[bool] = mapped_column(Boolean, default=False)


ENTITY_TABLES = (PropertyRow, TenantRow, *EMPLOYEE_TABLES.values(), ConfigRow)
ALL_TABLES = (*ENTITY_TABLES, SnapshotRow, MetaRow)
