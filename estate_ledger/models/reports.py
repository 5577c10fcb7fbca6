"""
Report Models

Row and totals schemas for the three monthly views:
1. Property report (one row per active property)
2. Company report (one row per sponsoring company)
3. Payroll deduction report (one row per deducted tenant)

CRITICAL: Totals are ALWAYS derived by summing the rows they sit under.
There is no second code path that recomputes a total from the entity set,
so a total can never disagree with its column.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, ClassVar

from pydantic import BaseModel, Field


def column_sum(rows: list[BaseModel], column: str) -> int:
    """Sum one numeric column across report rows."""
    return sum(getattr(row, column) for row in rows)


class ReportTotals(BaseModel):
    """
    Base for report totals.

    Subclasses declare COLUMNS as {total_field: row_column} and COUNT_FIELD
    for the row count; from_rows() is the only constructor used by reports.
    """

    COUNT_FIELD: ClassVar[str] = ""
    COLUMNS: ClassVar[dict[str, str]] = {}

    @classmethod
    def from_rows(cls, rows: list[BaseModel]):
        values = {field: column_sum(rows, column) for field, column in cls.COLUMNS.items()}
        values[cls.COUNT_FIELD] = len(rows)
        return cls(**values)


# =============================================================================
# PROPERTY REPORT
# =============================================================================

class PropertyReportRow(BaseModel):
    """Per-property detail (物件別)."""

    no: int
    area: str
    property_name: str
    room_number: str = ""
    layout: str = "1K"
    occupant_count: int
    vacancy: int
    rent_cost: int = Field(description="Total monthly cost of the property")
    rent_target: int
    profit: int
    notes: str = ""


class PropertyReportTotals(ReportTotals):
    COUNT_FIELD: ClassVar[str] = "total_properties"
    COLUMNS: ClassVar[dict[str, str]] = {
        "total_occupants": "occupant_count",
        "total_vacancy": "vacancy",
        "total_rent_cost": "rent_cost",
        "total_rent_target": "rent_target",
        "total_profit": "profit",
    }

    total_properties: int = 0
    total_occupants: int = 0
    total_vacancy: int = 0
    total_rent_cost: int = 0
    total_rent_target: int = 0
    total_profit: int = 0


# =============================================================================
# COMPANY REPORT
# =============================================================================

class CompanyReportRow(BaseModel):
    """Per-company summary (企業別), with allocated property costs."""

    company: str
    property_count: int
    rent_cost: int
    rent_target: int
    profit: int
    payroll_deduction: int
    monthly_profit: int


class CompanyReportTotals(ReportTotals):
    COUNT_FIELD: ClassVar[str] = "total_companies"
    COLUMNS: ClassVar[dict[str, str]] = {
        "total_properties": "property_count",
        "total_rent_cost": "rent_cost",
        "total_rent_target": "rent_target",
        "total_profit": "profit",
        "total_payroll": "payroll_deduction",
        "total_monthly_profit": "monthly_profit",
    }

    total_companies: int = 0
    total_properties: int = 0
    total_rent_cost: int = 0
    total_rent_target: int = 0
    total_profit: int = 0
    total_payroll: int = 0
    total_monthly_profit: int = 0


# =============================================================================
# PAYROLL DEDUCTION REPORT
# =============================================================================

class PayrollDeductionRow(BaseModel):
    """Per-employee payroll deduction (給与控除), for accounting."""

    employee_id: str
    company: str
    name_kana: str
    name: str
    property_name: str
    rent_deduction: int
    parking_deduction: int
    total_deduction: int


class PayrollReportTotals(ReportTotals):
    COUNT_FIELD: ClassVar[str] = "total_employees"
    COLUMNS: ClassVar[dict[str, str]] = {
        "total_rent": "rent_deduction",
        "total_parking": "parking_deduction",
        "total_deduction": "total_deduction",
    }

    total_employees: int = 0
    total_rent: int = 0
    total_parking: int = 0
    total_deduction: int = 0


# =============================================================================
# REPORTS
# =============================================================================

class _Report(BaseModel, ABC):
    """
    Rows plus derived totals.

    as_records() is the export boundary: header-labelled rows followed by a
    totals row, ready for a spreadsheet or print renderer.
    """

    TOTALS_MODEL: ClassVar[type[ReportTotals]] = ReportTotals
    HEADERS: ClassVar[dict[str, str]] = {}

    rows: list = Field(default_factory=list)

    @property
    def totals(self):
        return self.TOTALS_MODEL.from_rows(self.rows)

    def __len__(self) -> int:
        return len(self.rows)

    @abstractmethod
    def _totals_record(self) -> dict[str, Any]:
        """The closing totals row, keyed by the same labels as HEADERS."""

    def as_records(self, include_totals: bool = True) -> list[dict[str, Any]]:
        records = [
            {label: getattr(row, column) for column, label in self.HEADERS.items()}
            for row in self.rows
        ]
        if include_totals:
            records.append(self._totals_record())
        return records


class PropertyReport(_Report):
    TOTALS_MODEL: ClassVar[type[ReportTotals]] = PropertyReportTotals
    HEADERS: ClassVar[dict[str, str]] = {
        "no": "NO",
        "area": "地区",
        "property_name": "アパート名",
        "room_number": "部屋番号",
        "layout": "間取り",
        "occupant_count": "入居人数",
        "vacancy": "空き",
        "rent_cost": "契約家賃",
        "rent_target": "設定家賃",
        "profit": "利益",
        "notes": "備考",
    }

    rows: list[PropertyReportRow] = Field(default_factory=list)

    def _totals_record(self) -> dict[str, Any]:
        totals = self.totals
        return {
            "NO": "合計",
            "地区": "",
            "アパート名": f"{totals.total_properties}件",
            "部屋番号": "",
            "間取り": "",
            "入居人数": totals.total_occupants,
            "空き": totals.total_vacancy,
            "契約家賃": totals.total_rent_cost,
            "設定家賃": totals.total_rent_target,
            "利益": totals.total_profit,
            "備考": "",
        }


class CompanyReport(_Report):
    TOTALS_MODEL: ClassVar[type[ReportTotals]] = CompanyReportTotals
    HEADERS: ClassVar[dict[str, str]] = {
        "company": "派遣先",
        "property_count": "物件数",
        "rent_cost": "契約家賃",
        "rent_target": "設定家賃",
        "profit": "利益",
        "payroll_deduction": "支給家賃控除",
        "monthly_profit": "月家賃利益",
    }

    rows: list[CompanyReportRow] = Field(default_factory=list)

    def _totals_record(self) -> dict[str, Any]:
        totals = self.totals
        return {
            "派遣先": "合計",
            "物件数": totals.total_properties,
            "契約家賃": totals.total_rent_cost,
            "設定家賃": totals.total_rent_target,
            "利益": totals.total_profit,
            "支給家賃控除": totals.total_payroll,
            "月家賃利益": totals.total_monthly_profit,
        }


class PayrollReport(_Report):
    TOTALS_MODEL: ClassVar[type[ReportTotals]] = PayrollReportTotals
    HEADERS: ClassVar[dict[str, str]] = {
        "employee_id": "社員No",
        "company": "派遣先",
        "name_kana": "カナ",
        "name": "氏名",
        "property_name": "アパート",
        "rent_deduction": "家賃控除",
        "parking_deduction": "駐車場控除",
        "total_deduction": "控除合計",
    }

    rows: list[PayrollDeductionRow] = Field(default_factory=list)

    def companies(self) -> list[str]:
        """Distinct non-empty companies, in report order."""
        return list(dict.fromkeys(row.company for row in self.rows if row.company))

    def for_company(self, company: str) -> "PayrollReport":
        """Rows of one company; totals follow the filtered rows."""
        return PayrollReport(rows=[row for row in self.rows if row.company == company])

    def _totals_record(self) -> dict[str, Any]:
        totals = self.totals
        return {
            "社員No": "合計",
            "派遣先": "",
            "カナ": "",
            "氏名": f"{totals.total_employees}名",
            "アパート": "",
            "家賃控除": totals.total_rent,
            "駐車場控除": totals.total_parking,
            "控除合計": totals.total_deduction,
        }


class ReportBundle(BaseModel):
    """The three views derived from one entity set at one point in time."""

    generated_at: datetime
    property_report: PropertyReport
    company_report: CompanyReport
    payroll_report: PayrollReport
