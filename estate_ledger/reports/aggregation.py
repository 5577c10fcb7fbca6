"""
Report Aggregation Engine

Derives the three monthly views from one EntitySet:
1. Property report - one row per active property
2. Company report - one row per sponsoring company, with allocated costs
3. Payroll report - one row per tenant with something to deduct

DESIGN DECISION: Aggregation is a pure function of (entities, now).
- No I/O, no caching, no mutation of its input
- Safe to recompute on every read; the same input gives the same output
- Never raises on well-typed input: odd data (unparsable contract dates,
  negative capacity, tenants of unknown properties) degrades gracefully
"""

import math
from collections import defaultdict
from datetime import datetime
from typing import Optional

import structlog
from dateutil import parser as date_parser

from estate_ledger.config import ReportSettings
from estate_ledger.models.entities import EntitySet, Property, Tenant
from estate_ledger.models.reports import (
    CompanyReport,
    CompanyReportRow,
    PayrollDeductionRow,
    PayrollReport,
    PropertyReport,
    PropertyReportRow,
    ReportBundle,
)
from estate_ledger.reports.allocation import allocate_property_costs
from estate_ledger.reports.area import extract_area
from estate_ledger.reports.collation import ja_sort_key, ja_sort_keys

logger = structlog.get_logger(__name__)

SECONDS_PER_DAY = 86400

NOTE_EXPIRES_IN = "契約{days}日で満了"
NOTE_EXPIRED = "契約期限切れ"
NOTE_ZERO_RENT = "家賃¥0あり"
NOTE_SEPARATOR = "; "


def parse_contract_date(raw: Optional[str], now: datetime) -> Optional[datetime]:
    """
    Lenient contract date parse.

    Returns None when the value is missing or unparsable. The result is
    aligned with `now` (both naive or both aware) so they compare.
    """
    if not raw:
        return None
    try:
        parsed = date_parser.parse(raw)
    except (ValueError, OverflowError):
        return None

    if parsed.tzinfo is None and now.tzinfo is not None:
        parsed = parsed.replace(tzinfo=now.tzinfo)
    elif parsed.tzinfo is not None and now.tzinfo is None:
        parsed = parsed.astimezone().replace(tzinfo=None)
    return parsed


def is_active_property(prop: Property, now: datetime) -> bool:
    """No end date, an unparsable one, or one strictly after `now`."""
    end = parse_contract_date(prop.contract_end, now)
    return end is None or end > now


def days_until(end: datetime, now: datetime) -> int:
    """Whole days left, rounded up."""
    return math.ceil((end - now).total_seconds() / SECONDS_PER_DAY)


class ReportEngine:
    """
    Builds ReportBundles.

    Holds only configuration; every call to build() starts from scratch.
    """

    def __init__(self, settings: Optional[ReportSettings] = None):
        self._settings = settings or ReportSettings()

    def company_of(self, tenant: Tenant) -> str:
        return tenant.company or self._settings.no_company_label

    def build(self, entities: EntitySet, now: datetime) -> ReportBundle:
        active_tenants = entities.active_tenants()
        bundle = ReportBundle(
            generated_at=now,
            property_report=self.property_report(entities, active_tenants, now),
            company_report=self.company_report(entities, active_tenants),
            payroll_report=self.payroll_report(entities, active_tenants),
        )
        logger.debug(
            "reports_built",
            properties=len(bundle.property_report),
            companies=len(bundle.company_report),
            payroll_rows=len(bundle.payroll_report),
        )
        return bundle

    # -------------------------------------------------------------------------
    # Property report (物件別)
    # -------------------------------------------------------------------------

    def _notes(self, prop: Property, tenants: list[Tenant], now: datetime) -> str:
        notes = []
        end = parse_contract_date(prop.contract_end, now)
        if end is not None:
            days_left = days_until(end, now)
            if 0 < days_left <= self._settings.contract_warning_days:
                notes.append(NOTE_EXPIRES_IN.format(days=days_left))
            if days_left <= 0:
                notes.append(NOTE_EXPIRED)
        if any(t.rent_contribution == 0 for t in tenants):
            notes.append(NOTE_ZERO_RENT)
        return NOTE_SEPARATOR.join(notes)

    def property_report(
        self,
        entities: EntitySet,
        active_tenants: list[Tenant],
        now: datetime,
    ) -> PropertyReport:
        by_property: dict[int, list[Tenant]] = defaultdict(list)
        for tenant in active_tenants:
            by_property[tenant.property_id].append(tenant)

        active_properties = [p for p in entities.properties if is_active_property(p, now)]

        rows = []
        for no, prop in enumerate(active_properties, start=1):
            tenants = by_property.get(prop.id, [])
            collected = sum(t.total_contribution for t in tenants)
            rows.append(PropertyReportRow(
                no=no,
                area=extract_area(prop.name, prop.address),
                property_name=prop.name,
                room_number=prop.room_number or "",
                layout=prop.layout,
                occupant_count=len(tenants),
                vacancy=max(0, prop.capacity - len(tenants)),
                rent_cost=prop.total_cost,
                rent_target=prop.target_rent,
                profit=collected - prop.total_cost,
                notes=self._notes(prop, tenants, now),
            ))
        return PropertyReport(rows=rows)

    # -------------------------------------------------------------------------
    # Company report (企業別)
    # -------------------------------------------------------------------------

    def company_report(
        self,
        entities: EntitySet,
        active_tenants: list[Tenant],
    ) -> CompanyReport:
        property_ids: dict[str, set[int]] = defaultdict(set)
        payroll: dict[str, int] = defaultdict(int)
        for tenant in active_tenants:
            company = self.company_of(tenant)
            property_ids[company].add(tenant.property_id)
            payroll[company] += tenant.total_contribution

        allocations = allocate_property_costs(
            active_tenants,
            entities.property_index(),
            self.company_of,
        )

        rows = []
        for company in sorted(property_ids, key=ja_sort_key):
            allocation = allocations[company]
            rows.append(CompanyReportRow(
                company=company,
                property_count=len(property_ids[company]),
                rent_cost=allocation.rent_cost,
                rent_target=allocation.rent_target,
                profit=allocation.rent_target - allocation.rent_cost,
                payroll_deduction=payroll[company],
                monthly_profit=payroll[company] - allocation.rent_cost,
            ))
        return CompanyReport(rows=rows)

    # -------------------------------------------------------------------------
    # Payroll deduction report (給与控除)
    # -------------------------------------------------------------------------

    def payroll_report(
        self,
        entities: EntitySet,
        active_tenants: list[Tenant],
    ) -> PayrollReport:
        properties = entities.property_index()

        rows = []
        for tenant in active_tenants:
            if tenant.rent_contribution == 0 and tenant.parking_fee == 0:
                continue
            prop = properties.get(tenant.property_id)
            rows.append(PayrollDeductionRow(
                employee_id=tenant.employee_id,
                company=tenant.company or "",
                name_kana=tenant.name_kana,
                name=tenant.name,
                property_name=prop.name if prop else "",
                rent_deduction=tenant.rent_contribution,
                parking_deduction=tenant.parking_fee,
                total_deduction=tenant.total_contribution,
            ))

        rows.sort(key=lambda row: ja_sort_keys(row.company, row.name_kana))
        return PayrollReport(rows=rows)


def build_reports(
    entities: EntitySet,
    now: Optional[datetime] = None,
    settings: Optional[ReportSettings] = None,
) -> ReportBundle:
    """Convenience wrapper: ReportEngine(settings).build(entities, now)."""
    return ReportEngine(settings).build(entities, now or datetime.now())
