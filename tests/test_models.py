"""
Tests for Estate Ledger models

Test strategy:
1. Entities parse whatever the store or a legacy document holds
2. Report totals are sums of their rows
3. Snapshots and billing cycles are frozen values
"""

import pytest
from datetime import date, datetime, timezone
from pydantic import ValidationError as PydanticValidationError

from estate_ledger.models import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
    BillingCycle,
    BillingMode,
    CompanyReportRow,
    Employee,
    EmployeeCategory,
    EntitySet,
    MonthlySnapshot,
    PayrollDeductionRow,
    PayrollReport,
    Property,
    PropertyReport,
    PropertyReportRow,
    SnapshotComparison,
    Tenant,
    TenantStatus,
)
from estate_ledger.models.reports import _Report


class TestEntityModels:
    """Tests for raw entity models."""

    def test_property_total_cost(self, make_property):
        prop = make_property(rent_cost=50000, management_fee=3000, parking_cost=2000)
        assert prop.total_cost == 55000

    def test_property_accepts_legacy_field_names(self):
        prop = Property.model_validate({
            "id": 1,
            "name": "寮",
            "kanri_hi": 4000,
            "rent_price_uns": 70000,
            "type": "2LDK",
        })
        assert prop.management_fee == 4000
        assert prop.target_rent == 70000
        assert prop.layout == "2LDK"

    def test_property_blank_strings_are_missing(self):
        prop = Property(id=1, name="寮", room_number="  ", contract_end="", layout="")
        assert prop.room_number is None
        assert prop.contract_end is None
        assert prop.layout == "1K"

    def test_property_keeps_unparsable_contract_end(self):
        """Odd dates must still load; reports treat them as 'no end date'."""
        prop = Property(id=1, name="寮", contract_end="令和7年3月")
        assert prop.contract_end == "令和7年3月"

    def test_property_billing_mode(self):
        assert Property(id=1, name="寮", billing_mode="split").billing_mode == BillingMode.SPLIT

    def test_tenant_defaults(self):
        tenant = Tenant(id=1, employee_id=" 123 ", name="Sato", property_id=1)
        assert tenant.employee_id == "123"
        assert tenant.status == TenantStatus.ACTIVE
        assert tenant.is_active
        assert tenant.total_contribution == 0

    def test_numeric_employee_ids_become_text(self):
        tenant = Tenant(id=1, employee_id=12345, name="Sato", property_id=1)
        employee = Employee(id=12345, name="Sato")
        assert tenant.employee_id == employee.id == "12345"

    def test_employee_null_fields(self):
        employee = Employee(id="E1", name="Sato", company=None, name_kana=None, full_data=None)
        assert employee.company == ""
        assert employee.name_kana == ""
        assert employee.full_data == {}
        assert employee.category == EmployeeCategory.DISPATCH

    def test_entity_id_must_be_integer(self):
        with pytest.raises(PydanticValidationError):
            Property(id="abc", name="寮")


class TestEntitySet:
    """Tests for the in-memory entity set."""

    def test_empty(self):
        entities = EntitySet.empty()
        assert not entities.has_records
        assert entities.config.company_name == "UNS-KIKAKU"

    def test_lookups(self, scenario):
        assert scenario.find_property(1).name == "P1"
        assert scenario.find_property(2) is None
        assert scenario.find_tenant(2).company == "B"
        assert scenario.find_employee("E9001").company == "C"
        assert list(scenario.property_index()) == [1]

    def test_active_tenants(self, scenario):
        scenario.tenants[0].status = TenantStatus.INACTIVE
        assert [t.id for t in scenario.active_tenants()] == [2]

    def test_employees_by_category_lists_every_category(self):
        entities = EntitySet(employees=[
            Employee(id="S1", name="Staff", category="staff"),
        ])
        grouped = entities.employees_by_category()
        assert set(grouped) == set(EmployeeCategory)
        assert [e.id for e in grouped[EmployeeCategory.STAFF]] == ["S1"]
        assert grouped[EmployeeCategory.TRAINEE] == []


class TestReportModels:
    """Totals are derived from rows."""

    def _property_row(self, no, occupants, vacancy, cost, target, profit):
        return PropertyReportRow(
            no=no,
            area="名古屋市",
            property_name=f"P{no}",
            occupant_count=occupants,
            vacancy=vacancy,
            rent_cost=cost,
            rent_target=target,
            profit=profit,
        )

    def test_property_totals(self):
        report = PropertyReport(rows=[
            self._property_row(1, 2, 0, 85000, 100000, 5000),
            self._property_row(2, 1, 1, 60000, 70000, -15000),
        ])

        totals = report.totals

        assert totals.total_properties == 2
        assert totals.total_occupants == 3
        assert totals.total_vacancy == 1
        assert totals.total_rent_cost == 145000
        assert totals.total_profit == -10000

    def test_empty_report_totals_are_zero(self):
        totals = PayrollReport().totals
        assert totals.total_employees == 0
        assert totals.total_deduction == 0

    def test_records_end_with_totals_row(self):
        report = PropertyReport(rows=[self._property_row(1, 2, 0, 85000, 100000, 5000)])

        records = report.as_records()

        assert records[0]["アパート名"] == "P1"
        assert records[-1]["NO"] == "合計"
        assert records[-1]["アパート名"] == "1件"
        assert len(report.as_records(include_totals=False)) == 1

    def test_payroll_filter_by_company(self):
        def row(employee_id, company, total):
            return PayrollDeductionRow(
                employee_id=employee_id,
                company=company,
                name_kana="",
                name=employee_id,
                property_name="P1",
                rent_deduction=total,
                parking_deduction=0,
                total_deduction=total,
            )

        report = PayrollReport(rows=[row("1", "A", 100), row("2", "B", 200), row("3", "A", 300)])

        assert report.companies() == ["A", "B"]
        filtered = report.for_company("A")
        assert filtered.totals.total_deduction == 400
        assert filtered.totals.total_employees == 2

    def test_report_base_cannot_be_instantiated(self):
        with pytest.raises(TypeError):
            _Report()


class TestSnapshotModels:
    """Tests for billing cycles and monthly snapshots."""

    def _snapshot(self, month, collected, profit):
        return MonthlySnapshot(
            cycle_month=month,
            cycle_start=date(2025, 1, 1),
            cycle_end=date(2025, 1, 31),
            closed_at=datetime(2025, 2, 1, tzinfo=timezone.utc),
            total_properties=1,
            total_tenants=2,
            total_collected=collected,
            total_cost=85000,
            total_target=100000,
            profit=profit,
            occupancy_rate=100,
        )

    def test_snapshot_dates_stored_as_text(self):
        snapshot = self._snapshot("2025-01", 95000, 10000)
        assert snapshot.cycle_start == "2025-01-01"
        assert snapshot.id.startswith("snap_")

    def test_snapshot_is_frozen(self):
        snapshot = self._snapshot("2025-01", 95000, 10000)
        with pytest.raises(PydanticValidationError):
            snapshot.profit = 0

    def test_snapshot_rejects_bad_month(self):
        with pytest.raises(PydanticValidationError):
            self._snapshot("2025-13", 0, 0)

    def test_snapshot_rows_validate_from_dicts(self):
        row = CompanyReportRow(
            company="A", property_count=1, rent_cost=1, rent_target=2,
            profit=1, payroll_deduction=3, monthly_profit=2,
        )
        snapshot = MonthlySnapshot.model_validate({
            **self._snapshot("2025-01", 0, 0).model_dump(),
            "company_summary": [row.model_dump()],
        })
        assert snapshot.company_summary == [row]

    def test_comparison_deltas(self):
        comparison = SnapshotComparison(
            a=self._snapshot("2025-01", 95000, 10000),
            b=self._snapshot("2025-02", 90000, 5000),
        )
        deltas = comparison.deltas
        assert deltas["total_collected"] == -5000
        assert deltas["profit"] == -5000
        assert deltas["total_tenants"] == 0

    def test_billing_cycle_is_frozen(self):
        cycle = BillingCycle.for_date(date(2025, 3, 15))
        with pytest.raises(PydanticValidationError):
            cycle.month = "2025-04"


class TestAuditModels:
    """Tests for audit-related models."""

    def test_audit_event_creation(self):
        event = AuditEvent(
            event_type=AuditEventType.STORE_RESET,
            description="All collections cleared",
        )
        assert event.severity == AuditSeverity.INFO
        assert event.timestamp.tzinfo is not None

    def test_audit_event_to_log_dict(self):
        event = AuditEventBuilder.snapshot_closed(
            snapshot_id="snap_1",
            cycle_month="2025-03",
            total_tenants=2,
            profit=10000,
        )
        log_dict = event.to_log_dict()
        assert "event_id" in log_dict
        assert log_dict["event_type"] == "snapshot_closed"
        assert log_dict["details"]["cycle_month"] == "2025-03"
        assert log_dict["is_user_action"] is True

    def test_flush_failure_is_an_error(self):
        event = AuditEventBuilder.store_flush_failed("disk I/O error")
        assert event.severity == AuditSeverity.ERROR
        assert event.error_message == "disk I/O error"

    def test_close_rejected_is_a_warning(self):
        event = AuditEventBuilder.snapshot_close_rejected("2025-03")
        assert event.event_type == AuditEventType.SNAPSHOT_CLOSE_REJECTED
        assert event.severity == AuditSeverity.WARNING


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
