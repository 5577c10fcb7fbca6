"""
Tests for the report aggregation engine.

The engine is a pure function, so every test builds an EntitySet in memory
and checks the derived rows and totals against hand-computed values.
"""

from datetime import datetime, timedelta, timezone

import pytest

from estate_ledger.config import ReportSettings
from estate_ledger.models import EntitySet, TenantStatus
from estate_ledger.models.reports import column_sum
from estate_ledger.reports import (
    ReportEngine,
    build_reports,
    extract_area,
    is_active_property,
    ja_sort_key,
)


class TestScenario:
    """One property shared by company A and company B."""

    def test_property_row(self, scenario, now):
        """Occupancy, vacancy and profit of P1."""
        bundle = build_reports(scenario, now)
        assert len(bundle.property_report) == 1

        row = bundle.property_report.rows[0]
        assert row.no == 1
        assert row.property_name == "P1"
        assert row.occupant_count == 2
        assert row.vacancy == 0
        assert row.rent_cost == 85000
        assert row.rent_target == 100000
        assert row.profit == 10000
        assert row.notes == ""

    def test_company_rows(self, scenario, now):
        """Each company is allocated half of P1."""
        bundle = build_reports(scenario, now)
        rows = {row.company: row for row in bundle.company_report.rows}
        assert list(rows) == ["A", "B"]

        a, b = rows["A"], rows["B"]
        assert (a.property_count, a.rent_cost, a.rent_target) == (1, 42500, 50000)
        assert (a.profit, a.payroll_deduction, a.monthly_profit) == (7500, 45000, 2500)
        assert (b.property_count, b.rent_cost, b.rent_target) == (1, 42500, 50000)
        assert (b.profit, b.payroll_deduction, b.monthly_profit) == (7500, 50000, 7500)

    def test_payroll_rows(self, scenario, now):
        bundle = build_reports(scenario, now)
        rows = bundle.payroll_report.rows
        assert [r.employee_id for r in rows] == ["E0001", "E0002"]
        assert rows[1].total_deduction == 50000
        assert rows[1].property_name == "P1"

    def test_headline_totals(self, scenario, now):
        bundle = build_reports(scenario, now)
        assert bundle.property_report.totals.total_profit == 10000
        assert bundle.company_report.totals.total_payroll == 95000
        assert bundle.payroll_report.totals.total_deduction == 95000


class TestPurity:
    """Aggregation has no side effects."""

    def test_idempotent(self, scenario, now):
        first = build_reports(scenario, now)
        second = build_reports(scenario, now)
        assert first == second

    def test_input_not_mutated(self, scenario, now):
        before = scenario.model_copy(deep=True)
        build_reports(scenario, now)
        assert scenario == before


class TestTotals:
    """Totals always equal the column sums of their rows."""

    def test_totals_match_columns(self, make_property, make_tenant, now):
        entities = EntitySet(
            properties=[
                make_property(1, capacity=3),
                make_property(2, capacity=1, rent_cost=40000, target_rent=45000),
                make_property(3, capacity=4, parking_cost=3000),
            ],
            tenants=[
                make_tenant(1, property_id=1, company="A"),
                make_tenant(2, property_id=1, company="B", parking_fee=2000),
                make_tenant(3, property_id=2, company="A", rent_contribution=30000),
                make_tenant(4, property_id=3, company="C", rent_contribution=0, parking_fee=1000),
            ],
        )
        bundle = build_reports(entities, now)

        p = bundle.property_report
        assert p.totals.total_properties == len(p.rows)
        assert p.totals.total_occupants == column_sum(p.rows, "occupant_count")
        assert p.totals.total_vacancy == column_sum(p.rows, "vacancy")
        assert p.totals.total_rent_cost == column_sum(p.rows, "rent_cost")
        assert p.totals.total_rent_target == column_sum(p.rows, "rent_target")
        assert p.totals.total_profit == column_sum(p.rows, "profit")

        c = bundle.company_report
        assert c.totals.total_companies == len(c.rows) == 3
        assert c.totals.total_properties == column_sum(c.rows, "property_count")
        assert c.totals.total_rent_cost == column_sum(c.rows, "rent_cost")
        assert c.totals.total_monthly_profit == column_sum(c.rows, "monthly_profit")

        pr = bundle.payroll_report
        assert pr.totals.total_employees == len(pr.rows) == 4
        assert pr.totals.total_deduction == (
            pr.totals.total_rent + pr.totals.total_parking
        )

    def test_empty_entity_set(self, now):
        """An empty set yields empty reports with all-zero totals."""
        bundle = build_reports(EntitySet(), now)

        assert len(bundle.property_report) == 0
        assert len(bundle.company_report) == 0
        assert len(bundle.payroll_report) == 0
        assert all(v == 0 for v in bundle.property_report.totals.model_dump().values())
        assert all(v == 0 for v in bundle.company_report.totals.model_dump().values())
        assert all(v == 0 for v in bundle.payroll_report.totals.model_dump().values())


class TestPropertyReport:
    """Tests for the per-property view."""

    def test_vacancy_never_negative(self, make_property, make_tenant, now):
        entities = EntitySet(
            properties=[make_property(1, capacity=1), make_property(2, capacity=-2)],
            tenants=[make_tenant(1), make_tenant(2), make_tenant(3, property_id=2)],
        )
        rows = build_reports(entities, now).property_report.rows
        assert [r.vacancy for r in rows] == [0, 0]
        assert rows[0].occupant_count == 2

    def test_expired_contract_excluded(self, make_property, now):
        entities = EntitySet(properties=[
            make_property(1, contract_end="2025-03-10"),
            make_property(2, contract_end=None),
            make_property(3, contract_end="未定"),
            make_property(4, contract_end="2026-01-31"),
        ])
        rows = build_reports(entities, now).property_report.rows
        assert [r.property_name for r in rows] == ["Property 2", "Property 3", "Property 4"]
        assert [r.no for r in rows] == [1, 2, 3]

    def test_is_active_property(self, make_property, now):
        assert is_active_property(make_property(contract_end=None), now)
        assert is_active_property(make_property(contract_end="not a date"), now)
        assert not is_active_property(make_property(contract_end="2025-03-15T12:00:00"), now)

    def test_aware_now_with_naive_contract_end(self, make_property):
        now = datetime(2025, 3, 15, tzinfo=timezone.utc)
        assert is_active_property(make_property(contract_end="2025-04-01"), now)

    def test_contract_expiry_note(self, make_property, make_tenant, now):
        entities = EntitySet(
            properties=[make_property(1, contract_end="2025-04-14")],
            tenants=[make_tenant(1)],
        )
        row = build_reports(entities, now).property_report.rows[0]
        # 29.5 days left, rounded up
        assert row.notes == "契約30日で満了"

    def test_no_note_beyond_warning_window(self, make_property, now):
        entities = EntitySet(properties=[make_property(1, contract_end="2025-06-30")])
        row = build_reports(entities, now).property_report.rows[0]
        assert row.notes == ""

    def test_warning_window_is_configurable(self, make_property, now):
        entities = EntitySet(properties=[make_property(1, contract_end="2025-04-14")])
        engine = ReportEngine(ReportSettings(contract_warning_days=20))
        assert engine.build(entities, now).property_report.rows[0].notes == ""

    def test_combined_notes(self, make_property, make_tenant, now):
        entities = EntitySet(
            properties=[make_property(1, contract_end="2025-03-25")],
            tenants=[make_tenant(1, rent_contribution=0, parking_fee=3000)],
        )
        row = build_reports(entities, now).property_report.rows[0]
        assert row.notes == "契約10日で満了; 家賃¥0あり"

    def test_inactive_tenants_not_counted(self, make_property, make_tenant, now):
        entities = EntitySet(
            properties=[make_property(1)],
            tenants=[
                make_tenant(1),
                make_tenant(2, status=TenantStatus.INACTIVE, exit_date="2025-02-28"),
            ],
        )
        row = build_reports(entities, now).property_report.rows[0]
        assert row.occupant_count == 1
        assert row.vacancy == 1
        assert row.profit == 45000 - 85000

    def test_as_records_has_totals_row(self, scenario, now):
        records = build_reports(scenario, now).property_report.as_records()
        assert len(records) == 2
        assert records[0]["アパート名"] == "P1"
        assert records[-1]["NO"] == "合計"
        assert records[-1]["利益"] == 10000

    def test_as_records_without_totals(self, scenario, now):
        records = build_reports(scenario, now).company_report.as_records(include_totals=False)
        assert [r["派遣先"] for r in records] == ["A", "B"]


class TestCompanyReport:
    """Tests for the per-company view."""

    def test_missing_company_label(self, make_property, make_tenant, now):
        entities = EntitySet(
            properties=[make_property(1)],
            tenants=[make_tenant(1, company=None), make_tenant(2, company="")],
        )
        rows = build_reports(entities, now).company_report.rows
        assert [r.company for r in rows] == ["(no company)"]
        assert rows[0].rent_cost == 85000

    def test_unknown_property_counts_without_allocation(self, make_tenant, now):
        entities = EntitySet(tenants=[make_tenant(1, property_id=99, company="X")])
        row = build_reports(entities, now).company_report.rows[0]
        assert row.property_count == 1
        assert row.rent_cost == 0
        assert row.rent_target == 0
        assert row.monthly_profit == 45000

    def test_japanese_collation_order(self, make_property, make_tenant, now):
        entities = EntitySet(
            properties=[make_property(1, capacity=5)],
            tenants=[
                make_tenant(1, company="ﾀｶｵ工業"),
                make_tenant(2, company="あおば"),
                make_tenant(3, company="カワイ"),
            ],
        )
        rows = build_reports(entities, now).company_report.rows
        assert [r.company for r in rows] == ["あおば", "カワイ", "ﾀｶｵ工業"]


class TestPayrollReport:
    """Tests for the payroll deduction view."""

    def test_zero_deduction_excluded(self, make_property, make_tenant, now):
        entities = EntitySet(
            properties=[make_property(1, capacity=3)],
            tenants=[
                make_tenant(1, rent_contribution=0, parking_fee=0),
                make_tenant(2, rent_contribution=0, parking_fee=3000),
                make_tenant(3),
            ],
        )
        rows = build_reports(entities, now).payroll_report.rows
        assert sorted(r.employee_id for r in rows) == ["E0002", "E0003"]

    def test_sorted_by_company_then_kana(self, make_property, make_tenant, now):
        entities = EntitySet(
            properties=[make_property(1, capacity=5)],
            tenants=[
                make_tenant(1, company="B", name_kana="アベ"),
                make_tenant(2, company="A", name_kana="ヤマダ"),
                make_tenant(3, company="A", name_kana="いとう"),
                make_tenant(4, company=None, name_kana="ウエダ"),
            ],
        )
        rows = build_reports(entities, now).payroll_report.rows
        assert [(r.company, r.name_kana) for r in rows] == [
            ("", "ウエダ"),
            ("A", "いとう"),
            ("A", "ヤマダ"),
            ("B", "アベ"),
        ]

    def test_unknown_property_has_empty_name(self, make_tenant, now):
        entities = EntitySet(tenants=[make_tenant(1, property_id=42)])
        row = build_reports(entities, now).payroll_report.rows[0]
        assert row.property_name == ""

    def test_for_company_filters_rows_and_totals(self, scenario, now):
        payroll = build_reports(scenario, now).payroll_report
        assert payroll.companies() == ["A", "B"]

        only_b = payroll.for_company("B")
        assert len(only_b) == 1
        assert only_b.totals.total_deduction == 50000


class TestArea:
    """Tests for the area label."""

    @pytest.mark.parametrize("name, expected", [
        ("高雄工業 本社工場 A棟", "高雄工業 本社工場"),
        ("岡山事業所第2寮", "岡山事業所"),
        ("名古屋支店前", "名古屋支店"),
    ])
    def test_site_name_wins(self, name, expected):
        assert extract_area(name, "愛知県 名古屋市") == expected

    def test_first_address_segment(self):
        assert extract_area("Sakura", "愛知県　岡崎市 1-2-3") == "愛知県"

    def test_address_prefix_fallback(self):
        assert extract_area("Sakura", "愛知県岡崎市羽根町1-2-3") == "愛知県岡崎市"

    def test_empty_address(self):
        assert extract_area("Sakura", "") == ""


class TestCollation:
    def test_kana_scripts_fold_together(self):
        assert ja_sort_key("ｱｲ") == ja_sort_key("アイ") == ja_sort_key("あい")

    def test_voiced_half_width(self):
        assert ja_sort_key("ｶﾞｽ") == ja_sort_key("ガス")

    def test_latin_case_insensitive(self):
        assert ja_sort_key("ＡＢＣ") == ja_sort_key("abc")

    def test_none_sorts_first(self):
        assert ja_sort_key(None) == ""
        assert sorted(["b", None, "a"], key=ja_sort_key) == [None, "a", "b"]


def test_build_reports_defaults_to_current_time(scenario):
    before = datetime.now()
    bundle = build_reports(scenario)
    assert before <= bundle.generated_at <= datetime.now() + timedelta(seconds=1)
