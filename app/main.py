"""
Streamlit Frontend for Estate Ledger

The operator's monthly workflow:
1. Check the three reports (property, company, payroll)
2. Fix amounts where needed
3. Close the month
4. Compare closed months

DESIGN PRINCIPLES:
1. Every figure on screen comes from the report engine, never recomputed here
2. Explicit confirmation before closing a month, deleting or resetting
3. Store failures are shown, never hidden

Each interaction opens the ledger, runs one operation and closes it again,
so every pending edit is flushed before the page re-renders.
"""

import asyncio
import json
from datetime import date, datetime

import streamlit as st

from estate_ledger.audit import configure_logging
from estate_ledger.config import get_settings
from estate_ledger.models import Property
from estate_ledger.orchestrator import open_ledger
from estate_ledger.services.storage import DuplicateCycleError, NotFoundError
from estate_ledger.validation import ValidationError


st.set_page_config(
    page_title="Estate Ledger",
    page_icon="🏠",
    layout="wide",
    initial_sidebar_state="expanded",
)


def run_async(coro):
    """Helper to run async functions in Streamlit."""
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


def with_ledger(operation):
    """Open the ledger, run `operation(ledger)` (sync or async), close it."""
    async def runner():
        async with open_ledger(get_settings()) as ledger:
            result = operation(ledger)
            if asyncio.iscoroutine(result):
                result = await result
            return result
    return run_async(runner())


@st.cache_resource
def setup_logging():
    configure_logging(debug=get_settings().app.debug_mode)


def show_records(records: list[dict]):
    st.dataframe(records, use_container_width=True, hide_index=True)


def main():
    """Main application entry point."""
    setup_logging()

    st.sidebar.title("🏠 Estate Ledger")
    st.sidebar.markdown("---")
    page = st.sidebar.radio(
        "Navigate to:",
        ["📊 Reports", "🔒 Monthly Close", "👥 Rent Manager", "⚙️ Settings"],
        index=0,
    )

    if page == "📊 Reports":
        render_reports_page()
    elif page == "🔒 Monthly Close":
        render_close_page()
    elif page == "👥 Rent Manager":
        render_rent_page()
    elif page == "⚙️ Settings":
        render_settings_page()


def render_reports_page():
    st.header("📊 Monthly Reports")

    bundle, cycle, integrity, load_error = with_ledger(
        lambda ledger: (
            ledger.reports(),
            ledger.current_cycle(),
            ledger.integrity_report(),
            ledger.cache.load_error,
        )
    )
    st.caption(f"Cycle {cycle.month}: {cycle.start} → {cycle.end}")

    if load_error:
        st.error(f"Store unavailable, edits are kept in memory only: {load_error}")

    for alert in integrity.alerts:
        st.warning(alert)
    for issue in integrity.errors:
        st.error(f"{issue.type}: {issue.message}")

    tab_company, tab_property, tab_payroll = st.tabs(["企業別", "物件別", "給与控除"])
    with tab_company:
        show_records(bundle.company_report.as_records())
    with tab_property:
        show_records(bundle.property_report.as_records())
    with tab_payroll:
        companies = ["(all)"] + bundle.payroll_report.companies()
        company = st.selectbox("派遣先", companies)
        report = bundle.payroll_report
        if company != "(all)":
            report = report.for_company(company)
        show_records(report.as_records())


def render_close_page():
    st.header("🔒 Monthly Close")

    cycle = with_ledger(lambda ledger: ledger.current_cycle())
    st.write(f"Current cycle: **{cycle.month}** ({cycle.start} → {cycle.end})")

    confirm = st.checkbox(f"I have checked the reports for {cycle.month}")
    if st.button("Close month", disabled=not confirm):
        try:
            result = with_ledger(lambda ledger: ledger.close_month(cycle))
        except DuplicateCycleError as e:
            st.error(str(e))
        else:
            if result.success:
                st.success(f"Closed {cycle.month} ({result.snapshot.id})")
            else:
                st.error(f"Could not save the close: {result.error_message}")

    snapshots = with_ledger(lambda ledger: ledger.list_snapshots())
    if not snapshots:
        st.info("No closed months yet.")
        return

    st.subheader("Closed months")
    show_records([
        {
            "月": s.cycle_month,
            "物件数": s.total_properties,
            "入居者": s.total_tenants,
            "回収": s.total_collected,
            "コスト": s.total_cost,
            "利益": s.profit,
            "入居率": f"{s.occupancy_rate}%",
            "締め日時": s.closed_at.strftime("%Y-%m-%d %H:%M"),
        }
        for s in snapshots
    ])

    labels = {s.cycle_month: s.id for s in snapshots}
    if len(snapshots) >= 2:
        col_a, col_b = st.columns(2)
        month_a = col_a.selectbox("From", list(labels), index=1)
        month_b = col_b.selectbox("To", list(labels), index=0)
        comparison = with_ledger(
            lambda ledger: ledger.compare_snapshots(labels[month_a], labels[month_b])
        )
        if comparison:
            st.json(comparison.deltas)

    to_delete = st.selectbox("Delete a closed month", ["-"] + list(labels))
    if to_delete != "-" and st.button(f"Delete {to_delete}"):
        result = with_ledger(lambda ledger: ledger.delete_snapshot(labels[to_delete]))
        if result.success:
            st.success(f"Deleted {to_delete}")
        else:
            st.error(result.error_message)


def render_rent_page():
    st.header("👥 Rent Manager")

    with st.expander("Add property"):
        render_property_form()

    entities = with_ledger(lambda ledger: ledger.entities)
    if not entities.properties:
        st.info("No properties yet.")
        return

    names = {f"{p.name} {p.room_number or ''}".strip(): p for p in entities.properties}
    prop = names[st.selectbox("Property", list(names))]
    st.caption(f"Target rent ¥{prop.target_rent:,} / cost ¥{prop.total_cost:,}")

    tenants = [t for t in entities.active_tenants() if t.property_id == prop.id]
    for tenant in tenants:
        col_name, col_rent, col_parking, col_exit = st.columns([3, 2, 2, 1])
        col_name.write(f"{tenant.name} ({tenant.employee_id})")
        rent = col_rent.number_input("家賃", min_value=0, value=tenant.rent_contribution, key=f"r{tenant.id}")
        parking = col_parking.number_input("駐車場", min_value=0, value=tenant.parking_fee, key=f"p{tenant.id}")
        if (rent, parking) != (tenant.rent_contribution, tenant.parking_fee):
            with_ledger(lambda ledger: ledger.update_tenant_amounts(tenant.id, rent, parking))
        if col_exit.button("退去", key=f"x{tenant.id}"):
            with_ledger(lambda ledger: ledger.deactivate_tenant(tenant.id))
            st.rerun()

    if tenants and st.button("Distribute target rent evenly"):
        share = with_ledger(lambda ledger: ledger.distribute_rent_evenly(prop.id))
        st.success(f"¥{share:,} per tenant")
        st.rerun()

    with st.form("add_tenant"):
        st.subheader("Add tenant")
        employee_id = st.text_input("社員No")
        name = st.text_input("氏名 (blank: from employee master)")
        rent = st.number_input("家賃", min_value=0, value=0)
        if st.form_submit_button("Add"):
            try:
                with_ledger(lambda ledger: ledger.add_tenant(
                    employee_id=employee_id,
                    property_id=prop.id,
                    name=name,
                    rent_contribution=int(rent),
                ))
                st.success("Tenant added")
            except (ValidationError, NotFoundError) as e:
                st.error(str(e))


def render_property_form():
    with st.form("add_property"):
        name = st.text_input("アパート名")
        address = st.text_input("住所")
        room_number = st.text_input("部屋番号")
        capacity = st.number_input("定員", min_value=0, value=2)
        rent_cost = st.number_input("契約家賃", min_value=0, value=0)
        management_fee = st.number_input("管理費", min_value=0, value=0)
        target_rent = st.number_input("設定家賃", min_value=0, value=0)
        contract_end = st.text_input("契約終了 (YYYY-MM-DD)")
        if st.form_submit_button("Save property"):
            def save(ledger):
                return ledger.save_property(Property(
                    id=ledger.new_property_id(),
                    name=name,
                    address=address,
                    room_number=room_number,
                    capacity=int(capacity),
                    rent_cost=int(rent_cost),
                    management_fee=int(management_fee),
                    target_rent=int(target_rent),
                    contract_end=contract_end,
                ))
            try:
                result = with_ledger(save)
            except ValidationError as e:
                st.error(str(e))
            else:
                for warning in result.warnings:
                    st.warning(warning)
                st.success(f"Saved {name}")


def render_settings_page():
    st.header("⚙️ Settings")

    config = with_ledger(lambda ledger: ledger.entities.config)
    with st.form("config"):
        company_name = st.text_input("Company name", value=config.company_name)
        closing_day = st.number_input("Closing day (0 = month end)", 0, 28, config.closing_day)
        cleaning_fee = st.number_input("Default cleaning fee", min_value=0, value=config.default_cleaning_fee)
        if st.form_submit_button("Save"):
            try:
                with_ledger(lambda ledger: ledger.update_config(
                    company_name=company_name,
                    closing_day=int(closing_day),
                    default_cleaning_fee=int(cleaning_fee),
                ))
                st.success("Saved")
            except ValidationError as e:
                st.error(str(e))

    st.subheader("Backup")
    document = with_ledger(lambda ledger: ledger.export_backup())
    st.download_button(
        "Download backup",
        data=json.dumps(document, ensure_ascii=False, indent=2),
        file_name=f"estate_ledger_backup_{date.today().isoformat()}.json",
        mime="application/json",
    )

    uploaded = st.file_uploader("Restore backup", type=["json"])
    if uploaded and st.button("Restore (replaces everything)"):
        try:
            restored = with_ledger(lambda ledger: ledger.restore_backup(uploaded.getvalue()))
            st.success(f"Restored {len(restored.properties)} properties, {len(restored.tenants)} tenants")
        except ValidationError as e:
            st.error(str(e))

    st.subheader("Danger zone")
    if st.checkbox("I understand this deletes all data, closed months included"):
        if st.button("Reset everything"):
            with_ledger(lambda ledger: ledger.reset())
            st.success(f"Reset at {datetime.now():%H:%M:%S}")


if __name__ == "__main__":
    main()
