"""
Streamlit Frontend for the Subscription Tracker

A thin page over the services: everything it shows is computed by
subtracker.orchestrator, everything it saves goes through the services.

DESIGN PRINCIPLES:
1. Simple, clear interface
2. Clear error messages in simple language
3. Amounts in different currencies are never added together
4. Replace imports ask for explicit confirmation

The signed-in user comes from APP_LOCAL_USER_ID. Without it every page
shows the sign-in error raised by the services.
"""

import asyncio
from datetime import date, datetime, timezone
from decimal import Decimal

import streamlit as st

from subtracker.config import get_settings, validate_all_settings
from subtracker.errors import (
    AuthError,
    FormatError,
    NotFoundError,
    PartialImportError,
    PersistenceError,
    ValidationError,
)
from subtracker.models.subscription import ImportOptions, RecurringDuration
from subtracker.orchestrator import DashboardFlow, create_app_components
from subtracker.recurrence import duration_label, duration_suffix
from subtracker.services.export_import import ExportImportService, export_filename
from subtracker.services.subscriptions import SubscriptionService


# Page configuration
st.set_page_config(
    page_title="Subscription Tracker",
    page_icon="🔁",
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


@st.cache_resource
def get_components():
    """Get or create application components (cached)."""
    return create_app_components()


def current_user_id():
    return get_settings().app.local_user_id


def main():
    """Main application entry point."""
    subscription_service, export_import_service, dashboard_flow = get_components()

    st.sidebar.title("🔁 Subscription Tracker")
    st.sidebar.markdown("---")

    page = st.sidebar.radio(
        "Navigate to:",
        ["📋 Subscriptions", "➕ Add Subscription", "📊 Stats", "📦 Import / Export", "⚙️ Settings"],
        index=0,
    )

    try:
        if page == "📋 Subscriptions":
            render_subscriptions_page(dashboard_flow, subscription_service)
        elif page == "➕ Add Subscription":
            render_add_page(subscription_service)
        elif page == "📊 Stats":
            render_stats_page(dashboard_flow)
        elif page == "📦 Import / Export":
            render_import_export_page(export_import_service)
        elif page == "⚙️ Settings":
            render_settings_page()
    except AuthError as e:
        st.error(f"🔒 {e.message}. Set APP_LOCAL_USER_ID to use the tracker locally.")
    except PersistenceError as e:
        st.error(f"❌ {e.message}. Please try again.")


def render_subscriptions_page(dashboard_flow: DashboardFlow, subscription_service: SubscriptionService):
    """Render the subscription cards, soonest renewal first."""
    st.title("📋 Your Subscriptions")

    dashboard = run_async(dashboard_flow.build(current_user_id(), date.today()))
    if not dashboard.cards:
        st.info("No subscriptions yet. Use 'Add Subscription' or import an export file.")
        return

    for card in dashboard.cards:
        sub = card.subscription
        with st.container(border=True):
            col1, col2, col3 = st.columns([3, 2, 1])
            with col1:
                st.markdown(f"### {sub.title}")
                if sub.description:
                    st.caption(sub.description)
                if sub.url:
                    st.markdown(f"[{sub.url}]({sub.url})")
            with col2:
                st.markdown(
                    f"**{sub.currency} {sub.price:,.2f}**{duration_suffix(sub.recurring_duration)} "
                    f"· {card.cadence}"
                )
                st.markdown(f"{card.renewal_label}: **{card.next_renewal.isoformat()}**")
                st.caption(
                    f"≈ {sub.currency} {card.monthly_cost:,.2f} / month · "
                    f"spent {sub.currency} {card.total_spent:,.2f}"
                )
            with col3:
                if st.button("🗑️ Delete", key=f"delete-{sub.id}"):
                    try:
                        run_async(subscription_service.delete_subscription(current_user_id(), sub.id))
                        st.success(f"Deleted {sub.title}")
                        st.rerun()
                    except NotFoundError:
                        st.warning("That subscription was already removed.")

            if sub.charges:
                st.markdown("**Charges**")
                st.table([
                    {
                        "Amount": f"{sub.currency} {c.amount:,.2f}",
                        "Day of month": c.day_of_month,
                        "Since": c.start_date.isoformat(),
                    }
                    for c in sub.charges
                ])

            with st.expander("Payment history"):
                if not card.payments:
                    st.caption("No payments yet.")
                st.table([
                    {
                        "Date": p.due_date.isoformat(),
                        "Amount": f"{sub.currency} {p.amount:,.2f}",
                        "Status": p.status.value.title(),
                    }
                    for p in reversed(card.payments)
                ])


def render_add_page(subscription_service: SubscriptionService):
    """Render the add-subscription form."""
    st.title("➕ Add Subscription")

    charge_count = st.number_input(
        "Number of separate charges (0 for a single price)",
        min_value=0,
        max_value=10,
        value=0,
    )

    with st.form("add_subscription"):
        title = st.text_input("Title *")
        description = st.text_area("Description")
        url = st.text_input("Website", placeholder="https://")

        col1, col2 = st.columns(2)
        with col1:
            currency = st.text_input("Currency *", value=get_settings().app.default_currency)
        with col2:
            duration = st.selectbox(
                "Billing cycle *",
                options=list(RecurringDuration),
                index=list(RecurringDuration).index(RecurringDuration.MONTHLY),
                format_func=duration_label,
            )

        charges = []
        if charge_count:
            st.markdown("**Charges** - price and start date are calculated from these")
            for i in range(int(charge_count)):
                c1, c2, c3 = st.columns(3)
                charges.append({
                    "amount": c1.number_input(f"Amount {i + 1}", min_value=0.0, step=0.01, key=f"amount-{i}"),
                    "dayOfMonth": c2.number_input(f"Day of month {i + 1}", min_value=1, max_value=31, value=1, key=f"day-{i}"),
                    "startDate": c3.date_input(f"Start date {i + 1}", value=date.today(), key=f"start-{i}"),
                })
            price = None
            start_date = None
        else:
            price = st.number_input("Price *", min_value=0.0, step=0.01)
            start_date = st.date_input("Start date *", value=date.today())

        submitted = st.form_submit_button("💾 Save", type="primary")

    if not submitted:
        return

    raw = {
        "title": title,
        "description": description or None,
        "url": url or None,
        "currency": currency,
        "recurringDuration": duration.value,
        "charges": [
            {**c, "amount": str(Decimal(str(c["amount"])))} for c in charges
        ] or None,
        "price": str(Decimal(str(price))) if price is not None else None,
        "startDate": start_date,
    }
    try:
        created = run_async(subscription_service.create_subscription(current_user_id(), raw))
        st.success(f"✅ Saved {created.title} ({created.currency} {created.price:,.2f})")
    except ValidationError as e:
        st.error("Please fix the following:")
        for field, message in e.fields.items():
            st.markdown(f"- **{field}**: {message}")


def render_stats_page(dashboard_flow: DashboardFlow):
    """Render per-currency totals."""
    st.title("📊 Stats")

    dashboard = run_async(dashboard_flow.build(current_user_id(), date.today()))
    if not dashboard.stats:
        st.info("Stats appear once you have at least one subscription.")
        return

    for stats in dashboard.stats:
        st.markdown(f"### {stats.currency}")
        col1, col2, col3, col4 = st.columns(4)
        col1.metric("Subscriptions", stats.count)
        col2.metric("Monthly cost", f"{stats.total_monthly_cost:,.2f}")
        col3.metric("Average / month", f"{stats.average_monthly_cost:,.2f}")
        col4.metric("Total spent", f"{stats.total_spent:,.2f}")
        if stats.most_costly:
            st.caption(f"Most costly: {stats.most_costly.title}")
        st.markdown("---")


def render_import_export_page(export_import_service: ExportImportService):
    """Render export download and import upload."""
    st.title("📦 Import / Export")

    st.markdown("### Export")
    now = datetime.now(timezone.utc)
    exported = run_async(export_import_service.export_subscriptions(current_user_id(), now))
    st.download_button(
        "⬇️ Download export",
        data=exported,
        file_name=export_filename(now),
        mime="application/json",
    )

    st.markdown("---")
    st.markdown("### Import")
    uploaded = st.file_uploader("Export file", type=["json"])
    replace = st.checkbox("Replace my existing subscriptions")
    if replace:
        st.warning("⚠️ All of your current subscriptions will be deleted before importing.")
    confirmed = st.checkbox("I understand", disabled=not replace) if replace else True

    if uploaded and st.button("📥 Import", type="primary", disabled=not confirmed):
        try:
            result = run_async(export_import_service.import_subscriptions(
                current_user_id(),
                uploaded.getvalue(),
                ImportOptions(overwrite=replace),
            ))
        except FormatError as e:
            st.error(f"❌ {e.message}")
            return
        except PartialImportError as e:
            st.error(f"❌ {e.message}")
            return

        st.success(f"✅ Imported {result.imported} subscriptions")
        for error in result.errors:
            st.warning(error)


def render_settings_page():
    """Render the settings page."""
    st.title("⚙️ Settings")

    st.markdown("### Connection Status")

    status = validate_all_settings()
    app = get_settings().app if status.get("app") else None

    if app:
        st.success(f"✅ Settings loaded ({app.environment})")
        st.markdown(f"- Storage: **{app.storage_backend}**")
        st.markdown(f"- Export format version: **{app.export_format_version}**")
        st.markdown(f"- Signed in as: **{app.local_user_id or 'nobody'}**")
    else:
        st.error(f"❌ Settings - {status.get('app_error', 'Not configured')}")

    if "google_sheets" in status:
        if status["google_sheets"]:
            st.success("✅ Google Sheets (Storage) - Configured")
        else:
            st.error(f"❌ Google Sheets (Storage) - {status.get('google_sheets_error')}")

    st.markdown("---")
    st.markdown("### Configuration")
    st.markdown(
        "To configure the application, create a `.env` file. "
        "See `.env.example` for the available variables."
    )


if __name__ == "__main__":
    main()
