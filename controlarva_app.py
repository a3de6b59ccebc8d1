"""Streamlit front end for the Controlarva sales dashboard."""

from __future__ import annotations

import logging
import time
from datetime import date, timedelta
from typing import Any, Callable, Dict, Iterable, List, Optional

import pandas as pd
import streamlit as st

from backup_utils import build_snapshot_archive, ensure_monthly_backup, get_backup_status
from controlarva import followup
from controlarva.config import AppConfig, load_config
from controlarva.errors import ControlarvaError, ReportGenerationError, ValidationError
from controlarva.exports import export_state_to_excel
from controlarva.goals import goal_progress, progress_frame
from controlarva.masks import (
    format_brl,
    format_currency,
    format_quantity,
    mask_currency,
    mask_quantity,
    mask_tax_id,
    parse_currency,
    parse_quantity,
)
from controlarva.models import PAYMENT_METHODS, THEME_DARK, THEMES, Sale
from controlarva.reports import (
    build_report_pdf,
    customer_ranking,
    default_report_range,
    filter_sales,
    monthly_series,
    report_filename,
    summarize,
    validate_range,
)
from controlarva.state import AppState
from controlarva.storage import SqliteKeyValueStore

logger = logging.getLogger(__name__)

APP_TITLE = "Controlarva"
EXCEL_MIME = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

PAGES: Dict[str, str] = {
    "Dashboard": "dashboard",
    "Customers": "customers",
    "Sales": "sales",
    "After-sales": "after_sales",
    "Visits": "visits",
    "Reports": "reports",
    "Settings": "settings",
}

THEME_PALETTES: Dict[str, Dict[str, str]] = {
    "light": {
        "primary": "#0ea5e9",
        "background": "#f8fafc",
        "surface": "#ffffff",
        "text": "#0f172a",
        "sidebar_bg": "#f1f5f9",
    },
    "dark": {
        "primary": "#38bdf8",
        "background": "#0f172a",
        "surface": "#1e293b",
        "text": "#e2e8f0",
        "sidebar_bg": "#111827",
    },
}

STATUS_FILTERS: Dict[str, str] = {
    "All": followup.STATUS_ALL,
    "On time": followup.STATUS_SAFE,
    "Postponed": followup.STATUS_WAITING,
    "Time to contact": followup.STATUS_CRITICAL,
}

STATUS_BADGES: Dict[str, str] = {
    followup.STATUS_SAFE: "🟢",
    followup.STATUS_WAITING: "🟡",
    followup.STATUS_CRITICAL: "🔴",
}

CUSTOMER_FIELDS = (
    "name",
    "tax_id",
    "phone",
    "email",
    "address",
    "pond_count",
    "ponds_with_larvae",
    "notes",
)
SALE_FORM_KEYS = ("sale_quantity", "sale_price", "sale_ponds", "sale_notes")


def rerun() -> None:
    """Trigger a Streamlit rerun across supported versions."""

    if hasattr(st, "rerun"):
        st.rerun()
        return
    if hasattr(st, "experimental_rerun"):
        st.experimental_rerun()
        return
    raise RuntimeError("Streamlit rerun function not available")


@st.cache_resource
def get_store(config: AppConfig) -> SqliteKeyValueStore:
    return SqliteKeyValueStore.from_config(config)


def get_state(config: AppConfig) -> AppState:
    if "app_state" not in st.session_state:
        st.session_state["app_state"] = AppState(get_store(config))
    return st.session_state["app_state"]


# ---------------------------------------------------------------------------
# Widget helpers
# ---------------------------------------------------------------------------


def _apply_mask(key: str, mask: Callable[[Any], str]) -> None:
    st.session_state[key] = mask(st.session_state.get(key, ""))


def masked_text_input(label: str, key: str, mask: Callable[[Any], str], **kwargs: Any) -> str:
    """Text input that reformats its value with ``mask`` whenever it changes."""

    return st.text_input(label, key=key, on_change=_apply_mask, args=(key, mask), **kwargs)


def _reset_fields(flag: str, keys: Iterable[str]) -> None:
    # Widget values can only be cleared before the widgets are drawn.
    if st.session_state.pop(flag, False):
        for key in keys:
            st.session_state.pop(key, None)


def _format_day(value: Optional[date]) -> str:
    return value.strftime("%d/%m/%Y") if value else ""


def _confirm_delete(pending_key: str, item_id: str, message: str, on_confirm: Callable[[str], Any]) -> None:
    """Ask before deleting the item whose id is parked under ``pending_key``."""

    if st.session_state.get(pending_key) != item_id:
        return
    st.warning(message)
    cols = st.columns(2)
    if cols[0].button("Confirm delete", key=f"{pending_key}_confirm_{item_id}"):
        on_confirm(item_id)
        st.session_state.pop(pending_key, None)
        rerun()
    if cols[1].button("Keep", key=f"{pending_key}_cancel_{item_id}"):
        st.session_state.pop(pending_key, None)
        rerun()


def _navigate(page: str) -> None:
    st.session_state["active_page"] = page
    rerun()


def _sales_table(sales: Iterable[Sale]) -> pd.DataFrame:
    return pd.DataFrame(
        [
            {
                "Date": _format_day(sale.sale_date),
                "Customer": sale.customer_name,
                "Milheiros": format_quantity(sale.larvae_quantity),
                "Price / milheiro": format_brl(sale.price_per_thousand),
                "Total": format_brl(sale.total_value),
                "Payment": sale.payment_method,
            }
            for sale in sales
        ]
    )


# ---------------------------------------------------------------------------
# Theme, login and navigation
# ---------------------------------------------------------------------------


def apply_theme_styles(theme: str) -> None:
    palette = THEME_PALETTES.get(theme, THEME_PALETTES["light"])
    st.markdown(
        f"""
        <style>
        :root {{
            --cl-primary-color: {palette["primary"]};
        }}
        .stApp {{
            background-color: {palette["background"]};
            color: {palette["text"]};
        }}
        .stApp h1, .stApp h2, .stApp h3, .stApp p, .stApp label {{
            color: {palette["text"]};
        }}
        .stButton > button {{
            background-color: var(--cl-primary-color);
            border-color: var(--cl-primary-color);
            color: #ffffff;
        }}
        .stButton > button:hover {{
            border-color: var(--cl-primary-color);
            color: #ffffff;
        }}
        [data-testid="stSidebar"] {{
            background-color: {palette["sidebar_bg"]};
        }}
        [data-testid="stMetric"] {{
            background: {palette["surface"]};
            border: 1px solid rgba(148, 163, 184, 0.25);
            border-radius: 14px;
            padding: 0.75rem 1rem;
        }}
        </style>
        """,
        unsafe_allow_html=True,
    )


def login_screen(state: AppState, config: AppConfig) -> None:
    st.title(APP_TITLE)
    st.caption("Sales and after-sales management for larvae producers")
    with st.form("login_form"):
        cols = st.columns(2)
        with cols[0]:
            st.text_input("Username")
        with cols[1]:
            st.text_input("Password", type="password")
        submitted = st.form_submit_button("Login", use_container_width=True)
    if submitted:
        with st.spinner("Signing in..."):
            time.sleep(max(config.login_delay_seconds, 0))
        state.login()
        logger.info("Operator %s signed in", state.settings.user_name)
        rerun()


def _sync_nav(key: str) -> None:
    choice = st.session_state.get(key)
    if choice in PAGES:
        st.session_state["active_page"] = PAGES[choice]


def sidebar(state: AppState) -> None:
    labels = list(PAGES.keys())
    active = st.session_state.get("active_page", PAGES[labels[0]])
    current_label = next((label for label, slug in PAGES.items() if slug == active), labels[0])
    st.session_state["navigation_choice_sidebar"] = current_label

    st.sidebar.title(APP_TITLE)
    st.sidebar.radio(
        "Go to",
        labels,
        key="navigation_choice_sidebar",
        on_change=lambda: _sync_nav("navigation_choice_sidebar"),
    )
    st.sidebar.write("---")
    st.sidebar.write(f"Signed in as **{state.settings.user_name}**")
    dark = st.sidebar.toggle("Dark mode", value=state.settings.theme == THEME_DARK)
    if dark != (state.settings.theme == THEME_DARK):
        state.toggle_theme()
        rerun()
    if st.sidebar.button("Logout"):
        state.logout()
        st.session_state.pop("active_page", None)
        rerun()


# ---------------------------------------------------------------------------
# Dashboard and goals
# ---------------------------------------------------------------------------


def render_goal(state: AppState) -> None:
    st.subheader("Sales goal")
    goal = state.current_goal()
    if goal is None:
        st.info("No goal set yet.")
    else:
        progress = goal_progress(goal, state.sales, state.today())
        cols = st.columns(2)
        with cols[0]:
            st.write(
                f"**Larvae:** {format_quantity(progress.larvae_achieved)} of "
                f"{format_quantity(goal.target_larvae)} milheiros"
            )
            st.progress(progress.larvae_percent / 100)
        with cols[1]:
            st.write(
                f"**Revenue:** {format_brl(progress.revenue_achieved)} of "
                f"{format_brl(goal.target_revenue)}"
            )
            st.progress(progress.revenue_percent / 100)
        if progress.met:
            st.success("Goal reached!")
        elif progress.expired:
            st.warning(f"Deadline passed on {_format_day(goal.deadline)}.")
        else:
            st.caption(f"Deadline: {_format_day(goal.deadline)}")
        st.line_chart(progress_frame(goal, state.sales), x="Date", y=["Progress", "Target"])

    with st.expander("Set goal", expanded=goal is None):
        if goal is not None:
            st.session_state.setdefault("goal_larvae", format_quantity(goal.target_larvae))
            st.session_state.setdefault("goal_revenue", format_currency(goal.target_revenue))
        masked_text_input("Target (milheiros)", "goal_larvae", mask_quantity)
        masked_text_input("Target revenue (R$)", "goal_revenue", mask_currency)
        deadline = st.date_input(
            "Deadline",
            value=goal.deadline if goal else state.today() + timedelta(days=30),
            format="DD/MM/YYYY",
            key="goal_deadline",
        )
        cols = st.columns(2)
        create = cols[0].button("Save as new goal", use_container_width=True)
        update = cols[1].button(
            "Update current goal", use_container_width=True, disabled=goal is None
        )
        if create or update:
            try:
                state.save_goal(
                    parse_quantity(st.session_state.get("goal_larvae")),
                    parse_currency(st.session_state.get("goal_revenue")),
                    deadline,
                    goal_id=goal.goal_id if update and goal else None,
                )
            except ControlarvaError as exc:
                st.error(str(exc))
            else:
                st.success("Goal saved")
                rerun()


def render_dashboard(state: AppState) -> None:
    st.header(f"Hello, {state.settings.user_name}")
    stats = state.dashboard_stats()
    cols = st.columns(4)
    cols[0].metric("Total revenue", format_brl(stats.total_revenue))
    cols[1].metric("Larvae sold (milheiros)", format_quantity(stats.total_larvae))
    cols[2].metric("Customers", stats.customer_count)
    cols[3].metric("Need contact", stats.needs_contact)
    if stats.needs_contact and st.button("Open after-sales"):
        _navigate("after_sales")

    st.divider()
    render_goal(state)

    st.divider()
    st.subheader("Recent sales")
    if stats.recent_sales:
        st.dataframe(_sales_table(stats.recent_sales), use_container_width=True, hide_index=True)
    else:
        st.info("No sales recorded yet.")


# ---------------------------------------------------------------------------
# Customers
# ---------------------------------------------------------------------------


def _load_customer_into_form(state: AppState, customer_id: str) -> None:
    customer = state.get_customer(customer_id)
    for name in CUSTOMER_FIELDS:
        st.session_state[f"customer_{name}"] = getattr(customer, name)
    st.session_state["editing_customer_id"] = customer_id


def render_customer_form(state: AppState) -> None:
    _reset_fields(
        "_reset_customer_form",
        [f"customer_{name}" for name in CUSTOMER_FIELDS] + ["editing_customer_id"],
    )
    pending_edit = st.session_state.pop("_edit_customer_id", None)
    if pending_edit:
        _load_customer_into_form(state, pending_edit)
    editing_id = st.session_state.get("editing_customer_id")
    st.subheader("Edit customer" if editing_id else "New customer")
    cols = st.columns(2)
    with cols[0]:
        st.text_input("Name *", key="customer_name")
        masked_text_input("CPF / CNPJ", "customer_tax_id", mask_tax_id)
        st.text_input("Phone", key="customer_phone")
        st.text_input("Email", key="customer_email")
    with cols[1]:
        st.text_input("Address", key="customer_address")
        st.number_input("Ponds", min_value=0, step=1, key="customer_pond_count")
        st.number_input("Ponds with larvae", min_value=0, step=1, key="customer_ponds_with_larvae")
        st.text_area("Notes", key="customer_notes")

    data = {name: st.session_state.get(f"customer_{name}") for name in CUSTOMER_FIELDS}
    action_cols = st.columns(2)
    if action_cols[0].button("Save customer", use_container_width=True):
        try:
            if editing_id:
                state.update_customer(editing_id, **data)
            else:
                state.add_customer(**data)
        except ControlarvaError as exc:
            st.error(str(exc))
        else:
            st.session_state["_reset_customer_form"] = True
            st.success("Customer saved")
            rerun()
    if editing_id and action_cols[1].button("Cancel editing", use_container_width=True):
        st.session_state["_reset_customer_form"] = True
        rerun()


def render_customers(state: AppState) -> None:
    st.header("Customers")
    render_customer_form(state)
    st.divider()

    term = st.text_input("Search by name, CPF/CNPJ, phone or address", key="customer_search")
    customers = state.search_customers(term)
    if not customers:
        st.info("No customers found.")
        return
    for customer in customers:
        with st.expander(f"{customer.name} · {customer.phone or 'no phone'}"):
            st.write(f"**CPF/CNPJ:** {customer.tax_id or '-'}")
            st.write(f"**Address:** {customer.address or '-'}")
            st.write(f"**Email:** {customer.email or '-'}")
            st.write(
                f"**Ponds:** {customer.pond_count} ({customer.ponds_with_larvae} with larvae)"
            )
            if customer.notes:
                st.caption(customer.notes)
            cols = st.columns(3)
            if cols[0].button("Edit", key=f"edit_customer_{customer.customer_id}"):
                st.session_state["_edit_customer_id"] = customer.customer_id
                rerun()
            if cols[1].button("New sale", key=f"sell_customer_{customer.customer_id}"):
                st.session_state["preselected_customer_id"] = customer.customer_id
                _navigate("sales")
            if cols[2].button("Delete", key=f"delete_customer_open_{customer.customer_id}"):
                st.session_state["deleting_customer_id"] = customer.customer_id
            _confirm_delete(
                "deleting_customer_id",
                customer.customer_id,
                f"Delete {customer.name}? Their sales history is kept.",
                state.delete_customer,
            )


# ---------------------------------------------------------------------------
# Sales
# ---------------------------------------------------------------------------


def render_sale_form(state: AppState) -> None:
    _reset_fields("_reset_sale_form", SALE_FORM_KEYS)
    st.subheader("New sale")
    replacing_id = st.session_state.get("replacing_sale_id")
    if replacing_id:
        st.info("Renewing a previous sale: saving archives the old follow-up.")

    customers = {customer.customer_id: customer.name for customer in state.customers}
    if not customers:
        st.warning("Register a customer before recording sales.")
        return
    options = list(customers)
    preselected = st.session_state.get("preselected_customer_id")
    customer_id = st.selectbox(
        "Customer *",
        options,
        index=options.index(preselected) if preselected in options else None,
        format_func=lambda cid: customers[cid],
        placeholder="Select a customer",
    )

    cols = st.columns(2)
    with cols[0]:
        masked_text_input("Quantity (milheiros)", "sale_quantity", mask_quantity)
        masked_text_input("Price per milheiro (R$)", "sale_price", mask_currency)
        sale_date = st.date_input("Sale date", value=state.today(), format="DD/MM/YYYY")
    with cols[1]:
        payment_method = st.selectbox("Payment method", PAYMENT_METHODS)
        st.number_input("Ponds stocked", min_value=0, step=1, key="sale_ponds")
        st.text_area("Notes", key="sale_notes")

    quantity = parse_quantity(st.session_state.get("sale_quantity"))
    price = parse_currency(st.session_state.get("sale_price"))
    st.metric("Sale total", format_brl(quantity * price))

    action_cols = st.columns(2)
    if action_cols[0].button("Save sale", use_container_width=True):
        try:
            state.create_sale(
                customer_id,
                quantity,
                price,
                sale_date,
                payment_method=payment_method,
                ponds_stocked=st.session_state.get("sale_ponds", 0),
                notes=st.session_state.get("sale_notes", ""),
                replacing_sale_id=replacing_id,
            )
        except ControlarvaError as exc:
            st.error(str(exc))
        else:
            st.session_state["_reset_sale_form"] = True
            st.session_state.pop("preselected_customer_id", None)
            st.session_state.pop("replacing_sale_id", None)
            st.success("Sale recorded")
            rerun()
    if replacing_id and action_cols[1].button("Cancel renewal", use_container_width=True):
        st.session_state.pop("preselected_customer_id", None)
        st.session_state.pop("replacing_sale_id", None)
        rerun()


def render_sale_editor(state: AppState, sales: List[Sale]) -> None:
    labels = {
        sale.sale_id: f"{_format_day(sale.sale_date)} · {sale.customer_name} · {format_brl(sale.total_value)}"
        for sale in sales
    }
    sale_id = st.selectbox("Sale", list(labels), format_func=lambda sid: labels[sid], key="edit_sale_id")
    if not sale_id:
        return
    sale = state.get_sale(sale_id)
    with st.form(f"edit_sale_{sale_id}"):
        cols = st.columns(3)
        quantity = cols[0].number_input(
            "Milheiros", min_value=0, step=1, value=sale.larvae_quantity
        )
        price = cols[1].number_input(
            "Price per milheiro (R$)",
            min_value=0.0,
            step=0.01,
            value=sale.price_per_thousand / 100,
            format="%.2f",
        )
        payment_method = cols[2].selectbox(
            "Payment method",
            PAYMENT_METHODS,
            index=PAYMENT_METHODS.index(sale.payment_method)
            if sale.payment_method in PAYMENT_METHODS
            else 0,
        )
        sale_date = st.date_input("Sale date", value=sale.sale_date, format="DD/MM/YYYY")
        notes = st.text_area("Notes", value=sale.notes)
        save = st.form_submit_button("Save changes")
        delete = st.form_submit_button("Delete sale")
    if save:
        try:
            state.update_sale(
                sale_id,
                larvae_quantity=int(quantity),
                price_per_thousand=round(price * 100),
                payment_method=payment_method,
                sale_date=sale_date,
                notes=notes,
            )
        except ControlarvaError as exc:
            st.error(str(exc))
        else:
            st.success("Sale updated")
            rerun()
    if delete:
        state.delete_sale(sale_id)
        st.success("Sale deleted")
        rerun()


def render_sales(state: AppState) -> None:
    st.header("Sales")
    render_sale_form(state)
    st.divider()

    st.subheader("Sales history")
    term = st.text_input("Search by customer or payment method", key="sale_search")
    sales = sorted(state.search_sales(term), key=lambda sale: sale.sale_date, reverse=True)
    if not sales:
        st.info("No sales found.")
        return
    st.dataframe(_sales_table(sales), use_container_width=True, hide_index=True)
    with st.expander("Edit or delete a sale"):
        render_sale_editor(state, sales)


# ---------------------------------------------------------------------------
# After-sales follow-up
# ---------------------------------------------------------------------------


def _render_follow_up_card(state: AppState, item: followup.FollowUpItem) -> None:
    sale = item.sale
    sale_id = sale.sale_id
    with st.container(border=True):
        header_cols = st.columns((0.7, 0.3))
        header_cols[0].markdown(f"**{sale.customer_name}**")
        header_cols[1].markdown(f"{STATUS_BADGES[item.status]} {item.label}")
        st.caption(
            f"Sold on {_format_day(sale.sale_date)} · {item.days_since_sale} days ago · "
            f"{format_quantity(sale.larvae_quantity)} milheiros"
        )
        if item.status == followup.STATUS_WAITING:
            st.caption(f"Contact postponed until {_format_day(sale.postponed_until)}")

        cols = st.columns(4)
        if sale.phone:
            cols[0].link_button("WhatsApp", followup.whatsapp_url(sale.phone), use_container_width=True)
        if cols[1].button("Renew", key=f"renew_{sale_id}", use_container_width=True):
            st.session_state["preselected_customer_id"] = sale.customer_id
            st.session_state["replacing_sale_id"] = sale_id
            _navigate("sales")
        if cols[2].button("Postpone", key=f"postpone_open_{sale_id}", use_container_width=True):
            st.session_state["postponing_sale_id"] = sale_id
        if cols[3].button("Archive", key=f"dismiss_open_{sale_id}", use_container_width=True):
            st.session_state["dismissing_sale_id"] = sale_id

        if st.session_state.get("postponing_sale_id") == sale_id:
            days = st.text_input("Postpone by how many days?", value="7", key=f"postpone_days_{sale_id}")
            confirm_cols = st.columns(2)
            if confirm_cols[0].button("Confirm postpone", key=f"postpone_{sale_id}"):
                updated = state.postpone_sale(sale_id, days)
                st.session_state.pop("postponing_sale_id", None)
                st.success(f"Contact postponed until {_format_day(updated.postponed_until)}")
                rerun()
            if confirm_cols[1].button("Cancel", key=f"postpone_cancel_{sale_id}"):
                st.session_state.pop("postponing_sale_id", None)
                rerun()

        if st.session_state.get("dismissing_sale_id") == sale_id:
            st.warning("Archive this follow-up? It will no longer appear here.")
            confirm_cols = st.columns(2)
            if confirm_cols[0].button("Confirm archive", key=f"dismiss_{sale_id}"):
                state.dismiss_sale(sale_id)
                st.session_state.pop("dismissing_sale_id", None)
                rerun()
            if confirm_cols[1].button("Keep", key=f"dismiss_cancel_{sale_id}"):
                st.session_state.pop("dismissing_sale_id", None)
                rerun()


def render_after_sales(state: AppState) -> None:
    st.header("After-sales")
    st.caption(
        f"Customers are due a call {state.settings.contact_interval_days} days after each sale."
    )
    counts = followup.status_counts(state.follow_up_items())
    cols = st.columns(3)
    cols[0].metric("On time", counts[followup.STATUS_SAFE])
    cols[1].metric("Postponed", counts[followup.STATUS_WAITING])
    cols[2].metric("Time to contact", counts[followup.STATUS_CRITICAL])

    filter_cols = st.columns((0.6, 0.4))
    term = filter_cols[0].text_input("Search customer", key="follow_up_search")
    status_label = filter_cols[1].selectbox("Status", list(STATUS_FILTERS), key="follow_up_status")
    items = state.follow_up_items(search=term, status=STATUS_FILTERS[status_label])
    if not items:
        st.info("Nothing to follow up.")
        return
    for item in items:
        _render_follow_up_card(state, item)


# ---------------------------------------------------------------------------
# Visits
# ---------------------------------------------------------------------------


def render_visits(state: AppState) -> None:
    st.header("Field visits")
    with st.form("visit_form", clear_on_submit=True):
        cols = st.columns(2)
        with cols[0]:
            visit_date = st.date_input("Visit date", value=state.today(), format="DD/MM/YYYY")
            name = st.text_input("Prospect *")
            region = st.text_input("Region")
            area = st.text_input("Area")
            notes = st.text_area("Notes")
        with cols[1]:
            pond_count = st.number_input("Ponds", min_value=0, step=1)
            ponds_with_larvae = st.number_input("Ponds with larvae", min_value=0, step=1)
            stocked_quantity = st.text_input("Stocked quantity")
            density = st.text_input("Density")
        submitted = st.form_submit_button("Save visit")
    if submitted:
        try:
            state.add_visit(
                visit_date=visit_date,
                name=name,
                region=region,
                pond_count=pond_count,
                ponds_with_larvae=ponds_with_larvae,
                area=area,
                stocked_quantity=stocked_quantity,
                density=density,
                notes=notes,
            )
        except ControlarvaError as exc:
            st.error(str(exc))
        else:
            st.success("Visit saved")

    st.divider()
    today = state.today()
    filter_cols = st.columns(3)
    start = filter_cols[0].date_input("From", value=today - timedelta(days=90), format="DD/MM/YYYY")
    end = filter_cols[1].date_input("To", value=today, format="DD/MM/YYYY")
    term = filter_cols[2].text_input("Search prospect or region", key="visit_search")
    visits = state.filter_visits(start, end, term)
    if not visits:
        st.info("No visits in this period.")
        return
    st.dataframe(
        pd.DataFrame(
            [
                {
                    "Date": _format_day(visit.visit_date),
                    "Prospect": visit.name,
                    "Region": visit.region,
                    "Ponds": visit.pond_count,
                    "With larvae": visit.ponds_with_larvae,
                    "Area": visit.area,
                    "Stocked": visit.stocked_quantity,
                    "Density": visit.density,
                    "Notes": visit.notes,
                }
                for visit in visits
            ]
        ),
        use_container_width=True,
        hide_index=True,
    )
    labels = {visit.visit_id: f"{_format_day(visit.visit_date)} · {visit.name}" for visit in visits}
    delete_cols = st.columns((0.7, 0.3))
    visit_id = delete_cols[0].selectbox("Visit", list(labels), format_func=lambda vid: labels[vid])
    if delete_cols[1].button("Delete visit") and visit_id:
        st.session_state["deleting_visit_id"] = visit_id
    pending = st.session_state.get("deleting_visit_id")
    if pending in labels:
        _confirm_delete("deleting_visit_id", pending, f"Delete the visit {labels[pending]}?", state.delete_visit)


# ---------------------------------------------------------------------------
# Reports
# ---------------------------------------------------------------------------


def render_reports(state: AppState) -> None:
    st.header("Reports")
    default_start, default_end = default_report_range(state.today())
    if st.button("Last 30 days"):
        st.session_state["report_start"] = default_start
        st.session_state["report_end"] = default_end
    st.session_state.setdefault("report_start", default_start)
    st.session_state.setdefault("report_end", default_end)
    cols = st.columns(2)
    start = cols[0].date_input("Start", key="report_start", format="DD/MM/YYYY")
    end = cols[1].date_input("End", key="report_end", format="DD/MM/YYYY")
    try:
        start, end = validate_range(start, end)
    except ValidationError as exc:
        st.error(str(exc))
        return

    period_sales = filter_sales(state.sales, start, end)
    summary = summarize(period_sales)
    metric_cols = st.columns(4)
    metric_cols[0].metric("Revenue", format_brl(summary.total_revenue))
    metric_cols[1].metric("Milheiros", format_quantity(summary.total_quantity))
    metric_cols[2].metric("Sales", summary.sale_count)
    metric_cols[3].metric("Average price / milheiro", format_brl(round(summary.average_price_per_thousand)))

    series = monthly_series(period_sales, start, end)
    if len(series.index) >= 2:
        chart = series.assign(revenue=series["revenue"] / 100).set_index(
            series["month"].dt.to_timestamp()
        )
        chart_cols = st.columns(2)
        chart_cols[0].caption("Revenue (R$)")
        chart_cols[0].line_chart(chart["revenue"])
        chart_cols[1].caption("Volume (milheiros)")
        chart_cols[1].line_chart(chart["quantity"])
    else:
        st.caption("Not enough months in this period to draw charts.")

    ranking = customer_ranking(period_sales)
    if not ranking.empty:
        st.subheader("Top customers")
        st.dataframe(
            ranking.head(10).assign(
                quantity=ranking["quantity"].map(format_quantity),
                value=ranking["value"].map(format_brl),
            )[["customer", "quantity", "value", "orders"]].rename(
                columns={
                    "customer": "Customer",
                    "quantity": "Milheiros",
                    "value": "Amount",
                    "orders": "Orders",
                }
            ),
            use_container_width=True,
            hide_index=True,
        )

    st.divider()
    report_key = (start, end)
    if st.button("Generate PDF report"):
        with st.spinner("Building the PDF report..."):
            try:
                pdf_bytes = build_report_pdf(state.sales, start, end)
            except ReportGenerationError as exc:
                st.session_state.pop("report_pdf", None)
                st.error(str(exc))
            else:
                st.session_state["report_pdf"] = (report_key, pdf_bytes)
    cached = st.session_state.get("report_pdf")
    if cached and cached[0] == report_key:
        st.download_button(
            "Download PDF",
            data=cached[1],
            file_name=report_filename(start, end),
            mime="application/pdf",
        )


# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------


def render_settings(state: AppState, config: AppConfig) -> None:
    st.header("Settings")
    settings = state.settings
    with st.form("settings_form"):
        user_name = st.text_input("Display name", value=settings.user_name)
        email = st.text_input("Email", value=settings.email)
        interval = st.number_input(
            "Days after a sale before contacting the customer",
            min_value=0,
            step=1,
            value=settings.contact_interval_days,
        )
        theme = st.selectbox("Theme", THEMES, index=THEMES.index(settings.theme))
        submitted = st.form_submit_button("Save settings")
    if submitted:
        try:
            state.update_settings(
                user_name=user_name.strip() or settings.user_name,
                email=email.strip(),
                contact_interval_days=int(interval),
                theme=theme,
            )
        except ControlarvaError as exc:
            st.error(str(exc))
        else:
            st.success("Settings updated")
            rerun()

    st.divider()
    st.subheader("Data export")
    if st.button("Prepare Excel workbook"):
        st.session_state["excel_export"] = export_state_to_excel(state)
    if st.session_state.get("excel_export"):
        st.download_button(
            "Download Excel workbook",
            data=st.session_state["excel_export"],
            file_name=f"controlarva_export_{state.today().isoformat()}.xlsx",
            mime=EXCEL_MIME,
        )

    st.subheader("Backups")
    backup_error = st.session_state.get("auto_backup_error")
    if backup_error:
        st.error(backup_error)
    status = get_backup_status(config.backup_dir)
    if status:
        st.write(f"Last backup: **{status['last_backup_at']}** ({status['last_backup_file']})")
        st.caption(f"Stored in {status['backup_dir']}")
        if status.get("mirror_dir"):
            st.caption(f"Mirrored to {status['mirror_dir']}")
    else:
        st.info("No backup has been written yet.")


# ---------------------------------------------------------------------------
# Application entry point
# ---------------------------------------------------------------------------


def main(config: Optional[AppConfig] = None) -> None:
    config = config or load_config()
    st.set_page_config(page_title=APP_TITLE, page_icon="🦐", layout="wide")
    state = get_state(config)
    _, backup_error = ensure_monthly_backup(
        config.backup_dir,
        lambda: build_snapshot_archive(state.store),
        config.backup_retention,
        config.backup_mirror_dir,
    )
    st.session_state["auto_backup_error"] = backup_error

    apply_theme_styles(state.settings.theme)
    if not state.authenticated:
        login_screen(state, config)
        return

    st.session_state.setdefault("active_page", PAGES["Dashboard"])
    sidebar(state)

    page = st.session_state.get("active_page")
    if page == "dashboard":
        render_dashboard(state)
    elif page == "customers":
        render_customers(state)
    elif page == "sales":
        render_sales(state)
    elif page == "after_sales":
        render_after_sales(state)
    elif page == "visits":
        render_visits(state)
    elif page == "reports":
        render_reports(state)
    elif page == "settings":
        render_settings(state, config)
