"""Spreadsheet export of every record collection."""
from __future__ import annotations

import io
import re
from datetime import date
from typing import Callable, Iterable, List, Optional, Set, Tuple

import pandas as pd

from .masks import cents_to_units
from .models import Customer, Goal, Sale, Visit
from .state import AppState

EXCEL_SHEET_NAME_LIMIT = 31


def _safe_sheet_name(name: str, used: Set[str]) -> str:
    safe_name = re.sub(r"[\\/*?:\[\]]", " ", (name or "").strip())
    safe_name = " ".join(safe_name.split()) or "Sheet"
    safe_name = safe_name[:EXCEL_SHEET_NAME_LIMIT]
    candidate = safe_name
    counter = 2
    while candidate in used:
        suffix = f"_{counter}"
        candidate = f"{safe_name[:EXCEL_SHEET_NAME_LIMIT - len(suffix)]}{suffix}"
        counter += 1
    used.add(candidate)
    return candidate


def customers_frame(customers: Iterable[Customer]) -> pd.DataFrame:
    return pd.DataFrame(
        [
            {
                "Name": c.name,
                "CPF/CNPJ": c.tax_id,
                "Phone": c.phone,
                "Email": c.email,
                "Address": c.address,
                "Ponds": c.pond_count,
                "Ponds with larvae": c.ponds_with_larvae,
                "Notes": c.notes,
                "Created": c.created_at.strftime("%Y-%m-%d %H:%M"),
            }
            for c in customers
        ]
    )


def sales_frame(sales: Iterable[Sale]) -> pd.DataFrame:
    return pd.DataFrame(
        [
            {
                "Date": s.sale_date,
                "Customer": s.customer_name,
                "Phone": s.phone,
                "Milheiros": s.larvae_quantity,
                "Price per milheiro (R$)": cents_to_units(s.price_per_thousand),
                "Total (R$)": cents_to_units(s.total_value),
                "Payment": s.payment_method,
                "Ponds stocked": s.ponds_stocked,
                "Postponed until": s.postponed_until,
                "Archived": s.dismissed,
                "Notes": s.notes,
            }
            for s in sales
        ]
    )


def visits_frame(visits: Iterable[Visit]) -> pd.DataFrame:
    return pd.DataFrame(
        [
            {
                "Date": v.visit_date,
                "Prospect": v.name,
                "Region": v.region,
                "Ponds": v.pond_count,
                "Ponds with larvae": v.ponds_with_larvae,
                "Area": v.area,
                "Stocked quantity": v.stocked_quantity,
                "Density": v.density,
                "Notes": v.notes,
            }
            for v in visits
        ]
    )


def goals_frame(goals: Iterable[Goal]) -> pd.DataFrame:
    return pd.DataFrame(
        [
            {
                "Created": g.created_at.strftime("%Y-%m-%d %H:%M"),
                "Target milheiros": g.target_larvae,
                "Target revenue (R$)": cents_to_units(g.target_revenue),
                "Deadline": g.deadline,
            }
            for g in goals
        ]
    )


def _summary_frame(sheets: List[Tuple[str, pd.DataFrame]], exported_on: date) -> pd.DataFrame:
    rows = [{"Sheet": name, "Rows": len(df.index)} for name, df in sheets]
    rows.append({"Sheet": "Exported on", "Rows": exported_on.isoformat()})
    return pd.DataFrame(rows)


def export_state_to_excel(state: AppState, exported_on: Optional[date] = None) -> bytes:
    """Write every collection to its own sheet behind a summary sheet."""

    builders: List[Tuple[str, Callable[[], pd.DataFrame]]] = [
        ("Customers", lambda: customers_frame(state.customers)),
        ("Sales", lambda: sales_frame(state.sales)),
        ("Visits", lambda: visits_frame(state.visits)),
        ("Goals", lambda: goals_frame(state.goals)),
    ]
    sheets = [(name, builder()) for name, builder in builders]
    ordered = [("Summary", _summary_frame(sheets, exported_on or state.today()))] + sheets

    buffer = io.BytesIO()
    with pd.ExcelWriter(buffer, engine="openpyxl") as writer:
        used_names: Set[str] = set()
        for sheet_name, df in ordered:
            df.to_excel(writer, sheet_name=_safe_sheet_name(sheet_name, used_names), index=False)
    buffer.seek(0)
    return buffer.getvalue()
