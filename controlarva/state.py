"""Application state container.

``AppState`` owns the four record collections, the settings record and the
login flag. It reads every snapshot from the injected store when constructed
and writes the affected snapshot back after each mutation, so the store always
mirrors what the screens show.
"""
from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field, fields, replace
from datetime import date, datetime
from typing import Any, Callable, Dict, List, Optional

from . import followup
from .errors import RecordNotFoundError, ValidationError
from .goals import active_goal
from .models import (
    PAYMENT_METHODS,
    THEME_DARK,
    THEME_LIGHT,
    THEMES,
    Customer,
    Goal,
    Sale,
    Settings,
    Visit,
)
from .storage import (
    KEY_AUTH,
    KEY_CUSTOMERS,
    KEY_GOALS,
    KEY_SALES,
    KEY_SETTINGS,
    KEY_VISITS,
    KeyValueStore,
)

logger = logging.getLogger(__name__)

RECENT_SALES_LIMIT = 5


def new_record_id() -> str:
    return uuid.uuid4().hex[:9]


def _clean(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def _non_negative(value: Any, label: str) -> int:
    try:
        number = int(value or 0)
    except (TypeError, ValueError):
        raise ValidationError(f"{label} must be a whole number.") from None
    if number < 0:
        raise ValidationError(f"{label} cannot be negative.")
    return number


@dataclass
class DashboardStats:
    total_revenue: int
    total_larvae: int
    customer_count: int
    needs_contact: int
    recent_sales: List[Sale] = field(default_factory=list)


class AppState:
    def __init__(
        self,
        store: KeyValueStore,
        *,
        today: Callable[[], date] = date.today,
        now: Callable[[], datetime] = datetime.now,
        id_factory: Callable[[], str] = new_record_id,
    ):
        self._store = store
        self._today = today
        self._now = now
        self._new_id = id_factory
        self.customers: List[Customer] = []
        self.sales: List[Sale] = []
        self.visits: List[Visit] = []
        self.goals: List[Goal] = []
        self.settings = Settings()
        self.authenticated = False
        self.load()

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def load(self) -> None:
        self.customers = [Customer.from_dict(row) for row in self._store.read(KEY_CUSTOMERS) or []]
        self.sales = [Sale.from_dict(row) for row in self._store.read(KEY_SALES) or []]
        self.visits = [Visit.from_dict(row) for row in self._store.read(KEY_VISITS) or []]
        self.goals = [Goal.from_dict(row) for row in self._store.read(KEY_GOALS) or []]
        settings = self._store.read(KEY_SETTINGS)
        self.settings = Settings.from_dict(settings) if settings else Settings()
        self.authenticated = bool(self._store.read(KEY_AUTH))
        logger.info(
            "Loaded %d customers, %d sales, %d visits, %d goals",
            len(self.customers),
            len(self.sales),
            len(self.visits),
            len(self.goals),
        )

    def _save(self, key: str) -> None:
        if key == KEY_CUSTOMERS:
            payload: Any = [customer.to_dict() for customer in self.customers]
        elif key == KEY_SALES:
            payload = [sale.to_dict() for sale in self.sales]
        elif key == KEY_VISITS:
            payload = [visit.to_dict() for visit in self.visits]
        elif key == KEY_GOALS:
            payload = [goal.to_dict() for goal in self.goals]
        elif key == KEY_SETTINGS:
            payload = self.settings.to_dict()
        elif key == KEY_AUTH:
            payload = self.authenticated
        else:  # pragma: no cover - programming error
            raise KeyError(key)
        self._store.write(key, payload)

    @property
    def store(self) -> KeyValueStore:
        return self._store

    def today(self) -> date:
        return self._today()

    # ------------------------------------------------------------------
    # Authentication flag
    # ------------------------------------------------------------------

    def login(self) -> None:
        self.authenticated = True
        self._save(KEY_AUTH)

    def logout(self) -> None:
        self.authenticated = False
        self._save(KEY_AUTH)

    # ------------------------------------------------------------------
    # Customers
    # ------------------------------------------------------------------

    def get_customer(self, customer_id: str) -> Customer:
        for customer in self.customers:
            if customer.customer_id == customer_id:
                return customer
        raise RecordNotFoundError("Customer", customer_id)

    def _customer_fields(self, data: Dict[str, Any]) -> Dict[str, Any]:
        name = _clean(data.get("name"))
        if not name:
            raise ValidationError("Customer name is required.")
        pond_count = _non_negative(data.get("pond_count"), "Pond count")
        ponds_with_larvae = _non_negative(data.get("ponds_with_larvae"), "Ponds with larvae")
        return {
            "name": name,
            "tax_id": _clean(data.get("tax_id")),
            "address": _clean(data.get("address")),
            "phone": _clean(data.get("phone")),
            "email": _clean(data.get("email")),
            "pond_count": pond_count,
            "ponds_with_larvae": ponds_with_larvae,
            "notes": _clean(data.get("notes")),
        }

    def add_customer(self, **data: Any) -> Customer:
        customer = Customer(
            customer_id=self._new_id(),
            created_at=self._now(),
            **self._customer_fields(data),
        )
        self.customers.append(customer)
        self._save(KEY_CUSTOMERS)
        logger.info("Customer %s created", customer.customer_id)
        return customer

    def update_customer(self, customer_id: str, **data: Any) -> Customer:
        current = self.get_customer(customer_id)
        merged = {f.name: getattr(current, f.name) for f in fields(Customer)}
        merged.update(data)
        updated = replace(current, **self._customer_fields(merged))
        self.customers = [
            updated if customer.customer_id == customer_id else customer
            for customer in self.customers
        ]
        self._save(KEY_CUSTOMERS)
        return updated

    def delete_customer(self, customer_id: str) -> None:
        self.get_customer(customer_id)
        self.customers = [c for c in self.customers if c.customer_id != customer_id]
        self._save(KEY_CUSTOMERS)
        logger.info("Customer %s deleted; their sales are kept", customer_id)

    def search_customers(self, term: str = "") -> List[Customer]:
        needle = (term or "").strip()
        if not needle:
            return list(self.customers)
        lowered = needle.lower()
        return [
            customer
            for customer in self.customers
            if lowered in customer.name.lower()
            or needle in customer.tax_id
            or needle in customer.phone
            or lowered in customer.address.lower()
        ]

    # ------------------------------------------------------------------
    # Sales
    # ------------------------------------------------------------------

    def get_sale(self, sale_id: str) -> Sale:
        for sale in self.sales:
            if sale.sale_id == sale_id:
                return sale
        raise RecordNotFoundError("Sale", sale_id)

    def _replace_sale(self, updated: Sale) -> Sale:
        self.sales = [updated if s.sale_id == updated.sale_id else s for s in self.sales]
        return updated

    @staticmethod
    def _sale_figures(larvae_quantity: Any, price_per_thousand: Any, payment_method: str) -> Dict[str, Any]:
        quantity = _non_negative(larvae_quantity, "Larvae quantity")
        price = _non_negative(price_per_thousand, "Price per thousand")
        if payment_method not in PAYMENT_METHODS:
            raise ValidationError(f"Unknown payment method: {payment_method}")
        return {
            "larvae_quantity": quantity,
            "price_per_thousand": price,
            "total_value": quantity * price,
            "payment_method": payment_method,
        }

    def create_sale(
        self,
        customer_id: Optional[str],
        larvae_quantity: int,
        price_per_thousand: int,
        sale_date: date,
        payment_method: str = PAYMENT_METHODS[0],
        ponds_stocked: int = 0,
        notes: str = "",
        replacing_sale_id: Optional[str] = None,
    ) -> Sale:
        """Record a sale; ``replacing_sale_id`` renews that sale's follow-up cycle."""

        if not customer_id:
            raise ValidationError("Please select a customer.")
        customer = self.get_customer(customer_id)
        if sale_date is None:
            raise ValidationError("Sale date is required.")
        replaced = self.get_sale(replacing_sale_id) if replacing_sale_id else None
        sale = Sale(
            sale_id=self._new_id(),
            customer_id=customer.customer_id,
            customer_name=customer.name,
            phone=customer.phone,
            sale_date=sale_date,
            ponds_stocked=_non_negative(ponds_stocked, "Ponds stocked"),
            notes=_clean(notes),
            **self._sale_figures(larvae_quantity, price_per_thousand, payment_method),
        )
        self.sales.append(sale)
        if replaced is not None:
            self._replace_sale(replace(replaced, dismissed=True))
            logger.info("Sale %s renewed by %s", replacing_sale_id, sale.sale_id)
        self._save(KEY_SALES)
        return sale

    def update_sale(self, sale_id: str, **data: Any) -> Sale:
        current = self.get_sale(sale_id)
        figures = self._sale_figures(
            data.get("larvae_quantity", current.larvae_quantity),
            data.get("price_per_thousand", current.price_per_thousand),
            data.get("payment_method", current.payment_method),
        )
        updated = replace(
            current,
            sale_date=data.get("sale_date") or current.sale_date,
            ponds_stocked=_non_negative(
                data.get("ponds_stocked", current.ponds_stocked), "Ponds stocked"
            ),
            notes=_clean(data.get("notes", current.notes)),
            **figures,
        )
        self._replace_sale(updated)
        self._save(KEY_SALES)
        return updated

    def delete_sale(self, sale_id: str) -> None:
        self.get_sale(sale_id)
        self.sales = [s for s in self.sales if s.sale_id != sale_id]
        self._save(KEY_SALES)

    def search_sales(self, term: str = "") -> List[Sale]:
        needle = (term or "").strip().lower()
        if not needle:
            return list(self.sales)
        return [
            sale
            for sale in self.sales
            if needle in sale.customer_name.lower() or needle in sale.payment_method.lower()
        ]

    def postpone_sale(self, sale_id: str, days: Any) -> Sale:
        sale = self.get_sale(sale_id)
        updated = self._replace_sale(
            replace(sale, postponed_until=followup.postponed_date(self.today(), days))
        )
        self._save(KEY_SALES)
        return updated

    def dismiss_sale(self, sale_id: str) -> Sale:
        sale = self.get_sale(sale_id)
        updated = self._replace_sale(replace(sale, dismissed=True))
        self._save(KEY_SALES)
        return updated

    def follow_up_items(self, search: str = "", status: str = followup.STATUS_ALL):
        return followup.follow_up_items(
            self.sales,
            self.today(),
            self.settings.contact_interval_days,
            search=search,
            status=status,
        )

    # ------------------------------------------------------------------
    # Visits
    # ------------------------------------------------------------------

    def add_visit(self, **data: Any) -> Visit:
        name = _clean(data.get("name"))
        if not name:
            raise ValidationError("Prospect name is required.")
        visit_date = data.get("visit_date")
        if visit_date is None:
            raise ValidationError("Visit date is required.")
        visit = Visit(
            visit_id=self._new_id(),
            visit_date=visit_date,
            name=name,
            region=_clean(data.get("region")),
            pond_count=_non_negative(data.get("pond_count"), "Pond count"),
            ponds_with_larvae=_non_negative(data.get("ponds_with_larvae"), "Ponds with larvae"),
            area=_clean(data.get("area")),
            stocked_quantity=_clean(data.get("stocked_quantity")),
            density=_clean(data.get("density")),
            notes=_clean(data.get("notes")),
        )
        self.visits.insert(0, visit)
        self._save(KEY_VISITS)
        return visit

    def delete_visit(self, visit_id: str) -> None:
        if not any(v.visit_id == visit_id for v in self.visits):
            raise RecordNotFoundError("Visit", visit_id)
        self.visits = [v for v in self.visits if v.visit_id != visit_id]
        self._save(KEY_VISITS)

    def filter_visits(self, start: date, end: date, search: str = "") -> List[Visit]:
        needle = (search or "").strip().lower()
        return [
            visit
            for visit in self.visits
            if start <= visit.visit_date <= end
            and (
                not needle
                or needle in visit.name.lower()
                or needle in visit.region.lower()
            )
        ]

    # ------------------------------------------------------------------
    # Goals
    # ------------------------------------------------------------------

    def current_goal(self) -> Optional[Goal]:
        return active_goal(self.goals)

    def save_goal(
        self,
        target_larvae: int,
        target_revenue: int,
        deadline: date,
        goal_id: Optional[str] = None,
    ) -> Goal:
        """Create a goal, or replace the targets of an existing one.

        Editing keeps ``created_at`` so the goal keeps its place in the
        "most recent" ranking.
        """

        if deadline is None:
            raise ValidationError("Goal deadline is required.")
        larvae = _non_negative(target_larvae, "Target larvae")
        revenue = _non_negative(target_revenue, "Target revenue")
        if goal_id:
            current = next((g for g in self.goals if g.goal_id == goal_id), None)
            if current is None:
                raise RecordNotFoundError("Goal", goal_id)
            goal = replace(
                current, target_larvae=larvae, target_revenue=revenue, deadline=deadline
            )
            self.goals = [goal if g.goal_id == goal_id else g for g in self.goals]
        else:
            goal = Goal(
                goal_id=self._new_id(),
                target_larvae=larvae,
                target_revenue=revenue,
                deadline=deadline,
                created_at=self._now(),
            )
            self.goals.append(goal)
        self._save(KEY_GOALS)
        return goal

    # ------------------------------------------------------------------
    # Settings
    # ------------------------------------------------------------------

    def update_settings(self, **changes: Any) -> Settings:
        known = {f.name for f in fields(Settings)}
        unknown = set(changes) - known
        if unknown:
            raise ValidationError(f"Unknown settings: {', '.join(sorted(unknown))}")
        if "theme" in changes and changes["theme"] not in THEMES:
            raise ValidationError(f"Unknown theme: {changes['theme']}")
        if "contact_interval_days" in changes:
            changes["contact_interval_days"] = _non_negative(
                changes["contact_interval_days"], "Contact interval"
            )
        self.settings = replace(self.settings, **changes)
        self._save(KEY_SETTINGS)
        return self.settings

    def toggle_theme(self) -> str:
        theme = THEME_DARK if self.settings.theme == THEME_LIGHT else THEME_LIGHT
        self.update_settings(theme=theme)
        return theme

    # ------------------------------------------------------------------
    # Dashboard
    # ------------------------------------------------------------------

    def dashboard_stats(self) -> DashboardStats:
        items = self.follow_up_items()
        recent = sorted(self.sales, key=lambda sale: sale.sale_date, reverse=True)
        return DashboardStats(
            total_revenue=sum(sale.total_value for sale in self.sales),
            total_larvae=sum(sale.larvae_quantity for sale in self.sales),
            customer_count=len(self.customers),
            needs_contact=followup.status_counts(items)[followup.STATUS_CRITICAL],
            recent_sales=recent[:RECENT_SALES_LIMIT],
        )
