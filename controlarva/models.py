"""Record types persisted by the application."""
from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import date, datetime
from typing import Any, Dict, Optional, Tuple

PAYMENT_METHODS: Tuple[str, ...] = (
    "Cash",
    "PIX",
    "Card",
    "Invoice",
)

THEME_LIGHT = "light"
THEME_DARK = "dark"
THEMES: Tuple[str, ...] = (THEME_LIGHT, THEME_DARK)

DEFAULT_CONTACT_INTERVAL_DAYS = 85


def _coerce_date(value: Any) -> Optional[date]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])


def _coerce_datetime(value: Any) -> datetime:
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    if isinstance(value, (int, float)):
        # Epoch milliseconds, as browser snapshots stored them.
        return datetime.fromtimestamp(value / 1000)
    return datetime.fromisoformat(str(value))


def _iso(value: Optional[date]) -> Optional[str]:
    return value.isoformat() if value is not None else None


@dataclass
class Customer:
    customer_id: str
    name: str
    tax_id: str = ""
    address: str = ""
    phone: str = ""
    email: str = ""
    pond_count: int = 0
    ponds_with_larvae: int = 0
    notes: str = ""
    created_at: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> Dict[str, Any]:
        payload = asdict(self)
        payload["created_at"] = self.created_at.isoformat(timespec="seconds")
        return payload

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Customer":
        return cls(
            customer_id=str(data["customer_id"]),
            name=data.get("name", ""),
            tax_id=data.get("tax_id", ""),
            address=data.get("address", ""),
            phone=data.get("phone", ""),
            email=data.get("email", ""),
            pond_count=int(data.get("pond_count") or 0),
            ponds_with_larvae=int(data.get("ponds_with_larvae") or 0),
            notes=data.get("notes") or "",
            created_at=_coerce_datetime(data["created_at"]),
        )


@dataclass
class Sale:
    """A larvae sale. Money fields hold integer cents."""

    sale_id: str
    customer_id: str
    customer_name: str
    phone: str
    larvae_quantity: int
    price_per_thousand: int
    total_value: int
    sale_date: date
    payment_method: str = PAYMENT_METHODS[0]
    ponds_stocked: int = 0
    notes: str = ""
    postponed_until: Optional[date] = None
    dismissed: bool = False

    def to_dict(self) -> Dict[str, Any]:
        payload = asdict(self)
        payload["sale_date"] = self.sale_date.isoformat()
        payload["postponed_until"] = _iso(self.postponed_until)
        return payload

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Sale":
        return cls(
            sale_id=str(data["sale_id"]),
            customer_id=str(data.get("customer_id", "")),
            customer_name=data.get("customer_name", ""),
            phone=data.get("phone", ""),
            larvae_quantity=int(data.get("larvae_quantity") or 0),
            price_per_thousand=int(data.get("price_per_thousand") or 0),
            total_value=int(data.get("total_value") or 0),
            sale_date=_coerce_date(data["sale_date"]),
            payment_method=data.get("payment_method") or PAYMENT_METHODS[0],
            ponds_stocked=int(data.get("ponds_stocked") or 0),
            notes=data.get("notes") or "",
            postponed_until=_coerce_date(data.get("postponed_until")),
            dismissed=bool(data.get("dismissed", False)),
        )


@dataclass
class Visit:
    visit_id: str
    visit_date: date
    name: str
    region: str = ""
    pond_count: int = 0
    ponds_with_larvae: int = 0
    area: str = ""
    stocked_quantity: str = ""
    density: str = ""
    notes: str = ""

    def to_dict(self) -> Dict[str, Any]:
        payload = asdict(self)
        payload["visit_date"] = self.visit_date.isoformat()
        return payload

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Visit":
        return cls(
            visit_id=str(data["visit_id"]),
            visit_date=_coerce_date(data["visit_date"]),
            name=data.get("name", ""),
            region=data.get("region", ""),
            pond_count=int(data.get("pond_count") or 0),
            ponds_with_larvae=int(data.get("ponds_with_larvae") or 0),
            area=data.get("area", ""),
            stocked_quantity=data.get("stocked_quantity", ""),
            density=data.get("density", ""),
            notes=data.get("notes") or "",
        )


@dataclass
class Goal:
    goal_id: str
    target_larvae: int
    target_revenue: int
    deadline: date
    created_at: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "goal_id": self.goal_id,
            "target_larvae": self.target_larvae,
            "target_revenue": self.target_revenue,
            "deadline": self.deadline.isoformat(),
            "created_at": self.created_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Goal":
        return cls(
            goal_id=str(data["goal_id"]),
            target_larvae=int(data.get("target_larvae") or 0),
            target_revenue=int(data.get("target_revenue") or 0),
            deadline=_coerce_date(data["deadline"]),
            created_at=_coerce_datetime(data["created_at"]),
        )


@dataclass
class Settings:
    theme: str = THEME_LIGHT
    contact_interval_days: int = DEFAULT_CONTACT_INTERVAL_DAYS
    user_name: str = "Master Seller"
    email: str = "contact@controlarva.com"

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Settings":
        defaults = cls()
        theme = data.get("theme", defaults.theme)
        return cls(
            theme=theme if theme in THEMES else defaults.theme,
            contact_interval_days=int(
                data.get("contact_interval_days", defaults.contact_interval_days)
            ),
            user_name=data.get("user_name", defaults.user_name),
            email=data.get("email", defaults.email),
        )
