"""Post-sale follow-up classification.

Every sale that has not been dismissed from the after-sales board gets one of
three statuses:

``safe``
    fewer days have passed since the sale than the contact interval.
``waiting``
    the interval has elapsed but the operator postponed the contact to a date
    that is still in the future.
``critical``
    the interval has elapsed and there is no active postponement.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date, timedelta
from typing import Dict, Iterable, List, Optional, Tuple

from .masks import only_digits
from .models import Sale

STATUS_SAFE = "safe"
STATUS_WAITING = "waiting"
STATUS_CRITICAL = "critical"
STATUS_ALL = "all"

FOLLOW_UP_STATUSES: Tuple[str, ...] = (STATUS_SAFE, STATUS_WAITING, STATUS_CRITICAL)

FOLLOW_UP_LABELS: Dict[str, str] = {
    STATUS_SAFE: "On time",
    STATUS_WAITING: "Postponed",
    STATUS_CRITICAL: "Time to contact",
}

WHATSAPP_BASE_URL = "https://wa.me/"


@dataclass(frozen=True)
class FollowUpItem:
    sale: Sale
    days_since_sale: int
    status: str

    @property
    def label(self) -> str:
        return FOLLOW_UP_LABELS[self.status]


def days_since(sale_date: date, today: date) -> int:
    """Whole days between the sale and today; future sales count as zero."""

    return max((today - sale_date).days, 0)


def classify(
    sale_date: date,
    today: date,
    interval: int,
    postponed_until: Optional[date] = None,
) -> str:
    # Future-dated sales are never due, whatever the interval.
    expired = (today - sale_date).days >= interval
    if not expired:
        return STATUS_SAFE
    if postponed_until is not None and postponed_until > today:
        return STATUS_WAITING
    return STATUS_CRITICAL


def classify_sale(sale: Sale, today: date, interval: int) -> FollowUpItem:
    return FollowUpItem(
        sale=sale,
        days_since_sale=days_since(sale.sale_date, today),
        status=classify(sale.sale_date, today, interval, sale.postponed_until),
    )


def follow_up_items(
    sales: Iterable[Sale],
    today: date,
    interval: int,
    search: str = "",
    status: str = STATUS_ALL,
) -> List[FollowUpItem]:
    """Return the after-sales board: most recent sales first."""

    needle = (search or "").strip().lower()
    items = []
    for sale in sales:
        if sale.dismissed:
            continue
        item = classify_sale(sale, today, interval)
        if needle and needle not in sale.customer_name.lower():
            continue
        if status != STATUS_ALL and item.status != status:
            continue
        items.append(item)
    items.sort(key=lambda item: item.days_since_sale)
    return items


def status_counts(items: Iterable[FollowUpItem]) -> Dict[str, int]:
    counts = {status: 0 for status in FOLLOW_UP_STATUSES}
    for item in items:
        counts[item.status] += 1
    return counts


def parse_postpone_days(value) -> int:
    """Interpret the operator's postpone input; anything unusable means zero."""

    try:
        days = int(str(value).strip())
    except (TypeError, ValueError):
        return 0
    return max(days, 0)


def postponed_date(today: date, days) -> date:
    return today + timedelta(days=parse_postpone_days(days))


def whatsapp_url(phone: str) -> str:
    return f"{WHATSAPP_BASE_URL}{only_digits(phone)}"
