from datetime import date, datetime
from itertools import count

import pytest

from controlarva.models import Customer, Goal, Sale
from controlarva.state import AppState
from controlarva.storage import MemoryKeyValueStore

TODAY = date(2024, 6, 15)
NOW = datetime(2024, 6, 15, 9, 30)


@pytest.fixture()
def store():
    return MemoryKeyValueStore()


@pytest.fixture()
def make_state():
    def _make(store):
        ids = count(1)
        return AppState(
            store,
            today=lambda: TODAY,
            now=lambda: NOW,
            id_factory=lambda: f"id{next(ids)}",
        )

    return _make


@pytest.fixture()
def state(store, make_state):
    return make_state(store)


@pytest.fixture()
def customer(state) -> Customer:
    return state.add_customer(
        name="Fazenda Boa Vista",
        tax_id="123.456.789-01",
        phone="(84) 99876-5432",
        address="Rodovia RN-160, km 4",
    )


@pytest.fixture()
def make_sale():
    ids = count(1)

    def _make(sale_date, quantity=100, price=2500, customer_id="c1", name="Fazenda Boa Vista", **extra):
        return Sale(
            sale_id=f"s{next(ids)}",
            customer_id=customer_id,
            customer_name=name,
            phone="84998765432",
            larvae_quantity=quantity,
            price_per_thousand=price,
            total_value=quantity * price,
            sale_date=sale_date,
            **extra,
        )

    return _make


@pytest.fixture()
def make_goal():
    def _make(created_at=NOW, target_larvae=1000, target_revenue=2_500_000, deadline=date(2024, 7, 31)):
        return Goal(
            goal_id=f"g{created_at:%Y%m%d%H%M}",
            target_larvae=target_larvae,
            target_revenue=target_revenue,
            deadline=deadline,
            created_at=created_at,
        )

    return _make
