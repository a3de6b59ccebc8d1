from datetime import date, datetime, timedelta

import pytest

from controlarva.errors import RecordNotFoundError, ValidationError
from controlarva.models import Settings
from controlarva.storage import KEY_AUTH, KEY_SALES

TODAY = date(2024, 6, 15)


def test_fresh_state_uses_defaults(state):
    assert state.customers == []
    assert state.sales == []
    assert state.settings == Settings()
    assert state.settings.contact_interval_days == 85
    assert state.authenticated is False


def test_mutations_persist_across_reload(store, make_state, customer):
    first = make_state(store)
    first.create_sale(customer.customer_id, 100, 2500, TODAY)
    first.add_visit(name="Prospect Norte", visit_date=TODAY, region="Canguaretama")
    first.save_goal(1000, 500_000, TODAY + timedelta(days=30))
    first.update_settings(contact_interval_days=60)
    first.login()

    reloaded = make_state(store)

    assert [c.name for c in reloaded.customers] == ["Fazenda Boa Vista"]
    assert len(reloaded.sales) == 1
    assert reloaded.visits[0].region == "Canguaretama"
    assert reloaded.current_goal().target_larvae == 1000
    assert reloaded.settings.contact_interval_days == 60
    assert reloaded.authenticated is True


def test_logout_clears_persisted_flag(state, store):
    state.login()
    state.logout()

    assert store.read(KEY_AUTH) is False


def test_customer_name_is_required(state):
    with pytest.raises(ValidationError):
        state.add_customer(name="   ")


def test_update_customer_keeps_identity(state, customer):
    updated = state.update_customer(customer.customer_id, phone="(84) 3333-0000", pond_count=6)

    assert updated.customer_id == customer.customer_id
    assert updated.created_at == customer.created_at
    assert updated.name == customer.name
    assert updated.pond_count == 6
    assert state.get_customer(customer.customer_id).phone == "(84) 3333-0000"


def test_unknown_ids_raise_not_found(state):
    with pytest.raises(RecordNotFoundError):
        state.get_customer("missing")
    with pytest.raises(RecordNotFoundError):
        state.dismiss_sale("missing")
    with pytest.raises(RecordNotFoundError):
        state.delete_visit("missing")


def test_search_customers(state, customer):
    state.add_customer(name="Carcinicultura Mar Azul", tax_id="11.222.333/0001-81")

    assert [c.name for c in state.search_customers("boa")] == ["Fazenda Boa Vista"]
    assert [c.name for c in state.search_customers("0001")] == ["Carcinicultura Mar Azul"]
    assert [c.name for c in state.search_customers("rn-160")] == ["Fazenda Boa Vista"]
    assert len(state.search_customers("")) == 2


def test_create_sale_requires_customer(state):
    with pytest.raises(ValidationError, match="select a customer"):
        state.create_sale(None, 100, 2500, TODAY)
    assert state.sales == []


def test_create_sale_computes_total_and_copies_contact(state, customer):
    sale = state.create_sale(customer.customer_id, 150, 2750, TODAY, payment_method="PIX")

    assert sale.total_value == 150 * 2750
    assert sale.customer_name == customer.name
    assert sale.phone == customer.phone
    assert sale.dismissed is False


def test_create_sale_rejects_unknown_payment_method(state, customer):
    with pytest.raises(ValidationError):
        state.create_sale(customer.customer_id, 10, 100, TODAY, payment_method="Barter")


def test_renewing_a_sale_dismisses_the_original(state, customer):
    original = state.create_sale(customer.customer_id, 100, 2500, TODAY - timedelta(days=90))

    renewal = state.create_sale(
        customer.customer_id, 120, 2500, TODAY, replacing_sale_id=original.sale_id
    )

    assert state.get_sale(original.sale_id).dismissed is True
    assert renewal.dismissed is False
    board = [item.sale.sale_id for item in state.follow_up_items()]
    assert board == [renewal.sale_id]


def test_renewing_unknown_sale_adds_nothing(state, customer):
    with pytest.raises(RecordNotFoundError):
        state.create_sale(customer.customer_id, 100, 2500, TODAY, replacing_sale_id="missing")
    assert state.sales == []


def test_update_sale_recomputes_total_and_keeps_dismissal(state, customer):
    sale = state.create_sale(customer.customer_id, 100, 2500, TODAY)
    state.dismiss_sale(sale.sale_id)

    updated = state.update_sale(sale.sale_id, larvae_quantity=200, price_per_thousand=3000)

    assert updated.total_value == 600_000
    assert updated.dismissed is True


def test_deleting_customer_keeps_their_sales(state, customer):
    sale = state.create_sale(customer.customer_id, 100, 2500, TODAY)

    state.delete_customer(customer.customer_id)

    assert state.customers == []
    assert state.get_sale(sale.sale_id).customer_name == "Fazenda Boa Vista"


def test_search_sales_by_customer_or_payment(state, customer):
    state.create_sale(customer.customer_id, 100, 2500, TODAY, payment_method="Invoice")

    assert len(state.search_sales("boa vista")) == 1
    assert len(state.search_sales("invoice")) == 1
    assert state.search_sales("cash") == []


def test_postpone_and_dismiss_follow_up(state, store, customer):
    sale = state.create_sale(customer.customer_id, 100, 2500, TODAY - timedelta(days=90))
    assert state.follow_up_items()[0].status == "critical"

    postponed = state.postpone_sale(sale.sale_id, "10")
    assert postponed.postponed_until == TODAY + timedelta(days=10)
    assert state.follow_up_items()[0].status == "waiting"
    assert store.read(KEY_SALES)[0]["postponed_until"] == "2024-06-25"

    state.dismiss_sale(sale.sale_id)
    assert state.follow_up_items() == []


def test_postpone_with_garbage_input_means_today(state, customer):
    sale = state.create_sale(customer.customer_id, 100, 2500, TODAY - timedelta(days=90))

    postponed = state.postpone_sale(sale.sale_id, "soon")

    assert postponed.postponed_until == TODAY
    assert state.follow_up_items()[0].status == "critical"


def test_visit_requires_name_and_filters_by_period(state):
    with pytest.raises(ValidationError):
        state.add_visit(name="", visit_date=TODAY)

    state.add_visit(name="Sitio Lagoa", region="Tibau", visit_date=date(2024, 5, 1))
    latest = state.add_visit(name="Fazenda Ponta", region="Nisia Floresta", visit_date=TODAY)

    assert state.visits[0] is latest
    assert [v.name for v in state.filter_visits(date(2024, 6, 1), TODAY)] == ["Fazenda Ponta"]
    assert [v.name for v in state.filter_visits(date(2024, 1, 1), TODAY, "tibau")] == ["Sitio Lagoa"]


def test_editing_goal_keeps_creation_time(state, store, make_state):
    goal = state.save_goal(1000, 500_000, date(2024, 7, 31))

    edited = state.save_goal(2000, 900_000, date(2024, 8, 31), goal_id=goal.goal_id)

    assert len(state.goals) == 1
    assert edited.created_at == datetime(2024, 6, 15, 9, 30)
    assert make_state(store).current_goal().target_larvae == 2000


def test_save_goal_requires_deadline(state):
    with pytest.raises(ValidationError):
        state.save_goal(1000, 500_000, None)


def test_update_settings_validates(state):
    with pytest.raises(ValidationError):
        state.update_settings(theme="sepia")
    with pytest.raises(ValidationError):
        state.update_settings(contact_interval_days=-1)
    with pytest.raises(ValidationError):
        state.update_settings(favourite_colour="blue")

    assert state.update_settings(contact_interval_days="0").contact_interval_days == 0


def test_toggle_theme(state):
    assert state.toggle_theme() == "dark"
    assert state.toggle_theme() == "light"


def test_dashboard_stats(state, customer):
    state.create_sale(customer.customer_id, 100, 2500, TODAY - timedelta(days=120))
    state.create_sale(customer.customer_id, 50, 3000, TODAY - timedelta(days=90))
    for days_ago in range(5):
        state.create_sale(customer.customer_id, 10, 1000, TODAY - timedelta(days=days_ago))

    stats = state.dashboard_stats()

    assert stats.total_revenue == 250_000 + 150_000 + 5 * 10_000
    assert stats.total_larvae == 200
    assert stats.customer_count == 1
    assert stats.needs_contact == 2
    assert [sale.sale_date for sale in stats.recent_sales] == [
        TODAY - timedelta(days=n) for n in range(5)
    ]


def test_needs_contact_follows_configured_interval(state, customer):
    state.create_sale(customer.customer_id, 100, 2500, TODAY - timedelta(days=40))
    assert state.dashboard_stats().needs_contact == 0

    state.update_settings(contact_interval_days=30)

    assert state.dashboard_stats().needs_contact == 1
