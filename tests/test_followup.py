from datetime import date, timedelta

import pytest

from controlarva import followup

TODAY = date(2024, 6, 15)


def test_sale_past_interval_without_postponement_is_critical():
    sale_date = TODAY - timedelta(days=90)

    assert followup.classify(sale_date, TODAY, 85) == followup.STATUS_CRITICAL


def test_sale_past_interval_with_future_postponement_is_waiting():
    sale_date = TODAY - timedelta(days=90)
    postponed = TODAY + timedelta(days=10)

    assert followup.classify(sale_date, TODAY, 85, postponed) == followup.STATUS_WAITING


def test_postponement_ending_today_is_not_active():
    sale_date = TODAY - timedelta(days=90)

    assert followup.classify(sale_date, TODAY, 85, TODAY) == followup.STATUS_CRITICAL


@pytest.mark.parametrize(
    "days_ago, expected",
    [
        (0, followup.STATUS_SAFE),
        (84, followup.STATUS_SAFE),
        (85, followup.STATUS_CRITICAL),
    ],
)
def test_interval_boundary(days_ago, expected):
    assert followup.classify(TODAY - timedelta(days=days_ago), TODAY, 85) == expected


def test_postponement_ignored_while_still_inside_interval():
    sale_date = TODAY - timedelta(days=3)

    assert followup.classify(sale_date, TODAY, 85, TODAY + timedelta(days=5)) == followup.STATUS_SAFE


def test_zero_interval_expires_on_sale_day():
    assert followup.classify(TODAY, TODAY, 0) == followup.STATUS_CRITICAL
    assert (
        followup.classify(TODAY, TODAY, 0, TODAY + timedelta(days=1))
        == followup.STATUS_WAITING
    )


def test_future_sale_counts_as_zero_days():
    assert followup.days_since(TODAY + timedelta(days=4), TODAY) == 0
    assert followup.classify(TODAY + timedelta(days=4), TODAY, 85) == followup.STATUS_SAFE


def test_follow_up_items_skip_dismissed_and_sort_by_age(make_sale):
    old = make_sale(TODAY - timedelta(days=100), name="Carcinicultura Mar Azul")
    recent = make_sale(TODAY - timedelta(days=2), name="Fazenda Boa Vista")
    archived = make_sale(TODAY - timedelta(days=50), name="Sitio Camarao", dismissed=True)

    items = followup.follow_up_items([old, archived, recent], TODAY, 85)

    assert [item.sale.sale_id for item in items] == [recent.sale_id, old.sale_id]
    assert [item.days_since_sale for item in items] == [2, 100]
    assert items[1].label == "Time to contact"


def test_follow_up_items_filter_by_name_and_status(make_sale):
    sales = [
        make_sale(TODAY - timedelta(days=100), name="Carcinicultura Mar Azul"),
        make_sale(TODAY - timedelta(days=95), name="Fazenda Boa Vista"),
        make_sale(TODAY - timedelta(days=10), name="Fazenda Boa Vista"),
    ]

    by_name = followup.follow_up_items(sales, TODAY, 85, search="boa VISTA")
    critical = followup.follow_up_items(sales, TODAY, 85, status=followup.STATUS_CRITICAL)
    both = followup.follow_up_items(
        sales, TODAY, 85, search="boa", status=followup.STATUS_CRITICAL
    )

    assert len(by_name) == 2
    assert len(critical) == 2
    assert [item.sale.sale_id for item in both] == [sales[1].sale_id]


def test_status_counts_cover_every_status(make_sale):
    sales = [
        make_sale(TODAY - timedelta(days=1)),
        make_sale(TODAY - timedelta(days=90), postponed_until=TODAY + timedelta(days=3)),
        make_sale(TODAY - timedelta(days=90)),
        make_sale(TODAY - timedelta(days=120)),
    ]

    counts = followup.status_counts(followup.follow_up_items(sales, TODAY, 85))

    assert counts == {"safe": 1, "waiting": 1, "critical": 2}


@pytest.mark.parametrize(
    "raw, expected",
    [("7", 7), (" 12 ", 12), ("abc", 0), ("", 0), (None, 0), ("-4", 0), (3, 3)],
)
def test_parse_postpone_days(raw, expected):
    assert followup.parse_postpone_days(raw) == expected


def test_postponed_date_adds_days_to_today():
    assert followup.postponed_date(TODAY, "10") == date(2024, 6, 25)
    assert followup.postponed_date(TODAY, "later") == TODAY


def test_whatsapp_url_keeps_only_digits():
    assert followup.whatsapp_url("+55 (84) 99876-5432") == "https://wa.me/5584998765432"


def test_future_sale_is_not_due_even_with_zero_interval():
    sale_date = TODAY + timedelta(days=4)

    assert followup.classify(sale_date, TODAY, 0) == followup.STATUS_SAFE
    assert followup.classify(TODAY - timedelta(days=1), TODAY, 0) == followup.STATUS_CRITICAL
