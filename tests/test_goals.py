from datetime import date, datetime

import pytest

from controlarva import goals


def test_percentage_caps_at_one_hundred():
    assert goals.percentage(1200, 1000) == 100
    assert goals.percentage(250, 1000) == pytest.approx(25.0)


@pytest.mark.parametrize("target", [0, -10])
def test_percentage_is_zero_without_a_positive_target(target):
    assert goals.percentage(500, target) == 0


def test_active_goal_is_most_recently_created(make_goal):
    first = make_goal(created_at=datetime(2024, 1, 1, 8, 0))
    latest = make_goal(created_at=datetime(2024, 5, 2, 8, 0))
    middle = make_goal(created_at=datetime(2024, 3, 1, 8, 0))

    assert goals.active_goal([first, latest, middle]) is latest
    assert goals.active_goal([]) is None


def test_progress_series_without_sales_is_single_zero_point(make_goal):
    goal = make_goal(created_at=datetime(2024, 6, 1, 14, 0))

    points = goals.progress_series(goal, [])

    assert points == [goals.ProgressPoint(date(2024, 6, 1), 0)]


def test_progress_series_accumulates_sales_since_creation(make_goal, make_sale):
    goal = make_goal(created_at=datetime(2024, 6, 1, 14, 0))
    sales = [
        make_sale(date(2024, 6, 10), quantity=300),
        make_sale(date(2024, 5, 31), quantity=999),
        make_sale(date(2024, 6, 1), quantity=200),
    ]

    points = goals.progress_series(goal, sales)

    assert [(p.day, p.cumulative_larvae) for p in points] == [
        (date(2024, 6, 1), 0),
        (date(2024, 6, 1), 200),
        (date(2024, 6, 10), 500),
    ]


def test_progress_frame_has_target_line(make_goal, make_sale):
    goal = make_goal(created_at=datetime(2024, 6, 1, 14, 0), target_larvae=1000)

    frame = goals.progress_frame(goal, [make_sale(date(2024, 6, 5), quantity=400)])

    assert list(frame.columns) == ["Date", "Progress", "Target"]
    assert list(frame["Progress"]) == [0, 400]
    assert list(frame["Target"]) == [1000, 1000]


def test_goal_progress_met(make_goal, make_sale):
    goal = make_goal(
        created_at=datetime(2024, 6, 1, 8, 0), target_larvae=1000, target_revenue=100_000
    )
    sales = [make_sale(date(2024, 6, 3), quantity=1200, price=100)]

    progress = goals.goal_progress(goal, sales, date(2024, 8, 30))

    assert progress.larvae_achieved == 1200
    assert progress.revenue_achieved == 120_000
    assert progress.larvae_percent == 100
    assert progress.revenue_percent == 100
    assert progress.met is True
    assert progress.expired is False


def test_goal_progress_expires_after_deadline_when_unmet(make_goal, make_sale):
    goal = make_goal(created_at=datetime(2024, 6, 1, 8, 0), deadline=date(2024, 6, 30))
    sales = [make_sale(date(2024, 6, 3), quantity=100)]

    on_deadline = goals.goal_progress(goal, sales, date(2024, 6, 30))
    after_deadline = goals.goal_progress(goal, sales, date(2024, 7, 1))

    assert on_deadline.expired is False
    assert after_deadline.expired is True
    assert after_deadline.larvae_percent == pytest.approx(10.0)
