"""Goal selection and progress tracking."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Iterable, List, Optional, Sequence

import pandas as pd

from .models import Goal, Sale


@dataclass(frozen=True)
class ProgressPoint:
    day: date
    cumulative_larvae: int


@dataclass(frozen=True)
class GoalProgress:
    goal: Goal
    larvae_achieved: int
    revenue_achieved: int
    larvae_percent: float
    revenue_percent: float
    met: bool
    expired: bool


def active_goal(goals: Sequence[Goal]) -> Optional[Goal]:
    """Return the most recently created goal, or ``None`` when there is none."""

    if not goals:
        return None
    return max(goals, key=lambda goal: goal.created_at)


def percentage(achieved: float, target: float) -> float:
    if not target or target <= 0:
        return 0.0
    return max(0.0, min(100.0, achieved * 100.0 / target))


def sales_since(goal: Goal, sales: Iterable[Sale]) -> List[Sale]:
    start = goal.created_at.date()
    qualifying = [sale for sale in sales if sale.sale_date >= start]
    qualifying.sort(key=lambda sale: sale.sale_date)
    return qualifying


def progress_series(goal: Goal, sales: Iterable[Sale]) -> List[ProgressPoint]:
    points = [ProgressPoint(goal.created_at.date(), 0)]
    running = 0
    for sale in sales_since(goal, sales):
        running += sale.larvae_quantity
        points.append(ProgressPoint(sale.sale_date, running))
    return points


def progress_frame(goal: Goal, sales: Iterable[Sale]) -> pd.DataFrame:
    """Chart-ready series of cumulative larvae against the goal target."""

    points = progress_series(goal, sales)
    return pd.DataFrame(
        {
            "Date": pd.to_datetime([point.day for point in points]),
            "Progress": [point.cumulative_larvae for point in points],
            "Target": [goal.target_larvae] * len(points),
        }
    )


def goal_progress(goal: Goal, sales: Iterable[Sale], today: date) -> GoalProgress:
    qualifying = sales_since(goal, sales)
    larvae = sum(sale.larvae_quantity for sale in qualifying)
    revenue = sum(sale.total_value for sale in qualifying)
    larvae_percent = percentage(larvae, goal.target_larvae)
    revenue_percent = percentage(revenue, goal.target_revenue)
    met = larvae_percent >= 100 and revenue_percent >= 100
    return GoalProgress(
        goal=goal,
        larvae_achieved=larvae,
        revenue_achieved=revenue,
        larvae_percent=larvae_percent,
        revenue_percent=revenue_percent,
        met=met,
        expired=today > goal.deadline and not met,
    )
