# wealthwise/targets.py
"""
Weekly savings targets.

The recommended target for a week is a fixed share of that week's avoidable
and unnecessary spending. Weeks run Monday 00:00 to the next Monday 00:00.
"""
from datetime import datetime, timedelta
from decimal import Decimal

from .money import round_half_away

# Share of avoidable + unnecessary spending recommended as the weekly target.
WEEKLY_TARGET_RATIO = Decimal("0.5")
DEFAULT_HISTORY_WEEKS = 6


def week_bounds(moment: datetime):
    """(start, end) of the Monday-aligned week containing ``moment``; end is exclusive."""
    start = (moment - timedelta(days=moment.weekday())).replace(hour=0, minute=0, second=0, microsecond=0)
    return start, start + timedelta(days=7)


def in_range(items, start, end):
    """Items whose ``date`` falls in [start, end)."""
    return [i for i in items if start <= i.date < end]


def discretionary_totals(expenses):
    """Sum of avoidable and unnecessary amounts, as a pair."""
    avoidable = sum(e.amount for e in expenses if e.status == "avoidable")
    unnecessary = sum(e.amount for e in expenses if e.status == "unnecessary")
    return avoidable, unnecessary


def weekly_target(expenses, ratio=WEEKLY_TARGET_RATIO) -> dict:
    """Recommended target for a set of classified expenses from one week."""
    avoidable, unnecessary = discretionary_totals(expenses)
    target = round_half_away(Decimal(avoidable + unnecessary) * Decimal(str(ratio)))
    return {
        "avoidable_total": avoidable,
        "unnecessary_total": unnecessary,
        "target": target,
    }


def weekly_history(expenses, savings, now: datetime, weeks: int = DEFAULT_HISTORY_WEEKS,
                   ratio=WEEKLY_TARGET_RATIO) -> list:
    """
    One record per week for the trailing ``weeks`` weeks, oldest first.

    Past weeks publish their full avoidable + unnecessary total as the target
    (what could have been saved); the current week gets the discounted
    recommendation. ``actual`` is the sum of savings entries in the week.
    """
    result = []
    for i in range(weeks):
        start, end = week_bounds(now - timedelta(weeks=i))
        week_expenses = in_range(expenses, start, end)
        if i == 0:
            target = weekly_target(week_expenses, ratio)["target"]
        else:
            target = sum(discretionary_totals(week_expenses))
        actual = sum(s.amount for s in in_range(savings, start, end))
        result.append({
            "week_start": start,
            "week_end": end - timedelta(microseconds=1),
            "target": target,
            "actual": actual,
        })
    result.reverse()
    return result
