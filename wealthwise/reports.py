# wealthwise/reports.py
"""
Read-side aggregation for the dashboard and the monthly report.
Nothing here touches the database; callers pass in already-fetched rows.
"""
import calendar
from datetime import datetime, timedelta

from dateutil.relativedelta import relativedelta

from .money import div_round
from .targets import discretionary_totals, in_range


def month_bounds(year: int, month: int):
    """(first instant of the month, first instant of the next month)."""
    start = datetime(year, month, 1)
    return start, start + relativedelta(months=1)


def total(items) -> int:
    return sum(i.amount for i in items)


def percentage(part: int, whole: int) -> int:
    """round(100 * part / whole), 0 for an empty whole."""
    return div_round(100 * part, whole)


def percent_change(current: int, previous: int) -> int:
    """Month-over-month change in percent; 0 when there is nothing to compare against."""
    if previous == 0:
        return 0
    return div_round(100 * (current - previous), previous)


def breakdown(items, key: str = "category") -> list:
    """Group by ``key`` with each group's sum and share of the window total, largest first."""
    groups = {}
    for item in items:
        label = getattr(item, key)
        groups[label] = groups.get(label, 0) + item.amount

    window_total = sum(groups.values())
    rows = [
        {key: label, "amount": amount, "percentage": percentage(amount, window_total)}
        for label, amount in groups.items()
    ]
    rows.sort(key=lambda r: r["amount"], reverse=True)
    return rows


def dashboard_summary(current_expenses, previous_expenses, month_savings, goals, achievements,
                      now: datetime) -> dict:
    current_total = total(current_expenses)
    previous_total = total(previous_expenses)
    avoidable, unnecessary = discretionary_totals(current_expenses)
    week_ago = now - timedelta(days=7)

    return {
        "current_month_expenses": current_total,
        "percentage_change": percent_change(current_total, previous_total),
        "monthly_change": current_total - previous_total,
        "savings_total": total(month_savings),
        # rough weekly figure: a month is taken as four weeks
        "potential_weekly_savings": div_round(avoidable + unnecessary, 4),
        "avoidable": avoidable,
        "unnecessary": unnecessary,
        "goal_count": len(goals),
        "completed_goals": len([g for g in goals if g.completed]),
        "new_achievements": len([a for a in achievements if a.date >= week_ago]),
    }


def build_insights(expense_change, category_rows, status_totals, expenses_total,
                   savings_rate, completed_goals, active_goals, achievement_count) -> list:
    insights = []

    if expense_change > 10:
        insights.append(
            f"Your spending increased by {expense_change}% compared to last month. Consider reviewing your budget."
        )
    elif expense_change < -10:
        insights.append(
            f"Great job! You reduced your spending by {abs(expense_change)}% compared to last month."
        )

    if category_rows:
        top = category_rows[0]
        insights.append(
            f"Your largest expense category was {top['category']} at {top['percentage']}% of your total spending."
        )
        if top["category"] != "housing" and top["percentage"] > 30:
            insights.append(
                f"You might be overspending on {top['category']}. "
                f"This category makes up {top['percentage']}% of your expenses."
            )

    unnecessary = status_totals.get("unnecessary", 0)
    if unnecessary > 0:
        unnecessary_pct = percentage(unnecessary, expenses_total)
        if unnecessary_pct > 20:
            insights.append(
                f"{unnecessary_pct}% of your spending was on unnecessary items. "
                "This could be an opportunity to save more."
            )

    if savings_rate < 10:
        insights.append(
            f"Your savings rate was {savings_rate}% this month. "
            "Financial experts recommend saving at least 20% of your income."
        )
    elif savings_rate > 20:
        insights.append(
            f"Excellent! You saved {savings_rate}% of your income this month, which exceeds the recommended 20%."
        )

    if completed_goals:
        insights.append(f"Congratulations! You completed {completed_goals} financial goals this month.")
    if active_goals:
        insights.append(f"You're actively working towards {active_goals} financial goals.")
    if achievement_count:
        insights.append(f"You earned {achievement_count} achievements this month!")

    return insights


def monthly_report(year: int, month: int, month_expenses, previous_expenses, month_savings,
                   goals, achievements) -> dict:
    start, end = month_bounds(year, month)
    expenses_total = total(month_expenses)
    previous_total = total(previous_expenses)
    savings_total = total(month_savings)

    by_category = breakdown(month_expenses, "category")
    by_status = breakdown(month_expenses, "status")
    status_totals = {row["status"]: row["amount"] for row in by_status}

    expense_change = percent_change(expenses_total, previous_total)
    # savings stand in for income: income ~ spent + saved
    income_proxy = expenses_total + savings_total
    savings_rate = percentage(savings_total, income_proxy) if income_proxy > 0 else 0

    active = [g for g in goals if not g.completed]
    completed = [g for g in goals if g.completed and g.completed_at and start <= g.completed_at < end]
    month_achievements = in_range(achievements, start, end)

    return {
        "month_name": calendar.month_name[month],
        "year": year,
        "month": month,
        "expenses": {
            "total": expenses_total,
            "count": len(month_expenses),
            "change": expense_change,
            "by_category": by_category,
            "by_status": by_status,
        },
        "savings": {
            "total": savings_total,
            "count": len(month_savings),
            "savings_rate": savings_rate,
        },
        "goals": {
            "active": len(active),
            "completed": len(completed),
            "completed_details": [
                {"name": g.name, "target_amount": g.target_amount, "completed_date": g.completed_at}
                for g in completed
            ],
        },
        "achievements": {
            "count": len(month_achievements),
            "details": [
                {"name": a.name, "type": a.type, "date": a.date, "coins_awarded": a.coins_awarded}
                for a in month_achievements
            ],
        },
        "insights": build_insights(
            expense_change, by_category, status_totals, expenses_total, savings_rate,
            len(completed), len(active), len(month_achievements),
        ),
    }
