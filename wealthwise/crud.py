# wealthwise/crud.py
import logging
from datetime import datetime, timedelta

import numpy as np
import pandas as pd
from dateutil.relativedelta import relativedelta
from passlib.context import CryptContext
from sklearn.linear_model import LinearRegression
from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from statsmodels.tsa.arima.model import ARIMA

from . import models, rewards, targets
from .money import div_round, format_currency, round_half_away

logger = logging.getLogger(__name__)

# Password hashing context
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


# -----------------------------
# Password helpers
# -----------------------------
def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)

def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


# -----------------------------
# Users
# -----------------------------
def create_user(db: Session, username: str, password: str, name: str):
    # last_login stays NULL so the first login starts a streak
    user = models.User(
        username=username,
        password=get_password_hash(password),
        name=name,
        coins=0,
        streak=0,
        last_login=None,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user

def get_user(db: Session, user_id: int):
    return db.query(models.User).filter(models.User.id == user_id).first()

def get_user_by_username(db: Session, username: str):
    return db.query(models.User).filter(models.User.username == username).first()

def authenticate_user(db: Session, username: str, password: str):
    user = get_user_by_username(db, username)
    if not user:
        return None
    if not verify_password(password, user.password):
        return None
    return user

def award_coins(db: Session, user_id: int, delta: int) -> int:
    """
    Add ``delta`` coins with a single relative UPDATE so concurrent awards
    never overwrite each other. Does not commit.
    """
    if delta <= 0:
        return 0
    db.query(models.User).filter(models.User.id == user_id).update(
        {models.User.coins: models.User.coins + delta}, synchronize_session=False
    )
    return delta

def record_login(db: Session, user: models.User, now: datetime):
    """
    Apply the streak transition for a successful login.
    Returns (user, coins_awarded).
    """
    transition = rewards.next_login_state(user.streak, user.last_login, now)
    if not transition.changed:
        return user, 0

    # guarded by the last_login we read: a concurrent login that got there first wins
    query = db.query(models.User).filter(models.User.id == user.id)
    if user.last_login is None:
        query = query.filter(models.User.last_login.is_(None))
    else:
        query = query.filter(models.User.last_login == user.last_login)

    updated = query.update(
        {
            models.User.streak: transition.streak,
            models.User.last_login: transition.last_login,
            models.User.coins: models.User.coins + transition.coins_awarded,
        },
        synchronize_session=False,
    )
    db.commit()
    db.refresh(user)

    if not updated:
        logger.info("Login for user %s lost a race with a concurrent login; no coins awarded", user.id)
        return user, 0
    logger.info("User %s streak -> %s, +%s coins", user.id, transition.streak, transition.coins_awarded)
    return user, transition.coins_awarded


# -----------------------------
# Achievements
# -----------------------------
def create_achievement(db: Session, user_id: int, type: str, name: str, description: str,
                       date: datetime, coins_awarded: int, week_start: datetime = None):
    achievement = models.Achievement(
        user_id=user_id,
        type=type,
        name=name,
        description=description,
        date=date,
        coins_awarded=coins_awarded,
        week_start=week_start,
    )
    db.add(achievement)
    return achievement

def list_achievements(db: Session, user_id: int):
    return db.query(models.Achievement)\
             .filter(models.Achievement.user_id == user_id)\
             .order_by(models.Achievement.date.desc(), models.Achievement.id.desc())\
             .all()


# -----------------------------
# Expenses
# -----------------------------
def list_expenses(db: Session, user_id: int, start: datetime = None, end: datetime = None):
    query = db.query(models.Expense).filter(models.Expense.user_id == user_id)
    if start is not None:
        query = query.filter(models.Expense.date >= start)
    if end is not None:
        query = query.filter(models.Expense.date < end)
    return query.order_by(models.Expense.date.desc(), models.Expense.id.desc()).all()

def get_expense(db: Session, user_id: int, expense_id: int):
    """Only returns the expense when it belongs to ``user_id``."""
    return db.query(models.Expense).filter(
        models.Expense.id == expense_id,
        models.Expense.user_id == user_id,
    ).first()

def add_expense(db: Session, user_id: int, name: str, amount: int, category: str, status: str,
                payment_mode: str, now: datetime, date: datetime = None, notes: str = None):
    """
    Save an expense; the first expense dated today earns coins.
    Returns (expense, coins_awarded).
    """
    expense = models.Expense(
        user_id=user_id,
        name=name,
        amount=amount,
        category=category,
        status=status,
        payment_mode=payment_mode,
        date=date or now,
        notes=notes,
    )
    db.add(expense)
    db.flush()

    day_start = now.replace(hour=0, minute=0, second=0, microsecond=0)
    day_end = day_start + timedelta(days=1)
    coins_awarded = 0
    if day_start <= expense.date < day_end:
        # one award per day, even if today's expenses are deleted and re-added
        granted = db.query(models.User).filter(
            models.User.id == user_id,
            or_(models.User.last_expense_reward.is_(None), models.User.last_expense_reward < day_start),
        ).update(
            {
                models.User.last_expense_reward: day_start,
                models.User.coins: models.User.coins + rewards.FIRST_EXPENSE_OF_DAY_COINS,
            },
            synchronize_session=False,
        )
        if granted:
            coins_awarded = rewards.FIRST_EXPENSE_OF_DAY_COINS

    db.commit()
    db.refresh(expense)
    return expense, coins_awarded

def update_expense(db: Session, expense: models.Expense, fields: dict):
    for key, value in fields.items():
        if value is None and key != "notes":
            continue
        setattr(expense, key, value)
    db.commit()
    db.refresh(expense)
    return expense

def delete_expense(db: Session, expense: models.Expense):
    db.delete(expense)
    db.commit()


# -----------------------------
# Savings
# -----------------------------
def list_savings(db: Session, user_id: int, start: datetime = None, end: datetime = None):
    query = db.query(models.Saving).filter(models.Saving.user_id == user_id)
    if start is not None:
        query = query.filter(models.Saving.date >= start)
    if end is not None:
        query = query.filter(models.Saving.date < end)
    return query.order_by(models.Saving.date.desc(), models.Saving.id.desc()).all()

def get_saving(db: Session, user_id: int, saving_id: int):
    return db.query(models.Saving).filter(
        models.Saving.id == saving_id,
        models.Saving.user_id == user_id,
    ).first()

def add_saving(db: Session, user_id: int, amount: int, source: str, now: datetime,
               date: datetime = None, notes: str = None):
    """Save a savings entry; piggy-bank deposits earn coins. Returns (saving, coins_awarded)."""
    saving = models.Saving(user_id=user_id, amount=amount, source=source, date=date or now, notes=notes)
    db.add(saving)
    coins_awarded = 0
    if amount > 0:
        coins_awarded = award_coins(db, user_id, rewards.saving_coins(source))
    db.commit()
    db.refresh(saving)
    return saving, coins_awarded

def delete_saving(db: Session, saving: models.Saving):
    db.delete(saving)
    db.commit()


# -----------------------------
# Goals
# -----------------------------
def list_goals(db: Session, user_id: int):
    return db.query(models.Goal).filter(models.Goal.user_id == user_id).order_by(models.Goal.target_date).all()

def get_goal(db: Session, user_id: int, goal_id: int):
    return db.query(models.Goal).filter(
        models.Goal.id == goal_id,
        models.Goal.user_id == user_id,
    ).first()

def create_goal(db: Session, user_id: int, name: str, target_amount: int, target_date: datetime,
                now: datetime, start_date: datetime = None):
    goal = models.Goal(
        user_id=user_id,
        name=name,
        target_amount=target_amount,
        current_amount=0,
        start_date=start_date or now,
        target_date=target_date,
        completed=False,
    )
    db.add(goal)
    db.commit()
    db.refresh(goal)
    return goal

def _complete_goal(db: Session, goal: models.Goal, now: datetime, require_funded: bool) -> int:
    """
    Flip ``completed`` false -> true with a conditional UPDATE. Only the
    statement that actually flips the row grants the reward, so it is granted
    once. Does not commit.
    """
    query = db.query(models.Goal).filter(
        models.Goal.id == goal.id,
        models.Goal.completed.is_(False),
    )
    if require_funded:
        query = query.filter(models.Goal.current_amount >= models.Goal.target_amount)
    flipped = query.update(
        {models.Goal.completed: True, models.Goal.completed_at: now},
        synchronize_session=False,
    )
    if not flipped:
        return 0

    coins = award_coins(db, goal.user_id, rewards.GOAL_COMPLETED_COINS)
    create_achievement(
        db,
        user_id=goal.user_id,
        type="goal_met",
        name=f"Goal Achieved: {goal.name}",
        description=f"You've successfully reached your goal of {goal.name}!",
        date=now,
        coins_awarded=coins,
    )
    logger.info("Goal %s completed for user %s", goal.id, goal.user_id)
    return coins

def update_goal(db: Session, goal: models.Goal, fields: dict, now: datetime):
    """Edit a goal. ``completed`` can only move to true. Returns (goal, coins_awarded)."""
    mark_complete = fields.pop("completed", None) is True
    for key, value in fields.items():
        if value is not None:
            setattr(goal, key, value)
    db.flush()

    coins = 0
    if mark_complete:
        coins = _complete_goal(db, goal, now, require_funded=False)
    elif "target_amount" in fields:
        coins = _complete_goal(db, goal, now, require_funded=True)
    db.commit()
    db.refresh(goal)
    return goal, coins

def allocate_to_goal(db: Session, goal: models.Goal, amount: int, now: datetime):
    """
    Move ``amount`` from the savings pool into the goal: a negative
    goal_allocation saving plus a relative increment of current_amount.
    Returns (goal, coins_awarded).
    """
    db.add(models.Saving(
        user_id=goal.user_id,
        amount=-amount,
        source="goal_allocation",
        date=now,
        notes=f"Allocated to goal: {goal.name}",
    ))
    db.query(models.Goal).filter(models.Goal.id == goal.id).update(
        {models.Goal.current_amount: models.Goal.current_amount + amount},
        synchronize_session=False,
    )
    coins = _complete_goal(db, goal, now, require_funded=True)
    db.commit()
    db.refresh(goal)
    logger.info("Allocated %s to goal %s", format_currency(amount), goal.id)
    return goal, coins

def delete_goal(db: Session, goal: models.Goal):
    db.delete(goal)
    db.commit()


# -----------------------------
# Weekly savings
# -----------------------------
def weekly_savings_overview(db: Session, user_id: int, now: datetime, weeks: int = targets.DEFAULT_HISTORY_WEEKS):
    current_start, current_end = targets.week_bounds(now)
    window_start = current_start - timedelta(weeks=weeks - 1)
    expenses = list_expenses(db, user_id, window_start, current_end)
    savings = list_savings(db, user_id, window_start, current_end)

    history = targets.weekly_history(expenses, savings, now, weeks)
    current = targets.weekly_target([e for e in expenses if e.date >= current_start])
    current_actual = history[-1]["actual"] if history else 0
    return {
        "weeks": history,
        "current_target": current["target"],
        "avoidable_total": current["avoidable_total"],
        "unnecessary_total": current["unnecessary_total"],
        "current_actual": current_actual,
        "percentage_coins": rewards.weekly_savings_coins(current_actual, current["target"]),
    }

def _weekly_achievement(db: Session, user_id: int, week_start: datetime):
    return db.query(models.Achievement).filter(
        models.Achievement.user_id == user_id,
        models.Achievement.type == "savings_goal",
        models.Achievement.week_start == week_start,
    ).first()

def reconcile_weekly_savings(db: Session, user_id: int, now: datetime, week_start: datetime = None):
    """
    Persist the weekly savings-percentage award for a finished week
    (default: last week). At most one award per week, enforced by the
    achievements unique constraint on (user_id, type, week_start).
    Raises ValueError when the week has not ended yet.
    """
    if week_start is None:
        week_start = targets.week_bounds(now)[0] - timedelta(weeks=1)
    start, end = targets.week_bounds(week_start)
    if end > now:
        raise ValueError("Week has not finished yet")

    target = targets.weekly_target(list_expenses(db, user_id, start, end))["target"]
    actual = sum(s.amount for s in list_savings(db, user_id, start, end))
    result = {"week_start": start, "target": target, "actual": actual, "coins_awarded": 0, "achievement": None}

    existing = _weekly_achievement(db, user_id, start)
    if existing:
        result["achievement"] = existing
        return result

    coins = rewards.weekly_savings_coins(actual, target)
    if coins == 0:
        return result

    # insert first: a concurrent reconcile of the same week fails here before any coins move
    achievement = create_achievement(
        db,
        user_id=user_id,
        type="savings_goal",
        name=f"Weekly Savings: week of {start:%Y-%m-%d}",
        description=f"You saved {format_currency(actual)} against a target of {format_currency(target)}.",
        date=now,
        coins_awarded=coins,
        week_start=start,
    )
    try:
        db.flush()
    except IntegrityError:
        db.rollback()
        logger.info("Week of %s already reconciled for user %s", f"{start:%Y-%m-%d}", user_id)
        result["achievement"] = _weekly_achievement(db, user_id, start)
        return result

    award_coins(db, user_id, coins)
    db.commit()
    db.refresh(achievement)
    result["coins_awarded"] = coins
    result["achievement"] = achievement
    return result


# -----------------------------
# Predictions
# -----------------------------
def list_predictions(db: Session, user_id: int):
    return db.query(models.Prediction)\
             .filter(models.Prediction.user_id == user_id)\
             .order_by(models.Prediction.month)\
             .all()

def forecast_next_total(monthly: pd.Series) -> int:
    """
    Next month's total from a chronological series of monthly totals.
    ARIMA with six or more months, linear trend with two or more, else the last value.
    """
    values = monthly.astype(float).to_numpy()
    predicted = None

    if len(values) >= 6:
        try:
            model_fit = ARIMA(values, order=(1, 1, 1)).fit()
            predicted = float(np.asarray(model_fit.forecast(steps=1))[0])
        except Exception as e:
            logger.warning("ARIMA forecast failed, falling back to linear trend: %s", e)

    if predicted is None or not np.isfinite(predicted):
        if len(values) >= 2:
            X = np.arange(len(values)).reshape(-1, 1)
            model = LinearRegression().fit(X, values)
            predicted = float(model.predict(np.array([[len(values)]]))[0])
        else:
            predicted = float(values[-1])

    return max(0, round_half_away(predicted))

def generate_prediction(db: Session, user_id: int, now: datetime):
    """Forecast next month's spending and upsert it. Returns None without expense history."""
    expenses = list_expenses(db, user_id, end=now)
    if not expenses:
        return None

    df = pd.DataFrame([{"date": e.date, "amount": e.amount, "category": e.category} for e in expenses])
    df["month"] = pd.to_datetime(df["date"]).dt.to_period("M")

    # prefer finished months; the running month is partial
    current_period = pd.Period(now, freq="M")
    finished = df[df["month"] < current_period]
    if not finished.empty:
        df = finished

    monthly = df.groupby("month")["amount"].sum().sort_index()
    full_range = pd.period_range(monthly.index.min(), monthly.index.max(), freq="M")
    monthly = monthly.reindex(full_range, fill_value=0)

    predicted = forecast_next_total(monthly)
    n_months = len(monthly)
    categories = {
        str(cat): div_round(int(amount), n_months)
        for cat, amount in df.groupby("category")["amount"].sum().items()
    }

    month_key = (now + relativedelta(months=1)).strftime("%Y-%m")
    prediction = db.query(models.Prediction).filter(
        models.Prediction.user_id == user_id,
        models.Prediction.month == month_key,
    ).first()
    if prediction:
        prediction.predicted_amount = predicted
        prediction.categories = categories
    else:
        prediction = models.Prediction(
            user_id=user_id,
            month=month_key,
            predicted_amount=predicted,
            categories=categories,
        )
        db.add(prediction)

    _backfill_actuals(db, user_id, now)
    db.commit()
    db.refresh(prediction)
    return prediction

def _backfill_actuals(db: Session, user_id: int, now: datetime):
    """Fill actual_amount for predictions whose month is over."""
    current_key = now.strftime("%Y-%m")
    pending = db.query(models.Prediction).filter(
        models.Prediction.user_id == user_id,
        models.Prediction.actual_amount.is_(None),
        models.Prediction.month < current_key,
    ).all()
    for p in pending:
        start = datetime.strptime(p.month, "%Y-%m")
        end = start + relativedelta(months=1)
        p.actual_amount = sum(e.amount for e in list_expenses(db, user_id, start, end))
