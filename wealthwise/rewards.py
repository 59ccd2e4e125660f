# wealthwise/rewards.py
"""
Coin rules and the login streak state machine.

Everything here is pure: callers read the user's state, ask for the next
state, then persist it with a relative update (see ``crud``).
"""
from datetime import datetime, timedelta
from typing import NamedTuple, Optional

from .money import div_round

# Daily login
DAILY_LOGIN_COINS = 15
STREAK_BONUS_COINS = 20
STREAK_BONUS_EVERY = 5
LOGIN_GUARD_HOURS = 20
STREAK_BREAK_HOURS = 48

# Event rewards
FIRST_EXPENSE_OF_DAY_COINS = 10
PIGGY_BANK_COINS = 5
PIGGY_BANK_SOURCE = "piggy_bank"
GOAL_COMPLETED_COINS = 100
WEEKLY_SAVINGS_MAX_COINS = 100


class LoginTransition(NamedTuple):
    streak: int
    coins_awarded: int
    last_login: Optional[datetime]
    changed: bool


def next_login_state(streak: int, last_login: Optional[datetime], now: datetime) -> LoginTransition:
    """
    Streak transition for one successful login.

    - within LOGIN_GUARD_HOURS of the last login: nothing changes
    - before STREAK_BREAK_HOURS: streak + 1, daily coins, bonus on every 5th day
    - otherwise (or first login ever): streak restarts at 1 with daily coins
    """
    if last_login is not None:
        elapsed = now - last_login
        if elapsed <= timedelta(hours=LOGIN_GUARD_HOURS):
            return LoginTransition(streak, 0, last_login, False)
        if elapsed < timedelta(hours=STREAK_BREAK_HOURS):
            new_streak = streak + 1
            coins = DAILY_LOGIN_COINS
            if new_streak % STREAK_BONUS_EVERY == 0:
                coins += STREAK_BONUS_COINS
            return LoginTransition(new_streak, coins, now, True)

    return LoginTransition(1, DAILY_LOGIN_COINS, now, True)


def saving_coins(source: str) -> int:
    return PIGGY_BANK_COINS if source == PIGGY_BANK_SOURCE else 0


def weekly_savings_coins(actual: int, target: int) -> int:
    """round(100 * min(actual / target, 1)); 0 when there is no target or nothing saved."""
    if target <= 0 or actual <= 0:
        return 0
    return min(div_round(WEEKLY_SAVINGS_MAX_COINS * actual, target), WEEKLY_SAVINGS_MAX_COINS)
