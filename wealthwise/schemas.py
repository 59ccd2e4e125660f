# wealthwise/schemas.py
from datetime import datetime, timezone
from typing import Annotated, Literal

from pydantic import AfterValidator, BaseModel, ConfigDict, Field, constr


def to_naive_utc(value: datetime | None) -> datetime | None:
    # the database stores naive UTC timestamps; query parameters go through here too
    if value is not None and value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


Timestamp = Annotated[datetime, AfterValidator(to_naive_utc)]
Tier = Literal["necessary", "avoidable", "unnecessary"]
PaymentMode = Literal["upi", "debit_card", "credit_card", "cash", "wallet"]

# All amounts are integer paise.
PositiveAmount = Annotated[int, Field(gt=0, le=10_000_000_000)]


# -----------------------------
# User Schemas
# -----------------------------
class UserCreate(BaseModel):
    username: constr(strip_whitespace=True, min_length=1, max_length=50)
    password: constr(min_length=6)
    name: constr(strip_whitespace=True, min_length=1, max_length=100)


class UserLogin(BaseModel):
    username: constr(strip_whitespace=True, min_length=1)
    password: constr(min_length=1)


class UserOut(BaseModel):
    id: int
    username: str
    name: str
    coins: int
    streak: int
    last_login: datetime | None = None

    model_config = ConfigDict(from_attributes=True)


class LoginOut(UserOut):
    coins_awarded: int = 0


# -----------------------------
# Expense Schemas
# -----------------------------
class ExpenseCreate(BaseModel):
    user_id: int
    name: constr(strip_whitespace=True, min_length=1, max_length=255)
    amount: PositiveAmount
    date: Timestamp | None = None
    status: Tier | None = None       # auto-classified when omitted
    category: constr(strip_whitespace=True, to_lower=True, min_length=1, max_length=50) | None = None
    payment_mode: PaymentMode
    notes: constr(max_length=500) | None = None


class ExpenseUpdate(BaseModel):
    name: constr(strip_whitespace=True, min_length=1, max_length=255) | None = None
    amount: PositiveAmount | None = None
    date: Timestamp | None = None
    status: Tier | None = None
    category: constr(strip_whitespace=True, to_lower=True, min_length=1, max_length=50) | None = None
    payment_mode: PaymentMode | None = None
    notes: constr(max_length=500) | None = None


class ExpenseOut(BaseModel):
    id: int
    user_id: int
    name: str
    amount: int
    date: datetime
    status: Tier
    category: str
    payment_mode: PaymentMode
    notes: str | None = None

    model_config = ConfigDict(from_attributes=True)


class ExpenseCreated(BaseModel):
    expense: ExpenseOut
    coins_awarded: int = 0
    coins: int


# -----------------------------
# Saving Schemas
# -----------------------------
class SavingCreate(BaseModel):
    user_id: int
    amount: int = Field(..., ge=-10_000_000_000, le=10_000_000_000)
    date: Timestamp | None = None
    source: constr(strip_whitespace=True, min_length=1, max_length=50)
    notes: constr(max_length=500) | None = None


class SavingOut(BaseModel):
    id: int
    user_id: int
    amount: int
    date: datetime
    source: str
    notes: str | None = None

    model_config = ConfigDict(from_attributes=True)


class SavingCreated(BaseModel):
    saving: SavingOut
    coins_awarded: int = 0
    coins: int


class WeekRecord(BaseModel):
    week_start: datetime
    week_end: datetime
    target: int
    actual: int


class WeeklySavingsOut(BaseModel):
    weeks: list[WeekRecord]
    current_target: int
    avoidable_total: int
    unnecessary_total: int
    current_actual: int
    percentage_coins: int   # what reconciling the current week would award now


# -----------------------------
# Goal Schemas
# -----------------------------
class GoalCreate(BaseModel):
    user_id: int
    name: constr(strip_whitespace=True, min_length=1, max_length=100)
    target_amount: PositiveAmount
    start_date: Timestamp | None = None
    target_date: Timestamp


class GoalUpdate(BaseModel):
    name: constr(strip_whitespace=True, min_length=1, max_length=100) | None = None
    target_amount: PositiveAmount | None = None
    target_date: Timestamp | None = None
    completed: bool | None = None


class GoalOut(BaseModel):
    id: int
    user_id: int
    name: str
    target_amount: int
    current_amount: int
    start_date: datetime
    target_date: datetime
    completed: bool
    completed_at: datetime | None = None

    model_config = ConfigDict(from_attributes=True)


class GoalAllocation(BaseModel):
    amount: PositiveAmount


class GoalChanged(BaseModel):
    goal: GoalOut
    coins_awarded: int = 0
    coins: int


# -----------------------------
# Achievement / Prediction Schemas
# -----------------------------
class AchievementOut(BaseModel):
    id: int
    user_id: int
    type: str
    name: str
    description: str
    date: datetime
    coins_awarded: int

    model_config = ConfigDict(from_attributes=True)


class ReconcileOut(BaseModel):
    week_start: datetime
    target: int
    actual: int
    coins_awarded: int
    coins: int
    achievement: AchievementOut | None = None


class PredictionOut(BaseModel):
    id: int
    user_id: int
    month: constr(pattern=r"^\d{4}-\d{2}$")
    predicted_amount: int
    actual_amount: int | None = None
    categories: dict[str, int]

    model_config = ConfigDict(from_attributes=True)


# -----------------------------
# AI Schemas
# -----------------------------
class CategorizeIn(BaseModel):
    expense_name: constr(strip_whitespace=True, min_length=1, max_length=255)
