# wealthwise/models.py
from sqlalchemy import (
    Column, Integer, String, Boolean, DateTime, ForeignKey, JSON, Enum, UniqueConstraint, func
)
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()

EXPENSE_STATUSES = ("necessary", "avoidable", "unnecessary")
PAYMENT_MODES = ("upi", "debit_card", "credit_card", "cash", "wallet")


class User(Base):
    __tablename__ = "users"
    id = Column(Integer, primary_key=True, index=True)
    username = Column(String, unique=True, index=True, nullable=False)
    password = Column(String, nullable=False)
    name = Column(String, nullable=False)
    coins = Column(Integer, nullable=False, default=0)
    streak = Column(Integer, nullable=False, default=0)
    last_login = Column(DateTime, nullable=True)
    last_expense_reward = Column(DateTime, nullable=True)  # day start of the last first-expense award

    expenses = relationship("Expense", back_populates="user", cascade="all, delete-orphan")
    savings = relationship("Saving", back_populates="user", cascade="all, delete-orphan")
    goals = relationship("Goal", back_populates="user", cascade="all, delete-orphan")
    achievements = relationship("Achievement", back_populates="user", cascade="all, delete-orphan")
    predictions = relationship("Prediction", back_populates="user", cascade="all, delete-orphan")


class Expense(Base):
    __tablename__ = "expenses"
    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    name = Column(String, nullable=False)
    amount = Column(Integer, nullable=False)  # paise
    date = Column(DateTime, nullable=False, server_default=func.now())
    status = Column(Enum(*EXPENSE_STATUSES, name="expense_status"), nullable=False)
    category = Column(String, nullable=False)
    payment_mode = Column(Enum(*PAYMENT_MODES, name="payment_mode"), nullable=False)
    notes = Column(String)

    user = relationship("User", back_populates="expenses")


class Saving(Base):
    __tablename__ = "savings"
    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    amount = Column(Integer, nullable=False)  # paise, negative for goal allocations
    date = Column(DateTime, nullable=False, server_default=func.now())
    source = Column(String, nullable=False)  # piggy_bank / weekly_goal / goal_allocation ...
    notes = Column(String)

    user = relationship("User", back_populates="savings")


class Goal(Base):
    __tablename__ = "goals"
    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    name = Column(String, nullable=False)
    target_amount = Column(Integer, nullable=False)
    current_amount = Column(Integer, nullable=False, default=0)
    start_date = Column(DateTime, nullable=False, server_default=func.now())
    target_date = Column(DateTime, nullable=False)
    completed = Column(Boolean, nullable=False, default=False)
    completed_at = Column(DateTime, nullable=True)

    user = relationship("User", back_populates="goals")


class Achievement(Base):
    __tablename__ = "achievements"
    # NULL week_start (goal_met rows) never collides
    __table_args__ = (UniqueConstraint("user_id", "type", "week_start", name="uq_achievements_user_week"),)
    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    type = Column(String, nullable=False)  # goal_met / savings_goal
    name = Column(String, nullable=False)
    description = Column(String, nullable=False)
    date = Column(DateTime, nullable=False, server_default=func.now())
    coins_awarded = Column(Integer, nullable=False, default=0)
    week_start = Column(DateTime, nullable=True)  # set for weekly savings awards

    user = relationship("User", back_populates="achievements")


class Prediction(Base):
    __tablename__ = "predictions"
    __table_args__ = (UniqueConstraint("user_id", "month", name="uq_predictions_user_month"),)
    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    month = Column(String, nullable=False)  # YYYY-MM
    predicted_amount = Column(Integer, nullable=False)
    actual_amount = Column(Integer, nullable=True)
    categories = Column(JSON, nullable=False, default=dict)

    user = relationship("User", back_populates="predictions")
