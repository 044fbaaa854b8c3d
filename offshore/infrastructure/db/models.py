"""
SQLAlchemy ORM models (budgets, cards, expenses, incomes, preferences)
"""
from decimal import Decimal
from datetime import datetime
from sqlalchemy import (
    String, DateTime, Integer, Boolean, Numeric, ForeignKey, Table, Column, Index, func, false,
)
from sqlalchemy.orm import Mapped, mapped_column

from offshore.infrastructure.db.session import Base


# Card <-> Budget is many-to-many: a card can fund several budgets
budget_cards = Table(
    "budget_cards",
    Base.metadata,
    Column("budget_id", Integer, ForeignKey("budgets.id", ondelete="CASCADE"), primary_key=True),
    Column("card_id", Integer, ForeignKey("cards.id", ondelete="CASCADE"), primary_key=True),
)


class Budget(Base):
    """
    Named, date-bounded planning container
    """
    __tablename__ = "budgets"

    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    start_date: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    end_date: Mapped[datetime] = mapped_column(DateTime, nullable=False)

    # Recurrence of the budget itself ("monthly", "biweekly", ...)
    is_recurring: Mapped[bool] = mapped_column(Boolean, nullable=False, server_default=false())
    recurrence_type: Mapped[str | None] = mapped_column(String(32), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now(), nullable=False)


class Card(Base):
    """
    Payment instrument; variable expenses hang off a card, not a budget
    """
    __tablename__ = "cards"

    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now(), nullable=False)


class ExpenseCategory(Base):
    __tablename__ = "expense_categories"

    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    color: Mapped[str | None] = mapped_column(String(16), nullable=True)  # "#RRGGBB"


class PlannedExpense(Base):
    """
    Planned expense attached to a budget.

    Global presets (is_global=True) have no budget; instances created from a
    preset point back to it through global_template_id.
    """
    __tablename__ = "planned_expenses"

    id: Mapped[int] = mapped_column(primary_key=True)
    budget_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("budgets.id", ondelete="CASCADE"), nullable=True, index=True
    )
    description: Mapped[str] = mapped_column(String(255), nullable=False, server_default="")
    category_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("expense_categories.id", ondelete="SET NULL"), nullable=True
    )
    planned_amount: Mapped[Decimal] = mapped_column(Numeric(precision=20, scale=2), nullable=False, server_default="0")
    actual_amount: Mapped[Decimal] = mapped_column(Numeric(precision=20, scale=2), nullable=False, server_default="0")
    transaction_date: Mapped[datetime] = mapped_column(DateTime, nullable=False)

    is_global: Mapped[bool] = mapped_column(Boolean, nullable=False, server_default=false())
    global_template_id: Mapped[int | None] = mapped_column(Integer, nullable=True, index=True)

    __table_args__ = (
        Index("ix_planned_budget_date", "budget_id", "transaction_date"),
    )


class UnplannedExpense(Base):
    """
    Variable (ad-hoc) expense charged to a card
    """
    __tablename__ = "unplanned_expenses"

    id: Mapped[int] = mapped_column(primary_key=True)
    card_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("cards.id", ondelete="CASCADE"), nullable=False, index=True
    )
    description: Mapped[str] = mapped_column(String(255), nullable=False, server_default="")
    category_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("expense_categories.id", ondelete="SET NULL"), nullable=True
    )
    amount: Mapped[Decimal] = mapped_column(Numeric(precision=20, scale=2), nullable=False)
    transaction_date: Mapped[datetime] = mapped_column(DateTime, nullable=False)

    __table_args__ = (
        Index("ix_unplanned_card_date", "card_id", "transaction_date"),
    )


class Income(Base):
    """
    Income event. Not linked to a budget: it counts towards every budget
    whose window contains its date.

    A recurring income is stored as a series: the first occurrence carries
    the recurrence and every later occurrence points at it via parent_id.
    """
    __tablename__ = "incomes"

    id: Mapped[int] = mapped_column(primary_key=True)
    source: Mapped[str] = mapped_column(String(255), nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(precision=20, scale=2), nullable=False)
    date: Mapped[datetime] = mapped_column(DateTime, nullable=False, index=True)
    is_planned: Mapped[bool] = mapped_column(Boolean, nullable=False, server_default=false())
    recurrence: Mapped[str | None] = mapped_column(String(32), nullable=True)
    recurrence_end_date: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    parent_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("incomes.id", ondelete="CASCADE"), nullable=True, index=True
    )


class AppPreference(Base):
    """
    User preferences (key/value), e.g. budget_details.default_sort
    """
    __tablename__ = "app_preferences"

    key: Mapped[str] = mapped_column(String(128), primary_key=True)
    value: Mapped[str] = mapped_column(String(255), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, server_default=func.now(), onupdate=func.now(), nullable=False
    )
