"""
Tests for the SQLAlchemy record query gateway
"""
import pytest
from datetime import date, datetime
from decimal import Decimal

from sqlalchemy.orm import sessionmaker

from offshore.domain.category import UNCATEGORIZED, Category
from offshore.domain.window import normalize_window
from offshore.errors import FetchError, InvariantViolation, NotFoundError
from offshore.infrastructure.db.gateway import SqlRecordQueryGateway
from offshore.infrastructure.db.models import (
    Budget, Card, ExpenseCategory, Income, PlannedExpense, UnplannedExpense, budget_cards,
)
from offshore.infrastructure.db.session import build_engine

_D = Decimal
_JAN = normalize_window(date(2025, 1, 1), date(2025, 1, 31))


@pytest.fixture
def seeded(db_session):
    food = ExpenseCategory(name="Food", color="#00FF00")
    visa, amex, other = Card(name="Visa"), Card(name="Amex"), Card(name="Other")
    jan = Budget(name="January", start_date=datetime(2025, 1, 1), end_date=datetime(2025, 1, 31))
    feb = Budget(name="February", start_date=datetime(2025, 2, 1), end_date=datetime(2025, 2, 28))
    db_session.add_all([food, visa, amex, other, jan, feb])
    db_session.flush()
    db_session.execute(budget_cards.insert(), [
        {"budget_id": jan.id, "card_id": visa.id},
        {"budget_id": jan.id, "card_id": amex.id},
    ])
    db_session.add_all([
        PlannedExpense(budget_id=jan.id, description="Rent", planned_amount=_D("1000"), actual_amount=_D("1000"),
                       transaction_date=datetime(2025, 1, 1)),
        PlannedExpense(budget_id=jan.id, description="Groceries", planned_amount=_D("200"),
                       actual_amount=_D("180"), transaction_date=datetime(2025, 1, 31, 18, 0),
                       category_id=food.id),
        PlannedExpense(budget_id=feb.id, description="Rent", planned_amount=_D("1000"), actual_amount=_D("0"),
                       transaction_date=datetime(2025, 1, 15)),
        PlannedExpense(budget_id=jan.id, description="Preset", planned_amount=_D("9"), actual_amount=_D("0"),
                       transaction_date=datetime(2025, 1, 15), is_global=True),
        UnplannedExpense(card_id=visa.id, description="Lunch", amount=_D("12.50"),
                         transaction_date=datetime(2025, 1, 8, 12, 30), category_id=food.id),
        UnplannedExpense(card_id=amex.id, description="Taxi", amount=_D("30"),
                         transaction_date=datetime(2025, 1, 9)),
        UnplannedExpense(card_id=other.id, description="Not ours", amount=_D("99"),
                         transaction_date=datetime(2025, 1, 9)),
        UnplannedExpense(card_id=visa.id, description="February", amount=_D("5"),
                         transaction_date=datetime(2025, 2, 1)),
        Income(source="Salary", amount=_D("3000"), date=datetime(2025, 1, 3), is_planned=True),
        Income(source="Salary", amount=_D("2900"), date=datetime(2025, 1, 31, 23, 0), is_planned=False),
        Income(source="Bonus", amount=_D("500"), date=datetime(2025, 2, 1), is_planned=False),
    ])
    db_session.commit()
    return {"jan": jan.id, "feb": feb.id, "visa": visa.id, "amex": amex.id, "food": food.id}


@pytest.fixture
def gateway(session_factory):
    return SqlRecordQueryGateway(session_factory)


class TestFetchBudget:
    def test_header_with_cards(self, gateway, seeded):
        budget = gateway.fetch_budget(seeded["jan"])
        assert budget.name == "January"
        assert budget.start_date == datetime(2025, 1, 1)
        assert budget.card_ids == frozenset({seeded["visa"], seeded["amex"]})

    def test_missing(self, gateway, seeded):
        with pytest.raises(NotFoundError):
            gateway.fetch_budget(999)


class TestPlannedExpenses:
    def test_scoped_to_budget_and_window(self, gateway, seeded):
        rows = gateway.fetch_planned_expenses(seeded["jan"], _JAN)
        assert [r.description for r in rows] == ["Groceries", "Rent"]
        assert all(not r.is_global for r in rows)

    def test_category_mapping(self, gateway, seeded):
        rows = {r.description: r for r in gateway.fetch_planned_expenses(seeded["jan"], _JAN)}
        assert rows["Groceries"].category == Category(id=seeded["food"], name="Food", color="#00FF00")
        assert rows["Rent"].category is UNCATEGORIZED

    def test_same_day_window_includes_whole_day(self, gateway, seeded):
        window = normalize_window(date(2025, 1, 31), date(2025, 1, 31))
        rows = gateway.fetch_planned_expenses(seeded["jan"], window)
        assert [r.description for r in rows] == ["Groceries"]


class TestVariableExpenses:
    def test_scoped_to_cards(self, gateway, seeded):
        rows = gateway.fetch_variable_expenses({seeded["visa"], seeded["amex"]}, _JAN)
        assert sorted(r.description for r in rows) == ["Lunch", "Taxi"]
        assert sum(r.amount for r in rows) == _D("42.50")

    def test_empty_scope_never_queries(self):
        def _no_session():
            raise AssertionError("must not open a session")

        assert SqlRecordQueryGateway(_no_session).fetch_variable_expenses(frozenset(), _JAN) == []

    def test_missing_scope_is_programmer_error(self, gateway):
        with pytest.raises(InvariantViolation):
            gateway.fetch_variable_expenses(None, _JAN)


class TestIncomes:
    def test_date_scoped(self, gateway, seeded):
        rows = gateway.fetch_incomes(seeded["jan"], _JAN)
        assert [(r.amount, r.is_planned) for r in rows] == [(_D("3000"), True), (_D("2900"), False)]


def test_storage_failure_raises_fetch_error(tmp_path):
    engine = build_engine(f"sqlite:///{tmp_path / 'empty.db'}")
    try:
        gateway = SqlRecordQueryGateway(sessionmaker(bind=engine))
        with pytest.raises(FetchError) as exc_info:
            gateway.fetch_planned_expenses(1, _JAN)
        assert exc_info.value.operation == "planned_expenses"
    finally:
        engine.dispose()
