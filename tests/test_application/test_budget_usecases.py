"""
Tests for budget, card and category use cases
"""
import pytest
from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import select

from offshore.application.budgets import (
    CreateBudgetUseCase, CreatePeriodBudgetUseCase, UpdateBudgetUseCase, DeleteBudgetUseCase,
    BudgetValidationError, budget_dates_for,
)
from offshore.application.cards import (
    CreateCardUseCase, RenameCardUseCase, AttachCardUseCase, DetachCardUseCase,
    DeleteCardUseCase, CardValidationError,
)
from offshore.application.categories import (
    CreateCategoryUseCase, UpdateCategoryUseCase, DeleteCategoryUseCase, CategoryValidationError,
)
from offshore.domain.period import BudgetPeriod, PeriodCalendar
from offshore.errors import NotFoundError
from offshore.infrastructure.changes import ChangeBroadcaster
from offshore.infrastructure.db.models import (
    Budget, Card, ExpenseCategory, PlannedExpense, UnplannedExpense, budget_cards,
)

_D = Decimal


def _card_ids(db, budget_id):
    return set(db.scalars(select(budget_cards.c.card_id).where(budget_cards.c.budget_id == budget_id)).all())


def _add_planned(db, budget_id, amount="100", day=5, category_id=None):
    pe = PlannedExpense(budget_id=budget_id, description="Rent", planned_amount=_D(amount),
                        actual_amount=_D("0"), transaction_date=datetime(2025, 1, day), category_id=category_id)
    db.add(pe)
    db.commit()
    return pe.id


def _add_unplanned(db, card_id, amount="10", category_id=None):
    ue = UnplannedExpense(card_id=card_id, description="Lunch", amount=_D(amount),
                          transaction_date=datetime(2025, 1, 8), category_id=category_id)
    db.add(ue)
    db.commit()
    return ue.id


@pytest.fixture
def card_id(db_session):
    return CreateCardUseCase(db_session).execute("Visa")


@pytest.fixture
def budget_id(db_session, card_id):
    return CreateBudgetUseCase(db_session).execute("January", date(2025, 1, 1), date(2025, 1, 31), [card_id])


class TestCreateBudget:
    def test_creates_with_cards(self, db_session, budget_id, card_id):
        budget = db_session.get(Budget, budget_id)
        assert budget.name == "January"
        assert budget.start_date == datetime(2025, 1, 1)
        assert budget.end_date == datetime(2025, 1, 31)
        assert budget.is_recurring is False
        assert _card_ids(db_session, budget_id) == {card_id}

    def test_recurrence(self, db_session):
        bid = CreateBudgetUseCase(db_session).execute("Pay cycle", date(2025, 1, 6), date(2025, 1, 19),
                                                      recurrence_type="bi-weekly")
        budget = db_session.get(Budget, bid)
        assert budget.is_recurring is True
        assert budget.recurrence_type == "biweekly"

    @pytest.mark.parametrize("name,start,end", [
        ("   ", date(2025, 1, 1), date(2025, 1, 31)),
        ("January", date(2025, 2, 1), date(2025, 1, 31)),
    ])
    def test_validation(self, db_session, name, start, end):
        with pytest.raises(BudgetValidationError):
            CreateBudgetUseCase(db_session).execute(name, start, end)

    def test_unknown_recurrence(self, db_session):
        with pytest.raises(BudgetValidationError):
            CreateBudgetUseCase(db_session).execute("X", date(2025, 1, 1), date(2025, 1, 2), recurrence_type="custom")

    def test_missing_card(self, db_session):
        with pytest.raises(NotFoundError):
            CreateBudgetUseCase(db_session).execute("X", date(2025, 1, 1), date(2025, 1, 2), [999])

    def test_budget_dates_for_period(self):
        assert budget_dates_for(BudgetPeriod.MONTHLY, date(2025, 2, 14)) == (
            datetime(2025, 2, 1), datetime(2025, 2, 28),
        )

    def test_period_budget_monthly(self, db_session):
        budget_id = CreatePeriodBudgetUseCase(db_session).execute("monthly", date(2025, 2, 14))
        budget = db_session.get(Budget, budget_id)
        assert budget.name == "February 2025"
        assert (budget.start_date, budget.end_date) == (datetime(2025, 2, 1), datetime(2025, 2, 28))
        assert budget.is_recurring
        assert budget.recurrence_type == "monthly"

    def test_period_budget_week_starts_on_sunday(self, db_session):
        use_case = CreatePeriodBudgetUseCase(db_session, calendar=PeriodCalendar(first_weekday=6))
        budget_id = use_case.execute(BudgetPeriod.WEEKLY, date(2025, 1, 15), name="Week 3")
        budget = db_session.get(Budget, budget_id)
        assert budget.name == "Week 3"
        assert (budget.start_date, budget.end_date) == (datetime(2025, 1, 12), datetime(2025, 1, 18))

    def test_period_budget_rejects_custom(self, db_session):
        with pytest.raises(BudgetValidationError):
            CreatePeriodBudgetUseCase(db_session).execute(BudgetPeriod.CUSTOM, date(2025, 1, 1))


class TestUpdateBudget:
    def test_rename_and_redate(self, db_session, budget_id):
        UpdateBudgetUseCase(db_session).execute(budget_id, name="Jan 2025", end_date=date(2025, 1, 15))
        budget = db_session.get(Budget, budget_id)
        assert budget.name == "Jan 2025"
        assert budget.end_date == datetime(2025, 1, 15)

    def test_replace_cards(self, db_session, budget_id):
        other = CreateCardUseCase(db_session).execute("Amex")
        UpdateBudgetUseCase(db_session).execute(budget_id, card_ids=[other])
        assert _card_ids(db_session, budget_id) == {other}

    def test_redate_rejects_inverted(self, db_session, budget_id):
        with pytest.raises(BudgetValidationError):
            UpdateBudgetUseCase(db_session).execute(budget_id, start_date=date(2025, 3, 1))


class TestDeleteBudget:
    def test_cascade(self, db_session, budget_id, card_id):
        _add_planned(db_session, budget_id)
        _add_planned(db_session, budget_id, day=20)
        keep_budget = CreateBudgetUseCase(db_session).execute("February", date(2025, 2, 1), date(2025, 2, 28))
        kept_expense = _add_planned(db_session, keep_budget)
        unplanned = _add_unplanned(db_session, card_id)

        DeleteBudgetUseCase(db_session).execute(budget_id)

        assert db_session.get(Budget, budget_id) is None
        assert db_session.scalars(select(PlannedExpense.id)).all() == [kept_expense]
        assert _card_ids(db_session, budget_id) == set()
        assert db_session.get(Card, card_id) is not None
        assert db_session.get(UnplannedExpense, unplanned) is not None

    def test_cascade_is_atomic(self, db_session, session_factory, budget_id, monkeypatch):
        _add_planned(db_session, budget_id)

        def _fail(obj):
            raise RuntimeError("disk full")

        monkeypatch.setattr(db_session, "delete", _fail)
        with pytest.raises(RuntimeError):
            DeleteBudgetUseCase(db_session).execute(budget_id)

        check = session_factory()
        try:
            assert check.get(Budget, budget_id) is not None
            assert len(check.scalars(select(PlannedExpense.id)).all()) == 1
        finally:
            check.close()

    def test_announces_deleted_budget(self, session_factory, budget_id):
        broadcaster = ChangeBroadcaster()
        broadcaster.attach(session_factory)
        events = []
        broadcaster.subscribe(events.append)
        db = session_factory()
        try:
            DeleteBudgetUseCase(db).execute(budget_id)
        finally:
            db.close()
            broadcaster.detach()

        assert len(events) == 1
        assert events[0].deleted_budget_ids == frozenset({budget_id})
        assert {"budget", "planned_expense"} <= events[0].kinds

    def test_missing(self, db_session):
        with pytest.raises(NotFoundError):
            DeleteBudgetUseCase(db_session).execute(12345)


class TestCards:
    def test_rename(self, db_session, card_id):
        RenameCardUseCase(db_session).execute(card_id, "  Visa Gold ")
        assert db_session.get(Card, card_id).name == "Visa Gold"

    def test_empty_name(self, db_session):
        with pytest.raises(CardValidationError):
            CreateCardUseCase(db_session).execute("")

    def test_attach_and_detach(self, db_session, budget_id):
        other = CreateCardUseCase(db_session).execute("Amex")
        assert AttachCardUseCase(db_session).execute(budget_id, other) is True
        assert AttachCardUseCase(db_session).execute(budget_id, other) is False
        assert other in _card_ids(db_session, budget_id)

        assert DetachCardUseCase(db_session).execute(budget_id, other) is True
        assert DetachCardUseCase(db_session).execute(budget_id, other) is False
        assert other not in _card_ids(db_session, budget_id)

    def test_delete_cascades_expenses(self, db_session, budget_id, card_id):
        _add_unplanned(db_session, card_id)
        _add_unplanned(db_session, card_id, amount="20")

        DeleteCardUseCase(db_session).execute(card_id)

        assert db_session.get(Card, card_id) is None
        assert db_session.scalars(select(UnplannedExpense.id)).all() == []
        assert _card_ids(db_session, budget_id) == set()
        assert db_session.get(Budget, budget_id) is not None


class TestCategories:
    def test_create_and_update(self, db_session):
        cid = CreateCategoryUseCase(db_session).execute("Food", "#00ff00")
        assert db_session.get(ExpenseCategory, cid).color == "#00FF00"

        UpdateCategoryUseCase(db_session).execute(cid, "Groceries", None)
        category = db_session.get(ExpenseCategory, cid)
        assert category.name == "Groceries"
        assert category.color is None

    def test_invalid_color(self, db_session):
        with pytest.raises(CategoryValidationError):
            CreateCategoryUseCase(db_session).execute("Food", "green")

    def test_delete_uncategorizes_expenses(self, db_session, budget_id, card_id):
        cid = CreateCategoryUseCase(db_session).execute("Food")
        pe = _add_planned(db_session, budget_id, category_id=cid)
        ue = _add_unplanned(db_session, card_id, category_id=cid)

        DeleteCategoryUseCase(db_session).execute(cid)
        db_session.expire_all()

        assert db_session.get(ExpenseCategory, cid) is None
        assert db_session.get(PlannedExpense, pe).category_id is None
        assert db_session.get(UnplannedExpense, ue).category_id is None
