"""
Card use cases - create, rename, link to budgets, delete
"""
import logging

from sqlalchemy import delete, insert, select
from sqlalchemy.orm import Session

from offshore.errors import NotFoundError, ValidationError
from offshore.infrastructure.changes import KIND_BUDGET, KIND_UNPLANNED_EXPENSE, record_change
from offshore.infrastructure.db.models import Budget, Card, UnplannedExpense, budget_cards

logger = logging.getLogger(__name__)


class CardValidationError(ValidationError):
    """Card validation error"""
    pass


def _clean_name(name: str | None) -> str:
    name = (name or "").strip()
    if not name:
        raise CardValidationError("Card name must not be empty")
    if len(name) > 255:
        raise CardValidationError("Card name is too long (max 255 characters)")
    return name


def _get_card(db: Session, card_id: int) -> Card:
    card = db.get(Card, card_id)
    if card is None:
        raise NotFoundError(f"Card {card_id} not found")
    return card


def _get_budget(db: Session, budget_id: int) -> Budget:
    budget = db.get(Budget, budget_id)
    if budget is None:
        raise NotFoundError(f"Budget {budget_id} not found")
    return budget


class CreateCardUseCase:
    def __init__(self, db: Session):
        self.db = db

    def execute(self, name: str) -> int:
        card = Card(name=_clean_name(name))
        self.db.add(card)
        self.db.commit()
        logger.info("Card %s created", card.id)
        return card.id


class RenameCardUseCase:
    def __init__(self, db: Session):
        self.db = db

    def execute(self, card_id: int, name: str) -> None:
        card = _get_card(self.db, card_id)
        card.name = _clean_name(name)
        self.db.commit()


class AttachCardUseCase:
    """
    Use case: make a card's variable expenses count towards a budget

    Attaching an already attached card is a no-op.
    """

    def __init__(self, db: Session):
        self.db = db

    def execute(self, budget_id: int, card_id: int) -> bool:
        _get_budget(self.db, budget_id)
        _get_card(self.db, card_id)
        exists = self.db.execute(
            select(budget_cards.c.card_id).where(
                budget_cards.c.budget_id == budget_id,
                budget_cards.c.card_id == card_id,
            )
        ).first()
        if exists:
            return False
        self.db.execute(insert(budget_cards).values(budget_id=budget_id, card_id=card_id))
        record_change(self.db, KIND_BUDGET)
        self.db.commit()
        logger.info("Card %s attached to budget %s", card_id, budget_id)
        return True


class DetachCardUseCase:
    def __init__(self, db: Session):
        self.db = db

    def execute(self, budget_id: int, card_id: int) -> bool:
        removed = self.db.execute(
            delete(budget_cards).where(
                budget_cards.c.budget_id == budget_id,
                budget_cards.c.card_id == card_id,
            )
        ).rowcount
        if not removed:
            self.db.rollback()
            return False
        record_change(self.db, KIND_BUDGET)
        self.db.commit()
        logger.info("Card %s detached from budget %s", card_id, budget_id)
        return True


class DeleteCardUseCase:
    """
    Use case: delete a card with all its variable expenses

    One transaction: the expenses, the budget links and the card go together.
    """

    def __init__(self, db: Session):
        self.db = db

    def execute(self, card_id: int) -> None:
        card = _get_card(self.db, card_id)
        try:
            removed = self.db.execute(
                delete(UnplannedExpense).where(UnplannedExpense.card_id == card_id)
            ).rowcount
            self.db.execute(delete(budget_cards).where(budget_cards.c.card_id == card_id))
            self.db.delete(card)
            record_change(self.db, KIND_UNPLANNED_EXPENSE)
            record_change(self.db, KIND_BUDGET)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        logger.info("Card %s deleted with %d variable expense(s)", card_id, removed)
