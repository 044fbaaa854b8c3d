"""
FastAPI dependencies (DB session, view-state registry, app settings)
"""
from fastapi import Depends, Request
from sqlalchemy.orm import Session

from offshore.application.registry import ViewStateRegistry
from offshore.application.view_state import BudgetViewStateController
from offshore.config import Settings
from offshore.errors import NotFoundError
from offshore.infrastructure.db.models import Budget


def get_db(request: Request) -> Session:
    """
    Session from the factory wired in the app lifespan; always closed

    Usage:
        @router.get("/budgets")
        def list_budgets(db: Session = Depends(get_db)):
            ...
    """
    db = request.app.state.session_factory()
    try:
        yield db
    finally:
        db.close()


def get_registry(request: Request) -> ViewStateRegistry:
    """View-state registry created in the app lifespan"""
    return request.app.state.registry


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_budget_controller(
    budget_id: int,
    db: Session = Depends(get_db),
    registry: ViewStateRegistry = Depends(get_registry),
) -> BudgetViewStateController:
    """
    Controller for an existing budget

    Raises:
        NotFoundError: the budget does not exist (no controller is created)
    """
    if db.get(Budget, budget_id) is None:
        raise NotFoundError(f"Budget {budget_id} not found")
    return registry.get(budget_id)
