"""
Budget API endpoints

Budget creation plus a thin JSON surface over the view-state registry: view
endpoints submit an intent to the budget's controller and answer with the
settled snapshot. Money is serialized as strings with two decimals.
"""
from datetime import date, datetime
from decimal import Decimal

from fastapi import APIRouter, Depends, Query, Request
from pydantic import BaseModel
from sqlalchemy.orm import Session

from offshore.api.deps import get_app_settings, get_budget_controller, get_db
from offshore.application.budgets import BudgetValidationError, CreateBudgetUseCase, CreatePeriodBudgetUseCase
from offshore.application.view_state import BudgetViewStateController, ViewState
from offshore.config import Settings
from offshore.domain.category import category_key
from offshore.domain.period import BudgetPeriod
from offshore.domain.records import PlannedExpenseRecord
from offshore.domain.sorting import Segment, SortMode
from offshore.domain.summary import BudgetSummary, CategorySpending
from offshore.utils.money import format_money, quantize


router = APIRouter(prefix="/api/v1/budgets", tags=["budgets"])

SETTLE_TIMEOUT = 10.0


# === Request/Response models ===

class CreateBudgetRequest(BaseModel):
    name: str | None = None
    start: date | None = None
    end: date | None = None
    period: BudgetPeriod | None = None
    reference_date: date | None = None
    card_ids: list[int] = []


class BudgetCreated(BaseModel):
    budget_id: int


class SegmentRequest(BaseModel):
    segment: Segment


class SortRequest(BaseModel):
    sort: SortMode


class SearchRequest(BaseModel):
    query: str = ""


class WindowRequest(BaseModel):
    start: date
    end: date


class CategorySpendingResponse(BaseModel):
    category_id: int | None
    name: str
    color: str | None
    amount: str


class SummaryResponse(BaseModel):
    budget_id: int
    budget_name: str
    period_start: datetime
    period_end: datetime
    period_label: str
    potential_income_total: str
    actual_income_total: str
    planned_expenses_planned_total: str
    planned_expenses_actual_total: str
    variable_expenses_total: str
    potential_savings_total: str
    actual_savings_total: str
    selected_segment: Segment
    selected_total: str
    planned_category_breakdown: list[CategorySpendingResponse]
    variable_category_breakdown: list[CategorySpendingResponse]


class RowResponse(BaseModel):
    id: int
    description: str
    amount: str
    planned_amount: str | None = None
    actual_amount: str | None = None
    transaction_date: datetime
    category_id: int | None
    category_name: str
    category_color: str | None


class ViewResponse(BaseModel):
    budget_id: int
    status: str
    segment: Segment
    sort: SortMode
    search: str
    window_start: datetime | None
    window_end: datetime | None
    window_label: str | None
    currency: str
    selected_total_display: str | None
    summary: SummaryResponse | None
    rows: list[RowResponse]
    error: str | None
    placeholder: str
    generation: int


# === Serialization helpers ===

def _money(amount: Decimal) -> str:
    return str(quantize(amount))


def _breakdown(items: tuple[CategorySpending, ...]) -> list[CategorySpendingResponse]:
    return [
        CategorySpendingResponse(
            category_id=item.category_id, name=item.name, color=item.color, amount=_money(item.amount),
        )
        for item in items
    ]


def _summary(summary: BudgetSummary) -> SummaryResponse:
    return SummaryResponse(
        budget_id=summary.budget_id,
        budget_name=summary.budget_name,
        period_start=summary.period_start,
        period_end=summary.period_end,
        period_label=summary.period_label,
        potential_income_total=_money(summary.potential_income_total),
        actual_income_total=_money(summary.actual_income_total),
        planned_expenses_planned_total=_money(summary.planned_expenses_planned_total),
        planned_expenses_actual_total=_money(summary.planned_expenses_actual_total),
        variable_expenses_total=_money(summary.variable_expenses_total),
        potential_savings_total=_money(summary.potential_savings_total),
        actual_savings_total=_money(summary.actual_savings_total),
        selected_segment=summary.selected_segment,
        selected_total=_money(summary.selected_total),
        planned_category_breakdown=_breakdown(summary.planned_category_breakdown),
        variable_category_breakdown=_breakdown(summary.variable_category_breakdown),
    )


def _row(record) -> RowResponse:
    planned = isinstance(record, PlannedExpenseRecord)
    return RowResponse(
        id=record.id,
        description=record.description,
        amount=_money(record.actual_amount if planned else record.amount),
        planned_amount=_money(record.planned_amount) if planned else None,
        actual_amount=_money(record.actual_amount) if planned else None,
        transaction_date=record.transaction_date,
        category_id=category_key(record.category),
        category_name=record.category.name,
        category_color=record.category.color,
    )


def to_response(state: ViewState, currency: str) -> ViewResponse:
    window = state.window
    summary = state.summary
    return ViewResponse(
        budget_id=state.budget_id,
        status=state.status.value,
        segment=state.segment,
        sort=state.sort,
        search=state.search,
        window_start=window.start if window else None,
        window_end=window.end if window else None,
        window_label=window.label() if window else None,
        currency=currency,
        selected_total_display=format_money(summary.selected_total, currency) if summary else None,
        summary=_summary(summary) if summary else None,
        rows=[_row(r) for r in state.rows],
        error=state.error,
        placeholder=state.placeholder_text,
        generation=state.generation,
    )


def _settled(controller: BudgetViewStateController, settings: Settings) -> ViewResponse:
    return to_response(controller.wait_until_settled(SETTLE_TIMEOUT), settings.CURRENCY)


# === Endpoints ===

@router.post("", response_model=BudgetCreated, status_code=201)
def create_budget(req: CreateBudgetRequest, request: Request, db: Session = Depends(get_db)):
    """
    Create a budget

    With explicit start/end dates the budget is a one-off. Otherwise it covers
    the period containing ``reference_date`` (today by default); the period
    falls back to the stored default budgeting period.
    """
    if req.start is not None or req.end is not None:
        if req.start is None or req.end is None:
            raise BudgetValidationError("Budget needs both a start and an end date")
        budget_id = CreateBudgetUseCase(db).execute(req.name, req.start, req.end, req.card_ids)
    else:
        period = req.period or request.app.state.preferences.default_period()
        budget_id = CreatePeriodBudgetUseCase(db, calendar=request.app.state.calendar).execute(
            period, req.reference_date or date.today(), req.card_ids, name=req.name,
        )
    return BudgetCreated(budget_id=budget_id)


@router.get("/{budget_id}/view", response_model=ViewResponse)
def get_view(
    wait: bool = Query(True, description="Wait for an in-flight fetch to finish"),
    controller: BudgetViewStateController = Depends(get_budget_controller),
    settings: Settings = Depends(get_app_settings),
):
    """Current view state; the first request for a budget triggers its initial load"""
    controller.load()
    if not wait:
        return to_response(controller.state, settings.CURRENCY)
    return _settled(controller, settings)


@router.post("/{budget_id}/load", response_model=ViewResponse)
def load(controller: BudgetViewStateController = Depends(get_budget_controller),
         settings: Settings = Depends(get_app_settings)):
    """Initial load (no-op when already loaded)"""
    controller.load()
    return _settled(controller, settings)


@router.post("/{budget_id}/refresh", response_model=ViewResponse)
def refresh(controller: BudgetViewStateController = Depends(get_budget_controller),
            settings: Settings = Depends(get_app_settings)):
    """Force a re-fetch (pull to refresh)"""
    controller.refresh_rows()
    return _settled(controller, settings)


@router.put("/{budget_id}/segment", response_model=ViewResponse)
def select_segment(req: SegmentRequest,
                   controller: BudgetViewStateController = Depends(get_budget_controller),
                   settings: Settings = Depends(get_app_settings)):
    controller.select_segment(req.segment)
    return _settled(controller, settings)


@router.put("/{budget_id}/sort", response_model=ViewResponse)
def change_sort(req: SortRequest,
                controller: BudgetViewStateController = Depends(get_budget_controller),
                settings: Settings = Depends(get_app_settings)):
    controller.change_sort(req.sort)
    return _settled(controller, settings)


@router.put("/{budget_id}/search", response_model=ViewResponse)
def change_search(req: SearchRequest,
                  controller: BudgetViewStateController = Depends(get_budget_controller),
                  settings: Settings = Depends(get_app_settings)):
    controller.change_search(req.query)
    return _settled(controller, settings)


@router.put("/{budget_id}/window", response_model=ViewResponse)
def set_window(req: WindowRequest,
               controller: BudgetViewStateController = Depends(get_budget_controller),
               settings: Settings = Depends(get_app_settings)):
    """Narrow (or widen) the window; re-fetches when the budget is loaded"""
    controller.load()
    controller.set_date_window(req.start, req.end)
    return _settled(controller, settings)


@router.delete("/{budget_id}/window", response_model=ViewResponse)
def reset_window(controller: BudgetViewStateController = Depends(get_budget_controller),
                 settings: Settings = Depends(get_app_settings)):
    """Back to the budget's own start/end dates"""
    controller.reset_date_window_to_budget()
    return _settled(controller, settings)
