from datetime import date, datetime
from decimal import Decimal

from pydantic import BaseModel, Field

from budget_tracker.budgets.metrics import classify_status, utilization_percentage
from budget_tracker.budgets.models import (
    AlertKind,
    Budget,
    BudgetAlert,
    BudgetMetrics,
    BudgetPeriod,
    BudgetStatus,
    BudgetType,
    CategoryAllocation,
    CurrentPeriod,
    PeriodSnapshot,
    RankedSummary,
)


class CategoryAllocationIn(BaseModel):
    category_id: str = Field(min_length=1)
    allocation: Decimal | None = Field(default=None, ge=0, le=100)


class ThresholdIn(BaseModel):
    percentage: int = Field(ge=1, le=100)
    kind: AlertKind


class BudgetCreate(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    description: str | None = Field(default=None, max_length=1000)
    amount: Decimal = Field(max_digits=18, decimal_places=2)
    period: BudgetPeriod
    start_date: date
    end_date: date
    categories: list[CategoryAllocationIn] = Field(min_length=1)
    type: BudgetType = BudgetType.expense
    rollover_enabled: bool = False
    max_rollover_percentage: Decimal | None = Field(default=None, ge=0, le=100)
    alerts_enabled: bool = True
    thresholds: list[ThresholdIn] | None = None


class BudgetUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=200)
    description: str | None = Field(default=None, max_length=1000)
    amount: Decimal | None = Field(default=None, max_digits=18, decimal_places=2)
    period: BudgetPeriod | None = None
    start_date: date | None = None
    end_date: date | None = None
    categories: list[CategoryAllocationIn] | None = Field(default=None, min_length=1)
    rollover_enabled: bool | None = None
    max_rollover_percentage: Decimal | None = Field(default=None, ge=0, le=100)
    alerts_enabled: bool | None = None
    thresholds: list[ThresholdIn] | None = None
    is_active: bool | None = None


class ThresholdView(BaseModel):
    id: str
    percentage: int
    kind: AlertKind
    notified: bool
    last_notified_at: datetime | None


class BudgetResponse(BaseModel):
    id: str
    owner_id: str
    name: str
    description: str | None
    amount: Decimal
    effective_amount: Decimal
    period: BudgetPeriod
    start_date: date
    end_date: date
    categories: list[CategoryAllocation]
    type: BudgetType
    rollover_enabled: bool
    rollover_amount: Decimal
    max_rollover_percentage: Decimal
    alerts_enabled: bool
    thresholds: list[ThresholdView]
    current_period: CurrentPeriod
    history: list[PeriodSnapshot]
    utilization_percentage: int
    remaining_amount: Decimal
    over_budget_amount: Decimal
    status: BudgetStatus
    is_active: bool
    version: int
    created_at: datetime
    updated_at: datetime


class BudgetPerformanceResponse(BaseModel):
    budget: BudgetResponse
    metrics: BudgetMetrics
    status: BudgetStatus
    alerts: list[BudgetAlert]


class AlertEvaluation(BaseModel):
    budget: BudgetResponse
    alerts: list[BudgetAlert]


class AlertTestResponse(BaseModel):
    alerts_triggered: int
    alerts: list[BudgetAlert]
    current_utilization: int


class BudgetFailure(BaseModel):
    budget_id: str
    error: str
    message: str


class ActiveBudget(BaseModel):
    budget: BudgetResponse
    has_alerts: bool
    alerts: list[BudgetAlert]


class ActiveBudgetsResponse(BaseModel):
    budgets: list[ActiveBudget]
    failures: list[BudgetFailure]


class PerformanceOverview(BaseModel):
    overview: RankedSummary
    failures: list[BudgetFailure]


class ClosePeriodRequest(BaseModel):
    next_start: date | None = None
    next_end: date | None = None


class ClosePeriodResponse(BaseModel):
    carryover: Decimal
    snapshot: PeriodSnapshot
    budget: BudgetResponse


def to_response(budget: Budget) -> BudgetResponse:
    spent = budget.current_period.spent
    utilization = utilization_percentage(budget.amount, spent)
    return BudgetResponse(
        id=budget.id,
        owner_id=budget.owner_id,
        name=budget.name,
        description=budget.description,
        amount=budget.amount,
        effective_amount=budget.effective_amount,
        period=budget.period,
        start_date=budget.start_date,
        end_date=budget.end_date,
        categories=list(budget.categories),
        type=budget.type,
        rollover_enabled=budget.rollover.enabled,
        rollover_amount=budget.rollover.amount,
        max_rollover_percentage=budget.rollover.max_percentage,
        alerts_enabled=budget.alerts.enabled,
        thresholds=[
            ThresholdView(
                id=t.id,
                percentage=t.percentage,
                kind=t.kind,
                notified=budget.is_notified(t.id),
                last_notified_at=budget.alert_state.get(t.id),
            )
            for t in budget.alerts.thresholds
        ],
        current_period=budget.current_period,
        history=list(budget.history),
        utilization_percentage=utilization,
        remaining_amount=max(Decimal("0"), budget.amount - spent),
        over_budget_amount=max(Decimal("0"), spent - budget.amount),
        status=classify_status(utilization),
        is_active=budget.is_active,
        version=budget.version,
        created_at=budget.created_at,
        updated_at=budget.updated_at,
    )
