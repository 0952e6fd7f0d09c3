"""Budget domain model.

A ``Budget`` is treated as an immutable value: every engine operation
returns a new instance built with ``model_copy`` and leaves persistence to
the caller.
"""

from datetime import date, datetime
from decimal import Decimal
from enum import StrEnum
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field


class BudgetPeriod(StrEnum):
    weekly = "weekly"
    monthly = "monthly"
    quarterly = "quarterly"
    yearly = "yearly"
    custom = "custom"


class BudgetType(StrEnum):
    expense = "expense"
    income = "income"
    savings = "savings"


class BudgetStatus(StrEnum):
    on_track = "on-track"
    warning = "warning"
    critical = "critical"
    over_budget = "over-budget"


class AlertKind(StrEnum):
    warning = "warning"
    critical = "critical"


class CategoryAllocation(BaseModel):
    model_config = ConfigDict(frozen=True)

    category_id: str = Field(min_length=1)
    allocation: Decimal = Field(default=Decimal("100"), ge=0, le=100)


class AlertThreshold(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: str(uuid4()))
    percentage: int = Field(ge=1, le=100)
    kind: AlertKind


class AlertConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    enabled: bool = True
    thresholds: tuple[AlertThreshold, ...] = ()


class RolloverConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    enabled: bool = False
    amount: Decimal = Field(default=Decimal("0"), ge=0)
    max_percentage: Decimal = Field(default=Decimal("20"), ge=0, le=100)


class CurrentPeriod(BaseModel):
    """Cached spending for the active window; rederivable from the ledger."""

    model_config = ConfigDict(frozen=True)

    spent: Decimal = Field(default=Decimal("0"), ge=0)
    remaining: Decimal = Decimal("0")
    transaction_count: int = Field(default=0, ge=0)
    by_category: dict[str, Decimal] = Field(default_factory=dict)
    last_calculated: datetime | None = None


class PeriodSnapshot(BaseModel):
    model_config = ConfigDict(frozen=True)

    start_date: date
    end_date: date
    budget_amount: Decimal
    actual_spent: Decimal
    variance: Decimal
    variance_percentage: Decimal
    transaction_count: int
    rollover_amount: Decimal = Decimal("0")
    closed_at: datetime


class Budget(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: str(uuid4()))
    owner_id: str
    name: str = Field(min_length=1, max_length=200)
    description: str | None = None
    amount: Decimal = Field(max_digits=18, decimal_places=2)
    period: BudgetPeriod
    start_date: date
    end_date: date
    categories: tuple[CategoryAllocation, ...] = ()
    type: BudgetType = BudgetType.expense
    rollover: RolloverConfig = RolloverConfig()
    alerts: AlertConfig = AlertConfig()
    # threshold id -> when it last fired; absent means armed
    alert_state: dict[str, datetime] = Field(default_factory=dict)
    current_period: CurrentPeriod = CurrentPeriod()
    history: tuple[PeriodSnapshot, ...] = ()
    is_active: bool = True
    version: int = 0
    created_at: datetime
    updated_at: datetime

    @property
    def category_ids(self) -> list[str]:
        return [c.category_id for c in self.categories]

    @property
    def effective_amount(self) -> Decimal:
        return self.amount + self.rollover.amount

    def is_notified(self, threshold_id: str) -> bool:
        return threshold_id in self.alert_state

    def to_document(self) -> dict:
        """JSON-ready form stored in the event payload and projection."""
        return self.model_dump(mode="json", exclude={"version"})

    @classmethod
    def from_document(cls, document: dict, version: int) -> "Budget":
        return cls.model_validate({**document, "version": version})


class BudgetAlert(BaseModel):
    budget_id: str
    budget_name: str
    threshold_id: str
    threshold_percentage: int
    kind: AlertKind
    current_utilization: int
    amount: Decimal
    spent: Decimal
    remaining: Decimal
    notified_at: datetime


class BudgetMetrics(BaseModel):
    model_config = ConfigDict(frozen=True)

    utilization_percentage: int
    remaining_amount: Decimal
    over_budget_amount: Decimal
    status: BudgetStatus
    total_days: int
    elapsed_days: int
    remaining_days: int
    progress_percentage: Decimal
    expected_spending: Decimal
    variance: Decimal
    variance_percentage: Decimal
    daily_spending_rate: Decimal
    projected_spending: Decimal
    projected_overrun: Decimal
    recommended_daily_spending: Decimal


class BudgetPerformance(BaseModel):
    budget_id: str
    name: str
    period: BudgetPeriod
    start_date: date
    end_date: date
    amount: Decimal
    spent: Decimal
    metrics: BudgetMetrics


class StatusBreakdown(BaseModel):
    on_track: int = 0
    warning: int = 0
    critical: int = 0
    over_budget: int = 0


class PerformanceSummary(BaseModel):
    total_budgets: int
    total_budget_amount: Decimal
    total_spent: Decimal
    total_remaining: Decimal
    average_utilization: int
    status_breakdown: StatusBreakdown


class RankedSummary(BaseModel):
    budgets: list[BudgetPerformance]
    summary: PerformanceSummary
