from datetime import UTC, date, datetime
from decimal import Decimal

from budget_tracker.budgets.models import (
    AlertConfig,
    AlertKind,
    AlertThreshold,
    Budget,
    BudgetPeriod,
    CategoryAllocation,
    CurrentPeriod,
)


class FrozenClock:
    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now


def make_budget(
    amount: str = "600",
    spent: str = "0",
    thresholds: tuple[AlertThreshold, ...] | None = None,
    **overrides,
) -> Budget:
    now = datetime(2025, 6, 1, tzinfo=UTC)
    if thresholds is None:
        thresholds = (AlertThreshold(percentage=80, kind=AlertKind.warning),)
    fields = {
        "owner_id": "user-1",
        "name": "Groceries",
        "amount": Decimal(amount),
        "period": BudgetPeriod.monthly,
        "start_date": date(2025, 6, 1),
        "end_date": date(2025, 7, 1),
        "categories": (CategoryAllocation(category_id="food"),),
        "alerts": AlertConfig(thresholds=thresholds),
        "current_period": CurrentPeriod(
            spent=Decimal(spent), remaining=Decimal(amount) - Decimal(spent)
        ),
        "created_at": now,
        "updated_at": now,
    }
    fields.update(overrides)
    return Budget(**fields)
