from collections.abc import Callable, Iterable
from datetime import UTC, date, datetime

from budget_tracker.budgets import alerts, metrics, performance, rollover
from budget_tracker.budgets.aggregator import SpendingAggregator
from budget_tracker.budgets.models import (
    Budget,
    BudgetAlert,
    BudgetMetrics,
    CurrentPeriod,
    RankedSummary,
)


def utc_now() -> datetime:
    return datetime.now(UTC)


class BudgetEngine:
    """Computation side of budget tracking.

    Operations take a budget and hand back a new one (plus whatever they
    derived). None of them write anything; persisting the result is the
    caller's job.
    """

    def __init__(
        self,
        aggregator: SpendingAggregator,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._aggregator = aggregator
        self._clock = clock

    def now(self) -> datetime:
        return self._clock()

    async def recompute_spending(self, budget: Budget) -> Budget:
        totals = await self._aggregator.aggregate(budget)
        current = CurrentPeriod(
            spent=totals.total_spent,
            remaining=budget.amount - totals.total_spent,
            transaction_count=totals.transaction_count,
            by_category=totals.by_category,
            last_calculated=self.now(),
        )
        return budget.model_copy(update={"current_period": current})

    def evaluate_alerts(self, budget: Budget) -> tuple[Budget, list[BudgetAlert]]:
        return alerts.evaluate_alerts(budget, self.now())

    def reset_alerts(self, budget: Budget) -> Budget:
        return alerts.reset_alerts(budget)

    def compute_metrics(self, budget: Budget, now: datetime | None = None) -> BudgetMetrics:
        return metrics.compute_metrics(budget, now or self.now())

    def rank_performance(
        self, budgets: Iterable[Budget], now: datetime | None = None
    ) -> RankedSummary:
        """Rank the budgets live at ``now``; others are left out."""
        at = now or self.now()
        return performance.rank_performance(
            (budget, metrics.compute_metrics(budget, at))
            for budget in budgets
            if performance.is_active_at(budget, at.date())
        )

    def close_period(
        self,
        budget: Budget,
        next_start: date | None = None,
        next_end: date | None = None,
    ) -> rollover.RolloverOutcome:
        return rollover.close_period(budget, self.now(), next_start, next_end)
