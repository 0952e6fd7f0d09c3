from collections.abc import Iterable
from datetime import date
from decimal import Decimal

from budget_tracker.budgets.metrics import round_half_up
from budget_tracker.budgets.models import (
    Budget,
    BudgetMetrics,
    BudgetPerformance,
    BudgetStatus,
    PerformanceSummary,
    RankedSummary,
    StatusBreakdown,
)

_STATUS_FIELDS = {
    BudgetStatus.on_track: "on_track",
    BudgetStatus.warning: "warning",
    BudgetStatus.critical: "critical",
    BudgetStatus.over_budget: "over_budget",
}


def is_active_at(budget: Budget, today: date) -> bool:
    """True when the budget is live and its window contains ``today``."""
    return budget.is_active and budget.start_date <= today <= budget.end_date


def rank_performance(items: Iterable[tuple[Budget, BudgetMetrics]]) -> RankedSummary:
    """Rank budgets by utilization, highest first, and summarize them.

    ``sorted`` is stable, so budgets with equal utilization keep the order
    they were passed in.
    """
    entries = [
        BudgetPerformance(
            budget_id=budget.id,
            name=budget.name,
            period=budget.period,
            start_date=budget.start_date,
            end_date=budget.end_date,
            amount=budget.amount,
            spent=budget.current_period.spent,
            metrics=metrics,
        )
        for budget, metrics in items
    ]
    ranked = sorted(entries, key=lambda e: e.metrics.utilization_percentage, reverse=True)

    counts = dict.fromkeys(_STATUS_FIELDS.values(), 0)
    for entry in ranked:
        counts[_STATUS_FIELDS[entry.metrics.status]] += 1

    total_amount = sum((e.amount for e in ranked), Decimal("0"))
    total_spent = sum((e.spent for e in ranked), Decimal("0"))
    if ranked:
        mean = Decimal(sum(e.metrics.utilization_percentage for e in ranked)) / len(ranked)
        average_utilization = round_half_up(mean)
    else:
        average_utilization = 0

    return RankedSummary(
        budgets=ranked,
        summary=PerformanceSummary(
            total_budgets=len(ranked),
            total_budget_amount=total_amount,
            total_spent=total_spent,
            total_remaining=total_amount - total_spent,
            average_utilization=average_utilization,
            status_breakdown=StatusBreakdown(**counts),
        ),
    )
