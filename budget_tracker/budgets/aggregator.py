from collections.abc import Sequence
from datetime import date
from typing import Protocol

import structlog

from budget_tracker.budgets.models import Budget
from budget_tracker.ledger.models import SpendingTotals

logger = structlog.get_logger()


class SpendingSource(Protocol):
    async def find_spending(
        self,
        owner_id: str,
        category_ids: Sequence[str],
        start: date,
        end: date,
    ) -> SpendingTotals: ...


class SpendingAggregator:
    """Reads a budget's current-window spending from the ledger.

    Allocation percentages are informational only; every listed category
    contributes its full spending to the total.
    """

    def __init__(self, ledger: SpendingSource) -> None:
        self._ledger = ledger

    async def aggregate(self, budget: Budget) -> SpendingTotals:
        if not budget.categories:
            logger.info("budget_has_no_categories", budget_id=budget.id)
            return SpendingTotals()

        totals = await self._ledger.find_spending(
            budget.owner_id,
            budget.category_ids,
            budget.start_date,
            budget.end_date,
        )
        logger.info(
            "spending_aggregated",
            budget_id=budget.id,
            total_spent=str(totals.total_spent),
            transaction_count=totals.transaction_count,
        )
        return totals
