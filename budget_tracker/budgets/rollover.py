"""Period close and unspent-amount carryover.

Nothing here decides *when* a period ends; callers detect the boundary and
invoke ``close_period``.
"""

import calendar
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from decimal import Decimal

import structlog

from budget_tracker.budgets.metrics import money, percent
from budget_tracker.budgets.models import Budget, BudgetPeriod, CurrentPeriod, PeriodSnapshot
from budget_tracker.exceptions import InvalidWindowError

logger = structlog.get_logger()

_ZERO = Decimal("0")
_HUNDRED = Decimal("100")

_PERIOD_MONTHS = {
    BudgetPeriod.monthly: 1,
    BudgetPeriod.quarterly: 3,
    BudgetPeriod.yearly: 12,
}


@dataclass(frozen=True)
class RolloverOutcome:
    carryover: Decimal
    snapshot: PeriodSnapshot
    budget: Budget


def compute_carryover(remaining: Decimal, max_percentage: Decimal, amount: Decimal) -> Decimal:
    cap = amount * max_percentage / _HUNDRED
    return max(_ZERO, min(remaining, cap))


def _add_months(day: date, months: int) -> date:
    month_index = day.month - 1 + months
    year = day.year + month_index // 12
    month = month_index % 12 + 1
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, min(day.day, last_day))


def next_window(period: BudgetPeriod, start_date: date, end_date: date) -> tuple[date, date]:
    """Window following ``[start_date, end_date]``.

    The next window opens the day after ``end_date``. Named periods span
    one calendar week/month/quarter/year from there; ``custom`` repeats the
    current window's length.
    """
    next_start = end_date + timedelta(days=1)
    if period == BudgetPeriod.weekly:
        return next_start, next_start + timedelta(days=6)
    if period in _PERIOD_MONTHS:
        return next_start, _add_months(next_start, _PERIOD_MONTHS[period]) - timedelta(days=1)
    return next_start, next_start + (end_date - start_date)


def snapshot_period(budget: Budget, closed_at: datetime, carryover: Decimal) -> PeriodSnapshot:
    spent = budget.current_period.spent
    variance = spent - budget.amount
    variance_percentage = variance / budget.amount * _HUNDRED if budget.amount > 0 else _ZERO
    return PeriodSnapshot(
        start_date=budget.start_date,
        end_date=budget.end_date,
        budget_amount=budget.amount,
        actual_spent=spent,
        variance=money(variance),
        variance_percentage=percent(variance_percentage),
        transaction_count=budget.current_period.transaction_count,
        rollover_amount=money(carryover),
        closed_at=closed_at,
    )


def close_period(
    budget: Budget,
    now: datetime,
    next_start: date | None = None,
    next_end: date | None = None,
) -> RolloverOutcome:
    """Close the budget's current window and open the next one.

    The returned budget carries the closed-period snapshot in its history,
    the carryover as its rollover amount, a fresh current period and an
    empty firing map.
    """
    if next_start is None or next_end is None:
        derived_start, derived_end = next_window(budget.period, budget.start_date, budget.end_date)
        next_start = next_start or derived_start
        next_end = next_end or derived_end
    if next_end <= next_start:
        raise InvalidWindowError(next_start, next_end)

    if budget.rollover.enabled:
        remaining = max(_ZERO, budget.amount - budget.current_period.spent)
        carryover = money(
            compute_carryover(remaining, budget.rollover.max_percentage, budget.amount)
        )
    else:
        carryover = _ZERO

    snapshot = snapshot_period(budget, now, carryover)
    rolled = budget.model_copy(
        update={
            "start_date": next_start,
            "end_date": next_end,
            "rollover": budget.rollover.model_copy(update={"amount": carryover}),
            "current_period": CurrentPeriod(remaining=budget.amount),
            "alert_state": {},
            "history": (*budget.history, snapshot),
            "updated_at": now,
        }
    )

    logger.info(
        "budget_period_closed",
        budget_id=budget.id,
        closed_start=budget.start_date.isoformat(),
        closed_end=budget.end_date.isoformat(),
        carryover=str(carryover),
    )
    return RolloverOutcome(carryover=carryover, snapshot=snapshot, budget=rolled)
