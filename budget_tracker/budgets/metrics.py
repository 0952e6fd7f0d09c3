"""Pure budget metric calculations.

Every function here is a deterministic function of its arguments; none of
them raise on degenerate input. Divisions are guarded and an out-of-window
``now`` is clamped onto the window.
"""

import math
from datetime import UTC, date, datetime, time
from decimal import ROUND_HALF_UP, Decimal

from budget_tracker.budgets.models import Budget, BudgetMetrics, BudgetStatus

_ZERO = Decimal("0")
_HUNDRED = Decimal("100")
_CENT = Decimal("0.01")
_SECONDS_PER_DAY = 86400

# Evaluated top-down, first match wins
_STATUS_THRESHOLDS: tuple[tuple[int, BudgetStatus], ...] = (
    (100, BudgetStatus.over_budget),
    (90, BudgetStatus.critical),
    (75, BudgetStatus.warning),
)


def money(value: Decimal) -> Decimal:
    return value.quantize(_CENT, rounding=ROUND_HALF_UP)


def percent(value: Decimal) -> Decimal:
    return value.quantize(_CENT, rounding=ROUND_HALF_UP)


def round_half_up(value: Decimal) -> int:
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def utilization_percentage(amount: Decimal, spent: Decimal) -> int:
    if amount == 0:
        return 0
    return round_half_up(spent / amount * _HUNDRED)


def classify_status(utilization: int) -> BudgetStatus:
    for floor, status in _STATUS_THRESHOLDS:
        if utilization >= floor:
            return status
    return BudgetStatus.on_track


def _window_start(start_date: date) -> datetime:
    return datetime.combine(start_date, time.min, tzinfo=UTC)


def _ceil_days(delta_seconds: float) -> int:
    return math.ceil(delta_seconds / _SECONDS_PER_DAY)


def time_split(start_date: date, end_date: date, now: datetime) -> tuple[int, int, int]:
    """Return ``(total_days, elapsed_days, remaining_days)`` for the window."""
    if now.tzinfo is None:
        now = now.replace(tzinfo=UTC)
    start = _window_start(start_date)
    end = _window_start(end_date)

    total_days = max(0, _ceil_days((end - start).total_seconds()))
    elapsed = _ceil_days((now - start).total_seconds())
    elapsed_days = min(max(elapsed, 0), total_days)
    return total_days, elapsed_days, total_days - elapsed_days


def compute_metrics(budget: Budget, now: datetime) -> BudgetMetrics:
    return calculate(
        amount=budget.amount,
        spent=budget.current_period.spent,
        start_date=budget.start_date,
        end_date=budget.end_date,
        now=now,
    )


def calculate(
    amount: Decimal,
    spent: Decimal,
    start_date: date,
    end_date: date,
    now: datetime,
) -> BudgetMetrics:
    utilization = utilization_percentage(amount, spent)
    remaining_amount = max(_ZERO, amount - spent)
    over_budget_amount = max(_ZERO, spent - amount)

    total_days, elapsed_days, remaining_days = time_split(start_date, end_date, now)

    if total_days == 0:
        expected_spending = amount
        progress = _HUNDRED
    else:
        expected_spending = Decimal(elapsed_days) / Decimal(total_days) * amount
        progress = Decimal(elapsed_days) / Decimal(total_days) * _HUNDRED

    variance = spent - expected_spending
    variance_percentage = (
        variance / expected_spending * _HUNDRED if expected_spending > 0 else _ZERO
    )

    daily_rate = spent / Decimal(elapsed_days) if elapsed_days > 0 else _ZERO
    projected_spending = daily_rate * Decimal(total_days)
    projected_overrun = max(_ZERO, projected_spending - amount)

    recommended_daily = (
        remaining_amount / Decimal(remaining_days) if remaining_days > 0 else _ZERO
    )

    return BudgetMetrics(
        utilization_percentage=utilization,
        remaining_amount=money(remaining_amount),
        over_budget_amount=money(over_budget_amount),
        status=classify_status(utilization),
        total_days=total_days,
        elapsed_days=elapsed_days,
        remaining_days=remaining_days,
        progress_percentage=percent(progress),
        expected_spending=money(expected_spending),
        variance=money(variance),
        variance_percentage=percent(variance_percentage),
        daily_spending_rate=money(daily_rate),
        projected_spending=money(projected_spending),
        projected_overrun=money(projected_overrun),
        recommended_daily_spending=money(recommended_daily),
    )
