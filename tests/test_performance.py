from datetime import UTC, date, datetime
from decimal import Decimal

from budget_tracker.budgets.metrics import compute_metrics
from budget_tracker.budgets.models import BudgetStatus
from budget_tracker.budgets.performance import is_active_at, rank_performance
from factories import make_budget

NOW = datetime(2025, 6, 16, tzinfo=UTC)


def _ranked(*budgets):
    return rank_performance((b, compute_metrics(b, NOW)) for b in budgets)


def test_budgets_are_ranked_by_utilization_descending() -> None:
    low = make_budget(name="low", amount="100", spent="10")
    high = make_budget(name="high", amount="100", spent="95")
    mid = make_budget(name="mid", amount="100", spent="80")

    result = _ranked(low, high, mid)

    assert [b.name for b in result.budgets] == ["high", "mid", "low"]


def test_ties_keep_insertion_order() -> None:
    first = make_budget(name="first", amount="100", spent="50")
    second = make_budget(name="second", amount="200", spent="100")
    top = make_budget(name="top", amount="100", spent="60")

    result = _ranked(first, second, top)

    assert [b.name for b in result.budgets] == ["top", "first", "second"]


def test_summary_aggregates_amounts_statuses_and_mean_utilization() -> None:
    result = _ranked(
        make_budget(amount="100", spent="10"),
        make_budget(amount="200", spent="160"),
        make_budget(amount="100", spent="95"),
        make_budget(amount="300", spent="330"),
    )

    summary = result.summary
    assert summary.total_budgets == 4
    assert summary.total_budget_amount == Decimal("700")
    assert summary.total_spent == Decimal("595")
    assert summary.total_remaining == Decimal("105")
    # (10 + 80 + 95 + 110) / 4 = 73.75, unweighted by amount
    assert summary.average_utilization == 74
    breakdown = summary.status_breakdown
    assert (breakdown.on_track, breakdown.warning, breakdown.critical, breakdown.over_budget) == (
        1,
        1,
        1,
        1,
    )
    assert result.budgets[0].metrics.status == BudgetStatus.over_budget


def test_empty_input_yields_zero_summary() -> None:
    result = rank_performance([])

    assert result.budgets == []
    assert result.summary.total_budgets == 0
    assert result.summary.average_utilization == 0
    assert result.summary.total_spent == Decimal("0")


def test_is_active_at_checks_flag_and_window() -> None:
    budget = make_budget()

    assert is_active_at(budget, date(2025, 6, 1))
    assert is_active_at(budget, date(2025, 7, 1))
    assert not is_active_at(budget, date(2025, 7, 2))
    assert not is_active_at(budget.model_copy(update={"is_active": False}), date(2025, 6, 10))
