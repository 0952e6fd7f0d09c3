import asyncio
from datetime import date
from decimal import Decimal

import pytest

from budget_tracker.budgets.aggregator import SpendingAggregator
from budget_tracker.budgets.engine import BudgetEngine
from budget_tracker.budgets.models import AlertKind, BudgetStatus
from budget_tracker.budgets.repository import BudgetRepository
from budget_tracker.budgets.schemas import (
    BudgetCreate,
    BudgetUpdate,
    CategoryAllocationIn,
    ClosePeriodRequest,
    ThresholdIn,
)
from budget_tracker.budgets.service import BudgetLockRegistry, BudgetService
from budget_tracker.event_store.models import AggregateType, EventType
from budget_tracker.exceptions import (
    DegenerateAmountError,
    InvalidWindowError,
    NotFoundError,
    PersistenceConflictError,
    ValidationError,
)
from budget_tracker.ledger.models import SpendingTotals, TransactionType
from budget_tracker.ledger.schemas import TransactionCreate

OWNER = "user-1"


def _budget_create(**overrides) -> BudgetCreate:
    fields = {
        "name": "Groceries",
        "amount": Decimal("600"),
        "period": "monthly",
        "start_date": date(2025, 6, 1),
        "end_date": date(2025, 7, 1),
        "categories": [CategoryAllocationIn(category_id="food")],
        "thresholds": [ThresholdIn(percentage=80, kind=AlertKind.warning)],
    }
    fields.update(overrides)
    return BudgetCreate(**fields)


async def _spend(ledger, amount: str, category: str = "food", day: date = date(2025, 6, 10)):
    await ledger.create(
        OWNER,
        TransactionCreate(
            type=TransactionType.expense,
            amount=Decimal(amount),
            category=category,
            date=day,
        ),
    )


@pytest.mark.asyncio
async def test_create_applies_defaults(budget_service) -> None:
    created = await budget_service.create(OWNER, _budget_create(thresholds=None))

    assert created.version == 1
    assert [(t.percentage, t.kind) for t in created.thresholds] == [
        (75, AlertKind.warning),
        (90, AlertKind.critical),
    ]
    assert created.max_rollover_percentage == Decimal("20")
    assert created.current_period.remaining == Decimal("600")
    assert created.categories[0].allocation == Decimal("100")


@pytest.mark.asyncio
async def test_create_rejects_inverted_window(budget_service) -> None:
    with pytest.raises(InvalidWindowError):
        await budget_service.create(
            OWNER, _budget_create(start_date=date(2025, 7, 1), end_date=date(2025, 7, 1))
        )


@pytest.mark.asyncio
@pytest.mark.parametrize("amount", ["0", "-5"])
async def test_create_rejects_non_positive_amount(budget_service, amount) -> None:
    with pytest.raises(DegenerateAmountError):
        await budget_service.create(OWNER, _budget_create(amount=Decimal(amount)))


@pytest.mark.asyncio
async def test_create_rejects_allocations_not_summing_to_100(budget_service) -> None:
    categories = [
        CategoryAllocationIn(category_id="food", allocation=Decimal("60")),
        CategoryAllocationIn(category_id="dining", allocation=Decimal("30")),
    ]

    with pytest.raises(ValidationError):
        await budget_service.create(OWNER, _budget_create(categories=categories))


@pytest.mark.asyncio
async def test_recompute_reads_combined_spending(budget_service, ledger) -> None:
    categories = [
        CategoryAllocationIn(category_id="food", allocation=Decimal("60")),
        CategoryAllocationIn(category_id="dining", allocation=Decimal("40")),
    ]
    created = await budget_service.create(
        OWNER, _budget_create(amount=Decimal("500"), categories=categories)
    )
    await _spend(ledger, "300", "food")
    await _spend(ledger, "100", "dining")

    refreshed = await budget_service.recompute(OWNER, created.id)

    assert refreshed.current_period.spent == Decimal("400")
    assert refreshed.current_period.remaining == Decimal("100")
    assert refreshed.current_period.transaction_count == 2
    assert refreshed.utilization_percentage == 80
    assert refreshed.status == BudgetStatus.warning
    assert refreshed.version == 2


@pytest.mark.asyncio
async def test_performance_matches_mid_period_scenario(budget_service, ledger) -> None:
    created = await budget_service.create(OWNER, _budget_create())
    await _spend(ledger, "400")

    result = await budget_service.performance(OWNER, created.id)

    metrics = result.metrics
    assert metrics.utilization_percentage == 67
    assert result.status == BudgetStatus.on_track
    assert metrics.expected_spending == Decimal("300.00")
    assert metrics.variance == Decimal("100.00")
    assert metrics.daily_spending_rate == Decimal("26.67")
    assert metrics.projected_spending == Decimal("800.00")
    assert metrics.projected_overrun == Decimal("200.00")
    assert result.alerts == []


@pytest.mark.asyncio
async def test_alert_dedup_survives_persistence(budget_service, ledger) -> None:
    created = await budget_service.create(OWNER, _budget_create(amount=Decimal("100")))
    await _spend(ledger, "85")

    first = await budget_service.evaluate_alerts(OWNER, created.id)
    second = await budget_service.evaluate_alerts(OWNER, created.id)

    assert [a.threshold_percentage for a in first.alerts] == [80]
    assert second.alerts == []
    assert second.budget.thresholds[0].notified is True
    assert second.budget.thresholds[0].last_notified_at is not None


@pytest.mark.asyncio
async def test_amount_edit_rearms_persisted_thresholds(budget_service, ledger) -> None:
    created = await budget_service.create(OWNER, _budget_create(amount=Decimal("100")))
    await _spend(ledger, "85")
    await budget_service.evaluate_alerts(OWNER, created.id)

    updated = await budget_service.update(OWNER, created.id, BudgetUpdate(amount=Decimal("101")))
    again = await budget_service.evaluate_alerts(OWNER, created.id)

    assert updated.thresholds[0].notified is False
    assert [a.current_utilization for a in again.alerts] == [84]


@pytest.mark.asyncio
async def test_rename_keeps_persisted_firing_state(budget_service, ledger) -> None:
    created = await budget_service.create(OWNER, _budget_create(amount=Decimal("100")))
    await _spend(ledger, "85")
    await budget_service.evaluate_alerts(OWNER, created.id)

    updated = await budget_service.update(OWNER, created.id, BudgetUpdate(name="Food"))

    assert updated.name == "Food"
    assert updated.thresholds[0].notified is True


@pytest.mark.asyncio
async def test_update_rejects_inverted_window(budget_service) -> None:
    created = await budget_service.create(OWNER, _budget_create())

    with pytest.raises(InvalidWindowError):
        await budget_service.update(OWNER, created.id, BudgetUpdate(end_date=date(2025, 5, 1)))


@pytest.mark.asyncio
async def test_update_without_changes_is_rejected(budget_service) -> None:
    created = await budget_service.create(OWNER, _budget_create())

    with pytest.raises(ValidationError):
        await budget_service.update(OWNER, created.id, BudgetUpdate())


@pytest.mark.asyncio
async def test_reset_and_test_alerts_refire(budget_service, ledger) -> None:
    created = await budget_service.create(OWNER, _budget_create(amount=Decimal("100")))
    await _spend(ledger, "85")
    await budget_service.evaluate_alerts(OWNER, created.id)

    reset = await budget_service.reset_alerts(OWNER, created.id)
    assert reset.thresholds[0].notified is False

    tested = await budget_service.test_alerts(OWNER, created.id)
    assert tested.alerts_triggered == 1
    assert tested.current_utilization == 85


@pytest.mark.asyncio
async def test_concurrent_evaluations_fire_once(budget_service, ledger) -> None:
    created = await budget_service.create(OWNER, _budget_create(amount=Decimal("100")))
    await _spend(ledger, "95")

    results = await asyncio.gather(
        *(budget_service.evaluate_alerts(OWNER, created.id) for _ in range(5))
    )

    assert sum(len(r.alerts) for r in results) == 1


@pytest.mark.asyncio
async def test_stale_version_raises_persistence_conflict(budget_service, event_store) -> None:
    created = await budget_service.create(OWNER, _budget_create())
    await budget_service.recompute(OWNER, created.id)

    with pytest.raises(PersistenceConflictError) as excinfo:
        await event_store.append_event(
            aggregate_type=AggregateType.budget,
            aggregate_id=created.id,
            event_type=EventType.budget_alerts_fired,
            event_data={"document": {}},
            expected_version=created.version,
        )

    assert excinfo.value.expected_version == 1
    assert excinfo.value.actual_version == 2


@pytest.mark.asyncio
async def test_budgets_are_scoped_to_owner(budget_service) -> None:
    created = await budget_service.create(OWNER, _budget_create())

    with pytest.raises(NotFoundError):
        await budget_service.get("user-2", created.id)


@pytest.mark.asyncio
async def test_delete_is_logical(budget_service) -> None:
    created = await budget_service.create(OWNER, _budget_create())

    await budget_service.delete(OWNER, created.id)

    assert await budget_service.list_budgets(OWNER, active=True) == []
    inactive = await budget_service.list_budgets(OWNER, active=False)
    assert [b.id for b in inactive] == [created.id]


@pytest.mark.asyncio
async def test_active_reports_alerts_per_budget(budget_service, ledger) -> None:
    hot = await budget_service.create(OWNER, _budget_create(name="hot", amount=Decimal("100")))
    await budget_service.create(
        OWNER,
        _budget_create(
            name="cold",
            categories=[CategoryAllocationIn(category_id="travel")],
        ),
    )
    await budget_service.create(
        OWNER,
        _budget_create(name="future", start_date=date(2025, 8, 1), end_date=date(2025, 9, 1)),
    )
    await _spend(ledger, "90")

    result = await budget_service.active(OWNER)

    by_name = {entry.budget.name: entry for entry in result.budgets}
    assert set(by_name) == {"hot", "cold"}
    assert by_name["hot"].has_alerts is True
    assert by_name["hot"].alerts[0].budget_id == hot.id
    assert by_name["cold"].has_alerts is False
    assert result.failures == []


@pytest.mark.asyncio
async def test_overview_ranks_active_budgets(budget_service, ledger) -> None:
    await budget_service.create(OWNER, _budget_create(name="food", amount=Decimal("100")))
    await budget_service.create(
        OWNER,
        _budget_create(
            name="travel",
            amount=Decimal("1000"),
            categories=[CategoryAllocationIn(category_id="travel")],
        ),
    )
    await _spend(ledger, "50", "food")
    await _spend(ledger, "900", "travel")

    result = await budget_service.overview(OWNER)

    assert [b.name for b in result.overview.budgets] == ["travel", "food"]
    summary = result.overview.summary
    assert summary.total_budgets == 2
    assert summary.total_spent == Decimal("950")
    assert summary.average_utilization == 70
    assert summary.status_breakdown.critical == 1
    assert summary.status_breakdown.on_track == 1


@pytest.mark.asyncio
async def test_close_period_persists_history_and_carryover(budget_service, ledger) -> None:
    created = await budget_service.create(
        OWNER,
        _budget_create(
            amount=Decimal("1000"),
            rollover_enabled=True,
            max_rollover_percentage=Decimal("20"),
        ),
    )
    await _spend(ledger, "500")

    request = ClosePeriodRequest(next_start=date(2025, 7, 1), next_end=date(2025, 8, 1))
    result = await budget_service.close_period(OWNER, created.id, request)

    assert result.carryover == Decimal("200.00")
    assert result.budget.rollover_amount == Decimal("200.00")
    assert result.budget.effective_amount == Decimal("1200.00")
    assert len(result.budget.history) == 1
    assert result.snapshot.actual_spent == Decimal("500")

    stored = await budget_service.get(OWNER, created.id)
    assert stored.start_date == date(2025, 7, 1)
    assert stored.history[0].transaction_count == 1


class _SlowLedger:
    """Ledger whose queries for one category never finish in time."""

    def __init__(self, slow_category: str) -> None:
        self._slow_category = slow_category

    async def find_spending(self, owner_id, category_ids, start, end) -> SpendingTotals:
        if self._slow_category in category_ids:
            await asyncio.sleep(1)
        return SpendingTotals(total_spent=Decimal("10"), transaction_count=1)


@pytest.mark.asyncio
async def test_one_failing_budget_does_not_block_the_others(db, event_store, clock) -> None:
    service = BudgetService(
        event_store,
        BudgetRepository(db),
        BudgetEngine(SpendingAggregator(_SlowLedger("slow")), clock=clock),
        locks=BudgetLockRegistry(),
        ledger_timeout=0.05,
    )
    slow = await service.create(
        OWNER, _budget_create(name="slow", categories=[CategoryAllocationIn(category_id="slow")])
    )
    await service.create(OWNER, _budget_create(name="fast"))

    overview = await service.overview(OWNER)
    active = await service.active(OWNER)

    assert [b.name for b in overview.overview.budgets] == ["fast"]
    assert [(f.budget_id, f.error) for f in overview.failures] == [(slow.id, "LEDGER_TIMEOUT")]
    assert [b.budget.name for b in active.budgets] == ["fast"]
    assert [f.budget_id for f in active.failures] == [slow.id]


@pytest.mark.asyncio
async def test_every_change_is_recorded_as_an_event(budget_service, event_store, ledger) -> None:
    created = await budget_service.create(OWNER, _budget_create(amount=Decimal("100")))
    await _spend(ledger, "85")
    await budget_service.evaluate_alerts(OWNER, created.id)
    await budget_service.update(OWNER, created.id, BudgetUpdate(name="Food"))

    events = await event_store.get_events(AggregateType.budget, created.id)

    assert [e.event_type for e in events] == [
        EventType.budget_created,
        EventType.budget_alerts_fired,
        EventType.budget_updated,
    ]
    assert [e.version for e in events] == [1, 2, 3]


class _BrokenLedger:
    """Ledger whose queries for one category fail with a storage error."""

    def __init__(self, broken_category: str) -> None:
        self._broken_category = broken_category

    async def find_spending(self, owner_id, category_ids, start, end) -> SpendingTotals:
        if self._broken_category in category_ids:
            raise RuntimeError("database is locked")
        return SpendingTotals(total_spent=Decimal("10"), transaction_count=1)


@pytest.mark.asyncio
async def test_unexpected_error_in_one_budget_is_reported(db, event_store, clock) -> None:
    service = BudgetService(
        event_store,
        BudgetRepository(db),
        BudgetEngine(SpendingAggregator(_BrokenLedger("broken")), clock=clock),
        locks=BudgetLockRegistry(),
    )
    broken = await service.create(
        OWNER,
        _budget_create(name="broken", categories=[CategoryAllocationIn(category_id="broken")]),
    )
    await service.create(OWNER, _budget_create(name="healthy"))

    active = await service.active(OWNER)
    overview = await service.overview(OWNER)

    assert [b.budget.name for b in active.budgets] == ["healthy"]
    assert [(f.budget_id, f.error) for f in active.failures] == [(broken.id, "INTERNAL_ERROR")]
    assert [b.name for b in overview.overview.budgets] == ["healthy"]
    assert [(f.budget_id, f.error) for f in overview.failures] == [(broken.id, "INTERNAL_ERROR")]


def test_lock_registry_shares_and_releases_locks() -> None:
    registry = BudgetLockRegistry()

    lock = registry.lock("budget-1")

    assert registry.lock("budget-1") is lock
    assert len(registry) == 1
    del lock
    assert len(registry) == 0


@pytest.mark.asyncio
async def test_locks_do_not_outlive_operations(db, event_store, engine, ledger) -> None:
    registry = BudgetLockRegistry()
    service = BudgetService(event_store, BudgetRepository(db), engine, locks=registry)
    created = await service.create(OWNER, _budget_create(amount=Decimal("100")))
    await _spend(ledger, "85")

    await asyncio.gather(*(service.evaluate_alerts(OWNER, created.id) for _ in range(3)))
    await service.overview(OWNER)

    assert len(registry) == 0


@pytest.mark.asyncio
async def test_deleted_budget_is_read_only_until_reactivated(budget_service, ledger) -> None:
    created = await budget_service.create(OWNER, _budget_create(amount=Decimal("100")))
    await _spend(ledger, "85")
    await budget_service.delete(OWNER, created.id)

    for operation in (
        budget_service.evaluate_alerts,
        budget_service.recompute,
        budget_service.reset_alerts,
        budget_service.performance,
        budget_service.delete,
    ):
        with pytest.raises(NotFoundError):
            await operation(OWNER, created.id)
    assert (await budget_service.get(OWNER, created.id)).is_active is False

    await budget_service.update(OWNER, created.id, BudgetUpdate(is_active=True))
    evaluation = await budget_service.evaluate_alerts(OWNER, created.id)

    assert [a.threshold_percentage for a in evaluation.alerts] == [80]
