import asyncio
import weakref
from decimal import Decimal

import structlog

from budget_tracker.budgets.alerts import apply_structural_edit, default_thresholds
from budget_tracker.budgets.engine import BudgetEngine
from budget_tracker.budgets.models import (
    AlertConfig,
    AlertThreshold,
    Budget,
    BudgetAlert,
    BudgetPeriod,
    CategoryAllocation,
    CurrentPeriod,
    RolloverConfig,
)
from budget_tracker.budgets.repository import BudgetRepository
from budget_tracker.budgets.schemas import (
    ActiveBudget,
    ActiveBudgetsResponse,
    AlertEvaluation,
    AlertTestResponse,
    BudgetCreate,
    BudgetFailure,
    BudgetPerformanceResponse,
    BudgetResponse,
    BudgetUpdate,
    CategoryAllocationIn,
    ClosePeriodRequest,
    ClosePeriodResponse,
    PerformanceOverview,
    ThresholdIn,
    to_response,
)
from budget_tracker.config import settings
from budget_tracker.event_store.models import AggregateType, EventType
from budget_tracker.event_store.service import EventStoreService
from budget_tracker.exceptions import (
    AppError,
    DegenerateAmountError,
    InvalidWindowError,
    LedgerTimeoutError,
    NotFoundError,
    ValidationError,
)

logger = structlog.get_logger()

_FULL_ALLOCATION = Decimal("100")
_ALLOCATION_TOLERANCE = Decimal("0.01")


class BudgetLockRegistry:
    """Process-wide ``asyncio.Lock`` per budget id.

    Serializes the load / evaluate / save cycle of a single budget so two
    requests cannot both see a threshold armed and both fire it. Entries are
    weak: a lock lives only while some caller holds or awaits it.
    """

    def __init__(self) -> None:
        self._locks: weakref.WeakValueDictionary[str, asyncio.Lock] = (
            weakref.WeakValueDictionary()
        )

    def __len__(self) -> int:
        return len(self._locks)

    def lock(self, budget_id: str) -> asyncio.Lock:
        lock = self._locks.get(budget_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[budget_id] = lock
        return lock


budget_locks = BudgetLockRegistry()


def _validate_window(start_date, end_date) -> None:
    if end_date <= start_date:
        raise InvalidWindowError(start_date, end_date)


def _validate_amount(amount: Decimal) -> None:
    if amount <= 0:
        raise DegenerateAmountError(amount)


def _build_allocations(categories: list[CategoryAllocationIn]) -> tuple[CategoryAllocation, ...]:
    allocations = tuple(
        CategoryAllocation(
            category_id=c.category_id,
            allocation=c.allocation if c.allocation is not None else _FULL_ALLOCATION,
        )
        for c in categories
    )
    ids = [a.category_id for a in allocations]
    if len(set(ids)) != len(ids):
        raise ValidationError("Categories must not repeat")
    total = sum((a.allocation for a in allocations), Decimal("0"))
    if len(allocations) > 1 and abs(total - _FULL_ALLOCATION) > _ALLOCATION_TOLERANCE:
        raise ValidationError("Category allocations must sum to 100%")
    return allocations


def _build_thresholds(thresholds: list[ThresholdIn] | None) -> tuple[AlertThreshold, ...]:
    if thresholds is None:
        return default_thresholds(
            settings.default_warning_threshold, settings.default_critical_threshold
        )
    return tuple(AlertThreshold(percentage=t.percentage, kind=t.kind) for t in thresholds)


class BudgetService:
    def __init__(
        self,
        event_store: EventStoreService,
        repo: BudgetRepository,
        engine: BudgetEngine,
        locks: BudgetLockRegistry = budget_locks,
        ledger_timeout: float | None = None,
    ) -> None:
        self._event_store = event_store
        self._repo = repo
        self._engine = engine
        self._locks = locks
        self._ledger_timeout = ledger_timeout or settings.ledger_query_timeout_seconds

    async def create(self, owner_id: str, data: BudgetCreate) -> BudgetResponse:
        _validate_amount(data.amount)
        _validate_window(data.start_date, data.end_date)
        categories = _build_allocations(data.categories)

        now = self._engine.now()
        budget = Budget(
            owner_id=owner_id,
            name=data.name,
            description=data.description,
            amount=data.amount,
            period=data.period,
            start_date=data.start_date,
            end_date=data.end_date,
            categories=categories,
            type=data.type,
            rollover=RolloverConfig(
                enabled=data.rollover_enabled,
                max_percentage=(
                    data.max_rollover_percentage
                    if data.max_rollover_percentage is not None
                    else settings.default_max_rollover_percentage
                ),
            ),
            alerts=AlertConfig(
                enabled=data.alerts_enabled,
                thresholds=_build_thresholds(data.thresholds),
            ),
            current_period=CurrentPeriod(remaining=data.amount),
            created_at=now,
            updated_at=now,
        )

        budget = await self._save(budget, EventType.budget_created)
        logger.info("budget_created", budget_id=budget.id, owner_id=owner_id, name=budget.name)
        return to_response(budget)

    async def get(self, owner_id: str, budget_id: str) -> BudgetResponse:
        return to_response(await self._load(owner_id, budget_id, include_inactive=True))

    async def list_budgets(
        self,
        owner_id: str,
        active: bool | None = None,
        period: BudgetPeriod | None = None,
    ) -> list[BudgetResponse]:
        budgets = await self._repo.list_for_owner(owner_id, active=active, period=period)
        return [to_response(b) for b in budgets]

    async def update(self, owner_id: str, budget_id: str, data: BudgetUpdate) -> BudgetResponse:
        fields = data.model_dump(exclude_unset=True)
        if not fields:
            raise ValidationError("No update fields provided")

        async with self._locks.lock(budget_id):
            budget = await self._load(owner_id, budget_id, include_inactive=True)
            changes = self._collect_changes(budget, data, fields)
            if not changes:
                raise ValidationError("No update fields provided")

            budget = apply_structural_edit(budget, changes, self._engine.now())
            if {"categories", "start_date", "end_date"} & changes.keys():
                budget = await self._recompute(budget)
            budget = await self._save(budget, EventType.budget_updated)

        logger.info("budget_updated", budget_id=budget_id, fields=sorted(changes))
        return to_response(budget)

    async def delete(self, owner_id: str, budget_id: str) -> None:
        async with self._locks.lock(budget_id):
            budget = await self._load(owner_id, budget_id)
            budget = budget.model_copy(
                update={"is_active": False, "updated_at": self._engine.now()}
            )
            await self._save(budget, EventType.budget_deleted)
        logger.info("budget_deleted", budget_id=budget_id)

    async def recompute(self, owner_id: str, budget_id: str) -> BudgetResponse:
        async with self._locks.lock(budget_id):
            budget = await self._load(owner_id, budget_id)
            budget = await self._recompute(budget)
            budget = await self._save(budget, EventType.budget_spending_recomputed)
        return to_response(budget)

    async def evaluate_alerts(self, owner_id: str, budget_id: str) -> AlertEvaluation:
        async with self._locks.lock(budget_id):
            budget, alerts = await self._refresh_and_evaluate(
                await self._load(owner_id, budget_id)
            )
        return AlertEvaluation(budget=to_response(budget), alerts=alerts)

    async def reset_alerts(self, owner_id: str, budget_id: str) -> BudgetResponse:
        async with self._locks.lock(budget_id):
            budget = await self._load(owner_id, budget_id)
            budget = self._engine.reset_alerts(budget)
            budget = await self._save(budget, EventType.budget_alerts_reset)
        logger.info("budget_alerts_reset", budget_id=budget_id)
        return to_response(budget)

    async def test_alerts(self, owner_id: str, budget_id: str) -> AlertTestResponse:
        """Rearm every threshold, then evaluate against fresh spending."""
        async with self._locks.lock(budget_id):
            budget = await self._load(owner_id, budget_id)
            budget = await self._save(
                self._engine.reset_alerts(budget), EventType.budget_alerts_reset
            )
            budget, alerts = await self._refresh_and_evaluate(budget)

        metrics = self._engine.compute_metrics(budget)
        return AlertTestResponse(
            alerts_triggered=len(alerts),
            alerts=alerts,
            current_utilization=metrics.utilization_percentage,
        )

    async def performance(self, owner_id: str, budget_id: str) -> BudgetPerformanceResponse:
        async with self._locks.lock(budget_id):
            budget, alerts = await self._refresh_and_evaluate(
                await self._load(owner_id, budget_id)
            )

        metrics = self._engine.compute_metrics(budget)
        return BudgetPerformanceResponse(
            budget=to_response(budget),
            metrics=metrics,
            status=metrics.status,
            alerts=alerts,
        )

    async def active(self, owner_id: str) -> ActiveBudgetsResponse:
        """Refresh and evaluate every budget live today.

        Budgets are processed independently; one failing does not stop the
        rest and is reported in ``failures``.
        """
        budgets = await self._repo.list_active(owner_id, self._engine.now().date())

        results: list[ActiveBudget] = []
        failures: list[BudgetFailure] = []
        for budget in budgets:
            try:
                async with self._locks.lock(budget.id):
                    refreshed, alerts = await self._refresh_and_evaluate(
                        await self._reload(budget)
                    )
            except AppError as exc:
                failures.append(self._failure(budget.id, exc))
                continue
            except Exception:
                failures.append(self._unexpected_failure(budget.id))
                continue
            results.append(
                ActiveBudget(
                    budget=to_response(refreshed),
                    has_alerts=bool(alerts),
                    alerts=alerts,
                )
            )

        return ActiveBudgetsResponse(budgets=results, failures=failures)

    async def overview(self, owner_id: str) -> PerformanceOverview:
        budgets = await self._repo.list_active(owner_id, self._engine.now().date())

        refreshed: list[Budget] = []
        failures: list[BudgetFailure] = []
        for budget in budgets:
            try:
                async with self._locks.lock(budget.id):
                    current = await self._recompute(await self._reload(budget))
                    refreshed.append(
                        await self._save(current, EventType.budget_spending_recomputed)
                    )
            except AppError as exc:
                failures.append(self._failure(budget.id, exc))
            except Exception:
                failures.append(self._unexpected_failure(budget.id))

        summary = self._engine.rank_performance(refreshed)
        logger.info(
            "budget_overview_computed",
            owner_id=owner_id,
            total_budgets=summary.summary.total_budgets,
            failures=len(failures),
        )
        return PerformanceOverview(overview=summary, failures=failures)

    async def close_period(
        self, owner_id: str, budget_id: str, data: ClosePeriodRequest
    ) -> ClosePeriodResponse:
        async with self._locks.lock(budget_id):
            budget = await self._load(owner_id, budget_id)
            budget = await self._recompute(budget)
            outcome = self._engine.close_period(budget, data.next_start, data.next_end)
            budget = await self._save(outcome.budget, EventType.budget_period_closed)

        return ClosePeriodResponse(
            carryover=outcome.carryover,
            snapshot=outcome.snapshot,
            budget=to_response(budget),
        )

    async def _load(
        self, owner_id: str, budget_id: str, include_inactive: bool = False
    ) -> Budget:
        """Owner-scoped read. Deleted budgets are only visible to get and update."""
        budget = await self._repo.get_by_id(budget_id)
        if budget is None or budget.owner_id != owner_id:
            raise NotFoundError("Budget", budget_id)
        if not budget.is_active and not include_inactive:
            raise NotFoundError("Budget", budget_id)
        return budget

    async def _reload(self, budget: Budget) -> Budget:
        """Fresh copy of a listed budget, read under its lock."""
        current = await self._repo.get_by_id(budget.id)
        if current is None:
            raise NotFoundError("Budget", budget.id)
        return current

    async def _recompute(self, budget: Budget) -> Budget:
        try:
            async with asyncio.timeout(self._ledger_timeout):
                return await self._engine.recompute_spending(budget)
        except TimeoutError:
            raise LedgerTimeoutError(budget.id, self._ledger_timeout) from None

    async def _refresh_and_evaluate(self, budget: Budget) -> tuple[Budget, list[BudgetAlert]]:
        """Recompute spending, evaluate thresholds and persist the result.

        Must run under the budget's lock.
        """
        budget = await self._recompute(budget)
        budget, alerts = self._engine.evaluate_alerts(budget)
        event_type = (
            EventType.budget_alerts_fired if alerts else EventType.budget_spending_recomputed
        )
        return await self._save(budget, event_type), alerts

    async def _save(self, budget: Budget, event_type: EventType) -> Budget:
        event = await self._event_store.append_event(
            aggregate_type=AggregateType.budget,
            aggregate_id=budget.id,
            event_type=event_type,
            event_data={"document": budget.to_document()},
            expected_version=budget.version,
        )
        return budget.model_copy(update={"version": event.version})

    def _collect_changes(self, budget: Budget, data: BudgetUpdate, fields: dict) -> dict:
        changes: dict = {}
        for key in ("name", "period", "is_active"):
            if fields.get(key) is not None:
                changes[key] = fields[key]
        if "description" in fields:
            changes["description"] = data.description

        if data.amount is not None:
            _validate_amount(data.amount)
            changes["amount"] = data.amount

        if data.start_date is not None or data.end_date is not None:
            start_date = data.start_date or budget.start_date
            end_date = data.end_date or budget.end_date
            _validate_window(start_date, end_date)
            changes["start_date"] = start_date
            changes["end_date"] = end_date

        if data.categories is not None:
            changes["categories"] = _build_allocations(data.categories)

        if data.rollover_enabled is not None or data.max_rollover_percentage is not None:
            rollover_update: dict = {}
            if data.rollover_enabled is not None:
                rollover_update["enabled"] = data.rollover_enabled
            if data.max_rollover_percentage is not None:
                rollover_update["max_percentage"] = data.max_rollover_percentage
            changes["rollover"] = budget.rollover.model_copy(update=rollover_update)

        if data.alerts_enabled is not None or "thresholds" in fields:
            alerts_update: dict = {}
            if data.alerts_enabled is not None:
                alerts_update["enabled"] = data.alerts_enabled
            if "thresholds" in fields:
                alerts_update["thresholds"] = tuple(
                    AlertThreshold(percentage=t.percentage, kind=t.kind)
                    for t in data.thresholds or []
                )
            changes["alerts"] = budget.alerts.model_copy(update=alerts_update)

        return changes

    @staticmethod
    def _failure(budget_id: str, exc: AppError) -> BudgetFailure:
        logger.warning(
            "budget_evaluation_failed",
            budget_id=budget_id,
            code=exc.code,
            message=exc.message,
        )
        return BudgetFailure(budget_id=budget_id, error=exc.code, message=exc.message)

    @staticmethod
    def _unexpected_failure(budget_id: str) -> BudgetFailure:
        logger.exception("budget_evaluation_failed", budget_id=budget_id, code="INTERNAL_ERROR")
        return BudgetFailure(
            budget_id=budget_id,
            error="INTERNAL_ERROR",
            message=f"Budget '{budget_id}' could not be evaluated",
        )
