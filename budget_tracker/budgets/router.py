from fastapi import APIRouter

from budget_tracker.budgets.models import BudgetPeriod
from budget_tracker.budgets.schemas import (
    ActiveBudgetsResponse,
    AlertEvaluation,
    AlertTestResponse,
    BudgetCreate,
    BudgetPerformanceResponse,
    BudgetResponse,
    BudgetUpdate,
    ClosePeriodRequest,
    ClosePeriodResponse,
    PerformanceOverview,
)
from budget_tracker.dependencies import BudgetServiceDep, OwnerId

router = APIRouter()


@router.post("/", status_code=201, response_model=BudgetResponse)
async def create_budget(
    data: BudgetCreate,
    service: BudgetServiceDep,
    owner_id: OwnerId,
) -> BudgetResponse:
    return await service.create(owner_id, data)


@router.get("/", response_model=list[BudgetResponse])
async def list_budgets(
    service: BudgetServiceDep,
    owner_id: OwnerId,
    active: bool | None = None,
    period: BudgetPeriod | None = None,
) -> list[BudgetResponse]:
    return await service.list_budgets(owner_id, active=active, period=period)


@router.get("/active", response_model=ActiveBudgetsResponse)
async def get_active_budgets(
    service: BudgetServiceDep,
    owner_id: OwnerId,
) -> ActiveBudgetsResponse:
    return await service.active(owner_id)


@router.get("/performance/overview", response_model=PerformanceOverview)
async def get_performance_overview(
    service: BudgetServiceDep,
    owner_id: OwnerId,
) -> PerformanceOverview:
    return await service.overview(owner_id)


@router.get("/{budget_id}", response_model=BudgetResponse)
async def get_budget(
    budget_id: str,
    service: BudgetServiceDep,
    owner_id: OwnerId,
) -> BudgetResponse:
    return await service.get(owner_id, budget_id)


@router.put("/{budget_id}", response_model=BudgetResponse)
async def update_budget(
    budget_id: str,
    data: BudgetUpdate,
    service: BudgetServiceDep,
    owner_id: OwnerId,
) -> BudgetResponse:
    return await service.update(owner_id, budget_id, data)


@router.delete("/{budget_id}", status_code=204)
async def delete_budget(
    budget_id: str,
    service: BudgetServiceDep,
    owner_id: OwnerId,
) -> None:
    await service.delete(owner_id, budget_id)


@router.post("/{budget_id}/recompute", response_model=BudgetResponse)
async def recompute_budget(
    budget_id: str,
    service: BudgetServiceDep,
    owner_id: OwnerId,
) -> BudgetResponse:
    return await service.recompute(owner_id, budget_id)


@router.get("/{budget_id}/performance", response_model=BudgetPerformanceResponse)
async def get_budget_performance(
    budget_id: str,
    service: BudgetServiceDep,
    owner_id: OwnerId,
) -> BudgetPerformanceResponse:
    return await service.performance(owner_id, budget_id)


@router.post("/{budget_id}/alerts/evaluate", response_model=AlertEvaluation)
async def evaluate_alerts(
    budget_id: str,
    service: BudgetServiceDep,
    owner_id: OwnerId,
) -> AlertEvaluation:
    return await service.evaluate_alerts(owner_id, budget_id)


@router.post("/{budget_id}/alerts/reset", response_model=BudgetResponse)
async def reset_alerts(
    budget_id: str,
    service: BudgetServiceDep,
    owner_id: OwnerId,
) -> BudgetResponse:
    return await service.reset_alerts(owner_id, budget_id)


@router.post("/{budget_id}/alerts/test", response_model=AlertTestResponse)
async def test_alerts(
    budget_id: str,
    service: BudgetServiceDep,
    owner_id: OwnerId,
) -> AlertTestResponse:
    return await service.test_alerts(owner_id, budget_id)


@router.post("/{budget_id}/close-period", response_model=ClosePeriodResponse)
async def close_period(
    budget_id: str,
    service: BudgetServiceDep,
    owner_id: OwnerId,
    data: ClosePeriodRequest | None = None,
) -> ClosePeriodResponse:
    return await service.close_period(owner_id, budget_id, data or ClosePeriodRequest())
