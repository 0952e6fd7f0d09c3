from typing import Annotated

from fastapi import Depends

from budget_tracker.auth import current_owner
from budget_tracker.budgets.aggregator import SpendingAggregator
from budget_tracker.budgets.engine import BudgetEngine
from budget_tracker.budgets.repository import BudgetRepository
from budget_tracker.budgets.service import BudgetService
from budget_tracker.database import get_db
from budget_tracker.event_store.service import EventStoreService
from budget_tracker.ledger.repository import LedgerRepository
from budget_tracker.ledger.service import LedgerService

OwnerId = Annotated[str, Depends(current_owner)]


def get_event_store() -> EventStoreService:
    return EventStoreService(get_db())


def get_ledger_repo() -> LedgerRepository:
    return LedgerRepository(get_db())


def get_ledger_service() -> LedgerService:
    return LedgerService(get_event_store(), get_ledger_repo())


def get_budget_repo() -> BudgetRepository:
    return BudgetRepository(get_db())


def get_budget_engine() -> BudgetEngine:
    return BudgetEngine(SpendingAggregator(get_ledger_repo()))


def get_budget_service() -> BudgetService:
    return BudgetService(get_event_store(), get_budget_repo(), get_budget_engine())


LedgerServiceDep = Annotated[LedgerService, Depends(get_ledger_service)]
BudgetServiceDep = Annotated[BudgetService, Depends(get_budget_service)]
