import os

os.environ.setdefault("BT_JWT_SECRET", "test-secret-with-at-least-thirty-two-chars")

from datetime import UTC, datetime  # noqa: E402

import aiosqlite  # noqa: E402
import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402

from budget_tracker.budgets.aggregator import SpendingAggregator  # noqa: E402
from budget_tracker.budgets.engine import BudgetEngine  # noqa: E402
from budget_tracker.budgets.repository import BudgetRepository  # noqa: E402
from budget_tracker.budgets.service import BudgetLockRegistry, BudgetService  # noqa: E402
from budget_tracker.database import apply_schema  # noqa: E402
from budget_tracker.event_store.service import EventStoreService  # noqa: E402
from budget_tracker.ledger.repository import LedgerRepository  # noqa: E402
from budget_tracker.ledger.service import LedgerService  # noqa: E402
from factories import FrozenClock  # noqa: E402


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock(datetime(2025, 6, 16, tzinfo=UTC))


@pytest_asyncio.fixture
async def db():
    conn = await aiosqlite.connect(":memory:")
    conn.row_factory = aiosqlite.Row
    await apply_schema(conn)
    yield conn
    await conn.close()


@pytest.fixture
def event_store(db) -> EventStoreService:
    return EventStoreService(db)


@pytest.fixture
def ledger_repo(db) -> LedgerRepository:
    return LedgerRepository(db)


@pytest.fixture
def ledger(event_store, ledger_repo) -> LedgerService:
    return LedgerService(event_store, ledger_repo)


@pytest.fixture
def engine(ledger_repo, clock) -> BudgetEngine:
    return BudgetEngine(SpendingAggregator(ledger_repo), clock=clock)


@pytest.fixture
def budget_service(event_store, db, engine) -> BudgetService:
    return BudgetService(event_store, BudgetRepository(db), engine, locks=BudgetLockRegistry())
