from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from budget_tracker.budgets.router import router as budgets_router
from budget_tracker.config import settings
from budget_tracker.database import close_database, init_database
from budget_tracker.exception_handlers import register_exception_handlers
from budget_tracker.ledger.router import router as ledger_router
from budget_tracker.logging_config import setup_logging


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()
    await init_database()
    yield
    await close_database()


app = FastAPI(
    title="Budget Tracker",
    description="Budget tracking and alert engine for a personal finance ledger",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[origin.strip() for origin in settings.cors_origins.split(",")],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)

app.include_router(ledger_router, prefix="/api/v1/transactions", tags=["transactions"])
app.include_router(budgets_router, prefix="/api/v1/budgets", tags=["budgets"])


@app.get("/api/v1/health")
async def health():
    from budget_tracker.database import check_health

    await check_health()
    return {"status": "healthy"}
