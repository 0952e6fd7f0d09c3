import datetime as dt
from decimal import Decimal

from pydantic import BaseModel, Field

from budget_tracker.ledger.models import TransactionStatus, TransactionType


class TransactionCreate(BaseModel):
    type: TransactionType
    amount: Decimal = Field(gt=0, max_digits=18, decimal_places=2)
    category: str = Field(min_length=1)
    description: str | None = Field(default=None, max_length=500)
    date: dt.date
    currency: str = "USD"
    status: TransactionStatus = TransactionStatus.completed


class TransactionUpdate(BaseModel):
    amount: Decimal | None = Field(default=None, gt=0, max_digits=18, decimal_places=2)
    category: str | None = Field(default=None, min_length=1)
    description: str | None = Field(default=None, max_length=500)
    date: dt.date | None = None
    status: TransactionStatus | None = None


class TransactionResponse(BaseModel):
    id: str
    owner_id: str
    type: TransactionType
    status: TransactionStatus
    amount: Decimal
    currency: str
    category: str
    description: str | None
    date: dt.date
    is_deleted: bool
    created_at: str
    updated_at: str


class TransactionFilter(BaseModel):
    date_from: dt.date | None = None
    date_to: dt.date | None = None
    category: str | None = None
    type: TransactionType | None = None
    status: TransactionStatus | None = None
    limit: int = Field(default=50, ge=1, le=500)
    offset: int = Field(default=0, ge=0)
