from dataclasses import dataclass, field
from decimal import Decimal
from enum import StrEnum


class TransactionType(StrEnum):
    income = "income"
    expense = "expense"


class TransactionStatus(StrEnum):
    completed = "completed"
    pending = "pending"
    cancelled = "cancelled"


@dataclass(frozen=True)
class SpendingTotals:
    """Result of a ledger spending query over one budget window."""

    total_spent: Decimal = Decimal("0")
    transaction_count: int = 0
    by_category: dict[str, Decimal] = field(default_factory=dict)
