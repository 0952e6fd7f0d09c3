from collections.abc import Sequence
from datetime import date
from decimal import Decimal

import aiosqlite
import structlog

from budget_tracker.ledger.models import SpendingTotals, TransactionStatus, TransactionType
from budget_tracker.ledger.schemas import TransactionFilter

logger = structlog.get_logger()

_TRANSACTION_COLUMNS = """
    id, owner_id, type, status, amount, currency, category, description,
    date, is_deleted, created_at, updated_at
"""


class LedgerRepository:
    def __init__(self, db: aiosqlite.Connection) -> None:
        self._db = db

    async def get_by_id(self, transaction_id: str) -> dict | None:
        cursor = await self._db.execute(
            f"""
            SELECT {_TRANSACTION_COLUMNS}
            FROM transactions_projection
            WHERE id = ?
            """,
            (transaction_id,),
        )
        row = await cursor.fetchone()
        if row is None:
            return None
        return dict(row)

    async def list_filtered(self, owner_id: str, filters: TransactionFilter) -> list[dict]:
        conditions: list[str] = ["is_deleted = 0", "owner_id = ?"]
        params: list = [owner_id]

        if filters.date_from is not None:
            conditions.append("date >= ?")
            params.append(filters.date_from.isoformat())
        if filters.date_to is not None:
            conditions.append("date <= ?")
            params.append(filters.date_to.isoformat())
        if filters.category is not None:
            conditions.append("category = ?")
            params.append(filters.category)
        if filters.type is not None:
            conditions.append("type = ?")
            params.append(filters.type)
        if filters.status is not None:
            conditions.append("status = ?")
            params.append(filters.status)

        where_clause = " AND ".join(conditions)
        params.extend([filters.limit, filters.offset])

        cursor = await self._db.execute(
            f"""
            SELECT {_TRANSACTION_COLUMNS}
            FROM transactions_projection
            WHERE {where_clause}
            ORDER BY date DESC
            LIMIT ? OFFSET ?
            """,
            params,
        )
        rows = await cursor.fetchall()
        return [dict(row) for row in rows]

    async def find_spending(
        self,
        owner_id: str,
        category_ids: Sequence[str],
        start: date,
        end: date,
    ) -> SpendingTotals:
        """Sum completed expenses of ``owner_id`` in any of ``category_ids``
        dated within ``[start, end]``, both ends inclusive.

        Amounts are summed as ``Decimal`` in Python so no float rounding
        leaks into budget figures.
        """
        categories = list(dict.fromkeys(category_ids))
        if not categories:
            return SpendingTotals()

        placeholders = ", ".join("?" for _ in categories)
        cursor = await self._db.execute(
            f"""
            SELECT category, amount
            FROM transactions_projection
            WHERE owner_id = ?
              AND is_deleted = 0
              AND type = ?
              AND status = ?
              AND category IN ({placeholders})
              AND date >= ? AND date <= ?
            """,
            (
                owner_id,
                TransactionType.expense,
                TransactionStatus.completed,
                *categories,
                start.isoformat(),
                end.isoformat(),
            ),
        )
        rows = await cursor.fetchall()

        by_category = {category: Decimal("0") for category in categories}
        total = Decimal("0")
        for row in rows:
            amount = Decimal(row["amount"])
            by_category[row["category"]] += amount
            total += amount

        logger.debug(
            "spending_queried",
            owner_id=owner_id,
            categories=len(categories),
            transaction_count=len(rows),
        )
        return SpendingTotals(
            total_spent=total,
            transaction_count=len(rows),
            by_category=by_category,
        )
