import json
from datetime import date

import aiosqlite

from budget_tracker.budgets.models import Budget, BudgetPeriod


def _row_to_budget(row: aiosqlite.Row) -> Budget:
    return Budget.from_document(json.loads(row["document"]), version=row["version"])


class BudgetRepository:
    def __init__(self, db: aiosqlite.Connection) -> None:
        self._db = db

    async def get_by_id(self, budget_id: str) -> Budget | None:
        cursor = await self._db.execute(
            "SELECT document, version FROM budgets_projection WHERE id = ?",
            (budget_id,),
        )
        row = await cursor.fetchone()
        if row is None:
            return None
        return _row_to_budget(row)

    async def list_for_owner(
        self,
        owner_id: str,
        active: bool | None = None,
        period: BudgetPeriod | None = None,
    ) -> list[Budget]:
        conditions: list[str] = ["owner_id = ?"]
        params: list = [owner_id]

        if active is not None:
            conditions.append("is_active = ?")
            params.append(1 if active else 0)

        cursor = await self._db.execute(
            f"""
            SELECT document, version FROM budgets_projection
            WHERE {' AND '.join(conditions)}
            ORDER BY created_at DESC, id
            """,
            params,
        )
        rows = await cursor.fetchall()
        budgets = [_row_to_budget(row) for row in rows]
        if period is not None:
            budgets = [b for b in budgets if b.period == period]
        return budgets

    async def list_active(self, owner_id: str, today: date) -> list[Budget]:
        """Active budgets whose window contains ``today``."""
        cursor = await self._db.execute(
            """
            SELECT document, version FROM budgets_projection
            WHERE owner_id = ? AND is_active = 1
              AND start_date <= ? AND end_date >= ?
            ORDER BY created_at DESC, id
            """,
            (owner_id, today.isoformat(), today.isoformat()),
        )
        rows = await cursor.fetchall()
        return [_row_to_budget(row) for row in rows]
