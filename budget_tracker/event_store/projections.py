import json

import aiosqlite
import structlog

from budget_tracker.event_store.models import BUDGET_SNAPSHOT_EVENTS, Event, EventType

logger = structlog.get_logger()


class ProjectionEngine:
    def __init__(self, db: aiosqlite.Connection) -> None:
        self._db = db

    async def project(self, event: Event) -> None:
        handler = self._get_handler(event.event_type)
        if handler is not None:
            data = json.loads(event.event_data)
            await handler(event, data)
            logger.info(
                "projection_applied",
                event_type=event.event_type,
                aggregate_id=event.aggregate_id,
            )

    def _get_handler(self, event_type: str):
        if event_type in BUDGET_SNAPSHOT_EVENTS:
            return self._handle_budget_snapshot
        handlers = {
            EventType.transaction_created: self._handle_transaction_created,
            EventType.transaction_updated: self._handle_transaction_updated,
            EventType.transaction_deleted: self._handle_transaction_deleted,
        }
        return handlers.get(event_type)

    async def _handle_transaction_created(self, event: Event, data: dict) -> None:
        await self._db.execute(
            """
            INSERT INTO transactions_projection (
                id, owner_id, type, status, amount, currency, category,
                description, date, is_deleted, created_at, updated_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, 0, ?, ?)
            """,
            (
                event.aggregate_id,
                data["owner_id"],
                data["type"],
                data.get("status", "completed"),
                data["amount"],
                data.get("currency", "USD"),
                data["category"],
                data.get("description"),
                data["date"],
                event.created_at,
                event.created_at,
            ),
        )

    async def _handle_transaction_updated(self, event: Event, data: dict) -> None:
        set_clauses: list[str] = []
        params: list = []

        for column in ("type", "status", "amount", "currency", "category", "description", "date"):
            if column in data:
                set_clauses.append(f"{column} = ?")
                params.append(data[column])

        set_clauses.append("updated_at = ?")
        params.append(event.created_at)
        params.append(event.aggregate_id)

        await self._db.execute(
            f"""
            UPDATE transactions_projection
            SET {', '.join(set_clauses)}
            WHERE id = ? AND is_deleted = 0
            """,
            params,
        )

    async def _handle_transaction_deleted(self, event: Event, data: dict) -> None:
        await self._db.execute(
            """
            UPDATE transactions_projection
            SET is_deleted = 1, updated_at = ?
            WHERE id = ?
            """,
            (event.created_at, event.aggregate_id),
        )

    async def _handle_budget_snapshot(self, event: Event, data: dict) -> None:
        document = data["document"]
        await self._db.execute(
            """
            INSERT INTO budgets_projection (
                id, owner_id, name, start_date, end_date, is_active,
                document, version, created_at, updated_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(id) DO UPDATE SET
                name = excluded.name,
                start_date = excluded.start_date,
                end_date = excluded.end_date,
                is_active = excluded.is_active,
                document = excluded.document,
                version = excluded.version,
                updated_at = excluded.updated_at
            """,
            (
                event.aggregate_id,
                document["owner_id"],
                document["name"],
                document["start_date"],
                document["end_date"],
                1 if document.get("is_active", True) else 0,
                json.dumps(document),
                event.version,
                event.created_at,
                event.created_at,
            ),
        )
