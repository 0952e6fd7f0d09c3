import aiosqlite
import structlog

from budget_tracker.event_store.models import Event

logger = structlog.get_logger()

_EVENT_COLUMNS = """
    event_id, aggregate_type, aggregate_id, event_type,
    event_data, metadata, version, created_at
"""


def _row_to_event(row: aiosqlite.Row) -> Event:
    return Event(
        event_id=row["event_id"],
        aggregate_type=row["aggregate_type"],
        aggregate_id=row["aggregate_id"],
        event_type=row["event_type"],
        event_data=row["event_data"],
        metadata=row["metadata"],
        version=row["version"],
        created_at=row["created_at"],
    )


class EventRepository:
    def __init__(self, db: aiosqlite.Connection) -> None:
        self._db = db

    async def append(self, event: Event) -> None:
        await self._db.execute(
            f"""
            INSERT INTO events ({_EVENT_COLUMNS})
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                event.event_id,
                event.aggregate_type,
                event.aggregate_id,
                event.event_type,
                event.event_data,
                event.metadata,
                event.version,
                event.created_at,
            ),
        )
        logger.info(
            "event_appended",
            event_id=event.event_id,
            aggregate_type=event.aggregate_type,
            aggregate_id=event.aggregate_id,
            event_type=event.event_type,
            version=event.version,
        )

    async def get_by_aggregate(self, aggregate_type: str, aggregate_id: str) -> list[Event]:
        cursor = await self._db.execute(
            f"""
            SELECT {_EVENT_COLUMNS}
            FROM events
            WHERE aggregate_type = ? AND aggregate_id = ?
            ORDER BY version ASC
            """,
            (aggregate_type, aggregate_id),
        )
        rows = await cursor.fetchall()
        return [_row_to_event(row) for row in rows]

    async def get_latest_version(self, aggregate_id: str) -> int:
        cursor = await self._db.execute(
            """
            SELECT COALESCE(MAX(version), 0) AS latest_version
            FROM events
            WHERE aggregate_id = ?
            """,
            (aggregate_id,),
        )
        row = await cursor.fetchone()
        return row["latest_version"] if row else 0
