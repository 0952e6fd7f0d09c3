import json
from datetime import UTC, datetime
from uuid import uuid4

import aiosqlite
import structlog

from budget_tracker.event_store.models import Event
from budget_tracker.event_store.projections import ProjectionEngine
from budget_tracker.event_store.repository import EventRepository
from budget_tracker.exceptions import PersistenceConflictError

logger = structlog.get_logger()


class EventStoreService:
    def __init__(self, db: aiosqlite.Connection) -> None:
        self._db = db
        self._repository = EventRepository(db)
        self._projection_engine = ProjectionEngine(db)

    async def append_event(
        self,
        aggregate_type: str,
        aggregate_id: str,
        event_type: str,
        event_data: dict,
        metadata: dict | None = None,
        expected_version: int | None = None,
    ) -> Event:
        """Append an event and project it in one commit.

        With ``expected_version`` set the append only succeeds when the
        aggregate's latest version still equals it; otherwise
        ``PersistenceConflictError`` is raised and nothing is written.
        """
        latest_version = await self._repository.get_latest_version(aggregate_id)
        if expected_version is not None and latest_version != expected_version:
            raise PersistenceConflictError(aggregate_id, expected_version, latest_version)

        version = latest_version + 1

        event = Event(
            event_id=str(uuid4()),
            aggregate_type=aggregate_type,
            aggregate_id=aggregate_id,
            event_type=event_type,
            event_data=json.dumps(event_data),
            metadata=json.dumps(metadata) if metadata else None,
            version=version,
            created_at=datetime.now(UTC).isoformat(),
        )

        try:
            await self._repository.append(event)
            await self._projection_engine.project(event)
        except aiosqlite.IntegrityError:
            # Another writer took this version between the read and the insert
            await self._db.rollback()
            actual = await self._repository.get_latest_version(aggregate_id)
            raise PersistenceConflictError(aggregate_id, latest_version, actual) from None
        except Exception:
            await self._db.rollback()
            raise
        await self._db.commit()

        logger.info(
            "event_stored_and_projected",
            event_id=event.event_id,
            aggregate_type=aggregate_type,
            aggregate_id=aggregate_id,
            event_type=event_type,
            version=version,
        )

        return event

    async def get_events(self, aggregate_type: str, aggregate_id: str) -> list[Event]:
        return await self._repository.get_by_aggregate(aggregate_type, aggregate_id)
