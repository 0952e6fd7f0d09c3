from uuid import uuid4

import structlog

from budget_tracker.event_store.models import AggregateType, EventType
from budget_tracker.event_store.service import EventStoreService
from budget_tracker.exceptions import NotFoundError, ValidationError
from budget_tracker.ledger.repository import LedgerRepository
from budget_tracker.ledger.schemas import (
    TransactionCreate,
    TransactionFilter,
    TransactionResponse,
    TransactionUpdate,
)

logger = structlog.get_logger()


class LedgerService:
    def __init__(
        self,
        event_store: EventStoreService,
        repo: LedgerRepository,
    ) -> None:
        self._event_store = event_store
        self._repo = repo

    async def create(self, owner_id: str, data: TransactionCreate) -> TransactionResponse:
        transaction_id = str(uuid4())

        event_data = {
            "owner_id": owner_id,
            "type": data.type,
            "status": data.status,
            "amount": str(data.amount),
            "category": data.category,
            "description": data.description,
            "date": data.date.isoformat(),
            "currency": data.currency,
        }

        await self._event_store.append_event(
            aggregate_type=AggregateType.transaction,
            aggregate_id=transaction_id,
            event_type=EventType.transaction_created,
            event_data=event_data,
        )

        row = await self._repo.get_by_id(transaction_id)
        if row is None:
            raise ValidationError("Failed to create transaction")

        logger.info("transaction_created", transaction_id=transaction_id, owner_id=owner_id)
        return self._to_response(row)

    async def get_by_id(self, owner_id: str, transaction_id: str) -> TransactionResponse:
        row = await self._get_owned(owner_id, transaction_id)
        return self._to_response(row)

    async def list_transactions(
        self, owner_id: str, filters: TransactionFilter
    ) -> list[TransactionResponse]:
        rows = await self._repo.list_filtered(owner_id, filters)
        return [self._to_response(row) for row in rows]

    async def update(
        self, owner_id: str, transaction_id: str, data: TransactionUpdate
    ) -> TransactionResponse:
        await self._get_owned(owner_id, transaction_id)

        update_data = data.model_dump(mode="json", exclude_none=True)
        if not update_data:
            raise ValidationError("No fields to update")

        await self._event_store.append_event(
            aggregate_type=AggregateType.transaction,
            aggregate_id=transaction_id,
            event_type=EventType.transaction_updated,
            event_data=update_data,
        )

        row = await self._repo.get_by_id(transaction_id)
        if row is None:
            raise NotFoundError("Transaction", transaction_id)

        logger.info("transaction_updated", transaction_id=transaction_id)
        return self._to_response(row)

    async def delete(self, owner_id: str, transaction_id: str) -> None:
        await self._get_owned(owner_id, transaction_id)

        await self._event_store.append_event(
            aggregate_type=AggregateType.transaction,
            aggregate_id=transaction_id,
            event_type=EventType.transaction_deleted,
            event_data={"deleted": True},
        )

        logger.info("transaction_deleted", transaction_id=transaction_id)

    async def _get_owned(self, owner_id: str, transaction_id: str) -> dict:
        row = await self._repo.get_by_id(transaction_id)
        if row is None or row["is_deleted"] or row["owner_id"] != owner_id:
            raise NotFoundError("Transaction", transaction_id)
        return row

    def _to_response(self, row: dict) -> TransactionResponse:
        return TransactionResponse(
            id=row["id"],
            owner_id=row["owner_id"],
            type=row["type"],
            status=row["status"],
            amount=row["amount"],
            currency=row["currency"],
            category=row["category"],
            description=row["description"],
            date=row["date"],
            is_deleted=bool(row["is_deleted"]),
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )
