from datetime import date

from fastapi import APIRouter

from budget_tracker.dependencies import LedgerServiceDep, OwnerId
from budget_tracker.ledger.models import TransactionStatus, TransactionType
from budget_tracker.ledger.schemas import (
    TransactionCreate,
    TransactionFilter,
    TransactionResponse,
    TransactionUpdate,
)

router = APIRouter()


@router.post("/", status_code=201, response_model=TransactionResponse)
async def create_transaction(
    data: TransactionCreate,
    service: LedgerServiceDep,
    owner_id: OwnerId,
) -> TransactionResponse:
    return await service.create(owner_id, data)


@router.get("/", response_model=list[TransactionResponse])
async def list_transactions(
    service: LedgerServiceDep,
    owner_id: OwnerId,
    date_from: date | None = None,
    date_to: date | None = None,
    category: str | None = None,
    txn_type: TransactionType | None = None,
    status: TransactionStatus | None = None,
    limit: int = 50,
    offset: int = 0,
) -> list[TransactionResponse]:
    filters = TransactionFilter(
        date_from=date_from,
        date_to=date_to,
        category=category,
        type=txn_type,
        status=status,
        limit=limit,
        offset=offset,
    )
    return await service.list_transactions(owner_id, filters)


@router.get("/{transaction_id}", response_model=TransactionResponse)
async def get_transaction(
    transaction_id: str,
    service: LedgerServiceDep,
    owner_id: OwnerId,
) -> TransactionResponse:
    return await service.get_by_id(owner_id, transaction_id)


@router.put("/{transaction_id}", response_model=TransactionResponse)
async def update_transaction(
    transaction_id: str,
    data: TransactionUpdate,
    service: LedgerServiceDep,
    owner_id: OwnerId,
) -> TransactionResponse:
    return await service.update(owner_id, transaction_id, data)


@router.delete("/{transaction_id}", status_code=204)
async def delete_transaction(
    transaction_id: str,
    service: LedgerServiceDep,
    owner_id: OwnerId,
) -> None:
    await service.delete(owner_id, transaction_id)
