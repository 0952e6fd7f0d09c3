from dataclasses import dataclass
from enum import StrEnum


class AggregateType(StrEnum):
    transaction = "transaction"
    budget = "budget"


class EventType(StrEnum):
    transaction_created = "transaction_created"
    transaction_updated = "transaction_updated"
    transaction_deleted = "transaction_deleted"
    budget_created = "budget_created"
    budget_updated = "budget_updated"
    budget_deleted = "budget_deleted"
    budget_spending_recomputed = "budget_spending_recomputed"
    budget_alerts_fired = "budget_alerts_fired"
    budget_alerts_reset = "budget_alerts_reset"
    budget_period_closed = "budget_period_closed"


BUDGET_SNAPSHOT_EVENTS = frozenset(
    {
        EventType.budget_created,
        EventType.budget_updated,
        EventType.budget_deleted,
        EventType.budget_spending_recomputed,
        EventType.budget_alerts_fired,
        EventType.budget_alerts_reset,
        EventType.budget_period_closed,
    }
)


@dataclass(frozen=True)
class Event:
    event_id: str
    aggregate_type: str
    aggregate_id: str
    event_type: str
    event_data: str
    metadata: str | None
    version: int
    created_at: str
