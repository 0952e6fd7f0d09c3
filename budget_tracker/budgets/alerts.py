"""Per-threshold alert state machine.

Each threshold is either armed (no entry in ``Budget.alert_state``) or
fired (entry holding the time it fired). A threshold fires at most once per
arming cycle; the cycle restarts when the firing map is replaced, either by
a manual reset or by a structural edit of the budget.
"""

from datetime import datetime
from decimal import Decimal

import structlog

from budget_tracker.budgets.metrics import utilization_percentage
from budget_tracker.budgets.models import AlertKind, AlertThreshold, Budget, BudgetAlert

logger = structlog.get_logger()

# Editing any of these invalidates every prior firing
STRUCTURAL_FIELDS = frozenset({"amount", "categories", "start_date", "end_date", "thresholds"})


def default_thresholds(warning: int, critical: int) -> tuple[AlertThreshold, ...]:
    return (
        AlertThreshold(percentage=warning, kind=AlertKind.warning),
        AlertThreshold(percentage=critical, kind=AlertKind.critical),
    )


def evaluate_alerts(budget: Budget, now: datetime) -> tuple[Budget, list[BudgetAlert]]:
    """Fire every armed threshold the current utilization has reached.

    Returns the budget with its firing map updated and only the alerts
    fired by this call.
    """
    if not budget.alerts.enabled:
        return budget, []

    utilization = utilization_percentage(budget.amount, budget.current_period.spent)
    remaining = max(budget.amount - budget.current_period.spent, Decimal("0"))

    fired: list[BudgetAlert] = []
    state = dict(budget.alert_state)
    for threshold in budget.alerts.thresholds:
        if threshold.id in state or utilization < threshold.percentage:
            continue
        state[threshold.id] = now
        fired.append(
            BudgetAlert(
                budget_id=budget.id,
                budget_name=budget.name,
                threshold_id=threshold.id,
                threshold_percentage=threshold.percentage,
                kind=threshold.kind,
                current_utilization=utilization,
                amount=budget.amount,
                spent=budget.current_period.spent,
                remaining=remaining,
                notified_at=now,
            )
        )

    if not fired:
        return budget, []

    logger.info(
        "budget_alerts_fired",
        budget_id=budget.id,
        utilization=utilization,
        thresholds=[a.threshold_percentage for a in fired],
    )
    return budget.model_copy(update={"alert_state": state}), fired


def reset_alerts(budget: Budget) -> Budget:
    """Rearm every threshold without touching configuration."""
    return budget.model_copy(update={"alert_state": {}})


def _changed_fields(before: Budget, after: Budget, keys) -> set[str]:
    changed = {key for key in keys if getattr(after, key) != getattr(before, key)}
    if "alerts" in changed and after.alerts.thresholds != before.alerts.thresholds:
        changed.add("thresholds")
    return changed


def apply_structural_edit(budget: Budget, changes: dict, now: datetime) -> Budget:
    """Apply ``changes`` to ``budget``, rearming all thresholds when a
    structural field actually changed value."""
    edited = Budget.model_validate({**budget.model_dump(), **changes, "updated_at": now})
    changed = _changed_fields(budget, edited, changes)

    update: dict = {}
    if "amount" in changed:
        update["current_period"] = edited.current_period.model_copy(
            update={"remaining": edited.amount - edited.current_period.spent}
        )
    if {"amount", "rollover"} & changed:
        cap = edited.amount * edited.rollover.max_percentage / Decimal("100")
        if edited.rollover.amount > cap:
            update["rollover"] = edited.rollover.model_copy(
                update={"amount": max(cap, Decimal("0"))}
            )
    if changed & STRUCTURAL_FIELDS:
        update["alert_state"] = {}
        logger.info(
            "budget_alerts_rearmed",
            budget_id=budget.id,
            changed_fields=sorted(changed & STRUCTURAL_FIELDS),
        )
    return edited.model_copy(update=update) if update else edited
