"""
POS Orders Engine — Order State Machine
=========================================
Validates and applies order status transitions.

    DRAFT            → PENDING_APPROVAL | CONFIRMED | CANCELLED
    PENDING_APPROVAL → APPROVED | CANCELLED
    APPROVED         → CONFIRMED | CANCELLED
    CONFIRMED        → IN_PRODUCTION | CANCELLED
    IN_PRODUCTION    → READY_TO_SHIP | ON_HOLD
    READY_TO_SHIP    → SHIPPED | ON_HOLD
    SHIPPED          → DELIVERED | RETURNED
    DELIVERED        → COMPLETED | RETURNED
    ON_HOLD          → IN_PRODUCTION | CANCELLED
    RETURNED         → CANCELLED
    COMPLETED, CANCELLED: terminal

RULES (NON-NEGOTIABLE):
- Invalid transitions REJECTED — no silent state skips
- Every transition appends exactly one history entry (actor + timestamp)
- The definition covers every OrderStatus (checked at construction)
- Input snapshot is never mutated

This file contains NO persistence logic.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Dict, FrozenSet, Optional

from core.errors import InvalidTransitionError
from engines.orders.models import Order, OrderStatus, StatusHistoryEntry
from engines.orders.policies import DELETABLE_STATUSES, MODIFIABLE_STATUSES

SHIPPING_LEAD_DAYS = 3


@dataclass(frozen=True)
class OrderWorkflowDefinition:
    """
    Immutable transition table for orders.

    Construction fails if any OrderStatus is missing, so adding a
    status without deciding its outgoing edges is caught at import.
    """
    initial_state: OrderStatus
    transitions: Dict[OrderStatus, FrozenSet[OrderStatus]]

    def __post_init__(self):
        missing = [s.value for s in OrderStatus if s not in self.transitions]
        if missing:
            raise ValueError(f"Transition table missing states: {missing}.")
        for source, targets in self.transitions.items():
            if source in targets:
                raise ValueError(f"Self-transition not allowed for {source.value}.")

    def is_valid_transition(self, from_state: OrderStatus, to_state: OrderStatus) -> bool:
        return to_state in self.transitions[from_state]

    def is_terminal(self, state: OrderStatus) -> bool:
        return not self.transitions[state]

    def allowed_next_states(self, from_state: OrderStatus) -> FrozenSet[OrderStatus]:
        return self.transitions[from_state]


ORDER_WORKFLOW = OrderWorkflowDefinition(
    initial_state=OrderStatus.DRAFT,
    transitions={
        OrderStatus.DRAFT: frozenset({
            OrderStatus.PENDING_APPROVAL, OrderStatus.CONFIRMED, OrderStatus.CANCELLED,
        }),
        OrderStatus.PENDING_APPROVAL: frozenset({OrderStatus.APPROVED, OrderStatus.CANCELLED}),
        OrderStatus.APPROVED: frozenset({OrderStatus.CONFIRMED, OrderStatus.CANCELLED}),
        OrderStatus.CONFIRMED: frozenset({OrderStatus.IN_PRODUCTION, OrderStatus.CANCELLED}),
        OrderStatus.IN_PRODUCTION: frozenset({OrderStatus.READY_TO_SHIP, OrderStatus.ON_HOLD}),
        OrderStatus.READY_TO_SHIP: frozenset({OrderStatus.SHIPPED, OrderStatus.ON_HOLD}),
        OrderStatus.SHIPPED: frozenset({OrderStatus.DELIVERED, OrderStatus.RETURNED}),
        OrderStatus.DELIVERED: frozenset({OrderStatus.COMPLETED, OrderStatus.RETURNED}),
        OrderStatus.ON_HOLD: frozenset({OrderStatus.IN_PRODUCTION, OrderStatus.CANCELLED}),
        OrderStatus.RETURNED: frozenset({OrderStatus.CANCELLED}),
        OrderStatus.COMPLETED: frozenset(),
        OrderStatus.CANCELLED: frozenset(),
    },
)


def can_modify(status: OrderStatus) -> bool:
    return status in MODIFIABLE_STATUSES


def can_delete(status: OrderStatus) -> bool:
    return status in DELETABLE_STATUSES


def _entry_effects(order: Order, new_status: OrderStatus, at: datetime, lead_days: int) -> dict:
    if new_status == OrderStatus.SHIPPED:
        if order.expected_delivery_date is None:
            return {"expected_delivery_date": at + timedelta(days=lead_days)}
    elif new_status == OrderStatus.DELIVERED:
        return {"actual_delivery_date": at}
    return {}


def transition(
    order: Order,
    new_status: OrderStatus,
    actor_id: str,
    at: datetime,
    reason: Optional[str] = None,
    notes: Optional[str] = None,
    *,
    definition: OrderWorkflowDefinition = ORDER_WORKFLOW,
    shipping_lead_days: int = SHIPPING_LEAD_DAYS,
) -> Order:
    """
    Return a new order snapshot moved to `new_status`.

    Raises InvalidTransitionError when the edge is not in the definition.
    """
    if not isinstance(new_status, OrderStatus):
        raise InvalidTransitionError(order.status.value, str(new_status))
    if not definition.is_valid_transition(order.status, new_status):
        raise InvalidTransitionError(order.status.value, new_status.value)

    entry = StatusHistoryEntry(
        status=new_status,
        changed_by=actor_id,
        timestamp=at,
        reason=reason,
        notes=notes,
    )
    return order.evolve(
        status=new_status,
        status_history=order.status_history + (entry,),
        updated_at=at,
        **_entry_effects(order, new_status, at, shipping_lead_days),
    )
