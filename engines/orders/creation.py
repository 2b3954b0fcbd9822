"""
POS Orders Engine — Creation Path
===================================
Assembles a brand-new Order snapshot. Shared by direct creation,
template stamping and recurring instance generation so all three
compute totals, due dates and the approval gate the same way.

Pure: no repository access, no clock reads.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Sequence, Tuple

from engines.orders.approval import build_workflow, requires_approval
from engines.orders.config import OrderLifecycleConfig
from engines.orders.models import (
    Address,
    Order,
    OrderItem,
    OrderPriority,
    OrderStatus,
    PaymentTerms,
    RecurringOrderConfig,
    StatusHistoryEntry,
)
from engines.orders.payment_terms import (
    default_payment_terms,
    resolve_due_date,
    validate_installments,
)
from engines.orders.policies import enforce, order_items_must_be_present_policy
from engines.orders.totals import calculate_totals

CREATED_REASON = "Order created"


@dataclass(frozen=True)
class OrderDraft:
    """Caller-supplied fields of a new order."""
    customer_id: str
    items: Tuple[OrderItem, ...]
    payment_terms: Optional[PaymentTerms] = None
    shipping_amount: int = 0
    priority: OrderPriority = OrderPriority.NORMAL
    tags: Tuple[str, ...] = ()
    notes: Optional[str] = None
    internal_notes: Optional[str] = None
    billing_address: Optional[Address] = None
    shipping_address: Optional[Address] = None
    expected_delivery_date: Optional[datetime] = None
    recurring_order: Optional[RecurringOrderConfig] = None
    currency: Optional[str] = None

    def __post_init__(self):
        if not self.customer_id:
            raise ValueError("customer_id must be non-empty.")
        if not isinstance(self.items, tuple):
            object.__setattr__(self, "items", tuple(self.items))
        if not isinstance(self.tags, tuple):
            object.__setattr__(self, "tags", tuple(self.tags))


def initial_status(total_amount: int, requested: OrderStatus, config: OrderLifecycleConfig) -> OrderStatus:
    if requires_approval(total_amount, config):
        return OrderStatus.PENDING_APPROVAL
    return requested


def assemble_order(
    draft: OrderDraft,
    *,
    order_id: str,
    tenant_id: str,
    order_number: str,
    user_id: str,
    now: datetime,
    config: OrderLifecycleConfig,
    requested_status: OrderStatus = OrderStatus.DRAFT,
    history_reason: str = CREATED_REASON,
    source_order_id: Optional[str] = None,
    template_id: Optional[str] = None,
) -> Order:
    """
    Build a new order.

    Orders above the approval threshold get a fresh workflow and
    start in PENDING_APPROVAL regardless of `requested_status`.
    """
    items: Sequence[OrderItem] = draft.items
    enforce(order_items_must_be_present_policy(items))
    totals = calculate_totals(items, draft.shipping_amount)

    terms = draft.payment_terms or default_payment_terms(config.default_net_days)
    if terms.installments:
        validate_installments(terms.installments, totals.total_amount)
    due_date = resolve_due_date(
        terms,
        now,
        default_net_days=config.default_net_days,
        fallback_days=config.fallback_due_days,
    )

    status = initial_status(totals.total_amount, requested_status, config)
    workflow = build_workflow(config) if status == OrderStatus.PENDING_APPROVAL else None

    return Order(
        order_id=order_id,
        tenant_id=tenant_id,
        order_number=order_number,
        customer_id=draft.customer_id,
        user_id=user_id,
        items=totals.items,
        subtotal=totals.subtotal,
        tax_amount=totals.tax_amount,
        discount_amount=totals.discount_amount,
        shipping_amount=totals.shipping_amount,
        total_amount=totals.total_amount,
        status=status,
        priority=draft.priority,
        payment_terms=terms,
        due_date=due_date,
        paid_amount=0,
        remaining_amount=totals.total_amount,
        currency=draft.currency or config.default_currency,
        tags=draft.tags,
        status_history=(
            StatusHistoryEntry(
                status=status,
                changed_by=user_id,
                timestamp=now,
                reason=history_reason,
            ),
        ),
        billing_address=draft.billing_address,
        shipping_address=draft.shipping_address,
        notes=draft.notes,
        internal_notes=draft.internal_notes,
        order_date=now,
        expected_delivery_date=draft.expected_delivery_date,
        approval_workflow=workflow,
        recurring_order=draft.recurring_order,
        source_order_id=source_order_id,
        template_id=template_id,
        created_at=now,
        updated_at=now,
    )
