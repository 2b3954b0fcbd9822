"""POS Orders Engine - policies."""

from __future__ import annotations

from typing import AbstractSet, Mapping, Optional, Sequence

from core.errors import BadRequestError, ReasonCode, RejectionReason
from engines.orders.models import (
    ApprovalState,
    Installment,
    Order,
    OrderItem,
    OrderStatus,
    OrderTemplate,
    PaymentMethod,
)

MODIFIABLE_STATUSES = frozenset({OrderStatus.DRAFT, OrderStatus.PENDING_APPROVAL})
DELETABLE_STATUSES = frozenset({OrderStatus.DRAFT, OrderStatus.CANCELLED})


def order_must_be_modifiable_policy(order: Order) -> RejectionReason | None:
    if order.status not in MODIFIABLE_STATUSES:
        return RejectionReason(
            code=ReasonCode.ORDER_NOT_MODIFIABLE,
            message=f"Order cannot be modified in current status: {order.status.value}.",
            policy_name="order_must_be_modifiable_policy",
        )
    return None


def order_must_be_deletable_policy(order: Order) -> RejectionReason | None:
    if order.status not in DELETABLE_STATUSES:
        return RejectionReason(
            code=ReasonCode.ORDER_NOT_DELETABLE,
            message="Only draft or cancelled orders can be deleted.",
            policy_name="order_must_be_deletable_policy",
        )
    return None


def order_items_must_be_present_policy(items: Sequence[OrderItem]) -> RejectionReason | None:
    if not items:
        return RejectionReason(
            code=ReasonCode.INVALID_ITEMS,
            message="Order must contain at least one item.",
            policy_name="order_items_must_be_present_policy",
        )
    return None


def payment_amount_must_be_positive_policy(amount) -> RejectionReason | None:
    if not isinstance(amount, int) or isinstance(amount, bool) or amount <= 0:
        return RejectionReason(
            code=ReasonCode.INVALID_AMOUNT,
            message="Payment amount must be integer > 0.",
            policy_name="payment_amount_must_be_positive_policy",
        )
    return None


def shipping_amount_must_be_non_negative_policy(amount) -> RejectionReason | None:
    if not isinstance(amount, int) or isinstance(amount, bool) or amount < 0:
        return RejectionReason(
            code=ReasonCode.INVALID_AMOUNT,
            message="shipping_amount must be integer >= 0.",
            policy_name="shipping_amount_must_be_non_negative_policy",
        )
    return None


def payment_must_not_exceed_balance_policy(order: Order, amount: int) -> RejectionReason | None:
    if amount > order.remaining_amount:
        return RejectionReason(
            code=ReasonCode.PAYMENT_EXCEEDS_BALANCE,
            message=(
                f"Payment amount {amount} exceeds remaining balance "
                f"{order.remaining_amount}."
            ),
            policy_name="payment_must_not_exceed_balance_policy",
        )
    return None


def payment_method_must_be_valid_policy(method) -> RejectionReason | None:
    if not isinstance(method, PaymentMethod):
        return RejectionReason(
            code=ReasonCode.INVALID_PAYMENT_METHOD,
            message=f"Payment method '{method}' is not valid.",
            policy_name="payment_method_must_be_valid_policy",
        )
    return None


def order_must_not_be_cancelled_policy(order: Order) -> RejectionReason | None:
    if order.status == OrderStatus.CANCELLED:
        return RejectionReason(
            code=ReasonCode.ORDER_CANCELLED,
            message="Payments cannot be recorded against a cancelled order.",
            policy_name="order_must_not_be_cancelled_policy",
        )
    return None


def remaining_balance_must_not_be_negative_policy(
    total_amount: int, paid_amount: int
) -> RejectionReason | None:
    if total_amount - paid_amount < 0:
        return RejectionReason(
            code=ReasonCode.BALANCE_WOULD_BE_NEGATIVE,
            message=(
                f"New total {total_amount} is below the amount already paid "
                f"({paid_amount})."
            ),
            policy_name="remaining_balance_must_not_be_negative_policy",
        )
    return None


def installments_must_fit_total_policy(
    installments: Sequence[Installment], total_amount: int
) -> RejectionReason | None:
    scheduled = sum(i.amount for i in installments)
    if scheduled > total_amount:
        return RejectionReason(
            code=ReasonCode.INVALID_INSTALLMENTS,
            message=f"Installments sum {scheduled} exceeds order total {total_amount}.",
            policy_name="installments_must_fit_total_policy",
        )
    return None


def approval_must_be_pending_policy(order: Order) -> RejectionReason | None:
    workflow = order.approval_workflow
    if workflow is None:
        return RejectionReason(
            code=ReasonCode.APPROVAL_NOT_PENDING,
            message="Order has no approval workflow.",
            policy_name="approval_must_be_pending_policy",
        )
    if workflow.status != ApprovalState.PENDING:
        return RejectionReason(
            code=ReasonCode.APPROVAL_NOT_PENDING,
            message=f"Approval workflow already {workflow.status.value.lower()}.",
            policy_name="approval_must_be_pending_policy",
        )
    if workflow.active_step.status != ApprovalState.PENDING:
        return RejectionReason(
            code=ReasonCode.INVALID_APPROVAL_STEP,
            message=f"Approval step {workflow.current_step} is already decided.",
            policy_name="approval_must_be_pending_policy",
        )
    return None


def rejection_reason_must_be_present_policy(reason: Optional[str]) -> RejectionReason | None:
    if reason is None or not reason.strip():
        return RejectionReason(
            code=ReasonCode.REJECTION_REASON_REQUIRED,
            message="Rejection reason is required.",
            policy_name="rejection_reason_must_be_present_policy",
        )
    return None


def template_must_be_active_policy(template: OrderTemplate) -> RejectionReason | None:
    if not template.is_active:
        return RejectionReason(
            code=ReasonCode.TEMPLATE_INACTIVE,
            message=f"Template '{template.template_id}' is not active.",
            policy_name="template_must_be_active_policy",
        )
    return None


def update_fields_must_be_known_policy(
    changes: Mapping[str, object], allowed: AbstractSet[str]
) -> RejectionReason | None:
    unknown = sorted(set(changes) - set(allowed))
    if unknown:
        return RejectionReason(
            code=ReasonCode.INVALID_UPDATE_FIELD,
            message=f"Fields cannot be updated: {', '.join(unknown)}.",
            policy_name="update_fields_must_be_known_policy",
        )
    return None


def customer_must_be_specified_policy(customer_id: Optional[str]) -> RejectionReason | None:
    if not customer_id:
        return RejectionReason(
            code=ReasonCode.CUSTOMER_REQUIRED,
            message="A customer is required to create an order.",
            policy_name="customer_must_be_specified_policy",
        )
    return None


def bulk_operation_must_target_orders_policy(order_ids: Sequence[str]) -> RejectionReason | None:
    if not order_ids or any(not order_id for order_id in order_ids):
        return RejectionReason(
            code=ReasonCode.INVALID_BULK_OPERATION,
            message="Bulk operation requires at least one non-empty order id.",
            policy_name="bulk_operation_must_target_orders_policy",
        )
    return None


def enforce(*rejections: Optional[RejectionReason]) -> None:
    """Raise BadRequestError for the first rejection produced."""
    for rejection in rejections:
        if rejection is not None:
            raise BadRequestError(rejection)
