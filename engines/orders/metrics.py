"""
POS Orders Engine — Order Metrics
===================================
Read-side aggregates over a tenant's orders.

Delivery performance compares actual against expected delivery:
    completion_rate        = on-time deliveries / deliveries × 100
    average_delivery_days  = |mean(actual − expected)| in days
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Dict, Iterable, Optional, Tuple

from core.primitives.money import round_minor
from engines.orders.models import Order, OrderStatus, PaymentStatus
from engines.orders.repository import OPEN_PAYMENT_STATUSES

TOP_CUSTOMER_LIMIT = 10
_SECONDS_PER_DAY = 86400


@dataclass(frozen=True)
class CustomerOrderSummary:
    customer_id: str
    total_orders: int = 0
    total_value: int = 0
    average_order_value: int = 0
    last_order_date: Optional[datetime] = None
    pending_payments: int = 0

    def to_dict(self) -> dict:
        return {
            "customer_id": self.customer_id,
            "total_orders": self.total_orders,
            "total_value": self.total_value,
            "average_order_value": self.average_order_value,
            "last_order_date": (
                self.last_order_date.isoformat() if self.last_order_date else None
            ),
            "pending_payments": self.pending_payments,
        }


@dataclass(frozen=True)
class OrderMetrics:
    total_orders: int
    total_value: int
    average_order_value: int
    pending_orders: int
    overdue_payments: int
    completion_rate: float
    average_delivery_days: float
    top_customers: Tuple[CustomerOrderSummary, ...]
    orders_by_status: Dict[str, int]
    payments_by_status: Dict[str, int]

    def to_dict(self) -> dict:
        return {
            "total_orders": self.total_orders,
            "total_value": self.total_value,
            "average_order_value": self.average_order_value,
            "pending_orders": self.pending_orders,
            "overdue_payments": self.overdue_payments,
            "completion_rate": self.completion_rate,
            "average_delivery_days": self.average_delivery_days,
            "top_customers": [c.to_dict() for c in self.top_customers],
            "orders_by_status": dict(self.orders_by_status),
            "payments_by_status": dict(self.payments_by_status),
        }


def _average(total: int, count: int) -> int:
    return round_minor(Decimal(total) / count) if count else 0


def summarize_customer(customer_id: str, orders: Iterable[Order]) -> CustomerOrderSummary:
    mine = [o for o in orders if o.customer_id == customer_id]
    if not mine:
        return CustomerOrderSummary(customer_id=customer_id)
    total_value = sum(o.total_amount for o in mine)
    return CustomerOrderSummary(
        customer_id=customer_id,
        total_orders=len(mine),
        total_value=total_value,
        average_order_value=_average(total_value, len(mine)),
        last_order_date=max(o.created_at for o in mine),
        pending_payments=sum(
            o.remaining_amount for o in mine if o.payment_status in OPEN_PAYMENT_STATUSES
        ),
    )


def compute_order_metrics(orders: Iterable[Order], now: datetime) -> OrderMetrics:
    orders = list(orders)
    total_value = sum(o.total_amount for o in orders)

    orders_by_status = {s.value: 0 for s in OrderStatus}
    payments_by_status = {s.value: 0 for s in PaymentStatus}
    for order in orders:
        orders_by_status[order.status.value] += 1
        payments_by_status[order.payment_status.value] += 1

    overdue = sum(
        1 for o in orders
        if o.due_date is not None
        and o.due_date < now
        and o.payment_status in OPEN_PAYMENT_STATUSES
    )

    deltas = [
        (o.actual_delivery_date - o.expected_delivery_date).total_seconds() / _SECONDS_PER_DAY
        for o in orders
        if o.actual_delivery_date is not None and o.expected_delivery_date is not None
    ]
    on_time = sum(1 for d in deltas if d <= 0)
    completion_rate = round(on_time / len(deltas) * 100, 2) if deltas else 0.0
    average_delivery_days = round(abs(sum(deltas) / len(deltas)), 2) if deltas else 0.0

    customer_ids = {o.customer_id for o in orders}
    summaries = [summarize_customer(cid, orders) for cid in customer_ids]
    summaries.sort(key=lambda s: (-s.total_value, s.customer_id))

    return OrderMetrics(
        total_orders=len(orders),
        total_value=total_value,
        average_order_value=_average(total_value, len(orders)),
        pending_orders=orders_by_status[OrderStatus.PENDING_APPROVAL.value],
        overdue_payments=overdue,
        completion_rate=completion_rate,
        average_delivery_days=average_delivery_days,
        top_customers=tuple(summaries[:TOP_CUSTOMER_LIMIT]),
        orders_by_status=orders_by_status,
        payments_by_status=payments_by_status,
    )
