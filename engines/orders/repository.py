"""
POS Orders Engine — Repository
================================
Persistence boundary for orders, templates and bulk-operation records.

The engine only depends on the OrderRepository protocol. Two
implementations exist:
    InMemoryOrderRepository   — this module (tests, single process)
    DjangoOrderRepository     — core.orders_store.repository

Every read and write is scoped by tenant_id, except the recurring
sweep query which runs across tenants.

Writes use optimistic concurrency: update() takes the version the
caller read and raises ConcurrencyConflictError if it moved.
"""

from __future__ import annotations

import math
import threading
from contextlib import nullcontext
from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum
from typing import ContextManager, Dict, List, Optional, Protocol, Sequence, Tuple

from core.errors import ConcurrencyConflictError
from core.time import TimeWindow
from engines.orders.models import (
    BulkOrderOperation,
    Order,
    OrderPriority,
    OrderStatus,
    OrderTemplate,
    PaymentStatus,
)

SORTABLE_FIELDS = frozenset({
    "created_at",
    "updated_at",
    "order_date",
    "due_date",
    "total_amount",
    "order_number",
    "status",
    "priority",
})

OPEN_PAYMENT_STATUSES = frozenset({PaymentStatus.PENDING, PaymentStatus.PARTIAL})
CLOSED_ORDER_STATUSES = frozenset({OrderStatus.CANCELLED, OrderStatus.COMPLETED})


# ══════════════════════════════════════════════════════════════
# QUERY OBJECTS
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class Pagination:
    page: int = 1
    limit: int = 10
    sort_by: str = "created_at"
    sort_order: str = "desc"

    def __post_init__(self):
        if self.page < 1:
            raise ValueError("page must be >= 1.")
        if self.limit < 1:
            raise ValueError("limit must be >= 1.")
        if self.sort_by not in SORTABLE_FIELDS:
            raise ValueError(f"sort_by '{self.sort_by}' is not sortable.")
        if self.sort_order not in ("asc", "desc"):
            raise ValueError("sort_order must be 'asc' or 'desc'.")

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


@dataclass(frozen=True)
class OrderFilters:
    """
    Optional order filters; unset fields do not filter.

    Tuple fields match any of their values. Ranges are inclusive.
    """
    status: Tuple[OrderStatus, ...] = ()
    payment_status: Tuple[PaymentStatus, ...] = ()
    priority: Tuple[OrderPriority, ...] = ()
    tags: Tuple[str, ...] = ()
    customer_id: Optional[str] = None
    user_id: Optional[str] = None
    created_from: Optional[datetime] = None
    created_to: Optional[datetime] = None
    due_from: Optional[datetime] = None
    due_to: Optional[datetime] = None
    min_amount: Optional[int] = None
    max_amount: Optional[int] = None
    has_approval_workflow: Optional[bool] = None
    is_recurring: Optional[bool] = None

    def matches(self, order: Order) -> bool:
        if self.status and order.status not in self.status:
            return False
        if self.payment_status and order.payment_status not in self.payment_status:
            return False
        if self.priority and order.priority not in self.priority:
            return False
        if self.tags and not set(self.tags) & set(order.tags):
            return False
        if self.customer_id is not None and order.customer_id != self.customer_id:
            return False
        if self.user_id is not None and order.user_id != self.user_id:
            return False
        if self.created_from is not None and order.created_at < self.created_from:
            return False
        if self.created_to is not None and order.created_at > self.created_to:
            return False
        if self.due_from is not None or self.due_to is not None:
            if order.due_date is None:
                return False
            if self.due_from is not None and order.due_date < self.due_from:
                return False
            if self.due_to is not None and order.due_date > self.due_to:
                return False
        if self.min_amount is not None and order.total_amount < self.min_amount:
            return False
        if self.max_amount is not None and order.total_amount > self.max_amount:
            return False
        if (
            self.has_approval_workflow is not None
            and (order.approval_workflow is not None) != self.has_approval_workflow
        ):
            return False
        if self.is_recurring is not None and order.is_recurring != self.is_recurring:
            return False
        return True


@dataclass(frozen=True)
class OrderPage:
    orders: Tuple[Order, ...]
    total: int
    page: int
    limit: int

    @property
    def pages(self) -> int:
        return math.ceil(self.total / self.limit) if self.total else 0

    def to_dict(self) -> dict:
        return {
            "orders": [o.to_dict() for o in self.orders],
            "total": self.total,
            "page": self.page,
            "limit": self.limit,
            "pages": self.pages,
        }


# ══════════════════════════════════════════════════════════════
# SHARED MATCHING HELPERS
# ══════════════════════════════════════════════════════════════

def search_text(order: Order) -> str:
    """Lower-cased text an order is searchable by."""
    parts = [order.order_number, order.notes or ""]
    parts.extend(order.tags)
    for item in order.items:
        parts.extend((item.name, item.sku, item.description))
    return " ".join(p for p in parts if p).lower()


def is_overdue(order: Order, now: datetime) -> bool:
    return (
        order.due_date is not None
        and order.due_date < now
        and order.payment_status in OPEN_PAYMENT_STATUSES
        and order.status not in CLOSED_ORDER_STATUSES
    )


def is_due_within(order: Order, window: TimeWindow) -> bool:
    return (
        order.due_date is not None
        and window.contains(order.due_date)
        and order.payment_status in OPEN_PAYMENT_STATUSES
        and order.status not in CLOSED_ORDER_STATUSES
    )


def is_pending_approval(order: Order) -> bool:
    return (
        order.status == OrderStatus.PENDING_APPROVAL
        and order.approval_workflow is not None
        and order.approval_workflow.is_pending
    )


def is_recurring_due(order: Order, now: datetime) -> bool:
    config = order.recurring_order
    return (
        config is not None
        and config.enabled
        and config.next_order_date is not None
        and config.next_order_date <= now
        and order.status != OrderStatus.CANCELLED
    )


def _sort_value(order: Order, field_name: str):
    value = getattr(order, field_name)
    if isinstance(value, Enum):
        value = value.value
    return (value is None, value)


def paginate(orders: Sequence[Order], pagination: Optional[Pagination]) -> OrderPage:
    pagination = pagination or Pagination()
    ordered = sorted(orders, key=lambda o: o.order_id)
    ordered.sort(
        key=lambda o: _sort_value(o, pagination.sort_by),
        reverse=pagination.sort_order == "desc",
    )
    window = ordered[pagination.offset:pagination.offset + pagination.limit]
    return OrderPage(
        orders=tuple(window),
        total=len(ordered),
        page=pagination.page,
        limit=pagination.limit,
    )


# ══════════════════════════════════════════════════════════════
# REPOSITORY PROTOCOL
# ══════════════════════════════════════════════════════════════

class OrderRepository(Protocol):
    """Storage contract consumed by the order lifecycle service."""

    # ── Orders ────────────────────────────────────────────────
    def create(self, order: Order) -> Order: ...

    def find_by_id(self, tenant_id: str, order_id: str) -> Optional[Order]: ...

    def find_by_order_number(self, tenant_id: str, order_number: str) -> Optional[Order]: ...

    def update(self, order: Order, expected_version: int) -> Optional[Order]: ...

    def delete(self, tenant_id: str, order_id: str) -> bool: ...

    def next_order_sequence(self, tenant_id: str, day_key: str) -> int: ...

    def unit_of_work(self) -> ContextManager[None]:
        """Group several writes; stores without transactions may return a no-op."""
        ...  # pragma: no cover

    # ── Queries ───────────────────────────────────────────────
    def find_by_tenant(
        self,
        tenant_id: str,
        filters: Optional[OrderFilters] = None,
        pagination: Optional[Pagination] = None,
    ) -> OrderPage: ...

    def search(
        self, tenant_id: str, term: str, pagination: Optional[Pagination] = None
    ) -> OrderPage: ...

    def find_overdue(self, tenant_id: str, now: datetime) -> List[Order]: ...

    def find_due_between(self, tenant_id: str, window: TimeWindow) -> List[Order]: ...

    def find_pending_approval(self, tenant_id: str) -> List[Order]: ...

    def find_recurring_due(self, now: datetime) -> List[Order]: ...

    def list_for_metrics(
        self, tenant_id: str, window: Optional[TimeWindow] = None
    ) -> List[Order]: ...

    # ── Templates ─────────────────────────────────────────────
    def create_template(self, template: OrderTemplate) -> OrderTemplate: ...

    def find_template_by_id(self, tenant_id: str, template_id: str) -> Optional[OrderTemplate]: ...

    def find_templates(self, tenant_id: str) -> List[OrderTemplate]: ...

    def update_template(self, template: OrderTemplate) -> Optional[OrderTemplate]: ...

    def delete_template(self, tenant_id: str, template_id: str) -> bool: ...

    # ── Bulk operations ───────────────────────────────────────
    def create_bulk_operation(self, operation: BulkOrderOperation) -> BulkOrderOperation: ...

    def find_bulk_operation(
        self, tenant_id: str, operation_id: str
    ) -> Optional[BulkOrderOperation]: ...

    def find_bulk_operations(self, tenant_id: str) -> List[BulkOrderOperation]: ...

    def update_bulk_operation(
        self, operation: BulkOrderOperation
    ) -> Optional[BulkOrderOperation]: ...


# ══════════════════════════════════════════════════════════════
# IN-MEMORY IMPLEMENTATION
# ══════════════════════════════════════════════════════════════

class InMemoryOrderRepository:
    """
    Thread-safe in-memory repository.

    Stored values are frozen snapshots, so handing them out
    never exposes mutable shared state.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._orders: Dict[str, Order] = {}
        self._templates: Dict[str, OrderTemplate] = {}
        self._bulk_operations: Dict[str, BulkOrderOperation] = {}
        self._sequences: Dict[Tuple[str, str], int] = {}

    def _tenant_orders(self, tenant_id: str) -> List[Order]:
        return [o for o in self._orders.values() if o.tenant_id == tenant_id]

    # ── Orders ────────────────────────────────────────────────

    def create(self, order: Order) -> Order:
        with self._lock:
            if order.order_id in self._orders:
                raise ValueError(f"Order '{order.order_id}' already exists.")
            for existing in self._tenant_orders(order.tenant_id):
                if existing.order_number == order.order_number:
                    raise ValueError(f"Order number '{order.order_number}' already used.")
            self._orders[order.order_id] = order
            return order

    def find_by_id(self, tenant_id: str, order_id: str) -> Optional[Order]:
        with self._lock:
            order = self._orders.get(order_id)
        if order is None or order.tenant_id != tenant_id:
            return None
        return order

    def find_by_order_number(self, tenant_id: str, order_number: str) -> Optional[Order]:
        with self._lock:
            for order in self._tenant_orders(tenant_id):
                if order.order_number == order_number:
                    return order
        return None

    def update(self, order: Order, expected_version: int) -> Optional[Order]:
        with self._lock:
            current = self._orders.get(order.order_id)
            if current is None or current.tenant_id != order.tenant_id:
                return None
            if current.version != expected_version:
                raise ConcurrencyConflictError(
                    order.order_id, expected_version, current.version
                )
            stored = order.evolve(version=expected_version + 1)
            self._orders[order.order_id] = stored
            return stored

    def delete(self, tenant_id: str, order_id: str) -> bool:
        with self._lock:
            order = self._orders.get(order_id)
            if order is None or order.tenant_id != tenant_id:
                return False
            del self._orders[order_id]
            return True

    def next_order_sequence(self, tenant_id: str, day_key: str) -> int:
        with self._lock:
            key = (tenant_id, day_key)
            self._sequences[key] = self._sequences.get(key, 0) + 1
            return self._sequences[key]

    def unit_of_work(self) -> ContextManager[None]:
        return nullcontext()

    # ── Queries ───────────────────────────────────────────────

    def find_by_tenant(
        self,
        tenant_id: str,
        filters: Optional[OrderFilters] = None,
        pagination: Optional[Pagination] = None,
    ) -> OrderPage:
        filters = filters or OrderFilters()
        with self._lock:
            matched = [o for o in self._tenant_orders(tenant_id) if filters.matches(o)]
        return paginate(matched, pagination)

    def search(
        self, tenant_id: str, term: str, pagination: Optional[Pagination] = None
    ) -> OrderPage:
        needle = term.strip().lower()
        with self._lock:
            matched = [o for o in self._tenant_orders(tenant_id) if needle in search_text(o)]
        return paginate(matched, pagination)

    def find_overdue(self, tenant_id: str, now: datetime) -> List[Order]:
        with self._lock:
            matched = [o for o in self._tenant_orders(tenant_id) if is_overdue(o, now)]
        return sorted(matched, key=lambda o: (o.due_date, o.order_id))

    def find_due_between(self, tenant_id: str, window: TimeWindow) -> List[Order]:
        with self._lock:
            matched = [o for o in self._tenant_orders(tenant_id) if is_due_within(o, window)]
        return sorted(matched, key=lambda o: (o.due_date, o.order_id))

    def find_pending_approval(self, tenant_id: str) -> List[Order]:
        with self._lock:
            matched = [o for o in self._tenant_orders(tenant_id) if is_pending_approval(o)]
        return sorted(matched, key=lambda o: (o.created_at, o.order_id))

    def find_recurring_due(self, now: datetime) -> List[Order]:
        with self._lock:
            matched = [o for o in self._orders.values() if is_recurring_due(o, now)]
        return sorted(matched, key=lambda o: (o.recurring_order.next_order_date, o.order_id))

    def list_for_metrics(
        self, tenant_id: str, window: Optional[TimeWindow] = None
    ) -> List[Order]:
        with self._lock:
            orders = self._tenant_orders(tenant_id)
        if window is not None:
            orders = [o for o in orders if window.start <= o.created_at <= window.end]
        return orders

    # ── Templates ─────────────────────────────────────────────

    def create_template(self, template: OrderTemplate) -> OrderTemplate:
        with self._lock:
            if template.template_id in self._templates:
                raise ValueError(f"Template '{template.template_id}' already exists.")
            self._templates[template.template_id] = template
            return template

    def find_template_by_id(self, tenant_id: str, template_id: str) -> Optional[OrderTemplate]:
        with self._lock:
            template = self._templates.get(template_id)
        if template is None or template.tenant_id != tenant_id:
            return None
        return template

    def find_templates(self, tenant_id: str) -> List[OrderTemplate]:
        with self._lock:
            templates = [
                t for t in self._templates.values()
                if t.tenant_id == tenant_id and t.is_active
            ]
        return sorted(templates, key=lambda t: (t.name, t.template_id))

    def update_template(self, template: OrderTemplate) -> Optional[OrderTemplate]:
        with self._lock:
            current = self._templates.get(template.template_id)
            if current is None or current.tenant_id != template.tenant_id:
                return None
            self._templates[template.template_id] = template
            return template

    def delete_template(self, tenant_id: str, template_id: str) -> bool:
        with self._lock:
            template = self._templates.get(template_id)
            if template is None or template.tenant_id != tenant_id:
                return False
            del self._templates[template_id]
            return True

    # ── Bulk operations ───────────────────────────────────────

    def create_bulk_operation(self, operation: BulkOrderOperation) -> BulkOrderOperation:
        with self._lock:
            stored = replace(operation, parameters=dict(operation.parameters))
            self._bulk_operations[operation.operation_id] = stored
            return stored

    def find_bulk_operation(
        self, tenant_id: str, operation_id: str
    ) -> Optional[BulkOrderOperation]:
        with self._lock:
            operation = self._bulk_operations.get(operation_id)
        if operation is None or operation.tenant_id != tenant_id:
            return None
        return operation

    def find_bulk_operations(self, tenant_id: str) -> List[BulkOrderOperation]:
        with self._lock:
            operations = [
                op for op in self._bulk_operations.values() if op.tenant_id == tenant_id
            ]
        return sorted(operations, key=lambda op: op.created_at, reverse=True)

    def update_bulk_operation(
        self, operation: BulkOrderOperation
    ) -> Optional[BulkOrderOperation]:
        with self._lock:
            current = self._bulk_operations.get(operation.operation_id)
            if current is None or current.tenant_id != operation.tenant_id:
                return None
            stored = replace(operation, parameters=dict(operation.parameters))
            self._bulk_operations[operation.operation_id] = stored
            return stored
