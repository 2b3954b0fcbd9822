"""
POS Orders Store - Django Repository
======================================
DjangoOrderRepository implements the OrderRepository protocol on
the orders_store tables.

Writes:
- update() locks the row (select_for_update) inside transaction.atomic
  and compares the stored version with the caller's expected version
- unit_of_work() is transaction.atomic(), so grouped writes commit together
- next_order_sequence() increments the per-tenant daily counter
  under a row lock, so concurrent creators never share a number
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import ContextManager, List, Optional

from django.db import IntegrityError, transaction
from django.db.models import F, Q, QuerySet

from core.errors import ConcurrencyConflictError
from core.orders_store.models import (
    BulkOrderOperationRecord,
    OrderRecord,
    OrderSequence,
    OrderTemplateRecord,
)
from core.time import TimeWindow
from engines.orders.models import (
    ApprovalState,
    BulkOrderOperation,
    Order,
    OrderStatus,
    OrderTemplate,
)
from engines.orders.repository import (
    CLOSED_ORDER_STATUSES,
    OPEN_PAYMENT_STATUSES,
    OrderFilters,
    OrderPage,
    Pagination,
    search_text,
)

logger = logging.getLogger("pos.store")


def _tags_text(tags) -> str:
    return f"|{'|'.join(tags)}|" if tags else ""


def _order_columns(order: Order) -> dict:
    workflow = order.approval_workflow
    recurrence = order.recurring_order
    return {
        "tenant_id": order.tenant_id,
        "order_number": order.order_number,
        "customer_id": order.customer_id,
        "user_id": order.user_id,
        "status": order.status.value,
        "payment_status": order.payment_status.value,
        "priority": order.priority.value,
        "total_amount": order.total_amount,
        "remaining_amount": order.remaining_amount,
        "order_date": order.order_date,
        "due_date": order.due_date,
        "created_at": order.created_at,
        "updated_at": order.updated_at,
        "has_approval_workflow": workflow is not None,
        "approval_status": workflow.status.value if workflow else None,
        "recurring_enabled": bool(recurrence and recurrence.enabled),
        "recurring_next_date": recurrence.next_order_date if recurrence else None,
        "tags_text": _tags_text(order.tags),
        "search_text": search_text(order),
        "version": order.version,
        "document": order.to_dict(),
    }


def _to_order(record: OrderRecord) -> Order:
    return Order.from_dict(record.document)


def _filter_query(filters: OrderFilters) -> Q:
    query = Q()
    if filters.status:
        query &= Q(status__in=[s.value for s in filters.status])
    if filters.payment_status:
        query &= Q(payment_status__in=[s.value for s in filters.payment_status])
    if filters.priority:
        query &= Q(priority__in=[p.value for p in filters.priority])
    if filters.tags:
        any_tag = Q()
        for tag in filters.tags:
            any_tag |= Q(tags_text__contains=f"|{tag}|")
        query &= any_tag
    if filters.customer_id is not None:
        query &= Q(customer_id=filters.customer_id)
    if filters.user_id is not None:
        query &= Q(user_id=filters.user_id)
    if filters.created_from is not None:
        query &= Q(created_at__gte=filters.created_from)
    if filters.created_to is not None:
        query &= Q(created_at__lte=filters.created_to)
    if filters.due_from is not None:
        query &= Q(due_date__gte=filters.due_from)
    if filters.due_to is not None:
        query &= Q(due_date__lte=filters.due_to)
    if filters.min_amount is not None:
        query &= Q(total_amount__gte=filters.min_amount)
    if filters.max_amount is not None:
        query &= Q(total_amount__lte=filters.max_amount)
    if filters.has_approval_workflow is not None:
        query &= Q(has_approval_workflow=filters.has_approval_workflow)
    if filters.is_recurring is not None:
        query &= Q(recurring_enabled=filters.is_recurring)
    return query


def _page(queryset: QuerySet, pagination: Optional[Pagination]) -> OrderPage:
    pagination = pagination or Pagination()
    column = F(pagination.sort_by)
    primary = (
        column.asc(nulls_last=True)
        if pagination.sort_order == "asc"
        else column.desc(nulls_first=True)
    )
    total = queryset.count()
    records = queryset.order_by(primary, "order_id")[
        pagination.offset:pagination.offset + pagination.limit
    ]
    return OrderPage(
        orders=tuple(_to_order(r) for r in records),
        total=total,
        page=pagination.page,
        limit=pagination.limit,
    )


def _open_for_payment(tenant_id: str) -> QuerySet:
    return OrderRecord.objects.filter(
        tenant_id=tenant_id,
        payment_status__in=[s.value for s in OPEN_PAYMENT_STATUSES],
    ).exclude(status__in=[s.value for s in CLOSED_ORDER_STATUSES])


class DjangoOrderRepository:
    """OrderRepository backed by the Django ORM."""

    # ── Orders ────────────────────────────────────────────────

    def create(self, order: Order) -> Order:
        try:
            with transaction.atomic():
                OrderRecord.objects.create(order_id=order.order_id, **_order_columns(order))
        except IntegrityError as exc:
            raise ValueError(
                f"Order '{order.order_id}' or number '{order.order_number}' already exists."
            ) from exc
        logger.debug(f"Stored order {order.order_number} ({order.order_id})")
        return order

    def find_by_id(self, tenant_id: str, order_id: str) -> Optional[Order]:
        record = OrderRecord.objects.filter(tenant_id=tenant_id, order_id=order_id).first()
        return _to_order(record) if record else None

    def find_by_order_number(self, tenant_id: str, order_number: str) -> Optional[Order]:
        record = OrderRecord.objects.filter(
            tenant_id=tenant_id, order_number=order_number
        ).first()
        return _to_order(record) if record else None

    def update(self, order: Order, expected_version: int) -> Optional[Order]:
        with transaction.atomic():
            record = (
                OrderRecord.objects.select_for_update()
                .filter(tenant_id=order.tenant_id, order_id=order.order_id)
                .first()
            )
            if record is None:
                return None
            if record.version != expected_version:
                logger.warning(
                    f"Version conflict on order {order.order_id}: "
                    f"expected {expected_version}, stored {record.version}"
                )
                raise ConcurrencyConflictError(order.order_id, expected_version, record.version)

            stored = order.evolve(version=expected_version + 1)
            for name, value in _order_columns(stored).items():
                setattr(record, name, value)
            record.save()
        return stored

    def delete(self, tenant_id: str, order_id: str) -> bool:
        deleted, _ = OrderRecord.objects.filter(tenant_id=tenant_id, order_id=order_id).delete()
        return deleted > 0

    def next_order_sequence(self, tenant_id: str, day_key: str) -> int:
        with transaction.atomic():
            sequence, _ = OrderSequence.objects.select_for_update().get_or_create(
                tenant_id=tenant_id, day_key=day_key
            )
            sequence.last_value += 1
            sequence.save(update_fields=["last_value"])
            return sequence.last_value

    def unit_of_work(self) -> ContextManager[None]:
        return transaction.atomic()

    # ── Queries ───────────────────────────────────────────────

    def find_by_tenant(
        self,
        tenant_id: str,
        filters: Optional[OrderFilters] = None,
        pagination: Optional[Pagination] = None,
    ) -> OrderPage:
        queryset = OrderRecord.objects.filter(tenant_id=tenant_id)
        if filters is not None:
            queryset = queryset.filter(_filter_query(filters))
        return _page(queryset, pagination)

    def search(
        self, tenant_id: str, term: str, pagination: Optional[Pagination] = None
    ) -> OrderPage:
        queryset = OrderRecord.objects.filter(
            tenant_id=tenant_id, search_text__contains=term.strip().lower()
        )
        return _page(queryset, pagination)

    def find_overdue(self, tenant_id: str, now: datetime) -> List[Order]:
        records = _open_for_payment(tenant_id).filter(due_date__lt=now)
        return [_to_order(r) for r in records.order_by("due_date", "order_id")]

    def find_due_between(self, tenant_id: str, window: TimeWindow) -> List[Order]:
        records = _open_for_payment(tenant_id).filter(
            due_date__gte=window.start, due_date__lt=window.end
        )
        return [_to_order(r) for r in records.order_by("due_date", "order_id")]

    def find_pending_approval(self, tenant_id: str) -> List[Order]:
        records = OrderRecord.objects.filter(
            tenant_id=tenant_id,
            status=OrderStatus.PENDING_APPROVAL.value,
            approval_status=ApprovalState.PENDING.value,
        ).order_by("created_at", "order_id")
        return [_to_order(r) for r in records]

    def find_recurring_due(self, now: datetime) -> List[Order]:
        records = (
            OrderRecord.objects.filter(recurring_enabled=True, recurring_next_date__lte=now)
            .exclude(status=OrderStatus.CANCELLED.value)
            .order_by("recurring_next_date", "order_id")
        )
        return [_to_order(r) for r in records]

    def list_for_metrics(
        self, tenant_id: str, window: Optional[TimeWindow] = None
    ) -> List[Order]:
        records = OrderRecord.objects.filter(tenant_id=tenant_id)
        if window is not None:
            records = records.filter(created_at__gte=window.start, created_at__lte=window.end)
        return [_to_order(r) for r in records]

    # ── Templates ─────────────────────────────────────────────

    def create_template(self, template: OrderTemplate) -> OrderTemplate:
        OrderTemplateRecord.objects.create(
            template_id=template.template_id,
            tenant_id=template.tenant_id,
            name=template.name,
            is_active=template.is_active,
            created_at=template.created_at,
            updated_at=template.updated_at,
            document=template.to_dict(),
        )
        return template

    def find_template_by_id(self, tenant_id: str, template_id: str) -> Optional[OrderTemplate]:
        record = OrderTemplateRecord.objects.filter(
            tenant_id=tenant_id, template_id=template_id
        ).first()
        return OrderTemplate.from_dict(record.document) if record else None

    def find_templates(self, tenant_id: str) -> List[OrderTemplate]:
        records = OrderTemplateRecord.objects.filter(
            tenant_id=tenant_id, is_active=True
        ).order_by("name", "template_id")
        return [OrderTemplate.from_dict(r.document) for r in records]

    def update_template(self, template: OrderTemplate) -> Optional[OrderTemplate]:
        updated = OrderTemplateRecord.objects.filter(
            tenant_id=template.tenant_id, template_id=template.template_id
        ).update(
            name=template.name,
            is_active=template.is_active,
            updated_at=template.updated_at,
            document=template.to_dict(),
        )
        return template if updated else None

    def delete_template(self, tenant_id: str, template_id: str) -> bool:
        deleted, _ = OrderTemplateRecord.objects.filter(
            tenant_id=tenant_id, template_id=template_id
        ).delete()
        return deleted > 0

    # ── Bulk operations ───────────────────────────────────────

    def create_bulk_operation(self, operation: BulkOrderOperation) -> BulkOrderOperation:
        BulkOrderOperationRecord.objects.create(
            operation_id=operation.operation_id,
            tenant_id=operation.tenant_id,
            status=operation.status.value,
            created_at=operation.created_at,
            document=operation.to_dict(),
        )
        return operation

    def find_bulk_operation(
        self, tenant_id: str, operation_id: str
    ) -> Optional[BulkOrderOperation]:
        record = BulkOrderOperationRecord.objects.filter(
            tenant_id=tenant_id, operation_id=operation_id
        ).first()
        return BulkOrderOperation.from_dict(record.document) if record else None

    def find_bulk_operations(self, tenant_id: str) -> List[BulkOrderOperation]:
        records = BulkOrderOperationRecord.objects.filter(tenant_id=tenant_id).order_by(
            "-created_at", "operation_id"
        )
        return [BulkOrderOperation.from_dict(r.document) for r in records]

    def update_bulk_operation(
        self, operation: BulkOrderOperation
    ) -> Optional[BulkOrderOperation]:
        updated = BulkOrderOperationRecord.objects.filter(
            tenant_id=operation.tenant_id, operation_id=operation.operation_id
        ).update(status=operation.status.value, document=operation.to_dict())
        return operation if updated else None
