"""
POS Orders Engine — Application Service
=========================================
OrderLifecycleService orchestrates the pure order components
(totals, payment terms, state machine, approval, payments,
recurring) against an injected OrderRepository.

Every mutating operation follows the same cycle:
    hold per-order lock → re-fetch → validate → write with the
    version that was read → retry on ConcurrencyConflictError

Collaborators are injected; nothing here reads module-level state.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence

from core.concurrency import KeyedLockRegistry
from core.errors import (
    ConcurrencyConflictError,
    InvalidTransitionError,
    ReasonCode,
    bad_request,
    not_found,
)
from core.time import Clock, TimeWindow, day_window
from engines.orders import approval as approval_engine
from engines.orders import payments as payment_engine
from engines.orders.collaborators import CustomerDirectory
from engines.orders.config import OrderLifecycleConfig
from engines.orders.creation import OrderDraft, assemble_order
from engines.orders.metrics import (
    CustomerOrderSummary,
    OrderMetrics,
    compute_order_metrics,
    summarize_customer,
)
from engines.orders.models import (
    BulkOperationStatus,
    BulkOperationType,
    BulkOrderOperation,
    Order,
    OrderStatus,
    OrderTemplate,
    PaymentMethod,
    PaymentStatus,
    PaymentTerms,
    new_id,
)
from engines.orders.numbering import next_order_number
from engines.orders.payment_terms import (
    default_payment_terms,
    mark_overdue_installments,
    resolve_due_date,
    unpaid_installments,
    validate_installments,
)
from engines.orders.policies import (
    bulk_operation_must_target_orders_policy,
    customer_must_be_specified_policy,
    enforce,
    order_items_must_be_present_policy,
    order_must_be_deletable_policy,
    order_must_be_modifiable_policy,
    remaining_balance_must_not_be_negative_policy,
    shipping_amount_must_be_non_negative_policy,
    template_must_be_active_policy,
    update_fields_must_be_known_policy,
)
from engines.orders.recurring import (
    RecurringOrderScheduler,
    RecurringSweepResult,
    schedule_first,
)
from engines.orders.repository import (
    OrderFilters,
    OrderPage,
    OrderRepository,
    Pagination,
)
from engines.orders.state_machine import transition
from engines.orders.totals import calculate_item, calculate_totals

logger = logging.getLogger("pos.orders")

ORDER_UPDATABLE_FIELDS = frozenset({
    "customer_id",
    "items",
    "shipping_amount",
    "payment_terms",
    "priority",
    "tags",
    "notes",
    "internal_notes",
    "billing_address",
    "shipping_address",
    "expected_delivery_date",
})

TEMPLATE_UPDATABLE_FIELDS = frozenset({
    "name",
    "description",
    "customer_id",
    "items",
    "payment_terms",
    "tags",
    "is_active",
})


def _order_not_found(order_id: str):
    return not_found(
        ReasonCode.ORDER_NOT_FOUND,
        f"Order '{order_id}' not found.",
        "order_must_exist_policy",
    )


def _template_not_found(template_id: str):
    return not_found(
        ReasonCode.TEMPLATE_NOT_FOUND,
        f"Template '{template_id}' not found.",
        "template_must_exist_policy",
    )


def _coerce_enum(enum_type, value):
    """Accept enum members or their string values; leave anything else as-is."""
    if isinstance(value, enum_type):
        return value
    try:
        return enum_type(value)
    except ValueError:
        return value


class OrderLifecycleService:
    """Use cases of the order lifecycle, scoped per tenant."""

    def __init__(
        self,
        repository: OrderRepository,
        customer_directory: CustomerDirectory,
        clock: Clock,
        config: Optional[OrderLifecycleConfig] = None,
        lock_registry: Optional[KeyedLockRegistry] = None,
        id_factory: Callable[[], str] = new_id,
    ) -> None:
        self._repository = repository
        self._customers = customer_directory
        self._clock = clock
        self._config = config or OrderLifecycleConfig()
        self._locks = lock_registry or KeyedLockRegistry()
        self._id_factory = id_factory
        self._scheduler = RecurringOrderScheduler(
            repository=repository,
            clock=clock,
            config=self._config,
            lock_registry=self._locks,
            id_factory=id_factory,
        )

    @property
    def config(self) -> OrderLifecycleConfig:
        return self._config

    # ══════════════════════════════════════════════════════════
    # INTERNAL HELPERS
    # ══════════════════════════════════════════════════════════

    def _require_order(self, tenant_id: str, order_id: str) -> Order:
        order = self._repository.find_by_id(tenant_id, order_id)
        if order is None:
            raise _order_not_found(order_id)
        return order

    def _require_customer(self, tenant_id: str, customer_id: Optional[str]) -> str:
        enforce(customer_must_be_specified_policy(customer_id))
        if not self._customers.customer_exists(tenant_id, customer_id):
            raise not_found(
                ReasonCode.CUSTOMER_NOT_FOUND,
                f"Customer '{customer_id}' not found.",
                "customer_must_exist_policy",
            )
        return customer_id

    def _require_template(self, tenant_id: str, template_id: str) -> OrderTemplate:
        template = self._repository.find_template_by_id(tenant_id, template_id)
        if template is None:
            raise _template_not_found(template_id)
        return template

    def _next_number(self, tenant_id: str, now: datetime) -> str:
        return next_order_number(
            self._repository,
            tenant_id,
            now,
            prefix=self._config.order_number_prefix,
            padding=self._config.order_number_padding,
        )

    def _mutate(
        self,
        tenant_id: str,
        order_id: str,
        action: str,
        mutation: Callable[[Order, datetime], Order],
    ) -> Order:
        """
        Run a read-modify-write cycle on one order.

        The mutation receives a freshly fetched snapshot and the
        current time; validation errors propagate unchanged.
        """
        attempts = self._config.max_conflict_retries + 1
        for attempt in range(1, attempts + 1):
            with self._locks.hold(order_id):
                current = self._require_order(tenant_id, order_id)
                changed = mutation(current, self._clock.now_utc())
                try:
                    stored = self._repository.update(changed, expected_version=current.version)
                except ConcurrencyConflictError:
                    if attempt == attempts:
                        logger.error(
                            f"Giving up {action} on order {order_id} "
                            f"after {attempts} version conflicts"
                        )
                        raise
                    logger.warning(
                        f"Version conflict during {action} on order {order_id} "
                        f"(attempt {attempt}/{attempts}), retrying"
                    )
                    continue
            if stored is None:
                raise _order_not_found(order_id)
            return stored
        raise AssertionError("unreachable")  # pragma: no cover

    # ══════════════════════════════════════════════════════════
    # ORDER MANAGEMENT
    # ══════════════════════════════════════════════════════════

    def create_order(self, tenant_id: str, actor_id: str, draft: OrderDraft) -> Order:
        """
        Create an order in DRAFT, or PENDING_APPROVAL when its total
        crosses the approval threshold.
        """
        self._require_customer(tenant_id, draft.customer_id)
        enforce(shipping_amount_must_be_non_negative_policy(draft.shipping_amount))
        now = self._clock.now_utc()
        if draft.recurring_order is not None:
            draft = replace(draft, recurring_order=schedule_first(draft.recurring_order, now))

        order = assemble_order(
            draft,
            order_id=self._id_factory(),
            tenant_id=tenant_id,
            order_number=self._next_number(tenant_id, now),
            user_id=actor_id,
            now=now,
            config=self._config,
        )
        created = self._repository.create(order)
        logger.info(
            f"Order created: {created.order_number} ({created.order_id}) "
            f"tenant={tenant_id} status={created.status.value} "
            f"total={created.total_amount}"
        )
        return created

    def update_order(
        self,
        tenant_id: str,
        order_id: str,
        actor_id: str,
        changes: Mapping[str, Any],
    ) -> Order:
        """
        Patch a DRAFT or PENDING_APPROVAL order.

        Totals are recomputed when items or shipping change and the
        due date when payment terms change.
        """
        enforce(update_fields_must_be_known_policy(changes, ORDER_UPDATABLE_FIELDS))
        if "customer_id" in changes:
            self._require_customer(tenant_id, changes["customer_id"])

        def apply(order: Order, now: datetime) -> Order:
            enforce(order_must_be_modifiable_policy(order))
            values: Dict[str, Any] = dict(changes)
            if "tags" in values:
                values["tags"] = tuple(values["tags"])

            if "items" in values or "shipping_amount" in values:
                items = tuple(values.get("items", order.items))
                shipping = values.get("shipping_amount", order.shipping_amount)
                enforce(order_items_must_be_present_policy(items))
                enforce(shipping_amount_must_be_non_negative_policy(shipping))
                totals = calculate_totals(items, shipping)
                enforce(remaining_balance_must_not_be_negative_policy(
                    totals.total_amount, order.paid_amount,
                ))
                remaining = totals.total_amount - order.paid_amount
                values.update(
                    items=totals.items,
                    subtotal=totals.subtotal,
                    discount_amount=totals.discount_amount,
                    tax_amount=totals.tax_amount,
                    shipping_amount=totals.shipping_amount,
                    total_amount=totals.total_amount,
                    remaining_amount=remaining,
                    payment_status=payment_engine.payment_status_for(order.paid_amount, remaining),
                )

            if "payment_terms" in values:
                terms: PaymentTerms = values["payment_terms"] or default_payment_terms(
                    self._config.default_net_days
                )
                if terms.installments:
                    terms = replace(terms, installments=payment_engine.allocate_installments(
                        unpaid_installments(terms.installments),
                        order.paid_amount,
                        order.payments[-1].recorded_at if order.payments else now,
                    ))
                values["payment_terms"] = terms
                values["due_date"] = resolve_due_date(
                    terms,
                    now,
                    default_net_days=self._config.default_net_days,
                    fallback_days=self._config.fallback_due_days,
                )

            terms = values.get("payment_terms", order.payment_terms)
            if terms.installments:
                validate_installments(
                    terms.installments, values.get("total_amount", order.total_amount)
                )
            return order.evolve(updated_at=now, **values)

        updated = self._mutate(tenant_id, order_id, "update", apply)
        logger.info(
            f"Order updated: {updated.order_number} by {actor_id} "
            f"fields={sorted(changes)}"
        )
        return updated

    def update_order_status(
        self,
        tenant_id: str,
        order_id: str,
        new_status: OrderStatus,
        actor_id: str,
        reason: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> Order:
        def apply(order: Order, now: datetime) -> Order:
            target = _coerce_enum(OrderStatus, new_status)
            if not isinstance(target, OrderStatus):
                raise InvalidTransitionError(order.status.value, str(new_status))
            return transition(
                order,
                target,
                actor_id,
                now,
                reason=reason,
                notes=notes,
                shipping_lead_days=self._config.shipping_lead_days,
            )

        updated = self._mutate(tenant_id, order_id, "status change", apply)
        logger.info(
            f"Order {updated.order_number} transitioned to {updated.status.value} "
            f"by {actor_id}"
        )
        return updated

    def delete_order(self, tenant_id: str, order_id: str) -> None:
        with self._locks.hold(order_id):
            order = self._require_order(tenant_id, order_id)
            enforce(order_must_be_deletable_policy(order))
            if not self._repository.delete(tenant_id, order_id):
                raise _order_not_found(order_id)
        logger.info(f"Order deleted: {order.order_number} ({order_id}) tenant={tenant_id}")

    # ══════════════════════════════════════════════════════════
    # PAYMENTS
    # ══════════════════════════════════════════════════════════

    def record_payment(
        self,
        tenant_id: str,
        order_id: str,
        amount: int,
        method: PaymentMethod,
        actor_id: str,
        notes: Optional[str] = None,
    ) -> Order:
        def apply(order: Order, now: datetime) -> Order:
            return payment_engine.record_payment(
                order,
                amount,
                _coerce_enum(PaymentMethod, method),
                actor_id,
                now,
                notes,
                payment_id=self._id_factory(),
            )

        updated = self._mutate(tenant_id, order_id, "payment", apply)
        logger.info(
            f"Payment recorded on {updated.order_number}: {amount} "
            f"(paid={updated.paid_amount}, remaining={updated.remaining_amount}, "
            f"status={updated.payment_status.value})"
        )
        return updated

    # ══════════════════════════════════════════════════════════
    # APPROVAL
    # ══════════════════════════════════════════════════════════

    def approve_order(
        self,
        tenant_id: str,
        order_id: str,
        approver_id: str,
        comments: Optional[str] = None,
    ) -> Order:
        def apply(order: Order, now: datetime) -> Order:
            return approval_engine.approve(order, approver_id, now, comments)

        updated = self._mutate(tenant_id, order_id, "approval", apply)
        workflow = updated.approval_workflow
        logger.info(
            f"Order {updated.order_number} approval by {approver_id}: "
            f"workflow={workflow.status.value} step={workflow.current_step}/"
            f"{workflow.total_steps}"
        )
        return updated

    def reject_order(
        self,
        tenant_id: str,
        order_id: str,
        approver_id: str,
        reason: str,
    ) -> Order:
        def apply(order: Order, now: datetime) -> Order:
            return approval_engine.reject(order, approver_id, reason, now)

        updated = self._mutate(tenant_id, order_id, "rejection", apply)
        logger.info(f"Order {updated.order_number} rejected by {approver_id}: {reason}")
        return updated

    # ══════════════════════════════════════════════════════════
    # TEMPLATES
    # ══════════════════════════════════════════════════════════

    def create_template(
        self,
        tenant_id: str,
        actor_id: str,
        *,
        name: str,
        items: Sequence,
        payment_terms: Optional[PaymentTerms] = None,
        description: str = "",
        customer_id: Optional[str] = None,
        tags: Iterable[str] = (),
    ) -> OrderTemplate:
        items = tuple(calculate_item(item) for item in items)
        enforce(order_items_must_be_present_policy(items))
        if customer_id is not None:
            self._require_customer(tenant_id, customer_id)
        now = self._clock.now_utc()
        try:
            template = OrderTemplate(
                template_id=self._id_factory(),
                tenant_id=tenant_id,
                name=name,
                description=description,
                customer_id=customer_id,
                items=items,
                payment_terms=payment_terms or default_payment_terms(self._config.default_net_days),
                tags=tuple(tags),
                created_by=actor_id,
                created_at=now,
                updated_at=now,
            )
        except ValueError as exc:
            raise bad_request(ReasonCode.INVALID_TEMPLATE, str(exc), "template_must_be_valid_policy") from exc
        created = self._repository.create_template(template)
        logger.info(f"Template created: {created.name} ({created.template_id}) tenant={tenant_id}")
        return created

    def get_templates(self, tenant_id: str) -> List[OrderTemplate]:
        """Active templates of the tenant, by name."""
        return self._repository.find_templates(tenant_id)

    def get_template(self, tenant_id: str, template_id: str) -> OrderTemplate:
        return self._require_template(tenant_id, template_id)

    def update_template(
        self,
        tenant_id: str,
        template_id: str,
        changes: Mapping[str, Any],
    ) -> OrderTemplate:
        enforce(update_fields_must_be_known_policy(changes, TEMPLATE_UPDATABLE_FIELDS))
        values: Dict[str, Any] = dict(changes)
        if values.get("customer_id") is not None:
            self._require_customer(tenant_id, values["customer_id"])
        if "items" in values:
            values["items"] = tuple(calculate_item(item) for item in values["items"])
            enforce(order_items_must_be_present_policy(values["items"]))
        if "tags" in values:
            values["tags"] = tuple(values["tags"])

        with self._locks.hold(template_id):
            template = self._require_template(tenant_id, template_id)
            try:
                changed = replace(template, updated_at=self._clock.now_utc(), **values)
            except ValueError as exc:
                raise bad_request(ReasonCode.INVALID_TEMPLATE, str(exc), "template_must_be_valid_policy") from exc
            stored = self._repository.update_template(changed)
        if stored is None:
            raise _template_not_found(template_id)
        return stored

    def delete_template(self, tenant_id: str, template_id: str) -> None:
        if not self._repository.delete_template(tenant_id, template_id):
            raise _template_not_found(template_id)
        logger.info(f"Template deleted: {template_id} tenant={tenant_id}")

    def create_order_from_template(
        self,
        tenant_id: str,
        template_id: str,
        actor_id: str,
        customer_id: Optional[str] = None,
    ) -> Order:
        """
        Stamp a new order from a template.

        The explicit customer wins over the template's own customer.
        """
        template = self._require_template(tenant_id, template_id)
        enforce(template_must_be_active_policy(template))
        customer = self._require_customer(tenant_id, customer_id or template.customer_id)

        now = self._clock.now_utc()
        draft = OrderDraft(
            customer_id=customer,
            items=template.items,
            payment_terms=template.payment_terms,
            tags=template.tags,
            notes=f"Created from template: {template.name}",
        )
        order = assemble_order(
            draft,
            order_id=self._id_factory(),
            tenant_id=tenant_id,
            order_number=self._next_number(tenant_id, now),
            user_id=actor_id,
            now=now,
            config=self._config,
            template_id=template.template_id,
        )
        created = self._repository.create(order)
        logger.info(
            f"Order created from template {template.name}: "
            f"{created.order_number} ({created.order_id})"
        )
        return created

    # ══════════════════════════════════════════════════════════
    # RECURRING
    # ══════════════════════════════════════════════════════════

    def process_recurring_orders(self, now: Optional[datetime] = None) -> RecurringSweepResult:
        return self._scheduler.process_due(now)

    # ══════════════════════════════════════════════════════════
    # BULK OPERATIONS
    # ══════════════════════════════════════════════════════════

    def create_bulk_operation(
        self,
        tenant_id: str,
        operation_type: BulkOperationType,
        order_ids: Sequence[str],
        parameters: Optional[Mapping[str, Any]],
        actor_id: str,
    ) -> BulkOrderOperation:
        """Record a batch job for the external bulk runner (created PENDING)."""
        kind = _coerce_enum(BulkOperationType, operation_type)
        if not isinstance(kind, BulkOperationType):
            raise bad_request(
                ReasonCode.INVALID_BULK_OPERATION,
                f"Bulk operation type '{operation_type}' is not valid.",
                "bulk_operation_type_must_be_valid_policy",
            )
        enforce(bulk_operation_must_target_orders_policy(order_ids))
        operation = BulkOrderOperation(
            operation_id=self._id_factory(),
            tenant_id=tenant_id,
            operation_type=kind,
            order_ids=tuple(order_ids),
            parameters=dict(parameters or {}),
            created_by=actor_id,
            created_at=self._clock.now_utc(),
        )
        created = self._repository.create_bulk_operation(operation)
        logger.info(
            f"Bulk operation created: {kind.value} ({created.operation_id}) "
            f"over {created.total_count} orders tenant={tenant_id}"
        )
        return created

    def get_bulk_operations(self, tenant_id: str) -> List[BulkOrderOperation]:
        return self._repository.find_bulk_operations(tenant_id)

    def get_bulk_operation(self, tenant_id: str, operation_id: str) -> BulkOrderOperation:
        operation = self._repository.find_bulk_operation(tenant_id, operation_id)
        if operation is None:
            raise not_found(
                ReasonCode.BULK_OPERATION_NOT_FOUND,
                f"Bulk operation '{operation_id}' not found.",
                "bulk_operation_must_exist_policy",
            )
        return operation

    def update_bulk_operation_status(
        self,
        tenant_id: str,
        operation_id: str,
        status: BulkOperationStatus,
        processed_count: Optional[int] = None,
        errors: Sequence[str] = (),
    ) -> BulkOrderOperation:
        """Progress report from the bulk runner."""
        target = _coerce_enum(BulkOperationStatus, status)
        if not isinstance(target, BulkOperationStatus):
            raise bad_request(
                ReasonCode.INVALID_BULK_TRANSITION,
                f"Bulk operation status '{status}' is not valid.",
                "bulk_operation_transition_must_be_valid_policy",
            )
        with self._locks.hold(operation_id):
            operation = self.get_bulk_operation(tenant_id, operation_id)
            try:
                changed = operation.with_status(
                    target,
                    at=self._clock.now_utc(),
                    processed_count=processed_count,
                    errors=tuple(errors),
                )
            except ValueError as exc:
                raise bad_request(
                    ReasonCode.INVALID_BULK_TRANSITION,
                    str(exc),
                    "bulk_operation_transition_must_be_valid_policy",
                ) from exc
            stored = self._repository.update_bulk_operation(changed)
        if stored is None:
            return self.get_bulk_operation(tenant_id, operation_id)
        return stored

    # ══════════════════════════════════════════════════════════
    # QUERIES
    # ══════════════════════════════════════════════════════════

    def get_order(self, tenant_id: str, order_id: str) -> Order:
        return self._require_order(tenant_id, order_id)

    def get_order_by_number(self, tenant_id: str, order_number: str) -> Order:
        order = self._repository.find_by_order_number(tenant_id, order_number)
        if order is None:
            raise _order_not_found(order_number)
        return order

    def list_orders(
        self,
        tenant_id: str,
        filters: Optional[OrderFilters] = None,
        pagination: Optional[Pagination] = None,
    ) -> OrderPage:
        return self._repository.find_by_tenant(tenant_id, filters, pagination)

    def list_customer_orders(
        self,
        tenant_id: str,
        customer_id: str,
        pagination: Optional[Pagination] = None,
    ) -> OrderPage:
        return self._repository.find_by_tenant(
            tenant_id, OrderFilters(customer_id=customer_id), pagination
        )

    def list_orders_by_status(
        self,
        tenant_id: str,
        statuses: Iterable[OrderStatus],
        pagination: Optional[Pagination] = None,
    ) -> OrderPage:
        return self._repository.find_by_tenant(
            tenant_id, OrderFilters(status=tuple(statuses)), pagination
        )

    def list_orders_by_payment_status(
        self,
        tenant_id: str,
        statuses: Iterable[PaymentStatus],
        pagination: Optional[Pagination] = None,
    ) -> OrderPage:
        return self._repository.find_by_tenant(
            tenant_id, OrderFilters(payment_status=tuple(statuses)), pagination
        )

    def search_orders(
        self,
        tenant_id: str,
        term: str,
        pagination: Optional[Pagination] = None,
    ) -> OrderPage:
        return self._repository.search(tenant_id, term, pagination)

    def get_order_metrics(
        self, tenant_id: str, window: Optional[TimeWindow] = None
    ) -> OrderMetrics:
        orders = self._repository.list_for_metrics(tenant_id, window)
        return compute_order_metrics(orders, self._clock.now_utc())

    def get_customer_order_summary(self, tenant_id: str, customer_id: str) -> CustomerOrderSummary:
        return summarize_customer(customer_id, self._repository.list_for_metrics(tenant_id))

    def get_overdue_orders(self, tenant_id: str) -> List[Order]:
        """Open orders past due; their past-due installments are reported OVERDUE."""
        now = self._clock.now_utc()
        return [
            order.evolve(payment_terms=mark_overdue_installments(order.payment_terms, now))
            for order in self._repository.find_overdue(tenant_id, now)
        ]

    def get_orders_due_today(self, tenant_id: str) -> List[Order]:
        return self._repository.find_due_between(tenant_id, day_window(self._clock.now_utc()))

    def get_pending_approval_orders(self, tenant_id: str) -> List[Order]:
        return self._repository.find_pending_approval(tenant_id)

