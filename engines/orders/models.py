"""
POS Orders Engine — Domain Model
==================================
Engine: Orders (Order Lifecycle)

The Order aggregate and the value objects it exclusively owns:
items, payment terms and installments, status history, payment
records, the approval workflow and the recurrence config.
Templates and bulk-operation records live beside the aggregate.

RULES (NON-NEGOTIABLE):
- Snapshots are immutable; every state change returns a new snapshot
- Amounts in integer minor units (no floats)
- Multi-tenant: every record carries tenant_id
- Aggregate stores foreign-key ids only (no customer/user names)
- Status history is append-only

This file contains NO persistence logic.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Optional, Tuple

from core.primitives.money import require_minor_units, to_percent


def new_id() -> str:
    return str(uuid.uuid4())


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


def _dt(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


# ══════════════════════════════════════════════════════════════
# ENUMS
# ══════════════════════════════════════════════════════════════

class OrderStatus(Enum):
    """Order workflow state."""
    DRAFT = "DRAFT"
    PENDING_APPROVAL = "PENDING_APPROVAL"
    APPROVED = "APPROVED"
    CONFIRMED = "CONFIRMED"
    IN_PRODUCTION = "IN_PRODUCTION"
    READY_TO_SHIP = "READY_TO_SHIP"
    SHIPPED = "SHIPPED"
    DELIVERED = "DELIVERED"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"
    ON_HOLD = "ON_HOLD"
    RETURNED = "RETURNED"


class OrderPriority(Enum):
    """Informational only — no behavior keys off priority."""
    LOW = "LOW"
    NORMAL = "NORMAL"
    HIGH = "HIGH"
    URGENT = "URGENT"
    CRITICAL = "CRITICAL"


class PaymentStatus(Enum):
    PENDING = "PENDING"
    PARTIAL = "PARTIAL"
    PAID = "PAID"
    OVERDUE = "OVERDUE"
    CANCELLED = "CANCELLED"
    REFUNDED = "REFUNDED"


class PaymentMethod(Enum):
    CASH = "CASH"
    CARD = "CARD"
    BANK_TRANSFER = "BANK_TRANSFER"
    CHECK = "CHECK"
    CREDIT_ACCOUNT = "CREDIT_ACCOUNT"
    FINANCING = "FINANCING"


class PaymentTermsType(Enum):
    IMMEDIATE = "IMMEDIATE"
    NET_DAYS = "NET_DAYS"
    END_OF_MONTH = "END_OF_MONTH"
    INSTALLMENTS = "INSTALLMENTS"
    CUSTOM = "CUSTOM"


class InstallmentStatus(Enum):
    PENDING = "PENDING"
    PAID = "PAID"
    OVERDUE = "OVERDUE"


class ApprovalState(Enum):
    """Status of an approval workflow and of each of its steps."""
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class ApprovalRole(Enum):
    MANAGER = "MANAGER"
    OWNER = "OWNER"


class RecurringFrequency(Enum):
    DAILY = "DAILY"
    WEEKLY = "WEEKLY"
    MONTHLY = "MONTHLY"
    QUARTERLY = "QUARTERLY"
    YEARLY = "YEARLY"


class BulkOperationType(Enum):
    UPDATE_STATUS = "UPDATE_STATUS"
    UPDATE_PRIORITY = "UPDATE_PRIORITY"
    SEND_NOTIFICATIONS = "SEND_NOTIFICATIONS"
    EXPORT_ORDERS = "EXPORT_ORDERS"
    APPLY_DISCOUNT = "APPLY_DISCOUNT"
    UPDATE_PAYMENT_TERMS = "UPDATE_PAYMENT_TERMS"


class BulkOperationStatus(Enum):
    PENDING = "PENDING"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


# ══════════════════════════════════════════════════════════════
# VALUE OBJECTS
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class Address:
    street: str
    city: str
    state: str
    zip_code: str
    country: str
    contact_name: Optional[str] = None
    contact_phone: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "street": self.street,
            "city": self.city,
            "state": self.state,
            "zip_code": self.zip_code,
            "country": self.country,
            "contact_name": self.contact_name,
            "contact_phone": self.contact_phone,
        }

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> Optional[Address]:
        if not data:
            return None
        return cls(
            street=data["street"],
            city=data["city"],
            state=data["state"],
            zip_code=data["zip_code"],
            country=data["country"],
            contact_name=data.get("contact_name"),
            contact_phone=data.get("contact_phone"),
        )


@dataclass(frozen=True)
class OrderItem:
    """
    One order line.

    Input fields:   product_id, name, sku, quantity, unit_price,
                    discount_percent, tax_percent, description
    Derived fields: subtotal, discount_amount, tax_amount, total
                    (filled by the totals calculator, never by callers)
    """
    product_id: str
    name: str
    sku: str
    quantity: int
    unit_price: int
    discount_percent: Decimal = Decimal(0)
    tax_percent: Decimal = Decimal(0)
    description: str = ""
    subtotal: int = 0
    discount_amount: int = 0
    tax_amount: int = 0
    total: int = 0

    def __post_init__(self):
        if not self.product_id:
            raise ValueError("product_id must be non-empty.")
        if not self.name:
            raise ValueError("name must be non-empty.")
        if not isinstance(self.quantity, int) or isinstance(self.quantity, bool) or self.quantity <= 0:
            raise ValueError("quantity must be positive integer.")
        require_minor_units(self.unit_price, field_name="unit_price")
        discount = to_percent(self.discount_percent, field_name="discount_percent")
        tax = to_percent(self.tax_percent, field_name="tax_percent")
        if not Decimal(0) <= discount <= Decimal(100):
            raise ValueError("discount_percent must be between 0 and 100.")
        if tax < 0:
            raise ValueError("tax_percent must be >= 0.")
        object.__setattr__(self, "discount_percent", discount)
        object.__setattr__(self, "tax_percent", tax)

    def to_dict(self) -> dict:
        return {
            "product_id": self.product_id,
            "name": self.name,
            "sku": self.sku,
            "quantity": self.quantity,
            "unit_price": self.unit_price,
            "discount_percent": str(self.discount_percent),
            "tax_percent": str(self.tax_percent),
            "description": self.description,
            "subtotal": self.subtotal,
            "discount_amount": self.discount_amount,
            "tax_amount": self.tax_amount,
            "total": self.total,
        }

    @classmethod
    def from_dict(cls, data: dict) -> OrderItem:
        return cls(
            product_id=data["product_id"],
            name=data["name"],
            sku=data.get("sku", ""),
            quantity=data["quantity"],
            unit_price=data["unit_price"],
            discount_percent=Decimal(str(data.get("discount_percent", "0"))),
            tax_percent=Decimal(str(data.get("tax_percent", "0"))),
            description=data.get("description", ""),
            subtotal=data.get("subtotal", 0),
            discount_amount=data.get("discount_amount", 0),
            tax_amount=data.get("tax_amount", 0),
            total=data.get("total", 0),
        )


@dataclass(frozen=True)
class Installment:
    """One scheduled partial payment within an order's payment terms."""
    amount: int
    due_date: datetime
    status: InstallmentStatus = InstallmentStatus.PENDING
    paid_amount: int = 0
    paid_date: Optional[datetime] = None
    installment_id: str = field(default_factory=new_id)

    def __post_init__(self):
        require_minor_units(self.amount, field_name="installment amount", allow_zero=False)
        require_minor_units(self.paid_amount, field_name="installment paid_amount")
        if not isinstance(self.status, InstallmentStatus):
            raise ValueError("status must be InstallmentStatus enum.")

    @property
    def outstanding(self) -> int:
        return max(0, self.amount - self.paid_amount)

    def to_dict(self) -> dict:
        return {
            "installment_id": self.installment_id,
            "amount": self.amount,
            "due_date": _iso(self.due_date),
            "status": self.status.value,
            "paid_amount": self.paid_amount,
            "paid_date": _iso(self.paid_date),
        }

    @classmethod
    def from_dict(cls, data: dict) -> Installment:
        return cls(
            installment_id=data.get("installment_id") or new_id(),
            amount=data["amount"],
            due_date=_dt(data["due_date"]),
            status=InstallmentStatus(data.get("status", "PENDING")),
            paid_amount=data.get("paid_amount", 0),
            paid_date=_dt(data.get("paid_date")),
        )


@dataclass(frozen=True)
class PaymentTerms:
    """
    Payment terms selection.

    days_net applies to NET_DAYS; discount_percent/discount_days describe
    an early-payment discount (informational); installments apply to
    INSTALLMENTS and are supplied by the caller, never derived.
    """
    type: PaymentTermsType
    days_net: Optional[int] = None
    discount_percent: Optional[Decimal] = None
    discount_days: Optional[int] = None
    installments: Tuple[Installment, ...] = ()

    def __post_init__(self):
        if not isinstance(self.type, PaymentTermsType):
            raise ValueError("type must be PaymentTermsType enum.")
        if self.days_net is not None and (not isinstance(self.days_net, int) or self.days_net < 0):
            raise ValueError("days_net must be integer >= 0.")
        if not isinstance(self.installments, tuple):
            raise TypeError("installments must be a tuple.")

    def to_dict(self) -> dict:
        return {
            "type": self.type.value,
            "days_net": self.days_net,
            "discount_percent": (
                None if self.discount_percent is None else str(self.discount_percent)
            ),
            "discount_days": self.discount_days,
            "installments": [i.to_dict() for i in self.installments],
        }

    @classmethod
    def from_dict(cls, data: dict) -> PaymentTerms:
        discount = data.get("discount_percent")
        return cls(
            type=PaymentTermsType(data["type"]),
            days_net=data.get("days_net"),
            discount_percent=None if discount is None else Decimal(str(discount)),
            discount_days=data.get("discount_days"),
            installments=tuple(Installment.from_dict(i) for i in data.get("installments", [])),
        )


@dataclass(frozen=True)
class StatusHistoryEntry:
    status: OrderStatus
    changed_by: str
    timestamp: datetime
    reason: Optional[str] = None
    notes: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "status": self.status.value,
            "changed_by": self.changed_by,
            "timestamp": _iso(self.timestamp),
            "reason": self.reason,
            "notes": self.notes,
        }

    @classmethod
    def from_dict(cls, data: dict) -> StatusHistoryEntry:
        return cls(
            status=OrderStatus(data["status"]),
            changed_by=data["changed_by"],
            timestamp=_dt(data["timestamp"]),
            reason=data.get("reason"),
            notes=data.get("notes"),
        )


@dataclass(frozen=True)
class PaymentRecord:
    payment_id: str
    amount: int
    method: PaymentMethod
    recorded_by: str
    recorded_at: datetime
    notes: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "payment_id": self.payment_id,
            "amount": self.amount,
            "method": self.method.value,
            "recorded_by": self.recorded_by,
            "recorded_at": _iso(self.recorded_at),
            "notes": self.notes,
        }

    @classmethod
    def from_dict(cls, data: dict) -> PaymentRecord:
        return cls(
            payment_id=data["payment_id"],
            amount=data["amount"],
            method=PaymentMethod(data["method"]),
            recorded_by=data["recorded_by"],
            recorded_at=_dt(data["recorded_at"]),
            notes=data.get("notes"),
        )


@dataclass(frozen=True)
class ApprovalStep:
    step_number: int
    approver_role: ApprovalRole
    required_amount: int
    status: ApprovalState = ApprovalState.PENDING
    approver_id: Optional[str] = None
    comments: Optional[str] = None
    decided_at: Optional[datetime] = None

    def to_dict(self) -> dict:
        return {
            "step_number": self.step_number,
            "approver_role": self.approver_role.value,
            "required_amount": self.required_amount,
            "status": self.status.value,
            "approver_id": self.approver_id,
            "comments": self.comments,
            "decided_at": _iso(self.decided_at),
        }

    @classmethod
    def from_dict(cls, data: dict) -> ApprovalStep:
        return cls(
            step_number=data["step_number"],
            approver_role=ApprovalRole(data["approver_role"]),
            required_amount=data["required_amount"],
            status=ApprovalState(data.get("status", "PENDING")),
            approver_id=data.get("approver_id"),
            comments=data.get("comments"),
            decided_at=_dt(data.get("decided_at")),
        )


@dataclass(frozen=True)
class ApprovalWorkflow:
    """
    Sequential, role-gated sign-off.

    current_step is 1-based and always points at the step awaiting
    a decision while status is PENDING.
    """
    steps: Tuple[ApprovalStep, ...]
    current_step: int = 1
    status: ApprovalState = ApprovalState.PENDING

    def __post_init__(self):
        if not isinstance(self.steps, tuple) or not self.steps:
            raise ValueError("steps must be a non-empty tuple.")
        if not 1 <= self.current_step <= len(self.steps):
            raise ValueError("current_step out of range.")

    @property
    def required(self) -> bool:
        return True

    @property
    def total_steps(self) -> int:
        return len(self.steps)

    @property
    def is_pending(self) -> bool:
        return self.status == ApprovalState.PENDING

    @property
    def active_step(self) -> ApprovalStep:
        return self.steps[self.current_step - 1]

    def to_dict(self) -> dict:
        return {
            "required": True,
            "current_step": self.current_step,
            "total_steps": self.total_steps,
            "steps": [s.to_dict() for s in self.steps],
            "status": self.status.value,
        }

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> Optional[ApprovalWorkflow]:
        if not data:
            return None
        return cls(
            steps=tuple(ApprovalStep.from_dict(s) for s in data["steps"]),
            current_step=data.get("current_step", 1),
            status=ApprovalState(data.get("status", "PENDING")),
        )


@dataclass(frozen=True)
class RecurringOrderConfig:
    enabled: bool
    frequency: RecurringFrequency
    interval: int = 1
    next_order_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    max_occurrences: Optional[int] = None
    current_occurrence: int = 0
    auto_approve: bool = False

    def __post_init__(self):
        if not isinstance(self.frequency, RecurringFrequency):
            raise ValueError("frequency must be RecurringFrequency enum.")
        if not isinstance(self.interval, int) or self.interval < 1:
            raise ValueError("interval must be integer >= 1.")
        if self.max_occurrences is not None and self.max_occurrences < 1:
            raise ValueError("max_occurrences must be >= 1.")
        if self.current_occurrence < 0:
            raise ValueError("current_occurrence must be >= 0.")

    def to_dict(self) -> dict:
        return {
            "enabled": self.enabled,
            "frequency": self.frequency.value,
            "interval": self.interval,
            "next_order_date": _iso(self.next_order_date),
            "end_date": _iso(self.end_date),
            "max_occurrences": self.max_occurrences,
            "current_occurrence": self.current_occurrence,
            "auto_approve": self.auto_approve,
        }

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> Optional[RecurringOrderConfig]:
        if not data:
            return None
        return cls(
            enabled=bool(data["enabled"]),
            frequency=RecurringFrequency(data["frequency"]),
            interval=data.get("interval", 1),
            next_order_date=_dt(data.get("next_order_date")),
            end_date=_dt(data.get("end_date")),
            max_occurrences=data.get("max_occurrences"),
            current_occurrence=data.get("current_occurrence", 0),
            auto_approve=bool(data.get("auto_approve", False)),
        )


# ══════════════════════════════════════════════════════════════
# ORDER AGGREGATE
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class Order:
    """
    The order aggregate root.

    Money invariant:
        total_amount = subtotal - discount_amount + tax_amount + shipping_amount
        remaining_amount = total_amount - paid_amount >= 0
    """
    order_id: str
    tenant_id: str
    order_number: str
    customer_id: str
    user_id: str
    items: Tuple[OrderItem, ...]
    subtotal: int
    tax_amount: int
    discount_amount: int
    shipping_amount: int
    total_amount: int
    status: OrderStatus
    payment_terms: PaymentTerms
    order_date: datetime
    created_at: datetime
    updated_at: datetime
    priority: OrderPriority = OrderPriority.NORMAL
    payment_status: PaymentStatus = PaymentStatus.PENDING
    payment_method: Optional[PaymentMethod] = None
    paid_amount: int = 0
    remaining_amount: int = 0
    due_date: Optional[datetime] = None
    currency: str = "USD"
    tags: Tuple[str, ...] = ()
    status_history: Tuple[StatusHistoryEntry, ...] = ()
    payments: Tuple[PaymentRecord, ...] = ()
    billing_address: Optional[Address] = None
    shipping_address: Optional[Address] = None
    notes: Optional[str] = None
    internal_notes: Optional[str] = None
    expected_delivery_date: Optional[datetime] = None
    actual_delivery_date: Optional[datetime] = None
    approval_workflow: Optional[ApprovalWorkflow] = None
    recurring_order: Optional[RecurringOrderConfig] = None
    source_order_id: Optional[str] = None
    template_id: Optional[str] = None
    version: int = 0

    def __post_init__(self):
        if not self.order_id:
            raise ValueError("order_id must be non-empty.")
        if not self.tenant_id:
            raise ValueError("tenant_id must be non-empty.")
        if not isinstance(self.items, tuple):
            raise TypeError("items must be a tuple.")
        if not isinstance(self.status, OrderStatus):
            raise ValueError("status must be OrderStatus enum.")
        if not isinstance(self.status_history, tuple):
            raise TypeError("status_history must be a tuple.")
        require_minor_units(self.paid_amount, field_name="paid_amount")
        require_minor_units(self.remaining_amount, field_name="remaining_amount")
        if self.paid_amount > self.total_amount:
            raise ValueError("paid_amount cannot exceed total_amount.")

    @property
    def is_recurring(self) -> bool:
        return self.recurring_order is not None and self.recurring_order.enabled

    def evolve(self, **changes: Any) -> Order:
        return replace(self, **changes)

    def to_dict(self) -> dict:
        return {
            "order_id": self.order_id,
            "tenant_id": self.tenant_id,
            "order_number": self.order_number,
            "customer_id": self.customer_id,
            "user_id": self.user_id,
            "items": [i.to_dict() for i in self.items],
            "subtotal": self.subtotal,
            "tax_amount": self.tax_amount,
            "discount_amount": self.discount_amount,
            "shipping_amount": self.shipping_amount,
            "total_amount": self.total_amount,
            "status": self.status.value,
            "priority": self.priority.value,
            "payment_status": self.payment_status.value,
            "payment_method": self.payment_method.value if self.payment_method else None,
            "payment_terms": self.payment_terms.to_dict(),
            "paid_amount": self.paid_amount,
            "remaining_amount": self.remaining_amount,
            "due_date": _iso(self.due_date),
            "currency": self.currency,
            "tags": list(self.tags),
            "status_history": [h.to_dict() for h in self.status_history],
            "payments": [p.to_dict() for p in self.payments],
            "billing_address": self.billing_address.to_dict() if self.billing_address else None,
            "shipping_address": self.shipping_address.to_dict() if self.shipping_address else None,
            "notes": self.notes,
            "internal_notes": self.internal_notes,
            "order_date": _iso(self.order_date),
            "expected_delivery_date": _iso(self.expected_delivery_date),
            "actual_delivery_date": _iso(self.actual_delivery_date),
            "approval_workflow": (
                self.approval_workflow.to_dict() if self.approval_workflow else None
            ),
            "recurring_order": (
                self.recurring_order.to_dict() if self.recurring_order else None
            ),
            "source_order_id": self.source_order_id,
            "template_id": self.template_id,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
            "version": self.version,
        }

    @classmethod
    def from_dict(cls, data: dict) -> Order:
        method = data.get("payment_method")
        return cls(
            order_id=data["order_id"],
            tenant_id=data["tenant_id"],
            order_number=data["order_number"],
            customer_id=data["customer_id"],
            user_id=data["user_id"],
            items=tuple(OrderItem.from_dict(i) for i in data.get("items", [])),
            subtotal=data["subtotal"],
            tax_amount=data["tax_amount"],
            discount_amount=data["discount_amount"],
            shipping_amount=data.get("shipping_amount", 0),
            total_amount=data["total_amount"],
            status=OrderStatus(data["status"]),
            priority=OrderPriority(data.get("priority", "NORMAL")),
            payment_status=PaymentStatus(data.get("payment_status", "PENDING")),
            payment_method=PaymentMethod(method) if method else None,
            payment_terms=PaymentTerms.from_dict(data["payment_terms"]),
            paid_amount=data.get("paid_amount", 0),
            remaining_amount=data.get("remaining_amount", 0),
            due_date=_dt(data.get("due_date")),
            currency=data.get("currency", "USD"),
            tags=tuple(data.get("tags", [])),
            status_history=tuple(
                StatusHistoryEntry.from_dict(h) for h in data.get("status_history", [])
            ),
            payments=tuple(PaymentRecord.from_dict(p) for p in data.get("payments", [])),
            billing_address=Address.from_dict(data.get("billing_address")),
            shipping_address=Address.from_dict(data.get("shipping_address")),
            notes=data.get("notes"),
            internal_notes=data.get("internal_notes"),
            order_date=_dt(data["order_date"]),
            expected_delivery_date=_dt(data.get("expected_delivery_date")),
            actual_delivery_date=_dt(data.get("actual_delivery_date")),
            approval_workflow=ApprovalWorkflow.from_dict(data.get("approval_workflow")),
            recurring_order=RecurringOrderConfig.from_dict(data.get("recurring_order")),
            source_order_id=data.get("source_order_id"),
            template_id=data.get("template_id"),
            created_at=_dt(data["created_at"]),
            updated_at=_dt(data["updated_at"]),
            version=data.get("version", 0),
        )


# ══════════════════════════════════════════════════════════════
# TEMPLATES
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class OrderTemplate:
    """A named, reusable seed used to stamp out new orders."""
    template_id: str
    tenant_id: str
    name: str
    items: Tuple[OrderItem, ...]
    payment_terms: PaymentTerms
    created_by: str
    created_at: datetime
    updated_at: datetime
    description: str = ""
    customer_id: Optional[str] = None
    tags: Tuple[str, ...] = ()
    is_active: bool = True

    def __post_init__(self):
        if not self.name:
            raise ValueError("template name must be non-empty.")
        if not isinstance(self.items, tuple):
            raise TypeError("items must be a tuple.")

    def to_dict(self) -> dict:
        return {
            "template_id": self.template_id,
            "tenant_id": self.tenant_id,
            "name": self.name,
            "description": self.description,
            "customer_id": self.customer_id,
            "items": [i.to_dict() for i in self.items],
            "payment_terms": self.payment_terms.to_dict(),
            "tags": list(self.tags),
            "is_active": self.is_active,
            "created_by": self.created_by,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }

    @classmethod
    def from_dict(cls, data: dict) -> OrderTemplate:
        return cls(
            template_id=data["template_id"],
            tenant_id=data["tenant_id"],
            name=data["name"],
            description=data.get("description", ""),
            customer_id=data.get("customer_id"),
            items=tuple(OrderItem.from_dict(i) for i in data.get("items", [])),
            payment_terms=PaymentTerms.from_dict(data["payment_terms"]),
            tags=tuple(data.get("tags", [])),
            is_active=bool(data.get("is_active", True)),
            created_by=data["created_by"],
            created_at=_dt(data["created_at"]),
            updated_at=_dt(data["updated_at"]),
        )


# ══════════════════════════════════════════════════════════════
# BULK OPERATIONS
# ══════════════════════════════════════════════════════════════

_BULK_TRANSITIONS: Dict[BulkOperationStatus, Tuple[BulkOperationStatus, ...]] = {
    BulkOperationStatus.PENDING: (BulkOperationStatus.IN_PROGRESS,),
    BulkOperationStatus.IN_PROGRESS: (
        BulkOperationStatus.COMPLETED,
        BulkOperationStatus.FAILED,
    ),
    BulkOperationStatus.COMPLETED: (),
    BulkOperationStatus.FAILED: (),
}


@dataclass(frozen=True)
class BulkOrderOperation:
    """
    Tracked batch job record. Executed by an external batch runner;
    the Order aggregate never mutates it.
    """
    operation_id: str
    tenant_id: str
    operation_type: BulkOperationType
    order_ids: Tuple[str, ...]
    parameters: Dict[str, Any]
    created_by: str
    created_at: datetime
    status: BulkOperationStatus = BulkOperationStatus.PENDING
    processed_count: int = 0
    errors: Tuple[str, ...] = ()
    completed_at: Optional[datetime] = None

    def __post_init__(self):
        if not isinstance(self.operation_type, BulkOperationType):
            raise ValueError("operation_type must be BulkOperationType enum.")
        if not isinstance(self.order_ids, tuple) or not self.order_ids:
            raise ValueError("order_ids must be a non-empty tuple.")
        if not 0 <= self.processed_count <= len(self.order_ids):
            raise ValueError("processed_count out of range.")

    @property
    def total_count(self) -> int:
        return len(self.order_ids)

    def with_status(
        self,
        status: BulkOperationStatus,
        *,
        at: Optional[datetime] = None,
        processed_count: Optional[int] = None,
        errors: Tuple[str, ...] = (),
    ) -> BulkOrderOperation:
        """Return a new snapshot moved to `status`. Raises ValueError on illegal moves."""
        if status != self.status and status not in _BULK_TRANSITIONS[self.status]:
            raise ValueError(
                f"Bulk operation cannot move from {self.status.value} to {status.value}."
            )
        finished = status in (BulkOperationStatus.COMPLETED, BulkOperationStatus.FAILED)
        return replace(
            self,
            status=status,
            processed_count=self.processed_count if processed_count is None else processed_count,
            errors=self.errors + tuple(errors),
            completed_at=at if finished else self.completed_at,
        )

    def to_dict(self) -> dict:
        return {
            "operation_id": self.operation_id,
            "tenant_id": self.tenant_id,
            "operation_type": self.operation_type.value,
            "order_ids": list(self.order_ids),
            "parameters": dict(self.parameters),
            "status": self.status.value,
            "processed_count": self.processed_count,
            "total_count": self.total_count,
            "errors": list(self.errors),
            "created_by": self.created_by,
            "created_at": _iso(self.created_at),
            "completed_at": _iso(self.completed_at),
        }

    @classmethod
    def from_dict(cls, data: dict) -> BulkOrderOperation:
        return cls(
            operation_id=data["operation_id"],
            tenant_id=data["tenant_id"],
            operation_type=BulkOperationType(data["operation_type"]),
            order_ids=tuple(data["order_ids"]),
            parameters=dict(data.get("parameters") or {}),
            status=BulkOperationStatus(data.get("status", "PENDING")),
            processed_count=data.get("processed_count", 0),
            errors=tuple(data.get("errors", [])),
            created_by=data["created_by"],
            created_at=_dt(data["created_at"]),
            completed_at=_dt(data.get("completed_at")),
        )
