"""
POS Orders Engine — Payment Allocation
========================================
Applies an incoming payment to an order's outstanding balance and,
for INSTALLMENTS terms, to its installment schedule.

Allocation is greedy and strictly in list order: a payment never
reaches an installment while an earlier PENDING one is unfilled.

RULES (NON-NEGOTIABLE):
- amount > 0 and amount <= remaining_amount
- remaining_amount = total_amount − paid_amount, never negative
- No side-effects beyond the returned snapshot
"""

from __future__ import annotations

from dataclasses import replace
from datetime import datetime
from typing import Optional, Sequence, Tuple

from engines.orders.models import (
    Installment,
    InstallmentStatus,
    Order,
    PaymentMethod,
    PaymentRecord,
    PaymentStatus,
    PaymentTermsType,
    new_id,
)
from engines.orders.policies import (
    enforce,
    order_must_not_be_cancelled_policy,
    payment_amount_must_be_positive_policy,
    payment_method_must_be_valid_policy,
    payment_must_not_exceed_balance_policy,
)


def payment_status_for(paid_amount: int, remaining_amount: int) -> PaymentStatus:
    if remaining_amount == 0:
        return PaymentStatus.PAID
    if paid_amount == 0:
        return PaymentStatus.PENDING
    return PaymentStatus.PARTIAL


def allocate_installments(
    installments: Sequence[Installment],
    amount: int,
    at: datetime,
) -> Tuple[Installment, ...]:
    """
    Spread `amount` over PENDING installments in order.

    [100 PENDING, 200 PENDING] + 150 → [100 PAID, 200 PENDING (paid 50)]
    """
    to_allocate = amount
    allocated = []
    for installment in installments:
        if to_allocate > 0 and installment.status == InstallmentStatus.PENDING:
            applied = min(to_allocate, installment.outstanding)
            to_allocate -= applied
            paid = installment.paid_amount + applied
            if paid >= installment.amount:
                installment = replace(
                    installment,
                    paid_amount=paid,
                    status=InstallmentStatus.PAID,
                    paid_date=at,
                )
            else:
                installment = replace(installment, paid_amount=paid)
        allocated.append(installment)
    return tuple(allocated)


def record_payment(
    order: Order,
    amount: int,
    method: PaymentMethod,
    actor_id: str,
    at: datetime,
    notes: Optional[str] = None,
    *,
    payment_id: Optional[str] = None,
) -> Order:
    """Return a new order snapshot with the payment applied."""
    enforce(payment_amount_must_be_positive_policy(amount))
    enforce(
        payment_method_must_be_valid_policy(method),
        order_must_not_be_cancelled_policy(order),
        payment_must_not_exceed_balance_policy(order, amount),
    )

    paid_amount = order.paid_amount + amount
    remaining_amount = order.total_amount - paid_amount

    terms = order.payment_terms
    if terms.type == PaymentTermsType.INSTALLMENTS and terms.installments:
        terms = replace(
            terms,
            installments=allocate_installments(terms.installments, amount, at),
        )

    record = PaymentRecord(
        payment_id=payment_id or new_id(),
        amount=amount,
        method=method,
        recorded_by=actor_id,
        recorded_at=at,
        notes=notes,
    )
    return order.evolve(
        paid_amount=paid_amount,
        remaining_amount=remaining_amount,
        payment_status=payment_status_for(paid_amount, remaining_amount),
        payment_method=method,
        payment_terms=terms,
        payments=order.payments + (record,),
        updated_at=at,
    )
