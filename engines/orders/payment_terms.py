"""
POS Orders Engine — Payment Terms Resolver
============================================
Derives an order's due date from its payment terms.

    IMMEDIATE       → now
    NET_DAYS        → now + days_net (default 30)
    END_OF_MONTH    → last calendar day of now's month
    INSTALLMENTS,
    CUSTOM          → now + 30 days (fallback)

Installment schedules are caller-supplied, never derived here.
"""

from __future__ import annotations

from dataclasses import replace
from datetime import datetime, timedelta
from typing import Sequence, Tuple

from core.time import end_of_month
from engines.orders.models import (
    Installment,
    InstallmentStatus,
    PaymentTerms,
    PaymentTermsType,
)
from engines.orders.policies import enforce, installments_must_fit_total_policy

DEFAULT_NET_DAYS = 30
FALLBACK_DUE_DAYS = 30


def default_payment_terms(days_net: int = DEFAULT_NET_DAYS) -> PaymentTerms:
    """Terms applied when an order is created without any."""
    return PaymentTerms(type=PaymentTermsType.NET_DAYS, days_net=days_net)


def resolve_due_date(
    terms: PaymentTerms,
    now: datetime,
    *,
    default_net_days: int = DEFAULT_NET_DAYS,
    fallback_days: int = FALLBACK_DUE_DAYS,
) -> datetime:
    if terms.type == PaymentTermsType.IMMEDIATE:
        return now
    if terms.type == PaymentTermsType.NET_DAYS:
        days = terms.days_net if terms.days_net is not None else default_net_days
        return now + timedelta(days=days)
    if terms.type == PaymentTermsType.END_OF_MONTH:
        return end_of_month(now)
    return now + timedelta(days=fallback_days)


def validate_installments(installments: Sequence[Installment], total_amount: int) -> None:
    """Raise BadRequestError when the schedule cannot be paid from `total_amount`."""
    enforce(installments_must_fit_total_policy(installments, total_amount))


def unpaid_installments(installments: Sequence[Installment]) -> Tuple[Installment, ...]:
    """The same schedule with every installment back to PENDING and nothing paid."""
    return tuple(
        replace(i, status=InstallmentStatus.PENDING, paid_amount=0, paid_date=None)
        for i in installments
    )


def reset_installments(terms: PaymentTerms, shift: timedelta) -> PaymentTerms:
    """Fresh, unpaid copy of the schedule with every due date moved by `shift`."""
    if not terms.installments:
        return terms
    return replace(
        terms,
        installments=tuple(
            Installment(amount=i.amount, due_date=i.due_date + shift)
            for i in terms.installments
        ),
    )


def mark_overdue_installments(terms: PaymentTerms, now: datetime) -> PaymentTerms:
    """Report PENDING installments whose due date has passed as OVERDUE."""
    changed = False
    marked = []
    for installment in terms.installments:
        if installment.status == InstallmentStatus.PENDING and installment.due_date < now:
            installment = replace(installment, status=InstallmentStatus.OVERDUE)
            changed = True
        marked.append(installment)
    if not changed:
        return terms
    return replace(terms, installments=tuple(marked))
