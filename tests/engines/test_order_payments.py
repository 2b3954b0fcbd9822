"""Tests for payment recording and installment allocation."""

from datetime import datetime, timedelta, timezone

import pytest

from core.errors import BadRequestError, ReasonCode
from engines.orders.models import (
    Installment,
    InstallmentStatus,
    Order,
    OrderStatus,
    PaymentMethod,
    PaymentStatus,
    PaymentTerms,
    PaymentTermsType,
)
from engines.orders.payments import (
    allocate_installments,
    payment_status_for,
    record_payment,
)

NOW = datetime(2026, 2, 21, 9, 0, 0, tzinfo=timezone.utc)


def _order(total=1000, terms=None, status=OrderStatus.CONFIRMED):
    return Order(
        order_id="order-1",
        tenant_id="tenant-1",
        order_number="ORD-20260221-0001",
        customer_id="cust-1",
        user_id="user-1",
        items=(),
        subtotal=total,
        tax_amount=0,
        discount_amount=0,
        shipping_amount=0,
        total_amount=total,
        remaining_amount=total,
        status=status,
        payment_terms=terms or PaymentTerms(type=PaymentTermsType.NET_DAYS, days_net=30),
        order_date=NOW,
        created_at=NOW,
        updated_at=NOW,
    )


def _schedule(*amounts):
    return tuple(
        Installment(amount=a, due_date=NOW + timedelta(days=30 * (n + 1)))
        for n, a in enumerate(amounts)
    )


class TestPaymentStatus:
    def test_mapping(self):
        assert payment_status_for(0, 100) == PaymentStatus.PENDING
        assert payment_status_for(40, 60) == PaymentStatus.PARTIAL
        assert payment_status_for(100, 0) == PaymentStatus.PAID


class TestRecordPayment:
    def test_partial_then_full(self):
        order = record_payment(_order(), 400, PaymentMethod.CASH, "cashier-1", NOW)
        assert order.paid_amount == 400
        assert order.remaining_amount == 600
        assert order.payment_status == PaymentStatus.PARTIAL
        assert order.payment_method == PaymentMethod.CASH

        order = record_payment(order, 600, PaymentMethod.CARD, "cashier-1", NOW, notes="rest")
        assert order.paid_amount == 1000
        assert order.remaining_amount == 0
        assert order.payment_status == PaymentStatus.PAID
        assert order.payment_method == PaymentMethod.CARD
        assert [p.amount for p in order.payments] == [400, 600]
        assert order.payments[1].notes == "rest"

    def test_balance_invariant_after_each_payment(self):
        order = _order(total=997)
        for amount in (1, 250, 333, 13, 400):
            order = record_payment(order, amount, PaymentMethod.CASH, "u", NOW)
            assert order.remaining_amount == order.total_amount - order.paid_amount
            assert order.paid_amount <= order.total_amount

    def test_overpayment_rejected_and_order_unchanged(self):
        order = record_payment(_order(), 900, PaymentMethod.CASH, "u", NOW)
        with pytest.raises(BadRequestError) as exc:
            record_payment(order, 101, PaymentMethod.CASH, "u", NOW)
        assert exc.value.code == ReasonCode.PAYMENT_EXCEEDS_BALANCE
        assert order.paid_amount == 900
        assert order.remaining_amount == 100

    @pytest.mark.parametrize("amount", [0, -5, 1.5, True])
    def test_non_positive_or_non_integer_rejected(self, amount):
        with pytest.raises(BadRequestError) as exc:
            record_payment(_order(), amount, PaymentMethod.CASH, "u", NOW)
        assert exc.value.code == ReasonCode.INVALID_AMOUNT

    def test_invalid_method_rejected(self):
        with pytest.raises(BadRequestError) as exc:
            record_payment(_order(), 10, "BITCOIN", "u", NOW)
        assert exc.value.code == ReasonCode.INVALID_PAYMENT_METHOD

    def test_cancelled_order_rejected(self):
        with pytest.raises(BadRequestError) as exc:
            record_payment(_order(status=OrderStatus.CANCELLED), 10, PaymentMethod.CASH, "u", NOW)
        assert exc.value.code == ReasonCode.ORDER_CANCELLED

    def test_payment_id_is_recorded(self):
        order = record_payment(_order(), 10, PaymentMethod.CASH, "u", NOW, payment_id="pay-1")
        assert order.payments[0].payment_id == "pay-1"
        assert order.payments[0].recorded_by == "u"
        assert order.payments[0].recorded_at == NOW


class TestInstallmentAllocation:
    def test_greedy_in_list_order(self):
        allocated = allocate_installments(_schedule(100, 200), 150, NOW)

        first, second = allocated
        assert first.status == InstallmentStatus.PAID
        assert first.paid_amount == 100
        assert first.paid_date == NOW
        assert second.status == InstallmentStatus.PENDING
        assert second.paid_amount == 50
        assert second.paid_date is None

    def test_partial_installment_is_topped_up_first(self):
        allocated = allocate_installments(_schedule(100, 200), 150, NOW)
        allocated = allocate_installments(allocated, 100, NOW)
        assert allocated[1].paid_amount == 150
        assert allocated[1].status == InstallmentStatus.PENDING

        allocated = allocate_installments(allocated, 50, NOW)
        assert allocated[1].status == InstallmentStatus.PAID
        assert allocated[1].paid_amount == 200

    def test_never_spills_past_earlier_pending(self):
        allocated = allocate_installments(_schedule(100, 200, 300), 50, NOW)
        assert [i.paid_amount for i in allocated] == [50, 0, 0]

    def test_non_pending_installments_are_skipped(self):
        schedule = _schedule(100, 200)
        overdue = Installment(amount=100, due_date=NOW, status=InstallmentStatus.OVERDUE)
        allocated = allocate_installments((overdue, schedule[1]), 150, NOW)
        assert allocated[0].paid_amount == 0
        assert allocated[1].paid_amount == 150

    def test_record_payment_allocates_for_installment_terms(self):
        terms = PaymentTerms(type=PaymentTermsType.INSTALLMENTS, installments=_schedule(100, 200))
        order = record_payment(_order(total=300, terms=terms), 150, PaymentMethod.CARD, "u", NOW)

        first, second = order.payment_terms.installments
        assert (first.status, first.paid_amount) == (InstallmentStatus.PAID, 100)
        assert (second.status, second.paid_amount) == (InstallmentStatus.PENDING, 50)
        assert order.remaining_amount == 150

    def test_non_installment_terms_untouched(self):
        order = _order()
        paid = record_payment(order, 10, PaymentMethod.CASH, "u", NOW)
        assert paid.payment_terms == order.payment_terms
