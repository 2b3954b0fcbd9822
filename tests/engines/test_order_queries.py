"""
Tests for the read side of the order lifecycle: listings, filters,
search, overdue / due-today / pending-approval queries and metrics.
"""

import itertools
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from core.errors import NotFoundError
from core.time import FixedClock, TimeWindow
from engines.orders.collaborators import InMemoryCustomerDirectory
from engines.orders.creation import OrderDraft
from engines.orders.models import (
    Installment,
    InstallmentStatus,
    OrderItem,
    OrderPriority,
    OrderStatus,
    PaymentMethod,
    PaymentStatus,
    PaymentTerms,
    PaymentTermsType,
    RecurringFrequency,
    RecurringOrderConfig,
)
from engines.orders.repository import (
    InMemoryOrderRepository,
    OrderFilters,
    Pagination,
    paginate,
)
from engines.orders.services import OrderLifecycleService

NOW = datetime(2026, 2, 21, 9, 0, 0, tzinfo=timezone.utc)
TENANT = "tenant-1"
IMMEDIATE = PaymentTerms(type=PaymentTermsType.IMMEDIATE)
END_OF_MONTH = PaymentTerms(type=PaymentTermsType.END_OF_MONTH)


def _ids():
    counter = itertools.count(1)
    return lambda: f"id-{next(counter):03d}"


def _item(unit_price=1000, name="Espresso", sku="ESP-1", description=""):
    return OrderItem(
        product_id=f"prod-{sku}",
        name=name,
        sku=sku,
        quantity=1,
        unit_price=unit_price,
        discount_percent=Decimal(0),
        tax_percent=Decimal(0),
        description=description,
    )


def _draft(customer_id="cust-1", unit_price=1000, **kw):
    items = kw.pop("items", None) or (_item(unit_price),)
    return OrderDraft(customer_id=customer_id, items=items, **kw)


@pytest.fixture
def clock():
    return FixedClock(NOW)


@pytest.fixture
def service(clock):
    return OrderLifecycleService(
        repository=InMemoryOrderRepository(),
        customer_directory=InMemoryCustomerDirectory({TENANT: {"cust-1", "cust-2"}}),
        clock=clock,
        id_factory=_ids(),
    )


def _advance(service, order_id, *statuses):
    order = None
    for status in statuses:
        order = service.update_order_status(TENANT, order_id, status, "u")
    return order


TO_SHIPPED = (
    OrderStatus.CONFIRMED,
    OrderStatus.IN_PRODUCTION,
    OrderStatus.READY_TO_SHIP,
    OrderStatus.SHIPPED,
)


# ══════════════════════════════════════════════════════════════
# LOOKUPS
# ══════════════════════════════════════════════════════════════

class TestLookups:
    def test_get_by_number(self, service):
        order = service.create_order(TENANT, "u", _draft())
        assert service.get_order_by_number(TENANT, order.order_number).order_id == order.order_id

    def test_get_by_number_other_tenant(self, service):
        order = service.create_order(TENANT, "u", _draft())
        with pytest.raises(NotFoundError):
            service.get_order_by_number("tenant-2", order.order_number)

    def test_get_order_other_tenant(self, service):
        order = service.create_order(TENANT, "u", _draft())
        with pytest.raises(NotFoundError):
            service.get_order("tenant-2", order.order_id)


# ══════════════════════════════════════════════════════════════
# DUE / OVERDUE / APPROVAL QUEUES
# ══════════════════════════════════════════════════════════════

class TestPaymentQueues:
    def test_overdue(self, service, clock):
        late = service.create_order(TENANT, "u", _draft(payment_terms=IMMEDIATE))
        service.create_order(TENANT, "u", _draft())
        paid = service.create_order(TENANT, "u", _draft(payment_terms=IMMEDIATE))
        service.record_payment(TENANT, paid.order_id, 1000, PaymentMethod.CASH, "u")
        cancelled = service.create_order(TENANT, "u", _draft(payment_terms=IMMEDIATE))
        service.update_order_status(TENANT, cancelled.order_id, OrderStatus.CANCELLED, "u")

        clock.advance(days=1)
        assert [o.order_id for o in service.get_overdue_orders(TENANT)] == [late.order_id]

    def test_partially_paid_is_still_overdue(self, service, clock):
        order = service.create_order(TENANT, "u", _draft(payment_terms=IMMEDIATE))
        service.record_payment(TENANT, order.order_id, 10, PaymentMethod.CASH, "u")
        clock.advance(1)
        assert len(service.get_overdue_orders(TENANT)) == 1

    def test_overdue_reports_past_due_installments(self, service, clock):
        terms = PaymentTerms(
            type=PaymentTermsType.INSTALLMENTS,
            installments=(
                Installment(amount=400, due_date=NOW + timedelta(days=10)),
                Installment(amount=600, due_date=NOW + timedelta(days=40)),
            ),
        )
        order = service.create_order(TENANT, "u", _draft(payment_terms=terms))
        clock.advance(days=31)

        [overdue] = service.get_overdue_orders(TENANT)
        assert [i.status for i in overdue.payment_terms.installments] == [
            InstallmentStatus.OVERDUE,
            InstallmentStatus.PENDING,
        ]
        stored = service.get_order(TENANT, order.order_id)
        assert all(i.status == InstallmentStatus.PENDING for i in stored.payment_terms.installments)

    def test_due_today(self, service):
        today = service.create_order(TENANT, "u", _draft(payment_terms=IMMEDIATE))
        service.create_order(TENANT, "u", _draft(payment_terms=END_OF_MONTH))
        service.create_order(TENANT, "u", _draft())

        due = service.get_orders_due_today(TENANT)
        assert [o.order_id for o in due] == [today.order_id]

    def test_pending_approval(self, service):
        big = service.create_order(TENANT, "u", _draft(unit_price=1_500_000))
        service.create_order(TENANT, "u", _draft())
        assert [o.order_id for o in service.get_pending_approval_orders(TENANT)] == [big.order_id]

        service.approve_order(TENANT, big.order_id, "m")
        assert len(service.get_pending_approval_orders(TENANT)) == 1
        service.approve_order(TENANT, big.order_id, "o")
        assert service.get_pending_approval_orders(TENANT) == []


# ══════════════════════════════════════════════════════════════
# LISTING / FILTERS / SEARCH
# ══════════════════════════════════════════════════════════════

class TestListing:
    def test_pagination_newest_first(self, service, clock):
        created = []
        for _ in range(5):
            created.append(service.create_order(TENANT, "u", _draft()))
            clock.advance(60)

        page = service.list_orders(TENANT, pagination=Pagination(page=2, limit=2))
        assert page.total == 5
        assert page.pages == 3
        assert [o.order_id for o in page.orders] == [created[2].order_id, created[1].order_id]

    def test_sort_ascending_by_total(self, service):
        for price in (300, 100, 200):
            service.create_order(TENANT, "u", _draft(unit_price=price))
        page = service.list_orders(
            TENANT, pagination=Pagination(sort_by="total_amount", sort_order="asc"),
        )
        assert [o.total_amount for o in page.orders] == [100, 200, 300]

    def test_empty_page(self, service):
        page = service.list_orders(TENANT)
        assert page.total == 0
        assert page.pages == 0
        assert page.to_dict()["orders"] == []

    def test_invalid_pagination(self):
        with pytest.raises(ValueError):
            Pagination(sort_by="customer_name")
        with pytest.raises(ValueError):
            Pagination(page=0)
        with pytest.raises(ValueError):
            Pagination(sort_order="sideways")

    def test_nulls_sort_last_ascending_first_descending(self, service):
        base = service.create_order(TENANT, "u", _draft())
        orders = [
            base.evolve(order_id="a", due_date=NOW + timedelta(days=2)),
            base.evolve(order_id="b", due_date=None),
            base.evolve(order_id="c", due_date=NOW + timedelta(days=1)),
        ]
        asc = paginate(orders, Pagination(sort_by="due_date", sort_order="asc"))
        desc = paginate(orders, Pagination(sort_by="due_date", sort_order="desc"))
        assert [o.order_id for o in asc.orders] == ["c", "a", "b"]
        assert [o.order_id for o in desc.orders] == ["b", "a", "c"]

    def test_ties_broken_by_order_id(self, service):
        base = service.create_order(TENANT, "u", _draft())
        orders = [base.evolve(order_id=i) for i in ("z", "m", "a")]
        for sort_order in ("asc", "desc"):
            page = paginate(orders, Pagination(sort_by="total_amount", sort_order=sort_order))
            assert [o.order_id for o in page.orders] == ["a", "m", "z"]


class TestFilters:
    @pytest.fixture
    def seeded(self, service):
        small = service.create_order(TENANT, "u", _draft(tags=("wholesale",)))
        other = service.create_order(
            TENANT, "u", _draft(customer_id="cust-2", unit_price=5000, priority=OrderPriority.HIGH),
        )
        big = service.create_order(TENANT, "u", _draft(unit_price=1_500_000))
        recurring = service.create_order(
            TENANT, "u",
            _draft(recurring_order=RecurringOrderConfig(
                enabled=True, frequency=RecurringFrequency.WEEKLY,
            )),
        )
        service.record_payment(TENANT, other.order_id, 5000, PaymentMethod.CARD, "u")
        service.update_order_status(TENANT, small.order_id, OrderStatus.CONFIRMED, "u")
        return {"small": small, "other": other, "big": big, "recurring": recurring}

    def _ids_for(self, service, filters):
        return {o.order_id for o in service.list_orders(TENANT, filters, Pagination(limit=50)).orders}

    def test_by_customer(self, service, seeded):
        page = service.list_customer_orders(TENANT, "cust-2")
        assert [o.order_id for o in page.orders] == [seeded["other"].order_id]

    def test_by_status(self, service, seeded):
        page = service.list_orders_by_status(TENANT, [OrderStatus.CONFIRMED, OrderStatus.PENDING_APPROVAL])
        assert {o.order_id for o in page.orders} == {seeded["small"].order_id, seeded["big"].order_id}

    def test_by_payment_status(self, service, seeded):
        page = service.list_orders_by_payment_status(TENANT, [PaymentStatus.PAID])
        assert [o.order_id for o in page.orders] == [seeded["other"].order_id]

    def test_by_tag_priority_and_amount(self, service, seeded):
        assert self._ids_for(service, OrderFilters(tags=("wholesale",))) == {seeded["small"].order_id}
        assert self._ids_for(service, OrderFilters(priority=(OrderPriority.HIGH,))) == {
            seeded["other"].order_id
        }
        assert self._ids_for(service, OrderFilters(min_amount=2000, max_amount=10_000)) == {
            seeded["other"].order_id
        }

    def test_by_workflow_and_recurrence(self, service, seeded):
        assert self._ids_for(service, OrderFilters(has_approval_workflow=True)) == {
            seeded["big"].order_id
        }
        assert self._ids_for(service, OrderFilters(is_recurring=True)) == {
            seeded["recurring"].order_id
        }

    def test_by_due_range(self, service, seeded):
        window = OrderFilters(due_from=NOW + timedelta(days=29), due_to=NOW + timedelta(days=30))
        assert len(self._ids_for(service, window)) == 4
        assert self._ids_for(service, OrderFilters(due_to=NOW)) == set()


class TestSearch:
    def test_matches_number_notes_tags_and_items(self, service):
        coffee = service.create_order(
            TENANT, "u",
            _draft(
                items=(_item(name="Ethiopian Beans", sku="ETH-250", description="Single origin"),),
                notes="Deliver before NOON",
                tags=("roastery",),
            ),
        )
        service.create_order(TENANT, "u", _draft())

        for term in ("ethiopian", "eth-250", "single ORIGIN", "noon", "ROASTERY", coffee.order_number[-4:]):
            page = service.search_orders(TENANT, term)
            assert coffee.order_id in {o.order_id for o in page.orders}, term

        assert service.search_orders(TENANT, "espresso").total == 1
        assert service.search_orders(TENANT, "nothing-like-this").total == 0


# ══════════════════════════════════════════════════════════════
# METRICS
# ══════════════════════════════════════════════════════════════

class TestMetrics:
    def test_totals_and_top_customers(self, service):
        service.create_order(TENANT, "u", _draft(unit_price=1890))
        service.create_order(TENANT, "u", _draft(unit_price=1890))
        service.create_order(TENANT, "u", _draft(customer_id="cust-2", unit_price=1_500_000))

        metrics = service.get_order_metrics(TENANT)
        assert metrics.total_orders == 3
        assert metrics.total_value == 1_503_780
        assert metrics.average_order_value == 501_260
        assert metrics.pending_orders == 1
        assert metrics.orders_by_status["DRAFT"] == 2
        assert metrics.orders_by_status["PENDING_APPROVAL"] == 1
        assert metrics.payments_by_status["PENDING"] == 3
        assert [c.customer_id for c in metrics.top_customers] == ["cust-2", "cust-1"]
        assert metrics.top_customers[1].total_orders == 2

    def test_delivery_performance(self, service, clock):
        on_time = service.create_order(TENANT, "u", _draft())
        late = service.create_order(TENANT, "u", _draft())
        _advance(service, on_time.order_id, *TO_SHIPPED)
        _advance(service, late.order_id, *TO_SHIPPED)

        clock.advance(days=2)
        _advance(service, on_time.order_id, OrderStatus.DELIVERED)
        clock.advance(days=5)
        _advance(service, late.order_id, OrderStatus.DELIVERED)

        metrics = service.get_order_metrics(TENANT)
        # deltas vs expected (shipped + 3 days): −1 and +4 days
        assert metrics.completion_rate == 50.0
        assert metrics.average_delivery_days == 1.5

    def test_overdue_payments_count(self, service, clock):
        service.create_order(TENANT, "u", _draft(payment_terms=IMMEDIATE))
        service.create_order(TENANT, "u", _draft())
        clock.advance(days=1)
        assert service.get_order_metrics(TENANT).overdue_payments == 1

    def test_window_is_inclusive_on_created_at(self, service, clock):
        service.create_order(TENANT, "u", _draft())
        clock.advance(days=1)
        later = service.create_order(TENANT, "u", _draft())

        window = TimeWindow(start=later.created_at, end=later.created_at)
        metrics = service.get_order_metrics(TENANT, window)
        assert metrics.total_orders == 1

    def test_empty_tenant(self, service):
        metrics = service.get_order_metrics(TENANT)
        assert metrics.total_orders == 0
        assert metrics.average_order_value == 0
        assert metrics.completion_rate == 0.0
        assert metrics.to_dict()["top_customers"] == []

    def test_customer_summary(self, service, clock):
        first = service.create_order(TENANT, "u", _draft(unit_price=1890))
        clock.advance(60)
        second = service.create_order(TENANT, "u", _draft(unit_price=1890))
        service.record_payment(TENANT, first.order_id, 890, PaymentMethod.CASH, "u")

        summary = service.get_customer_order_summary(TENANT, "cust-1")
        assert summary.total_orders == 2
        assert summary.total_value == 3780
        assert summary.average_order_value == 1890
        assert summary.last_order_date == second.created_at
        assert summary.pending_payments == 1000 + 1890

    def test_customer_summary_without_orders(self, service):
        summary = service.get_customer_order_summary(TENANT, "cust-2")
        assert summary.total_orders == 0
        assert summary.last_order_date is None
