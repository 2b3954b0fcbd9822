"""
Tests for the orders totals calculator.

Amounts are minor units: unit_price=1000 is 10.00.
"""

from decimal import Decimal

import pytest

from engines.orders.models import OrderItem
from engines.orders.totals import calculate_item, calculate_totals


def _item(quantity=2, unit_price=1000, discount="10", tax="5", **kw):
    return OrderItem(
        product_id=kw.pop("product_id", "prod-1"),
        name=kw.pop("name", "Widget"),
        sku=kw.pop("sku", "W-1"),
        quantity=quantity,
        unit_price=unit_price,
        discount_percent=Decimal(discount),
        tax_percent=Decimal(tax),
        **kw,
    )


class TestCalculateItem:
    def test_reference_line(self):
        priced = calculate_item(_item())
        assert priced.subtotal == 2000
        assert priced.discount_amount == 200
        assert priced.tax_amount == 90
        assert priced.total == 1890

    def test_no_discount_no_tax(self):
        priced = calculate_item(_item(quantity=3, unit_price=250, discount="0", tax="0"))
        assert priced.subtotal == 750
        assert priced.total == 750

    def test_rounds_half_up_per_line(self):
        # 333 × 12.5% = 41.625 → 42; (333 − 42) × 7.5% = 21.825 → 22
        priced = calculate_item(_item(quantity=1, unit_price=333, discount="12.5", tax="7.5"))
        assert priced.discount_amount == 42
        assert priced.tax_amount == 22
        assert priced.total == 333 - 42 + 22

    def test_input_item_not_mutated(self):
        item = _item()
        calculate_item(item)
        assert item.subtotal == 0


class TestCalculateTotals:
    def test_reference_order(self):
        totals = calculate_totals([_item()])
        assert totals.subtotal == 2000
        assert totals.discount_amount == 200
        assert totals.tax_amount == 90
        assert totals.total_amount == 1890
        assert totals.shipping_amount == 0

    def test_multiple_items_and_shipping(self):
        totals = calculate_totals(
            [_item(), _item(quantity=1, unit_price=500, discount="0", tax="10")],
            shipping_amount=300,
        )
        assert totals.subtotal == 2500
        assert totals.discount_amount == 200
        assert totals.tax_amount == 140
        assert totals.total_amount == 2500 - 200 + 140 + 300
        assert len(totals.items) == 2
        assert totals.items[1].total == 550

    def test_order_total_equals_sum_of_item_totals_plus_shipping(self):
        items = [
            _item(quantity=q, unit_price=p, discount=d, tax=t)
            for q, p, d, t in [(1, 999, "3", "8.25"), (7, 129, "15", "0"), (2, 50, "0", "19")]
        ]
        totals = calculate_totals(items, shipping_amount=45)
        assert totals.total_amount == sum(i.total for i in totals.items) + 45

    def test_empty_items(self):
        totals = calculate_totals([])
        assert totals.total_amount == 0

    def test_rejects_negative_shipping(self):
        with pytest.raises(ValueError):
            calculate_totals([_item()], shipping_amount=-1)

    def test_rejects_float_shipping(self):
        with pytest.raises(TypeError):
            calculate_totals([_item()], shipping_amount=1.5)


class TestOrderItemValidation:
    def test_quantity_must_be_positive(self):
        with pytest.raises(ValueError):
            _item(quantity=0)

    def test_discount_over_100_rejected(self):
        with pytest.raises(ValueError):
            _item(discount="100.01")

    def test_float_unit_price_rejected(self):
        with pytest.raises(TypeError):
            _item(unit_price=10.0)

    def test_percent_strings_normalized(self):
        item = OrderItem(
            product_id="p", name="n", sku="s", quantity=1, unit_price=1,
            discount_percent="2.5", tax_percent=7,
        )
        assert item.discount_percent == Decimal("2.5")
        assert item.tax_percent == Decimal(7)
