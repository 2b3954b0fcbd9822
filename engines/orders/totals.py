"""
POS Orders Engine — Totals Calculator
=======================================
Pure computation of per-item and order-level money fields.

Per item:
    subtotal        = quantity × unit_price
    discount_amount = round(subtotal × discount_percent / 100)
    after_discount  = subtotal − discount_amount
    tax_amount      = round(after_discount × tax_percent / 100)
    total           = after_discount + tax_amount

Order:
    total_amount = Σ subtotal − Σ discount_amount + Σ tax_amount + shipping

Rounding: ROUND_HALF_UP to the minor unit, per line, before summing.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Iterable, Tuple

from core.primitives.money import percent_of, require_minor_units
from engines.orders.models import OrderItem


@dataclass(frozen=True)
class OrderTotals:
    items: Tuple[OrderItem, ...]
    subtotal: int
    discount_amount: int
    tax_amount: int
    shipping_amount: int
    total_amount: int

    def to_dict(self) -> dict:
        return {
            "subtotal": self.subtotal,
            "discount_amount": self.discount_amount,
            "tax_amount": self.tax_amount,
            "shipping_amount": self.shipping_amount,
            "total_amount": self.total_amount,
        }


def calculate_item(item: OrderItem) -> OrderItem:
    """Return `item` with its derived money fields filled in."""
    subtotal = item.quantity * item.unit_price
    discount_amount = percent_of(subtotal, item.discount_percent)
    after_discount = subtotal - discount_amount
    tax_amount = percent_of(after_discount, item.tax_percent)
    return replace(
        item,
        subtotal=subtotal,
        discount_amount=discount_amount,
        tax_amount=tax_amount,
        total=after_discount + tax_amount,
    )


def calculate_totals(items: Iterable[OrderItem], shipping_amount: int = 0) -> OrderTotals:
    require_minor_units(shipping_amount, field_name="shipping_amount")
    priced = tuple(calculate_item(item) for item in items)

    subtotal = sum(i.subtotal for i in priced)
    discount_amount = sum(i.discount_amount for i in priced)
    tax_amount = sum(i.tax_amount for i in priced)

    return OrderTotals(
        items=priced,
        subtotal=subtotal,
        discount_amount=discount_amount,
        tax_amount=tax_amount,
        shipping_amount=shipping_amount,
        total_amount=subtotal - discount_amount + tax_amount + shipping_amount,
    )
