"""
POS Orders Engine - Order Numbering
=====================================
Order numbers are ORD-YYYYMMDD-NNNN: prefix, UTC day, then a
per-tenant sequence that resets daily and starts at 1.

Doctrine:
- Sequence state lives in the repository (atomic counter per tenant/day).
- Time is passed explicitly; never read from the system clock here.
"""

from __future__ import annotations

from datetime import datetime

from core.time import day_key


def format_order_number(prefix: str, issued_at: datetime, sequence: int, padding: int = 4) -> str:
    """
    format_order_number("ORD", 2026-02-18T09:00Z, 7) == "ORD-20260218-0007"

    Sequences wider than `padding` are printed in full, not truncated.
    """
    if sequence < 1:
        raise ValueError("sequence must be >= 1.")
    return f"{prefix}-{day_key(issued_at)}-{sequence:0{padding}d}"


def next_order_number(repository, tenant_id: str, issued_at: datetime, *, prefix: str = "ORD", padding: int = 4) -> str:
    """Reserve the next sequence for the tenant's UTC day and format it."""
    sequence = repository.next_order_sequence(tenant_id, day_key(issued_at))
    return format_order_number(prefix, issued_at, sequence, padding)
