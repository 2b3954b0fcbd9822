"""
POS Orders Engine — Configuration
===================================
Tunable constants of the order lifecycle, overridable from
Django settings via the ORDER_LIFECYCLE dict:

    ORDER_LIFECYCLE = {
        "approval_threshold": 1_000_000,
        "approval_steps": [("MANAGER", 1_000_000), ("OWNER", 5_000_000)],
        "recurring_order_timeout_seconds": 30.0,
    }

Amounts are integer minor units.
"""

from __future__ import annotations

from dataclasses import dataclass, fields
from typing import Any, Mapping, Optional, Tuple

from engines.orders.models import ApprovalRole

DEFAULT_APPROVAL_STEPS: Tuple[Tuple[ApprovalRole, int], ...] = (
    (ApprovalRole.MANAGER, 1_000_000),
    (ApprovalRole.OWNER, 5_000_000),
)


@dataclass(frozen=True)
class OrderLifecycleConfig:
    approval_threshold: int = 1_000_000
    approval_steps: Tuple[Tuple[ApprovalRole, int], ...] = DEFAULT_APPROVAL_STEPS
    default_net_days: int = 30
    fallback_due_days: int = 30
    shipping_lead_days: int = 3
    order_number_prefix: str = "ORD"
    order_number_padding: int = 4
    recurring_order_timeout_seconds: float = 30.0
    max_conflict_retries: int = 3
    default_currency: str = "USD"

    def __post_init__(self) -> None:
        if self.approval_threshold < 0:
            raise ValueError("approval_threshold must be >= 0.")
        if not self.approval_steps:
            raise ValueError("approval_steps must not be empty.")
        steps = tuple(
            (role if isinstance(role, ApprovalRole) else ApprovalRole(role), int(amount))
            for role, amount in self.approval_steps
        )
        object.__setattr__(self, "approval_steps", steps)
        if self.order_number_padding < 1:
            raise ValueError("order_number_padding must be >= 1.")
        if self.recurring_order_timeout_seconds <= 0:
            raise ValueError("recurring_order_timeout_seconds must be > 0.")
        if self.max_conflict_retries < 0:
            raise ValueError("max_conflict_retries must be >= 0.")

    @classmethod
    def from_mapping(cls, overrides: Optional[Mapping[str, Any]]) -> OrderLifecycleConfig:
        """Build a config from a settings dict; unknown keys are rejected."""
        if not overrides:
            return cls()
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(overrides) - known)
        if unknown:
            raise ValueError(f"Unknown ORDER_LIFECYCLE keys: {', '.join(unknown)}.")
        values = dict(overrides)
        if "approval_steps" in values:
            values["approval_steps"] = tuple(tuple(step) for step in values["approval_steps"])
        return cls(**values)


def load_order_config() -> OrderLifecycleConfig:
    """Read ORDER_LIFECYCLE from Django settings (defaults when absent)."""
    from django.conf import settings

    return OrderLifecycleConfig.from_mapping(getattr(settings, "ORDER_LIFECYCLE", None))
