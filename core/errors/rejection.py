"""
POS Core Errors — Rejection Model
====================================
Structured rejection reasons for refused order operations.

Every rejection must be:
- Deterministic (same input → same rejection)
- Machine-readable (code)
- Human-readable (message)
- Traceable to the policy that produced it (policy_name)
"""

from __future__ import annotations

from dataclasses import dataclass


# ══════════════════════════════════════════════════════════════
# REJECTION REASON (frozen explanation structure)
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class RejectionReason:
    """
    Structured reason for a refused operation.

    Fields:
        code:        Machine-readable rejection code (e.g. 'INVALID_TRANSITION').
        message:     Human-readable explanation.
        policy_name: Name of the policy that caused rejection.
    """

    code: str
    message: str
    policy_name: str

    def __post_init__(self):
        if not self.code or not isinstance(self.code, str):
            raise ValueError("code must be a non-empty string.")

        if not self.message or not isinstance(self.message, str):
            raise ValueError("message must be a non-empty string.")

        if not self.policy_name or not isinstance(self.policy_name, str):
            raise ValueError("policy_name must be a non-empty string.")

    def to_dict(self) -> dict:
        return {
            "code": self.code,
            "message": self.message,
            "policy_name": self.policy_name,
        }


# ══════════════════════════════════════════════════════════════
# STANDARD REJECTION CODES
# ══════════════════════════════════════════════════════════════

class ReasonCode:
    """
    Known rejection codes.

    Convention: SCREAMING_SNAKE_CASE.
    """

    # ── Lookup ────────────────────────────────────────────────
    ORDER_NOT_FOUND = "ORDER_NOT_FOUND"
    CUSTOMER_NOT_FOUND = "CUSTOMER_NOT_FOUND"
    TEMPLATE_NOT_FOUND = "TEMPLATE_NOT_FOUND"
    BULK_OPERATION_NOT_FOUND = "BULK_OPERATION_NOT_FOUND"

    # ── Lifecycle ─────────────────────────────────────────────
    INVALID_TRANSITION = "INVALID_TRANSITION"
    ORDER_NOT_MODIFIABLE = "ORDER_NOT_MODIFIABLE"
    ORDER_NOT_DELETABLE = "ORDER_NOT_DELETABLE"
    ORDER_CANCELLED = "ORDER_CANCELLED"
    INVALID_UPDATE_FIELD = "INVALID_UPDATE_FIELD"
    CUSTOMER_REQUIRED = "CUSTOMER_REQUIRED"

    # ── Money ─────────────────────────────────────────────────
    INVALID_AMOUNT = "INVALID_AMOUNT"
    PAYMENT_EXCEEDS_BALANCE = "PAYMENT_EXCEEDS_BALANCE"
    BALANCE_WOULD_BE_NEGATIVE = "BALANCE_WOULD_BE_NEGATIVE"
    INVALID_PAYMENT_METHOD = "INVALID_PAYMENT_METHOD"
    INVALID_INSTALLMENTS = "INVALID_INSTALLMENTS"
    INVALID_ITEMS = "INVALID_ITEMS"

    # ── Approval ──────────────────────────────────────────────
    APPROVAL_NOT_PENDING = "APPROVAL_NOT_PENDING"
    INVALID_APPROVAL_STEP = "INVALID_APPROVAL_STEP"
    REJECTION_REASON_REQUIRED = "REJECTION_REASON_REQUIRED"

    # ── Templates / bulk ──────────────────────────────────────
    TEMPLATE_INACTIVE = "TEMPLATE_INACTIVE"
    INVALID_TEMPLATE = "INVALID_TEMPLATE"
    INVALID_BULK_OPERATION = "INVALID_BULK_OPERATION"
    INVALID_BULK_TRANSITION = "INVALID_BULK_TRANSITION"

    # ── Concurrency / authorization ───────────────────────────
    VERSION_CONFLICT = "VERSION_CONFLICT"
    PERMISSION_DENIED = "PERMISSION_DENIED"
