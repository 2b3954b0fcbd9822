"""
POS Core Errors — Public API
==============================
Rejection model and typed exceptions shared by all order components.
"""

from core.errors.exceptions import (
    BadRequestError,
    ConcurrencyConflictError,
    ForbiddenError,
    InvalidTransitionError,
    NotFoundError,
    OrderLifecycleError,
    bad_request,
    not_found,
)
from core.errors.rejection import ReasonCode, RejectionReason

__all__ = [
    "BadRequestError",
    "ConcurrencyConflictError",
    "ForbiddenError",
    "InvalidTransitionError",
    "NotFoundError",
    "OrderLifecycleError",
    "ReasonCode",
    "RejectionReason",
    "bad_request",
    "not_found",
]
