"""
POS Core Errors — Exception Types
====================================
Typed errors raised by the order lifecycle core.

Each error carries a RejectionReason and an http_status so an
outer transport layer can map it without inspecting messages:
    NotFoundError            → 404
    BadRequestError          → 400
    ForbiddenError           → 403
    ConcurrencyConflictError → 409
"""

from __future__ import annotations

from core.errors.rejection import ReasonCode, RejectionReason


class OrderLifecycleError(Exception):
    """Base error for order lifecycle operations."""

    http_status = 500

    def __init__(self, rejection: RejectionReason):
        self.rejection = rejection
        super().__init__(rejection.message)

    @property
    def code(self) -> str:
        return self.rejection.code

    def to_dict(self) -> dict:
        payload = self.rejection.to_dict()
        payload["http_status"] = self.http_status
        return payload


class NotFoundError(OrderLifecycleError, LookupError):
    """Order, customer, template or bulk operation absent (or in another tenant)."""

    http_status = 404


class BadRequestError(OrderLifecycleError, ValueError):
    """Invalid request or business-rule violation."""

    http_status = 400


class InvalidTransitionError(BadRequestError):
    """Requested status change is not an edge of the order workflow."""

    def __init__(self, from_status: str, to_status: str):
        self.from_status = from_status
        self.to_status = to_status
        super().__init__(
            RejectionReason(
                code=ReasonCode.INVALID_TRANSITION,
                message=f"Invalid status transition from {from_status} to {to_status}.",
                policy_name="order_status_transition_must_be_valid_policy",
            )
        )


class ForbiddenError(OrderLifecycleError):
    """Raised by callers' authorization layers; never by the core itself."""

    http_status = 403


class ConcurrencyConflictError(OrderLifecycleError):
    """Stored version differs from the version the write was based on."""

    http_status = 409

    def __init__(self, entity_id: str, expected_version: int, actual_version: int):
        self.entity_id = entity_id
        self.expected_version = expected_version
        self.actual_version = actual_version
        super().__init__(
            RejectionReason(
                code=ReasonCode.VERSION_CONFLICT,
                message=(
                    f"Order '{entity_id}' was modified concurrently "
                    f"(expected version {expected_version}, found {actual_version})."
                ),
                policy_name="order_version_must_match_policy",
            )
        )


def not_found(code: str, message: str, policy_name: str) -> NotFoundError:
    return NotFoundError(RejectionReason(code=code, message=message, policy_name=policy_name))


def bad_request(code: str, message: str, policy_name: str) -> BadRequestError:
    return BadRequestError(RejectionReason(code=code, message=message, policy_name=policy_name))
