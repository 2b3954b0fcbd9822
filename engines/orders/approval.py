"""
POS Orders Engine — Approval Workflow
=======================================
Sequential, role-gated sign-off for high-value orders.

Flow:
    create  → total > threshold → workflow built, order PENDING_APPROVAL
    approve → current step APPROVED
              last step?  workflow APPROVED, order → APPROVED
              otherwise   current_step += 1, order status unchanged
    reject  → current step REJECTED, workflow REJECTED, order → CANCELLED

A resolved workflow refuses further decisions without touching the order.
"""

from __future__ import annotations

from dataclasses import replace
from datetime import datetime
from typing import Optional, Tuple

from engines.orders.config import OrderLifecycleConfig
from engines.orders.models import (
    ApprovalState,
    ApprovalStep,
    ApprovalWorkflow,
    Order,
    OrderStatus,
)
from engines.orders.policies import (
    approval_must_be_pending_policy,
    enforce,
    rejection_reason_must_be_present_policy,
)
from engines.orders.state_machine import transition

APPROVED_REASON = "Order approved"


def requires_approval(total_amount: int, config: OrderLifecycleConfig) -> bool:
    return total_amount > config.approval_threshold


def build_workflow(config: OrderLifecycleConfig) -> ApprovalWorkflow:
    return ApprovalWorkflow(
        steps=tuple(
            ApprovalStep(step_number=number, approver_role=role, required_amount=amount)
            for number, (role, amount) in enumerate(config.approval_steps, start=1)
        ),
        current_step=1,
        status=ApprovalState.PENDING,
    )


def _decide_step(
    workflow: ApprovalWorkflow,
    decision: ApprovalState,
    approver_id: str,
    at: datetime,
    comments: Optional[str],
) -> Tuple[ApprovalStep, ...]:
    step = replace(
        workflow.active_step,
        status=decision,
        approver_id=approver_id,
        comments=comments,
        decided_at=at,
    )
    steps = list(workflow.steps)
    steps[workflow.current_step - 1] = step
    return tuple(steps)


def approve(
    order: Order,
    approver_id: str,
    at: datetime,
    comments: Optional[str] = None,
) -> Order:
    """Approve the current step. Raises BadRequestError if nothing is pending."""
    enforce(approval_must_be_pending_policy(order))
    workflow = order.approval_workflow
    steps = _decide_step(workflow, ApprovalState.APPROVED, approver_id, at, comments)

    if workflow.current_step < workflow.total_steps:
        advanced = replace(workflow, steps=steps, current_step=workflow.current_step + 1)
        return order.evolve(approval_workflow=advanced, updated_at=at)

    resolved = replace(workflow, steps=steps, status=ApprovalState.APPROVED)
    return transition(
        order.evolve(approval_workflow=resolved),
        OrderStatus.APPROVED,
        approver_id,
        at,
        reason=APPROVED_REASON,
        notes=comments,
    )


def reject(order: Order, approver_id: str, reason: str, at: datetime) -> Order:
    """Reject the current step and cancel the order."""
    enforce(rejection_reason_must_be_present_policy(reason))
    enforce(approval_must_be_pending_policy(order))
    workflow = order.approval_workflow
    steps = _decide_step(workflow, ApprovalState.REJECTED, approver_id, at, reason)
    resolved = replace(workflow, steps=steps, status=ApprovalState.REJECTED)
    return transition(
        order.evolve(approval_workflow=resolved),
        OrderStatus.CANCELLED,
        approver_id,
        at,
        reason=reason,
    )
