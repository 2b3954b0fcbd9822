"""
Tests for the approval workflow engine.

Threshold and steps come from OrderLifecycleConfig defaults:
> 10000.00 requires MANAGER then OWNER sign-off.
"""

from datetime import datetime, timedelta, timezone

import pytest

from core.errors import BadRequestError, ReasonCode
from engines.orders.approval import (
    APPROVED_REASON,
    approve,
    build_workflow,
    reject,
    requires_approval,
)
from engines.orders.config import OrderLifecycleConfig
from engines.orders.models import (
    ApprovalRole,
    ApprovalState,
    Order,
    OrderStatus,
    PaymentTerms,
    PaymentTermsType,
)

NOW = datetime(2026, 2, 21, 9, 0, 0, tzinfo=timezone.utc)
CONFIG = OrderLifecycleConfig()


def _pending_order(workflow=None):
    return Order(
        order_id="order-1",
        tenant_id="tenant-1",
        order_number="ORD-20260221-0001",
        customer_id="cust-1",
        user_id="user-1",
        items=(),
        subtotal=1_500_000,
        tax_amount=0,
        discount_amount=0,
        shipping_amount=0,
        total_amount=1_500_000,
        remaining_amount=1_500_000,
        status=OrderStatus.PENDING_APPROVAL,
        payment_terms=PaymentTerms(type=PaymentTermsType.IMMEDIATE),
        order_date=NOW,
        created_at=NOW,
        updated_at=NOW,
        approval_workflow=workflow or build_workflow(CONFIG),
    )


class TestRequiresApproval:
    def test_threshold_is_exclusive(self):
        assert not requires_approval(1_000_000, CONFIG)
        assert requires_approval(1_000_001, CONFIG)

    def test_configurable_threshold(self):
        assert requires_approval(501, OrderLifecycleConfig(approval_threshold=500))


class TestBuildWorkflow:
    def test_two_steps_manager_then_owner(self):
        workflow = build_workflow(CONFIG)
        assert workflow.total_steps == 2
        assert workflow.current_step == 1
        assert workflow.status == ApprovalState.PENDING
        assert [s.approver_role for s in workflow.steps] == [ApprovalRole.MANAGER, ApprovalRole.OWNER]
        assert [s.required_amount for s in workflow.steps] == [1_000_000, 5_000_000]
        assert all(s.status == ApprovalState.PENDING for s in workflow.steps)


class TestApprove:
    def test_first_step_advances_without_status_change(self):
        order = approve(_pending_order(), "manager-1", NOW, comments="ok")

        workflow = order.approval_workflow
        assert workflow.current_step == 2
        assert workflow.status == ApprovalState.PENDING
        assert workflow.steps[0].status == ApprovalState.APPROVED
        assert workflow.steps[0].approver_id == "manager-1"
        assert workflow.steps[0].comments == "ok"
        assert workflow.steps[0].decided_at == NOW
        assert order.status == OrderStatus.PENDING_APPROVAL
        assert len(order.status_history) == 0

    def test_last_step_approves_order(self):
        order = approve(_pending_order(), "manager-1", NOW)
        order = approve(order, "owner-1", NOW + timedelta(minutes=5))

        assert order.status == OrderStatus.APPROVED
        assert order.approval_workflow.status == ApprovalState.APPROVED
        assert order.approval_workflow.steps[1].approver_id == "owner-1"
        assert order.status_history[-1].status == OrderStatus.APPROVED
        assert order.status_history[-1].reason == APPROVED_REASON
        assert order.status_history[-1].changed_by == "owner-1"

    def test_approving_resolved_workflow_fails_every_time(self):
        order = approve(approve(_pending_order(), "m", NOW), "o", NOW)
        history_len = len(order.status_history)

        for _ in range(2):
            with pytest.raises(BadRequestError) as exc:
                approve(order, "o", NOW)
            assert exc.value.code == ReasonCode.APPROVAL_NOT_PENDING

        assert order.status == OrderStatus.APPROVED
        assert len(order.status_history) == history_len

    def test_no_workflow_fails(self):
        order = _pending_order().evolve(approval_workflow=None)
        with pytest.raises(BadRequestError) as exc:
            approve(order, "m", NOW)
        assert exc.value.code == ReasonCode.APPROVAL_NOT_PENDING

    def test_single_step_workflow(self):
        config = OrderLifecycleConfig(approval_steps=(("OWNER", 1),))
        order = approve(_pending_order(build_workflow(config)), "owner-1", NOW)
        assert order.status == OrderStatus.APPROVED


class TestReject:
    def test_reject_cancels_order(self):
        order = reject(_pending_order(), "manager-1", "Over budget", NOW)

        assert order.status == OrderStatus.CANCELLED
        assert order.approval_workflow.status == ApprovalState.REJECTED
        assert order.approval_workflow.steps[0].status == ApprovalState.REJECTED
        assert order.approval_workflow.steps[0].comments == "Over budget"
        assert order.status_history[-1].reason == "Over budget"

    def test_reject_at_second_step(self):
        order = approve(_pending_order(), "manager-1", NOW)
        order = reject(order, "owner-1", "No", NOW)
        assert order.approval_workflow.steps[0].status == ApprovalState.APPROVED
        assert order.approval_workflow.steps[1].status == ApprovalState.REJECTED
        assert order.status == OrderStatus.CANCELLED

    @pytest.mark.parametrize("reason", ["", "   ", None])
    def test_reason_required(self, reason):
        with pytest.raises(BadRequestError) as exc:
            reject(_pending_order(), "m", reason, NOW)
        assert exc.value.code == ReasonCode.REJECTION_REASON_REQUIRED

    def test_reject_after_rejection_fails(self):
        order = reject(_pending_order(), "m", "No", NOW)
        with pytest.raises(BadRequestError):
            reject(order, "m", "No again", NOW)
