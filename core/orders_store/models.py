"""
POS Orders Store - Persistent Order Documents
===============================================
Each aggregate is stored as its JSON document (Order.to_dict())
plus the indexed columns the queries filter and sort on.
The document is the source of truth; columns are derived from it
on every write.
"""

from __future__ import annotations

from django.db import models


class OrderRecord(models.Model):
    order_id = models.CharField(max_length=64, primary_key=True)
    tenant_id = models.CharField(max_length=64, db_index=True)
    order_number = models.CharField(max_length=64)
    customer_id = models.CharField(max_length=64)
    user_id = models.CharField(max_length=64)
    status = models.CharField(max_length=32)
    payment_status = models.CharField(max_length=20)
    priority = models.CharField(max_length=20)
    total_amount = models.BigIntegerField()
    remaining_amount = models.BigIntegerField()
    order_date = models.DateTimeField()
    due_date = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField()
    updated_at = models.DateTimeField()
    has_approval_workflow = models.BooleanField(default=False)
    approval_status = models.CharField(max_length=20, null=True, blank=True)
    recurring_enabled = models.BooleanField(default=False)
    recurring_next_date = models.DateTimeField(null=True, blank=True)
    tags_text = models.TextField(blank=True, default="")
    search_text = models.TextField(blank=True, default="")
    version = models.PositiveIntegerField(default=0)
    document = models.JSONField()

    class Meta:
        db_table = "pos_orders"
        ordering = ["-created_at", "order_id"]
        constraints = [
            models.UniqueConstraint(
                fields=["tenant_id", "order_number"],
                name="uniq_pos_order_number_per_tenant",
            ),
        ]
        indexes = [
            models.Index(fields=["tenant_id", "status"], name="idx_pos_order_status"),
            models.Index(fields=["tenant_id", "payment_status"], name="idx_pos_order_payment"),
            models.Index(fields=["tenant_id", "customer_id"], name="idx_pos_order_customer"),
            models.Index(fields=["tenant_id", "due_date"], name="idx_pos_order_due"),
            models.Index(
                fields=["recurring_enabled", "recurring_next_date"],
                name="idx_pos_order_recurring",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.order_number} ({self.status})"


class OrderTemplateRecord(models.Model):
    template_id = models.CharField(max_length=64, primary_key=True)
    tenant_id = models.CharField(max_length=64, db_index=True)
    name = models.CharField(max_length=255)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField()
    updated_at = models.DateTimeField()
    document = models.JSONField()

    class Meta:
        db_table = "pos_order_templates"
        ordering = ["name", "template_id"]
        indexes = [
            models.Index(fields=["tenant_id", "is_active", "name"], name="idx_pos_template_active"),
        ]

    def __str__(self) -> str:
        return self.name


class BulkOrderOperationRecord(models.Model):
    operation_id = models.CharField(max_length=64, primary_key=True)
    tenant_id = models.CharField(max_length=64, db_index=True)
    status = models.CharField(max_length=20)
    created_at = models.DateTimeField()
    document = models.JSONField()

    class Meta:
        db_table = "pos_bulk_order_operations"
        ordering = ["-created_at", "operation_id"]

    def __str__(self) -> str:
        return f"{self.operation_id} ({self.status})"


class OrderSequence(models.Model):
    """Last issued order-number sequence per tenant per UTC day."""

    tenant_id = models.CharField(max_length=64)
    day_key = models.CharField(max_length=8)
    last_value = models.PositiveIntegerField(default=0)

    class Meta:
        db_table = "pos_order_sequences"
        constraints = [
            models.UniqueConstraint(
                fields=["tenant_id", "day_key"],
                name="uniq_pos_order_sequence_day",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.tenant_id}:{self.day_key}={self.last_value}"
