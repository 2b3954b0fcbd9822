from django.db import migrations, models


class Migration(migrations.Migration):
    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="OrderRecord",
            fields=[
                (
                    "order_id",
                    models.CharField(max_length=64, primary_key=True, serialize=False),
                ),
                ("tenant_id", models.CharField(db_index=True, max_length=64)),
                ("order_number", models.CharField(max_length=64)),
                ("customer_id", models.CharField(max_length=64)),
                ("user_id", models.CharField(max_length=64)),
                ("status", models.CharField(max_length=32)),
                ("payment_status", models.CharField(max_length=20)),
                ("priority", models.CharField(max_length=20)),
                ("total_amount", models.BigIntegerField()),
                ("remaining_amount", models.BigIntegerField()),
                ("order_date", models.DateTimeField()),
                ("due_date", models.DateTimeField(blank=True, null=True)),
                ("created_at", models.DateTimeField()),
                ("updated_at", models.DateTimeField()),
                ("has_approval_workflow", models.BooleanField(default=False)),
                (
                    "approval_status",
                    models.CharField(blank=True, max_length=20, null=True),
                ),
                ("recurring_enabled", models.BooleanField(default=False)),
                ("recurring_next_date", models.DateTimeField(blank=True, null=True)),
                ("tags_text", models.TextField(blank=True, default="")),
                ("search_text", models.TextField(blank=True, default="")),
                ("version", models.PositiveIntegerField(default=0)),
                ("document", models.JSONField()),
            ],
            options={
                "db_table": "pos_orders",
                "ordering": ["-created_at", "order_id"],
                "indexes": [
                    models.Index(fields=["tenant_id", "status"], name="idx_pos_order_status"),
                    models.Index(
                        fields=["tenant_id", "payment_status"],
                        name="idx_pos_order_payment",
                    ),
                    models.Index(
                        fields=["tenant_id", "customer_id"],
                        name="idx_pos_order_customer",
                    ),
                    models.Index(fields=["tenant_id", "due_date"], name="idx_pos_order_due"),
                    models.Index(
                        fields=["recurring_enabled", "recurring_next_date"],
                        name="idx_pos_order_recurring",
                    ),
                ],
                "constraints": [
                    models.UniqueConstraint(
                        fields=("tenant_id", "order_number"),
                        name="uniq_pos_order_number_per_tenant",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="OrderTemplateRecord",
            fields=[
                (
                    "template_id",
                    models.CharField(max_length=64, primary_key=True, serialize=False),
                ),
                ("tenant_id", models.CharField(db_index=True, max_length=64)),
                ("name", models.CharField(max_length=255)),
                ("is_active", models.BooleanField(default=True)),
                ("created_at", models.DateTimeField()),
                ("updated_at", models.DateTimeField()),
                ("document", models.JSONField()),
            ],
            options={
                "db_table": "pos_order_templates",
                "ordering": ["name", "template_id"],
                "indexes": [
                    models.Index(
                        fields=["tenant_id", "is_active", "name"],
                        name="idx_pos_template_active",
                    )
                ],
            },
        ),
        migrations.CreateModel(
            name="BulkOrderOperationRecord",
            fields=[
                (
                    "operation_id",
                    models.CharField(max_length=64, primary_key=True, serialize=False),
                ),
                ("tenant_id", models.CharField(db_index=True, max_length=64)),
                ("status", models.CharField(max_length=20)),
                ("created_at", models.DateTimeField()),
                ("document", models.JSONField()),
            ],
            options={
                "db_table": "pos_bulk_order_operations",
                "ordering": ["-created_at", "operation_id"],
            },
        ),
        migrations.CreateModel(
            name="OrderSequence",
            fields=[
                (
                    "id",
                    models.BigAutoField(
                        auto_created=True,
                        primary_key=True,
                        serialize=False,
                        verbose_name="ID",
                    ),
                ),
                ("tenant_id", models.CharField(max_length=64)),
                ("day_key", models.CharField(max_length=8)),
                ("last_value", models.PositiveIntegerField(default=0)),
            ],
            options={
                "db_table": "pos_order_sequences",
                "constraints": [
                    models.UniqueConstraint(
                        fields=("tenant_id", "day_key"),
                        name="uniq_pos_order_sequence_day",
                    ),
                ],
            },
        ),
    ]
