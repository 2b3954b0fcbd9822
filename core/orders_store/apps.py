"""
POS Orders Store - App Configuration
======================================
Persistent storage for orders, templates and bulk-operation records.
"""

from django.apps import AppConfig


class OrdersStoreConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "core.orders_store"
    label = "orders_store"
    verbose_name = "POS Orders Store"
