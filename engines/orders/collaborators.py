"""
POS Orders Engine — External Collaborators
============================================
Capabilities the order core consumes but does not own.
Injected into OrderLifecycleService; never imported as globals.
"""

from __future__ import annotations

import threading
from typing import Dict, Iterable, Protocol, Set


class CustomerDirectory(Protocol):
    """Existence lookup for customers owned by the customer module."""

    def customer_exists(self, tenant_id: str, customer_id: str) -> bool:
        ...  # pragma: no cover


class InMemoryCustomerDirectory:
    """In-memory directory for tests and local development."""

    def __init__(self, customers: Dict[str, Iterable[str]] | None = None) -> None:
        self._lock = threading.Lock()
        self._customers: Dict[str, Set[str]] = {
            tenant_id: set(ids) for tenant_id, ids in (customers or {}).items()
        }

    def register(self, tenant_id: str, customer_id: str) -> None:
        with self._lock:
            self._customers.setdefault(tenant_id, set()).add(customer_id)

    def remove(self, tenant_id: str, customer_id: str) -> None:
        with self._lock:
            self._customers.get(tenant_id, set()).discard(customer_id)

    def customer_exists(self, tenant_id: str, customer_id: str) -> bool:
        with self._lock:
            return customer_id in self._customers.get(tenant_id, set())
