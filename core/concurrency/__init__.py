"""
POS Core Concurrency — Public API
===================================
Per-aggregate locking for read-modify-write cycles.
"""

from core.concurrency.locks import KeyedLockRegistry

__all__ = ["KeyedLockRegistry"]
