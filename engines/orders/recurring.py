"""
POS Orders Engine — Recurring Order Scheduler
===============================================
Generates the next instance of recurring orders and advances
(or terminates) their recurrence.

Sweep, per due order (enabled, next_order_date <= now, not CANCELLED):
    1. next_date = now + interval × frequency unit
    2. original: current_occurrence += 1, next_order_date = next_date,
       disabled once max_occurrences is reached or next_date > end_date
       (versioned write; a conflict fails the order before any clone)
    3. clone the order through the normal creation path; if the clone
       is not kept, the original's recurrence is put back

The sweep is best-effort over a batch: each order runs under its
lock with its own timeout, and one failure NEVER aborts the rest.
A timed-out worker is abandoned and discards whatever it wrote.
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta
from typing import Callable, List, Optional, Tuple

from core.concurrency import KeyedLockRegistry
from core.time import Clock, add_months
from engines.orders.config import OrderLifecycleConfig
from engines.orders.creation import OrderDraft, assemble_order
from engines.orders.models import (
    Order,
    OrderStatus,
    RecurringFrequency,
    RecurringOrderConfig,
    new_id,
)
from engines.orders.numbering import next_order_number
from engines.orders.payment_terms import reset_installments
from engines.orders.repository import OrderRepository, is_recurring_due

logger = logging.getLogger("pos.orders.recurring")


# ══════════════════════════════════════════════════════════════
# PURE SCHEDULING FUNCTIONS
# ══════════════════════════════════════════════════════════════

def next_occurrence(config: RecurringOrderConfig, now: datetime) -> datetime:
    """`now` plus interval × the frequency unit (months clamp to month end)."""
    frequency = config.frequency
    if frequency == RecurringFrequency.DAILY:
        return now + timedelta(days=config.interval)
    elif frequency == RecurringFrequency.WEEKLY:
        return now + timedelta(days=7 * config.interval)
    elif frequency == RecurringFrequency.MONTHLY:
        return add_months(now, config.interval)
    elif frequency == RecurringFrequency.QUARTERLY:
        return add_months(now, 3 * config.interval)
    elif frequency == RecurringFrequency.YEARLY:
        return add_months(now, 12 * config.interval)
    raise ValueError(f"Unsupported recurring frequency: {frequency}.")


def schedule_first(config: RecurringOrderConfig, now: datetime) -> RecurringOrderConfig:
    """Fill next_order_date for a freshly enabled recurrence."""
    if not config.enabled or config.next_order_date is not None:
        return config
    return replace(config, next_order_date=next_occurrence(config, now))


def advance(config: RecurringOrderConfig, next_date: datetime) -> RecurringOrderConfig:
    occurrence = config.current_occurrence + 1
    exhausted = (
        config.max_occurrences is not None and occurrence >= config.max_occurrences
    )
    expired = config.end_date is not None and next_date > config.end_date
    return replace(
        config,
        current_occurrence=occurrence,
        next_order_date=next_date,
        enabled=config.enabled and not (exhausted or expired),
    )


def build_instance(
    original: Order,
    now: datetime,
    *,
    order_id: str,
    order_number: str,
    config: OrderLifecycleConfig,
) -> Order:
    """
    Clone `original` as a new, unpaid order dated `now`.

    The clone carries no recurrence of its own; installment due
    dates keep their offset from the order date.
    """
    recurrence = original.recurring_order
    auto_approve = recurrence is not None and recurrence.auto_approve
    draft = OrderDraft(
        customer_id=original.customer_id,
        items=original.items,
        payment_terms=reset_installments(original.payment_terms, now - original.order_date),
        shipping_amount=original.shipping_amount,
        priority=original.priority,
        tags=original.tags,
        notes=original.notes,
        internal_notes=original.internal_notes,
        billing_address=original.billing_address,
        shipping_address=original.shipping_address,
        currency=original.currency,
    )
    return assemble_order(
        draft,
        order_id=order_id,
        tenant_id=original.tenant_id,
        order_number=order_number,
        user_id=original.user_id,
        now=now,
        config=config,
        requested_status=OrderStatus.CONFIRMED if auto_approve else OrderStatus.DRAFT,
        history_reason=f"Recurring order generated from {original.order_number}",
        source_order_id=original.order_id,
    )


# ══════════════════════════════════════════════════════════════
# SWEEP
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class RecurringFailure:
    order_id: str
    tenant_id: str
    error_type: str
    message: str

    def to_dict(self) -> dict:
        return {
            "order_id": self.order_id,
            "tenant_id": self.tenant_id,
            "error_type": self.error_type,
            "message": self.message,
        }


@dataclass(frozen=True)
class RecurringSweepResult:
    processed: int = 0
    created_order_ids: Tuple[str, ...] = ()
    skipped_order_ids: Tuple[str, ...] = ()
    failures: Tuple[RecurringFailure, ...] = field(default_factory=tuple)

    @property
    def failed(self) -> int:
        return len(self.failures)

    def to_dict(self) -> dict:
        return {
            "processed": self.processed,
            "created_order_ids": list(self.created_order_ids),
            "skipped_order_ids": list(self.skipped_order_ids),
            "failures": [f.to_dict() for f in self.failures],
        }


class _Attempt:
    """
    Outcome handshake between the sweep and one worker.

    Exactly one side wins: the worker by finishing, or the sweep by
    abandoning it on timeout. An abandoned worker keeps nothing.
    """

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._state = "running"

    @property
    def abandoned(self) -> bool:
        with self._guard:
            return self._state == "abandoned"

    def abandon(self) -> bool:
        with self._guard:
            if self._state == "running":
                self._state = "abandoned"
            return self._state == "abandoned"

    def finish(self) -> bool:
        with self._guard:
            if self._state == "running":
                self._state = "finished"
            return self._state == "finished"


class RecurringOrderScheduler:
    """Runs the recurring-order sweep against a repository."""

    def __init__(
        self,
        repository: OrderRepository,
        clock: Clock,
        config: OrderLifecycleConfig,
        lock_registry: KeyedLockRegistry,
        id_factory: Callable[[], str] = new_id,
    ) -> None:
        self._repository = repository
        self._clock = clock
        self._config = config
        self._locks = lock_registry
        self._id_factory = id_factory

    def process_due(self, now: Optional[datetime] = None) -> RecurringSweepResult:
        """
        Generate instances for every due recurring order.

        This method NEVER raises for a single order's failure.
        Failures and timeouts are logged and reported in the result,
        and a failed or timed-out order keeps no instance.
        """
        now = now or self._clock.now_utc()
        due = self._repository.find_recurring_due(now)
        timeout = self._config.recurring_order_timeout_seconds

        created: List[str] = []
        skipped: List[str] = []
        failures: List[RecurringFailure] = []

        for order in due:
            attempt = _Attempt()
            executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="recurring-order")
            future = executor.submit(
                self._process_one, order.tenant_id, order.order_id, now, attempt
            )
            try:
                try:
                    instance_id = future.result(timeout=timeout)
                except FutureTimeoutError:
                    if not attempt.abandon():
                        # Finished right at the deadline; its outcome stands.
                        instance_id = future.result()
                    else:
                        failures.append(RecurringFailure(
                            order_id=order.order_id,
                            tenant_id=order.tenant_id,
                            error_type="TimeoutError",
                            message=f"Recurring order processing exceeded {timeout}s.",
                        ))
                        logger.error(
                            f"Recurring order {order.order_id} (tenant {order.tenant_id}) "
                            f"timed out after {timeout}s"
                        )
                        continue
            except Exception as exc:
                failures.append(RecurringFailure(
                    order_id=order.order_id,
                    tenant_id=order.tenant_id,
                    error_type=type(exc).__name__,
                    message=str(exc),
                ))
                logger.error(
                    f"Failed to create recurring order instance for order "
                    f"{order.order_id} (tenant {order.tenant_id}): {exc}",
                    exc_info=True,
                )
                continue
            finally:
                executor.shutdown(wait=False)

            if instance_id is None:
                skipped.append(order.order_id)
            else:
                created.append(instance_id)
                logger.info(
                    f"Recurring order {order.order_id} generated instance {instance_id}"
                )

        logger.info(
            f"Recurring sweep complete at {now.isoformat()}: "
            f"{len(due)} due, {len(created)} created, "
            f"{len(skipped)} skipped, {len(failures)} failed"
        )
        return RecurringSweepResult(
            processed=len(due),
            created_order_ids=tuple(created),
            skipped_order_ids=tuple(skipped),
            failures=tuple(failures),
        )

    def _process_one(
        self, tenant_id: str, order_id: str, now: datetime, attempt: _Attempt
    ) -> Optional[str]:
        """
        Advance the original, then store its instance.

        The original moves first so a failed advance never leaves an
        instance behind; if the instance is not kept afterwards, the
        original's recurrence is put back.
        """
        with self._locks.hold(order_id), self._repository.unit_of_work():
            if attempt.abandoned:
                return None
            original = self._repository.find_by_id(tenant_id, order_id)
            if original is None or not is_recurring_due(original, now):
                return None

            next_date = next_occurrence(original.recurring_order, now)
            advanced = self._repository.update(
                original.evolve(
                    recurring_order=advance(original.recurring_order, next_date),
                    updated_at=now,
                ),
                expected_version=original.version,
            )
            if advanced is None:
                return None

            try:
                if not attempt.abandoned:
                    instance = build_instance(
                        original,
                        now,
                        order_id=self._id_factory(),
                        order_number=next_order_number(
                            self._repository,
                            tenant_id,
                            now,
                            prefix=self._config.order_number_prefix,
                            padding=self._config.order_number_padding,
                        ),
                        config=self._config,
                    )
                    self._repository.create(instance)
                    if attempt.finish():
                        return instance.order_id
                    self._repository.delete(tenant_id, instance.order_id)
                    logger.warning(
                        f"Discarded instance {instance.order_id} of abandoned "
                        f"recurring order {order_id}"
                    )
            except Exception:
                self._rewind(original, advanced)
                raise
            self._rewind(original, advanced)
            return None

    def _rewind(self, original: Order, advanced: Order) -> None:
        self._repository.update(
            advanced.evolve(
                recurring_order=original.recurring_order,
                updated_at=original.updated_at,
            ),
            expected_version=advanced.version,
        )
