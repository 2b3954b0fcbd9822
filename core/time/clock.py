"""
POS Core Time — Injected Clock
================================
Doctrine: NO datetime.now() inside engine logic.
The lifecycle service and the recurring scheduler read time from
an injected Clock; pure engine functions receive it as `at` / `now`.
"""

from __future__ import annotations

import threading
from datetime import datetime, timedelta, timezone
from typing import Protocol


def _require_aware(value: datetime) -> datetime:
    if value.tzinfo is None:
        raise ValueError("FixedClock requires timezone-aware datetime.")
    return value.astimezone(timezone.utc)


# ══════════════════════════════════════════════════════════════
# CLOCK PROTOCOL
# ══════════════════════════════════════════════════════════════

class Clock(Protocol):
    def now_utc(self) -> datetime:
        """Current instant, always tz-aware UTC."""
        ...  # pragma: no cover


# ══════════════════════════════════════════════════════════════
# IMPLEMENTATIONS
# ══════════════════════════════════════════════════════════════

class SystemClock:
    """Wall clock used outside tests."""

    def now_utc(self) -> datetime:
        return datetime.now(timezone.utc)


class FixedClock:
    """
    Manually driven clock for tests and replays.

    Safe to share between the threads of a concurrency test:
    reads and moves are serialized.

        clock = FixedClock(datetime(2026, 2, 21, 9, 0, tzinfo=timezone.utc))
        clock.advance(days=7)   # next weekly recurrence is now due
    """

    def __init__(self, start: datetime) -> None:
        self._instant = _require_aware(start)
        self._guard = threading.Lock()

    def now_utc(self) -> datetime:
        with self._guard:
            return self._instant

    def advance(self, seconds: float = 0, *, days: int = 0) -> None:
        with self._guard:
            self._instant += timedelta(days=days, seconds=seconds)

    def set(self, instant: datetime) -> None:
        instant = _require_aware(instant)
        with self._guard:
            self._instant = instant
