"""
POS Core Time — Public API
============================
Injected clocks plus the calendar arithmetic behind due dates,
recurring schedules and per-day order numbering.
"""

from core.time.clock import Clock, FixedClock, SystemClock
from core.time.temporal import (
    TimeWindow,
    add_months,
    day_key,
    day_window,
    end_of_month,
    ensure_utc,
)

__all__ = [
    "Clock",
    "FixedClock",
    "SystemClock",
    "TimeWindow",
    "add_months",
    "day_key",
    "day_window",
    "end_of_month",
    "ensure_utc",
]
