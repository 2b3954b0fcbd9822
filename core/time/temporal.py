"""
POS Core Time — Temporal Helpers
==================================
Pure functions for calendar arithmetic.
All functions take explicit datetime arguments — no hidden clock access.
"""

from __future__ import annotations

import calendar
from dataclasses import dataclass
from datetime import datetime, time, timedelta, timezone


# ══════════════════════════════════════════════════════════════
# TIME WINDOW — Half-open interval [start, end)
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class TimeWindow:
    """
    A half-open time interval [start, end).

    Invariant: start <= end (enforced at construction).
    """

    start: datetime
    end: datetime

    def __post_init__(self) -> None:
        if self.start > self.end:
            raise ValueError(
                f"TimeWindow start ({self.start}) must be <= end ({self.end})."
            )

    def contains(self, dt: datetime) -> bool:
        return self.start <= dt < self.end


# ══════════════════════════════════════════════════════════════
# PURE CALENDAR FUNCTIONS
# ══════════════════════════════════════════════════════════════

def ensure_utc(dt: datetime) -> datetime:
    """Treat naive datetimes as UTC; convert aware ones to UTC."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def add_months(dt: datetime, months: int) -> datetime:
    """
    Add calendar months, clamping the day to the target month's length.

    2025-01-31 + 1 month → 2025-02-28.
    """
    month_index = dt.month - 1 + months
    year = dt.year + month_index // 12
    month = month_index % 12 + 1
    day = min(dt.day, calendar.monthrange(year, month)[1])
    return dt.replace(year=year, month=month, day=day)


def end_of_month(dt: datetime) -> datetime:
    """Last calendar day of dt's month, keeping the time of day."""
    last_day = calendar.monthrange(dt.year, dt.month)[1]
    return dt.replace(day=last_day)


def day_window(dt: datetime) -> TimeWindow:
    """The UTC calendar day containing dt."""
    utc = ensure_utc(dt)
    start = datetime.combine(utc.date(), time.min, tzinfo=timezone.utc)
    return TimeWindow(start=start, end=start + timedelta(days=1))


def day_key(dt: datetime) -> str:
    """Compact UTC day key, e.g. '20260218'."""
    return ensure_utc(dt).strftime("%Y%m%d")
