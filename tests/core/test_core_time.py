"""
Tests for core.time — Clock protocol and calendar helpers.
"""

import pytest
from datetime import datetime, timezone, timedelta

from core.time import (
    FixedClock,
    SystemClock,
    TimeWindow,
    add_months,
    day_key,
    day_window,
    end_of_month,
    ensure_utc,
)


# ── Clock Tests ──────────────────────────────────────────────

class TestSystemClock:
    def test_returns_utc_datetime(self):
        dt = SystemClock().now_utc()
        assert dt.tzinfo == timezone.utc

    def test_time_advances(self):
        clock = SystemClock()
        t1 = clock.now_utc()
        t2 = clock.now_utc()
        assert t2 >= t1


class TestFixedClock:
    def test_returns_fixed_time(self):
        fixed = datetime(2025, 6, 15, 12, 0, 0, tzinfo=timezone.utc)
        clock = FixedClock(fixed)
        assert clock.now_utc() == fixed
        assert clock.now_utc() == fixed

    def test_rejects_naive_datetime(self):
        with pytest.raises(ValueError, match="timezone-aware"):
            FixedClock(datetime(2025, 1, 1))

    def test_advance_seconds_and_days(self):
        fixed = datetime(2025, 6, 15, 12, 0, 0, tzinfo=timezone.utc)
        clock = FixedClock(fixed)
        clock.advance(60)
        clock.advance(days=2)
        assert clock.now_utc() == fixed + timedelta(days=2, seconds=60)

    def test_set(self):
        clock = FixedClock(datetime(2025, 1, 1, tzinfo=timezone.utc))
        clock.set(datetime(2026, 3, 1, tzinfo=timezone.utc))
        assert clock.now_utc().year == 2026
        with pytest.raises(ValueError):
            clock.set(datetime(2026, 3, 1))


# ── TimeWindow Tests ─────────────────────────────────────────

class TestTimeWindow:
    def test_half_open(self):
        start = datetime(2025, 1, 1, tzinfo=timezone.utc)
        end = datetime(2025, 1, 2, tzinfo=timezone.utc)
        window = TimeWindow(start=start, end=end)

        assert window.contains(start)
        assert window.contains(end - timedelta(microseconds=1))
        assert not window.contains(end)

    def test_rejects_inverted(self):
        with pytest.raises(ValueError):
            TimeWindow(
                start=datetime(2025, 2, 1, tzinfo=timezone.utc),
                end=datetime(2025, 1, 1, tzinfo=timezone.utc),
            )


# ── Calendar Helpers ─────────────────────────────────────────

class TestCalendarHelpers:
    def test_add_months_clamps_day(self):
        jan31 = datetime(2025, 1, 31, 10, 30, tzinfo=timezone.utc)
        assert add_months(jan31, 1) == datetime(2025, 2, 28, 10, 30, tzinfo=timezone.utc)
        assert add_months(jan31, 13) == datetime(2026, 2, 28, 10, 30, tzinfo=timezone.utc)

    def test_add_months_leap_year(self):
        assert add_months(datetime(2024, 1, 31, tzinfo=timezone.utc), 1).day == 29

    def test_add_months_crosses_year(self):
        assert add_months(datetime(2025, 11, 15, tzinfo=timezone.utc), 3) == datetime(
            2026, 2, 15, tzinfo=timezone.utc
        )

    def test_end_of_month_keeps_time(self):
        dt = datetime(2025, 4, 10, 8, 15, tzinfo=timezone.utc)
        assert end_of_month(dt) == datetime(2025, 4, 30, 8, 15, tzinfo=timezone.utc)

    def test_ensure_utc(self):
        naive = datetime(2025, 1, 1, 12, 0)
        assert ensure_utc(naive).tzinfo == timezone.utc
        plus_two = datetime(2025, 1, 1, 12, 0, tzinfo=timezone(timedelta(hours=2)))
        assert ensure_utc(plus_two).hour == 10

    def test_day_window_and_key(self):
        dt = datetime(2026, 2, 18, 23, 59, tzinfo=timezone.utc)
        window = day_window(dt)
        assert window.start == datetime(2026, 2, 18, tzinfo=timezone.utc)
        assert window.end == datetime(2026, 2, 19, tzinfo=timezone.utc)
        assert day_key(dt) == "20260218"
