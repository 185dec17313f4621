"""
Tests for clock sources
"""

from datetime import datetime, date

from account_ledger.clock import SystemClock, FixedClock


class TestFixedClock:

    def test_ticks_strictly_forward(self):
        clock = FixedClock(datetime(2026, 10, 19, 8, 0))
        first = clock.now()
        second = clock.now()
        assert second > first
        assert clock.today() == date(2026, 10, 19)

    def test_advance(self):
        clock = FixedClock(datetime(2026, 10, 19, 23, 0))
        clock.advance(hours=2)
        assert clock.today() == date(2026, 10, 20)


class TestSystemClock:

    def test_today_matches_now(self):
        clock = SystemClock()
        assert clock.today() in (clock.now().date(), date.today())
