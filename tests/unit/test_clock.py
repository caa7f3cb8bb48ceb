"""Tests for the injectable clock."""

from datetime import date, datetime, timezone
from zoneinfo import ZoneInfo

from recon_kernel.domain.clock import DeterministicClock, SystemClock


class TestDeterministicClock:
    def test_fixed_until_advanced(self):
        clock = DeterministicClock(datetime(2024, 1, 15, 9, 0, tzinfo=timezone.utc))
        assert clock.now() == clock.now()

        clock.advance(90)
        assert clock.now() == datetime(2024, 1, 15, 9, 1, 30, tzinfo=timezone.utc)

    def test_tick(self):
        clock = DeterministicClock(datetime(2024, 1, 15, 9, 0, tzinfo=timezone.utc))
        assert clock.tick() == datetime(2024, 1, 15, 9, 0, 1, tzinfo=timezone.utc)

    def test_set_time_resets_advance(self):
        clock = DeterministicClock()
        clock.advance(100)
        clock.set_time(datetime(2024, 3, 1, tzinfo=timezone.utc))
        assert clock.now() == datetime(2024, 3, 1, tzinfo=timezone.utc)

    def test_today_in_business_timezone(self):
        # 20:00 UTC is already the next day in Dhaka (UTC+6)
        clock = DeterministicClock(datetime(2024, 1, 15, 20, 0, tzinfo=timezone.utc))
        assert clock.today() == date(2024, 1, 15)
        assert clock.today(ZoneInfo("Asia/Dhaka")) == date(2024, 1, 16)


class TestSystemClock:
    def test_now_is_aware_utc(self):
        now = SystemClock().now()
        assert now.tzinfo is not None
        assert now.utcoffset().total_seconds() == 0
