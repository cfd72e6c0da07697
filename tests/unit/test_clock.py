"""Tests for the injectable clocks."""

from datetime import date, datetime, timezone

from billing_kernel.domain.clock import DeterministicClock, SystemClock


class TestDeterministicClock:
    def test_fixed(self):
        clock = DeterministicClock(datetime(2024, 3, 1, 23, 0, tzinfo=timezone.utc))
        assert clock.now() == clock.now()
        assert clock.today() == date(2024, 3, 1)

    def test_advance_crosses_midnight(self):
        clock = DeterministicClock(datetime(2024, 3, 1, 23, 0, tzinfo=timezone.utc))
        clock.advance(3600)
        assert clock.today() == date(2024, 3, 2)

    def test_set_time_resets_advance(self):
        clock = DeterministicClock()
        clock.advance(10)
        clock.set_time(datetime(2025, 1, 1, tzinfo=timezone.utc))
        assert clock.now() == datetime(2025, 1, 1, tzinfo=timezone.utc)


class TestSystemClock:
    def test_timezone_aware(self):
        assert SystemClock().now().tzinfo is not None
