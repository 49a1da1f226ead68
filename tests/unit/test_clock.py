"""Tests for the injectable clock."""

from datetime import date, datetime, timezone

from ledger_kernel.domain.clock import DeterministicClock, SystemClock

T0 = datetime(2024, 3, 1, 23, 59, 59, tzinfo=timezone.utc)


class TestDeterministicClock:

    def test_now_is_stable(self):
        clock = DeterministicClock(T0)

        assert clock.now() == clock.now() == T0

    def test_tick_crosses_midnight(self):
        clock = DeterministicClock(T0)

        assert clock.today() == date(2024, 3, 1)
        clock.tick()
        assert clock.today() == date(2024, 3, 2)

    def test_set_time_resets_advance(self):
        clock = DeterministicClock(T0)
        clock.advance(30)

        clock.set_time(datetime(2024, 5, 1, tzinfo=timezone.utc))

        assert clock.now() == datetime(2024, 5, 1, tzinfo=timezone.utc)


class TestSystemClock:

    def test_now_is_timezone_aware(self):
        assert SystemClock().now().tzinfo is not None
