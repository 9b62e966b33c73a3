from datetime import datetime, timezone

from portal_kernel.domain.clock import DeterministicClock, SystemClock


def test_deterministic_clock_is_stable_until_advanced():
    clock = DeterministicClock(datetime(2026, 2, 1, 12, 0, 0))
    assert clock.now() == clock.now()
    clock.advance(30)
    assert clock.now() == datetime(2026, 2, 1, 12, 0, 30)
    assert clock.tick() == datetime(2026, 2, 1, 12, 0, 31)


def test_deterministic_clock_now_utc_handles_naive_time():
    clock = DeterministicClock(datetime(2026, 2, 1, 12, 0, 0))
    assert clock.now_utc().tzinfo == timezone.utc


def test_system_clock_is_timezone_aware():
    assert SystemClock().now().tzinfo is not None
