from datetime import datetime, timezone

from gpsinfo.infrastructure.resilience.usage_counter import QUOTA_PERIOD_MS, UsageCounter

from conftest import FakeClock


def test_counts_against_quota(clock: FakeClock):
    counter = UsageCounter(monthly_quota=2, clock=clock)
    assert counter.has_capacity()
    counter.increment()
    counter.increment()
    assert not counter.has_capacity()


def test_stats_snapshot(clock: FakeClock):
    counter = UsageCounter(monthly_quota=25000, clock=clock)
    counter.increment()

    stats = counter.stats()

    assert stats["request_count"] == 1
    assert stats["remaining_requests"] == 24999
    expected_reset = datetime.fromtimestamp((clock() + QUOTA_PERIOD_MS) / 1000, tz=timezone.utc)
    assert stats["reset_time"] == expected_reset


def test_counter_resets_after_period(clock: FakeClock):
    counter = UsageCounter(monthly_quota=1, clock=clock)
    counter.increment()
    clock.advance(QUOTA_PERIOD_MS)
    assert not counter.has_capacity()

    clock.advance(1)
    assert counter.has_capacity()
    assert counter.stats()["request_count"] == 0
