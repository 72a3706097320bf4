"""
Unit tests for TTL freshness and the business-hours policy.
"""

from datetime import UTC, datetime
from zoneinfo import ZoneInfo

import pytest

from dashfeed.freshness import BusinessHoursPolicy, TtlPolicy, is_fresh
from dashfeed.schemas import Snapshot

CHI = ZoneInfo("America/Chicago")
NOW_TS = 1_760_000_000.0


def snap(captured_at: float) -> Snapshot:
    return Snapshot(captured_at=captured_at, payload={"x": 1})


class TestIsFresh:
    def test_absent_is_stale(self):
        assert is_fresh(None, NOW_TS, 300) is False

    def test_within_ttl_is_fresh(self):
        assert is_fresh(snap(NOW_TS - 200), NOW_TS, 300) is True

    def test_past_ttl_is_stale(self):
        assert is_fresh(snap(NOW_TS - 301), NOW_TS, 300) is False

    def test_exactly_ttl_is_stale(self):
        assert is_fresh(snap(NOW_TS - 300), NOW_TS, 300) is False

    def test_zero_age_is_fresh(self):
        assert is_fresh(snap(NOW_TS), NOW_TS, 300) is True

    def test_future_capture_is_stale(self):
        assert is_fresh(snap(NOW_TS + 5), NOW_TS, 300) is False

    def test_monotonic_in_age(self):
        ttl = 300
        ages = [0, 1, 50, 150, 299, 299.9, 300, 301, 1000]
        results = [is_fresh(snap(NOW_TS - a), NOW_TS, ttl) for a in ages]
        # once stale, never fresh again for larger ages
        first_stale = results.index(False)
        assert all(results[:first_stale])
        assert not any(results[first_stale:])


class TestTtlPolicy:
    def test_should_refresh_is_inverse_of_fresh(self):
        policy = TtlPolicy(900)
        now = datetime.fromtimestamp(NOW_TS, tz=UTC)
        assert policy.should_refresh(None, now) is True
        assert policy.should_refresh(snap(NOW_TS - 60), now) is False
        assert policy.should_refresh(snap(NOW_TS - 901), now) is True


class TestBusinessHoursPolicy:
    @pytest.fixture
    def policy(self):
        return BusinessHoursPolicy()

    @pytest.mark.parametrize(
        "local, expected",
        [
            (datetime(2026, 10, 13, 10, 0, tzinfo=CHI), True),  # Tuesday 10:00
            (datetime(2026, 10, 17, 10, 0, tzinfo=CHI), False),  # Saturday 10:00
            (datetime(2026, 10, 13, 20, 0, tzinfo=CHI), False),  # Tuesday 20:00
            (datetime(2026, 10, 18, 12, 0, tzinfo=CHI), False),  # Sunday noon
            (datetime(2026, 10, 16, 16, 59, tzinfo=CHI), True),  # Friday 16:59
            (datetime(2026, 10, 16, 17, 0, tzinfo=CHI), False),  # Friday 17:00
            (datetime(2026, 10, 12, 9, 0, tzinfo=CHI), True),  # Monday 09:00
            (datetime(2026, 10, 12, 8, 59, tzinfo=CHI), False),  # Monday 08:59
        ],
    )
    def test_active_window(self, policy, local, expected):
        assert policy.is_active_now(local) is expected

    def test_uses_market_timezone_not_utc(self, policy):
        # Wednesday 01:00 UTC is still Tuesday 20:00 in Chicago
        assert policy.is_active_now(datetime(2026, 10, 14, 1, 0, tzinfo=UTC)) is False
        # Tuesday 15:00 UTC is 10:00 CDT
        assert policy.is_active_now(datetime(2026, 10, 13, 15, 0, tzinfo=UTC)) is True

    def test_follows_daylight_saving(self, policy):
        # January: CST is UTC-6, so 14:30 UTC is 08:30 local and 15:00 UTC is 09:00
        assert policy.is_active_now(datetime(2026, 1, 13, 14, 30, tzinfo=UTC)) is False
        assert policy.is_active_now(datetime(2026, 1, 13, 15, 0, tzinfo=UTC)) is True

    def test_naive_datetime_is_read_as_utc(self, policy):
        assert policy.is_active_now(datetime(2026, 10, 13, 15, 0)) is True

    def test_should_refresh_ignores_snapshot_age(self, policy):
        very_old = snap(0.0)
        saturday = datetime(2026, 10, 17, 10, 0, tzinfo=CHI)
        tuesday = datetime(2026, 10, 13, 10, 0, tzinfo=CHI)
        assert policy.should_refresh(very_old, saturday) is False
        assert policy.should_refresh(None, saturday) is False
        assert policy.should_refresh(snap(tuesday.timestamp()), tuesday) is True

    def test_format_local(self, policy):
        now = datetime(2026, 10, 13, 19, 5, tzinfo=UTC)
        assert policy.format_local(now) == "10/13/26, 14:05"
        assert policy.format_clock(now) == "14:05:00"
