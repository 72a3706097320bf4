"""
Unit tests for the per-symbol history cache.
"""

from datetime import UTC, datetime, timedelta

import pytest

from dashfeed.errors import UpstreamError
from dashfeed.history import HistoryCache, history_complete, history_key, last_n_trading_days
from dashfeed.schemas import HistoryEntry

NOW = datetime(2026, 10, 13, 15, 0, tzinfo=UTC)


@pytest.fixture
def history(store, twelvedata):
    return HistoryCache(store, twelvedata.daily_series)


class TestLastNTradingDays:
    def test_keeps_newest_n_oldest_first(self):
        newest_first = [{"date": f"d{i}", "close": float(i)} for i in range(12)]
        assert last_n_trading_days(newest_first, 5) == [
            {"date": "d4", "close": 4.0},
            {"date": "d3", "close": 3.0},
            {"date": "d2", "close": 2.0},
            {"date": "d1", "close": 1.0},
            {"date": "d0", "close": 0.0},
        ]

    def test_short_series(self):
        assert last_n_trading_days([{"date": "d0", "close": 1.0}], 5) == [{"date": "d0", "close": 1.0}]


class TestHistoryCache:
    @pytest.mark.asyncio
    async def test_one_fetch_within_ttl(self, history, twelvedata):
        first = await history.get_or_refresh("SPY", NOW)
        second = await history.get_or_refresh("SPY", NOW + timedelta(hours=5, minutes=59))

        assert twelvedata.series_calls == [("SPY", 12)]
        assert first == second
        assert [p["date"] for p in first] == [
            "2026-10-08",
            "2026-10-09",
            "2026-10-10",
            "2026-10-11",
            "2026-10-12",
        ]

    @pytest.mark.asyncio
    async def test_refetches_after_ttl(self, history, twelvedata):
        await history.get_or_refresh("SPY", NOW)
        await history.get_or_refresh("SPY", NOW + timedelta(hours=6, seconds=1))
        assert len(twelvedata.series_calls) == 2

    @pytest.mark.asyncio
    async def test_symbols_are_cached_independently(self, history, twelvedata):
        await history.get_or_refresh("SPY", NOW)
        await history.get_or_refresh("IAU", NOW)
        await history.get_or_refresh("SPY", NOW)
        assert [s for s, _ in twelvedata.series_calls] == ["SPY", "IAU"]

    @pytest.mark.asyncio
    async def test_empty_cached_series_is_refetched(self, store, history, twelvedata):
        await store.write(history_key("SPY"), HistoryEntry(cached_at=NOW.timestamp(), series=[]))
        series = await history.get_or_refresh("SPY", NOW)
        assert len(series) == 5
        assert len(twelvedata.series_calls) == 1

    @pytest.mark.asyncio
    async def test_writes_entry_with_fresh_timestamp(self, store, history):
        await history.get_or_refresh("QQQ", NOW)
        entry = await store.get(history_key("QQQ"), model=HistoryEntry)
        assert entry.cached_at == NOW.timestamp()
        assert len(entry.series) == 5

    @pytest.mark.asyncio
    async def test_upstream_failure_propagates_and_caches_nothing(self, kv, history, twelvedata):
        twelvedata.fail_series = True
        with pytest.raises(UpstreamError):
            await history.get_or_refresh("SPY", NOW)
        assert history_key("SPY") not in kv

    @pytest.mark.asyncio
    async def test_get_many(self, history):
        result = await history.get_many(["SPY", "QQQ"], NOW)
        assert set(result) == {"SPY", "QQQ"}
        assert all(len(v) == 5 for v in result.values())


class TestHistoryComplete:
    def test_complete(self):
        assert history_complete({"SPY": [{"date": "d", "close": 1}], "IAU": [{}]}, ["SPY", "IAU"])

    @pytest.mark.parametrize("history", [None, [], {}, {"SPY": [{}]}, {"SPY": [{}], "IAU": []}])
    def test_incomplete(self, history):
        assert not history_complete(history, ["SPY", "IAU"])
