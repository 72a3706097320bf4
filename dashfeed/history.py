# dashfeed/history.py
# Purpose: per-symbol daily closes for the markets sparkline, cached on their
# own 6h cadence so quote refreshes during the session don't re-pull series.

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Iterable, Mapping
from datetime import datetime
from typing import Any

from dashfeed.assembler import gather_all
from dashfeed.freshness import HISTORY_TTL_SEC
from dashfeed.keys import derive_key
from dashfeed.schemas import HistoryEntry, SeriesPoint
from dashfeed.store import SnapshotStore
from dashfeed.utils import as_utc

log = logging.getLogger(__name__)

SeriesFetcher = Callable[[str, int], Awaitable[list[dict[str, Any]]]]

HISTORY_KEY_VERSION = "v1"
RAW_POINTS = 12  # weekends/holidays are already absent; 12 covers 5 sessions comfortably
KEEP_POINTS = 5


def history_key(symbol: str) -> str:
    return derive_key("dash:hist5d", [symbol], HISTORY_KEY_VERSION)


def last_n_trading_days(values_newest_first: list[dict[str, Any]], n: int = KEEP_POINTS):
    """Newest-first provider rows -> last n points, oldest-first for charting."""
    return list(reversed(values_newest_first[:n]))


class HistoryCache:
    def __init__(
        self,
        store: SnapshotStore,
        fetch_series: SeriesFetcher,
        ttl_seconds: float = HISTORY_TTL_SEC,
        keep_points: int = KEEP_POINTS,
        raw_points: int = RAW_POINTS,
    ):
        self.store = store
        self.fetch_series = fetch_series
        self.ttl_seconds = ttl_seconds
        self.keep_points = keep_points
        self.raw_points = raw_points

    def _usable(self, entry: HistoryEntry | None, now_ts: float) -> bool:
        if entry is None or not entry.series:
            return False
        age = now_ts - entry.cached_at
        return 0 <= age < self.ttl_seconds

    async def get_or_refresh(self, symbol: str, now: datetime) -> list[dict[str, Any]]:
        key = history_key(symbol)
        now_ts = as_utc(now).timestamp()

        entry = await self.store.get(key, model=HistoryEntry)
        if self._usable(entry, now_ts):
            return [p.model_dump() for p in entry.series]

        raw = await self.fetch_series(symbol, self.raw_points)
        series = last_n_trading_days(raw, self.keep_points)
        fresh = HistoryEntry(cached_at=now_ts, series=[SeriesPoint(**p) for p in series])
        # awaited so the next request sees it; failures are still only logged
        await self.store.write(key, fresh)
        log.info("history refreshed", extra={"symbol": symbol, "cache_key": key})
        return [p.model_dump() for p in fresh.series]

    async def get_many(self, symbols: Iterable[str], now: datetime) -> dict[str, Any]:
        syms = list(symbols)
        return await gather_all({s: self.get_or_refresh(s, now) for s in syms})


def history_complete(history: Any, symbols: Iterable[str]) -> bool:
    """True when a stored snapshot's history has a non-empty series for every symbol."""
    if not isinstance(history, Mapping):
        return False
    return all(history.get(s) for s in symbols)
