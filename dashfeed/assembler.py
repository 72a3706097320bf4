"""
Cache-or-fetch flow shared by every endpoint.

    key -> store.get -> policy.should_refresh?
        no  -> serve stored snapshot (may be None for business-hours policies)
        yes -> refresh(now) -> build_snapshot -> store.set (background) -> serve

A refresh cycle is all-or-nothing: gather_all fails as soon as any upstream
call fails, and nothing is written unless the whole payload was built.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from dashfeed.errors import UpstreamError
from dashfeed.freshness import FreshnessPolicy
from dashfeed.observability import CACHE_LOOKUPS
from dashfeed.schemas import Snapshot
from dashfeed.store import SnapshotStore
from dashfeed.utils import as_utc, iso_from_ts

log = logging.getLogger(__name__)

RefreshFn = Callable[[datetime], Awaitable[dict[str, Any]]]


async def gather_all(fetches: Mapping[str, Awaitable[Any]]) -> dict[str, Any]:
    """Run independent fetches concurrently; any failure fails the whole join."""
    names = list(fetches)
    results = await asyncio.gather(*(fetches[n] for n in names))
    return dict(zip(names, results, strict=True))


def build_snapshot(payload: dict[str, Any], now: datetime) -> Snapshot:
    """Stamp capture time on a freshly assembled payload (updated_iso goes first)."""
    ts = as_utc(now).timestamp()
    stamped = {"updated_iso": iso_from_ts(ts), **{k: v for k, v in payload.items() if k != "updated_iso"}}
    return Snapshot(captured_at=ts, payload=stamped)


@dataclass
class CacheLookup:
    snapshot: Snapshot | None
    refreshed: bool = False
    stale: bool = False  # served past its freshness after a failed refresh

    @property
    def payload(self) -> dict[str, Any] | None:
        return self.snapshot.payload if self.snapshot is not None else None


async def cache_or_fetch(
    store: SnapshotStore,
    key: str,
    policy: FreshnessPolicy,
    refresh: RefreshFn,
    now: datetime,
    *,
    endpoint: str,
    serve_stale_on_error: bool = False,
) -> CacheLookup:
    cached = await store.get(key)

    if not policy.should_refresh(cached, now):
        CACHE_LOOKUPS.labels(endpoint=endpoint, outcome="hit" if cached else "empty").inc()
        return CacheLookup(snapshot=cached)

    try:
        payload = await refresh(now)
    except UpstreamError:
        if serve_stale_on_error and cached is not None:
            log.warning(
                "refresh failed, serving stale snapshot",
                exc_info=True,
                extra={"endpoint": endpoint, "cache_key": key},
            )
            CACHE_LOOKUPS.labels(endpoint=endpoint, outcome="stale").inc()
            return CacheLookup(
                snapshot=Snapshot(
                    captured_at=cached.captured_at, payload={**cached.payload, "stale": True}
                ),
                stale=True,
            )
        raise

    snapshot = build_snapshot(payload, now)
    store.set(key, snapshot)
    CACHE_LOOKUPS.labels(endpoint=endpoint, outcome="refresh").inc()
    return CacheLookup(snapshot=snapshot, refreshed=True)
