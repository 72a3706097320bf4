# dashfeed/routers/markets.py
# GET /api/markets -> script setting window.DASH_DATA.markets
#
# Quotes only move during the session, so freshness here is the trading
# calendar rather than a TTL:
#   - in hours: always fetch, write through in the background
#   - out of hours: serve the last in-hours capture, whatever its age
# History (5 daily closes) has its own 6h cache and is backfilled onto
# snapshots written before history existed.
from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

from fastapi import APIRouter, Depends, Response

from dashfeed.assembler import cache_or_fetch, gather_all
from dashfeed.config import AppContext
from dashfeed.deps import get_context
from dashfeed.errors import DashError, UpstreamError
from dashfeed.history import HistoryCache, history_complete
from dashfeed.keys import derive_key
from dashfeed.render import script_error_response, script_response
from dashfeed.utils import iso_from_ts

log = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["markets"])

CACHE_CONTROL = "s-maxage=900, stale-while-revalidate=3600"
KEY_VERSION = "v2"
NO_DATA_MESSAGE = "No previous market data cached"


def markets_key(symbols: tuple[str, ...]) -> str:
    return derive_key("dash:markets", symbols, KEY_VERSION)


async def backfill_history(
    history: HistoryCache, existing: Any, symbols: tuple[str, ...], now: datetime
) -> Any:
    """
    Fill in history for snapshots that lack it. Out of hours this is best
    effort: a provider failure keeps whatever the snapshot already had.
    """
    if history_complete(existing, symbols):
        return existing
    try:
        return await history.get_many(symbols, now)
    except UpstreamError as e:
        log.warning("history backfill failed: %s", e.message, extra={"endpoint": "markets"})
        if isinstance(existing, dict):
            return {s: existing.get(s) for s in symbols}
        return {s: None for s in symbols}


@router.get("/markets")
async def markets(ctx: AppContext = Depends(get_context)) -> Response:
    try:
        quotes = ctx.require_twelvedata()
        history = ctx.require_history()
        hours = ctx.market_hours
        symbols = ctx.settings.market_symbols
        now = ctx.clock()

        async def refresh(at: datetime) -> dict[str, Any]:
            log.info(
                "market open (%s) -> fetching %s", hours.format_clock(at), "/".join(symbols)
            )
            fetched = await gather_all(
                {
                    "quotes": gather_all({s: quotes.quote(s) for s in symbols}),
                    "history": history.get_many(symbols, at),
                }
            )
            at_iso = iso_from_ts(at.timestamp())
            return {
                "updated_local": hours.format_local(at),
                "in_hours": True,
                "symbols": fetched["quotes"],
                "history": fetched["history"],
                "history_cached_at": at_iso,
            }

        lookup = await cache_or_fetch(
            ctx.store,
            markets_key(symbols),
            hours,
            refresh,
            now,
            endpoint="markets",
            serve_stale_on_error=ctx.settings.serve_stale_on_error,
        )

        if lookup.refreshed:
            body = lookup.payload
        elif lookup.stale:
            body = {
                **lookup.payload,
                "current_fetch_iso": iso_from_ts(now.timestamp()),
                "current_fetch_local": hours.format_local(now),
            }
        elif lookup.snapshot is not None:
            cached = lookup.payload
            log.info("outside market hours -> serving cached data")
            body = {
                **cached,
                "in_hours": False,
                "current_fetch_iso": iso_from_ts(now.timestamp()),
                "current_fetch_local": hours.format_local(now),
                "history": await backfill_history(history, cached.get("history"), symbols, now),
            }
        else:
            log.info("outside market hours, nothing cached yet")
            body = {
                "updated_iso": None,
                "in_hours": False,
                "error": NO_DATA_MESSAGE,
                "symbols": {s: None for s in symbols},
                "history": await backfill_history(history, None, symbols, now),
            }

        return script_response("markets", body, CACHE_CONTROL)
    except DashError as e:
        log.error("markets handler error: %s", e.message, exc_info=e.http_status >= 500)
        return script_error_response(e)
    except Exception as e:
        log.exception("markets handler error")
        return script_error_response(e)
